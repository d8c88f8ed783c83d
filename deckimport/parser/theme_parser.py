"""Extract theme colors from every theme part of a deck.

Parses <a:clrScheme> XML from each ``ppt/theme/themeN.xml`` into a
ten-slot palette and resolves scheme color references against the slide's
active theme, including luminance modifiers.
"""

import logging
import math
import re
from typing import Any, Optional

from deckimport.dsl.schema import DEFAULT_THEME_COLORS, THEME_SLOT_FIELDS, ColorMap, ThemeColors
from deckimport.parser.archive import NAMESPACES, ArchiveReader


logger = logging.getLogger(__name__)

THEME_PART_TEMPLATE = "ppt/theme/theme{index}.xml"

HEX_COLOR_PATTERN = re.compile(r"^#?([0-9A-Fa-f]{6})$")


def normalize_hex(value: Optional[str]) -> Optional[str]:
    """``RRGGBB`` or ``#rrggbb`` -> ``#RRGGBB``; None for anything else."""
    if not value:
        return None
    match = HEX_COLOR_PATTERN.match(value.strip())
    if match is None:
        return None
    return f"#{match.group(1).upper()}"


def apply_luminance(
    hex_color: str,
    lum_mod: Optional[float] = None,
    lum_off: Optional[float] = None,
) -> Optional[str]:
    """Apply luminance modify/offset to an RGB color.

    Each channel is multiplied by ``lum_mod`` first, then ``255 * lum_off``
    is added, then the result is clamped to 0..255.

    Args:
        hex_color: Base color, ``#RRGGBB``.
        lum_mod: Multiplier as a fraction (0.5 = 50%).
        lum_off: Offset as a fraction of full scale.

    Returns:
        Adjusted ``#RRGGBB`` color; the input unchanged if neither modifier
        is given; None if a modifier is given and the input is not a hex color.
    """
    if lum_mod is None and lum_off is None:
        return hex_color

    normalized = normalize_hex(hex_color)
    if normalized is None:
        logger.debug(f"Cannot apply luminance to {hex_color!r}")
        return None

    raw = normalized.lstrip("#")
    channels = [int(raw[i:i + 2], 16) for i in (0, 2, 4)]

    adjusted = []
    for value in channels:
        value = float(value)
        if lum_mod is not None:
            value *= lum_mod
        if lum_off is not None:
            value += 255 * lum_off
        value = min(255.0, max(0.0, value))
        adjusted.append(int(math.floor(value + 0.5)))

    return "#{:02X}{:02X}{:02X}".format(*adjusted)


class ThemeParser:
    """Registry of parsed theme palettes, keyed by theme part stem."""

    def __init__(self) -> None:
        self.themes: dict[str, ThemeColors] = {}

    def load_themes(self, archive: ArchiveReader, max_parts: int = 50) -> dict[str, ThemeColors]:
        """Parse every theme part found by probing theme1..theme{max_parts}.

        Args:
            archive: The open deck archive.
            max_parts: Upper bound of the probe.

        Returns:
            Mapping of theme name (``theme1``) to its palette.
        """
        self.themes = {}
        for index in range(1, max_parts + 1):
            path = THEME_PART_TEMPLATE.format(index=index)
            if not archive.has(path):
                continue
            root = archive.read_xml(path)
            if root is None:
                continue
            self.themes[f"theme{index}"] = self.extract_theme(root)

        logger.debug(f"Loaded {len(self.themes)} theme(s): {sorted(self.themes)}")
        return self.themes

    def get(self, theme_name: str) -> ThemeColors:
        """Palette for a theme name; the built-in palette when unknown."""
        return self.themes.get(theme_name, DEFAULT_THEME_COLORS)

    def extract_theme(self, theme_element: Any) -> ThemeColors:
        """Extract the palette and Latin fonts from a theme root element.

        XML structure example:
            <a:clrScheme name="Office">
                <a:dk1><a:sysClr val="windowText" lastClr="000000"/></a:dk1>
                <a:lt1><a:sysClr val="window" lastClr="FFFFFF"/></a:lt1>
                <a:dk2><a:srgbClr val="1F497D"/></a:dk2>
                <a:lt2><a:srgbClr val="EEECE1"/></a:lt2>
                <a:accent1><a:srgbClr val="4F81BD"/></a:accent1>
                ...
            </a:clrScheme>
        """
        values: dict[str, str] = {}

        clr_scheme = theme_element.find(".//a:clrScheme", NAMESPACES)
        if clr_scheme is not None:
            for xml_name in THEME_SLOT_FIELDS:
                color_elem = clr_scheme.find(f"a:{xml_name}", NAMESPACES)
                if color_elem is not None:
                    hex_color = self._extract_color_value(color_elem)
                    if hex_color:
                        values[xml_name] = hex_color

        font_scheme = theme_element.find(".//a:fontScheme", NAMESPACES)
        if font_scheme is not None:
            major = font_scheme.find("a:majorFont/a:latin", NAMESPACES)
            minor = font_scheme.find("a:minorFont/a:latin", NAMESPACES)
            if major is not None and major.get("typeface"):
                values["major_font"] = major.get("typeface")
            if minor is not None and minor.get("typeface"):
                values["minor_font"] = minor.get("typeface")

        return ThemeColors(**values)

    def _extract_color_value(self, color_elem: Any) -> Optional[str]:
        """Extract hex color value from a theme slot element.

        Slots hold either <a:srgbClr val="RRGGBB"/> or
        <a:sysClr val="windowText" lastClr="RRGGBB"/>. A slot with neither
        is omitted, as is one whose value is not six hex digits.
        """
        srgb = color_elem.find("a:srgbClr", NAMESPACES)
        if srgb is not None:
            value = normalize_hex(srgb.get("val"))
            if value:
                return value

        sys_clr = color_elem.find("a:sysClr", NAMESPACES)
        if sys_clr is not None:
            value = normalize_hex(sys_clr.get("lastClr"))
            if value:
                return value

        logger.debug(f"Theme slot {color_elem.tag} has no usable color")
        return None

    def resolve_scheme_color(
        self,
        key: str,
        theme_name: str,
        color_map: ColorMap,
        lum_mod: Optional[float] = None,
        lum_off: Optional[float] = None,
    ) -> str:
        """Resolve a scheme color reference for a slide.

        Args:
            key: ``val`` of an <a:schemeClr> (``bg1``, ``accent2``...).
            theme_name: The slide's active theme.
            color_map: Presentation color map.
            lum_mod: Optional luminance multiplier fraction.
            lum_off: Optional luminance offset fraction.

        Returns:
            Concrete ``#RRGGBB`` color.
        """
        if key == "phClr":
            key = "tx1"
        slot = color_map.slot_for(key)
        base = self.get(theme_name).slot(slot) or DEFAULT_THEME_COLORS.slot(slot)
        if base is None:
            logger.debug(f"Unknown scheme color {key!r} (slot {slot!r}), using dk1")
            base = DEFAULT_THEME_COLORS.dark1
        return apply_luminance(base, lum_mod, lum_off) or base

    def resolve_font(self, typeface: Optional[str], theme_name: str) -> Optional[str]:
        """Resolve theme font tokens (``+mj-lt``, ``+mn-lt``) to a typeface."""
        if not typeface:
            return None
        if not typeface.startswith("+"):
            return typeface
        theme = self.get(theme_name)
        if typeface.startswith("+mj"):
            return theme.major_font
        if typeface.startswith("+mn"):
            return theme.minor_font
        return None

    def clear(self) -> None:
        self.themes = {}
