"""Extract colors, fills and backgrounds from slide XML.

Every color that reaches the output model is a concrete ``#RRGGBB``
value: scheme colors are resolved through the color map and the slide's
active theme.
"""

import colorsys
import logging
import math
from typing import Any, Callable, Optional

from deckimport.dsl.schema import (
    Background,
    ColorMap,
    ImageBackground,
    MediaKind,
    SolidBackground,
)
from deckimport.parser.archive import NAMESPACES, R_EMBED
from deckimport.parser.media_extractor import MediaExtractor
from deckimport.parser.relationships import RelationshipResolver
from deckimport.parser.theme_parser import ThemeParser, apply_luminance, normalize_hex


logger = logging.getLogger(__name__)

A_NS = NAMESPACES["a"]

COLOR_TAGS = ("srgbClr", "schemeClr", "sysClr", "prstClr", "hslClr", "scrgbClr")

# Common system color mappings, used when <a:sysClr> has no lastClr
SYSTEM_COLORS = {
    "windowText": "#000000",
    "window": "#FFFFFF",
    "highlight": "#0078D7",
    "highlightText": "#FFFFFF",
    "buttonFace": "#F0F0F0",
    "btnText": "#000000",
    "3dDkShadow": "#696969",
    "3dLight": "#E3E3E3",
    "infoText": "#000000",
    "infoBk": "#FFFFE1",
}

# Subset of DrawingML preset colors
PRESET_COLORS = {
    "black": "#000000",
    "white": "#FFFFFF",
    "red": "#FF0000",
    "green": "#008000",
    "lime": "#00FF00",
    "blue": "#0000FF",
    "yellow": "#FFFF00",
    "cyan": "#00FFFF",
    "magenta": "#FF00FF",
    "gray": "#808080",
    "grey": "#808080",
    "silver": "#C0C0C0",
    "maroon": "#800000",
    "navy": "#000080",
    "olive": "#808000",
    "purple": "#800080",
    "teal": "#008080",
    "orange": "#FFA500",
}


def _percentage(color_elem: Any, tag: str) -> Optional[float]:
    """Read a modifier child such as <a:lumMod val="50000"/> as a fraction."""
    modifier = color_elem.find(f"a:{tag}", NAMESPACES)
    if modifier is None:
        return None
    try:
        return int(modifier.get("val", "")) / 100000.0
    except (ValueError, OverflowError):
        return None


class StyleExtractor:
    """Resolves DrawingML colors and slide backgrounds."""

    def __init__(self, theme_parser: ThemeParser, color_map: ColorMap) -> None:
        self.theme_parser = theme_parser
        self.color_map = color_map

    def extract_color(self, element: Any, theme_name: str) -> Optional[str]:
        """Extract a color from a fill-like container.

        Args:
            element: Element holding a color child, e.g. <a:solidFill>.
            theme_name: The slide's active theme.

        Returns:
            Hex color string or None if the element carries no color.
        """
        if element is None:
            return None

        for child in element:
            if not isinstance(child.tag, str) or not child.tag.startswith(f"{{{A_NS}}}"):
                continue
            local = child.tag.split("}", 1)[1]
            if local in COLOR_TAGS:
                return self._resolve_color_element(child, local, theme_name)

        return None

    def _resolve_color_element(self, color_elem: Any, local: str, theme_name: str) -> Optional[str]:
        lum_mod = _percentage(color_elem, "lumMod")
        lum_off = _percentage(color_elem, "lumOff")

        if local == "schemeClr":
            key = color_elem.get("val")
            if not key:
                return None
            return self.theme_parser.resolve_scheme_color(
                key, theme_name, self.color_map, lum_mod=lum_mod, lum_off=lum_off
            )

        base: Optional[str] = None
        if local == "srgbClr":
            base = normalize_hex(color_elem.get("val"))
        elif local == "sysClr":
            base = normalize_hex(color_elem.get("lastClr")) or SYSTEM_COLORS.get(color_elem.get("val", ""))
        elif local == "prstClr":
            base = PRESET_COLORS.get(color_elem.get("val", ""))
        elif local == "hslClr":
            base = self._hsl_to_hex(color_elem)
        elif local == "scrgbClr":
            base = self._scrgb_to_hex(color_elem)

        if base is None:
            logger.debug(f"Unusable <a:{local}> {dict(color_elem.attrib)}")
            return None
        return apply_luminance(base, lum_mod, lum_off)

    def _hsl_to_hex(self, hsl_elem: Any) -> Optional[str]:
        """Convert an <a:hslClr> element to hex.

        HSL values in OOXML are in special units:
        H: 0-21600000 (60,000 per degree), S and L: 0-100000.
        """
        try:
            h = float(hsl_elem.get("hue", "0")) / 60000.0 / 360.0
            s = float(hsl_elem.get("sat", "0")) / 100000.0
            l = float(hsl_elem.get("lum", "0")) / 100000.0
        except (TypeError, ValueError):
            return None
        if not all(math.isfinite(v) for v in (h, s, l)):
            return None

        r, g, b = colorsys.hls_to_rgb(h % 1.0, min(1.0, max(0.0, l)), min(1.0, max(0.0, s)))
        return "#" + "".join(f"{round(min(1.0, max(0.0, c)) * 255):02X}" for c in (r, g, b))

    def _scrgb_to_hex(self, elem: Any) -> Optional[str]:
        try:
            channels = [int(elem.get(attr, "0")) / 100000.0 for attr in ("r", "g", "b")]
        except (ValueError, OverflowError):
            return None
        return "#" + "".join(f"{round(min(1.0, max(0.0, c)) * 255):02X}" for c in channels)

    def extract_fill_color(self, parent: Any, theme_name: str) -> Optional[str]:
        """Solid fill color of a properties element, else its first gradient stop."""
        if parent is None:
            return None

        solid_fill = parent.find("a:solidFill", NAMESPACES)
        if solid_fill is not None:
            color = self.extract_color(solid_fill, theme_name)
            if color:
                return color

        return self._gradient_color(parent, theme_name)

    def _gradient_color(self, parent: Any, theme_name: str) -> Optional[str]:
        first_stop = parent.find("a:gradFill/a:gsLst/a:gs", NAMESPACES)
        if first_stop is None:
            return None
        return self.extract_color(first_stop, theme_name)

    def extract_background(
        self,
        root: Any,
        part_path: str,
        theme_name: str,
        relationships: RelationshipResolver,
        media: MediaExtractor,
    ) -> Optional[Background]:
        """Extract the background of a slide, layout or master part.

        Order: solid fill, picture fill, gradient (first stop), then a
        theme background reference carrying a color.

        Args:
            root: Root element of the part.
            part_path: Archive path of the part, for relationship lookups.
            theme_name: Active theme for color resolution.
            relationships: Relationship resolver of the archive.
            media: Media extractor holding the archive's media.

        Returns:
            Background or None when the part defines none.
        """
        if root is None:
            return None

        bg = root.find("p:cSld/p:bg", NAMESPACES)
        if bg is None:
            return None

        bg_pr = bg.find("p:bgPr", NAMESPACES)
        if bg_pr is not None:
            checks: list[Callable[[], Optional[Background]]] = [
                lambda: self._solid_background(bg_pr, theme_name),
                lambda: self._image_background(bg_pr, part_path, relationships, media),
                lambda: self._gradient_background(bg_pr, theme_name),
            ]
            for check in checks:
                background = check()
                if background is not None:
                    return background

        bg_ref = bg.find("p:bgRef", NAMESPACES)
        if bg_ref is not None:
            color = self.extract_color(bg_ref, theme_name)
            if color:
                return SolidBackground(color=color)

        logger.debug(f"No usable background in {part_path}")
        return None

    def _solid_background(self, bg_pr: Any, theme_name: str) -> Optional[Background]:
        solid_fill = bg_pr.find("a:solidFill", NAMESPACES)
        color = self.extract_color(solid_fill, theme_name)
        return SolidBackground(color=color) if color else None

    def _gradient_background(self, bg_pr: Any, theme_name: str) -> Optional[Background]:
        color = self._gradient_color(bg_pr, theme_name)
        return SolidBackground(color=color) if color else None

    def _image_background(
        self,
        bg_pr: Any,
        part_path: str,
        relationships: RelationshipResolver,
        media: MediaExtractor,
    ) -> Optional[Background]:
        blip = bg_pr.find("a:blipFill/a:blip", NAMESPACES)
        if blip is None:
            return None

        rel = relationships.get(part_path, blip.get(R_EMBED))
        entry = media.get(rel.filename if rel else None, MediaKind.IMAGE)
        if entry is None:
            return None

        return ImageBackground(image_data=entry.data_uri(MediaKind.IMAGE), filename=entry.filename)
