"""Turn DrawingML text bodies into compact markup.

Consecutive runs with the same (bold, italic, color) are merged into one
span. A span is wrapped in ``<b>``/``<i>`` when it is bold/italic and the
text box default is not, and, outermost, in
``<span style="color: #RRGGBB">`` when its color differs from the box
default. Paragraphs and <a:br/> line breaks become ``\\n``; merging never
crosses a break.
"""

import html
import logging
from dataclasses import dataclass, replace
from typing import Any, Literal, Optional

from deckimport.config import ParserSettings
from deckimport.dsl.schema import MasterDefaults
from deckimport.parser.archive import NAMESPACES
from deckimport.parser.fallback import first_present
from deckimport.parser.style_extractor import StyleExtractor
from deckimport.parser.theme_parser import ThemeParser


logger = logging.getLogger(__name__)

A_NS = NAMESPACES["a"]
RUN_TAGS = {f"{{{A_NS}}}r", f"{{{A_NS}}}fld"}
BREAK_TAG = f"{{{A_NS}}}br"

LINE_BREAK = "\n"

Alignment = Literal["left", "center", "right"]

ALIGNMENTS: dict[str, Alignment] = {"ctr": "center", "r": "right"}


@dataclass(frozen=True)
class RunFormat:
    """Effective formatting of one run."""

    bold: bool
    italic: bool
    color: str
    font_size: float
    font_family: str

    @property
    def style_key(self) -> tuple[bool, bool, str]:
        """Attributes that decide whether adjacent runs merge."""
        return self.bold, self.italic, self.color


@dataclass(frozen=True)
class FormattedText:
    """Markup of a text body and the box-level defaults it was rendered against."""

    content: str
    default: RunFormat
    align: Alignment


def _flag(props: Any, attr: str) -> Optional[bool]:
    if props is None:
        return None
    value = props.get(attr)
    if value is None:
        return None
    return value in ("1", "true")


def _size(props: Any) -> Optional[float]:
    if props is None or props.get("sz") is None:
        return None
    try:
        return int(props.get("sz")) / 100
    except (ValueError, OverflowError):
        return None


class TextRunFormatter:
    """Formats text bodies of shapes and table cells."""

    def __init__(
        self,
        style_extractor: StyleExtractor,
        theme_parser: ThemeParser,
        settings: ParserSettings,
    ) -> None:
        self.style_extractor = style_extractor
        self.theme_parser = theme_parser
        self.settings = settings

    def master_defaults(self, master_root: Any, theme_name: str) -> MasterDefaults:
        """Read inherited text defaults from a slide master.

        Uses the level-1 ``defRPr`` of ``p:otherStyle`` and then
        ``p:bodyStyle`` under <p:txStyles>.
        """
        if master_root is None:
            return MasterDefaults()

        font_size = font_family = color = None
        for style in ("otherStyle", "bodyStyle"):
            def_rpr = master_root.find(f"p:txStyles/p:{style}/a:lvl1pPr/a:defRPr", NAMESPACES)
            if def_rpr is None:
                continue
            font_size = first_present(font_size, _size(def_rpr))
            font_family = first_present(font_family, self._typeface(def_rpr, theme_name))
            color = first_present(color, self._color(def_rpr, theme_name))

        return MasterDefaults(font_size=font_size, font_family=font_family, color=color)

    def format_body(
        self,
        tx_body: Any,
        theme_name: str,
        master: MasterDefaults,
    ) -> Optional[FormattedText]:
        """Render a <p:txBody>/<a:txBody> element.

        Args:
            tx_body: The text body element.
            theme_name: Active theme of the slide.
            master: Inherited master defaults.

        Returns:
            FormattedText, or None when the body holds no visible text.
        """
        paragraphs = tx_body.findall("a:p", NAMESPACES)
        if not paragraphs:
            return None

        # Each line is a list of (format, text) pieces
        lines: list[list[tuple[RunFormat, str]]] = []
        first_run: Optional[RunFormat] = None
        box_layers: Optional[list[Any]] = None
        align: Optional[Alignment] = None

        for para in paragraphs:
            p_pr = para.find("a:pPr", NAMESPACES)
            layers = [
                p_pr.find("a:defRPr", NAMESPACES) if p_pr is not None else None,
                self._list_style_rpr(tx_body, p_pr),
            ]
            if box_layers is None:
                box_layers = layers
            if align is None and p_pr is not None and p_pr.get("algn"):
                align = ALIGNMENTS.get(p_pr.get("algn"), "left")

            current: list[tuple[RunFormat, str]] = []
            for child in para:
                if child.tag == BREAK_TAG:
                    lines.append(current)
                    current = []
                    continue
                if child.tag not in RUN_TAGS:
                    continue

                text = "".join(t.text or "" for t in child.findall("a:t", NAMESPACES))
                fmt = self.resolve_format(child.find("a:rPr", NAMESPACES), layers, theme_name, master)
                if first_run is None:
                    first_run = fmt
                if text:
                    current.append((fmt, text))
            lines.append(current)

        if first_run is None or not any(text.strip() for line in lines for _, text in line):
            return None

        default = self.box_default(first_run, box_layers or [], theme_name, master)

        if align is None:
            lvl1 = tx_body.find("a:lstStyle/a:lvl1pPr", NAMESPACES)
            align = ALIGNMENTS.get(lvl1.get("algn", ""), "left") if lvl1 is not None else "left"

        content = LINE_BREAK.join(self.render_line(line, default) for line in lines)
        return FormattedText(content=content.strip(LINE_BREAK), default=default, align=align)

    def resolve_format(
        self,
        r_pr: Any,
        layers: list[Any],
        theme_name: str,
        master: MasterDefaults,
    ) -> RunFormat:
        """Resolve a run's effective formatting.

        Lookup order: run properties, then each inherited properties layer
        (paragraph, text body), then master defaults, then settings fallback.
        """
        chain = [r_pr] + [layer for layer in layers if layer is not None]

        return RunFormat(
            bold=first_present(*(_flag(props, "b") for props in chain), default=False),
            italic=first_present(*(_flag(props, "i") for props in chain), default=False),
            color=first_present(
                *(self._color(props, theme_name) for props in chain),
                master.color,
                default=self.settings.fallback_color,
            ),
            font_size=first_present(
                *(_size(props) for props in chain),
                master.font_size,
                default=self.settings.fallback_font_size,
            ),
            font_family=first_present(
                *(self._typeface(props, theme_name) for props in chain),
                master.font_family,
                default=self.settings.fallback_font_family,
            ),
        )

    def box_default(
        self,
        first_run: RunFormat,
        layers: list[Any],
        theme_name: str,
        master: MasterDefaults,
    ) -> RunFormat:
        """Box-level formatting that run markup is rendered against.

        Bold, italic and color come from the inherited layers only, so a run
        that sets them explicitly is always marked. Size and family come from
        the first run.
        """
        inherited = self.resolve_format(None, layers, theme_name, master)
        return replace(inherited, font_size=first_run.font_size, font_family=first_run.font_family)

    def render_line(self, pieces: list[tuple[RunFormat, str]], default: RunFormat) -> str:
        """Merge same-styled neighbours and wrap each span in its markup."""
        spans: list[tuple[RunFormat, str]] = []
        for fmt, text in pieces:
            if spans and spans[-1][0].style_key == fmt.style_key:
                spans[-1] = (spans[-1][0], spans[-1][1] + text)
            else:
                spans.append((fmt, text))

        return "".join(self._wrap(fmt, text, default) for fmt, text in spans)

    def escape(self, text: str) -> str:
        return html.escape(text, quote=False)

    def _wrap(self, fmt: RunFormat, text: str, default: RunFormat) -> str:
        markup = self.escape(text)
        if fmt.italic and not default.italic:
            markup = f"<i>{markup}</i>"
        if fmt.bold and not default.bold:
            markup = f"<b>{markup}</b>"
        if fmt.color != default.color:
            markup = f'<span style="color: {fmt.color}">{markup}</span>'
        return markup

    def plain_text(self, tx_body: Any) -> str:
        """Concatenated run text of a body, without markup or breaks."""
        if tx_body is None:
            return ""
        return "".join(t.text or "" for t in tx_body.iterfind(".//a:t", NAMESPACES))

    def first_run_format(self, tx_body: Any, theme_name: str, master: MasterDefaults) -> RunFormat:
        """Formatting of the first run in a body, or the inherited defaults."""
        run = tx_body.find(".//a:r", NAMESPACES) if tx_body is not None else None
        r_pr = run.find("a:rPr", NAMESPACES) if run is not None else None
        layers = [self._list_style_rpr(tx_body, None)] if tx_body is not None else []
        return self.resolve_format(r_pr, layers, theme_name, master)

    def _list_style_rpr(self, tx_body: Any, p_pr: Any) -> Optional[Any]:
        """Level-specific <a:defRPr> from the body's <a:lstStyle>."""
        level = 1
        if p_pr is not None:
            try:
                level = int(p_pr.get("lvl", "0")) + 1
            except ValueError:
                level = 1
        def_rpr = tx_body.find(f"a:lstStyle/a:lvl{level}pPr/a:defRPr", NAMESPACES)
        if def_rpr is None and level != 1:
            def_rpr = tx_body.find("a:lstStyle/a:lvl1pPr/a:defRPr", NAMESPACES)
        return def_rpr

    def _typeface(self, props: Any, theme_name: str) -> Optional[str]:
        if props is None:
            return None
        latin = props.find("a:latin", NAMESPACES)
        if latin is None:
            return None
        return self.theme_parser.resolve_font(latin.get("typeface"), theme_name)

    def _color(self, props: Any, theme_name: str) -> Optional[str]:
        if props is None:
            return None
        return self.style_extractor.extract_color(props.find("a:solidFill", NAMESPACES), theme_name)
