"""Pytest configuration and fixtures."""

import base64
import io
import re
import zipfile
from typing import Optional

import pytest
from lxml import etree
from pptx.opc.constants import RELATIONSHIP_TYPE as RT

from deckimport.config import ParserSettings
from deckimport.parser import PresentationParser


NS_DECL = (
    'xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main" '
    'xmlns:r="http://schemas.openxmlformats.org/officeDocument/2006/relationships" '
    'xmlns:p="http://schemas.openxmlformats.org/presentationml/2006/main" '
    'xmlns:p14="http://schemas.microsoft.com/office/powerpoint/2010/main" '
    'xmlns:mc="http://schemas.openxmlformats.org/markup-compatibility/2006"'
)

XML_HEADER = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'

# 1x1 transparent PNG
PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)

DEFAULT_CLR_MAP = (
    'bg1="lt1" tx1="dk1" bg2="lt2" tx2="dk2" accent1="accent1" accent2="accent2" '
    'accent3="accent3" accent4="accent4" accent5="accent5" accent6="accent6" '
    'hlink="hlink" folHlink="folHlink"'
)


def rels_xml(entries: list[tuple]) -> str:
    """Build a .rels part from (id, type, target[, mode]) tuples."""
    items = []
    for entry in entries:
        rel_id, rel_type, target = entry[:3]
        mode = f' TargetMode="{entry[3]}"' if len(entry) > 3 else ""
        items.append(f'<Relationship Id="{rel_id}" Type="{rel_type}" Target="{target}"{mode}/>')
    return (
        XML_HEADER
        + '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
        + "".join(items)
        + "</Relationships>"
    )


def parse_snippet(snippet: str):
    """Parse an XML fragment, declaring the usual prefixes on its root."""
    declared = re.sub(r"^\s*<([\w:]+)", lambda m: f"<{m.group(1)} {NS_DECL}", snippet, count=1)
    return etree.fromstring(declared)


def theme_xml(colors: Optional[dict[str, str]] = None, major: str = "Calibri Light", minor: str = "Calibri") -> str:
    """Theme part with the given slot colors (slot -> RRGGBB)."""
    colors = colors if colors is not None else {
        "dk1": "000000",
        "lt1": "FFFFFF",
        "dk2": "1F497D",
        "lt2": "EEECE1",
        "accent1": "4F81BD",
        "accent2": "C0504D",
        "accent3": "9BBB59",
        "accent4": "8064A2",
        "accent5": "4BACC6",
        "accent6": "F79646",
    }
    slots = "".join(f'<a:{slot}><a:srgbClr val="{value}"/></a:{slot}>' for slot, value in colors.items())
    return (
        XML_HEADER
        + f'<a:theme {NS_DECL} name="Test"><a:themeElements>'
        + f'<a:clrScheme name="Test">{slots}</a:clrScheme>'
        + '<a:fontScheme name="Test">'
        + f'<a:majorFont><a:latin typeface="{major}"/></a:majorFont>'
        + f'<a:minorFont><a:latin typeface="{minor}"/></a:minorFont>'
        + "</a:fontScheme></a:themeElements></a:theme>"
    )


class DeckBuilder:
    """Assembles a minimal deck archive in memory."""

    def __init__(self, width: int = 9144000, height: int = 5143500) -> None:
        self.width = width
        self.height = height
        self.slides: list[str] = []
        self.parts: dict[str, bytes] = {}
        self.layout_background = ""
        self.master_background = ""
        self.master_clr_map = DEFAULT_CLR_MAP
        self.master_tx_styles = ""
        self.themes: dict[str, str] = {"theme1": theme_xml()}
        self.master_theme = "theme1"
        self.include_presentation = True
        self.include_master = True

    # -- shape helpers -------------------------------------------------------

    @staticmethod
    def xfrm(x: int, y: int, cx: int, cy: int, rot: Optional[int] = None, prefix: str = "a") -> str:
        rot_attr = f' rot="{rot}"' if rot is not None else ""
        return (
            f'<{prefix}:xfrm{rot_attr}><a:off x="{x}" y="{y}"/>'
            f'<a:ext cx="{cx}" cy="{cy}"/></{prefix}:xfrm>'
        )

    @staticmethod
    def text_shape(paragraphs: str, xfrm: str = "", shape_id: int = 2, lst_style: str = "") -> str:
        return (
            f'<p:sp><p:nvSpPr><p:cNvPr id="{shape_id}" name="Text {shape_id}"/><p:cNvSpPr txBox="1"/><p:nvPr/></p:nvSpPr>'
            f"<p:spPr>{xfrm}</p:spPr>"
            f"<p:txBody><a:bodyPr/><a:lstStyle>{lst_style}</a:lstStyle>{paragraphs}</p:txBody></p:sp>"
        )

    @staticmethod
    def run(text: str, props: str = "", fill: str = "") -> str:
        inner = f"<a:solidFill>{fill}</a:solidFill>" if fill else ""
        return f'<a:r><a:rPr lang="en-US" {props}>{inner}</a:rPr><a:t>{text}</a:t></a:r>'

    @staticmethod
    def picture(rel_id: str, xfrm: str = "", nv_extra: str = "", shape_id: int = 3) -> str:
        return (
            f'<p:pic><p:nvPicPr><p:cNvPr id="{shape_id}" name="Picture {shape_id}"/><p:cNvPicPr/>'
            f"<p:nvPr>{nv_extra}</p:nvPr></p:nvPicPr>"
            f'<p:blipFill><a:blip r:embed="{rel_id}"/><a:stretch><a:fillRect/></a:stretch></p:blipFill>'
            f"<p:spPr>{xfrm}</p:spPr></p:pic>"
        )

    @staticmethod
    def group(children: str, x: int, y: int, ch_x: int, ch_y: int, cx: int = 1000, cy: int = 1000) -> str:
        return (
            '<p:grpSp><p:nvGrpSpPr><p:cNvPr id="10" name="Group"/><p:cNvGrpSpPr/><p:nvPr/></p:nvGrpSpPr>'
            f'<p:grpSpPr><a:xfrm><a:off x="{x}" y="{y}"/><a:ext cx="{cx}" cy="{cy}"/>'
            f'<a:chOff x="{ch_x}" y="{ch_y}"/><a:chExt cx="{cx}" cy="{cy}"/></a:xfrm></p:grpSpPr>'
            f"{children}</p:grpSp>"
        )

    @staticmethod
    def solid_background(color_xml: str) -> str:
        return f"<p:bg><p:bgPr><a:solidFill>{color_xml}</a:solidFill><a:effectLst/></p:bgPr></p:bg>"

    # -- parts ---------------------------------------------------------------

    def add_slide(
        self,
        shapes: str = "",
        background: str = "",
        rels: Optional[list[tuple]] = None,
        with_layout: bool = True,
        raw_xml: Optional[str] = None,
    ) -> str:
        """Add a slide and return its part path."""
        number = len(self.slides) + 1
        path = f"ppt/slides/slide{number}.xml"
        self.slides.append(path)

        if raw_xml is not None:
            self.parts[path] = raw_xml.encode("utf-8")
        else:
            self.parts[path] = (
                XML_HEADER
                + f"<p:sld {NS_DECL}><p:cSld>{background}<p:spTree>"
                + '<p:nvGrpSpPr><p:cNvPr id="1" name=""/><p:cNvGrpSpPr/><p:nvPr/></p:nvGrpSpPr><p:grpSpPr/>'
                + f"{shapes}</p:spTree></p:cSld></p:sld>"
            ).encode("utf-8")

        entries = list(rels or [])
        if with_layout:
            entries.append(("rIdLayout", RT.SLIDE_LAYOUT, "../slideLayouts/slideLayout1.xml"))
        self.parts[f"ppt/slides/_rels/slide{number}.xml.rels"] = rels_xml(entries).encode("utf-8")
        return path

    def add_media(self, filename: str, data: bytes = b"media-bytes") -> None:
        self.parts[f"ppt/media/{filename}"] = data

    def build(self) -> bytes:
        parts: dict[str, bytes] = {}

        parts["[Content_Types].xml"] = (
            XML_HEADER
            + '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
            + '<Default Extension="xml" ContentType="application/xml"/></Types>'
        ).encode("utf-8")

        if self.include_presentation:
            sld_ids = "".join(
                f'<p:sldId id="{256 + i}" r:id="rIdSlide{i + 1}"/>' for i in range(len(self.slides))
            )
            parts["ppt/presentation.xml"] = (
                XML_HEADER
                + f"<p:presentation {NS_DECL}>"
                + '<p:sldMasterIdLst><p:sldMasterId id="2147483648" r:id="rIdMaster"/></p:sldMasterIdLst>'
                + f"<p:sldIdLst>{sld_ids}</p:sldIdLst>"
                + f'<p:sldSz cx="{self.width}" cy="{self.height}"/><p:notesSz cx="6858000" cy="9144000"/>'
                + "</p:presentation>"
            ).encode("utf-8")
            entries = [("rIdMaster", RT.SLIDE_MASTER, "slideMasters/slideMaster1.xml")]
            entries += [
                (f"rIdSlide{i + 1}", RT.SLIDE, path.replace("ppt/", "", 1))
                for i, path in enumerate(self.slides)
            ]
            parts["ppt/_rels/presentation.xml.rels"] = rels_xml(entries).encode("utf-8")

        parts["ppt/slideLayouts/slideLayout1.xml"] = (
            XML_HEADER
            + f"<p:sldLayout {NS_DECL}><p:cSld>{self.layout_background}<p:spTree/></p:cSld></p:sldLayout>"
        ).encode("utf-8")
        parts["ppt/slideLayouts/_rels/slideLayout1.xml.rels"] = rels_xml(
            [("rId1", RT.SLIDE_MASTER, "../slideMasters/slideMaster1.xml")]
        ).encode("utf-8")

        if self.include_master:
            parts["ppt/slideMasters/slideMaster1.xml"] = (
                XML_HEADER
                + f"<p:sldMaster {NS_DECL}><p:cSld>{self.master_background}<p:spTree/></p:cSld>"
                + f"<p:clrMap {self.master_clr_map}/>"
                + f"<p:txStyles>{self.master_tx_styles}</p:txStyles></p:sldMaster>"
            ).encode("utf-8")
            parts["ppt/slideMasters/_rels/slideMaster1.xml.rels"] = rels_xml(
                [
                    ("rId1", RT.SLIDE_LAYOUT, "../slideLayouts/slideLayout1.xml"),
                    ("rId2", RT.THEME, f"../theme/{self.master_theme}.xml"),
                ]
            ).encode("utf-8")

        for name, xml in self.themes.items():
            parts[f"ppt/theme/{name}.xml"] = xml.encode("utf-8")

        parts.update(self.parts)

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for name, data in parts.items():
                archive.writestr(name, data)
        return buffer.getvalue()


@pytest.fixture
def deck() -> DeckBuilder:
    """A fresh 16:9 deck builder."""
    return DeckBuilder()


@pytest.fixture
def xml():
    """Parser for namespaced XML fragments."""
    return parse_snippet


@pytest.fixture
def png_bytes() -> bytes:
    """A valid 1x1 PNG."""
    return PNG_BYTES


@pytest.fixture
def theme_part():
    """Builder for theme part XML."""
    return theme_xml


@pytest.fixture
def rels_part():
    """Builder for .rels part XML."""
    return rels_xml


@pytest.fixture
def settings() -> ParserSettings:
    """Settings isolated from the environment."""
    return ParserSettings(_env_file=None)


@pytest.fixture
def parser(settings: ParserSettings) -> PresentationParser:
    """Create a PresentationParser instance."""
    return PresentationParser(settings)
