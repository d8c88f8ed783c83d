"""Parse one slide part into a ParsedSlide."""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from deckimport.config import ParserSettings
from deckimport.dsl.schema import (
    Background,
    Dimensions,
    ImageElement,
    MasterDefaults,
    MediaKind,
    ParsedSlide,
    Position,
    TextBoxElement,
    VideoElement,
)
from deckimport.parser.archive import NAMESPACES, R_EMBED, R_LINK, ArchiveReader
from deckimport.parser.audio_collector import AudioCollector
from deckimport.parser.fallback import first_match
from deckimport.parser.media_extractor import MediaEntry, MediaExtractor
from deckimport.parser.relationships import RelationshipResolver
from deckimport.parser.shape_index import IndexedShape, ShapeIndex
from deckimport.parser.style_extractor import StyleExtractor
from deckimport.parser.text_formatter import TextRunFormatter
from deckimport.parser.theme_parser import ThemeParser
from deckimport.parser.transform_parser import TransformParser


logger = logging.getLogger(__name__)

TABLE_CELL_SEPARATOR = " | "

# Errors that drop a single element instead of the whole slide
ELEMENT_ERRORS = (ValueError, TypeError, AttributeError, KeyError, IndexError, OverflowError)


@dataclass
class SlideContext:
    """Per-slide state passed explicitly through the element builders."""

    slide_path: str
    theme_name: str
    master_defaults: MasterDefaults
    audio: AudioCollector
    counters: dict[str, Iterator[int]] = field(default_factory=dict)
    images: list[ImageElement] = field(default_factory=list)
    text_boxes: list[TextBoxElement] = field(default_factory=list)
    videos: list[VideoElement] = field(default_factory=list)

    def next_id(self, kind: str) -> str:
        counter = self.counters.setdefault(kind, itertools.count(1))
        return f"{kind}_{next(counter)}"


class SlideParser:
    """Builds images, text boxes, tables, videos and audio for a slide."""

    def __init__(
        self,
        archive: ArchiveReader,
        relationships: RelationshipResolver,
        theme_parser: ThemeParser,
        style_extractor: StyleExtractor,
        media: MediaExtractor,
        settings: ParserSettings,
    ) -> None:
        self.archive = archive
        self.relationships = relationships
        self.theme_parser = theme_parser
        self.style_extractor = style_extractor
        self.media = media
        self.settings = settings
        self.transform_parser = TransformParser()
        self.text_formatter = TextRunFormatter(style_extractor, theme_parser, settings)

    def parse(self, slide_path: str, dimensions: Dimensions) -> ParsedSlide:
        """Parse a slide part.

        Args:
            slide_path: Archive path, e.g. ``ppt/slides/slide1.xml``.
            dimensions: Presentation slide size.

        Returns:
            ParsedSlide; empty when the part is missing or malformed.
        """
        try:
            return self._parse(slide_path, dimensions)
        finally:
            self.relationships.clear()

    def _parse(self, slide_path: str, dimensions: Dimensions) -> ParsedSlide:
        root = self.archive.read_xml(slide_path)
        if root is None:
            logger.warning(f"Slide part {slide_path} is missing or unreadable")
            return ParsedSlide(width=dimensions.width, height=dimensions.height)

        theme_name = self.relationships.theme_for_part(slide_path)
        layout_path = self.relationships.layout_for_slide(slide_path)
        master_path = self.relationships.master_for_layout(layout_path) if layout_path else None
        master_root = self.archive.read_xml(master_path) if master_path else None

        counters: dict[str, Iterator[int]] = {"audio": itertools.count(1)}
        ctx = SlideContext(
            slide_path=slide_path,
            theme_name=theme_name,
            master_defaults=self.text_formatter.master_defaults(master_root, theme_name),
            audio=AudioCollector(
                slide_path,
                self.relationships,
                self.media,
                self.transform_parser,
                self.settings,
                counter=counters["audio"],
            ),
            counters=counters,
        )

        try:
            background = self._background(root, slide_path, layout_path, master_path, master_root, theme_name)
        except ELEMENT_ERRORS as e:
            logger.warning(f"Skipping background of {slide_path}: {e}")
            background = None

        index = ShapeIndex(root.find("p:cSld/p:spTree", NAMESPACES), self.transform_parser)
        # Ungrouped first, then grouped; id counters span both passes
        for shape in index.ungrouped + index.grouped:
            try:
                self._dispatch(shape, ctx)
            except ELEMENT_ERRORS as e:
                logger.warning(f"Skipping <p:{shape.tag}> on {slide_path}: {e}")

        ctx.audio.collect_frames(index)
        ctx.audio.collect_relationships(root, index)

        return ParsedSlide(
            background=background,
            images=ctx.images,
            text_boxes=ctx.text_boxes,
            videos=ctx.videos,
            audios=ctx.audio.audios,
            width=dimensions.width,
            height=dimensions.height,
        )

    def _background(
        self,
        root: Any,
        slide_path: str,
        layout_path: Optional[str],
        master_path: Optional[str],
        master_root: Any,
        theme_name: str,
    ) -> Optional[Background]:
        """Slide background, else the layout's, else the master's."""

        def from_part(part_root: Any, part_path: Optional[str]) -> Optional[Background]:
            if part_root is None or part_path is None:
                return None
            return self.style_extractor.extract_background(
                part_root, part_path, theme_name, self.relationships, self.media
            )

        return first_match(
            [
                lambda: from_part(root, slide_path),
                lambda: from_part(self.archive.read_xml(layout_path) if layout_path else None, layout_path),
                lambda: from_part(master_root, master_path),
            ]
        )

    def _dispatch(self, shape: IndexedShape, ctx: SlideContext) -> None:
        """Route a shape to the element builders for its content."""
        if shape.tag == "graphicFrame":
            self._add_table(shape, ctx)
            return
        if shape.tag not in ("sp", "pic"):
            return

        video = self._video_reference(shape.element, ctx)
        if video is not None:
            self._add_video(shape, video, ctx)
        elif ctx.audio.audio_reference(shape.element) is not None:
            ctx.audio.collect_shape(shape)
        else:
            self._add_image(shape, ctx)

        if shape.tag == "sp":
            self._add_text_box(shape, ctx)

    def _position(self, shape: IndexedShape) -> Position:
        xfrm = self.transform_parser.own_xfrm(shape.element)
        return self.transform_parser.extract_position(xfrm).shifted(shape.offset_x, shape.offset_y)

    def _media_for(self, ctx: SlideContext, rel_id: Optional[str], kind: MediaKind) -> Optional[MediaEntry]:
        rel = self.relationships.get(ctx.slide_path, rel_id)
        if rel is None or rel.external:
            return None
        return self.media.get(rel.filename, kind)

    def _video_reference(self, element: Any, ctx: SlideContext) -> Optional[MediaEntry]:
        video_file = element.find("./*/p:nvPr/a:videoFile", NAMESPACES)
        if video_file is not None:
            entry = self._media_for(ctx, video_file.get(R_LINK) or video_file.get(R_EMBED), MediaKind.VIDEO)
            if entry is not None:
                return entry

        # A bare p14:media extension is a video unless the shape is marked as audio
        if element.find("./*/p:nvPr/a:audioFile", NAMESPACES) is not None:
            return None
        media = element.find("./*/p:nvPr/p:extLst/p:ext/p14:media", NAMESPACES)
        if media is not None:
            return self._media_for(ctx, media.get(R_EMBED), MediaKind.VIDEO)
        return None

    def _add_video(self, shape: IndexedShape, entry: MediaEntry, ctx: SlideContext) -> None:
        position = self._position(shape)
        ctx.audio.claim(entry.filename)
        ctx.videos.append(
            VideoElement(
                id=ctx.next_id("video"),
                video_data=entry.data_uri(MediaKind.VIDEO),
                filename=entry.filename,
                mime_type=entry.mime_type(MediaKind.VIDEO),
                x=position.x,
                y=position.y,
                width=position.width,
                height=position.height,
                rotation=position.rotation,
            )
        )

    def _add_image(self, shape: IndexedShape, ctx: SlideContext) -> None:
        blip = shape.element.find("p:blipFill/a:blip", NAMESPACES)
        if blip is None:
            blip = shape.element.find("p:spPr/a:blipFill/a:blip", NAMESPACES)
        if blip is None:
            return

        entry = self._media_for(ctx, blip.get(R_EMBED), MediaKind.IMAGE)
        if entry is None:
            logger.debug(f"Image reference {blip.get(R_EMBED)} on {ctx.slide_path} has no media")
            return

        position = self._position(shape)
        ctx.images.append(
            ImageElement(
                id=ctx.next_id("image"),
                image_data=entry.data_uri(MediaKind.IMAGE),
                filename=entry.filename,
                x=position.x,
                y=position.y,
                width=position.width,
                height=position.height,
                rotation=position.rotation,
            )
        )

    def _add_text_box(self, shape: IndexedShape, ctx: SlideContext) -> None:
        tx_body = shape.element.find("p:txBody", NAMESPACES)
        if tx_body is None:
            return

        formatted = self.text_formatter.format_body(tx_body, ctx.theme_name, ctx.master_defaults)
        if formatted is None:
            return

        position = self._position(shape)
        default = formatted.default
        ctx.text_boxes.append(
            TextBoxElement(
                id=ctx.next_id("text"),
                content=formatted.content,
                x=position.x,
                y=position.y,
                width=position.width,
                height=position.height,
                rotation=position.rotation,
                font_size=default.font_size,
                font_family=default.font_family,
                color=default.color,
                bold=default.bold,
                italic=default.italic,
                align=formatted.align,
            )
        )

    def _add_table(self, shape: IndexedShape, ctx: SlideContext) -> None:
        """Flatten an <a:tbl> into a pipe-delimited text box."""
        table = shape.element.find(".//a:tbl", NAMESPACES)
        if table is None:
            return

        rows: list[str] = []
        for row in table.iterfind("a:tr", NAMESPACES):
            cells = [
                self.text_formatter.plain_text(cell.find("a:txBody", NAMESPACES)).strip()
                for cell in row.iterfind("a:tc", NAMESPACES)
            ]
            if any(cells):
                rows.append(TABLE_CELL_SEPARATOR.join(cells))

        if not rows:
            return

        first_cell = table.find("a:tr/a:tc/a:txBody", NAMESPACES)
        default = self.text_formatter.first_run_format(first_cell, ctx.theme_name, ctx.master_defaults)
        position = self.transform_parser.extract_position(
            shape.element.find("p:xfrm", NAMESPACES)
        ).shifted(shape.offset_x, shape.offset_y)

        ctx.text_boxes.append(
            TextBoxElement(
                id=ctx.next_id("table"),
                content=self.text_formatter.escape("\n".join(rows)),
                x=position.x,
                y=position.y,
                width=position.width,
                height=position.height,
                font_size=default.font_size,
                font_family=default.font_family,
                color=default.color,
                bold=default.bold,
                italic=default.italic,
                align="left",
            )
        )
