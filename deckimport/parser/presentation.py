"""High-level deck reading and parsing."""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional, Union

from pptx.opc.constants import RELATIONSHIP_TYPE as RT

from deckimport.config import ParserSettings, get_settings
from deckimport.dsl.schema import (
    AspectRatio,
    ColorMap,
    Dimensions,
    MediaBlob,
    ParsedPresentation,
    ParsedSlide,
)
from deckimport.parser.archive import NAMESPACES, R_ID, ArchiveReader
from deckimport.parser.color_map import PRESENTATION_PART, ColorMapResolver
from deckimport.parser.media_extractor import MediaExtractor
from deckimport.parser.relationships import RelationshipResolver
from deckimport.parser.slide_parser import SlideParser
from deckimport.parser.style_extractor import StyleExtractor
from deckimport.parser.theme_parser import ThemeParser


logger = logging.getLogger(__name__)

SLIDE_PART_PATTERN = re.compile(r"^ppt/slides/slide(\d+)\.xml$")


@dataclass
class ParseArena:
    """Everything built for one archive; dropped as a whole."""

    archive: ArchiveReader
    relationships: RelationshipResolver
    color_map: ColorMap


class PresentationParser:
    """Reads deck archives and builds ParsedPresentation models.

    One instance may parse many decks sequentially. Theme palettes, the
    color map and extracted media are cached for the most recent archive
    until ``clear_cache()`` is called.
    """

    def __init__(self, settings: Optional[ParserSettings] = None) -> None:
        """Initialize the parser."""
        self.settings = settings or get_settings()
        self.theme_parser = ThemeParser()
        self.media = MediaExtractor(self.settings.media_dir)
        self._arena: Optional[ParseArena] = None

    def parse(self, source: Union[bytes, bytearray, BinaryIO]) -> ParsedPresentation:
        """Parse a deck.

        Args:
            source: Archive bytes or a binary file-like object.

        Returns:
            ParsedPresentation with every slide in presentation order.

        Raises:
            InvalidArchiveError: If the input is not a ZIP archive.
        """
        buffer = source.read() if hasattr(source, "read") else bytes(source)
        arena = self._open(buffer)

        dimensions = self._dimensions(arena.archive)
        style_extractor = StyleExtractor(self.theme_parser, arena.color_map)
        slide_parser = SlideParser(
            arena.archive,
            arena.relationships,
            self.theme_parser,
            style_extractor,
            self.media,
            self.settings,
        )

        slides: list[ParsedSlide] = [
            slide_parser.parse(slide_path, dimensions) for slide_path in self._slide_paths(arena)
        ]

        logger.info(
            f"Parsed {len(slides)} slide(s), {len(self.media.blobs())} media file(s), "
            f"{dimensions.width}x{dimensions.height} EMU"
        )

        return ParsedPresentation(
            dimensions=dimensions,
            aspect_ratio=self.classify_aspect_ratio(dimensions),
            slides=slides,
        )

    def parse_file(self, path: Union[str, Path]) -> ParsedPresentation:
        """Parse a deck from a file on disk."""
        return self.parse(Path(path).read_bytes())

    def get_media_blobs(self) -> dict[str, MediaBlob]:
        """Raw media of the last parsed deck, keyed by filename."""
        return self.media.blobs()

    def clear_cache(self) -> None:
        """Free extracted media, parsed themes and the cached archive."""
        self.media.clear()
        self.theme_parser.clear()
        if self._arena is not None:
            self._arena.archive.close()
        self._arena = None

    def _open(self, buffer: bytes) -> ParseArena:
        """Build the arena for an archive, reusing it for identical input."""
        archive = ArchiveReader(buffer)
        if self._arena is not None and self._arena.archive.digest == archive.digest:
            archive.close()
            logger.debug("Archive unchanged, reusing cached themes and media")
            return self._arena

        if self._arena is not None:
            self._arena.archive.close()

        relationships = RelationshipResolver(archive, self.settings.default_theme)
        self.theme_parser.load_themes(archive, self.settings.max_theme_parts)
        self.media.extract(archive)
        color_map = ColorMapResolver(archive, relationships).resolve()

        self._arena = ParseArena(archive=archive, relationships=relationships, color_map=color_map)
        return self._arena

    def _dimensions(self, archive: ArchiveReader) -> Dimensions:
        """Slide size from <p:sldSz>, else the configured default."""
        default = Dimensions(
            width=self.settings.default_slide_width,
            height=self.settings.default_slide_height,
        )

        root = archive.read_xml(PRESENTATION_PART)
        if root is None:
            return default

        sld_sz = root.find("p:sldSz", NAMESPACES)
        if sld_sz is None:
            return default

        try:
            width = int(sld_sz.get("cx", default.width))
            height = int(sld_sz.get("cy", default.height))
        except ValueError:
            logger.warning(f"Invalid <p:sldSz> {dict(sld_sz.attrib)}, using default size")
            return default

        if width <= 0 or height <= 0:
            return default
        return Dimensions(width=width, height=height)

    @staticmethod
    def classify_aspect_ratio(dimensions: Dimensions) -> AspectRatio:
        """Nearest of 16:9 and 4:3."""
        if dimensions.height <= 0:
            return AspectRatio.WIDE
        ratio = dimensions.width / dimensions.height
        if abs(ratio - 16 / 9) < abs(ratio - 4 / 3):
            return AspectRatio.WIDE
        return AspectRatio.STANDARD

    def _slide_paths(self, arena: ParseArena) -> list[str]:
        """Slide parts in presentation order.

        Follows <p:sldIdLst>; falls back to the numeric order of slide part
        names when the list is missing or resolves to nothing.
        """
        archive = arena.archive
        paths: list[str] = []

        root = archive.read_xml(PRESENTATION_PART)
        if root is not None:
            for sld_id in root.iterfind("p:sldIdLst/p:sldId", NAMESPACES):
                rel = arena.relationships.get(PRESENTATION_PART, sld_id.get(R_ID))
                if rel is None or rel.path is None or not archive.has(rel.path):
                    continue
                if rel.type != RT.SLIDE and "slides/" not in rel.path:
                    continue
                paths.append(rel.path)

        if paths:
            return paths

        numbered = []
        for name in archive.names:
            match = SLIDE_PART_PATTERN.match(name)
            if match:
                numbered.append((int(match.group(1)), name))
        return [name for _, name in sorted(numbered)]
