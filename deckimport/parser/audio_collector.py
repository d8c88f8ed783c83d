"""Prioritised, de-duplicating search for audio on a slide.

Audio is not cleanly marked at the relationship level, so it is searched
in three passes over one result set keyed by media filename:

1. shapes carrying <a:audioFile> (or the p14:media extension),
2. graphic frames carrying an audio reference,
3. any remaining relationship whose target has an audio extension.

A filename already claimed by an earlier pass, or by a video, is never
added again.
"""

import itertools
import logging
from typing import Any, Iterator, Optional

from deckimport.config import ParserSettings
from deckimport.dsl.schema import AudioElement, MediaKind, Position
from deckimport.parser.archive import NAMESPACES, R_EMBED, R_LINK
from deckimport.parser.media_extractor import MediaEntry, MediaExtractor, is_audio_filename
from deckimport.parser.relationships import RelationshipResolver
from deckimport.parser.shape_index import IndexedShape, ShapeIndex
from deckimport.parser.transform_parser import TransformParser


logger = logging.getLogger(__name__)

MAX_ANCESTOR_LEVELS = 10

AUDIO_REFERENCE_PATHS = (
    "./*/p:nvPr/a:audioFile",
    "./*/p:nvPr/a:wavAudioFile",
    "./*/p:nvPr/p:extLst/p:ext/p14:media",
)

REFERENCE_ATTRIBUTE_SUFFIXES = ("id", "link", "embed")


def _is_reference_attribute(name: str) -> bool:
    """Whether an attribute can carry a relationship id: r-namespaced or named like one."""
    if name.startswith(f"{{{NAMESPACES['r']}}}"):
        return True
    return name.rsplit("}", 1)[-1].lower().endswith(REFERENCE_ATTRIBUTE_SUFFIXES)


class AudioCollector:
    """Collects the audio elements of one slide."""

    def __init__(
        self,
        slide_path: str,
        relationships: RelationshipResolver,
        media: MediaExtractor,
        transform_parser: TransformParser,
        settings: ParserSettings,
        counter: Optional[Iterator[int]] = None,
    ) -> None:
        self.slide_path = slide_path
        self.relationships = relationships
        self.media = media
        self.transform_parser = transform_parser
        self.settings = settings
        self.counter = counter or itertools.count(1)
        self.claimed: set[str] = set()
        self.results: dict[str, AudioElement] = {}

    @property
    def audios(self) -> list[AudioElement]:
        return list(self.results.values())

    def claim(self, filename: str) -> None:
        """Mark a filename as used by another element kind."""
        self.claimed.add(filename)

    def is_claimed(self, filename: str) -> bool:
        return filename in self.claimed or filename in self.results

    def fallback_position(self) -> Position:
        return Position(
            x=self.settings.audio_fallback_x,
            y=self.settings.audio_fallback_y,
            width=self.settings.audio_fallback_width,
            height=self.settings.audio_fallback_height,
        )

    def _add(self, entry: MediaEntry, position: Optional[Position]) -> AudioElement:
        fallback = position is None
        position = position or self.fallback_position()
        element = AudioElement(
            id=f"audio_{next(self.counter)}",
            audio_data=entry.data_uri(MediaKind.AUDIO),
            filename=entry.filename,
            mime_type=entry.mime_type(MediaKind.AUDIO),
            x=position.x,
            y=position.y,
            width=position.width,
            height=position.height,
            rotation=position.rotation,
            fallback_position=fallback,
        )
        self.results[entry.filename] = element
        return element

    def audio_reference(self, element: Any) -> Optional[MediaEntry]:
        """Media entry referenced by a shape's audio element, if any."""
        for path in AUDIO_REFERENCE_PATHS:
            ref = element.find(path, NAMESPACES)
            if ref is None:
                continue
            rel = self.relationships.get(self.slide_path, ref.get(R_LINK) or ref.get(R_EMBED))
            if rel is None or rel.external:
                continue
            entry = self.media.get(rel.filename, MediaKind.AUDIO)
            if entry is not None:
                return entry
        return None

    def collect_shape(self, shape: IndexedShape) -> Optional[AudioElement]:
        """Pass 1: a shape with an explicit audio reference.

        Position comes from the shape's transform, else a nested picture's
        transform, else the fallback rectangle.
        """
        entry = self.audio_reference(shape.element)
        if entry is None or self.is_claimed(entry.filename):
            return None

        xfrm = self.transform_parser.own_xfrm(shape.element)
        if xfrm is None:
            xfrm = shape.element.find(".//p:pic/p:spPr/a:xfrm", NAMESPACES)

        position = None
        if xfrm is not None:
            position = self.transform_parser.extract_position(xfrm).shifted(shape.offset_x, shape.offset_y)
        return self._add(entry, position)

    def collect_frames(self, index: ShapeIndex) -> None:
        """Pass 2: graphic frames carrying an audio reference."""
        for shape in index.of_tag("graphicFrame"):
            ref = shape.element.find(".//a:audioFile", NAMESPACES)
            if ref is None:
                continue
            rel = self.relationships.get(self.slide_path, ref.get(R_LINK) or ref.get(R_EMBED))
            entry = self.media.get(rel.filename if rel else None, MediaKind.AUDIO)
            if entry is None or self.is_claimed(entry.filename):
                continue

            xfrm = shape.element.find("p:xfrm", NAMESPACES)
            position = None
            if xfrm is not None:
                position = self.transform_parser.extract_position(xfrm).shifted(shape.offset_x, shape.offset_y)
            self._add(entry, position)

    def collect_relationships(self, slide_root: Any, index: ShapeIndex) -> None:
        """Pass 3: every unclaimed relationship to an audio-eligible file."""
        for rel in self.relationships.relationships(self.slide_path).values():
            if rel.external or not is_audio_filename(rel.filename):
                continue
            entry = self.media.get(rel.filename, MediaKind.AUDIO)
            if entry is None or self.is_claimed(entry.filename):
                continue

            position = None
            referencing = self._find_referencing_element(slide_root, rel.id)
            if referencing is not None:
                position = self._nearby_position(referencing, index)
            else:
                logger.debug(f"No element references {rel.id} ({rel.filename}) in {self.slide_path}")
            self._add(entry, position)

    def _find_referencing_element(self, root: Any, rel_id: str) -> Optional[Any]:
        for node in root.iter():
            if node.get(R_LINK) == rel_id or node.get(R_EMBED) == rel_id:
                return node

        # Some producers use other attribute names for the id
        for node in root.iter():
            if not isinstance(node.tag, str):
                continue
            if any(value == rel_id and _is_reference_attribute(name) for name, value in node.attrib.items()):
                return node
        return None

    def _nearby_position(self, element: Any, index: ShapeIndex) -> Optional[Position]:
        """Walk up to ten ancestors looking for an own or sibling transform."""
        node = element
        for _ in range(MAX_ANCESTOR_LEVELS):
            xfrm = self._xfrm_at(node)
            if xfrm is None:
                parent = node.getparent()
                if parent is None:
                    return None
                for sibling in parent:
                    if sibling is not node:
                        xfrm = self._xfrm_at(sibling)
                        if xfrm is not None:
                            break
            if xfrm is not None:
                owner = index.owner_of(xfrm)
                dx, dy = (owner.offset_x, owner.offset_y) if owner else (0, 0)
                return self.transform_parser.extract_position(xfrm).shifted(dx, dy)
            node = node.getparent()
            if node is None:
                return None
        return None

    def _xfrm_at(self, node: Any) -> Optional[Any]:
        if not isinstance(node.tag, str):
            return None
        if node.tag == f"{{{NAMESPACES['p']}}}spPr":
            return node.find("a:xfrm", NAMESPACES)
        return self.transform_parser.own_xfrm(node)
