"""Resolve the semantic color map (<p:clrMap>).

The map turns semantic keys such as ``bg1`` or ``tx1`` into theme slots
(``lt1``, ``dk1``). It is looked up once per import: the presentation part
first, then the first slide master, then the canonical default.
"""

import logging
from typing import Optional

from pptx.opc.constants import RELATIONSHIP_TYPE as RT
from pydantic import ValidationError

from deckimport.dsl.schema import ColorMap
from deckimport.parser.archive import NAMESPACES, ArchiveReader
from deckimport.parser.fallback import first_match
from deckimport.parser.relationships import RelationshipResolver


logger = logging.getLogger(__name__)

PRESENTATION_PART = "ppt/presentation.xml"
FIRST_MASTER_PART = "ppt/slideMasters/slideMaster1.xml"


class ColorMapResolver:
    """Builds the presentation-wide ColorMap."""

    def __init__(self, archive: ArchiveReader, relationships: RelationshipResolver) -> None:
        self.archive = archive
        self.relationships = relationships

    def resolve(self) -> ColorMap:
        """Resolve the color map.

        Returns:
            ColorMap from the presentation part, else the first slide master,
            else the default mapping.
        """
        color_map = first_match(
            [
                lambda: self._from_part(PRESENTATION_PART),
                lambda: self._from_part(self._first_master_path()),
            ]
        )
        if color_map is None:
            logger.debug("No <p:clrMap> found, using default color map")
            return ColorMap()
        return color_map

    def _first_master_path(self) -> str:
        rel = self.relationships.find_by_type(PRESENTATION_PART, RT.SLIDE_MASTER, "slideMaster")
        if rel is not None and rel.path and self.archive.has(rel.path):
            return rel.path
        return FIRST_MASTER_PART

    def _from_part(self, part_path: str) -> Optional[ColorMap]:
        root = self.archive.read_xml(part_path)
        if root is None:
            return None

        # <p:clrMap bg1="lt1" tx1="dk1" bg2="lt2" tx2="dk2" accent1="accent1" ... />
        clr_map = root.find(".//p:clrMap", NAMESPACES)
        if clr_map is None:
            return None

        try:
            return ColorMap.model_validate(dict(clr_map.attrib))
        except ValidationError as e:
            logger.warning(f"Unusable <p:clrMap> in {part_path}: {e}")
            return None
