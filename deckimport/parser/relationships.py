"""Parse ``*.rels`` side-files and walk the slide -> layout -> master -> theme chain.

Relationship files map short ids (``rId3``) to target parts. Every lookup
here degrades to an empty result instead of raising; the theme walk falls
back to the default theme name at every hop.
"""

import logging
import posixpath
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional

from pptx.opc.constants import RELATIONSHIP_TYPE as RT

from deckimport.parser.archive import NAMESPACES, ArchiveReader


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Relationship:
    """One <Relationship> entry."""

    id: str
    type: str
    target: str
    external: bool = False
    path: Optional[str] = None

    @property
    def filename(self) -> str:
        """Last path segment of the target."""
        return self.target.replace("\\", "/").rsplit("/", 1)[-1]


def rels_path_for_part(part_path: str) -> str:
    """``ppt/slides/slide1.xml`` -> ``ppt/slides/_rels/slide1.xml.rels``."""
    part = PurePosixPath(part_path)
    return str(part.parent / "_rels" / f"{part.name}.rels")


def resolve_target(base_part_path: str, target: str) -> Optional[str]:
    """Resolve a relationship target relative to the part that owns it.

    Args:
        base_part_path: Path of the referencing part.
        target: Target attribute as written in the .rels file.

    Returns:
        Normalised archive path, or None if the target escapes the archive.
    """
    raw = target.strip().replace("\\", "/")
    if not raw:
        return None
    if raw.startswith("/"):
        normalized = posixpath.normpath(raw.lstrip("/"))
    else:
        base_dir = str(PurePosixPath(base_part_path).parent)
        normalized = posixpath.normpath(posixpath.join(base_dir, raw))
    if normalized.startswith("../") or normalized == "..":
        return None
    return normalized


def part_stem(part_path: str) -> str:
    """``ppt/theme/theme2.xml`` -> ``theme2``."""
    return PurePosixPath(part_path).stem


class RelationshipResolver:
    """Reads relationship maps for parts of one archive."""

    def __init__(self, archive: ArchiveReader, default_theme: str = "theme1") -> None:
        self.archive = archive
        self.default_theme = default_theme
        self._cache: dict[str, dict[str, Relationship]] = {}

    def relationships(self, part_path: str) -> dict[str, Relationship]:
        """Return the id -> Relationship map for a part.

        An absent or malformed .rels file yields an empty map.
        """
        cached = self._cache.get(part_path)
        if cached is not None:
            return cached

        rels: dict[str, Relationship] = {}
        root = self.archive.read_xml(rels_path_for_part(part_path))
        if root is not None:
            for rel in root.iterfind("rel:Relationship", NAMESPACES):
                rel_id = rel.get("Id")
                target = rel.get("Target")
                if not rel_id or not target:
                    continue
                external = rel.get("TargetMode") == "External"
                rels[rel_id] = Relationship(
                    id=rel_id,
                    type=rel.get("Type", ""),
                    target=target,
                    external=external,
                    path=None if external else resolve_target(part_path, target),
                )

        self._cache[part_path] = rels
        return rels

    def targets(self, part_path: str) -> dict[str, str]:
        """Return the plain id -> target filename map for a part."""
        return {rel_id: rel.filename for rel_id, rel in self.relationships(part_path).items()}

    def get(self, part_path: str, rel_id: Optional[str]) -> Optional[Relationship]:
        if not rel_id:
            return None
        return self.relationships(part_path).get(rel_id)

    def find_by_type(self, part_path: str, rel_type: str, name_hint: str) -> Optional[Relationship]:
        """Find the first internal relationship of a type.

        Falls back to matching ``name_hint`` in the target for producers
        that write non-standard type URIs.
        """
        rels = [rel for rel in self.relationships(part_path).values() if not rel.external]
        for rel in rels:
            if rel.type == rel_type:
                return rel
        for rel in rels:
            if name_hint in rel.target:
                return rel
        return None

    def layout_for_slide(self, slide_path: str) -> Optional[str]:
        return self._hop(slide_path, RT.SLIDE_LAYOUT, "slideLayout")

    def master_for_layout(self, layout_path: str) -> Optional[str]:
        return self._hop(layout_path, RT.SLIDE_MASTER, "slideMaster")

    def theme_for_master(self, master_path: str) -> Optional[str]:
        return self._hop(master_path, RT.THEME, "theme")

    def _hop(self, part_path: str, rel_type: str, name_hint: str) -> Optional[str]:
        rel = self.find_by_type(part_path, rel_type, name_hint)
        if rel is None or rel.path is None:
            logger.debug(f"No {name_hint} relationship for {part_path}")
            return None
        if not self.archive.has(rel.path):
            logger.debug(f"{name_hint} target {rel.path} referenced by {part_path} is missing")
            return None
        return rel.path

    def theme_for_slide(self, slide_number: int) -> str:
        """Active theme name for ``ppt/slides/slide{n}.xml``."""
        return self.theme_for_part(f"ppt/slides/slide{slide_number}.xml")

    def theme_for_part(self, slide_path: str) -> str:
        """Walk slide -> layout -> master -> theme.

        Each hop falls back to the default theme when its relationship or
        target part is missing.

        Returns:
            Theme part stem, e.g. ``theme2``.
        """
        layout_path = self.layout_for_slide(slide_path)
        if layout_path is None:
            return self.default_theme

        master_path = self.master_for_layout(layout_path)
        if master_path is None:
            return self.default_theme

        theme_path = self.theme_for_master(master_path)
        if theme_path is None:
            return self.default_theme

        return part_stem(theme_path)

    def clear(self) -> None:
        """Drop cached relationship maps."""
        self._cache.clear()
