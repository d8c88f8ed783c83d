"""Flat index of the shapes in a slide's shape tree.

The tree is walked once; each shape is tagged with whether it sits inside a
group and with the accumulated offset that maps it onto the slide.
"""

from dataclasses import dataclass
from typing import Any, Iterator, Optional

from deckimport.parser.archive import NAMESPACES
from deckimport.parser.transform_parser import TransformParser


P_NS = NAMESPACES["p"]
MC_NS = "http://schemas.openxmlformats.org/markup-compatibility/2006"

SHAPE_TAGS = {f"{{{P_NS}}}{name}" for name in ("sp", "pic", "graphicFrame", "cxnSp")}
GROUP_TAG = f"{{{P_NS}}}grpSp"
ALTERNATE_CONTENT_TAG = f"{{{MC_NS}}}AlternateContent"


@dataclass(frozen=True)
class IndexedShape:
    """A shape element and its group membership."""

    element: Any
    grouped: bool = False
    offset_x: int = 0
    offset_y: int = 0

    @property
    def tag(self) -> str:
        return self.element.tag.split("}", 1)[-1]


class ShapeIndex:
    """Shapes of one shape tree, split into ungrouped and grouped."""

    def __init__(self, sp_tree: Any, transform_parser: TransformParser) -> None:
        self.transform_parser = transform_parser
        self.shapes: list[IndexedShape] = []
        self._by_element: dict[Any, IndexedShape] = {}
        if sp_tree is not None:
            self._walk(sp_tree, grouped=False, dx=0, dy=0)

    def _walk(self, container: Any, grouped: bool, dx: int, dy: int) -> None:
        for child in self._children(container):
            if child.tag in SHAPE_TAGS:
                shape = IndexedShape(child, grouped, dx, dy)
                self.shapes.append(shape)
                self._by_element[child] = shape
            elif child.tag == GROUP_TAG:
                gx, gy = self.transform_parser.extract_group_offset(child)
                self._walk(child, grouped=True, dx=dx + gx, dy=dy + gy)

    def _children(self, container: Any) -> Iterator[Any]:
        for child in container:
            if child.tag == ALTERNATE_CONTENT_TAG:
                # Prefer the first <mc:Choice>, else <mc:Fallback>
                branch = child.find(f"{{{MC_NS}}}Choice")
                if branch is None:
                    branch = child.find(f"{{{MC_NS}}}Fallback")
                if branch is not None:
                    yield from branch
            else:
                yield child

    @property
    def ungrouped(self) -> list[IndexedShape]:
        return [shape for shape in self.shapes if not shape.grouped]

    @property
    def grouped(self) -> list[IndexedShape]:
        return [shape for shape in self.shapes if shape.grouped]

    def of_tag(self, tag: str) -> list[IndexedShape]:
        return [shape for shape in self.shapes if shape.tag == tag]

    def owner_of(self, element: Any) -> Optional[IndexedShape]:
        """The indexed shape that contains ``element``, if any."""
        node = element
        while node is not None:
            shape = self._by_element.get(node)
            if shape is not None:
                return shape
            node = node.getparent()
        return None
