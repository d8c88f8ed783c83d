"""Extract positions and transforms from PowerPoint shape XML.

Parses <a:xfrm> XML to extract offset, extent and rotation. Rotation is
stored in 60,000ths of a degree in PPTX and converted to degrees. Group
shapes additionally define a child coordinate space used to map their
children onto the slide.
"""

import math
from typing import Any, Optional

from deckimport.dsl.schema import Position
from deckimport.parser.archive import NAMESPACES


ROTATION_UNITS_PER_DEGREE = 60000.0

# Locations of a shape's own transform, by shape type
OWN_XFRM_PATHS = (
    "p:spPr/a:xfrm",  # <p:sp>, <p:pic>, <p:cxnSp>
    "p:grpSpPr/a:xfrm",  # <p:grpSp>
    "p:xfrm",  # <p:graphicFrame>
)


def _to_int(value: Optional[str]) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except ValueError:
        try:
            return int(float(value))
        except (ValueError, OverflowError):
            return 0


class TransformParser:
    """Extracts positions from PPTX shape XML."""

    def extract_position(self, xfrm: Any) -> Position:
        """Extract position and rotation from an <a:xfrm> element.

        Args:
            xfrm: The xfrm element, or None.

        Returns:
            Position; all zeros and no rotation when xfrm is None.

        XML structure example:
            <a:xfrm rot="5400000">
                <a:off x="914400" y="914400"/>
                <a:ext cx="2743200" cy="914400"/>
            </a:xfrm>
        """
        if xfrm is None:
            return Position()

        off = xfrm.find("a:off", NAMESPACES)
        ext = xfrm.find("a:ext", NAMESPACES)

        return Position(
            x=_to_int(off.get("x")) if off is not None else 0,
            y=_to_int(off.get("y")) if off is not None else 0,
            width=max(0, _to_int(ext.get("cx"))) if ext is not None else 0,
            height=max(0, _to_int(ext.get("cy"))) if ext is not None else 0,
            rotation=self.extract_rotation(xfrm),
        )

    def extract_rotation(self, xfrm: Any) -> Optional[float]:
        """Rotation in degrees, or None when the attribute is absent."""
        if xfrm is None:
            return None
        rot = xfrm.get("rot")
        if not rot:
            return None
        try:
            degrees = float(rot) / ROTATION_UNITS_PER_DEGREE
        except ValueError:
            return None
        return degrees if math.isfinite(degrees) else None

    def own_xfrm(self, element: Any) -> Optional[Any]:
        """The shape's own <a:xfrm>, without looking into nested shapes."""
        for path in OWN_XFRM_PATHS:
            xfrm = element.find(path, NAMESPACES)
            if xfrm is not None:
                return xfrm
        return None

    def find_xfrm(self, element: Any) -> Optional[Any]:
        """The shape's own transform, else the first nested one."""
        xfrm = self.own_xfrm(element)
        if xfrm is not None:
            return xfrm
        return element.find(".//a:xfrm", NAMESPACES)

    def extract_group_offset(self, group_shape: Any) -> tuple[int, int]:
        """Offset that maps a group's children onto the slide.

        Groups have <a:off> for their on-slide position and <a:chOff> for
        the origin of their child coordinate space; children are shifted
        by (off - chOff).

        Args:
            group_shape: The <p:grpSp> element.

        Returns:
            (dx, dy) to add to each child's locally parsed position.
        """
        xfrm = group_shape.find("p:grpSpPr/a:xfrm", NAMESPACES)
        if xfrm is None:
            return 0, 0

        off = xfrm.find("a:off", NAMESPACES)
        ch_off = xfrm.find("a:chOff", NAMESPACES)

        gx = _to_int(off.get("x")) if off is not None else 0
        gy = _to_int(off.get("y")) if off is not None else 0
        cox = _to_int(ch_off.get("x")) if ch_off is not None else 0
        coy = _to_int(ch_off.get("y")) if ch_off is not None else 0

        return gx - cox, gy - coy
