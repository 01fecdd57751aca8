"""Geometry model: points, edge-based rectangles, and pointer samples.

Rectangles use the edge representation (``top``, ``left``, ``right``,
``bottom``) that bounding-box sources report, so hit-slop expansion is a
per-edge offset rather than a resize.  All values are viewport pixels
with the origin at the top-left corner.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, Union


class Point(NamedTuple):
    """A 2-D point in viewport coordinates.

    Attributes:
        x: Horizontal coordinate in pixels.
        y: Vertical coordinate in pixels.
    """

    x: float
    y: float


class PositionSample(NamedTuple):
    """A pointer position captured at a moment in time.

    Attributes:
        point: Where the pointer was.
        time: Timestamp in milliseconds (monotonic clock).
    """

    point: Point
    time: float


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle described by its four edges.

    Attributes:
        top: Top edge y-coordinate.
        left: Left edge x-coordinate.
        right: Right edge x-coordinate.
        bottom: Bottom edge y-coordinate.

    The same type carries per-edge hit-slop values, so edges are not
    required to be ordered.
    """

    top: float
    left: float
    right: float
    bottom: float

    @classmethod
    def from_xywh(
        cls, x: float, y: float, width: float, height: float,
    ) -> Rect:
        """Build a rectangle from an origin and a size.

        Args:
            x: Left edge x-coordinate.
            y: Top edge y-coordinate.
            width: Horizontal extent in pixels.
            height: Vertical extent in pixels.

        Returns:
            The equivalent edge-based ``Rect``.
        """
        return cls(top=y, left=x, right=x + width, bottom=y + height)

    @classmethod
    def uniform(cls, value: float) -> Rect:
        """Return a rect with every edge set to *value* (hit-slop form)."""
        return cls(top=value, left=value, right=value, bottom=value)

    @property
    def width(self) -> float:
        """Horizontal extent in pixels."""
        return self.right - self.left

    @property
    def height(self) -> float:
        """Vertical extent in pixels."""
        return self.bottom - self.top

    def center(self) -> Point:
        """Return the center point of the rectangle."""
        return Point(
            (self.left + self.right) / 2.0,
            (self.top + self.bottom) / 2.0,
        )

    def translated(self, dx: float, dy: float) -> Rect:
        """Return a copy shifted by ``(dx, dy)``."""
        return Rect(
            top=self.top + dy,
            left=self.left + dx,
            right=self.right + dx,
            bottom=self.bottom + dy,
        )

    def to_dict(self) -> dict[str, float]:
        """Serialise to a plain ``{top, left, right, bottom}`` dict."""
        return {
            "top": self.top,
            "left": self.left,
            "right": self.right,
            "bottom": self.bottom,
        }


HitSlop = Union[float, int, Rect]
"""Hit slop as a uniform number or as per-edge values."""
