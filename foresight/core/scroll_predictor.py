"""Scroll predictor: scroll direction from rect displacement.

When a tracked element moves because the page scrolled, the direction
of that movement tells us where the pointer is effectively heading
relative to the content.  The pointer is projected ``scroll_margin``
pixels along that axis, and elements crossed by the projection get a
scroll hit.

The direction and the projected point are computed once per
bounds-change batch (one animation frame) and cached until ``reset``,
no matter how many elements report in that batch.
"""

from __future__ import annotations

from foresight.config.settings import SCROLL_DIRECTION_THRESHOLD_PX
from foresight.models.element import ScrollDirection
from foresight.models.geometry import Point, Rect


def get_scroll_direction(
    old_rect: Rect,
    new_rect: Rect,
    threshold: float = SCROLL_DIRECTION_THRESHOLD_PX,
) -> ScrollDirection:
    """Classify the scroll direction from an element's displacement.

    Vertical movement wins over horizontal.  Content moving down on
    screen means the user scrolls up, and vice versa.

    Args:
        old_rect: Bounds before the frame.
        new_rect: Bounds after the frame.
        threshold: Displacements at or below this are ignored.

    Returns:
        The detected direction, or ``ScrollDirection.NONE``.
    """
    delta_y = new_rect.top - old_rect.top
    delta_x = new_rect.left - old_rect.left
    if delta_y > threshold:
        return ScrollDirection.UP
    if delta_y < -threshold:
        return ScrollDirection.DOWN
    if delta_x > threshold:
        return ScrollDirection.LEFT
    if delta_x < -threshold:
        return ScrollDirection.RIGHT
    return ScrollDirection.NONE


def predict_scroll_point(
    point: Point, direction: ScrollDirection, margin: float,
) -> Point:
    """Displace *point* by *margin* along *direction*."""
    if direction is ScrollDirection.DOWN:
        return Point(point.x, point.y + margin)
    if direction is ScrollDirection.UP:
        return Point(point.x, point.y - margin)
    if direction is ScrollDirection.LEFT:
        return Point(point.x - margin, point.y)
    if direction is ScrollDirection.RIGHT:
        return Point(point.x + margin, point.y)
    return point


class ScrollPredictor:
    """Per-frame cache around ``get_scroll_direction`` and ``predict_scroll_point``."""

    def __init__(self) -> None:
        self._direction: ScrollDirection | None = None
        self._predicted_point: Point | None = None

    @property
    def direction(self) -> ScrollDirection | None:
        """Direction decided for the current batch, if any."""
        return self._direction

    @property
    def predicted_point(self) -> Point | None:
        """Projected point for the current batch, if any."""
        return self._predicted_point

    def direction_for(self, old_rect: Rect, new_rect: Rect) -> ScrollDirection:
        """Return the batch direction, computing it from this pair if unset."""
        if self._direction is None:
            self._direction = get_scroll_direction(old_rect, new_rect)
        return self._direction

    def point_for(self, current: Point, margin: float) -> Point:
        """Return the batch's projected point, computing it if unset."""
        if self._predicted_point is None:
            direction = self._direction or ScrollDirection.NONE
            self._predicted_point = predict_scroll_point(current, direction, margin)
        return self._predicted_point

    def reset(self) -> None:
        """Clear the cache at the end of a batch."""
        self._direction = None
        self._predicted_point = None
