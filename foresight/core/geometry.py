"""Geometry utilities: hit-slop expansion and point / segment hit tests.

Pure functions with no state.  Every hit test in the interaction engine
goes through this module so that boundary semantics stay identical for
hover, trajectory and scroll checks: containment is inclusive on all
four edges.

This module depends only on ``foresight.models.geometry`` and
``foresight.config.settings``.
"""

from __future__ import annotations

from foresight.config.settings import MAX_HIT_SLOP, MIN_HIT_SLOP, clamp_number
from foresight.models.geometry import HitSlop, Point, Rect


def normalize_hit_slop(hit_slop: HitSlop, debug: bool = False) -> Rect:
    """Turn a hit-slop value into a per-edge ``Rect`` clamped into range.

    Args:
        hit_slop: A number applied uniformly to every edge, or a ``Rect``
            with per-edge values.
        debug: When true, out-of-range edges log a warning.

    Returns:
        A ``Rect`` whose edges all lie in ``[MIN_HIT_SLOP, MAX_HIT_SLOP]``.
    """
    if not isinstance(hit_slop, Rect):
        hit_slop = Rect.uniform(float(hit_slop))

    def _clamp(value: float, edge: str) -> float:
        return clamp_number(value, MIN_HIT_SLOP, MAX_HIT_SLOP, f"hit_slop.{edge}", debug)

    return Rect(
        top=_clamp(hit_slop.top, "top"),
        left=_clamp(hit_slop.left, "left"),
        right=_clamp(hit_slop.right, "right"),
        bottom=_clamp(hit_slop.bottom, "bottom"),
    )


def expand_rect(rect: Rect, hit_slop: Rect) -> Rect:
    """Outset each edge of *rect* by the matching *hit_slop* edge."""
    return Rect(
        top=rect.top - hit_slop.top,
        left=rect.left - hit_slop.left,
        right=rect.right + hit_slop.right,
        bottom=rect.bottom + hit_slop.bottom,
    )


def point_in_rect(point: Point, rect: Rect) -> bool:
    """Return True if *point* lies inside *rect*, boundary included."""
    return (
        rect.left <= point.x <= rect.right
        and rect.top <= point.y <= rect.bottom
    )


def segment_intersects_rect(p1: Point, p2: Point, rect: Rect) -> bool:
    """Test whether the segment ``p1 -> p2`` touches *rect*.

    Liang-Barsky parametric clipping.  The segment is
    ``p1 + t * (p2 - p1)`` for ``t`` in ``[0, 1]``; each of the four
    half-planes narrows ``[t0, t1]``.  The segment hits the rectangle
    iff the interval is still non-empty after all four clips.

    An edge-parallel direction (``p == 0``) cannot cross that edge, so
    the segment is rejected only when it lies entirely outside it
    (``q < 0``).  A zero-length segment therefore degenerates to an
    inclusive point test.

    Args:
        p1: Segment start.
        p2: Segment end.
        rect: Rectangle to clip against.

    Returns:
        True if any part of the segment lies within *rect*.
    """
    t0 = 0.0
    t1 = 1.0
    dx = p2.x - p1.x
    dy = p2.y - p1.y

    for p, q in (
        (-dx, p1.x - rect.left),
        (dx, rect.right - p1.x),
        (-dy, p1.y - rect.top),
        (dy, rect.bottom - p1.y),
    ):
        if p == 0:
            if q < 0:
                return False
            continue
        r = q / p
        if p < 0:
            if r > t1:
                return False
            if r > t0:
                t0 = r
        else:
            if r < t0:
                return False
            if r < t1:
                t1 = r

    return t0 <= t1


def rects_equal(a: Rect | None, b: Rect | None) -> bool:
    """Exact field-wise equality; two missing rects compare equal."""
    if a is None or b is None:
        return a is b
    return (
        a.top == b.top
        and a.left == b.left
        and a.right == b.right
        and a.bottom == b.bottom
    )


def rect_intersects_viewport(rect: Rect, viewport_size: tuple[float, float]) -> bool:
    """Return True if *rect* overlaps a viewport of ``(width, height)``.

    Touching edges do not count: an element whose bottom edge sits
    exactly on the viewport's top is not visible.
    """
    width, height = viewport_size
    return (
        rect.top < height
        and rect.bottom > 0
        and rect.left < width
        and rect.right > 0
    )
