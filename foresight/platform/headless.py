"""In-memory environment with a manual clock, for tests and trace replay.

``HeadlessEnvironment`` implements ``EnvironmentInterface`` without any
UI toolkit.  Element geometry, focus order and the viewport live in
plain Python structures.  Time only moves when ``advance`` /
``advance_to`` is called, and scheduled callbacks run in due-time order
during that call, so tests are fully deterministic.

Example::

    env = HeadlessEnvironment(viewport_size=(1280, 800))
    env.add_element("buy", Rect(top=100, left=100, right=200, bottom=140))
    manager = ForesightManager(env)
    manager.register("buy", prefetch)
    env.move_pointer(0, 120, at=0)
    env.move_pointer(40, 120, at=16)
"""

from __future__ import annotations

import heapq
import itertools
import logging
from collections.abc import Callable, Hashable

from foresight.core.geometry import rect_intersects_viewport
from foresight.models.geometry import Rect
from foresight.platform.interface import (
    BoundsChange,
    EnvironmentInterface,
    EnvironmentListener,
)

logger = logging.getLogger(__name__)


class HeadlessTask:
    """A ``call_later`` entry in the headless timer queue."""

    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        """Prevent the callback from running.  Idempotent."""
        self.cancelled = True

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "pending"
        return f"HeadlessTask(due={self.due}, {state})"


class HeadlessEnvironment(EnvironmentInterface):
    """Deterministic, toolkit-free environment.

    Args:
        viewport_size: Viewport ``(width, height)`` in pixels.
        start_time: Initial clock value in milliseconds.
        prediction_supported: Value returned by
            ``supports_prediction``; set to False to emulate a touch
            device.
    """

    def __init__(
        self,
        viewport_size: tuple[float, float] = (1280.0, 800.0),
        *,
        start_time: float = 0.0,
        prediction_supported: bool = True,
    ) -> None:
        self._viewport_size = viewport_size
        self._now = start_time
        self._prediction_supported = prediction_supported

        self._rects: dict[Hashable, Rect] = {}
        self._focus_order: list[Hashable] = []
        self._connected: set[Hashable] = set()
        self._observed: set[Hashable] = set()
        self._focused: Hashable | None = None

        self._listener: EnvironmentListener | None = None
        self._timers: list[tuple[float, int, HeadlessTask]] = []
        self._sequence = itertools.count()

    # ------------------------------------------------------------------
    # EnvironmentInterface: clock & timers
    # ------------------------------------------------------------------

    def now(self) -> float:
        return self._now

    def call_later(
        self, delay_ms: float, callback: Callable[[], None],
    ) -> HeadlessTask:
        task = HeadlessTask(self._now + max(delay_ms, 0.0), callback)
        heapq.heappush(self._timers, (task.due, next(self._sequence), task))
        return task

    # ------------------------------------------------------------------
    # EnvironmentInterface: geometry
    # ------------------------------------------------------------------

    def get_bounds(self, handle: Hashable) -> Rect:
        return self._rects[handle]

    def is_connected(self, handle: Hashable) -> bool:
        return handle in self._connected

    def get_viewport_size(self) -> tuple[float, float]:
        return self._viewport_size

    def focusable_elements(self) -> list[Hashable]:
        return list(self._focus_order)

    # ------------------------------------------------------------------
    # EnvironmentInterface: observation
    # ------------------------------------------------------------------

    def connect(self, listener: EnvironmentListener) -> None:
        self._listener = listener
        logger.debug("Headless environment listener connected")

    def disconnect(self) -> None:
        self._listener = None
        self._observed.clear()
        logger.debug("Headless environment listener disconnected")

    def observe(self, handle: Hashable) -> None:
        self._observed.add(handle)

    def unobserve(self, handle: Hashable) -> None:
        self._observed.discard(handle)

    def supports_prediction(self) -> bool:
        return self._prediction_supported

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def is_listening(self) -> bool:
        """True while a listener is connected."""
        return self._listener is not None

    @property
    def observed(self) -> frozenset[Hashable]:
        """Handles currently observed for bounds changes."""
        return frozenset(self._observed)

    @property
    def focused(self) -> Hashable | None:
        """The handle that currently holds focus."""
        return self._focused

    @property
    def pending_timer_count(self) -> int:
        """Number of scheduled callbacks that are neither run nor cancelled."""
        return sum(1 for _, _, task in self._timers if not task.cancelled)

    # ------------------------------------------------------------------
    # Clock control
    # ------------------------------------------------------------------

    def advance(self, delta_ms: float) -> None:
        """Move the clock forward by *delta_ms*, running due callbacks."""
        self.advance_to(self._now + delta_ms)

    def advance_to(self, time_ms: float) -> None:
        """Move the clock to *time_ms*, running due callbacks in order.

        Moving backwards is ignored; the clock is monotonic.
        """
        while self._timers and self._timers[0][0] <= time_ms:
            due, _, task = heapq.heappop(self._timers)
            if task.cancelled:
                continue
            self._now = max(self._now, due)
            task.callback()
        self._now = max(self._now, time_ms)

    # ------------------------------------------------------------------
    # UI tree
    # ------------------------------------------------------------------

    def add_element(
        self,
        handle: Hashable,
        rect: Rect,
        *,
        focusable: bool = True,
    ) -> None:
        """Attach *handle* to the tree at *rect*, appended to tab order."""
        self._rects[handle] = rect
        self._connected.add(handle)
        if focusable and handle not in self._focus_order:
            self._focus_order.append(handle)
        if self._listener is not None:
            self._listener.on_structure_changed(False)

    def remove_element(self, handle: Hashable) -> None:
        """Detach *handle* from the tree and report the removal."""
        self._connected.discard(handle)
        self._observed.discard(handle)
        if handle in self._focus_order:
            self._focus_order.remove(handle)
        if self._focused == handle:
            self._focused = None
        if self._listener is not None:
            self._listener.on_structure_changed(True)

    def set_bounds(self, handle: Hashable, rect: Rect) -> None:
        """Move or resize *handle*, notifying if it is observed."""
        self._rects[handle] = rect
        if handle in self._observed:
            self._deliver_bounds([handle])

    def scroll_by(self, dx: float = 0.0, dy: float = 0.0) -> None:
        """Scroll the page: content moves by ``(-dx, -dy)`` on screen.

        All observed elements are reported in a single batch, as one
        animation frame would.
        """
        for handle, rect in self._rects.items():
            self._rects[handle] = rect.translated(-dx, -dy)
        self._deliver_bounds(
            [h for h in self._rects if h in self._observed]
        )

    def _deliver_bounds(self, handles: list[Hashable]) -> None:
        if self._listener is None or not handles:
            return
        changes = [
            BoundsChange(
                handle=h,
                rect=self._rects[h],
                is_intersecting=rect_intersects_viewport(
                    self._rects[h], self._viewport_size,
                ),
            )
            for h in handles
        ]
        self._listener.on_bounds_changed(changes)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def move_pointer(self, x: float, y: float, *, at: float | None = None) -> None:
        """Deliver a pointer move, optionally advancing the clock to *at*."""
        if at is not None:
            self.advance_to(at)
        if self._listener is not None:
            self._listener.on_pointer_move(x, y, self._now)

    def press_key(self, key: str, *, shift: bool = False) -> None:
        """Deliver a key-down event."""
        if self._listener is not None:
            self._listener.on_key_down(key, shift)

    def focus(self, handle: Hashable) -> None:
        """Move focus to *handle* and deliver a focus-in event."""
        self._focused = handle
        if self._listener is not None:
            self._listener.on_focus_in(handle)

    def tab(self, *, shift: bool = False) -> Hashable | None:
        """Press Tab (or Shift+Tab) and move focus to the next stop.

        Focus wraps around the ends of the tab order.  With nothing
        focused yet, Tab lands on the first stop and Shift+Tab on the
        last.

        Returns:
            The newly focused handle, or None if nothing is focusable.
        """
        self.press_key("Tab", shift=shift)
        if not self._focus_order:
            return None
        step = -1 if shift else 1
        if self._focused in self._focus_order:
            index = (self._focus_order.index(self._focused) + step) % len(self._focus_order)
        else:
            index = -1 if shift else 0
        target = self._focus_order[index]
        self.focus(target)
        return target

    def __repr__(self) -> str:
        return (
            f"HeadlessEnvironment(now={self._now}, "
            f"elements={len(self._rects)}, "
            f"listening={self.is_listening})"
        )
