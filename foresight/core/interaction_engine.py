"""Interaction engine: hit testing and the per-element state machine.

The InteractionEngine is where predictions meet elements.  For every
environment event the lifecycle manager dispatches to it, the engine
asks the trajectory, scroll or focus-order predictor where the user is
heading, tests that prediction against each tracked element's expanded
rect, updates element state, and fires callbacks.

Two handling policies exist per element, selected by
``unregister_on_callback``:

* **Single-fire** elements are stateless.  The first hit fires the
  callback and removes the element from the registry.
* **Persistent** elements are edge-triggered.  A callback fires only
  when hover turns on, or when a trajectory hit starts.  A trajectory
  hit stays active for ``TRAJECTORY_HIT_EXPIRATION_MS`` and is then
  cleared by a cancellable scheduled task.

All handlers run to completion synchronously inside one environment
event or one expiration callback.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Sequence

from foresight.config.settings import TRAJECTORY_HIT_EXPIRATION_MS, Settings
from foresight.core.element_registry import ElementRegistry
from foresight.core.event_emitter import EventEmitter
from foresight.core.focus_order import FocusOrderIndex
from foresight.core.geometry import (
    expand_rect,
    point_in_rect,
    rects_equal,
    segment_intersects_rect,
)
from foresight.core.scroll_predictor import ScrollPredictor
from foresight.core.settings_store import SettingsStore
from foresight.core.trajectory_predictor import TrajectoryPredictor, TrajectoryState
from foresight.models.element import (
    CallbackHitType,
    HitKind,
    MouseHit,
    ScrollDirection,
    TabHit,
    TrackedElement,
    UnregisterReason,
)
from foresight.models.events import ForesightEvent, ForesightEventType
from foresight.models.geometry import Point, Rect
from foresight.platform.interface import BoundsChange, EnvironmentInterface

logger = logging.getLogger(__name__)

_HOVER_HIT = CallbackHitType(HitKind.MOUSE, MouseHit.HOVER)
_TRAJECTORY_HIT = CallbackHitType(HitKind.MOUSE, MouseHit.TRAJECTORY)
_TAB_FORWARDS_HIT = CallbackHitType(HitKind.TAB, TabHit.FORWARDS)
_TAB_REVERSE_HIT = CallbackHitType(HitKind.TAB, TabHit.REVERSE)

_ADVANCE_KEY = "Tab"

Unregister = Callable[[Hashable, UnregisterReason], None]


class InteractionEngine:
    """Runs pointer, focus and bounds-change hit tests over the registry.

    Args:
        registry: The element registry (owned by the manager).
        store: Settings and global callback-hit counters.
        environment: Clock, timers and geometry source.
        emitter: Destination for element and trajectory events.
        unregister: Called to remove an element, e.g. after a
            single-fire callback.
        trajectory: Pointer trajectory predictor.
        focus_order: Tab-order index.  Defaults to one backed by
            ``environment.focusable_elements``.
    """

    def __init__(
        self,
        registry: ElementRegistry,
        store: SettingsStore,
        environment: EnvironmentInterface,
        emitter: EventEmitter,
        unregister: Unregister,
        trajectory: TrajectoryPredictor,
        *,
        focus_order: FocusOrderIndex | None = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._environment = environment
        self._emitter = emitter
        self._unregister = unregister
        self._trajectory = trajectory
        self._scroll = ScrollPredictor()
        self._focus_order = focus_order or FocusOrderIndex(environment.focusable_elements)

        # Shift state of a Tab press awaiting its focus-in; None otherwise.
        self._pending_tab_shift: bool | None = None

        self.on_state_changed: Callable[[], None] | None = None

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def trajectory_state(self) -> TrajectoryState:
        """Current pointer trajectory state."""
        return self._trajectory.state

    @property
    def focus_order(self) -> FocusOrderIndex:
        """The tab-order index."""
        return self._focus_order

    @property
    def scroll_predictor(self) -> ScrollPredictor:
        """The per-frame scroll predictor."""
        return self._scroll

    # ------------------------------------------------------------------
    # Pointer
    # ------------------------------------------------------------------

    def handle_pointer_move(self, x: float, y: float, timestamp: float) -> None:
        """Update the trajectory and hit-test every visible element."""
        settings = self._store.settings
        point = Point(float(x), float(y))
        predicted = self._trajectory.update(
            point,
            timestamp,
            settings.enable_mouse_prediction,
            settings.trajectory_prediction_time,
        )

        for element in self._registry.find_intersecting_viewport():
            # An earlier callback in this loop may have removed it.
            if not self._registry.contains(element.handle):
                continue
            if element.unregister_on_callback:
                self._handle_single_fire(element, point, predicted, settings)
            else:
                self._handle_persistent(element, point, predicted, settings)

        if self._emitter.has_listeners(ForesightEventType.MOUSE_TRAJECTORY_UPDATE):
            self._emitter.emit(ForesightEvent(
                type=ForesightEventType.MOUSE_TRAJECTORY_UPDATE,
                timestamp=timestamp,
                data={
                    "current_point": point,
                    "predicted_point": predicted,
                    "prediction_enabled": settings.enable_mouse_prediction,
                },
            ))
        self._state_changed()

    def _handle_single_fire(
        self,
        element: TrackedElement,
        point: Point,
        predicted: Point,
        settings: Settings,
    ) -> None:
        """Fire once on hover, or on any trajectory intersection."""
        rect = element.bounds.expanded_rect
        is_hovering = point_in_rect(point, rect)

        if not settings.enable_mouse_prediction:
            if is_hovering:
                self.invoke_callback(element, _HOVER_HIT)
            return

        if segment_intersects_rect(point, predicted, rect):
            self.invoke_callback(element, _HOVER_HIT if is_hovering else _TRAJECTORY_HIT)

    def _handle_persistent(
        self,
        element: TrackedElement,
        point: Point,
        predicted: Point,
        settings: Settings,
    ) -> None:
        """Edge-triggered hover / trajectory handling."""
        rect = element.bounds.expanded_rect
        is_hovering = point_in_rect(point, rect)

        is_new_hover = is_hovering and not element.is_hovering
        is_new_trajectory_hit = (
            settings.enable_mouse_prediction
            and not is_hovering
            and not element.trajectory_hit.is_trajectory_hit
            and segment_intersects_rect(point, predicted, rect)
        )

        updated: list[str] = []
        if is_hovering != element.is_hovering:
            element.is_hovering = is_hovering
            updated.append("hover")
        if is_new_trajectory_hit:
            self._mark_trajectory_hit(element)
            updated.append("trajectory")
        if updated:
            self._element_updated(element, updated)

        if is_new_hover:
            self.invoke_callback(element, _HOVER_HIT)
        elif is_new_trajectory_hit:
            self.invoke_callback(element, _TRAJECTORY_HIT)

    # ------------------------------------------------------------------
    # Trajectory-hit expiration
    # ------------------------------------------------------------------

    def _mark_trajectory_hit(self, element: TrackedElement) -> None:
        """Set the hit flag and (re)schedule its expiration."""
        data = element.trajectory_hit
        if data.expiration is not None:
            data.expiration.cancel()

        hit_time = self._environment.now()
        data.is_trajectory_hit = True
        data.trajectory_hit_time = hit_time

        handle = element.handle
        data.expiration = self._environment.call_later(
            TRAJECTORY_HIT_EXPIRATION_MS,
            lambda: self._expire_trajectory_hit(handle, hit_time),
        )

    def _expire_trajectory_hit(self, handle: Hashable, hit_time: float) -> None:
        element = self._registry.get(handle)
        if element is None:
            return
        data = element.trajectory_hit
        if not data.is_trajectory_hit or data.trajectory_hit_time != hit_time:
            return
        data.is_trajectory_hit = False
        data.expiration = None
        self._element_updated(element, ["trajectory"])
        self._state_changed()

    def cancel_expiration(self, element: TrackedElement) -> None:
        """Cancel *element*'s pending expiration, if any."""
        data = element.trajectory_hit
        if data.expiration is not None:
            data.expiration.cancel()
            data.expiration = None

    def clear_trajectory_hits(self) -> int:
        """Clear every active trajectory hit and its pending expiration.

        Returns:
            The number of elements whose flag was cleared.
        """
        cleared = 0
        for element in self._registry.find_trajectory_hits():
            self.cancel_expiration(element)
            element.trajectory_hit.is_trajectory_hit = False
            self._element_updated(element, ["trajectory"])
            cleared += 1
        if cleared:
            logger.debug("Cleared %d trajectory hit(s)", cleared)
        return cleared

    # ------------------------------------------------------------------
    # Keyboard & focus
    # ------------------------------------------------------------------

    def handle_key_down(self, key: str, shift: bool) -> None:
        """Remember a Tab press so the next focus-in counts as tabbing."""
        self._pending_tab_shift = shift if key == _ADVANCE_KEY else None

    def handle_focus_in(self, handle: Hashable) -> None:
        """Fire tab hits for the ``tab_offset`` window after a Tab focus move."""
        is_reversed = self._pending_tab_shift
        self._pending_tab_shift = None
        settings = self._store.settings
        if is_reversed is None or not settings.enable_tab_prediction:
            return

        index = self._focus_order.resolve(handle, is_reversed)
        if index == -1:
            logger.debug("Focused handle %r is not in the tab order", handle)
            return

        hit_type = _TAB_REVERSE_HIT if is_reversed else _TAB_FORWARDS_HIT
        window = self._focus_order.window(index, settings.tab_offset, is_reversed)
        for target in window:
            element = self._registry.get(target)
            if element is not None:
                self.invoke_callback(element, hit_type)
        self._state_changed()

    def invalidate_focus_order(self) -> None:
        """Drop the cached tab order after a structural change."""
        self._focus_order.invalidate()

    # ------------------------------------------------------------------
    # Bounds changes & scroll
    # ------------------------------------------------------------------

    def handle_bounds_changes(self, changes: Sequence[BoundsChange]) -> None:
        """Apply one frame of bounds changes and run scroll prediction."""
        settings = self._store.settings
        state = self._trajectory.state
        try:
            for change in changes:
                element = self._registry.get(change.handle)
                if element is None:
                    continue
                old_rect = element.bounds.original_rect
                self._apply_bounds_change(element, change)

                if not element.is_intersecting_viewport or not state.has_pointer:
                    continue
                if not self._registry.contains(element.handle):
                    continue
                if not settings.enable_scroll_prediction:
                    self._check_hover(element, state.current_point)
                elif element.unregister_on_callback:
                    self._check_scroll(element, old_rect, change.rect, settings, state)
                else:
                    self._check_persistent_scroll(element, old_rect, change.rect, settings, state)

            direction = self._scroll.direction
            if (
                direction is not None
                and direction is not ScrollDirection.NONE
                and self._emitter.has_listeners(ForesightEventType.SCROLL_TRAJECTORY_UPDATE)
            ):
                self._emitter.emit(ForesightEvent(
                    type=ForesightEventType.SCROLL_TRAJECTORY_UPDATE,
                    timestamp=self._environment.now(),
                    data={
                        "current_point": state.current_point,
                        "predicted_point": self._scroll.predicted_point,
                        "direction": direction,
                    },
                ))
        finally:
            self._scroll.reset()
        self._state_changed()

    def _apply_bounds_change(self, element: TrackedElement, change: BoundsChange) -> None:
        updated: list[str] = []
        if element.is_intersecting_viewport != change.is_intersecting:
            element.is_intersecting_viewport = change.is_intersecting
            updated.append("visibility")
        if not change.is_intersecting and element.is_hovering:
            element.is_hovering = False
            updated.append("hover")
        if change.is_intersecting and self.update_bounds(element, change.rect, notify=False):
            updated.append("bounds")
        if updated:
            self._element_updated(element, updated)

    def update_bounds(
        self, element: TrackedElement, rect: Rect, *, notify: bool = True,
    ) -> bool:
        """Store *rect* as the element's bounds and recompute the expanded rect.

        Returns:
            True if the expanded rect changed.
        """
        expanded = expand_rect(rect, element.bounds.hit_slop)
        element.bounds.original_rect = rect
        if rects_equal(expanded, element.bounds.expanded_rect):
            return False
        element.bounds.expanded_rect = expanded
        if notify:
            self._element_updated(element, ["bounds"])
        return True

    def _check_scroll(
        self,
        element: TrackedElement,
        old_rect: Rect,
        new_rect: Rect,
        settings: Settings,
        state: TrajectoryState,
    ) -> bool:
        """Fire a scroll hit if the projected pointer reaches *element*.

        Returns:
            True if a callback fired.
        """
        direction = self._scroll.direction_for(old_rect, new_rect)
        if direction is ScrollDirection.NONE:
            return False
        scroll_point = self._scroll.point_for(state.current_point, settings.scroll_margin)
        if not segment_intersects_rect(
            state.current_point, scroll_point, element.bounds.expanded_rect,
        ):
            return False

        hit_type = CallbackHitType(HitKind.SCROLL, direction)
        if element.unregister_on_callback:
            self.invoke_callback(element, hit_type)
            return True
        if element.is_hovering or element.trajectory_hit.is_trajectory_hit:
            return False
        self._mark_trajectory_hit(element)
        self._element_updated(element, ["trajectory"])
        self.invoke_callback(element, hit_type)
        return True

    def _check_persistent_scroll(
        self,
        element: TrackedElement,
        old_rect: Rect,
        new_rect: Rect,
        settings: Settings,
        state: TrajectoryState,
    ) -> None:
        """Scroll test for a persistent element, keeping its hover flag current.

        A scroll hit on an element that lands under the pointer counts as
        its arrival, so hover is then recorded without a second callback.
        """
        is_hovering = point_in_rect(state.current_point, element.bounds.expanded_rect)
        if not is_hovering and element.is_hovering:
            element.is_hovering = False
            self._element_updated(element, ["hover"])
        if not self._check_scroll(element, old_rect, new_rect, settings, state):
            self._check_hover(element, state.current_point)
        elif is_hovering:
            element.is_hovering = True
            self._element_updated(element, ["hover"])

    def _check_hover(self, element: TrackedElement, point: Point) -> None:
        """Plain hover test after the element moved under a still pointer."""
        is_hovering = point_in_rect(point, element.bounds.expanded_rect)
        if element.unregister_on_callback:
            if is_hovering:
                self.invoke_callback(element, _HOVER_HIT)
            return
        if is_hovering == element.is_hovering:
            return
        element.is_hovering = is_hovering
        self._element_updated(element, ["hover"])
        if is_hovering:
            self.invoke_callback(element, _HOVER_HIT)

    # ------------------------------------------------------------------
    # Callback invocation
    # ------------------------------------------------------------------

    def invoke_callback(self, element: TrackedElement, hit_type: CallbackHitType) -> None:
        """Count the hit, run the callback and hooks, and retire single-fire elements.

        Exceptions raised by the element callback or the global hook are
        logged and recorded on the element; they never propagate into
        the environment's event loop.
        """
        element.callback_hits.record(hit_type)
        self._store.callback_hits.record(hit_type)

        info = element.callback_info
        info.fired_count += 1
        info.last_invoked_at = self._environment.now()
        try:
            element.callback()
        except Exception as exc:
            logger.exception("Callback for element %r failed", element.name)
            info.last_status = "error"
            info.last_error_message = str(exc)
        else:
            info.last_status = "success"
            info.last_error_message = None
        logger.debug("Callback fired for %r (%s)", element.name, hit_type)

        snapshot = element.snapshot()
        hook = self._store.settings.on_any_callback_fired
        if hook is not None:
            try:
                hook(snapshot, hit_type)
            except Exception:
                logger.exception("on_any_callback_fired hook failed")

        self._emitter.emit(ForesightEvent(
            type=ForesightEventType.CALLBACK_FIRED,
            timestamp=info.last_invoked_at,
            data={"element": snapshot, "hit_type": hit_type},
        ))

        if element.unregister_on_callback:
            self._unregister(element.handle, UnregisterReason.CALLBACK_HIT)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Forget transient input state (pending Tab, scroll cache)."""
        self._pending_tab_shift = None
        self._scroll.reset()

    def _element_updated(self, element: TrackedElement, updated: list[str]) -> None:
        if not self._emitter.has_listeners(ForesightEventType.ELEMENT_DATA_UPDATED):
            return
        self._emitter.emit(ForesightEvent(
            type=ForesightEventType.ELEMENT_DATA_UPDATED,
            timestamp=self._environment.now(),
            data={"element": element.snapshot(), "updated": updated},
        ))

    def _state_changed(self) -> None:
        if self.on_state_changed is not None:
            self.on_state_changed()

    def __repr__(self) -> str:
        return (
            f"InteractionEngine(elements={self._registry.count}, "
            f"samples={len(self._trajectory.state.positions)})"
        )
