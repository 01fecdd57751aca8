"""ForesightManager: the public facade of the intent-prediction engine.

The ForesightManager wires together the ``ElementRegistry`` (storage),
``SettingsStore`` (configuration), ``InteractionEngine`` (hit testing
and callbacks) and ``ListenerLifecycle`` (event sources) behind the
small API host code uses.

Typical usage::

    from foresight.core.manager import ForesightManager
    from foresight.platform.headless import HeadlessEnvironment

    env = HeadlessEnvironment()
    manager = ForesightManager(env)

    result = manager.register(button, prefetch_details, hit_slop=20)
    ...
    result.unregister()

Event sources are installed when the first element registers and
removed when the last one leaves, unless a debug observer is attached,
in which case removal waits until it detaches.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from functools import partial
from typing import Any, Protocol

from foresight.config.settings import Settings
from foresight.core.element_registry import ElementRegistry
from foresight.core.event_emitter import EventEmitter, EventListener
from foresight.core.geometry import expand_rect, normalize_hit_slop, rect_intersects_viewport
from foresight.core.interaction_engine import InteractionEngine
from foresight.core.lifecycle import ListenerLifecycle
from foresight.core.settings_store import SettingChange, SettingsStore
from foresight.core.trajectory_predictor import TrajectoryPredictor
from foresight.models.element import (
    CallbackHits,
    ElementBounds,
    ElementSnapshot,
    ForesightCallback,
    TrackedElement,
    UnregisterReason,
)
from foresight.models.events import ForesightEvent, ForesightEventType
from foresight.models.geometry import HitSlop, Point
from foresight.platform.interface import EnvironmentInterface

logger = logging.getLogger(__name__)


def _noop() -> None:
    return None


def _default_name(handle: Hashable) -> str:
    handle_id = getattr(handle, "id", None)
    return str(handle_id) if handle_id else "unnamed"


@dataclass(frozen=True)
class RegisterResult:
    """Outcome of ``ForesightManager.register``.

    Attributes:
        is_registered: False when the environment cannot predict
            (no environment, or ``supports_prediction()`` is False).
        unregister: Removes the element again.  A no-op when
            ``is_registered`` is False.
    """

    is_registered: bool
    unregister: Callable[[], None]


@dataclass(frozen=True)
class ManagerSnapshot:
    """Read-only view of the whole manager, for observers and tooling.

    Attributes:
        elements: Snapshot of every registered element.
        settings: The current settings.
        callback_hits: Copy of the global hit counters.
        current_point: Last observed pointer position.
        predicted_point: Last predicted pointer position.
        is_listening: Whether event sources are installed.
    """

    elements: tuple[ElementSnapshot, ...]
    settings: Settings
    callback_hits: CallbackHits
    current_point: Point
    predicted_point: Point
    is_listening: bool = False


class DebugObserver(Protocol):
    """Receives a fresh ``ManagerSnapshot`` after every state change."""

    def on_snapshot(self, snapshot: ManagerSnapshot) -> None:
        """Called with the latest snapshot."""


class ForesightManager:
    """Predicts user intent toward registered UI elements.

    Args:
        environment: The hosting UI environment.  ``None`` (or one whose
            ``supports_prediction()`` is False) makes ``register`` inert.
        settings: Initial settings.  Defaults to ``Settings()``.
    """

    def __init__(
        self,
        environment: EnvironmentInterface | None,
        settings: Settings | None = None,
    ) -> None:
        self._environment = environment
        self._store = SettingsStore(settings)
        self._registry = ElementRegistry()
        self._emitter = EventEmitter()
        self._trajectory = TrajectoryPredictor(self._store.settings.position_history_size)
        self._unregister_callables: dict[Hashable, Callable[[], None]] = {}
        self._debugger: DebugObserver | None = None

        self._engine: InteractionEngine | None = None
        self._lifecycle: ListenerLifecycle | None = None
        if environment is not None:
            self._engine = InteractionEngine(
                self._registry,
                self._store,
                environment,
                self._emitter,
                self.unregister,
                self._trajectory,
            )
            self._engine.on_state_changed = self._push_snapshot
            self._lifecycle = ListenerLifecycle(
                environment, self._engine, self._handle_structure_changed,
            )

        logger.debug("ForesightManager created: %s", self)

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        """The current settings."""
        return self._store.settings

    @property
    def callback_hits(self) -> CallbackHits:
        """Global hit counters (live object)."""
        return self._store.callback_hits

    @property
    def registered_handles(self) -> list[Hashable]:
        """Handles of every registered element."""
        return self._registry.handles

    @property
    def is_listening(self) -> bool:
        """Whether environment event sources are installed."""
        return self._lifecycle is not None and self._lifecycle.is_active

    @property
    def prediction_supported(self) -> bool:
        """Whether ``register`` will track elements at all."""
        return self._environment is not None and self._environment.supports_prediction()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        handle: Hashable,
        callback: ForesightCallback,
        *,
        hit_slop: HitSlop | None = None,
        name: str | None = None,
        unregister_on_callback: bool = True,
    ) -> RegisterResult:
        """Start tracking *handle* and call *callback* on predicted intent.

        Registering a handle that is already tracked changes nothing and
        returns the existing ``unregister``.

        Args:
            handle: Opaque, hashable reference to the UI element.
            callback: Zero-argument function to fire on a hit.
            hit_slop: Extra hit area, uniform or per edge.  Defaults to
                ``settings.default_hit_slop`` and then follows it.
            name: Diagnostic label.  Defaults to ``handle.id`` when the
                handle has one.
            unregister_on_callback: Single-fire (True) or persistent.

        Returns:
            A ``RegisterResult``.
        """
        environment = self._environment
        if (
            environment is None
            or not environment.supports_prediction()
            or self._engine is None
            or self._lifecycle is None
        ):
            logger.debug("Prediction unsupported; ignoring register(%r)", handle)
            return RegisterResult(is_registered=False, unregister=_noop)

        existing = self._unregister_callables.get(handle)
        if existing is not None:
            return RegisterResult(is_registered=True, unregister=existing)

        settings = self._store.settings
        if hit_slop is None:
            slop = settings.default_hit_slop
        else:
            slop = normalize_hit_slop(hit_slop, settings.debug)

        rect = environment.get_bounds(handle)
        element = TrackedElement(
            handle=handle,
            callback=callback,
            bounds=ElementBounds(
                original_rect=rect,
                expanded_rect=expand_rect(rect, slop),
                hit_slop=slop,
            ),
            name=name or _default_name(handle),
            unregister_on_callback=unregister_on_callback,
            uses_default_hit_slop=hit_slop is None,
            is_intersecting_viewport=rect_intersects_viewport(
                rect, environment.get_viewport_size(),
            ),
        )
        self._registry.add(element)
        unregister = partial(self.unregister, handle)
        self._unregister_callables[handle] = unregister

        if self._lifecycle.is_active:
            self._lifecycle.observe(handle)
        else:
            self._lifecycle.start(self._registry.handles)

        logger.debug("Registered %r (%d tracked)", element.name, self._registry.count)
        self._emit(ForesightEventType.ELEMENT_REGISTERED, element=element.snapshot())
        self._push_snapshot()
        return RegisterResult(is_registered=True, unregister=unregister)

    def unregister(
        self,
        handle: Hashable,
        reason: UnregisterReason = UnregisterReason.API_CALL,
    ) -> None:
        """Stop tracking *handle*.  Unknown handles are ignored."""
        element = self._registry.remove(handle)
        if element is None:
            return
        self._unregister_callables.pop(handle, None)
        if self._engine is not None:
            self._engine.cancel_expiration(element)
        if self._lifecycle is not None:
            self._lifecycle.unobserve(handle)

        is_last = self._registry.count == 0
        logger.debug("Unregistered %r (%s)", element.name, reason.value)
        self._emit(
            ForesightEventType.ELEMENT_UNREGISTERED,
            element=element.snapshot(),
            reason=reason,
            was_last_element=is_last,
        )
        if is_last:
            self._teardown_if_idle()
        self._push_snapshot()

    def _handle_structure_changed(self, removed_nodes: bool) -> None:
        if self._engine is not None:
            self._engine.invalidate_focus_order()
        if not removed_nodes or self._environment is None:
            return
        for handle in self._registry.handles:
            if not self._environment.is_connected(handle):
                self.unregister(handle, UnregisterReason.DISCONNECTED)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def alter_settings(self, **changes: Any) -> list[SettingChange]:
        """Apply a partial settings update and its side effects.

        Returns:
            The changes that were actually applied.
        """
        applied = self._store.alter(**changes)
        if not applied:
            return applied

        settings = self._store.settings
        for change in applied:
            if change.setting == "position_history_size":
                self._trajectory.resize(settings.position_history_size)
            elif change.setting == "default_hit_slop":
                self._apply_default_hit_slop()
            elif change.setting in ("enable_mouse_prediction", "enable_scroll_prediction"):
                if not change.new_value and self._engine is not None:
                    self._engine.clear_trajectory_hits()

        self._emit(ForesightEventType.SETTINGS_CHANGED, changes=applied)
        self._push_snapshot()
        return applied

    def _apply_default_hit_slop(self) -> None:
        if self._engine is None or self._environment is None:
            return
        slop = self._store.settings.default_hit_slop
        for element in self._registry.get_all():
            if not element.uses_default_hit_slop:
                continue
            element.bounds.hit_slop = slop
            if element.is_intersecting_viewport:
                self._engine.update_bounds(element, self._environment.get_bounds(element.handle))

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def get_snapshot(self) -> ManagerSnapshot:
        """Return a read-only view of the current state."""
        state = self._trajectory.state
        return ManagerSnapshot(
            elements=tuple(e.snapshot() for e in self._registry.get_all()),
            settings=self._store.settings,
            callback_hits=self._store.callback_hits.copy(),
            current_point=state.current_point,
            predicted_point=state.predicted_point,
            is_listening=self.is_listening,
        )

    def attach_debugger(self, observer: DebugObserver) -> None:
        """Attach *observer*; it receives a snapshot after each change."""
        self._debugger = observer
        logger.debug("Debug observer attached")
        self._push_snapshot()

    def detach_debugger(self) -> None:
        """Detach the observer and run any teardown it was holding back."""
        if self._debugger is None:
            return
        self._debugger = None
        logger.debug("Debug observer detached")
        self._teardown_if_idle()

    def add_event_listener(self, event_type: ForesightEventType, listener: EventListener) -> None:
        self._emitter.add_listener(event_type, listener)

    def remove_event_listener(self, event_type: ForesightEventType, listener: EventListener) -> None:
        self._emitter.remove_listener(event_type, listener)

    def get_event_history(self, limit: int = 50) -> list[ForesightEvent]:
        """Return the most recent manager events, oldest first."""
        return self._emitter.get_event_history(limit)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def shutdown(self) -> None:
        """Unregister every element and remove all event sources."""
        for handle in self._registry.handles:
            self.unregister(handle, UnregisterReason.API_CALL)
        if self._lifecycle is not None:
            self._lifecycle.stop()
        self._trajectory.reset()
        logger.debug("ForesightManager shut down")

    def _teardown_if_idle(self) -> None:
        if self._lifecycle is None or not self._lifecycle.is_active:
            return
        if self._registry.count > 0:
            return
        if self._debugger is not None:
            logger.debug("Registry empty; teardown deferred while debugger attached")
            return
        self._lifecycle.stop()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _emit(self, event_type: ForesightEventType, **data: Any) -> None:
        timestamp = self._environment.now() if self._environment is not None else 0.0
        self._emitter.emit(ForesightEvent(type=event_type, timestamp=timestamp, data=data))

    def _push_snapshot(self) -> None:
        if self._debugger is None:
            return
        try:
            self._debugger.on_snapshot(self.get_snapshot())
        except Exception:
            logger.exception("Debug observer failed to handle snapshot")

    def __repr__(self) -> str:
        return (
            f"ForesightManager(elements={self._registry.count}, "
            f"listening={self.is_listening}, "
            f"supported={self.prediction_supported})"
        )
