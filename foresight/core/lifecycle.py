"""Listener lifecycle: installs and removes environment event sources.

``ListenerLifecycle`` is the ``EnvironmentListener`` handed to
``EnvironmentInterface.connect``.  It forwards input events to the
interaction engine and structural changes to the manager, and it owns
the "listening" flag so that sources are installed at most once.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterable, Sequence

from foresight.core.interaction_engine import InteractionEngine
from foresight.platform.interface import BoundsChange, EnvironmentInterface

logger = logging.getLogger(__name__)


class ListenerLifecycle:
    """Connects the engine to an environment on demand.

    Args:
        environment: The environment to connect to.
        engine: Receiver of pointer, key, focus and bounds events.
        on_structure_changed: Called with ``removed_nodes`` whenever the
            UI tree changes.
    """

    def __init__(
        self,
        environment: EnvironmentInterface,
        engine: InteractionEngine,
        on_structure_changed: Callable[[bool], None],
    ) -> None:
        self._environment = environment
        self._engine = engine
        self._on_structure_changed = on_structure_changed
        self._active = False

    @property
    def is_active(self) -> bool:
        """True while event sources are installed."""
        return self._active

    def start(self, handles: Iterable[Hashable] = ()) -> None:
        """Install event sources and observe *handles*.  No-op if active."""
        if self._active:
            return
        self._environment.connect(self)
        self._active = True
        for handle in handles:
            self._environment.observe(handle)
        logger.debug("Global listeners installed")

    def stop(self) -> None:
        """Remove every event source.  No-op if inactive."""
        if not self._active:
            return
        self._environment.disconnect()
        self._active = False
        self._engine.reset()
        logger.debug("Global listeners removed")

    def observe(self, handle: Hashable) -> None:
        if self._active:
            self._environment.observe(handle)

    def unobserve(self, handle: Hashable) -> None:
        if self._active:
            self._environment.unobserve(handle)

    # ------------------------------------------------------------------
    # EnvironmentListener
    # ------------------------------------------------------------------

    def on_pointer_move(self, x: float, y: float, timestamp: float) -> None:
        self._engine.handle_pointer_move(x, y, timestamp)

    def on_key_down(self, key: str, shift: bool) -> None:
        self._engine.handle_key_down(key, shift)

    def on_focus_in(self, handle: Hashable) -> None:
        self._engine.handle_focus_in(handle)

    def on_structure_changed(self, removed_nodes: bool) -> None:
        self._on_structure_changed(removed_nodes)

    def on_bounds_changed(self, changes: Sequence[BoundsChange]) -> None:
        self._engine.handle_bounds_changes(changes)

    def __repr__(self) -> str:
        return f"ListenerLifecycle(active={self._active})"
