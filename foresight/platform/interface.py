"""Abstract base class defining the contract for the hosting UI environment.

The prediction engine never talks to a UI toolkit directly.  Everything
it needs (element geometry, event sources, a clock, and cancellable
timers) comes through a concrete ``EnvironmentInterface`` subclass.
Events flow the other way through an ``EnvironmentListener``, which the
lifecycle manager hands to ``connect``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Hashable, Sequence
from dataclasses import dataclass
from typing import Protocol

from foresight.models.geometry import Rect


@dataclass(frozen=True)
class BoundsChange:
    """One entry of a bounds-change notification batch.

    Attributes:
        handle: The element whose geometry changed.
        rect: Its new bounding rectangle.
        is_intersecting: Whether it now intersects the viewport.
    """

    handle: Hashable
    rect: Rect
    is_intersecting: bool


class ScheduledTask(Protocol):
    """A pending ``call_later`` callback that can still be cancelled."""

    def cancel(self) -> None:
        """Prevent the callback from running.  Idempotent."""


class EnvironmentListener(Protocol):
    """Receiver for environment events, installed via ``connect``."""

    def on_pointer_move(self, x: float, y: float, timestamp: float) -> None:
        """The pointer moved to ``(x, y)`` at *timestamp* (ms)."""

    def on_key_down(self, key: str, shift: bool) -> None:
        """A key was pressed; *shift* reports the Shift modifier."""

    def on_focus_in(self, handle: Hashable) -> None:
        """*handle* received input focus."""

    def on_structure_changed(self, removed_nodes: bool) -> None:
        """The UI tree changed; *removed_nodes* if anything was removed."""

    def on_bounds_changed(self, changes: Sequence[BoundsChange]) -> None:
        """Observed elements moved or resized within one frame."""


class EnvironmentInterface(ABC):
    """Abstract interface to the hosting UI environment.

    All coordinates are viewport pixels and all times are milliseconds
    on a monotonic clock.
    """

    # ------------------------------------------------------------------
    # Clock & timers
    # ------------------------------------------------------------------

    @abstractmethod
    def now(self) -> float:
        """Return the current monotonic time in milliseconds."""

    @abstractmethod
    def call_later(
        self, delay_ms: float, callback: Callable[[], None],
    ) -> ScheduledTask:
        """Run *callback* once after *delay_ms* milliseconds.

        Args:
            delay_ms: Delay before the callback runs.
            callback: Zero-argument function to run on the event loop.

        Returns:
            A handle whose ``cancel()`` prevents the callback.
        """

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    @abstractmethod
    def get_bounds(self, handle: Hashable) -> Rect:
        """Return the current bounding rectangle of *handle*."""

    @abstractmethod
    def is_connected(self, handle: Hashable) -> bool:
        """Return whether *handle* is still attached to the UI tree."""

    @abstractmethod
    def get_viewport_size(self) -> tuple[float, float]:
        """Return the viewport ``(width, height)``."""

    @abstractmethod
    def focusable_elements(self) -> list[Hashable]:
        """Return every focusable handle in sequential tab order."""

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @abstractmethod
    def connect(self, listener: EnvironmentListener) -> None:
        """Install all event sources, delivering into *listener*."""

    @abstractmethod
    def disconnect(self) -> None:
        """Remove every event source installed by ``connect``."""

    @abstractmethod
    def observe(self, handle: Hashable) -> None:
        """Start reporting bounds changes for *handle*."""

    @abstractmethod
    def unobserve(self, handle: Hashable) -> None:
        """Stop reporting bounds changes for *handle*."""

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    def supports_prediction(self) -> bool:
        """Return whether prediction makes sense in this environment.

        Override to return ``False`` for touch-only devices or limited
        connections, where registering elements should be a no-op.
        """
        return True
