"""Tracked element model: one registered UI element and its interaction state.

A ``TrackedElement`` is owned exclusively by the ``ElementRegistry``.
The interaction engine mutates its hover / trajectory-hit state in place
on every relevant environment event, and the debug observer only ever
sees frozen ``ElementSnapshot`` copies.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from foresight.models.geometry import Rect

if TYPE_CHECKING:
    from foresight.platform.interface import ScheduledTask

ForesightCallback = Callable[[], Any]
"""Zero-argument callable fired on a prediction or direct interaction."""


class HitKind(Enum):
    """Which predictor produced a callback hit."""

    MOUSE = "mouse"
    TAB = "tab"
    SCROLL = "scroll"


class MouseHit(Enum):
    """Sub-type of a mouse hit."""

    HOVER = "hover"
    TRAJECTORY = "trajectory"


class TabHit(Enum):
    """Sub-type of a tab hit."""

    FORWARDS = "forwards"
    REVERSE = "reverse"


class ScrollDirection(Enum):
    """Direction the page content is scrolling towards.

    Attributes:
        UP: Content moved down on screen (the user scrolls up).
        DOWN: Content moved up on screen (the user scrolls down).
        LEFT: Content moved right on screen.
        RIGHT: Content moved left on screen.
        NONE: No movement above the noise threshold.
    """

    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    NONE = "none"


class UnregisterReason(Enum):
    """Why an element left the registry."""

    CALLBACK_HIT = "callback_hit"
    DISCONNECTED = "disconnected"
    API_CALL = "api_call"


@dataclass(frozen=True)
class CallbackHitType:
    """A ``(kind, subtype)`` pair identifying what triggered a callback.

    Attributes:
        kind: The predictor family.
        subtype: The matching sub-type enum member.
    """

    kind: HitKind
    subtype: MouseHit | TabHit | ScrollDirection

    def __post_init__(self) -> None:
        """Reject subtypes that do not belong to *kind*."""
        expected = {
            HitKind.MOUSE: MouseHit,
            HitKind.TAB: TabHit,
            HitKind.SCROLL: ScrollDirection,
        }[self.kind]
        if not isinstance(self.subtype, expected):
            raise ValueError(
                f"subtype {self.subtype!r} does not match kind {self.kind.value!r}"
            )
        if self.subtype is ScrollDirection.NONE:
            raise ValueError("a scroll hit needs a direction")

    def __str__(self) -> str:
        return f"{self.kind.value}/{self.subtype.value}"


@dataclass
class MouseHits:
    hover: int = 0
    trajectory: int = 0


@dataclass
class TabHits:
    forwards: int = 0
    reverse: int = 0


@dataclass
class ScrollHits:
    up: int = 0
    down: int = 0
    left: int = 0
    right: int = 0


@dataclass
class CallbackHits:
    """Monotonic counters of fired callbacks, grouped by hit type.

    One instance lives on every tracked element and one global aggregate
    lives in the settings store.  Counters only ever increase.
    """

    mouse: MouseHits = field(default_factory=MouseHits)
    tab: TabHits = field(default_factory=TabHits)
    scroll: ScrollHits = field(default_factory=ScrollHits)
    total: int = 0

    def record(self, hit_type: CallbackHitType) -> None:
        """Increment the counter for *hit_type* and the total."""
        if hit_type.kind is HitKind.MOUSE:
            group: Any = self.mouse
        elif hit_type.kind is HitKind.TAB:
            group = self.tab
        else:
            group = self.scroll
        name = hit_type.subtype.value
        setattr(group, name, getattr(group, name) + 1)
        self.total += 1

    def count(self, hit_type: CallbackHitType) -> int:
        """Return the current counter for *hit_type*."""
        group = getattr(self, hit_type.kind.value)
        return int(getattr(group, hit_type.subtype.value))

    def copy(self) -> CallbackHits:
        """Return an independent copy of the counters."""
        return CallbackHits(
            mouse=MouseHits(self.mouse.hover, self.mouse.trajectory),
            tab=TabHits(self.tab.forwards, self.tab.reverse),
            scroll=ScrollHits(
                self.scroll.up,
                self.scroll.down,
                self.scroll.left,
                self.scroll.right,
            ),
            total=self.total,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise to nested plain dicts."""
        return {
            "mouse": {"hover": self.mouse.hover, "trajectory": self.mouse.trajectory},
            "tab": {"forwards": self.tab.forwards, "reverse": self.tab.reverse},
            "scroll": {
                "up": self.scroll.up,
                "down": self.scroll.down,
                "left": self.scroll.left,
                "right": self.scroll.right,
            },
            "total": self.total,
        }


@dataclass
class ElementBounds:
    """Natural and expanded hit area of an element.

    Attributes:
        original_rect: Bounds as reported by the geometry source.
        expanded_rect: ``original_rect`` outset by ``hit_slop``.
        hit_slop: Per-edge outset in pixels.
    """

    original_rect: Rect
    expanded_rect: Rect
    hit_slop: Rect


@dataclass
class TrajectoryHitData:
    """Transient trajectory-hit flag and its pending expiration.

    Attributes:
        is_trajectory_hit: True between a hit and its expiration.
        trajectory_hit_time: Clock time (ms) of the most recent hit.
        expiration: Cancellable task that clears the flag, or ``None``.
    """

    is_trajectory_hit: bool = False
    trajectory_hit_time: float = 0.0
    expiration: ScheduledTask | None = None


@dataclass
class CallbackInfo:
    """Outcome of the element's most recent callback.

    Attributes:
        fired_count: Number of times the callback has been invoked.
        last_invoked_at: Clock time (ms) of the last invocation.
        last_status: ``"success"`` or ``"error"``; ``None`` before the
            first invocation.
        last_error_message: Message of the last failure, if any.
    """

    fired_count: int = 0
    last_invoked_at: float | None = None
    last_status: str | None = None
    last_error_message: str | None = None


@dataclass(eq=False)
class TrackedElement:
    """A registered UI element with its callback and interaction state.

    Attributes:
        handle: Opaque, hashable reference to the UI element.
        callback: Zero-argument function fired on a hit.
        bounds: Natural and expanded hit area.
        name: Diagnostic label, no behavioural effect.
        unregister_on_callback: When true the element is single-fire
            and leaves the registry right after its first callback.
        uses_default_hit_slop: True when registered without an explicit
            hit slop, so ``default_hit_slop`` changes apply to it.
        is_hovering: Whether the last pointer point lies inside
            ``bounds.expanded_rect``.
        is_intersecting_viewport: Gates per-move hit testing.
        trajectory_hit: Transient trajectory-hit state.
        callback_hits: Per-element hit counters.
        callback_info: Outcome of the last callback.
    """

    handle: Hashable
    callback: ForesightCallback
    bounds: ElementBounds
    name: str = "unnamed"
    unregister_on_callback: bool = True
    uses_default_hit_slop: bool = True
    is_hovering: bool = False
    is_intersecting_viewport: bool = False
    trajectory_hit: TrajectoryHitData = field(default_factory=TrajectoryHitData)
    callback_hits: CallbackHits = field(default_factory=CallbackHits)
    callback_info: CallbackInfo = field(default_factory=CallbackInfo)

    def snapshot(self) -> ElementSnapshot:
        """Return a frozen, read-only view of the current state."""
        return ElementSnapshot(
            handle=self.handle,
            name=self.name,
            original_rect=self.bounds.original_rect,
            expanded_rect=self.bounds.expanded_rect,
            hit_slop=self.bounds.hit_slop,
            is_hovering=self.is_hovering,
            is_trajectory_hit=self.trajectory_hit.is_trajectory_hit,
            is_intersecting_viewport=self.is_intersecting_viewport,
            unregister_on_callback=self.unregister_on_callback,
            callback_hits=self.callback_hits.copy(),
            fired_count=self.callback_info.fired_count,
            last_status=self.callback_info.last_status,
        )


@dataclass(frozen=True)
class ElementSnapshot:
    """Read-only copy of a ``TrackedElement`` for observers."""

    handle: Hashable
    name: str
    original_rect: Rect
    expanded_rect: Rect
    hit_slop: Rect
    is_hovering: bool
    is_trajectory_hit: bool
    is_intersecting_viewport: bool
    unregister_on_callback: bool
    callback_hits: CallbackHits
    fired_count: int
    last_status: str | None
