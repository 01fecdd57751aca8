"""Events emitted by the ForesightManager to interested listeners.

A ``ForesightEvent`` records something the engine did at a specific
clock time: an element registering or leaving, a callback firing, a new
pointer or scroll prediction, or a settings change.  The debug observer
and other tooling subscribe to these instead of polling.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ForesightEventType(Enum):
    """Classification of manager events.

    Attributes:
        ELEMENT_REGISTERED: A handle was added to the registry.
        ELEMENT_UNREGISTERED: A handle left the registry.
        ELEMENT_DATA_UPDATED: Bounds, visibility or hit state changed.
        CALLBACK_FIRED: An element's callback was invoked.
        MOUSE_TRAJECTORY_UPDATE: A pointer move produced a new prediction.
        SCROLL_TRAJECTORY_UPDATE: A scroll batch produced a prediction.
        SETTINGS_CHANGED: ``alter_settings`` changed at least one field.
    """

    ELEMENT_REGISTERED = "element_registered"
    ELEMENT_UNREGISTERED = "element_unregistered"
    ELEMENT_DATA_UPDATED = "element_data_updated"
    CALLBACK_FIRED = "callback_fired"
    MOUSE_TRAJECTORY_UPDATE = "mouse_trajectory_update"
    SCROLL_TRAJECTORY_UPDATE = "scroll_trajectory_update"
    SETTINGS_CHANGED = "settings_changed"


@dataclass
class ForesightEvent:
    """A single manager event.

    The ``data`` dict carries event-specific payload, for example:

    * ``element`` (ElementSnapshot): for element and callback events.
    * ``reason`` (UnregisterReason): for ``ELEMENT_UNREGISTERED``.
    * ``hit_type`` (CallbackHitType): for ``CALLBACK_FIRED``.
    * ``updated`` (list[str]): changed parts for ``ELEMENT_DATA_UPDATED``.
    * ``current_point`` / ``predicted_point`` (Point): for trajectory
      updates; ``direction`` (ScrollDirection) for scroll updates.
    * ``changes`` (list[SettingChange]): for ``SETTINGS_CHANGED``.

    Attributes:
        type: The kind of event.
        timestamp: Clock time in milliseconds.
        data: Event-specific payload.
    """

    type: ForesightEventType
    timestamp: float
    data: dict[str, Any] = field(default_factory=dict)
