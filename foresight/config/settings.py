"""Configuration defaults and bounds for the Foresight prediction engine.

Provides the ``Settings`` dataclass that holds every tunable parameter
for the trajectory, scroll and tab predictors, plus the clamp ranges
that every numeric setting must respect.

Typical usage::

    from foresight.config.settings import get_default_settings

    settings = get_default_settings()
    print(settings.trajectory_prediction_time)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, fields
from typing import Any

from foresight.models.geometry import Rect

logger = logging.getLogger(__name__)

# -- Fixed engine constants ---------------------------------------------------

TRAJECTORY_HIT_EXPIRATION_MS: float = 200.0
"""How long a trajectory hit stays active unless re-confirmed."""

SCROLL_DIRECTION_THRESHOLD_PX: float = 1.0
"""Rect displacement at or below this is treated as sub-pixel noise."""

MIN_HIT_SLOP: float = 0.0
MAX_HIT_SLOP: float = 2000.0

# -- Numeric setting bounds ---------------------------------------------------

NUMERIC_SETTING_BOUNDS: dict[str, tuple[float, float, type]] = {
    "position_history_size": (2, 30, int),
    "trajectory_prediction_time": (10, 200, float),
    "scroll_margin": (10, 500, float),
    "tab_offset": (0, 20, int),
}
"""``name -> (min, max, type)`` for every clamped setting."""

BOOLEAN_SETTINGS: tuple[str, ...] = (
    "enable_mouse_prediction",
    "enable_tab_prediction",
    "enable_scroll_prediction",
    "debug",
)


def clamp_number(
    value: float,
    lower: float,
    upper: float,
    setting_name: str,
    debug: bool = False,
) -> float:
    """Clamp *value* into ``[lower, upper]``.

    Args:
        value: The requested value.
        lower: Inclusive lower bound.
        upper: Inclusive upper bound.
        setting_name: Name used in the diagnostic message.
        debug: When true, a warning is logged if clamping occurs.

    Returns:
        The clamped value.
    """
    if debug:
        if value < lower:
            logger.warning(
                "%r value %s is below minimum bound %s, clamping to %s",
                setting_name, value, lower, lower,
            )
        elif value > upper:
            logger.warning(
                "%r value %s is above maximum bound %s, clamping to %s",
                setting_name, value, upper, upper,
            )
    return min(max(value, lower), upper)


def clamp_setting(name: str, value: float, debug: bool = False) -> float:
    """Clamp and coerce a numeric setting using ``NUMERIC_SETTING_BOUNDS``.

    Raises:
        KeyError: If *name* is not a numeric setting.
    """
    lower, upper, kind = NUMERIC_SETTING_BOUNDS[name]
    clamped = clamp_number(value, lower, upper, name, debug)
    return kind(round(clamped)) if kind is int else kind(clamped)


@dataclass(frozen=True)
class Settings:
    """Immutable configuration for the prediction engine.

    A new instance replaces the old one on every accepted change, so a
    snapshot handed to an observer never changes underneath it.

    Attributes:
        position_history_size: Number of pointer samples kept for the
            velocity estimate.  Larger values smooth jitter at the cost
            of responsiveness.  Clamped to ``[2, 30]``.
        trajectory_prediction_time: How far ahead, in milliseconds, the
            pointer trajectory is extrapolated.  Clamped to ``[10, 200]``.
        scroll_margin: Distance in pixels the pointer is projected along
            the scroll axis.  Clamped to ``[10, 500]``.
        tab_offset: Number of focus stops ahead of (or behind) the newly
            focused element that get a callback.  Clamped to ``[0, 20]``.
        enable_mouse_prediction: When false only physical hover counts.
        enable_tab_prediction: Toggles tab-navigation prediction.
        enable_scroll_prediction: When false a scroll only triggers a
            plain hover test.
        debug: Enables clamp diagnostics.
        default_hit_slop: Hit slop applied to elements registered
            without their own.
        on_any_callback_fired: Hook invoked after every element callback
            with ``(element_snapshot, hit_type)``.
    """

    # -- Trajectory predictor -------------------------------------------------
    position_history_size: int = 8
    trajectory_prediction_time: float = 120.0

    # -- Scroll predictor -----------------------------------------------------
    scroll_margin: float = 150.0

    # -- Tab predictor --------------------------------------------------------
    tab_offset: int = 2

    # -- Toggles --------------------------------------------------------------
    enable_mouse_prediction: bool = True
    enable_tab_prediction: bool = True
    enable_scroll_prediction: bool = True
    debug: bool = False

    # -- Elements -------------------------------------------------------------
    default_hit_slop: Rect = field(default_factory=lambda: Rect.uniform(0.0))
    on_any_callback_fired: Callable[..., Any] | None = None

    # -- Factory & serialisation ----------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Create a ``Settings`` instance from a plain dictionary.

        Unknown keys are silently ignored.  Numeric values are clamped
        into their bounds, and ``default_hit_slop`` may be a number or a
        ``{top, left, right, bottom}`` mapping.

        Args:
            data: Dictionary whose keys correspond to ``Settings``
                field names.

        Returns:
            A new ``Settings`` instance populated from *data*, with
            defaults filling any missing keys.
        """
        known_names = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in known_names}
        # to_dict reports the hook as a bool; only a callable is kept.
        if not callable(filtered.get("on_any_callback_fired")):
            filtered.pop("on_any_callback_fired", None)
        debug = bool(filtered.get("debug", False))
        for name in NUMERIC_SETTING_BOUNDS:
            if name in filtered:
                filtered[name] = clamp_setting(name, filtered[name], debug)

        slop = filtered.get("default_hit_slop")
        if isinstance(slop, dict):
            filtered["default_hit_slop"] = Rect(**slop)
        if "default_hit_slop" in filtered:
            # Imported here: core.geometry depends on this module.
            from foresight.core.geometry import normalize_hit_slop

            filtered["default_hit_slop"] = normalize_hit_slop(
                filtered["default_hit_slop"], debug,
            )
        return cls(**filtered)

    def to_dict(self) -> dict[str, Any]:
        """Serialise the settings to a plain dictionary.

        ``default_hit_slop`` becomes a nested dict; the callback hook is
        reported only as whether one is set.

        Returns:
            A dictionary mapping every field name to its current value.
        """
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["default_hit_slop"] = self.default_hit_slop.to_dict()
        data["on_any_callback_fired"] = self.on_any_callback_fired is not None
        return data


def get_default_settings() -> Settings:
    """Return a ``Settings`` instance with all default values.

    Returns:
        A freshly constructed ``Settings`` with default values.
    """
    return Settings()
