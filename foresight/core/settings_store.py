"""Settings store: the single mutation point for engine configuration.

Holds the current immutable ``Settings`` and the global ``CallbackHits``
aggregate.  ``alter`` takes a partial update, compares each field
independently against its current value, clamps numeric fields into
range, and replaces the ``Settings`` instance only if something actually
changed.  The list of ``SettingChange`` records it returns tells the
caller which side effects to run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from typing import Any

from foresight.config.settings import (
    BOOLEAN_SETTINGS,
    NUMERIC_SETTING_BOUNDS,
    Settings,
    clamp_setting,
)
from foresight.core.geometry import normalize_hit_slop, rects_equal
from foresight.models.element import CallbackHits

logger = logging.getLogger(__name__)

_SETTING_NAMES = frozenset(f.name for f in fields(Settings))


def _clamped(settings: Settings) -> Settings:
    """Return *settings* with every numeric field clamped and the hit slop normalised."""
    updates: dict[str, Any] = {
        name: clamp_setting(name, getattr(settings, name), settings.debug)
        for name in NUMERIC_SETTING_BOUNDS
    }
    updates["default_hit_slop"] = normalize_hit_slop(settings.default_hit_slop, settings.debug)
    return replace(settings, **updates)


@dataclass(frozen=True)
class SettingChange:
    """One accepted setting update.

    Attributes:
        setting: Field name.
        old_value: Value before the update.
        new_value: Value after clamping / normalisation.
    """

    setting: str
    old_value: Any
    new_value: Any


class SettingsStore:
    """Validated configuration plus the global callback-hit counter.

    Example::

        store = SettingsStore()
        changes = store.alter(tab_offset=50)   # clamped to 20
        assert store.settings.tab_offset == 20
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = _clamped(settings if settings is not None else Settings())
        self._callback_hits = CallbackHits()

    @property
    def settings(self) -> Settings:
        """The current immutable settings."""
        return self._settings

    @property
    def callback_hits(self) -> CallbackHits:
        """The global callback-hit aggregate."""
        return self._callback_hits

    def alter(self, **changes: Any) -> list[SettingChange]:
        """Apply a partial settings update.

        Args:
            **changes: Any subset of ``Settings`` field names.  ``None``
                values mean "leave unchanged" (except for
                ``on_any_callback_fired``, where None clears the hook).

        Returns:
            The accepted changes, in field order.  Empty if nothing
            differed from the current values.
        """
        current = self._settings
        requested_debug = changes.get("debug")
        debug = requested_debug if isinstance(requested_debug, bool) else current.debug
        accepted: list[SettingChange] = []
        updates: dict[str, Any] = {}

        for name in sorted(set(changes) - _SETTING_NAMES):
            logger.warning("Ignoring unknown setting %r", name)

        for f in fields(Settings):
            if f.name not in changes:
                continue
            value = changes[f.name]
            old = getattr(current, f.name)

            if f.name in NUMERIC_SETTING_BOUNDS:
                if value is None:
                    continue
                new = clamp_setting(f.name, value, debug)
                if new == old:
                    continue
            elif f.name in BOOLEAN_SETTINGS:
                if value is None:
                    continue
                if not isinstance(value, bool):
                    logger.warning(
                        "Ignoring non-boolean value %r for setting %r", value, f.name,
                    )
                    continue
                if value == old:
                    continue
                new = value
            elif f.name == "default_hit_slop":
                if value is None:
                    continue
                new = normalize_hit_slop(value, debug)
                if rects_equal(new, old):
                    continue
            else:
                if value is old:
                    continue
                new = value

            updates[f.name] = new
            accepted.append(SettingChange(f.name, old, new))

        if updates:
            self._settings = replace(current, **updates)
            for change in accepted:
                logger.debug(
                    "Setting %s changed: %r -> %r",
                    change.setting, change.old_value, change.new_value,
                )
        return accepted

    def __repr__(self) -> str:
        return f"SettingsStore(total_hits={self._callback_hits.total})"
