"""Tests for Foresight configuration: Settings and the settings store.

Covers default values, clamping, dict loading and serialisation,
immutability, and partial updates through SettingsStore.alter.
"""

from __future__ import annotations

import logging

import pytest

from foresight.config.settings import (
    MAX_HIT_SLOP,
    NUMERIC_SETTING_BOUNDS,
    Settings,
    clamp_number,
    clamp_setting,
    get_default_settings,
)
from foresight.core.settings_store import SettingChange, SettingsStore
from foresight.models.geometry import Rect


class TestGetDefaultSettings:
    """Tests for the get_default_settings factory function."""

    def test_returns_settings_instance(self) -> None:
        """get_default_settings must return a Settings object."""
        assert isinstance(get_default_settings(), Settings)

    def test_position_history_size_default(self) -> None:
        """Default position_history_size is 8."""
        assert get_default_settings().position_history_size == 8

    def test_trajectory_prediction_time_default(self) -> None:
        """Default trajectory_prediction_time is 120 ms."""
        assert get_default_settings().trajectory_prediction_time == 120.0

    def test_scroll_margin_default(self) -> None:
        """Default scroll_margin is 150 px."""
        assert get_default_settings().scroll_margin == 150.0

    def test_tab_offset_default(self) -> None:
        """Default tab_offset is 2."""
        assert get_default_settings().tab_offset == 2

    def test_toggles_default_on(self) -> None:
        """All three predictors are enabled by default."""
        s = get_default_settings()
        assert s.enable_mouse_prediction
        assert s.enable_tab_prediction
        assert s.enable_scroll_prediction
        assert s.debug is False

    def test_default_hit_slop_is_zero(self) -> None:
        """Default hit slop is zero on every edge."""
        assert get_default_settings().default_hit_slop == Rect.uniform(0.0)

    def test_frozen(self) -> None:
        """Settings cannot be mutated in place."""
        s = get_default_settings()
        with pytest.raises(AttributeError):
            s.tab_offset = 5  # type: ignore[misc]


class TestClamping:
    """Tests for clamp_number and clamp_setting."""

    def test_clamp_number_within_range(self) -> None:
        assert clamp_number(5, 0, 10, "x") == 5

    def test_clamp_number_below(self) -> None:
        assert clamp_number(-1, 0, 10, "x") == 0

    def test_clamp_number_above(self) -> None:
        assert clamp_number(11, 0, 10, "x") == 10

    def test_clamp_warns_only_in_debug(self, caplog: pytest.LogCaptureFixture) -> None:
        """The warning names the setting and appears only with debug on."""
        with caplog.at_level(logging.WARNING):
            clamp_number(11, 0, 10, "tab_offset")
            assert caplog.text == ""
            clamp_number(11, 0, 10, "tab_offset", debug=True)
        assert "tab_offset" in caplog.text

    @pytest.mark.parametrize(
        "name,value,expected",
        [
            ("position_history_size", 1, 2),
            ("position_history_size", 100, 30),
            ("trajectory_prediction_time", 5, 10.0),
            ("trajectory_prediction_time", 500, 200.0),
            ("scroll_margin", 0, 10.0),
            ("scroll_margin", 1000, 500.0),
            ("tab_offset", -3, 0),
            ("tab_offset", 50, 20),
        ],
    )
    def test_clamp_setting_bounds(self, name: str, value: float, expected: float) -> None:
        """Every numeric setting clamps to its documented range."""
        assert clamp_setting(name, value) == expected

    def test_integer_settings_are_ints(self) -> None:
        """Integer settings are rounded to int."""
        result = clamp_setting("tab_offset", 3.6)
        assert result == 4
        assert isinstance(result, int)

    def test_bounds_table_covers_numeric_fields(self) -> None:
        assert set(NUMERIC_SETTING_BOUNDS) == {
            "position_history_size",
            "trajectory_prediction_time",
            "scroll_margin",
            "tab_offset",
        }


class TestFromDictAndToDict:
    """Tests for Settings.from_dict / to_dict."""

    def test_unknown_keys_ignored(self) -> None:
        """Unknown keys are dropped rather than raising."""
        s = Settings.from_dict({"tab_offset": 3, "future_option": True})
        assert s.tab_offset == 3

    def test_values_are_clamped(self) -> None:
        s = Settings.from_dict({"trajectory_prediction_time": 1000})
        assert s.trajectory_prediction_time == 200.0

    def test_hit_slop_number(self) -> None:
        s = Settings.from_dict({"default_hit_slop": 12})
        assert s.default_hit_slop == Rect.uniform(12.0)

    def test_hit_slop_dict(self) -> None:
        s = Settings.from_dict(
            {"default_hit_slop": {"top": 1, "left": 2, "right": 3, "bottom": 4}}
        )
        assert s.default_hit_slop == Rect(top=1, left=2, right=3, bottom=4)

    def test_to_dict_round_trip(self) -> None:
        """to_dict output loads back into equal settings."""
        original = Settings(tab_offset=5, scroll_margin=200.0)
        assert Settings.from_dict(original.to_dict()) == original

    def test_to_dict_reports_hook_presence(self) -> None:
        """The callable hook is reported as a bool."""
        s = Settings(on_any_callback_fired=lambda *_: None)
        assert s.to_dict()["on_any_callback_fired"] is True


class TestSettingsStore:
    """Tests for SettingsStore.alter."""

    def test_change_is_reported(self) -> None:
        store = SettingsStore()
        changes = store.alter(tab_offset=4)
        assert changes == [SettingChange("tab_offset", 2, 4)]
        assert store.settings.tab_offset == 4

    def test_equal_value_is_noop(self) -> None:
        """Setting a field to its current value changes nothing."""
        store = SettingsStore()
        before = store.settings
        assert store.alter(tab_offset=2, enable_mouse_prediction=True) == []
        assert store.settings is before

    def test_clamped_value_reported(self) -> None:
        store = SettingsStore()
        changes = store.alter(tab_offset=50)
        assert changes[0].new_value == 20
        assert store.settings.tab_offset == 20

    def test_clamped_to_current_is_noop(self) -> None:
        """A value that clamps to the current value is not a change."""
        store = SettingsStore(Settings(tab_offset=20))
        assert store.alter(tab_offset=99) == []

    def test_none_means_unchanged(self) -> None:
        store = SettingsStore()
        assert store.alter(scroll_margin=None, default_hit_slop=None) == []

    def test_hit_slop_normalised(self) -> None:
        store = SettingsStore()
        changes = store.alter(default_hit_slop=10)
        assert changes[0].new_value == Rect.uniform(10.0)
        assert store.alter(default_hit_slop=Rect.uniform(10.0)) == []

    def test_multiple_fields(self) -> None:
        """Each field is compared independently."""
        store = SettingsStore()
        changes = store.alter(tab_offset=2, enable_tab_prediction=False, scroll_margin=200)
        assert [c.setting for c in changes] == ["scroll_margin", "enable_tab_prediction"]

    def test_unknown_key_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        """Unknown keys are logged and ignored."""
        store = SettingsStore()
        with caplog.at_level(logging.WARNING):
            assert store.alter(bogus=1) == []
        assert "bogus" in caplog.text

    def test_hook_set_and_cleared(self) -> None:
        """The callback hook can be set and then cleared with None."""
        store = SettingsStore()

        def hook(*_: object) -> None:
            return None

        assert len(store.alter(on_any_callback_fired=hook)) == 1
        assert store.settings.on_any_callback_fired is hook
        assert len(store.alter(on_any_callback_fired=None)) == 1
        assert store.settings.on_any_callback_fired is None

    def test_callback_hits_start_empty(self) -> None:
        assert SettingsStore().callback_hits.total == 0

    def test_initial_settings_clamped(self) -> None:
        """Out-of-range constructor values are pulled into bounds."""
        store = SettingsStore(Settings(
            tab_offset=999,
            position_history_size=0,
            scroll_margin=-5,
            trajectory_prediction_time=1000,
            default_hit_slop=Rect(top=-3, left=0, right=5000, bottom=4),
        ))
        settings = store.settings
        assert settings.tab_offset == 20
        assert settings.position_history_size == 2
        assert settings.scroll_margin == 10.0
        assert settings.trajectory_prediction_time == 200.0
        assert settings.default_hit_slop == Rect(top=0, left=0, right=MAX_HIT_SLOP, bottom=4)

    def test_non_boolean_toggle_ignored(self, caplog: pytest.LogCaptureFixture) -> None:
        """A string such as "false" does not flip a boolean setting."""
        store = SettingsStore()
        with caplog.at_level(logging.WARNING):
            assert store.alter(debug="false", enable_tab_prediction="no") == []
        assert store.settings.debug is False
        assert store.settings.enable_tab_prediction is True
        assert "debug" in caplog.text
