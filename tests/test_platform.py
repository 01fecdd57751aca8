"""Tests for foresight.platform: the interface contract and the headless environment.

The headless environment is what every engine test runs on, so its
clock, timer queue, focus movement and bounds batching are checked
here in isolation.
"""

from __future__ import annotations

from collections.abc import Hashable, Sequence
from unittest.mock import MagicMock

import pytest

from foresight.models.geometry import Rect
from foresight.platform.headless import HeadlessEnvironment
from foresight.platform.interface import BoundsChange, EnvironmentInterface


class _RecordingListener:
    """EnvironmentListener that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def on_pointer_move(self, x: float, y: float, timestamp: float) -> None:
        self.calls.append(("move", x, y, timestamp))

    def on_key_down(self, key: str, shift: bool) -> None:
        self.calls.append(("key", key, shift))

    def on_focus_in(self, handle: Hashable) -> None:
        self.calls.append(("focus", handle))

    def on_structure_changed(self, removed_nodes: bool) -> None:
        self.calls.append(("structure", removed_nodes))

    def on_bounds_changed(self, changes: Sequence[BoundsChange]) -> None:
        self.calls.append(("bounds", list(changes)))


@pytest.fixture()
def env() -> HeadlessEnvironment:
    """Return a headless environment with three focusable elements."""
    e = HeadlessEnvironment(viewport_size=(1000, 800))
    e.add_element("a", Rect(top=0, left=0, right=10, bottom=10))
    e.add_element("b", Rect(top=100, left=0, right=10, bottom=110))
    e.add_element("c", Rect(top=200, left=0, right=10, bottom=210))
    return e


class TestEnvironmentInterface:
    """Tests for the abstract base class."""

    def test_cannot_instantiate(self) -> None:
        with pytest.raises(TypeError):
            EnvironmentInterface()  # type: ignore[abstract]

    def test_headless_is_subclass(self) -> None:
        assert issubclass(HeadlessEnvironment, EnvironmentInterface)

    def test_prediction_supported_flag(self) -> None:
        assert HeadlessEnvironment().supports_prediction() is True
        assert HeadlessEnvironment(prediction_supported=False).supports_prediction() is False


class TestHeadlessClock:
    """Tests for the manual clock and timer queue."""

    def test_start_time(self) -> None:
        assert HeadlessEnvironment(start_time=50).now() == 50

    def test_timers_run_in_due_order(self) -> None:
        env = HeadlessEnvironment()
        order: list[str] = []
        env.call_later(20, lambda: order.append("late"))
        env.call_later(10, lambda: order.append("early"))
        env.advance(25)
        assert order == ["early", "late"]
        assert env.now() == 25

    def test_timer_not_run_before_due(self) -> None:
        env = HeadlessEnvironment()
        callback = MagicMock()
        env.call_later(100, callback)
        env.advance(99)
        callback.assert_not_called()
        env.advance(1)
        callback.assert_called_once()

    def test_cancelled_timer_skipped(self) -> None:
        env = HeadlessEnvironment()
        callback = MagicMock()
        task = env.call_later(10, callback)
        task.cancel()
        assert env.pending_timer_count == 0
        env.advance(20)
        callback.assert_not_called()

    def test_clock_is_monotonic(self) -> None:
        env = HeadlessEnvironment(start_time=100)
        env.advance_to(50)
        assert env.now() == 100

    def test_timer_sees_due_time(self) -> None:
        """During a callback the clock reads the task's due time."""
        env = HeadlessEnvironment()
        seen: list[float] = []
        env.call_later(30, lambda: seen.append(env.now()))
        env.advance(100)
        assert seen == [30]


class TestHeadlessInput:
    """Tests for input delivery."""

    def test_nothing_delivered_without_listener(self, env: HeadlessEnvironment) -> None:
        env.move_pointer(1, 1)
        assert not env.is_listening

    def test_pointer_move_with_time(self, env: HeadlessEnvironment) -> None:
        listener = _RecordingListener()
        env.connect(listener)
        env.move_pointer(5, 6, at=40)
        assert listener.calls == [("move", 5, 6, 40)]

    def test_tab_moves_focus_forward_and_wraps(self, env: HeadlessEnvironment) -> None:
        assert env.tab() == "a"
        assert env.tab() == "b"
        assert env.tab() == "c"
        assert env.tab() == "a"

    def test_shift_tab_starts_at_end(self, env: HeadlessEnvironment) -> None:
        assert env.tab(shift=True) == "c"
        assert env.tab(shift=True) == "b"

    def test_tab_emits_key_then_focus(self, env: HeadlessEnvironment) -> None:
        listener = _RecordingListener()
        env.connect(listener)
        env.tab(shift=True)
        assert listener.calls == [("key", "Tab", True), ("focus", "c")]

    def test_non_focusable_skipped(self) -> None:
        env = HeadlessEnvironment()
        env.add_element("x", Rect.from_xywh(0, 0, 1, 1), focusable=False)
        env.add_element("y", Rect.from_xywh(0, 0, 1, 1))
        assert env.focusable_elements() == ["y"]


class TestHeadlessStructure:
    """Tests for tree changes and bounds batches."""

    def test_add_and_remove_notify(self, env: HeadlessEnvironment) -> None:
        listener = _RecordingListener()
        env.connect(listener)
        env.add_element("d", Rect.from_xywh(0, 0, 1, 1))
        env.remove_element("d")
        assert listener.calls == [("structure", False), ("structure", True)]
        assert not env.is_connected("d")
        assert "d" not in env.focusable_elements()

    def test_scroll_reports_one_batch_for_observed(self, env: HeadlessEnvironment) -> None:
        listener = _RecordingListener()
        env.connect(listener)
        env.observe("a")
        env.observe("c")
        env.scroll_by(dy=100)
        assert len(listener.calls) == 1
        kind, changes = listener.calls[0]
        assert kind == "bounds"
        assert [c.handle for c in changes] == ["a", "c"]
        assert changes[1].rect == Rect(top=100, left=0, right=10, bottom=110)
        # "a" scrolled off the top.
        assert changes[0].is_intersecting is False
        assert changes[1].is_intersecting is True

    def test_set_bounds_only_for_observed(self, env: HeadlessEnvironment) -> None:
        listener = _RecordingListener()
        env.connect(listener)
        env.set_bounds("b", Rect.from_xywh(0, 0, 5, 5))
        assert listener.calls == []
        env.observe("b")
        env.set_bounds("b", Rect.from_xywh(0, 0, 6, 6))
        assert len(listener.calls) == 1

    def test_disconnect_clears_observed(self, env: HeadlessEnvironment) -> None:
        env.connect(_RecordingListener())
        env.observe("a")
        env.disconnect()
        assert env.observed == frozenset()
        assert not env.is_listening
