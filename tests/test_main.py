"""Tests for foresight.main: trace loading, replay, and the CLI entry point."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import pytest

from foresight.main import FiredCallback, TraceError, load_trace, main, run_trace, validate_trace


def _trace(**overrides: Any) -> dict[str, Any]:
    """Return a trace where a pointer sweeps right toward one button."""
    trace: dict[str, Any] = {
        "viewport": [1280, 800],
        "elements": [
            {"id": "buy", "rect": {"top": 100, "left": 300, "right": 400, "bottom": 140}},
        ],
        "events": [
            {"type": "pointer", "x": 0, "y": 120, "t": 0},
            {"type": "pointer", "x": 100, "y": 120, "t": 100},
            {"type": "pointer", "x": 200, "y": 120, "t": 200},
        ],
    }
    trace.update(overrides)
    return trace


@pytest.fixture()
def trace_file(tmp_path: Path) -> Path:
    path = tmp_path / "trace.json"
    path.write_text(json.dumps(_trace()), encoding="utf-8")
    return path


class TestValidateTrace:
    """Tests for structural validation."""

    def test_valid(self) -> None:
        validate_trace(_trace())

    def test_not_an_object(self) -> None:
        with pytest.raises(TraceError):
            validate_trace([])

    def test_element_without_rect(self) -> None:
        with pytest.raises(TraceError):
            validate_trace(_trace(elements=[{"id": "x"}]))

    def test_duplicate_ids(self) -> None:
        element = {"id": "x", "rect": [0, 0, 1, 1]}
        with pytest.raises(TraceError):
            validate_trace(_trace(elements=[element, element]))

    def test_unknown_event_type(self) -> None:
        with pytest.raises(TraceError):
            validate_trace(_trace(events=[{"type": "teleport"}]))

    def test_rect_missing_edge(self) -> None:
        with pytest.raises(TraceError, match="left"):
            validate_trace(_trace(elements=[{"id": "a", "rect": {"top": 1}}]))

    def test_rect_non_numeric(self) -> None:
        with pytest.raises(TraceError):
            validate_trace(_trace(elements=[{"id": "a", "rect": [0, 0, "wide", 10]}]))


class TestLoadTrace:
    """Tests for reading trace files."""

    def test_load(self, trace_file: Path) -> None:
        assert load_trace(trace_file)["elements"][0]["id"] == "buy"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(TraceError):
            load_trace(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(TraceError):
            load_trace(path)


class TestRunTrace:
    """Tests for replaying traces."""

    def test_trajectory_hit(self) -> None:
        result = run_trace(_trace())
        assert result.registered == 1
        assert result.fired == [FiredCallback(200.0, "buy", "mouse/trajectory")]
        assert result.remaining == []
        assert result.duration_ms == 200.0

    def test_persistent_element_remains(self) -> None:
        trace = _trace()
        trace["elements"][0]["unregister_on_callback"] = False
        result = run_trace(trace)
        assert result.remaining == ["buy"]
        assert result.callback_hits.total == 1

    def test_settings_applied(self) -> None:
        """A short horizon keeps the prediction short of the button."""
        result = run_trace(_trace(settings={"trajectory_prediction_time": 50}))
        assert result.fired == []

    def test_tab_and_wait(self) -> None:
        trace = _trace(
            elements=[
                {"id": "a", "rect": [0, 0, 10, 10]},
                {"id": "b", "rect": [0, 20, 10, 10], "unregister_on_callback": False},
            ],
            events=[{"type": "tab"}, {"type": "wait", "ms": 30}],
        )
        result = run_trace(trace)
        assert [f.element for f in result.fired] == ["a", "b"]
        assert result.duration_ms == 30.0

    def test_missing_event_field(self) -> None:
        with pytest.raises(TraceError):
            run_trace(_trace(events=[{"type": "pointer", "x": 1}]))

    def test_unvalidated_bad_rect(self) -> None:
        """A trace that skipped validation still fails with TraceError."""
        with pytest.raises(TraceError):
            run_trace({"elements": [{"id": "a", "rect": {"top": 1}}], "events": []})

    def test_non_numeric_event_field(self) -> None:
        with pytest.raises(TraceError):
            run_trace(_trace(events=[{"type": "pointer", "x": "x", "y": 1}]))


class TestMain:
    """Tests for the CLI entry point."""

    def test_success_exit_code(
        self,
        trace_file: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setattr(sys, "argv", ["foresight", str(trace_file)])
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert "mouse/trajectory" in out
        assert "Registered: 1" in out

    def test_invalid_trace_exit_code(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        path = tmp_path / "bad.json"
        path.write_text("[]", encoding="utf-8")
        monkeypatch.setattr(sys, "argv", ["foresight", str(path)])
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1

    def test_bad_rect_exit_code(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        path = tmp_path / "bad_rect.json"
        path.write_text(
            json.dumps(_trace(elements=[{"id": "a", "rect": {"top": 1}}])),
            encoding="utf-8",
        )
        monkeypatch.setattr(sys, "argv", ["foresight", str(path)])
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1
