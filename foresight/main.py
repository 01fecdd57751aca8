"""Foresight entry point: replay a recorded interaction trace.

Loads a JSON trace describing a viewport, a set of elements and a
sequence of input events, replays it through a ``ForesightManager``
running on a ``HeadlessEnvironment``, and prints which callbacks fired.

Typical usage::

    python -m foresight.main trace.json --verbose

Trace format::

    {
      "settings": {"trajectory_prediction_time": 80},
      "viewport": [1280, 800],
      "elements": [
        {"id": "buy", "rect": {"top": 100, "left": 300, "right": 400,
                               "bottom": 140},
         "hit_slop": 10, "unregister_on_callback": false}
      ],
      "events": [
        {"type": "pointer", "x": 0, "y": 120, "t": 0},
        {"type": "pointer", "x": 50, "y": 120, "t": 16},
        {"type": "tab"},
        {"type": "scroll", "dy": 120},
        {"type": "wait", "ms": 250}
      ]
    }

Programmatic usage::

    from foresight.main import load_trace, run_trace

    result = run_trace(load_trace("trace.json"))
    print(result.fired)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from foresight.config.settings import Settings
from foresight.core.manager import ForesightManager
from foresight.models.element import CallbackHits
from foresight.models.events import ForesightEvent, ForesightEventType
from foresight.models.geometry import Rect
from foresight.platform.headless import HeadlessEnvironment

logger = logging.getLogger(__name__)

_EVENT_TYPES = frozenset(
    {"pointer", "key", "focus", "tab", "scroll", "bounds", "remove", "wait"}
)


class TraceError(ValueError):
    """Raised when a trace file is malformed."""


@dataclass
class FiredCallback:
    """One callback invocation observed during replay.

    Attributes:
        time: Clock time in milliseconds.
        element: Element name.
        hit_type: ``kind/subtype`` label, e.g. ``mouse/trajectory``.
    """

    time: float
    element: str
    hit_type: str


@dataclass
class ReplayResult:
    """Outcome of replaying a trace.

    Attributes:
        fired: Callbacks in firing order.
        registered: Number of elements registered at the start.
        remaining: Names of elements still registered at the end.
        callback_hits: Global hit counters.
        duration_ms: Final clock time.
    """

    fired: list[FiredCallback] = field(default_factory=list)
    registered: int = 0
    remaining: list[str] = field(default_factory=list)
    callback_hits: CallbackHits = field(default_factory=CallbackHits)
    duration_ms: float = 0.0


# ---------------------------------------------------------------------------
# Trace loading
# ---------------------------------------------------------------------------


def load_trace(path: str | Path) -> dict[str, Any]:
    """Read and validate a trace file.

    Raises:
        TraceError: If the file is missing, not JSON, or malformed.
    """
    trace_path = Path(path)
    try:
        data = json.loads(trace_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise TraceError(f"Cannot read trace {trace_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise TraceError(f"Trace {trace_path} is not valid JSON: {exc}") from exc
    validate_trace(data)
    return data


def validate_trace(data: Any) -> None:
    """Check the structure of a decoded trace.

    Raises:
        TraceError: On the first structural problem found.
    """
    if not isinstance(data, dict):
        raise TraceError("Trace must be a JSON object")
    elements = data.get("elements", [])
    if not isinstance(elements, list):
        raise TraceError("'elements' must be a list")
    seen: set[str] = set()
    for index, element in enumerate(elements):
        if not isinstance(element, dict) or "id" not in element or "rect" not in element:
            raise TraceError(f"Element {index} needs 'id' and 'rect'")
        if element["id"] in seen:
            raise TraceError(f"Duplicate element id {element['id']!r}")
        seen.add(element["id"])
        _parse_rect(element["rect"])
    events = data.get("events", [])
    if not isinstance(events, list):
        raise TraceError("'events' must be a list")
    for index, event in enumerate(events):
        if not isinstance(event, dict) or event.get("type") not in _EVENT_TYPES:
            raise TraceError(f"Event {index} has an unknown type")


def _parse_rect(raw: Any) -> Rect:
    try:
        if isinstance(raw, dict):
            return Rect(
                top=float(raw["top"]),
                left=float(raw["left"]),
                right=float(raw["right"]),
                bottom=float(raw["bottom"]),
            )
        if isinstance(raw, (list, tuple)) and len(raw) == 4:
            return Rect.from_xywh(*(float(v) for v in raw))
    except KeyError as exc:
        raise TraceError(f"Rect {raw!r} is missing edge {exc}") from exc
    except (TypeError, ValueError) as exc:
        raise TraceError(f"Rect {raw!r} has a non-numeric value") from exc
    raise TraceError(f"Invalid rect: {raw!r}")


def _parse_hit_slop(raw: Any) -> float | Rect | None:
    if raw is None or isinstance(raw, (int, float)):
        return raw
    return _parse_rect(raw)


# ---------------------------------------------------------------------------
# Replay
# ---------------------------------------------------------------------------


def run_trace(trace: dict[str, Any]) -> ReplayResult:
    """Replay *trace* on a fresh headless environment.

    Args:
        trace: A decoded, validated trace.

    Returns:
        A ``ReplayResult`` describing what fired.
    """
    viewport = trace.get("viewport", (1280.0, 800.0))
    env = HeadlessEnvironment(viewport_size=(float(viewport[0]), float(viewport[1])))
    settings = Settings.from_dict(trace.get("settings", {}))
    manager = ForesightManager(env, settings)
    result = ReplayResult()

    def _record(event: ForesightEvent) -> None:
        result.fired.append(FiredCallback(
            time=event.timestamp,
            element=event.data["element"].name,
            hit_type=str(event.data["hit_type"]),
        ))

    manager.add_event_listener(ForesightEventType.CALLBACK_FIRED, _record)

    for entry in trace.get("elements", []):
        env.add_element(
            entry["id"],
            _parse_rect(entry["rect"]),
            focusable=entry.get("focusable", True),
        )
    for entry in trace.get("elements", []):
        if not entry.get("register", True):
            continue
        registration = manager.register(
            entry["id"],
            _noop_callback,
            hit_slop=_parse_hit_slop(entry.get("hit_slop")),
            name=entry.get("name", entry["id"]),
            unregister_on_callback=entry.get("unregister_on_callback", True),
        )
        if registration.is_registered:
            result.registered += 1
    logger.info("Registered %d element(s)", result.registered)

    for event in trace.get("events", []):
        _apply_event(env, event)

    snapshot = manager.get_snapshot()
    result.remaining = [e.name for e in snapshot.elements]
    result.callback_hits = snapshot.callback_hits
    result.duration_ms = env.now()
    manager.shutdown()
    return result


def _noop_callback() -> None:
    return None


def _apply_event(env: HeadlessEnvironment, event: dict[str, Any]) -> None:
    kind = event["type"]
    try:
        if kind == "pointer":
            env.move_pointer(float(event["x"]), float(event["y"]), at=event.get("t"))
        elif kind == "key":
            env.press_key(event["key"], shift=bool(event.get("shift", False)))
        elif kind == "focus":
            env.focus(event["id"])
        elif kind == "tab":
            env.tab(shift=bool(event.get("shift", False)))
        elif kind == "scroll":
            env.scroll_by(float(event.get("dx", 0.0)), float(event.get("dy", 0.0)))
        elif kind == "bounds":
            env.set_bounds(event["id"], _parse_rect(event["rect"]))
        elif kind == "remove":
            env.remove_element(event["id"])
        elif kind == "wait":
            env.advance(float(event["ms"]))
    except TraceError:
        raise
    except KeyError as exc:
        raise TraceError(f"Event {event!r} is missing field {exc}") from exc
    except (TypeError, ValueError) as exc:
        raise TraceError(f"Event {event!r} has an invalid value: {exc}") from exc


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def main() -> None:
    """Parse CLI arguments, replay the trace, and print results."""
    parser = argparse.ArgumentParser(
        prog="foresight",
        description=(
            "Foresight -- replay a recorded interaction trace through "
            "the intent-prediction engine."
        ),
    )
    parser.add_argument(
        "trace",
        help="Path to a JSON trace file.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging.",
    )

    args = parser.parse_args()

    # -- Logging setup ---------------------------------------------------
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # -- Load and replay -------------------------------------------------
    try:
        trace = load_trace(args.trace)
        logger.info("Replaying trace: %s", args.trace)
        result = run_trace(trace)
    except TraceError as exc:
        logger.error("%s", exc)
        sys.exit(1)

    _print_result_summary(result)
    sys.exit(0)


def _print_result_summary(result: ReplayResult) -> None:
    """Print a human-readable summary of the replay.

    Args:
        result: The ``ReplayResult`` returned by ``run_trace``.
    """
    separator = "-" * 60
    print(separator)
    print(f"Registered: {result.registered}")
    print(f"Callbacks:  {result.callback_hits.total}")
    for fired in result.fired:
        print(f"  {fired.time:8.1f} ms  {fired.element:<20} {fired.hit_type}")
    per_element = Counter(fired.element for fired in result.fired)
    for name, count in sorted(per_element.items()):
        print(f"Hits:       {name:<20} {count}")
    print(f"Remaining:  {', '.join(result.remaining) or '-'}")
    print(f"Duration:   {result.duration_ms:.0f} ms")
    print(separator)


if __name__ == "__main__":
    main()
