"""Trajectory predictor: linear extrapolation of the pointer path.

Keeps a bounded FIFO of recent pointer samples and projects the pointer
forward along its average velocity.  The velocity is taken between the
oldest and the newest retained sample, not between adjacent samples:
that trades a little responsiveness for a lot of jitter rejection.

This module depends only on ``foresight.models.geometry``.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

import numpy as np

from foresight.models.geometry import Point, PositionSample


def predict_next_position(
    current: Point,
    history: deque[PositionSample],
    history_size: int,
    prediction_time_ms: float,
    now: float,
) -> Point:
    """Record *current* and extrapolate where the pointer will be.

    *history* is mutated: ``(current, now)`` is appended and the oldest
    samples are dropped until at most *history_size* remain.

    Args:
        current: The pointer position just observed.
        history: Previous samples, oldest first.
        history_size: Maximum number of samples to retain.
        prediction_time_ms: How far ahead to extrapolate.
        now: Timestamp of *current* in milliseconds.

    Returns:
        The predicted point, or *current* unchanged when fewer than two
        samples exist or the oldest and newest share a timestamp.
    """
    history.append(PositionSample(current, now))
    while len(history) > history_size:
        history.popleft()

    if len(history) < 2:
        return current

    first = history[0]
    last = history[-1]
    dt = last.time - first.time
    if dt == 0:
        return current

    velocity = (np.asarray(last.point) - np.asarray(first.point)) / dt
    predicted = np.asarray(current) + velocity * prediction_time_ms
    return Point(float(predicted[0]), float(predicted[1]))


@dataclass
class TrajectoryState:
    """Pointer history plus the latest observed and predicted points.

    Attributes:
        positions: Recent samples, oldest first, bounded by
            ``positions.maxlen``.
        current_point: Last observed pointer position.
        predicted_point: Extrapolated position for the current sample.
        has_pointer: False until the first pointer move arrives.
    """

    positions: deque[PositionSample] = field(default_factory=lambda: deque(maxlen=8))
    current_point: Point = Point(0.0, 0.0)
    predicted_point: Point = Point(0.0, 0.0)
    has_pointer: bool = False


class TrajectoryPredictor:
    """Owns the pointer ``TrajectoryState`` and keeps it up to date.

    Example::

        predictor = TrajectoryPredictor(history_size=8)
        predicted = predictor.update(Point(10, 20), 16.0, True, 120.0)
    """

    def __init__(self, history_size: int) -> None:
        """Initialise with an empty history bounded by *history_size*."""
        self._state = TrajectoryState(positions=deque(maxlen=history_size))

    @property
    def state(self) -> TrajectoryState:
        """The live trajectory state."""
        return self._state

    @property
    def history_size(self) -> int:
        """Current bound on the history length."""
        return self._state.positions.maxlen or 0

    def resize(self, history_size: int) -> None:
        """Change the history bound, keeping the newest samples."""
        if history_size == self.history_size:
            return
        self._state.positions = deque(self._state.positions, maxlen=history_size)

    def update(
        self,
        point: Point,
        timestamp: float,
        enabled: bool,
        prediction_time_ms: float,
    ) -> Point:
        """Record a pointer sample and refresh the predicted point.

        Args:
            point: Observed pointer position.
            timestamp: Observation time in milliseconds.
            enabled: When False, no sample is recorded and the
                predicted point equals *point*.
            prediction_time_ms: Extrapolation horizon.

        Returns:
            The new predicted point.
        """
        state = self._state
        state.current_point = point
        state.has_pointer = True
        if enabled:
            state.predicted_point = predict_next_position(
                point,
                state.positions,
                self.history_size,
                prediction_time_ms,
                timestamp,
            )
        else:
            state.predicted_point = point
        return state.predicted_point

    def reset(self) -> None:
        """Forget all samples and the last known pointer position."""
        size = self.history_size
        self._state = TrajectoryState(positions=deque(maxlen=size))

    def __repr__(self) -> str:
        return (
            f"TrajectoryPredictor(samples={len(self._state.positions)}, "
            f"history_size={self.history_size})"
        )
