"""Focus-order index: cached tab order with a predictive index lookup.

Computing the focusable set is expensive in a real UI tree, so the
index keeps an ordered snapshot and only recomputes it after an
invalidation or a lookup miss.  Invalidation bumps a monotonic
generation counter, and the snapshot is rebuilt lazily on the next use
whose consumed generation no longer matches.

Lookups first try the slot adjacent to the last focused index in the
tab direction, which is right for plain sequential tabbing, and fall
back to a full scan otherwise (mouse clicks, programmatic focus).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Sequence

logger = logging.getLogger(__name__)


def get_focused_element_index(
    is_reversed: bool,
    last_focused_index: int | None,
    elements: Sequence[Hashable],
    target: Hashable,
) -> int:
    """Find *target* in *elements*, trying the predicted slot first.

    Args:
        is_reversed: True for Shift+Tab (backwards traversal).
        last_focused_index: Index of the previously focused element, or
            None if unknown.
        elements: Focusable handles in tab order.
        target: The handle that just received focus.

    Returns:
        The index of *target*, or -1 if it is not in *elements*.
    """
    if last_focused_index is not None:
        predicted = last_focused_index - 1 if is_reversed else last_focused_index + 1
        if 0 <= predicted < len(elements) and elements[predicted] == target:
            return predicted

    for index, element in enumerate(elements):
        if element == target:
            return index
    return -1


class FocusOrderIndex:
    """Lazily computed, generation-invalidated snapshot of the tab order.

    Args:
        source: Callable returning every focusable handle in tab order.
    """

    def __init__(self, source: Callable[[], Sequence[Hashable]]) -> None:
        self._source = source
        self._elements: list[Hashable] = []
        self._generation = 0
        self._consumed_generation = -1
        self._last_focused_index: int | None = None

    @property
    def generation(self) -> int:
        """Monotonic invalidation counter."""
        return self._generation

    @property
    def last_focused_index(self) -> int | None:
        """Index resolved by the most recent lookup."""
        return self._last_focused_index

    def invalidate(self) -> None:
        """Mark the snapshot stale; it is rebuilt on next use."""
        self._generation += 1
        self._last_focused_index = None

    def elements(self) -> list[Hashable]:
        """Return the snapshot, recomputing it if stale."""
        if self._consumed_generation != self._generation:
            self._elements = list(self._source())
            self._consumed_generation = self._generation
            logger.debug(
                "Focus order rebuilt: %d stops (generation %d)",
                len(self._elements), self._generation,
            )
        return self._elements

    def resolve(self, target: Hashable, is_reversed: bool) -> int:
        """Return the tab index of *target* and remember it.

        A miss forces a rebuild on the next lookup, since the cached
        order may simply be out of date.
        """
        index = get_focused_element_index(
            is_reversed, self._last_focused_index, self.elements(), target,
        )
        if index == -1:
            self.invalidate()
            # One retry against a fresh snapshot.
            index = get_focused_element_index(
                is_reversed, None, self.elements(), target,
            )
        self._last_focused_index = index if index != -1 else None
        return index

    def window(self, index: int, offset: int, is_reversed: bool) -> list[Hashable]:
        """Return the handles at ``index .. index +/- offset`` that exist."""
        if index < 0:
            return []
        elements = self.elements()
        step = -1 if is_reversed else 1
        result = []
        for i in range(offset + 1):
            position = index + step * i
            if 0 <= position < len(elements):
                result.append(elements[position])
        return result
