"""Element registry: storage and queries for tracked UI elements.

The ElementRegistry is the single owner of every ``TrackedElement``.
It maps the opaque element handle to its tracking record and offers
the handful of filtered views the interaction engine needs.

The engine is single-threaded and event-driven, so no locking is done
here.  Iteration helpers return lists so that callers may unregister
elements (for example from a single-fire callback) while looping.

This module depends only on ``foresight.models``.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterator

from foresight.models.element import TrackedElement


class ElementRegistry:
    """Map of element handle to ``TrackedElement``.

    Example::

        registry = ElementRegistry()
        registry.add(element)
        visible = registry.find_intersecting_viewport()
    """

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def __init__(self) -> None:
        """Initialize an empty element registry."""
        self._elements: dict[Hashable, TrackedElement] = {}

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def add(self, element: TrackedElement) -> None:
        """Add an element, keyed by its handle.

        Raises:
            KeyError: If the handle is already registered.
        """
        if element.handle in self._elements:
            raise KeyError(f"Element {element.handle!r} is already registered")
        self._elements[element.handle] = element

    def remove(self, handle: Hashable) -> TrackedElement | None:
        """Remove and return the element for *handle*, or None if absent."""
        return self._elements.pop(handle, None)

    def get(self, handle: Hashable) -> TrackedElement | None:
        """Return the element for *handle*, or None if not registered."""
        return self._elements.get(handle)

    def contains(self, handle: Hashable) -> bool:
        """Check whether *handle* is registered."""
        return handle in self._elements

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_all(self) -> list[TrackedElement]:
        """Return every element in registration order."""
        return list(self._elements.values())

    def find_intersecting_viewport(self) -> list[TrackedElement]:
        """Return the elements currently intersecting the viewport."""
        return [e for e in self._elements.values() if e.is_intersecting_viewport]

    def find_trajectory_hits(self) -> list[TrackedElement]:
        """Return elements with an active trajectory hit."""
        return [
            e for e in self._elements.values()
            if e.trajectory_hit.is_trajectory_hit
        ]

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def count(self) -> int:
        """Number of registered elements."""
        return len(self._elements)

    @property
    def handles(self) -> list[Hashable]:
        """Registered handles in registration order."""
        return list(self._elements.keys())

    # ------------------------------------------------------------------
    # Dunder helpers
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._elements)

    def __contains__(self, handle: object) -> bool:
        try:
            return handle in self._elements
        except TypeError:
            return False

    def __iter__(self) -> Iterator[TrackedElement]:
        return iter(list(self._elements.values()))

    def __repr__(self) -> str:
        return f"ElementRegistry(count={self.count})"
