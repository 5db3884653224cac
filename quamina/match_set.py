"""A set of matched pattern identifiers."""

from __future__ import annotations

from typing import Any, Hashable


class MatchSet:
    """Set semantics over match identifiers."""

    def __init__(self, items: set[Hashable] | None = None) -> None:
        self._set: set[Hashable] = set(items) if items else set()

    def add_x(self, *args: Hashable) -> "MatchSet":
        """Return a new set with ``args`` added; self if nothing to add."""
        if not args:
            return self
        return MatchSet(self._set | set(args))

    def add_x_single_threaded(self, *args: Hashable) -> "MatchSet":
        """Add ``args`` in place and return self."""
        self._set.update(args)
        return self

    def matches(self) -> list[Any]:
        """Return the members as a list."""
        return list(self._set)

    def __contains__(self, x: object) -> bool:
        return x in self._set

    def __len__(self) -> int:
        return len(self._set)