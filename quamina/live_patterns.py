"""In-memory record of the live pattern set."""

from __future__ import annotations

import threading
from typing import Callable, Hashable


class MemState:
    """Maps each identifier to the set of pattern texts added under it."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._patterns: dict[Hashable, set[str]] = {}

    def add(self, x: Hashable, pattern: str) -> None:
        """Record ``pattern`` under ``x``."""
        with self._lock:
            self._patterns.setdefault(x, set()).add(pattern)

    def contains(self, x: Hashable) -> bool:
        """True if ``x`` has any patterns."""
        with self._lock:
            return x in self._patterns

    def delete(self, x: Hashable) -> int:
        """Remove all patterns under ``x`` and return how many there were."""
        with self._lock:
            return len(self._patterns.pop(x, ()))

    def iterate(self, fn: Callable[[Hashable, str], None]) -> None:
        """Call ``fn(x, pattern)`` for every stored pattern; exceptions propagate."""
        with self._lock:
            snapshot = [(x, p) for x, ps in self._patterns.items() for p in ps]
        for x, p in snapshot:
            fn(x, p)