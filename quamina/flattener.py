"""Core data types shared by event flatteners and the matcher."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

SEGMENT_SEPARATOR = "\n"


@dataclass(frozen=True)
class ArrayPos:
    """Identifies an array in an event and a field's position in it."""

    array: int
    pos: int


@dataclass
class Field:
    """A path/value pair extracted from an event.

    ``path`` is the newline-separated path from the event root, ``val`` the
    textual form of the value, and ``array_trail`` records, for each array on
    the path, which array it is and which element the field sits in.
    """

    path: bytes
    val: bytes
    array_trail: list[ArrayPos] = field(default_factory=list)
    is_q_number: bool = False


class SegmentsTreeTracker(ABC):
    """Tells a flattener which path segments are used by any pattern."""

    @abstractmethod
    def is_root(self) -> bool:
        """True if this node is the root of the tree."""

    @abstractmethod
    def is_segment_used(self, segment: bytes) -> bool:
        """True if the segment appears as a field or node under this node."""

    @abstractmethod
    def get(self, segment: bytes) -> Optional["SegmentsTreeTracker"]:
        """Return the child node for ``segment``, or None if there is none."""

    @abstractmethod
    def path_for_segment(self, segment: bytes) -> bytes:
        """Return the full path of ``segment`` below this node."""

    @abstractmethod
    def fields_count(self) -> int:
        """Number of leaf fields under this node used by patterns."""

    @abstractmethod
    def nodes_count(self) -> int:
        """Number of child nodes under this node used by patterns."""


class Flattener(ABC):
    """Turns an event into the list of fields that patterns may match."""

    @abstractmethod
    def flatten(self, event: bytes, tracker: SegmentsTreeTracker) -> list[Field]:
        """Extract the fields of ``event`` that ``tracker`` marks as used."""

    @abstractmethod
    def copy(self) -> "Flattener":
        """Return a fresh flattener of the same kind."""