"""Flattens JSON events into the fields that patterns may match."""

from __future__ import annotations

import enum

from .flatten_scan import (
    error_at,
    leave_object,
    read_literal,
    read_member_name,
    read_number,
    read_string_value,
    skip_block,
    skip_string_value,
)
from .flattener import ArrayPos, Field, Flattener, SegmentsTreeTracker

_SPACES = frozenset(b" \r\n\t")
_NUMBER_STARTS = frozenset(b"-0123456789")
_LITERALS = {ord("t"): b"true", ord("f"): b"false", ord("n"): b"null"}

_QUOTE = ord('"')
_COLON = ord(":")
_COMMA = ord(",")
_OPEN_BRACE = ord("{")
_CLOSE_BRACE = ord("}")
_OPEN_BRACKET = ord("[")
_CLOSE_BRACKET = ord("]")


class _EarlyStop(Exception):
    """Every field that any pattern mentions has been read."""


class _State(enum.Enum):
    IN_OBJECT = enum.auto()
    SEEKING_COLON = enum.auto()
    MEMBER_VALUE = enum.auto()
    IN_ARRAY = enum.auto()
    AFTER_VALUE = enum.auto()


class JSONFlattener(Flattener):
    """Extracts the fields used by patterns from a JSON object.

    Members whose paths no pattern mentions are skipped without being parsed
    in full, and reading stops as soon as every used field has been seen.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Clear all per-event state so the flattener can be reused."""
        self._event = b""
        self._index = 0
        self._fields: list[Field] = []
        self._skipping = 0
        self._array_trail: list[ArrayPos] = []
        self._array_count = 0

    def copy(self) -> "JSONFlattener":
        """Return a fresh flattener."""
        return JSONFlattener()

    def flatten(self, event: bytes, tracker: SegmentsTreeTracker) -> list[Field]:
        """Return the fields of ``event`` that ``tracker`` marks as used.

        Raises FlattenError if the event is not a well-formed JSON object.
        """
        self.reset()
        event = bytes(event)
        if not event:
            raise error_at(event, 0, "empty event")
        self._event = event
        in_trailer = False
        while True:
            ch = event[self._index]
            if not in_trailer:
                if ch == _OPEN_BRACE:
                    try:
                        self._read_object(tracker)
                    except _EarlyStop:
                        return self._fields
                    in_trailer = True
                elif ch not in _SPACES:
                    raise error_at(event, self._index, "not a JSON object")
            elif ch not in _SPACES:
                raise error_at(
                    event, self._index, f"garbage char '{chr(ch)}' after top-level object"
                )
            self._index += 1
            if self._index == len(event):
                return self._fields

    def _ch(self) -> int:
        return self._event[self._index]

    def _step(self, message: str = "premature end of event") -> None:
        self._index += 1
        if self._index >= len(self._event):
            raise error_at(self._event, self._index, message)

    def _read_leaf(self, ch: int) -> tuple[bytes | None, bool]:
        """Read a scalar starting with ``ch``; None if ``ch`` starts none."""
        event = self._event
        if ch == _QUOTE:
            val, self._index = read_string_value(event, self._index)
            return val, False
        if ch in _LITERALS:
            val, self._index = read_literal(event, self._index, _LITERALS[ch])
            return val, False
        if ch in _NUMBER_STARTS:
            val, is_q_number, self._index = read_number(event, self._index)
            return val, is_q_number
        return None, False

    def _read_object(self, path_node: SegmentsTreeTracker) -> None:
        event = self._event
        # index points at '{'
        self._step()
        fields_count = path_node.fields_count()
        nodes_count = path_node.nodes_count()

        # the array trail doesn't change while reading one object
        array_trail = list(self._array_trail) if self._skipping == 0 else []

        member_name = b""
        member_is_used = False
        state = _State.IN_OBJECT
        while True:
            if nodes_count == 0 and fields_count == 0:
                if path_node.is_root():
                    raise _EarlyStop
                self._index = leave_object(event, self._index)
                return

            ch = self._ch()
            if state is _State.IN_OBJECT:
                if ch in _SPACES:
                    pass
                elif ch == _QUOTE:
                    member_name, self._index = read_member_name(event, self._index)
                    member_is_used = self._skipping == 0 and path_node.is_segment_used(
                        member_name
                    )
                    state = _State.SEEKING_COLON
                elif ch == _CLOSE_BRACE:
                    return
                else:
                    raise error_at(
                        event, self._index, f"illegal character {chr(ch)} in JSON object"
                    )
            elif state is _State.SEEKING_COLON:
                if ch in _SPACES:
                    pass
                elif ch == _COLON:
                    state = _State.MEMBER_VALUE
                else:
                    raise error_at(
                        event,
                        self._index,
                        f"illegal character {chr(ch)} while looking for colon",
                    )
            elif state is _State.MEMBER_VALUE:
                while ch in _SPACES:
                    self._step("event truncated after colon")
                    ch = self._ch()

                val: bytes | None = None
                is_q_number = False
                if ch == _QUOTE and (self._skipping > 0 or not member_is_used):
                    self._index = skip_string_value(event, self._index)
                elif ch == _OPEN_BRACKET or ch == _OPEN_BRACE:
                    used = path_node.is_segment_used(member_name)
                    if not used:
                        self._skipping += 1
                    if ch == _OPEN_BRACKET:
                        self._member_array(path_node, member_name, member_is_used)
                    elif self._member_object(path_node, member_name, member_is_used):
                        nodes_count -= 1
                    if not used:
                        self._skipping -= 1
                else:
                    val, is_q_number = self._read_leaf(ch)
                    if val is None:
                        raise error_at(
                            event,
                            self._index,
                            f"illegal character {chr(ch)} after field name",
                        )
                if val is not None and member_is_used:
                    self._fields.append(
                        Field(
                            path=path_node.path_for_segment(member_name),
                            val=val,
                            array_trail=array_trail,
                            is_q_number=is_q_number,
                        )
                    )
                    fields_count -= 1
                state = _State.AFTER_VALUE
            else:
                if ch in _SPACES:
                    pass
                elif ch == _COMMA:
                    state = _State.IN_OBJECT
                elif ch == _CLOSE_BRACE:
                    return
                else:
                    raise error_at(
                        event, self._index, f"illegal character {chr(ch)} in object"
                    )
            self._step()

    def _member_array(
        self, path_node: SegmentsTreeTracker, member_name: bytes, member_is_used: bool
    ) -> None:
        if self._skipping > 0 or not member_is_used:
            self._index = skip_block(self._event, self._index, _OPEN_BRACKET, _CLOSE_BRACKET)
            return
        # an array member may be a field or a node; if it's not a node, its
        # elements are looked up against the current node
        array_node = path_node.get(member_name) or path_node
        self._read_array(path_node.path_for_segment(member_name), array_node)

    def _member_object(
        self, path_node: SegmentsTreeTracker, member_name: bytes, member_is_used: bool
    ) -> bool:
        """Read or skip an object member; True if it was read as a node."""
        if self._skipping == 0 and member_is_used:
            object_node = path_node.get(member_name)
            if object_node is not None:
                self._read_object(object_node)
                return True
        # objects used only as leaves (e.g. exists on an object) aren't supported
        self._index = skip_block(self._event, self._index, _OPEN_BRACE, _CLOSE_BRACE)
        return False

    def _read_array(self, path_name: bytes, path_node: SegmentsTreeTracker) -> None:
        # index points at '['
        self._step()
        tracking = self._skipping == 0
        if tracking:
            self._enter_array()
        try:
            self._read_array_elements(path_name, path_node)
        finally:
            if tracking:
                self._array_trail.pop()

    def _read_array_elements(self, path_name: bytes, path_node: SegmentsTreeTracker) -> None:
        event = self._event
        state = _State.IN_ARRAY
        while True:
            ch = self._ch()
            if state is _State.IN_ARRAY:
                while ch in _SPACES:
                    self._step("event truncated within array")
                    ch = self._ch()

                if ch == _CLOSE_BRACKET:
                    return
                if ch == _OPEN_BRACE:
                    if self._skipping == 0:
                        self._step_one_array_element()
                    self._read_object(path_node)
                elif ch == _OPEN_BRACKET:
                    if self._skipping == 0:
                        self._step_one_array_element()
                    self._read_array(path_name, path_node)
                else:
                    val, is_q_number = self._read_leaf(ch)
                    if val is None:
                        raise error_at(
                            event, self._index, f"illegal character {chr(ch)} in array"
                        )
                    if self._skipping == 0:
                        self._step_one_array_element()
                        self._fields.append(
                            Field(
                                path=path_name,
                                val=val,
                                array_trail=list(self._array_trail),
                                is_q_number=is_q_number,
                            )
                        )
                state = _State.AFTER_VALUE
            else:
                if ch in _SPACES:
                    pass
                elif ch == _CLOSE_BRACKET:
                    return
                elif ch == _COMMA:
                    state = _State.IN_ARRAY
                else:
                    raise error_at(
                        event, self._index, f"illegal character {chr(ch)} in array"
                    )
            self._step()

    def _enter_array(self) -> None:
        self._array_count += 1
        self._array_trail.append(ArrayPos(self._array_count, 0))

    def _step_one_array_element(self) -> None:
        last = self._array_trail[-1]
        self._array_trail[-1] = ArrayPos(last.array, last.pos + 1)