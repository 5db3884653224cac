"""Compiles JSON pattern texts into lists of pattern fields."""

from __future__ import annotations

import enum
import json.decoder
import re
from dataclasses import dataclass, field
from typing import Any

from .flattener import SEGMENT_SEPARATOR


class PatternError(ValueError):
    """Raised for a malformed or unsupported pattern."""


class _EndOfInput(PatternError):
    """The pattern text ended cleanly between tokens."""


class ValType(enum.Enum):
    STRING = 0
    NUMBER = 1
    LITERAL = 2
    EXISTS_TRUE = 3
    EXISTS_FALSE = 4
    SHELL_STYLE = 5
    ANYTHING_BUT = 6
    PREFIX = 7


@dataclass(frozen=True)
class TypedVal:
    """A value in a pattern with its kind; ``list`` holds anything-but values."""

    v_type: ValType
    val: str = ""
    list: tuple[bytes, ...] = ()


@dataclass
class PatternField:
    """A pattern's path and the values allowed at it."""

    path: str
    vals: list[TypedVal] = field(default_factory=list)


class _Delim(str):
    pass


class _Number(str):
    pass


_WS = " \t\r\n"
_NUMBER = re.compile(r"-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?")

_TOP_VALUE = 0
_ARRAY_START = 1
_ARRAY_VALUE = 2
_ARRAY_COMMA = 3
_OBJECT_START = 4
_OBJECT_KEY = 5
_OBJECT_COLON = 6
_OBJECT_VALUE = 7
_OBJECT_COMMA = 8

_VALUE_ALLOWED = {_TOP_VALUE, _ARRAY_START, _ARRAY_VALUE, _OBJECT_VALUE}


class _Tokenizer:
    """Streaming JSON tokenizer that validates structure token by token."""

    def __init__(self, text: str) -> None:
        self._text = text
        self._pos = 0
        self._state = _TOP_VALUE
        self._stack: list[int] = []

    def _peek(self) -> str:
        text = self._text
        while self._pos < len(text) and text[self._pos] in _WS:
            self._pos += 1
        if self._pos >= len(text):
            raise _EndOfInput("end of input")
        return text[self._pos]

    def _unexpected(self, c: str) -> PatternError:
        return PatternError(f"invalid character {c!r} at offset {self._pos}")

    def _value_end(self) -> None:
        if self._state in (_ARRAY_START, _ARRAY_VALUE):
            self._state = _ARRAY_COMMA
        elif self._state == _OBJECT_VALUE:
            self._state = _OBJECT_COMMA

    def _read_string(self) -> str:
        try:
            value, end = json.decoder.scanstring(self._text, self._pos + 1, True)
        except ValueError as exc:
            raise PatternError(f"bad string: {exc}") from None
        self._pos = end
        return value

    def _read_scalar(self) -> Any:
        c = self._text[self._pos]
        if c == '"':
            return self._read_string()
        for literal, value in (("true", True), ("false", False), ("null", None)):
            if self._text.startswith(literal, self._pos):
                self._pos += len(literal)
                return value
        if c == "-" or c.isdigit():
            m = _NUMBER.match(self._text, self._pos)
            if m:
                self._pos = m.end()
                return _Number(m.group())
        raise self._unexpected(c)

    def token(self) -> Any:
        while True:
            c = self._peek()
            if c in "[{":
                if self._state not in _VALUE_ALLOWED:
                    raise self._unexpected(c)
                self._pos += 1
                self._stack.append(self._state)
                self._state = _ARRAY_START if c == "[" else _OBJECT_START
                return _Delim(c)
            if c in "]}":
                wanted = (_ARRAY_START, _ARRAY_COMMA) if c == "]" else (_OBJECT_START, _OBJECT_COMMA)
                if self._state not in wanted:
                    raise self._unexpected(c)
                self._pos += 1
                self._state = self._stack.pop()
                self._value_end()
                return _Delim(c)
            if c == ":":
                if self._state != _OBJECT_COLON:
                    raise self._unexpected(c)
                self._pos += 1
                self._state = _OBJECT_VALUE
                continue
            if c == ",":
                if self._state == _ARRAY_COMMA:
                    self._state = _ARRAY_VALUE
                elif self._state == _OBJECT_COMMA:
                    self._state = _OBJECT_KEY
                else:
                    raise self._unexpected(c)
                self._pos += 1
                continue
            if c == '"' and self._state in (_OBJECT_START, _OBJECT_KEY):
                key = self._read_string()
                self._state = _OBJECT_COLON
                return key
            if self._state not in _VALUE_ALLOWED:
                raise self._unexpected(c)
            value = self._read_scalar()
            self._value_end()
            return value


def _is_string(t: Any) -> bool:
    return isinstance(t, str) and not isinstance(t, (_Delim, _Number))


class _PatternBuilder:
    def __init__(self, text: str) -> None:
        self._tokens = _Tokenizer(text)
        self._path: list[str] = []
        self.results: list[PatternField] = []

    def _next(self, eof_message: str | None = None) -> Any:
        try:
            return self._tokens.token()
        except _EndOfInput:
            raise PatternError(eof_message or "pattern truncated") from None

    def read_object(self) -> None:
        while True:
            t = self._next("event atEnd mid-object")
            if isinstance(t, _Delim):
                return
            if _is_string(t):
                self._path.append(t)
                self._read_member()
                self._path.pop()

    def _read_member(self) -> None:
        t = self._next("pattern ends mid-field")
        if t == "[" and isinstance(t, _Delim):
            self._read_array()
        elif t == "{" and isinstance(t, _Delim):
            self.read_object()
        else:
            raise PatternError(f"pattern malformed, illegal {t!r}")

    def _read_array(self) -> None:
        path_name = SEGMENT_SEPARATOR.join(self._path)
        contains_exclusive = ""
        element_count = 0
        vals: list[TypedVal] = []
        while True:
            t = self._next("patternField atEnd mid-field")
            if isinstance(t, _Delim):
                if t == "]":
                    if contains_exclusive and element_count > 1:
                        raise PatternError(
                            f"{contains_exclusive} cannot be combined with other values in pattern"
                        )
                    self.results.append(PatternField(path_name, vals))
                    return
                if t != "{":
                    raise PatternError(f"pattern malformed, illegal {t!r}")
                exclusive = self._read_special(vals)
                if exclusive:
                    contains_exclusive = exclusive
            elif isinstance(t, _Number):
                vals.append(TypedVal(ValType.NUMBER, str(t)))
            elif isinstance(t, str):
                vals.append(TypedVal(ValType.STRING, f'"{t}"'))
            elif t is True:
                vals.append(TypedVal(ValType.LITERAL, "true"))
            elif t is False:
                vals.append(TypedVal(ValType.LITERAL, "false"))
            elif t is None:
                vals.append(TypedVal(ValType.LITERAL, "null"))
            element_count += 1

    def _read_special(self, vals: list[TypedVal]) -> str:
        t = self._next()
        if not _is_string(t):
            raise PatternError("special pattern must have a field name")
        if t == "anything-but":
            self._read_anything_but(vals)
            return t
        if t == "exists":
            self._read_exists(vals)
            return t
        if t == "prefix":
            self._read_prefix(vals)
            return ""
        raise PatternError("unrecognized in special pattern: " + t)

    def _read_anything_but(self, vals: list[TypedVal]) -> None:
        t = self._next()
        if not (isinstance(t, _Delim) and t == "["):
            raise PatternError("value for anything-but must be an array")
        items: list[bytes] = []
        while True:
            t = self._next("anything-but list truncated")
            if isinstance(t, _Delim):
                if t == "]":
                    break
                raise PatternError(f"spurious {t} in anything-but list")
            if _is_string(t):
                items.append(f'"{t}"'.encode("utf-8"))
            else:
                raise PatternError("malformed anything-but list")
        if not items:
            raise PatternError("empty list in 'anything-but' pattern")
        vals.append(TypedVal(ValType.ANYTHING_BUT, "", tuple(items)))
        # must be '}', else the tokenizer complains
        self._next()

    def _read_exists(self, vals: list[TypedVal]) -> None:
        t = self._next()
        if t is True:
            vals.append(TypedVal(ValType.EXISTS_TRUE))
        elif t is False:
            vals.append(TypedVal(ValType.EXISTS_FALSE))
        else:
            raise PatternError("value for 'exists' pattern must be true or false")
        if not isinstance(self._next(), _Delim):
            raise PatternError("trailing garbage in 'existsMatches' pattern")

    def _read_prefix(self, vals: list[TypedVal]) -> None:
        t = self._next()
        if not _is_string(t):
            raise PatternError("value for 'prefix' must be a string")
        vals.append(TypedVal(ValType.PREFIX, f'"{t}"'))
        # must be '}', else the tokenizer complains
        self._next()


def pattern_from_json(data: bytes | str) -> list[PatternField]:
    """Compile a JSON pattern object into its fields, in document order."""
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    builder = _PatternBuilder(text)
    try:
        t = builder._tokens.token()
    except _EndOfInput:
        raise PatternError("empty Pattern") from None
    except PatternError as exc:
        raise PatternError("pattern is not a JSON object: " + str(exc)) from None
    if not (isinstance(t, _Delim) and t == "{"):
        raise PatternError("pattern is not a JSON object: doesn't start with '{'")
    builder.read_object()
    return builder.results