"""Low-level scanners that read single JSON values out of an event.

Every reader takes the event bytes and the index of the first character of
the thing to read, and returns what it read along with the index of the
*last* character it consumed, so a caller driving a state machine can step
past it. Malformed input raises :class:`FlattenError`.
"""

from __future__ import annotations

import enum

from .numbers import MAX_FRACTIONAL_DIGITS

_BYTE_CEILING = 0xF6
_QUOTE = ord('"')
_BACKSLASH = ord("\\")
_MINUS = ord("-")
_DOT = ord(".")
_U = ord("u")
_CLOSE_BRACE = ord("}")

_DIGITS = frozenset(b"0123456789")
_EXP_LEADERS = frozenset(b"-123456789")
_NUMBER_END = frozenset(b",]} \t\n\r")
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")
_EXP_MARKS = frozenset(b"eE")

_SIMPLE_ESCAPES = {
    ord('"'): b'"',
    ord("\\"): b"\\",
    ord("/"): b"/",
    ord("b"): b"\x08",
    ord("f"): b"\x0c",
    ord("n"): b"\n",
    ord("r"): b"\r",
    ord("t"): b"\t",
}

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


class FlattenError(ValueError):
    """Malformed event; carries the line and column where it was detected."""

    def __init__(self, message: str, line: int, column: int) -> None:
        super().__init__(f"at line {line} col {column}: {message}")
        self.message = message
        self.line = line
        self.column = column


def error_at(event: bytes, index: int, message: str) -> FlattenError:
    """Build a FlattenError locating ``index`` within ``event``."""
    line = 1
    last_line_start = 0
    for i, ch in enumerate(event[:index]):
        if ch == 0x0A:
            line += 1
            last_line_start = i
    return FlattenError(message, line, index - last_line_start)


def _illegal_byte(ch: int) -> bool:
    return ch <= 0x1F or ch >= _BYTE_CEILING


def _parse_int32(data: bytes) -> int | None:
    try:
        value = int(data.decode("ascii"))
    except ValueError:
        return None
    if not _INT32_MIN <= value <= _INT32_MAX:
        return None
    return value


class _NumState(enum.Enum):
    START = enum.auto()
    INTEGRAL = enum.auto()
    FRAC = enum.auto()
    AFTER_E = enum.auto()
    EXP = enum.auto()


def read_number(event: bytes, index: int) -> tuple[bytes, bool, int]:
    """Read a number starting at ``index``.

    Returns the number's bytes, whether it may be encoded as a Q number, and
    the index of its last character.
    """
    start = index
    state = _NumState.START
    frac_start = 0
    exp_start = 0
    i = index
    while True:
        ch = event[i]
        if state is _NumState.START:
            if ch == _MINUS or ch in _DIGITS:
                state = _NumState.INTEGRAL
        elif state is _NumState.INTEGRAL:
            if ch in _DIGITS:
                pass
            elif ch == _DOT:
                state = _NumState.FRAC
                frac_start = i + 1
            elif ch in _EXP_MARKS:
                state = _NumState.AFTER_E
                exp_start = i + 1
            elif ch in _NUMBER_END:
                return event[start:i], True, i - 1
            else:
                raise error_at(event, i, f"illegal char '{chr(ch)}' in number")
        elif state is _NumState.FRAC:
            if ch in _DIGITS:
                pass
            elif ch in _NUMBER_END:
                fractional_digits = (exp_start - 1) - frac_start
                return event[start:i], fractional_digits <= MAX_FRACTIONAL_DIGITS, i - 1
            elif ch in _EXP_MARKS:
                state = _NumState.AFTER_E
                exp_start = i + 1
            else:
                raise error_at(event, i, f"illegal char '{chr(ch)}' in number")
        elif state is _NumState.AFTER_E:
            if ch not in _EXP_LEADERS:
                raise error_at(event, i, f"illegal char '{chr(ch)}' after 'e' in number")
            state = _NumState.EXP
        else:
            if ch in _DIGITS:
                pass
            elif ch in _NUMBER_END:
                fractional_digits = 0
                if frac_start:
                    fractional_digits = (exp_start - 1) - frac_start
                    if fractional_digits > MAX_FRACTIONAL_DIGITS and exp_start:
                        exp = _parse_int32(event[exp_start:i])
                        if exp is not None:
                            fractional_digits -= exp
                return event[start:i], fractional_digits <= MAX_FRACTIONAL_DIGITS, i - 1
            else:
                raise error_at(event, i, f"illegal char '{chr(ch)}' in exponent")
        i += 1
        if i >= len(event):
            raise error_at(event, i, "event truncated in number")


def read_literal(event: bytes, index: int, literal: bytes) -> tuple[bytes, int]:
    """Read ``literal`` (true, false or null) starting at ``index``."""
    i = index
    for expected in literal:
        if event[i] != expected:
            raise error_at(event, i, "unknown literal")
        i += 1
        if i >= len(event):
            raise error_at(event, i, "truncated literal value")
    return literal, i - 1


def _decode_utf16(units: list[int]) -> str:
    chars: list[str] = []
    pos = 0
    while pos < len(units):
        unit = units[pos]
        if 0xD800 <= unit <= 0xDBFF and pos + 1 < len(units) and 0xDC00 <= units[pos + 1] <= 0xDFFF:
            chars.append(chr(0x10000 + ((unit - 0xD800) << 10) + (units[pos + 1] - 0xDC00)))
            pos += 2
            continue
        chars.append("\ufffd" if 0xD800 <= unit <= 0xDFFF else chr(unit))
        pos += 1
    return "".join(chars)


class _HexState(enum.Enum):
    START_ESCAPE = enum.auto()
    WANT_U = enum.auto()
    HEX_DIGIT = enum.auto()


def read_hex_utf16(event: bytes, index: int) -> tuple[bytes, int]:
    """Decode a run of ``\\uXXXX`` escapes; ``index`` points at the first ``u``.

    Returns the UTF-8 bytes and the index of the last character consumed.
    Adjacent escapes are read together so surrogate pairs combine.
    """
    units: list[int] = []
    frm = index - 1
    state = _HexState.START_ESCAPE
    hex_count = 0
    while True:
        ch = event[frm]
        if state is _HexState.START_ESCAPE:
            if ch != _BACKSLASH:
                return _decode_utf16(units).encode("utf-8"), frm - 1
            state = _HexState.WANT_U
        elif state is _HexState.WANT_U:
            if ch != _U:
                return _decode_utf16(units).encode("utf-8"), frm - 1
            state = _HexState.HEX_DIGIT
            hex_count = 0
        else:
            if ch not in _HEX_DIGITS:
                raise error_at(event, frm, "four hex digits required after \\u")
            hex_count += 1
            if hex_count == 4:
                units.append(int(event[frm - 3 : frm + 1], 16))
                state = _HexState.START_ESCAPE
        frm += 1
        if frm == len(event):
            raise error_at(event, frm, "event truncated in \\u escape")


def _read_text_with_escapes(event: bytes, frm: int, err_index: int) -> tuple[bytes, int]:
    # frm points at the backslash
    frm += 1
    if frm == len(event):
        raise error_at(event, err_index, "premature end of event")
    ch = event[frm]
    if ch in _SIMPLE_ESCAPES:
        return _SIMPLE_ESCAPES[ch], frm
    if ch == _U:
        return read_hex_utf16(event, frm)
    raise error_at(event, err_index, "malformed \\-escape in text")


def _read_escaped(
    event: bytes, frm: int, err_index: int, what: str, out: bytearray
) -> tuple[bytes, int]:
    """Copy text with escapes from ``frm`` up to the closing quote into ``out``."""
    while True:
        ch = event[frm]
        if ch == _QUOTE:
            return bytes(out), frm
        if ch == _BACKSLASH:
            unescaped, frm = _read_text_with_escapes(event, frm, err_index)
            out += unescaped
        elif _illegal_byte(ch):
            raise error_at(event, err_index, f"illegal UTF-8 byte {ch:x} in {what}")
        else:
            out.append(ch)
        frm += 1
        if frm == len(event):
            raise error_at(event, err_index, "premature end of event")


def read_string_value(event: bytes, index: int) -> tuple[bytes, int]:
    """Read a string value at ``index`` (its opening quote), quotes included."""
    i = index + 1
    if i >= len(event):
        raise error_at(event, i, "event truncated in mid-string")
    while True:
        ch = event[i]
        if ch == _QUOTE:
            return event[index : i + 1], i
        if ch == _BACKSLASH:
            val, end = _read_escaped(event, index + 1, i, "string value", bytearray(b'"'))
            return val + b'"', end
        if _illegal_byte(ch):
            raise error_at(event, i, f"illegal UTF-8 byte {ch:x} in string value")
        i += 1
        if i >= len(event):
            raise error_at(event, i, "event truncated in mid-string")


def read_member_name(event: bytes, index: int) -> tuple[bytes, int]:
    """Read an object member name at ``index`` (its opening quote), quotes excluded."""
    i = index + 1
    if i >= len(event):
        raise error_at(event, i, "premature end of event")
    name_start = i
    while True:
        ch = event[i]
        if ch == _QUOTE:
            return event[name_start:i], i
        if ch == _BACKSLASH:
            return _read_escaped(event, name_start, i, "field name", bytearray())
        if _illegal_byte(ch):
            raise error_at(event, i, f"illegal UTF-8 byte {ch:x} in field name")
        i += 1
        if i >= len(event):
            raise error_at(event, i, "premature end of event")


def skip_string_value(event: bytes, index: int) -> int:
    """Skip a string at ``index`` (its opening quote); return its closing quote's index."""
    start = index + 1
    if start >= len(event):
        raise error_at(event, start, "event truncated in mid-string")
    i = start
    end = len(event)
    while i < end:
        ch = event[i]
        if ch == _BACKSLASH and i + 1 < end and event[i + 1] in (_BACKSLASH, _QUOTE):
            i += 2
            continue
        if ch == _QUOTE:
            return i
        i += 1
    raise error_at(event, start, "truncated string")


def skip_block(event: bytes, index: int, open_symbol: int, close_symbol: int) -> int:
    """Skip a bracketed block opening at ``index``; return its closing index."""
    level = 0
    i = index
    while i < len(event):
        ch = event[i]
        if ch == _QUOTE:
            i = skip_string_value(event, i)
        elif ch == open_symbol:
            level += 1
        elif ch == close_symbol:
            level -= 1
            if level == 0:
                return i
        i += 1
    raise error_at(event, i, "truncated block")


def leave_object(event: bytes, index: int) -> int:
    """Skip the rest of the current object; return the index of its closing brace."""
    i = index
    while i < len(event):
        ch = event[i]
        if ch == _QUOTE:
            i = skip_string_value(event, i)
        elif ch in (ord("{"), ord("[")):
            # the closing bracket is two code points past the opening one
            i = skip_block(event, i, ch, ch + 2)
        elif ch == _CLOSE_BRACE:
            return i
        i += 1
    raise error_at(event, i, "truncated block")