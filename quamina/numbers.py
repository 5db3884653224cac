"""Fixed-width comparable encoding ("Q numbers") for a range of decimals.

Numbers between -5e9 and 5e9 inclusive with at most five fractional digits
are mapped to 14 upper-case hex characters whose byte order matches numeric
order, so that automata can compare them.
"""

from __future__ import annotations

import re

TEN_E6 = 1e6
FIVE_BILLION = 5e9
HEXES = "0123456789ABCDEF"
MAX_FRACTIONAL_DIGITS = 5

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_EXPONENT = re.compile(r"[+-]?[0-9]+")


def _parse_float(text: str) -> float:
    try:
        return float(text)
    except ValueError:
        raise ValueError("not a float") from None


def _parse_exponent(text: str) -> int | None:
    if not _EXPONENT.fullmatch(text):
        return None
    value = int(text)
    if not _INT32_MIN <= value <= _INT32_MAX:
        return None
    return value


def q_num_from_bytes(data: bytes) -> bytes:
    """Encode the textual number ``data`` as a Q number.

    Raises ValueError if the number is out of range, has too many fractional
    digits, or is not a number.
    """
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    # the shortest number with more than five fractional digits is like 0.123456
    if len(text) < 8:
        return q_num_from_float(_parse_float(text))

    frac_start = 0
    exp_start = 0
    index = 0
    for index, ch in enumerate(text):
        if ch == ".":
            frac_start = index + 1
        elif ch in "eE":
            exp_start = index + 1
            break
    fractional_digits = index - frac_start if frac_start else 0
    # an exponent may move the decimal point to the right
    if fractional_digits > MAX_FRACTIONAL_DIGITS and exp_start:
        exp = _parse_exponent(text[exp_start:])
        if exp is not None:
            fractional_digits -= exp
    if fractional_digits > MAX_FRACTIONAL_DIGITS:
        raise ValueError("more than 5 fractional digits")
    return q_num_from_float(_parse_float(text))


def q_num_from_float(f: float) -> bytes:
    """Encode ``f`` as a 14-character Q number; ValueError if out of range."""
    if not -FIVE_BILLION <= f <= FIVE_BILLION:
        raise ValueError("value must be between -5e9 and +5e9 inclusive")
    value = int(TEN_E6 * (FIVE_BILLION + f))
    return f"{value & 0xFFFFFFFFFFFFFFFF:016X}"[2:].encode("ascii")