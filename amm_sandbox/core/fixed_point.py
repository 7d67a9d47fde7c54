#!/usr/bin/env python3
"""
Fixed-Point Decimal Arithmetic

Every reserve, fee, liquidity magnitude and price in the engine is an integer
scaled by 10^18. Multiplication and division rescale by exactly one factor of
SCALE so that composed expressions stay in the same fixed-point domain.

Divisions truncate toward zero (not toward negative infinity like Python's
floor division) so signed intermediates round the same way regardless of sign.
"""

import re
from typing import Optional, Union

SCALE = 10 ** 18
ZERO = 0
ONE = SCALE

DECIMALS = 18

_FP_PATTERN = re.compile(r"^([+-])?(\d*)(?:\.(\d*))?$")


def _div_trunc(numerator: int, denominator: int) -> int:
    """Integer division truncating toward zero"""
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def parse_fp(value: Union[str, int, float]) -> int:
    """
    Parse decimal text into a scaled integer (lenient)

    Accepts an optional sign, digits and a single decimal point. Thousands
    separators are ignored. Empty or malformed input yields zero.
    """
    raw = value.strip() if isinstance(value, str) else str(value)
    if raw in ("", ".", "-", "+"):
        return ZERO

    normalized = raw.replace(",", "")
    match = _FP_PATTERN.match(normalized)
    if not match:
        return ZERO

    sign = -1 if match.group(1) == "-" else 1
    int_part = match.group(2) or "0"
    frac_part = match.group(3) or ""
    frac_padded = (frac_part + "0" * DECIMALS)[:DECIMALS]

    return sign * (int(int_part) * SCALE + int(frac_padded or "0"))


def safe_parse_fp(value: str) -> Optional[int]:
    """
    Parse decimal text into a scaled integer (strict)

    Returns None for unparseable text so callers validating user input can tell
    "malformed" apart from "zero". Empty input is zero.
    """
    normalized = value.strip().replace(",", "")
    if not normalized:
        return ZERO
    if not _FP_PATTERN.match(normalized):
        return None
    return parse_fp(normalized)


def format_fp(value: int, max_decimals: int = 6) -> str:
    """Render a scaled integer with at most max_decimals fractional digits, trailing zeros trimmed"""
    sign = "-" if value < ZERO else ""
    magnitude = -value if value < ZERO else value
    int_part = magnitude // SCALE
    frac_raw = str(magnitude % SCALE).rjust(DECIMALS, "0")
    sliced = frac_raw[:max(0, min(max_decimals, DECIMALS))]
    frac_trimmed = sliced.rstrip("0")

    if not frac_trimmed:
        return f"{sign}{int_part}"
    return f"{sign}{int_part}.{frac_trimmed}"


def format_percent_fp(value: int, max_decimals: int = 2) -> str:
    """Render a scaled ratio as a percentage figure (0.015 -> '1.5')"""
    return format_fp(fp_mul(value, 100 * SCALE), max_decimals)


def fp_mul(a: int, b: int) -> int:
    return _div_trunc(a * b, SCALE)


def fp_div(a: int, b: int) -> int:
    """a / b in fixed point; division by zero yields zero"""
    if b == ZERO:
        return ZERO
    return _div_trunc(a * SCALE, b)


def mul_div(a: int, b: int, denominator: int) -> int:
    """Truncating a * b / denominator; zero denominator yields zero"""
    if denominator == ZERO:
        return ZERO
    return _div_trunc(a * b, denominator)


def min_fp(a: int, b: int) -> int:
    return a if a < b else b


def max_fp(a: int, b: int) -> int:
    return a if a > b else b


def clamp_fp(value: int, lower: int, upper: int) -> int:
    return min_fp(max_fp(value, lower), upper)


def sqrt_int(value: int) -> int:
    """Integer square root via Newton's method (operates on the raw, unscaled magnitude)"""
    if value <= ZERO:
        return ZERO
    if value < 4:
        return 1

    x0 = value
    x1 = (x0 + 1) >> 1
    while x1 < x0:
        x0 = x1
        x1 = (x1 + value // x1) >> 1
    return x0


def to_float(value: int) -> float:
    """Lossy conversion for display and charting"""
    return value / SCALE


def is_positive(value: int) -> bool:
    return value > ZERO
