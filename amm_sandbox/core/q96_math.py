#!/usr/bin/env python3
"""
Q96 / Q128 ratio math

Exact multiply-divide helpers with explicit rounding direction. Amounts charged
to the trader round up, amounts paid out round down.
"""


def _require_positive(value: int, label: str):
    if value <= 0:
        raise ValueError(f"{label} must be greater than zero")


def mul_div(a: int, b: int, denominator: int) -> int:
    """Multiply two numbers and divide by denominator, truncating"""
    _require_positive(denominator, "denominator")
    return (a * b) // denominator


def mul_div_rounding_up(a: int, b: int, denominator: int) -> int:
    """Multiply and divide, adding one unit on a non-zero remainder"""
    _require_positive(denominator, "denominator")
    result, remainder = divmod(a * b, denominator)
    return result + 1 if remainder else result


def div_rounding_up(numerator: int, denominator: int) -> int:
    _require_positive(denominator, "denominator")
    result, remainder = divmod(numerator, denominator)
    return result + 1 if remainder else result
