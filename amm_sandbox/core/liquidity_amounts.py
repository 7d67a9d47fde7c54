#!/usr/bin/env python3
"""
Liquidity <-> token amount conversion

Amount deltas for a liquidity magnitude over a sqrt-price range, and the
maximum liquidity a pair of token amounts can back at the current price.
"""

from typing import Tuple

from .constants import Q96
from .q96_math import div_rounding_up, mul_div, mul_div_rounding_up


def _sort_sqrt_ratios(a: int, b: int) -> Tuple[int, int]:
    return (a, b) if a <= b else (b, a)


def get_amount0_delta(
    sqrt_ratio_a_x96: int,
    sqrt_ratio_b_x96: int,
    liquidity: int,
    round_up: bool
) -> int:
    """Token0 amount between two sqrt prices: L * (sqrtB - sqrtA) / (sqrtA * sqrtB)"""
    sqrt_a, sqrt_b = _sort_sqrt_ratios(sqrt_ratio_a_x96, sqrt_ratio_b_x96)
    if sqrt_a <= 0 or sqrt_b <= sqrt_a or liquidity <= 0:
        return 0

    numerator1 = liquidity << 96
    numerator2 = sqrt_b - sqrt_a

    if round_up:
        return div_rounding_up(mul_div_rounding_up(numerator1, numerator2, sqrt_b), sqrt_a)
    return mul_div(numerator1, numerator2, sqrt_b) // sqrt_a


def get_amount1_delta(
    sqrt_ratio_a_x96: int,
    sqrt_ratio_b_x96: int,
    liquidity: int,
    round_up: bool
) -> int:
    """Token1 amount between two sqrt prices: L * (sqrtB - sqrtA)"""
    sqrt_a, sqrt_b = _sort_sqrt_ratios(sqrt_ratio_a_x96, sqrt_ratio_b_x96)
    if sqrt_a <= 0 or sqrt_b <= sqrt_a or liquidity <= 0:
        return 0

    if round_up:
        return mul_div_rounding_up(liquidity, sqrt_b - sqrt_a, Q96)
    return mul_div(liquidity, sqrt_b - sqrt_a, Q96)


def get_liquidity_for_amount0(amount0: int, sqrt_ratio_a_x96: int, sqrt_ratio_b_x96: int) -> int:
    sqrt_a, sqrt_b = _sort_sqrt_ratios(sqrt_ratio_a_x96, sqrt_ratio_b_x96)
    if amount0 <= 0 or sqrt_a <= 0 or sqrt_b <= sqrt_a:
        return 0

    intermediate = mul_div(sqrt_a, sqrt_b, Q96)
    return mul_div(amount0, intermediate, sqrt_b - sqrt_a)


def get_liquidity_for_amount1(amount1: int, sqrt_ratio_a_x96: int, sqrt_ratio_b_x96: int) -> int:
    sqrt_a, sqrt_b = _sort_sqrt_ratios(sqrt_ratio_a_x96, sqrt_ratio_b_x96)
    if amount1 <= 0 or sqrt_a <= 0 or sqrt_b <= sqrt_a:
        return 0

    return mul_div(amount1, Q96, sqrt_b - sqrt_a)


def get_liquidity_for_amounts(
    amount0: int,
    amount1: int,
    sqrt_ratio_x96: int,
    sqrt_ratio_a_x96: int,
    sqrt_ratio_b_x96: int
) -> int:
    """
    Maximum liquidity obtainable from the given amounts at the current price

    Below the range only token0 is needed, above it only token1; inside the
    range the scarcer side is the bottleneck.
    """
    sqrt_a, sqrt_b = _sort_sqrt_ratios(sqrt_ratio_a_x96, sqrt_ratio_b_x96)
    if amount0 < 0 or amount1 < 0 or sqrt_ratio_x96 <= 0 or sqrt_b <= sqrt_a:
        return 0

    if sqrt_ratio_x96 <= sqrt_a:
        return get_liquidity_for_amount0(amount0, sqrt_a, sqrt_b)

    if sqrt_ratio_x96 >= sqrt_b:
        return get_liquidity_for_amount1(amount1, sqrt_a, sqrt_b)

    liquidity0 = get_liquidity_for_amount0(amount0, sqrt_ratio_x96, sqrt_b)
    liquidity1 = get_liquidity_for_amount1(amount1, sqrt_a, sqrt_ratio_x96)
    return min(liquidity0, liquidity1)


def get_amounts_for_liquidity(
    liquidity: int,
    sqrt_ratio_x96: int,
    sqrt_ratio_a_x96: int,
    sqrt_ratio_b_x96: int
) -> Tuple[int, int]:
    """Token amounts occupied by liquidity at the current price, rounded up (never under-counted)"""
    sqrt_a, sqrt_b = _sort_sqrt_ratios(sqrt_ratio_a_x96, sqrt_ratio_b_x96)
    if liquidity <= 0 or sqrt_ratio_x96 <= 0 or sqrt_b <= sqrt_a:
        return 0, 0

    if sqrt_ratio_x96 <= sqrt_a:
        return get_amount0_delta(sqrt_a, sqrt_b, liquidity, True), 0

    if sqrt_ratio_x96 >= sqrt_b:
        return 0, get_amount1_delta(sqrt_a, sqrt_b, liquidity, True)

    return (
        get_amount0_delta(sqrt_ratio_x96, sqrt_b, liquidity, True),
        get_amount1_delta(sqrt_a, sqrt_ratio_x96, liquidity, True),
    )
