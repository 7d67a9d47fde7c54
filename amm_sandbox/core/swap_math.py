#!/usr/bin/env python3
"""
Single swap step (exact input)

Given the current and target sqrt prices, active liquidity, the input budget
and the fee in pips, compute how far the price moves and how much is consumed,
paid out and taken as fee.
"""

from dataclasses import dataclass

from .constants import FEE_UNITS, Q96
from .liquidity_amounts import get_amount0_delta, get_amount1_delta
from .q96_math import div_rounding_up, mul_div, mul_div_rounding_up


@dataclass
class SwapStepResult:
    """Outcome of one swap step"""
    sqrt_ratio_next_x96: int
    amount_in: int     # input converted at the curve (fee excluded)
    amount_out: int
    fee_amount: int
    reached_target: bool


def get_next_sqrt_price_from_amount0_rounding_up(
    sqrt_price_x96: int,
    liquidity: int,
    amount: int,
    add: bool
) -> int:
    """Next sqrt price after adding/removing token0: L * sqrtP / (L +/- amount * sqrtP)"""
    if amount <= 0:
        return sqrt_price_x96

    numerator1 = liquidity << 96
    product = amount * sqrt_price_x96

    if add:
        # Adding token0 pushes the price down
        return mul_div_rounding_up(numerator1, sqrt_price_x96, numerator1 + product)

    if product >= numerator1:
        raise ValueError("Amount too large for token0 price update")
    return mul_div_rounding_up(numerator1, sqrt_price_x96, numerator1 - product)


def get_next_sqrt_price_from_amount1_rounding_down(
    sqrt_price_x96: int,
    liquidity: int,
    amount: int,
    add: bool
) -> int:
    """Next sqrt price after adding/removing token1: sqrtP +/- amount / L"""
    if amount <= 0:
        return sqrt_price_x96

    if add:
        # Adding token1 pushes the price up
        return sqrt_price_x96 + (amount << 96) // liquidity

    quotient = div_rounding_up(amount << 96, liquidity)
    if quotient >= sqrt_price_x96:
        raise ValueError("Amount too large for token1 price update")
    return sqrt_price_x96 - quotient


def get_next_sqrt_price_from_input(
    sqrt_price_x96: int,
    liquidity: int,
    amount_in: int,
    zero_for_one: bool
) -> int:
    """Calculate next sqrt price from input amount"""
    if sqrt_price_x96 <= 0 or liquidity <= 0:
        raise ValueError("Invalid swap state: price and liquidity must be positive")

    if zero_for_one:
        return get_next_sqrt_price_from_amount0_rounding_up(sqrt_price_x96, liquidity, amount_in, True)
    return get_next_sqrt_price_from_amount1_rounding_down(sqrt_price_x96, liquidity, amount_in, True)


def compute_swap_step(
    sqrt_ratio_current_x96: int,
    sqrt_ratio_target_x96: int,
    liquidity: int,
    amount_remaining: int,
    fee_pips: int,
    zero_for_one: bool
) -> SwapStepResult:
    """
    Compute one exact-input swap step bounded by a target price

    Two scenarios:
    1. The fee-free budget covers the input needed to reach the target: the
       price lands exactly on the target and the fee is grossed up from the
       input actually used.
    2. Otherwise the price moves as far as the budget allows and everything
       not converted to input is the fee.
    """
    if amount_remaining <= 0 or liquidity <= 0:
        return SwapStepResult(sqrt_ratio_current_x96, 0, 0, 0, False)

    amount_remaining_less_fee = mul_div(amount_remaining, FEE_UNITS - fee_pips, FEE_UNITS)

    if zero_for_one:
        amount_in_to_target = get_amount0_delta(sqrt_ratio_target_x96, sqrt_ratio_current_x96, liquidity, True)
    else:
        amount_in_to_target = get_amount1_delta(sqrt_ratio_current_x96, sqrt_ratio_target_x96, liquidity, True)

    reached_target = amount_remaining_less_fee >= amount_in_to_target
    if reached_target:
        sqrt_ratio_next_x96 = sqrt_ratio_target_x96
    else:
        sqrt_ratio_next_x96 = get_next_sqrt_price_from_input(
            sqrt_ratio_current_x96, liquidity, amount_remaining_less_fee, zero_for_one
        )

    if zero_for_one:
        amount_in = get_amount0_delta(sqrt_ratio_next_x96, sqrt_ratio_current_x96, liquidity, True)
        amount_out = get_amount1_delta(sqrt_ratio_next_x96, sqrt_ratio_current_x96, liquidity, False)
    else:
        amount_in = get_amount1_delta(sqrt_ratio_current_x96, sqrt_ratio_next_x96, liquidity, True)
        amount_out = get_amount0_delta(sqrt_ratio_current_x96, sqrt_ratio_next_x96, liquidity, False)

    if reached_target:
        fee_amount = mul_div_rounding_up(amount_in, fee_pips, FEE_UNITS - fee_pips)
    else:
        fee_amount = amount_remaining - amount_in

    return SwapStepResult(
        sqrt_ratio_next_x96=sqrt_ratio_next_x96,
        amount_in=amount_in,
        amount_out=amount_out,
        fee_amount=fee_amount,
        reached_target=reached_target,
    )


def sqrt_price_to_price_x18(sqrt_price_x96: int) -> int:
    """Token1-per-token0 price on the 1e18 scale"""
    return mul_div(sqrt_price_x96, sqrt_price_x96, Q96 * Q96 // 10 ** 18)
