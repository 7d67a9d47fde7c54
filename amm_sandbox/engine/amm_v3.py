#!/usr/bin/env python3
"""
Concentrated Liquidity (V3) Pricing Engine

A tick-indexed pool that carries exactly one liquidity position. Swaps run a
single exact-input step bounded by the position's range: a trade that would
push the price past the range boundary stops there, zeroes the active
liquidity and hands back the unconsumed input as a partial fill.

Liquidity magnitudes at or below LIQUIDITY_DUST_X18 are normalized to zero
wherever they are stored.
"""

import logging
from dataclasses import replace
from typing import Optional, Tuple

from ..core.constants import (
    FEE_TIER_TO_TICK_SPACING, LIQUIDITY_DUST_X18, MAX_SQRT_RATIO, MAX_TICK,
    MIN_SQRT_RATIO, MIN_TICK, Q128, Q192
)
from ..core.fixed_point import ONE, SCALE, ZERO, fp_div, max_fp, mul_div, parse_fp, sqrt_int
from ..core.liquidity_amounts import (
    get_amount0_delta, get_amount1_delta, get_amounts_for_liquidity, get_liquidity_for_amounts
)
from ..core.swap_math import compute_swap_step
from ..core.tick_math import get_sqrt_ratio_at_tick, get_tick_at_sqrt_ratio
from ..core.types import (
    SwapDirection, TokenInfo, V3AddLiquidityParams, V3AddLiquidityQuote, V3LastTradeMetrics,
    V3PoolState, V3Position, V3RemoveLiquidityQuote, V3SwapQuote
)
from .config import V3Presets

logger = logging.getLogger(__name__)


# =============================================================================
# Tick range helpers
# =============================================================================

def _clamp_tick(tick: int) -> int:
    return max(MIN_TICK, min(MAX_TICK, tick))


def _align_tick_down(tick: int, spacing: int) -> int:
    safe_tick = _clamp_tick(tick)
    return _clamp_tick(safe_tick - safe_tick % spacing)


def _align_tick_up(tick: int, spacing: int) -> int:
    down = _align_tick_down(tick, spacing)
    if down >= tick:
        return down
    return _clamp_tick(down + spacing)


def normalize_range(tick_lower: int, tick_upper: int, spacing: int) -> Tuple[int, int]:
    """
    Snap a requested range onto the tick spacing grid

    The lower bound rounds down and the upper bound rounds up, both clamped to
    the tick domain. A collapsed range is widened by one spacing so that the
    result always satisfies lower < upper.
    """
    lower = _align_tick_down(tick_lower, spacing)
    upper = _align_tick_up(tick_upper, spacing)

    if upper <= lower:
        upper = min(MAX_TICK, lower + spacing)
    if upper <= lower:
        lower = max(MIN_TICK, upper - spacing)

    return lower, upper


def _is_tick_in_range(tick: int, tick_lower: int, tick_upper: int) -> bool:
    return tick_lower <= tick < tick_upper


def normalize_liquidity(value: int) -> int:
    """Treat dust liquidity as zero"""
    return ZERO if value <= LIQUIDITY_DUST_X18 else value


def tick_spacing_for_fee_tier(fee_tier: int) -> int:
    if fee_tier not in FEE_TIER_TO_TICK_SPACING:
        raise ValueError(f"Unsupported fee tier {fee_tier}, expected one of {sorted(FEE_TIER_TO_TICK_SPACING)}")
    return FEE_TIER_TO_TICK_SPACING[fee_tier]


# =============================================================================
# Pricing helpers
# =============================================================================

def _spot_price_from_sqrt_x96(sqrt_price_x96: int) -> int:
    if sqrt_price_x96 <= ZERO:
        return ZERO
    return mul_div(sqrt_price_x96 * sqrt_price_x96, SCALE, Q192)


def spot_price_v3_y_per_x(state: V3PoolState) -> int:
    return _spot_price_from_sqrt_x96(state.sqrt_price_x96)


def _virtual_reserves_in_range(state: V3PoolState, sqrt_price_x96: int, liquidity: int) -> Tuple[int, int]:
    """Token amounts the position's liquidity commands between the current price and each bound"""
    if liquidity <= ZERO:
        return ZERO, ZERO

    sqrt_lower = get_sqrt_ratio_at_tick(state.position.tick_lower)
    sqrt_upper = get_sqrt_ratio_at_tick(state.position.tick_upper)
    return (
        get_amount0_delta(sqrt_price_x96, sqrt_upper, liquidity, False),
        get_amount1_delta(sqrt_lower, sqrt_price_x96, liquidity, False),
    )


def position_token_amounts(state: V3PoolState) -> Tuple[int, int]:
    """Token X/Y amounts currently backing the position (rounded up)"""
    return get_amounts_for_liquidity(
        normalize_liquidity(state.position.liquidity),
        state.sqrt_price_x96,
        get_sqrt_ratio_at_tick(state.position.tick_lower),
        get_sqrt_ratio_at_tick(state.position.tick_upper),
    )


# =============================================================================
# Construction
# =============================================================================

def create_initial_v3_pool_state(
    token_x: Optional[TokenInfo] = None,
    token_y: Optional[TokenInfo] = None,
    fee_tier: int = 3000,
    initial_price_y_per_x: str = "1",
    tick_lower: Optional[int] = None,
    tick_upper: Optional[int] = None,
    initial_amount_x: str = "10000",
    initial_amount_y: str = "10000"
) -> V3PoolState:
    """
    Build a fresh pool with a single seeded position

    The sqrt price is derived from the decimal price text and clamped into the
    valid ratio domain. Missing range bounds default to ten tick spacings on
    either side of the current tick.
    """
    tick_spacing = tick_spacing_for_fee_tier(fee_tier)

    price = parse_fp(initial_price_y_per_x)
    sqrt_price_raw = sqrt_int(max(price, 1) * Q192 // SCALE)
    sqrt_price_x96 = max(MIN_SQRT_RATIO, min(MAX_SQRT_RATIO - 1, sqrt_price_raw))
    tick_current = get_tick_at_sqrt_ratio(sqrt_price_x96)

    fallback_lower, fallback_upper = normalize_range(
        tick_current - tick_spacing * 10, tick_current + tick_spacing * 10, tick_spacing
    )
    lower, upper = normalize_range(
        fallback_lower if tick_lower is None else tick_lower,
        fallback_upper if tick_upper is None else tick_upper,
        tick_spacing
    )

    position_liquidity = get_liquidity_for_amounts(
        parse_fp(initial_amount_x),
        parse_fp(initial_amount_y),
        sqrt_price_x96,
        get_sqrt_ratio_at_tick(lower),
        get_sqrt_ratio_at_tick(upper),
    )

    return V3PoolState(
        token_x=token_x or TokenInfo("X", 18),
        token_y=token_y or TokenInfo("Y", 18),
        fee_tier=fee_tier,
        tick_spacing=tick_spacing,
        sqrt_price_x96=sqrt_price_x96,
        tick_current=tick_current,
        liquidity=position_liquidity if _is_tick_in_range(tick_current, lower, upper) else ZERO,
        position=V3Position(tick_lower=lower, tick_upper=upper, liquidity=position_liquidity),
    )


def state_from_preset_v3(preset_id: str) -> V3PoolState:
    """Build the initial state for a named preset (unknown ids fall back to the first preset)"""
    preset = V3Presets.get_preset_by_id(preset_id)
    return create_initial_v3_pool_state(
        token_x=TokenInfo(*preset["token_x"]),
        token_y=TokenInfo(*preset["token_y"]),
        fee_tier=preset["fee_tier"],
        initial_price_y_per_x=preset["initial_price_y_per_x"],
        tick_lower=preset["tick_lower"],
        tick_upper=preset["tick_upper"],
        initial_amount_x=preset["initial_amount_x"],
        initial_amount_y=preset["initial_amount_y"],
    )


# =============================================================================
# Swap
# =============================================================================

def _invalid_swap_quote(direction: SwapDirection, amount_in: int, error: str) -> V3SwapQuote:
    logger.debug("V3 swap quote rejected (%s, amount_in=%s): %s", direction.value, amount_in, error)
    return V3SwapQuote(ok=False, direction=direction, amount_in=amount_in, error=error)


def quote_v3_swap_exact_in(state: V3PoolState, direction: SwapDirection, amount_in: int) -> V3SwapQuote:
    """
    Quote an exact-input swap against the single position

    The step targets the position's lower bound when selling token X and its
    upper bound when selling token Y. If the input would carry the price past
    that bound, the swap stops on the bound and the remainder is reported as
    amount_in_unfilled (partial_fill=True).

    Args:
        state: Pool to trade against
        direction: X_TO_Y (zero for one) or Y_TO_X
        amount_in: Requested input amount (1e18-scaled)

    Returns:
        V3SwapQuote with ok=False and a reason when the trade is not possible
    """
    if amount_in <= ZERO:
        return _invalid_swap_quote(direction, amount_in, "Input amount must be greater than zero")

    active_liquidity = normalize_liquidity(state.liquidity)
    if active_liquidity <= ZERO:
        return _invalid_swap_quote(direction, amount_in, "No active liquidity at current tick")

    zero_for_one = direction == SwapDirection.X_TO_Y
    sqrt_before = state.sqrt_price_x96
    target_tick = state.position.tick_lower if zero_for_one else state.position.tick_upper
    target_sqrt = get_sqrt_ratio_at_tick(target_tick)

    if zero_for_one and target_sqrt >= sqrt_before:
        return _invalid_swap_quote(direction, amount_in, "Price already at or below lower range bound")
    if not zero_for_one and target_sqrt <= sqrt_before:
        return _invalid_swap_quote(direction, amount_in, "Price already at or above upper range bound")

    step = compute_swap_step(sqrt_before, target_sqrt, active_liquidity, amount_in, state.fee_tier, zero_for_one)

    consumed = step.amount_in + step.fee_amount
    if consumed <= ZERO or step.amount_out <= ZERO:
        return _invalid_swap_quote(direction, amount_in, "Swap amount too small at current precision")

    amount_in_unfilled = max_fp(ZERO, amount_in - consumed)
    sqrt_after = step.sqrt_ratio_next_x96
    crossed_boundary = step.reached_target
    # A swap that lands on the bound ends exactly on target_tick (MAX_SQRT_RATIO has no inverse)
    tick_after = target_tick if crossed_boundary else get_tick_at_sqrt_ratio(sqrt_after)
    liquidity_after = ZERO if crossed_boundary else active_liquidity

    spot_before = _spot_price_from_sqrt_x96(sqrt_before)
    spot_after = _spot_price_from_sqrt_x96(sqrt_after)

    if zero_for_one:
        avg_price = fp_div(step.amount_out, consumed)
        slippage_total = max_fp(ZERO, ONE - fp_div(avg_price, spot_before))
    else:
        avg_price = fp_div(consumed, step.amount_out)
        slippage_total = max_fp(ZERO, fp_div(avg_price, spot_before) - ONE)

    reserve_x_before, reserve_y_before = _virtual_reserves_in_range(state, sqrt_before, active_liquidity)
    reserve_x_after, reserve_y_after = _virtual_reserves_in_range(state, sqrt_after, liquidity_after)

    return V3SwapQuote(
        ok=True,
        direction=direction,
        amount_in=amount_in,
        amount_in_consumed=consumed,
        amount_in_unfilled=amount_in_unfilled,
        amount_out=step.amount_out,
        fee_amount_in_token=step.fee_amount,
        avg_price_y_per_x=avg_price,
        spot_price_before_y_per_x=spot_before,
        spot_price_after_y_per_x=spot_after,
        slippage_total=slippage_total,
        sqrt_price_before_x96=sqrt_before,
        sqrt_price_after_x96=sqrt_after,
        tick_before=state.tick_current,
        tick_after=tick_after,
        liquidity_before=active_liquidity,
        liquidity_after=liquidity_after,
        crossed_boundary=crossed_boundary,
        partial_fill=amount_in_unfilled > ZERO,
        k_before=reserve_x_before * reserve_y_before,
        k_after=reserve_x_after * reserve_y_after,
    )


def apply_v3_swap_exact_in(state: V3PoolState, quote: V3SwapQuote) -> V3PoolState:
    """
    Commit a swap quote and accrue its fee

    The fee is added to the per-token accumulator, to the global fee growth
    (fee * Q128 / liquidity_before, skipped when liquidity was zero) and to the
    sole position's fees owed.
    """
    if not quote.ok:
        return state

    fee = quote.fee_amount_in_token
    growth_delta = mul_div(fee, Q128, quote.liquidity_before) if quote.liquidity_before > ZERO else ZERO

    if quote.direction == SwapDirection.X_TO_Y:
        fee_fields = dict(
            fee_acc_x=state.fee_acc_x + fee,
            fee_growth_global_x128_x=state.fee_growth_global_x128_x + growth_delta,
        )
        position = replace(state.position, fee_owed_x=state.position.fee_owed_x + fee)
    else:
        fee_fields = dict(
            fee_acc_y=state.fee_acc_y + fee,
            fee_growth_global_x128_y=state.fee_growth_global_x128_y + growth_delta,
        )
        position = replace(state.position, fee_owed_y=state.position.fee_owed_y + fee)

    last_trade = V3LastTradeMetrics(
        direction=quote.direction,
        amount_in=quote.amount_in,
        amount_in_consumed=quote.amount_in_consumed,
        amount_in_unfilled=quote.amount_in_unfilled,
        amount_out=quote.amount_out,
        fee_amount_in_token=quote.fee_amount_in_token,
        avg_price_y_per_x=quote.avg_price_y_per_x,
        spot_price_before_y_per_x=quote.spot_price_before_y_per_x,
        spot_price_after_y_per_x=quote.spot_price_after_y_per_x,
        slippage_total=quote.slippage_total,
        sqrt_price_before_x96=quote.sqrt_price_before_x96,
        sqrt_price_after_x96=quote.sqrt_price_after_x96,
        tick_before=quote.tick_before,
        tick_after=quote.tick_after,
        liquidity_before=quote.liquidity_before,
        liquidity_after=quote.liquidity_after,
        crossed_boundary=quote.crossed_boundary,
        partial_fill=quote.partial_fill,
        k_before=quote.k_before,
        k_after=quote.k_after,
    )

    logger.debug(
        "Applied v3 swap %s at t=%d: consumed=%s out=%s tick %d -> %d%s",
        quote.direction.value, state.t + 1, quote.amount_in_consumed, quote.amount_out,
        quote.tick_before, quote.tick_after, " (range exhausted)" if quote.crossed_boundary else ""
    )

    return replace(
        state,
        sqrt_price_x96=quote.sqrt_price_after_x96,
        tick_current=quote.tick_after,
        liquidity=normalize_liquidity(quote.liquidity_after),
        position=position,
        t=state.t + 1,
        last_trade=last_trade,
        **fee_fields
    )


# =============================================================================
# Liquidity
# =============================================================================

def _invalid_add_quote(params: V3AddLiquidityParams, error: str) -> V3AddLiquidityQuote:
    logger.debug("V3 add liquidity quote rejected: %s", error)
    return V3AddLiquidityQuote(
        ok=False, amount_x_in=params.amount_x_in, amount_y_in=params.amount_y_in, error=error
    )


def quote_v3_add_liquidity(state: V3PoolState, params: V3AddLiquidityParams) -> V3AddLiquidityQuote:
    """
    Quote a deposit into the position

    The requested range (or the current one when a bound is omitted) is
    snapped to the tick spacing. Moving the range is only allowed while the
    position is empty. Amounts are converted to the largest liquidity they can
    back at the current price; whatever that liquidity does not need is
    refunded.
    """
    if params.amount_x_in <= ZERO and params.amount_y_in <= ZERO:
        return _invalid_add_quote(params, "At least one token amount must be greater than zero")

    tick_lower, tick_upper = normalize_range(
        state.position.tick_lower if params.tick_lower is None else params.tick_lower,
        state.position.tick_upper if params.tick_upper is None else params.tick_upper,
        state.tick_spacing
    )

    current_position_liquidity = normalize_liquidity(state.position.liquidity)
    range_updated = tick_lower != state.position.tick_lower or tick_upper != state.position.tick_upper

    if range_updated and current_position_liquidity > ZERO:
        return _invalid_add_quote(params, "Range can only be updated when existing position liquidity is zero")

    sqrt_lower = get_sqrt_ratio_at_tick(tick_lower)
    sqrt_upper = get_sqrt_ratio_at_tick(tick_upper)

    liquidity_delta = get_liquidity_for_amounts(
        params.amount_x_in,
        params.amount_y_in,
        state.sqrt_price_x96,
        sqrt_lower,
        sqrt_upper
    )
    if liquidity_delta <= ZERO:
        return _invalid_add_quote(params, "Liquidity delta too small, increase deposit amounts")

    amount_x_used, amount_y_used = get_amounts_for_liquidity(
        liquidity_delta, state.sqrt_price_x96, sqrt_lower, sqrt_upper
    )
    base_liquidity = ZERO if range_updated else current_position_liquidity
    position_liquidity_after = normalize_liquidity(base_liquidity + liquidity_delta)
    in_range = _is_tick_in_range(state.tick_current, tick_lower, tick_upper)

    return V3AddLiquidityQuote(
        ok=True,
        amount_x_in=params.amount_x_in,
        amount_y_in=params.amount_y_in,
        amount_x_used=amount_x_used,
        amount_y_used=amount_y_used,
        refund_x=params.amount_x_in - amount_x_used,
        refund_y=params.amount_y_in - amount_y_used,
        liquidity_delta=liquidity_delta,
        tick_lower=tick_lower,
        tick_upper=tick_upper,
        position_liquidity_after=position_liquidity_after,
        active_liquidity_after=position_liquidity_after if in_range else ZERO,
        range_updated=range_updated,
    )


def apply_v3_add_liquidity(state: V3PoolState, quote: V3AddLiquidityQuote) -> V3PoolState:
    if not quote.ok:
        return state

    position = state.position
    if quote.range_updated:
        position = replace(position, tick_lower=quote.tick_lower, tick_upper=quote.tick_upper)
    position = replace(position, liquidity=normalize_liquidity(quote.position_liquidity_after))

    logger.debug(
        "Applied v3 add liquidity at t=%d: delta=%s range=[%d, %d)",
        state.t + 1, quote.liquidity_delta, position.tick_lower, position.tick_upper
    )
    return replace(
        state,
        position=position,
        liquidity=normalize_liquidity(quote.active_liquidity_after),
        t=state.t + 1,
        last_trade=None,
    )


def _invalid_remove_quote(liquidity_delta: int, error: str) -> V3RemoveLiquidityQuote:
    logger.debug("V3 remove liquidity quote rejected: %s", error)
    return V3RemoveLiquidityQuote(ok=False, liquidity_delta=liquidity_delta, error=error)


def quote_v3_remove_liquidity(state: V3PoolState, liquidity_delta: int) -> V3RemoveLiquidityQuote:
    """Quote burning liquidity from the position at the current price and range"""
    current_position_liquidity = normalize_liquidity(state.position.liquidity)
    if liquidity_delta <= ZERO:
        return _invalid_remove_quote(liquidity_delta, "Liquidity burn amount must be greater than zero")
    if current_position_liquidity <= ZERO:
        return _invalid_remove_quote(liquidity_delta, "No position liquidity to remove")
    if liquidity_delta > current_position_liquidity:
        return _invalid_remove_quote(liquidity_delta, "Cannot remove more than current position liquidity")

    amount_x_out, amount_y_out = get_amounts_for_liquidity(
        liquidity_delta,
        state.sqrt_price_x96,
        get_sqrt_ratio_at_tick(state.position.tick_lower),
        get_sqrt_ratio_at_tick(state.position.tick_upper),
    )
    if amount_x_out <= ZERO and amount_y_out <= ZERO:
        return _invalid_remove_quote(liquidity_delta, "Withdraw amount too small at current precision")

    position_liquidity_after = normalize_liquidity(current_position_liquidity - liquidity_delta)
    in_range = _is_tick_in_range(state.tick_current, state.position.tick_lower, state.position.tick_upper)

    return V3RemoveLiquidityQuote(
        ok=True,
        liquidity_delta=liquidity_delta,
        amount_x_out=amount_x_out,
        amount_y_out=amount_y_out,
        position_liquidity_after=position_liquidity_after,
        active_liquidity_after=position_liquidity_after if in_range else ZERO,
    )


def apply_v3_remove_liquidity(state: V3PoolState, quote: V3RemoveLiquidityQuote) -> V3PoolState:
    if not quote.ok:
        return state

    logger.debug("Applied v3 remove liquidity at t=%d: delta=%s", state.t + 1, quote.liquidity_delta)
    return replace(
        state,
        position=replace(state.position, liquidity=normalize_liquidity(quote.position_liquidity_after)),
        liquidity=normalize_liquidity(quote.active_liquidity_after),
        t=state.t + 1,
        last_trade=None,
    )
