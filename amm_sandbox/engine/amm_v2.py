#!/usr/bin/env python3
"""
Constant Product (V2) Pricing Engine

Quote/apply pairs for swaps, proportional liquidity adds and pro-rata
removals on an x * y = k pool, plus an arbitrage solver that sizes a trade to
pull the pool price toward an external reference price.

Quotes never raise for bad user input or unusable pool states; they return a
quote with ok=False and a readable reason. Apply functions return the input
state untouched when handed a failed quote.
"""

import logging
from dataclasses import replace
from typing import Optional, Tuple

from ..core.fixed_point import (
    ONE, ZERO, fp_div, fp_mul, max_fp, min_fp, mul_div, parse_fp, sqrt_int
)
from ..core.types import (
    AddLiquidityQuote, ArbitrageQuote, AutoArbitrageResult, LastTradeMetrics,
    PoolState, RemoveLiquidityQuote, SwapDirection, SwapQuote, TokenInfo
)
from .config import DEFAULT_CONFIG, EngineConfig, V2Presets

logger = logging.getLogger(__name__)


def create_initial_pool_state(
    token_x: Optional[TokenInfo] = None,
    token_y: Optional[TokenInfo] = None,
    reserve_x: str = "10000",
    reserve_y: str = "10000",
    fee_rate: str = "0.003"
) -> PoolState:
    """
    Build a fresh pool from decimal text

    The single implicit LP owns the whole initial supply, seeded with the
    geometric mean of the two reserves.
    """
    reserve_x_fp = parse_fp(reserve_x)
    reserve_y_fp = parse_fp(reserve_y)
    lp_seed = sqrt_int(reserve_x_fp * reserve_y_fp)

    return PoolState(
        token_x=token_x or TokenInfo("X", 18),
        token_y=token_y or TokenInfo("Y", 18),
        reserve_x=reserve_x_fp,
        reserve_y=reserve_y_fp,
        fee_rate=parse_fp(fee_rate),
        lp_total_supply=lp_seed,
        lp_user_balance=lp_seed,
    )


def state_from_preset(preset_id: str) -> PoolState:
    """Build the initial state for a named preset (unknown ids fall back to the first preset)"""
    preset = V2Presets.get_preset_by_id(preset_id)
    return create_initial_pool_state(
        token_x=TokenInfo(*preset["token_x"]),
        token_y=TokenInfo(*preset["token_y"]),
        reserve_x=preset["reserve_x"],
        reserve_y=preset["reserve_y"],
        fee_rate=preset["fee_rate"],
    )


def spot_price_y_per_x(state: PoolState) -> int:
    return fp_div(state.reserve_y, state.reserve_x)


# =============================================================================
# Swap
# =============================================================================

def _invalid_swap_quote(direction: SwapDirection, amount_in: int, error: str) -> SwapQuote:
    logger.debug("Swap quote rejected (%s, amount_in=%s): %s", direction.value, amount_in, error)
    return SwapQuote(ok=False, direction=direction, amount_in=amount_in, error=error)


def quote_swap_exact_in(state: PoolState, direction: SwapDirection, amount_in: int) -> SwapQuote:
    """
    Quote an exact-input swap against the constant product curve

    Besides the fee-adjusted output the quote carries a hypothetical no-fee
    output so total slippage can be split into curve impact and fee impact.

    Args:
        state: Pool to trade against
        direction: X_TO_Y sells token X, Y_TO_X sells token Y
        amount_in: Input amount (1e18-scaled)

    Returns:
        SwapQuote with ok=False and a reason when the trade is not possible
    """
    if amount_in <= ZERO:
        return _invalid_swap_quote(direction, amount_in, "Input amount must be greater than zero")
    if state.reserve_x <= ZERO or state.reserve_y <= ZERO:
        return _invalid_swap_quote(direction, amount_in, "Pool reserves are empty")
    if state.fee_rate < ZERO or state.fee_rate >= ONE:
        return _invalid_swap_quote(direction, amount_in, "Invalid fee rate")

    x_to_y = direction == SwapDirection.X_TO_Y
    in_reserve = state.reserve_x if x_to_y else state.reserve_y
    out_reserve = state.reserve_y if x_to_y else state.reserve_x

    amount_in_after_fee = fp_mul(amount_in, ONE - state.fee_rate)
    fee_amount = amount_in - amount_in_after_fee
    if amount_in_after_fee <= ZERO:
        return _invalid_swap_quote(direction, amount_in, "Effective amount after fee is too small")

    amount_out = mul_div(out_reserve, amount_in_after_fee, in_reserve + amount_in_after_fee)
    if amount_out <= ZERO or amount_out >= out_reserve:
        return _invalid_swap_quote(direction, amount_in, "Output amount is too small or drains pool")

    amount_out_no_fee = mul_div(out_reserve, amount_in, in_reserve + amount_in)

    if x_to_y:
        reserve_x_after = state.reserve_x + amount_in
        reserve_y_after = state.reserve_y - amount_out
    else:
        reserve_x_after = state.reserve_x - amount_out
        reserve_y_after = state.reserve_y + amount_in

    if reserve_x_after <= ZERO or reserve_y_after <= ZERO:
        return _invalid_swap_quote(direction, amount_in, "Resulting reserves must stay positive")

    spot_before = spot_price_y_per_x(state)
    spot_after = fp_div(reserve_y_after, reserve_x_after)

    if x_to_y:
        avg_price = fp_div(amount_out, amount_in)
        avg_price_no_fee = fp_div(amount_out_no_fee, amount_in)
        slippage_total = max_fp(ZERO, ONE - fp_div(avg_price, spot_before))
        slippage_curve = max_fp(ZERO, ONE - fp_div(avg_price_no_fee, spot_before))
    else:
        avg_price = fp_div(amount_in, amount_out)
        avg_price_no_fee = fp_div(amount_in, amount_out_no_fee)
        slippage_total = max_fp(ZERO, fp_div(avg_price, spot_before) - ONE)
        slippage_curve = max_fp(ZERO, fp_div(avg_price_no_fee, spot_before) - ONE)

    return SwapQuote(
        ok=True,
        direction=direction,
        amount_in=amount_in,
        reserve_x_before=state.reserve_x,
        reserve_y_before=state.reserve_y,
        amount_in_after_fee=amount_in_after_fee,
        amount_out=amount_out,
        amount_out_no_fee=amount_out_no_fee,
        fee_amount_in_token=fee_amount,
        reserve_x_after=reserve_x_after,
        reserve_y_after=reserve_y_after,
        avg_price_y_per_x=avg_price,
        spot_price_before_y_per_x=spot_before,
        spot_price_after_y_per_x=spot_after,
        slippage_total=slippage_total,
        slippage_curve=slippage_curve,
        fee_impact_rate=max_fp(ZERO, slippage_total - slippage_curve),
        fee_impact_out_token=max_fp(ZERO, amount_out_no_fee - amount_out),
        k_before=state.reserve_x * state.reserve_y,
        k_after=reserve_x_after * reserve_y_after,
    )


def apply_swap_exact_in(state: PoolState, quote: SwapQuote) -> PoolState:
    """Commit a swap quote; the fee stays in the pool and is tallied on the input token"""
    if not quote.ok:
        return state

    last_trade = LastTradeMetrics(
        direction=quote.direction,
        reserve_x_before=quote.reserve_x_before,
        reserve_y_before=quote.reserve_y_before,
        reserve_x_after=quote.reserve_x_after,
        reserve_y_after=quote.reserve_y_after,
        amount_in=quote.amount_in,
        amount_out=quote.amount_out,
        amount_out_no_fee=quote.amount_out_no_fee,
        fee_amount_in_token=quote.fee_amount_in_token,
        avg_price_y_per_x=quote.avg_price_y_per_x,
        spot_price_before_y_per_x=quote.spot_price_before_y_per_x,
        spot_price_after_y_per_x=quote.spot_price_after_y_per_x,
        slippage_total=quote.slippage_total,
        slippage_curve=quote.slippage_curve,
        fee_impact_rate=quote.fee_impact_rate,
        fee_impact_out_token=quote.fee_impact_out_token,
        k_before=quote.k_before,
        k_after=quote.k_after,
    )

    if quote.direction == SwapDirection.X_TO_Y:
        fee_acc_x, fee_acc_y = state.fee_acc_x + quote.fee_amount_in_token, state.fee_acc_y
    else:
        fee_acc_x, fee_acc_y = state.fee_acc_x, state.fee_acc_y + quote.fee_amount_in_token

    logger.debug(
        "Applied swap %s at t=%d: in=%s out=%s fee=%s",
        quote.direction.value, state.t + 1, quote.amount_in, quote.amount_out, quote.fee_amount_in_token
    )

    return replace(
        state,
        reserve_x=quote.reserve_x_after,
        reserve_y=quote.reserve_y_after,
        fee_acc_x=fee_acc_x,
        fee_acc_y=fee_acc_y,
        t=state.t + 1,
        last_trade=last_trade,
    )


# =============================================================================
# Liquidity
# =============================================================================

def _invalid_add_quote(amount_x_in: int, amount_y_in: int, error: str) -> AddLiquidityQuote:
    logger.debug("Add liquidity quote rejected: %s", error)
    return AddLiquidityQuote(ok=False, amount_x_in=amount_x_in, amount_y_in=amount_y_in, error=error)


def quote_add_liquidity(state: PoolState, amount_x_in: int, amount_y_in: int) -> AddLiquidityQuote:
    """
    Quote a proportional deposit

    Inputs are clipped to the pool's current ratio and the surplus side is
    refunded. The first deposit mints sqrt(x * y); later deposits mint the
    smaller of the two pro-rata shares.
    """
    if amount_x_in <= ZERO or amount_y_in <= ZERO:
        return _invalid_add_quote(amount_x_in, amount_y_in, "Both token inputs must be greater than zero")

    amount_x_used = amount_x_in
    amount_y_used = amount_y_in
    pool_funded = state.reserve_x > ZERO and state.reserve_y > ZERO and state.lp_total_supply > ZERO

    if pool_funded:
        amount_y_optimal = mul_div(amount_x_in, state.reserve_y, state.reserve_x)
        if amount_y_optimal <= amount_y_in:
            amount_y_used = amount_y_optimal
        else:
            amount_x_used = mul_div(amount_y_in, state.reserve_x, state.reserve_y)

    if pool_funded:
        mint_x = mul_div(amount_x_used, state.lp_total_supply, state.reserve_x)
        mint_y = mul_div(amount_y_used, state.lp_total_supply, state.reserve_y)
        lp_mint = min_fp(mint_x, mint_y)
    else:
        lp_mint = sqrt_int(amount_x_used * amount_y_used)

    if lp_mint <= ZERO:
        return _invalid_add_quote(amount_x_in, amount_y_in, "LP mint amount too small, increase inputs")

    return AddLiquidityQuote(
        ok=True,
        amount_x_in=amount_x_in,
        amount_y_in=amount_y_in,
        amount_x_used=amount_x_used,
        amount_y_used=amount_y_used,
        refund_x=amount_x_in - amount_x_used,
        refund_y=amount_y_in - amount_y_used,
        lp_mint=lp_mint,
        lp_share_after=fp_div(state.lp_user_balance + lp_mint, state.lp_total_supply + lp_mint),
    )


def apply_add_liquidity(state: PoolState, quote: AddLiquidityQuote) -> PoolState:
    if not quote.ok:
        return state

    logger.debug("Applied add liquidity at t=%d: mint=%s", state.t + 1, quote.lp_mint)
    return replace(
        state,
        reserve_x=state.reserve_x + quote.amount_x_used,
        reserve_y=state.reserve_y + quote.amount_y_used,
        lp_total_supply=state.lp_total_supply + quote.lp_mint,
        lp_user_balance=state.lp_user_balance + quote.lp_mint,
        t=state.t + 1,
        last_trade=None,
    )


def _invalid_remove_quote(burn_lp: int, error: str) -> RemoveLiquidityQuote:
    logger.debug("Remove liquidity quote rejected: %s", error)
    return RemoveLiquidityQuote(ok=False, burn_lp=burn_lp, error=error)


def quote_remove_liquidity(state: PoolState, burn_lp: int) -> RemoveLiquidityQuote:
    """Quote a pro-rata withdrawal of reserve * burn / total_supply per token"""
    if burn_lp <= ZERO:
        return _invalid_remove_quote(burn_lp, "LP burn amount must be greater than zero")
    if state.lp_total_supply <= ZERO:
        return _invalid_remove_quote(burn_lp, "No LP supply in pool")
    if burn_lp > state.lp_user_balance:
        return _invalid_remove_quote(burn_lp, "Cannot burn more LP than user balance")

    out_x = mul_div(state.reserve_x, burn_lp, state.lp_total_supply)
    out_y = mul_div(state.reserve_y, burn_lp, state.lp_total_supply)

    if out_x <= ZERO and out_y <= ZERO:
        return _invalid_remove_quote(burn_lp, "Withdraw amount too small")

    next_supply = state.lp_total_supply - burn_lp
    next_user = state.lp_user_balance - burn_lp

    return RemoveLiquidityQuote(
        ok=True,
        burn_lp=burn_lp,
        out_x=out_x,
        out_y=out_y,
        lp_share_after=fp_div(next_user, next_supply) if next_supply > ZERO else ZERO,
    )


def apply_remove_liquidity(state: PoolState, quote: RemoveLiquidityQuote) -> PoolState:
    if not quote.ok:
        return state

    logger.debug("Applied remove liquidity at t=%d: burn=%s", state.t + 1, quote.burn_lp)
    return replace(
        state,
        reserve_x=state.reserve_x - quote.out_x,
        reserve_y=state.reserve_y - quote.out_y,
        lp_total_supply=state.lp_total_supply - quote.burn_lp,
        lp_user_balance=state.lp_user_balance - quote.burn_lp,
        t=state.t + 1,
        last_trade=None,
    )


# =============================================================================
# Valuation
# =============================================================================

def pool_value_in_y(state: PoolState) -> int:
    """Total pool value denominated in token Y at the current spot price"""
    if state.reserve_x <= ZERO:
        return state.reserve_y
    return state.reserve_y + fp_mul(state.reserve_x, spot_price_y_per_x(state))


def relative_spread(base: int, target: int) -> int:
    """|base - target| / target, zero when target is not positive"""
    if target <= ZERO:
        return ZERO
    return fp_div(abs(base - target), target)


# =============================================================================
# Arbitrage
# =============================================================================

def _invalid_arbitrage_quote(external_price: int, direction: SwapDirection, error: str) -> ArbitrageQuote:
    logger.debug("Arbitrage quote rejected at external price %s: %s", external_price, error)
    return ArbitrageQuote(
        ok=False,
        external_price_y_per_x=external_price,
        direction=direction,
        swap_quote=SwapQuote(ok=False, direction=direction, amount_in=ZERO, error=error),
        error=error,
    )


def _should_increase_input(direction: SwapDirection, quote: SwapQuote, external_price: int) -> bool:
    """True while the post-trade price has not yet reached the external price"""
    if direction == SwapDirection.X_TO_Y:
        return quote.spot_price_after_y_per_x > external_price
    return quote.spot_price_after_y_per_x < external_price


def _is_better_candidate(candidate: SwapQuote, best: Optional[SwapQuote], external_price: int) -> bool:
    if not candidate.ok:
        return False
    if best is None or not best.ok:
        return True

    candidate_diff = abs(candidate.spot_price_after_y_per_x - external_price)
    best_diff = abs(best.spot_price_after_y_per_x - external_price)
    if candidate_diff != best_diff:
        return candidate_diff < best_diff
    return candidate.amount_in < best.amount_in


def _expected_profit_in_y(quote: SwapQuote, external_price: int) -> int:
    """Profit of the trade marked to the external price, denominated in token Y"""
    if not quote.ok:
        return ZERO
    if quote.direction == SwapDirection.X_TO_Y:
        return quote.amount_out - fp_mul(quote.amount_in, external_price)
    return fp_mul(quote.amount_out, external_price) - quote.amount_in


def quote_arbitrage_to_external_price(
    state: PoolState,
    external_price_y_per_x: int,
    config: EngineConfig = DEFAULT_CONFIG
) -> ArbitrageQuote:
    """
    Size the trade that brings the pool price closest to an external price

    Search runs in two phases:
    1. Expanding search: start from input_reserve / seed_divisor and double the
       input until the post-trade price passes the external price (or the cap
       input_reserve * cap_multiplier is hit). This brackets the answer.
    2. Integer binary search inside the bracket, keeping the candidate whose
       post-trade price is nearest the external price (smaller input on ties).

    The trade direction always moves the pool price toward the external price.
    A trade is only offered when it is profitable in Y after fees.
    """
    if external_price_y_per_x <= ZERO:
        return _invalid_arbitrage_quote(
            external_price_y_per_x, SwapDirection.X_TO_Y, "External price must be greater than zero"
        )
    if state.reserve_x <= ZERO or state.reserve_y <= ZERO:
        return _invalid_arbitrage_quote(external_price_y_per_x, SwapDirection.X_TO_Y, "Pool reserves are empty")

    spot_before = spot_price_y_per_x(state)
    if spot_before == external_price_y_per_x:
        return _invalid_arbitrage_quote(
            external_price_y_per_x, SwapDirection.X_TO_Y, "Pool price already equals external price"
        )

    direction = SwapDirection.Y_TO_X if external_price_y_per_x > spot_before else SwapDirection.X_TO_Y
    in_reserve = state.reserve_x if direction == SwapDirection.X_TO_Y else state.reserve_y

    max_bound = max(1, in_reserve * config.arbitrage_cap_multiplier)
    low = 1
    high = max(1, in_reserve // config.arbitrage_seed_divisor)
    best: Optional[SwapQuote] = None
    quotes_evaluated = 0

    for _ in range(config.arbitrage_max_iterations):
        quote = quote_swap_exact_in(state, direction, high)
        quotes_evaluated += 1
        if not quote.ok:
            break
        if _is_better_candidate(quote, best, external_price_y_per_x):
            best = quote
        if not _should_increase_input(direction, quote, external_price_y_per_x):
            break
        low = high
        high = high * 2
        if high > max_bound:
            high = max_bound
            break

    left = min(low, high)
    right = max(low, high)

    for _ in range(config.arbitrage_max_iterations):
        if left > right:
            break
        mid = (left + right) // 2
        if mid <= ZERO:
            break
        quote = quote_swap_exact_in(state, direction, mid)
        quotes_evaluated += 1
        if not quote.ok:
            right = mid - 1
            continue
        if _is_better_candidate(quote, best, external_price_y_per_x):
            best = quote
        if _should_increase_input(direction, quote, external_price_y_per_x):
            left = mid + 1
        else:
            right = mid - 1

    if best is None or not best.ok:
        return _invalid_arbitrage_quote(external_price_y_per_x, direction, "Unable to find an arbitrage trade")

    profit_in_y = _expected_profit_in_y(best, external_price_y_per_x)
    if profit_in_y <= ZERO:
        return _invalid_arbitrage_quote(
            external_price_y_per_x, direction, "No profitable arbitrage after fees at this external price"
        )

    logger.debug(
        "Arbitrage search %s: %d quotes evaluated, amount_in=%s, profit_in_y=%s",
        direction.value, quotes_evaluated, best.amount_in, profit_in_y
    )

    return ArbitrageQuote(
        ok=True,
        external_price_y_per_x=external_price_y_per_x,
        direction=direction,
        swap_quote=best,
        amount_in=best.amount_in,
        amount_out=best.amount_out,
        spot_price_before_y_per_x=spot_before,
        spot_price_after_y_per_x=best.spot_price_after_y_per_x,
        spread_before=relative_spread(spot_before, external_price_y_per_x),
        spread_after=relative_spread(best.spot_price_after_y_per_x, external_price_y_per_x),
        expected_profit_in_y=profit_in_y,
    )


def apply_arbitrage(state: PoolState, quote: ArbitrageQuote) -> PoolState:
    """Commit the swap chosen by the arbitrage solver"""
    if not quote.ok:
        return state
    return apply_swap_exact_in(state, quote.swap_quote)


def run_auto_arbitrage(
    state: PoolState,
    external_price_y_per_x: int,
    max_steps: Optional[int] = None,
    tolerance: Optional[int] = None,
    config: EngineConfig = DEFAULT_CONFIG
) -> Tuple[PoolState, AutoArbitrageResult]:
    """
    Repeat arbitrage steps until the spread is within tolerance

    Each step re-solves against the state produced by the previous one. Stops
    when the relative spread drops to the tolerance, when no further profitable
    trade exists, or after max_steps applied steps.

    Returns:
        (final state, AutoArbitrageResult); on failure the input state is returned
    """
    max_steps = config.auto_arbitrage_max_steps if max_steps is None else max_steps
    tolerance = config.auto_arbitrage_tolerance if tolerance is None else tolerance

    if external_price_y_per_x <= ZERO:
        return state, AutoArbitrageResult(ok=False, error="External price must be greater than zero")
    if max_steps <= 0:
        return state, AutoArbitrageResult(ok=False, error="Max steps must be greater than zero")
    if tolerance < ZERO:
        return state, AutoArbitrageResult(ok=False, error="Tolerance must not be negative")

    current = state
    steps = 0
    spread = relative_spread(spot_price_y_per_x(current), external_price_y_per_x)

    while steps < max_steps:
        if spread <= tolerance:
            break
        quote = quote_arbitrage_to_external_price(current, external_price_y_per_x, config)
        if not quote.ok:
            if steps == 0:
                return state, AutoArbitrageResult(ok=False, error=quote.error, final_spread=spread)
            break
        current = apply_arbitrage(current, quote)
        steps += 1
        spread = quote.spread_after

    if steps == 0:
        return state, AutoArbitrageResult(
            ok=False, error="Pool price already within tolerance of external price", final_spread=spread
        )

    logger.debug("Auto arbitrage finished after %d steps, final spread %s", steps, spread)
    return current, AutoArbitrageResult(ok=True, steps=steps, final_spread=spread)
