#!/usr/bin/env python3
"""
Concentrated Liquidity Swap Tests

Pool construction, range normalization and single-step swaps bounded by the
position's range, including partial fills at the range boundary.
"""

import sys
import os
import pytest
from dataclasses import replace

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from amm_sandbox.core.constants import MAX_SQRT_RATIO, MAX_TICK, MIN_SQRT_RATIO, MIN_TICK, Q96, Q128
from amm_sandbox.core.fixed_point import SCALE, ZERO, to_float
from amm_sandbox.core.tick_math import get_sqrt_ratio_at_tick
from amm_sandbox.core.types import SwapDirection, TokenInfo
from amm_sandbox.engine.amm_v3 import (
    apply_v3_swap_exact_in, create_initial_v3_pool_state, normalize_liquidity, normalize_range,
    position_token_amounts, quote_v3_swap_exact_in, spot_price_v3_y_per_x, state_from_preset_v3,
    tick_spacing_for_fee_tier
)


class TestRangeHelpers:
    """Tick spacing, range snapping and dust"""

    def test_fee_tier_spacing(self):
        assert tick_spacing_for_fee_tier(500) == 10
        assert tick_spacing_for_fee_tier(3000) == 60
        assert tick_spacing_for_fee_tier(10000) == 200

        with pytest.raises(ValueError):
            tick_spacing_for_fee_tier(1234)

    @pytest.mark.parametrize("requested,expected", [
        ((-130, 130), (-180, 180)),
        ((-120, 120), (-120, 120)),
        ((0, 0), (0, 60)),
        ((120, 60), (120, 180)),
    ])
    def test_normalize_range(self, requested, expected):
        assert normalize_range(requested[0], requested[1], 60) == expected

    def test_normalize_range_stays_in_domain(self):
        for lower, upper in [(MAX_TICK, MAX_TICK), (MIN_TICK - 500, MIN_TICK), (10 ** 9, -10 ** 9)]:
            result_lower, result_upper = normalize_range(lower, upper, 60)
            assert MIN_TICK <= result_lower < result_upper <= MAX_TICK, f"{(lower, upper)} -> {(result_lower, result_upper)}"

    def test_dust_liquidity(self):
        assert normalize_liquidity(10 ** 10) == ZERO
        assert normalize_liquidity(10 ** 10 + 1) == 10 ** 10 + 1
        assert normalize_liquidity(-5) == ZERO


class TestPoolCreation:
    """Initial v3 state"""

    def test_defaults(self):
        state = create_initial_v3_pool_state()

        assert state.token_x == TokenInfo("X", 18)
        assert state.fee_tier == 3000
        assert state.tick_spacing == 60
        assert state.sqrt_price_x96 == Q96
        assert state.tick_current == 0
        assert (state.position.tick_lower, state.position.tick_upper) == (-600, 600)
        assert state.liquidity > ZERO
        assert state.liquidity == state.position.liquidity
        assert spot_price_v3_y_per_x(state) == SCALE

    def test_position_backed_by_initial_amounts(self):
        state = create_initial_v3_pool_state()
        amount_x, amount_y = position_token_amounts(state)

        assert amount_x <= 10000 * SCALE
        assert amount_y <= 10000 * SCALE
        assert max(amount_x, amount_y) > 9999 * SCALE

    def test_out_of_range_start_has_no_active_liquidity(self):
        state = create_initial_v3_pool_state(tick_lower=600, tick_upper=1200)

        assert state.position.liquidity > ZERO
        assert state.liquidity == ZERO

    def test_presets(self):
        balanced = state_from_preset_v3("balanced")
        assert balanced.token_x.symbol == "ETH"
        assert abs(balanced.tick_current - 76012) <= 1
        assert to_float(spot_price_v3_y_per_x(balanced)) == pytest.approx(2000, rel=1e-9)
        assert balanced.liquidity > ZERO

        narrow = state_from_preset_v3("narrow")
        assert narrow.tick_spacing == 10
        assert (narrow.position.tick_lower, narrow.position.tick_upper) == (75800, 76200)

        assert state_from_preset_v3("unknown") == balanced

    def test_unsupported_fee_tier(self):
        with pytest.raises(ValueError):
            create_initial_v3_pool_state(fee_tier=100)


class TestSwapInRange:
    """Swaps that stay inside the position's range"""

    def setup_method(self):
        self.state = create_initial_v3_pool_state()

    def test_x_to_y(self):
        quote = quote_v3_swap_exact_in(self.state, SwapDirection.X_TO_Y, SCALE)

        assert quote.ok, quote.error
        assert not quote.crossed_boundary
        assert not quote.partial_fill
        assert quote.amount_in_consumed == SCALE
        assert quote.amount_in_unfilled == ZERO
        assert quote.fee_amount_in_token >= SCALE * 3000 // 1_000_000
        assert 0 < quote.amount_out < SCALE
        assert quote.sqrt_price_after_x96 < quote.sqrt_price_before_x96
        assert quote.liquidity_after == quote.liquidity_before
        assert quote.tick_before == 0
        assert quote.tick_after == -1

    def test_y_to_x(self):
        quote = quote_v3_swap_exact_in(self.state, SwapDirection.Y_TO_X, SCALE)

        assert quote.ok, quote.error
        assert quote.spot_price_after_y_per_x > quote.spot_price_before_y_per_x
        assert quote.avg_price_y_per_x > SCALE
        assert quote.slippage_total > ZERO

    def test_apply_accrues_fee(self):
        quote = quote_v3_swap_exact_in(self.state, SwapDirection.X_TO_Y, SCALE)
        after = apply_v3_swap_exact_in(self.state, quote)

        fee = quote.fee_amount_in_token
        assert after.fee_acc_x == fee
        assert after.fee_acc_y == ZERO
        assert after.position.fee_owed_x == fee
        assert after.fee_growth_global_x128_x == fee * Q128 // quote.liquidity_before
        assert after.sqrt_price_x96 == quote.sqrt_price_after_x96
        assert after.tick_current == quote.tick_after
        assert after.liquidity == self.state.liquidity
        assert after.t == 1
        assert after.last_trade.amount_out == quote.amount_out

    def test_rejections(self):
        quote = quote_v3_swap_exact_in(self.state, SwapDirection.X_TO_Y, ZERO)
        assert quote.error == "Input amount must be greater than zero"

        quote = quote_v3_swap_exact_in(self.state, SwapDirection.X_TO_Y, 1)
        assert quote.error == "Swap amount too small at current precision"

        drained = replace(self.state, liquidity=10 ** 10)
        quote = quote_v3_swap_exact_in(drained, SwapDirection.X_TO_Y, SCALE)
        assert quote.error == "No active liquidity at current tick"

        assert apply_v3_swap_exact_in(self.state, quote) is self.state


class TestSwapAcrossBoundary:
    """Swaps that exhaust the range"""

    def setup_method(self):
        self.state = create_initial_v3_pool_state(
            tick_lower=-120, tick_upper=120, initial_amount_x="30", initial_amount_y="30"
        )

    def test_partial_fill(self):
        amount_in = 5000 * SCALE
        quote = quote_v3_swap_exact_in(self.state, SwapDirection.X_TO_Y, amount_in)

        assert quote.ok, quote.error
        assert quote.crossed_boundary
        assert quote.partial_fill
        assert quote.amount_in_consumed + quote.amount_in_unfilled == amount_in
        assert quote.amount_in_consumed < 100 * SCALE
        assert quote.sqrt_price_after_x96 == get_sqrt_ratio_at_tick(-120)
        assert quote.tick_after == -120
        assert quote.liquidity_after == ZERO
        assert quote.k_after == ZERO

        print(f"   Consumed {quote.amount_in_consumed / SCALE:.4f} of {amount_in / SCALE:.0f} X before range exhausted")

    def test_exhausted_pool_rejects_further_swaps(self):
        quote = quote_v3_swap_exact_in(self.state, SwapDirection.X_TO_Y, 5000 * SCALE)
        after = apply_v3_swap_exact_in(self.state, quote)

        assert after.liquidity == ZERO
        assert after.position.liquidity == self.state.position.liquidity
        assert after.tick_current == -120

        for direction in SwapDirection:
            retry = quote_v3_swap_exact_in(after, direction, SCALE)
            assert retry.error == "No active liquidity at current tick"

    def test_price_on_bound_rejected(self):
        at_lower = replace(self.state, sqrt_price_x96=get_sqrt_ratio_at_tick(-120), tick_current=-120)
        quote = quote_v3_swap_exact_in(at_lower, SwapDirection.X_TO_Y, SCALE)
        assert quote.error == "Price already at or below lower range bound"

        at_upper = replace(self.state, sqrt_price_x96=get_sqrt_ratio_at_tick(120), tick_current=120)
        quote = quote_v3_swap_exact_in(at_upper, SwapDirection.Y_TO_X, SCALE)
        assert quote.error == "Price already at or above upper range bound"

    def test_full_range_exhausted_upward(self):
        state = create_initial_v3_pool_state(tick_lower=MIN_TICK, tick_upper=MAX_TICK)
        assert (state.position.tick_lower, state.position.tick_upper) == (MIN_TICK, MAX_TICK)

        quote = quote_v3_swap_exact_in(state, SwapDirection.Y_TO_X, 10 ** 45)

        assert quote.ok, quote.error
        assert quote.crossed_boundary
        assert quote.partial_fill
        assert quote.sqrt_price_after_x96 == MAX_SQRT_RATIO
        assert quote.tick_after == MAX_TICK

        after = apply_v3_swap_exact_in(state, quote)
        assert after.tick_current == MAX_TICK
        assert after.liquidity == ZERO

    def test_full_range_exhausted_downward(self):
        state = create_initial_v3_pool_state(tick_lower=MIN_TICK, tick_upper=MAX_TICK)
        quote = quote_v3_swap_exact_in(state, SwapDirection.X_TO_Y, 10 ** 45)

        assert quote.ok, quote.error
        assert quote.crossed_boundary
        assert quote.sqrt_price_after_x96 == MIN_SQRT_RATIO
        assert quote.tick_after == MIN_TICK
