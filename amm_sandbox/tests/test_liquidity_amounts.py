#!/usr/bin/env python3
"""
Liquidity Amount and Swap Step Tests

Conversions between liquidity and token amounts over a price range, and the
single exact-input swap step used by the v3 engine.
"""

import sys
import os
import pytest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from amm_sandbox.core.constants import Q96
from amm_sandbox.core.liquidity_amounts import (
    get_amount0_delta, get_amount1_delta, get_amounts_for_liquidity, get_liquidity_for_amounts
)
from amm_sandbox.core.swap_math import (
    compute_swap_step, get_next_sqrt_price_from_amount0_rounding_up, get_next_sqrt_price_from_input,
    sqrt_price_to_price_x18
)
from amm_sandbox.core.tick_math import get_sqrt_ratio_at_tick


class TestAmountDeltas:
    """Amounts spanned by a liquidity magnitude"""

    def setup_method(self):
        self.sqrt_a = Q96
        self.sqrt_b = 2 * Q96

    def test_token1_delta(self):
        assert get_amount1_delta(self.sqrt_a, self.sqrt_b, 1000, False) == 1000
        assert get_amount1_delta(self.sqrt_a, self.sqrt_b, 1000, True) == 1000

    def test_token0_delta(self):
        assert get_amount0_delta(self.sqrt_a, self.sqrt_b, 1000, False) == 500
        assert get_amount0_delta(self.sqrt_a, self.sqrt_b, 1000, True) == 500

    def test_argument_order_irrelevant(self):
        assert get_amount0_delta(self.sqrt_b, self.sqrt_a, 1000, False) == 500
        assert get_amount1_delta(self.sqrt_b, self.sqrt_a, 1000, False) == 1000

    def test_rounding_up_never_below_rounding_down(self):
        sqrt_a = get_sqrt_ratio_at_tick(-123)
        sqrt_b = get_sqrt_ratio_at_tick(457)
        liquidity = 10 ** 21 + 7

        down0 = get_amount0_delta(sqrt_a, sqrt_b, liquidity, False)
        up0 = get_amount0_delta(sqrt_a, sqrt_b, liquidity, True)
        down1 = get_amount1_delta(sqrt_a, sqrt_b, liquidity, False)
        up1 = get_amount1_delta(sqrt_a, sqrt_b, liquidity, True)

        assert 0 <= up0 - down0 <= 1
        assert 0 <= up1 - down1 <= 1

    def test_degenerate_inputs_yield_zero(self):
        assert get_amount0_delta(self.sqrt_a, self.sqrt_a, 1000, True) == 0
        assert get_amount1_delta(self.sqrt_a, self.sqrt_b, 0, True) == 0
        assert get_amount0_delta(0, self.sqrt_b, 1000, False) == 0


class TestLiquidityForAmounts:
    """Maximum liquidity from a deposit at the current price"""

    def setup_method(self):
        self.sqrt_a = Q96
        self.sqrt_b = 2 * Q96

    def test_price_below_range_uses_token0_only(self):
        assert get_liquidity_for_amounts(500, 0, self.sqrt_a, self.sqrt_a, self.sqrt_b) == 1000
        assert get_liquidity_for_amounts(500, 10 ** 9, self.sqrt_a, self.sqrt_a, self.sqrt_b) == 1000

    def test_price_above_range_uses_token1_only(self):
        assert get_liquidity_for_amounts(0, 1000, self.sqrt_b, self.sqrt_a, self.sqrt_b) == 1000

    def test_negative_amount_yields_zero(self):
        assert get_liquidity_for_amounts(-1, 1000, self.sqrt_b, self.sqrt_a, self.sqrt_b) == 0

    def test_in_range_scarcer_side_limits(self):
        sqrt_lower = get_sqrt_ratio_at_tick(-600)
        sqrt_upper = get_sqrt_ratio_at_tick(600)
        balanced = get_liquidity_for_amounts(10 ** 21, 10 ** 21, Q96, sqrt_lower, sqrt_upper)
        short_y = get_liquidity_for_amounts(10 ** 21, 10 ** 20, Q96, sqrt_lower, sqrt_upper)

        assert balanced > 0
        assert short_y < balanced

    def test_amounts_for_liquidity_never_exceed_deposit(self):
        sqrt_lower = get_sqrt_ratio_at_tick(-600)
        sqrt_upper = get_sqrt_ratio_at_tick(600)
        sqrt_price = get_sqrt_ratio_at_tick(37)

        for amount_x, amount_y in [(10 ** 21, 10 ** 21), (3 * 10 ** 19, 10 ** 22), (10 ** 22, 5 * 10 ** 18)]:
            liquidity = get_liquidity_for_amounts(amount_x, amount_y, sqrt_price, sqrt_lower, sqrt_upper)
            used_x, used_y = get_amounts_for_liquidity(liquidity, sqrt_price, sqrt_lower, sqrt_upper)
            assert used_x <= amount_x, f"Used {used_x} X out of {amount_x}"
            assert used_y <= amount_y, f"Used {used_y} Y out of {amount_y}"

    def test_amounts_for_liquidity_out_of_range(self):
        amount_x, amount_y = get_amounts_for_liquidity(1000, self.sqrt_a // 2, self.sqrt_a, self.sqrt_b)
        assert amount_x == 500 and amount_y == 0

        amount_x, amount_y = get_amounts_for_liquidity(1000, 4 * Q96, self.sqrt_a, self.sqrt_b)
        assert amount_x == 0 and amount_y == 1000


class TestSwapStep:
    """compute_swap_step bounded by a target price"""

    def setup_method(self):
        self.liquidity = 10 ** 24
        self.target_down = get_sqrt_ratio_at_tick(-60)
        self.target_up = get_sqrt_ratio_at_tick(60)

    def test_large_budget_reaches_target(self):
        step = compute_swap_step(Q96, self.target_down, self.liquidity, 10 ** 30, 3000, True)

        assert step.reached_target
        assert step.sqrt_ratio_next_x96 == self.target_down
        assert step.amount_in + step.fee_amount <= 10 ** 30
        assert step.amount_out > 0

    def test_small_budget_stops_short(self):
        budget = 10 ** 18
        step = compute_swap_step(Q96, self.target_down, self.liquidity, budget, 3000, True)

        assert not step.reached_target
        assert self.target_down < step.sqrt_ratio_next_x96 < Q96
        assert step.amount_in + step.fee_amount == budget
        assert step.fee_amount >= budget * 3000 // 1_000_000

    def test_token1_input_raises_price(self):
        step = compute_swap_step(Q96, self.target_up, self.liquidity, 10 ** 18, 500, False)

        assert Q96 < step.sqrt_ratio_next_x96 < self.target_up
        assert step.amount_out < 10 ** 18

    def test_zero_budget_is_noop(self):
        step = compute_swap_step(Q96, self.target_down, self.liquidity, 0, 3000, True)
        assert step.sqrt_ratio_next_x96 == Q96
        assert step.amount_in == 0 and step.amount_out == 0 and step.fee_amount == 0

    def test_invalid_state_rejected(self):
        with pytest.raises(ValueError):
            get_next_sqrt_price_from_input(Q96, 0, 100, True)
        with pytest.raises(ValueError):
            get_next_sqrt_price_from_amount0_rounding_up(Q96, 1, 10 ** 30, False)

    def test_unit_sqrt_price_is_unit_price(self):
        assert sqrt_price_to_price_x18(Q96) == 10 ** 18
