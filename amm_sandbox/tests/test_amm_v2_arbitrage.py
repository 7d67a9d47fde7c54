#!/usr/bin/env python3
"""
Arbitrage Solver Tests

Single-step sizing toward an external price and the repeated auto-arbitrage
loop on constant product pools.
"""

import sys
import os
import pytest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from amm_sandbox.core.fixed_point import SCALE, ZERO, parse_fp
from amm_sandbox.core.types import SwapDirection
from amm_sandbox.engine.amm_v2 import (
    apply_arbitrage, create_initial_pool_state, quote_arbitrage_to_external_price,
    relative_spread, run_auto_arbitrage, spot_price_y_per_x
)
from amm_sandbox.engine.config import EngineConfig


class TestArbitrageQuote:
    """quote_arbitrage_to_external_price"""

    def setup_method(self):
        self.state = create_initial_pool_state(reserve_x="1000", reserve_y="2000")

    def test_external_above_spot_buys_x(self):
        external = parse_fp("2.4")
        quote = quote_arbitrage_to_external_price(self.state, external)

        assert quote.ok, quote.error
        assert quote.direction == SwapDirection.Y_TO_X
        assert quote.expected_profit_in_y > ZERO
        assert quote.spot_price_before_y_per_x == 2 * SCALE
        assert quote.spread_after < quote.spread_before
        assert quote.amount_in == quote.swap_quote.amount_in

        print(f"   Arbitrage: {quote.amount_in / SCALE:.4f} Y in, profit {quote.expected_profit_in_y / SCALE:.4f} Y")

    def test_external_below_spot_sells_x(self):
        quote = quote_arbitrage_to_external_price(self.state, parse_fp("1.5"))

        assert quote.ok, quote.error
        assert quote.direction == SwapDirection.X_TO_Y
        assert quote.spot_price_after_y_per_x < quote.spot_price_before_y_per_x
        assert quote.expected_profit_in_y > ZERO

    def test_zero_fee_pool_converges_to_external(self):
        state = create_initial_pool_state(reserve_x="10000", reserve_y="10000", fee_rate="0")
        external = parse_fp("1.21")
        quote = quote_arbitrage_to_external_price(state, external)

        assert quote.ok, quote.error
        assert quote.spread_after < SCALE // 10 ** 6, "Zero fee pool should land on the external price"

    def test_gap_inside_fee_band_is_unprofitable(self):
        state = create_initial_pool_state(reserve_x="1000", reserve_y="1000")
        quote = quote_arbitrage_to_external_price(state, parse_fp("1.001"))

        assert not quote.ok
        assert quote.error == "No profitable arbitrage after fees at this external price"
        assert quote.direction == SwapDirection.Y_TO_X
        assert not quote.swap_quote.ok

    def test_price_already_matched(self):
        state = create_initial_pool_state(reserve_x="1000", reserve_y="1000")
        quote = quote_arbitrage_to_external_price(state, SCALE)
        assert quote.error == "Pool price already equals external price"

    @pytest.mark.parametrize("external", [ZERO, -SCALE])
    def test_non_positive_external_price(self, external):
        quote = quote_arbitrage_to_external_price(self.state, external)
        assert quote.error == "External price must be greater than zero"

    def test_empty_pool(self):
        empty = create_initial_pool_state(reserve_x="0", reserve_y="0")
        quote = quote_arbitrage_to_external_price(empty, SCALE)
        assert quote.error == "Pool reserves are empty"

    def test_search_budget_is_configurable(self):
        config = EngineConfig()
        config.arbitrage_max_iterations = 0

        quote = quote_arbitrage_to_external_price(self.state, parse_fp("2.4"), config)
        assert quote.error == "Unable to find an arbitrage trade"

    def test_apply_arbitrage(self):
        quote = quote_arbitrage_to_external_price(self.state, parse_fp("2.4"))
        after = apply_arbitrage(self.state, quote)

        assert after.t == 1
        assert spot_price_y_per_x(after) == quote.spot_price_after_y_per_x
        assert after.last_trade.direction == SwapDirection.Y_TO_X

        failed = quote_arbitrage_to_external_price(self.state, ZERO)
        assert apply_arbitrage(self.state, failed) is self.state


class TestAutoArbitrage:
    """run_auto_arbitrage"""

    def setup_method(self):
        self.state = create_initial_pool_state(reserve_x="1000", reserve_y="2000")

    def test_closes_spread(self):
        external = parse_fp("2.4")
        final, result = run_auto_arbitrage(self.state, external)

        assert result.ok, result.error
        assert 1 <= result.steps <= 5
        assert final.t == result.steps
        assert result.final_spread == relative_spread(spot_price_y_per_x(final), external)
        assert result.final_spread < relative_spread(spot_price_y_per_x(self.state), external)

        print(f"   Auto arbitrage: {result.steps} steps, final spread {result.final_spread / SCALE:.6%}")

    def test_step_limit(self):
        final, result = run_auto_arbitrage(self.state, parse_fp("2.4"), max_steps=1, tolerance=ZERO)

        assert result.ok
        assert result.steps == 1
        assert final.t == 1

    def test_already_within_tolerance(self):
        state = create_initial_pool_state(reserve_x="1000", reserve_y="1000")
        final, result = run_auto_arbitrage(state, parse_fp("1.0005"))

        assert not result.ok
        assert result.error == "Pool price already within tolerance of external price"
        assert final is state

    def test_unprofitable_first_step_fails(self):
        state = create_initial_pool_state(reserve_x="1000", reserve_y="1000")
        final, result = run_auto_arbitrage(state, parse_fp("1.002"), tolerance=ZERO)

        assert not result.ok
        assert result.error == "No profitable arbitrage after fees at this external price"
        assert final is state

    def test_invalid_arguments(self):
        _, result = run_auto_arbitrage(self.state, ZERO)
        assert result.error == "External price must be greater than zero"

        _, result = run_auto_arbitrage(self.state, parse_fp("2.4"), max_steps=0)
        assert result.error == "Max steps must be greater than zero"

        _, result = run_auto_arbitrage(self.state, parse_fp("2.4"), tolerance=-1)
        assert result.error == "Tolerance must not be negative"
