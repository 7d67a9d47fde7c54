#!/usr/bin/env python3
"""
Tick Math Tests

Exact tick <-> sqrt price conversion against the known Uniswap V3 bounds.
"""

import sys
import os
import pytest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from amm_sandbox.core.constants import MAX_SQRT_RATIO, MAX_TICK, MIN_SQRT_RATIO, MIN_TICK, Q96
from amm_sandbox.core.tick_math import get_sqrt_ratio_at_tick, get_tick_at_sqrt_ratio


class TestSqrtRatioAtTick:
    """Tick -> Q64.96 sqrt price"""

    def test_tick_zero_is_unit_price(self):
        assert get_sqrt_ratio_at_tick(0) == Q96

    def test_domain_bounds_match_published_ratios(self):
        assert get_sqrt_ratio_at_tick(MIN_TICK) == MIN_SQRT_RATIO
        assert get_sqrt_ratio_at_tick(MAX_TICK) == MAX_SQRT_RATIO

    def test_strictly_increasing(self):
        ticks = [MIN_TICK, -100000, -60, -1, 0, 1, 60, 100000, MAX_TICK]
        ratios = [get_sqrt_ratio_at_tick(t) for t in ticks]
        assert ratios == sorted(ratios)
        assert len(set(ratios)) == len(ratios), "Every tick should map to a distinct ratio"

    def test_price_matches_power_of_base(self):
        for tick in (-76012, -600, 600, 76012):
            sqrt_ratio = get_sqrt_ratio_at_tick(tick)
            price = (sqrt_ratio / Q96) ** 2
            assert price == pytest.approx(1.0001 ** tick, rel=1e-9)

    @pytest.mark.parametrize("tick", [MIN_TICK - 1, MAX_TICK + 1])
    def test_out_of_range_rejected(self, tick):
        with pytest.raises(ValueError):
            get_sqrt_ratio_at_tick(tick)

    @pytest.mark.parametrize("tick", [1.5, "10", True])
    def test_non_integer_rejected(self, tick):
        with pytest.raises(ValueError):
            get_sqrt_ratio_at_tick(tick)


class TestTickAtSqrtRatio:
    """Q64.96 sqrt price -> tick (inverse)"""

    @pytest.mark.parametrize("tick", [MIN_TICK, -887271, -76012, -1, 0, 1, 100, 76012, MAX_TICK - 1])
    def test_exact_ratios_round_trip(self, tick):
        assert get_tick_at_sqrt_ratio(get_sqrt_ratio_at_tick(tick)) == tick

    def test_between_ticks_rounds_down(self):
        assert get_tick_at_sqrt_ratio(get_sqrt_ratio_at_tick(100) + 1) == 100
        assert get_tick_at_sqrt_ratio(get_sqrt_ratio_at_tick(-100) + 1) == -100
        assert get_tick_at_sqrt_ratio(get_sqrt_ratio_at_tick(1) - 1) == 0

    def test_half_open_domain(self):
        with pytest.raises(ValueError):
            get_tick_at_sqrt_ratio(MIN_SQRT_RATIO - 1)
        with pytest.raises(ValueError):
            get_tick_at_sqrt_ratio(MAX_SQRT_RATIO)

        assert get_tick_at_sqrt_ratio(MAX_SQRT_RATIO - 1) == MAX_TICK - 1
