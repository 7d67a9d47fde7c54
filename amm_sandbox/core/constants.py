#!/usr/bin/env python3
"""
Concentrated Liquidity Constants

Tick domain, Q-format scales and fee tier parameters (official Uniswap V3 values).
"""

from typing import Dict

# Tick domain
MIN_TICK = -887272
MAX_TICK = 887272

# Fixed-point scales
Q96 = 2 ** 96
Q128 = 2 ** 128
Q192 = Q96 * Q96
MAX_UINT256 = 2 ** 256 - 1

MIN_SQRT_RATIO = 4295128739  # sqrt(1.0001^-887272) * 2^96
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342  # sqrt(1.0001^887272) * 2^96

# Fees are expressed in pips (hundredths of a basis point)
FEE_UNITS = 1_000_000

# Liquidity at or below 1e-8 (on the 1e18 scale) is treated as zero
LIQUIDITY_DUST_X18 = 10_000_000_000

# Fee tier (pips) -> tick spacing
FEE_TIER_TO_TICK_SPACING: Dict[int, int] = {
    500: 10,      # 0.05% fee tier (correlated pairs)
    3000: 60,     # 0.3% fee tier (standard pairs)
    10000: 200,   # 1% fee tier (exotic/volatile pairs)
}
