#!/usr/bin/env python3
"""
Pool state and quote types

States are frozen dataclasses: every apply_* function builds a new value with
dataclasses.replace, so a snapshot held by the timeline is never mutated.
Quotes are plain dataclasses tagged with ok/error.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SwapDirection(Enum):
    """Swap direction between the pool's two tokens"""
    X_TO_Y = "X_TO_Y"
    Y_TO_X = "Y_TO_X"


class OperationKind(Enum):
    """Timeline entry kinds"""
    INIT = "init"
    SWAP = "swap"
    ADD = "add"
    REMOVE = "remove"
    RESET = "reset"
    IMPORT = "import"


@dataclass(frozen=True)
class TokenInfo:
    """Display metadata; decimals are informational only (math is always 1e18-scaled)"""
    symbol: str
    decimals: int = 18


# =============================================================================
# V2 (constant product)
# =============================================================================

@dataclass(frozen=True)
class LastTradeMetrics:
    """Before/after metrics of the most recent v2 swap"""
    direction: SwapDirection
    reserve_x_before: int
    reserve_y_before: int
    reserve_x_after: int
    reserve_y_after: int
    amount_in: int
    amount_out: int
    amount_out_no_fee: int
    fee_amount_in_token: int
    avg_price_y_per_x: int
    spot_price_before_y_per_x: int
    spot_price_after_y_per_x: int
    slippage_total: int
    slippage_curve: int
    fee_impact_rate: int
    fee_impact_out_token: int
    k_before: int
    k_after: int


@dataclass(frozen=True)
class PoolState:
    """Constant-product pool with a single implicit LP"""
    token_x: TokenInfo
    token_y: TokenInfo
    reserve_x: int
    reserve_y: int
    fee_rate: int
    lp_total_supply: int
    lp_user_balance: int
    fee_acc_x: int = 0
    fee_acc_y: int = 0
    t: int = 0
    last_trade: Optional[LastTradeMetrics] = None


@dataclass
class SwapQuote:
    ok: bool
    direction: SwapDirection
    amount_in: int
    error: Optional[str] = None
    reserve_x_before: int = 0
    reserve_y_before: int = 0
    amount_in_after_fee: int = 0
    amount_out: int = 0
    amount_out_no_fee: int = 0
    fee_amount_in_token: int = 0
    reserve_x_after: int = 0
    reserve_y_after: int = 0
    avg_price_y_per_x: int = 0
    spot_price_before_y_per_x: int = 0
    spot_price_after_y_per_x: int = 0
    slippage_total: int = 0
    slippage_curve: int = 0
    fee_impact_rate: int = 0
    fee_impact_out_token: int = 0
    k_before: int = 0
    k_after: int = 0


@dataclass
class AddLiquidityQuote:
    ok: bool
    amount_x_in: int
    amount_y_in: int
    error: Optional[str] = None
    amount_x_used: int = 0
    amount_y_used: int = 0
    refund_x: int = 0
    refund_y: int = 0
    lp_mint: int = 0
    lp_share_after: int = 0


@dataclass
class RemoveLiquidityQuote:
    ok: bool
    burn_lp: int
    error: Optional[str] = None
    out_x: int = 0
    out_y: int = 0
    lp_share_after: int = 0


@dataclass
class ArbitrageQuote:
    ok: bool
    external_price_y_per_x: int
    direction: SwapDirection
    swap_quote: SwapQuote
    error: Optional[str] = None
    amount_in: int = 0
    amount_out: int = 0
    spot_price_before_y_per_x: int = 0
    spot_price_after_y_per_x: int = 0
    spread_before: int = 0
    spread_after: int = 0
    expected_profit_in_y: int = 0


@dataclass
class AutoArbitrageResult:
    ok: bool
    error: Optional[str] = None
    steps: int = 0
    final_spread: int = 0


# =============================================================================
# V3 (single concentrated position)
# =============================================================================

@dataclass(frozen=True)
class V3Position:
    """The pool's sole concentrated liquidity position"""
    tick_lower: int
    tick_upper: int
    liquidity: int = 0
    fee_owed_x: int = 0
    fee_owed_y: int = 0


@dataclass(frozen=True)
class V3LastTradeMetrics:
    """Before/after metrics of the most recent v3 swap"""
    direction: SwapDirection
    amount_in: int
    amount_in_consumed: int
    amount_in_unfilled: int
    amount_out: int
    fee_amount_in_token: int
    avg_price_y_per_x: int
    spot_price_before_y_per_x: int
    spot_price_after_y_per_x: int
    slippage_total: int
    sqrt_price_before_x96: int
    sqrt_price_after_x96: int
    tick_before: int
    tick_after: int
    liquidity_before: int
    liquidity_after: int
    crossed_boundary: bool
    partial_fill: bool
    k_before: int
    k_after: int


@dataclass(frozen=True)
class V3PoolState:
    """Concentrated liquidity pool with exactly one active range"""
    token_x: TokenInfo
    token_y: TokenInfo
    fee_tier: int
    tick_spacing: int
    sqrt_price_x96: int
    tick_current: int
    liquidity: int
    position: V3Position
    fee_growth_global_x128_x: int = 0
    fee_growth_global_x128_y: int = 0
    fee_acc_x: int = 0
    fee_acc_y: int = 0
    t: int = 0
    last_trade: Optional[V3LastTradeMetrics] = None


@dataclass
class V3AddLiquidityParams:
    """Deposit request; a missing tick bound keeps the current position bound"""
    amount_x_in: int
    amount_y_in: int
    tick_lower: Optional[int] = None
    tick_upper: Optional[int] = None


@dataclass
class V3SwapQuote:
    ok: bool
    direction: SwapDirection
    amount_in: int
    error: Optional[str] = None
    amount_in_consumed: int = 0
    amount_in_unfilled: int = 0
    amount_out: int = 0
    fee_amount_in_token: int = 0
    avg_price_y_per_x: int = 0
    spot_price_before_y_per_x: int = 0
    spot_price_after_y_per_x: int = 0
    slippage_total: int = 0
    sqrt_price_before_x96: int = 0
    sqrt_price_after_x96: int = 0
    tick_before: int = 0
    tick_after: int = 0
    liquidity_before: int = 0
    liquidity_after: int = 0
    crossed_boundary: bool = False
    partial_fill: bool = False
    k_before: int = 0
    k_after: int = 0


@dataclass
class V3AddLiquidityQuote:
    ok: bool
    amount_x_in: int
    amount_y_in: int
    error: Optional[str] = None
    amount_x_used: int = 0
    amount_y_used: int = 0
    refund_x: int = 0
    refund_y: int = 0
    liquidity_delta: int = 0
    tick_lower: int = 0
    tick_upper: int = 0
    position_liquidity_after: int = 0
    active_liquidity_after: int = 0
    range_updated: bool = False


@dataclass
class V3RemoveLiquidityQuote:
    ok: bool
    liquidity_delta: int
    error: Optional[str] = None
    amount_x_out: int = 0
    amount_y_out: int = 0
    position_liquidity_after: int = 0
    active_liquidity_after: int = 0


@dataclass
class OperationResult:
    """Outcome of a store-level action that has no quote of its own"""
    ok: bool
    error: Optional[str] = None
