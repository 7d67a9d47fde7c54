"""Fixed-point, tick and liquidity math plus pool state types"""

from .fixed_point import SCALE, ONE, ZERO, parse_fp, safe_parse_fp, format_fp, fp_mul, fp_div, mul_div
from .tick_math import get_sqrt_ratio_at_tick, get_tick_at_sqrt_ratio
from .swap_math import compute_swap_step, SwapStepResult
from .types import SwapDirection, OperationKind, TokenInfo, PoolState, V3PoolState, V3Position

__all__ = [
    "SCALE", "ONE", "ZERO", "parse_fp", "safe_parse_fp", "format_fp", "fp_mul", "fp_div", "mul_div",
    "get_sqrt_ratio_at_tick", "get_tick_at_sqrt_ratio",
    "compute_swap_step", "SwapStepResult",
    "SwapDirection", "OperationKind", "TokenInfo", "PoolState", "V3PoolState", "V3Position"
]
