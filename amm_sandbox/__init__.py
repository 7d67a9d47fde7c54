"""
AMM Sandbox

Deterministic pricing and liquidity engine for constant product (v2) and
concentrated liquidity (v3) pools, with quote/apply operations, an undo/redo
timeline and analysis helpers for what-if exploration.
"""

__version__ = "1.0.0"
__author__ = "AMM Sandbox Team"

# Core components
from .core.fixed_point import SCALE, parse_fp, safe_parse_fp, format_fp
from .core.types import (
    SwapDirection, OperationKind, TokenInfo, PoolState, V3PoolState, V3Position,
    V3AddLiquidityParams
)

# Engines
from .engine.config import EngineConfig, V2Presets, V3Presets
from .engine import amm_v2, amm_v3

# Simulation
from .simulation.store import AmmStore, AmmV3Store
from .simulation.timeline import TimelineState, TimelineEntry

__all__ = [
    # Core
    "SCALE", "parse_fp", "safe_parse_fp", "format_fp",
    "SwapDirection", "OperationKind", "TokenInfo", "PoolState", "V3PoolState", "V3Position",
    "V3AddLiquidityParams",

    # Engines
    "EngineConfig", "V2Presets", "V3Presets", "amm_v2", "amm_v3",

    # Simulation
    "AmmStore", "AmmV3Store", "TimelineState", "TimelineEntry"
]
