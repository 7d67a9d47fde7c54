#!/usr/bin/env python3
"""
Pool Metrics

Float views over engine snapshots for tables and charts. Nothing here feeds
back into the engines, and conversions from the 1e18 scale are lossy.
"""

from dataclasses import fields
from typing import Dict, Tuple, Union

import numpy as np
import pandas as pd

from ..core.fixed_point import SCALE, to_float
from ..core.types import PoolState, SwapDirection, V3PoolState
from ..engine.amm_v2 import pool_value_in_y, spot_price_y_per_x
from ..engine.amm_v3 import position_token_amounts, spot_price_v3_y_per_x
from ..simulation.timeline import TimelineState

# Last-trade fields that are not 1e18-scaled amounts
_RAW_TRADE_FIELDS = {"tick_before", "tick_after", "sqrt_price_before_x96", "sqrt_price_after_x96"}
_PRODUCT_TRADE_FIELDS = {"k_before", "k_after"}


def _snapshot_row(snapshot: Union[PoolState, V3PoolState]) -> Dict[str, float]:
    if isinstance(snapshot, V3PoolState):
        amount_x, amount_y = position_token_amounts(snapshot)
        return {
            "spot_price": to_float(spot_price_v3_y_per_x(snapshot)),
            "reserve_x": to_float(amount_x),
            "reserve_y": to_float(amount_y),
            "liquidity": to_float(snapshot.liquidity),
            "tick": snapshot.tick_current,
            "fee_acc_x": to_float(snapshot.fee_acc_x),
            "fee_acc_y": to_float(snapshot.fee_acc_y),
            "t": snapshot.t,
        }

    return {
        "spot_price": to_float(spot_price_y_per_x(snapshot)),
        "reserve_x": to_float(snapshot.reserve_x),
        "reserve_y": to_float(snapshot.reserve_y),
        "pool_value_y": to_float(pool_value_in_y(snapshot)),
        "lp_total_supply": to_float(snapshot.lp_total_supply),
        "fee_acc_x": to_float(snapshot.fee_acc_x),
        "fee_acc_y": to_float(snapshot.fee_acc_y),
        "t": snapshot.t,
    }


def timeline_to_dataframe(state: TimelineState) -> pd.DataFrame:
    """One row per timeline entry with price, reserve and fee columns"""
    rows = []
    for index, entry in enumerate(state.timeline):
        row = {
            "index": index,
            "entry_id": entry.id,
            "kind": entry.kind.value,
            "label": entry.label,
            "is_current": index == state.cursor,
        }
        row.update(_snapshot_row(entry.snapshot))
        rows.append(row)
    return pd.DataFrame(rows)


def v2_curve_points(state: PoolState, points: int = 200, span: float = 4.0) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sample the x * y = k curve around the current reserves

    Args:
        state: Pool whose invariant is plotted
        points: Number of samples
        span: Multiplicative range around reserve_x (x from rx/span to rx*span)

    Returns:
        (x, y) float arrays in token units
    """
    reserve_x = to_float(state.reserve_x)
    reserve_y = to_float(state.reserve_y)
    if reserve_x <= 0 or reserve_y <= 0:
        return np.array([]), np.array([])

    k = reserve_x * reserve_y
    x = np.geomspace(reserve_x / span, reserve_x * span, points)
    return x, k / x


def tick_to_price(tick) -> np.ndarray:
    return np.power(1.0001, np.asarray(tick, dtype=float))


def v3_liquidity_distribution(state: V3PoolState, bins: int = 40) -> pd.DataFrame:
    """
    Bucket the tick axis around the position and report liquidity per bucket

    The window covers the position plus half its width on each side (at least
    one tick spacing), so the out-of-range regions show as empty buckets.
    """
    lower = state.position.tick_lower
    upper = state.position.tick_upper
    margin = max((upper - lower) // 2, state.tick_spacing)

    edges = np.linspace(lower - margin, upper + margin, bins + 1)
    starts = edges[:-1]
    ends = edges[1:]
    centers = (starts + ends) / 2

    position_liquidity = state.position.liquidity / SCALE
    in_range = (centers >= lower) & (centers < upper)

    return pd.DataFrame({
        "tick_start": starts,
        "tick_end": ends,
        "price_low": tick_to_price(starts),
        "price_high": tick_to_price(ends),
        "liquidity": np.where(in_range, position_liquidity, 0.0),
        "active": (starts <= state.tick_current) & (state.tick_current < ends),
    })


def last_trade_summary(state: Union[PoolState, V3PoolState]) -> Dict[str, float]:
    """Float view of the most recent swap; empty when the last operation was not a swap"""
    trade = state.last_trade
    if trade is None:
        return {}

    summary = {}
    for f in fields(trade):
        value = getattr(trade, f.name)
        if isinstance(value, SwapDirection):
            summary[f.name] = value.value
        elif isinstance(value, bool) or f.name in _RAW_TRADE_FIELDS:
            summary[f.name] = value
        elif f.name in _PRODUCT_TRADE_FIELDS:
            summary[f.name] = value / (SCALE * SCALE)
        else:
            summary[f.name] = to_float(value)
    return summary
