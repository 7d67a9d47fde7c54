#!/usr/bin/env python3
"""
Pool State Serialization

Lossless conversion of pool states to plain dicts. Every scaled integer is
written as a base-10 digit string (arbitrary precision, no exponent); tick
indices, fee tier, counters, booleans and enum values stay native.
"""

import json
import re
from dataclasses import fields
from typing import Any, Dict

from .constants import FEE_TIER_TO_TICK_SPACING, MAX_TICK, MIN_TICK
from .types import (
    LastTradeMetrics, PoolState, SwapDirection, TokenInfo, V3LastTradeMetrics,
    V3PoolState, V3Position
)

_INTEGER_TEXT = re.compile(r"^-?\d+$")

POOL_STATE_KEYS = (
    "token_x", "token_y", "reserve_x", "reserve_y", "fee_rate",
    "lp_total_supply", "lp_user_balance", "fee_acc_x", "fee_acc_y", "t", "last_trade",
)

V3_POOL_STATE_KEYS = (
    "token_x", "token_y", "fee_tier", "tick_spacing", "sqrt_price_x96", "tick_current",
    "liquidity", "position", "fee_growth_global_x128_x", "fee_growth_global_x128_y",
    "fee_acc_x", "fee_acc_y", "t", "last_trade",
)

# Integer fields written natively rather than as digit strings
_NATIVE_FIELDS = {
    "t", "fee_tier", "tick_spacing", "tick_current", "tick_lower", "tick_upper",
    "tick_before", "tick_after", "decimals",
}


def _stringify_int(value: int) -> str:
    return str(value)


def _parse_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, str) or not _INTEGER_TEXT.match(value):
        raise ValueError(f"Field '{key}' must be a base-10 integer string, got {value!r}")
    return int(value)


def _parse_native_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Field '{key}' must be an integer, got {value!r}")
    return value


def _require_keys(raw: Any, keys, label: str) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise ValueError(f"{label} payload must be an object")
    missing = [key for key in keys if key not in raw]
    if missing:
        raise ValueError(f"{label} payload is missing keys: {', '.join(missing)}")
    return raw


def _record_to_dict(record) -> Dict[str, Any]:
    """Flat dataclass -> dict with scaled integers stringified"""
    data = {}
    for f in fields(record):
        value = getattr(record, f.name)
        if isinstance(value, SwapDirection):
            data[f.name] = value.value
        elif isinstance(value, bool) or f.name in _NATIVE_FIELDS:
            data[f.name] = value
        else:
            data[f.name] = _stringify_int(value)
    return data


def _record_from_dict(cls, raw: Dict[str, Any], label: str):
    """Inverse of _record_to_dict driven by the dataclass field types"""
    names = [f.name for f in fields(cls)]
    _require_keys(raw, names, label)

    values = {}
    for f in fields(cls):
        value = raw[f.name]
        if f.name == "direction":
            try:
                values[f.name] = SwapDirection(value)
            except ValueError:
                raise ValueError(f"{label}: unknown swap direction {value!r}") from None
        elif f.type in (bool, "bool"):
            if not isinstance(value, bool):
                raise ValueError(f"{label}: field '{f.name}' must be a boolean")
            values[f.name] = value
        elif f.name in _NATIVE_FIELDS:
            values[f.name] = _parse_native_int(value, f.name)
        else:
            values[f.name] = _parse_int(value, f.name)
    return cls(**values)


def _token_to_dict(token: TokenInfo) -> Dict[str, Any]:
    return {"symbol": token.symbol, "decimals": token.decimals}


def _token_from_dict(raw: Any, label: str) -> TokenInfo:
    _require_keys(raw, ("symbol", "decimals"), label)
    if not isinstance(raw["symbol"], str):
        raise ValueError(f"{label}: symbol must be a string")
    return TokenInfo(symbol=raw["symbol"], decimals=_parse_native_int(raw["decimals"], "decimals"))


# =============================================================================
# V2
# =============================================================================

def is_serialized_pool_state(data: Any) -> bool:
    """Presence check for every required v2 key"""
    return isinstance(data, dict) and all(key in data for key in POOL_STATE_KEYS)


def serialize_pool_state(state: PoolState) -> Dict[str, Any]:
    return {
        "token_x": _token_to_dict(state.token_x),
        "token_y": _token_to_dict(state.token_y),
        "reserve_x": _stringify_int(state.reserve_x),
        "reserve_y": _stringify_int(state.reserve_y),
        "fee_rate": _stringify_int(state.fee_rate),
        "lp_total_supply": _stringify_int(state.lp_total_supply),
        "lp_user_balance": _stringify_int(state.lp_user_balance),
        "fee_acc_x": _stringify_int(state.fee_acc_x),
        "fee_acc_y": _stringify_int(state.fee_acc_y),
        "t": state.t,
        "last_trade": _record_to_dict(state.last_trade) if state.last_trade else None,
    }


def deserialize_pool_state(raw: Any) -> PoolState:
    """
    Rebuild a v2 pool state

    Raises:
        ValueError: if a key is missing or a numeric field is malformed
    """
    if not is_serialized_pool_state(raw):
        _require_keys(raw, POOL_STATE_KEYS, "Pool state")

    last_trade = raw["last_trade"]
    return PoolState(
        token_x=_token_from_dict(raw["token_x"], "token_x"),
        token_y=_token_from_dict(raw["token_y"], "token_y"),
        reserve_x=_parse_int(raw["reserve_x"], "reserve_x"),
        reserve_y=_parse_int(raw["reserve_y"], "reserve_y"),
        fee_rate=_parse_int(raw["fee_rate"], "fee_rate"),
        lp_total_supply=_parse_int(raw["lp_total_supply"], "lp_total_supply"),
        lp_user_balance=_parse_int(raw["lp_user_balance"], "lp_user_balance"),
        fee_acc_x=_parse_int(raw["fee_acc_x"], "fee_acc_x"),
        fee_acc_y=_parse_int(raw["fee_acc_y"], "fee_acc_y"),
        t=_parse_native_int(raw["t"], "t"),
        last_trade=_record_from_dict(LastTradeMetrics, last_trade, "last_trade") if last_trade else None,
    )


def dumps_pool_state(state: PoolState, indent: int = 2) -> str:
    return json.dumps(serialize_pool_state(state), indent=indent)


def loads_pool_state(text: str) -> PoolState:
    return deserialize_pool_state(json.loads(text))


# =============================================================================
# V3
# =============================================================================

def is_serialized_v3_pool_state(data: Any) -> bool:
    """Presence check for every required v3 key"""
    return isinstance(data, dict) and all(key in data for key in V3_POOL_STATE_KEYS)


def serialize_v3_pool_state(state: V3PoolState) -> Dict[str, Any]:
    return {
        "token_x": _token_to_dict(state.token_x),
        "token_y": _token_to_dict(state.token_y),
        "fee_tier": state.fee_tier,
        "tick_spacing": state.tick_spacing,
        "sqrt_price_x96": _stringify_int(state.sqrt_price_x96),
        "tick_current": state.tick_current,
        "liquidity": _stringify_int(state.liquidity),
        "position": _record_to_dict(state.position),
        "fee_growth_global_x128_x": _stringify_int(state.fee_growth_global_x128_x),
        "fee_growth_global_x128_y": _stringify_int(state.fee_growth_global_x128_y),
        "fee_acc_x": _stringify_int(state.fee_acc_x),
        "fee_acc_y": _stringify_int(state.fee_acc_y),
        "t": state.t,
        "last_trade": _record_to_dict(state.last_trade) if state.last_trade else None,
    }


def _validate_v3_setup(state: V3PoolState) -> None:
    spacing = FEE_TIER_TO_TICK_SPACING.get(state.fee_tier)
    if spacing is None:
        raise ValueError(f"Unsupported fee tier {state.fee_tier}")
    if state.tick_spacing != spacing:
        raise ValueError(f"Tick spacing {state.tick_spacing} does not match fee tier {state.fee_tier}")

    lower, upper = state.position.tick_lower, state.position.tick_upper
    if lower < MIN_TICK or upper > MAX_TICK:
        raise ValueError(f"Position range [{lower}, {upper}] outside tick bounds")
    if lower >= upper:
        raise ValueError(f"Position tick_lower {lower} must be below tick_upper {upper}")


def deserialize_v3_pool_state(raw: Any) -> V3PoolState:
    """
    Rebuild a v3 pool state

    Raises:
        ValueError: if a key is missing, a numeric field is malformed, or the
            fee tier, tick spacing or position range is not a valid pool setup
    """
    if not is_serialized_v3_pool_state(raw):
        _require_keys(raw, V3_POOL_STATE_KEYS, "V3 pool state")

    last_trade = raw["last_trade"]
    state = V3PoolState(
        token_x=_token_from_dict(raw["token_x"], "token_x"),
        token_y=_token_from_dict(raw["token_y"], "token_y"),
        fee_tier=_parse_native_int(raw["fee_tier"], "fee_tier"),
        tick_spacing=_parse_native_int(raw["tick_spacing"], "tick_spacing"),
        sqrt_price_x96=_parse_int(raw["sqrt_price_x96"], "sqrt_price_x96"),
        tick_current=_parse_native_int(raw["tick_current"], "tick_current"),
        liquidity=_parse_int(raw["liquidity"], "liquidity"),
        position=_record_from_dict(V3Position, raw["position"], "position"),
        fee_growth_global_x128_x=_parse_int(raw["fee_growth_global_x128_x"], "fee_growth_global_x128_x"),
        fee_growth_global_x128_y=_parse_int(raw["fee_growth_global_x128_y"], "fee_growth_global_x128_y"),
        fee_acc_x=_parse_int(raw["fee_acc_x"], "fee_acc_x"),
        fee_acc_y=_parse_int(raw["fee_acc_y"], "fee_acc_y"),
        t=_parse_native_int(raw["t"], "t"),
        last_trade=_record_from_dict(V3LastTradeMetrics, last_trade, "last_trade") if last_trade else None,
    )
    _validate_v3_setup(state)
    return state


def dumps_v3_pool_state(state: V3PoolState, indent: int = 2) -> str:
    return json.dumps(serialize_v3_pool_state(state), indent=indent)


def loads_v3_pool_state(text: str) -> V3PoolState:
    return deserialize_v3_pool_state(json.loads(text))
