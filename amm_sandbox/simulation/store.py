#!/usr/bin/env python3
"""
Pool Stores

Stateful wrappers that pair the pure engines with an undo/redo timeline.
Every mutating action follows read-quote-verify-apply: the quote handed back
to the caller is computed against the present snapshot, then re-evaluated
against the latest snapshot immediately before the apply is committed.
"""

import logging
from dataclasses import replace
from typing import Callable, Optional

from ..core.constants import FEE_TIER_TO_TICK_SPACING
from ..core.fixed_point import ONE, ZERO
from ..core.types import (
    AddLiquidityQuote, ArbitrageQuote, AutoArbitrageResult, OperationKind, OperationResult,
    RemoveLiquidityQuote, SwapDirection, SwapQuote, TokenInfo, V3AddLiquidityParams,
    V3AddLiquidityQuote, V3RemoveLiquidityQuote, V3SwapQuote
)
from ..engine import amm_v2, amm_v3
from ..engine.config import DEFAULT_CONFIG, EngineConfig, V2Presets, V3Presets
from .timeline import (
    commit_entry, current_snapshot, export_timeline, import_timeline, init_timeline_state,
    jump_to_timeline, redo_timeline, undo_timeline
)

logger = logging.getLogger(__name__)

MIN_TOKEN_DECIMALS = 0
MAX_TOKEN_DECIMALS = 36


def validate_token_info(token: TokenInfo) -> TokenInfo:
    """Trim the symbol (blank -> 'TOKEN') and clamp decimals to [0, 36]"""
    symbol = token.symbol.strip() or "TOKEN"
    try:
        decimals = max(MIN_TOKEN_DECIMALS, min(MAX_TOKEN_DECIMALS, int(token.decimals)))
    except (TypeError, ValueError, OverflowError):
        decimals = 18
    return TokenInfo(symbol=symbol, decimals=decimals)


class _TimelineStore:
    """History handling shared by both pool models"""

    model = "v2"
    presets = V2Presets

    def __init__(self, preset_id: Optional[str] = None, config: EngineConfig = DEFAULT_CONFIG):
        self.config = config
        default_preset = self.presets.get_all_presets()[0]["id"]
        self.timeline_state = init_timeline_state(preset_id or default_preset, self.model)

    # Read access ----------------------------------------------------------

    @property
    def present(self):
        return current_snapshot(self.timeline_state)

    @property
    def selected_preset(self) -> str:
        return self.timeline_state.selected_preset

    @property
    def timeline(self):
        return self.timeline_state.timeline

    @property
    def cursor(self) -> int:
        return self.timeline_state.cursor

    @property
    def can_undo(self) -> bool:
        return self.timeline_state.can_undo

    @property
    def can_redo(self) -> bool:
        return self.timeline_state.can_redo

    # History --------------------------------------------------------------

    def _commit(self, kind: OperationKind, label: str, snapshot):
        self.timeline_state = commit_entry(self.timeline_state, kind, label, snapshot)

    def _quote_and_commit(
        self,
        quote_fn: Callable,
        apply_fn: Callable,
        kind: OperationKind,
        label_fn: Callable
    ):
        """Quote against the present snapshot, re-verify against the latest one, then commit"""
        quote = quote_fn(self.present)
        if not quote.ok:
            return quote

        latest = current_snapshot(self.timeline_state)
        verified = quote_fn(latest)
        if not verified.ok:
            logger.debug("Quote no longer valid against latest snapshot: %s", verified.error)
            return verified

        self._commit(kind, label_fn(latest), apply_fn(latest, verified))
        return verified

    def set_preset(self, preset_id: str):
        self.timeline_state = init_timeline_state(preset_id, self.model)

    def reset(self):
        self.timeline_state = init_timeline_state(self.timeline_state.selected_preset, self.model)

    def undo(self):
        self.timeline_state = undo_timeline(self.timeline_state)

    def redo(self):
        self.timeline_state = redo_timeline(self.timeline_state)

    def jump_to(self, index: int):
        self.timeline_state = jump_to_timeline(self.timeline_state, index)

    def update_token_meta(self, token_x: TokenInfo, token_y: TokenInfo):
        snapshot = replace(
            self.present,
            token_x=validate_token_info(token_x),
            token_y=validate_token_info(token_y),
        )
        self._commit(OperationKind.RESET, "Update Token Meta", snapshot)

    # Persistence ----------------------------------------------------------

    def export_state(self) -> str:
        return export_timeline(self.timeline_state, self.model)

    def import_state(self, raw: str) -> OperationResult:
        ok, error, state = import_timeline(raw, self.model, self.timeline_state.selected_preset)
        if not ok:
            return OperationResult(ok=False, error=error)
        self.timeline_state = state
        logger.debug("Imported %d timeline entries", len(state.timeline))
        return OperationResult(ok=True)


def _swap_label(state, direction: SwapDirection, prefix: str = "Swap") -> str:
    if direction == SwapDirection.X_TO_Y:
        return f"{prefix} {state.token_x.symbol}->{state.token_y.symbol}"
    return f"{prefix} {state.token_y.symbol}->{state.token_x.symbol}"


def _pair_label(state, action: str) -> str:
    return f"{action} ({state.token_x.symbol}/{state.token_y.symbol})"


class AmmStore(_TimelineStore):
    """Constant product pool with history"""

    model = "v2"
    presets = V2Presets

    def spot_price(self) -> int:
        return amm_v2.spot_price_y_per_x(self.present)

    def quote_swap(self, direction: SwapDirection, amount_in: int) -> SwapQuote:
        return amm_v2.quote_swap_exact_in(self.present, direction, amount_in)

    def apply_swap(self, direction: SwapDirection, amount_in: int) -> SwapQuote:
        return self._quote_and_commit(
            lambda state: amm_v2.quote_swap_exact_in(state, direction, amount_in),
            amm_v2.apply_swap_exact_in,
            OperationKind.SWAP,
            lambda state: _swap_label(state, direction),
        )

    def quote_add_liquidity(self, amount_x_in: int, amount_y_in: int) -> AddLiquidityQuote:
        return amm_v2.quote_add_liquidity(self.present, amount_x_in, amount_y_in)

    def apply_add_liquidity(self, amount_x_in: int, amount_y_in: int) -> AddLiquidityQuote:
        return self._quote_and_commit(
            lambda state: amm_v2.quote_add_liquidity(state, amount_x_in, amount_y_in),
            amm_v2.apply_add_liquidity,
            OperationKind.ADD,
            lambda state: _pair_label(state, "Add Liquidity"),
        )

    def quote_remove_liquidity(self, burn_lp: int) -> RemoveLiquidityQuote:
        return amm_v2.quote_remove_liquidity(self.present, burn_lp)

    def apply_remove_liquidity(self, burn_lp: int) -> RemoveLiquidityQuote:
        return self._quote_and_commit(
            lambda state: amm_v2.quote_remove_liquidity(state, burn_lp),
            amm_v2.apply_remove_liquidity,
            OperationKind.REMOVE,
            lambda state: _pair_label(state, "Remove Liquidity"),
        )

    def update_fee_rate(self, fee_rate: int) -> OperationResult:
        if fee_rate < ZERO or fee_rate >= ONE:
            return OperationResult(ok=False, error="Fee rate must be in [0, 1)")
        self._commit(OperationKind.RESET, "Update Fee Rate", replace(self.present, fee_rate=fee_rate))
        return OperationResult(ok=True)

    # Arbitrage ------------------------------------------------------------

    def quote_arbitrage(self, external_price_y_per_x: int) -> ArbitrageQuote:
        return amm_v2.quote_arbitrage_to_external_price(self.present, external_price_y_per_x, self.config)

    def apply_arbitrage_step(self, external_price_y_per_x: int) -> ArbitrageQuote:
        quote = self.quote_arbitrage(external_price_y_per_x)
        if not quote.ok:
            return quote
        return self._quote_and_commit(
            lambda state: amm_v2.quote_arbitrage_to_external_price(state, external_price_y_per_x, self.config),
            amm_v2.apply_arbitrage,
            OperationKind.SWAP,
            lambda state: _swap_label(state, quote.direction, "Arbitrage"),
        )

    def apply_auto_arbitrage(
        self,
        external_price_y_per_x: int,
        max_steps: Optional[int] = None,
        tolerance: Optional[int] = None
    ) -> AutoArbitrageResult:
        """Run repeated arbitrage steps and commit the final state as one entry"""
        final_state, result = amm_v2.run_auto_arbitrage(
            self.present, external_price_y_per_x, max_steps, tolerance, self.config
        )
        if result.ok:
            self._commit(OperationKind.SWAP, f"Auto Arbitrage ({result.steps} steps)", final_state)
        return result


class AmmV3Store(_TimelineStore):
    """Concentrated liquidity pool with history"""

    model = "v3"
    presets = V3Presets

    def spot_price(self) -> int:
        return amm_v3.spot_price_v3_y_per_x(self.present)

    def quote_swap(self, direction: SwapDirection, amount_in: int) -> V3SwapQuote:
        return amm_v3.quote_v3_swap_exact_in(self.present, direction, amount_in)

    def apply_swap(self, direction: SwapDirection, amount_in: int) -> V3SwapQuote:
        return self._quote_and_commit(
            lambda state: amm_v3.quote_v3_swap_exact_in(state, direction, amount_in),
            amm_v3.apply_v3_swap_exact_in,
            OperationKind.SWAP,
            lambda state: _swap_label(state, direction),
        )

    def quote_add_liquidity(self, params: V3AddLiquidityParams) -> V3AddLiquidityQuote:
        return amm_v3.quote_v3_add_liquidity(self.present, params)

    def apply_add_liquidity(self, params: V3AddLiquidityParams) -> V3AddLiquidityQuote:
        return self._quote_and_commit(
            lambda state: amm_v3.quote_v3_add_liquidity(state, params),
            amm_v3.apply_v3_add_liquidity,
            OperationKind.ADD,
            lambda state: _pair_label(state, "Add Liquidity"),
        )

    def quote_remove_liquidity(self, liquidity_delta: int) -> V3RemoveLiquidityQuote:
        return amm_v3.quote_v3_remove_liquidity(self.present, liquidity_delta)

    def apply_remove_liquidity(self, liquidity_delta: int) -> V3RemoveLiquidityQuote:
        return self._quote_and_commit(
            lambda state: amm_v3.quote_v3_remove_liquidity(state, liquidity_delta),
            amm_v3.apply_v3_remove_liquidity,
            OperationKind.REMOVE,
            lambda state: _pair_label(state, "Remove Liquidity"),
        )

    def update_fee_tier(self, fee_tier: int) -> OperationResult:
        """
        Switch fee tier; only allowed while the position is empty

        The range is re-snapped to the new tick spacing and active liquidity is
        zeroed.
        """
        if fee_tier not in FEE_TIER_TO_TICK_SPACING:
            return OperationResult(ok=False, error=f"Unsupported fee tier {fee_tier}")

        current = self.present
        if amm_v3.normalize_liquidity(current.position.liquidity) > ZERO:
            return OperationResult(ok=False, error="Set position liquidity to zero before changing fee tier")

        spacing = FEE_TIER_TO_TICK_SPACING[fee_tier]
        tick_lower, tick_upper = amm_v3.normalize_range(
            current.position.tick_lower, current.position.tick_upper, spacing
        )
        snapshot = replace(
            current,
            fee_tier=fee_tier,
            tick_spacing=spacing,
            position=replace(current.position, tick_lower=tick_lower, tick_upper=tick_upper),
            liquidity=ZERO,
        )
        self._commit(OperationKind.RESET, f"Update Fee Tier ({fee_tier / 10000:.2f}%)", snapshot)
        return OperationResult(ok=True)
