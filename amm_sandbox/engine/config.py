#!/usr/bin/env python3
"""
Engine parameters and pool presets

Simple parameter classes and preset dictionaries instead of schema objects.
"""

from typing import Dict, List

from ..core.fixed_point import SCALE


class EngineConfig:
    """Tunable engine constants"""

    def __init__(self):
        # Arbitrage solver search bounds. Empirical: they bound the search cost
        # while covering realistic reserve ratios.
        self.arbitrage_seed_divisor = 1_000         # first probe = input reserve / 1000
        self.arbitrage_cap_multiplier = 1_000_000   # largest probe = input reserve * 1e6
        self.arbitrage_max_iterations = 90          # per loop (expanding + binary search)

        # Auto arbitrage defaults
        self.auto_arbitrage_max_steps = 5
        self.auto_arbitrage_tolerance = SCALE // 1000  # 0.1% relative spread

        # Display
        self.default_format_decimals = 6


DEFAULT_CONFIG = EngineConfig()


class V2Presets:
    """Constant product pool presets"""

    DEEP = {
        "id": "deep",
        "label": "Deep Pool",
        "token_x": ("ETH", 18),
        "token_y": ("USDC", 6),
        "reserve_x": "10000",
        "reserve_y": "20000000",
        "fee_rate": "0.003"
    }

    SHALLOW = {
        "id": "shallow",
        "label": "Shallow Pool",
        "token_x": ("ETH", 18),
        "token_y": ("USDC", 6),
        "reserve_x": "100",
        "reserve_y": "200000",
        "fee_rate": "0.003"
    }

    IMBALANCED = {
        "id": "imbalanced",
        "label": "Imbalanced",
        "token_x": ("ETH", 18),
        "token_y": ("USDC", 6),
        "reserve_x": "10000",
        "reserve_y": "6000000",
        "fee_rate": "0.003"
    }

    ZERO_FEE = {
        "id": "zeroFee",
        "label": "0 Fee",
        "token_x": ("TOKEN-A", 18),
        "token_y": ("TOKEN-B", 18),
        "reserve_x": "10000",
        "reserve_y": "10000",
        "fee_rate": "0"
    }

    @classmethod
    def get_all_presets(cls) -> List[Dict]:
        """Get all presets"""
        return [cls.DEEP, cls.SHALLOW, cls.IMBALANCED, cls.ZERO_FEE]

    @classmethod
    def get_preset_by_id(cls, preset_id: str) -> Dict:
        """Get specific preset by id, falling back to the first preset"""
        presets = cls.get_all_presets()
        for preset in presets:
            if preset["id"] == preset_id:
                return preset
        return presets[0]


class V3Presets:
    """Concentrated liquidity pool presets (ETH priced at 2000 USDC)"""

    BALANCED = {
        "id": "balanced",
        "label": "Balanced 0.3%",
        "token_x": ("ETH", 18),
        "token_y": ("USDC", 6),
        "fee_tier": 3000,
        "initial_price_y_per_x": "2000",
        "tick_lower": 74400,
        "tick_upper": 78000,
        "initial_amount_x": "50",
        "initial_amount_y": "100000"
    }

    NARROW = {
        "id": "narrow",
        "label": "Narrow 0.05%",
        "token_x": ("ETH", 18),
        "token_y": ("USDC", 6),
        "fee_tier": 500,
        "initial_price_y_per_x": "2000",
        "tick_lower": 75800,
        "tick_upper": 76200,
        "initial_amount_x": "20",
        "initial_amount_y": "40000"
    }

    WIDE = {
        "id": "wide",
        "label": "Wide 1%",
        "token_x": ("ETH", 18),
        "token_y": ("USDC", 6),
        "fee_tier": 10000,
        "initial_price_y_per_x": "2000",
        "tick_lower": 70000,
        "tick_upper": 82000,
        "initial_amount_x": "100",
        "initial_amount_y": "200000"
    }

    @classmethod
    def get_all_presets(cls) -> List[Dict]:
        """Get all presets"""
        return [cls.BALANCED, cls.NARROW, cls.WIDE]

    @classmethod
    def get_preset_by_id(cls, preset_id: str) -> Dict:
        """Get specific preset by id, falling back to the first preset"""
        presets = cls.get_all_presets()
        for preset in presets:
            if preset["id"] == preset_id:
                return preset
        return presets[0]
