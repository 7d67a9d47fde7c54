#!/usr/bin/env python3
"""
Pool Chart Generator

Static PNG renderings of the sandbox views: the v2 bonding curve with the last
trade marked, the spot price across the timeline, and the v3 position's
liquidity over the tick axis.
"""

from pathlib import Path
from typing import Union

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import seaborn as sns

from ..core.fixed_point import to_float
from ..core.types import PoolState, V3PoolState
from ..engine.amm_v3 import spot_price_v3_y_per_x
from ..simulation.timeline import TimelineState
from .metrics import tick_to_price, timeline_to_dataframe, v2_curve_points, v3_liquidity_distribution


class PoolChartGenerator:
    """Renders pool state charts into an output directory"""

    def __init__(self, output_dir: Union[str, Path] = "charts"):
        self.output_dir = Path(output_dir)
        self._setup_styling()

    def _setup_styling(self):
        plt.style.use('default')
        sns.set_palette("husl")

        plt.rcParams.update({
            'figure.figsize': (12, 8),
            'font.size': 11,
            'axes.titlesize': 14,
            'axes.labelsize': 12,
            'legend.fontsize': 10
        })

    def _save(self, fig, filename: str) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        chart_path = self.output_dir / filename
        fig.savefig(chart_path, dpi=300, bbox_inches='tight')
        plt.close(fig)
        return chart_path

    def create_curve_chart(self, state: PoolState, filename: str = "v2_curve.png") -> Path:
        """x * y = k curve with the current reserves and the last trade's move"""
        x, y = v2_curve_points(state)

        fig, ax = plt.subplots(figsize=(10, 7))
        ax.plot(x, y, linewidth=2, color='#3498DB', label='x · y = k')
        ax.scatter([to_float(state.reserve_x)], [to_float(state.reserve_y)],
                   s=80, color='#E74C3C', zorder=3, label='Current reserves')

        trade = state.last_trade
        if trade is not None:
            ax.annotate(
                "",
                xy=(to_float(trade.reserve_x_after), to_float(trade.reserve_y_after)),
                xytext=(to_float(trade.reserve_x_before), to_float(trade.reserve_y_before)),
                arrowprops=dict(arrowstyle="->", color='#27AE60', linewidth=2)
            )
            ax.scatter([to_float(trade.reserve_x_before)], [to_float(trade.reserve_y_before)],
                       s=50, color='gray', zorder=3, label='Before last trade')

        ax.set_title(f'Constant Product Curve ({state.token_x.symbol}/{state.token_y.symbol})')
        ax.set_xlabel(f'Reserve {state.token_x.symbol}')
        ax.set_ylabel(f'Reserve {state.token_y.symbol}')
        ax.set_xscale('log')
        ax.set_yscale('log')
        ax.grid(True, alpha=0.3)
        ax.legend()

        return self._save(fig, filename)

    def create_price_timeline_chart(self, state: TimelineState, filename: str = "price_timeline.png") -> Path:
        """Spot price per timeline entry, current entry highlighted"""
        df = timeline_to_dataframe(state)

        fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 9), sharex=True)

        ax1.plot(df["index"], df["spot_price"], marker='o', linewidth=2, color='#3498DB')
        current = df[df["is_current"]]
        ax1.scatter(current["index"], current["spot_price"], s=120, color='#E74C3C', zorder=3, label='Current')
        ax1.set_title('Spot Price Across Timeline')
        ax1.set_ylabel('Price (Y per X)')
        ax1.grid(True, alpha=0.3)
        ax1.legend()

        ax2.bar(df["index"] - 0.2, df["fee_acc_x"], width=0.4, label='Fees X')
        ax2.bar(df["index"] + 0.2, df["fee_acc_y"], width=0.4, label='Fees Y')
        ax2.set_title('Cumulative Fees')
        ax2.set_xlabel('Timeline Entry')
        ax2.set_ylabel('Fees')
        ax2.set_xticks(df["index"])
        ax2.set_xticklabels(df["kind"], rotation=45, ha='right')
        ax2.grid(True, alpha=0.3)
        ax2.legend()

        plt.tight_layout()
        return self._save(fig, filename)

    def create_liquidity_range_chart(self, state: V3PoolState, filename: str = "v3_liquidity_range.png") -> Path:
        """Liquidity bars over the price axis with the range bounds and current price"""
        df = v3_liquidity_distribution(state)
        widths = df["price_high"] - df["price_low"]
        colors = np.where(df["active"], '#E74C3C', '#3498DB')

        fig, ax = plt.subplots(figsize=(12, 7))
        ax.bar(df["price_low"], df["liquidity"], width=widths, align='edge', color=colors, alpha=0.8)

        ax.axvline(tick_to_price(state.position.tick_lower), color='gray', linestyle='--', label='Range bounds')
        ax.axvline(tick_to_price(state.position.tick_upper), color='gray', linestyle='--')
        ax.axvline(to_float(spot_price_v3_y_per_x(state)), color='#27AE60', linewidth=2, label='Spot price')

        ax.set_title(f'Position Liquidity ({state.token_x.symbol}/{state.token_y.symbol}, '
                     f'fee {state.fee_tier / 10000:.2f}%)')
        ax.set_xlabel('Price (Y per X)')
        ax.set_ylabel('Liquidity')
        ax.grid(True, alpha=0.3)
        ax.legend()

        return self._save(fig, filename)
