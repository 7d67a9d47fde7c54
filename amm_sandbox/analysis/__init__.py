"""Float metrics and charts over pool snapshots"""

from .metrics import timeline_to_dataframe, v2_curve_points, v3_liquidity_distribution, last_trade_summary

__all__ = ["timeline_to_dataframe", "v2_curve_points", "v3_liquidity_distribution", "last_trade_summary"]
