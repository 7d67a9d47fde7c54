#!/usr/bin/env python3
"""
AMM Sandbox - Main Entry Point

Command-line what-if runs against a constant product (v2) or concentrated
liquidity (v3) pool built from a preset. Operations are applied in a fixed
order (swap, add, remove, arbitrage, auto-arbitrage) and each one is recorded
on the pool's timeline, which can be exported to JSON or charted.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from amm_sandbox.core.fixed_point import format_fp, format_percent_fp, safe_parse_fp
from amm_sandbox.core.types import SwapDirection, V3AddLiquidityParams
from amm_sandbox.engine.config import V2Presets, V3Presets
from amm_sandbox.simulation.store import AmmStore, AmmV3Store

logger = logging.getLogger("amm_sandbox")


class CliInputError(ValueError):
    """Malformed command-line value"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="AMM Sandbox - constant product and concentrated liquidity what-if engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m amm_sandbox.main --list-presets
  python -m amm_sandbox.main --preset deep --swap X_TO_Y 10
  python -m amm_sandbox.main --preset shallow --add 1 3000 --remove 5
  python -m amm_sandbox.main --preset imbalanced --arbitrage 2000 --export run.json
  python -m amm_sandbox.main --model v3 --preset narrow --swap Y_TO_X 5000 --charts charts/
        """
    )

    parser.add_argument('--model', choices=['v2', 'v3'], default='v2',
                        help='Pool model (default: v2)')
    parser.add_argument('--preset', type=str,
                        help='Preset id (default: first preset of the model)')
    parser.add_argument('--list-presets', action='store_true',
                        help='List presets for both models')
    parser.add_argument('--import-file', type=str, metavar='FILE',
                        help='Start from a previously exported timeline')

    parser.add_argument('--swap', nargs=2, metavar=('DIRECTION', 'AMOUNT'),
                        help='Exact-input swap, DIRECTION is X_TO_Y or Y_TO_X')
    parser.add_argument('--add', nargs=2, metavar=('X', 'Y'),
                        help='Add liquidity with the given token amounts')
    parser.add_argument('--range', nargs=2, type=int, metavar=('LOWER', 'UPPER'),
                        help='Tick range for --add (v3 only, position must be empty to move it)')
    parser.add_argument('--remove', type=str, metavar='AMOUNT',
                        help='Burn LP tokens (v2) or position liquidity (v3)')
    parser.add_argument('--arbitrage', type=str, metavar='PRICE',
                        help='Single arbitrage step toward an external price (v2 only)')
    parser.add_argument('--auto-arbitrage', type=str, metavar='PRICE',
                        help='Repeated arbitrage toward an external price (v2 only)')
    parser.add_argument('--max-steps', type=int,
                        help='Step limit for --auto-arbitrage (default: 5)')

    parser.add_argument('--export', type=str, metavar='FILE',
                        help='Write the timeline to a JSON file')
    parser.add_argument('--charts', type=str, metavar='DIR',
                        help='Render PNG charts into a directory')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Debug logging')
    return parser


def parse_amount(text: str, name: str) -> int:
    value = safe_parse_fp(text)
    if value is None:
        raise CliInputError(f"Invalid {name}: '{text}'")
    return value


def parse_direction(text: str) -> SwapDirection:
    try:
        return SwapDirection(text.upper())
    except ValueError:
        raise CliInputError(f"Invalid direction '{text}', expected X_TO_Y or Y_TO_X") from None


def list_presets():
    print("V2 presets (constant product):")
    print("-" * 40)
    for preset in V2Presets.get_all_presets():
        print(f"  {preset['id']:<12} {preset['label']:<16} "
              f"{preset['reserve_x']} {preset['token_x'][0]} / {preset['reserve_y']} {preset['token_y'][0]}, "
              f"fee {preset['fee_rate']}")

    print("\nV3 presets (concentrated liquidity):")
    print("-" * 40)
    for preset in V3Presets.get_all_presets():
        print(f"  {preset['id']:<12} {preset['label']:<16} "
              f"price {preset['initial_price_y_per_x']}, ticks [{preset['tick_lower']}, {preset['tick_upper']})")


def print_pool(store):
    state = store.present
    x, y = state.token_x.symbol, state.token_y.symbol

    print(f"\nPool ({store.model}, preset {store.selected_preset}, t={state.t})")
    print("-" * 40)
    print(f"Spot price:     {format_fp(store.spot_price())} {y} per {x}")
    if store.model == "v2":
        print(f"Reserves:       {format_fp(state.reserve_x)} {x} / {format_fp(state.reserve_y)} {y}")
        print(f"Fee rate:       {format_percent_fp(state.fee_rate)}%")
        print(f"LP supply:      {format_fp(state.lp_total_supply)}")
    else:
        print(f"Fee tier:       {state.fee_tier / 10000:.2f}%")
        print(f"Tick:           {state.tick_current}  range [{state.position.tick_lower}, {state.position.tick_upper})")
        print(f"Active liq.:    {format_fp(state.liquidity)}")
        print(f"Position liq.:  {format_fp(state.position.liquidity)}")
    print(f"Fees:           {format_fp(state.fee_acc_x)} {x} / {format_fp(state.fee_acc_y)} {y}")


def report(label: str, result) -> bool:
    if not result.ok:
        print(f"❌ {label} failed: {result.error}")
        return False
    print(f"✅ {label}")
    return True


def run_operations(store, args) -> bool:
    """Apply the requested operations in order, stopping at the first failure"""
    v3 = store.model == "v3"

    if args.range and not v3:
        raise CliInputError("--range is only available for the v3 model")
    if args.range and not args.add:
        raise CliInputError("--range requires --add")

    if args.swap:
        direction = parse_direction(args.swap[0])
        quote = store.apply_swap(direction, parse_amount(args.swap[1], "swap amount"))
        if not report(f"Swap {direction.value}", quote):
            return False
        print(f"   in {format_fp(quote.amount_in)} -> out {format_fp(quote.amount_out)}, "
              f"fee {format_fp(quote.fee_amount_in_token)}, slippage {format_percent_fp(quote.slippage_total)}%")
        if v3 and quote.partial_fill:
            print(f"   partial fill: {format_fp(quote.amount_in_unfilled)} returned (range exhausted)")

    if args.add:
        amount_x = parse_amount(args.add[0], "token X amount")
        amount_y = parse_amount(args.add[1], "token Y amount")
        if v3:
            params = V3AddLiquidityParams(amount_x, amount_y)
            if args.range:
                params.tick_lower, params.tick_upper = args.range
            quote = store.apply_add_liquidity(params)
            if not report("Add liquidity", quote):
                return False
            print(f"   liquidity +{format_fp(quote.liquidity_delta)}, "
                  f"refund {format_fp(quote.refund_x)} / {format_fp(quote.refund_y)}")
        else:
            quote = store.apply_add_liquidity(amount_x, amount_y)
            if not report("Add liquidity", quote):
                return False
            print(f"   minted {format_fp(quote.lp_mint)} LP, "
                  f"refund {format_fp(quote.refund_x)} / {format_fp(quote.refund_y)}")

    if args.remove:
        quote = store.apply_remove_liquidity(parse_amount(args.remove, "remove amount"))
        if not report("Remove liquidity", quote):
            return False
        if v3:
            print(f"   out {format_fp(quote.amount_x_out)} / {format_fp(quote.amount_y_out)}")
        else:
            print(f"   out {format_fp(quote.out_x)} / {format_fp(quote.out_y)}")

    if (args.arbitrage or args.auto_arbitrage) and v3:
        raise CliInputError("Arbitrage is only available for the v2 model")

    if args.arbitrage:
        quote = store.apply_arbitrage_step(parse_amount(args.arbitrage, "external price"))
        if not report("Arbitrage", quote):
            return False
        print(f"   {quote.direction.value} in {format_fp(quote.amount_in)}, "
              f"spread {format_percent_fp(quote.spread_before, 4)}% -> {format_percent_fp(quote.spread_after, 4)}%, "
              f"profit {format_fp(quote.expected_profit_in_y)} {store.present.token_y.symbol}")

    if args.auto_arbitrage:
        result = store.apply_auto_arbitrage(parse_amount(args.auto_arbitrage, "external price"), args.max_steps)
        if not report("Auto arbitrage", result):
            return False
        print(f"   {result.steps} steps, final spread {format_percent_fp(result.final_spread, 4)}%")

    return True


def render_charts(store, output_dir: str) -> List[Path]:
    from amm_sandbox.analysis.charts import PoolChartGenerator

    generator = PoolChartGenerator(output_dir)
    paths = [generator.create_price_timeline_chart(store.timeline_state)]
    if store.model == "v2":
        paths.append(generator.create_curve_chart(store.present))
    else:
        paths.append(generator.create_liquidity_range_chart(store.present))
    return paths


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with command-line interface"""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    if args.list_presets:
        list_presets()
        return 0

    store = AmmV3Store(args.preset) if args.model == "v3" else AmmStore(args.preset)

    try:
        if args.import_file:
            result = store.import_state(Path(args.import_file).read_text())
            if not report(f"Import {args.import_file}", result):
                return 1

        ok = run_operations(store, args)
        print_pool(store)

        if args.export:
            Path(args.export).write_text(store.export_state())
            print(f"\nTimeline exported: {args.export}")

        if args.charts:
            for path in render_charts(store, args.charts):
                print(f"Chart saved: {path}")

    except CliInputError as e:
        print(f"Error: {e}")
        return 1
    except OSError as e:
        print(f"Error: {e}")
        if args.verbose:
            logger.exception("File operation failed")
        return 1

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
