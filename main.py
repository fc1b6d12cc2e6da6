"""
IBOV Quant CLI Entrypoint

### PURPOSE
Command-line front end for the two query operations.

### USAGE
  python -m main scan                              # Scan the IBOVESPA universe (6 Meses)
  python -m main scan --period "1 Ano" --watchlist "PETR4, PRIO3, VALE3"
  python -m main analyze PETR4 VALE3               # Drill down into one pair
  python -m main analyze ITUB4 BBDC4 --json        # Wire-shaped JSON output

### CRITICAL INVARIANTS
1. Missing GEMINI_API_KEY is reported before any network call.
2. Errors print the user-facing message only and exit with status 1.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from config.settings import Settings
from ibov_quant.core.errors import QueryError
from ibov_quant.core.models import DetailedAnalysis, ScannedPair
from ibov_quant.core.orchestrator import QueryOrchestrator
from ibov_quant.core.universe import PERIODS, format_watchlist, is_known_symbol
from ibov_quant.core.view_state import ViewController
from ibov_quant.utils.query_logger import get_query_logger, set_log_level

logger = get_query_logger("ibov_quant.cli")


def setup_logging(verbose: bool = False, level_name: str = "INFO") -> None:
    """Configure console logging. `-v` overrides the configured level with DEBUG."""
    level = logging.DEBUG if verbose else logging.getLevelName(level_name.strip().upper())
    if not isinstance(level, int):
        level = logging.INFO
    fmt = "%(asctime)s | %(name)-20s | %(levelname)-5s | %(message)s"
    logging.basicConfig(level=level, format=fmt, datefmt="%H:%M:%S")
    # Suppress noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)
    logging.getLogger("litellm").setLevel(logging.WARNING)
    set_log_level(level)


def format_pair(index: int, pair: ScannedPair) -> str:
    flag = " *" if pair.is_stretched else ""
    return (
        f"  {index}. Long {pair.asset_y} / Short {pair.asset_x} | ADF {pair.adf_confidence:.0f}% "
        f"| Z {pair.current_z_score:+.2f}σ{flag} | Half-life {pair.half_life} days"
    )


def format_analysis(analysis: DetailedAnalysis) -> str:
    lines = [
        f"{analysis.pair}  (updated {analysis.last_updated})",
        f"  ADF confidence : {analysis.adf_confidence:.0f}%"
        + (" (strong)" if analysis.is_strongly_cointegrated else ""),
        f"  Half-life      : {analysis.half_life} days",
        f"  Hurst exponent : {analysis.hurst_exponent:.2f}"
        + (" (mean-reverting)" if analysis.is_mean_reverting else " (trending)"),
        f"  Current Z      : {analysis.current_z_score:+.2f}σ"
        + (" beyond ±2σ" if analysis.is_stretched else ""),
        f"  Residuals      : {len(analysis.residuals)} points, "
        f"beta rotation: {len(analysis.beta_rotation)} points",
        "",
        analysis.interpretation,
    ]
    if analysis.sources:
        lines.append("")
        lines.append("Sources:")
        lines.extend(f"  - {s.title}: {s.uri}" for s in analysis.sources)
    return "\n".join(lines)


async def cmd_scan(
    settings: Settings,
    period: str,
    watchlist: str | None = None,
    as_json: bool = False,
) -> int:
    """Run one market scan and print the candidate pairs."""
    try:
        controller = ViewController(QueryOrchestrator(settings), period=period)
    except QueryError as e:
        print(e.message, file=sys.stderr)
        return 1

    logger.info("Scanning %s ...", period)
    if not await controller.run_scan(period, watchlist or format_watchlist()):
        print(controller.error, file=sys.stderr)
        return 1

    if as_json:
        print(json.dumps([p.model_dump(by_alias=True) for p in controller.pairs], indent=2, ensure_ascii=False))
        return 0

    print(f"Found {len(controller.pairs)} pairs ({period}):")
    for i, pair in enumerate(controller.pairs, 1):
        print(format_pair(i, pair))
    sources = controller.pairs[0].sources if controller.pairs else []
    if sources:
        print("Sources:")
        for s in sources:
            print(f"  - {s.title}: {s.uri}")
    return 0


async def cmd_analyze(
    settings: Settings,
    asset_y: str,
    asset_x: str,
    period: str,
    as_json: bool = False,
) -> int:
    """Analyze one pair and print the result."""
    try:
        controller = ViewController(QueryOrchestrator(settings), period=period)
    except QueryError as e:
        print(e.message, file=sys.stderr)
        return 1

    for symbol in (asset_y, asset_x):
        if not is_known_symbol(symbol):
            logger.warning("%s is not in the IBOVESPA reference list", symbol.upper())
    logger.info("Analyzing %s x %s (%s) ...", asset_y, asset_x, period)
    if not await controller.submit_manual(asset_y.upper(), asset_x.upper(), period):
        print(controller.error, file=sys.stderr)
        return 1

    if as_json:
        print(json.dumps(controller.analysis.model_dump(by_alias=True), indent=2, ensure_ascii=False))
    else:
        print(format_analysis(controller.analysis))
    return 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    common.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON (camelCase wire shape)",
    )
    parser = argparse.ArgumentParser(
        prog="ibov-quant",
        description="IBOV Quant: Long & Short cointegration scanner for IBOVESPA pairs",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan = subparsers.add_parser("scan", parents=[common], help="Scan the market for divergent pairs")
    scan.add_argument(
        "--period",
        choices=PERIODS,
        default=None,
        help="Analysis period (default: settings.default_period)",
    )
    scan.add_argument(
        "--watchlist",
        default=None,
        help="Comma separated tickers to consider (default: IBOVESPA universe)",
    )

    analyze = subparsers.add_parser("analyze", parents=[common], help="Detailed analysis of one pair")
    analyze.add_argument("asset_y", help="Long leg (Y)")
    analyze.add_argument("asset_x", help="Short leg (X)")
    analyze.add_argument(
        "--period",
        choices=PERIODS,
        default=None,
        help="Analysis period (default: settings.default_period)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings()
    setup_logging(args.verbose, settings.log_level)

    period = args.period or settings.default_period

    if args.command == "scan":
        return asyncio.run(cmd_scan(settings, period, args.watchlist, as_json=args.json))
    return asyncio.run(
        cmd_analyze(settings, args.asset_y, args.asset_x, period, as_json=args.json)
    )


if __name__ == "__main__":
    sys.exit(main())
