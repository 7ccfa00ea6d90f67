"""
Command-line interface for the volatility radar.

Examples:
    volradar                         simulated data for MSFT, NVDA, TSLA
    volradar AAPL AMD                simulated data for the given tickers
    volradar simulated AAPL AMD      same, with the mode spelled out
    volradar live data/finviz.csv    live data, tickers from a CSV export
"""

import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from volradar.config import load_config
from volradar.data_sources.tickers import resolve_tickers
from volradar.errors import ConfigError, DataError, ProviderConnectionError
from volradar.logging_config import setup_logging
from volradar.runner import MODES, SIMULATED, build_provider, run

logger = logging.getLogger(__name__)


class _ArgumentParser(argparse.ArgumentParser):
    """Reports usage errors with exit status 1; 2 means a connection failure."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="volradar",
        description="Implied vs. historical volatility radar",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "tickers", nargs="*", metavar="[MODE] TICKER",
        help=(
            f"Optional data source ({', '.join(MODES)}; default: simulated) followed by "
            "ticker symbols, or a single .csv/.tsv file whose first column lists them"
        )
    )
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument(
        "--timeout", type=float, default=None,
        help="Seconds to wait for all tickers (overrides config)"
    )
    parser.add_argument("--log-level", default=None, help="Log level (default: INFO)")
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse the command line.

    The mode is taken from the first positional only when it names one;
    otherwise every positional is a ticker and the mode is simulated.
    """
    args = build_parser().parse_args(argv)
    args.mode = SIMULATED
    if args.tickers and args.tickers[0] in MODES:
        args.mode = args.tickers.pop(0)
    return args


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = parse_args(argv)

    setup_logging(args.log_level)
    logger.info("Start Program...")

    try:
        config = load_config(args.config)
        if args.timeout is not None:
            config = replace(config, completion_timeout=args.timeout)
        tickers = resolve_tickers(args.tickers)
    except (ConfigError, DataError) as e:
        logger.error("%s", e)
        return 1

    if not tickers:
        logger.error("No tickers found. Exiting.")
        return 1

    logger.info("Tickers: %s", ", ".join(tickers))

    provider = build_provider(args.mode, config)
    try:
        result = run(tickers, provider, config=config)
    except ProviderConnectionError as e:
        logger.error("Provider connection failed: %s", e)
        return 2

    logger.info("Volatility radar shutting down.")
    return 0 if result.finished else 3


if __name__ == "__main__":
    sys.exit(main())
