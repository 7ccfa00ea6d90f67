"""
Ticker list loading.

Tickers come either from the command line or from the first column of a
CSV/TSV export (e.g. a stock screener download).
"""

import logging
from pathlib import Path
from typing import List, Sequence

import pandas as pd

from volradar.errors import DataError

logger = logging.getLogger(__name__)

DEFAULT_TICKERS = ["MSFT", "NVDA", "TSLA"]

TABULAR_SEPARATORS = {
    ".csv": ",",
    ".tsv": "\t",
}


def is_ticker_file(arg: str) -> bool:
    """True if the argument names a recognized tabular file."""
    return Path(arg).suffix.lower() in TABULAR_SEPARATORS


def load_tickers_from_file(path: str) -> List[str]:
    """
    Read ticker symbols from the first column of a tabular file.

    The header row is skipped; quotes and surrounding whitespace are
    stripped and blank entries dropped. Duplicates are kept out, order kept.

    Raises:
        DataError: If the file cannot be read
    """
    file_path = Path(path)
    sep = TABULAR_SEPARATORS.get(file_path.suffix.lower(), ",")

    try:
        df = pd.read_csv(file_path, sep=sep, usecols=[0], dtype=str, keep_default_na=False)
    except (OSError, ValueError, pd.errors.ParserError) as e:
        raise DataError(f"Error reading ticker file {path}: {e}") from e

    if df.empty:
        return []

    column = df.iloc[:, 0].str.strip().str.strip('"').str.strip()
    tickers = [t for t in column if t]
    return list(dict.fromkeys(tickers))


def resolve_tickers(args: Sequence[str]) -> List[str]:
    """
    Turn the positional ticker arguments into a ticker list.

    No arguments gives the default list; a single file argument is read as a
    ticker file; anything else is taken as ticker symbols.
    """
    if not args:
        return list(DEFAULT_TICKERS)

    if is_ticker_file(args[0]):
        tickers = load_tickers_from_file(args[0])
        logger.info("Loaded %d tickers from %s", len(tickers), args[0])
        return tickers

    return list(dict.fromkeys(a.strip() for a in args if a.strip()))
