"""
Per-run state: the request registry plus one dataset and one lock per ticker.
"""

import threading
from typing import Dict, Iterable, List

from volradar.engine.registry import RequestRegistry
from volradar.entities import TickerDataset


class Session:
    """
    State owned by a single radar run.

    Tickers are fixed at construction (duplicates removed, order kept), so
    the dataset and lock maps never change size and need no lock of their own.
    Each ticker's lock is re-entrant so a handler can issue follow-on
    requests to a provider that answers synchronously.
    """

    def __init__(self, tickers: Iterable[str]):
        self._tickers: List[str] = list(dict.fromkeys(tickers))
        if not self._tickers:
            raise ValueError("tickers cannot be empty")

        self.registry = RequestRegistry()
        self._datasets: Dict[str, TickerDataset] = {
            ticker: TickerDataset(ticker) for ticker in self._tickers
        }
        self._locks: Dict[str, threading.RLock] = {
            ticker: threading.RLock() for ticker in self._tickers
        }

    @property
    def tickers(self) -> List[str]:
        return list(self._tickers)

    def dataset(self, ticker: str) -> TickerDataset:
        return self._datasets[ticker]

    def datasets(self) -> Dict[str, TickerDataset]:
        """Datasets in requested-ticker order."""
        return {ticker: self._datasets[ticker] for ticker in self._tickers}

    def lock_for(self, ticker: str) -> threading.RLock:
        return self._locks[ticker]

    def __len__(self) -> int:
        return len(self._tickers)

    def __repr__(self) -> str:
        return f"Session({len(self)} tickers, {len(self.registry)} requests in flight)"
