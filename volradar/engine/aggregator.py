"""
Completion tracking and report emission.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional

from volradar.analytics.statistics import CrossTickerStatistics, compute_cross_ticker_statistics
from volradar.engine.session import Session
from volradar.reporting.report import (
    format_statistics_table,
    format_ticker_report,
    format_timeout_notice,
)

logger = logging.getLogger(__name__)

ReportSink = Callable[[str], None]


class ReportAggregator:
    """
    Emits each ticker's report once, then the cross-ticker table once.

    The aggregator only reads session state. `check_completion` is called by
    the correlator while it holds the ticker's lock; the aggregator's own
    lock is taken only when a ticker completes, so handlers for different
    tickers do not contend on it for ordinary updates.

    Representation Invariants:
        - each ticker appears in `completed` at most once
        - statistics are emitted at most once per run
        - after `expire()`, no further reports are emitted
    """

    def __init__(self, session: Session, emit: ReportSink = print):
        self._session = session
        self._emit = emit
        self._lock = threading.Lock()
        self._completed: List[str] = []
        self._timed_out: List[str] = []
        self._statistics: Optional[CrossTickerStatistics] = None
        self._closed = False
        self._done = threading.Event()

    def check_completion(self, ticker: str) -> bool:
        """
        Re-evaluate one ticker after an update.

        Returns:
            True if this call completed the ticker (its report was emitted)
        """
        dataset = self._session.dataset(ticker)
        if not dataset.is_complete():
            return False

        with self._lock:
            if self._closed or ticker in self._completed:
                return False

            self._completed.append(ticker)
            logger.info("%s complete (%d/%d)", ticker, len(self._completed), len(self._session))
            self._emit(format_ticker_report(dataset))

            if len(self._completed) == len(self._session):
                self._emit_statistics()
        return True

    def _emit_statistics(self) -> None:
        datasets = self._session.datasets()
        self._statistics = compute_cross_ticker_statistics(datasets)
        self._emit(format_statistics_table(self._statistics))
        self._closed = True
        self._done.set()

    def expire(self) -> List[str]:
        """
        Give up on every ticker that has not completed.

        Emits a notice naming each timed-out ticker and what it still lacks.
        Statistics are never emitted after this.

        Returns:
            The tickers marked as timed out (empty if the run had finished)
        """
        with self._lock:
            if self._closed:
                return []
            self._closed = True
            completed = set(self._completed)

        # ticker locks are taken outside our lock; handlers hold a ticker
        # lock while calling check_completion
        pending: Dict[str, List[str]] = {}
        for ticker in self._session.tickers:
            if ticker in completed:
                continue
            with self._session.lock_for(ticker):
                pending[ticker] = self._session.dataset(ticker).missing()
                in_flight = self._session.registry.active(ticker)
            logger.warning(
                "%s timed out waiting for %s (requests in flight: %s)",
                ticker,
                ", ".join(pending[ticker]),
                ", ".join(f"{r.req_id}:{r.kind.value}" for r in in_flight) or "none",
            )

        with self._lock:
            self._timed_out = list(pending)
            self._emit(format_timeout_notice(pending))
        self._done.set()
        return list(pending)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until statistics are emitted or the run expires."""
        return self._done.wait(timeout)

    @property
    def closed(self) -> bool:
        """True once statistics were emitted or the run expired."""
        with self._lock:
            return self._closed

    @property
    def completed(self) -> List[str]:
        with self._lock:
            return list(self._completed)

    @property
    def timed_out(self) -> List[str]:
        with self._lock:
            return list(self._timed_out)

    @property
    def statistics(self) -> Optional[CrossTickerStatistics]:
        return self._statistics

    @property
    def finished(self) -> bool:
        """True once statistics were emitted."""
        return self._statistics is not None
