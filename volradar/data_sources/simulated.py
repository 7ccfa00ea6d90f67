"""
Simulated market-data provider.

Generates plausible contract, price, bar, volatility and option chain data
and delivers it asynchronously from a thread pool, so responses for
different requests interleave the way a live provider's do. Output is
deterministic per (seed, request id); only the interleaving varies.
"""

import logging
import threading
import time
import zlib
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Set

import numpy as np
import pandas as pd

from volradar.analytics.volatility import black_scholes_price
from volradar.engine.events import (
    BarReceived,
    ContractDetailsEnd,
    ContractDetailsReceived,
    HistoricalDataEnd,
    OptionParametersEnd,
    OptionParametersReceived,
    ProviderError,
    ProviderEvent,
    TickField,
    TickPrice,
)
from volradar.engine.provider import (
    HISTORICAL_VOLATILITY,
    OPTION_IMPLIED_VOLATILITY,
    TRADES,
    MarketDataProvider,
)
from volradar.entities import Bar, ContractSpec, OptionType
from volradar.errors import ProviderConnectionError

logger = logging.getLogger(__name__)

BASE_PRICES = {
    "MSFT": 400.0,
    "NVDA": 900.0,
    "TSLA": 180.0,
}

DEFAULT_RATE = 0.05
NO_SECURITY_DEFINITION = 200


def _symbol_hash(symbol: str) -> int:
    return zlib.crc32(symbol.encode("utf-8"))


def base_price(symbol: str) -> float:
    """Reference price for a symbol (fixed for well-known names)."""
    if symbol in BASE_PRICES:
        return BASE_PRICES[symbol]
    return 20.0 + _symbol_hash(symbol) % 480


def base_volatility(symbol: str) -> float:
    """Annualized volatility the simulation draws prices with (15%-45%)."""
    return 0.15 + (_symbol_hash(symbol) % 31) / 100.0


class SimulatedProvider(MarketDataProvider):
    """
    In-process provider producing synthetic data.

    Each request is answered by one pool task that sleeps a random delay and
    then emits its events in order, so a historical series stays
    chronological while different requests interleave freely. Snapshot
    subscriptions send a BID tick and then repeated LAST/CLOSE ticks until
    cancelled. Option chain requests for a conId this provider did not hand
    out get error 200, as TWS answers. After `disconnect()` new requests
    and undelivered events are dropped.
    """

    def __init__(
        self,
        seed: int = 7,
        latency: float = 0.05,
        max_workers: int = 4,
        history_days: int = 21,
        clock: Callable[[], date] = date.today
    ):
        super().__init__()
        if history_days < 3:
            raise ValueError("history_days must be at least 3")
        self.seed = seed
        self.latency = latency
        self.max_workers = max_workers
        self.history_days = history_days
        self._clock = clock

        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self._cancelled: Set[int] = set()
        self._symbols_by_con_id: Dict[int, str] = {}

    # ------------------------------------------------------------------
    # session
    # ------------------------------------------------------------------

    def connect(self) -> None:
        if self._executor is not None:
            raise ProviderConnectionError("simulated provider already connected")
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="sim-provider"
        )
        logger.info("Simulated provider started (seed=%d)", self.seed)

    def disconnect(self) -> None:
        executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True, cancel_futures=True)
            logger.info("Simulated provider stopped")

    # ------------------------------------------------------------------
    # requests
    # ------------------------------------------------------------------

    def request_contract_details(self, req_id: int, symbol: str) -> None:
        con_id = _symbol_hash(symbol) % 100_000_000 + 1
        with self._lock:
            self._symbols_by_con_id[con_id] = symbol
        events = [
            ContractDetailsReceived(
                req_id=req_id,
                symbol=symbol,
                con_id=con_id,
                long_name=f"{symbol} Holdings Inc.",
                primary_exchange="NASDAQ",
            ),
            ContractDetailsEnd(req_id),
        ]
        self._submit(req_id, events)

    def request_market_data(self, req_id: int, contract: ContractSpec, snapshot: bool) -> None:
        if contract.is_option:
            price = self._option_price(contract)
        else:
            price = base_price(contract.symbol)
        price = round(price, 2)

        events: List[ProviderEvent] = [
            TickPrice(req_id, TickField.BID, round(price - 0.01, 2)),
            TickPrice(req_id, TickField.LAST, price),
            TickPrice(req_id, TickField.LAST, price),
            TickPrice(req_id, TickField.CLOSE, price),
        ]
        self._submit(req_id, events, cancellable=True)

    def cancel_market_data(self, req_id: int) -> None:
        with self._lock:
            self._cancelled.add(req_id)

    def request_historical_data(
        self,
        req_id: int,
        contract: ContractSpec,
        end_time: str,
        duration: str,
        bar_size: str,
        data_kind: str
    ) -> None:
        rng = self._rng(req_id)
        symbol = contract.symbol
        dates = pd.bdate_range(end=pd.Timestamp(self._clock()), periods=self.history_days)
        stamps = [d.strftime("%Y%m%d") for d in dates]
        vol = base_volatility(symbol)

        if data_kind == TRADES:
            daily_vol = vol / np.sqrt(252)
            log_returns = rng.normal(0.0, daily_vol, size=len(stamps) - 1)
            start = base_price(symbol) / np.exp(log_returns.sum())
            closes = start * np.exp(np.concatenate([[0.0], np.cumsum(log_returns)]))
            values = closes
        elif data_kind == HISTORICAL_VOLATILITY:
            values = np.clip(vol * (1 + 0.08 * rng.standard_normal(len(stamps))), 0.01, None)
        elif data_kind == OPTION_IMPLIED_VOLATILITY:
            values = np.clip(vol * 1.1 * (1 + 0.06 * rng.standard_normal(len(stamps))), 0.01, None)
        else:
            logger.warning("Simulated provider has no %s data", data_kind)
            self._submit(req_id, [HistoricalDataEnd(req_id)])
            return

        events: List[ProviderEvent] = []
        for stamp, value in zip(stamps, values):
            value = round(float(value), 4)
            bar = Bar(time=stamp, open=value, high=value, low=value, close=value,
                      volume=float(rng.integers(100_000, 5_000_000)) if data_kind == TRADES else 0.0)
            events.append(BarReceived(req_id, bar))
        events.append(HistoricalDataEnd(req_id, stamps[0], stamps[-1]))
        self._submit(req_id, events)

    def request_option_parameters(self, req_id: int, symbol: str, underlying_id: int) -> None:
        with self._lock:
            known_symbol = self._symbols_by_con_id.get(underlying_id)
        if known_symbol != symbol:
            # what TWS answers for an unknown or mismatched conId
            message = f"No security definition has been found for {symbol} conId {underlying_id}"
            self._submit(req_id, [ProviderError(req_id, NO_SECURITY_DEFINITION, message)])
            return

        today = self._clock()
        price = base_price(symbol)

        # weekly Fridays for two months plus two quarterly expirations
        first_friday = today + timedelta(days=(4 - today.weekday()) % 7)
        expirations = {
            (first_friday + timedelta(weeks=w)).strftime("%Y%m%d") for w in range(9)
        }
        expirations.update(
            (today + timedelta(days=d)).strftime("%Y%m%d") for d in (91, 182)
        )

        step = 5.0 if price >= 100 else 1.0
        low = np.floor(price * 0.5 / step) * step
        high = np.ceil(price * 1.5 / step) * step
        strikes = frozenset(float(k) for k in np.arange(low, high + step, step))

        events = [
            OptionParametersReceived(req_id, frozenset(expirations), strikes),
            OptionParametersEnd(req_id),
        ]
        self._submit(req_id, events)

    # ------------------------------------------------------------------
    # delivery
    # ------------------------------------------------------------------

    def _rng(self, req_id: int) -> np.random.Generator:
        return np.random.default_rng([self.seed, req_id])

    def _option_price(self, contract: ContractSpec) -> float:
        spot = base_price(contract.symbol)
        expiry = pd.Timestamp(contract.expiration).date()
        time_to_expiry = max((expiry - self._clock()).days, 1) / 365.0
        sigma = base_volatility(contract.symbol) * 1.1
        option_type = contract.right or OptionType.CALL
        return black_scholes_price(spot, contract.strike, time_to_expiry, DEFAULT_RATE, sigma, option_type)

    def _submit(self, req_id: int, events: List[ProviderEvent], cancellable: bool = False) -> None:
        executor = self._executor
        if executor is None:
            logger.debug("Simulated provider disconnected; dropping request %d", req_id)
            return
        delay = float(self._rng(req_id).uniform(0, self.latency)) if self.latency > 0 else 0.0
        try:
            future = executor.submit(self._deliver, req_id, events, delay, cancellable)
        except RuntimeError:
            # executor shut down between the check and the submit
            logger.debug("Simulated provider disconnected; dropping request %d", req_id)
            return
        future.add_done_callback(self._log_failure)

    def _deliver(self, req_id: int, events: List[ProviderEvent], delay: float, cancellable: bool) -> None:
        if delay:
            time.sleep(delay)
        for event in events:
            if self._executor is None:
                return
            if cancellable:
                with self._lock:
                    if req_id in self._cancelled:
                        return
            self.emit(event)

    @staticmethod
    def _log_failure(future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error("Simulated delivery failed", exc_info=error)
