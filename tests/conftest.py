"""
Shared fixtures: a provider that records requests without answering them,
a fixed clock and a report sink.
"""

from datetime import date
from typing import List

import pytest

from volradar.config import RadarConfig
from volradar.engine.aggregator import ReportAggregator
from volradar.engine.correlator import Correlator
from volradar.engine.events import (
    BarReceived,
    ContractDetailsEnd,
    ContractDetailsReceived,
    HistoricalDataEnd,
    OptionParametersEnd,
    OptionParametersReceived,
    TickField,
    TickPrice,
)
from volradar.engine.provider import MarketDataProvider
from volradar.engine.session import Session
from volradar.entities import Bar, RequestKind

TODAY = date(2024, 1, 15)


class RecordingProvider(MarketDataProvider):
    """Provider that records every call and never answers."""

    def __init__(self):
        super().__init__()
        self.calls = []
        self.connected = False

    def connect(self):
        self.connected = True

    def disconnect(self):
        self.connected = False

    def request_contract_details(self, req_id, symbol):
        self.calls.append(("contract_details", req_id, symbol))

    def request_market_data(self, req_id, contract, snapshot):
        self.calls.append(("market_data", req_id, contract, snapshot))

    def cancel_market_data(self, req_id):
        self.calls.append(("cancel_market_data", req_id))

    def request_historical_data(self, req_id, contract, end_time, duration, bar_size, data_kind):
        self.calls.append(("historical_data", req_id, data_kind, end_time, duration, bar_size))

    def request_option_parameters(self, req_id, symbol, underlying_id):
        self.calls.append(("option_parameters", req_id, symbol, underlying_id))

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]


class Harness:
    """A session wired to a RecordingProvider, with reports collected in a list."""

    def __init__(self, tickers, config=None):
        self.session = Session(tickers)
        self.reports: List[str] = []
        self.provider = RecordingProvider()
        self.aggregator = ReportAggregator(self.session, emit=self.reports.append)
        self.correlator = Correlator(
            self.session,
            self.provider,
            self.aggregator,
            config=config or RadarConfig(request_atm_option=False),
            clock=lambda: TODAY,
        )
        self.provider.set_event_handler(self.correlator.handle)

    def req_id(self, ticker: str, kind: RequestKind) -> int:
        """Id of the in-flight request of a kind for a ticker."""
        matches = [r.req_id for r in self.session.registry.active(ticker) if r.kind is kind]
        assert len(matches) == 1, f"expected one {kind} request for {ticker}, got {matches}"
        return matches[0]

    def handle(self, event):
        self.correlator.handle(event)

    def drive_to_fan_out(self, ticker: str, price: float = 100.0, con_id: int = 1001):
        """Answer contract details and the underlying price for a started ticker."""
        req = self.req_id(ticker, RequestKind.CONTRACT_DETAILS)
        self.handle(ContractDetailsReceived(req, ticker, con_id, f"{ticker} Inc.", "NYSE"))
        self.handle(ContractDetailsEnd(req))
        price_req = self.req_id(ticker, RequestKind.UNDERLYING_PRICE)
        self.handle(TickPrice(price_req, TickField.LAST, price))

    def feed_bars(self, ticker: str, closes, end: bool = True):
        req = self.req_id(ticker, RequestKind.HISTORICAL_BARS)
        for i, close in enumerate(closes):
            self.handle(BarReceived(req, Bar(f"202401{i + 2:02d}", close, close, close, close)))
        if end:
            self.handle(HistoricalDataEnd(req))

    def feed_samples(self, ticker: str, kind: RequestKind, samples, end: bool = True):
        req = self.req_id(ticker, kind)
        for stamp, value in samples:
            self.handle(BarReceived(req, Bar(stamp, value, value, value, value)))
        if end:
            self.handle(HistoricalDataEnd(req))

    def send_chain(self, ticker: str, expirations, strikes):
        req = self.req_id(ticker, RequestKind.OPTION_CHAIN_PARAMETERS)
        self.handle(OptionParametersReceived(req, frozenset(expirations), frozenset(strikes)))
        self.handle(OptionParametersEnd(req))

    def ticker_reports(self) -> List[str]:
        return [r for r in self.reports if "REPORT FOR TICKER" in r]

    def statistics_reports(self) -> List[str]:
        return [r for r in self.reports if "FINAL STATISTICS TABLE" in r]


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def recording_provider():
    return RecordingProvider()


@pytest.fixture
def make_harness():
    return Harness
