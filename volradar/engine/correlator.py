"""
Request correlation.

The correlator issues the chained requests for every ticker, routes provider
events back to the ticker and data kind that asked for them, and hands every
state change to the report aggregator.

Per ticker the requests form a small dependency graph:

    contract details -> underlying price -> option chain parameters
                                         -> historical bars
                                         -> historical volatility
                                         -> implied volatility
    option chain parameters -> ATM option snapshot (optional)

Each branch completes independently; events for different branches may
arrive in any order and on any provider thread.
"""

import logging
from datetime import date, datetime
from typing import Callable, Dict, Optional

from volradar.analytics.option_chain import filter_option_chain, parse_expiration
from volradar.analytics.volatility import implied_volatility
from volradar.config import RadarConfig
from volradar.engine.aggregator import ReportAggregator
from volradar.engine.events import (
    ACCEPTED_PRICE_FIELDS,
    BarReceived,
    ContractDetailsEnd,
    ContractDetailsReceived,
    HistoricalDataEnd,
    OptionParametersEnd,
    OptionParametersReceived,
    ProviderError,
    ProviderEvent,
    TickPrice,
)
from volradar.engine.provider import (
    HISTORICAL_VOLATILITY,
    OPTION_IMPLIED_VOLATILITY,
    TRADES,
    MarketDataProvider,
)
from volradar.engine.session import Session
from volradar.entities import (
    AtmOptionQuote,
    ContractInfo,
    ContractSpec,
    OptionType,
    RequestKind,
    RequestRecord,
    TickerDataset,
)
from volradar.errors import CalibrationError, RequestNotFound

logger = logging.getLogger(__name__)

SAMPLE_DATE_FORMAT = "%Y%m%d"

# provider error codes that mean the connection itself is broken
CONNECTION_ERROR_CODES = frozenset({502, 504, 1100, 1300})
# data farm status and similar notices
INFO_CODES = frozenset(range(2100, 2200))

_SERIES_KINDS = (
    RequestKind.HISTORICAL_BARS,
    RequestKind.HISTORICAL_VOLATILITY,
    RequestKind.IMPLIED_VOLATILITY,
)


def parse_sample_date(text: str) -> Optional[date]:
    """Parse the date of a volatility sample ("YYYYMMDD", optional time part)."""
    try:
        return datetime.strptime(text.split()[0], SAMPLE_DATE_FORMAT).date()
    except (ValueError, IndexError, AttributeError):
        return None


class Correlator:
    """
    Routes provider events to per-ticker state.

    Every event is resolved through the session's registry; events whose id
    is unknown or already released are stale and dropped. Handlers for one
    ticker run under that ticker's lock and call
    `ReportAggregator.check_completion` before releasing it, so a ticker's
    completion is decided atomically with the change that caused it.
    """

    def __init__(
        self,
        session: Session,
        provider: MarketDataProvider,
        aggregator: ReportAggregator,
        config: Optional[RadarConfig] = None,
        clock: Callable[[], date] = date.today
    ):
        self._session = session
        self._provider = provider
        self._aggregator = aggregator
        self._config = config or RadarConfig()
        self._clock = clock
        self._pending_options: Dict[int, ContractSpec] = {}

        self._handlers = {
            ContractDetailsReceived: self._on_contract_details,
            ContractDetailsEnd: self._on_contract_details_end,
            TickPrice: self._on_tick_price,
            BarReceived: self._on_bar,
            HistoricalDataEnd: self._on_historical_data_end,
            OptionParametersReceived: self._on_option_parameters,
            OptionParametersEnd: self._on_option_parameters_end,
            ProviderError: self._on_provider_error,
        }

    @property
    def session(self) -> Session:
        return self._session

    def start(self) -> None:
        """Request contract details for every ticker in the session."""
        for ticker in self._session.tickers:
            req_id = self._session.registry.issue(ticker, RequestKind.CONTRACT_DETAILS)
            logger.debug("Requesting contract details for %s (req %d)", ticker, req_id)
            self._provider.request_contract_details(req_id, ticker)

    def handle(self, event: ProviderEvent) -> None:
        """Entry point for provider events; safe to call from any thread."""
        handler = self._handlers.get(type(event))
        if handler is None:
            logger.debug("Ignoring unsupported event %r", event)
            return
        handler(event)

    # ------------------------------------------------------------------
    # dispatch
    # ------------------------------------------------------------------

    def _dispatch(
        self,
        req_id: int,
        action: Callable[[RequestRecord, TickerDataset], None]
    ) -> None:
        try:
            record = self._session.registry.resolve(req_id)
        except RequestNotFound:
            logger.debug("Dropping callback for inactive request %d", req_id)
            return

        ticker = record.ticker
        with self._session.lock_for(ticker):
            # released by a racing handler while we waited for the lock
            if req_id not in self._session.registry:
                logger.debug("Dropping late callback for released request %d", req_id)
                return
            # no follow-on requests once the run is over
            if self._aggregator.closed:
                logger.debug("Dropping callback for request %d after the run closed", req_id)
                return
            action(record, self._session.dataset(ticker))
            self._aggregator.check_completion(ticker)

    def _issue(self, ticker: str, kind: RequestKind) -> int:
        return self._session.registry.issue(ticker, kind)

    def _release(self, record: RequestRecord) -> None:
        self._session.registry.release(record.req_id)

    @staticmethod
    def _unexpected(record: RequestRecord, event: ProviderEvent) -> None:
        logger.debug(
            "Ignoring %s for %s request %d (%s)",
            type(event).__name__, record.kind.value, record.req_id, record.ticker
        )

    # ------------------------------------------------------------------
    # contract details
    # ------------------------------------------------------------------

    def _on_contract_details(self, event: ContractDetailsReceived) -> None:
        def action(record: RequestRecord, dataset: TickerDataset) -> None:
            if record.kind is not RequestKind.CONTRACT_DETAILS:
                self._unexpected(record, event)
                return
            if dataset.contract is not None:
                logger.debug("Ignoring additional contract details for %s", record.ticker)
                return

            dataset.contract = ContractInfo(
                symbol=event.symbol,
                con_id=event.con_id,
                long_name=event.long_name,
                primary_exchange=event.primary_exchange,
            )
            logger.info("%s contract details received (conId %d)", record.ticker, event.con_id)
            self._request_underlying_price(record.ticker, event.con_id)

        self._dispatch(event.req_id, action)

    def _on_contract_details_end(self, event: ContractDetailsEnd) -> None:
        def action(record: RequestRecord, dataset: TickerDataset) -> None:
            if record.kind is not RequestKind.CONTRACT_DETAILS:
                self._unexpected(record, event)
                return
            self._release(record)
            if dataset.contract is None:
                logger.warning("No contract details returned for %s", record.ticker)

        self._dispatch(event.req_id, action)

    def _request_underlying_price(self, ticker: str, con_id: int) -> None:
        req_id = self._issue(ticker, RequestKind.UNDERLYING_PRICE)
        self._provider.request_market_data(req_id, ContractSpec.stock(ticker, con_id), snapshot=True)

    # ------------------------------------------------------------------
    # price ticks
    # ------------------------------------------------------------------

    def _on_tick_price(self, event: TickPrice) -> None:
        def action(record: RequestRecord, dataset: TickerDataset) -> None:
            if event.field not in ACCEPTED_PRICE_FIELDS:
                return
            # -1 means the provider has no price for this field
            if event.price <= 0:
                logger.debug("Ignoring non-positive price %s for %s", event.price, record.ticker)
                return
            if record.kind is RequestKind.UNDERLYING_PRICE:
                self._accept_underlying_price(record, dataset, event.price)
            elif record.kind is RequestKind.OPTION_SNAPSHOT_PRICE:
                self._accept_option_price(record, dataset, event.price)
            else:
                self._unexpected(record, event)

        self._dispatch(event.req_id, action)

    def _accept_underlying_price(
        self,
        record: RequestRecord,
        dataset: TickerDataset,
        price: float
    ) -> None:
        self._release(record)
        self._provider.cancel_market_data(record.req_id)

        if dataset.underlying_price is not None:
            return
        dataset.underlying_price = price
        logger.info("Updated underlying price for %s to %s", record.ticker, price)

        self._request_underlying_data(record.ticker, dataset.contract.con_id)

    def _request_underlying_data(self, ticker: str, con_id: int) -> None:
        config = self._config
        contract = ContractSpec.stock(ticker, con_id)
        end_time = self._clock().strftime("%Y%m%d") + " 16:00:00"

        req_id = self._issue(ticker, RequestKind.OPTION_CHAIN_PARAMETERS)
        self._provider.request_option_parameters(req_id, ticker, con_id)

        historical = (
            (RequestKind.HISTORICAL_BARS, config.bar_duration, TRADES),
            (RequestKind.HISTORICAL_VOLATILITY, config.volatility_duration, HISTORICAL_VOLATILITY),
            (RequestKind.IMPLIED_VOLATILITY, config.volatility_duration, OPTION_IMPLIED_VOLATILITY),
        )
        for kind, duration, data_kind in historical:
            req_id = self._issue(ticker, kind)
            self._provider.request_historical_data(
                req_id, contract, end_time, duration, config.bar_size, data_kind
            )

    # ------------------------------------------------------------------
    # historical series
    # ------------------------------------------------------------------

    def _on_bar(self, event: BarReceived) -> None:
        def action(record: RequestRecord, dataset: TickerDataset) -> None:
            if record.kind is RequestKind.HISTORICAL_BARS:
                dataset.bars.append(event.bar)
                return

            if record.kind is RequestKind.HISTORICAL_VOLATILITY:
                series = dataset.historical_vol
            elif record.kind is RequestKind.IMPLIED_VOLATILITY:
                series = dataset.implied_vol
            else:
                self._unexpected(record, event)
                return

            day = parse_sample_date(event.bar.time)
            if day is None:
                logger.warning(
                    "Error parsing date for %s sample of %s: %r",
                    record.kind.value, record.ticker, event.bar.time
                )
                return
            series.put(day, event.bar.close)

        self._dispatch(event.req_id, action)

    def _on_historical_data_end(self, event: HistoricalDataEnd) -> None:
        def action(record: RequestRecord, dataset: TickerDataset) -> None:
            if record.kind not in _SERIES_KINDS:
                self._unexpected(record, event)
                return

            series = {
                RequestKind.HISTORICAL_BARS: dataset.bars,
                RequestKind.HISTORICAL_VOLATILITY: dataset.historical_vol,
                RequestKind.IMPLIED_VOLATILITY: dataset.implied_vol,
            }[record.kind]
            series.finish()
            self._release(record)

            logger.info(
                "Finished receiving %s for %s (%d samples)",
                record.kind.value, record.ticker, len(series)
            )
            if len(series) == 0:
                logger.warning("%s for %s ended without data", record.kind.value, record.ticker)

        self._dispatch(event.req_id, action)

    # ------------------------------------------------------------------
    # option chain
    # ------------------------------------------------------------------

    def _on_option_parameters(self, event: OptionParametersReceived) -> None:
        def action(record: RequestRecord, dataset: TickerDataset) -> None:
            if record.kind is not RequestKind.OPTION_CHAIN_PARAMETERS:
                self._unexpected(record, event)
                return
            if dataset.underlying_price is None:
                logger.debug("req %d: no underlying price for %s", record.req_id, record.ticker)
                return

            chain = filter_option_chain(
                event.expirations,
                event.strikes,
                dataset.underlying_price,
                self._clock(),
                horizon_months=self._config.option_horizon_months,
                strike_band=self._config.strike_band,
            )
            dataset.option_chain = chain
            self._release(record)
            logger.info(
                "%s option chain: %d expirations, %d strikes after filtering",
                record.ticker, len(chain.expirations), len(chain.strikes)
            )

            if self._config.request_atm_option and not chain.is_empty:
                self._request_atm_option(record.ticker, dataset)

        self._dispatch(event.req_id, action)

    def _on_option_parameters_end(self, event: OptionParametersEnd) -> None:
        def action(record: RequestRecord, dataset: TickerDataset) -> None:
            if record.kind is not RequestKind.OPTION_CHAIN_PARAMETERS:
                self._unexpected(record, event)
                return
            # an end without parameters leaves nothing to wait for
            self._release(record)
            logger.warning("No option chain parameters returned for %s", record.ticker)

        self._dispatch(event.req_id, action)

    def _request_atm_option(self, ticker: str, dataset: TickerDataset) -> None:
        chain = dataset.option_chain
        contract = ContractSpec.option(
            ticker,
            chain.nearest_expiration(),
            chain.atm_strike(dataset.underlying_price),
            OptionType.CALL,
        )
        req_id = self._issue(ticker, RequestKind.OPTION_SNAPSHOT_PRICE)
        self._pending_options[req_id] = contract
        self._provider.request_market_data(req_id, contract, snapshot=True)

    def _accept_option_price(
        self,
        record: RequestRecord,
        dataset: TickerDataset,
        price: float
    ) -> None:
        self._release(record)
        self._provider.cancel_market_data(record.req_id)
        contract = self._pending_options.pop(record.req_id)

        today = self._clock()
        expiry = parse_expiration(contract.expiration)
        # expiring today still has the session left to trade
        time_to_expiry = max((expiry - today).days, 1) / 365.0

        iv = None
        try:
            iv = implied_volatility(
                price,
                dataset.underlying_price,
                contract.strike,
                time_to_expiry,
                self._config.risk_free_rate,
                OptionType.CALL,
            )
        except CalibrationError as e:
            logger.warning("Could not imply volatility for %s ATM call: %s", record.ticker, e)

        dataset.atm_option = AtmOptionQuote(
            expiration=contract.expiration,
            strike=contract.strike,
            price=price,
            implied_vol=iv,
        )
        logger.info("%s ATM call %s %s priced at %s", record.ticker, contract.expiration, contract.strike, price)

    # ------------------------------------------------------------------
    # errors
    # ------------------------------------------------------------------

    def _on_provider_error(self, event: ProviderError) -> None:
        if event.code in INFO_CODES:
            logger.info("Provider notice %d: %s", event.code, event.message)
            return
        if event.req_id <= 0 or event.code in CONNECTION_ERROR_CODES:
            logger.error("Provider error %d: %s", event.code, event.message)
            return

        try:
            record = self._session.registry.resolve(event.req_id)
        except RequestNotFound:
            logger.debug("Provider error %d for inactive request %d: %s",
                         event.code, event.req_id, event.message)
            return

        # no retry; the ticker stays incomplete
        logger.warning(
            "Provider error %d for %s %s request %d: %s",
            event.code, record.ticker, record.kind.value, record.req_id, event.message
        )
