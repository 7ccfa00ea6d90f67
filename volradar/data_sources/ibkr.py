"""
Interactive Brokers provider.

Wraps the `ibapi` client (TWS or IB Gateway). The native EWrapper callbacks
used by the radar are translated into provider events; every other callback
keeps ibapi's default (logging) behavior and never reaches the correlator.
"""

import logging
import threading
from typing import Optional

from ibapi.client import EClient
from ibapi.contract import Contract
from ibapi.ticktype import TickTypeEnum
from ibapi.wrapper import EWrapper

from volradar.engine.events import (
    BarReceived,
    ContractDetailsEnd,
    ContractDetailsReceived,
    HistoricalDataEnd,
    OptionParametersEnd,
    OptionParametersReceived,
    ProviderError,
    TickField,
    TickPrice,
)
from volradar.engine.provider import EventHandler, MarketDataProvider
from volradar.entities import Bar, ContractSpec
from volradar.errors import ProviderConnectionError

logger = logging.getLogger(__name__)

_TICK_FIELDS = {
    TickTypeEnum.BID: TickField.BID,
    TickTypeEnum.ASK: TickField.ASK,
    TickTypeEnum.LAST: TickField.LAST,
    TickTypeEnum.CLOSE: TickField.CLOSE,
}


def to_ib_contract(spec: ContractSpec) -> Contract:
    """Build an ibapi Contract from a ContractSpec."""
    contract = Contract()
    contract.symbol = spec.symbol
    contract.secType = spec.sec_type
    contract.exchange = spec.exchange
    contract.currency = spec.currency
    if spec.con_id is not None:
        contract.conId = spec.con_id
    if spec.is_option:
        contract.lastTradeDateOrContractMonth = spec.expiration
        contract.strike = spec.strike
        contract.right = spec.right.value
        contract.multiplier = "100"
    return contract


def _parse_error_args(args: tuple):
    """
    Pull (code, message) out of EWrapper.error arguments.

    ibapi releases differ: (code, message[, advancedOrderRejectJson]) or
    (errorTime, code, message, advancedOrderRejectJson).
    """
    ints = [a for a in args if isinstance(a, int)]
    strings = [a for a in args if isinstance(a, str)]
    code = ints[-1] if ints else 0
    message = strings[0] if strings else ""
    return code, message


class _IBApp(EWrapper, EClient):
    """EWrapper/EClient pair forwarding the callbacks the radar consumes."""

    def __init__(self, emit: EventHandler):
        EWrapper.__init__(self)
        EClient.__init__(self, wrapper=self)
        self._emit = emit
        self.ready = threading.Event()

    def nextValidId(self, orderId: int):
        logger.info("Connection successful. Next valid order ID: %d", orderId)
        self.ready.set()

    def connectionClosed(self):
        logger.info("API connection closed.")

    def error(self, reqId, *args):
        code, message = _parse_error_args(args)
        self._emit(ProviderError(req_id=reqId, code=code, message=message))

    def contractDetails(self, reqId, contractDetails):
        contract = contractDetails.contract
        self._emit(ContractDetailsReceived(
            req_id=reqId,
            symbol=contract.symbol,
            con_id=contract.conId,
            long_name=contractDetails.longName,
            primary_exchange=contract.primaryExchange,
        ))

    def contractDetailsEnd(self, reqId):
        self._emit(ContractDetailsEnd(reqId))

    def tickPrice(self, reqId, tickType, price, attrib):
        field = _TICK_FIELDS.get(tickType, TickField.OTHER)
        self._emit(TickPrice(reqId, field, price))

    def historicalData(self, reqId, bar):
        self._emit(BarReceived(reqId, Bar(
            time=bar.date,
            open=bar.open,
            high=bar.high,
            low=bar.low,
            close=bar.close,
            volume=float(bar.volume),
        )))

    def historicalDataEnd(self, reqId, start, end):
        self._emit(HistoricalDataEnd(reqId, start, end))

    def securityDefinitionOptionalParameter(
        self, reqId, exchange, underlyingConId, tradingClass, multiplier, expirations, strikes
    ):
        logger.debug("Received option chain parameters for req %d (%s)", reqId, exchange)
        self._emit(OptionParametersReceived(
            req_id=reqId,
            expirations=frozenset(expirations),
            strikes=frozenset(float(k) for k in strikes),
        ))

    def securityDefinitionOptionalParameterEnd(self, reqId):
        self._emit(OptionParametersEnd(reqId))


class IBKRProvider(MarketDataProvider):
    """
    Live provider backed by TWS / IB Gateway.

    The ibapi reader loop runs on a daemon thread; all events are delivered
    from that thread.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 7496,
        client_id: int = 0,
        connect_timeout: float = 5.0
    ):
        super().__init__()
        self.host = host
        self.port = port
        self.client_id = client_id
        self.connect_timeout = connect_timeout
        self._app = _IBApp(self.emit)
        self._thread: Optional[threading.Thread] = None

    def connect(self) -> None:
        logger.info("Connecting to TWS at %s:%d (client %d)...", self.host, self.port, self.client_id)
        self._app.connect(self.host, self.port, self.client_id)
        if not self._app.isConnected():
            raise ProviderConnectionError(f"could not connect to {self.host}:{self.port}")

        self._thread = threading.Thread(target=self._app.run, name="ibapi-reader", daemon=True)
        self._thread.start()

        if not self._app.ready.wait(self.connect_timeout):
            self.disconnect()
            raise ProviderConnectionError(
                f"no handshake from {self.host}:{self.port} within {self.connect_timeout}s"
            )

    def disconnect(self) -> None:
        logger.info("Disconnecting from TWS...")
        self._app.disconnect()
        if self._thread is not None:
            self._thread.join(timeout=self.connect_timeout)
            self._thread = None

    def request_contract_details(self, req_id: int, symbol: str) -> None:
        self._app.reqContractDetails(req_id, to_ib_contract(ContractSpec.stock(symbol)))

    def request_market_data(self, req_id: int, contract: ContractSpec, snapshot: bool) -> None:
        self._app.reqMktData(req_id, to_ib_contract(contract), "", snapshot, False, [])

    def cancel_market_data(self, req_id: int) -> None:
        self._app.cancelMktData(req_id)

    def request_historical_data(
        self,
        req_id: int,
        contract: ContractSpec,
        end_time: str,
        duration: str,
        bar_size: str,
        data_kind: str
    ) -> None:
        self._app.reqHistoricalData(
            req_id, to_ib_contract(contract), end_time, duration, bar_size,
            data_kind, 1, 1, False, []
        )

    def request_option_parameters(self, req_id: int, symbol: str, underlying_id: int) -> None:
        self._app.reqSecDefOptParams(req_id, symbol, "", "STK", underlying_id)
