"""
Market-data provider capability.

The correlator talks to providers only through this interface and receives
their responses as events from `volradar.engine.events`.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from volradar.engine.events import ProviderEvent
from volradar.entities import ContractSpec

EventHandler = Callable[[ProviderEvent], None]

# provider data kinds for historical requests
TRADES = "TRADES"
HISTORICAL_VOLATILITY = "HISTORICAL_VOLATILITY"
OPTION_IMPLIED_VOLATILITY = "OPTION_IMPLIED_VOLATILITY"


class MarketDataProvider(ABC):
    """
    Asynchronous, callback-driven market-data source.

    Request methods return immediately; responses are delivered later, on
    provider threads, to the handler set with `set_event_handler`.
    """

    def __init__(self):
        self._handler: Optional[EventHandler] = None

    def set_event_handler(self, handler: EventHandler) -> None:
        self._handler = handler

    def emit(self, event: ProviderEvent) -> None:
        """Deliver an event to the handler, if one is set."""
        if self._handler is not None:
            self._handler(event)

    @abstractmethod
    def connect(self) -> None:
        """Open the provider session. Raises ProviderConnectionError."""

    @abstractmethod
    def disconnect(self) -> None:
        """Close the provider session."""

    @abstractmethod
    def request_contract_details(self, req_id: int, symbol: str) -> None:
        pass

    @abstractmethod
    def request_market_data(self, req_id: int, contract: ContractSpec, snapshot: bool) -> None:
        pass

    @abstractmethod
    def cancel_market_data(self, req_id: int) -> None:
        pass

    @abstractmethod
    def request_historical_data(
        self,
        req_id: int,
        contract: ContractSpec,
        end_time: str,
        duration: str,
        bar_size: str,
        data_kind: str
    ) -> None:
        pass

    @abstractmethod
    def request_option_parameters(self, req_id: int, symbol: str, underlying_id: int) -> None:
        pass
