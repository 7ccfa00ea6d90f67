"""
Provider events consumed by the correlator.

Provider adapters translate their native callbacks into these types and drop
everything else.
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Union

from volradar.entities import Bar


class TickField(Enum):
    """Price tick fields the correlator distinguishes."""
    BID = "bid"
    ASK = "ask"
    LAST = "last"
    CLOSE = "close"
    OTHER = "other"


# ticks accepted as a snapshot price
ACCEPTED_PRICE_FIELDS = frozenset({TickField.LAST, TickField.CLOSE})


@dataclass(frozen=True)
class ContractDetailsReceived:
    req_id: int
    symbol: str
    con_id: int
    long_name: str
    primary_exchange: str


@dataclass(frozen=True)
class ContractDetailsEnd:
    req_id: int


@dataclass(frozen=True)
class TickPrice:
    req_id: int
    field: TickField
    price: float


@dataclass(frozen=True)
class BarReceived:
    req_id: int
    bar: Bar


@dataclass(frozen=True)
class HistoricalDataEnd:
    req_id: int
    start: str = ""
    end: str = ""


@dataclass(frozen=True)
class OptionParametersReceived:
    req_id: int
    expirations: FrozenSet[str]
    strikes: FrozenSet[float]


@dataclass(frozen=True)
class OptionParametersEnd:
    req_id: int


@dataclass(frozen=True)
class ProviderError:
    """
    Error reported by the provider.

    req_id is -1 (or another non-positive value) for connection-level errors.
    """
    req_id: int
    code: int
    message: str


ProviderEvent = Union[
    ContractDetailsReceived,
    ContractDetailsEnd,
    TickPrice,
    BarReceived,
    HistoricalDataEnd,
    OptionParametersReceived,
    OptionParametersEnd,
    ProviderError,
]
