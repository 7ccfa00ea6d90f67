"""
Core entity classes (ADTs) for the radar module.

These classes represent the per-ticker data accumulated while provider
responses arrive, plus the small value types exchanged with providers.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Tuple


class RequestKind(Enum):
    """Kind of data a provider request asks for."""
    CONTRACT_DETAILS = "contract_details"
    UNDERLYING_PRICE = "underlying_price"
    OPTION_CHAIN_PARAMETERS = "option_chain_parameters"
    HISTORICAL_BARS = "historical_bars"
    HISTORICAL_VOLATILITY = "historical_volatility"
    IMPLIED_VOLATILITY = "implied_volatility"
    OPTION_SNAPSHOT_PRICE = "option_snapshot_price"


class OptionType(Enum):
    """European option right."""
    CALL = "C"
    PUT = "P"


@dataclass(frozen=True)
class RequestRecord:
    """An in-flight provider request, bound to its ticker and data kind."""
    req_id: int
    ticker: str
    kind: RequestKind


@dataclass(frozen=True)
class ContractSpec:
    """
    Instrument description sent to a provider.

    Stock contracts leave the option fields unset; option contracts carry
    expiration (YYYYMMDD), strike and right.
    """
    symbol: str
    sec_type: str = "STK"
    exchange: str = "SMART"
    currency: str = "USD"
    con_id: Optional[int] = None
    expiration: Optional[str] = None
    strike: Optional[float] = None
    right: Optional[OptionType] = None

    @classmethod
    def stock(cls, symbol: str, con_id: Optional[int] = None) -> "ContractSpec":
        return cls(symbol=symbol, con_id=con_id)

    @classmethod
    def option(
        cls,
        symbol: str,
        expiration: str,
        strike: float,
        right: OptionType = OptionType.CALL
    ) -> "ContractSpec":
        return cls(
            symbol=symbol,
            sec_type="OPT",
            expiration=expiration,
            strike=strike,
            right=right
        )

    @property
    def is_option(self) -> bool:
        return self.sec_type == "OPT"


@dataclass(frozen=True)
class ContractInfo:
    """
    Contract metadata returned by the provider.

    Attributes:
        symbol: Ticker symbol
        con_id: Provider's internal instrument identifier
        long_name: Company name
        primary_exchange: Primary listing venue
    """
    symbol: str
    con_id: int
    long_name: str
    primary_exchange: str


@dataclass(frozen=True)
class Bar:
    """A single historical bar; `time` is the provider's date string."""
    time: str
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass(frozen=True)
class OptionChainSummary:
    """
    Option chain filtered to a horizon of expirations and a band of strikes.

    Representation Invariants:
        - expirations are sorted YYYYMMDD strings
        - strikes are sorted ascending
    """
    expirations: Tuple[str, ...]
    strikes: Tuple[float, ...]
    horizon_months: int
    strike_band: float

    @property
    def is_empty(self) -> bool:
        return not self.expirations or not self.strikes

    def nearest_expiration(self) -> Optional[str]:
        return self.expirations[0] if self.expirations else None

    def atm_strike(self, underlying_price: float) -> Optional[float]:
        """Return the strike nearest the underlying price."""
        if not self.strikes:
            return None
        return min(self.strikes, key=lambda k: (abs(k - underlying_price), k))


@dataclass(frozen=True)
class AtmOptionQuote:
    """Snapshot price of the at-the-money call and the volatility implied by it."""
    expiration: str
    strike: float
    price: float
    implied_vol: Optional[float]


class DatedSeries:
    """
    A date-keyed series of volatility samples, accumulated in two phases.

    Samples are inserted while the provider streams them (last write per date
    wins), then the series is finished when the provider signals the end.

    Representation Invariants:
        - at most one value per date
        - iteration order is ascending by date
        - once finished, `finished` stays True
    """

    def __init__(self):
        self._values: Dict[date, float] = {}
        self._finished = False

    def put(self, day: date, value: float) -> None:
        self._values[day] = value

    def finish(self) -> None:
        self._finished = True

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def is_ready(self) -> bool:
        """True once the series has been finished with at least one sample."""
        return self._finished and len(self._values) > 0

    def items(self) -> List[Tuple[date, float]]:
        return sorted(self._values.items())

    def first(self) -> Optional[Tuple[date, float]]:
        if not self._values:
            return None
        day = min(self._values)
        return day, self._values[day]

    def last(self) -> Optional[Tuple[date, float]]:
        if not self._values:
            return None
        day = max(self._values)
        return day, self._values[day]

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        state = "finished" if self._finished else "streaming"
        return f"DatedSeries({len(self)} samples, {state})"


class BarSeries:
    """Historical bars in arrival order, finished by the provider's end signal."""

    def __init__(self):
        self._bars: List[Bar] = []
        self._finished = False

    def append(self, bar: Bar) -> None:
        self._bars.append(bar)

    def finish(self) -> None:
        self._finished = True

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def is_ready(self) -> bool:
        return self._finished and len(self._bars) > 0

    @property
    def bars(self) -> List[Bar]:
        return list(self._bars)

    def __len__(self) -> int:
        return len(self._bars)

    def __repr__(self) -> str:
        state = "finished" if self._finished else "streaming"
        return f"BarSeries({len(self)} bars, {state})"


@dataclass
class TickerDataset:
    """
    Everything collected for one ticker during a run.

    Fields start empty and are filled monotonically by the correlator; none
    is ever cleared.
    """
    ticker: str
    contract: Optional[ContractInfo] = None
    underlying_price: Optional[float] = None
    bars: BarSeries = field(default_factory=BarSeries)
    historical_vol: DatedSeries = field(default_factory=DatedSeries)
    implied_vol: DatedSeries = field(default_factory=DatedSeries)
    option_chain: Optional[OptionChainSummary] = None
    atm_option: Optional[AtmOptionQuote] = None

    def is_complete(self) -> bool:
        """Completion predicate: presence checks only."""
        return (
            self.contract is not None
            and self.bars.is_ready
            and self.historical_vol.is_ready
            and self.implied_vol.is_ready
            and self.option_chain is not None
        )

    def missing(self) -> List[str]:
        """Names of the parts still preventing completion."""
        parts = []
        if self.contract is None:
            parts.append("contract details")
        if not self.bars.is_ready:
            parts.append("historical bars")
        if not self.historical_vol.is_ready:
            parts.append("historical volatility")
        if not self.implied_vol.is_ready:
            parts.append("implied volatility")
        if self.option_chain is None:
            parts.append("option chain")
        return parts
