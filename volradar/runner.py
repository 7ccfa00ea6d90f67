"""
Run driver: wires a session, correlator and aggregator to a provider and
waits for the reports.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional, Sequence

from volradar.analytics.statistics import CrossTickerStatistics
from volradar.config import RadarConfig
from volradar.engine.aggregator import ReportAggregator, ReportSink
from volradar.engine.correlator import Correlator
from volradar.engine.provider import MarketDataProvider
from volradar.engine.session import Session

logger = logging.getLogger(__name__)

LIVE = "live"
SIMULATED = "simulated"
MODES = (SIMULATED, LIVE)


@dataclass
class RunResult:
    """
    Outcome of one run.

    Attributes:
        completed: Tickers whose report was emitted, in completion order
        timed_out: Tickers given up on at the deadline or on interrupt
        statistics: Cross-ticker statistics, if every ticker completed
    """
    completed: List[str] = field(default_factory=list)
    timed_out: List[str] = field(default_factory=list)
    statistics: Optional[CrossTickerStatistics] = None

    @property
    def finished(self) -> bool:
        return self.statistics is not None


def build_provider(mode: str, config: RadarConfig) -> MarketDataProvider:
    """Create the provider for a run mode."""
    if mode == SIMULATED:
        from volradar.data_sources.simulated import SimulatedProvider
        return SimulatedProvider(seed=config.seed, latency=config.simulated_latency)
    if mode == LIVE:
        # ibapi is only needed for live runs
        from volradar.data_sources.ibkr import IBKRProvider
        return IBKRProvider(host=config.host, port=config.port, client_id=config.client_id)
    raise ValueError(f"mode must be one of {MODES}, got {mode!r}")


def run(
    tickers: Sequence[str],
    provider: MarketDataProvider,
    config: Optional[RadarConfig] = None,
    emit: ReportSink = print,
    clock: Callable[[], date] = date.today
) -> RunResult:
    """
    Collect data for every ticker and emit the reports.

    Returns when the statistics table has been emitted, when
    `config.completion_timeout` elapses, or on KeyboardInterrupt. The
    provider is always disconnected before returning.

    Raises:
        ProviderConnectionError: If the provider cannot connect
    """
    config = config or RadarConfig()
    session = Session(tickers)
    aggregator = ReportAggregator(session, emit=emit)
    correlator = Correlator(session, provider, aggregator, config=config, clock=clock)
    provider.set_event_handler(correlator.handle)

    provider.connect()
    try:
        correlator.start()
        if not aggregator.wait(config.completion_timeout):
            logger.warning(
                "Not all tickers completed within %ss (%d/%d)",
                config.completion_timeout, len(aggregator.completed), len(session)
            )
            aggregator.expire()
    except KeyboardInterrupt:
        logger.info("Interrupted; stopping")
        aggregator.expire()
    finally:
        provider.disconnect()

    return RunResult(
        completed=aggregator.completed,
        timed_out=aggregator.timed_out,
        statistics=aggregator.statistics,
    )
