"""
Cross-ticker volatility statistics.

Compares each ticker's latest implied volatility against its own history,
its historical volatility and the average across the requested tickers.
"""

from dataclasses import dataclass
from typing import Mapping

import pandas as pd

from volradar.entities import TickerDataset

STATISTICS_COLUMNS = ["diff_a", "diff_b", "diff_c", "sum"]


@dataclass
class CrossTickerStatistics:
    """
    Attributes:
        industry_average_iv: Mean of last IV over tickers that have IV samples
        table: DataFrame indexed by ticker with columns diff_a, diff_b,
            diff_c and sum
    """
    industry_average_iv: float
    table: pd.DataFrame

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"CrossTickerStatistics({len(self.table)} tickers, "
            f"avg_iv={self.industry_average_iv:.4f})"
        )


def industry_average_iv(datasets: Mapping[str, TickerDataset]) -> float:
    """
    Mean of each ticker's last implied volatility.

    Tickers without any IV sample are left out of both the sum and the
    count. Returns 0.0 if no ticker has a sample.
    """
    last_values = []
    for dataset in datasets.values():
        last = dataset.implied_vol.last()
        if last is not None:
            last_values.append(last[1])

    if not last_values:
        return 0.0
    return sum(last_values) / len(last_values)


def compute_cross_ticker_statistics(
    datasets: Mapping[str, TickerDataset]
) -> CrossTickerStatistics:
    """
    Compute the per-ticker IV differences.

    For each ticker with IV samples:
        diff_a = last IV - first IV
        diff_b = last IV - last HV (0 without HV samples)
        diff_c = last IV - industry average IV
        sum = diff_a + diff_b + diff_c

    Tickers without IV samples get zeros. Row order follows `datasets`.

    Args:
        datasets: Ticker -> dataset, in report order

    Returns:
        CrossTickerStatistics
    """
    average = industry_average_iv(datasets)

    rows = []
    for ticker, dataset in datasets.items():
        diff_a = diff_b = diff_c = 0.0

        last_iv = dataset.implied_vol.last()
        if last_iv is not None:
            first_iv = dataset.implied_vol.first()
            diff_a = last_iv[1] - first_iv[1]

            last_hv = dataset.historical_vol.last()
            if last_hv is not None:
                diff_b = last_iv[1] - last_hv[1]

            diff_c = last_iv[1] - average

        rows.append({
            "ticker": ticker,
            "diff_a": diff_a,
            "diff_b": diff_b,
            "diff_c": diff_c,
            "sum": diff_a + diff_b + diff_c,
        })

    table = pd.DataFrame(rows, columns=["ticker"] + STATISTICS_COLUMNS).set_index("ticker")
    return CrossTickerStatistics(industry_average_iv=average, table=table)
