"""
Plain-text report generation.

Builds the per-ticker report block, the cross-ticker statistics table and
the timeout notice. Functions return strings; the caller decides where they
go.
"""

from typing import Dict, List

from volradar.analytics.statistics import CrossTickerStatistics
from volradar.analytics.volatility import historical_volatility
from volradar.entities import DatedSeries, TickerDataset

WIDE_RULE = "=" * 100
RULE = "=" * 50
THIN_RULE = "-" * 50

STATISTICS_HEADERS = {
    "diff_a": "Diff A (Last-First IV)",
    "diff_b": "Diff B (Last IV-HV)",
    "diff_c": "Diff C (Last IV-Ind Avg)",
    "sum": "Sum",
}


def _format_series(title: str, series: DatedSeries) -> List[str]:
    first = series.first()
    last = series.last()
    if first is None:
        return [f"{title}: N/A"]
    return [
        f"{title}:",
        f"   First Date: {first[0].isoformat()} Value: {first[1]:.4f}",
        f"   Last Date:  {last[0].isoformat()} Value: {last[1]:.4f}",
        f"   Data Points: {len(series)}",
    ]


def format_ticker_report(dataset: TickerDataset) -> str:
    """
    Render the report block for one completed ticker.

    Sections: contract details, daily bars (with realized volatility computed
    from them), historical volatility, implied volatility, filtered option
    chain and, when present, the ATM call snapshot.
    """
    lines = ["", RULE, f"REPORT FOR TICKER: {dataset.ticker}", RULE]

    lines.append("1. Contract Details:")
    if dataset.contract is not None:
        lines.append(f"   Company Name: {dataset.contract.long_name}")
        lines.append(f"   Primary Exchange: {dataset.contract.primary_exchange}")
    if dataset.underlying_price is not None:
        lines.append(f"   Underlying Price: {dataset.underlying_price:.2f}")
    lines.append(THIN_RULE)

    bars = dataset.bars.bars
    lines.append("2. Historical Daily Prices:")
    if bars:
        lines.append(f"   Total Bars: {len(bars)}")
        lines.append(f"   First Bar: {bars[0].time} Close: {bars[0].close}")
        lines.append(f"   Last Bar:  {bars[-1].time} Close: {bars[-1].close}")
        lines.append(f"   Realized Volatility (annualized): {historical_volatility(bars):.4f}")
    lines.append(THIN_RULE)

    lines.extend(_format_series("3. Historical Volatility", dataset.historical_vol))
    lines.append(THIN_RULE)
    lines.extend(_format_series("4. Implied Volatility", dataset.implied_vol))
    lines.append(THIN_RULE)

    lines.append("5. Underlying Option Chain (Filtered):")
    chain = dataset.option_chain
    if chain is not None:
        band_pct = round(chain.strike_band * 100)
        expirations = ", ".join(chain.expirations) or "none"
        strikes = ", ".join(f"{k:g}" for k in chain.strikes) or "none"
        lines.append(f"   Expirations (<= {chain.horizon_months} Month): [{expirations}]")
        lines.append(f"   Strikes (+/- {band_pct}%): [{strikes}]")

    quote = dataset.atm_option
    if quote is not None:
        iv = f"{quote.implied_vol:.4f}" if quote.implied_vol is not None else "N/A"
        lines.append(
            f"   ATM Call {quote.expiration} {quote.strike:g}: "
            f"Price {quote.price:.2f} Implied Vol {iv}"
        )

    lines.append(RULE)
    lines.append("")
    return "\n".join(lines)


def format_statistics_table(statistics: CrossTickerStatistics) -> str:
    """Render the cross-ticker statistics table."""
    table = statistics.table.rename(columns=STATISTICS_HEADERS)
    table.index.name = "Ticker"
    body = table.to_string(float_format=lambda v: f"{v:.4f}")

    lines = [
        "",
        WIDE_RULE,
        "FINAL STATISTICS TABLE",
        WIDE_RULE,
        f"Industry Average Implied Volatility: {statistics.industry_average_iv:.4f}",
        "-" * 100,
        body,
        WIDE_RULE,
        "",
    ]
    return "\n".join(lines)


def format_timeout_notice(pending: Dict[str, List[str]]) -> str:
    """Render the notice listing tickers that never completed."""
    lines = ["", RULE, "INCOMPLETE TICKERS (timed out)", RULE]
    for ticker, parts in pending.items():
        lines.append(f"   {ticker}: waiting for {', '.join(parts) or 'nothing'}")
    lines.append("Cross-ticker statistics were not computed.")
    lines.append(RULE)
    lines.append("")
    return "\n".join(lines)
