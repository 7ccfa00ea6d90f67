"""
Option chain filtering.

Reduces the provider's full set of expirations and strikes to the near-term,
near-the-money part of the chain.
"""

import logging
from datetime import date, datetime
from typing import Iterable, Optional

import pandas as pd

from volradar.entities import OptionChainSummary

logger = logging.getLogger(__name__)

EXPIRATION_FORMAT = "%Y%m%d"


def parse_expiration(text: str) -> Optional[date]:
    """Parse a YYYYMMDD expiration, returning None if it is malformed."""
    try:
        return datetime.strptime(text.strip(), EXPIRATION_FORMAT).date()
    except (ValueError, AttributeError):
        return None


def filter_option_chain(
    expirations: Iterable[str],
    strikes: Iterable[float],
    underlying_price: float,
    today: date,
    horizon_months: int = 1,
    strike_band: float = 0.20
) -> OptionChainSummary:
    """
    Keep expirations within the horizon and strikes within the band.

    Preconditions:
        - underlying_price > 0
        - 0 <= strike_band < 1

    Postconditions:
        - every kept expiration falls in [today, today + horizon_months]
        - every kept strike falls in
          [price * (1 - strike_band), price * (1 + strike_band)]
        - malformed expirations are dropped

    Args:
        expirations: YYYYMMDD strings
        strikes: Strike prices
        underlying_price: Accepted underlying price
        today: Reference date for the horizon
        horizon_months: Horizon length in calendar months
        strike_band: Fractional band around the underlying price

    Returns:
        OptionChainSummary with sorted, de-duplicated values
    """
    horizon_end = (pd.Timestamp(today) + pd.DateOffset(months=horizon_months)).date()

    kept_expirations = set()
    for text in expirations:
        expiry = parse_expiration(text)
        if expiry is None:
            logger.debug("Skipping malformed expiration %r", text)
            continue
        if today <= expiry <= horizon_end:
            kept_expirations.add(expiry.strftime(EXPIRATION_FORMAT))

    lower = underlying_price * (1 - strike_band)
    upper = underlying_price * (1 + strike_band)
    kept_strikes = {float(k) for k in strikes if lower <= k <= upper}

    return OptionChainSummary(
        expirations=tuple(sorted(kept_expirations)),
        strikes=tuple(sorted(kept_strikes)),
        horizon_months=horizon_months,
        strike_band=strike_band,
    )
