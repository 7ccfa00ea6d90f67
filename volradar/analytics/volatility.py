"""
Volatility and option pricing functions.

Pure functions: realized volatility from daily bars, Black-Scholes pricing of
European options with a polynomial normal CDF, and implied volatility by
inverting the pricing formula.
"""

import math
from typing import Sequence

import numpy as np
from scipy.optimize import brentq

from volradar.entities import Bar, OptionType
from volradar.errors import CalibrationError

TRADING_DAYS_PER_YEAR = 252

# Abramowitz & Stegun 26.2.17, |error| < 7.5e-8
_P = 0.2316419
_B1 = 0.319381530
_B2 = -0.356563782
_B3 = 1.781477937
_B4 = -1.821255978
_B5 = 1.330274429
_INV_SQRT_2PI = 1.0 / math.sqrt(2.0 * math.pi)


def historical_volatility(bars: Sequence[Bar]) -> float:
    """
    Annualized volatility of daily log returns.

    Preconditions:
        - bar closes are finite and positive (a non-positive close yields a
          non-finite result, it is not checked here)

    Postconditions:
        - Returns 0.0 for 0, 1 or 2 bars; two bars give a single return,
          whose sample standard deviation (ddof=1) is undefined
        - Returns exactly 0.0 for a constant close series

    Args:
        bars: Bars in chronological order

    Returns:
        Sample standard deviation of log returns (ddof=1) times sqrt(252)
    """
    if len(bars) < 3:
        # one return has no sample variance
        return 0.0

    closes = np.array([bar.close for bar in bars], dtype=float)
    log_returns = np.log(closes[1:] / closes[:-1])

    daily_vol = np.std(log_returns, ddof=1)
    return float(daily_vol * math.sqrt(TRADING_DAYS_PER_YEAR))


def norm_cdf(x: float) -> float:
    """Standard normal CDF, Abramowitz-Stegun polynomial approximation."""
    if x >= 0.0:
        t = 1.0 / (1.0 + _P * x)
        poly = t * (_B1 + t * (_B2 + t * (_B3 + t * (_B4 + t * _B5))))
        return 1.0 - _INV_SQRT_2PI * math.exp(-x * x / 2.0) * poly

    t = 1.0 / (1.0 - _P * x)
    poly = t * (_B1 + t * (_B2 + t * (_B3 + t * (_B4 + t * _B5))))
    return _INV_SQRT_2PI * math.exp(-x * x / 2.0) * poly


def black_scholes_price(
    spot: float,
    strike: float,
    time_to_expiry: float,
    rate: float,
    sigma: float,
    option_type: OptionType = OptionType.CALL
) -> float:
    """
    Theoretical price of a European option.

    Preconditions:
        - spot > 0, strike > 0
        - sigma * sqrt(time_to_expiry) != 0 (not guarded; callers must avoid
          zero volatility or zero time to expiry)

    Args:
        spot: Underlying price (S)
        strike: Strike price (K)
        time_to_expiry: Years to expiry (T)
        rate: Annualized risk-free rate (r)
        sigma: Annualized volatility
        option_type: CALL or PUT

    Returns:
        Option price
    """
    vol_sqrt_t = sigma * math.sqrt(time_to_expiry)
    d1 = (math.log(spot / strike) + (rate + 0.5 * sigma ** 2) * time_to_expiry) / vol_sqrt_t
    d2 = d1 - vol_sqrt_t
    discounted_strike = strike * math.exp(-rate * time_to_expiry)

    if option_type is OptionType.CALL:
        return spot * norm_cdf(d1) - discounted_strike * norm_cdf(d2)
    return discounted_strike * norm_cdf(-d2) - spot * norm_cdf(-d1)


def implied_volatility(
    price: float,
    spot: float,
    strike: float,
    time_to_expiry: float,
    rate: float,
    option_type: OptionType = OptionType.CALL,
    lower: float = 1e-4,
    upper: float = 5.0
) -> float:
    """
    Solve for the volatility that reproduces an observed option price.

    Uses Brent's method on [lower, upper].

    Raises:
        CalibrationError: If inputs are degenerate or the price is outside
            the range of prices spanned by the volatility bracket
    """
    if price <= 0 or spot <= 0 or strike <= 0 or time_to_expiry <= 0:
        raise CalibrationError(
            f"cannot invert price={price} spot={spot} strike={strike} T={time_to_expiry}"
        )

    def objective(sigma: float) -> float:
        return black_scholes_price(spot, strike, time_to_expiry, rate, sigma, option_type) - price

    f_lower = objective(lower)
    f_upper = objective(upper)
    if f_lower * f_upper > 0:
        raise CalibrationError(
            f"price {price:.4f} not bracketed by vol in [{lower}, {upper}]"
        )

    try:
        return float(brentq(objective, lower, upper, xtol=1e-8, maxiter=200))
    except (ValueError, RuntimeError) as e:
        raise CalibrationError(f"implied volatility solve failed: {e}") from e
