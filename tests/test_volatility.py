"""
Tests for volatility and option pricing functions.

Tests cover:
- Historical volatility (degenerate inputs, constant prices, known values)
- Normal CDF approximation accuracy
- Black-Scholes prices and put-call parity
- Implied volatility inversion
"""

import math

import numpy as np
import pytest
from scipy.stats import norm

from volradar.analytics.volatility import (
    black_scholes_price,
    historical_volatility,
    implied_volatility,
    norm_cdf,
)
from volradar.entities import Bar, OptionType
from volradar.errors import CalibrationError


def make_bars(closes):
    return [Bar(time=f"202401{i + 1:02d}", open=c, high=c, low=c, close=c) for i, c in enumerate(closes)]


class TestHistoricalVolatility:
    """Tests for historical_volatility."""

    def test_empty_returns_zero(self):
        """Test that no bars gives exactly 0."""
        assert historical_volatility([]) == 0.0

    def test_single_bar_returns_zero(self):
        """Test that one bar gives exactly 0."""
        assert historical_volatility(make_bars([100.0])) == 0.0

    def test_two_bars_returns_zero(self):
        """Test that a single return has no sample variance and gives 0."""
        assert historical_volatility(make_bars([100.0, 105.0])) == 0.0

    def test_constant_prices_return_zero(self):
        """Test that constant closes give exactly 0."""
        assert historical_volatility(make_bars([50.0] * 10)) == 0.0

    def test_known_series(self):
        """Test against a direct computation of annualized sample std."""
        closes = [100, 101, 99, 102, 100]
        log_returns = [math.log(closes[i] / closes[i - 1]) for i in range(1, len(closes))]
        mean = sum(log_returns) / len(log_returns)
        variance = sum((r - mean) ** 2 for r in log_returns) / (len(log_returns) - 1)
        expected = math.sqrt(variance) * math.sqrt(252)

        assert historical_volatility(make_bars(closes)) == pytest.approx(expected, rel=1e-12)

    def test_non_positive_close_propagates(self):
        """Test that a zero close yields a non-finite result instead of raising."""
        with np.errstate(divide="ignore", invalid="ignore"):
            result = historical_volatility(make_bars([100.0, 0.0, 100.0]))
        assert not math.isfinite(result)


class TestNormCdf:
    """Tests for the Abramowitz-Stegun normal CDF."""

    @pytest.mark.parametrize("x", [-4.0, -1.5, -0.3, 0.0, 0.3, 1.0, 2.5, 5.0])
    def test_matches_exact_cdf(self, x):
        """Test the approximation error bound against scipy."""
        assert abs(norm_cdf(x) - norm.cdf(x)) < 1e-7

    def test_symmetry(self):
        """Test that Phi(x) + Phi(-x) == 1."""
        for x in [0.1, 0.7, 1.9, 3.3]:
            assert norm_cdf(x) + norm_cdf(-x) == pytest.approx(1.0, abs=1e-12)


class TestBlackScholes:
    """Tests for black_scholes_price."""

    def test_reference_call_and_put(self):
        """Test the textbook S=K=100, T=1, r=5%, sigma=20% prices."""
        call = black_scholes_price(100, 100, 1.0, 0.05, 0.2, OptionType.CALL)
        put = black_scholes_price(100, 100, 1.0, 0.05, 0.2, OptionType.PUT)
        assert call == pytest.approx(10.4506, abs=1e-3)
        assert put == pytest.approx(5.5735, abs=1e-3)

    @pytest.mark.parametrize("strike", [80.0, 100.0, 125.0])
    def test_put_call_parity(self, strike):
        """Test call - put == S - K exp(-rT)."""
        spot, t, r, sigma = 100.0, 1.0, 0.05, 0.2
        call = black_scholes_price(spot, strike, t, r, sigma, OptionType.CALL)
        put = black_scholes_price(spot, strike, t, r, sigma, OptionType.PUT)
        assert call - put == pytest.approx(spot - strike * math.exp(-r * t), abs=1e-9)

    def test_call_increases_with_volatility(self):
        """Test that a higher volatility gives a higher call price."""
        low = black_scholes_price(100, 100, 0.5, 0.01, 0.1)
        high = black_scholes_price(100, 100, 0.5, 0.01, 0.4)
        assert high > low

    def test_zero_volatility_is_undefined(self):
        """Test that sigma = 0 is not guarded (documented precondition)."""
        with pytest.raises(ZeroDivisionError):
            black_scholes_price(100, 100, 1.0, 0.05, 0.0)


class TestImpliedVolatility:
    """Tests for implied_volatility."""

    def test_recovers_pricing_volatility(self):
        """Test inverting a price computed at a known volatility."""
        price = black_scholes_price(100, 105, 0.25, 0.03, 0.35, OptionType.CALL)
        iv = implied_volatility(price, 100, 105, 0.25, 0.03, OptionType.CALL)
        assert iv == pytest.approx(0.35, abs=1e-6)

    def test_put_inversion(self):
        """Test inverting a put price."""
        price = black_scholes_price(100, 95, 0.5, 0.02, 0.22, OptionType.PUT)
        iv = implied_volatility(price, 100, 95, 0.5, 0.02, OptionType.PUT)
        assert iv == pytest.approx(0.22, abs=1e-6)

    def test_price_below_intrinsic_raises(self):
        """Test that an arbitrage price cannot be inverted."""
        with pytest.raises(CalibrationError):
            implied_volatility(0.01, 150, 100, 0.5, 0.02, OptionType.CALL)

    def test_non_positive_inputs_raise(self):
        """Test that degenerate inputs raise CalibrationError."""
        with pytest.raises(CalibrationError):
            implied_volatility(0.0, 100, 100, 0.5, 0.02)
        with pytest.raises(CalibrationError):
            implied_volatility(5.0, 100, 100, 0.0, 0.02)
