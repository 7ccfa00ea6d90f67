"""
Volatility Radar

Collects contract, price, historical-bar and volatility data for a list of
tickers from a callback-driven market-data provider, correlates the
out-of-order responses per ticker and reports implied vs. historical
volatility once every ticker is complete.
"""

__version__ = "0.1.0"
