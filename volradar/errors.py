"""Custom exceptions for the radar module."""


class RadarError(Exception):
    """Base exception for radar module errors."""
    pass


class DataError(RadarError):
    """Raised when data is missing, invalid, or insufficient."""
    pass


class RequestNotFound(RadarError):
    """Raised when a request id is unknown or has already been released."""

    def __init__(self, req_id: int):
        super().__init__(f"no active request with id {req_id}")
        self.req_id = req_id


class CalibrationError(RadarError):
    """Raised when a model inversion fails (e.g., implied volatility solve)."""
    pass


class ConfigError(RadarError):
    """Raised when the configuration file is unreadable or invalid."""
    pass


class ProviderConnectionError(RadarError):
    """Raised when the market-data provider cannot be reached."""
    pass
