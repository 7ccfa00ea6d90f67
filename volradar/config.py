"""
Run configuration.

Defaults live on `RadarConfig`; a YAML file and a few environment variables
can override them.
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional

import yaml

from volradar.errors import ConfigError


@dataclass(frozen=True)
class RadarConfig:
    """
    Settings for one radar run.

    Attributes:
        host: Provider gateway host (live mode)
        port: Provider gateway port (7496 TWS, 7497 paper, 4002 gateway)
        client_id: Provider client id
        option_horizon_months: Keep expirations within this many months
        strike_band: Keep strikes within +/- this fraction of the underlying
        bar_duration: Lookback for daily price bars
        volatility_duration: Lookback for HV and IV series
        bar_size: Bar size for every historical request
        risk_free_rate: Annualized rate used for implied-vol inversion
        request_atm_option: Snapshot the ATM call once the chain is known
        completion_timeout: Seconds to wait for all tickers (None waits forever)
        simulated_latency: Max random delay per simulated callback, seconds
        seed: Simulated provider seed
    """
    host: str = "127.0.0.1"
    port: int = 7496
    client_id: int = 0
    option_horizon_months: int = 1
    strike_band: float = 0.20
    bar_duration: str = "1 M"
    volatility_duration: str = "30 D"
    bar_size: str = "1 day"
    risk_free_rate: float = 0.05
    request_atm_option: bool = True
    completion_timeout: Optional[float] = 60.0
    simulated_latency: float = 0.05
    seed: int = 7

    def __post_init__(self):
        if self.option_horizon_months < 0:
            raise ConfigError("option_horizon_months must be non-negative")
        if not 0 <= self.strike_band < 1:
            raise ConfigError("strike_band must be in [0, 1)")
        if self.completion_timeout is not None and self.completion_timeout <= 0:
            raise ConfigError("completion_timeout must be positive")
        if self.simulated_latency < 0:
            raise ConfigError("simulated_latency must be non-negative")


_ENV_OVERRIDES = {
    "VOLRADAR_HOST": ("host", str),
    "VOLRADAR_PORT": ("port", int),
    "VOLRADAR_CLIENT_ID": ("client_id", int),
}


def load_config(path: Optional[str] = None) -> RadarConfig:
    """
    Build a RadarConfig from defaults, an optional YAML file and the environment.

    Args:
        path: Optional YAML file with a flat mapping of RadarConfig fields

    Returns:
        RadarConfig

    Raises:
        ConfigError: If the file is missing, malformed or names unknown fields
    """
    overrides = {}

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"config file not found: {path}")
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping")

        known = {f.name for f in fields(RadarConfig)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(unknown)}")
        overrides.update(data)

    for env_var, (name, cast) in _ENV_OVERRIDES.items():
        raw = os.getenv(env_var)
        if raw is None:
            continue
        try:
            overrides[name] = cast(raw)
        except ValueError as e:
            raise ConfigError(f"{env_var}={raw!r} is not a valid {name}") from e

    return replace(RadarConfig(), **overrides)
