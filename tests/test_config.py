"""
Tests for configuration loading.
"""

import pytest

from volradar.config import RadarConfig, load_config
from volradar.errors import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("VOLRADAR_HOST", "VOLRADAR_PORT", "VOLRADAR_CLIENT_ID"):
        monkeypatch.delenv(name, raising=False)


class TestRadarConfig:
    """Tests for RadarConfig defaults and validation."""

    def test_defaults(self):
        """Test the default horizon, band and deadline."""
        config = RadarConfig()
        assert config.option_horizon_months == 1
        assert config.strike_band == 0.20
        assert config.completion_timeout == 60.0
        assert config.port == 7496

    @pytest.mark.parametrize("kwargs", [
        {"strike_band": 1.0},
        {"strike_band": -0.1},
        {"option_horizon_months": -1},
        {"completion_timeout": 0},
        {"simulated_latency": -1.0},
    ])
    def test_invalid_values(self, kwargs):
        """Test that out-of-range settings are rejected."""
        with pytest.raises(ConfigError):
            RadarConfig(**kwargs)

    def test_no_deadline(self):
        """Test that None disables the deadline."""
        assert RadarConfig(completion_timeout=None).completion_timeout is None


class TestLoadConfig:
    """Tests for load_config."""

    def test_no_file(self):
        """Test that no path gives the defaults."""
        assert load_config() == RadarConfig()

    def test_yaml_overrides(self, tmp_path):
        """Test that YAML values replace defaults."""
        path = tmp_path / "radar.yaml"
        path.write_text("strike_band: 0.1\nport: 4002\nrequest_atm_option: false\n")

        config = load_config(str(path))
        assert config.strike_band == 0.1
        assert config.port == 4002
        assert config.request_atm_option is False
        assert config.bar_size == "1 day"

    def test_empty_yaml(self, tmp_path):
        """Test that an empty file gives the defaults."""
        path = tmp_path / "radar.yaml"
        path.write_text("")
        assert load_config(str(path)) == RadarConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(str(tmp_path / "missing.yaml"))

    def test_unknown_keys(self, tmp_path):
        """Test that misspelled keys are rejected."""
        path = tmp_path / "radar.yaml"
        path.write_text("strike_bnad: 0.1\n")
        with pytest.raises(ConfigError, match="strike_bnad"):
            load_config(str(path))

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "radar.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "radar.yaml"
        path.write_text("port: [4002\n")
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_env_overrides(self, tmp_path, monkeypatch):
        """Test that environment variables win over the file."""
        path = tmp_path / "radar.yaml"
        path.write_text("port: 4002\n")
        monkeypatch.setenv("VOLRADAR_PORT", "7497")
        monkeypatch.setenv("VOLRADAR_HOST", "gateway")

        config = load_config(str(path))
        assert config.port == 7497
        assert config.host == "gateway"

    def test_bad_env_value(self, monkeypatch):
        monkeypatch.setenv("VOLRADAR_CLIENT_ID", "abc")
        with pytest.raises(ConfigError):
            load_config()

    def test_invalid_value_in_file(self, tmp_path):
        """Test that validation applies to file values."""
        path = tmp_path / "radar.yaml"
        path.write_text("strike_band: 2\n")
        with pytest.raises(ConfigError):
            load_config(str(path))
