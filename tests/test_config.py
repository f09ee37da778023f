"""Tests for configuration loading and validation."""

import sys
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cruxfetch.config import default_cache_path, load_config
from cruxfetch.errors import AuthenticationError, ConfigurationError


def test_load_config_reads_api_key_and_defaults(monkeypatch, tmp_path):
    """Verify configuration picks up the API key and keeps default retry and eviction settings."""
    monkeypatch.setenv("CRUX_API_KEY", "  secret-key  ")

    config = load_config(cache_path=tmp_path / "cache.json")

    assert config.api_key == "secret-key"
    assert config.form_factor == "ALL"
    assert config.retries == 2
    assert config.retry_delay_seconds == 0.5
    assert config.eviction_fraction == 0.2
    assert config.cache_path == tmp_path / "cache.json"


def test_load_config_without_api_key_raises_authentication_error(monkeypatch):
    """Verify a missing API key is reported as an authentication problem."""
    monkeypatch.delenv("CRUX_API_KEY", raising=False)

    with pytest.raises(AuthenticationError):
        load_config()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"form_factor": "WATCH"},
        {"retries": -1},
        {"retry_delay_seconds": -0.1},
        {"eviction_fraction": 0},
        {"eviction_fraction": 1.5},
        {"cache_quota_bytes": 0},
    ],
)
def test_load_config_rejects_invalid_values(monkeypatch, kwargs):
    """Verify out-of-range settings raise ConfigurationError before the key is checked."""
    monkeypatch.delenv("CRUX_API_KEY", raising=False)

    with pytest.raises(ConfigurationError):
        load_config(**kwargs)


def test_default_cache_path_honors_environment_override(monkeypatch, tmp_path):
    """Verify CRUX_CACHE_PATH overrides the default cache location."""
    monkeypatch.setenv("CRUX_CACHE_PATH", str(tmp_path / "custom.json"))

    assert default_cache_path() == tmp_path / "custom.json"


def test_default_cache_path_falls_back_to_home_cache_dir(monkeypatch):
    """Verify the default cache location lives under the user's cache directory."""
    monkeypatch.delenv("CRUX_CACHE_PATH", raising=False)

    assert default_cache_path().parts[-3:] == (".cache", "cruxfetch", "cache.json")
