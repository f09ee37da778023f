"""Configuration parsing and validation for the CrUX field-metrics fetcher."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import AuthenticationError, ConfigurationError
from .models import FORM_FACTORS

DEFAULT_RETRIES = 2
DEFAULT_RETRY_DELAY_SECONDS = 0.5
DEFAULT_EVICTION_FRACTION = 0.2
DEFAULT_CACHE_QUOTA_BYTES = 5 * 1024 * 1024


def default_cache_path() -> Path:
    """Return the cache file location, honoring ``CRUX_CACHE_PATH`` when set."""
    override = os.getenv("CRUX_CACHE_PATH", "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".cache" / "cruxfetch" / "cache.json"


@dataclass(frozen=True)
class Config:
    """Validated runtime settings used by the fetcher."""

    api_key: str
    form_factor: str = "ALL"
    cache_path: Path = Path("cache.json")
    retries: int = DEFAULT_RETRIES
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    eviction_fraction: float = DEFAULT_EVICTION_FRACTION
    cache_quota_bytes: int = DEFAULT_CACHE_QUOTA_BYTES


def load_config(
    form_factor: str = "ALL",
    cache_path: Optional[Path] = None,
    retries: int = DEFAULT_RETRIES,
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
    eviction_fraction: float = DEFAULT_EVICTION_FRACTION,
    cache_quota_bytes: int = DEFAULT_CACHE_QUOTA_BYTES,
) -> Config:
    """Build and validate application configuration.

    Args:
        form_factor: Device-class filter, one of ``FORM_FACTORS``.
        cache_path: Cache file location; defaults to :func:`default_cache_path`.
        retries: Number of retries after the first attempt.
        retry_delay_seconds: Base delay, multiplied by the attempt number.
        eviction_fraction: Share of cache entries evicted when storage is full.
        cache_quota_bytes: Maximum size of the cache storage.

    Returns:
        A validated ``Config`` instance.

    Raises:
        ConfigurationError: If a numeric setting is out of range or the form
            factor is unknown.
        AuthenticationError: If ``CRUX_API_KEY`` is not configured.
    """
    if form_factor not in FORM_FACTORS:
        raise ConfigurationError(
            f"Invalid value for 'form_factor': expected one of {', '.join(FORM_FACTORS)}."
        )
    if retries < 0:
        raise ConfigurationError("Invalid value for 'retries': expected an integer of at least 0.")
    if retry_delay_seconds < 0:
        raise ConfigurationError("Invalid value for 'retry_delay_seconds': expected a value of at least 0.")
    if not 0 < eviction_fraction <= 1:
        raise ConfigurationError("Invalid value for 'eviction_fraction': expected a value in (0, 1].")
    if cache_quota_bytes <= 0:
        raise ConfigurationError("Invalid value for 'cache_quota_bytes': expected an integer greater than 0.")

    api_key: str = os.getenv("CRUX_API_KEY", "").strip()
    if not api_key:
        raise AuthenticationError(
            "Missing required Chrome UX Report API key. "
            "Set the 'CRUX_API_KEY' environment variable before running the fetcher."
        )

    return Config(
        api_key=api_key,
        form_factor=form_factor,
        cache_path=cache_path if cache_path is not None else default_cache_path(),
        retries=retries,
        retry_delay_seconds=retry_delay_seconds,
        eviction_fraction=eviction_fraction,
        cache_quota_bytes=cache_quota_bytes,
    )
