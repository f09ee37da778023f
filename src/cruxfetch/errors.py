"""Custom exception types for the CrUX field-metrics fetcher."""

from __future__ import annotations

from typing import Optional


class CruxFetchError(Exception):
    """Base exception for all recoverable fetcher errors."""


class ConfigurationError(CruxFetchError):
    """Raised when runtime configuration values are missing or invalid."""


class AuthenticationError(CruxFetchError):
    """Raised when the CrUX API key is unavailable."""


class InvalidTargetError(CruxFetchError):
    """Raised when a page identifier cannot be normalized to a URL."""


class ApiError(CruxFetchError):
    """Raised when the CrUX API returns a non-success response with a structured body."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(CruxFetchError):
    """Raised when a request fails below the API layer or returns an unparseable body."""


class DataValidationError(CruxFetchError):
    """Raised when an API record does not meet the expected shape."""


class CacheStorageError(CruxFetchError):
    """Raised by cache storage backends when a read or write fails."""


class StorageQuotaExceededError(CacheStorageError):
    """Raised by cache storage backends when a write would exceed the quota."""
