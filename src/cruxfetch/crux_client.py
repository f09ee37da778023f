"""Chrome UX Report API client with bounded retries."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .config import Config
from .errors import ApiError, TransportError
from .query import CruxQuery

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchOutcome:
    """Result of one query: a raw API payload, or the error that ended the retries.

    A payload without a ``record`` is a confirmed "no data" answer from the
    API. It is not an error and may be cached.
    """

    payload: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def record(self) -> Optional[Dict[str, Any]]:
        if self.payload is None:
            return None
        record = self.payload.get("record")
        return record if record else None

    @property
    def no_data(self) -> bool:
        return self.error is None and self.record is None

    @property
    def cacheable(self) -> bool:
        return self.error is None and self.payload is not None


class CruxClient:
    """Small, typed client for the CrUX ``records`` API."""

    _API_BASE_URL = "https://chromeuxreport.googleapis.com/v1/records"
    _NO_DATA_MESSAGE = "chrome ux report data not found"

    def __init__(
        self,
        config: Config,
        timeout_seconds: int = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize a CrUX API client.

        Args:
            config: Validated runtime configuration including the API key and
                retry policy.
            timeout_seconds: Per-request timeout in seconds.
            session: Optional pre-built HTTP session.
        """
        self._config = config
        self._timeout_seconds = timeout_seconds

        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})

    def __enter__(self) -> "CruxClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._session.close()

    def _build_url(self, history: bool) -> str:
        """Build the endpoint URL for a current or history record query."""
        operation = "queryHistoryRecord" if history else "queryRecord"
        return f"{self._API_BASE_URL}:{operation}"

    def _handle_response(self, response: requests.Response) -> Dict[str, Any]:
        """Turn one HTTP response into a payload or a retryable error.

        Raises:
            ApiError: If the API returned a structured error other than "no data".
            TransportError: If the body is not the JSON the API promises.
        """
        status_code = response.status_code

        if status_code < 400:
            try:
                payload = response.json()
            except ValueError as exc:
                raise TransportError(f"API Error: {status_code} returned invalid JSON") from exc
            if not isinstance(payload, dict):
                raise TransportError(f"API Error: {status_code} returned unexpected payload shape")
            return payload

        try:
            error_payload = response.json()
        except ValueError as exc:
            raise TransportError(f"API Error: {status_code} {response.reason}") from exc

        error_body = error_payload.get("error") if isinstance(error_payload, dict) else None
        message = error_body.get("message") if isinstance(error_body, dict) else None

        if status_code == 404 and isinstance(message, str) and self._NO_DATA_MESSAGE in message.lower():
            return error_payload

        raise ApiError(f"API Error: {status_code} {message or response.reason}", status_code=status_code)

    def execute(self, query: CruxQuery) -> FetchOutcome:
        """Execute a record query, retrying failed attempts with a linearly growing delay.

        Attempts run strictly one after another: after failed attempt ``i``
        (1-based) the client sleeps ``retry_delay_seconds * i``. Retry
        exhaustion is reported through ``FetchOutcome.error`` rather than
        raised.
        """
        url = self._build_url(query.is_history)
        attempts = self._config.retries + 1
        last_error = "An unknown error occurred during API call."

        for attempt in range(1, attempts + 1):
            try:
                # The API key is sent as a header, never in the URL.
                response = self._session.post(
                    url,
                    headers={"X-Goog-Api-Key": self._config.api_key},
                    json=query.body,
                    timeout=self._timeout_seconds,
                )
                return FetchOutcome(payload=self._handle_response(response))
            except requests.RequestException as exc:
                last_error = f"Request failed: {exc}"
            except (ApiError, TransportError) as exc:
                last_error = str(exc)

            if attempt == attempts:
                break

            delay = self._config.retry_delay_seconds * attempt
            logger.warning(
                "CrUX API call failed; retrying",
                extra={
                    "target": query.target.value,
                    "attempt": attempt,
                    "delay_seconds": delay,
                    "error": last_error,
                },
            )
            time.sleep(delay)

        logger.error(
            "CrUX API call failed after retries",
            extra={"target": query.target.value, "attempts": attempts, "error": last_error},
        )
        return FetchOutcome(error=last_error)
