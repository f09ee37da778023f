"""Query construction for the CrUX API.

Turns a raw page identifier into the target the API is asked about (a full
page URL or a whole origin), the JSON request body, and the cache key the
response is stored under.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import SplitResult, urlsplit, urlunsplit

from .errors import InvalidTargetError
from .models import (
    ALL_FORM_FACTORS,
    METRICS,
    TARGET_ORIGIN,
    TARGET_URL,
    CalendarDate,
    QueryTarget,
)

_DEFAULT_PORTS = {"http": 80, "https": 443}
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


@dataclass(frozen=True)
class CruxQuery:
    """A fully built request for one target, form factor and optional history date."""

    target: QueryTarget
    form_factor: str
    collection_date: Optional[CalendarDate]
    body: Dict[str, Any]
    cache_key: str

    @property
    def is_history(self) -> bool:
        return self.collection_date is not None


def normalize_url(identifier: str) -> SplitResult:
    """Parse an identifier as an absolute URL, assuming ``https`` when no scheme is given.

    Raises:
        InvalidTargetError: If the identifier does not yield an http(s) URL with a host.
    """
    raw = identifier.strip()
    candidate = raw if _SCHEME_RE.match(raw) else f"https://{raw}"

    try:
        parts = urlsplit(candidate)
        # Accessing the port validates it.
        parts.port
    except ValueError as exc:
        raise InvalidTargetError(f"Invalid URL format: {identifier}") from exc

    host = parts.hostname
    if parts.scheme not in _DEFAULT_PORTS or not host or any(ch.isspace() for ch in host):
        raise InvalidTargetError(f"Invalid URL format: {identifier}")

    return parts


def _netloc_of(parts: SplitResult) -> str:
    """Return ``host[:port]`` with user info and default ports dropped."""
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    if port is not None and port != _DEFAULT_PORTS[parts.scheme]:
        return f"{host}:{port}"
    return host


def _origin_of(parts: SplitResult) -> str:
    return f"{parts.scheme}://{_netloc_of(parts)}"


def build_query_target(identifier: str) -> QueryTarget:
    """Classify an identifier as an origin (empty or root path) or a full URL target."""
    parts = normalize_url(identifier)

    if parts.path in ("", "/"):
        return QueryTarget(kind=TARGET_ORIGIN, value=_origin_of(parts))

    href = urlunsplit((parts.scheme, _netloc_of(parts), parts.path, parts.query, parts.fragment))
    return QueryTarget(kind=TARGET_URL, value=href)


def origin_fallback_for(target: QueryTarget) -> Optional[str]:
    """Return the origin to fall back to for a URL target, or ``None`` for origin targets."""
    if target.kind != TARGET_URL:
        return None
    return _origin_of(normalize_url(target.value))


def build_cache_key(
    target: QueryTarget,
    form_factor: str,
    collection_date: Optional[CalendarDate] = None,
) -> str:
    """Build the cache key for a target, form factor and optional history date.

    Identifiers that normalize to the same target share a key, so a bare
    domain and its root URL hit the same cache entry.
    """
    if collection_date is None:
        return f"current_{target.value}_{form_factor}"

    date_part = f"{collection_date.year:04d}{collection_date.month:02d}{collection_date.day:02d}"
    return f"history_{target.value}_{form_factor}_{date_part}"


def build_request_body(
    target: QueryTarget,
    form_factor: str,
    collection_date: Optional[CalendarDate] = None,
) -> Dict[str, Any]:
    """Build the JSON body for a record query.

    ``formFactor`` is left out for ``ALL`` so the API aggregates across
    devices; any other value is sent as given.
    """
    body: Dict[str, Any] = {
        target.kind: target.value,
        "metrics": list(METRICS),
    }

    if form_factor and form_factor != ALL_FORM_FACTORS:
        body["formFactor"] = form_factor

    if collection_date is not None:
        body["collectionPeriod"] = collection_date.to_payload()

    return body


def build_query(
    identifier: str,
    form_factor: str,
    collection_date: Optional[CalendarDate] = None,
) -> CruxQuery:
    """Build the full query for one identifier.

    Raises:
        InvalidTargetError: If the identifier cannot be normalized.
    """
    target = build_query_target(identifier)
    return CruxQuery(
        target=target,
        form_factor=form_factor,
        collection_date=collection_date,
        body=build_request_body(target, form_factor, collection_date),
        cache_key=build_cache_key(target, form_factor, collection_date),
    )
