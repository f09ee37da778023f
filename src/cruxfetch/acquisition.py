"""Batch acquisition of CrUX metrics for a list of page identifiers.

For each identifier, in input order:
- Query the page (or origin) through the read-through cache.
- When the API confirms it has no page-level data, query the page's origin once.
- Validate the returned record, or record a per-identifier error.

The first successful record of a batch fixes the batch's collection period.
Identifiers are processed strictly one after another, which also keeps cache
reads and writes from interleaving.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from .cache import ResponseCache
from .crux_client import CruxClient, FetchOutcome
from .errors import CruxFetchError, DataValidationError
from .models import (
    ALL_FORM_FACTORS,
    METRICS,
    AcquisitionResult,
    BatchResult,
    CalendarDate,
    CollectionPeriod,
    CruxRecord,
    MetricSample,
)
from .query import CruxQuery, build_query, origin_fallback_for

logger = logging.getLogger(__name__)

NO_DATA_ERROR = "No data found for the URL or its origin."


def _parse_date(value: Any, field_name: str) -> CalendarDate:
    if not isinstance(value, dict):
        raise DataValidationError(f"CrUX record is missing '{field_name}' in collectionPeriod.")
    try:
        return CalendarDate(year=int(value["year"]), month=int(value["month"]), day=int(value["day"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise DataValidationError(f"CrUX record has an invalid '{field_name}': {value}") from exc


def _parse_p75(metric: str, value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise DataValidationError(f"CrUX record has a non-numeric p75 for '{metric}': {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise DataValidationError(f"CrUX record has a non-numeric p75 for '{metric}': {value!r}") from exc


def parse_record(record: Dict[str, Any]) -> CruxRecord:
    """Validate a raw API record into a :class:`CruxRecord`.

    Every tracked metric is present in the result; metrics the API did not
    report get ``p75=None``. CLS is reported by the API as a numeric string
    and is converted to ``float`` like the others.

    Raises:
        DataValidationError: If the record or its collection period is malformed.
    """
    metrics_payload = record.get("metrics") or {}
    if not isinstance(metrics_payload, dict):
        raise DataValidationError("CrUX record 'metrics' is not an object.")

    metrics: Dict[str, MetricSample] = {}
    for metric in METRICS:
        metric_payload = metrics_payload.get(metric)
        percentiles = metric_payload.get("percentiles") if isinstance(metric_payload, dict) else None
        p75 = percentiles.get("p75") if isinstance(percentiles, dict) else None
        metrics[metric] = MetricSample(p75=_parse_p75(metric, p75))

    period_payload = record.get("collectionPeriod")
    if not isinstance(period_payload, dict):
        raise DataValidationError("CrUX record is missing 'collectionPeriod'.")

    period = CollectionPeriod(
        first_date=_parse_date(period_payload.get("firstDate"), "firstDate"),
        last_date=_parse_date(period_payload.get("lastDate"), "lastDate"),
    )
    return CruxRecord(metrics=metrics, period=period)


class Acquirer:
    """Resolves page identifiers to metric records through the cache and the API."""

    def __init__(self, client: CruxClient, cache: ResponseCache) -> None:
        self._client = client
        self._cache = cache

    def _fetch(self, query: CruxQuery) -> FetchOutcome:
        cached = self._cache.get(query.cache_key)
        if isinstance(cached, dict):
            logger.debug("Cache hit", extra={"cache_key": query.cache_key})
            return FetchOutcome(payload=cached)

        outcome = self._client.execute(query)
        # Failed outcomes are never cached.
        if outcome.cacheable:
            self._cache.set(query.cache_key, outcome.payload)
        return outcome

    def fetch_record(
        self,
        identifier: str,
        form_factor: str = ALL_FORM_FACTORS,
        collection_date: Optional[CalendarDate] = None,
    ) -> FetchOutcome:
        """Fetch the current or historical record for one identifier, using the cache.

        Raises:
            InvalidTargetError: If the identifier cannot be normalized.
        """
        return self._fetch(build_query(identifier, form_factor, collection_date))

    def _acquire_one(self, identifier: str, form_factor: str) -> AcquisitionResult:
        query = build_query(identifier, form_factor)
        outcome = self._fetch(query)

        fallback_origin: Optional[str] = None
        if outcome.no_data:
            fallback_origin = origin_fallback_for(query.target)
            if fallback_origin is not None:
                logger.warning(
                    "URL-level data not found; falling back to origin",
                    extra={"identifier": identifier, "origin": fallback_origin},
                )
                outcome = self._fetch(build_query(fallback_origin, form_factor))

        if outcome.error is not None:
            return AcquisitionResult(identifier=identifier, error=outcome.error)

        if outcome.record is None:
            return AcquisitionResult(identifier=identifier, error=NO_DATA_ERROR)

        return AcquisitionResult(
            identifier=identifier,
            record=parse_record(outcome.record),
            used_fallback=fallback_origin is not None,
            fallback_origin=fallback_origin,
        )

    def acquire(self, identifiers: Iterable[str], form_factor: str = ALL_FORM_FACTORS) -> BatchResult:
        """Acquire metrics for every identifier and return the complete batch.

        Results are keyed by each identifier exactly as given; surrounding
        whitespace is stripped only when building the query. Blank identifiers
        are skipped and exact repeats are processed once.
        Each identifier's failure is captured in its own result; nothing is
        raised for an individual identifier.
        """
        results: Dict[str, AcquisitionResult] = {}
        collection_period: Optional[CollectionPeriod] = None
        period_has_been_set = False

        for identifier in identifiers:
            if not identifier.strip() or identifier in results:
                continue

            try:
                result = self._acquire_one(identifier, form_factor)
            except CruxFetchError as exc:
                logger.warning(
                    "Failed to acquire metrics",
                    extra={"identifier": identifier, "error": str(exc)},
                )
                result = AcquisitionResult(identifier=identifier, error=str(exc))
            except Exception as exc:
                # One bad identifier must not abort the rest of the batch.
                logger.exception("Unexpected failure while acquiring metrics", extra={"identifier": identifier})
                result = AcquisitionResult(identifier=identifier, error=str(exc) or type(exc).__name__)

            if result.record is not None and not period_has_been_set:
                collection_period = result.record.period
                period_has_been_set = True

            results[identifier] = result

        batch = BatchResult(results=results, collection_period=collection_period)
        logger.info(
            "Acquired metrics batch",
            extra={
                "identifiers": len(results),
                "succeeded": batch.success_count,
                "form_factor": form_factor,
            },
        )
        return batch

    def clear_cache(self) -> int:
        """Remove every cached response and return the number of entries removed."""
        return self._cache.clear()
