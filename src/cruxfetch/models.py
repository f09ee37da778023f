"""Domain models for CrUX field-metric acquisition.

These dataclasses intentionally model only the subset of API payload fields that
are required to report p75 values for the tracked metrics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

METRICS = (
    "largest_contentful_paint",
    "interaction_to_next_paint",
    "cumulative_layout_shift",
    "first_contentful_paint",
    "experimental_time_to_first_byte",
)

ALL_FORM_FACTORS = "ALL"
FORM_FACTORS = (ALL_FORM_FACTORS, "DESKTOP", "PHONE", "TABLET")

TARGET_URL = "url"
TARGET_ORIGIN = "origin"


@dataclass(frozen=True, slots=True)
class CalendarDate:
    """Represents a calendar day as the API encodes it."""

    year: int
    month: int
    day: int

    def to_payload(self) -> Dict[str, int]:
        return {"year": self.year, "month": self.month, "day": self.day}

    def isoformat(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"


@dataclass(frozen=True, slots=True)
class CollectionPeriod:
    """Represents the 28-day window an API record was aggregated over."""

    first_date: CalendarDate
    last_date: CalendarDate


@dataclass(frozen=True, slots=True)
class QueryTarget:
    """Represents what a query asks about: one page URL or one whole origin."""

    kind: str
    value: str

    def __post_init__(self) -> None:
        if self.kind not in (TARGET_URL, TARGET_ORIGIN):
            raise ValueError(f"Unknown query target kind: {self.kind!r}")


@dataclass(frozen=True, slots=True)
class MetricSample:
    """Represents the p75 observation of one metric; ``None`` when the API has no data."""

    p75: Optional[float]


@dataclass(frozen=True, slots=True)
class CruxRecord:
    """Represents one validated API record."""

    metrics: Dict[str, MetricSample]
    period: CollectionPeriod


@dataclass(slots=True)
class AcquisitionResult:
    """Represents the outcome of acquiring metrics for one identifier."""

    identifier: str
    record: Optional[CruxRecord] = None
    error: Optional[str] = None
    used_fallback: bool = False
    fallback_origin: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.record is None) == (self.error is None):
            raise ValueError("An acquisition result carries exactly one of 'record' or 'error'.")
        if self.used_fallback != (self.fallback_origin is not None):
            raise ValueError("'fallback_origin' must be set if and only if 'used_fallback' is true.")

    @property
    def ok(self) -> bool:
        return self.record is not None


@dataclass(slots=True)
class BatchResult:
    """Represents one batch: per-identifier results in input order and the shared period."""

    results: Dict[str, AcquisitionResult] = field(default_factory=dict)
    collection_period: Optional[CollectionPeriod] = None

    @property
    def success_count(self) -> int:
        return sum(1 for result in self.results.values() if result.ok)
