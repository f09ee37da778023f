"""Formatting helpers for CrUX metric reporting.

This module provides utilities for:
- Formatting p75 values in each metric's display unit.
- Building a human-readable report for one acquisition batch.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from .models import METRICS, BatchResult, CollectionPeriod

# metric id -> (short name, display unit)
METRIC_DISPLAY: Dict[str, Tuple[str, str]] = {
    "largest_contentful_paint": ("LCP", "s"),
    "interaction_to_next_paint": ("INP", "ms"),
    "cumulative_layout_shift": ("CLS", ""),
    "first_contentful_paint": ("FCP", "s"),
    "experimental_time_to_first_byte": ("TTFB", "ms"),
}


def format_metric_value(metric: str, p75: Optional[float]) -> str:
    """Format a p75 value in the metric's display unit.

    The API reports timings in milliseconds; ``s`` metrics are converted to
    seconds with two decimals and CLS is shown unitless.

    Returns:
        ``"n/a"`` when ``p75`` is ``None``.
    """
    if p75 is None:
        return "n/a"

    unit = METRIC_DISPLAY[metric][1]
    if unit == "s":
        return f"{p75 / 1000:.2f} s"
    if unit == "ms":
        return f"{int(round(p75))} ms"
    return f"{p75:.2f}"


def format_period(period: Optional[CollectionPeriod]) -> str:
    if period is None:
        return "n/a"
    return f"{period.first_date.isoformat()} to {period.last_date.isoformat()}"


def generate_report(batch: BatchResult, form_factor: str) -> str:
    """Generate a human-readable report for an acquisition batch.

    Identifiers appear in input order. Successful ones list the p75 of every
    tracked metric and note an origin fallback; failed ones show their error.
    """
    lines: List[str] = [
        "CrUX Field Metrics Report (p75)",
        f"Form factor: {form_factor}",
        f"Collection period: {format_period(batch.collection_period)}",
    ]

    for identifier, result in batch.results.items():
        lines.append("")
        lines.append(f"URL: {identifier}")

        if result.record is None:
            lines.append(f"   Error: {result.error}")
            continue

        if result.used_fallback:
            lines.append(f"   (no URL-level data; showing origin {result.fallback_origin})")

        for metric in METRICS:
            name = METRIC_DISPLAY[metric][0]
            value = format_metric_value(metric, result.record.metrics[metric].p75)
            lines.append(f"   {name}: {value}")

    return "\n".join(lines)
