"""Command-line argument parsing for the CrUX field-metrics fetcher."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional, Sequence

from .config import DEFAULT_RETRIES, DEFAULT_RETRY_DELAY_SECONDS
from .models import ALL_FORM_FACTORS, FORM_FACTORS


def _non_negative_int(value: str) -> int:
    """Parse and validate a non-negative integer CLI value.

    Raises:
        argparse.ArgumentTypeError: If value is not a non-negative integer.
    """
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an integer") from exc

    if parsed < 0:
        raise argparse.ArgumentTypeError("must be 0 or greater")

    return parsed


def _non_negative_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be a number") from exc

    if parsed < 0:
        raise argparse.ArgumentTypeError("must be 0 or greater")

    return parsed


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for metric acquisition.

    Returns:
        Parsed CLI arguments containing the page identifiers, form factor,
        retry policy, cache location and the cache-clear switch.
    """
    parser = argparse.ArgumentParser(
        prog="cruxfetch",
        description=(
            "Fetch Chrome UX Report p75 field metrics (LCP, INP, CLS, FCP, TTFB) "
            "for one or more pages, falling back to the origin when a page has no data."
        ),
    )

    parser.add_argument(
        "--url",
        dest="urls",
        action="append",
        default=[],
        help="Page URL or origin to query (repeatable).",
    )
    parser.add_argument(
        "--form-factor",
        choices=FORM_FACTORS,
        default=ALL_FORM_FACTORS,
        help="Device class to restrict the data to (default: ALL).",
    )
    parser.add_argument(
        "--retries",
        type=_non_negative_int,
        default=DEFAULT_RETRIES,
        help=f"Retries after a failed API call (default: {DEFAULT_RETRIES}).",
    )
    parser.add_argument(
        "--retry-delay",
        type=_non_negative_float,
        default=DEFAULT_RETRY_DELAY_SECONDS,
        help=(
            "Base delay in seconds between retries, multiplied by the attempt number "
            f"(default: {DEFAULT_RETRY_DELAY_SECONDS})."
        ),
    )
    parser.add_argument(
        "--cache-path",
        type=Path,
        default=None,
        help="Cache file location (default: $CRUX_CACHE_PATH or ~/.cache/cruxfetch/cache.json).",
    )
    parser.add_argument(
        "--clear-cache",
        action="store_true",
        help="Remove all cached responses before fetching.",
    )
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default="WARNING",
        help="Logging verbosity (default: WARNING).",
    )

    args = parser.parse_args(argv)
    if not args.urls and not args.clear_cache:
        parser.error("at least one --url is required unless --clear-cache is given")

    return args
