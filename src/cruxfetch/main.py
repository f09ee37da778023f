"""Entry point for the CrUX field-metrics fetcher."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .acquisition import Acquirer
from .cache import FileStorage, ResponseCache
from .cli import parse_args
from .config import DEFAULT_CACHE_QUOTA_BYTES, DEFAULT_EVICTION_FRACTION, default_cache_path, load_config
from .crux_client import CruxClient
from .errors import AuthenticationError, ConfigurationError, CruxFetchError
from .report import generate_report

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_GENERIC_ERROR = 1
EXIT_CONFIGURATION_ERROR = 2
EXIT_AUTHENTICATION_ERROR = 3
EXIT_NO_DATA = 4


def build_cache(
    cache_path: Path,
    quota_bytes: int = DEFAULT_CACHE_QUOTA_BYTES,
    eviction_fraction: float = DEFAULT_EVICTION_FRACTION,
) -> ResponseCache:
    """Build the file-backed response cache used by the CLI."""
    return ResponseCache(FileStorage(cache_path, quota_bytes=quota_bytes), eviction_fraction=eviction_fraction)


def orchestrate_fetch(argv: Optional[Sequence[str]] = None) -> int:
    """Run one fetch from the command line and print the report.

    Returns:
        ``EXIT_SUCCESS`` when at least one identifier resolved (or only the
        cache was cleared), ``EXIT_NO_DATA`` when every identifier failed,
        ``EXIT_CONFIGURATION_ERROR`` / ``EXIT_AUTHENTICATION_ERROR`` for
        invalid settings or a missing API key, and ``EXIT_GENERIC_ERROR`` for
        anything unexpected.
    """
    try:
        args = parse_args(argv)
        logging.basicConfig(
            level=getattr(logging, args.log_level),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        cache_path = args.cache_path or default_cache_path()

        if not args.urls:
            cleared = build_cache(cache_path).clear()
            print(f"Cache cleared. {cleared} items removed.")
            return EXIT_SUCCESS

        config = load_config(
            form_factor=args.form_factor,
            cache_path=cache_path,
            retries=args.retries,
            retry_delay_seconds=args.retry_delay,
        )
        cache = build_cache(config.cache_path, config.cache_quota_bytes, config.eviction_fraction)

        with CruxClient(config=config) as client:
            acquirer = Acquirer(client=client, cache=cache)
            if args.clear_cache:
                print(f"Cache cleared. {acquirer.clear_cache()} items removed.")
            batch = acquirer.acquire(args.urls, config.form_factor)

        print(generate_report(batch, config.form_factor))
        return EXIT_SUCCESS if batch.success_count else EXIT_NO_DATA
    except ConfigurationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    except AuthenticationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_AUTHENTICATION_ERROR
    except CruxFetchError as exc:
        logger.debug("Fetch aborted", exc_info=True)
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_GENERIC_ERROR
    except Exception as exc:
        logger.exception("Unexpected failure")
        print(f"ERROR: Unexpected failure: {exc}", file=sys.stderr)
        return EXIT_GENERIC_ERROR


def main() -> None:
    raise SystemExit(orchestrate_fetch())


if __name__ == "__main__":
    main()
