from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .batch import BatchOrchestrator
from .config import SEARCH_STRATEGIES, load_config
from .domain_utils import parse_domain_lines, read_domains
from .exporters import export_results, write_found_list
from .models import FOUND, BatchProgress, Credentials
from .resolver import LookupResolver
from .search_client import DataForSEOClient

logger = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Check which domains have a Google business profile")
    parser.add_argument("domains", nargs="*", help="Domains to check")
    parser.add_argument("--file", type=Path, default=None, help="Text file (one per line) or CSV (first column)")
    parser.add_argument("--login", default=None, help="DataForSEO login (default: DATAFORSEO_LOGIN)")
    parser.add_argument("--password", default=None, help="DataForSEO password (default: DATAFORSEO_PASSWORD)")
    parser.add_argument("--batch-size", type=_positive_int, default=None)
    parser.add_argument("--delay", type=float, default=None, help="Seconds between batches")
    parser.add_argument("--strategy", choices=SEARCH_STRATEGIES, default=None)
    parser.add_argument("--output", type=Path, default=None, help="Write all results to a .csv or .json file")
    parser.add_argument("--found-list", type=Path, default=None, help="Write found domains, one per line")
    parser.add_argument("--log-level", default=None)
    return parser


def _print_progress(progress: BatchProgress) -> None:
    for result in progress.latest_results:
        detail = result.title if result.outcome == FOUND else result.message
        print(f"  {result.domain}: {result.outcome} ({detail})")
    print(f"Processed {progress.processed_count}/{progress.total_count}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config()

    logging.basicConfig(
        level=(args.log_level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    domains = parse_domain_lines(args.domains)
    if args.file is not None:
        domains.extend(read_domains(args.file))
    if not domains:
        print("No domains given", file=sys.stderr)
        return 2

    credentials = Credentials(
        login=(args.login or config.dataforseo_login or "").strip(),
        password=(args.password or config.dataforseo_password or "").strip(),
    )
    if not credentials.is_complete():
        print("DataForSEO credentials are required (--login/--password or env)", file=sys.stderr)
        return 2

    client = DataForSEOClient(
        base_url=config.dataforseo_api_base,
        strategy=args.strategy or config.search_strategy,
        timeout=config.http_timeout,
        attempts=config.search_http_attempts,
    )
    resolver = LookupResolver(client, default_locale=config.default_locale)
    orchestrator = BatchOrchestrator(
        resolver,
        batch_size=args.batch_size or config.batch_size,
        delay_seconds=config.batch_delay_seconds if args.delay is None else args.delay,
    )

    report = orchestrator.run(domains, credentials, progress_callback=_print_progress)
    summary = report.summary
    print(
        f"Total: {summary['total']}, found: {summary['found']}, "
        f"not found: {summary['notFound']}, errors: {summary['errors']}"
    )
    print(f"Upstream calls: {client.calls_made}")

    if args.output is not None:
        path = export_results(report.results, args.output)
        print(f"Exported results to {path}")
    if args.found_list is not None:
        path = write_found_list(report.results, args.found_list)
        print(f"Exported found domains to {path}" if path else "No found domains to export")

    if report.auth_rejected:
        print("DataForSEO rejected the credentials", file=sys.stderr)
        return 1
    return 0
