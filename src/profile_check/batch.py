"""Run lookups for a domain list in paced, bounded-concurrency batches."""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from threading import Event
from typing import Callable, Iterator, Optional, Sequence

from .errors import AuthFailure
from .models import BatchProgress, BatchReport, Credentials, MatchResult
from .resolver import AUTH_REJECTED_MESSAGE, LookupResolver

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_BATCH_DELAY = 0.5  # seconds between batches

CANCELLED_MESSAGE = "Lookup cancelled before this domain was checked"
CANCELLED_FAILURE = "cancelled"

ProgressCallback = Callable[[BatchProgress], None]


def chunk(domains: Sequence[str], size: int) -> list[list[str]]:
    return [list(domains[start:start + size]) for start in range(0, len(domains), size)]


class BatchOrchestrator:
    """Sequential batches, concurrent lookups inside each batch.

    Results come back in input order whatever order the lookups finish in.
    The pacing delay is the only rate-limit control.
    """

    def __init__(
        self,
        resolver: LookupResolver,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        delay_seconds: float = DEFAULT_BATCH_DELAY,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.resolver = resolver
        self.batch_size = batch_size
        self.delay_seconds = max(delay_seconds, 0.0)
        self._sleep = sleep

    def _pause(self, cancel_event: Optional[Event]) -> None:
        """Wait between batches; a cancel raised during the wait ends it early."""
        if self._sleep is not None:
            self._sleep(self.delay_seconds)
        elif cancel_event is not None:
            cancel_event.wait(self.delay_seconds)
        else:
            time.sleep(self.delay_seconds)

    def _resolve_safely(self, domain: str, credentials: Credentials, abort_event: Event) -> MatchResult:
        try:
            return self.resolver.resolve(domain, credentials, abort_event=abort_event)
        except Exception as exc:
            logger.exception("Lookup for %s failed unexpectedly", domain)
            return MatchResult.error(domain, str(exc) or exc.__class__.__name__, failure="internal")

    def _run_one_batch(self, batch: list[str], credentials: Credentials, abort_event: Event) -> list[MatchResult]:
        slots: list[Optional[MatchResult]] = [None] * len(batch)
        with ThreadPoolExecutor(max_workers=min(self.batch_size, len(batch))) as executor:
            futures = {
                executor.submit(self._resolve_safely, domain, credentials, abort_event): index
                for index, domain in enumerate(batch)
            }
            for future in as_completed(futures):
                slots[futures[future]] = future.result()
        return [result for result in slots if result is not None]

    def iter_batches(
        self,
        domains: Sequence[str],
        credentials: Credentials,
        cancel_event: Optional[Event] = None,
    ) -> Iterator[BatchProgress]:
        """Yield one progress snapshot per batch.

        Closing the generator early stops further batches from starting.
        """
        total = len(domains)
        batches = chunk(domains, self.batch_size)
        abort_event = Event()
        processed = 0

        for number, batch in enumerate(batches, start=1):
            if number > 1 and self.delay_seconds > 0 and not abort_event.is_set():
                self._pause(cancel_event)

            remaining = [domain for rest in batches[number - 1:] for domain in rest]

            if abort_event.is_set():
                logger.error("Credentials rejected; skipping %d remaining domains", len(remaining))
                yield BatchProgress(
                    processed_count=total,
                    total_count=total,
                    latest_results=[
                        MatchResult.error(domain, AUTH_REJECTED_MESSAGE, failure=AuthFailure.kind)
                        for domain in remaining
                    ],
                    auth_rejected=True,
                )
                return

            if cancel_event is not None and cancel_event.is_set():
                logger.info("Batch run cancelled; %d domains not checked", len(remaining))
                yield BatchProgress(
                    processed_count=total,
                    total_count=total,
                    latest_results=[
                        MatchResult.error(domain, CANCELLED_MESSAGE, failure=CANCELLED_FAILURE)
                        for domain in remaining
                    ],
                    cancelled=True,
                )
                return

            results = self._run_one_batch(batch, credentials, abort_event)
            processed += len(results)
            logger.info("Batch %d/%d done: %d/%d domains processed", number, len(batches), processed, total)
            yield BatchProgress(
                processed_count=processed,
                total_count=total,
                latest_results=results,
                auth_rejected=abort_event.is_set(),
            )

    def run(
        self,
        domains: Sequence[str],
        credentials: Credentials,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[Event] = None,
    ) -> BatchReport:
        report = BatchReport()
        for progress in self.iter_batches(domains, credentials, cancel_event=cancel_event):
            report.results.extend(progress.latest_results)
            report.cancelled = report.cancelled or progress.cancelled
            report.auth_rejected = report.auth_rejected or progress.auth_rejected
            if progress_callback:
                progress_callback(progress)

        summary = report.summary
        logger.info(
            "Batch run complete: %d total, %d found, %d not found, %d errors",
            summary["total"], summary["found"], summary["notFound"], summary["errors"],
        )
        return report
