from __future__ import annotations

import logging
from threading import Event
from typing import Optional, Protocol

from .domain_utils import normalize_domain
from .errors import AuthFailure, SearchFailure
from .locale import resolve_locale
from .matcher import match_items
from .models import Credentials, LocaleParams, MatchResult, ResultItem
from .variants import build_query_variants

logger = logging.getLogger(__name__)

AUTH_REJECTED_MESSAGE = "DataForSEO rejected the supplied credentials"


class SearchClient(Protocol):
    def search(self, query: str, locale: LocaleParams, credentials: Credentials) -> list[ResultItem]:
        ...


class LookupResolver:
    """Resolve one domain by trying its query variants in order.

    Variants run sequentially to bound the API cost per domain. A failed
    variant is logged and skipped; only an auth rejection ends the domain
    early, since every other variant would be rejected the same way.
    """

    def __init__(
        self,
        client: SearchClient,
        *,
        default_locale: Optional[LocaleParams] = None,
        allow_fallback: bool = True,
    ) -> None:
        self.client = client
        self.default_locale = default_locale
        self.allow_fallback = allow_fallback

    def resolve(
        self,
        domain: str,
        credentials: Credentials,
        abort_event: Optional[Event] = None,
    ) -> MatchResult:
        host = normalize_domain(domain)
        if not host:
            return MatchResult.error(domain, f"Invalid domain: {domain!r}", failure="invalid")

        locale = resolve_locale(host, self.default_locale)
        variants = build_query_variants(host)
        logger.debug(
            "Checking %s (location=%s, language=%s, %d variants)",
            host, locale.location_name, locale.language_code, len(variants),
        )

        failed = 0
        last_failure: Optional[SearchFailure] = None
        for query in variants:
            if abort_event is not None and abort_event.is_set():
                return MatchResult.error(domain, AUTH_REJECTED_MESSAGE, failure=AuthFailure.kind)

            try:
                items = self.client.search(query, locale, credentials)
            except AuthFailure as exc:
                logger.error("Credentials rejected while checking %s: %s", host, exc.message)
                if abort_event is not None:
                    abort_event.set()
                return MatchResult.error(domain, exc.message or AUTH_REJECTED_MESSAGE, failure=exc.kind)
            except SearchFailure as exc:
                logger.warning("Search variant %r for %s failed (%s): %s", query, host, exc.kind, exc.message)
                failed += 1
                last_failure = exc
                continue

            match = match_items(host, items, allow_fallback=self.allow_fallback)
            if match is not None:
                item, match_type = match
                logger.info("Profile found for %s via %r: %s", host, query, item.title)
                return MatchResult.found(domain, item, query, match_type)

        if variants and failed == len(variants) and last_failure is not None:
            return MatchResult.error(domain, last_failure.message, failure=last_failure.kind)
        return MatchResult.not_found(domain)
