"""Pick the upstream item that represents a domain.

A website match always wins. Without one, the first item of the kind that
carries the strongest identity signal is accepted as a best-effort match:
small local businesses often have a listing without a machine-matchable
website field.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from .domain_utils import strip_for_match
from .models import MATCH_FALLBACK, MATCH_WEBSITE, ResultItem, ResultKind

logger = logging.getLogger(__name__)

# Lower rank wins. Local pack and maps share a tier.
KIND_PRIORITY: dict[ResultKind, int] = {
    ResultKind.KNOWLEDGE_GRAPH: 0,
    ResultKind.LOCAL_PACK: 1,
    ResultKind.MAPS: 1,
    ResultKind.BUSINESS: 2,
}


def _same_or_subdomain(host: str, parent: str) -> bool:
    return host == parent or host.endswith("." + parent)


def website_matches(domain: str, website: Optional[str]) -> bool:
    """Hosts match when equal or when one is a subdomain of the other, on whole labels."""
    clean_domain = strip_for_match(domain).split("/", 1)[0]
    website_host = strip_for_match(website or "").split("/", 1)[0]
    if not clean_domain or not website_host:
        return False
    return _same_or_subdomain(website_host, clean_domain) or _same_or_subdomain(clean_domain, website_host)


def match_items(
    domain: str,
    items: Sequence[ResultItem],
    *,
    allow_fallback: bool = True,
) -> Optional[tuple[ResultItem, str]]:
    """Return ``(item, match_type)`` or None when the list is empty."""
    if not items:
        return None

    for item in items:
        if website_matches(domain, item.website):
            logger.debug("Website match for %s: %s (%s)", domain, item.title, item.website)
            return item, MATCH_WEBSITE

    if not allow_fallback:
        return None

    best = min(items, key=lambda item: KIND_PRIORITY.get(item.kind, len(KIND_PRIORITY)))
    logger.debug("No website match for %s, falling back to %s result %s", domain, best.kind.value, best.title)
    return best, MATCH_FALLBACK
