"""Candidate search strings for a domain, cheapest and most precise first."""
from __future__ import annotations

import re

from .domain_utils import normalize_domain

KNOWN_SUFFIXES = ("co.uk", "uk", "com", "de", "net", "org", "io", "at", "ch", "eu", "info", "biz")

_SUFFIX_RE = re.compile(r"\.(?:" + "|".join(re.escape(s) for s in KNOWN_SUFFIXES) + r")$", re.IGNORECASE)
_SEPARATOR_RE = re.compile(r"[-_.]")


def humanize_domain(domain: str) -> str:
    """Turn ``best-carpets.co.uk`` into ``Best Carpets``."""
    host = normalize_domain(domain) or (domain or "").strip().lower()
    label = _SUFFIX_RE.sub("", host)
    words = [part for part in _SEPARATOR_RE.split(label) if part]
    return " ".join(word[0].upper() + word[1:] for word in words)


def build_query_variants(domain: str) -> tuple[str, ...]:
    host = normalize_domain(domain) or (domain or "").strip()
    if not host:
        return ()

    candidates = [host, f"https://{host}", humanize_domain(host)]
    variants: list[str] = []
    for candidate in candidates:
        if candidate and candidate not in variants:
            variants.append(candidate)
    return tuple(variants)
