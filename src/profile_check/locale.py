"""Pick the upstream search location and language from a domain suffix."""
from __future__ import annotations

from typing import Optional

from .domain_utils import normalize_domain
from .models import LocaleParams

UNITED_KINGDOM = LocaleParams("United Kingdom", "en", 2826)
GERMANY = LocaleParams("Germany", "de", 2276)
AUSTRIA = LocaleParams("Austria", "de", 2040)
SWITZERLAND = LocaleParams("Switzerland", "de", 2756)
UNITED_STATES = LocaleParams("United States", "en", 2840)

DEFAULT_LOCALE = UNITED_KINGDOM

# Checked longest suffix first so ".co.uk" never falls through to a shorter rule.
SUFFIX_LOCALES: dict[str, LocaleParams] = {
    ".co.uk": UNITED_KINGDOM,
    ".uk": UNITED_KINGDOM,
    ".de": GERMANY,
    ".at": AUSTRIA,
    ".ch": SWITZERLAND,
    ".com": UNITED_STATES,
    ".net": UNITED_STATES,
}

_ORDERED_SUFFIXES = sorted(SUFFIX_LOCALES, key=len, reverse=True)


def resolve_locale(domain: str, default: Optional[LocaleParams] = None) -> LocaleParams:
    fallback = default or DEFAULT_LOCALE
    host = normalize_domain(domain or "")
    if not host:
        return fallback

    for suffix in _ORDERED_SUFFIXES:
        if host.endswith(suffix):
            return SUFFIX_LOCALES[suffix]
    return fallback
