from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import urlparse


def normalize_domain(raw: str) -> Optional[str]:
    """Reduce a user-supplied domain or URL to a bare lower-case host."""
    if not raw:
        return None

    value = raw.strip().lower()
    if not value:
        return None

    if "://" in value:
        parsed = urlparse(value)
        host = parsed.netloc
    else:
        host = value.split("/")[0]

    host = host.strip().lower().rstrip(".")
    if host.startswith("www."):
        host = host[4:]

    if ":" in host:
        host = host.split(":", 1)[0]

    if "." not in host:
        return None
    if any(ch.isspace() for ch in host):
        return None

    return host or None


def strip_for_match(value: str) -> str:
    """Drop scheme, leading ``www.`` and trailing slashes, keep any path.

    Used on both sides of the website comparison so ``https://www.a.com/x/``
    and ``a.com/x`` compare equal.
    """
    if not value:
        return ""
    clean = value.strip().lower()
    for scheme in ("https://", "http://"):
        if clean.startswith(scheme):
            clean = clean[len(scheme):]
            break
    if clean.startswith("www."):
        clean = clean[4:]
    return clean.rstrip("/")


def parse_domain_lines(lines: Iterable[str]) -> list[str]:
    """Trim each entry and drop blanks, keeping order and duplicates."""
    domains: list[str] = []
    for line in lines:
        if line is None:
            continue
        value = str(line).strip()
        if value:
            domains.append(value)
    return domains


HEADER_NAMES = {"domain", "domains", "website", "url", "host"}


def read_domains(path: Path) -> list[str]:
    """Read domains from a text file (one per line) or the first CSV column."""
    if path.suffix.lower() != ".csv":
        return parse_domain_lines(path.read_text(encoding="utf-8-sig").splitlines())

    domains: list[str] = []
    with path.open(newline="", encoding="utf-8-sig") as handle:
        reader = csv.reader(handle)
        for idx, row in enumerate(reader):
            if not row:
                continue
            if idx == 0 and row[0].strip().lower() in HEADER_NAMES:
                continue
            domains.extend(parse_domain_lines([row[0]]))
    return domains
