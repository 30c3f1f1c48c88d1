from __future__ import annotations

import csv
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from .models import FOUND, MatchResult

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "Domain",
    "Status",
    "Profile Name",
    "Address",
    "Rating",
    "Reviews",
    "Phone",
    "Website",
    "Category",
    "Message",
]


def export_path(export_dir: str | Path, fmt: str, prefix: str = "domain-check-results") -> Path:
    directory = Path(export_dir)
    directory.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return directory / f"{prefix}_{timestamp}.{fmt}"


def _csv_row(result: MatchResult) -> list[object]:
    return [
        result.domain,
        result.outcome,
        result.title or "",
        result.address or "",
        result.rating if result.rating is not None else "",
        result.rating_count if result.rating_count is not None else "",
        result.phone or "",
        result.website or "",
        result.category or "",
        result.message or "",
    ]


def write_csv(results: Sequence[MatchResult], path: Path) -> Path:
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle, quoting=csv.QUOTE_ALL)
        writer.writerow(CSV_COLUMNS)
        for result in results:
            writer.writerow(_csv_row(result))
    return path


def write_json(results: Sequence[MatchResult], path: Path) -> Path:
    payload = [result.as_dict() for result in results]
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def write_found_list(results: Sequence[MatchResult], path: Path) -> Optional[Path]:
    """Write the domains that have a profile, one per line.

    Returns None and writes nothing when no domain was found.
    """
    found = [result.domain for result in results if result.outcome == FOUND]
    if not found:
        logger.info("No domains with a business profile; %s not written", path)
        return None
    path.write_text("\n".join(found) + "\n", encoding="utf-8")
    return path


def export_results(results: Sequence[MatchResult], path: str | Path) -> Optional[Path]:
    file_path = Path(path)
    suffix = file_path.suffix.lower()
    if suffix == ".csv":
        return write_csv(results, file_path)
    if suffix == ".json":
        return write_json(results, file_path)
    if suffix == ".txt":
        return write_found_list(results, file_path)
    raise ValueError(f"Unsupported export format '{file_path.suffix}'. Use .csv, .json or .txt")
