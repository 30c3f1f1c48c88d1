"""DataForSEO client that turns every supported response shape into ResultItems.

Three endpoints can be used, selected by ``SEARCH_STRATEGY``:

* ``business_info`` - Business Data "My Business Info" (flat profile records)
* ``serp_local``    - organic SERP; local packs, map blocks and the knowledge
  panel are kept, organic links are dropped
* ``maps``          - Maps SERP (flat pin records)

Failures are raised as the typed exceptions in :mod:`profile_check.errors`.
An empty list means the call worked and nothing came back.
"""
from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Iterable, Optional

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import Config
from .errors import (
    AuthFailure,
    QuotaOrRateFailure,
    SearchFailure,
    TransportFailure,
    UpstreamTaskFailure,
)
from .models import Credentials, LocaleParams, ResultItem, ResultKind

logger = logging.getLogger(__name__)

STATUS_OK = 20000

ENDPOINTS = {
    "business_info": "/business_data/google/my_business_info/live",
    "serp_local": "/serp/google/organic/live/advanced",
    "maps": "/serp/google/maps/live/advanced",
}

# Extra payload fields per endpoint
STRATEGY_OPTIONS: dict[str, dict[str, Any]] = {
    "business_info": {},
    "serp_local": {"device": "desktop", "os": "windows"},
    "maps": {"device": "desktop", "os": "windows"},
}

BUSINESS_TYPES = {"google_business_info", "business_info", "my_business_info"}
LOCAL_PACK_TYPES = {"local_pack"}
MAPS_TYPES = {"map", "maps", "maps_search", "maps_paid_item", "local_finder"}
KNOWLEDGE_GRAPH_TYPES = {"knowledge_graph"}


def _classify_status(status_code: Optional[int], message: str) -> SearchFailure:
    """Map a DataForSEO status code (40100, 40202, ...) to a failure."""
    if status_code is not None and 40100 <= status_code < 40200:
        return AuthFailure(message, status_code=status_code)
    if status_code is not None and 40200 <= status_code < 40300:
        return QuotaOrRateFailure(message, status_code=status_code)
    return UpstreamTaskFailure(message, status_code=status_code)


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _knowledge_row(raw: dict, needle: str) -> Optional[str]:
    """Pull a text row (address, phone) out of a knowledge panel block."""
    for row in raw.get("items") or []:
        if not isinstance(row, dict):
            continue
        attr = (row.get("data_attrid") or "").lower()
        if needle in attr:
            return row.get("text") or None
    return None


def _to_item(raw: dict, kind: ResultKind) -> ResultItem:
    rating = raw.get("rating") if isinstance(raw.get("rating"), dict) else {}
    address_info = raw.get("address_info") if isinstance(raw.get("address_info"), dict) else {}
    external_id = raw.get("cid") or raw.get("place_id") or raw.get("feature_id")

    address = raw.get("address") or address_info.get("address")
    phone = raw.get("phone")
    if kind is ResultKind.KNOWLEDGE_GRAPH:
        address = address or _knowledge_row(raw, "address")
        phone = phone or _knowledge_row(raw, "phone")

    return ResultItem(
        kind=kind,
        title=raw.get("title") or None,
        address=address or None,
        rating_value=_as_float(rating.get("value")),
        rating_count=_as_int(rating.get("votes_count")),
        phone=phone or None,
        website=raw.get("url") or raw.get("domain") or None,
        category=raw.get("category") or None,
        working_hours=raw.get("work_hours") or raw.get("work_time") or None,
        external_id=str(external_id) if external_id else None,
    )


def _nested_or_self(raw: dict, kind: ResultKind) -> list[ResultItem]:
    nested = raw.get("items")
    if isinstance(nested, list) and nested:
        return [_to_item(sub, kind) for sub in nested if isinstance(sub, dict)]
    return [_to_item(raw, kind)]


def normalize_items(raw_items: Optional[Iterable[Any]]) -> list[ResultItem]:
    """Flatten raw upstream items into ResultItems, keeping upstream order."""
    items: list[ResultItem] = []
    for raw in raw_items or []:
        if not isinstance(raw, dict):
            continue
        item_type = (raw.get("type") or "").strip().lower()

        if not item_type or item_type in BUSINESS_TYPES:
            items.append(_to_item(raw, ResultKind.BUSINESS))
        elif item_type in LOCAL_PACK_TYPES:
            items.extend(_nested_or_self(raw, ResultKind.LOCAL_PACK))
        elif item_type in MAPS_TYPES:
            items.extend(_nested_or_self(raw, ResultKind.MAPS))
        elif item_type in KNOWLEDGE_GRAPH_TYPES:
            items.append(_to_item(raw, ResultKind.KNOWLEDGE_GRAPH))
    return items


def parse_envelope(data: Any) -> list[ResultItem]:
    """Unwrap ``tasks[0].result[0].items`` after checking both status levels."""
    if not isinstance(data, dict):
        raise TransportFailure("Upstream response is not a JSON object")

    status_code = _as_int(data.get("status_code"))
    if status_code != STATUS_OK:
        raise _classify_status(status_code, data.get("status_message") or "Upstream request failed")

    tasks = data.get("tasks") or []
    if not tasks:
        raise UpstreamTaskFailure("Upstream response contained no task")

    task = tasks[0] or {}
    task_status = _as_int(task.get("status_code"))
    if task_status != STATUS_OK:
        raise _classify_status(task_status, f"API Error: {task.get('status_message') or 'Unknown error'}")

    results = task.get("result") or []
    if not results or not isinstance(results[0], dict):
        return []
    return normalize_items(results[0].get("items"))


class DataForSEOClient:
    """Thread-safe DataForSEO client with session pooling."""

    def __init__(
        self,
        base_url: str = "https://api.dataforseo.com/v3",
        strategy: str = "business_info",
        timeout: float = 30,
        attempts: int = 2,
        session: Optional[requests.Session] = None,
        retry_wait=None,
    ) -> None:
        if strategy not in ENDPOINTS:
            raise ValueError(f"Unknown search strategy {strategy!r}")
        self.base_url = base_url.rstrip("/")
        self.strategy = strategy
        self.timeout = timeout
        self.attempts = max(attempts, 1)
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=4)
        self._calls_made = 0
        self._calls_lock = Lock()

    @classmethod
    def from_config(cls, config: Config) -> "DataForSEOClient":
        return cls(
            base_url=config.dataforseo_api_base,
            strategy=config.search_strategy,
            timeout=config.http_timeout,
            attempts=config.search_http_attempts,
        )

    @property
    def calls_made(self) -> int:
        return self._calls_made

    @property
    def endpoint_url(self) -> str:
        return f"{self.base_url}{ENDPOINTS[self.strategy]}"

    def build_payload(self, query: str, locale: LocaleParams) -> list[dict[str, Any]]:
        task = {"keyword": query, **locale.to_payload(), **STRATEGY_OPTIONS[self.strategy]}
        return [task]

    def _post(self, payload: list[dict[str, Any]], headers: dict[str, str]) -> requests.Response:
        with self._calls_lock:
            self._calls_made += 1
        return self.session.post(self.endpoint_url, json=payload, headers=headers, timeout=self.timeout)

    def search(self, query: str, locale: LocaleParams, credentials: Credentials) -> list[ResultItem]:
        headers = {"Authorization": credentials.authorization_header()}
        payload = self.build_payload(query, locale)
        retrying = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=self._retry_wait,
            retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
            reraise=True,
        )

        try:
            resp = retrying(self._post, payload, headers)
        except requests.RequestException as exc:
            raise TransportFailure(f"Request to DataForSEO failed: {exc}") from exc

        if resp.status_code in (401, 403):
            raise AuthFailure("DataForSEO rejected the credentials", status_code=resp.status_code)
        if resp.status_code in (402, 429):
            raise QuotaOrRateFailure(
                f"DataForSEO quota or rate limit reached (HTTP {resp.status_code})",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise TransportFailure(
                f"DataForSEO returned a non-JSON body (HTTP {resp.status_code})",
                status_code=resp.status_code,
            ) from exc

        if not 200 <= resp.status_code < 300:
            logger.warning("DataForSEO HTTP %d: %s", resp.status_code, str(data)[:200])
            status_code = _as_int(data.get("status_code")) if isinstance(data, dict) else None
            failure = _classify_status(status_code, data.get("status_message") or "Upstream request failed") if status_code else None
            if isinstance(failure, (AuthFailure, QuotaOrRateFailure)):
                raise failure
            raise TransportFailure(f"DataForSEO returned HTTP {resp.status_code}", status_code=resp.status_code)

        items = parse_envelope(data)
        logger.debug("DataForSEO %s returned %d items for %r", self.strategy, len(items), query)
        return items
