from __future__ import annotations

import time
from threading import Lock
from typing import Callable, Optional, Union

from profile_check.models import Credentials, LocaleParams, ResultItem, ResultKind

Response = Union[list[ResultItem], Exception, Callable[[str], list[ResultItem]]]


class FakeSearchClient:
    """Stands in for DataForSEOClient.

    ``responses`` maps a query string to the items to return or an exception
    to raise. Unknown queries return ``default``.
    """

    def __init__(
        self,
        responses: Optional[dict[str, Response]] = None,
        default: Response = None,
        latency: float = 0.0,
    ) -> None:
        self.responses = dict(responses or {})
        self.default = default if default is not None else []
        self.latency = latency
        self.calls: list[tuple[str, LocaleParams]] = []
        self.active = 0
        self.max_active = 0
        self._lock = Lock()

    @property
    def queries(self) -> list[str]:
        return [query for query, _ in self.calls]

    def search(self, query: str, locale: LocaleParams, credentials: Credentials) -> list[ResultItem]:
        with self._lock:
            self.calls.append((query, locale))
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.latency:
                time.sleep(self.latency)
            response = self.responses.get(query, self.default)
            if isinstance(response, Exception):
                raise response
            if callable(response):
                return response(query)
            return list(response)
        finally:
            with self._lock:
                self.active -= 1


def business(title: str, website: Optional[str] = None, kind: ResultKind = ResultKind.BUSINESS, **extra) -> ResultItem:
    return ResultItem(kind=kind, title=title, website=website, **extra)
