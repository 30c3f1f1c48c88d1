"""Failures raised by the upstream search client.

Callers branch on the exception class (or its ``kind``), never on the
message text.
"""
from __future__ import annotations

from typing import Optional


class SearchFailure(Exception):
    kind = "search"

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthFailure(SearchFailure):
    """Credentials were rejected. Every further call will fail the same way."""

    kind = "auth"


class QuotaOrRateFailure(SearchFailure):
    """Rate limit hit or account out of funds."""

    kind = "quota"


class TransportFailure(SearchFailure):
    """The call never produced a usable HTTP response."""

    kind = "transport"


class UpstreamTaskFailure(SearchFailure):
    """Upstream accepted the call but reported a task-level error."""

    kind = "task"
