"""Data carried between the lookup stages and returned to callers."""
from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

FOUND = "found"
NOT_FOUND = "not-found"
ERROR = "error"

MATCH_WEBSITE = "website"
MATCH_FALLBACK = "fallback"


class ResultKind(str, Enum):
    """Where in the upstream response an item came from."""

    BUSINESS = "business"
    LOCAL_PACK = "localPack"
    KNOWLEDGE_GRAPH = "knowledgeGraph"
    MAPS = "maps"


@dataclass(frozen=True)
class Credentials:
    login: str
    password: str = field(repr=False)

    def is_complete(self) -> bool:
        return bool(self.login and self.login.strip() and self.password and self.password.strip())

    def authorization_header(self) -> str:
        token = base64.b64encode(f"{self.login}:{self.password}".encode("utf-8")).decode("ascii")
        return f"Basic {token}"


@dataclass(frozen=True)
class LocaleParams:
    location_name: str
    language_code: str
    location_code: Optional[int] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"language_code": self.language_code}
        if self.location_code is not None:
            payload["location_code"] = self.location_code
        else:
            payload["location_name"] = self.location_name
        return payload


@dataclass(frozen=True)
class ResultItem:
    kind: ResultKind
    title: Optional[str] = None
    address: Optional[str] = None
    rating_value: Optional[float] = None
    rating_count: Optional[int] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    category: Optional[str] = None
    working_hours: Any = None
    external_id: Optional[str] = None


@dataclass
class MatchResult:
    domain: str
    outcome: str
    title: Optional[str] = None
    address: Optional[str] = None
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    category: Optional[str] = None
    working_hours: Any = None
    external_id: Optional[str] = None
    kind: Optional[ResultKind] = None
    matched_query: Optional[str] = None
    match_type: Optional[str] = None
    message: Optional[str] = None
    failure: Optional[str] = None

    @classmethod
    def found(cls, domain: str, item: ResultItem, query: str, match_type: str) -> "MatchResult":
        return cls(
            domain=domain,
            outcome=FOUND,
            title=item.title,
            address=item.address,
            rating=item.rating_value,
            rating_count=item.rating_count,
            phone=item.phone,
            website=item.website,
            category=item.category,
            working_hours=item.working_hours,
            external_id=item.external_id,
            kind=item.kind,
            matched_query=query,
            match_type=match_type,
        )

    @classmethod
    def not_found(cls, domain: str, message: str = "No business profile found") -> "MatchResult":
        return cls(domain=domain, outcome=NOT_FOUND, message=message)

    @classmethod
    def error(cls, domain: str, message: str, failure: Optional[str] = None) -> "MatchResult":
        return cls(domain=domain, outcome=ERROR, message=message, failure=failure)

    def as_dict(self) -> dict[str, Any]:
        row: dict[str, Any] = {"domain": self.domain, "outcome": self.outcome}
        if self.outcome == FOUND:
            row.update(
                {
                    "title": self.title,
                    "address": self.address,
                    "rating": self.rating,
                    "reviewsCount": self.rating_count,
                    "phone": self.phone,
                    "website": self.website,
                    "category": self.category,
                    "workingHours": self.working_hours,
                    "externalId": self.external_id,
                    "kind": self.kind.value if self.kind else None,
                    "matchedQuery": self.matched_query,
                    "matchType": self.match_type,
                }
            )
        else:
            row["message"] = self.message
            if self.failure:
                row["failure"] = self.failure
        return row


@dataclass
class BatchProgress:
    processed_count: int
    total_count: int
    latest_results: list[MatchResult] = field(default_factory=list)
    cancelled: bool = False
    auth_rejected: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "processedCount": self.processed_count,
            "totalCount": self.total_count,
            "latestResults": [result.as_dict() for result in self.latest_results],
            "cancelled": self.cancelled,
            "authRejected": self.auth_rejected,
        }


def summarize(results: list[MatchResult]) -> dict[str, int]:
    return {
        "total": len(results),
        "found": sum(1 for r in results if r.outcome == FOUND),
        "notFound": sum(1 for r in results if r.outcome == NOT_FOUND),
        "errors": sum(1 for r in results if r.outcome == ERROR),
    }


@dataclass
class BatchReport:
    results: list[MatchResult] = field(default_factory=list)
    cancelled: bool = False
    auth_rejected: bool = False

    @property
    def summary(self) -> dict[str, int]:
        return summarize(self.results)

    def as_dict(self) -> dict[str, Any]:
        return {
            "success": not self.auth_rejected,
            "results": [result.as_dict() for result in self.results],
            **self.summary,
            "cancelled": self.cancelled,
            "authRejected": self.auth_rejected,
        }
