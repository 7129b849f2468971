"""Explicit outcome of a health query."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class QueryStatus(str, Enum):
    SUCCESS = "success"
    UNAUTHORIZED = "unauthorized"
    TRANSPORT_FAILURE = "transport_failure"


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    """Success with data, or one of two failure kinds with a reason.

    ``UNAUTHORIZED`` covers a store that refused the read or returned no
    result at all. ``TRANSPORT_FAILURE`` covers store errors and results of
    an unexpected shape.
    """

    status: QueryStatus
    data: T | None = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status is QueryStatus.SUCCESS

    @classmethod
    def success(cls, data: T) -> QueryResult[T]:
        return cls(QueryStatus.SUCCESS, data=data)

    @classmethod
    def unauthorized(cls, reason: str) -> QueryResult[T]:
        return cls(QueryStatus.UNAUTHORIZED, reason=reason)

    @classmethod
    def transport_failure(cls, reason: str) -> QueryResult[T]:
        return cls(QueryStatus.TRANSPORT_FAILURE, reason=reason)
