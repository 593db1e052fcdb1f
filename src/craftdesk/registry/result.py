"""Lookup results that keep the reason a lookup came back empty."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class LookupStatus(str, Enum):
    """Outcome of a registry lookup."""

    OK = "ok"
    NOT_FOUND = "not_found"
    REQUEST_FAILED = "request_failed"


@dataclass(frozen=True)
class LookupResult(Generic[T]):
    """
    Result of a registry lookup.

    Attributes:
        status: Outcome kind.
        value: Parsed payload when status is OK.
        error: Human-readable failure reason otherwise.
    """

    status: LookupStatus
    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == LookupStatus.OK

    @property
    def not_found(self) -> bool:
        return self.status == LookupStatus.NOT_FOUND

    @classmethod
    def success(cls, value: T) -> LookupResult[T]:
        return cls(status=LookupStatus.OK, value=value)

    @classmethod
    def missing(cls, error: str) -> LookupResult[T]:
        return cls(status=LookupStatus.NOT_FOUND, error=error)

    @classmethod
    def failed(cls, error: str) -> LookupResult[T]:
        return cls(status=LookupStatus.REQUEST_FAILED, error=error)
