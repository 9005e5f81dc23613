"""Explicit success/failure values for remote and translator operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(Enum):
    """Classification the queue processor branches on."""
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    AUTH_EXPIRED = "auth_expired"
    RATE_LIMITED = "rate_limited"
    TRANSIENT_NETWORK = "transient_network"
    NOT_FOUND = "not_found"
    PERMANENT = "permanent"


# auth_expired only reaches callers once the client's single refresh failed.
RETRYABLE_KINDS = frozenset({
    ErrorKind.AUTH_EXPIRED,
    ErrorKind.RATE_LIMITED,
    ErrorKind.TRANSIENT_NETWORK,
})


@dataclass(frozen=True)
class SyncError:
    kind: ErrorKind
    message: str
    status_code: int | None = None
    details: Any = field(default=None, compare=False)

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: SyncError

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


def err(kind: ErrorKind, message: str, status_code: int | None = None, details: Any = None) -> Err:
    return Err(SyncError(kind, message, status_code, details))
