"""Explicit outcome types returned by the session service."""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Expected failure categories of session operations."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    AUTHENTICATION_FAILED = "authentication_failed"
    TOKEN_EXPIRED = "token_expired"
    VALIDATION_FAILED = "validation_failed"
    UPDATE_FAILED = "update_failed"


class ConfigurationError(RuntimeError):
    """Unrecoverable misconfiguration detected at startup."""


@dataclass(frozen=True)
class ServiceError:
    """A categorized, user-presentable failure."""

    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """Either a value or a ServiceError, never both.

    Callers check ``ok`` before reading ``value``; expected failures such as
    unknown users or expired refresh tokens are reported here instead of
    being raised.
    """

    value: Optional[T] = None
    error: Optional[ServiceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "ServiceResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "ServiceResult[T]":
        return cls(error=ServiceError(kind=kind, message=message))
