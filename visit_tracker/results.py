"""
Explicit success/failure values returned by the ingestion and pagination
operations, so callers have to look at the failure path before using a value.
"""

import enum
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(enum.Enum):
    INVALID_ARGUMENT = "invalid_argument"  # Caller-recoverable, message is safe to show
    INTERNAL = "internal"  # Storage or infrastructure failure, message stays server-side


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, message: str, kind: ErrorKind = ErrorKind.INVALID_ARGUMENT) -> "Result[T]":
        return cls(error=message, kind=kind)

    @property
    def ok(self) -> bool:
        return self.kind is None

    @property
    def is_invalid_argument(self) -> bool:
        return self.kind is ErrorKind.INVALID_ARGUMENT

    def unwrap(self) -> T:
        """Return the value, raising ValueError if this result is a failure."""
        if not self.ok:
            raise ValueError(f"Called unwrap() on a failed result ({self.kind.value}): {self.error}")
        return self.value
