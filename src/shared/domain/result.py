"""
Result type for domain operations
Represents success or failure without raising, so callers can branch on it
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    def is_success(self) -> bool:
        return True

    def is_failure(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure(Generic[E]):
    """
    Failed outcome carrying the error.

    The error is usually a DomainError instance, which lets the application
    boundary re-raise it unchanged via ``unwrap()``.
    """

    error: E

    def is_success(self) -> bool:
        return False

    def is_failure(self) -> bool:
        return True

    def unwrap(self) -> Any:
        if isinstance(self.error, BaseException):
            raise self.error
        raise ValueError(f"Attempted to unwrap a Failure: {self.error}")


Result = Union[Success[T], Failure[E]]
