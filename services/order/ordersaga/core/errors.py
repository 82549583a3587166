"""
Typed failures returned by the order coordinator.

Expected failures (bad input, missing entities, business rules, store outages
after a reservation) travel as ``Result`` values instead of exceptions; the API
layer maps ``ErrorKind`` onto HTTP status codes.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    BUSINESS_RULE = "BUSINESS_RULE"
    INTERNAL = "INTERNAL"

@dataclass(frozen=True)
class AppError:
    kind: ErrorKind
    message: str
    details: Optional[str] = None

    @classmethod
    def validation(cls, message: str, details: Optional[str] = None) -> "AppError":
        return cls(ErrorKind.VALIDATION, message, details)

    @classmethod
    def not_found(cls, message: str, details: Optional[str] = None) -> "AppError":
        return cls(ErrorKind.NOT_FOUND, message, details)

    @classmethod
    def business_rule(cls, message: str, details: Optional[str] = None) -> "AppError":
        return cls(ErrorKind.BUSINESS_RULE, message, details)

    @classmethod
    def internal(cls, message: str = "Internal error", details: Optional[str] = None) -> "AppError":
        return cls(ErrorKind.INTERNAL, message, details)

    def __str__(self) -> str:
        text = f"{self.kind.value}: {self.message}"
        return f"{text} - {self.details}" if self.details else text

@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[AppError] = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, error: AppError) -> "Result[T]":
        return cls(error=error)

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    def unwrap(self) -> T:
        if self.error is not None:
            raise ValueError(f"unwrap() on failed result: {self.error}")
        return self.value
