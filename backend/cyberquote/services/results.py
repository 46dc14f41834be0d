"""
Discriminated success/failure results for workflow operations.

Expected business-rule violations are returned, not raised, so callers can
render the message to the user directly.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar


T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    PRECONDITION = "precondition"
    NOT_FOUND = "not_found"


@dataclass
class OperationResult(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    code: str = ""
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, value: T, code: str = "ok", message: str = "") -> "OperationResult[T]":
        return cls(ok=True, value=value, code=code, message=message)

    @classmethod
    def failure(
        cls,
        error: ErrorKind,
        code: str,
        message: str,
        value: Optional[T] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> "OperationResult[T]":
        return cls(ok=False, value=value, error=error, code=code, message=message, details=details or {})

    @classmethod
    def not_found(cls, what: str) -> "OperationResult[T]":
        return cls.failure(ErrorKind.NOT_FOUND, f"{what}_not_found", f"{what.replace('_', ' ').capitalize()} not found")

    @classmethod
    def precondition(cls, code: str, message: str, value: Optional[T] = None) -> "OperationResult[T]":
        return cls.failure(ErrorKind.PRECONDITION, code, message, value=value)

    @classmethod
    def invalid(cls, code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "OperationResult[T]":
        return cls.failure(ErrorKind.VALIDATION, code, message, details=details)
