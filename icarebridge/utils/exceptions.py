"""
Exception hierarchy for icarebridge.

Provides:
- Custom exception classes with error codes
- Error categorization (precondition, validation, resource, guest, fatal)
- Safe error message formatting (no credentials in logs)
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Error categories for classification."""
    PRECONDITION = "precondition"
    VALIDATION = "validation"
    RESOURCE = "resource"
    GUEST = "guest"
    FATAL = "fatal"


class ICareBridgeError(Exception):
    """Base exception for all icarebridge errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class RuntimeNotReadyError(ICareBridgeError):
    """The embedded runtime has not been loaded (or was closed)."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message or "iCARE runtime is not loaded. Initialize it with load_icare() first.",
            code="RUNTIME_NOT_READY",
            category=ErrorCategory.PRECONDITION,
        )


class ValidationError(ICareBridgeError):
    """Input validation error."""

    def __init__(self, message: str, field: str | None = None, code: str = "VALIDATION_ERROR"):
        details = {"field": field} if field else {}
        super().__init__(message, code=code, category=ErrorCategory.VALIDATION, details=details)
        self.field = field


class EncodingError(ValidationError):
    """A host value has no guest literal form."""

    def __init__(self, value: Any):
        super().__init__(
            f"Cannot encode value of type {type(value).__name__} as a guest literal",
            code="ENCODING_ERROR",
        )


class ParameterConflictError(ValidationError):
    """Two mutually exclusive parameters were both supplied."""

    def __init__(self, message: str, fields: list[str]):
        super().__init__(message, code="PARAMETER_CONFLICT")
        self.details = {"fields": fields}


class ResourceFetchError(ICareBridgeError):
    """A remote resource could not be fetched."""

    def __init__(self, uri: str, reason: str, status_code: int | None = None):
        super().__init__(
            f"Failed to fetch file from {uri}: {reason}",
            code="RESOURCE_FETCH_FAILED",
            category=ErrorCategory.RESOURCE,
            details={"uri": uri, "reason": reason, "status_code": status_code},
        )
        self.uri = uri
        self.reason = reason


class GuestComputationError(ICareBridgeError):
    """The guest returned an explicit error marker."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(
            message,
            code="GUEST_ERROR",
            category=ErrorCategory.GUEST,
            details={"operation": operation} if operation else {},
        )


class GuestRuntimeError(ICareBridgeError):
    """The guest interpreter itself failed (crashed, broken protocol, failed install)."""

    def __init__(self, message: str, runtime_id: str | None = None):
        super().__init__(
            message,
            code="GUEST_RUNTIME_ERROR",
            category=ErrorCategory.FATAL,
            details={"runtime": runtime_id} if runtime_id else {},
        )


class InvocationSchemaError(ICareBridgeError):
    """An operation signature does not match its parameter model."""

    def __init__(self, operation: str, missing: list[str], unknown: list[str]):
        super().__init__(
            f"Signature of '{operation}' does not match its parameters "
            f"(missing: {missing or '-'}, unknown: {unknown or '-'})",
            code="INVOCATION_SCHEMA_ERROR",
            category=ErrorCategory.FATAL,
            details={"operation": operation, "missing": missing, "unknown": unknown},
        )


class ResultFormatError(ICareBridgeError):
    """A result field documented as JSON text could not be parsed."""

    def __init__(self, field: str, reason: str):
        super().__init__(
            f"Result field '{field}' is not valid JSON: {reason}",
            code="RESULT_FORMAT_ERROR",
            category=ErrorCategory.GUEST,
            details={"field": field},
        )


_SENSITIVE_PATTERNS = [
    re.compile(r"(api[_-]?key|token|secret|password|auth|signature)[=:]\s*['\"]?([^\s'\"&]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"[a-zA-Z0-9]{32,}"),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove sensitive information (tokens in signed URLs, bearer headers) from messages."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized
