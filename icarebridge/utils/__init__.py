"""Utility functions for icarebridge."""

from icarebridge.utils.exceptions import (
    ErrorCategory,
    EncodingError,
    GuestComputationError,
    GuestRuntimeError,
    ICareBridgeError,
    InvocationSchemaError,
    ParameterConflictError,
    ResourceFetchError,
    ResultFormatError,
    RuntimeNotReadyError,
    ValidationError,
    sanitize_error_message,
)

__all__ = [
    "ErrorCategory",
    "EncodingError",
    "GuestComputationError",
    "GuestRuntimeError",
    "ICareBridgeError",
    "InvocationSchemaError",
    "ParameterConflictError",
    "ResourceFetchError",
    "ResultFormatError",
    "RuntimeNotReadyError",
    "ValidationError",
    "sanitize_error_message",
]
