"""Embedded guest runtime: interface, value model, and subprocess backend."""

from icarebridge.runtime.base import GuestRuntime
from icarebridge.runtime.subprocess_runtime import SubprocessRuntime
from icarebridge.runtime.values import GuestError, GuestMap, GuestSequence, RawResult, decode_tagged, error_message

__all__ = [
    "GuestError",
    "GuestMap",
    "GuestRuntime",
    "GuestSequence",
    "RawResult",
    "SubprocessRuntime",
    "decode_tagged",
    "error_message",
]
