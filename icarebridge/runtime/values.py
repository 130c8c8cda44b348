"""Values returned by a guest runtime (RawResult)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

MAP_TAG = "$map"
SEQ_TAG = "$seq"


@dataclass(frozen=True)
class GuestError:
    """Explicit error marker raised or returned by guest code."""
    message: str


@dataclass(frozen=True)
class GuestMap:
    """Guest associative structure; keys kept as the guest produced them."""
    items: tuple[tuple[Any, Any], ...] = ()

    def get(self, key: Any, default: Any = None) -> Any:
        for k, v in self.items:
            if k == key:
                return v
        return default

    def keys(self) -> list[Any]:
        return [k for k, _ in self.items]


@dataclass(frozen=True)
class GuestSequence:
    """Guest list, tuple or set."""
    items: tuple[Any, ...] = ()


RawResult = GuestError | GuestMap | GuestSequence | str | int | float | bool | None


def decode_tagged(value: Any) -> Any:
    """Rebuild guest composites from the tagged JSON wire form."""
    if isinstance(value, dict):
        if MAP_TAG in value:
            return GuestMap(tuple((decode_tagged(k), decode_tagged(v)) for k, v in value[MAP_TAG]))
        if SEQ_TAG in value:
            return GuestSequence(tuple(decode_tagged(v) for v in value[SEQ_TAG]))
        return GuestMap(tuple((k, decode_tagged(v)) for k, v in value.items()))
    if isinstance(value, list):
        return GuestSequence(tuple(decode_tagged(v) for v in value))
    return value


def error_message(raw: Any) -> str | None:
    """Return the guest error message if ``raw`` carries an error marker."""
    if isinstance(raw, GuestError):
        return raw.message
    if isinstance(raw, GuestMap) and raw.get("isError"):
        message = raw.get("message")
        return str(message) if message is not None else "Unknown guest error"
    return None
