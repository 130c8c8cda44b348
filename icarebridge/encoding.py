"""Host value -> guest literal encoding.

Every host value reachable from a public operation renders to exactly one
Python literal expression. Absence always renders as ``None`` so the guest
call still receives every named argument.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import unquote, urlsplit

from pydantic import BaseModel

from icarebridge.utils.exceptions import EncodingError


class EncodingKind(str, Enum):
    """How a parameter value is turned into a guest literal."""
    PLAIN = "plain"
    RESOURCE_PATH = "resourcePath"
    QUOTED_STRING = "quotedString"


class EncodedValue(ABC):
    """A guest-language literal expression."""

    @abstractmethod
    def render(self) -> str:
        """Guest source text for this value."""


@dataclass(frozen=True)
class NoneLiteral(EncodedValue):
    def render(self) -> str:
        return "None"


@dataclass(frozen=True)
class BoolLiteral(EncodedValue):
    value: bool

    def render(self) -> str:
        return "True" if self.value else "False"


@dataclass(frozen=True)
class NumberLiteral(EncodedValue):
    value: int | float

    def render(self) -> str:
        if isinstance(self.value, float):
            if math.isnan(self.value):
                return "float('nan')"
            if math.isinf(self.value):
                return "float('inf')" if self.value > 0 else "float('-inf')"
        return repr(self.value)


@dataclass(frozen=True)
class StringLiteral(EncodedValue):
    value: str

    def render(self) -> str:
        # repr() is always a valid, fully escaped Python string literal
        return repr(self.value)


@dataclass(frozen=True)
class LocalNameLiteral(EncodedValue):
    """Quoted guest filesystem name derived from a resource URI."""
    uri: str

    @property
    def name(self) -> str:
        return local_name(self.uri)

    def render(self) -> str:
        return repr(self.name)


@dataclass(frozen=True)
class SequenceLiteral(EncodedValue):
    items: tuple[EncodedValue, ...]

    def render(self) -> str:
        return "[" + ", ".join(item.render() for item in self.items) + "]"


@dataclass(frozen=True)
class MappingLiteral(EncodedValue):
    items: tuple[tuple[str, EncodedValue], ...]

    def render(self) -> str:
        return "{" + ", ".join(f"{key!r}: {value.render()}" for key, value in self.items) + "}"

    def get(self, key: str) -> EncodedValue | None:
        for k, v in self.items:
            if k == key:
                return v
        return None


NONE = NoneLiteral()


def local_name(uri: str) -> str:
    """Final path segment of a URI (query and fragment dropped, %-escapes decoded)."""
    try:
        path = urlsplit(uri).path
    except ValueError:
        # Malformed authority (unclosed IPv6 bracket); take the path from the raw text
        path = uri.split("#", 1)[0].split("?", 1)[0]
    return unquote(path.rsplit("/", 1)[-1])


def encode(value: Any, kind: EncodingKind = EncodingKind.PLAIN) -> EncodedValue:
    """Encode a host value for the given parameter kind."""
    if kind is EncodingKind.RESOURCE_PATH:
        return LocalNameLiteral(value) if value else NONE
    if kind is EncodingKind.QUOTED_STRING:
        if value is None or value == "":
            return NONE
        return StringLiteral(value if isinstance(value, str) else str(value))
    return _encode_plain(value)


def _encode_plain(value: Any) -> EncodedValue:
    if value is None:
        return NONE
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return BoolLiteral(value)
    if isinstance(value, (int, float)):
        return NumberLiteral(value)
    if isinstance(value, str):
        return StringLiteral(value)
    if isinstance(value, BaseModel):
        return _encode_plain(value.model_dump())
    if isinstance(value, Mapping):
        return MappingLiteral(tuple((str(k), _encode_plain(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return SequenceLiteral(tuple(_encode_plain(item) for item in value))
    raise EncodingError(value)
