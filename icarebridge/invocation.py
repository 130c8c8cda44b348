"""Build guest invocation statements from typed parameter sets."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from icarebridge.encoding import NONE, EncodedValue, EncodingKind, MappingLiteral, encode
from icarebridge.operations import GuestParameter, Operation
from icarebridge.utils.exceptions import InvocationSchemaError

RESULT_NAME = "result"


@dataclass(frozen=True)
class InvocationRequest:
    """A guest call with every argument named and encoded."""
    operation: str
    function: str
    arguments: tuple[tuple[str, EncodedValue], ...]

    def argument(self, name: str) -> EncodedValue:
        for key, value in self.arguments:
            if key == name:
                return value
        raise KeyError(name)

    def render(self) -> str:
        """Statement assigning the call to ``result``, followed by ``result`` as the value."""
        lines = [f"{RESULT_NAME} = {self.function}("]
        lines.extend(f"    {name}={value.render()}," for name, value in self.arguments)
        lines.append(")")
        lines.append(RESULT_NAME)
        return "\n".join(lines)


class InvocationBuilder:
    """Maps a parameter set onto an operation's guest signature."""

    def __init__(self, guest_module: str = "icare"):
        self.guest_module = guest_module

    def build(self, operation: Operation, params: BaseModel | Mapping[str, Any] | None = None) -> InvocationRequest:
        parsed = operation.parse(params)
        arguments = tuple(
            (p.guest_name, self._encode(p, getattr(parsed, p.field)))
            for p in _checked_signature(operation.name, operation.signature, parsed)
        )
        function = f"{self.guest_module}.{operation.guest_function}" if self.guest_module else operation.guest_function
        return InvocationRequest(operation=operation.name, function=function, arguments=arguments)

    def _encode(self, param: GuestParameter, value: Any) -> EncodedValue:
        if param.nested is None:
            return encode(value, param.kind)
        if value is None:
            return NONE
        return MappingLiteral(
            tuple(
                (p.guest_name, self._encode(p, getattr(value, p.field)))
                for p in _checked_signature(param.field, param.nested, value)
            )
        )


def resource_uris(operation: Operation, params: BaseModel) -> list[str]:
    """Every supplied resource URI, nested parameter sets included, deduplicated in order."""
    return list(dict.fromkeys(_iter_uris(operation.signature, params)))


def _iter_uris(signature: tuple[GuestParameter, ...], params: BaseModel) -> Iterator[str]:
    for p in signature:
        value = getattr(params, p.field)
        if not value:
            continue
        if p.nested is not None:
            yield from _iter_uris(p.nested, value)
        elif p.kind is EncodingKind.RESOURCE_PATH:
            yield value


def _checked_signature(
    name: str, signature: tuple[GuestParameter, ...], params: BaseModel
) -> tuple[GuestParameter, ...]:
    declared = [p.field for p in signature]
    fields = list(type(params).model_fields)
    missing = [f for f in fields if f not in declared]
    unknown = [f for f in declared if f not in fields]
    if missing or unknown or len(set(declared)) != len(declared):
        raise InvocationSchemaError(name, missing, unknown)
    return signature
