"""Convert guest results into plain JSON-compatible host data."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from icarebridge.runtime.values import GuestMap, GuestSequence
from icarebridge.utils.exceptions import ResultFormatError


class ResultNormalizer:
    """Total structural recursion: maps -> dict, sequences -> list, leaves unchanged."""

    def normalize(self, value: Any) -> Any:
        if isinstance(value, GuestMap):
            return {key: self.normalize(item) for key, item in value.items}
        if isinstance(value, GuestSequence):
            return [self.normalize(item) for item in value.items]
        if isinstance(value, Mapping):
            return {key: self.normalize(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self.normalize(item) for item in value]
        return value


def parse_json_fields(result: Any, fields: Iterable[str]) -> Any:
    """Replace designated JSON-text fields of a normalized mapping with their parsed value, in place."""
    if not isinstance(result, dict):
        return result
    for field in fields:
        text = result.get(field)
        if not isinstance(text, str):
            continue
        try:
            result[field] = json.loads(text)
        except json.JSONDecodeError as e:
            raise ResultFormatError(field, str(e)) from e
    return result
