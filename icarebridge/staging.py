"""Stage remote resources into the guest filesystem before an invocation."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from icarebridge.encoding import local_name
from icarebridge.runtime.base import GuestRuntime
from icarebridge.transport import ResourceTransport
from icarebridge.utils.exceptions import (
    ResourceFetchError,
    RuntimeNotReadyError,
    ValidationError,
    sanitize_error_message,
)


@dataclass(frozen=True)
class ResourceReference:
    """A remote file the guest will read, stored under the URI's final path segment."""
    uri: str

    @property
    def local_name(self) -> str:
        return local_name(self.uri)

    @classmethod
    def from_uri(cls, uri: str) -> ResourceReference:
        uri = (uri or "").strip()
        if not uri:
            raise ValidationError("Resource URI is empty", field="uri")
        ref = cls(uri)
        if not ref.local_name or ref.local_name in (".", ".."):
            raise ValidationError(f"Resource URI has no file name: {uri}", field="uri")
        return ref


class StageStatus(str, Enum):
    STAGED = "staged"
    FETCH_FAILED = "fetch_failed"


@dataclass(frozen=True)
class StagingOutcome:
    reference: ResourceReference
    status: StageStatus
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is StageStatus.STAGED

    def to_dict(self) -> dict[str, object]:
        return {
            "uri": self.reference.uri,
            "localName": self.reference.local_name,
            "isError": not self.ok,
            "message": self.reason or f"File {self.reference.local_name} successfully loaded to the guest filesystem.",
        }


class ResourceStager:
    """Fetches references concurrently and writes each into the guest filesystem."""

    def __init__(self, transport: ResourceTransport, runtime: GuestRuntime | None):
        self._transport = transport
        self._runtime = runtime

    async def stage(self, references: Iterable[ResourceReference]) -> list[StagingOutcome]:
        """Stage every distinct reference. Returns once all fetches resolved; failures are recorded, not raised."""
        if self._runtime is None:
            raise RuntimeNotReadyError()
        unique = list(dict.fromkeys(references))
        self._warn_collisions(unique)
        if not unique:
            return []
        return list(await asyncio.gather(*(self._stage_one(ref) for ref in unique)))

    async def _stage_one(self, ref: ResourceReference) -> StagingOutcome:
        try:
            content = await self._transport.fetch(ref.uri)
        except ResourceFetchError as e:
            reason = sanitize_error_message(e.message)
            logger.error("Failed to stage {}: {}", ref.local_name, reason)
            return StagingOutcome(ref, StageStatus.FETCH_FAILED, reason)
        assert self._runtime is not None
        self._runtime.write_file(ref.local_name, content)
        logger.info("File {} successfully loaded to the guest filesystem", ref.local_name)
        return StagingOutcome(ref, StageStatus.STAGED)

    @staticmethod
    def _warn_collisions(references: list[ResourceReference]) -> None:
        seen: dict[str, str] = {}
        for ref in references:
            previous = seen.setdefault(ref.local_name, ref.uri)
            if previous != ref.uri:
                logger.warning(
                    "{} and {} share the guest file name {}; the last one fetched wins",
                    sanitize_error_message(previous),
                    sanitize_error_message(ref.uri),
                    ref.local_name,
                )
