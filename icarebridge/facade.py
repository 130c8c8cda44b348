"""Public operations: stage inputs, invoke the guest, normalize the result.

In the overall architecture this is the single entry point callers use; it
composes the stager, invocation builder and normalizer around one guest runtime.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Mapping
from typing import Any

from loguru import logger
from pydantic import BaseModel

from icarebridge.invocation import InvocationBuilder, resource_uris
from icarebridge.normalize import ResultNormalizer, parse_json_fields
from icarebridge.operations import (
    COMPUTE_ABSOLUTE_RISK,
    COMPUTE_ABSOLUTE_RISK_SPLIT_INTERVAL,
    VALIDATE_ABSOLUTE_RISK_MODEL,
    Operation,
)
from icarebridge.runtime.base import GuestRuntime
from icarebridge.runtime.values import error_message
from icarebridge.staging import ResourceReference, ResourceStager, StagingOutcome
from icarebridge.transport import HttpTransport, ResourceTransport
from icarebridge.utils.exceptions import GuestComputationError, RuntimeNotReadyError

Params = BaseModel | Mapping[str, Any] | None


class OperationFacade:
    """Runs one public operation: NotReady -> ResourcesStaged -> Invoked -> Succeeded | Failed."""

    def __init__(
        self,
        operation: Operation,
        runtime: GuestRuntime | None,
        stager: ResourceStager,
        builder: InvocationBuilder,
        normalizer: ResultNormalizer | None = None,
        lock: asyncio.Lock | None = None,
    ):
        self.operation = operation
        self._runtime = runtime
        self._stager = stager
        self._builder = builder
        self._normalizer = normalizer or ResultNormalizer()
        self._lock = lock
        self.last_staging: list[StagingOutcome] = []

    async def __call__(self, params: Params = None, **fields: Any) -> Any:
        parsed = self.operation.parse(params, **fields)
        self.operation.check(parsed)
        async with self._lock if self._lock is not None else contextlib.nullcontext():
            return await self._invoke(parsed)

    async def _invoke(self, parsed: BaseModel) -> Any:
        runtime = self._runtime
        if runtime is None or not runtime.is_ready:
            raise RuntimeNotReadyError()

        references = [ResourceReference.from_uri(uri) for uri in resource_uris(self.operation, parsed)]
        self.last_staging = await self._stager.stage(references)
        failed = [o for o in self.last_staging if not o.ok]
        if failed:
            logger.warning(
                "{}: {} of {} resources could not be staged",
                self.operation.name,
                len(failed),
                len(self.last_staging),
            )

        request = self._builder.build(self.operation, parsed)
        logger.debug("Invoking {}", request.function)
        raw = await runtime.run(request.render())

        message = error_message(raw)
        if message is not None:
            logger.error("{} failed: {}", self.operation.name, message)
            raise GuestComputationError(message, operation=self.operation.name)

        result = self._normalizer.normalize(raw)
        return parse_json_fields(result, self.operation.json_fields)


class ICare:
    """
    Host-side handle on the statistical package running inside a guest runtime.
    Create it with ``load_icare()``; close it (or use ``async with``) when done.
    """

    def __init__(
        self,
        runtime: GuestRuntime | None,
        transport: ResourceTransport | None = None,
        *,
        guest_module: str = "icare",
        serialize_invocations: bool = True,
        version: str | None = None,
    ):
        self.runtime = runtime
        self.transport = transport or HttpTransport()
        self.version = version
        self._lock = asyncio.Lock() if serialize_invocations else None
        builder = InvocationBuilder(guest_module)
        normalizer = ResultNormalizer()
        stager = ResourceStager(self.transport, runtime)
        self._facades: dict[str, OperationFacade] = {
            operation.name: OperationFacade(operation, runtime, stager, builder, normalizer, lock=self._lock)
            for operation in (COMPUTE_ABSOLUTE_RISK, COMPUTE_ABSOLUTE_RISK_SPLIT_INTERVAL, VALIDATE_ABSOLUTE_RISK_MODEL)
        }

    def facade(self, name: str) -> OperationFacade:
        return self._facades[name]

    async def compute_absolute_risk(self, params: Params = None, **fields: Any) -> dict[str, Any]:
        """
        Build an absolute risk model and apply it to estimate absolute risks.

        Returns a dict with 'model' (feature -> beta), 'profile' (records of the input
        profiles with ages and risk estimates), 'reference_risks' when requested, and
        'method' ("iCARE - absolute risk").
        """
        return await self._facades[COMPUTE_ABSOLUTE_RISK.name](params, **fields)

    async def compute_absolute_risk_split_interval(self, params: Params = None, **fields: Any) -> dict[str, Any]:
        """
        Absolute risk with different model inputs before and after a cut-point age.

        Returns 'model' and 'reference_risks' split into 'before_cutpoint' /
        'after_cutpoint', the parsed 'profile', and 'method'.
        """
        return await self._facades[COMPUTE_ABSOLUTE_RISK_SPLIT_INTERVAL.name](params, **fields)

    async def validate_absolute_risk_model(self, params: Params = None, **fields: Any) -> dict[str, Any]:
        """Validate a model on study data: AUC, expected/observed ratio, calibration tables."""
        return await self._facades[VALIDATE_ABSOLUTE_RISK_MODEL.name](params, **fields)

    async def close(self) -> None:
        if self.runtime is not None:
            await self.runtime.close()
        await self.transport.aclose()

    async def __aenter__(self) -> ICare:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

