"""Pytest hooks and fixtures."""

import asyncio
import os
from typing import Any

import pytest

from icarebridge.runtime.base import GuestRuntime
from icarebridge.runtime.values import RawResult
from icarebridge.transport import ResourceTransport
from icarebridge.utils.exceptions import ResourceFetchError


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "guest_process: starts a real child interpreter (skipped when ICAREBRIDGE_NO_SUBPROCESS=1)",
    )


def pytest_collection_modifyitems(config, items):
    """Skip guest_process tests where spawning interpreters is not allowed."""
    if os.environ.get("ICAREBRIDGE_NO_SUBPROCESS") != "1":
        return
    skip = pytest.mark.skip(reason="Child interpreters disabled (ICAREBRIDGE_NO_SUBPROCESS=1)")
    for item in items:
        if "guest_process" in item.keywords:
            item.add_marker(skip)


class FakeRuntime(GuestRuntime):
    """In-memory guest: records files and statements, answers with ``result``."""

    def __init__(self, result: Any = None, ready: bool = True, delay: float = 0.0):
        self.result = result
        self.ready = ready
        self.delay = delay
        self.files: dict[str, bytes] = {}
        self.sources: list[str] = []
        self.installed: list[str] = []
        self.started = False
        self.closed = False
        self.active = 0
        self.max_active = 0

    @property
    def runtime_id(self) -> str:
        return "fake"

    @property
    def is_ready(self) -> bool:
        return self.ready and not self.closed

    async def start(self) -> None:
        self.started = True

    def write_file(self, name: str, data: bytes) -> None:
        self.files[name] = data

    async def run(self, source: str) -> RawResult:
        self.sources.append(source)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            return self.result(source) if callable(self.result) else self.result
        finally:
            self.active -= 1

    async def install_package(self, requirement: str) -> None:
        self.installed.append(requirement)

    async def close(self) -> None:
        self.closed = True


class FakeTransport(ResourceTransport):
    """Serves ``contents[uri]``; unknown URIs fail like an HTTP 404."""

    def __init__(self, contents: dict[str, bytes] | None = None, delays: dict[str, float] | None = None):
        self.contents = dict(contents or {})
        self.delays = dict(delays or {})
        self.fetched: list[str] = []
        self.closed = False

    async def fetch(self, uri: str) -> bytes:
        self.fetched.append(uri)
        delay = self.delays.get(uri, 0.0)
        if delay:
            await asyncio.sleep(delay)
        if uri not in self.contents:
            raise ResourceFetchError(uri, "HTTP 404", status_code=404)
        return self.contents[uri]

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()
