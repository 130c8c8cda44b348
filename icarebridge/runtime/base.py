"""Abstract interface for the embedded guest runtime."""

from __future__ import annotations

from abc import ABC, abstractmethod

from icarebridge.runtime.values import RawResult


class GuestRuntime(ABC):
    """
    Adapter for an embedded interpreter that hosts the statistical package.
    Exposes a private filesystem (write_file), single-statement execution (run)
    and package installation used once during bootstrap.
    """

    @property
    @abstractmethod
    def runtime_id(self) -> str:
        """Unique runtime identifier, e.g. 'subprocess'."""

    @property
    def is_ready(self) -> bool:
        """True once the runtime can accept statements."""
        return True

    async def start(self) -> None:
        """Bring the runtime up. No-op for runtimes that are always ready."""

    @abstractmethod
    def write_file(self, name: str, data: bytes) -> None:
        """Write ``data`` into the guest filesystem under the plain file name ``name``."""

    @abstractmethod
    async def run(self, source: str) -> RawResult:
        """
        Execute one statement block and return the value of its trailing expression.
        Guest exceptions come back as GuestError, never raised.
        """

    @abstractmethod
    async def install_package(self, requirement: str) -> None:
        """Install a package (pip requirement string) into the guest."""

    async def close(self) -> None:
        """Release the runtime."""
