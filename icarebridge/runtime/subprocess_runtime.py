"""Guest runtime backed by a private child Python interpreter."""

from __future__ import annotations

import asyncio
import json
import shutil
import sys
import tempfile
from pathlib import Path

from loguru import logger

from icarebridge.runtime.base import GuestRuntime
from icarebridge.runtime.values import GuestError, RawResult, decode_tagged
from icarebridge.utils.exceptions import GuestRuntimeError, RuntimeNotReadyError, ValidationError

_GUEST_LOOP = Path(__file__).with_name("guest_main.py")


async def _read_line(reader: asyncio.StreamReader) -> bytes | None:
    """
    Read one newline-terminated line (b"" at EOF).

    A line longer than the reader's limit is consumed whole and reported as None,
    so the stream stays aligned on line boundaries.
    """
    overrun = False
    while True:
        try:
            line = await reader.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            return None if overrun else e.partial
        except asyncio.LimitOverrunError as e:
            overrun = True
            await reader.readexactly(e.consumed)
            continue
        return None if overrun else line


class SubprocessRuntime(GuestRuntime):
    """
    Runs guest statements in a long-lived ``python -c`` child whose working
    directory is a private workspace; that directory is the guest filesystem.
    Only one statement executes at a time.
    """

    def __init__(
        self,
        python: str = "",
        workspace: str | Path | None = None,
        start_timeout: float = 30.0,
        install_timeout: float = 600.0,
        max_message_bytes: int = 64 * 1024 * 1024,
    ):
        self._python = (python or "").strip() or sys.executable
        self._workspace = Path(workspace).expanduser() if workspace else None
        self._owns_workspace = False
        self._start_timeout = start_timeout
        self._install_timeout = install_timeout
        self._max_message_bytes = max_message_bytes
        self._proc: asyncio.subprocess.Process | None = None
        self._stderr_task: asyncio.Task | None = None
        self._lock = asyncio.Lock()
        # Replies arrive in request order; ids let replies of abandoned calls be skipped
        self._last_request_id = 0
        self._last_reply_id = 0

    @property
    def runtime_id(self) -> str:
        return "subprocess"

    @property
    def workspace(self) -> Path | None:
        return self._workspace

    @property
    def is_ready(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    async def start(self) -> None:
        if self.is_ready:
            return
        if self._workspace is None:
            self._workspace = Path(tempfile.mkdtemp(prefix="icarebridge-"))
            self._owns_workspace = True
        else:
            self._workspace.mkdir(parents=True, exist_ok=True)
        source = _GUEST_LOOP.read_text(encoding="utf-8")
        try:
            self._proc = await asyncio.wait_for(
                asyncio.create_subprocess_exec(
                    self._python,
                    "-u",
                    "-c",
                    source,
                    cwd=str(self._workspace),
                    stdin=asyncio.subprocess.PIPE,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    limit=self._max_message_bytes,
                ),
                timeout=self._start_timeout,
            )
        except FileNotFoundError as e:
            raise GuestRuntimeError(f"Guest interpreter not found: {self._python}", self.runtime_id) from e
        except asyncio.TimeoutError as e:
            raise GuestRuntimeError(
                f"Guest interpreter did not start within {self._start_timeout} seconds", self.runtime_id
            ) from e
        self._last_request_id = self._last_reply_id = 0
        self._stderr_task = asyncio.create_task(self._drain_stderr())
        logger.info("Guest interpreter started (pid {}, workspace {})", self._proc.pid, self._workspace)

    async def _drain_stderr(self) -> None:
        assert self._proc is not None and self._proc.stderr is not None
        while True:
            line = await _read_line(self._proc.stderr)
            if line is None:
                logger.warning("guest: discarded an output line over {} bytes", self._max_message_bytes)
                continue
            if not line:
                break
            logger.debug("guest: {}", line.decode("utf-8", errors="replace").rstrip())

    def write_file(self, name: str, data: bytes) -> None:
        if self._workspace is None:
            raise RuntimeNotReadyError("Guest filesystem is not available before start()")
        if not name or name in (".", "..") or Path(name).name != name or "\\" in name:
            raise ValidationError(f"Invalid guest file name: {name!r}", field="name")
        (self._workspace / name).write_bytes(data)

    async def run(self, source: str) -> RawResult:
        if not self.is_ready:
            raise RuntimeNotReadyError()
        assert self._proc is not None and self._proc.stdin is not None and self._proc.stdout is not None
        async with self._lock:
            self._last_request_id += 1
            request_id = self._last_request_id
            request = json.dumps({"id": request_id, "source": source}) + "\n"
            try:
                self._proc.stdin.write(request.encode("utf-8"))
                await self._proc.stdin.drain()
            except (BrokenPipeError, ConnectionResetError) as e:
                raise GuestRuntimeError("Guest interpreter exited unexpectedly", self.runtime_id) from e
            reply = await self._read_reply(request_id)
        if not reply.get("ok"):
            return GuestError(str(reply.get("error") or "Unknown guest error"))
        return decode_tagged(reply.get("value"))

    async def _read_reply(self, request_id: int) -> dict:
        """Read replies until the one for ``request_id``; earlier ones belong to cancelled calls."""
        assert self._proc is not None and self._proc.stdout is not None
        while True:
            line = await _read_line(self._proc.stdout)
            if line == b"":
                raise GuestRuntimeError("Guest interpreter exited unexpectedly", self.runtime_id)
            self._last_reply_id += 1
            reply_id = self._last_reply_id
            if reply_id < request_id:
                logger.debug("Discarding reply {} of an abandoned guest call", reply_id)
                continue
            if line is None:
                raise GuestRuntimeError(f"Guest reply exceeded {self._max_message_bytes} bytes", self.runtime_id)
            try:
                reply = json.loads(line)
            except json.JSONDecodeError as e:
                raise GuestRuntimeError(f"Malformed guest reply: {e}", self.runtime_id) from e
            if not isinstance(reply, dict) or reply.get("id") != request_id:
                raise GuestRuntimeError(
                    f"Guest reply out of sequence (expected {request_id})", self.runtime_id
                )
            return reply

    async def install_package(self, requirement: str) -> None:
        requirement = (requirement or "").strip()
        if not requirement:
            raise ValidationError("requirement is required", field="requirement")
        logger.info("Installing {} into guest interpreter {}", requirement, self._python)
        try:
            proc = await asyncio.create_subprocess_exec(
                self._python,
                "-m",
                "pip",
                "install",
                requirement,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError as e:
            raise GuestRuntimeError(f"Guest interpreter not found: {self._python}", self.runtime_id) from e
        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self._install_timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise GuestRuntimeError(
                f"Installing {requirement} timed out after {self._install_timeout} seconds", self.runtime_id
            ) from e
        if proc.returncode != 0:
            out = stdout.decode("utf-8", errors="replace").strip()
            raise GuestRuntimeError(f"Failed to install {requirement}: {out[-2000:]}", self.runtime_id)

    async def close(self) -> None:
        proc, self._proc = self._proc, None
        if proc is not None and proc.returncode is None:
            if proc.stdin is not None:
                proc.stdin.close()
            try:
                await asyncio.wait_for(proc.wait(), timeout=5.0)
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()
        if self._stderr_task is not None:
            await self._stderr_task
            self._stderr_task = None
        if self._owns_workspace and self._workspace is not None:
            shutil.rmtree(self._workspace, ignore_errors=True)
            self._workspace = None
            self._owns_workspace = False
        logger.debug("Guest interpreter closed")
