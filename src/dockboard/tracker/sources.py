"""
Operation sources - the byte streams an operation consumes.

A source is opened once, iterated once, and can be asked to stop at any
time. Two concrete sources exist:

- ``PullSource``: the Engine API's chunked ``POST /images/create`` response
  (newline-delimited JSON progress records).
- ``ProcessSource``: a ``docker compose`` subprocess with stderr merged into
  stdout; a non-zero exit code is a stream failure.

Lifecycle::

    source = factory()
    await source.open()          # LaunchFailure if it cannot start
    async for chunk in source.chunks():
        ...                      # StreamFailure if it breaks mid-way
    source.terminate()           # best effort, never blocks, never raises
    await source.aclose()        # release transport / reap the child

Tags:
    dockboard, tracker, subprocess, httpx, streaming
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import httpx

from dockboard.core.errors import DockboardError, LaunchFailure, StreamFailure
from dockboard.core.logging import get_logger

if TYPE_CHECKING:
    from dockboard.runtime.client import EngineClient

logger = get_logger(__name__)

READ_SIZE = 4096


@runtime_checkable
class OperationSource(Protocol):
    """What the launcher needs from a stream producer."""

    async def open(self) -> None: ...

    def chunks(self) -> AsyncIterator[bytes]: ...

    def terminate(self) -> None: ...

    async def aclose(self) -> None: ...


class PullSource:
    """Registry pull through the Engine API."""

    def __init__(self, engine: EngineClient, image: str) -> None:
        self._engine = engine
        self.image = image
        self._response: httpx.Response | None = None
        self._terminated = False

    async def open(self) -> None:
        try:
            self._response = await self._engine.open_pull(self.image)
        except DockboardError as exc:
            raise LaunchFailure(exc.message, details={"image": self.image}, cause=exc) from exc

    async def chunks(self) -> AsyncIterator[bytes]:
        if self._response is None:
            raise StreamFailure("Pull stream was not opened")
        try:
            async for chunk in self._response.aiter_bytes():
                if self._terminated:
                    return
                yield chunk
        except httpx.HTTPError as exc:
            if self._terminated:
                return
            raise StreamFailure(f"Pull stream interrupted: {exc}", cause=exc) from exc

    def terminate(self) -> None:
        self._terminated = True

    async def aclose(self) -> None:
        if self._response is not None:
            await self._response.aclose()


class ProcessSource:
    """Subprocess whose merged stdout/stderr is the stream."""

    def __init__(
        self,
        command: Sequence[str],
        *,
        cwd: Path | str | None = None,
        kill_timeout: float = 5.0,
    ) -> None:
        self.command = list(command)
        self._cwd = str(cwd) if cwd is not None else None
        self._kill_timeout = kill_timeout
        self._process: asyncio.subprocess.Process | None = None
        self._terminated = False

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process else None

    async def open(self) -> None:
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                stdin=asyncio.subprocess.DEVNULL,
                cwd=self._cwd,
            )
        except FileNotFoundError as exc:
            raise LaunchFailure(f"Command not found: {self.command[0]}", cause=exc) from exc
        except OSError as exc:
            raise LaunchFailure(f"Failed to start process: {exc}", cause=exc) from exc
        logger.debug("process_started", command=self.command, pid=self._process.pid)

    async def chunks(self) -> AsyncIterator[bytes]:
        if self._process is None or self._process.stdout is None:
            raise StreamFailure("Process was not started")
        while True:
            data = await self._process.stdout.read(READ_SIZE)
            if not data:
                break
            yield data

        code = await self._process.wait()
        if code != 0 and not self._terminated:
            raise StreamFailure(
                f"{' '.join(self.command)} exited with code {code}",
                details={"exit_code": code},
            )

    def terminate(self) -> None:
        self._terminated = True
        if self._process is None or self._process.returncode is not None:
            return
        try:
            self._process.terminate()
        except ProcessLookupError:
            pass  # already exited

    async def aclose(self) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return
        try:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=self._kill_timeout)
            except TimeoutError:
                process.kill()
                await process.wait()
        except ProcessLookupError:
            pass  # already exited
