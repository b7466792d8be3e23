"""
Operation Launcher - register a record and start its background consumer.

``start`` returns as soon as the record is registered and the consumer task
is created; the caller hands the identifier to a client and the client
polls, streams or cancels from there.

ARCHITECTURE
────────────
::

    start(kind, subject, source_factory, decoder_factory)
      ├── registry.put(STARTING record)
      ├── hub.publish(start)
      └── loop.create_task(_consume)           ──► returns the record
                │
                ├── call_later(nudge_seconds) ─ "Connecting to registry..."
                ├── await source.open()       ─ LaunchFailure → ERROR
                ├── async for chunk:          ─ adapter.feed(chunk)
                │       feed() False          ─ cancelled: terminate, stop
                ├── adapter.finish()          ─ COMPLETED
                │   StreamFailure             ─ adapter.fail() → ERROR
                └── reaper.schedule_for(phase)

    stop(op_id)  ─ source.terminate() + task.cancel(), both best effort

Tags:
    dockboard, tracker, asyncio, background-task
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from dockboard.core.errors import LaunchFailure, StreamFailure
from dockboard.core.logging import LogContext, get_logger
from dockboard.tracker.adapter import Decoder, JsonLinesDecoder, StreamAdapter
from dockboard.tracker.events import EventHub, OperationEvent
from dockboard.tracker.models import OperationKind, OperationPhase, OperationStatus
from dockboard.tracker.reaper import Reaper
from dockboard.tracker.registry import OperationRegistry
from dockboard.tracker.sources import OperationSource

logger = get_logger(__name__)

SourceFactory = Callable[[], OperationSource]
DecoderFactory = Callable[[], Decoder]


class OperationLauncher:
    """Owns one consumer task per live operation."""

    def __init__(
        self,
        registry: OperationRegistry,
        hub: EventHub,
        reaper: Reaper,
        *,
        nudge_seconds: float = 2.0,
        progress_ceiling: int = 99,
    ) -> None:
        self._registry = registry
        self._hub = hub
        self._reaper = reaper
        self._nudge_seconds = nudge_seconds
        self._progress_ceiling = progress_ceiling
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._sources: dict[str, OperationSource] = {}

    def start(
        self,
        kind: OperationKind,
        subject: str,
        source_factory: SourceFactory,
        *,
        action: str | None = None,
        decoder_factory: DecoderFactory = JsonLinesDecoder,
        nudge_detail: str = "",
    ) -> OperationStatus:
        """Register a ``STARTING`` record and start consuming in the background.

        Must be called with a running event loop.
        """
        loop = asyncio.get_running_loop()
        status = OperationStatus.starting(kind, subject, action=action)
        self._registry.put(status)
        logger.info(
            "operation_registered",
            operation_id=status.id,
            kind=kind.value,
            subject=subject,
            action=action,
        )
        self._hub.publish(OperationEvent.start(status))

        source = source_factory()
        adapter = StreamAdapter(
            self._registry,
            self._hub,
            status.id,
            decoder_factory(),
            progress_ceiling=self._progress_ceiling,
        )
        self._sources[status.id] = source
        task = loop.create_task(
            self._consume(status, source, adapter, nudge_detail),
            name=f"operation:{status.id}",
        )
        self._tasks[status.id] = task
        task.add_done_callback(lambda _t, op_id=status.id: self._forget(op_id))
        return status

    def stop(self, op_id: str) -> None:
        """Ask a running operation's source to stop and cancel its task."""
        source = self._sources.get(op_id)
        if source is not None:
            source.terminate()
        task = self._tasks.get(op_id)
        if task is not None and not task.done():
            task.cancel()

    def is_active(self, op_id: str) -> bool:
        task = self._tasks.get(op_id)
        return task is not None and not task.done()

    @property
    def active_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def wait(self, op_id: str) -> None:
        """Wait for an operation's consumer to finish (no-op if none)."""
        task = self._tasks.get(op_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel every consumer and wait for their sources to close."""
        tasks = list(self._tasks.values())
        for op_id in list(self._tasks):
            self.stop(op_id)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ── Consumer ─────────────────────────────────────────────────────

    async def _consume(
        self,
        status: OperationStatus,
        source: OperationSource,
        adapter: StreamAdapter,
        nudge_detail: str,
    ) -> None:
        loop = asyncio.get_running_loop()
        nudge = None
        if nudge_detail:
            nudge = loop.call_later(self._nudge_seconds, self._nudge, status.id, nudge_detail)

        async with LogContext(operation_id=status.id, subject=status.subject):
            try:
                final = await self._drive(source, adapter)
            finally:
                if nudge is not None:
                    nudge.cancel()
                await self._close(source, status.id)
            if final is not None and final.is_terminal:
                self._reaper.schedule_for(status.id, final.phase)

    async def _drive(self, source: OperationSource, adapter: StreamAdapter) -> OperationStatus | None:
        try:
            await source.open()
        except LaunchFailure as exc:
            return adapter.fail(exc)

        try:
            async for chunk in source.chunks():
                if not adapter.feed(chunk):
                    source.terminate()
                    return self._registry.get(adapter.op_id)
            return adapter.finish()
        except StreamFailure as exc:
            source.terminate()
            return adapter.fail(exc)
        except Exception as exc:
            logger.exception("operation_consumer_crashed", operation_id=adapter.op_id)
            return adapter.fail(StreamFailure(f"Unexpected stream error: {exc}", cause=exc))

    async def _close(self, source: OperationSource, op_id: str) -> None:
        try:
            await source.aclose()
        except Exception as exc:  # noqa: BLE001
            logger.warning("source_close_failed", operation_id=op_id, error=str(exc))

    def _nudge(self, op_id: str, detail: str) -> None:
        def _hint(current: OperationStatus) -> OperationStatus:
            if current.phase != OperationPhase.STARTING:
                return current
            return current.advance(detail=detail)

        status = self._registry.update(op_id, _hint)
        if status is not None and status.phase == OperationPhase.STARTING and status.detail == detail:
            self._hub.publish(OperationEvent.output(status))

    def _forget(self, op_id: str) -> None:
        self._tasks.pop(op_id, None)
        self._sources.pop(op_id, None)
