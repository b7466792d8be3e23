"""
OperationTracker - the one object the API and CLI talk to.

Wires a registry, an event hub, a reaper, a launcher and a cancellation
controller together and exposes the tracker's public operations::

    tracker = OperationTracker(settings, engine)
    status = tracker.start_pull("nginx:latest")          # STARTING, id ready
    tracker.status(status.id)                            # poll
    async for event in tracker.events(status.id): ...    # push
    tracker.cancel(status.id)                            # CancelResult
    await tracker.shutdown()

Everything here must run on the event loop thread; the API only calls it
from ``async def`` handlers.

Tags:
    dockboard, tracker, facade
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from dockboard.core.errors import ValidationFailed
from dockboard.core.logging import get_logger
from dockboard.core.settings import DockboardSettings
from dockboard.runtime.compose import build_compose_command
from dockboard.tracker.adapter import JsonLinesDecoder, TextLinesDecoder
from dockboard.tracker.cancellation import CancellationController, CancelResult
from dockboard.tracker.events import EventHub, OperationEvent
from dockboard.tracker.launcher import DecoderFactory, OperationLauncher, SourceFactory
from dockboard.tracker.models import OperationKind, OperationStatus
from dockboard.tracker.reaper import Reaper
from dockboard.tracker.registry import OperationRegistry
from dockboard.tracker.sources import ProcessSource, PullSource

if TYPE_CHECKING:
    from dockboard.runtime.client import EngineClient

logger = get_logger(__name__)

PULL_NUDGE = "Connecting to registry..."
COMPOSE_NUDGE = "Waiting for output..."


class OperationTracker:
    """Facade over the tracker components."""

    def __init__(
        self,
        settings: DockboardSettings,
        engine: EngineClient | None = None,
        *,
        registry: OperationRegistry | None = None,
        hub: EventHub | None = None,
    ) -> None:
        self.settings = settings
        self.engine = engine
        self.registry = registry or OperationRegistry()
        self.hub = hub or EventHub()
        self.reaper = Reaper(
            self.registry,
            completed_retention=settings.completed_retention_seconds,
            cancelled_retention=settings.cancelled_retention_seconds,
        )
        self.launcher = OperationLauncher(
            self.registry,
            self.hub,
            self.reaper,
            nudge_seconds=settings.starting_nudge_seconds,
            progress_ceiling=settings.progress_ceiling,
        )
        self.cancellation = CancellationController(
            self.registry, self.hub, self.reaper, self.launcher.stop
        )

    # ── Launch ───────────────────────────────────────────────────────

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
        return self.launcher.start(
            kind,
            subject,
            source_factory,
            action=action,
            decoder_factory=decoder_factory,
            nudge_detail=nudge_detail,
        )

    def start_pull(self, image: str) -> OperationStatus:
        """Begin pulling ``image`` from its registry."""
        image = (image or "").strip()
        if not image:
            raise ValidationFailed("Image name is required")
        if self.engine is None:
            raise ValidationFailed("No container runtime configured for pulls")
        engine = self.engine
        return self.start(
            OperationKind.PULL,
            image,
            lambda: PullSource(engine, image),
            decoder_factory=JsonLinesDecoder,
            nudge_detail=PULL_NUDGE,
        )

    def start_compose(self, profile: str, action: str) -> OperationStatus:
        """Run ``docker compose --profile <profile> <action>`` in the project root."""
        command = build_compose_command(self.settings, profile, action)
        cwd = self.settings.project_root
        return self.start(
            OperationKind.COMPOSE,
            profile,
            lambda: ProcessSource(command, cwd=cwd),
            action=action,
            decoder_factory=TextLinesDecoder,
            nudge_detail=COMPOSE_NUDGE,
        )

    # ── Query / control ──────────────────────────────────────────────

    def status(self, op_id: str) -> OperationStatus | None:
        return self.registry.get(op_id)

    def list(self) -> list[OperationStatus]:
        return self.registry.list()

    def cancel(self, op_id: str) -> CancelResult:
        return self.cancellation.cancel(op_id)

    async def wait(self, op_id: str) -> OperationStatus | None:
        """Wait for the consumer of ``op_id`` to finish, then return its record."""
        await self.launcher.wait(op_id)
        return self.registry.get(op_id)

    async def events(
        self, op_id: str, *, heartbeat: float | None = None
    ) -> AsyncIterator[OperationEvent | None]:
        """Stream events for one operation until it is terminal.

        The first item reflects the current snapshot, so a subscriber that
        joins late (or after the end) still sees where things stand. With
        ``heartbeat`` set, ``None`` is yielded whenever that many seconds
        pass without an event. Unknown ids yield nothing.
        """
        queue = self.hub.subscribe(op_id)
        try:
            current = self.registry.get(op_id)
            if current is None:
                return
            first = OperationEvent.snapshot(current)
            yield first
            if first.is_terminal:
                return
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=heartbeat)
                except TimeoutError:
                    yield None
                    continue
                yield event
                if event.is_terminal:
                    return
        finally:
            self.hub.unsubscribe(op_id, queue)

    async def shutdown(self) -> None:
        """Stop every live operation and drop pending reap timers."""
        await self.launcher.shutdown()
        self.reaper.cancel_all()
        logger.info("tracker_shutdown", records=len(self.registry))
