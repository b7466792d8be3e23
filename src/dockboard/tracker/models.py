"""Operation records - phase state machine and status snapshots.

This module defines ``OperationPhase`` and ``OperationStatus``, the contract
between every tracker component and every caller. A status is an immutable
snapshot: components never mutate one in place, they derive a new snapshot
with :meth:`OperationStatus.advance` and hand it to the registry's atomic
replace.

Manifesto:
    A poller must never observe a status that mixes fields from two
    different updates. Immutable snapshots plus a single replace primitive
    make torn reads impossible by construction.

Tags:
    dockboard, tracker, state-machine, operation-status

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from dockboard.core.errors import InvalidTransitionError


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


class OperationKind(str, Enum):
    """What kind of external action an operation tracks."""

    PULL = "pull"  # registry image pull
    COMPOSE = "compose"  # orchestration CLI up/down of a profile


class OperationPhase(str, Enum):
    """Lifecycle phase — the canonical state machine.

    Valid transition graph::

        STARTING  → RUNNING | COMPLETED | ERROR | CANCELLED
        RUNNING   → COMPLETED | ERROR | CANCELLED
        COMPLETED → (terminal)
        ERROR     → (terminal)
        CANCELLED → (terminal)

    ``STARTING → COMPLETED`` covers a stream that ends without emitting a
    single decodable record (e.g. ``compose down`` with nothing running).
    """

    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_PHASES


TERMINAL_PHASES: frozenset[OperationPhase] = frozenset({
    OperationPhase.COMPLETED,
    OperationPhase.ERROR,
    OperationPhase.CANCELLED,
})

VALID_TRANSITIONS: dict[OperationPhase, frozenset[OperationPhase]] = {
    OperationPhase.STARTING: frozenset({
        OperationPhase.RUNNING,
        OperationPhase.COMPLETED,
        OperationPhase.ERROR,  # launch failure
        OperationPhase.CANCELLED,
    }),
    OperationPhase.RUNNING: frozenset({
        OperationPhase.COMPLETED,
        OperationPhase.ERROR,
        OperationPhase.CANCELLED,
    }),
    OperationPhase.COMPLETED: frozenset(),  # terminal
    OperationPhase.ERROR: frozenset(),  # terminal
    OperationPhase.CANCELLED: frozenset(),  # terminal
}


def validate_transition(current: OperationPhase, target: OperationPhase) -> None:
    """Raise :class:`InvalidTransitionError` if *current → target* is illegal.

    Staying in the same non-terminal phase is not a transition and is
    always allowed.

    Example:
        >>> validate_transition(OperationPhase.RUNNING, OperationPhase.COMPLETED)
        >>> validate_transition(OperationPhase.COMPLETED, OperationPhase.RUNNING)
        Traceback (most recent call last):
        ...
        dockboard.core.errors.InvalidTransitionError: Invalid OperationPhase transition: completed → running
    """
    if current == target and not current.is_terminal:
        return
    if target not in VALID_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current.value, target.value)


# ── Identifiers ──────────────────────────────────────────────────────────

_id_lock = threading.Lock()
_last_ns = 0


def new_operation_id(subject: str) -> str:
    """Return ``{subject}-{timestampNanos}``, unique within the process.

    The nanosecond stamp is forced strictly increasing so two operations
    started in the same clock tick never share an identifier.
    """
    global _last_ns
    with _id_lock:
        ns = max(time.time_ns(), _last_ns + 1)
        _last_ns = ns
    return f"{subject}-{ns}"


# ── Status snapshot ──────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class OperationStatus:
    """Point-in-time snapshot of one tracked operation.

    Example:
        >>> status = OperationStatus.starting(OperationKind.PULL, "nginx:latest")
        >>> status.phase
        <OperationPhase.STARTING: 'starting'>
        >>> status.advance(phase=OperationPhase.RUNNING, percent=10).percent
        10
    """

    id: str
    kind: OperationKind
    subject: str
    phase: OperationPhase = OperationPhase.STARTING
    action: str | None = None
    percent: int = 0
    detail: str = ""
    log: tuple[dict[str, Any], ...] = ()
    error: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None

    @classmethod
    def starting(
        cls,
        kind: OperationKind,
        subject: str,
        *,
        action: str | None = None,
        operation_id: str | None = None,
        detail: str = "",
    ) -> OperationStatus:
        """Fresh record in ``STARTING`` with percent 0."""
        now = utcnow()
        return cls(
            id=operation_id or new_operation_id(subject),
            kind=kind,
            subject=subject,
            action=action,
            detail=detail,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_terminal(self) -> bool:
        return self.phase.is_terminal

    def advance(self, **changes: Any) -> OperationStatus:
        """Derive the next snapshot.

        Enforces the phase graph, forbids any change once terminal, forces
        percent to 100 on ``COMPLETED`` and stamps ``finished_at`` when a
        terminal phase is entered.

        Raises:
            InvalidTransitionError: If this record is terminal or the phase
                change is not in ``VALID_TRANSITIONS``.
        """
        target = changes.get("phase", self.phase)
        validate_transition(self.phase, target)

        now = utcnow()
        changes["updated_at"] = now
        if target == OperationPhase.COMPLETED:
            changes["percent"] = 100
        if target.is_terminal:
            changes["finished_at"] = now
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation used by the API and SSE events."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "subject": self.subject,
            "action": self.action,
            "phase": self.phase.value,
            "percent": self.percent,
            "detail": self.detail,
            "log": list(self.log),
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
