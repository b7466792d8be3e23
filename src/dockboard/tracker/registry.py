"""Operation Registry — concurrency-safe id → status map.

Manifesto:
    The registry is the only shared mutable state in the tracker. Every
    writer goes through one of two primitives: ``update`` (read latest,
    derive, replace) or ``delete``. Readers get whole snapshots, never a
    half-applied update.

ARCHITECTURE
────────────
::

    OperationRegistry
      ├── .put(status)            ─ register a new record
      ├── .get(op_id)             ─ snapshot or None
      ├── .update(op_id, fn)      ─ atomic get-modify-replace
      ├── .delete(op_id)          ─ no-op when absent
      └── .list()                 ─ snapshots of every record

    Writers:  OperationLauncher, StreamAdapter, CancellationController
    Deleter:  Reaper
    Readers:  API pollers, SSE streams, CLI

BEST PRACTICES
──────────────
- Never hold a snapshot across an ``await`` and write it back; derive the
  next snapshot inside ``update``'s callback from the record it is given.
- ``fn`` must be fast and must not do I/O; it runs under the lock.
- ``get`` returning ``None`` means "not found", not an error.

Tags:
    dockboard, tracker, registry, concurrency
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from dockboard.core.errors import InvalidTransitionError
from dockboard.tracker.models import OperationStatus

Mutator = Callable[[OperationStatus], OperationStatus]


class OperationRegistry:
    """Injectable in-memory registry of operation status records.

    A ``threading.Lock`` is used rather than an ``asyncio.Lock`` so that
    sync route handlers running in the threadpool and the event-loop tasks
    share one critical section. No critical section spans I/O.

    Example:
        >>> from dockboard.tracker.models import OperationKind
        >>> registry = OperationRegistry()
        >>> status = OperationStatus.starting(OperationKind.PULL, "alpine")
        >>> registry.put(status)
        >>> registry.get(status.id).phase
        <OperationPhase.STARTING: 'starting'>
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, OperationStatus] = {}

    def put(self, status: OperationStatus) -> None:
        """Register a record. Identifiers are never reused.

        Raises:
            ValueError: If the identifier is already registered.
        """
        with self._lock:
            if status.id in self._records:
                raise ValueError(f"Operation id already registered: {status.id}")
            self._records[status.id] = status

    def get(self, op_id: str) -> OperationStatus | None:
        """Return the current snapshot, or ``None`` if unknown or reaped."""
        with self._lock:
            return self._records.get(op_id)

    def update(self, op_id: str, fn: Mutator) -> OperationStatus | None:
        """Atomically replace a record with ``fn(current)``.

        Returns the stored snapshot after the call: the new one if ``fn``
        derived one, the unchanged one if ``fn`` returned its input or the
        transition was illegal, ``None`` if the id is absent.
        """
        with self._lock:
            current = self._records.get(op_id)
            if current is None:
                return None
            try:
                updated = fn(current)
            except InvalidTransitionError:
                return current
            if updated is not current:
                self._records[op_id] = updated
            return updated

    def delete(self, op_id: str) -> bool:
        """Remove a record. Returns False (and does nothing) if absent."""
        with self._lock:
            return self._records.pop(op_id, None) is not None

    def list(self) -> list[OperationStatus]:
        """Snapshots of every record, oldest first."""
        with self._lock:
            records = list(self._records.values())
        return sorted(records, key=lambda s: s.created_at)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, op_id: object) -> bool:
        with self._lock:
            return op_id in self._records
