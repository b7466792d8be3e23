"""Stream Adapter — fold raw stream chunks into status updates.

WHY
───
An image pull arrives as newline-delimited JSON progress records, a compose
run as plain text lines, and both arrive in arbitrary byte chunks. The
adapter turns each chunk into one atomic registry update and is the only
writer while an operation is running.

ARCHITECTURE
────────────
::

    bytes chunk ──► Decoder.feed() ──► [record, record, ...]
                                           │
                      StreamAdapter.feed() │ one registry.update() per chunk
                                           ▼
                    current ──► fold(record...) ──► next snapshot
                                           │
                                           ▼
                                EventHub.publish("output")

    Decoders:
      JsonLinesDecoder  ─ registry pull (one JSON object per line)
      TextLinesDecoder  ─ CLI output (each line becomes {"status": line})

    Progress inference (infer_percent):
      progressDetail.current/total present → round(current / total × 100)
      status matches downloading/pulling   → previous + 1, capped at ceiling
      otherwise                            → unchanged
      while running the value never decreases

BEST PRACTICES
──────────────
- Undecodable lines are dropped at DEBUG level; they never fail the stream.
- A partial trailing line is held until the next chunk and parsed at
  stream end.
- ``feed`` returning False means the record was cancelled underneath us:
  stop reading and terminate the source.

Related modules:
    launcher.py — owns the consumer task that drives the adapter
    events.py   — receives the ``output`` / terminal events

Tags:
    dockboard, tracker, stream, decoder, progress
"""

from __future__ import annotations

import codecs
import json
import re
from typing import Any, Protocol

from dockboard.core.errors import StreamFailure
from dockboard.core.logging import get_logger
from dockboard.tracker.events import EventHub, OperationEvent
from dockboard.tracker.models import OperationPhase, OperationStatus
from dockboard.tracker.registry import OperationRegistry

logger = get_logger(__name__)

_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")
_CREEPING = re.compile(r"\b(downloading|pulling)\b", re.IGNORECASE)


# ── Decoders ─────────────────────────────────────────────────────────────


class Decoder(Protocol):
    def feed(self, chunk: bytes) -> list[dict[str, Any]]: ...

    def flush(self) -> list[dict[str, Any]]: ...


class _LineBuffer:
    """Incremental UTF-8 decoding plus line splitting with a held remainder."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def lines(self, chunk: bytes) -> list[str]:
        text = self._pending + self._decoder.decode(chunk)
        *complete, self._pending = _LINE_BREAK.split(text)
        return complete

    def rest(self) -> list[str]:
        text = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return [text] if text else []


class JsonLinesDecoder:
    """Decode a registry pull stream: one JSON object per line."""

    def __init__(self) -> None:
        self._buffer = _LineBuffer()

    def feed(self, chunk: bytes) -> list[dict[str, Any]]:
        return self._parse_all(self._buffer.lines(chunk))

    def flush(self) -> list[dict[str, Any]]:
        return self._parse_all(self._buffer.rest())

    @staticmethod
    def _parse_all(lines: list[str]) -> list[dict[str, Any]]:
        records = []
        for line in lines:
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except ValueError:
                logger.debug("stream_line_dropped", line=line[:200])
                continue
            if isinstance(record, dict):
                records.append(record)
            else:
                logger.debug("stream_line_dropped", line=line[:200])
        return records


class TextLinesDecoder:
    """Decode CLI output: every non-blank line becomes ``{"status": line}``."""

    def __init__(self) -> None:
        self._buffer = _LineBuffer()

    def feed(self, chunk: bytes) -> list[dict[str, Any]]:
        return self._wrap(self._buffer.lines(chunk))

    def flush(self) -> list[dict[str, Any]]:
        return self._wrap(self._buffer.rest())

    @staticmethod
    def _wrap(lines: list[str]) -> list[dict[str, Any]]:
        records = []
        for line in lines:
            text = _ANSI_ESCAPE.sub("", line).strip()
            if text:
                records.append({"status": text})
        return records


# ── Progress inference ───────────────────────────────────────────────────


def infer_percent(record: dict[str, Any], previous: int, ceiling: int = 99) -> int:
    """Next percent value for ``record`` given the ``previous`` one.

    >>> infer_percent({"progressDetail": {"current": 50, "total": 100}}, 10)
    50
    >>> infer_percent({"progressDetail": {"current": 100, "total": 100}}, 50)
    100
    >>> infer_percent({"status": "Downloading"}, 98)
    99
    >>> infer_percent({"status": "Downloading"}, 99)
    99
    """
    progress = record.get("progressDetail")
    if isinstance(progress, dict):
        current, total = progress.get("current"), progress.get("total")
        if _positive(current) and _positive(total):
            return max(previous, int(current * 100 / total + 0.5))

    status = record.get("status")
    if isinstance(status, str) and _CREEPING.search(status):
        return max(previous, min(previous + 1, ceiling))
    return previous


def _positive(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def describe_record(record: dict[str, Any], previous: str) -> str:
    """Human-readable status line for ``record``, falling back to ``previous``."""
    status = record.get("status")
    if isinstance(status, str) and status:
        layer = record.get("id")
        return f"{layer}: {status}" if layer else status
    progress = record.get("progressDetail")
    if isinstance(progress, dict) and _positive(progress.get("current")) and _positive(progress.get("total")):
        return "Downloading layers"
    return previous


def record_error(record: dict[str, Any]) -> str | None:
    """Error text carried by a registry record, if any."""
    error = record.get("error")
    if error:
        return str(error)
    detail = record.get("errorDetail")
    if isinstance(detail, dict) and detail.get("message"):
        return str(detail["message"])
    return None


# ── Adapter ──────────────────────────────────────────────────────────────


class StreamAdapter:
    """Single consumer of one operation's stream.

    Every method performs exactly one atomic ``registry.update`` and
    re-checks the latest record inside it, so a cancellation that lands
    between two chunks always wins.
    """

    def __init__(
        self,
        registry: OperationRegistry,
        hub: EventHub,
        op_id: str,
        decoder: Decoder,
        *,
        progress_ceiling: int = 99,
    ) -> None:
        self._registry = registry
        self._hub = hub
        self.op_id = op_id
        self._decoder = decoder
        self._ceiling = progress_ceiling

    def feed(self, chunk: bytes) -> bool:
        """Apply one chunk. Returns False when the operation is no longer live.

        Raises:
            StreamFailure: If the stream carried an error record. Records
                preceding it in the same chunk are applied first.
        """
        current = self._registry.get(self.op_id)
        if current is None or current.is_terminal:
            return False

        records = self._decoder.feed(chunk)
        failure = None
        for index, record in enumerate(records):
            failure = record_error(record)
            if failure is not None:
                records = records[: index + 1]
                break

        if records:
            updated = self._apply(records)
            if updated is None or updated.is_terminal:
                return False

        if failure is not None:
            raise StreamFailure(failure, details={"operation_id": self.op_id})
        return True

    def finish(self) -> OperationStatus | None:
        """Stream ended normally: flush the decoder and complete the record."""
        tail = self._decoder.flush()
        failure = next((e for e in map(record_error, tail) if e is not None), None)
        if failure is not None:
            return self.fail(StreamFailure(failure))

        def _complete(current: OperationStatus) -> OperationStatus:
            if current.is_terminal:
                return current
            folded = self._fold(current, tail) if tail else current
            return folded.advance(phase=OperationPhase.COMPLETED)

        status = self._registry.update(self.op_id, _complete)
        if status is not None and status.phase == OperationPhase.COMPLETED:
            logger.info("operation_completed", operation_id=self.op_id, records=len(status.log))
            self._hub.publish(OperationEvent.complete(status))
        return status

    def fail(self, error: BaseException) -> OperationStatus | None:
        """Stream (or launch) failed: move a live record to ``ERROR``."""
        message = getattr(error, "message", None) or str(error) or type(error).__name__

        def _error(current: OperationStatus) -> OperationStatus:
            if current.is_terminal:
                return current
            return current.advance(phase=OperationPhase.ERROR, error=message)

        status = self._registry.update(self.op_id, _error)
        if status is not None and status.phase == OperationPhase.ERROR:
            logger.warning("operation_failed", operation_id=self.op_id, error=message)
            self._hub.publish(OperationEvent.failed(status))
        return status

    def _apply(self, records: list[dict[str, Any]]) -> OperationStatus | None:
        before = self._registry.get(self.op_id)

        def _update(current: OperationStatus) -> OperationStatus:
            if current.is_terminal:
                return current
            return self._fold(current, records)

        status = self._registry.update(self.op_id, _update)
        if status is None or status.is_terminal:
            return status
        if before is not None and before.phase == OperationPhase.STARTING:
            logger.info("operation_running", operation_id=self.op_id)
        for record in records:
            self._hub.publish(OperationEvent.output(status, record))
        return status

    def _fold(self, current: OperationStatus, records: list[dict[str, Any]]) -> OperationStatus:
        percent, detail = current.percent, current.detail
        for record in records:
            percent = infer_percent(record, percent, self._ceiling)
            detail = describe_record(record, detail)
        return current.advance(
            phase=OperationPhase.RUNNING,
            percent=percent,
            detail=detail,
            log=current.log + tuple(records),
        )
