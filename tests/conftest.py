"""
Shared pytest fixtures and fakes for dockboard tests.

This module provides:
- ``settings``: isolated settings rooted at a temporary project directory
- ``ScriptedSource``: an in-memory operation source with gated delivery
- ``FakeDaemon``: an Engine API stand-in served through ``httpx.MockTransport``
- ``engine`` / ``tracker``: real clients wired to the fakes

Usage:
    Fixtures are auto-discovered by pytest::

        @pytest.mark.asyncio
        async def test_something(tracker, make_source):
            source = make_source([b'{"status": "Downloading"}\\n'])
            ...
"""

from __future__ import annotations

import asyncio
import json
import re
import sys
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio

from dockboard.core.settings import DockboardSettings
from dockboard.runtime.client import EngineClient
from dockboard.tracker.service import OperationTracker

# Stand-in for ``docker compose``; argv is ``--profile <profile> <action> [-d]``.
FAKE_COMPOSE = (
    "import sys\n"
    "args = sys.argv[1:]\n"
    "print('Container onprem-' + args[1] + '-1  Starting', flush=True)\n"
    "print('Container onprem-' + args[1] + '-1  Started', flush=True)\n"
)


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)
        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture
def settings(tmp_path: Path) -> DockboardSettings:
    """Settings with a throwaway project root and long timers.

    Tests that exercise reaping or the nudge shorten the relevant timer
    with ``settings.model_copy(update=...)``.
    """
    return DockboardSettings(
        project_root=tmp_path,
        project_keyword="onprem",
        docker_host="http://docker.test",
        compose_command=[sys.executable, "-c", FAKE_COMPOSE],
        completed_retention_seconds=60,
        cancelled_retention_seconds=60,
        starting_nudge_seconds=60,
    )


# =============================================================================
# Scripted operation source
# =============================================================================


class ScriptedSource:
    """OperationSource that replays ``chunks``.

    With ``gated=True`` every chunk, and the end of the stream, waits for a
    :meth:`release` so tests can observe the record between chunks.
    """

    def __init__(
        self,
        chunks: list[bytes] | None = None,
        *,
        gated: bool = False,
        open_error: Exception | None = None,
        end_error: Exception | None = None,
    ) -> None:
        self._chunks = list(chunks or [])
        self._gated = gated
        self._open_error = open_error
        self._end_error = end_error
        self._gate: asyncio.Queue[None] = asyncio.Queue()
        self.opened = False
        self.terminated = False
        self.closed = False
        self.delivered = 0

    def release(self, count: int = 1) -> None:
        for _ in range(count):
            self._gate.put_nowait(None)

    async def open(self) -> None:
        if self._open_error is not None:
            raise self._open_error
        self.opened = True

    async def chunks(self) -> AsyncIterator[bytes]:
        for chunk in self._chunks:
            if self._gated:
                await self._gate.get()
            if self.terminated:
                return
            self.delivered += 1
            yield chunk
        if self._gated:
            await self._gate.get()
        if self._end_error is not None:
            raise self._end_error

    def terminate(self) -> None:
        self.terminated = True

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def make_source() -> Callable[..., ScriptedSource]:
    return ScriptedSource


def json_lines(*records: dict[str, Any]) -> bytes:
    return b"".join(json.dumps(r).encode() + b"\n" for r in records)


@pytest.fixture
def lines() -> Callable[..., bytes]:
    """Encode records as one newline-delimited JSON chunk."""
    return json_lines


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def eventually() -> Callable[..., Any]:
    """``await eventually(lambda: ...)`` polls until the predicate holds."""
    return wait_until


# =============================================================================
# Fake Engine API
# =============================================================================

CONTAINERS = [
    {
        "Id": "c1",
        "Names": ["/onprem-api-1"],
        "Image": "onprem/api:1.0",
        "State": "running",
        "Status": "Up 2 hours",
        "Ports": [{"PrivatePort": 8457, "PublicPort": 8457, "Type": "tcp"}],
        "Created": 1700000000,
    },
    {
        "Id": "c2",
        "Names": ["/onprem-mediamtx-1"],
        "Image": "bluenviron/mediamtx:latest",
        "State": "exited",
        "Status": "Exited (0) 5 minutes ago",
        "Ports": [],
        "Created": 1700000100,
    },
    {
        "Id": "c3",
        "Names": ["/scratch-redis"],
        "Image": "redis:7",
        "State": "running",
        "Status": "Up 1 day",
        "Ports": [],
        "Created": 1690000000,
    },
]

STATS = {
    "cpu_stats": {"cpu_usage": {"total_usage": 400}, "system_cpu_usage": 2000, "online_cpus": 2},
    "precpu_stats": {"cpu_usage": {"total_usage": 200}, "system_cpu_usage": 1000},
    "memory_stats": {"usage": 1024, "limit": 4096},
    "blkio_stats": {
        "io_service_bytes_recursive": [
            {"op": "Read", "value": 10},
            {"op": "Write", "value": 20},
        ]
    },
    "networks": {
        "eth0": {"rx_bytes": 100, "tx_bytes": 50},
        "eth1": {"rx_bytes": 1, "tx_bytes": 2},
    },
}

IMAGES = [
    {
        "Id": "sha256:aaa",
        "RepoTags": ["nginx:latest"],
        "Size": 187000000,
        "Created": 1700000000,
        "ParentId": "",
        "RepoDigests": ["nginx@sha256:123"],
    },
    {"Id": "sha256:bbb", "RepoTags": None, "Size": 5, "Created": 1600000000},
]

VOLUMES = {
    "Volumes": [
        {
            "Name": "pgdata",
            "Driver": "local",
            "Mountpoint": "/var/lib/docker/volumes/pgdata/_data",
            "CreatedAt": "2024-01-01T00:00:00Z",
            "Scope": "local",
            "Labels": None,
            "UsageData": {"Size": 5, "RefCount": 1},
        }
    ],
    "Warnings": None,
}

NGINX_PULL = [
    {"status": "Pulling from library/nginx", "id": "latest"},
    {"status": "Downloading", "progressDetail": {"current": 10, "total": 100}, "id": "abc"},
    {"status": "Downloading", "progressDetail": {"current": 50, "total": 100}, "id": "abc"},
    {"status": "Download complete", "id": "abc"},
    {"status": "Status: Downloaded newer image for nginx:latest"},
]


def log_frame(stream: int, text: str) -> bytes:
    payload = text.encode()
    return bytes([stream, 0, 0, 0]) + len(payload).to_bytes(4, "big") + payload


def _not_found(what: str) -> httpx.Response:
    return httpx.Response(404, json={"message": f"No such {what}"})


class FakeDaemon:
    """Just enough of the Engine API for the dashboard, backed by dicts."""

    def __init__(self) -> None:
        self.containers = [dict(c) for c in CONTAINERS]
        self.images = [dict(i) for i in IMAGES]
        self.volumes = {"Volumes": [dict(v) for v in VOLUMES["Volumes"]]}
        self.pulls: dict[str, list[dict[str, Any]]] = {"nginx:latest": list(NGINX_PULL)}
        self.denied_pulls: set[str] = set()
        self.hanging_pulls: set[str] = set()
        self.reachable = True
        self.requests: list[httpx.Request] = []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.reachable:
            raise httpx.ConnectError("Connection refused", request=request)

        method, path = request.method, request.url.path
        if path == "/_ping":
            return httpx.Response(200, text="OK")
        if path == "/version":
            return httpx.Response(200, json={"Version": "26.1.0", "ApiVersion": "1.45"})
        if path == "/containers/json":
            return httpx.Response(200, json=self.containers)
        if path == "/images/json":
            return httpx.Response(200, json=self.images)
        if path == "/images/create" and method == "POST":
            return self._pull(request)
        if path == "/volumes":
            return httpx.Response(200, json=self.volumes)

        match = re.fullmatch(r"/containers/([^/]+)(?:/(\w+))?", path)
        if match:
            return self._container(method, match.group(1), match.group(2), request)

        match = re.fullmatch(r"/images/(.+)", path)
        if match and method == "DELETE":
            if not any(i["Id"] == match.group(1) for i in self.images):
                return _not_found(f"image: {match.group(1)}")
            return httpx.Response(200, json=[{"Deleted": match.group(1)}])

        match = re.fullmatch(r"/volumes/([^/]+)", path)
        if match:
            volume = next((v for v in self.volumes["Volumes"] if v["Name"] == match.group(1)), None)
            if volume is None:
                return _not_found(f"volume: {match.group(1)}")
            if method == "DELETE":
                return httpx.Response(204)
            return httpx.Response(200, json=volume)

        return httpx.Response(404, json={"message": f"page not found: {path}"})

    def _container(
        self, method: str, container_id: str, verb: str | None, request: httpx.Request
    ) -> httpx.Response:
        raw = next((c for c in self.containers if c["Id"] == container_id), None)
        if raw is None:
            return _not_found(f"container: {container_id}")
        if method == "DELETE" and verb is None:
            return httpx.Response(204)
        if verb == "json":
            return httpx.Response(
                200,
                json={
                    "Id": raw["Id"],
                    "Name": raw["Names"][0],
                    "Created": "2024-01-01T00:00:00Z",
                    "Config": {"Image": raw["Image"], "Env": ["MODE=prod"]},
                    "State": {"Status": raw["State"], "StartedAt": "2024-01-01T00:00:01Z"},
                    "NetworkSettings": {"Ports": {"8457/tcp": [{"HostPort": "8457"}]}},
                    "Mounts": [{"Source": "/data", "Destination": "/data"}],
                },
            )
        if verb == "stats":
            return httpx.Response(200, json=STATS)
        if verb == "logs":
            return httpx.Response(200, content=log_frame(1, "line one\n") + log_frame(2, "oops\n"))
        if verb == "start" and raw["State"] == "running":
            return httpx.Response(304)
        if verb in ("start", "stop", "restart"):
            return httpx.Response(204)
        return _not_found(f"endpoint: {request.url.path}")

    def _pull(self, request: httpx.Request) -> httpx.Response:
        reference = f"{request.url.params['fromImage']}:{request.url.params.get('tag', 'latest')}"
        if reference in self.denied_pulls:
            return httpx.Response(
                404, json={"message": f"pull access denied for {request.url.params['fromImage']}"}
            )
        if reference in self.hanging_pulls:
            return httpx.Response(200, content=self._hang(reference))
        records = self.pulls.get(reference, [{"status": f"Status: Image is up to date for {reference}"}])
        return httpx.Response(200, content=self._stream(records))

    @staticmethod
    async def _stream(records: list[dict[str, Any]]) -> AsyncIterator[bytes]:
        for record in records:
            yield json_lines(record)

    @staticmethod
    async def _hang(reference: str) -> AsyncIterator[bytes]:
        yield json_lines({"status": f"Pulling from {reference}", "id": "latest"})
        await asyncio.Event().wait()


@pytest.fixture
def daemon() -> FakeDaemon:
    return FakeDaemon()


@pytest.fixture
def engine(settings: DockboardSettings, daemon: FakeDaemon) -> EngineClient:
    return EngineClient(settings, transport=daemon.transport)


@pytest_asyncio.fixture
async def tracker(settings: DockboardSettings, engine: EngineClient) -> AsyncIterator[OperationTracker]:
    tracker = OperationTracker(settings, engine)
    yield tracker
    await tracker.shutdown()
    await engine.aclose()
