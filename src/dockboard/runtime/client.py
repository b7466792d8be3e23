"""
Engine API client - async HTTP access to the Docker daemon.

Talks to the Engine REST API over its unix socket (or a TCP URL) with
``httpx.AsyncClient``; no Docker SDK is involved. One-shot calls return
decoded JSON, ``open_pull`` returns a still-open streaming response that
:class:`dockboard.tracker.sources.PullSource` iterates.

Error mapping::

    transport error / timeout   → RuntimeUnavailable (503)
    HTTP 404                    → NotFoundError (404)
    HTTP 304 on start/stop      → success (already in that state)
    other HTTP ≥ 400            → RuntimeRequestError (Engine status)

Manifesto:
    The dashboard only ever needs a dozen Engine endpoints. A thin client
    over httpx keeps the dependency surface small and lets tests swap the
    daemon for ``httpx.MockTransport``.

Tags:
    dockboard, runtime, docker, httpx, engine-api

Doc-Types:
    api-reference
"""

from __future__ import annotations

import struct
from typing import Any
from urllib.parse import urlsplit

import httpx

from dockboard.core.errors import (
    NotFoundError,
    RuntimeRequestError,
    RuntimeUnavailable,
    ValidationFailed,
)
from dockboard.core.logging import get_logger
from dockboard.core.settings import DockboardSettings

logger = get_logger(__name__)

CONTAINER_ACTIONS = ("start", "stop", "restart", "remove")

_FRAME_HEADER = struct.Struct(">BxxxL")


def split_image_reference(reference: str) -> tuple[str, str | None]:
    """Split ``repo[:tag]`` into ``(repo, tag)``; digests are left whole.

    >>> split_image_reference("nginx")
    ('nginx', 'latest')
    >>> split_image_reference("registry:5000/team/app:1.2")
    ('registry:5000/team/app', '1.2')
    >>> split_image_reference("alpine@sha256:abc")
    ('alpine@sha256:abc', None)
    """
    if "@" in reference:
        return reference, None
    slash = reference.rfind("/")
    colon = reference.rfind(":")
    if colon > slash:
        return reference[:colon], reference[colon + 1 :]
    return reference, "latest"


def demux_logs(data: bytes) -> str:
    """Decode a logs payload, stripping stdout/stderr frame headers if present.

    Containers without a TTY multiplex their output as frames of
    ``[stream, 0, 0, 0, size(4 bytes BE)] + payload``; TTY containers send
    raw bytes.
    """
    if len(data) < _FRAME_HEADER.size or data[0] not in (0, 1, 2) or data[1:4] != b"\x00\x00\x00":
        return data.decode("utf-8", errors="replace")

    parts: list[bytes] = []
    offset = 0
    while offset + _FRAME_HEADER.size <= len(data):
        _, size = _FRAME_HEADER.unpack_from(data, offset)
        offset += _FRAME_HEADER.size
        parts.append(data[offset : offset + size])
        offset += size
    return b"".join(parts).decode("utf-8", errors="replace")


def _engine_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase


class EngineClient:
    """Async client for the handful of Engine endpoints the dashboard uses."""

    def __init__(
        self,
        settings: DockboardSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        base_url, default_transport = self._endpoint(settings.docker_host)
        if settings.docker_api_version:
            base_url = f"{base_url}/{settings.docker_api_version.strip('/')}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            transport=transport or default_transport,
            timeout=httpx.Timeout(settings.docker_timeout_seconds),
        )

    @staticmethod
    def _endpoint(docker_host: str) -> tuple[str, httpx.AsyncBaseTransport | None]:
        parts = urlsplit(docker_host)
        if parts.scheme == "unix":
            return "http://docker", httpx.AsyncHTTPTransport(uds=parts.path)
        if parts.scheme == "tcp":
            return f"http://{parts.netloc}", None
        if parts.scheme in ("http", "https"):
            return docker_host.rstrip("/"), None
        raise ValueError(f"Unsupported docker_host: {docker_host}")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> EngineClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    # ── Plumbing ─────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        accept: tuple[int, ...] = (),
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.TransportError as exc:
            raise RuntimeUnavailable(
                f"Container runtime unreachable: {exc}",
                details={"docker_host": self.settings.docker_host},
                cause=exc,
            ) from exc
        self._raise_for_status(response, accept)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, accept: tuple[int, ...] = ()) -> None:
        if response.status_code < 400 or response.status_code in accept:
            return
        message = _engine_message(response)
        if response.status_code == 404:
            raise NotFoundError(message)
        raise RuntimeRequestError(message, status_code=response.status_code)

    # ── System ───────────────────────────────────────────────────────

    async def ping(self) -> bool:
        response = await self._request("GET", "/_ping")
        return response.text.strip() == "OK"

    async def version(self) -> dict[str, Any]:
        return (await self._request("GET", "/version")).json()

    # ── Containers ───────────────────────────────────────────────────

    async def list_containers(self, all: bool = True) -> list[dict[str, Any]]:
        response = await self._request("GET", "/containers/json", params={"all": int(all)})
        return response.json()

    async def inspect_container(self, container_id: str) -> dict[str, Any]:
        return (await self._request("GET", f"/containers/{container_id}/json")).json()

    async def container_stats(self, container_id: str) -> dict[str, Any]:
        """One-shot stats sample (``stream=false``)."""
        response = await self._request(
            "GET", f"/containers/{container_id}/stats", params={"stream": "false"}
        )
        return response.json()

    async def container_logs(self, container_id: str, tail: int = 100, timestamps: bool = True) -> str:
        response = await self._request(
            "GET",
            f"/containers/{container_id}/logs",
            params={
                "stdout": 1,
                "stderr": 1,
                "tail": tail,
                "timestamps": int(timestamps),
            },
        )
        return demux_logs(response.content)

    async def container_action(self, container_id: str, action: str) -> None:
        """Run ``start``, ``stop``, ``restart`` or ``remove`` (forced)."""
        if action not in CONTAINER_ACTIONS:
            raise ValidationFailed(
                f"Invalid action '{action}'. Use one of: {', '.join(CONTAINER_ACTIONS)}"
            )
        if action == "remove":
            await self._request("DELETE", f"/containers/{container_id}", params={"force": "true"})
        else:
            await self._request("POST", f"/containers/{container_id}/{action}", accept=(304,))
        logger.info("container_action", container_id=container_id, action=action)

    # ── Images ───────────────────────────────────────────────────────

    async def list_images(self) -> list[dict[str, Any]]:
        return (await self._request("GET", "/images/json", params={"all": "true"})).json()

    async def remove_image(self, image_id: str, force: bool = False) -> list[dict[str, Any]]:
        response = await self._request(
            "DELETE", f"/images/{image_id}", params={"force": str(force).lower()}
        )
        return response.json() if response.content else []

    async def open_pull(self, image: str) -> httpx.Response:
        """Start a registry pull and return the open streaming response.

        The caller owns the response and must ``aclose()`` it. Raises
        before any stream is returned if the Engine rejects the request.
        """
        name, tag = split_image_reference(image)
        params = {"fromImage": name}
        if tag:
            params["tag"] = tag
        request = self._client.build_request(
            "POST",
            "/images/create",
            params=params,
            timeout=httpx.Timeout(self.settings.docker_timeout_seconds, read=None),
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.TransportError as exc:
            raise RuntimeUnavailable(f"Container runtime unreachable: {exc}", cause=exc) from exc
        if response.status_code >= 400:
            await response.aread()
            await response.aclose()
            self._raise_for_status(response)
        return response

    # ── Volumes ──────────────────────────────────────────────────────

    async def list_volumes(self) -> list[dict[str, Any]]:
        body = (await self._request("GET", "/volumes")).json()
        return body.get("Volumes") or []

    async def inspect_volume(self, name: str) -> dict[str, Any]:
        return (await self._request("GET", f"/volumes/{name}")).json()

    async def remove_volume(self, name: str) -> None:
        await self._request("DELETE", f"/volumes/{name}")
        logger.info("volume_removed", volume=name)
