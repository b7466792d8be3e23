"""Health endpoints: ``/health``, ``/health/ready``, ``/health/live``.

Each dependency is a :class:`Probe` whose coroutine returns a dict of
details (Engine version, tracker load, ...) or raises. A failing *required*
probe makes the service ``unhealthy`` (503); a failing optional one only
``degraded``. Liveness never touches a dependency.

Quick start::

    router = create_health_router(
        "dockboard",
        version="1.0.0",
        probes=[Probe("docker", docker_details), Probe("tracker", load, required=False)],
    )
    app.include_router(router)
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Literal

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

_STARTED = time.monotonic()

HealthState = Literal["healthy", "degraded", "unhealthy"]

ProbeFn = Callable[[], Awaitable[dict[str, Any]]]


class ProbeResult(BaseModel):
    status: HealthState
    latency_ms: float | None = None
    error: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class HealthReport(BaseModel):
    """Body of ``GET /health`` and ``GET /health/ready``."""

    status: HealthState
    service: str
    version: str
    uptime_s: float
    timestamp: str
    checks: dict[str, ProbeResult] = Field(default_factory=dict)


@dataclass
class Probe:
    name: str
    fn: ProbeFn
    required: bool = True
    timeout_s: float = 5.0

    async def run(self) -> ProbeResult:
        started = time.monotonic()
        try:
            details = await asyncio.wait_for(self.fn(), timeout=self.timeout_s)
        except TimeoutError:
            return ProbeResult(status="unhealthy", error="timeout")
        except Exception as exc:  # noqa: BLE001
            return ProbeResult(status="unhealthy", latency_ms=_ms_since(started), error=str(exc)[:200])
        return ProbeResult(status="healthy", latency_ms=_ms_since(started), details=details or {})


def _ms_since(started: float) -> float:
    return round((time.monotonic() - started) * 1000, 2)


def overall_state(results: dict[str, ProbeResult], probes: list[Probe]) -> HealthState:
    """Worst state across probes, where only required ones can make it ``unhealthy``."""
    failed = {name for name, result in results.items() if result.status != "healthy"}
    if failed & {p.name for p in probes if p.required}:
        return "unhealthy"
    return "degraded" if failed else "healthy"


def create_health_router(
    service: str,
    version: str,
    probes: list[Probe] | None = None,
    prefix: str = "/health",
) -> APIRouter:
    router = APIRouter(tags=["health"])
    probes = list(probes or [])

    async def _report() -> HealthReport:
        outcomes = await asyncio.gather(*(p.run() for p in probes))
        results = {p.name: r for p, r in zip(probes, outcomes)}
        return HealthReport(
            status=overall_state(results, probes),
            service=service,
            version=version,
            uptime_s=round(time.monotonic() - _STARTED, 1),
            timestamp=datetime.now(UTC).isoformat(),
            checks=results,
        )

    @router.get(prefix, response_model=HealthReport)
    async def health() -> JSONResponse:
        """Full report; 503 only when a required dependency is down."""
        report = await _report()
        code = 503 if report.status == "unhealthy" else 200
        return JSONResponse(report.model_dump(), status_code=code)

    @router.get(f"{prefix}/ready", response_model=HealthReport)
    async def readiness() -> JSONResponse:
        """Ready only when every probe passes."""
        report = await _report()
        code = 200 if report.status == "healthy" else 503
        return JSONResponse(report.model_dump(), status_code=code)

    @router.get(f"{prefix}/live")
    async def liveness() -> dict[str, str]:
        return {"status": "alive"}

    return router
