"""Container resource statistics: one-shot summaries and totals.

``cpu`` is a fraction of one CPU (``0.5`` = half a core's worth of the
sampled interval, multiplied by online CPUs), memory/disk/network are bytes.
"""

from __future__ import annotations

from typing import Any


def _number(value: Any) -> float:
    return value if isinstance(value, (int, float)) and not isinstance(value, bool) else 0


def cpu_fraction(raw: dict[str, Any]) -> float:
    cpu = raw.get("cpu_stats") or {}
    pre = raw.get("precpu_stats") or {}
    cpu_delta = _number((cpu.get("cpu_usage") or {}).get("total_usage")) - _number(
        (pre.get("cpu_usage") or {}).get("total_usage")
    )
    system_delta = _number(cpu.get("system_cpu_usage")) - _number(pre.get("system_cpu_usage"))
    online = _number(cpu.get("online_cpus")) or 1
    if system_delta <= 0:
        return 0.0
    return cpu_delta / system_delta * online


def summarize_stats(raw: dict[str, Any]) -> dict[str, Any]:
    """Reduce an Engine stats sample to cpu/memory/disk/network figures."""
    memory = raw.get("memory_stats") or {}
    blkio = (raw.get("blkio_stats") or {}).get("io_service_bytes_recursive") or []
    disk_read = next((_number(s.get("value")) for s in blkio if s.get("op") == "Read"), 0)
    disk_write = next((_number(s.get("value")) for s in blkio if s.get("op") == "Write"), 0)

    rx = tx = 0
    for net in (raw.get("networks") or {}).values():
        rx += _number(net.get("rx_bytes"))
        tx += _number(net.get("tx_bytes"))

    return {
        "cpu": cpu_fraction(raw),
        "memory": {
            "usage": _number(memory.get("usage")),
            "limit": _number(memory.get("limit")),
        },
        "disk": {"read": disk_read, "write": disk_write},
        "network": {"rx": rx, "tx": tx},
    }


def aggregate_stats(summaries: list[dict[str, Any]]) -> dict[str, Any]:
    """Sum summaries from :func:`summarize_stats` (``count`` = how many were summed)."""
    total = {
        "cpu": 0.0,
        "memory": {"usage": 0, "limit": 0},
        "disk": {"read": 0, "write": 0},
        "network": {"rx": 0, "tx": 0},
        "count": 0,
    }
    for summary in summaries:
        total["cpu"] += summary["cpu"]
        for group in ("memory", "disk", "network"):
            for key, value in summary[group].items():
                total[group][key] += value
        total["count"] += 1
    return total
