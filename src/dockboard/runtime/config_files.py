"""
Project configuration files edited from the dashboard.

Two files under ``project_root``:

- the compose ``.env`` (free-form ``KEY=value`` text; a missing file reads
  as empty and is created on write)
- the mediamtx YAML (must exist to be read; content is parsed with PyYAML
  before it is written so a typo never lands on disk)

``update_host_ip`` rewrites the host-dependent entries of the env file when
the box moves to a new address::

    HOST_IP=<ip>                          replaced (or appended)
    SSE_ALLOW_ORIGINS=a,b                 http://<ip> appended if no origin mentions it
    BASE_URL=http://localhost:8457/...    localhost → <ip>   (default http://<ip>:8457/api/v1)
    HOMEPAGE_URL=http://localhost:80      localhost → <ip>   (default http://<ip>:80)

Commented-out entries (``#KEY=``) count as present; HOST_IP is uncommented
when rewritten, the others keep their comment marker.

Tags:
    dockboard, runtime, config, yaml
"""

from __future__ import annotations

import ipaddress
import re
from pathlib import Path

import yaml

from dockboard.core.errors import DockboardError, NotFoundError, ValidationFailed
from dockboard.core.logging import get_logger
from dockboard.core.settings import DockboardSettings

logger = get_logger(__name__)

_IPV4 = re.compile(r"^(\d{1,3}\.){3}\d{1,3}$")


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DockboardError(f"Failed to read {path.name}: {exc}", cause=exc) from exc


def _write(path: Path, content: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise DockboardError(f"Failed to write {path.name}: {exc}", cause=exc) from exc
    logger.info("config_file_written", path=str(path), size=len(content))


# ── Env file ─────────────────────────────────────────────────────────────


def read_env_file(settings: DockboardSettings) -> str:
    path = settings.env_file_path
    if not path.exists():
        return ""
    return _read(path)


def write_env_file(settings: DockboardSettings, content: str) -> None:
    _write(settings.env_file_path, content)


def validate_ipv4(ip: str) -> str:
    ip = ip.strip()
    if not _IPV4.match(ip):
        raise ValidationFailed("Invalid IP address format", details={"ip": ip})
    try:
        ipaddress.IPv4Address(ip)
    except ValueError as exc:
        raise ValidationFailed("Invalid IP address format", details={"ip": ip}) from exc
    return ip


def _entry(line: str, key: str) -> re.Match[str] | None:
    return re.match(rf"^(#?\s*{key}=)(.*)$", line.strip())


def rewrite_host_entries(content: str, ip: str) -> str:
    """Return ``content`` with the host-dependent entries pointed at ``ip``."""
    origin = f"http://{ip}"
    found = {"HOST_IP": False, "SSE_ALLOW_ORIGINS": False, "BASE_URL": False, "HOMEPAGE_URL": False}
    lines: list[str] = []

    for line in content.split("\n"):
        if _entry(line, "HOST_IP"):
            lines.append(f"HOST_IP={ip}")
            found["HOST_IP"] = True
            continue

        match = _entry(line, "SSE_ALLOW_ORIGINS")
        if match:
            origins = [o for o in re.split(r"[,\s]+", match.group(2).strip()) if o]
            if not any(ip in o for o in origins):
                origins.append(origin)
            lines.append(f"{match.group(1)}{','.join(origins)}")
            found["SSE_ALLOW_ORIGINS"] = True
            continue

        for key in ("BASE_URL", "HOMEPAGE_URL"):
            match = _entry(line, key)
            if match:
                url = match.group(2).strip().replace("http://localhost:", f"http://{ip}:")
                lines.append(f"{match.group(1)}{url}")
                found[key] = True
                break
        else:
            lines.append(line)

    defaults = {
        "HOST_IP": f"HOST_IP={ip}",
        "SSE_ALLOW_ORIGINS": f"SSE_ALLOW_ORIGINS={origin}",
        "BASE_URL": f"BASE_URL=http://{ip}:8457/api/v1",
        "HOMEPAGE_URL": f"HOMEPAGE_URL=http://{ip}:80",
    }
    lines.extend(default for key, default in defaults.items() if not found[key])
    return "\n".join(lines)


def update_host_ip(settings: DockboardSettings, ip: str) -> str:
    """Validate ``ip``, rewrite the env file and return the new content."""
    ip = validate_ipv4(ip)
    content = rewrite_host_entries(read_env_file(settings), ip)
    write_env_file(settings, content)
    logger.info("host_ip_updated", ip=ip)
    return content


# ── mediamtx ─────────────────────────────────────────────────────────────


def read_mediamtx(settings: DockboardSettings) -> str:
    path = settings.mediamtx_file_path
    if not path.exists():
        raise NotFoundError(f"{path.name} not found", details={"path": str(path)})
    return _read(path)


def write_mediamtx(settings: DockboardSettings, content: str) -> None:
    try:
        yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise ValidationFailed(f"Invalid YAML: {exc}") from exc
    _write(settings.mediamtx_file_path, content)
