"""
Profile filtering and list summaries for containers, images and volumes.

A compose *profile* groups services; the Engine does not know about
profiles for stopped or foreign containers, so membership is decided by
keywords matched against container names and image references.

Tags:
    dockboard, runtime, profiles
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from dockboard.core.errors import ValidationFailed
from dockboard.core.settings import DockboardSettings


def validate_profile(settings: DockboardSettings, profile: str) -> str:
    if profile not in settings.profiles:
        raise ValidationFailed(
            f"Invalid profile '{profile}'",
            details={"profiles": list(settings.profiles)},
        )
    return profile


def container_summary(raw: dict[str, Any]) -> dict[str, Any]:
    """Flatten one ``/containers/json`` entry."""
    names = raw.get("Names") or []
    return {
        "id": raw.get("Id"),
        "name": names[0].lstrip("/") if names else "unknown",
        "image": raw.get("Image"),
        "status": raw.get("Status"),
        "state": raw.get("State"),
        "ports": [
            {"private": p.get("PrivatePort"), "public": p.get("PublicPort"), "type": p.get("Type")}
            for p in raw.get("Ports") or []
        ],
        "created": raw.get("Created"),
    }


def container_details(inspect: dict[str, Any]) -> dict[str, Any]:
    """Flatten one ``/containers/{id}/json`` document."""
    config = inspect.get("Config") or {}
    state = inspect.get("State") or {}
    return {
        "id": inspect.get("Id"),
        "name": (inspect.get("Name") or "").lstrip("/"),
        "image": config.get("Image"),
        "status": state.get("Status"),
        "created": inspect.get("Created"),
        "started": state.get("StartedAt"),
        "ports": (inspect.get("NetworkSettings") or {}).get("Ports") or {},
        "env": config.get("Env") or [],
        "state": state,
        "mounts": inspect.get("Mounts") or [],
    }


def _matches(raw: dict[str, Any], keyword: str, *, lower: bool) -> bool:
    names = [str(n) for n in raw.get("Names") or []]
    image = str(raw.get("Image") or "")
    if lower:
        names = [n.lower() for n in names]
        image = image.lower()
    return any(keyword in n for n in names) or keyword in image


def filter_by_profile(
    containers: list[dict[str, Any]],
    settings: DockboardSettings,
    profile: str | None = None,
) -> list[dict[str, Any]]:
    """Project containers, optionally narrowed to one profile's keywords."""
    project = settings.project_keyword
    selected = [c for c in containers if not project or _matches(c, project, lower=False)]
    if profile is None:
        return selected
    keywords = settings.profile_keywords.get(profile, [])
    return [c for c in selected if any(_matches(c, k.lower(), lower=True) for k in keywords)]


def image_summary(raw: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": raw.get("Id"),
        "tags": raw.get("RepoTags") or ["<none>:<none>"],
        "size": raw.get("Size"),
        "created": raw.get("Created"),
        "parent_id": raw.get("ParentId"),
        "repo_digests": raw.get("RepoDigests") or [],
    }


def _epoch_millis(value: str | None) -> int:
    if not value:
        return 0
    try:
        return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp() * 1000)
    except ValueError:
        return 0


def volume_summary(raw: dict[str, Any]) -> dict[str, Any]:
    usage = raw.get("UsageData")
    summary = {
        "name": raw.get("Name"),
        "driver": raw.get("Driver"),
        "mountpoint": raw.get("Mountpoint"),
        "created": _epoch_millis(raw.get("CreatedAt")),
        "scope": raw.get("Scope") or "local",
        "labels": raw.get("Labels") or {},
        "options": raw.get("Options") or {},
        "status": raw.get("Status") or {},
    }
    if usage:
        summary["usage_data"] = {
            "size": usage.get("Size") or 0,
            "ref_count": usage.get("RefCount") or 0,
        }
    return summary
