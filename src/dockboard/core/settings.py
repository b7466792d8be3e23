"""Process-wide settings for dockboard.

All knobs are environment-driven (``DOCKBOARD_*`` variables or a ``.env``
file) and validated once at startup.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    The retention windows, the Docker endpoint and the compose profiles all
    differ between a laptop and an on-prem box; none of them belong in code.

Examples:
    >>> from dockboard.core.settings import DockboardSettings
    >>> s = DockboardSettings(profiles=["app"], completed_retention_seconds=5)
    >>> s.profiles
    ['app']

Tags:
    settings, configuration, pydantic, environment, dockboard
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PROFILES = ["appstack", "analytics-tools", "app", "stream"]

DEFAULT_PROFILE_KEYWORDS: dict[str, list[str]] = {
    "appstack": [
        "nayarta", "api", "admin", "fe", "frontend", "stream", "camera", "nvr",
        "mqtt", "emqx", "mediamtx", "postgres", "database", "minio",
    ],
    "analytics-tools": ["rabbitmq", "clickhouse", "ch-server", "analytics", "ch-web", "ch-client"],
    "app": ["api", "admin", "fe", "frontend", "sse"],
    "stream": ["stream", "camera", "nvr"],
}


class DockboardSettings(BaseSettings):
    """Settings for the dockboard API, tracker and CLI.

    Order of precedence (highest → lowest):
        1. Keyword arguments (tests, CLI overrides)
        2. Environment variables (``DOCKBOARD_PORT``, etc.)
        3. ``.env`` file
        4. Defaults below
    """

    model_config = SettingsConfigDict(
        env_prefix="DOCKBOARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # ── Server ───────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3001, description="Bind port")
    debug: bool = Field(default=False, description="Expose exception text in 500 responses")
    log_level: str = Field(default="INFO", description="Log level")
    json_logs: bool | None = Field(default=None, description="JSON logs; None = auto-detect TTY")

    # ── API ──────────────────────────────────────────────────────────────
    api_prefix: str = Field(default="/api", description="URL prefix for REST endpoints")
    api_title: str = Field(default="dockboard API", description="OpenAPI title")
    api_version: str = Field(default="1.0.0", description="OpenAPI version string")
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")
    slow_request_ms: float = Field(
        default=1000.0,
        ge=0,
        description="Requests slower than this are logged (SSE streams excepted)",
    )

    # ── Container runtime ────────────────────────────────────────────────
    docker_host: str = Field(
        default="unix:///var/run/docker.sock",
        description="Engine API endpoint (unix:// socket or http(s):// URL)",
    )
    docker_api_version: str | None = Field(
        default=None,
        description="Optional Engine API version prefix, e.g. 'v1.43'",
    )
    docker_timeout_seconds: float = Field(default=30.0, description="Timeout for one-shot Engine calls")
    compose_command: list[str] = Field(
        default=["docker", "compose"],
        description="Orchestration CLI invocation",
    )

    # ── Project ──────────────────────────────────────────────────────────
    project_root: Path = Field(default=Path("."), description="Compose working directory")
    project_keyword: str = Field(
        default="",
        description="Substring marking a container as part of the project (empty: all)",
    )
    profiles: list[str] = Field(default_factory=lambda: list(DEFAULT_PROFILES))
    profile_keywords: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_PROFILE_KEYWORDS.items()},
    )
    env_file_name: str = Field(default=".env", description="key=value settings file under project_root")
    mediamtx_path: str = Field(
        default="stream/config/mediamtx.yml",
        description="YAML file under project_root edited by the config endpoints",
    )

    # ── Operation tracker ────────────────────────────────────────────────
    completed_retention_seconds: float = Field(
        default=300.0,
        description="How long completed/errored operations stay queryable",
    )
    cancelled_retention_seconds: float = Field(
        default=60.0,
        description="How long cancelled operations stay queryable",
    )
    starting_nudge_seconds: float = Field(
        default=2.0,
        description="Delay before a still-starting operation gets a 'connecting' hint",
    )
    progress_ceiling: int = Field(
        default=99,
        ge=1,
        le=99,
        description="Upper bound of the creeping progress heuristic",
    )

    @property
    def env_file_path(self) -> Path:
        return self.project_root / self.env_file_name

    @property
    def mediamtx_file_path(self) -> Path:
        return self.project_root / self.mediamtx_path


@lru_cache(maxsize=1)
def get_settings() -> DockboardSettings:
    """Cached settings — loaded once per process."""
    return DockboardSettings()
