"""
Tests for stats summaries, profile filtering, compose commands and the
project configuration files.
"""

from __future__ import annotations

import pytest

from dockboard.core.errors import NotFoundError, ValidationFailed
from dockboard.core.settings import DockboardSettings
from dockboard.runtime import config_files
from dockboard.runtime.compose import build_compose_command, validate_action
from dockboard.runtime.profiles import (
    container_details,
    container_summary,
    filter_by_profile,
    image_summary,
    validate_profile,
    volume_summary,
)
from dockboard.runtime.stats import aggregate_stats, cpu_fraction, summarize_stats

SAMPLE = {
    "cpu_stats": {"cpu_usage": {"total_usage": 400}, "system_cpu_usage": 2000, "online_cpus": 2},
    "precpu_stats": {"cpu_usage": {"total_usage": 200}, "system_cpu_usage": 1000},
    "memory_stats": {"usage": 1024, "limit": 4096},
    "blkio_stats": {"io_service_bytes_recursive": [{"op": "Read", "value": 10}, {"op": "Write", "value": 20}]},
    "networks": {"eth0": {"rx_bytes": 100, "tx_bytes": 50}, "eth1": {"rx_bytes": 1, "tx_bytes": 2}},
}


def _container(name: str, image: str) -> dict:
    return {"Id": name, "Names": [f"/{name}"], "Image": image}


# ── Stats ────────────────────────────────────────────────────────────────


class TestStats:
    def test_cpu_fraction(self):
        assert cpu_fraction(SAMPLE) == pytest.approx(0.4)

    def test_cpu_fraction_without_system_delta(self):
        assert cpu_fraction({"cpu_stats": {"cpu_usage": {"total_usage": 5}}}) == 0.0

    def test_summarize(self):
        summary = summarize_stats(SAMPLE)
        assert summary["memory"] == {"usage": 1024, "limit": 4096}
        assert summary["disk"] == {"read": 10, "write": 20}
        assert summary["network"] == {"rx": 101, "tx": 52}

    def test_summarize_stopped_container(self):
        summary = summarize_stats({"blkio_stats": {"io_service_bytes_recursive": None}, "networks": None})
        assert summary == {
            "cpu": 0.0,
            "memory": {"usage": 0, "limit": 0},
            "disk": {"read": 0, "write": 0},
            "network": {"rx": 0, "tx": 0},
        }

    def test_aggregate(self):
        one = summarize_stats(SAMPLE)
        total = aggregate_stats([one, one])
        assert total["count"] == 2
        assert total["cpu"] == pytest.approx(0.8)
        assert total["memory"]["usage"] == 2048
        assert total["network"]["tx"] == 104

    def test_aggregate_nothing(self):
        assert aggregate_stats([])["count"] == 0


# ── Profiles ─────────────────────────────────────────────────────────────


class TestProfiles:
    def test_validate_profile(self):
        settings = DockboardSettings()
        assert validate_profile(settings, "app") == "app"
        with pytest.raises(ValidationFailed, match="Invalid profile 'prod'"):
            validate_profile(settings, "prod")

    def test_project_keyword_is_case_sensitive(self):
        settings = DockboardSettings(project_keyword="onprem")
        containers = [_container("onprem-api-1", "x"), _container("OnPrem-db-1", "y"), _container("z", "onprem/fe")]
        assert [c["Id"] for c in filter_by_profile(containers, settings)] == ["onprem-api-1", "z"]

    def test_empty_project_keyword_keeps_everything(self):
        containers = [_container("a", "x"), _container("b", "y")]
        assert len(filter_by_profile(containers, DockboardSettings(project_keyword=""))) == 2

    def test_profile_keywords_match_name_or_image_ignoring_case(self):
        settings = DockboardSettings(project_keyword="", profile_keywords={"stream": ["Camera", "nvr"]})
        containers = [
            _container("site-CAMERA-1", "x"),
            _container("site-db", "vendor/nvr:2"),
            _container("site-api", "x"),
        ]
        selected = filter_by_profile(containers, settings, "stream")
        assert [c["Id"] for c in selected] == ["site-CAMERA-1", "site-db"]

    def test_unknown_profile_selects_nothing(self):
        settings = DockboardSettings(project_keyword="")
        assert filter_by_profile([_container("a", "x")], settings, "missing") == []

    def test_container_summary(self):
        raw = {
            "Id": "c1",
            "Names": ["/onprem-api-1"],
            "Image": "onprem/api:1.0",
            "State": "running",
            "Status": "Up 2 hours",
            "Ports": [{"PrivatePort": 8457, "PublicPort": 8457, "Type": "tcp"}],
            "Created": 1,
        }
        summary = container_summary(raw)
        assert summary["name"] == "onprem-api-1"
        assert summary["ports"] == [{"private": 8457, "public": 8457, "type": "tcp"}]
        assert container_summary({"Id": "x"})["name"] == "unknown"

    def test_container_details(self):
        details = container_details(
            {
                "Id": "c1",
                "Name": "/onprem-api-1",
                "Config": {"Image": "onprem/api:1.0", "Env": ["A=1"]},
                "State": {"Status": "running", "StartedAt": "2024-01-01T00:00:00Z"},
            }
        )
        assert details["name"] == "onprem-api-1"
        assert details["status"] == "running"
        assert details["env"] == ["A=1"]
        assert details["mounts"] == []

    def test_image_summary_untagged(self):
        assert image_summary({"Id": "sha256:b", "RepoTags": None})["tags"] == ["<none>:<none>"]

    def test_volume_summary(self):
        summary = volume_summary(
            {
                "Name": "pgdata",
                "Driver": "local",
                "CreatedAt": "2024-01-01T00:00:00Z",
                "UsageData": {"Size": 5, "RefCount": 1},
            }
        )
        assert summary["created"] == 1704067200000
        assert summary["scope"] == "local"
        assert summary["usage_data"] == {"size": 5, "ref_count": 1}
        assert "usage_data" not in volume_summary({"Name": "tmp"})


# ── Compose ──────────────────────────────────────────────────────────────


class TestComposeCommand:
    def test_up_is_detached(self):
        assert build_compose_command(DockboardSettings(), "app", "up") == [
            "docker", "compose", "--profile", "app", "up", "-d",
        ]

    def test_down(self):
        assert build_compose_command(DockboardSettings(), "stream", "down") == [
            "docker", "compose", "--profile", "stream", "down",
        ]

    def test_custom_command(self):
        settings = DockboardSettings(compose_command=["docker-compose"])
        assert build_compose_command(settings, "app", "down")[:3] == ["docker-compose", "--profile", "app"]

    def test_invalid_action(self):
        with pytest.raises(ValidationFailed, match="Invalid action 'restart'"):
            validate_action("restart")

    def test_invalid_profile(self):
        with pytest.raises(ValidationFailed):
            build_compose_command(DockboardSettings(), "nope", "up")


# ── Config files ─────────────────────────────────────────────────────────


class TestEnvFile:
    def test_missing_env_reads_empty(self, settings):
        assert config_files.read_env_file(settings) == ""

    def test_write_then_read(self, settings):
        config_files.write_env_file(settings, "A=1\n")
        assert config_files.read_env_file(settings) == "A=1\n"
        assert settings.env_file_path.exists()

    @pytest.mark.parametrize("ip", ["10.0.0.300", "10.0.0", "host.local", "1.2.3.4.5", ""])
    def test_invalid_ip(self, ip):
        with pytest.raises(ValidationFailed, match="Invalid IP address format"):
            config_files.validate_ipv4(ip)

    def test_validate_ip_strips(self):
        assert config_files.validate_ipv4(" 192.168.1.20 ") == "192.168.1.20"


class TestHostEntries:
    def test_rewrites_existing_entries(self):
        content = "\n".join(
            [
                "# site settings",
                "HOST_IP=10.0.0.1",
                "SSE_ALLOW_ORIGINS=http://localhost:3000,http://10.0.0.1",
                "BASE_URL=http://localhost:8457/api/v1",
                "HOMEPAGE_URL=http://localhost:80",
                "OTHER=keep",
            ]
        )
        result = config_files.rewrite_host_entries(content, "192.168.1.20").split("\n")
        assert result == [
            "# site settings",
            "HOST_IP=192.168.1.20",
            "SSE_ALLOW_ORIGINS=http://localhost:3000,http://10.0.0.1,http://192.168.1.20",
            "BASE_URL=http://192.168.1.20:8457/api/v1",
            "HOMEPAGE_URL=http://192.168.1.20:80",
            "OTHER=keep",
        ]

    def test_origin_already_present_is_not_duplicated(self):
        content = "SSE_ALLOW_ORIGINS=http://192.168.1.20:3000"
        result = config_files.rewrite_host_entries(content, "192.168.1.20").split("\n")
        assert result[0] == content
        assert sum(line.startswith("SSE_ALLOW_ORIGINS=") for line in result) == 1

    def test_commented_host_ip_is_uncommented(self):
        result = config_files.rewrite_host_entries("#HOST_IP=1.1.1.1", "10.1.1.1")
        assert result.split("\n")[0] == "HOST_IP=10.1.1.1"

    def test_commented_url_keeps_marker(self):
        result = config_files.rewrite_host_entries("# BASE_URL=http://localhost:8457/api/v1", "10.1.1.1")
        assert "# BASE_URL=http://10.1.1.1:8457/api/v1" in result.split("\n")

    def test_missing_entries_appended(self):
        result = config_files.rewrite_host_entries("OTHER=1", "10.1.1.1").split("\n")
        assert result == [
            "OTHER=1",
            "HOST_IP=10.1.1.1",
            "SSE_ALLOW_ORIGINS=http://10.1.1.1",
            "BASE_URL=http://10.1.1.1:8457/api/v1",
            "HOMEPAGE_URL=http://10.1.1.1:80",
        ]

    def test_update_host_ip_writes_file(self, settings):
        settings.env_file_path.write_text("HOST_IP=1.1.1.1\n", encoding="utf-8")
        config_files.update_host_ip(settings, "10.2.2.2")
        written = settings.env_file_path.read_text(encoding="utf-8")
        assert written.startswith("HOST_IP=10.2.2.2\n")

    def test_update_host_ip_rejects_bad_ip(self, settings):
        with pytest.raises(ValidationFailed):
            config_files.update_host_ip(settings, "999.1.1.1")
        assert not settings.env_file_path.exists()


class TestMediamtx:
    def test_missing_file_is_not_found(self, settings):
        with pytest.raises(NotFoundError, match="mediamtx.yml not found"):
            config_files.read_mediamtx(settings)

    def test_write_creates_parents(self, settings):
        config_files.write_mediamtx(settings, "paths:\n  cam1:\n    source: rtsp://10.0.0.9/live\n")
        assert config_files.read_mediamtx(settings).startswith("paths:")
        assert settings.mediamtx_file_path.parent.name == "config"

    def test_invalid_yaml_not_written(self, settings):
        with pytest.raises(ValidationFailed, match="Invalid YAML"):
            config_files.write_mediamtx(settings, "paths: [unclosed\n")
        assert not settings.mediamtx_file_path.exists()
