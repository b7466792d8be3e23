"""
Tests for the dockboard CLI (Typer CliRunner).
"""

from __future__ import annotations

import json
import sys

import pytest
from typer.testing import CliRunner

from dockboard.cli import operations
from dockboard.cli.app import app
from dockboard.runtime.client import EngineClient
from dockboard.tracker.service import OperationTracker

runner = CliRunner()

ECHO_COMPOSE = "import sys; print('Container site-' + sys.argv[2] + '-1  Started')"


@pytest.fixture
def fake_engine(monkeypatch, daemon):
    """Route ``dockboard pull`` to the fake daemon."""

    def build_tracker(settings):
        return OperationTracker(settings, EngineClient(settings, transport=daemon.transport))

    monkeypatch.setattr(operations, "build_tracker", build_tracker)
    return daemon


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "dockboard 1.0.0" in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "pull" in result.output
        assert "compose" in result.output

    def test_profiles(self):
        result = runner.invoke(app, ["profiles"])
        assert result.exit_code == 0
        for name in ("appstack", "analytics-tools", "app", "stream"):
            assert name in result.output


class TestPull:
    def test_pull_completes(self, fake_engine):
        result = runner.invoke(app, ["pull", "nginx:latest"])
        assert result.exit_code == 0, result.output
        assert "Downloaded newer image for nginx:latest" in result.output
        assert fake_engine.calls("POST", "/images/create")

    def test_denied_pull_exits_nonzero(self, fake_engine):
        fake_engine.denied_pulls.add("ghost/missing:latest")
        result = runner.invoke(app, ["pull", "ghost/missing"])
        assert result.exit_code == 1
        assert "pull access denied" in result.output

    def test_blank_image(self, fake_engine):
        result = runner.invoke(app, ["pull", " "])
        assert result.exit_code == 1
        assert "VALIDATION_FAILED" in result.output


class TestCompose:
    def test_invalid_profile(self, tmp_path):
        result = runner.invoke(app, ["compose", "bogus", "up", "--project-root", str(tmp_path)])
        assert result.exit_code == 1
        assert "Invalid profile 'bogus'" in result.output

    def test_runs_and_prints_output(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DOCKBOARD_COMPOSE_COMMAND", json.dumps([sys.executable, "-c", ECHO_COMPOSE]))
        result = runner.invoke(app, ["compose", "app", "up", "-C", str(tmp_path)])
        assert result.exit_code == 0, result.output
        assert "Container site-app-1  Started" in result.output

    def test_failing_run_exits_nonzero(self, monkeypatch, tmp_path):
        monkeypatch.setenv(
            "DOCKBOARD_COMPOSE_COMMAND", json.dumps([sys.executable, "-c", "import sys; sys.exit(4)"])
        )
        result = runner.invoke(app, ["compose", "stream", "down", "-C", str(tmp_path)])
        assert result.exit_code == 1
        assert "exited with code 4" in " ".join(result.output.split())
