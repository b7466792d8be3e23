"""
API test fixtures: an app wired to the fake daemon and a live TestClient.

The client is used as a context manager so the lifespan runs and the
tracker's background tasks keep running between requests.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from dockboard.api.app import create_app


@pytest.fixture
def app(settings, engine) -> FastAPI:
    return create_app(settings, engine=engine)


@pytest.fixture
def client(app) -> Iterator[TestClient]:
    with TestClient(app) as client:
        yield client


def _poll(
    client: TestClient,
    url: str,
    until: Callable[[dict[str, Any]], bool],
    timeout: float = 5.0,
) -> dict[str, Any]:
    deadline = time.monotonic() + timeout
    while True:
        response = client.get(url)
        assert response.status_code == 200, response.text
        body = response.json()
        if until(body):
            return body
        if time.monotonic() > deadline:
            raise AssertionError(f"{url} never satisfied the condition; last body: {body}")
        time.sleep(0.01)


@pytest.fixture
def poll() -> Callable[..., dict[str, Any]]:
    """``poll(client, url, until=lambda body: ...)`` re-GETs until satisfied."""
    return _poll


def _sse_frames(text: str) -> list[dict[str, Any]]:
    return [json.loads(line[len("data: "):]) for line in text.splitlines() if line.startswith("data: ")]


@pytest.fixture
def sse_frames() -> Callable[[str], list[dict[str, Any]]]:
    return _sse_frames
