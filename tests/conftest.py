"""
Pytest configuration and shared fixtures.

Provides an isolated environment (no user config, no TASKBRIDGE_* vars),
a temporary SQLite store, and helpers for building remote backends on top
of ``httpx.MockTransport``.
"""

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from taskbridge.core.config import clear_cache
from taskbridge.core.config.loader import ConfigManager
from taskbridge.core.config.models import AppConfig
from taskbridge.core.history.trail import AuditTrail
from taskbridge.core.store.database import LocalStore
from taskbridge.core.tasks.models import Task, TaskPriority, TaskStatus

# ==============================================================================
# Environment Fixtures
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point XDG dirs at tmp_path and drop any TASKBRIDGE_* overrides."""
    for var in ("TASKBRIDGE_BACKEND", "TASKBRIDGE_HOME", "TASKBRIDGE_ACTOR"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
    clear_cache()
    yield
    clear_cache()


# ==============================================================================
# Store Fixtures
# ==============================================================================


@pytest.fixture
def store(tmp_path):
    """A LocalStore backed by a fresh SQLite file."""
    local_store = LocalStore(tmp_path / "data" / "taskbridge.sqlite")
    yield local_store
    local_store.close()


@pytest.fixture
def audit(store):
    """AuditTrail writing to the test store."""
    return AuditTrail(store, actor="tester")


@pytest.fixture
def sample_task():
    """A fully populated task."""
    return Task(
        id="task-1",
        title="Implement login",
        description="OAuth flow for the web app",
        status=TaskStatus.IN_PROGRESS,
        priority=TaskPriority.HIGH,
        tags=["auth", "backend"],
        assignee="alice",
        created_at="2024-01-01T00:00:00.000Z",
        updated_at="2024-01-01T00:00:00.000Z",
        source="local",
    )


# ==============================================================================
# Config / HTTP Helpers
# ==============================================================================


def make_config(active: str = "local", **providers: dict[str, Any]) -> ConfigManager:
    """Build a ConfigManager from provider name -> {credentials, settings}."""
    return ConfigManager(config=AppConfig(active_provider=active, providers=providers))


class Recorder:
    """Collects requests seen by a MockTransport handler."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def __len__(self) -> int:
        return len(self.requests)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def json(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


def mock_client(
    handler: Callable[[httpx.Request], httpx.Response],
) -> tuple[httpx.AsyncClient, Recorder]:
    """An AsyncClient whose requests are answered by handler and recorded."""
    recorder = Recorder()

    def recording_handler(request: httpx.Request) -> httpx.Response:
        recorder.requests.append(request)
        return handler(request)

    return httpx.AsyncClient(transport=httpx.MockTransport(recording_handler)), recorder


@pytest.fixture
def config_factory():
    return make_config


@pytest.fixture
def client_factory():
    return mock_client
