"""
Tests for backend registration and the BackendRegistry.
"""

import pytest

from taskbridge.core.tasks.backend import get_backend_class, is_backend_available, list_backends
from taskbridge.core.tasks.github import GitHubBackend
from taskbridge.core.tasks.local import LocalBackend
from taskbridge.core.tasks.registry import BackendRegistry

ALL_BACKENDS = ["asana", "azure-devops", "github", "jira", "local", "monday", "trello"]


@pytest.fixture
def registry(store, audit, config_factory):
    return BackendRegistry(config_factory(), store, audit=audit, actor="tester")


class TestRegistration:
    def test_every_backend_registered(self, registry):
        assert registry.list_backends() == ALL_BACKENDS

    def test_module_level_lookup(self, registry):
        assert get_backend_class("github") is GitHubBackend
        assert get_backend_class("nope") is None
        assert is_backend_available("jira")
        assert set(list_backends()) == set(ALL_BACKENDS)


class TestResolution:
    def test_default_is_configured_provider(self, store, config_factory):
        registry = BackendRegistry(config_factory(active="github"), store)
        assert registry.resolve_name() == "github"

    def test_explicit_name_wins(self, store, config_factory):
        registry = BackendRegistry(config_factory(active="github"), store)
        assert registry.resolve_name("Trello") == "trello"

    def test_env_overrides_config(self, store, config_factory, monkeypatch):
        monkeypatch.setenv("TASKBRIDGE_BACKEND", "JIRA")
        registry = BackendRegistry(config_factory(active="github"), store)
        assert registry.resolve_name() == "jira"

    def test_unknown_name_falls_back_to_local(self, registry, caplog):
        backend = registry.get("nonexistent")
        assert isinstance(backend, LocalBackend)
        assert "Unknown backend 'nonexistent'" in caplog.text

    def test_is_backend_available_case_insensitive(self, registry):
        assert registry.is_backend_available("GitHub")
        assert not registry.is_backend_available("gitlab")


class TestInstances:
    def test_instances_cached(self, registry):
        assert registry.get("github") is registry.get("GITHUB")
        assert registry.get() is registry.get("local")

    def test_local_backend_shares_store_and_actor(self, registry, store):
        backend = registry.get("local")
        assert backend.store is store
        assert backend.actor == "tester"

    def test_unconfigured_remote_constructs(self, registry):
        backend = registry.get("jira")
        assert backend.backend_name == "jira"

    @pytest.mark.asyncio
    async def test_aclose_forgets_instances(self, registry):
        first = registry.get("github")
        await registry.aclose()
        assert registry.get("github") is not first
