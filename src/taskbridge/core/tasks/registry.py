"""
Backend selection and instancing.

The registry turns a backend name (or the configured default) into a
ready TaskBackend instance and keeps one instance per name for its whole
lifetime, so HTTP clients and resolved configuration are reused between
calls.
"""

from __future__ import annotations

import logging
import os

import httpx

from taskbridge.core.config.loader import ConfigSource
from taskbridge.core.history.trail import DEFAULT_ACTOR, AuditTrail
from taskbridge.core.store.database import LocalStore

from .backend import TaskBackend, get_backend_class, list_backends
from .local import LocalBackend
from .remote import RemoteBackend

# Import backend implementations to trigger registration
from . import asana, azure_devops, github, jira, monday, trello  # noqa: F401

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = "local"


class BackendRegistry:
    """
    Creates and caches backend instances.

    Resolution order for the backend name:
    1. The name passed to :meth:`get`
    2. TASKBRIDGE_BACKEND environment variable
    3. ``config.active_provider``

    Names are case-insensitive. An unknown name logs a warning and resolves
    to the local backend, so a zero-configuration setup always works.

    Example:
        >>> registry = BackendRegistry(ConfigManager(), store)
        >>> registry.get("GitHub") is registry.get("github")
        True
        >>> registry.get("nonexistent").backend_name
        'local'
    """

    def __init__(
        self,
        config: ConfigSource,
        store: LocalStore,
        audit: AuditTrail | None = None,
        actor: str = DEFAULT_ACTOR,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._audit = audit
        self._actor = actor
        self._client = client
        self._instances: dict[str, TaskBackend] = {}

    def resolve_name(self, name: str | None = None) -> str:
        """
        Resolve the backend name a call would use.

        Returns:
            A registered backend name
        """
        requested = name or os.environ.get("TASKBRIDGE_BACKEND") or self._config.active_provider
        resolved = (requested or DEFAULT_BACKEND).strip().lower()
        if get_backend_class(resolved) is None:
            logger.warning(
                "Unknown backend '%s', falling back to %s. Available backends: %s",
                requested,
                DEFAULT_BACKEND,
                ", ".join(list_backends()),
            )
            return DEFAULT_BACKEND
        return resolved

    def get(self, name: str | None = None) -> TaskBackend:
        """
        Get the backend instance for a name (or the configured default).

        Construction never reads backend configuration; a misconfigured
        remote backend fails on its first operation.
        """
        resolved = self.resolve_name(name)
        backend = self._instances.get(resolved)
        if backend is None:
            backend = self._create(resolved)
            self._instances[resolved] = backend
            logger.info("Created %s backend", resolved)
        return backend

    def _create(self, name: str) -> TaskBackend:
        backend_class = get_backend_class(name)
        assert backend_class is not None
        if issubclass(backend_class, LocalBackend):
            return backend_class(self._store, self._audit, actor=self._actor)
        if issubclass(backend_class, RemoteBackend):
            return backend_class(self._config, client=self._client)
        return backend_class()

    def list_backends(self) -> list[str]:
        """Names of every registered backend."""
        return sorted(list_backends())

    def is_backend_available(self, name: str) -> bool:
        """True if a backend is registered under the name (case-insensitive)."""
        return get_backend_class(name.strip().lower()) is not None

    async def aclose(self) -> None:
        """Close every cached backend and forget it."""
        for backend in self._instances.values():
            close = getattr(backend, "aclose", None)
            if close is not None:
                await close()
        self._instances.clear()
