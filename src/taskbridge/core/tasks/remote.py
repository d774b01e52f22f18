"""
Shared plumbing for backends that talk to a remote tracker over HTTP.

A RemoteBackend is constructed with a configuration source and, optionally,
an ``httpx.AsyncClient`` (tests inject one built on ``httpx.MockTransport``).
Nothing is read from configuration until the first operation runs, and any
incomplete configuration is reported then as a ConfigurationError.

Operations a subclass does not override raise BackendNotImplementedError,
so each adapter's capability set is exactly the methods it defines.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar

import httpx

from taskbridge.core.config.loader import ConfigSource
from taskbridge.core.config.models import ProviderConfig

from .exceptions import BackendNotImplementedError, ConfigurationError, TransportError
from .models import CreateTaskInput, Task, TaskFilter, UpdateTaskInput

logger = logging.getLogger(__name__)

# Longest response body quoted in a TransportError
MAX_DETAIL_LENGTH = 300


class RemoteBackend:
    """
    Base class for HTTP-backed task backends.

    Subclasses declare ``name``, ``base_url`` and the credential/setting keys
    they require, implement ``_configure`` to pick their settings apart, and
    override only the operations they support.
    """

    name: ClassVar[str] = ""
    base_url: ClassVar[str] = ""
    required_credentials: ClassVar[tuple[str, ...]] = ()
    required_settings: ClassVar[tuple[str, ...]] = ()

    def __init__(self, config: ConfigSource, client: httpx.AsyncClient | None = None) -> None:
        self._config_source = config
        self._client = client
        self._owns_client = client is None
        self._provider: ProviderConfig | None = None

    @property
    def backend_name(self) -> str:
        return self.name

    @property
    def client(self) -> httpx.AsyncClient:
        """The HTTP client, created on first use when none was injected."""
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    def _ensure_initialized(self) -> ProviderConfig:
        """
        Resolve and validate configuration on first use.

        Idempotent once it succeeds. While the configuration stays
        incomplete every call raises again.

        Raises:
            ConfigurationError: If required credentials or settings are missing
        """
        if self._provider is not None:
            return self._provider

        provider = self._config_source.get_provider_config(self.name)
        missing = self._missing_keys(provider)
        if missing:
            raise ConfigurationError(
                self.name,
                f"{self.name} is not configured; missing {', '.join(missing)}",
                missing=missing,
            )

        assert provider is not None
        self._configure(provider)
        self._provider = provider
        logger.info("Initialized %s backend", self.name)
        return provider

    def _missing_keys(self, provider: ProviderConfig | None) -> list[str]:
        credentials = provider.credentials if provider else {}
        settings = provider.settings if provider else {}
        missing = [f"credentials.{key}" for key in self.required_credentials if not credentials.get(key)]
        missing += [f"settings.{key}" for key in self.required_settings if not settings.get(key)]
        return missing

    def _configure(self, provider: ProviderConfig) -> None:
        """Pick the provider configuration apart; may raise ConfigurationError."""

    def _headers(self) -> dict[str, str]:
        return {"Accept": "application/json"}

    def _auth(self) -> httpx.Auth | tuple[str, str] | None:
        return None

    def _default_params(self) -> dict[str, Any]:
        return {}

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send one request. No retries.

        Raises:
            TransportError: On a non-2xx response (with its status code) or a
                network failure (status_code None)
        """
        self._ensure_initialized()
        url = self._url(path)
        headers = {**self._headers(), **(kwargs.pop("headers", None) or {})}
        params = {**self._default_params(), **(kwargs.pop("params", None) or {})}
        auth = self._auth()
        if auth is not None:
            kwargs["auth"] = auth

        logger.debug("%s %s %s", self.name, method, url)
        try:
            response = await self.client.request(
                method, url, headers=headers, params=params or None, **kwargs
            )
        except httpx.RequestError as e:
            raise TransportError(self.name, None, f"Network error: {e}", url=url) from e

        if not response.is_success:
            raise TransportError(
                self.name,
                response.status_code,
                _response_detail(response),
                url=url,
                method=method,
            )
        return response

    async def _request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and decode its JSON body (None for an empty body)."""
        response = await self._request(method, path, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(
                self.name, response.status_code, f"Invalid JSON response: {e}"
            ) from e

    def _unsupported(self, operation: str) -> BackendNotImplementedError:
        return BackendNotImplementedError(self.name, operation)

    async def get_tasks(self, filter: TaskFilter | None = None) -> list[Task]:
        raise self._unsupported("get_tasks")

    async def get_task_by_id(self, task_id: str) -> Task | None:
        raise self._unsupported("get_task_by_id")

    async def create_task(self, input: CreateTaskInput) -> Task:
        raise self._unsupported("create_task")

    async def update_task(self, input: UpdateTaskInput) -> Task:
        raise self._unsupported("update_task")

    async def delete_task(self, task_id: str) -> bool:
        raise self._unsupported("delete_task")

    async def add_comment(self, task_id: str, content: str) -> Task:
        raise self._unsupported("add_comment")

    async def aclose(self) -> None:
        """Close the HTTP client if this backend created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


def _response_detail(response: httpx.Response) -> str:
    """Best human-readable description of an error response."""
    detail = ""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("message", "error", "errorMessages", "errors"):
            value = body.get(key)
            if value:
                detail = value if isinstance(value, str) else str(value)
                break
    if not detail:
        detail = response.text.strip() or response.reason_phrase

    if len(detail) > MAX_DETAIL_LENGTH:
        detail = detail[:MAX_DETAIL_LENGTH] + "..."
    return detail

