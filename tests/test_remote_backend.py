"""
Tests for the RemoteBackend plumbing: lazy configuration, request
wrapping, error translation and client ownership.
"""

import httpx
import pytest

from taskbridge.core.config.models import ProviderConfig
from taskbridge.core.tasks.exceptions import (
    BackendNotImplementedError,
    ConfigurationError,
    TransportError,
)
from taskbridge.core.tasks.models import CreateTaskInput, UpdateTaskInput
from taskbridge.core.tasks.remote import MAX_DETAIL_LENGTH, RemoteBackend


class ExampleBackend(RemoteBackend):
    name = "example"
    base_url = "https://tracker.example.com/api/"
    required_credentials = ("token",)
    required_settings = ("project",)

    configure_calls = 0

    def _configure(self, provider: ProviderConfig) -> None:
        type(self).configure_calls += 1
        self.project = provider.settings["project"]

    def _headers(self) -> dict[str, str]:
        return {"X-Token": "secret"}

    def _default_params(self) -> dict:
        return {"v": "1"}

    async def ping(self):
        return await self._request_json("GET", "ping")


def configured(config_factory):
    return config_factory(example={"credentials": {"token": "t"}, "settings": {"project": "P"}})


class TestLazyConfiguration:
    def test_construction_reads_nothing(self, config_factory):
        backend = ExampleBackend(config_factory())
        assert backend.backend_name == "example"

    @pytest.mark.asyncio
    async def test_missing_config_raises_on_every_call(self, config_factory, client_factory):
        client, recorder = client_factory(lambda request: httpx.Response(200, json={}))
        backend = ExampleBackend(config_factory(), client=client)

        for _ in range(2):
            with pytest.raises(ConfigurationError) as exc_info:
                await backend.ping()
            assert exc_info.value.missing == ["credentials.token", "settings.project"]
        assert len(recorder) == 0

    @pytest.mark.asyncio
    async def test_partial_config_names_missing_keys(self, config_factory):
        backend = ExampleBackend(config_factory(example={"credentials": {"token": "t"}}))
        with pytest.raises(ConfigurationError) as exc_info:
            await backend.ping()
        assert exc_info.value.missing == ["settings.project"]
        assert "[example]" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_disabled_provider_is_unconfigured(self, config_factory):
        config = config_factory(
            example={"enabled": False, "credentials": {"token": "t"}, "settings": {"project": "P"}}
        )
        with pytest.raises(ConfigurationError):
            await ExampleBackend(config).ping()

    @pytest.mark.asyncio
    async def test_configures_once(self, config_factory, client_factory):
        ExampleBackend.configure_calls = 0
        client, _ = client_factory(lambda request: httpx.Response(200, json={"ok": True}))
        backend = ExampleBackend(configured(config_factory), client=client)

        await backend.ping()
        await backend.ping()

        assert ExampleBackend.configure_calls == 1


class TestRequests:
    @pytest.mark.asyncio
    async def test_url_headers_and_params(self, config_factory, client_factory):
        client, recorder = client_factory(lambda request: httpx.Response(200, json={"ok": True}))
        backend = ExampleBackend(configured(config_factory), client=client)

        assert await backend.ping() == {"ok": True}

        request = recorder.last
        assert str(request.url).startswith("https://tracker.example.com/api/ping")
        assert request.url.params["v"] == "1"
        assert request.headers["X-Token"] == "secret"

    @pytest.mark.asyncio
    async def test_empty_body_is_none(self, config_factory, client_factory):
        client, _ = client_factory(lambda request: httpx.Response(204))
        backend = ExampleBackend(configured(config_factory), client=client)
        assert await backend.ping() is None

    @pytest.mark.asyncio
    async def test_non_2xx_becomes_transport_error(self, config_factory, client_factory):
        client, _ = client_factory(
            lambda request: httpx.Response(503, json={"message": "Service Unavailable"})
        )
        backend = ExampleBackend(configured(config_factory), client=client)

        with pytest.raises(TransportError) as exc_info:
            await backend.ping()

        assert exc_info.value.status_code == 503
        assert str(exc_info.value) == "[example] HTTP 503: Service Unavailable"

    @pytest.mark.asyncio
    async def test_long_error_body_truncated(self, config_factory, client_factory):
        client, _ = client_factory(lambda request: httpx.Response(500, text="x" * 1000))
        backend = ExampleBackend(configured(config_factory), client=client)

        with pytest.raises(TransportError) as exc_info:
            await backend.ping()

        assert len(exc_info.value.detail) == MAX_DETAIL_LENGTH + 3

    @pytest.mark.asyncio
    async def test_network_error_has_no_status(self, config_factory, client_factory):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, recorder = client_factory(handler)
        backend = ExampleBackend(configured(config_factory), client=client)

        with pytest.raises(TransportError) as exc_info:
            await backend.ping()

        assert exc_info.value.status_code is None
        assert len(recorder) == 1

    @pytest.mark.asyncio
    async def test_invalid_json_is_transport_error(self, config_factory, client_factory):
        client, _ = client_factory(lambda request: httpx.Response(200, text="<html>"))
        backend = ExampleBackend(configured(config_factory), client=client)
        with pytest.raises(TransportError):
            await backend.ping()


class TestUnsupportedOperations:
    @pytest.mark.asyncio
    async def test_default_operations_not_implemented(self, config_factory):
        backend = ExampleBackend(configured(config_factory))
        calls = [
            backend.get_tasks(),
            backend.get_task_by_id("1"),
            backend.create_task(CreateTaskInput(title="x")),
            backend.update_task(UpdateTaskInput(id="1")),
            backend.delete_task("1"),
            backend.add_comment("1", "hi"),
        ]
        for call in calls:
            with pytest.raises(BackendNotImplementedError) as exc_info:
                await call
            assert isinstance(exc_info.value, NotImplementedError)


class TestClientOwnership:
    @pytest.mark.asyncio
    async def test_injected_client_left_open(self, config_factory, client_factory):
        client, _ = client_factory(lambda request: httpx.Response(200))
        backend = ExampleBackend(configured(config_factory), client=client)
        await backend.aclose()
        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_own_client_closed(self, config_factory):
        backend = ExampleBackend(configured(config_factory))
        client = backend.client
        await backend.aclose()
        assert client.is_closed
