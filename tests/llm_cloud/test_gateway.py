"""
Unit tests for `llm_cloud/gateway.py` – ProviderGateway request shape, retries and error mapping.

A fake client factory is injected so no HTTP request leaves the process. The fake exposes the
same `chat.completions.create` coroutine the OpenAI SDK does; real `openai` exception types are
raised from it to verify the NETWORK / UPSTREAM mapping.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from llm_cloud.gateway import ProviderGateway
from llm_cloud.provider import get_client, require_api_key
from config.settings import ProviderConfig
from shared.errors import ProviderError, ProviderErrorKind

REQUEST = httpx.Request("POST", "https://openrouter.test/api/v1/chat/completions")


def completion(content):
    response = MagicMock()
    response.choices[0].message.content = content
    return response


def connection_error():
    return openai.APIConnectionError(request=REQUEST)


def status_error(status=500, body=None):
    return openai.APIStatusError(
        "upstream failure",
        response=httpx.Response(status, request=REQUEST),
        body=body if body is not None else {"error": "boom"},
    )


class FakeClientFactory:
    """Records construction arguments and hands out one shared fake client."""

    def __init__(self, *results):
        self.client = MagicMock()
        self.client.chat.completions.create = AsyncMock(side_effect=list(results))
        self.client.close = AsyncMock()
        self.calls = []

    def __call__(self, provider, api_key, timeout):
        self.calls.append((provider.name, api_key, timeout))
        return self.client

    @property
    def create(self):
        return self.client.chat.completions.create


def test_query_sends_system_and_user_messages(make_settings):
    factory = FakeClientFactory(completion("  ls -la \n"))
    gateway = ProviderGateway(make_settings(prompts={"system": "SYSTEM"}), client_factory=factory)

    reply = asyncio.run(gateway.query("openrouter", "list files"))

    assert reply.text == "ls -la"
    assert reply.provider == "openrouter"
    assert reply.model == "test/model"
    assert factory.calls == [("openrouter", "or-key", 60.0)]
    kwargs = factory.create.call_args.kwargs
    assert kwargs["model"] == "test/model"
    assert kwargs["messages"] == [
        {"role": "system", "content": "SYSTEM"},
        {"role": "user", "content": "list files"},
    ]
    assert kwargs["temperature"] == 0.3
    assert kwargs["max_tokens"] == 2000


def test_query_steps_returns_trimmed_lines(make_settings):
    factory = FakeClientFactory(completion("apt-get update\n\n  apt-get install -y nginx  \n"))
    gateway = ProviderGateway(make_settings(prompts={"mcps": "STEPS"}), client_factory=factory)

    steps = asyncio.run(gateway.query_steps("openrouter", "install nginx"))

    assert steps == ["apt-get update", "apt-get install -y nginx"]
    assert factory.create.call_args.kwargs["messages"][0]["content"] == "STEPS"


def test_model_override(make_settings):
    factory = FakeClientFactory(completion("ok"))
    gateway = ProviderGateway(make_settings(), client_factory=factory)
    reply = asyncio.run(gateway.complete("deepseek", "sys", "user", model="other/model"))
    assert reply.model == "other/model"
    assert factory.create.call_args.kwargs["model"] == "other/model"


def test_unknown_provider(make_settings):
    factory = FakeClientFactory()
    gateway = ProviderGateway(make_settings(), client_factory=factory)

    with pytest.raises(ProviderError) as exc_info:
        asyncio.run(gateway.query("nope", "list files"))

    assert exc_info.value.kind == ProviderErrorKind.UNKNOWN_PROVIDER
    assert factory.calls == []


def test_missing_credential_is_not_retried(make_settings, monkeypatch):
    monkeypatch.delenv("KEYLESS_API_KEY", raising=False)
    settings = make_settings()
    keyless = ProviderConfig(name="keyless", endpoint="https://keyless.test/v1", default_model="m")
    settings = settings.model_copy(update={
        "ai": settings.ai.model_copy(update={"providers": {**settings.ai.providers, "keyless": keyless}})
    })
    factory = FakeClientFactory()
    gateway = ProviderGateway(settings, client_factory=factory)

    with pytest.raises(ProviderError) as exc_info:
        asyncio.run(gateway.query("keyless", "list files"))

    assert exc_info.value.kind == ProviderErrorKind.MISSING_CREDENTIAL
    assert "KEYLESS_API_KEY" in str(exc_info.value)
    factory.create.assert_not_called()


def test_network_error_is_retried_then_succeeds(make_settings):
    factory = FakeClientFactory(connection_error(), completion("uptime"))
    gateway = ProviderGateway(make_settings(ai={"max_retries": 3}), client_factory=factory)

    reply = asyncio.run(gateway.query("openrouter", "how long is the server up"))

    assert reply.text == "uptime"
    assert factory.create.await_count == 2


def test_max_retries_is_total_attempts(make_settings):
    factory = FakeClientFactory(connection_error(), connection_error(), connection_error())
    gateway = ProviderGateway(make_settings(ai={"max_retries": 2}), client_factory=factory)

    with pytest.raises(ProviderError) as exc_info:
        asyncio.run(gateway.query("openrouter", "list files"))

    assert exc_info.value.kind == ProviderErrorKind.NETWORK
    assert factory.create.await_count == 2
    factory.client.close.assert_awaited_once()


def test_client_is_closed_after_success(make_settings):
    factory = FakeClientFactory(completion("df -h"))
    gateway = ProviderGateway(make_settings(), client_factory=factory)

    asyncio.run(gateway.query("openrouter", "show disk usage"))

    factory.client.close.assert_awaited_once()


def test_zero_retries_still_makes_one_attempt(make_settings):
    factory = FakeClientFactory(completion("ls"))
    gateway = ProviderGateway(make_settings(ai={"max_retries": 0}), client_factory=factory)
    assert asyncio.run(gateway.query("openrouter", "list files")).text == "ls"


def test_status_error_maps_to_upstream(make_settings):
    factory = FakeClientFactory(status_error(502, {"error": "bad gateway"}))
    gateway = ProviderGateway(make_settings(ai={"max_retries": 1}), client_factory=factory)

    with pytest.raises(ProviderError) as exc_info:
        asyncio.run(gateway.query("openrouter", "list files"))

    error = exc_info.value
    assert error.kind == ProviderErrorKind.UPSTREAM
    assert error.status_code == 502
    assert error.body == {"error": "bad gateway"}


def test_empty_completion_is_upstream_error(make_settings):
    factory = FakeClientFactory(completion("   "))
    gateway = ProviderGateway(make_settings(ai={"max_retries": 1}), client_factory=factory)

    with pytest.raises(ProviderError) as exc_info:
        asyncio.run(gateway.query("openrouter", "list files"))

    assert exc_info.value.kind == ProviderErrorKind.UPSTREAM


def test_require_api_key_prefers_config_then_env(monkeypatch):
    monkeypatch.setenv("ENVONLY_API_KEY", "from-env")
    configured = ProviderConfig(name="cfg", endpoint="https://x.test", api_key="from-config", default_model="m")
    env_only = ProviderConfig(name="envonly", endpoint="https://x.test", default_model="m")

    assert require_api_key(configured) == ("config", "from-config")
    assert require_api_key(env_only) == ("ENVONLY_API_KEY", "from-env")


def test_get_client_targets_provider_endpoint():
    provider = ProviderConfig(
        name="openrouter",
        endpoint="https://openrouter.test/api/v1",
        default_model="m",
        headers={"X-Title": "FazAI"},
    )
    client = get_client(provider, "secret", timeout=5.0)

    assert str(client.base_url).rstrip("/") == "https://openrouter.test/api/v1"
    assert client.api_key == "secret"
    assert client.max_retries == 0
