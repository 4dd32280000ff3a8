"""Unit tests for the Anthropic client and its circuit breaker."""

import httpx
import pytest
from pydantic import SecretStr

from ramsflow.config.settings import get_settings
from ramsflow.core.errors import ErrorCode, ServiceUnavailableError
from ramsflow.services.ai import client as client_module
from ramsflow.services.ai.client import (
    AnthropicAPIError,
    AnthropicClient,
    CircuitBreaker,
    CircuitState,
)

_RealAsyncClient = httpx.AsyncClient


def _settings(**overrides):
    values = {
        "anthropic_api_key": SecretStr("sk-test"),
        "ai_circuit_breaker_threshold": 2,
        "ai_circuit_breaker_timeout_seconds": 60,
    }
    values.update(overrides)
    return get_settings().model_copy(update=values)


@pytest.fixture
def mock_api(monkeypatch):
    """Route the client's HTTP calls to a handler; returns the captured requests."""
    calls: list[httpx.Request] = []
    state = {"handler": None}

    def transport_handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return state["handler"](request)

    def factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(transport_handler)
        return _RealAsyncClient(*args, **kwargs)

    monkeypatch.setattr(client_module.httpx, "AsyncClient", factory)

    def use(handler):
        state["handler"] = handler
        return calls

    return use


def _ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "model": "claude-x",
            "content": [{"type": "text", "text": "CONTROL_MEASURES:\n- a"}],
            "usage": {"input_tokens": 11, "output_tokens": 7},
        },
    )


# ─── Circuit breaker ──────────────────────────────────────────────────────────


def test_circuit_opens_at_threshold():
    breaker = CircuitBreaker(threshold=3, timeout_seconds=60)
    breaker.record_failure()
    breaker.record_failure()
    assert breaker.state == CircuitState.CLOSED
    breaker.record_failure()
    assert breaker.state == CircuitState.OPEN
    assert breaker.allow_request() is False


def test_circuit_half_opens_after_timeout():
    breaker = CircuitBreaker(threshold=1, timeout_seconds=0)
    breaker.record_failure()
    assert breaker.state == CircuitState.HALF_OPEN
    assert breaker.allow_request() is True


def test_success_resets_failures():
    breaker = CircuitBreaker(threshold=2, timeout_seconds=60)
    breaker.record_failure()
    breaker.record_success()
    breaker.record_failure()
    assert breaker.state == CircuitState.CLOSED


# ─── Client ───────────────────────────────────────────────────────────────────


def test_is_configured_requires_key():
    assert AnthropicClient(_settings()).is_configured is True
    assert AnthropicClient(_settings(anthropic_api_key=None)).is_configured is False
    assert AnthropicClient(_settings(anthropic_api_key=SecretStr(""))).is_configured is False


async def test_complete_posts_messages_request(mock_api):
    calls = mock_api(_ok)
    result = await AnthropicClient(_settings(anthropic_model="claude-m")).complete("hello")

    assert result.text == "CONTROL_MEASURES:\n- a"
    assert result.model == "claude-x"
    assert (result.input_tokens, result.output_tokens) == (11, 7)

    [request] = calls
    assert request.url.path == "/v1/messages"
    assert request.headers["x-api-key"] == "sk-test"
    assert b'"model":"claude-m"' in request.content.replace(b" ", b"")


async def test_error_status_raises_api_error(mock_api):
    mock_api(lambda request: httpx.Response(529, text="overloaded"))
    with pytest.raises(AnthropicAPIError) as exc_info:
        await AnthropicClient(_settings()).complete("hello")
    assert exc_info.value.status_code == 529


async def test_transport_failure_is_service_unavailable(mock_api):
    def boom(request):
        raise httpx.ConnectError("refused", request=request)

    mock_api(boom)
    with pytest.raises(ServiceUnavailableError) as exc_info:
        await AnthropicClient(_settings()).complete("hello")
    assert exc_info.value.code == ErrorCode.AI_UNAVAILABLE


async def test_open_circuit_short_circuits(mock_api):
    calls = mock_api(lambda request: httpx.Response(500, text="err"))
    client = AnthropicClient(_settings(ai_circuit_breaker_threshold=2))
    for _ in range(2):
        with pytest.raises(AnthropicAPIError):
            await client.complete("hello")

    with pytest.raises(ServiceUnavailableError) as exc_info:
        await client.complete("hello")
    assert exc_info.value.code == ErrorCode.AI_CIRCUIT_OPEN
    assert len(calls) == 2


async def test_empty_content_gives_empty_text(mock_api):
    mock_api(lambda request: httpx.Response(200, json={"content": []}))
    result = await AnthropicClient(_settings()).complete("hello")
    assert result.text == ""
    assert result.input_tokens == 0
