"""
Anthropic Messages API client with a circuit breaker.

One operation: complete() sends a single user message and returns the
first text block plus token usage. Non-2xx responses raise
AnthropicAPIError; the caller decides whether that is fatal.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import httpx
import structlog

from ramsflow.config.settings import Settings, get_settings
from ramsflow.core.errors import ErrorCode, ServiceUnavailableError

_log = structlog.get_logger(__name__)


# ── Circuit Breaker ───────────────────────────────────────────────────── #


class CircuitState(StrEnum):
    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing; reject calls immediately
    HALF_OPEN = "half_open"  # Probe state; allow one call


@dataclass
class CircuitBreaker:
    """
    Simple time-based circuit breaker.

    States:
      CLOSED   → normal; failures increment counter.
      OPEN     → rejects all calls; transitions to HALF_OPEN after timeout.
      HALF_OPEN→ allows one test call; success → CLOSED, failure → OPEN.
    """

    threshold: int
    timeout_seconds: int
    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _failure_count: int = field(default=0, init=False)
    _last_failure_time: float = field(default=0.0, init=False)

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN:
            if time.monotonic() - self._last_failure_time >= self.timeout_seconds:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()
        if self._failure_count >= self.threshold:
            self._state = CircuitState.OPEN
            _log.warning(
                "circuit_opened",
                failures=self._failure_count,
                threshold=self.threshold,
            )

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)


# ── Response dataclass ────────────────────────────────────────────────── #


@dataclass
class CompletionResponse:
    text: str
    model: str
    input_tokens: int
    output_tokens: int


class AnthropicAPIError(Exception):
    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"Anthropic API returned {status_code}")
        self.status_code = status_code
        self.body = body


# ── Client ────────────────────────────────────────────────────────────── #


class AnthropicClient:
    """Async client for POST {base_url}/v1/messages."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._circuit = CircuitBreaker(
            threshold=self._settings.ai_circuit_breaker_threshold,
            timeout_seconds=self._settings.ai_circuit_breaker_timeout_seconds,
        )
        self._base_url = str(self._settings.anthropic_base_url).rstrip("/")

    @property
    def model(self) -> str:
        return self._settings.anthropic_model

    @property
    def is_configured(self) -> bool:
        key = self._settings.anthropic_api_key
        return key is not None and bool(key.get_secret_value())

    def _make_payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self._settings.anthropic_model,
            "max_tokens": self._settings.anthropic_max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }

    def _headers(self) -> dict[str, str]:
        key = self._settings.anthropic_api_key
        return {
            "x-api-key": key.get_secret_value() if key else "",
            "anthropic-version": self._settings.anthropic_version,
            "content-type": "application/json",
        }

    @staticmethod
    def _extract_text(data: dict[str, Any]) -> str:
        content = data.get("content") or []
        if not content:
            return ""
        return str(content[0].get("text") or "")

    async def complete(self, prompt: str) -> CompletionResponse:
        """
        Send *prompt* as a single user message.

        Raises:
            ServiceUnavailableError: If the circuit is open or the API is unreachable.
            AnthropicAPIError: If the API answers with a non-2xx status.
        """
        if not self._circuit.allow_request():
            raise ServiceUnavailableError(
                ErrorCode.AI_CIRCUIT_OPEN,
                "AI circuit breaker is open. Please wait before retrying.",
            )

        try:
            async with httpx.AsyncClient(
                timeout=self._settings.anthropic_timeout_seconds
            ) as client:
                resp = await client.post(
                    f"{self._base_url}/v1/messages",
                    json=self._make_payload(prompt),
                    headers=self._headers(),
                )
        except httpx.HTTPError as exc:
            self._circuit.record_failure()
            _log.warning("anthropic_request_failed", error=str(exc))
            raise ServiceUnavailableError(
                ErrorCode.AI_UNAVAILABLE, f"Anthropic API unreachable: {exc}"
            ) from exc

        if resp.is_error:
            self._circuit.record_failure()
            _log.error(
                "anthropic_api_error",
                status_code=resp.status_code,
                body=resp.text[:500],
            )
            raise AnthropicAPIError(resp.status_code, resp.text)

        self._circuit.record_success()
        data = resp.json()
        usage = data.get("usage") or {}
        return CompletionResponse(
            text=self._extract_text(data),
            model=str(data.get("model") or self._settings.anthropic_model),
            input_tokens=int(usage.get("input_tokens") or 0),
            output_tokens=int(usage.get("output_tokens") or 0),
        )
