"""Unified chat-completion client across all supported providers."""

from __future__ import annotations

import json
import logging
import time

import httpx

from bookmark_ai.config import Settings
from bookmark_ai.models import CallDescription, CallResult, ConnectionTestResult, ProviderId
from bookmark_ai.providers import get_dialect, get_provider_info, to_provider_id
from bookmark_ai.providers.base import AIError, ConfigurationError, PreparedRequest

logger = logging.getLogger(__name__)

__all__ = [
    "AIClient",
    "AIConnectionError",
    "AIError",
    "AIHTTPError",
    "AITimeoutError",
    "ConfigurationError",
    "ResponseFormatError",
    "body_prefix",
    "call_ai",
    "check_ai_connection",
]


class AITimeoutError(AIError):
    """Raised when the provider does not answer within the request timeout."""


class AIConnectionError(AIError):
    """Raised for transport failures other than timeouts (DNS, refused, TLS...)."""


class AIHTTPError(AIError):
    """Raised when the provider answers with a non-2xx status."""

    def __init__(self, status_code: int, body_prefix: str) -> None:
        self.status_code = status_code
        self.body_prefix = body_prefix
        super().__init__(f"AI API request failed ({status_code}): {body_prefix}")


class ResponseFormatError(AIError):
    """Raised when a 2xx response carries no extractable completion text."""

    def __init__(self, raw_prefix: str) -> None:
        self.raw_prefix = raw_prefix
        super().__init__(f"Unexpected AI response format: {raw_prefix}")


class AIClient:
    """
    Executes single chat-completion calls.

    Every call is independent; the client keeps no state between calls
    other than an optional caller-owned ``httpx.Client``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self._client = client

    def call(self, call: CallDescription) -> CallResult:
        """
        Send ``call`` to its provider and return the completion text.

        Raises:
            ConfigurationError: missing API key, or missing URL for ``custom``.
            AITimeoutError: no answer within ``settings.request_timeout``.
            AIConnectionError: any other transport failure.
            AIHTTPError: non-2xx status.
            ResponseFormatError: body is not JSON or has no completion text.
        """
        dialect = get_dialect(call.provider)
        request = dialect.build_request(call, self.settings)
        limit = self.settings.error_body_limit

        t0 = time.perf_counter()
        response = self._send(request, call.provider)
        elapsed = time.perf_counter() - t0

        if not response.is_success:
            body = body_prefix(response, limit)
            logger.warning(
                "%s returned HTTP %d after %.1fs", call.provider.value, response.status_code, elapsed
            )
            raise AIHTTPError(response.status_code, body)

        try:
            data = response.json()
        except ValueError as exc:
            raise ResponseFormatError(body_prefix(response, limit)) from exc

        content = dialect.extract_content(data)
        if not content:
            raw = json.dumps(data, ensure_ascii=False)[:limit]
            logger.warning("No completion text in %s response: %s", call.provider.value, raw)
            raise ResponseFormatError(raw)

        logger.info(
            "%s answered %d chars in %.1fs", call.provider.value, len(content), elapsed
        )
        return CallResult(content=content, raw=data)

    def _send(self, request: PreparedRequest, provider: ProviderId) -> httpx.Response:
        timeout = self.settings.request_timeout
        try:
            if self._client is not None:
                return self._client.request(
                    request.method,
                    request.url,
                    headers=request.headers,
                    json=request.body,
                    timeout=timeout,
                )
            with httpx.Client(timeout=timeout) as client:
                return client.request(
                    request.method, request.url, headers=request.headers, json=request.body
                )
        except httpx.TimeoutException as exc:
            logger.error("%s request timed out after %.0fs", provider.value, timeout)
            raise AITimeoutError(
                f"AI request timed out after {timeout:.0f}s, please retry later"
            ) from exc
        except httpx.InvalidURL as exc:
            raise ConfigurationError(f"Invalid API URL {request.url!r}: {exc}") from exc
        except httpx.HTTPError as exc:
            logger.error("%s request failed: %s", provider.value, exc)
            raise AIConnectionError(f"AI request failed: {exc}") from exc

    def test_connection(
        self,
        provider: ProviderId | str,
        api_key: str,
        api_url: str | None = None,
        model: str | None = None,
    ) -> ConnectionTestResult:
        """Send a tiny prompt to check that credentials work. Never raises."""
        provider_id = to_provider_id(provider)
        resolved_model = model or get_provider_info(provider_id).default_model
        t0 = time.perf_counter()
        try:
            self.call(
                CallDescription(
                    provider=provider_id,
                    api_key=api_key,
                    api_url=api_url,
                    model=model,
                    prompt="Hi",
                    max_tokens=5,
                )
            )
        except (AIError, ValueError) as exc:
            return ConnectionTestResult(
                success=False,
                latency_ms=_ms_since(t0),
                provider=provider_id,
                model=resolved_model,
                error=str(exc),
            )
        return ConnectionTestResult(
            success=True,
            latency_ms=_ms_since(t0),
            provider=provider_id,
            model=resolved_model,
        )


def body_prefix(response: httpx.Response, limit: int) -> str:
    """Decode at most ``limit`` characters of the body, without decoding the rest."""
    raw = response.content[: limit * 4]
    return raw.decode(response.encoding or "utf-8", errors="replace")[:limit]


def _ms_since(t0: float) -> int:
    return int((time.perf_counter() - t0) * 1000)


def call_ai(call: CallDescription, settings: Settings | None = None) -> CallResult:
    return AIClient(settings).call(call)


def check_ai_connection(
    provider: ProviderId | str,
    api_key: str,
    api_url: str | None = None,
    model: str | None = None,
    settings: Settings | None = None,
) -> ConnectionTestResult:
    return AIClient(settings).test_connection(provider, api_key, api_url, model)

