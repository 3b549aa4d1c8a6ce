"""Fetch callable model ids from OpenAI-compatible ``/models`` endpoints."""

from __future__ import annotations

import logging
import re

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from bookmark_ai.client import body_prefix
from bookmark_ai.config import Settings
from bookmark_ai.models import ProviderId
from bookmark_ai.providers import get_provider_info, to_provider_id

logger = logging.getLogger(__name__)

LISTABLE_PROVIDERS = frozenset(
    {ProviderId.OPENAI, ProviderId.DEEPSEEK, ProviderId.SILICONFLOW, ProviderId.CUSTOM}
)

_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)
_COMPLETIONS_SUFFIX = "/chat/completions"


class ModelDiscoveryError(Exception):
    """Base class for model listing failures."""


class ProviderNotSupportedError(ModelDiscoveryError):
    """The provider has no model listing endpoint."""


class MissingApiKeyError(ModelDiscoveryError):
    """No API key was supplied."""


class MissingApiUrlError(ModelDiscoveryError):
    """No base URL could be resolved (``custom`` without ``api_url``)."""


class ModelListHTTPError(ModelDiscoveryError):
    """The listing request failed. ``status_code`` is 0 for transport errors."""

    def __init__(self, status_code: int, body_prefix: str) -> None:
        self.status_code = status_code
        self.body_prefix = body_prefix
        super().__init__(f"Failed to fetch model list ({status_code}): {body_prefix}")


class EmptyModelListError(ModelDiscoveryError):
    """The endpoint answered but yielded no usable model ids."""


def sanitize_base_url(base_url: str) -> str:
    """Strip whitespace, trailing ``/chat/completions`` suffixes and trailing slashes."""
    text = re.sub(r"\s+", "", base_url).rstrip("/")
    while text.endswith(_COMPLETIONS_SUFFIX):
        text = text[: -len(_COMPLETIONS_SUFFIX)].rstrip("/")
    return text


def resolve_base_url(provider: ProviderId | str, api_url: str | None = None) -> str | None:
    if api_url and api_url.strip():
        return sanitize_base_url(api_url)
    fallback = get_provider_info(provider).base_url
    return sanitize_base_url(fallback) if fallback else None


def can_list_models(provider: ProviderId | str, api_url: str | None = None) -> bool:
    provider_id = to_provider_id(provider)
    if provider_id not in LISTABLE_PROVIDERS:
        return False
    if provider_id is ProviderId.CUSTOM:
        return bool(api_url and _HTTP_URL.match(api_url.strip()))
    return True


def list_models(
    provider: ProviderId | str,
    api_key: str,
    api_url: str | None = None,
    *,
    settings: Settings | None = None,
    client: httpx.Client | None = None,
) -> list[str]:
    """
    Return the model ids a provider exposes, in the order it lists them.

    Validation errors are raised before any request is made.
    """
    settings = settings or Settings()
    provider_id = to_provider_id(provider)
    if provider_id not in LISTABLE_PROVIDERS:
        raise ProviderNotSupportedError(
            f"Model listing is not supported for {get_provider_info(provider_id).display_name}"
        )
    if not api_key.strip():
        raise MissingApiKeyError("An API key is required to list models")

    base_url = resolve_base_url(provider_id, api_url)
    if not base_url:
        raise MissingApiUrlError("An API URL is required to list models")

    url = f"{base_url}/models"
    try:
        response = _get_models(url, api_key, settings, client)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.error("Model listing failed for %s: %s", url, exc)
        raise ModelListHTTPError(0, str(exc)[: settings.error_body_limit]) from exc

    if not response.is_success:
        body = body_prefix(response, settings.error_body_limit) or response.reason_phrase
        raise ModelListHTTPError(response.status_code, body[: settings.error_body_limit])

    try:
        payload = response.json()
    except ValueError as exc:
        raise EmptyModelListError("Model list response is not valid JSON") from exc

    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, list):
        raise EmptyModelListError("Model list response has no 'data' array")

    models = [
        item["id"]
        for item in data
        if isinstance(item, dict) and isinstance(item.get("id"), str) and item["id"]
    ]
    if not models:
        raise EmptyModelListError("Model list is empty")

    logger.info("Found %d models at %s", len(models), base_url)
    return models


def _get_models(
    url: str,
    api_key: str,
    settings: Settings,
    client: httpx.Client | None,
) -> httpx.Response:
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }

    @retry(
        stop=stop_after_attempt(max(settings.discovery_retries, 1)),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    def _attempt() -> httpx.Response:
        if client is not None:
            return client.get(url, headers=headers, timeout=settings.request_timeout)
        with httpx.Client(timeout=settings.request_timeout) as own_client:
            return own_client.get(url, headers=headers)

    return _attempt()
