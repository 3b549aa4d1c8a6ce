"""Abstract base class for the chat-completion dialects."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from bookmark_ai.config import Settings
from bookmark_ai.models import CallDescription, Dialect

if TYPE_CHECKING:
    from bookmark_ai.providers import ProviderInfo

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000


class AIError(Exception):
    """Base class for every failure of a single AI call."""


class ConfigurationError(AIError):
    """Raised when a call is missing a key or URL the provider requires."""


@dataclass(frozen=True)
class PreparedRequest:
    """A fully formed HTTP request ready to be sent."""

    url: str
    headers: dict[str, str]
    body: dict[str, Any] = field(default_factory=dict)
    method: str = "POST"


def resolve_endpoint(base_url: str, endpoint: str) -> str:
    """
    Join ``endpoint`` onto ``base_url``.

    A base that already contains the endpoint is returned unchanged, so
    resolving an already-resolved URL is a no-op.
    """
    trimmed = base_url.strip()
    if not trimmed:
        return endpoint
    if endpoint in trimmed:
        return trimmed
    if not endpoint.startswith("/"):
        endpoint = f"/{endpoint}"
    return f"{trimmed.rstrip('/')}{endpoint}"


class ChatDialect(ABC):
    """Contract for turning calls into provider requests and responses into text."""

    dialect: Dialect
    endpoint: str

    def __init__(self, info: ProviderInfo) -> None:
        self.info = info

    def base_url(self, call: CallDescription) -> str:
        base = (call.api_url or "").strip() or self.info.base_url
        if not base:
            raise ConfigurationError(
                f"An API URL is required for the {self.info.display_name} provider"
            )
        return base

    def model(self, call: CallDescription) -> str:
        return call.model or self.info.default_model

    def url(self, call: CallDescription) -> str:
        url = resolve_endpoint(self.base_url(call), self.endpoint)
        try:
            httpx.URL(url)
        except httpx.InvalidURL as exc:
            raise ConfigurationError(
                f"Invalid API URL for the {self.info.display_name} provider: {exc}"
            ) from exc
        return url

    @abstractmethod
    def build_request(self, call: CallDescription, settings: Settings) -> PreparedRequest:
        """
        Build the provider-specific request for ``call``.

        Raises:
            ConfigurationError: the provider needs a URL or key the call lacks.
        """
        ...

    @abstractmethod
    def extract_content(self, data: Any) -> str | None:
        """Return the trimmed completion text, or None if the shape is unexpected."""
        ...

    def _check_key(self, call: CallDescription) -> None:
        if not call.api_key.strip():
            raise ConfigurationError(
                f"An API key is required for the {self.info.display_name} provider"
            )
