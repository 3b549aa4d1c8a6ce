"""Anthropic Messages API dialect."""

from __future__ import annotations

import logging
from typing import Any

from bookmark_ai.config import Settings
from bookmark_ai.models import CallDescription, Dialect
from bookmark_ai.providers.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ChatDialect,
    PreparedRequest,
)

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicDialect(ChatDialect):
    dialect = Dialect.ANTHROPIC
    endpoint = "/messages"

    def build_request(self, call: CallDescription, settings: Settings) -> PreparedRequest:
        self._check_key(call)
        url = self.url(call)

        headers = {
            "Content-Type": "application/json",
            "x-api-key": call.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        body: dict[str, Any] = {
            "model": self.model(call),
            "system": call.system_prompt or settings.system_prompt,
            "max_tokens": call.max_tokens if call.max_tokens is not None else DEFAULT_MAX_TOKENS,
            "temperature": (
                call.temperature if call.temperature is not None else DEFAULT_TEMPERATURE
            ),
            "messages": [{"role": "user", "content": call.prompt}],
        }
        body.update(self.info.extra_body)

        logger.debug("Built anthropic request for %s (model %s)", url, body["model"])
        return PreparedRequest(url=url, headers=headers, body=body)

    def extract_content(self, data: Any) -> str | None:
        if not isinstance(data, dict):
            return None
        content = data.get("content")
        if not isinstance(content, list) or not content:
            return None
        first = content[0]
        if isinstance(first, dict) and isinstance(first.get("text"), str):
            return first["text"].strip()
        return None
