"""OpenAI-compatible dialect, spoken by most providers with small variations."""

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


class OpenAICompatibleDialect(ChatDialect):
    dialect = Dialect.OPENAI
    endpoint = "/chat/completions"

    def build_request(self, call: CallDescription, settings: Settings) -> PreparedRequest:
        self._check_key(call)
        url = self.url(call)

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {call.api_key}",
        }
        body: dict[str, Any] = {
            "model": self.model(call),
            "messages": [
                {"role": "system", "content": call.system_prompt or settings.system_prompt},
                {"role": "user", "content": call.prompt},
            ],
            "temperature": (
                call.temperature if call.temperature is not None else DEFAULT_TEMPERATURE
            ),
            "max_tokens": call.max_tokens if call.max_tokens is not None else DEFAULT_MAX_TOKENS,
        }
        if self.info.json_response_format:
            body["response_format"] = {"type": "json_object"}
        body.update(self.info.extra_body)

        logger.debug("Built %s request for %s (model %s)", self.info.id.value, url, body["model"])
        return PreparedRequest(url=url, headers=headers, body=body)

    def extract_content(self, data: Any) -> str | None:
        if not isinstance(data, dict):
            return None
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        first = choices[0]
        if not isinstance(first, dict):
            return None
        message = first.get("message")
        if not isinstance(message, dict):
            return None
        content = message.get("content")
        if isinstance(content, str):
            return content.strip()
        return None
