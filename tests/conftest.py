"""Shared fixtures for BookmarkAI tests."""

from __future__ import annotations

import json
import re
from collections.abc import Callable

import httpx
import pytest

from bookmark_ai.config import Settings
from bookmark_ai.models import AIConfig, BookmarkRecord, ProviderId

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture()
def settings() -> Settings:
    """Settings with a short timeout and no discovery retries."""
    return Settings(request_timeout=5.0, discovery_retries=1)


@pytest.fixture()
def ai_config() -> AIConfig:
    return AIConfig(provider=ProviderId.OPENAI, api_key="test-openai-key")


def make_records(count: int, prefix: str = "Site") -> list[BookmarkRecord]:
    return [
        BookmarkRecord(
            title=f"{prefix} {i}",
            url=f"https://example.com/{prefix.lower()}/{i}",
            tags=[f"old-{i}"] if i % 2 else [],
            folder="Bookmarks Bar/Dev" if i % 3 == 0 else None,
        )
        for i in range(count)
    ]


@pytest.fixture()
def records() -> list[BookmarkRecord]:
    return make_records(5)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, handler: Handler) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


def mock_client(handler: Handler) -> tuple[httpx.Client, RecordingTransport]:
    transport = RecordingTransport(handler)
    return httpx.Client(transport=transport), transport


def openai_body(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def anthropic_body(text: str) -> dict:
    return {"content": [{"type": "text", "text": text}]}


def user_prompt(request: httpx.Request) -> str:
    """Return the user message of an OpenAI-style request."""
    body = json.loads(request.content)
    return body["messages"][-1]["content"]


def batch_size_of(prompt: str) -> int:
    return len(re.findall(r"^\d+\. Title:", prompt, flags=re.MULTILINE))


def tagging_response(count: int, tags: list[str], description: str | None = None) -> str:
    results = []
    for i in range(1, count + 1):
        entry: dict = {"index": i, "tags": tags}
        if description is not None:
            entry["description"] = description
        results.append(entry)
    return json.dumps({"results": results})
