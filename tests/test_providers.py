"""Tests for the provider registry and request/response dialects."""

from __future__ import annotations

import pytest

from bookmark_ai.config import DEFAULT_SYSTEM_PROMPT, Settings
from bookmark_ai.models import CallDescription, Dialect, ProviderId
from bookmark_ai.providers import get_dialect, get_provider_info, list_providers
from bookmark_ai.providers.anthropic import ANTHROPIC_VERSION, AnthropicDialect
from bookmark_ai.providers.base import ChatDialect, ConfigurationError, resolve_endpoint
from bookmark_ai.providers.openai import OpenAICompatibleDialect


def _call(provider: ProviderId, **kwargs) -> CallDescription:
    kwargs.setdefault("api_key", "sk-test")
    kwargs.setdefault("prompt", "Tag these bookmarks")
    return CallDescription(provider=provider, **kwargs)


class TestProviderRegistry:
    def test_list_providers(self):
        providers = list_providers()
        for name in ("openai", "claude", "deepseek", "zhipu", "modelscope", "siliconflow", "iflow", "custom"):
            assert name in providers

    def test_list_providers_returns_sorted(self):
        providers = list_providers()
        assert providers == sorted(providers)

    def test_every_provider_has_one_dialect(self):
        for name in list_providers():
            info = get_provider_info(name)
            assert info.dialect in (Dialect.OPENAI, Dialect.ANTHROPIC)
            assert info.default_model

    def test_only_claude_is_anthropic_style(self):
        anthropic = [n for n in list_providers() if get_provider_info(n).dialect is Dialect.ANTHROPIC]
        assert anthropic == ["claude"]

    def test_custom_has_no_url_or_models(self):
        info = get_provider_info(ProviderId.CUSTOM)
        assert info.base_url == ""
        assert info.available_models == ()

    def test_builtin_providers_have_base_urls(self):
        for name in list_providers():
            if name != "custom":
                assert get_provider_info(name).base_url.startswith("https://")

    def test_unknown_provider_raises(self):
        with pytest.raises(ValueError, match="Unknown provider 'nonexistent'"):
            get_provider_info("nonexistent")

    def test_unknown_provider_shows_available(self):
        with pytest.raises(ValueError, match="Available:"):
            get_dialect("bad")

    def test_get_dialect_types(self):
        assert isinstance(get_dialect("openai"), OpenAICompatibleDialect)
        assert isinstance(get_dialect("zhipu"), OpenAICompatibleDialect)
        assert isinstance(get_dialect("claude"), AnthropicDialect)
        assert isinstance(get_dialect(ProviderId.CUSTOM), ChatDialect)


class TestResolveEndpoint:
    def test_appends_endpoint(self):
        assert resolve_endpoint("https://api.x.com/v1", "/chat/completions") == (
            "https://api.x.com/v1/chat/completions"
        )

    def test_trailing_slash_is_not_doubled(self):
        assert resolve_endpoint("https://api.x.com/v1/", "/chat/completions") == (
            "https://api.x.com/v1/chat/completions"
        )

    def test_endpoint_without_leading_slash(self):
        assert resolve_endpoint("https://api.x.com/v1", "messages") == "https://api.x.com/v1/messages"

    def test_already_suffixed_is_unchanged(self):
        url = "https://api.x.com/v1/chat/completions"
        assert resolve_endpoint(url, "/chat/completions") == url

    def test_idempotent(self):
        once = resolve_endpoint(" https://api.x.com/v1/ ", "/chat/completions")
        assert resolve_endpoint(once, "/chat/completions") == once


class TestOpenAIDialect:
    def test_request_shape(self):
        request = get_dialect("openai").build_request(_call(ProviderId.OPENAI), Settings())
        assert request.method == "POST"
        assert request.url == "https://api.openai.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert request.headers["Content-Type"] == "application/json"
        body = request.body
        assert body["model"] == "gpt-4o-mini"
        assert body["messages"][0] == {"role": "system", "content": DEFAULT_SYSTEM_PROMPT}
        assert body["messages"][1] == {"role": "user", "content": "Tag these bookmarks"}
        assert body["temperature"] == 0.7
        assert body["max_tokens"] == 2000

    def test_explicit_values_win(self):
        call = _call(
            ProviderId.DEEPSEEK,
            model="deepseek-coder",
            system_prompt="Be brief",
            temperature=0.0,
            max_tokens=5,
        )
        body = get_dialect("deepseek").build_request(call, Settings()).body
        assert body["model"] == "deepseek-coder"
        assert body["messages"][0]["content"] == "Be brief"
        assert body["temperature"] == 0.0
        assert body["max_tokens"] == 5

    def test_settings_system_prompt_is_default(self):
        body = get_dialect("zhipu").build_request(
            _call(ProviderId.ZHIPU), Settings(system_prompt="Custom role")
        ).body
        assert body["messages"][0]["content"] == "Custom role"

    @pytest.mark.parametrize("provider", [ProviderId.OPENAI, ProviderId.DEEPSEEK])
    def test_json_response_format(self, provider):
        body = get_dialect(provider).build_request(_call(provider), Settings()).body
        assert body["response_format"] == {"type": "json_object"}

    def test_siliconflow_disables_streaming(self):
        body = get_dialect("siliconflow").build_request(_call(ProviderId.SILICONFLOW), Settings()).body
        assert body["stream"] is False
        assert "response_format" not in body

    def test_modelscope_result_format(self):
        body = get_dialect("modelscope").build_request(_call(ProviderId.MODELSCOPE), Settings()).body
        assert body["result_format"] == "message"

    def test_plain_providers_have_no_extras(self):
        body = get_dialect("iflow").build_request(_call(ProviderId.IFLOW), Settings()).body
        assert set(body) == {"model", "messages", "temperature", "max_tokens"}

    def test_custom_url_used_as_is_when_suffixed(self):
        call = _call(ProviderId.CUSTOM, api_url="https://llm.local/v1/chat/completions")
        request = get_dialect("custom").build_request(call, Settings())
        assert request.url == "https://llm.local/v1/chat/completions"

    def test_api_url_overrides_builtin(self):
        call = _call(ProviderId.OPENAI, api_url="https://proxy.example.com/v1/")
        request = get_dialect("openai").build_request(call, Settings())
        assert request.url == "https://proxy.example.com/v1/chat/completions"

    def test_custom_without_url_raises(self):
        with pytest.raises(ConfigurationError, match="API URL"):
            get_dialect("custom").build_request(_call(ProviderId.CUSTOM), Settings())

    def test_blank_custom_url_raises(self):
        with pytest.raises(ConfigurationError):
            get_dialect("custom").build_request(_call(ProviderId.CUSTOM, api_url="   "), Settings())

    def test_missing_key_raises(self):
        with pytest.raises(ConfigurationError, match="API key"):
            get_dialect("openai").build_request(_call(ProviderId.OPENAI, api_key=""), Settings())

    def test_extract_content_trims(self):
        data = {"choices": [{"message": {"content": "  hello \n"}}]}
        assert get_dialect("openai").extract_content(data) == "hello"

    @pytest.mark.parametrize(
        "data",
        [
            None,
            [],
            {},
            {"choices": []},
            {"choices": "nope"},
            {"choices": [None]},
            {"choices": [{"message": None}]},
            {"choices": [{"message": {"content": None}}]},
            {"choices": [{"text": "legacy"}]},
        ],
    )
    def test_extract_content_bad_shapes(self, data):
        assert get_dialect("openai").extract_content(data) is None


class TestAnthropicDialect:
    def test_request_shape(self):
        request = get_dialect("claude").build_request(_call(ProviderId.CLAUDE), Settings())
        assert request.url == "https://api.anthropic.com/v1/messages"
        assert request.headers["x-api-key"] == "sk-test"
        assert request.headers["anthropic-version"] == ANTHROPIC_VERSION
        assert "Authorization" not in request.headers
        body = request.body
        assert body["model"] == "claude-3-haiku-20240307"
        assert body["system"] == DEFAULT_SYSTEM_PROMPT
        assert body["max_tokens"] == 2000
        assert body["temperature"] == 0.7
        assert body["messages"] == [{"role": "user", "content": "Tag these bookmarks"}]

    def test_extract_content(self):
        data = {"content": [{"type": "text", "text": " {\"results\": []} "}]}
        assert get_dialect("claude").extract_content(data) == '{"results": []}'

    @pytest.mark.parametrize("data", [None, {}, {"content": []}, {"content": [{"type": "image"}]}])
    def test_extract_content_bad_shapes(self, data):
        assert get_dialect("claude").extract_content(data) is None
