"""Provider registry and dialect factory with lazy imports."""

from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from typing import Any

from bookmark_ai.models import Dialect, ProviderId
from bookmark_ai.providers.base import ChatDialect


@dataclass(frozen=True)
class ProviderInfo:
    """Static knowledge about one AI backend."""

    id: ProviderId
    display_name: str
    dialect: Dialect
    base_url: str
    default_model: str
    available_models: tuple[str, ...] = ()
    doc_url: str = ""
    price_per_million: float = 0.10
    json_response_format: bool = False
    extra_body: dict[str, Any] = field(default_factory=dict)


_DIALECT_REGISTRY: dict[Dialect, str] = {
    Dialect.OPENAI: "bookmark_ai.providers.openai.OpenAICompatibleDialect",
    Dialect.ANTHROPIC: "bookmark_ai.providers.anthropic.AnthropicDialect",
}

_PROVIDER_REGISTRY: dict[ProviderId, ProviderInfo] = {
    ProviderId.OPENAI: ProviderInfo(
        id=ProviderId.OPENAI,
        display_name="OpenAI",
        dialect=Dialect.OPENAI,
        base_url="https://api.openai.com/v1",
        default_model="gpt-4o-mini",
        available_models=("gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo"),
        doc_url="https://platform.openai.com/api-keys",
        price_per_million=0.15,
        json_response_format=True,
    ),
    ProviderId.CLAUDE: ProviderInfo(
        id=ProviderId.CLAUDE,
        display_name="Claude",
        dialect=Dialect.ANTHROPIC,
        base_url="https://api.anthropic.com/v1",
        default_model="claude-3-haiku-20240307",
        available_models=(
            "claude-3-5-sonnet-20241022",
            "claude-3-haiku-20240307",
            "claude-3-opus-20240229",
        ),
        doc_url="https://console.anthropic.com/",
        price_per_million=0.25,
    ),
    ProviderId.DEEPSEEK: ProviderInfo(
        id=ProviderId.DEEPSEEK,
        display_name="DeepSeek",
        dialect=Dialect.OPENAI,
        base_url="https://api.deepseek.com/v1",
        default_model="deepseek-chat",
        available_models=("deepseek-chat", "deepseek-coder"),
        doc_url="https://platform.deepseek.com/api_keys",
        price_per_million=0.07,
        json_response_format=True,
    ),
    ProviderId.ZHIPU: ProviderInfo(
        id=ProviderId.ZHIPU,
        display_name="Zhipu AI",
        dialect=Dialect.OPENAI,
        base_url="https://open.bigmodel.cn/api/paas/v4",
        default_model="glm-4-flash",
        available_models=("glm-4-flash", "glm-4", "glm-4-plus"),
        doc_url="https://open.bigmodel.cn/usercenter/apikeys",
        price_per_million=0.05,
    ),
    ProviderId.MODELSCOPE: ProviderInfo(
        id=ProviderId.MODELSCOPE,
        display_name="ModelScope",
        dialect=Dialect.OPENAI,
        base_url="https://api-inference.modelscope.cn/v1",
        default_model="qwen-turbo",
        available_models=("qwen-turbo", "qwen-plus", "qwen-max"),
        doc_url="https://www.modelscope.cn/my/myaccesstoken",
        price_per_million=0.02,
        extra_body={"result_format": "message"},
    ),
    ProviderId.SILICONFLOW: ProviderInfo(
        id=ProviderId.SILICONFLOW,
        display_name="SiliconFlow",
        dialect=Dialect.OPENAI,
        base_url="https://api.siliconflow.cn/v1",
        default_model="Qwen/Qwen2.5-7B-Instruct",
        available_models=(
            "Qwen/Qwen2.5-7B-Instruct",
            "Qwen/Qwen2.5-14B-Instruct",
            "Qwen/Qwen2.5-32B-Instruct",
            "Qwen/Qwen2.5-72B-Instruct",
            "Qwen/Qwen2.5-Coder-7B-Instruct",
            "Qwen/Qwen2.5-Coder-32B-Instruct",
            "deepseek-ai/DeepSeek-V2.5",
            "deepseek-ai/DeepSeek-V3",
            "deepseek-ai/DeepSeek-R1-Distill-Qwen-7B",
            "deepseek-ai/DeepSeek-R1-Distill-Qwen-32B",
            "THUDM/glm-4-9b-chat",
            "Pro/01-ai/Yi-1.5-9B-Chat-16K",
            "internlm/internlm2_5-7b-chat",
            "internlm/internlm2_5-20b-chat",
        ),
        doc_url="https://cloud.siliconflow.cn/account/ak",
        price_per_million=0.03,
        extra_body={"stream": False},
    ),
    ProviderId.IFLOW: ProviderInfo(
        id=ProviderId.IFLOW,
        display_name="iFlow",
        dialect=Dialect.OPENAI,
        base_url="https://apis.iflow.cn/v1",
        default_model="gpt-4o-mini",
        available_models=("gpt-4o-mini", "gpt-4o"),
        doc_url="https://console.xfyun.cn/services/iat",
        price_per_million=0.10,
    ),
    # Caller supplies both the URL and the model.
    ProviderId.CUSTOM: ProviderInfo(
        id=ProviderId.CUSTOM,
        display_name="Custom",
        dialect=Dialect.OPENAI,
        base_url="",
        default_model="gpt-4o-mini",
        price_per_million=0.10,
    ),
}


def to_provider_id(name: ProviderId | str) -> ProviderId:
    """Coerce a provider name into a ProviderId."""
    try:
        return ProviderId(name)
    except ValueError:
        available = ", ".join(list_providers())
        raise ValueError(f"Unknown provider '{name}'. Available: {available}") from None


def get_provider_info(name: ProviderId | str) -> ProviderInfo:
    return _PROVIDER_REGISTRY[to_provider_id(name)]


def get_dialect(name: ProviderId | str) -> ChatDialect:
    """Instantiate the request/response adapter for a provider. Uses lazy imports."""
    info = get_provider_info(name)
    module_path, class_name = _DIALECT_REGISTRY[info.dialect].rsplit(".", 1)
    module = importlib.import_module(module_path)
    dialect_class = getattr(module, class_name)
    return dialect_class(info)


def list_providers() -> list[str]:
    return sorted(p.value for p in _PROVIDER_REGISTRY)
