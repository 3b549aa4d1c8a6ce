"""Centralized configuration loaded from .env."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_SYSTEM_PROMPT = (
    "You are a smart bookmark organizing assistant. Organize the user's "
    "bookmark data as requested. The response must be JSON."
)


def _load_env() -> None:
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
    else:
        load_dotenv()


@dataclass(frozen=True)
class Settings:
    # Default AI credentials (the pipeline itself takes them per call)
    default_provider: str = "openai"
    api_key: str = ""
    api_url: str = ""
    model: str = ""

    # HTTP behaviour
    request_timeout: float = 30.0
    error_body_limit: int = 200
    discovery_retries: int = 2

    # Prompting
    system_prompt: str = DEFAULT_SYSTEM_PROMPT

    # Organize job
    batch_size: int = 20
    max_existing_tags: int = 100
    organize_temperature: float = 0.3
    organize_max_tokens: int = 2000

    @classmethod
    def from_env(cls) -> Settings:
        _load_env()
        return cls(
            default_provider=os.getenv("AI_PROVIDER", "openai"),
            api_key=os.getenv("AI_API_KEY", ""),
            api_url=os.getenv("AI_API_URL", ""),
            model=os.getenv("AI_MODEL", ""),
            request_timeout=float(os.getenv("AI_TIMEOUT", "30")),
            batch_size=int(os.getenv("AI_BATCH_SIZE", "20")),
        )
