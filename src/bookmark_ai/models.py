"""Pydantic models for the bookmark organizing pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProviderId(str, Enum):
    """Supported AI backends."""

    OPENAI = "openai"
    CLAUDE = "claude"
    DEEPSEEK = "deepseek"
    ZHIPU = "zhipu"
    MODELSCOPE = "modelscope"
    SILICONFLOW = "siliconflow"
    IFLOW = "iflow"
    CUSTOM = "custom"


class Dialect(str, Enum):
    """Request/response JSON family spoken by a provider."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class CallDescription(BaseModel):
    """Provider-agnostic description of one chat-completion call."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderId
    api_key: str = Field(repr=False)
    api_url: str | None = None
    model: str | None = None
    prompt: str
    system_prompt: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None


class AIConfig(BaseModel):
    """Credentials and model choice for an organize job."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderId
    api_key: str = Field(repr=False)
    api_url: str | None = None
    model: str | None = None
    system_prompt: str | None = None


class CallResult(BaseModel):
    content: str = Field(description="Trimmed completion text, never empty")
    raw: Any = Field(default=None, description="Decoded provider response")


class ConnectionTestResult(BaseModel):
    success: bool
    latency_ms: int
    provider: ProviderId
    model: str = ""
    error: str | None = None


class BookmarkRecord(BaseModel):
    """A bookmark as produced by the import parsers."""

    model_config = ConfigDict(frozen=True)

    title: str
    url: str
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    folder: str | None = None
    created_at: str | None = None


class OrganizedRecord(BookmarkRecord):
    """A bookmark annotated by the AI. ``original_tags`` keeps the input tags."""

    ai_tags: list[str] | None = None
    ai_description: str | None = None
    original_tags: list[str] | None = None

    @classmethod
    def degraded(cls, record: BookmarkRecord) -> OrganizedRecord:
        """Annotation used when the AI produced nothing usable for ``record``."""
        return cls.annotate(record, ai_tags=[])

    @classmethod
    def annotate(
        cls,
        record: BookmarkRecord,
        ai_tags: list[str],
        ai_description: str | None = None,
    ) -> OrganizedRecord:
        data = record.model_dump(include=set(BookmarkRecord.model_fields))
        return cls(
            **data,
            ai_tags=ai_tags,
            ai_description=ai_description,
            original_tags=list(record.tags),
        )

    @property
    def effective_tags(self) -> list[str]:
        return list(self.ai_tags) if self.ai_tags else list(self.tags)

    def applied(self) -> BookmarkRecord:
        """Plain record with AI tags and description merged in."""
        data = self.model_dump(include=set(BookmarkRecord.model_fields))
        data["tags"] = self.effective_tags
        if self.ai_description:
            data["description"] = self.ai_description
        return BookmarkRecord(**data)

    def reverted(self) -> OrganizedRecord:
        """Undo AI suggestions by resetting ``ai_tags`` to the original tags."""
        original = self.original_tags if self.original_tags is not None else self.tags
        return self.model_copy(update={"ai_tags": list(original)})


class OrganizeOptions(BaseModel):
    generate_tags: bool = True
    generate_description: bool = False
    normalize_tags: bool = True
    existing_tags: list[str] = Field(default_factory=list)
    batch_size: int = Field(default=20, ge=1)


class ProgressStatus(str, Enum):
    PREPARING = "preparing"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


class ProgressSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    current: int
    total: int
    status: ProgressStatus
    message: str | None = None


class OrganizeResult(BaseModel):
    """Final aggregated output from an organize job."""

    bookmarks: list[OrganizedRecord] = Field(default_factory=list)
    new_tags: list[str] = Field(
        default_factory=list,
        description="AI tags not present in the caller's existing tags",
    )
    tokens_used: int = Field(default=0, description="Estimated, not billed")


class BatchOutcome(BaseModel):
    """What one batch produced. ``error`` is set when the batch degraded."""

    index: int
    records: list[OrganizedRecord]
    prompt_chars: int = 0
    response_text: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def estimated_tokens(self) -> float:
        """Character heuristic; zero when the call itself failed."""
        if self.response_text is None:
            return 0.0
        return self.prompt_chars / 4 + len(self.response_text) / 4
