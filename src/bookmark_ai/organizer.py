"""Batch organize loop: AI-generated tags and descriptions for bookmark lists.

Pipeline per job:
  Split      records are cut into consecutive batches of ``batch_size``
  Annotate   one AI call per batch, strictly in order
  Merge      per-batch outcomes are reduced into one OrganizeResult

A batch whose call fails or whose answer cannot be parsed degrades to empty
AI tags for its records; it never stops the remaining batches.
"""

from __future__ import annotations

import json
import logging
import math
import threading
from collections.abc import Callable, Generator, Iterable, Iterator, Mapping, Sequence
from typing import Any

from bookmark_ai.client import AIClient
from bookmark_ai.config import Settings
from bookmark_ai.models import (
    AIConfig,
    BatchOutcome,
    BookmarkRecord,
    CallDescription,
    OrganizedRecord,
    OrganizeOptions,
    OrganizeResult,
    ProgressSnapshot,
    ProgressStatus,
    ProviderId,
)
from bookmark_ai.providers import get_dialect, get_provider_info
from bookmark_ai.providers.base import AIError, ConfigurationError

logger = logging.getLogger(__name__)

TOKENS_PER_BOOKMARK = 80
DESCRIPTION_MULTIPLIER = 1.5

ProgressCallback = Callable[[ProgressSnapshot], None]


class OrganizeParseError(ValueError):
    """Raised when an AI answer holds no usable ``results`` object."""


def chunk(records: Sequence[BookmarkRecord], size: int) -> list[list[BookmarkRecord]]:
    """Split records into consecutive batches of ``size``; the last may be shorter."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [list(records[i:i + size]) for i in range(0, len(records), size)]


def build_organize_prompt(
    batch: Sequence[BookmarkRecord],
    options: OrganizeOptions,
    max_existing_tags: int = 100,
) -> str:
    """Build the user prompt for one batch. Bookmarks are numbered from 1."""
    existing = options.existing_tags[:max_existing_tags]
    existing_str = ", ".join(existing) if existing else "none"

    lines = []
    for i, b in enumerate(batch, start=1):
        entry = f"{i}. Title: {b.title}\n   URL: {b.url}"
        if b.folder:
            entry += f"\n   Folder: {b.folder}"
        lines.append(entry)
    bookmarks_str = "\n".join(lines)

    if options.generate_tags:
        task = "generate 2-5 concise tags for each bookmark"
        if options.generate_description:
            task += " and write a short description"
    else:
        task = "write a short description for each bookmark (leave tags empty)"

    rules = [
        "Tags must be short: one or two common words each",
        "Tags must be general and easy to group by, not overly specific",
        "Prefer tags from the existing tag list",
        "Folder information may guide you, but do not use long folder paths as tags",
    ]
    if options.normalize_tags:
        rules.append("Reuse the exact spelling and casing of existing tags")
    rules_str = "\n".join(f"{n}. {rule}" for n, rule in enumerate(rules, start=1))

    description_field = ',\n      "description": "short description"' if options.generate_description else ""

    return f"""\
You are a bookmark organizing expert. Analyze the bookmark list below and {task}.

Rules:
{rules_str}

Existing tags: {existing_str}

Bookmarks:
{bookmarks_str}

Return JSON in exactly this shape:
{{
  "results": [
    {{
      "index": 1,
      "tags": ["tag1", "tag2"]{description_field}
    }}
  ]
}}

Return ONLY the JSON, nothing else."""


def extract_results(content: str) -> list[dict[str, Any]]:
    """
    Pull the ``results`` list out of an AI answer.

    The answer may wrap the JSON in prose or code fences, so every ``{`` is
    tried as the start of an object until one decodes.
    """
    decoder = json.JSONDecoder()
    start = content.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(content, start)
        except json.JSONDecodeError:
            start = content.find("{", start + 1)
            continue
        if isinstance(obj, dict):
            results = obj.get("results", [])
            if not isinstance(results, list):
                raise OrganizeParseError("'results' is not a list")
            return [r for r in results if isinstance(r, dict)]
        start = content.find("{", start + 1)
    raise OrganizeParseError(f"No JSON object found in AI response: {content[:200]}")


def _entry_index(entry: Mapping[str, Any]) -> int | None:
    value = entry.get("index")
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return None


def _clean_tags(raw: Any, options: OrganizeOptions) -> list[str]:
    if not options.generate_tags or not isinstance(raw, list):
        return []
    tags = [t for t in raw if isinstance(t, str)]
    if not options.normalize_tags:
        return tags

    canonical = {t.casefold(): t for t in reversed(options.existing_tags)}
    seen: set[str] = set()
    normalized = []
    for tag in tags:
        tag = " ".join(tag.split())
        key = tag.casefold()
        if not tag or key in seen:
            continue
        seen.add(key)
        normalized.append(canonical.get(key, tag))
    return normalized


def apply_results(
    batch: Sequence[BookmarkRecord],
    results: Sequence[Mapping[str, Any]],
    options: OrganizeOptions,
) -> list[OrganizedRecord]:
    """Annotate each record with the entry whose 1-based index matches it."""
    by_index: dict[int, Mapping[str, Any]] = {}
    for entry in results:
        idx = _entry_index(entry)
        if idx is not None:
            by_index.setdefault(idx, entry)

    organized = []
    for position, record in enumerate(batch, start=1):
        entry = by_index.get(position)
        if entry is None:
            organized.append(OrganizedRecord.degraded(record))
            continue
        description = entry.get("description")
        organized.append(
            OrganizedRecord.annotate(
                record,
                ai_tags=_clean_tags(entry.get("tags"), options),
                ai_description=description.strip() if isinstance(description, str) and description.strip() else None,
            )
        )
    return organized


def parse_organize_response(
    content: str,
    batch: Sequence[BookmarkRecord],
    options: OrganizeOptions,
) -> list[OrganizedRecord]:
    """Parse an AI answer for ``batch``. Unparseable answers degrade every record."""
    try:
        return apply_results(batch, extract_results(content), options)
    except OrganizeParseError as exc:
        logger.warning("Failed to parse AI response: %s", exc)
        return [OrganizedRecord.degraded(r) for r in batch]


def _run_batch(
    index: int,
    batch: Sequence[BookmarkRecord],
    ai_config: AIConfig,
    options: OrganizeOptions,
    client: AIClient,
    settings: Settings,
) -> BatchOutcome:
    prompt = build_organize_prompt(batch, options, settings.max_existing_tags)
    call = CallDescription(
        provider=ai_config.provider,
        api_key=ai_config.api_key,
        api_url=ai_config.api_url,
        model=ai_config.model,
        system_prompt=ai_config.system_prompt,
        prompt=prompt,
        temperature=settings.organize_temperature,
        max_tokens=settings.organize_max_tokens,
    )

    try:
        result = client.call(call)
    except AIError as exc:
        logger.warning("Batch %d failed: %s", index + 1, exc)
        return BatchOutcome(
            index=index,
            records=[OrganizedRecord.degraded(r) for r in batch],
            prompt_chars=len(prompt),
            error=str(exc),
        )

    try:
        records = apply_results(batch, extract_results(result.content), options)
    except OrganizeParseError as exc:
        logger.warning("Batch %d returned unusable JSON: %s", index + 1, exc)
        return BatchOutcome(
            index=index,
            records=[OrganizedRecord.degraded(r) for r in batch],
            prompt_chars=len(prompt),
            response_text=result.content,
            error=str(exc),
        )

    return BatchOutcome(
        index=index,
        records=records,
        prompt_chars=len(prompt),
        response_text=result.content,
    )


def _reduce(outcomes: Iterable[BatchOutcome], options: OrganizeOptions) -> OrganizeResult:
    existing = set(options.existing_tags)
    bookmarks: list[OrganizedRecord] = []
    new_tags: dict[str, None] = {}
    tokens = 0.0

    for outcome in outcomes:
        bookmarks.extend(outcome.records)
        tokens += outcome.estimated_tokens
        for record in outcome.records:
            for tag in record.ai_tags or []:
                if tag not in existing:
                    new_tags.setdefault(tag, None)

    return OrganizeResult(
        bookmarks=bookmarks,
        new_tags=list(new_tags),
        tokens_used=math.floor(tokens + 0.5),
    )


def _check_config(ai_config: AIConfig, settings: Settings) -> None:
    """Fail fast on a job that no batch could ever complete."""
    probe = CallDescription(
        provider=ai_config.provider,
        api_key=ai_config.api_key,
        api_url=ai_config.api_url,
        model=ai_config.model,
        prompt="",
    )
    get_dialect(ai_config.provider).build_request(probe, settings)


def organize_bookmarks(
    records: Iterable[BookmarkRecord | Mapping[str, Any]],
    ai_config: AIConfig,
    options: OrganizeOptions | None = None,
    *,
    settings: Settings | None = None,
    ai_client: AIClient | None = None,
    on_progress: ProgressCallback | None = None,
    is_cancelled: Callable[[], bool] | None = None,
) -> Generator[ProgressSnapshot, None, OrganizeResult | None]:
    """
    Organize bookmarks batch by batch, yielding progress along the way.

    Yields ``preparing``, one ``processing`` per batch and a final ``done``
    snapshot. The generator's return value is the OrganizeResult, or None
    when ``is_cancelled`` reported true before a batch or after the last one.

    Raises:
        ConfigurationError: credentials can never work (after an ``error`` snapshot).
    """
    settings = settings or Settings()
    options = options or OrganizeOptions()
    client = ai_client or AIClient(settings)
    items = [r if isinstance(r, BookmarkRecord) else BookmarkRecord.model_validate(r) for r in records]
    total = len(items)

    def emit(status: ProgressStatus, current: int, message: str) -> ProgressSnapshot:
        snapshot = ProgressSnapshot(current=current, total=total, status=status, message=message)
        if on_progress is not None:
            on_progress(snapshot)
        return snapshot

    yield emit(ProgressStatus.PREPARING, 0, "Preparing AI organize...")

    if not items:
        yield emit(ProgressStatus.DONE, 0, "Nothing to organize")
        return OrganizeResult()

    try:
        _check_config(ai_config, settings)
    except ConfigurationError as exc:
        logger.error("Organize job cannot start: %s", exc)
        yield emit(ProgressStatus.ERROR, 0, str(exc))
        raise

    batches = chunk(items, options.batch_size)
    outcomes: list[BatchOutcome] = []
    completed = 0
    logger.info(
        "Organizing %d bookmarks in %d batches with %s",
        total, len(batches), ai_config.provider.value,
    )

    for i, batch in enumerate(batches):
        yield emit(
            ProgressStatus.PROCESSING,
            completed,
            f"Processing batch {i + 1}/{len(batches)}...",
        )
        if is_cancelled is not None and is_cancelled():
            logger.info("Organize job cancelled before batch %d/%d", i + 1, len(batches))
            return None

        outcomes.append(_run_batch(i, batch, ai_config, options, client, settings))
        completed += len(batch)

    if is_cancelled is not None and is_cancelled():
        logger.info("Organize job cancelled during the final batch")
        return None

    result = _reduce(outcomes, options)
    failed = sum(1 for o in outcomes if not o.ok)
    logger.info(
        "Organize complete. Bookmarks: %d, new tags: %d, degraded batches: %d, ~%d tokens",
        len(result.bookmarks), len(result.new_tags), failed, result.tokens_used,
    )

    yield emit(ProgressStatus.DONE, total, "AI organize complete")
    return result


class OrganizeJob:
    """
    Iterable organize job.

    Iterating yields ProgressSnapshots; once the ``done`` snapshot has been
    consumed, ``result`` holds the OrganizeResult. Each new iteration starts
    over from the first batch. ``cancel()`` may be called from any thread;
    a cancelled job stays cancelled and never produces a result.
    """

    def __init__(
        self,
        records: Iterable[BookmarkRecord | Mapping[str, Any]],
        ai_config: AIConfig,
        options: OrganizeOptions | None = None,
        *,
        settings: Settings | None = None,
        ai_client: AIClient | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.records = list(records)
        self.ai_config = ai_config
        self.options = options or OrganizeOptions()
        self.settings = settings or Settings()
        self.ai_client = ai_client
        self.on_progress = on_progress
        self.result: OrganizeResult | None = None
        self._cancel = threading.Event()

    def __iter__(self) -> Iterator[ProgressSnapshot]:
        self.result = None
        self.result = yield from organize_bookmarks(
            self.records,
            self.ai_config,
            self.options,
            settings=self.settings,
            ai_client=self.ai_client,
            on_progress=self.on_progress,
            is_cancelled=self._cancel.is_set,
        )

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def run(self) -> OrganizeResult | None:
        """Drive the job to completion, ignoring progress."""
        for _ in self:
            pass
        return self.result


def estimate_tokens(records: Sequence[Any], options: OrganizeOptions) -> int:
    """Rough pre-flight estimate: ~50 input + ~30 output tokens per bookmark."""
    multiplier = DESCRIPTION_MULTIPLIER if options.generate_description else 1
    return math.floor(len(records) * TOKENS_PER_BOOKMARK * multiplier + 0.5)


def estimate_cost(
    tokens: int,
    provider: ProviderId | str,
    prices: Mapping[str, float] | None = None,
) -> float:
    """Approximate USD cost. ``prices`` maps provider ids to USD per 1M tokens."""
    info = get_provider_info(provider)
    price = info.price_per_million
    if prices is not None:
        price = prices.get(info.id.value, price)
    return tokens / 1_000_000 * price
