"""Command-line interface for BookmarkAI."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from pydantic import ValidationError

from bookmark_ai.client import AIClient
from bookmark_ai.config import Settings
from bookmark_ai.discovery import ModelDiscoveryError, can_list_models, list_models
from bookmark_ai.models import AIConfig, BookmarkRecord, OrganizeOptions, ProgressStatus
from bookmark_ai.organizer import OrganizeJob, estimate_cost, estimate_tokens
from bookmark_ai.providers import get_provider_info, list_providers
from bookmark_ai.providers.base import ConfigurationError


def _out(msg: str = "") -> None:
    """Print a status message to stderr so it doesn't mix with JSON output."""
    print(msg, file=sys.stderr, flush=True)


def _add_ai_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-p", "--provider",
        choices=list_providers(),
        default=None,
        help="AI provider to use (default: from .env AI_PROVIDER)",
    )
    parser.add_argument("--api-key", default=None, help="API key (default: from .env AI_API_KEY)")
    parser.add_argument(
        "--api-url",
        default=None,
        help="Base URL override; required for the custom provider",
    )
    parser.add_argument("--model", default=None, help="Model id (default: provider default)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bookmark-ai",
        description="AI-assisted tagging for bookmark collections.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("providers", help="List known AI providers")

    models = sub.add_parser("models", help="List models a provider offers")
    _add_ai_options(models)
    models.add_argument(
        "--static",
        action="store_true",
        help="Print the built-in model catalog instead of querying the provider",
    )

    test = sub.add_parser("test", help="Check that the API key and URL work")
    _add_ai_options(test)

    estimate = sub.add_parser("estimate", help="Estimate tokens and cost for a bookmark file")
    estimate.add_argument("file", help="JSON file with a list of bookmarks")
    estimate.add_argument("-p", "--provider", choices=list_providers(), default=None)
    estimate.add_argument("--description", action="store_true", help="Also generate descriptions")

    organize = sub.add_parser("organize", help="Tag bookmarks with AI")
    organize.add_argument("file", help="JSON file with a list of bookmarks")
    _add_ai_options(organize)
    organize.add_argument("--batch-size", type=int, default=None, help="Bookmarks per AI call (default: 20)")
    organize.add_argument("--description", action="store_true", help="Also generate descriptions")
    organize.add_argument(
        "--no-normalize",
        action="store_true",
        help="Keep AI tags exactly as returned",
    )
    organize.add_argument(
        "--existing-tags",
        default="",
        help="Comma-separated tags the AI should prefer",
    )
    organize.add_argument(
        "--apply",
        action="store_true",
        help="Output plain bookmarks with AI tags merged into their tags",
    )
    organize.add_argument(
        "-o", "--output",
        default=None,
        help="Output file path (default: stdout)",
    )
    return parser


def load_records(path: str) -> list[BookmarkRecord]:
    """Read bookmarks from a JSON list, or an object with a ``bookmarks`` list."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("bookmarks", [])
    if not isinstance(data, list):
        raise ValueError(f"{path} does not contain a list of bookmarks")
    return [BookmarkRecord.model_validate(item) for item in data]


def _ai_config(args: argparse.Namespace, settings: Settings) -> AIConfig:
    return AIConfig(
        provider=args.provider or settings.default_provider,
        api_key=args.api_key or settings.api_key,
        api_url=args.api_url or settings.api_url or None,
        model=args.model or settings.model or None,
    )


def _write(output: str, path: str | None) -> None:
    if path:
        with open(path, "w", encoding="utf-8") as f:
            f.write(output)
        _out(f"Output written to {path}")
    else:
        print(output)


def _cmd_providers(args: argparse.Namespace, settings: Settings) -> int:
    for name in list_providers():
        info = get_provider_info(name)
        print(f"{name:<12} {info.display_name:<12} {info.dialect.value:<10} {info.default_model}")
    return 0


def _cmd_models(args: argparse.Namespace, settings: Settings) -> int:
    config = _ai_config(args, settings)
    if args.static or not can_list_models(config.provider, config.api_url):
        for model in get_provider_info(config.provider).available_models:
            print(model)
        return 0
    try:
        models = list_models(config.provider, config.api_key, config.api_url, settings=settings)
    except ModelDiscoveryError as exc:
        _out(f"[!] {exc}")
        return 1
    for model in models:
        print(model)
    return 0


def _cmd_test(args: argparse.Namespace, settings: Settings) -> int:
    config = _ai_config(args, settings)
    result = AIClient(settings).test_connection(
        config.provider, config.api_key, config.api_url, config.model
    )
    if result.success:
        _out(f"OK  {result.provider.value} / {result.model} ({result.latency_ms} ms)")
        return 0
    _out(f"FAILED  {result.provider.value} / {result.model} ({result.latency_ms} ms): {result.error}")
    return 1


def _cmd_estimate(args: argparse.Namespace, settings: Settings) -> int:
    records = load_records(args.file)
    options = OrganizeOptions(generate_description=args.description)
    provider = args.provider or settings.default_provider
    tokens = estimate_tokens(records, options)
    cost = estimate_cost(tokens, provider)
    print(f"Bookmarks:  {len(records)}")
    print(f"Tokens:     ~{tokens:,}")
    print(f"Cost:       ~${cost:.4f} ({provider})")
    return 0


def _cmd_organize(args: argparse.Namespace, settings: Settings) -> int:
    records = load_records(args.file)
    config = _ai_config(args, settings)
    options = OrganizeOptions(
        generate_description=args.description,
        normalize_tags=not args.no_normalize,
        existing_tags=[t.strip() for t in args.existing_tags.split(",") if t.strip()],
        batch_size=settings.batch_size,
    )

    job = OrganizeJob(records, config, options, settings=settings)
    try:
        for snapshot in job:
            if snapshot.status is ProgressStatus.ERROR:
                continue
            _out(f"  [{snapshot.current}/{snapshot.total}] {snapshot.message or snapshot.status.value}")
    except ConfigurationError as exc:
        _out(f"[!] {exc}")
        return 1

    result = job.result
    if result is None:
        _out("[!] Organize job did not complete")
        return 1

    _out(f"  New tags: {len(result.new_tags)} | ~{result.tokens_used:,} tokens")
    if args.apply:
        payload = [b.applied().model_dump() for b in result.bookmarks]
    else:
        payload = result.model_dump(mode="json")
    _write(json.dumps(payload, indent=2, ensure_ascii=False), args.output)
    return 0


_COMMANDS = {
    "providers": _cmd_providers,
    "models": _cmd_models,
    "test": _cmd_test,
    "estimate": _cmd_estimate,
    "organize": _cmd_organize,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    settings = Settings.from_env()
    if getattr(args, "batch_size", None) is not None:
        settings = replace(settings, batch_size=args.batch_size)

    try:
        return _COMMANDS[args.command](args, settings)
    except (OSError, ValueError, ValidationError) as exc:
        _out(f"[!] {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
