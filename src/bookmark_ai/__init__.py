"""BookmarkAI - AI-assisted tagging and organizing for bookmark collections."""

__version__ = "0.1.0"

from bookmark_ai.client import AIClient, call_ai
from bookmark_ai.models import (
    AIConfig,
    BookmarkRecord,
    OrganizedRecord,
    OrganizeOptions,
    OrganizeResult,
    ProgressSnapshot,
    ProviderId,
)
from bookmark_ai.organizer import OrganizeJob, estimate_cost, estimate_tokens, organize_bookmarks

__all__ = [
    "AIClient",
    "AIConfig",
    "BookmarkRecord",
    "OrganizeJob",
    "OrganizeOptions",
    "OrganizeResult",
    "OrganizedRecord",
    "ProgressSnapshot",
    "ProviderId",
    "call_ai",
    "estimate_cost",
    "estimate_tokens",
    "organize_bookmarks",
]
