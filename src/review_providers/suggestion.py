"""
Suggestion markdown.

GitHub renders ```` ```suggestion ```` fences as applicable changes, GitLab
uses ```` ```suggestion:-0+0 ````, and the other backends have no such
feature, so their comments carry a plain labelled code block instead.
"""

import re

from pydantic import BaseModel, ConfigDict

from .models import ProviderType

_SUGGESTION_BLOCK = re.compile(r"```suggestion(?::-\d+\+\d+)?\n(.*?)\n```", re.DOTALL)


class ParsedSuggestion(BaseModel):
    """Suggestion extracted from a comment body."""

    model_config = ConfigDict(frozen=True)

    suggestion: str
    comment_text: str


def _join(body: str, block: str) -> str:
    return f"{body}\n\n{block}" if body else block


def format_suggestion_body(body: str, suggestion: str) -> str:
    return _join(body, f"```suggestion\n{suggestion}\n```")


def format_gitlab_suggestion_body(body: str, suggestion: str) -> str:
    return _join(body, f"```suggestion:-0+0\n{suggestion}\n```")


def format_fallback_suggestion_body(body: str, suggestion: str) -> str:
    return _join(body, f"**Suggested change:**\n```\n{suggestion}\n```")


def format_suggestion_for_provider(
    provider: ProviderType,
    body: str,
    suggestion: str,
) -> str:
    """Suggestion comment body in the markdown dialect ``provider`` renders."""
    if provider == ProviderType.GITHUB:
        return format_suggestion_body(body, suggestion)
    if provider == ProviderType.GITLAB:
        return format_gitlab_suggestion_body(body, suggestion)
    return format_fallback_suggestion_body(body, suggestion)


def parse_suggestion_block(body: str) -> ParsedSuggestion | None:
    """Extract the first GitHub- or GitLab-style suggestion block."""
    if not body:
        return None
    match = _SUGGESTION_BLOCK.search(body)
    if match is None:
        return None
    return ParsedSuggestion(
        suggestion=match.group(1),
        comment_text=body[: match.start()].strip(),
    )


def has_suggestion_block(body: str) -> bool:
    return parse_suggestion_block(body) is not None
