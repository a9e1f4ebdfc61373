"""
Shared fallbacks for the V2 provider operations.

Each function is expressed only in terms of the V1 surface, so it works for
any backend. ``Provider`` delegates to these unless a backend overrides the
operation with a native implementation.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from typing import TYPE_CHECKING

from .error_mapper import unexpected_response_error, unsupported_operation_error
from .models import (
    AcceptSuggestionParams,
    AddDiffCommentParams,
    Comment,
    PullRequest,
    SuggestionParams,
    TimelineEvent,
)
from .suggestion import format_suggestion_for_provider

if TYPE_CHECKING:
    from .provider import Provider

logger = logging.getLogger(__name__)


async def default_batch_get_prs(
    provider: "Provider",
    numbers: Sequence[int],
) -> list[PullRequest]:
    """
    Fetch every PR concurrently with ``get_pr``.

    Concurrency is unbounded. If any fetch fails the whole batch fails with
    the first failure in input order.
    """
    results = await asyncio.gather(
        *(provider.get_pr(number) for number in numbers),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)


async def default_stream_file_diff(
    provider: "Provider",
    number: int,
    path: str,
) -> AsyncIterator[str]:
    """Yield the whole patch as a single chunk, or nothing when there is none."""
    file_change = await provider.get_file_diff(number, path)
    if file_change is not None and file_change.patch is not None:
        yield file_change.patch


async def default_get_timeline(provider: "Provider", number: int) -> list[TimelineEvent]:
    return []


async def default_submit_suggestion(
    provider: "Provider",
    params: SuggestionParams,
) -> Comment:
    """
    Post a suggestion as a diff comment and look the new comment up.

    The lookup re-fetches all comments and returns the most recent one on
    the same path, falling back to the last comment overall. A concurrent
    comment on the same path can be returned instead of ours.
    """
    body = format_suggestion_for_provider(provider.provider_type, params.body, params.suggestion)
    await provider.add_diff_comment(
        AddDiffCommentParams(
            pr_number=params.pr_number,
            body=body,
            commit_id=params.commit_id or "",
            path=params.path,
            line=params.line,
            side=params.side,
            start_line=params.start_line,
            start_side=params.side if params.start_line is not None else None,
        )
    )

    comments = await provider.get_pr_comments(params.pr_number)
    for comment in reversed(comments):
        if comment.path == params.path:
            return comment
    if comments:
        return comments[-1]

    logger.warning(f"Suggestion on {params.path} posted but no comments came back")
    raise unexpected_response_error(
        "Suggestion was posted but the created comment could not be found",
        provider=provider.provider_type.value,
        status=200,
    )


async def default_accept_suggestion(
    provider: "Provider",
    params: AcceptSuggestionParams,
) -> None:
    raise unsupported_operation_error("Accepting suggestions", provider.provider_type.value)
