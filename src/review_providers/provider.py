"""
Abstract provider contract for git-hosting backends.

This module defines the interface every backend implements, allowing the
review client to work with GitHub, GitLab, Bitbucket, Azure DevOps and
Gitea/Forgejo interchangeably. The V1 surface is required; the V2
operations have shared default implementations that a backend overrides
only when it supports them natively.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping, Sequence
from typing import Any

from . import defaults
from .models import (
    AcceptSuggestionParams,
    AddDiffCommentParams,
    Comment,
    FileChange,
    ListPRsParams,
    MergeMethod,
    PRListResult,
    ProviderCapabilities,
    ProviderType,
    PullRequest,
    SuggestionParams,
    TimelineEvent,
)

V2_CAPABILITY_FLAGS: tuple[str, ...] = (
    "supports_streaming",
    "supports_batch_fetch",
    "supports_webhooks",
    "supports_suggestions",
    "supports_timeline",
)


def ensure_v2_capabilities(
    capabilities: ProviderCapabilities | Mapping[str, Any],
) -> ProviderCapabilities:
    """
    Return a capability record with every V2 flag defined.

    Flags that are unset become ``False``; flags that are set are kept.
    Accepts a plain mapping for backends that declare capabilities as data.
    """
    if not isinstance(capabilities, ProviderCapabilities):
        capabilities = ProviderCapabilities.model_validate(dict(capabilities))

    missing = {
        flag: False for flag in V2_CAPABILITY_FLAGS if getattr(capabilities, flag) is None
    }
    if not missing:
        return capabilities
    return capabilities.model_copy(update=missing)


class Provider(ABC):
    """
    Abstract base class for review providers.

    All operations are coroutines and raise only ``ApiError`` or
    ``NetworkError``. Providers never retry on their own.
    """

    @property
    @abstractmethod
    def provider_type(self) -> ProviderType:
        """Return the provider type."""
        ...

    @property
    @abstractmethod
    def capabilities(self) -> ProviderCapabilities:
        """Return the features this backend declares."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close any resources held by the provider."""
        ...

    # V1 surface

    @abstractmethod
    async def list_prs(self, params: ListPRsParams | None = None) -> PRListResult:
        """
        List pull requests.

        Args:
            params: State filter, sort order and page selection

        Returns:
            One page of pull requests, with the total when the backend reports it
        """
        ...

    @abstractmethod
    async def get_pr(self, number: int) -> PullRequest:
        """Fetch a single pull request by number."""
        ...

    @abstractmethod
    async def get_pr_files(self, number: int) -> list[FileChange]:
        """Fetch every file changed by a pull request."""
        ...

    @abstractmethod
    async def get_file_diff(self, number: int, path: str) -> FileChange | None:
        """
        Fetch the diff of one file in a pull request.

        Returns:
            The file change, or None when the PR does not touch ``path``
        """
        ...

    @abstractmethod
    async def get_pr_comments(self, number: int) -> list[Comment]:
        """Fetch conversation and review comments, oldest first."""
        ...

    @abstractmethod
    async def add_comment(self, number: int, body: str) -> None:
        """Post a conversation comment."""
        ...

    @abstractmethod
    async def add_diff_comment(self, params: AddDiffCommentParams) -> None:
        """Post a comment anchored to a line (or line range) of the diff."""
        ...

    @abstractmethod
    async def merge_pr(
        self,
        number: int,
        method: MergeMethod = MergeMethod.MERGE,
        commit_title: str | None = None,
        commit_message: str | None = None,
    ) -> None:
        """Merge a pull request with the given method."""
        ...

    # V2 surface

    async def batch_get_prs(self, numbers: Sequence[int]) -> list[PullRequest]:
        """Fetch several pull requests; results are in input order."""
        return await defaults.default_batch_get_prs(self, numbers)

    def stream_file_diff(self, number: int, path: str) -> AsyncIterator[str]:
        """Yield a file's diff in chunks."""
        return defaults.default_stream_file_diff(self, number, path)

    async def get_timeline(self, number: int) -> list[TimelineEvent]:
        return await defaults.default_get_timeline(self, number)

    async def submit_suggestion(self, params: SuggestionParams) -> Comment:
        """Post a code suggestion and return the created comment."""
        return await defaults.default_submit_suggestion(self, params)

    async def accept_suggestion(self, params: AcceptSuggestionParams) -> None:
        await defaults.default_accept_suggestion(self, params)
