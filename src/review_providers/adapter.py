"""
Adapter that presents any provider as a complete V2 provider.

Callers receive an ``AdaptedProvider`` from the factory, so they can call
every operation and read every capability flag without checking whether
the backend implements it.
"""

from collections.abc import AsyncIterator, Sequence

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
from .provider import Provider, ensure_v2_capabilities


class AdaptedProvider(Provider):
    """Forwards every call to the wrapped provider; capabilities are normalized."""

    def __init__(self, inner: Provider) -> None:
        self._inner = inner
        self._capabilities = ensure_v2_capabilities(inner.capabilities)

    @property
    def inner(self) -> Provider:
        return self._inner

    @property
    def provider_type(self) -> ProviderType:
        return self._inner.provider_type

    @property
    def capabilities(self) -> ProviderCapabilities:
        return self._capabilities

    async def close(self) -> None:
        await self._inner.close()

    async def list_prs(self, params: ListPRsParams | None = None) -> PRListResult:
        return await self._inner.list_prs(params)

    async def get_pr(self, number: int) -> PullRequest:
        return await self._inner.get_pr(number)

    async def get_pr_files(self, number: int) -> list[FileChange]:
        return await self._inner.get_pr_files(number)

    async def get_file_diff(self, number: int, path: str) -> FileChange | None:
        return await self._inner.get_file_diff(number, path)

    async def get_pr_comments(self, number: int) -> list[Comment]:
        return await self._inner.get_pr_comments(number)

    async def add_comment(self, number: int, body: str) -> None:
        await self._inner.add_comment(number, body)

    async def add_diff_comment(self, params: AddDiffCommentParams) -> None:
        await self._inner.add_diff_comment(params)

    async def merge_pr(
        self,
        number: int,
        method: MergeMethod = MergeMethod.MERGE,
        commit_title: str | None = None,
        commit_message: str | None = None,
    ) -> None:
        await self._inner.merge_pr(number, method, commit_title, commit_message)

    async def batch_get_prs(self, numbers: Sequence[int]) -> list[PullRequest]:
        return await self._inner.batch_get_prs(numbers)

    def stream_file_diff(self, number: int, path: str) -> AsyncIterator[str]:
        return self._inner.stream_file_diff(number, path)

    async def get_timeline(self, number: int) -> list[TimelineEvent]:
        return await self._inner.get_timeline(number)

    async def submit_suggestion(self, params: SuggestionParams) -> Comment:
        return await self._inner.submit_suggestion(params)

    async def accept_suggestion(self, params: AcceptSuggestionParams) -> None:
        await self._inner.accept_suggestion(params)


def adapt_provider(provider: Provider) -> AdaptedProvider:
    """Wrap ``provider``; an already adapted provider is returned unchanged."""
    if isinstance(provider, AdaptedProvider):
        return provider
    return AdaptedProvider(provider)
