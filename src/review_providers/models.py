"""
Pydantic models shared by every provider.

This module defines the value objects that cross the provider boundary:
capability records, request parameters, the light PR / comment / file
records returned by backends, and the small policy records used by the
rate-limit tracker, the retry policy and the pagination engines.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ProviderType(str, Enum):
    """Supported git-hosting backends."""

    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"
    AZURE = "azure"
    GITEA = "gitea"


class PRState(str, Enum):
    """Pull request state filter and value."""

    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"
    ALL = "all"


class MergeMethod(str, Enum):
    """Merge methods understood by the provider contract."""

    MERGE = "merge"
    SQUASH = "squash"
    REBASE = "rebase"


class DiffSide(str, Enum):
    """Side of a diff a comment is anchored to."""

    LEFT = "LEFT"
    RIGHT = "RIGHT"


class ProviderCapabilities(BaseModel):
    """
    Flat record of optional features a backend supports.

    V1 flags default to ``False``. The V2 flags start out unset (``None``)
    so that a backend which never heard of them is distinguishable until
    ``ensure_v2_capabilities`` normalizes them to ``False``.
    """

    model_config = ConfigDict(frozen=True)

    supports_draft_pr: bool = False
    supports_review_threads: bool = False
    supports_graphql: bool = False
    supports_reactions: bool = False
    supports_check_runs: bool = False
    supports_labels: bool = False
    supports_merge_strategies: tuple[str, ...] = ()

    supports_streaming: bool | None = None
    supports_batch_fetch: bool | None = None
    supports_webhooks: bool | None = None
    supports_suggestions: bool | None = None
    supports_timeline: bool | None = None


class ProviderConfig(BaseModel):
    """Resolved configuration for one provider instance."""

    model_config = ConfigDict(frozen=True)

    type: ProviderType
    base_url: str
    token: str
    owner: str  # Azure: "org/project", GitLab: may contain subgroups
    repo: str

    @property
    def repo_path(self) -> str:
        return f"{self.owner}/{self.repo}"


class ParsedRemote(BaseModel):
    """Result of parsing a git remote URL."""

    model_config = ConfigDict(frozen=True)

    provider: ProviderType | None
    host: str
    owner: str
    repo: str
    base_url: str


class User(BaseModel):
    """Author or actor on a backend."""

    model_config = ConfigDict(frozen=True)

    login: str
    url: str | None = None


class PullRequest(BaseModel):
    """Pull request (merge request) summary."""

    model_config = ConfigDict(frozen=True)

    number: int
    title: str
    state: PRState
    author: User
    draft: bool = False
    url: str | None = None
    body: str | None = None
    head_sha: str | None = None
    source_branch: str | None = None
    target_branch: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    node_id: str | None = None


class PRListResult(BaseModel):
    """One page of pull requests."""

    model_config = ConfigDict(frozen=True)

    items: list[PullRequest] = Field(default_factory=list)
    total_count: int | None = None


class ListPRsParams(BaseModel):
    """Parameters for ``Provider.list_prs``."""

    model_config = ConfigDict(frozen=True)

    state: PRState = PRState.OPEN
    sort: str | None = None  # created | updated | popularity | long-running
    direction: str | None = None  # asc | desc
    per_page: int = Field(default=30, ge=1, le=100)
    page: int = Field(default=1, ge=1)


class FileChange(BaseModel):
    """A file touched by a pull request."""

    model_config = ConfigDict(frozen=True)

    filename: str
    status: str = "modified"
    additions: int = 0
    deletions: int = 0
    patch: str | None = None
    previous_filename: str | None = None


class Comment(BaseModel):
    """Review or conversation comment on a pull request."""

    model_config = ConfigDict(frozen=True)

    id: int | str
    body: str
    author: User
    path: str | None = None
    line: int | None = None
    created_at: datetime | None = None
    url: str | None = None


class AddDiffCommentParams(BaseModel):
    """Parameters for ``Provider.add_diff_comment``."""

    model_config = ConfigDict(frozen=True)

    pr_number: int
    body: str
    commit_id: str
    path: str
    line: int
    side: DiffSide = DiffSide.RIGHT
    start_line: int | None = None
    start_side: DiffSide | None = None


class TimelineEvent(BaseModel):
    """One entry of a PR's interleaved event feed."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    actor: User | None = None
    created_at: datetime | None = None
    body: str | None = None


class SuggestionParams(BaseModel):
    """Parameters for submitting a code suggestion."""

    model_config = ConfigDict(frozen=True)

    pr_number: int
    body: str
    path: str
    line: int
    side: DiffSide
    suggestion: str
    start_line: int | None = None
    commit_id: str | None = None


class AcceptSuggestionParams(BaseModel):
    """Parameters for applying a suggestion."""

    model_config = ConfigDict(frozen=True)

    pr_number: int
    comment_id: int | str
    commit_message: str | None = None


class RateLimitSnapshot(BaseModel):
    """Last known quota signal for one provider."""

    model_config = ConfigDict(frozen=True)

    remaining: int | None = None
    limit: int | None = None
    reset_at: datetime | None = None


class RetryDecision(BaseModel):
    """Outcome of consulting the retry policy for one failed attempt."""

    model_config = ConfigDict(frozen=True)

    should_retry: bool
    delay_ms: int


class PageCursor(BaseModel):
    """
    Continuation state between two page fetches.

    Exactly one style is used per engine: a full next-page ``url``
    (body-cursor and Link styles), a ``page`` number, or an opaque
    ``token`` with a ``skip`` fallback (Azure).
    """

    model_config = ConfigDict(frozen=True)

    url: str | None = None
    page: int | None = None
    token: str | None = None
    skip: int = 0
