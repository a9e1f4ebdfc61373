"""
GitHub (and GitHub Enterprise) REST v3 backend.

Supports timelines and suggestions natively: the review-comment endpoint
returns the created comment, so no re-fetch heuristic is needed.
"""

import logging
from typing import Any

from ..dialect import Dialect
from ..models import (
    AddDiffCommentParams,
    Comment,
    FileChange,
    ListPRsParams,
    MergeMethod,
    PRListResult,
    PRState,
    ProviderCapabilities,
    ProviderType,
    PullRequest,
    SuggestionParams,
    TimelineEvent,
)
from ..pagination import LinkHeaderPaginator, Paginator
from ..suggestion import format_suggestion_body
from ..urls import github_auth_headers
from .base import HttpProvider, parse_datetime, parse_user, sort_comments

logger = logging.getLogger(__name__)


class GitHubDialect(Dialect):
    provider_type = ProviderType.GITHUB
    capabilities = ProviderCapabilities(
        supports_draft_pr=True,
        supports_review_threads=True,
        supports_graphql=True,
        supports_reactions=True,
        supports_check_runs=True,
        supports_labels=True,
        supports_merge_strategies=("merge", "squash", "rebase"),
        supports_suggestions=True,
        supports_timeline=True,
    )

    def __init__(self) -> None:
        self._paginator = LinkHeaderPaginator()

    @property
    def paginator(self) -> Paginator:
        return self._paginator

    def auth_headers(self, token: str) -> dict[str, str]:
        return github_auth_headers(token)

    def extract_detail(self, parsed: dict[str, Any]) -> Any:
        return parsed.get("message") or parsed.get("error")


class GitHubProvider(HttpProvider):
    """Client for GitHub pull requests via the REST API."""

    dialect_class = GitHubDialect

    @property
    def _repo(self) -> str:
        return f"/repos/{self.config.owner}/{self.config.repo}"

    def _parse_pr(self, data: dict[str, Any]) -> PullRequest:
        """Parse pull request JSON from GitHub API response."""
        if data.get("merged_at"):
            state = PRState.MERGED
        elif data.get("state") == "closed":
            state = PRState.CLOSED
        else:
            state = PRState.OPEN

        head = data.get("head") or {}
        base = data.get("base") or {}
        return PullRequest(
            number=data.get("number", 0),
            title=data.get("title", ""),
            state=state,
            author=parse_user(data.get("user")),
            draft=bool(data.get("draft")),
            url=data.get("html_url"),
            body=data.get("body"),
            head_sha=head.get("sha"),
            source_branch=head.get("ref"),
            target_branch=base.get("ref"),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
            node_id=data.get("node_id"),
        )

    def _parse_file(self, data: dict[str, Any]) -> FileChange:
        return FileChange(
            filename=data.get("filename", ""),
            status=data.get("status", "modified"),
            additions=data.get("additions", 0),
            deletions=data.get("deletions", 0),
            patch=data.get("patch"),
            previous_filename=data.get("previous_filename"),
        )

    def _parse_comment(self, data: dict[str, Any]) -> Comment:
        return Comment(
            id=data.get("id", 0),
            body=data.get("body") or "",
            author=parse_user(data.get("user")),
            path=data.get("path"),
            line=data.get("line") or data.get("original_line"),
            created_at=parse_datetime(data.get("created_at")),
            url=data.get("html_url"),
        )

    async def list_prs(self, params: ListPRsParams | None = None) -> PRListResult:
        params = params or ListPRsParams()
        # GitHub has no "merged" filter; merged PRs are closed ones with merged_at
        state = "closed" if params.state == PRState.MERGED else params.state.value
        query = {
            "state": state,
            "per_page": str(params.per_page),
            "page": str(params.page),
        }
        if params.sort:
            query["sort"] = params.sort
        if params.direction:
            query["direction"] = params.direction

        path = f"{self._repo}/pulls"
        data = await self._get_list(path, query)
        prs = self._parse_each(self._parse_pr, data, self.http.url(path, query))
        if params.state == PRState.MERGED:
            prs = [pr for pr in prs if pr.state == PRState.MERGED]
        return PRListResult(items=prs)

    async def get_pr(self, number: int) -> PullRequest:
        path = f"{self._repo}/pulls/{number}"
        return self._parse(self._parse_pr, await self._get_object(path), self.http.url(path))

    async def get_pr_files(self, number: int) -> list[FileChange]:
        return await self._paginate_parsed(f"{self._repo}/pulls/{number}/files", self._parse_file)

    async def get_file_diff(self, number: int, path: str) -> FileChange | None:
        for file_change in await self.get_pr_files(number):
            if file_change.filename == path:
                return file_change
        return None

    async def get_pr_comments(self, number: int) -> list[Comment]:
        """Conversation comments and review comments, oldest first."""
        issue_comments = await self._paginate_parsed(
            f"{self._repo}/issues/{number}/comments", self._parse_comment
        )
        review_comments = await self._paginate_parsed(
            f"{self._repo}/pulls/{number}/comments", self._parse_comment
        )
        return sort_comments(issue_comments + review_comments)

    async def add_comment(self, number: int, body: str) -> None:
        await self.http.mutate("POST", f"{self._repo}/issues/{number}/comments", {"body": body})

    def _review_comment_body(self, params: AddDiffCommentParams) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "body": params.body,
            "commit_id": params.commit_id,
            "path": params.path,
            "line": params.line,
            "side": params.side.value,
        }
        if params.start_line is not None:
            payload["start_line"] = params.start_line
            payload["start_side"] = (params.start_side or params.side).value
        return payload

    async def add_diff_comment(self, params: AddDiffCommentParams) -> None:
        await self.http.mutate(
            "POST",
            f"{self._repo}/pulls/{params.pr_number}/comments",
            self._review_comment_body(params),
        )

    async def merge_pr(
        self,
        number: int,
        method: MergeMethod = MergeMethod.MERGE,
        commit_title: str | None = None,
        commit_message: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {"merge_method": method.value}
        if commit_title:
            payload["commit_title"] = commit_title
        if commit_message:
            payload["commit_message"] = commit_message
        await self.http.mutate("PUT", f"{self._repo}/pulls/{number}/merge", payload)
        logger.info(f"Merged {self.config.repo_path}#{number} ({method.value})")

    def _parse_event(self, item: dict[str, Any]) -> TimelineEvent:
        actor = item.get("actor") or item.get("user")
        return TimelineEvent(
            id=str(item.get("node_id") or item.get("id") or ""),
            type=item.get("event", "unknown"),
            actor=parse_user(actor) if actor else None,
            created_at=parse_datetime(item.get("created_at") or item.get("submitted_at")),
            body=item.get("body"),
        )

    async def get_timeline(self, number: int) -> list[TimelineEvent]:
        events = await self._paginate_parsed(
            f"{self._repo}/issues/{number}/timeline", self._parse_event
        )
        # some event kinds (committed) carry no id; fall back to their position
        return [
            event if event.id else event.model_copy(update={"id": str(index)})
            for index, event in enumerate(events)
        ]

    async def submit_suggestion(self, params: SuggestionParams) -> Comment:
        commit_id = params.commit_id
        if not commit_id:
            commit_id = (await self.get_pr(params.pr_number)).head_sha or ""

        diff_params = AddDiffCommentParams(
            pr_number=params.pr_number,
            body=format_suggestion_body(params.body, params.suggestion),
            commit_id=commit_id,
            path=params.path,
            line=params.line,
            side=params.side,
            start_line=params.start_line,
            start_side=params.side if params.start_line is not None else None,
        )
        path = f"{self._repo}/pulls/{params.pr_number}/comments"
        data = await self.http.mutate_json("POST", path, self._review_comment_body(diff_params))
        return self._parse(self._parse_comment, data, self.http.url(path))
