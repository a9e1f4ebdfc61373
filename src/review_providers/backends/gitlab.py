"""
GitLab REST v4 backend (gitlab.com and self-hosted).

Merge requests are addressed by project path, URL-encoded so nested groups
("group/subgroup/repo") work. Diff comments are posted as discussions with
a position built from the merge request's ``diff_refs``.
"""

import logging
import time
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from ..dialect import Dialect
from ..error_mapper import parse_retry_after
from ..models import (
    AddDiffCommentParams,
    Comment,
    DiffSide,
    FileChange,
    ListPRsParams,
    MergeMethod,
    PRListResult,
    PRState,
    ProviderCapabilities,
    ProviderType,
    PullRequest,
)
from ..pagination import NextPageHeaderPaginator, Paginator
from ..urls import gitlab_auth_headers
from .base import (
    HttpProvider,
    count_changes,
    dict_items,
    parse_datetime,
    parse_user,
    sort_comments,
)

logger = logging.getLogger(__name__)

MIN_RESET_DELAY_MS = 1000

_STATE_FILTERS = {
    PRState.OPEN: "opened",
    PRState.CLOSED: "closed",
    PRState.MERGED: "merged",
    PRState.ALL: "all",
}

_ORDER_BY = {
    "created": "created_at",
    "updated": "updated_at",
}


class GitLabDialect(Dialect):
    provider_type = ProviderType.GITLAB
    capabilities = ProviderCapabilities(
        supports_draft_pr=True,
        supports_review_threads=True,
        supports_graphql=True,
        supports_reactions=True,
        supports_check_runs=True,
        supports_merge_strategies=("merge", "squash", "rebase"),
    )

    def __init__(self) -> None:
        self._paginator = NextPageHeaderPaginator()

    @property
    def paginator(self) -> Paginator:
        return self._paginator

    def auth_headers(self, token: str) -> dict[str, str]:
        return gitlab_auth_headers(token)

    def extract_detail(self, parsed: dict[str, Any]) -> Any:
        message = parsed.get("message")
        if message is not None:
            return message
        return parsed.get("error")

    def retry_after_ms(self, headers: Mapping[str, str]) -> int | None:
        """Prefer the ``RateLimit-Reset`` epoch over ``Retry-After``."""
        reset = headers.get("RateLimit-Reset") or headers.get("ratelimit-reset")
        if reset:
            try:
                reset_ms = int(reset.strip()) * 1000
            except ValueError:
                logger.debug(f"Ignoring malformed RateLimit-Reset: {reset}")
            else:
                return max(reset_ms - int(time.time() * 1000), MIN_RESET_DELAY_MS)
        return parse_retry_after(headers)


class GitLabProvider(HttpProvider):
    """Client for GitLab merge requests via the REST API."""

    dialect_class = GitLabDialect

    @property
    def _project(self) -> str:
        project_id = quote(self.config.repo_path, safe="")
        return f"/projects/{project_id}"

    def _mr_path(self, number: int) -> str:
        return f"{self._project}/merge_requests/{number}"

    def _parse_pr(self, data: dict[str, Any]) -> PullRequest:
        """Parse merge request JSON from GitLab API response."""
        state_str = data.get("state", "opened")
        if state_str == "merged":
            state = PRState.MERGED
        elif state_str in ("closed", "locked"):
            state = PRState.CLOSED
        else:
            state = PRState.OPEN

        return PullRequest(
            number=data.get("iid", 0),
            title=data.get("title", ""),
            state=state,
            author=parse_user(data.get("author"), ("username",), "web_url"),
            draft=bool(data.get("draft") or data.get("work_in_progress")),
            url=data.get("web_url"),
            body=data.get("description"),
            head_sha=data.get("sha"),
            source_branch=data.get("source_branch"),
            target_branch=data.get("target_branch"),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
        )

    def _parse_diff(self, data: dict[str, Any]) -> FileChange:
        if data.get("new_file"):
            status = "added"
        elif data.get("deleted_file"):
            status = "removed"
        elif data.get("renamed_file"):
            status = "renamed"
        else:
            status = "modified"

        patch = data.get("diff")
        additions, deletions = count_changes(patch or "")
        return FileChange(
            filename=data.get("new_path", ""),
            status=status,
            additions=additions,
            deletions=deletions,
            patch=patch,
            previous_filename=data.get("old_path") if status == "renamed" else None,
        )

    def _parse_note(self, data: dict[str, Any]) -> Comment:
        position = data.get("position") or {}
        return Comment(
            id=data.get("id", 0),
            body=data.get("body") or "",
            author=parse_user(data.get("author"), ("username",), "web_url"),
            path=position.get("new_path"),
            line=position.get("new_line") or position.get("old_line"),
            created_at=parse_datetime(data.get("created_at")),
        )

    async def list_prs(self, params: ListPRsParams | None = None) -> PRListResult:
        params = params or ListPRsParams()
        query = {
            "state": _STATE_FILTERS[params.state],
            "per_page": str(params.per_page),
            "page": str(params.page),
        }
        if params.sort in _ORDER_BY:
            query["order_by"] = _ORDER_BY[params.sort]
        if params.direction:
            query["sort"] = params.direction

        path = f"{self._project}/merge_requests"
        url = self.http.url(path, query)
        response = await self.http.request("GET", path, params=query)
        data = self.http.decode_json(response, url)

        total = response.headers.get("X-Total")
        return PRListResult(
            items=self._parse_each(self._parse_pr, data, url),
            total_count=int(total) if total and total.isdigit() else None,
        )

    async def get_pr(self, number: int) -> PullRequest:
        path = self._mr_path(number)
        return self._parse(self._parse_pr, await self._get_object(path), self.http.url(path))

    async def get_pr_files(self, number: int) -> list[FileChange]:
        return await self._paginate_parsed(f"{self._mr_path(number)}/diffs", self._parse_diff)

    async def get_file_diff(self, number: int, path: str) -> FileChange | None:
        for file_change in await self.get_pr_files(number):
            if file_change.filename == path:
                return file_change
        return None

    async def get_pr_comments(self, number: int) -> list[Comment]:
        """User notes, oldest first; system notes (label changes, pushes) are skipped."""
        path = f"{self._mr_path(number)}/notes"
        query = {"sort": "asc", "order_by": "created_at"}
        notes = await self.http.paginate(path, query)
        user_notes = [n for n in dict_items(notes) if not n.get("system")]
        return sort_comments(self._parse_each(self._parse_note, user_notes, self.http.url(path)))

    async def add_comment(self, number: int, body: str) -> None:
        await self.http.mutate("POST", f"{self._mr_path(number)}/notes", {"body": body})

    async def add_diff_comment(self, params: AddDiffCommentParams) -> None:
        mr = await self._get_object(self._mr_path(params.pr_number))
        diff_refs = mr.get("diff_refs")
        if not isinstance(diff_refs, dict):
            diff_refs = {}

        position: dict[str, Any] = {
            "position_type": "text",
            "base_sha": diff_refs.get("base_sha"),
            "start_sha": diff_refs.get("start_sha"),
            "head_sha": params.commit_id or diff_refs.get("head_sha"),
            "new_path": params.path,
            "old_path": params.path,
        }
        if params.side == DiffSide.LEFT:
            position["old_line"] = params.line
        else:
            position["new_line"] = params.line

        await self.http.mutate(
            "POST",
            f"{self._mr_path(params.pr_number)}/discussions",
            {"body": params.body, "position": position},
        )

    async def merge_pr(
        self,
        number: int,
        method: MergeMethod = MergeMethod.MERGE,
        commit_title: str | None = None,
        commit_message: str | None = None,
    ) -> None:
        """
        Accept the merge request in a single call.

        A rebase merge is left to the project's configured merge method;
        ``PUT .../rebase`` is asynchronous and would race the merge.
        """
        squash = method == MergeMethod.SQUASH
        payload: dict[str, Any] = {"squash": squash}
        if commit_title:
            message = f"{commit_title}\n\n{commit_message}" if commit_message else commit_title
            payload["squash_commit_message" if squash else "merge_commit_message"] = message

        await self.http.mutate("PUT", f"{self._mr_path(number)}/merge", payload)
        logger.info(f"Merged {self.config.repo_path}!{number} ({method.value})")
