"""
Bitbucket Cloud 2.0 backend.

File lists come from ``diffstat``; patches come from the raw PR diff split
per file, since Bitbucket has no per-file patch endpoint.
"""

import logging
from typing import Any

from ..dialect import Dialect
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
from ..pagination import BodyCursorPaginator, Paginator
from ..urls import bitbucket_auth_headers
from .base import (
    HttpProvider,
    dict_items,
    parse_datetime,
    parse_user,
    sort_comments,
    split_unified_diff,
)

logger = logging.getLogger(__name__)

_STATE_FILTERS: dict[PRState, str | None] = {
    PRState.OPEN: "OPEN",
    PRState.CLOSED: "MERGED,DECLINED,SUPERSEDED",
    PRState.MERGED: "MERGED",
    PRState.ALL: None,
}

_MERGE_STRATEGIES = {
    MergeMethod.MERGE: "merge_commit",
    MergeMethod.SQUASH: "squash",
    MergeMethod.REBASE: "fast_forward",
}

_FILE_STATUSES = {
    "added": "added",
    "removed": "removed",
    "renamed": "renamed",
    "modified": "modified",
}


class BitbucketDialect(Dialect):
    provider_type = ProviderType.BITBUCKET
    capabilities = ProviderCapabilities(
        supports_check_runs=True,
        supports_merge_strategies=("merge", "squash", "rebase"),
    )

    def __init__(self) -> None:
        self._paginator = BodyCursorPaginator()

    @property
    def paginator(self) -> Paginator:
        return self._paginator

    def auth_headers(self, token: str) -> dict[str, str]:
        return bitbucket_auth_headers(token)

    def extract_detail(self, parsed: dict[str, Any]) -> Any:
        """Bitbucket nests errors as ``{"error": {"message": ..., "detail": ...}}``."""
        error = parsed.get("error")
        if isinstance(error, dict):
            return error.get("message") or error.get("detail")
        if isinstance(error, str):
            return error
        return super().extract_detail(parsed)


class BitbucketProvider(HttpProvider):
    """Client for Bitbucket Cloud pull requests via the 2.0 REST API."""

    dialect_class = BitbucketDialect

    @property
    def _repo(self) -> str:
        return f"/repositories/{self.config.owner}/{self.config.repo}"

    def _pr_path(self, number: int) -> str:
        return f"{self._repo}/pullrequests/{number}"

    def _parse_pr(self, data: dict[str, Any]) -> PullRequest:
        """Parse pull request JSON from Bitbucket API response."""
        state_str = data.get("state", "OPEN")
        if state_str == "MERGED":
            state = PRState.MERGED
        elif state_str in ("DECLINED", "SUPERSEDED"):
            state = PRState.CLOSED
        else:
            state = PRState.OPEN

        source = data.get("source") or {}
        destination = data.get("destination") or {}
        html = (data.get("links") or {}).get("html") or {}
        return PullRequest(
            number=data.get("id", 0),
            title=data.get("title", ""),
            state=state,
            author=parse_user(data.get("author"), ("nickname", "display_name"), "account_id"),
            draft=bool(data.get("draft")),
            url=html.get("href"),
            body=data.get("description"),
            head_sha=(source.get("commit") or {}).get("hash"),
            source_branch=(source.get("branch") or {}).get("name"),
            target_branch=(destination.get("branch") or {}).get("name"),
            created_at=parse_datetime(data.get("created_on")),
            updated_at=parse_datetime(data.get("updated_on")),
        )

    def _parse_diffstat(self, data: dict[str, Any], patches: dict[str, str]) -> FileChange:
        new = data.get("new") or {}
        old = data.get("old") or {}
        filename = new.get("path") or old.get("path") or ""
        status = _FILE_STATUSES.get(data.get("status", "modified"), "modified")
        return FileChange(
            filename=filename,
            status=status,
            additions=data.get("lines_added", 0),
            deletions=data.get("lines_removed", 0),
            patch=patches.get(filename),
            previous_filename=old.get("path") if status == "renamed" else None,
        )

    def _parse_comment(self, data: dict[str, Any]) -> Comment:
        inline = data.get("inline") or {}
        html = (data.get("links") or {}).get("html") or {}
        return Comment(
            id=data.get("id", 0),
            body=(data.get("content") or {}).get("raw") or "",
            author=parse_user(data.get("user"), ("nickname", "display_name"), "account_id"),
            path=inline.get("path"),
            line=inline.get("to") or inline.get("from"),
            created_at=parse_datetime(data.get("created_on")),
            url=html.get("href"),
        )

    async def list_prs(self, params: ListPRsParams | None = None) -> PRListResult:
        params = params or ListPRsParams()
        query = {
            "pagelen": str(params.per_page),
            "page": str(params.page),
        }
        state = _STATE_FILTERS[params.state]
        if state is not None:
            query["state"] = state
        if params.sort:
            # "-" prefix sorts descending
            prefix = "" if params.direction == "asc" else "-"
            field = "updated_on" if params.sort == "updated" else "created_on"
            query["sort"] = f"{prefix}{field}"

        path = f"{self._repo}/pullrequests"
        data = await self._get_object(path, query)
        size = data.get("size")
        return PRListResult(
            items=self._parse_each(self._parse_pr, data.get("values"), self.http.url(path, query)),
            total_count=size if isinstance(size, int) else None,
        )

    async def get_pr(self, number: int) -> PullRequest:
        path = self._pr_path(number)
        return self._parse(self._parse_pr, await self._get_object(path), self.http.url(path))

    async def get_pr_files(self, number: int) -> list[FileChange]:
        path = f"{self._pr_path(number)}/diffstat"
        stats = await self.http.paginate(path)
        diff = await self.http.get_text(f"{self._pr_path(number)}/diff", accept="text/plain")
        patches = split_unified_diff(diff)
        return self._parse_each(
            lambda stat: self._parse_diffstat(stat, patches), stats, self.http.url(path)
        )

    async def get_file_diff(self, number: int, path: str) -> FileChange | None:
        for file_change in await self.get_pr_files(number):
            if file_change.filename == path:
                return file_change
        return None

    async def get_pr_comments(self, number: int) -> list[Comment]:
        """Non-deleted comments, oldest first."""
        path = f"{self._pr_path(number)}/comments"
        items = await self.http.paginate(path)
        live = [c for c in dict_items(items) if not c.get("deleted")]
        return sort_comments(self._parse_each(self._parse_comment, live, self.http.url(path)))

    async def add_comment(self, number: int, body: str) -> None:
        await self.http.mutate(
            "POST",
            f"{self._pr_path(number)}/comments",
            {"content": {"raw": body}},
        )

    async def add_diff_comment(self, params: AddDiffCommentParams) -> None:
        # "to" anchors on the new side, "from" on the old side
        inline: dict[str, Any] = {"path": params.path}
        if params.side == DiffSide.LEFT:
            inline["from"] = params.line
        else:
            inline["to"] = params.line

        await self.http.mutate(
            "POST",
            f"{self._pr_path(params.pr_number)}/comments",
            {"content": {"raw": params.body}, "inline": inline},
        )

    async def merge_pr(
        self,
        number: int,
        method: MergeMethod = MergeMethod.MERGE,
        commit_title: str | None = None,
        commit_message: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {"merge_strategy": _MERGE_STRATEGIES[method]}
        if commit_title:
            payload["message"] = (
                f"{commit_title}\n\n{commit_message}" if commit_message else commit_title
            )
        await self.http.mutate("POST", f"{self._pr_path(number)}/merge", payload)
        logger.info(f"Merged {self.config.repo_path}#{number} ({payload['merge_strategy']})")
