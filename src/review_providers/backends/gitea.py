"""
Gitea / Forgejo REST v1 backend.

Both forks share the same API. Per-file patches come from the raw
``.diff`` of the pull request, split per file.
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
from ..pagination import PageNumberPaginator, Paginator
from ..urls import gitea_auth_headers
from .base import (
    HttpProvider,
    dict_items,
    parse_datetime,
    parse_user,
    sort_comments,
    split_unified_diff,
)

logger = logging.getLogger(__name__)

_SORTS = {
    ("created", "asc"): "oldest",
    ("created", "desc"): "newest",
    ("updated", "desc"): "recentupdate",
    ("updated", "asc"): "leastupdate",
}


class GiteaDialect(Dialect):
    provider_type = ProviderType.GITEA
    capabilities = ProviderCapabilities(
        supports_reactions=True,
        supports_merge_strategies=("merge", "squash", "rebase"),
    )

    def __init__(self) -> None:
        self._paginator = PageNumberPaginator()

    @property
    def paginator(self) -> Paginator:
        return self._paginator

    def auth_headers(self, token: str) -> dict[str, str]:
        return gitea_auth_headers(token)


class GiteaProvider(HttpProvider):
    """Client for Gitea and Forgejo pull requests via the REST API."""

    dialect_class = GiteaDialect

    @property
    def _repo(self) -> str:
        return f"/repos/{self.config.owner}/{self.config.repo}"

    def _pr_path(self, number: int) -> str:
        return f"{self._repo}/pulls/{number}"

    def _parse_pr(self, data: dict[str, Any]) -> PullRequest:
        """Parse pull request JSON from Gitea API response."""
        # Gitea uses "open" and "closed" plus a merged flag
        if data.get("merged"):
            state = PRState.MERGED
        elif data.get("state") == "closed":
            state = PRState.CLOSED
        else:
            state = PRState.OPEN

        head = data.get("head") or {}
        base = data.get("base") or {}
        title = data.get("title", "")
        return PullRequest(
            number=data.get("number", 0),
            title=title,
            state=state,
            author=parse_user(data.get("user"), ("login", "username")),
            draft=bool(data.get("draft")) or title.startswith(("WIP:", "[WIP]")),
            url=data.get("html_url"),
            body=data.get("body"),
            head_sha=head.get("sha"),
            source_branch=head.get("ref"),
            target_branch=base.get("ref"),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
        )

    def _parse_file(self, data: dict[str, Any], patches: dict[str, str]) -> FileChange:
        filename = data.get("filename", "")
        return FileChange(
            filename=filename,
            status=data.get("status", "modified"),
            additions=data.get("additions", 0),
            deletions=data.get("deletions", 0),
            patch=patches.get(filename),
            previous_filename=data.get("previous_filename") or None,
        )

    def _parse_comment(self, data: dict[str, Any]) -> Comment:
        line = data.get("position") or data.get("original_position")
        return Comment(
            id=data.get("id", 0),
            body=data.get("body") or "",
            author=parse_user(data.get("user"), ("login", "username")),
            path=data.get("path") or None,
            line=line or None,
            created_at=parse_datetime(data.get("created_at")),
            url=data.get("html_url"),
        )

    async def list_prs(self, params: ListPRsParams | None = None) -> PRListResult:
        params = params or ListPRsParams()
        # Gitea has no merged filter; merged PRs are closed ones with merged=true
        state = "closed" if params.state == PRState.MERGED else params.state.value
        query = {
            "state": state,
            "limit": str(params.per_page),
            "page": str(params.page),
        }
        sort = _SORTS.get((params.sort or "", params.direction or "desc"))
        if sort:
            query["sort"] = sort

        path = f"{self._repo}/pulls"
        url = self.http.url(path, query)
        response = await self.http.request("GET", path, params=query)
        prs = self._parse_each(self._parse_pr, self.http.decode_json(response, url), url)
        if params.state == PRState.MERGED:
            prs = [pr for pr in prs if pr.state == PRState.MERGED]

        total = response.headers.get("X-Total-Count")
        return PRListResult(
            items=prs,
            total_count=int(total) if total and total.isdigit() else None,
        )

    async def get_pr(self, number: int) -> PullRequest:
        path = self._pr_path(number)
        return self._parse(self._parse_pr, await self._get_object(path), self.http.url(path))

    async def get_pr_files(self, number: int) -> list[FileChange]:
        path = f"{self._pr_path(number)}/files"
        files = await self.http.paginate(path)
        diff = await self.http.get_text(f"{self._pr_path(number)}.diff", accept="text/plain")
        patches = split_unified_diff(diff)
        return self._parse_each(
            lambda item: self._parse_file(item, patches), files, self.http.url(path)
        )

    async def get_file_diff(self, number: int, path: str) -> FileChange | None:
        for file_change in await self.get_pr_files(number):
            if file_change.filename == path:
                return file_change
        return None

    async def get_pr_comments(self, number: int) -> list[Comment]:
        """Conversation comments plus the comments of every review, oldest first."""
        comments = await self._paginate_parsed(
            f"{self._repo}/issues/{number}/comments", self._parse_comment
        )
        reviews = await self.http.paginate(f"{self._pr_path(number)}/reviews")
        for review in dict_items(reviews):
            review_id = review.get("id")
            if review_id is None or not review.get("comments_count", 1):
                continue
            comments.extend(
                await self._paginate_parsed(
                    f"{self._pr_path(number)}/reviews/{review_id}/comments", self._parse_comment
                )
            )
        return sort_comments(comments)

    async def add_comment(self, number: int, body: str) -> None:
        await self.http.mutate("POST", f"{self._repo}/issues/{number}/comments", {"body": body})

    async def add_diff_comment(self, params: AddDiffCommentParams) -> None:
        """Post a single-comment review; 0 leaves the other side unanchored."""
        new_position = params.line if params.side == DiffSide.RIGHT else 0
        old_position = params.line if params.side == DiffSide.LEFT else 0
        payload: dict[str, Any] = {
            "event": "COMMENT",
            "body": "",
            "comments": [
                {
                    "path": params.path,
                    "body": params.body,
                    "new_position": new_position,
                    "old_position": old_position,
                }
            ],
        }
        if params.commit_id:
            payload["commit_id"] = params.commit_id
        await self.http.mutate("POST", f"{self._pr_path(params.pr_number)}/reviews", payload)

    async def merge_pr(
        self,
        number: int,
        method: MergeMethod = MergeMethod.MERGE,
        commit_title: str | None = None,
        commit_message: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {"Do": method.value}
        if commit_title:
            payload["merge_message_field"] = (
                f"{commit_title}\n\n{commit_message}" if commit_message else commit_title
            )
        await self.http.mutate("POST", f"{self._pr_path(number)}/merge", payload)
        logger.info(f"Merged {self.config.repo_path}#{number} ({method.value})")
