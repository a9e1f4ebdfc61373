"""
Azure DevOps Services backend.

The configured owner is ``"{organization}/{project}"``. Every request
carries ``api-version=7.0``. An expired PAT can surface as a 203 with an
HTML sign-in page instead of a 401, so 203 counts as an auth failure.
"""

import logging
from collections.abc import Mapping
from typing import Any, ClassVar

import httpx

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
    User,
)
from ..pagination import ContinuationTokenPaginator, Paginator
from ..urls import azure_auth_headers, build_url
from .base import HttpProvider, dict_items, parse_datetime, sort_comments

logger = logging.getLogger(__name__)

API_VERSION = "7.0"

_STATUS_FILTERS = {
    PRState.OPEN: "active",
    PRState.CLOSED: "completed",
    PRState.MERGED: "completed",
    PRState.ALL: "all",
}

_MERGE_STRATEGIES = {
    MergeMethod.MERGE: "noFastForward",
    MergeMethod.SQUASH: "squash",
    MergeMethod.REBASE: "rebase",
}

_CHANGE_TYPES = {
    "add": "added",
    "delete": "removed",
    "rename": "renamed",
    "edit": "modified",
}


class AzureDialect(Dialect):
    provider_type = ProviderType.AZURE
    capabilities = ProviderCapabilities(
        supports_draft_pr=True,
        supports_review_threads=True,
        supports_check_runs=True,
        supports_merge_strategies=("merge", "squash", "rebase"),
    )
    token_expired_statuses: ClassVar[frozenset[int]] = frozenset({401, 203})

    def __init__(self) -> None:
        self._paginator = ContinuationTokenPaginator()

    @property
    def paginator(self) -> Paginator:
        return self._paginator

    def auth_headers(self, token: str) -> dict[str, str]:
        return azure_auth_headers(token)

    def build_url(
        self,
        base_url: str,
        path: str,
        params: Mapping[str, str] | None = None,
    ) -> str:
        return build_url(base_url, path, {**(params or {}), "api-version": API_VERSION})

    def extract_detail(self, parsed: dict[str, Any]) -> Any:
        message = parsed.get("message") or parsed.get("Message")
        if message:
            return message
        value = parsed.get("value")
        if isinstance(value, dict):
            return value.get("Message")
        return None

    def is_error(self, response: httpx.Response) -> bool:
        return response.status_code == 203 or not response.is_success


def _parse_identity(data: dict[str, Any] | None) -> User:
    if not data:
        return User(login="unknown")
    login = data.get("uniqueName") or data.get("displayName") or "unknown"
    return User(login=login, url=data.get("url"))


def _strip_ref(ref: str | None) -> str | None:
    if ref and ref.startswith("refs/heads/"):
        return ref[len("refs/heads/"):]
    return ref


class AzureProvider(HttpProvider):
    """Client for Azure Repos pull requests via the REST API."""

    dialect_class = AzureDialect

    @property
    def _repo(self) -> str:
        return f"/{self.config.owner}/_apis/git/repositories/{self.config.repo}"

    def _pr_path(self, number: int) -> str:
        return f"{self._repo}/pullrequests/{number}"

    def _web_url(self, number: int) -> str:
        return (
            f"{self.http.base_url}/{self.config.owner}/_git/"
            f"{self.config.repo}/pullrequest/{number}"
        )

    def _parse_pr(self, data: dict[str, Any]) -> PullRequest:
        """Parse pull request JSON from Azure DevOps API response."""
        status = data.get("status", "active")
        if status == "completed":
            state = PRState.MERGED
        elif status == "abandoned":
            state = PRState.CLOSED
        else:
            state = PRState.OPEN

        number = data.get("pullRequestId", 0)
        return PullRequest(
            number=number,
            title=data.get("title", ""),
            state=state,
            author=_parse_identity(data.get("createdBy")),
            draft=bool(data.get("isDraft")),
            url=self._web_url(number),
            body=data.get("description"),
            head_sha=(data.get("lastMergeSourceCommit") or {}).get("commitId"),
            source_branch=_strip_ref(data.get("sourceRefName")),
            target_branch=_strip_ref(data.get("targetRefName")),
            created_at=parse_datetime(data.get("creationDate")),
            updated_at=parse_datetime(data.get("closedDate")),
        )

    def _parse_change(self, data: dict[str, Any]) -> FileChange:
        item = data.get("item") or {}
        change_type = str(data.get("changeType", "edit")).split(",")[0].strip()
        status = _CHANGE_TYPES.get(change_type, "modified")
        original = data.get("originalPath")
        return FileChange(
            filename=str(item.get("path", "")).lstrip("/"),
            status=status,
            previous_filename=original.lstrip("/") if original else None,
        )

    def _parse_thread(self, thread: dict[str, Any], number: int) -> list[Comment]:
        context = thread.get("threadContext") or {}
        path = context.get("filePath")
        anchor = context.get("rightFileStart") or context.get("leftFileStart") or {}
        comments = []
        for data in dict_items(thread.get("comments")):
            if data.get("isDeleted") or data.get("commentType") == "system":
                continue
            comments.append(
                Comment(
                    id=f"{thread.get('id')}:{data.get('id')}",
                    body=data.get("content") or "",
                    author=_parse_identity(data.get("author")),
                    path=path.lstrip("/") if path else None,
                    line=anchor.get("line"),
                    created_at=parse_datetime(data.get("publishedDate")),
                    url=self._web_url(number),
                )
            )
        return comments

    async def list_prs(self, params: ListPRsParams | None = None) -> PRListResult:
        params = params or ListPRsParams()
        query = {
            "searchCriteria.status": _STATUS_FILTERS[params.state],
            "$top": str(params.per_page),
        }
        if params.page > 1:
            query["$skip"] = str((params.page - 1) * params.per_page)

        path = f"{self._repo}/pullrequests"
        data = await self._get_object(path, query)
        return PRListResult(
            items=self._parse_each(self._parse_pr, data.get("value"), self.http.url(path, query)),
        )

    async def get_pr(self, number: int) -> PullRequest:
        path = self._pr_path(number)
        return self._parse(self._parse_pr, await self._get_object(path), self.http.url(path))

    async def get_pr_files(self, number: int) -> list[FileChange]:
        """Changes of the latest iteration (push) of the pull request."""
        iterations = dict_items(await self.http.paginate(f"{self._pr_path(number)}/iterations"))
        if not iterations:
            return []

        latest = iterations[-1].get("id")
        path = f"{self._pr_path(number)}/iterations/{latest}/changes"
        data = await self._get_object(path)
        blobs = [
            entry
            for entry in dict_items(data.get("changeEntries"))
            if (entry.get("item") or {}).get("gitObjectType", "blob") == "blob"
        ]
        return self._parse_each(self._parse_change, blobs, self.http.url(path))

    async def get_file_diff(self, number: int, path: str) -> FileChange | None:
        for file_change in await self.get_pr_files(number):
            if file_change.filename == path.lstrip("/"):
                return file_change
        return None

    async def get_pr_comments(self, number: int) -> list[Comment]:
        path = f"{self._pr_path(number)}/threads"
        data = await self._get_object(path)
        comments: list[Comment] = []
        for thread in dict_items(data.get("value")):
            if thread.get("isDeleted"):
                continue
            comments.extend(
                self._parse(lambda t: self._parse_thread(t, number), thread, self.http.url(path))
            )
        return sort_comments(comments)

    async def _create_thread(
        self,
        number: int,
        body: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        payload: dict[str, Any] = {
            "comments": [{"parentCommentId": 0, "content": body, "commentType": 1}],
            "status": 1,  # active
        }
        if context:
            payload["threadContext"] = context
        await self.http.mutate("POST", f"{self._pr_path(number)}/threads", payload)

    async def add_comment(self, number: int, body: str) -> None:
        await self._create_thread(number, body)

    async def add_diff_comment(self, params: AddDiffCommentParams) -> None:
        prefix = "left" if params.side == DiffSide.LEFT else "right"
        start = params.start_line if params.start_line is not None else params.line
        context = {
            "filePath": f"/{params.path.lstrip('/')}",
            f"{prefix}FileStart": {"line": start, "offset": 1},
            f"{prefix}FileEnd": {"line": params.line, "offset": 1},
        }
        await self._create_thread(params.pr_number, params.body, context)

    async def merge_pr(
        self,
        number: int,
        method: MergeMethod = MergeMethod.MERGE,
        commit_title: str | None = None,
        commit_message: str | None = None,
    ) -> None:
        """Complete the pull request; Azure requires the head commit it is completing."""
        pr = await self.get_pr(number)

        completion: dict[str, Any] = {
            "mergeStrategy": _MERGE_STRATEGIES[method],
            "deleteSourceBranch": False,
        }
        if commit_title:
            completion["mergeCommitMessage"] = (
                f"{commit_title}\n\n{commit_message}" if commit_message else commit_title
            )

        payload: dict[str, Any] = {"status": "completed", "completionOptions": completion}
        if pr.head_sha:
            payload["lastMergeSourceCommit"] = {"commitId": pr.head_sha}

        await self.http.mutate("PATCH", self._pr_path(number), payload)
        logger.info(f"Completed {self.config.repo_path}!{number} ({completion['mergeStrategy']})")
