"""Shared payloads and MockTransport handlers for the test suite."""

import json
from collections.abc import Callable
from typing import Any

import httpx

from review_providers.models import ProviderConfig, ProviderType

Handler = Callable[[httpx.Request], httpx.Response]

ALL_PROVIDERS = list(ProviderType)

PROVIDER_CONFIGS: dict[ProviderType, ProviderConfig] = {
    ProviderType.GITHUB: ProviderConfig(
        type=ProviderType.GITHUB,
        base_url="https://api.github.com",
        token="gh-token",
        owner="octo",
        repo="hello",
    ),
    ProviderType.GITLAB: ProviderConfig(
        type=ProviderType.GITLAB,
        base_url="https://gitlab.com/api/v4",
        token="gl-token",
        owner="group/sub",
        repo="proj",
    ),
    ProviderType.BITBUCKET: ProviderConfig(
        type=ProviderType.BITBUCKET,
        base_url="https://api.bitbucket.org/2.0",
        token="bb-token",
        owner="team",
        repo="repo",
    ),
    ProviderType.AZURE: ProviderConfig(
        type=ProviderType.AZURE,
        base_url="https://dev.azure.com",
        token="az-token",
        owner="org/project",
        repo="repo",
    ),
    ProviderType.GITEA: ProviderConfig(
        type=ProviderType.GITEA,
        base_url="https://gitea.com/api/v1",
        token="gt-token",
        owner="owner",
        repo="repo",
    ),
}

# PR #7 "Fix bug" by alice, fix -> main at abc, as each backend returns it
PR_PAYLOADS: dict[ProviderType, dict[str, Any]] = {
    ProviderType.GITHUB: {
        "number": 7,
        "title": "Fix bug",
        "state": "open",
        "user": {"login": "alice"},
        "head": {"sha": "abc", "ref": "fix"},
        "base": {"ref": "main"},
        "created_at": "2024-01-15T10:30:00Z",
    },
    ProviderType.GITLAB: {
        "iid": 7,
        "title": "Fix bug",
        "state": "opened",
        "author": {"username": "alice"},
        "sha": "abc",
        "source_branch": "fix",
        "target_branch": "main",
        "created_at": "2024-01-15T10:30:00.000Z",
    },
    ProviderType.BITBUCKET: {
        "id": 7,
        "title": "Fix bug",
        "state": "OPEN",
        "author": {"nickname": "alice"},
        "source": {"branch": {"name": "fix"}, "commit": {"hash": "abc"}},
        "destination": {"branch": {"name": "main"}},
        "created_on": "2024-01-15T10:30:00+00:00",
    },
    ProviderType.AZURE: {
        "pullRequestId": 7,
        "title": "Fix bug",
        "status": "active",
        "createdBy": {"uniqueName": "alice"},
        "lastMergeSourceCommit": {"commitId": "abc"},
        "sourceRefName": "refs/heads/fix",
        "targetRefName": "refs/heads/main",
        "creationDate": "2024-01-15T10:30:00Z",
    },
    ProviderType.GITEA: {
        "number": 7,
        "title": "Fix bug",
        "state": "open",
        "user": {"login": "alice"},
        "head": {"sha": "abc", "ref": "fix"},
        "base": {"ref": "main"},
        "created_at": "2024-01-15T10:30:00Z",
    },
}


def json_response(
    data: Any,
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    """JSON response with the given status and extra headers."""
    return httpx.Response(status_code, json=data, headers=headers)


def text_response(
    text: str,
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    return httpx.Response(status_code, text=text, headers=headers)


def request_json(request: httpx.Request) -> Any:
    """Decode the JSON body a provider sent."""
    return json.loads(request.content)


class RecordingHandler:
    """
    MockTransport handler that records requests.

    Responses are taken from ``responses`` in order; the last one repeats.
    A callable entry is invoked with the request; an exception entry is raised.
    """

    def __init__(self, *responses: httpx.Response | Handler | Exception) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        index = min(len(self.requests), len(self.responses) - 1)
        self.requests.append(request)
        entry = self.responses[index]
        if isinstance(entry, Exception):
            raise entry
        if callable(entry) and not isinstance(entry, httpx.Response):
            return entry(request)
        # fresh copy so a repeated response is never read twice
        return httpx.Response(entry.status_code, headers=entry.headers, content=entry.content)

    @property
    def calls(self) -> int:
        return len(self.requests)
