"""
URL building, remote parsing and auth headers.

Resolves which backend a git remote belongs to, which API base URL serves
it (including GitHub Enterprise, self-hosted GitLab and Gitea/Forgejo
hosts listed in configuration), and how each backend expects its token.
"""

import base64
import logging
import re
from collections.abc import Mapping
from urllib.parse import urlencode

from .models import ParsedRemote, ProviderType

logger = logging.getLogger(__name__)

DEFAULT_BASE_URLS: dict[ProviderType, str] = {
    ProviderType.GITHUB: "https://api.github.com",
    ProviderType.GITLAB: "https://gitlab.com/api/v4",
    ProviderType.BITBUCKET: "https://api.bitbucket.org/2.0",
    ProviderType.AZURE: "https://dev.azure.com",
    ProviderType.GITEA: "https://gitea.com/api/v1",
}

GITHUB_API_VERSION = "2022-11-28"

ConfiguredHosts = Mapping[str, ProviderType]

_AZURE_SSH = re.compile(r"git@ssh\.dev\.azure\.com:v3/([^/]+)/([^/]+)/([^/.]+?)(?:\.git)?$")
_AZURE_HTTPS = re.compile(
    r"https?://(?:[^@/]+@)?dev\.azure\.com/([^/]+)/([^/]+)/_git/([^/?#.]+?)(?:\.git)?$"
)
_AZURE_LEGACY = re.compile(
    r"https?://([^./]+)\.visualstudio\.com/([^/]+)/_git/([^/?#.]+?)(?:\.git)?$"
)
_SSH = re.compile(r"git@([^:]+):(.+?)(?:\.git)?$")
_SSH_URL = re.compile(r"ssh://(?:[^@/]+@)?([^/:]+)(?::\d+)?/(.+?)(?:\.git)?$")
_HTTPS = re.compile(r"https?://(?:[^@/]+@)?([^/]+)/(.+?)(?:\.git)?$")


def build_url(base_url: str, path: str, params: Mapping[str, str] | None = None) -> str:
    """
    Join base URL and path, appending an encoded query string.

    The query string is only added when ``params`` is non-empty, so the
    result never ends in a bare ``?``.
    """
    url = f"{base_url.rstrip('/')}{path}"
    if not params:
        return url
    return f"{url}?{urlencode(dict(params))}"


def default_base_url(provider: ProviderType) -> str:
    return DEFAULT_BASE_URLS[provider]


def api_base_url(provider: ProviderType, host: str) -> str:
    """API base URL for a backend served from ``host``."""
    lower = host.lower()
    if provider == ProviderType.GITHUB:
        return DEFAULT_BASE_URLS[provider] if lower == "github.com" else f"https://{host}/api/v3"
    if provider == ProviderType.GITLAB:
        return DEFAULT_BASE_URLS[provider] if lower == "gitlab.com" else f"https://{host}/api/v4"
    if provider == ProviderType.GITEA:
        return f"https://{host}/api/v1"
    # Bitbucket Cloud and Azure DevOps have a single public API host
    return DEFAULT_BASE_URLS[provider]


def detect_provider(
    host: str,
    configured_hosts: ConfiguredHosts | None = None,
) -> ProviderType | None:
    """
    Detect the backend from a hostname.

    Well-known public hosts win; otherwise the user's configured host
    mappings are consulted. Returns None for an unknown host.
    """
    lower = host.lower()
    if lower == "github.com":
        return ProviderType.GITHUB
    if lower == "gitlab.com":
        return ProviderType.GITLAB
    if lower == "bitbucket.org":
        return ProviderType.BITBUCKET
    if "dev.azure.com" in lower or lower.endswith("visualstudio.com"):
        return ProviderType.AZURE
    if lower in ("gitea.com", "codeberg.org"):
        return ProviderType.GITEA

    if configured_hosts:
        mapped = configured_hosts.get(lower)
        if mapped is not None:
            return mapped

    return None


def _remote_from_segments(
    host: str,
    path: str,
    configured_hosts: ConfiguredHosts | None,
) -> ParsedRemote | None:
    provider = detect_provider(host, configured_hosts)
    clean = re.sub(r"[?#].*$", "", path)
    segments = [s for s in clean.split("/") if s]
    if len(segments) < 2:
        return None

    # GitLab nests groups: everything before the last segment is the owner
    if provider == ProviderType.GITLAB and len(segments) > 2:
        owner, repo = "/".join(segments[:-1]), segments[-1]
    else:
        owner, repo = segments[0], segments[1]

    base_url = api_base_url(provider, host) if provider else f"https://{host}"
    return ParsedRemote(provider=provider, host=host, owner=owner, repo=repo, base_url=base_url)


def _parse_azure(url: str) -> ParsedRemote | None:
    base = DEFAULT_BASE_URLS[ProviderType.AZURE]
    for pattern, host in ((_AZURE_SSH, "dev.azure.com"), (_AZURE_HTTPS, "dev.azure.com")):
        match = pattern.match(url)
        if match:
            org, project, repo = match.groups()
            return ParsedRemote(
                provider=ProviderType.AZURE,
                host=host,
                owner=f"{org}/{project}",
                repo=repo,
                base_url=base,
            )

    match = _AZURE_LEGACY.match(url)
    if match:
        org, project, repo = match.groups()
        return ParsedRemote(
            provider=ProviderType.AZURE,
            host=f"{org}.visualstudio.com",
            owner=f"{org}/{project}",
            repo=repo,
            base_url=base,
        )
    return None


def parse_git_remote(
    url: str,
    configured_hosts: ConfiguredHosts | None = None,
) -> ParsedRemote | None:
    """
    Parse an SSH or HTTPS git remote into provider, owner and repo.

    Supported forms:
        git@github.com:owner/repo.git
        ssh://git@host:2222/owner/repo.git
        https://github.com/owner/repo.git
        git@ssh.dev.azure.com:v3/org/project/repo
        https://dev.azure.com/org/project/_git/repo
        https://org.visualstudio.com/project/_git/repo
        git@gitlab.com:group/subgroup/project.git

    Returns:
        ParsedRemote (``provider`` is None for an unknown host) or None if
        the URL cannot be parsed at all.
    """
    if not url:
        return None
    trimmed = url.strip()

    azure = _parse_azure(trimmed)
    if azure is not None:
        return azure

    for pattern in (_SSH, _SSH_URL, _HTTPS):
        if pattern is _SSH and not trimmed.startswith("git@"):
            continue
        match = pattern.match(trimmed)
        if match:
            host, path = match.groups()
            return _remote_from_segments(host, path, configured_hosts)

    logger.debug(f"Unrecognized git remote: {url}")
    return None


def resolve_base_url(
    provider: ProviderType,
    remote_url: str | None,
    configured_hosts: ConfiguredHosts | None = None,
) -> str:
    """
    Resolve the API base URL for the remote a PR came from.

    A self-hosted host is used only when it is configured for this same
    backend. Well-known public hosts (codeberg.org for Gitea) resolve to
    their own API; anything else falls back to the backend's public default.
    """
    if remote_url:
        parsed = parse_git_remote(remote_url, configured_hosts)
        if parsed is not None:
            host = parsed.host.lower()
            if detect_provider(host) == provider:
                return api_base_url(provider, parsed.host)
            if configured_hosts and configured_hosts.get(host) == provider:
                return api_base_url(provider, parsed.host)
    return default_base_url(provider)


# Auth headers


def github_auth_headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
        "Content-Type": "application/json",
    }


def gitlab_auth_headers(token: str) -> dict[str, str]:
    # Personal access tokens; OAuth tokens would use Authorization: Bearer
    return {
        "PRIVATE-TOKEN": token,
        "Content-Type": "application/json",
    }


def bitbucket_auth_headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
    }


def azure_auth_headers(token: str) -> dict[str, str]:
    # Basic auth with an empty username and the PAT as password
    encoded = base64.b64encode(f":{token}".encode()).decode("ascii")
    return {
        "Authorization": f"Basic {encoded}",
        "Content-Type": "application/json",
    }


def gitea_auth_headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"token {token}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


_AUTH_BUILDERS = {
    ProviderType.GITHUB: github_auth_headers,
    ProviderType.GITLAB: gitlab_auth_headers,
    ProviderType.BITBUCKET: bitbucket_auth_headers,
    ProviderType.AZURE: azure_auth_headers,
    ProviderType.GITEA: gitea_auth_headers,
}


def build_auth_headers(provider: ProviderType, token: str) -> dict[str, str]:
    """Auth headers for ``provider``; always JSON content type."""
    return _AUTH_BUILDERS[provider](token)
