"""
Common base for the HTTP-backed providers.

Holds the per-instance ``ProviderHttpClient`` and the small parsing helpers
the backends share: timestamps, users, and splitting a unified diff into
per-file patches. Entity parsing goes through ``_parse`` so a success
payload of the wrong shape surfaces as an ``ApiError``.
"""

import logging
import re
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any, ClassVar, TypeVar

import httpx
from pydantic import ValidationError

from ..dialect import Dialect
from ..error_mapper import unexpected_response_error
from ..hooks import StatusHooks
from ..http import ProviderHttpClient
from ..models import Comment, ProviderCapabilities, ProviderConfig, ProviderType, User
from ..provider import Provider
from ..rate_limit import RateLimitTracker

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DIFF_HEADER = re.compile(r"^diff --git a/(.+?) b/(.+)$")
_EPOCH = datetime.min.replace(tzinfo=UTC)


class HttpProvider(Provider):
    """A provider that talks to its backend through one ``ProviderHttpClient``."""

    dialect_class: ClassVar[type[Dialect]]

    def __init__(
        self,
        config: ProviderConfig,
        *,
        rate_limits: RateLimitTracker | None = None,
        hooks: StatusHooks | None = None,
        timeout: float = ProviderHttpClient.DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the provider.

        Args:
            config: Resolved backend, base URL, token and repository
            rate_limits: Shared rate-limit tracker (a private one if omitted)
            hooks: Receiver for staleness / token-expiry notifications
            timeout: Request timeout in seconds
            transport: Optional transport override (tests use MockTransport)
        """
        self.config = config
        self.dialect = self.dialect_class()
        self.http = ProviderHttpClient(
            self.dialect,
            config.base_url,
            config.token,
            rate_limits=rate_limits if rate_limits is not None else RateLimitTracker(),
            hooks=hooks,
            timeout=timeout,
            transport=transport,
        )

    @property
    def provider_type(self) -> ProviderType:
        return self.dialect.provider_type

    @property
    def capabilities(self) -> ProviderCapabilities:
        return self.dialect.capabilities

    async def close(self) -> None:
        await self.http.close()

    async def _get_object(
        self,
        path: str,
        params: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        """GET a JSON object; any other payload shape is an ``ApiError``."""
        return await self._get_shaped(path, params, dict, "object")

    async def _get_list(
        self,
        path: str,
        params: Mapping[str, str] | None = None,
    ) -> list[Any]:
        return await self._get_shaped(path, params, list, "array")

    async def _get_shaped(
        self,
        path: str,
        params: Mapping[str, str] | None,
        shape: type,
        name: str,
    ) -> Any:
        data = await self.http.get_json(path, params)
        if not isinstance(data, shape):
            raise unexpected_response_error(
                f"Unexpected API response: expected JSON {name}",
                provider=self.provider_type.value,
                status=200,
                url=self.http.url(path, params),
            )
        return data

    def _parse(self, parse: Callable[[Any], T], data: Any, url: str | None = None) -> T:
        """
        Run one entity parser over decoded JSON.

        Raises:
            ApiError: The payload has a field of the wrong type or shape
        """
        try:
            return parse(data)
        except (ValidationError, TypeError, AttributeError) as e:
            logger.debug(f"Malformed {self.provider_type.value} payload from {url}: {e}")
            raise unexpected_response_error(
                "Unexpected API response: malformed entity",
                provider=self.provider_type.value,
                status=200,
                url=url,
                detail=str(e).splitlines()[0] if str(e) else type(e).__name__,
            ) from e

    def _parse_each(
        self,
        parse: Callable[[Any], T],
        items: Any,
        url: str | None = None,
    ) -> list[T]:
        """Parse the JSON objects of a collection, skipping anything else."""
        return [self._parse(parse, item, url) for item in dict_items(items)]

    async def _paginate_parsed(
        self,
        path: str,
        parse: Callable[[Any], T],
        params: Mapping[str, str] | None = None,
    ) -> list[T]:
        items = await self.http.paginate(path, params)
        return self._parse_each(parse, items, self.http.url(path, params))


def dict_items(items: Any) -> list[dict[str, Any]]:
    """The JSON objects of a decoded array; a non-array yields nothing."""
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def parse_datetime(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp from an API response."""
    if not value:
        return None
    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        parsed = datetime.fromisoformat(value)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    except (ValueError, TypeError):
        logger.warning(f"Failed to parse datetime: {value}")
        return None


def parse_user(
    data: dict[str, Any] | None,
    login_keys: tuple[str, ...] = ("login",),
    url_key: str = "html_url",
) -> User:
    """Parse an author object, trying each login field in turn."""
    if not data:
        return User(login="unknown")
    for key in login_keys:
        login = data.get(key)
        if login:
            return User(login=str(login), url=data.get(url_key))
    return User(login="unknown", url=data.get(url_key))


def count_changes(patch: str) -> tuple[int, int]:
    """Count added and removed lines in the hunks of a patch."""
    additions = deletions = 0
    in_hunks = False
    for line in patch.splitlines():
        if line.startswith("@@"):
            in_hunks = True
            continue
        if not in_hunks:
            continue
        if line.startswith("+"):
            additions += 1
        elif line.startswith("-"):
            deletions += 1
    return additions, deletions


def split_unified_diff(diff: str) -> dict[str, str]:
    """
    Split a multi-file ``git diff`` into per-file patches.

    Keys are the new-side paths. Each patch starts at its first hunk header;
    files without hunks (binary, pure renames) map to an empty string.
    """
    patches: dict[str, list[str]] = {}
    current: list[str] | None = None
    in_hunks = False

    for line in diff.splitlines():
        header = _DIFF_HEADER.match(line)
        if header is not None:
            current = patches.setdefault(header.group(2), [])
            in_hunks = False
            continue
        if current is None:
            continue
        if line.startswith("@@"):
            in_hunks = True
        if in_hunks:
            current.append(line)

    return {path: "\n".join(lines) for path, lines in patches.items()}


def sort_comments(comments: list[Comment]) -> list[Comment]:
    """Oldest first; comments without a timestamp keep their place at the front."""
    return sorted(comments, key=lambda c: c.created_at or _EPOCH)
