"""
Shared request pipeline for every backend.

Each provider owns one ``ProviderHttpClient``. Every call goes through the
same steps: build the URL, attach the dialect's auth headers, send, record
rate-limit headers (on success and failure alike), map a non-OK response
through the dialect's error mapper, and report freshness on success.
Transport exceptions and undecodable payloads become ``NetworkError`` here,
so nothing raw escapes to callers.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from .dialect import Dialect
from .error_mapper import map_transport_error, unexpected_response_error
from .hooks import StatusHooks
from .rate_limit import RateLimitTracker

logger = logging.getLogger(__name__)


class ProviderHttpClient:
    """
    Async HTTP client bound to one backend, host and token.

    The underlying ``httpx.AsyncClient`` is created lazily and must be
    released with ``close()``.
    """

    DEFAULT_TIMEOUT = 30  # seconds

    def __init__(
        self,
        dialect: Dialect,
        base_url: str,
        token: str,
        *,
        rate_limits: RateLimitTracker,
        hooks: StatusHooks | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            dialect: Backend conventions (auth, errors, pagination)
            base_url: API base URL, e.g. https://gitlab.example.com/api/v4
            token: API token for authentication
            rate_limits: Process-wide rate-limit tracker
            hooks: Receiver for staleness / token-expiry notifications
            timeout: Request timeout in seconds
            transport: Optional transport override (tests use MockTransport)
        """
        self.dialect = dialect
        self.base_url = base_url.rstrip("/")
        self.rate_limits = rate_limits
        self.hooks = hooks if hooks is not None else StatusHooks()
        self.timeout = timeout
        self._token = token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def provider_name(self) -> str:
        return self.dialect.provider_type.value

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers=self.dialect.auth_headers(self._token),
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def url(self, path: str, params: Mapping[str, str] | None = None) -> str:
        return self.dialect.build_url(self.base_url, path, params)

    def touch_last_updated(self) -> None:
        self.hooks.touch_last_updated()

    async def send(
        self,
        method: str,
        url: str,
        *,
        json_body: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """
        Send one request to an absolute URL.

        Updates the rate-limit tracker and maps error responses, but does
        not report freshness; that is left to the caller so a paginated
        fetch reports once.

        Raises:
            ApiError: The backend answered with an error status
            NetworkError: The request never produced a response
        """
        client = await self._get_client()
        logger.debug(f"{method} {url}")

        try:
            response = await client.request(method, url, json=json_body, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise map_transport_error(e, provider=self.provider_name, url=url) from e

        self.rate_limits.update(self.dialect.provider_type, response.headers)

        if self.dialect.is_error(response):
            raise self.dialect.map_error(response, response.text, hooks=self.hooks, url=url)

        return response

    def decode_json(self, response: httpx.Response, url: str) -> Any:
        """Parse a success body; an undecodable payload is a transport failure."""
        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise map_transport_error(e, provider=self.provider_name, url=url) from e

    async def fetch_page(self, url: str) -> tuple[httpx.Response, Any]:
        """Fetch and decode one page of a collection endpoint."""
        response = await self.send("GET", url)
        return response, self.decode_json(response, url)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json_body: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request to ``path`` and report freshness on success."""
        response = await self.send(
            method, self.url(path, params), json_body=json_body, headers=headers
        )
        self.touch_last_updated()
        return response

    async def get_json(self, path: str, params: Mapping[str, str] | None = None) -> Any:
        url = self.url(path, params)
        response = await self.send("GET", url)
        data = self.decode_json(response, url)
        self.touch_last_updated()
        return data

    async def get_text(
        self,
        path: str,
        params: Mapping[str, str] | None = None,
        accept: str | None = None,
    ) -> str:
        headers = {"Accept": accept} if accept else None
        response = await self.request("GET", path, params=params, headers=headers)
        return response.text

    async def mutate(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        params: Mapping[str, str] | None = None,
    ) -> None:
        """Execute a mutation whose response body is not needed."""
        await self.request(method, path, params=params, json_body=json_body)

    async def mutate_json(
        self,
        method: str,
        path: str,
        json_body: Any,
        params: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        """
        Execute a mutation that returns a JSON object.

        Raises:
            ApiError: On an error status, or when the success payload is
                not a JSON object
            NetworkError: On transport failure or an undecodable payload
        """
        url = self.url(path, params)
        response = await self.send(method, url, json_body=json_body)
        data = self.decode_json(response, url)
        if not isinstance(data, dict):
            raise unexpected_response_error(
                "Unexpected API response: expected JSON object",
                provider=self.provider_name,
                status=response.status_code,
                url=url,
            )
        self.touch_last_updated()
        return data

    async def paginate(
        self,
        path: str,
        params: Mapping[str, str] | None = None,
    ) -> list[Any]:
        """Fetch every page of a collection endpoint with the dialect's engine."""
        return await self.dialect.paginator.fetch_all(self, path, params)
