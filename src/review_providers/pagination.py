"""
Pagination engines.

Every backend walks its collection endpoints with the same loop: fetch a
page, accumulate its items, compute the next cursor, repeat. Pages are
fetched strictly one after another to keep ordering and respect rate
limits. An error on any page is raised immediately and the items gathered
so far are discarded. After ``MAX_PAGES`` pages the loop stops even if the
backend still advertises more, and the items gathered up to that point
are returned.

Strategies differ only in where the continuation lives:

- ``BodyCursorPaginator``: ``next`` URL in the JSON body (Bitbucket)
- ``LinkHeaderPaginator``: ``Link: <...>; rel="next"`` header (GitHub)
- ``NextPageHeaderPaginator``: ``X-Next-Page`` header (GitLab)
- ``ContinuationTokenPaginator``: ``x-ms-continuationtoken`` header (Azure)
- ``PageNumberPaginator``: page counter with ``X-Total-Count`` (Gitea)
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import httpx

from .models import PageCursor

if TYPE_CHECKING:
    from .http import ProviderHttpClient

logger = logging.getLogger(__name__)

MAX_PAGES = 20


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, list) else []


class Paginator(ABC):
    """Template for a sequential "fetch all pages" loop with a hard page cap."""

    size_param: str = "per_page"
    default_page_size: int = 100

    def __init__(self, page_size: int | None = None, max_pages: int = MAX_PAGES) -> None:
        self.page_size = page_size or self.default_page_size
        self.max_pages = max_pages

    def initial_params(self) -> dict[str, str]:
        return {self.size_param: str(self.page_size)}

    def first_cursor(self) -> PageCursor:
        return PageCursor()

    @abstractmethod
    def url_for(
        self,
        client: "ProviderHttpClient",
        path: str,
        params: Mapping[str, str],
        cursor: PageCursor,
    ) -> str:
        """URL of the page ``cursor`` points at."""
        ...

    @abstractmethod
    def extract_items(self, data: Any) -> list[Any]:
        """Items carried by one decoded page."""
        ...

    @abstractmethod
    def next_cursor(
        self,
        response: httpx.Response,
        data: Any,
        items: list[Any],
        cursor: PageCursor,
        params: Mapping[str, str],
        collected: int,
    ) -> PageCursor | None:
        """Cursor for the following page, or None on the last page."""
        ...

    async def fetch_all(
        self,
        client: "ProviderHttpClient",
        path: str,
        params: Mapping[str, str] | None = None,
    ) -> list[Any]:
        """
        Fetch and concatenate every page of ``path``.

        Args:
            client: HTTP client of the backend being paged
            path: Collection endpoint path
            params: Extra query parameters; may override the page size

        Returns:
            Items from all pages fetched, in backend order

        Raises:
            ApiError: Any page answered with an error status
            NetworkError: Any page failed at the transport level
        """
        base_params = {**self.initial_params(), **(params or {})}
        all_items: list[Any] = []
        cursor: PageCursor | None = self.first_cursor()
        pages = 0

        while cursor is not None:
            if pages >= self.max_pages:
                logger.warning(
                    f"Stopped paginating {path} after {pages} pages "
                    f"({len(all_items)} items); more pages were available"
                )
                break

            url = self.url_for(client, path, base_params, cursor)
            response, data = await client.fetch_page(url)
            pages += 1

            items = self.extract_items(data)
            all_items.extend(items)
            cursor = self.next_cursor(response, data, items, cursor, base_params, len(all_items))

        logger.debug(f"Fetched {len(all_items)} items from {path} in {pages} pages")
        client.touch_last_updated()
        return all_items


class BodyCursorPaginator(Paginator):
    """
    ``values`` + ``next`` envelope.

    Bitbucket returns each page as ``{"values": [...], "next": "<url>"}``;
    the absence of ``next`` marks the final page.
    """

    size_param = "pagelen"

    def url_for(self, client, path, params, cursor):
        if cursor.url:
            return cursor.url
        return client.url(path, params)

    def extract_items(self, data: Any) -> list[Any]:
        if not isinstance(data, dict):
            return []
        return _as_list(data.get("values"))

    def next_cursor(self, response, data, items, cursor, params, collected):
        next_url = data.get("next") if isinstance(data, dict) else None
        if not next_url:
            return None
        return PageCursor(url=next_url)


class LinkHeaderPaginator(Paginator):
    """
    RFC 8288 ``Link`` header.

    Pages are JSON arrays; ``items_key`` selects the list for endpoints that
    wrap it in an object.
    """

    def __init__(
        self,
        page_size: int | None = None,
        max_pages: int = MAX_PAGES,
        items_key: str | None = None,
    ) -> None:
        super().__init__(page_size, max_pages)
        self.items_key = items_key

    def url_for(self, client, path, params, cursor):
        if cursor.url:
            return cursor.url
        return client.url(path, params)

    def extract_items(self, data: Any) -> list[Any]:
        if isinstance(data, list):
            return data
        if isinstance(data, dict) and self.items_key:
            return _as_list(data.get(self.items_key))
        return []

    def next_cursor(self, response, data, items, cursor, params, collected):
        next_url = response.links.get("next", {}).get("url")
        if not next_url:
            return None
        return PageCursor(url=next_url)


class NextPageHeaderPaginator(Paginator):
    """``X-Next-Page`` header carrying the next page number (empty when done)."""

    def first_cursor(self) -> PageCursor:
        return PageCursor(page=1)

    def url_for(self, client, path, params, cursor):
        return client.url(path, {**params, "page": str(cursor.page)})

    def extract_items(self, data: Any) -> list[Any]:
        return data if isinstance(data, list) else []

    def next_cursor(self, response, data, items, cursor, params, collected):
        next_page = response.headers.get("x-next-page", "").strip()
        if not next_page:
            return None
        try:
            page = int(next_page)
        except ValueError:
            return None
        if page <= 0:
            return None
        return PageCursor(page=page)


class ContinuationTokenPaginator(Paginator):
    """
    ``value`` envelope with ``$top`` paging.

    Follows ``x-ms-continuationtoken`` when present; otherwise a full page
    means more may follow and the next request skips what was read.
    """

    size_param = "$top"

    def url_for(self, client, path, params, cursor):
        page_params = dict(params)
        if cursor.token:
            page_params["continuationToken"] = cursor.token
        elif cursor.skip > 0:
            page_params["$skip"] = str(cursor.skip)
        return client.url(path, page_params)

    def extract_items(self, data: Any) -> list[Any]:
        if not isinstance(data, dict):
            return []
        return _as_list(data.get("value"))

    def next_cursor(self, response, data, items, cursor, params, collected):
        token = response.headers.get("x-ms-continuationtoken")
        if token:
            return PageCursor(token=token, skip=cursor.skip)
        top = int(params.get(self.size_param, self.page_size))
        if len(items) >= top:
            return PageCursor(skip=cursor.skip + len(items))
        return None


class PageNumberPaginator(Paginator):
    """
    ``page`` / ``limit`` query parameters.

    Stops on an empty page, once ``X-Total-Count`` items are collected, or
    on a page shorter than the requested limit.
    """

    size_param = "limit"
    default_page_size = 50

    def first_cursor(self) -> PageCursor:
        return PageCursor(page=1)

    def url_for(self, client, path, params, cursor):
        return client.url(path, {**params, "page": str(cursor.page)})

    def extract_items(self, data: Any) -> list[Any]:
        return data if isinstance(data, list) else []

    def next_cursor(self, response, data, items, cursor, params, collected):
        if not items:
            return None

        total = response.headers.get("X-Total-Count")
        if total:
            try:
                if collected >= int(total):
                    return None
            except ValueError:
                logger.debug(f"Ignoring malformed X-Total-Count: {total}")

        limit = int(params.get(self.size_param, self.page_size))
        if len(items) < limit:
            return None
        return PageCursor(page=(cursor.page or 1) + 1)
