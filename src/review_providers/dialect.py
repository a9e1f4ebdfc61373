"""
Per-backend wire dialect.

A dialect bundles everything that differs between backends below the
``Provider`` surface: auth header convention, public API host, error body
shape, backoff header, pagination engine and declared capabilities. The
shared HTTP client and error mapper are parameterized by it.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar

import httpx

from .error_mapper import map_error, parse_retry_after
from .exceptions import ApiError
from .hooks import StatusHooks
from .models import ProviderCapabilities, ProviderType
from .pagination import Paginator
from .urls import build_url, default_base_url


class Dialect(ABC):
    """Backend-specific conventions consumed by the shared request pipeline."""

    provider_type: ClassVar[ProviderType]
    capabilities: ClassVar[ProviderCapabilities]
    token_expired_statuses: ClassVar[frozenset[int]] = frozenset({401})

    @property
    def default_base_url(self) -> str:
        return default_base_url(self.provider_type)

    @property
    @abstractmethod
    def paginator(self) -> Paginator:
        """Pagination engine for this backend's collection endpoints."""
        ...

    @abstractmethod
    def auth_headers(self, token: str) -> dict[str, str]:
        """Headers that authenticate a request with ``token``."""
        ...

    def build_url(
        self,
        base_url: str,
        path: str,
        params: Mapping[str, str] | None = None,
    ) -> str:
        return build_url(base_url, path, params)

    def extract_detail(self, parsed: dict[str, Any]) -> Any:
        """Pick the human-readable message out of a JSON error body."""
        message = parsed.get("message")
        return message if isinstance(message, str) else None

    def retry_after_ms(self, headers: Mapping[str, str]) -> int | None:
        return parse_retry_after(headers)

    def is_error(self, response: httpx.Response) -> bool:
        return not response.is_success

    def map_error(
        self,
        response: httpx.Response,
        raw_body: str,
        *,
        hooks: StatusHooks | None = None,
        url: str | None = None,
    ) -> ApiError:
        return map_error(response, raw_body, dialect=self, hooks=hooks, url=url)
