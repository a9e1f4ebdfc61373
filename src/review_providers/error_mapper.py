"""
Conversion of raw HTTP failures into the unified error kinds.

This is the only place that turns a backend response (or a transport
exception) into an ``ApiError`` / ``NetworkError``. Backends plug in their
own JSON shape through their dialect's ``extract_detail`` and
``retry_after_ms``; everything else is shared so all five converge on the
same fields.
"""

import json
import logging
import re
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

import httpx

from .exceptions import ApiError, NetworkError

if TYPE_CHECKING:
    from .dialect import Dialect
    from .hooks import StatusHooks

logger = logging.getLogger(__name__)

_STATUS_MESSAGES: dict[int, str] = {
    400: "Bad request",
    401: "Authentication required",
    403: "Access denied",
    404: "Resource not found",
    409: "Conflict",
    422: "Validation failed",
    429: "Rate limit exceeded",
    500: "Internal server error",
    502: "Bad gateway",
    503: "Service unavailable",
    504: "Gateway timeout",
}

_LEADING_INT = re.compile(r"\s*(\d+)")


def sanitize_api_error(status: int, status_text: str = "") -> str:
    """Generic, status-derived message that is safe to show in UI chrome."""
    known = _STATUS_MESSAGES.get(status)
    if known is not None:
        return known
    return f"HTTP {status} {status_text}".strip()


def parse_retry_after(headers: Mapping[str, str]) -> int | None:
    """
    Parse a ``Retry-After`` header given in seconds.

    Returns:
        Milliseconds to wait, or None when the header is absent, not a
        positive integer, or in HTTP-date form.
    """
    value = headers.get("Retry-After") or headers.get("retry-after")
    if not value:
        return None
    match = _LEADING_INT.match(value)
    if match is None:
        return None
    seconds = int(match.group(1))
    if seconds <= 0:
        return None
    return seconds * 1000


def extract_detail(raw_body: str, extractor: Callable[[Any], str | None]) -> str:
    """
    Pull a human-readable message out of an error body.

    Falls back to the raw text when the body is not JSON or none of the
    backend's known fields are present.
    """
    try:
        parsed = json.loads(raw_body)
    except (json.JSONDecodeError, ValueError):
        return raw_body

    if not isinstance(parsed, dict):
        return raw_body

    detail = extractor(parsed)
    if detail is None:
        return raw_body
    if not isinstance(detail, str):
        # GitLab validation errors come back as {"message": {"field": [...]}}
        return json.dumps(detail)
    return detail


def map_error(
    response: httpx.Response,
    raw_body: str,
    *,
    dialect: "Dialect",
    hooks: "StatusHooks | None" = None,
    url: str | None = None,
) -> ApiError:
    """
    Build the unified ``ApiError`` for a non-OK response.

    Rules, in order: notify token expiry on auth failures, extract the
    backend detail, read the server-specified backoff on 429, and attach a
    sanitized status-coded message.
    """
    status = response.status_code

    if status in dialect.token_expired_statuses and hooks is not None:
        hooks.notify_token_expired()

    detail = extract_detail(raw_body, dialect.extract_detail)

    retry_after_ms = None
    if status == 429:
        retry_after_ms = dialect.retry_after_ms(response.headers)

    error = ApiError(
        sanitize_api_error(status, response.reason_phrase),
        status=status,
        provider=dialect.provider_type.value,
        detail=detail,
        retry_after_ms=retry_after_ms,
        url=url,
    )
    logger.debug(f"{dialect.provider_type.value} API error {status} for {url}: {detail[:200]}")
    return error


def map_transport_error(
    exc: BaseException,
    *,
    provider: str,
    url: str | None = None,
) -> NetworkError:
    """Wrap a transport-level exception, keeping it as the cause."""
    reason = str(exc) or type(exc).__name__
    logger.debug(f"{provider} transport failure for {url}: {reason}")
    return NetworkError(f"Network request failed: {reason}", cause=exc)


def unexpected_response_error(
    message: str,
    *,
    provider: str,
    status: int,
    url: str | None = None,
    detail: str | None = None,
) -> ApiError:
    """A success status whose payload does not have the expected shape."""
    return ApiError(
        message,
        status=status,
        provider=provider,
        detail=detail,
        url=url,
    )


def unsupported_operation_error(operation: str, provider: str) -> ApiError:
    """HTTP-501 equivalent for an operation a backend cannot perform."""
    return ApiError(
        f"{operation} is not supported by this provider",
        status=501,
        provider=provider,
        detail=f"{provider} has no native support for {operation.lower()}",
    )
