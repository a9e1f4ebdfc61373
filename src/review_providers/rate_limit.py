"""
Rate-limit tracking.

One ``RateLimitTracker`` is constructed per process and handed to every
provider's HTTP client. It keeps the last quota signal seen for each
provider, overwriting it whenever a response carries rate-limit headers.
Updates are last-write-wins and unlocked; a slightly stale snapshot is an
expected outcome, not an error.
"""

import logging
import re
from collections.abc import Mapping
from datetime import UTC, datetime

from .models import ProviderType, RateLimitSnapshot

logger = logging.getLogger(__name__)

# Returned when no snapshot exists, so missing signal never blocks callers.
UNKNOWN_REMAINING = 1_000_000

_REMAINING_HEADERS = ("x-ratelimit-remaining", "ratelimit-remaining")
_LIMIT_HEADERS = ("x-ratelimit-limit", "ratelimit-limit")
_RESET_HEADERS = ("x-ratelimit-reset", "ratelimit-reset")

_LEADING_INT = re.compile(r"\s*(-?\d+)")


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    match = _LEADING_INT.match(value)
    if match is None:
        return None
    return int(match.group(1))


def _first_header(headers: Mapping[str, str], names: tuple[str, ...]) -> str | None:
    lowered = {k.lower(): v for k, v in headers.items()}
    for name in names:
        value = lowered.get(name)
        if value is not None and value.strip():
            return value
    return None


def parse_rate_limit_headers(headers: Mapping[str, str]) -> RateLimitSnapshot | None:
    """
    Build a snapshot from whatever rate-limit headers are present.

    Reads both the ``X-RateLimit-*`` family (GitHub, Gitea, Bitbucket Data
    Center, Azure DevOps) and the unprefixed ``RateLimit-*`` family (GitLab).
    Reset values are epoch seconds.

    Returns:
        The snapshot, or None when the response carried no usable header.
    """
    remaining = _parse_int(_first_header(headers, _REMAINING_HEADERS))
    limit = _parse_int(_first_header(headers, _LIMIT_HEADERS))
    reset_epoch = _parse_int(_first_header(headers, _RESET_HEADERS))

    if remaining is None and limit is None and reset_epoch is None:
        return None

    reset_at = None
    if reset_epoch is not None and reset_epoch > 0:
        try:
            reset_at = datetime.fromtimestamp(reset_epoch, UTC)
        except (OverflowError, OSError, ValueError):
            logger.debug(f"Ignoring unusable rate-limit reset value: {reset_epoch}")

    return RateLimitSnapshot(remaining=remaining, limit=limit, reset_at=reset_at)


class RateLimitTracker:
    """Process-wide store of the latest rate-limit snapshot per provider."""

    def __init__(self) -> None:
        self._snapshots: dict[ProviderType, RateLimitSnapshot] = {}

    def update(self, provider: ProviderType, headers: Mapping[str, str]) -> None:
        """Overwrite the provider's snapshot if the headers carry any signal."""
        snapshot = parse_rate_limit_headers(headers)
        if snapshot is None:
            return
        self._snapshots[provider] = snapshot
        if snapshot.remaining is not None and snapshot.remaining <= 10:
            logger.warning(
                f"{provider.value} rate limit nearly exhausted: "
                f"{snapshot.remaining} requests remaining"
            )

    def snapshot(self, provider: ProviderType) -> RateLimitSnapshot | None:
        return self._snapshots.get(provider)

    def get_remaining(self, provider: ProviderType) -> int:
        """Last known remaining quota, or ``UNKNOWN_REMAINING``."""
        snapshot = self._snapshots.get(provider)
        if snapshot is None or snapshot.remaining is None:
            return UNKNOWN_REMAINING
        return snapshot.remaining

    def reset(self) -> None:
        self._snapshots.clear()
