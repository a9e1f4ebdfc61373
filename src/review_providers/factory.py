"""
Provider construction.

Every provider handed to callers is adapted, so the full V2 surface and a
normalized capability record are always available.
"""

import logging

import httpx

from .adapter import AdaptedProvider, adapt_provider
from .backends import PROVIDER_CLASSES
from .config import ReviewSettings
from .exceptions import InvalidRemoteError
from .hooks import StatusHooks
from .http import ProviderHttpClient
from .models import ProviderConfig
from .rate_limit import RateLimitTracker
from .urls import parse_git_remote, resolve_base_url

logger = logging.getLogger(__name__)


def create_provider(
    config: ProviderConfig,
    *,
    rate_limits: RateLimitTracker | None = None,
    hooks: StatusHooks | None = None,
    timeout: float = ProviderHttpClient.DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AdaptedProvider:
    """
    Build the adapted provider for ``config.type``.

    Args:
        config: Resolved backend, base URL, token and repository
        rate_limits: Shared rate-limit tracker
        hooks: Receiver for staleness / token-expiry notifications
        timeout: Request timeout in seconds
        transport: Optional transport override (tests use MockTransport)
    """
    provider_class = PROVIDER_CLASSES[config.type]
    logger.debug(
        f"Creating {config.type.value} provider for {config.repo_path} at {config.base_url}"
    )
    provider = provider_class(
        config,
        rate_limits=rate_limits,
        hooks=hooks,
        timeout=timeout,
        transport=transport,
    )
    return adapt_provider(provider)


def provider_from_remote(
    remote_url: str,
    settings: ReviewSettings,
    *,
    rate_limits: RateLimitTracker | None = None,
    hooks: StatusHooks | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AdaptedProvider:
    """
    Resolve a git remote to a ready-to-use provider.

    Raises:
        InvalidRemoteError: If the remote cannot be parsed or its host is unknown
        MissingTokenError: If no token is configured for the backend
    """
    parsed = parse_git_remote(remote_url, settings.configured_hosts)
    if parsed is None:
        raise InvalidRemoteError(remote_url, "unrecognized URL format")
    if parsed.provider is None:
        raise InvalidRemoteError(remote_url, f"unknown host {parsed.host}")

    config = ProviderConfig(
        type=parsed.provider,
        base_url=resolve_base_url(parsed.provider, remote_url, settings.configured_hosts),
        token=settings.token_for(parsed.provider),
        owner=parsed.owner,
        repo=parsed.repo,
    )
    return create_provider(
        config,
        rate_limits=rate_limits,
        hooks=hooks,
        timeout=settings.timeout,
        transport=transport,
    )
