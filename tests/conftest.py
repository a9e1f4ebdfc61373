"""Pytest configuration and fixtures."""

from collections.abc import Callable

import httpx
import pytest

from review_providers.adapter import AdaptedProvider
from review_providers.factory import create_provider
from review_providers.hooks import StatusHooks
from review_providers.models import ProviderType
from review_providers.rate_limit import RateLimitTracker

from helpers import PROVIDER_CONFIGS, Handler


@pytest.fixture
def rate_limits() -> RateLimitTracker:
    return RateLimitTracker()


@pytest.fixture
def hooks() -> StatusHooks:
    return StatusHooks()


@pytest.fixture
def make_provider(
    rate_limits: RateLimitTracker,
    hooks: StatusHooks,
) -> Callable[[ProviderType, Handler], AdaptedProvider]:
    """Build an adapted provider whose requests go to ``handler``."""

    def _make(provider_type: ProviderType, handler: Handler) -> AdaptedProvider:
        return create_provider(
            PROVIDER_CONFIGS[provider_type],
            rate_limits=rate_limits,
            hooks=hooks,
            transport=httpx.MockTransport(handler),
        )

    return _make
