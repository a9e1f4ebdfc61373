"""
Behavior every backend must share.

Each test runs once per backend against a mocked transport, so the error
kinds, hooks, rate-limit tracking and capability record are checked to be
identical across all five.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import httpx
import pytest

from review_providers.exceptions import ApiError, NetworkError
from review_providers.hooks import StatusHooks
from review_providers.models import AcceptSuggestionParams, MergeMethod, PRState, ProviderType
from review_providers.provider import V2_CAPABILITY_FLAGS
from review_providers.rate_limit import RateLimitTracker
from review_providers.retry import call_with_retry, should_retry

from helpers import (
    ALL_PROVIDERS,
    PR_PAYLOADS,
    RecordingHandler,
    json_response,
    text_response,
)

pytestmark = pytest.mark.parametrize("provider_type", ALL_PROVIDERS)

# Collection pages whose entries are not JSON objects, in each backend's envelope
NON_OBJECT_PAGES: dict[ProviderType, Any] = {
    ProviderType.GITHUB: [1, 2],
    ProviderType.GITLAB: [1, 2],
    ProviderType.BITBUCKET: {"values": [1, 2]},
    ProviderType.AZURE: {"value": [1, 2]},
    ProviderType.GITEA: [1, 2],
}

LIST_ENVELOPES: dict[ProviderType, Callable[[list[Any]], Any]] = {
    ProviderType.GITHUB: lambda items: items,
    ProviderType.GITLAB: lambda items: items,
    ProviderType.BITBUCKET: lambda items: {"values": items},
    ProviderType.AZURE: lambda items: {"value": items},
    ProviderType.GITEA: lambda items: items,
}


class TestErrorContract:
    """Every backend maps failures to the same error kinds and fields."""

    @pytest.mark.asyncio
    async def test_rate_limited(self, provider_type: ProviderType, make_provider) -> None:
        handler = RecordingHandler(
            json_response({"message": "slow down"}, status_code=429, headers={"Retry-After": "5"})
        )
        provider = make_provider(provider_type, handler)

        with pytest.raises(ApiError) as exc_info:
            await provider.get_pr(7)

        error = exc_info.value
        assert error.status == 429
        assert error.retry_after_ms == 5000
        assert error.provider == provider_type.value
        assert should_retry(0, error)
        assert handler.calls == 1

    @pytest.mark.asyncio
    async def test_not_found(self, provider_type: ProviderType, make_provider) -> None:
        handler = RecordingHandler(json_response({"message": "Not Found"}, status_code=404))
        provider = make_provider(provider_type, handler)

        with pytest.raises(ApiError) as exc_info:
            await provider.get_pr(7)

        error = exc_info.value
        assert error.message == "Resource not found"
        assert error.detail == "Not Found"
        assert error.retry_after_ms is None
        assert error.url is not None
        assert not should_retry(0, error)

    @pytest.mark.asyncio
    async def test_server_error_with_html_body(
        self, provider_type: ProviderType, make_provider
    ) -> None:
        handler = RecordingHandler(text_response("<html>Internal Error</html>", status_code=500))
        provider = make_provider(provider_type, handler)

        with pytest.raises(ApiError) as exc_info:
            await provider.get_pr(7)

        assert exc_info.value.message == "Internal server error"
        assert exc_info.value.detail == "<html>Internal Error</html>"
        assert should_retry(0, exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_failure(self, provider_type: ProviderType, make_provider) -> None:
        cause = httpx.ConnectError("Connection refused")
        provider = make_provider(provider_type, RecordingHandler(cause))

        with pytest.raises(NetworkError) as exc_info:
            await provider.get_pr(7)

        assert exc_info.value.cause is cause
        assert "Connection refused" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unauthorized_notifies_token_expired(
        self, provider_type: ProviderType, make_provider, hooks: StatusHooks
    ) -> None:
        handler = RecordingHandler(json_response({"message": "Unauthorized"}, status_code=401))
        provider = make_provider(provider_type, handler)

        with pytest.raises(ApiError):
            await provider.get_pr(7)

        assert hooks.token_expired
        assert hooks.last_updated_at is None

    @pytest.mark.asyncio
    async def test_rate_limit_recorded_on_error(
        self,
        provider_type: ProviderType,
        make_provider,
        rate_limits: RateLimitTracker,
    ) -> None:
        handler = RecordingHandler(
            json_response(
                {"message": "Forbidden"},
                status_code=403,
                headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Limit": "60"},
            )
        )
        provider = make_provider(provider_type, handler)

        with pytest.raises(ApiError):
            await provider.get_pr(7)

        assert rate_limits.get_remaining(provider_type) == 0


class TestSuccessContract:
    """Every backend parses its payload into the same record."""

    @pytest.mark.asyncio
    async def test_get_pr(
        self, provider_type: ProviderType, make_provider, hooks: StatusHooks
    ) -> None:
        handler = RecordingHandler(json_response(PR_PAYLOADS[provider_type]))
        provider = make_provider(provider_type, handler)

        pr = await provider.get_pr(7)

        assert pr.number == 7
        assert pr.title == "Fix bug"
        assert pr.state == PRState.OPEN
        assert pr.author.login == "alice"
        assert pr.head_sha == "abc"
        assert pr.source_branch == "fix"
        assert pr.target_branch == "main"
        assert pr.created_at == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        assert hooks.last_updated_at is not None
        assert not hooks.token_expired

    @pytest.mark.asyncio
    async def test_unexpected_payload_shape(
        self, provider_type: ProviderType, make_provider
    ) -> None:
        provider = make_provider(provider_type, RecordingHandler(json_response([1, 2, 3])))

        with pytest.raises(ApiError) as exc_info:
            await provider.get_pr(7)

        assert exc_info.value.status == 200
        assert not should_retry(0, exc_info.value)

    @pytest.mark.asyncio
    async def test_null_field_is_api_error(
        self, provider_type: ProviderType, make_provider
    ) -> None:
        payload = {**PR_PAYLOADS[provider_type], "title": None}
        provider = make_provider(provider_type, RecordingHandler(json_response(payload)))

        with pytest.raises(ApiError) as exc_info:
            await provider.get_pr(7)

        assert exc_info.value.status == 200
        assert exc_info.value.provider == provider_type.value
        assert exc_info.value.detail
        assert not should_retry(0, exc_info.value)

    @pytest.mark.asyncio
    async def test_non_object_list_items_are_skipped(
        self, provider_type: ProviderType, make_provider
    ) -> None:
        handler = RecordingHandler(json_response(NON_OBJECT_PAGES[provider_type]))
        provider = make_provider(provider_type, handler)

        assert await provider.get_pr_files(7) == []
        assert await provider.get_pr_comments(7) == []

    @pytest.mark.asyncio
    async def test_wrongly_typed_list_item_is_api_error(
        self, provider_type: ProviderType, make_provider
    ) -> None:
        page = {**PR_PAYLOADS[provider_type], "title": ["not", "a", "string"]}
        handler = RecordingHandler(json_response(LIST_ENVELOPES[provider_type]([page])))
        provider = make_provider(provider_type, handler)

        with pytest.raises(ApiError) as exc_info:
            await provider.list_prs()

        assert exc_info.value.status == 200

    @pytest.mark.asyncio
    async def test_undecodable_payload_is_network_error(
        self, provider_type: ProviderType, make_provider
    ) -> None:
        provider = make_provider(provider_type, RecordingHandler(text_response("not json")))

        with pytest.raises(NetworkError):
            await provider.get_pr(7)

    @pytest.mark.asyncio
    async def test_retry_recovers_from_rate_limit(
        self, provider_type: ProviderType, make_provider
    ) -> None:
        handler = RecordingHandler(
            json_response({"message": "slow down"}, status_code=429, headers={"Retry-After": "1"}),
            json_response(PR_PAYLOADS[provider_type]),
        )
        provider = make_provider(provider_type, handler)
        sleeps: list[float] = []

        async def sleep(seconds: float) -> None:
            sleeps.append(seconds)

        pr = await call_with_retry(lambda: provider.get_pr(7), sleep=sleep)

        assert pr.number == 7
        assert handler.calls == 2
        assert sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, provider_type: ProviderType, make_provider) -> None:
        handler = RecordingHandler(json_response(PR_PAYLOADS[provider_type]))
        provider = make_provider(provider_type, handler)
        await provider.get_pr(7)
        await provider.close()
        await provider.close()


class TestCapabilityContract:
    def test_v2_flags_are_defined(self, provider_type: ProviderType, make_provider) -> None:
        provider = make_provider(provider_type, RecordingHandler(json_response({})))
        for flag in V2_CAPABILITY_FLAGS:
            assert isinstance(getattr(provider.capabilities, flag), bool)

    def test_declares_merge_strategies(self, provider_type: ProviderType, make_provider) -> None:
        provider = make_provider(provider_type, RecordingHandler(json_response({})))
        strategies = provider.capabilities.supports_merge_strategies
        assert strategies
        assert set(strategies) <= {method.value for method in MergeMethod}

    @pytest.mark.asyncio
    async def test_accept_suggestion_is_unsupported(
        self, provider_type: ProviderType, make_provider
    ) -> None:
        handler = RecordingHandler(json_response({}))
        provider = make_provider(provider_type, handler)

        with pytest.raises(ApiError) as exc_info:
            await provider.accept_suggestion(AcceptSuggestionParams(pr_number=7, comment_id=1))

        assert exc_info.value.status == 501
        assert handler.calls == 0
