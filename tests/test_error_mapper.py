"""Tests for the exception hierarchy and the error mapper."""

import httpx
import pytest

from review_providers.backends.azure import AzureDialect
from review_providers.backends.bitbucket import BitbucketDialect
from review_providers.backends.github import GitHubDialect
from review_providers.backends.gitlab import GitLabDialect
from review_providers.error_mapper import (
    extract_detail,
    map_error,
    map_transport_error,
    parse_retry_after,
    sanitize_api_error,
    unsupported_operation_error,
)
from review_providers.exceptions import (
    ApiError,
    InvalidRemoteError,
    MissingTokenError,
    NetworkError,
    ReviewProviderError,
)
from review_providers.hooks import StatusHooks


class TestExceptions:
    """Tests for the exception classes."""

    def test_str_includes_hint(self) -> None:
        error = ReviewProviderError("Something broke", "Try again")
        assert str(error) == "Something broke\n\nHint: Try again"

    def test_str_without_hint(self) -> None:
        assert str(ReviewProviderError("Something broke")) == "Something broke"

    def test_network_error_keeps_cause(self) -> None:
        cause = ConnectionError("refused")
        error = NetworkError("Network request failed: refused", cause=cause)
        assert error.cause is cause
        assert error.hint is not None

    def test_api_error_fields(self) -> None:
        error = ApiError(
            "Rate limit exceeded",
            status=429,
            provider="github",
            detail="API rate limit exceeded for user",
            retry_after_ms=3000,
            url="https://api.github.com/repos/a/b/pulls",
        )
        assert error.status == 429
        assert error.provider == "github"
        assert error.retry_after_ms == 3000
        assert error.is_rate_limited
        assert error.is_client_error
        assert not error.is_server_error

    def test_api_error_hint_for_auth_failure(self) -> None:
        error = ApiError("Authentication required", status=401)
        assert "expired" in error.hint

    def test_missing_token_names_env_var(self) -> None:
        error = MissingTokenError("gitlab", "GITLAB_TOKEN")
        assert "gitlab" in error.message
        assert "GITLAB_TOKEN" in error.hint

    def test_invalid_remote_details(self) -> None:
        error = InvalidRemoteError("foo", "unknown host example.org")
        assert "foo" in error.message
        assert "unknown host example.org" in error.message


class TestSanitizeApiError:
    """Tests for status-derived messages."""

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (400, "Bad request"),
            (401, "Authentication required"),
            (403, "Access denied"),
            (404, "Resource not found"),
            (409, "Conflict"),
            (422, "Validation failed"),
            (429, "Rate limit exceeded"),
            (500, "Internal server error"),
            (502, "Bad gateway"),
            (503, "Service unavailable"),
            (504, "Gateway timeout"),
        ],
    )
    def test_known_statuses(self, status: int, expected: str) -> None:
        assert sanitize_api_error(status) == expected

    def test_unknown_status_uses_status_text(self) -> None:
        assert sanitize_api_error(418, "I'm a Teapot") == "HTTP 418 I'm a Teapot"

    def test_unknown_status_without_text(self) -> None:
        assert sanitize_api_error(418) == "HTTP 418"


class TestParseRetryAfter:
    """Tests for Retry-After parsing."""

    def test_seconds_to_milliseconds(self) -> None:
        assert parse_retry_after(httpx.Headers({"Retry-After": "5"})) == 5000

    def test_lowercase_header(self) -> None:
        assert parse_retry_after({"retry-after": "2"}) == 2000

    def test_missing_header(self) -> None:
        assert parse_retry_after(httpx.Headers()) is None

    def test_zero_is_ignored(self) -> None:
        assert parse_retry_after({"Retry-After": "0"}) is None

    def test_http_date_is_ignored(self) -> None:
        headers = {"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}
        assert parse_retry_after(headers) is None


class TestExtractDetail:
    """Tests for backend detail extraction."""

    def test_non_json_body_is_returned_raw(self) -> None:
        assert extract_detail("<html>Bad Gateway</html>", GitHubDialect().extract_detail) == (
            "<html>Bad Gateway</html>"
        )

    def test_json_without_known_field_is_returned_raw(self) -> None:
        body = '{"unexpected": true}'
        assert extract_detail(body, GitHubDialect().extract_detail) == body

    def test_json_array_is_returned_raw(self) -> None:
        assert extract_detail("[1, 2]", GitHubDialect().extract_detail) == "[1, 2]"

    def test_github_message(self) -> None:
        body = '{"message": "Not Found", "documentation_url": "https://docs.github.com"}'
        assert extract_detail(body, GitHubDialect().extract_detail) == "Not Found"

    def test_gitlab_error_field(self) -> None:
        body = '{"error": "insufficient_scope"}'
        assert extract_detail(body, GitLabDialect().extract_detail) == "insufficient_scope"

    def test_gitlab_structured_message_is_serialized(self) -> None:
        body = '{"message": {"title": ["can\'t be blank"]}}'
        detail = extract_detail(body, GitLabDialect().extract_detail)
        assert detail == '{"title": ["can\'t be blank"]}'

    def test_bitbucket_nested_error(self) -> None:
        body = '{"type": "error", "error": {"message": "Repository not found"}}'
        assert extract_detail(body, BitbucketDialect().extract_detail) == "Repository not found"

    def test_bitbucket_nested_detail(self) -> None:
        body = '{"error": {"detail": "Token lacks pullrequest scope"}}'
        assert extract_detail(body, BitbucketDialect().extract_detail) == (
            "Token lacks pullrequest scope"
        )

    def test_azure_capitalized_message(self) -> None:
        body = '{"Message": "TF401019: The Git repository does not exist"}'
        assert extract_detail(body, AzureDialect().extract_detail).startswith("TF401019")

    def test_azure_value_message(self) -> None:
        body = '{"value": {"Message": "Pull request not found"}}'
        assert extract_detail(body, AzureDialect().extract_detail) == "Pull request not found"


class TestMapError:
    """Tests for map_error."""

    def test_builds_sanitized_api_error(self) -> None:
        response = httpx.Response(404, json={"message": "Not Found"})
        error = map_error(response, response.text, dialect=GitHubDialect(), url="https://x/y")
        assert isinstance(error, ApiError)
        assert error.message == "Resource not found"
        assert error.status == 404
        assert error.provider == "github"
        assert error.detail == "Not Found"
        assert error.url == "https://x/y"
        assert error.retry_after_ms is None

    def test_retry_after_only_on_429(self) -> None:
        dialect = GitHubDialect()
        limited = httpx.Response(429, headers={"Retry-After": "7"}, text="slow down")
        unavailable = httpx.Response(503, headers={"Retry-After": "7"}, text="down")
        assert map_error(limited, limited.text, dialect=dialect).retry_after_ms == 7000
        assert map_error(unavailable, unavailable.text, dialect=dialect).retry_after_ms is None

    def test_401_notifies_token_expired(self) -> None:
        hooks = StatusHooks()
        response = httpx.Response(401, json={"message": "Bad credentials"})
        map_error(response, response.text, dialect=GitHubDialect(), hooks=hooks)
        assert hooks.token_expired

    def test_403_does_not_notify_token_expired(self) -> None:
        hooks = StatusHooks()
        response = httpx.Response(403, json={"message": "Forbidden"})
        map_error(response, response.text, dialect=GitHubDialect(), hooks=hooks)
        assert not hooks.token_expired

    def test_azure_203_notifies_token_expired(self) -> None:
        hooks = StatusHooks()
        response = httpx.Response(203, text="<html>Sign in</html>")
        error = map_error(response, response.text, dialect=AzureDialect(), hooks=hooks)
        assert hooks.token_expired
        assert error.status == 203
        assert error.detail == "<html>Sign in</html>"


class TestGitLabRetryAfter:
    """Tests for GitLab's reset-based backoff."""

    def test_prefers_ratelimit_reset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("review_providers.backends.gitlab.time.time", lambda: 1_000.0)
        headers = httpx.Headers({"RateLimit-Reset": "1010", "Retry-After": "60"})
        assert GitLabDialect().retry_after_ms(headers) == 10_000

    def test_reset_in_the_past_waits_at_least_one_second(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr("review_providers.backends.gitlab.time.time", lambda: 2_000.0)
        headers = httpx.Headers({"RateLimit-Reset": "1990"})
        assert GitLabDialect().retry_after_ms(headers) == 1000

    def test_falls_back_to_retry_after(self) -> None:
        headers = httpx.Headers({"Retry-After": "3"})
        assert GitLabDialect().retry_after_ms(headers) == 3000


class TestTransportAndUnsupported:
    """Tests for the non-response error builders."""

    def test_transport_error_wraps_cause(self) -> None:
        cause = httpx.ConnectError("Name or service not known")
        error = map_transport_error(cause, provider="gitea", url="https://gitea.example")
        assert isinstance(error, NetworkError)
        assert error.cause is cause
        assert error.message == "Network request failed: Name or service not known"

    def test_transport_error_without_text_uses_type_name(self) -> None:
        error = map_transport_error(httpx.ReadTimeout(""), provider="github")
        assert error.message == "Network request failed: ReadTimeout"

    def test_unsupported_operation_is_501(self) -> None:
        error = unsupported_operation_error("Accepting suggestions", "bitbucket")
        assert error.status == 501
        assert error.provider == "bitbucket"
        assert error.message == "Accepting suggestions is not supported by this provider"
