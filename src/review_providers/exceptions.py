"""
Exception hierarchy for review-providers.

Every backend call resolves to a value or to exactly one of the two unified
kinds defined here: ``NetworkError`` for transport-level failures and
``ApiError`` for HTTP error responses. Both carry a short message that is
safe to show in UI chrome; backend-specific text lives in ``detail``.
"""


class ReviewProviderError(Exception):
    """Base exception for all review-providers errors."""

    def __init__(self, message: str, hint: str | None = None) -> None:
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\n\nHint: {self.hint}"
        return self.message


# Unified backend errors


class NetworkError(ReviewProviderError):
    """Transport-level failure: DNS, refused connection, timeout, bad payload."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(
            message,
            "Check your network connection and try again",
        )
        self.cause = cause


class ApiError(ReviewProviderError):
    """
    A backend answered with an error status.

    ``message`` is the sanitized, status-derived text. ``detail`` holds
    whatever the backend said, for expanded diagnostic views only.
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        provider: str | None = None,
        detail: str | None = None,
        retry_after_ms: int | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message, _hint_for_status(status))
        self.status = status
        self.provider = provider
        self.detail = detail
        self.retry_after_ms = retry_after_ms
        self.url = url

    @property
    def is_rate_limited(self) -> bool:
        return self.status == 429

    @property
    def is_client_error(self) -> bool:
        return self.status is not None and 400 <= self.status < 500

    @property
    def is_server_error(self) -> bool:
        return self.status is not None and self.status >= 500

    def __repr__(self) -> str:
        return (
            f"ApiError(status={self.status!r}, provider={self.provider!r}, "
            f"message={self.message!r})"
        )


def _hint_for_status(status: int | None) -> str | None:
    if status in (401, 203):
        return "Your token may have expired. Re-authenticate and try again"
    if status == 403:
        return "Check that the token has access to this repository"
    if status == 404:
        return "Check that the repository and pull request exist"
    if status == 429:
        return "Rate limit exceeded. Wait a little and try again"
    if status is not None and status >= 500:
        return "The server had a problem. Try again shortly"
    return None


# Configuration Errors


class ConfigError(ReviewProviderError):
    """Configuration error."""


class MissingTokenError(ConfigError):
    """No token configured for a provider."""

    def __init__(self, provider: str, env_var: str) -> None:
        super().__init__(
            f"No API token configured for {provider}",
            f"Set the {env_var} environment variable",
        )


class InvalidRemoteError(ConfigError):
    """A git remote URL could not be parsed or mapped to a provider."""

    def __init__(self, remote: str, details: str = "") -> None:
        message = f"Cannot resolve a provider for remote '{remote}'"
        if details:
            message = f"{message}: {details}"
        super().__init__(
            message,
            "Use an SSH or HTTPS remote, or map self-hosted hosts with *_HOSTS",
        )
