"""Tests for settings and provider construction."""

import httpx
import pytest

from review_providers.adapter import AdaptedProvider
from review_providers.backends import GiteaProvider, GitHubProvider, GitLabProvider
from review_providers.config import DEFAULT_TIMEOUT, ReviewSettings
from review_providers.exceptions import ConfigError, InvalidRemoteError, MissingTokenError
from review_providers.factory import create_provider, provider_from_remote
from review_providers.models import ProviderType

from helpers import PROVIDER_CONFIGS


class TestReviewSettings:
    """Tests for ReviewSettings.from_env."""

    def test_empty_environment(self) -> None:
        settings = ReviewSettings.from_env({})
        assert settings.timeout == DEFAULT_TIMEOUT
        assert settings.configured_hosts == {}
        with pytest.raises(MissingTokenError) as exc_info:
            settings.token_for(ProviderType.GITHUB)
        assert "GITHUB_TOKEN" in exc_info.value.hint

    def test_tokens(self) -> None:
        settings = ReviewSettings.from_env(
            {"GITHUB_TOKEN": "gh", "AZURE_DEVOPS_TOKEN": "az", "GITLAB_TOKEN": ""}
        )
        assert settings.token_for(ProviderType.GITHUB) == "gh"
        assert settings.token_for(ProviderType.AZURE) == "az"
        with pytest.raises(MissingTokenError):
            settings.token_for(ProviderType.GITLAB)

    def test_host_lists(self) -> None:
        settings = ReviewSettings.from_env(
            {"GITHUB_HOSTS": "GHE.corp.com, ghe2.corp.com", "GITEA_HOSTS": "code.corp.com,"}
        )
        assert settings.configured_hosts == {
            "ghe.corp.com": ProviderType.GITHUB,
            "ghe2.corp.com": ProviderType.GITHUB,
            "code.corp.com": ProviderType.GITEA,
        }
        assert settings.providers[ProviderType.GITHUB].hosts == ("ghe.corp.com", "ghe2.corp.com")

    def test_timeout(self) -> None:
        assert ReviewSettings.from_env({"REVIEW_TIMEOUT": "12.5"}).timeout == 12.5

    @pytest.mark.parametrize("value", ["soon", "0", "-3"])
    def test_invalid_timeout(self, value: str) -> None:
        with pytest.raises(ConfigError) as exc_info:
            ReviewSettings.from_env({"REVIEW_TIMEOUT": value})
        assert "REVIEW_TIMEOUT" in exc_info.value.message

    def test_reads_process_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GITEA_TOKEN", "from-env")
        settings = ReviewSettings.from_env()
        assert settings.token_for(ProviderType.GITEA) == "from-env"


class TestCreateProvider:
    """Tests for the provider factory."""

    @pytest.mark.parametrize("provider_type", list(ProviderType))
    def test_always_adapted(self, provider_type: ProviderType) -> None:
        provider = create_provider(PROVIDER_CONFIGS[provider_type])
        assert isinstance(provider, AdaptedProvider)
        assert provider.provider_type == provider_type

    def test_from_self_hosted_remote(self) -> None:
        settings = ReviewSettings.from_env(
            {"GITLAB_TOKEN": "gl", "GITLAB_HOSTS": "git.corp.com"}
        )
        provider = provider_from_remote("git@git.corp.com:group/sub/app.git", settings)

        inner = provider.inner
        assert isinstance(inner, GitLabProvider)
        assert inner.config.base_url == "https://git.corp.com/api/v4"
        assert inner.config.owner == "group/sub"
        assert inner.config.repo == "app"
        assert inner.config.token == "gl"

    def test_from_public_remote(self) -> None:
        settings = ReviewSettings.from_env({"GITHUB_TOKEN": "gh", "REVIEW_TIMEOUT": "5"})
        provider = provider_from_remote("https://github.com/octo/hello.git", settings)

        inner = provider.inner
        assert isinstance(inner, GitHubProvider)
        assert inner.config.base_url == "https://api.github.com"
        assert inner.http.timeout == 5.0

    def test_from_codeberg_remote(self) -> None:
        settings = ReviewSettings.from_env({"GITEA_TOKEN": "gt"})
        provider = provider_from_remote("git@codeberg.org:forgejo/forgejo.git", settings)

        assert isinstance(provider.inner, GiteaProvider)
        assert provider.inner.config.base_url == "https://codeberg.org/api/v1"

    def test_unknown_host(self) -> None:
        settings = ReviewSettings.from_env({"GITHUB_TOKEN": "gh"})
        with pytest.raises(InvalidRemoteError) as exc_info:
            provider_from_remote("git@example.org:team/app.git", settings)
        assert "unknown host example.org" in exc_info.value.message

    def test_unparseable_remote(self) -> None:
        with pytest.raises(InvalidRemoteError):
            provider_from_remote("nonsense", ReviewSettings.from_env({}))

    def test_missing_token(self) -> None:
        with pytest.raises(MissingTokenError):
            provider_from_remote("git@bitbucket.org:team/repo.git", ReviewSettings.from_env({}))

    @pytest.mark.asyncio
    async def test_shared_transport(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.host)
            return httpx.Response(200, json=[])

        settings = ReviewSettings.from_env({"GITEA_TOKEN": "gt", "GITEA_HOSTS": "code.corp.com"})
        provider = provider_from_remote(
            "https://code.corp.com/team/app.git",
            settings,
            transport=httpx.MockTransport(handler),
        )
        result = await provider.list_prs()
        await provider.close()

        assert result.items == []
        assert seen == ["code.corp.com"]
