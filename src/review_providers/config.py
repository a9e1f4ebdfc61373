"""
Settings for building providers.

Tokens and self-hosted host lists come from the environment. Host lists
map hostnames of GitHub Enterprise, self-hosted GitLab and Gitea/Forgejo
instances onto their backend so remotes on those hosts can be resolved.
"""

import logging
import os
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ConfigError, MissingTokenError
from .models import ProviderType
from .urls import ConfiguredHosts

logger = logging.getLogger(__name__)

TOKEN_ENV_VARS: dict[ProviderType, str] = {
    ProviderType.GITHUB: "GITHUB_TOKEN",
    ProviderType.GITLAB: "GITLAB_TOKEN",
    ProviderType.BITBUCKET: "BITBUCKET_TOKEN",
    ProviderType.AZURE: "AZURE_DEVOPS_TOKEN",
    ProviderType.GITEA: "GITEA_TOKEN",
}

HOSTS_ENV_VARS: dict[ProviderType, str] = {
    ProviderType.GITHUB: "GITHUB_HOSTS",
    ProviderType.GITLAB: "GITLAB_HOSTS",
    ProviderType.GITEA: "GITEA_HOSTS",
}

TIMEOUT_ENV_VAR = "REVIEW_TIMEOUT"
DEFAULT_TIMEOUT = 30.0


class ProviderSettings(BaseModel):
    """Token and self-hosted hosts for one backend."""

    model_config = ConfigDict(frozen=True)

    token: str | None = None
    hosts: tuple[str, ...] = ()


class ReviewSettings(BaseModel):
    """All provider settings plus request options."""

    model_config = ConfigDict(frozen=True)

    providers: dict[ProviderType, ProviderSettings] = Field(default_factory=dict)
    host_mappings: dict[str, ProviderType] = Field(default_factory=dict)
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ReviewSettings":
        """
        Read settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)

        Raises:
            ConfigError: If ``REVIEW_TIMEOUT`` is not a positive number
        """
        env = os.environ if environ is None else environ

        providers: dict[ProviderType, ProviderSettings] = {}
        host_mappings: dict[str, ProviderType] = {}
        for provider_type, token_var in TOKEN_ENV_VARS.items():
            hosts: tuple[str, ...] = ()
            hosts_var = HOSTS_ENV_VARS.get(provider_type)
            if hosts_var:
                hosts = _split_hosts(env.get(hosts_var, ""))
                for host in hosts:
                    host_mappings[host] = provider_type
            providers[provider_type] = ProviderSettings(
                token=env.get(token_var) or None,
                hosts=hosts,
            )

        timeout = DEFAULT_TIMEOUT
        raw_timeout = env.get(TIMEOUT_ENV_VAR)
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                raise ConfigError(
                    f"Invalid {TIMEOUT_ENV_VAR}: {raw_timeout}",
                    "Use a number of seconds, e.g. 30",
                ) from None
            if timeout <= 0:
                raise ConfigError(
                    f"Invalid {TIMEOUT_ENV_VAR}: {raw_timeout}",
                    "The timeout must be greater than zero",
                )

        return cls(providers=providers, host_mappings=host_mappings, timeout=timeout)

    @property
    def configured_hosts(self) -> ConfiguredHosts:
        return self.host_mappings

    def token_for(self, provider_type: ProviderType) -> str:
        """
        Token for ``provider_type``.

        Raises:
            MissingTokenError: If no token is configured
        """
        settings = self.providers.get(provider_type)
        if settings is None or not settings.token:
            raise MissingTokenError(provider_type.value, TOKEN_ENV_VARS[provider_type])
        return settings.token


def _split_hosts(value: str) -> tuple[str, ...]:
    return tuple(h.strip().lower() for h in value.split(",") if h.strip())
