"""Concrete providers, one module per git-hosting backend."""

from ..models import ProviderType
from .azure import AzureProvider
from .base import HttpProvider
from .bitbucket import BitbucketProvider
from .gitea import GiteaProvider
from .github import GitHubProvider
from .gitlab import GitLabProvider

PROVIDER_CLASSES: dict[ProviderType, type[HttpProvider]] = {
    ProviderType.GITHUB: GitHubProvider,
    ProviderType.GITLAB: GitLabProvider,
    ProviderType.BITBUCKET: BitbucketProvider,
    ProviderType.AZURE: AzureProvider,
    ProviderType.GITEA: GiteaProvider,
}

__all__ = [
    "PROVIDER_CLASSES",
    "AzureProvider",
    "BitbucketProvider",
    "GitHubProvider",
    "GitLabProvider",
    "GiteaProvider",
    "HttpProvider",
]
