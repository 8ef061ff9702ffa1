"""Repository provider implementations."""

from .azure_repos import AzureReposConnector
from .github_gh import GithubGhReposConnector

__all__ = ["AzureReposConnector", "GithubGhReposConnector"]
