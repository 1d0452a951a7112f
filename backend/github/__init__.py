"""GitHub integration package: API client, profile metrics, collaboration and repository analysis."""

from .client import GitHubClient, get_github_client
from .routes import router

__all__ = ["GitHubClient", "get_github_client", "router"]
