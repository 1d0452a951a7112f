"""Async GitHub REST and GraphQL client."""

import asyncio
import logging
from typing import Any, Optional

import httpx

from config import get_settings

logger = logging.getLogger(__name__)


# ============================================================================
# Errors
# ============================================================================

class GitHubAPIError(Exception):
    """A GitHub API call failed. ``status`` is the HTTP status when there was one."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class AuthenticationError(GitHubAPIError):
    pass


class RateLimitError(GitHubAPIError):
    pass


class NotFoundError(GitHubAPIError):
    pass


RATE_LIMIT_MESSAGE = "GitHub API rate limit exceeded. Please try again later."


# ============================================================================
# GitHub API Client
# ============================================================================

class GitHubClient:
    """Client for the GitHub API operations GitSignal needs."""

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.token = token if token is not None else settings.github_token
        self.retries = retries if retries is not None else settings.github_retries
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "gitsignal-backend",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        self._http = httpx.AsyncClient(
            base_url=base_url or settings.github_api_url,
            headers=headers,
            timeout=timeout or settings.github_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> httpx.Response:
        """Send a request, retrying transport failures and 5xx responses with backoff."""
        attempts = max(self.retries, 1)
        for attempt in range(attempts):
            last_attempt = attempt == attempts - 1
            try:
                response = await self._http.request(method, path, params=params, json=json)
            except httpx.TransportError as e:
                if last_attempt:
                    raise GitHubAPIError(f"GitHub API request failed: {e}") from e
                logger.warning("[GitHub] %s %s failed (%s), retrying", method, path, e)
                await asyncio.sleep(2 ** attempt)
                continue
            if response.status_code >= 500 and not last_attempt:
                logger.warning("[GitHub] %s %s returned %s, retrying", method, path, response.status_code)
                await asyncio.sleep(2 ** attempt)
                continue
            return response
        raise GitHubAPIError("GitHub API request failed")

    @staticmethod
    def _raise_for_status(response: httpx.Response, not_found: str = "Not found on GitHub") -> None:
        status = response.status_code
        if status < 400:
            return
        if status == 401:
            raise AuthenticationError("GitHub authentication failed. Check GITHUB_TOKEN.", status)
        if status in (403, 429):
            raise RateLimitError(RATE_LIMIT_MESSAGE, status)
        if status == 404:
            raise NotFoundError(not_found, status)
        raise GitHubAPIError(f"GitHub API error: {status}", status)

    async def _get(self, path: str, params: Optional[dict] = None, not_found: str = "Not found on GitHub") -> Any:
        response = await self._request("GET", path, params=params)
        self._raise_for_status(response, not_found)
        if response.status_code == 204 or not response.content:
            return []
        return response.json()

    async def _get_object(self, path: str, not_found: str) -> dict:
        payload = await self._get(path, not_found=not_found)
        if not isinstance(payload, dict):
            raise GitHubAPIError(f"Unexpected response from GitHub for {path}")
        return payload

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, username: str) -> dict:
        return await self._get_object(f"/users/{username}", f'User "{username}" not found on GitHub')

    async def get_user_repos(self, username: str, per_page: int = 100, sort: str = "pushed") -> list[dict]:
        return await self._get(f"/users/{username}/repos", params={"per_page": per_page, "sort": sort})

    async def get_user_events(self, username: str, per_page: int = 100) -> list[dict]:
        return await self._get(f"/users/{username}/events", params={"per_page": per_page})

    async def get_user_orgs(self, username: str) -> list[dict]:
        return await self._get(f"/users/{username}/orgs")

    async def search_users(
        self,
        query: str,
        sort: Optional[str] = None,
        order: Optional[str] = None,
        per_page: int = 20,
    ) -> dict:
        """Search users with GitHub qualifiers (location:, language:, followers:>N ...)."""
        params: dict = {"q": query, "per_page": per_page}
        if sort:
            params["sort"] = sort
        if order:
            params["order"] = order
        response = await self._request("GET", "/search/users", params=params)
        if response.status_code == 422:
            raise GitHubAPIError("Invalid search query. Please refine your search.", 422)
        self._raise_for_status(response)
        return response.json()

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    async def get_repo(self, owner: str, repo: str) -> dict:
        return await self._get_object(f"/repos/{owner}/{repo}", "Repository not found")

    async def get_contributors(self, owner: str, repo: str, per_page: int = 15) -> list[dict]:
        return await self._get(
            f"/repos/{owner}/{repo}/contributors",
            params={"per_page": per_page},
            not_found="Repository not found",
        )

    # ------------------------------------------------------------------
    # GraphQL
    # ------------------------------------------------------------------

    async def graphql(self, query: str, variables: dict) -> dict:
        """Run a GraphQL query and return its ``data`` member."""
        if not self.token:
            raise AuthenticationError("GraphQL API requires authentication. Set GITHUB_TOKEN.")
        response = await self._request("POST", "/graphql", json={"query": query, "variables": variables})
        if response.status_code == 401:
            raise AuthenticationError("Authentication required for GraphQL API.", 401)
        if response.status_code == 403:
            raise RateLimitError("Rate limit exceeded. Please try again later.", 403)
        if response.status_code >= 400:
            raise GitHubAPIError(f"GitHub GraphQL API error: {response.status_code}", response.status_code)
        payload = response.json()
        errors = payload.get("errors") or []
        if errors:
            raise GitHubAPIError(f"GraphQL error: {errors[0].get('message', 'unknown error')}")
        return payload.get("data") or {}


# Singleton instance
_github_client = None


def get_github_client() -> GitHubClient:
    """Get or create the GitHub client instance."""
    global _github_client
    if _github_client is None:
        _github_client = GitHubClient()
    return _github_client
