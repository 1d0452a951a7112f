"""FastAPI routes for GitHub lookups, search and candidate ranking."""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from config import get_settings
from history import SearchHistoryStore, get_history_store
from models import (
    CollaborationData,
    ContributorInfo,
    ContributorsResponse,
    ProfileAnalysis,
    ProfileMetrics,
    ProfileSearchHit,
    RankingResult,
    RankRequest,
    RepoCheck,
    UserSearchResponse,
)
from ranking import rank_candidates
from .client import GitHubAPIError, GitHubClient, get_github_client
from .collaboration import fetch_collaboration
from .metrics import fetch_profile_metrics
from .profile_analysis import analyze_profile
from .repo_analysis import quick_repo_check
from .search import search_github_profiles, search_github_users

logger = logging.getLogger(__name__)

# Create router for GitHub endpoints
router = APIRouter(prefix="/api/github", tags=["github"])


def _http_error(e: GitHubAPIError) -> HTTPException:
    return HTTPException(status_code=e.status or 502, detail=e.message)


# ============================================================================
# User Routes
# ============================================================================

@router.get("/users/{username}/metrics", response_model=ProfileMetrics, response_model_exclude_none=True)
async def get_user_metrics(
    username: str,
    top_repos: int = Query(5, ge=1, le=10, description="Number of top repositories to include"),
    client: GitHubClient = Depends(get_github_client),
):
    """
    Get profile metrics for one GitHub user.

    Args:
        username: GitHub login
        top_repos: Number of top repositories to include

    Returns:
        Languages, activity, top repositories and hiring signals
    """
    try:
        return await fetch_profile_metrics(client, username, top_repo_limit=top_repos)
    except GitHubAPIError as e:
        raise _http_error(e)


@router.get("/users/{username}/analysis", response_model=ProfileAnalysis, response_model_exclude_none=True)
async def get_user_analysis(
    username: str,
    client: GitHubClient = Depends(get_github_client),
):
    """
    Assess a GitHub user as a hiring candidate.

    Args:
        username: GitHub login

    Returns:
        Profile metrics plus estimated experience, contribution pattern,
        strengths, concerns, an overall score and a recommendation
    """
    try:
        return await analyze_profile(client, username)
    except GitHubAPIError as e:
        raise _http_error(e)


@router.get("/users/{username}/collaboration", response_model=CollaborationData)
async def get_user_collaboration(
    username: str,
    client: GitHubClient = Depends(get_github_client),
):
    """
    Get the collaboration network of a GitHub user.

    Args:
        username: GitHub login

    Returns:
        Organizations, contributed repositories and frequent co-contributors
    """
    try:
        await client.get_user(username)
        return await fetch_collaboration(client, username)
    except GitHubAPIError as e:
        raise _http_error(e)


# ============================================================================
# Search Routes
# ============================================================================

@router.get("/search/users", response_model=UserSearchResponse)
async def search_users(
    q: str = Query(..., min_length=1, description="GitHub search query, qualifiers allowed"),
    sort: Optional[Literal["followers", "repositories", "joined"]] = Query(None),
    order: Optional[Literal["asc", "desc"]] = Query(None),
    per_page: int = Query(20, ge=1, le=30),
    client: GitHubClient = Depends(get_github_client),
):
    """
    Search users with GitHub qualifiers.

    Args:
        q: Query such as `language:rust location:sydney followers:>100`
        sort: Sort by followers, repositories or joined
        order: asc or desc
        per_page: Maximum users to return

    Returns:
        Matching users and the total count GitHub reports
    """
    try:
        return await search_github_users(client, q, sort=sort, order=order, per_page=per_page)
    except GitHubAPIError as e:
        raise _http_error(e)


@router.get("/search/profiles", response_model=list[ProfileSearchHit])
async def search_profiles(
    q: str = Query(..., min_length=1, description="Natural language query, e.g. 'rust developers in Sydney'"),
    max_results: int = Query(20, ge=1, le=30),
    client: GitHubClient = Depends(get_github_client),
):
    """
    Natural-language profile search over github.com user pages.

    Args:
        q: Query such as "rust developers in Sydney"
        max_results: Maximum profiles to return

    Returns:
        Profiles found on the web, newest GitHub data merged in
    """
    try:
        return await search_github_profiles(client, q, max_results=max_results)
    except Exception as e:
        logger.warning("[API] Profile search failed: %s", e)
        raise HTTPException(status_code=502, detail=f"Search failed: {e}")


# ============================================================================
# Ranking Routes
# ============================================================================

@router.post("/rank", response_model=RankingResult, response_model_exclude_none=True)
async def rank(
    request: RankRequest,
    client: GitHubClient = Depends(get_github_client),
    history: SearchHistoryStore = Depends(get_history_store),
    x_user_id: Optional[str] = Header(None),
):
    """
    Score up to 10 users against a hiring brief and return the top 5.

    Failed profiles are reported alongside the result rather than failing the request.

    Args:
        request: Usernames, the hiring brief and the query that produced them

    Returns:
        Ranked candidates with match reasons, concerns and any failed profiles
    """
    return await rank_candidates(
        request.usernames,
        request.brief,
        request.search_query,
        client=client,
        history=history,
        auth_user_id=x_user_id,
        max_profiles=get_settings().ranking_max_profiles,
    )


# ============================================================================
# Repository Routes
# ============================================================================

@router.get("/repos/{owner}/{repo}/contributors", response_model=ContributorsResponse)
async def get_repository_contributors(
    owner: str,
    repo: str,
    max_results: int = Query(15, ge=1, le=100, description="Maximum contributors to fetch"),
    client: GitHubClient = Depends(get_github_client),
):
    """
    Get top contributors for a repository.

    Args:
        owner: Repository owner
        repo: Repository name
        max_results: Maximum contributors to fetch

    Returns:
        Contributors with their commit counts and the totals
    """
    try:
        raw = await client.get_contributors(owner, repo, per_page=max_results)
    except GitHubAPIError as e:
        raise _http_error(e)
    contributors = [
        ContributorInfo(
            login=c["login"],
            contributions=c.get("contributions", 0),
            avatar_url=c.get("avatar_url"),
            html_url=c.get("html_url"),
        )
        for c in raw
        if c.get("login")
    ]
    return ContributorsResponse(
        owner=owner,
        repo=repo,
        contributors=contributors,
        total_contributors=len(contributors),
        total_commits=sum(c.contributions for c in contributors),
    )


@router.get("/repos/check", response_model=RepoCheck, response_model_exclude_none=True)
async def check_repository(
    repo_url: str = Query(..., description="https://github.com/owner/repo"),
    client: GitHubClient = Depends(get_github_client),
):
    """
    Validate a repository URL and confirm the repository exists.

    Args:
        repo_url: https://github.com/owner/repo

    Returns:
        Whether the repository is usable, with its metadata or the reason it is not
    """
    return await quick_repo_check(client, repo_url)
