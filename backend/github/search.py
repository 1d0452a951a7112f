"""Finding GitHub users: web search over github.com profiles and the GitHub user search API."""

import asyncio
import logging
import re
from typing import Optional

from models import ProfileSearchHit, ProfileSocials, UserSearchResponse, UserSummary
from research import build_search_query, search_ddg
from .client import GitHubAPIError, GitHubClient

logger = logging.getLogger(__name__)

PROFILE_URL_RE = re.compile(r"^https?://(?:www\.)?github\.com/([^/?#]+)/?$")

# github.com paths that look like usernames but are site pages
RESERVED_PATHS = {
    "orgs", "topics", "trending", "explore", "settings", "notifications",
    "new", "login", "join", "marketplace", "features", "sponsors", "about",
}

MAX_USERS_PER_PAGE = 30

SEARCH_TIPS = [
    "Use 'location:city' to filter by location (e.g., 'location:Sydney')",
    "Use 'language:lang' to filter by language (e.g., 'language:rust')",
    "Use 'followers:>N' to filter by follower count (e.g., 'followers:>100')",
    "Use 'repos:>N' to filter by repo count (e.g., 'repos:>10')",
    "Combine filters: 'language:typescript location:london followers:>50'",
]


def profile_username(url: str) -> Optional[str]:
    """Username for a github.com/<user> profile URL, None for repos and site pages."""
    match = PROFILE_URL_RE.match(url.strip())
    if not match or match.group(1).lower() in RESERVED_PATHS:
        return None
    return match.group(1)


def _summary(profile: dict) -> UserSummary:
    return UserSummary(
        username=profile["login"],
        name=profile.get("name") or None,
        bio=profile.get("bio") or None,
        location=profile.get("location") or None,
        company=profile.get("company") or None,
        blog=profile.get("blog") or None,
        email=profile.get("email") or None,
        twitter_username=profile.get("twitter_username") or None,
        public_repos=profile.get("public_repos"),
        followers=profile.get("followers"),
        following=profile.get("following"),
        hireable=bool(profile.get("hireable")),
        created_at=profile.get("created_at"),
    )


async def _profile_or_none(client: GitHubClient, username: str) -> Optional[dict]:
    try:
        return await client.get_user(username)
    except GitHubAPIError as e:
        logger.info("[Search] Could not enrich %s: %s", username, e.message)
        return None


async def search_github_profiles(client: GitHubClient, query: str, max_results: int = 20) -> list[ProfileSearchHit]:
    """Natural-language profile search: web results restricted to github.com user pages."""
    hits = await asyncio.to_thread(search_ddg, build_search_query(query, "github_profiles"), max_results)

    found: dict[str, ProfileSearchHit] = {}
    for hit in hits:
        username = profile_username(hit.url)
        if username and username.lower() not in found:
            found[username.lower()] = ProfileSearchHit(
                username=username,
                url=hit.url,
                title=hit.title,
                snippet=hit.snippet[:300],
            )

    profiles = list(found.values())
    details = await asyncio.gather(*(_profile_or_none(client, p.username) for p in profiles))
    for profile, data in zip(profiles, details):
        if not data:
            continue
        profile.name = data.get("name") or None
        profile.bio = data.get("bio") or None
        profile.location = data.get("location") or None
        profile.socials = ProfileSocials(
            email=data.get("email") or None,
            blog=data.get("blog") or None,
            twitter_username=data.get("twitter_username") or None,
            company=data.get("company") or None,
        )
    return profiles


async def search_github_users(
    client: GitHubClient,
    query: str,
    sort: Optional[str] = None,
    order: Optional[str] = None,
    per_page: int = 20,
) -> UserSearchResponse:
    """GitHub user search with qualifiers, each hit enriched with its full profile."""
    per_page = max(1, min(per_page, MAX_USERS_PER_PAGE))
    data = await client.search_users(query, sort=sort, order=order, per_page=per_page)
    items = (data.get("items") or [])[:per_page]

    details = await asyncio.gather(*(_profile_or_none(client, item["login"]) for item in items))
    users = [
        _summary(profile) if profile else UserSummary(username=item["login"])
        for item, profile in zip(items, details)
    ]
    return UserSearchResponse(
        query=query,
        total_count=data.get("total_count", 0),
        users=users,
        search_tips=SEARCH_TIPS,
    )
