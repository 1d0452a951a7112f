"""Derive ProfileMetrics from raw GitHub profile, repository and event payloads."""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Optional

from models import (
    ActivityLevel,
    ContributionStats,
    LanguageShare,
    ProfileMetrics,
    ProfileSignals,
    TopRepo,
)
from .client import GitHubAPIError, GitHubClient

logger = logging.getLogger(__name__)

MAX_LANGUAGES = 8
MAX_TOPICS = 15
DEFAULT_TOP_REPOS = 5


def parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def classify_activity(events_30d: int, events_60d: int) -> ActivityLevel:
    """Activity cascade. Each check assumes the ones above it failed."""
    if events_30d >= 50:
        return "very_active"
    if events_30d >= 20:
        return "active"
    if events_30d >= 5:
        return "moderate"
    if events_60d >= 5:
        return "low"
    return "inactive"


def rank_languages(repos: list[dict], limit: int = MAX_LANGUAGES) -> list[LanguageShare]:
    """Rank languages by the total size of the repositories written in them.

    Percentages are floored so that they never sum past 100.
    """
    weights: dict[str, int] = defaultdict(int)
    for repo in repos:
        language = repo.get("language")
        size = repo.get("size") or 0
        if language and size > 0:
            weights[language] += size

    total = sum(weights.values())
    if total == 0:
        return []

    ranked = sorted(weights.items(), key=lambda kv: kv[1], reverse=True)
    return [LanguageShare(name=name, percentage=size * 100 // total) for name, size in ranked[:limit]]


def _collect_topics(repos: list[dict]) -> list[str]:
    seen: dict[str, None] = {}
    for repo in repos:
        for topic in repo.get("topics") or []:
            seen.setdefault(topic, None)
    return list(seen)[:MAX_TOPICS]


def _is_recent(repo: dict, cutoff: datetime) -> bool:
    for key in ("pushed_at", "updated_at"):
        ts = parse_ts(repo.get(key))
        if ts and ts > cutoff:
            return True
    return False


def extract_metrics(
    profile: dict,
    repos: list[dict],
    events: list[dict],
    now: Optional[datetime] = None,
    top_repo_limit: int = DEFAULT_TOP_REPOS,
) -> ProfileMetrics:
    """Build ProfileMetrics from already-fetched GitHub payloads. Pure."""
    now = now or datetime.now(timezone.utc)

    created = parse_ts(profile.get("created_at"))
    account_age = round((now - created).total_seconds() / (365 * 24 * 3600), 1) if created else 0.0

    own_repos = [r for r in repos if not r.get("fork")]
    total_stars = sum(r.get("stargazers_count") or 0 for r in own_repos)
    total_forks = sum(r.get("forks_count") or 0 for r in own_repos)

    thirty_days_ago = now - timedelta(days=30)
    sixty_days_ago = now - timedelta(days=60)
    event_times = [parse_ts(e.get("created_at")) for e in events]
    events_30d = sum(1 for t in event_times if t and t > thirty_days_ago)
    events_60d = sum(1 for t in event_times if t and t > sixty_days_ago)

    event_types = [e.get("type") for e in events]
    stats = ContributionStats(
        push_events=event_types.count("PushEvent"),
        pr_events=event_types.count("PullRequestEvent"),
        issue_events=event_types.count("IssuesEvent") + event_types.count("IssueCommentEvent"),
    )

    top_repos = [
        TopRepo(
            name=r.get("name", ""),
            description=r.get("description"),
            stars=r.get("stargazers_count") or 0,
            forks=r.get("forks_count") or 0,
            language=r.get("language"),
            url=r.get("html_url", ""),
            topics=r.get("topics") or [],
            last_updated=r.get("updated_at"),
        )
        for r in sorted(own_repos, key=lambda r: r.get("stargazers_count") or 0, reverse=True)[:top_repo_limit]
    ]

    return ProfileMetrics(
        username=profile.get("login", ""),
        name=profile.get("name"),
        bio=profile.get("bio"),
        location=profile.get("location"),
        company=profile.get("company"),
        blog=profile.get("blog"),
        email=profile.get("email"),
        followers=profile.get("followers") or 0,
        following=profile.get("following") or 0,
        public_repos=profile.get("public_repos") or 0,
        created_at=profile.get("created_at"),
        account_age_years=account_age,
        total_stars=total_stars,
        total_forks=total_forks,
        languages=rank_languages(own_repos),
        topics=_collect_topics(own_repos),
        activity_level=classify_activity(events_30d, events_60d),
        top_repos=top_repos,
        recent_events_count=events_30d,
        recently_active_repos=sum(1 for r in own_repos if _is_recent(r, thirty_days_ago)),
        contribution_stats=stats,
        signals=ProfileSignals(
            is_hireable=profile.get("hireable") is True,
            has_email=bool(profile.get("email")),
            has_bio=bool(profile.get("bio")),
            has_website=bool(profile.get("blog")),
        ),
    )


async def _or_empty(fetch, what: str, username: str) -> list[dict]:
    try:
        return await fetch
    except GitHubAPIError as e:
        logger.warning("[Metrics] Could not fetch %s for %s: %s", what, username, e)
        return []


async def fetch_profile_data(client: GitHubClient, username: str) -> tuple[dict, list[dict], list[dict]]:
    """Raw profile, repository and event payloads for one user."""
    profile, repos, events = await asyncio.gather(
        client.get_user(username),
        _or_empty(client.get_user_repos(username), "repos", username),
        _or_empty(client.get_user_events(username), "events", username),
    )
    return profile, repos, events


async def fetch_profile_metrics(
    client: GitHubClient,
    username: str,
    top_repo_limit: int = DEFAULT_TOP_REPOS,
    now: Optional[datetime] = None,
) -> ProfileMetrics:
    """Fetch a user's profile, repos and events concurrently and derive metrics.

    Raises GitHubAPIError when the profile itself cannot be fetched. Repository
    and event failures are treated as empty lists.
    """
    profile, repos, events = await fetch_profile_data(client, username)
    return extract_metrics(profile, repos, events, now=now, top_repo_limit=top_repo_limit)
