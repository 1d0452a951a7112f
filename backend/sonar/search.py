"""Run a saved brief: find new GitHub profiles for it, score them and store the good ones."""

import asyncio
import logging
from typing import Optional

from config import get_settings
from github.client import GitHubClient
from github.search import profile_username
from models import CandidateScore, FailedProfile, SonarBriefOut, SonarSearchSummary
from ranking import metrics_or_failure
from research import build_search_query, search_ddg
from scoring import score_candidate
from .store import SonarStore

logger = logging.getLogger(__name__)

MAX_QUERIES = 3
HITS_PER_QUERY = 20
MAX_SAVED = 10


def sonar_queries(brief: SonarBriefOut) -> list[str]:
    """Web queries for a brief: its description, its top skills and its project type in its location."""
    queries = []
    if brief.description:
        queries.append(brief.description[:200])
    if brief.required_skills:
        location = f" {brief.preferred_location}" if brief.preferred_location else ""
        queries.append(f"{' '.join(brief.required_skills[:3])} developer{location}")
    if brief.preferred_location and brief.project_type:
        queries.append(f"{brief.project_type} developer {brief.preferred_location}")
    return queries[:MAX_QUERIES]


async def find_new_usernames(queries: list[str], known: set[str], limit: int) -> list[str]:
    """GitHub usernames from web results, skipping ones already known (case-insensitive)."""
    found: dict[str, str] = {}
    for query in queries:
        try:
            hits = await asyncio.to_thread(search_ddg, build_search_query(query, "github_profiles"), HITS_PER_QUERY)
        except Exception as e:
            logger.warning("[Sonar] Search failed for %r: %s", query[:60], e)
            continue
        for hit in hits:
            username = profile_username(hit.url)
            if username and username.lower() not in known:
                found.setdefault(username.lower(), username)
    return list(found.values())[:limit]


async def run_sonar_search(
    store: SonarStore,
    client: GitHubClient,
    auth_user_id: str,
    brief_id: str,
    max_profiles: Optional[int] = None,
    min_score: Optional[int] = None,
) -> SonarSearchSummary:
    """Search for, score and save candidates for one of the user's briefs.

    Raises NotFoundError when the brief does not exist or belongs to someone else.
    Only candidates scoring at least ``min_score`` are kept, best ten first.
    """
    settings = get_settings()
    max_profiles = max_profiles or settings.sonar_max_profiles
    min_score = settings.sonar_min_score if min_score is None else min_score

    brief = await asyncio.to_thread(store.get_brief, auth_user_id, brief_id)
    known = await asyncio.to_thread(store.known_usernames, brief_id)
    usernames = await find_new_usernames(sonar_queries(brief), known, max_profiles)
    logger.info("[Sonar] Brief %s: analyzing %d new profile(s)", brief_id, len(usernames))

    outcomes = await asyncio.gather(*(metrics_or_failure(client, u) for u in usernames))
    hiring_brief = brief.to_hiring_brief()
    candidates: list[CandidateScore] = []
    failed: list[FailedProfile] = []
    for outcome in outcomes:
        if isinstance(outcome, FailedProfile):
            failed.append(outcome)
            continue
        scored = score_candidate(outcome, hiring_brief)
        if scored.score >= min_score:
            candidates.append(scored)

    candidates.sort(key=lambda c: c.score, reverse=True)
    saved = 0
    for candidate in candidates[:MAX_SAVED]:
        if await asyncio.to_thread(store.add_result, brief_id, candidate, brief.description or None):
            saved += 1
    await asyncio.to_thread(store.mark_searched, brief_id)

    return SonarSearchSummary(
        brief_id=brief_id,
        new_candidates=saved,
        searched_profiles=len(usernames),
        failed_profiles=failed,
    )
