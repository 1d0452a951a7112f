"""Rank a batch of GitHub users against a hiring brief."""

import asyncio
import logging
from typing import Optional, Protocol

from github.client import GitHubAPIError, GitHubClient
from github.metrics import fetch_profile_metrics
from models import CandidateScore, FailedProfile, HiringBrief, ProfileMetrics, RankingResult
from scoring import score_candidate

logger = logging.getLogger(__name__)

MAX_PROFILES = 10
TOP_N = 5

RATE_LIMIT_SUMMARY = "GitHub API rate limit exceeded. Please wait a moment and try again."


class CandidateHistory(Protocol):
    def add_candidates(
        self,
        auth_user_id: str,
        candidates: list[CandidateScore],
        search_query: Optional[str] = None,
    ) -> int: ...


async def metrics_or_failure(client: GitHubClient, username: str) -> ProfileMetrics | FailedProfile:
    try:
        return await fetch_profile_metrics(client, username)
    except GitHubAPIError as e:
        return FailedProfile(username=username, error=e.message)
    except Exception as e:
        logger.exception("[Ranking] Unexpected failure analyzing %s", username)
        return FailedProfile(username=username, error=str(e) or type(e).__name__)


def _failure_summary(failed: list[FailedProfile]) -> str:
    first = failed[0].error
    if "rate limit" in first.lower():
        return RATE_LIMIT_SUMMARY
    return f"Could not analyze any profiles. {len(failed)} profile(s) failed: {first}"


async def _record(
    history: CandidateHistory,
    auth_user_id: str,
    candidates: list[CandidateScore],
    search_query: Optional[str],
) -> None:
    try:
        await asyncio.to_thread(history.add_candidates, auth_user_id, candidates, search_query)
    except Exception:
        logger.exception("[Ranking] Failed to save search history for %s", auth_user_id)


async def rank_candidates(
    usernames: list[str],
    brief: HiringBrief,
    search_query: Optional[str] = None,
    *,
    client: GitHubClient,
    history: Optional[CandidateHistory] = None,
    auth_user_id: Optional[str] = None,
    max_profiles: int = MAX_PROFILES,
    top_n: int = TOP_N,
) -> RankingResult:
    """Analyze up to ``max_profiles`` users concurrently, score them and keep the best ``top_n``.

    Profiles that cannot be fetched are reported in ``failed_profiles``. When a
    user id and history store are given, the returned candidates are appended to
    search history; a failed write is logged and does not affect the result.
    """
    batch = list(dict.fromkeys(u.strip() for u in usernames if u and u.strip()))[:max_profiles]
    logger.info("[Ranking] Analyzing %d profile(s)", len(batch))

    outcomes = await asyncio.gather(*(metrics_or_failure(client, username) for username in batch))

    candidates: list[CandidateScore] = []
    failed: list[FailedProfile] = []
    for outcome in outcomes:
        if isinstance(outcome, FailedProfile):
            logger.warning("[Ranking] %s failed: %s", outcome.username, outcome.error)
            failed.append(outcome)
        else:
            candidates.append(score_candidate(outcome, brief))

    if not candidates and failed:
        return RankingResult(
            brief=brief,
            total_analyzed=len(batch),
            failed_profiles=failed,
            error=_failure_summary(failed),
        )

    # stable sort keeps input order among equal scores
    candidates.sort(key=lambda c: c.score, reverse=True)
    top = candidates[:top_n]

    if history is not None and auth_user_id and top:
        await _record(history, auth_user_id, top, search_query)

    return RankingResult(
        candidates=top,
        brief=brief,
        total_analyzed=len(batch),
        failed_profiles=failed or None,
    )
