"""
Brief-independent profile assessment and the recruiter summary built on it.

assess_profile() is pure: experience estimate, strengths, concerns, a 0-100
overall score and a strong/good/moderate/weak recommendation.
summarize_profile() asks the chat model for a short markdown write-up and
falls back to a templated one when the model is unavailable.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Optional

from langchain_core.messages import HumanMessage, SystemMessage

from llm import get_chat_model, message_text
from models import (
    LanguageShare,
    ProfileAnalysis,
    ProfileAssessment,
    ProfileMetrics,
    ProfileSummary,
    Recommendation,
)
from .client import GitHubClient
from .metrics import extract_metrics, fetch_profile_data, parse_ts

logger = logging.getLogger(__name__)

SECONDS_PER_YEAR = 365 * 24 * 3600
MAX_STRENGTHS = 5
MAX_CONCERNS = 4
MODERN_LANGUAGES = {"TypeScript", "Rust", "Go"}

ACTIVITY_BONUS = {
    "very_active": 20,
    "active": 15,
    "moderate": 10,
    "low": 5,
    "inactive": 0,
}


def _years_since(ts: Optional[str], now: datetime) -> Optional[float]:
    dt = parse_ts(ts)
    if dt is None:
        return None
    return (now - dt).total_seconds() / SECONDS_PER_YEAR


def estimate_experience(account_age: float, repo_count: int, total_stars: int) -> str:
    if account_age >= 8 and repo_count >= 50 and total_stars >= 100:
        return "Senior (8+ years)"
    if account_age >= 5 and repo_count >= 30:
        return "Mid-level (5-8 years)"
    if account_age >= 2 and repo_count >= 10:
        return "Junior (2-5 years)"
    return "Entry-level (0-2 years)"


def identify_strengths(repos: list[dict], languages: list[LanguageShare], followers: int) -> list[str]:
    strengths = []
    total_stars = sum(r.get("stargazers_count") or 0 for r in repos)
    if total_stars >= 100:
        strengths.append("Popular open source projects")
    if total_stars >= 10:
        strengths.append("Community recognition (starred projects)")

    if followers >= 100:
        strengths.append("Strong developer following")
    if followers >= 20:
        strengths.append("Active community presence")

    if len(languages) >= 5:
        strengths.append("Versatile (multiple languages)")
    if any(lang.name in MODERN_LANGUAGES for lang in languages):
        strengths.append("Modern language adoption")

    if sum(1 for r in repos if not r.get("fork")) >= 20:
        strengths.append("Prolific project creator")

    # ratio checks mean nothing without repositories
    if repos:
        documented = sum(1 for r in repos if len(r.get("description") or "") > 20)
        if documented >= len(repos) * 0.5:
            strengths.append("Good documentation practices")
        with_topics = sum(1 for r in repos if r.get("topics"))
        if with_topics >= len(repos) * 0.3:
            strengths.append("Well-organized repositories")

    return strengths[:MAX_STRENGTHS]


def identify_concerns(
    repos: list[dict],
    last_activity_days: Optional[int],
    account_age: float,
    now: datetime,
) -> list[str]:
    concerns = []
    if last_activity_days is not None:
        if last_activity_days > 180:
            concerns.append("No activity in 6+ months")
        elif last_activity_days > 90:
            concerns.append("Limited recent activity (90+ days)")

    if repos:
        forks = sum(1 for r in repos if r.get("fork"))
        if forks / len(repos) > 0.7:
            concerns.append("Mostly forked repositories (limited original work)")

        abandoned = sum(
            1
            for r in repos
            if (_years_since(r.get("created_at"), now) or 0) > 1
            and not r.get("stargazers_count")
            and not r.get("description")
        )
        if abandoned > len(repos) * 0.5:
            concerns.append("Many incomplete/abandoned projects")

        undocumented = sum(1 for r in repos if not r.get("description"))
        if undocumented > len(repos) * 0.7:
            concerns.append("Poor documentation habits")

    if account_age < 1:
        concerns.append("New GitHub account (less than 1 year)")

    return concerns[:MAX_CONCERNS]


def overall_score(
    metrics: ProfileMetrics,
    repos: list[dict],
    strengths: list[str],
    concerns: list[str],
) -> int:
    score = 50.0
    score += ACTIVITY_BONUS[metrics.activity_level]
    score += min(15, sum(r.get("stargazers_count") or 0 for r in repos) / 10)
    score += min(10, metrics.followers / 20)
    score += min(10, sum(1 for r in repos if not r.get("fork")) / 5)
    score += len(strengths) * 2
    score -= len(concerns) * 5
    # half-up rounding
    return max(0, min(100, math.floor(score + 0.5)))


def recommendation_for(score: int) -> Recommendation:
    if score >= 75:
        return "strong"
    if score >= 55:
        return "good"
    if score >= 35:
        return "moderate"
    return "weak"


def contribution_pattern(events: list[dict]) -> str:
    types = [e.get("type") for e in events]
    pushes = types.count("PushEvent")
    prs = types.count("PullRequestEvent")
    issues = types.count("IssuesEvent")

    if pushes > prs * 2 and pushes > issues * 2:
        return "Code-focused (mostly direct commits)"
    if prs > pushes:
        return "Collaborative (mostly pull requests)"
    if issues > pushes and issues > prs:
        return "Community-oriented (issue discussions)"
    return "Balanced"


def _last_activity_days(events: list[dict], now: datetime) -> Optional[int]:
    times = [t for t in (parse_ts(e.get("created_at")) for e in events) if t]
    if not times:
        return None
    return max(0, (now - max(times)).days)


def _average_repo_age(repos: list[dict], now: datetime) -> float:
    ages = [a for a in (_years_since(r.get("created_at"), now) for r in repos) if a is not None]
    if not ages:
        return 0.0
    return round(sum(ages) / len(ages), 1)


def assess_profile(
    profile: dict,
    repos: list[dict],
    events: list[dict],
    metrics: ProfileMetrics,
    now: Optional[datetime] = None,
) -> ProfileAssessment:
    """Score a profile on its own merits, without a hiring brief. Pure."""
    now = now or datetime.now(timezone.utc)
    account_age = _years_since(profile.get("created_at"), now) or 0.0
    total_stars = sum(r.get("stargazers_count") or 0 for r in repos)
    last_active = _last_activity_days(events, now)

    strengths = identify_strengths(repos, metrics.languages, metrics.followers)
    concerns = identify_concerns(repos, last_active, account_age, now)
    score = overall_score(metrics, repos, strengths, concerns)

    return ProfileAssessment(
        estimated_experience=estimate_experience(account_age, len(repos), total_stars),
        last_activity_days=last_active,
        average_repo_age_years=_average_repo_age(repos, now),
        contribution_pattern=contribution_pattern(events),
        strengths=strengths,
        concerns=concerns,
        overall_score=score,
        recommendation=recommendation_for(score),
    )


async def analyze_profile(
    client: GitHubClient,
    username: str,
    now: Optional[datetime] = None,
) -> ProfileAnalysis:
    """Metrics plus assessment for one user. Raises GitHubAPIError when the profile is missing."""
    profile, repos, events = await fetch_profile_data(client, username)
    metrics = extract_metrics(profile, repos, events, now=now, top_repo_limit=6)
    assessment = assess_profile(profile, repos, events, metrics, now=now)
    logger.info(
        "[Profile] %s scored %d (%s)", username, assessment.overall_score, assessment.recommendation
    )
    return ProfileAnalysis(metrics=metrics, assessment=assessment)


# ============================================================================
# Recruiter summary
# ============================================================================

SUMMARY_SYSTEM = "You are an expert technical recruiter creating actionable insights for hiring managers."


def _bullets(items: list[str], empty: str) -> str:
    return "\n".join(f"- {item}" for item in items) if items else f"- {empty}"


def summary_prompt(analysis: ProfileAnalysis) -> str:
    m, a = analysis.metrics, analysis.assessment
    last_active = f"{a.last_activity_days} days since last activity" if a.last_activity_days is not None \
        else "no recent public events"
    languages = "\n".join(f"- {lang.name}: {lang.percentage}%" for lang in m.languages[:6]) or "- None identified"
    projects = "\n".join(
        f"- **{r.name}** ({r.language or 'Mixed'}, {r.stars} stars): {r.description or 'No description'}"
        for r in m.top_repos[:4]
    ) or "- None"
    return f"""## Candidate Data

**Profile:**
- Username: @{m.username}
- Name: {m.name or "Not provided"}
- Bio: {m.bio or "Not provided"}
- Location: {m.location or "Not provided"}
- Company: {m.company or "Not provided"}
- Followers: {m.followers} | Public repos: {m.public_repos}

**Assessment Metrics:**
- Account age: {m.account_age_years} years
- Estimated experience: {a.estimated_experience}
- Activity level: {m.activity_level} ({last_active})
- Overall score: {a.overall_score}/100
- Recommendation: **{a.recommendation.upper()}**

**Technical Stack:**
{languages}

**Domain Expertise (Topics):**
{", ".join(m.topics[:8]) or "None identified"}

**Key Strengths:**
{_bullets(a.strengths, "None identified")}

**Areas of Concern:**
{_bullets(a.concerns, "None identified")}

**Notable Projects:**
{projects}

**Contribution Pattern:** {a.contribution_pattern}

## Your Task

Write a **recruiter-focused summary** in markdown that helps hiring managers make quick decisions:

1. **Quick Take** (1 sentence): the bottom-line assessment. Would you recommend moving forward?
2. **Strengths for Hiring** (2-3 bullets): what makes this candidate valuable, with specific evidence.
3. **Interview Focus Areas** (2-3 bullets): what interviewers should dig into, including any yellow flags.
4. **Best Fit For**: one line describing ideal role types.

Keep it concise and evidence-based. Reference specific technologies, projects or patterns from the data."""


def fallback_summary(analysis: ProfileAnalysis) -> str:
    """Templated summary used when the chat model cannot answer."""
    m, a = analysis.metrics, analysis.assessment
    languages = ", ".join(lang.name for lang in m.languages[:3])
    focus = a.concerns or ["Depth of experience beyond public repositories"]
    fit = f"Roles centred on {languages}" if languages else "Generalist roles"
    return (
        f"**Quick Take:** @{m.username} rates **{a.recommendation.upper()}** "
        f"({a.overall_score}/100): {a.estimated_experience}, {m.activity_level.replace('_', ' ')} on GitHub.\n\n"
        f"**Strengths for Hiring:**\n{_bullets(a.strengths, 'No standout public signals yet')}\n\n"
        f"**Interview Focus Areas:**\n{_bullets(focus, '')}\n\n"
        f"**Best Fit For:** {fit}"
    )


async def summarize_profile(analysis: ProfileAnalysis, model=None) -> ProfileSummary:
    """Markdown recruiter summary. Never raises for model failures."""
    username = analysis.metrics.username
    try:
        chat_model = model or get_chat_model()
        reply = await chat_model.ainvoke([
            SystemMessage(content=SUMMARY_SYSTEM),
            HumanMessage(content=summary_prompt(analysis)),
        ])
        text = message_text(reply).strip()
    except Exception as e:
        logger.warning("[Profile] Summary generation failed for %s: %s", username, e)
        text = ""
    if text:
        return ProfileSummary(username=username, summary=text, generated_by="llm")
    return ProfileSummary(username=username, summary=fallback_summary(analysis), generated_by="fallback")
