"""Rule-based candidate scoring.

Each rule looks at one ProfileMetrics snapshot and the hiring brief and returns
a RuleEffect (points plus an optional reason or concern) or None when it does
not apply. ``score_candidate`` folds RULES over a base of 50 and clamps the
total to 0-100.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from models import CandidateScore, HiringBrief, ProfileMetrics

BASE_SCORE = 50
MIN_SCORE = 0
MAX_SCORE = 100


@dataclass(frozen=True)
class RuleEffect:
    delta: int = 0
    reason: Optional[str] = None
    concern: Optional[str] = None


Rule = Callable[[ProfileMetrics, HiringBrief], Optional[RuleEffect]]


def matched_skills(metrics: ProfileMetrics, brief: HiringBrief) -> list[str]:
    """Brief skills found in the profile's languages or topics (substring either way)."""
    known = [lang.name.lower() for lang in metrics.languages] + [t.lower() for t in metrics.topics]
    known = [k for k in known if k]
    matched = []
    for skill in brief.required_skills:
        s = skill.lower()
        if any(s in k or k in s for k in known):
            matched.append(skill)
    return matched


# ============================================================================
# Rules
# ============================================================================

def skills_rule(metrics: ProfileMetrics, brief: HiringBrief) -> Optional[RuleEffect]:
    if not brief.required_skills:
        return None
    matched = matched_skills(metrics, brief)
    if matched:
        return RuleEffect(min(8 * len(matched), 25), reason=f"Knows {', '.join(matched)}")
    return RuleEffect(-15, concern=f"No matching skills for: {', '.join(brief.required_skills)}")


def primary_language_rule(metrics: ProfileMetrics, brief: HiringBrief) -> Optional[RuleEffect]:
    if not brief.required_skills or not metrics.languages:
        return None
    if not matched_skills(metrics, brief):
        return None
    primary = metrics.languages[0]
    if any(skill.lower() in primary.name.lower() for skill in brief.required_skills):
        return RuleEffect(5, reason=f"{primary.name} is primary language ({primary.percentage}%)")
    return None


def location_rule(metrics: ProfileMetrics, brief: HiringBrief) -> Optional[RuleEffect]:
    if not brief.preferred_location or not metrics.location:
        return None
    wanted = brief.preferred_location.lower()
    actual = metrics.location.lower()
    if wanted in actual or actual in wanted:
        return RuleEffect(12, reason=f"Located in {metrics.location}")
    return None


def maturity_rule(metrics: ProfileMetrics, brief: HiringBrief) -> Optional[RuleEffect]:
    age, repos = metrics.account_age_years, metrics.public_repos
    if age >= 5 and repos >= 20:
        return RuleEffect(12, reason=f"{age:g}+ years on GitHub with {repos} repos")
    if age >= 3 and repos >= 10:
        return RuleEffect(8)
    if age >= 1 and repos >= 5:
        return RuleEffect(4)
    return None


def activity_rule(metrics: ProfileMetrics, brief: HiringBrief) -> Optional[RuleEffect]:
    level = metrics.activity_level
    if level == "very_active":
        return RuleEffect(15, reason=f"Very active ({metrics.recent_events_count} events in 30 days)")
    if level == "active":
        return RuleEffect(10, reason="Active contributor")
    if level == "moderate":
        return RuleEffect(5)
    if level == "low":
        return RuleEffect(0, concern="Low recent activity")
    return RuleEffect(-8, concern="Inactive on GitHub recently")


def recent_repos_rule(metrics: ProfileMetrics, brief: HiringBrief) -> Optional[RuleEffect]:
    if metrics.recently_active_repos >= 5:
        return RuleEffect(5, reason=f"{metrics.recently_active_repos} repos updated recently")
    return None


def stars_rule(metrics: ProfileMetrics, brief: HiringBrief) -> Optional[RuleEffect]:
    stars = metrics.total_stars
    if stars >= 1000:
        return RuleEffect(18, reason=f"{stars:,} total stars")
    if stars >= 100:
        return RuleEffect(10, reason=f"{stars} stars on projects")
    if stars >= 10:
        return RuleEffect(4)
    return None


def followers_rule(metrics: ProfileMetrics, brief: HiringBrief) -> Optional[RuleEffect]:
    if metrics.followers >= 1000:
        return RuleEffect(8, reason=f"{metrics.followers:,} followers")
    if metrics.followers >= 100:
        return RuleEffect(4)
    return None


def project_type_rule(metrics: ProfileMetrics, brief: HiringBrief) -> Optional[RuleEffect]:
    if not brief.project_type:
        return None
    wanted = brief.project_type.lower()
    in_topics = any(wanted in t.lower() for t in metrics.topics)
    in_repos = any(
        wanted in r.name.lower() or wanted in (r.description or "").lower()
        for r in metrics.top_repos
    )
    if in_topics or in_repos:
        return RuleEffect(10, reason=f"Has relevant {brief.project_type} projects")
    return None


def hireable_rule(metrics: ProfileMetrics, brief: HiringBrief) -> Optional[RuleEffect]:
    if metrics.signals.is_hireable:
        return RuleEffect(5, reason="Open to opportunities")
    return None


def contactable_rule(metrics: ProfileMetrics, brief: HiringBrief) -> Optional[RuleEffect]:
    if metrics.signals.has_email and metrics.signals.has_bio:
        return RuleEffect(3)
    return None


def sparse_profile_rule(metrics: ProfileMetrics, brief: HiringBrief) -> Optional[RuleEffect]:
    if not metrics.signals.has_bio and not metrics.signals.has_website:
        return RuleEffect(0, concern="Limited profile information")
    return None


def contribution_mix_rule(metrics: ProfileMetrics, brief: HiringBrief) -> Optional[RuleEffect]:
    prs = metrics.contribution_stats.pr_events
    issues = metrics.contribution_stats.issue_events
    if prs >= 5 and issues >= 3:
        return RuleEffect(5, reason="Active in PRs and issues")
    if prs >= 3 or issues >= 5:
        return RuleEffect(2)
    return None


RULES: tuple[Rule, ...] = (
    skills_rule,
    primary_language_rule,
    location_rule,
    maturity_rule,
    activity_rule,
    recent_repos_rule,
    stars_rule,
    followers_rule,
    project_type_rule,
    hireable_rule,
    contactable_rule,
    sparse_profile_rule,
    contribution_mix_rule,
)


def clamp(score: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, score))


def score_candidate(
    metrics: ProfileMetrics,
    brief: HiringBrief,
    rules: tuple[Rule, ...] = RULES,
) -> CandidateScore:
    """Score one candidate against a brief. Deterministic and side-effect free."""
    total = BASE_SCORE
    reasons: list[str] = []
    concerns: list[str] = []

    for rule in rules:
        effect = rule(metrics, brief)
        if effect is None:
            continue
        total += effect.delta
        if effect.reason:
            reasons.append(effect.reason)
        if effect.concern:
            concerns.append(effect.concern)

    return CandidateScore(
        username=metrics.username,
        name=metrics.name,
        location=metrics.location,
        bio=metrics.bio,
        score=clamp(total),
        match_reasons=reasons,
        concerns=concerns,
        activity_level=metrics.activity_level,
        top_languages=[lang.name for lang in metrics.languages[:5]],
        topics=metrics.topics[:8],
        total_stars=metrics.total_stars,
        followers=metrics.followers,
        public_repos=metrics.public_repos,
        recently_active_repos=metrics.recently_active_repos,
        signals=metrics.signals,
        top_repos=metrics.top_repos[:3],
    )
