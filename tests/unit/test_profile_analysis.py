"""Tests for the brief-independent profile assessment and the recruiter summary."""

import pytest

from fakes import NOW, FakeChatModel, FakeGitHubClient, days_ago, make_events, make_profile, make_repo
from github.client import NotFoundError
from github.metrics import extract_metrics
from github.profile_analysis import (
    analyze_profile,
    assess_profile,
    contribution_pattern,
    estimate_experience,
    fallback_summary,
    identify_strengths,
    recommendation_for,
    summarize_profile,
)
from models import ProfileAnalysis


def _assess(profile: dict, repos: list[dict], events: list[dict]):
    metrics = extract_metrics(profile, repos, events, now=NOW)
    return metrics, assess_profile(profile, repos, events, metrics, now=NOW)


def _seasoned():
    profile = make_profile("alice", name="Alice", followers=150, created_at=days_ago(365 * 10))
    repos = [
        make_repo(f"r{i}", owner="alice", language="Rust", size=10, stargazers_count=5,
                  description="A small but well documented tool", topics=["cli"])
        for i in range(60)
    ]
    return profile, repos, make_events(60)


def _newcomer():
    profile = make_profile("newbie", created_at=days_ago(100))
    repos = [make_repo("own", owner="newbie")] + [
        make_repo(f"fork{i}", owner="newbie", fork=True) for i in range(3)
    ]
    return profile, repos, []


class TestHeuristics:
    def test_experience_bands(self) -> None:
        assert estimate_experience(9, 60, 150) == "Senior (8+ years)"
        assert estimate_experience(9, 60, 50) == "Mid-level (5-8 years)"
        assert estimate_experience(3, 12, 0) == "Junior (2-5 years)"
        assert estimate_experience(3, 5, 0) == "Entry-level (0-2 years)"

    def test_recommendation_thresholds(self) -> None:
        assert recommendation_for(75) == "strong"
        assert recommendation_for(74) == "good"
        assert recommendation_for(55) == "good"
        assert recommendation_for(54) == "moderate"
        assert recommendation_for(35) == "moderate"
        assert recommendation_for(34) == "weak"

    def test_contribution_pattern(self) -> None:
        assert contribution_pattern(make_events(10)) == "Code-focused (mostly direct commits)"
        prs = make_events(3, type="PullRequestEvent") + make_events(2)
        assert contribution_pattern(prs) == "Collaborative (mostly pull requests)"
        issues = make_events(3, type="IssuesEvent") + make_events(2) + make_events(1, type="PullRequestEvent")
        assert contribution_pattern(issues) == "Community-oriented (issue discussions)"
        assert contribution_pattern([]) == "Balanced"

    def test_no_ratio_strengths_without_repositories(self) -> None:
        assert identify_strengths([], [], followers=0) == []


class TestAssessProfile:
    def test_seasoned_developer(self) -> None:
        _, assessment = _assess(*_seasoned())
        assert assessment.estimated_experience == "Senior (8+ years)"
        assert assessment.strengths == [
            "Popular open source projects",
            "Community recognition (starred projects)",
            "Strong developer following",
            "Active community presence",
            "Modern language adoption",
        ]
        assert assessment.concerns == []
        assert assessment.overall_score == 100
        assert assessment.recommendation == "strong"
        assert assessment.last_activity_days == 1
        assert assessment.contribution_pattern == "Code-focused (mostly direct commits)"

    def test_newcomer_with_forks(self) -> None:
        metrics, assessment = _assess(*_newcomer())
        assert metrics.activity_level == "inactive"
        assert assessment.estimated_experience == "Entry-level (0-2 years)"
        assert assessment.strengths == []
        assert assessment.concerns == [
            "Mostly forked repositories (limited original work)",
            "Poor documentation habits",
            "New GitHub account (less than 1 year)",
        ]
        # 50 + 0.2 for one original repo - 3 concerns * 5
        assert assessment.overall_score == 35
        assert assessment.recommendation == "moderate"

    def test_no_events_means_unknown_last_activity(self) -> None:
        _, assessment = _assess(*_newcomer())
        assert assessment.last_activity_days is None
        assert not any("activity" in c for c in assessment.concerns)

    @pytest.mark.parametrize("age, concern", [
        (200, "No activity in 6+ months"),
        (100, "Limited recent activity (90+ days)"),
    ])
    def test_stale_activity(self, age: int, concern: str) -> None:
        profile = make_profile("old", created_at=days_ago(365 * 4))
        _, assessment = _assess(profile, [make_repo("a", description="Long enough description here")],
                                make_events(3, age_days=age))
        assert assessment.last_activity_days == age
        assert concern in assessment.concerns

    def test_score_is_clamped(self) -> None:
        profile = make_profile("ghost", created_at=days_ago(30))
        repos = [make_repo(f"f{i}", fork=True, created_at=days_ago(800)) for i in range(10)]
        _, assessment = _assess(profile, repos, make_events(1, age_days=400))
        assert 0 <= assessment.overall_score <= 100
        assert len(assessment.concerns) == 4
        assert assessment.recommendation == "weak"


class TestAnalyzeProfile:
    async def test_fetches_and_assesses(self) -> None:
        profile, repos, events = _seasoned()
        client = FakeGitHubClient(profiles={"alice": profile}, repos={"alice": repos}, events={"alice": events})
        analysis = await analyze_profile(client, "alice", now=NOW)
        assert analysis.metrics.username == "alice"
        assert len(analysis.metrics.top_repos) == 6
        assert analysis.assessment.recommendation == "strong"

    async def test_missing_user_raises(self) -> None:
        with pytest.raises(NotFoundError):
            await analyze_profile(FakeGitHubClient(), "nobody", now=NOW)


class TestSummarizeProfile:
    @pytest.fixture
    def analysis(self) -> ProfileAnalysis:
        metrics, assessment = _assess(*_seasoned())
        return ProfileAnalysis(metrics=metrics, assessment=assessment)

    async def test_model_summary(self, analysis: ProfileAnalysis) -> None:
        model = FakeChatModel(["**Quick Take:** Move forward.\n"])
        summary = await summarize_profile(analysis, model=model)
        assert summary.generated_by == "llm"
        assert summary.summary == "**Quick Take:** Move forward."
        prompt = model.calls[0][1].content
        assert "@alice" in prompt
        assert "Recommendation: **STRONG**" in prompt

    async def test_model_failure_uses_template(self, analysis: ProfileAnalysis) -> None:
        summary = await summarize_profile(analysis, model=FakeChatModel([RuntimeError("model offline")]))
        assert summary.generated_by == "fallback"
        assert summary.summary == fallback_summary(analysis)
        assert "@alice" in summary.summary
        assert "Roles centred on Rust" in summary.summary

    async def test_empty_reply_uses_template(self, analysis: ProfileAnalysis) -> None:
        summary = await summarize_profile(analysis, model=FakeChatModel(["   "]))
        assert summary.generated_by == "fallback"
