"""Tests for GitHub profile metrics extraction and the API client error mapping."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from fakes import NOW, days_ago, make_events, make_profile, make_repo
from github.client import GitHubAPIError, GitHubClient, NotFoundError, RateLimitError
from github.metrics import classify_activity, extract_metrics, fetch_profile_metrics, rank_languages


def _client(handler, retries: int = 1) -> GitHubClient:
    return GitHubClient(token="test-token", transport=httpx.MockTransport(handler), retries=retries)


class TestClassifyActivity:
    def test_thresholds(self) -> None:
        assert classify_activity(50, 50) == "very_active"
        assert classify_activity(49, 49) == "active"
        assert classify_activity(20, 20) == "active"
        assert classify_activity(19, 19) == "moderate"
        assert classify_activity(5, 5) == "moderate"
        assert classify_activity(4, 5) == "low"
        assert classify_activity(0, 4) == "inactive"


class TestRankLanguages:
    def test_weighted_by_size(self) -> None:
        repos = [
            make_repo("a", language="Python", size=600),
            make_repo("b", language="Go", size=300),
            make_repo("c", language="Python", size=100),
            make_repo("d", language=None, size=5000),
            make_repo("e", language="Rust", size=0),
        ]
        shares = rank_languages(repos)
        assert [(s.name, s.percentage) for s in shares] == [("Python", 70), ("Go", 30)]

    def test_percentages_never_exceed_100(self) -> None:
        repos = [make_repo(str(i), language=lang, size=1) for i, lang in enumerate(["A", "B", "C"])]
        shares = rank_languages(repos)
        assert sum(s.percentage for s in shares) <= 100
        assert all(s.percentage == 33 for s in shares)

    def test_limit(self) -> None:
        repos = [make_repo(str(i), language=f"L{i}", size=10 + i) for i in range(12)]
        assert len(rank_languages(repos)) == 8

    def test_no_languages(self) -> None:
        assert rank_languages([make_repo("a")]) == []


class TestExtractMetrics:
    def test_forks_excluded_from_repo_stats(self) -> None:
        repos = [
            make_repo("own", stargazers_count=40, forks_count=4, language="Go", size=10, topics=["cli", "go"]),
            make_repo("forked", fork=True, stargazers_count=1000, forks_count=100, language="C", size=99999,
                      topics=["kernel"]),
        ]
        metrics = extract_metrics(make_profile("octocat"), repos, [], now=NOW)
        assert metrics.total_stars == 40
        assert metrics.total_forks == 4
        assert [lang.name for lang in metrics.languages] == ["Go"]
        assert metrics.topics == ["cli", "go"]
        assert [r.name for r in metrics.top_repos] == ["own"]

    def test_account_age_rounded(self) -> None:
        profile = make_profile("octocat", created_at=days_ago(365 * 3 + 40))
        assert extract_metrics(profile, [], [], now=NOW).account_age_years == 3.1

    def test_activity_windows(self) -> None:
        events = make_events(50, age_days=1)
        assert extract_metrics(make_profile("u"), [], events, now=NOW).activity_level == "very_active"
        events = make_events(49, age_days=1)
        metrics = extract_metrics(make_profile("u"), [], events, now=NOW)
        assert metrics.activity_level == "active"
        assert metrics.recent_events_count == 49
        events = make_events(6, age_days=45)
        assert extract_metrics(make_profile("u"), [], events, now=NOW).activity_level == "low"
        events = make_events(10, age_days=90)
        assert extract_metrics(make_profile("u"), [], events, now=NOW).activity_level == "inactive"

    def test_contribution_stats(self) -> None:
        events = (
            make_events(3, type="PushEvent")
            + make_events(2, type="PullRequestEvent")
            + make_events(1, type="IssuesEvent")
            + make_events(4, type="IssueCommentEvent")
            + make_events(7, type="WatchEvent")
        )
        stats = extract_metrics(make_profile("u"), [], events, now=NOW).contribution_stats
        assert (stats.push_events, stats.pr_events, stats.issue_events) == (3, 2, 5)

    def test_recently_active_and_top_repo_limit(self) -> None:
        repos = [make_repo(f"r{i}", stargazers_count=i, pushed_at=days_ago(i * 10)) for i in range(1, 8)]
        metrics = extract_metrics(make_profile("u"), repos, [], now=NOW, top_repo_limit=6)
        assert metrics.recently_active_repos == 2
        assert [r.name for r in metrics.top_repos] == ["r7", "r6", "r5", "r4", "r3", "r2"]

    def test_topics_capped_in_first_seen_order(self) -> None:
        repos = [make_repo(f"r{i}", topics=[f"t{i}", "shared"]) for i in range(20)]
        topics = extract_metrics(make_profile("u"), repos, [], now=NOW).topics
        assert len(topics) == 15
        assert topics[:3] == ["t0", "shared", "t1"]

    def test_signals(self) -> None:
        profile = make_profile("u", hireable=True, email="u@example.com", bio="hi", blog="")
        signals = extract_metrics(profile, [], [], now=NOW).signals
        assert signals.is_hireable and signals.has_email and signals.has_bio
        assert not signals.has_website


class TestFetchProfileMetrics:
    async def test_repo_and_event_failures_become_empty(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/users/octocat":
                return httpx.Response(200, json=make_profile("octocat", public_repos=3))
            return httpx.Response(500)

        async with _client(handler) as client:
            metrics = await fetch_profile_metrics(client, "octocat", now=NOW)
        assert metrics.username == "octocat"
        assert metrics.top_repos == []
        assert metrics.activity_level == "inactive"

    async def test_not_found_message(self) -> None:
        async with _client(lambda request: httpx.Response(404)) as client:
            with pytest.raises(NotFoundError, match='User "ghost" not found on GitHub'):
                await fetch_profile_metrics(client, "ghost")

    async def test_rate_limit_message(self) -> None:
        async with _client(lambda request: httpx.Response(403)) as client:
            with pytest.raises(RateLimitError) as exc_info:
                await fetch_profile_metrics(client, "octocat")
        assert exc_info.value.message == "GitHub API rate limit exceeded. Please try again later."

    async def test_other_status_message(self) -> None:
        async with _client(lambda request: httpx.Response(418)) as client:
            with pytest.raises(GitHubAPIError, match="GitHub API error: 418"):
                await client.get_user("octocat")


class TestClientRetries:
    async def test_retries_server_errors(self) -> None:
        responses = [httpx.Response(502), httpx.Response(200, json=make_profile("octocat"))]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        with patch("github.client.asyncio.sleep", new=AsyncMock()) as sleep:
            async with _client(handler, retries=3) as client:
                profile = await client.get_user("octocat")
        assert profile["login"] == "octocat"
        sleep.assert_awaited_once_with(1)

    async def test_sends_token(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=[])

        async with _client(handler) as client:
            assert await client.get_user_orgs("octocat") == []
        assert seen["auth"] == "Bearer test-token"

    async def test_invalid_search_query(self) -> None:
        async with _client(lambda request: httpx.Response(422)) as client:
            with pytest.raises(GitHubAPIError, match="Invalid search query"):
                await client.search_users("language:")

    async def test_zero_retries_is_single_attempt(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            return httpx.Response(502)

        async with _client(handler, retries=0) as client:
            assert client.retries == 0
            with pytest.raises(GitHubAPIError, match="GitHub API error: 502"):
                await client.get_user("octocat")
        assert calls == ["/users/octocat"]

    async def test_empty_profile_body_is_an_error(self) -> None:
        async with _client(lambda request: httpx.Response(200)) as client:
            with pytest.raises(GitHubAPIError, match="Unexpected response"):
                await client.get_user("octocat")
