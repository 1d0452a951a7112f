"""Tests for batch candidate ranking."""

import httpx

from fakes import FakeGitHubClient, make_events, make_profile, make_repo
from github.client import GitHubClient
from models import HiringBrief
from ranking import RATE_LIMIT_SUMMARY, rank_candidates


class RecordingHistory:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.saved = []

    def add_candidates(self, auth_user_id, candidates, search_query=None) -> int:
        if self.fail:
            raise RuntimeError("database is locked")
        self.saved.append((auth_user_id, [c.username for c in candidates], search_query))
        return len(candidates)


def _client() -> FakeGitHubClient:
    return FakeGitHubClient(
        profiles={
            "star": make_profile("star", location="Sydney", bio="Rustacean", public_repos=30),
            "quiet": make_profile("quiet"),
            "mid": make_profile("mid", bio="Hello"),
        },
        repos={
            "star": [make_repo("engine", owner="star", language="Rust", size=500, stargazers_count=2000)],
            "mid": [make_repo("tool", owner="mid", language="Rust", size=100, stargazers_count=20)],
        },
        events={"star": make_events(60), "mid": make_events(10)},
    )


class TestRankCandidates:
    async def test_sorted_by_score(self) -> None:
        brief = HiringBrief(required_skills=["rust"], preferred_location="sydney")
        result = await rank_candidates(["quiet", "mid", "star"], brief, client=_client())
        assert [c.username for c in result.candidates] == ["star", "mid", "quiet"]
        assert result.total_analyzed == 3
        assert result.failed_profiles is None
        scores = [c.score for c in result.candidates]
        assert scores == sorted(scores, reverse=True)

    async def test_top_n_and_max_profiles(self) -> None:
        profiles = {f"u{i}": make_profile(f"u{i}") for i in range(12)}
        client = FakeGitHubClient(profiles=profiles)
        result = await rank_candidates(list(profiles), HiringBrief(), client=client)
        assert result.total_analyzed == 10
        assert len(result.candidates) == 5
        assert client.requested == [f"u{i}" for i in range(10)]
        # equal scores keep input order
        assert [c.username for c in result.candidates] == ["u0", "u1", "u2", "u3", "u4"]

    async def test_duplicates_and_blanks_dropped(self) -> None:
        client = _client()
        result = await rank_candidates(["mid", " mid ", "", "star"], HiringBrief(), client=client)
        assert result.total_analyzed == 2
        assert sorted(client.requested) == ["mid", "star"]

    async def test_partial_failure(self) -> None:
        result = await rank_candidates(["star", "ghost"], HiringBrief(), client=_client())
        assert [c.username for c in result.candidates] == ["star"]
        assert [(f.username, f.error) for f in result.failed_profiles] == [
            ("ghost", 'User "ghost" not found on GitHub')
        ]
        assert result.error is None

    async def test_all_failed(self) -> None:
        result = await rank_candidates(["ghost", "phantom"], HiringBrief(), client=_client())
        assert result.candidates == []
        assert result.error == (
            'Could not analyze any profiles. 2 profile(s) failed: User "ghost" not found on GitHub'
        )

    async def test_rate_limited(self) -> None:
        client = FakeGitHubClient(profiles={"a": make_profile("a")}, rate_limited=True)
        result = await rank_candidates(["a"], HiringBrief(), client=client)
        assert result.error == RATE_LIMIT_SUMMARY

    async def test_records_history(self) -> None:
        history = RecordingHistory()
        await rank_candidates(
            ["star", "mid"], HiringBrief(), "rust devs", client=_client(), history=history, auth_user_id="user-1"
        )
        assert history.saved == [("user-1", ["star", "mid"], "rust devs")]

    async def test_history_needs_user(self) -> None:
        history = RecordingHistory()
        await rank_candidates(["star"], HiringBrief(), client=_client(), history=history)
        assert history.saved == []

    async def test_history_failure_is_isolated(self) -> None:
        result = await rank_candidates(
            ["star"], HiringBrief(), client=_client(), history=RecordingHistory(fail=True), auth_user_id="user-1"
        )
        assert [c.username for c in result.candidates] == ["star"]

    async def test_malformed_profile_does_not_sink_batch(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/users/good":
                return httpx.Response(200, json=make_profile("good", public_repos=2))
            if request.url.path == "/users/empty":
                return httpx.Response(200)
            return httpx.Response(200, json=[])

        async with GitHubClient(token="t", transport=httpx.MockTransport(handler), retries=1) as client:
            result = await rank_candidates(["good", "empty"], HiringBrief(), client=client)
        assert [c.username for c in result.candidates] == ["good"]
        assert [f.username for f in result.failed_profiles] == ["empty"]
        assert "Unexpected response" in result.failed_profiles[0].error

    async def test_unexpected_error_becomes_failed_profile(self) -> None:
        client = _client()
        client.profiles["broken"] = []
        result = await rank_candidates(["star", "broken"], HiringBrief(), client=client)
        assert [c.username for c in result.candidates] == ["star"]
        assert [f.username for f in result.failed_profiles] == ["broken"]
        assert result.failed_profiles[0].error
