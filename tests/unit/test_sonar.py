"""Tests for saved briefs: the store, the review workflow and repeat searches."""

from unittest.mock import patch

import pytest

from fakes import FakeGitHubClient, make_events, make_profile, make_repo
from models import CandidateScore, SonarBriefCreate, SonarBriefUpdate, WebResult
from sonar.search import find_new_usernames, run_sonar_search, sonar_queries
from sonar.store import ForbiddenError, NotFoundError, SonarStore


def _candidate(username: str, score: int = 60, **overrides) -> CandidateScore:
    values = dict(
        username=username,
        score=score,
        activity_level="active",
        match_reasons=["Writes Rust"],
        top_languages=["Rust", "Go", "C", "Zig", "Python", "Lua"],
        total_stars=12,
        followers=3,
        public_repos=9,
    )
    values.update(overrides)
    return CandidateScore(**values)


@pytest.fixture
def store() -> SonarStore:
    return SonarStore.from_url("sqlite:///:memory:")


@pytest.fixture
def brief(store: SonarStore):
    return store.create_brief("user-1", SonarBriefCreate(
        name="Rust in Sydney",
        description="Rust developers",
        requiredSkills=["Rust"],
        preferredLocation="Sydney",
    ))


class TestBriefs:
    def test_create_and_get(self, store: SonarStore, brief) -> None:
        assert brief.required_skills == ["Rust"]
        assert brief.is_active
        assert brief.search_frequency == "daily"
        fetched = store.get_brief("user-1", brief.id)
        assert fetched.name == "Rust in Sydney"
        assert (fetched.total_results, fetched.new_results) == (0, 0)
        assert fetched.last_search_at is None

    def test_scoped_to_owner(self, store: SonarStore, brief) -> None:
        store.create_brief("user-2", SonarBriefCreate(name="Other"))
        assert [b.id for b in store.list_briefs("user-1")] == [brief.id]
        with pytest.raises(NotFoundError, match="Brief not found"):
            store.get_brief("user-2", brief.id)
        with pytest.raises(NotFoundError):
            store.delete_brief("user-2", brief.id)

    def test_partial_update(self, store: SonarStore, brief) -> None:
        updated = store.update_brief("user-1", brief.id, SonarBriefUpdate(isActive=False, preferredLocation=None))
        assert not updated.is_active
        assert updated.preferred_location is None
        assert updated.name == "Rust in Sydney"
        assert updated.required_skills == ["Rust"]

    def test_update_cannot_clear_required_fields(self, store: SonarStore, brief) -> None:
        updated = store.update_brief("user-1", brief.id, SonarBriefUpdate(name=None, requiredSkills=None))
        assert updated.name == "Rust in Sydney"
        assert updated.required_skills == ["Rust"]

    def test_counts(self, store: SonarStore, brief) -> None:
        store.add_result(brief.id, _candidate("alice"))
        store.add_result(brief.id, _candidate("bob"))
        result = store.list_results("user-1", brief.id)[0]
        store.update_result_status("user-1", result.id, "viewed")
        fetched = store.list_briefs("user-1")[0]
        assert (fetched.total_results, fetched.new_results) == (2, 1)

    def test_delete_removes_results(self, store: SonarStore, brief) -> None:
        store.add_result(brief.id, _candidate("alice"))
        store.delete_brief("user-1", brief.id)
        assert store.list_briefs("user-1") == []
        assert store.known_usernames(brief.id) == set()


class TestResults:
    def test_add_result_fields(self, store: SonarStore, brief) -> None:
        assert store.add_result(brief.id, _candidate("Alice", name="Alice A"), "Rust developers")
        result = store.list_results("user-1", brief.id)[0]
        assert result.github_username == "Alice"
        assert result.github_name == "Alice A"
        assert result.github_avatar_url == "https://github.com/Alice.png"
        assert result.top_languages == ["Rust", "Go", "C", "Zig", "Python"]
        assert result.repo_count == 9
        assert result.status == "new"
        assert result.search_query == "Rust developers"
        assert store.known_usernames(brief.id) == {"alice"}

    def test_known_username_keeps_status_and_refreshes_score(self, store: SonarStore, brief) -> None:
        store.add_result(brief.id, _candidate("alice", score=40))
        result = store.list_results("user-1", brief.id)[0]
        store.update_result_status("user-1", result.id, "saved", notes="Call next week")

        assert not store.add_result(brief.id, _candidate("ALICE", score=70, match_reasons=["Sydney based"]))
        [refreshed] = store.list_results("user-1", brief.id)
        assert refreshed.match_score == 70
        assert refreshed.match_reasons == ["Sydney based"]
        assert refreshed.status == "saved"
        assert refreshed.notes == "Call next week"

    def test_zero_score_does_not_overwrite(self, store: SonarStore, brief) -> None:
        store.add_result(brief.id, _candidate("alice", score=40))
        store.add_result(brief.id, _candidate("alice", score=0))
        assert store.list_results("user-1", brief.id)[0].match_score == 40

    def test_ordering_and_status_filter(self, store: SonarStore, brief) -> None:
        for name, score in [("low", 20), ("high", 90), ("mid", 50)]:
            store.add_result(brief.id, _candidate(name, score=score))
        results = store.list_results("user-1", brief.id)
        assert [r.github_username for r in results] == ["high", "mid", "low"]

        store.update_result_status("user-1", results[0].id, "dismissed")
        assert [r.github_username for r in store.list_results("user-1", brief.id, status="new")] == ["mid", "low"]
        assert [r.github_username for r in store.list_results("user-1", brief.id, limit=1, offset=1)] == ["mid"]

    def test_status_workflow_errors(self, store: SonarStore, brief) -> None:
        store.add_result(brief.id, _candidate("alice"))
        result = store.list_results("user-1", brief.id)[0]
        with pytest.raises(NotFoundError, match="Result not found"):
            store.update_result_status("user-1", "missing", "viewed")
        with pytest.raises(ForbiddenError):
            store.update_result_status("user-2", result.id, "viewed")
        with pytest.raises(NotFoundError):
            store.list_results("user-2", brief.id)

    def test_notes_kept_when_not_sent(self, store: SonarStore, brief) -> None:
        store.add_result(brief.id, _candidate("alice"))
        result = store.list_results("user-1", brief.id)[0]
        store.update_result_status("user-1", result.id, "saved", notes="Strong Rust")
        updated = store.update_result_status("user-1", result.id, "contacted")
        assert updated.status == "contacted"
        assert updated.notes == "Strong Rust"


class TestQueries:
    def test_queries_from_brief(self, store: SonarStore) -> None:
        brief = store.create_brief("user-1", SonarBriefCreate(
            name="x",
            description="Looking for " + "a" * 300,
            requiredSkills=["Rust", "Go", "C", "Zig"],
            preferredLocation="Sydney",
            projectType="Backend",
        ))
        queries = sonar_queries(brief)
        assert len(queries) == 3
        assert len(queries[0]) == 200
        assert queries[1] == "Rust Go C developer Sydney"
        assert queries[2] == "Backend developer Sydney"

    def test_empty_brief_has_no_queries(self, store: SonarStore) -> None:
        assert sonar_queries(store.create_brief("user-1", SonarBriefCreate(name="x"))) == []

    async def test_failed_query_is_skipped(self) -> None:
        def fake_search(query, max_results):
            if "broken" in query:
                raise RuntimeError("ratelimited")
            return [
                WebResult(url="https://github.com/Alice"),
                WebResult(url="https://github.com/alice/engine"),
                WebResult(url="https://github.com/bob"),
                WebResult(url="https://github.com/ALICE"),
            ]

        with patch("sonar.search.search_ddg", side_effect=fake_search):
            usernames = await find_new_usernames(["broken query", "rust"], known={"bob"}, limit=10)
        assert usernames == ["Alice"]


class TestRunSonarSearch:
    @pytest.fixture
    def github(self) -> FakeGitHubClient:
        return FakeGitHubClient(
            profiles={
                "alice": make_profile("alice", location="Sydney", public_repos=4),
                "bob": make_profile("bob"),
            },
            repos={"alice": [make_repo("engine", owner="alice", language="Rust", size=50, stargazers_count=30)]},
            events={"alice": make_events(25)},
        )

    @staticmethod
    def _hits(query, max_results):
        return [WebResult(url=f"https://github.com/{u}") for u in ("alice", "bob", "ghost")]

    async def test_saves_new_candidates(self, store: SonarStore, brief, github: FakeGitHubClient) -> None:
        with patch("sonar.search.search_ddg", side_effect=self._hits):
            summary = await run_sonar_search(store, github, "user-1", brief.id, min_score=0)
        assert summary.searched_profiles == 3
        assert summary.new_candidates == 2
        assert [f.username for f in summary.failed_profiles] == ["ghost"]

        results = store.list_results("user-1", brief.id)
        assert {r.github_username for r in results} == {"alice", "bob"}
        assert results[0].github_username == "alice"
        assert results[0].search_query == "Rust developers"
        assert store.get_brief("user-1", brief.id).last_search_at is not None

    async def test_repeat_search_skips_known(self, store: SonarStore, brief, github: FakeGitHubClient) -> None:
        with patch("sonar.search.search_ddg", side_effect=self._hits):
            await run_sonar_search(store, github, "user-1", brief.id, min_score=0)
            github.requested.clear()
            summary = await run_sonar_search(store, github, "user-1", brief.id, min_score=0)
        assert summary.new_candidates == 0
        assert github.requested == ["ghost"]

    async def test_min_score_filters(self, store: SonarStore, brief, github: FakeGitHubClient) -> None:
        with patch("sonar.search.search_ddg", side_effect=self._hits):
            summary = await run_sonar_search(store, github, "user-1", brief.id, min_score=101)
        assert summary.new_candidates == 0
        assert store.list_results("user-1", brief.id) == []

    async def test_other_users_brief(self, store: SonarStore, brief, github: FakeGitHubClient) -> None:
        with pytest.raises(NotFoundError):
            await run_sonar_search(store, github, "user-2", brief.id)
