"""Tests for GitHub profile and user search."""

from unittest.mock import patch

from fakes import FakeGitHubClient, make_profile
from github.search import SEARCH_TIPS, profile_username, search_github_profiles, search_github_users
from models import WebResult


class TestProfileUsername:
    def test_profiles(self) -> None:
        assert profile_username("https://github.com/octocat") == "octocat"
        assert profile_username("https://www.github.com/octocat/") == "octocat"

    def test_not_profiles(self) -> None:
        assert profile_username("https://github.com/octocat/hello") is None
        assert profile_username("https://github.com/topics") is None
        assert profile_username("https://gitlab.com/octocat") is None


class TestSearchGithubProfiles:
    async def test_filters_dedupes_and_enriches(self) -> None:
        hits = [
            WebResult(url="https://github.com/alice", title="alice (Alice)", snippet="Rust dev"),
            WebResult(url="https://github.com/alice/repo", title="repo"),
            WebResult(url="https://github.com/ALICE/", title="dupe"),
            WebResult(url="https://github.com/explore", title="Explore"),
            WebResult(url="https://github.com/ghost", title="ghost"),
        ]
        client = FakeGitHubClient(profiles={
            "alice": make_profile("alice", name="Alice", location="Oslo", blog="https://alice.dev"),
        })
        with patch("github.search.search_ddg", return_value=hits) as search:
            profiles = await search_github_profiles(client, "rust developers oslo", max_results=10)

        search.assert_called_once_with("rust developers oslo site:github.com", 10)
        assert [p.username for p in profiles] == ["alice", "ghost"]
        alice, ghost = profiles
        assert alice.name == "Alice"
        assert alice.location == "Oslo"
        assert alice.socials.blog == "https://alice.dev"
        assert ghost.name is None


class TestSearchGithubUsers:
    async def test_enriches_hits(self) -> None:
        client = FakeGitHubClient(profiles={
            "alice": make_profile("alice", name="Alice", hireable=True, followers=12),
            "bob": make_profile("bob"),
        })
        response = await search_github_users(client, "language:rust")
        assert response.total_count == 2
        assert response.search_tips == SEARCH_TIPS
        alice = response.users[0]
        assert (alice.username, alice.name, alice.hireable, alice.followers) == ("alice", "Alice", True, 12)

    async def test_per_page_capped(self) -> None:
        client = FakeGitHubClient(profiles={f"u{i}": make_profile(f"u{i}") for i in range(40)})
        response = await search_github_users(client, "location:lisbon", per_page=100)
        assert len(response.users) == 30
        assert response.total_count == 40
