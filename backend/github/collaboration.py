"""Collaboration network for a GitHub user: organizations, repositories and co-contributors."""

import asyncio
import logging
from typing import Optional

from models import CollaborationData, Collaborator, Connection, Organization, RepoNode
from .client import GitHubAPIError, GitHubClient

logger = logging.getLogger(__name__)

REST_REPO_LIMIT = 30
REST_CONTRIBUTORS_PER_REPO = 15
REST_CONTRIBUTORS_KEPT = 10

# Organizations are fetched over REST; GraphQL would need the read:org scope.
COLLABORATION_QUERY = """
query GetUserCollaboration($username: String!, $repoCount: Int!, $contributorCount: Int!) {
  user(login: $username) {
    login
    avatarUrl
    repositories(first: $repoCount, orderBy: {field: STARGAZERS, direction: DESC}, ownerAffiliations: OWNER) {
      nodes {
        name
        nameWithOwner
        description
        stargazerCount
        forkCount
        isFork
        primaryLanguage { name }
        mentionableUsers(first: $contributorCount) {
          nodes { login avatarUrl }
        }
      }
    }
    repositoriesContributedTo(first: 30, contributionTypes: [COMMIT, PULL_REQUEST, ISSUE], orderBy: {field: STARGAZERS, direction: DESC}) {
      nodes {
        name
        nameWithOwner
        description
        stargazerCount
        primaryLanguage { name }
        owner { login avatarUrl }
      }
    }
  }
}
"""


def repo_target(full_name: str) -> str:
    return f"repo:{full_name}"


class _NetworkBuilder:
    """Accumulates nodes and edges, deduplicating users and repos case-insensitively."""

    def __init__(self, username: str):
        self.username = username
        self.collaborators: list[Collaborator] = []
        self.repos: list[RepoNode] = []
        self.organizations: list[Organization] = []
        self.connections: list[Connection] = []
        self._seen_users = {username.lower()}
        self._seen_repos: set[str] = set()

    def is_subject(self, login: str) -> bool:
        return login.lower() == self.username.lower()

    def add_user(self, collaborator: Collaborator) -> None:
        key = collaborator.login.lower()
        if key in self._seen_users:
            return
        self._seen_users.add(key)
        self.collaborators.append(collaborator)

    def claim_repo(self, full_name: str) -> bool:
        key = full_name.lower()
        if key in self._seen_repos:
            return False
        self._seen_repos.add(key)
        return True

    def connect(self, source: str, target: str, type: str) -> None:
        self.connections.append(Connection(source=source, target=target, type=type))

    def add_orgs(self, orgs: list[dict]) -> None:
        for org in orgs:
            login = org.get("login")
            if not login:
                continue
            self.organizations.append(
                Organization(login=login, avatar_url=org.get("avatar_url"), description=org.get("description"))
            )
            if login.lower() in self._seen_users:
                continue
            self.add_user(Collaborator(
                login=login,
                avatar_url=org.get("avatar_url"),
                type="org",
                relationship="Member of organization",
            ))
            self.connect(self.username, login, "org")

    def build(self, source: str) -> CollaborationData:
        return CollaborationData(
            username=self.username,
            source=source,
            collaborators=self.collaborators,
            repos=self.repos,
            organizations=self.organizations,
            connections=self.connections,
        )


async def _orgs(client: GitHubClient, username: str) -> list[dict]:
    try:
        return await client.get_user_orgs(username)
    except GitHubAPIError as e:
        logger.info("[Collaboration] Orgs unavailable for %s: %s", username, e.message)
        return []


async def fetch_collaboration_graphql(client: GitHubClient, username: str) -> CollaborationData:
    """One GraphQL round trip for repos and co-contributors, plus REST orgs."""
    data, orgs = await asyncio.gather(
        client.graphql(COLLABORATION_QUERY, {"username": username, "repoCount": 30, "contributorCount": 20}),
        _orgs(client, username),
    )
    user = data.get("user")
    if not user:
        raise GitHubAPIError(f'User "{username}" not found on GitHub', 404)

    net = _NetworkBuilder(username)
    net.add_orgs(orgs)

    for repo in (user.get("repositories") or {}).get("nodes") or []:
        full_name = repo["nameWithOwner"]
        if not net.claim_repo(full_name):
            continue
        net.repos.append(RepoNode(
            name=repo["name"],
            full_name=full_name,
            description=repo.get("description"),
            stars=repo.get("stargazerCount") or 0,
            language=(repo.get("primaryLanguage") or {}).get("name"),
            owner=username,
            is_fork=bool(repo.get("isFork")),
        ))
        net.connect(username, repo_target(full_name), "repo")

        for user_node in (repo.get("mentionableUsers") or {}).get("nodes") or []:
            login = user_node["login"]
            if net.is_subject(login):
                continue
            net.connect(repo_target(full_name), login, "contributor")
            net.add_user(Collaborator(
                login=login,
                avatar_url=user_node.get("avatarUrl"),
                type="contributor",
                relationship=f"Contributed to {repo['name']}",
                repo_name=repo["name"],
            ))

    for repo in (user.get("repositoriesContributedTo") or {}).get("nodes") or []:
        owner = repo.get("owner") or {}
        owner_login = owner.get("login", "")
        if net.is_subject(owner_login):
            continue
        full_name = repo["nameWithOwner"]
        if not net.claim_repo(full_name):
            continue
        net.repos.append(RepoNode(
            name=repo["name"],
            full_name=full_name,
            description=repo.get("description"),
            stars=repo.get("stargazerCount") or 0,
            language=(repo.get("primaryLanguage") or {}).get("name"),
            owner=owner_login,
        ))
        net.connect(username, repo_target(full_name), "contributor")
        net.add_user(Collaborator(
            login=owner_login,
            avatar_url=owner.get("avatarUrl"),
            type="contributor",
            relationship=f"Owner of {repo['name']}",
            repo_name=repo["name"],
        ))
        net.connect(repo_target(full_name), owner_login, "repo")

    return net.build("graphql")


async def _contributors(client: GitHubClient, full_name: str) -> list[dict]:
    owner, _, name = full_name.partition("/")
    try:
        return await client.get_contributors(owner, name, per_page=REST_CONTRIBUTORS_PER_REPO)
    except GitHubAPIError:
        return []


async def fetch_collaboration_rest(
    client: GitHubClient,
    username: str,
    repos: Optional[list[dict]] = None,
) -> CollaborationData:
    """Orgs plus contributors of the user's most popular repositories."""
    if repos is None:
        try:
            repos = await client.get_user_repos(username)
        except GitHubAPIError as e:
            logger.warning("[Collaboration] Repos unavailable for %s: %s", username, e.message)
            repos = []

    net = _NetworkBuilder(username)
    net.add_orgs(await _orgs(client, username))

    popular = sorted(
        repos,
        key=lambda r: (r.get("stargazers_count") or 0) * 2 + (r.get("forks_count") or 0),
        reverse=True,
    )[:REST_REPO_LIMIT]
    contributor_lists = await asyncio.gather(*(_contributors(client, r["full_name"]) for r in popular))

    for repo, contributors in zip(popular, contributor_lists):
        others = [
            c for c in contributors
            if c.get("login") and not net.is_subject(c["login"]) and (c.get("contributions") or 0) >= 1
        ]
        if not others or not net.claim_repo(repo["full_name"]):
            continue
        net.repos.append(RepoNode(
            name=repo["name"],
            full_name=repo["full_name"],
            description=repo.get("description"),
            stars=repo.get("stargazers_count") or 0,
            language=repo.get("language"),
            owner=username,
        ))
        net.connect(username, repo_target(repo["full_name"]), "repo")
        for c in others[:REST_CONTRIBUTORS_KEPT]:
            net.connect(repo_target(repo["full_name"]), c["login"], "contributor")
            net.add_user(Collaborator(
                login=c["login"],
                avatar_url=c.get("avatar_url"),
                type="contributor",
                relationship=f"Contributed to {repo['name']}",
                repo_name=repo["name"],
            ))

    return net.build("rest")


async def fetch_collaboration(
    client: GitHubClient,
    username: str,
    repos: Optional[list[dict]] = None,
) -> CollaborationData:
    """Use GraphQL when authenticated, falling back to REST on any GraphQL failure."""
    if client.token:
        try:
            return await fetch_collaboration_graphql(client, username)
        except GitHubAPIError as e:
            if "required scopes" not in e.message:
                logger.warning("[Collaboration] GraphQL failed for %s, falling back to REST: %s", username, e.message)
    return await fetch_collaboration_rest(client, username, repos)
