"""Search history persistence (SQLAlchemy ORM).

One append-only table: every profile surfaced to a user is recorded with the
query that found it. Reads return the latest row per GitHub username.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import DateTime, Integer, String, Text, create_engine, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from config import get_settings
from models import CandidateScore, HistoryProfile, SearchHistoryEntry

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SearchHistory(Base):
    __tablename__ = "search_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # who searched
    auth_user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)

    # which GitHub account was surfaced
    github_username: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    github_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    github_avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    github_bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    github_location: Mapped[str | None] = mapped_column(Text, nullable=True)

    # search context
    search_query: Mapped[str | None] = mapped_column(Text, nullable=True)
    search_type: Mapped[str] = mapped_column(String(50), nullable=False, default="ai_search")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), index=True, nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return f"<SearchHistory id={self.id} user={self.auth_user_id} github={self.github_username}>"


def avatar_url(username: str) -> str:
    return f"https://github.com/{username}.png"


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite") and ":memory:" in url:
        # one shared connection so every session sees the same in-memory database
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


class SearchHistoryStore:
    """Append-only access to the search_history table."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, url: str) -> "SearchHistoryStore":
        store = cls(make_engine(url))
        store.create_tables()
        return store

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def add_profiles(
        self,
        auth_user_id: str,
        profiles: Iterable[HistoryProfile],
        search_query: Optional[str] = None,
        search_type: str = "ai_search",
    ) -> int:
        """Insert one row per profile in a single transaction. Returns the row count."""
        rows = [
            SearchHistory(
                auth_user_id=auth_user_id,
                github_username=p.username,
                github_name=p.name or None,
                github_avatar_url=p.avatar_url or avatar_url(p.username),
                github_bio=p.bio or None,
                github_location=p.location or None,
                search_query=search_query or None,
                search_type=search_type,
            )
            for p in profiles
        ]
        if not rows:
            return 0
        with self._session.begin() as session:
            session.add_all(rows)
        logger.info("[History] Saved %d profile(s) for user %s", len(rows), auth_user_id)
        return len(rows)

    def add_candidates(
        self,
        auth_user_id: str,
        candidates: Iterable[CandidateScore],
        search_query: Optional[str] = None,
    ) -> int:
        profiles = [
            HistoryProfile(username=c.username, name=c.name, bio=c.bio, location=c.location)
            for c in candidates
        ]
        return self.add_profiles(auth_user_id, profiles, search_query, "ai_search")

    def recent(self, auth_user_id: str, limit: int = 10, offset: int = 0) -> list[SearchHistoryEntry]:
        """Latest entry per GitHub username for this user, newest first."""
        latest = (
            select(
                SearchHistory.github_username,
                func.max(SearchHistory.id).label("max_id"),
            )
            .where(SearchHistory.auth_user_id == auth_user_id)
            .group_by(SearchHistory.github_username)
            .subquery()
        )
        stmt = (
            select(SearchHistory)
            .join(latest, SearchHistory.id == latest.c.max_id)
            .order_by(SearchHistory.created_at.desc(), SearchHistory.id.desc())
            .offset(offset)
            .limit(limit)
        )
        with self._session() as session:
            rows = session.scalars(stmt).all()
            return [SearchHistoryEntry.model_validate(row) for row in rows]

    def count(self, auth_user_id: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(SearchHistory)
        if auth_user_id is not None:
            stmt = stmt.where(SearchHistory.auth_user_id == auth_user_id)
        with self._session() as session:
            return session.scalar(stmt) or 0


# Singleton instance
_history_store = None


def get_history_store() -> SearchHistoryStore:
    """Get or create the search history store."""
    global _history_store
    if _history_store is None:
        _history_store = SearchHistoryStore.from_url(get_settings().database_url)
    return _history_store
