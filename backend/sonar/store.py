"""Saved hiring briefs ("sonar briefs") and the candidates found for them (SQLAlchemy ORM).

Every read and write is scoped to the owning user. A result's status moves
through new -> viewed -> saved / contacted / dismissed as the hiring manager
works the list.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    case,
    delete,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Mapped, mapped_column, sessionmaker

from config import get_settings
from history import Base, avatar_url, make_engine, utcnow
from models import (
    CandidateScore,
    ResultStatus,
    SonarBriefCreate,
    SonarBriefOut,
    SonarBriefUpdate,
    SonarResultOut,
)

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


class SonarBrief(Base):
    __tablename__ = "sonar_briefs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    auth_user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    required_skills: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    preferred_location: Mapped[str | None] = mapped_column(Text, nullable=True)
    project_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    search_frequency: Mapped[str] = mapped_column(String(20), nullable=False, default="daily")

    # extracted from the job description
    salary_min: Mapped[float | None] = mapped_column(Float, nullable=True)
    salary_max: Mapped[float | None] = mapped_column(Float, nullable=True)
    salary_period: Mapped[str | None] = mapped_column(String(20), nullable=True)
    experience_level: Mapped[str | None] = mapped_column(String(20), nullable=True)
    employment_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    remote_policy: Mapped[str | None] = mapped_column(String(20), nullable=True)
    company_name: Mapped[str | None] = mapped_column(Text, nullable=True)

    last_search_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<SonarBrief id={self.id} user={self.auth_user_id} name={self.name!r}>"


class SonarResult(Base):
    __tablename__ = "sonar_results"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    brief_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sonar_briefs.id", ondelete="CASCADE"), index=True, nullable=False
    )

    github_username: Mapped[str] = mapped_column(String(255), nullable=False)
    github_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    github_avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    github_bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    github_location: Mapped[str | None] = mapped_column(Text, nullable=True)

    match_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    match_reasons: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    concerns: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    top_languages: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    total_stars: Mapped[int | None] = mapped_column(Integer, nullable=True)
    followers: Mapped[int | None] = mapped_column(Integer, nullable=True)
    repo_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="new")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    search_query: Mapped[str | None] = mapped_column(Text, nullable=True)
    discovered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<SonarResult id={self.id} brief={self.brief_id} github={self.github_username} status={self.status}>"


class SonarError(Exception):
    pass


class NotFoundError(SonarError):
    pass


class ForbiddenError(SonarError):
    pass


BRIEF_NOT_FOUND = "Brief not found"
RESULT_NOT_FOUND = "Result not found"

# columns an update may not clear
REQUIRED_BRIEF_FIELDS = {"name", "description", "required_skills", "is_active", "search_frequency"}


class SonarStore:
    """Per-user access to sonar briefs and their results."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, url: str) -> "SonarStore":
        store = cls(make_engine(url))
        store.create_tables()
        return store

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Briefs
    # ------------------------------------------------------------------

    def _with_stats(self, session, auth_user_id: str, brief_id: Optional[str] = None) -> list[SonarBriefOut]:
        total = func.count(SonarResult.id)
        new = func.count(case((SonarResult.status == "new", 1)))
        stmt = (
            select(SonarBrief, total, new)
            .outerjoin(SonarResult, SonarResult.brief_id == SonarBrief.id)
            .where(SonarBrief.auth_user_id == auth_user_id)
            .group_by(SonarBrief.id)
            .order_by(SonarBrief.created_at.desc())
        )
        if brief_id is not None:
            stmt = stmt.where(SonarBrief.id == brief_id)
        briefs = []
        for brief, total_results, new_results in session.execute(stmt).all():
            out = SonarBriefOut.model_validate(brief)
            out.total_results = total_results
            out.new_results = new_results
            briefs.append(out)
        return briefs

    def _owned_brief(self, session, auth_user_id: str, brief_id: str) -> SonarBrief:
        brief = session.get(SonarBrief, brief_id)
        if brief is None or brief.auth_user_id != auth_user_id:
            raise NotFoundError(BRIEF_NOT_FOUND)
        return brief

    def create_brief(self, auth_user_id: str, data: SonarBriefCreate) -> SonarBriefOut:
        brief = SonarBrief(auth_user_id=auth_user_id, **data.model_dump())
        with self._session.begin() as session:
            session.add(brief)
        logger.info("[Sonar] Created brief %s for user %s", brief.id, auth_user_id)
        return SonarBriefOut.model_validate(brief)

    def list_briefs(self, auth_user_id: str) -> list[SonarBriefOut]:
        """The user's briefs, newest first, with total and unseen result counts."""
        with self._session() as session:
            return self._with_stats(session, auth_user_id)

    def get_brief(self, auth_user_id: str, brief_id: str) -> SonarBriefOut:
        with self._session() as session:
            found = self._with_stats(session, auth_user_id, brief_id)
        if not found:
            raise NotFoundError(BRIEF_NOT_FOUND)
        return found[0]

    def update_brief(self, auth_user_id: str, brief_id: str, changes: SonarBriefUpdate) -> SonarBriefOut:
        """Apply the fields the caller actually sent; everything else is left alone."""
        with self._session.begin() as session:
            brief = self._owned_brief(session, auth_user_id, brief_id)
            for field, value in changes.model_dump(exclude_unset=True).items():
                if value is None and field in REQUIRED_BRIEF_FIELDS:
                    continue
                setattr(brief, field, value)
            brief.updated_at = utcnow()
        return self.get_brief(auth_user_id, brief_id)

    def delete_brief(self, auth_user_id: str, brief_id: str) -> None:
        with self._session.begin() as session:
            brief = self._owned_brief(session, auth_user_id, brief_id)
            session.execute(delete(SonarResult).where(SonarResult.brief_id == brief.id))
            session.delete(brief)
        logger.info("[Sonar] Deleted brief %s", brief_id)

    def mark_searched(self, brief_id: str) -> None:
        with self._session.begin() as session:
            brief = session.get(SonarBrief, brief_id)
            if brief is not None:
                brief.last_search_at = utcnow()

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def list_results(
        self,
        auth_user_id: str,
        brief_id: str,
        status: Optional[ResultStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[SonarResultOut]:
        """Results for one of the user's briefs, best match first."""
        with self._session() as session:
            self._owned_brief(session, auth_user_id, brief_id)
            stmt = select(SonarResult).where(SonarResult.brief_id == brief_id)
            if status:
                stmt = stmt.where(SonarResult.status == status)
            stmt = (
                stmt.order_by(SonarResult.match_score.desc(), SonarResult.discovered_at.desc())
                .offset(offset)
                .limit(limit)
            )
            return [SonarResultOut.model_validate(r) for r in session.scalars(stmt).all()]

    def known_usernames(self, brief_id: str) -> set[str]:
        """Lowercased usernames already recorded for a brief."""
        stmt = select(SonarResult.github_username).where(SonarResult.brief_id == brief_id)
        with self._session() as session:
            return {u.lower() for u in session.scalars(stmt).all()}

    def update_result_status(
        self,
        auth_user_id: str,
        result_id: str,
        status: ResultStatus,
        notes: Optional[str] = None,
    ) -> SonarResultOut:
        """Move a result through the review workflow.

        Raises:
            NotFoundError: If the result does not exist.
            ForbiddenError: If the result belongs to another user's brief.
        """
        with self._session.begin() as session:
            result = session.get(SonarResult, result_id)
            if result is None:
                raise NotFoundError(RESULT_NOT_FOUND)
            brief = session.get(SonarBrief, result.brief_id)
            if brief is None or brief.auth_user_id != auth_user_id:
                raise ForbiddenError("Unauthorized")
            result.status = status
            if notes is not None:
                result.notes = notes
            return SonarResultOut.model_validate(result)

    def add_result(self, brief_id: str, candidate: CandidateScore, search_query: Optional[str] = None) -> bool:
        """Insert a candidate for a brief. Returns False when the username was already there.

        A known username keeps its status and notes; a positive score refreshes its
        match details and discovery time.
        """
        with self._session.begin() as session:
            existing = session.scalars(
                select(SonarResult).where(
                    SonarResult.brief_id == brief_id,
                    func.lower(SonarResult.github_username) == candidate.username.lower(),
                )
            ).first()
            if existing is not None:
                if candidate.score > 0:
                    existing.match_score = candidate.score
                    existing.match_reasons = list(candidate.match_reasons)
                    existing.concerns = list(candidate.concerns)
                    existing.discovered_at = utcnow()
                return False
            session.add(SonarResult(
                brief_id=brief_id,
                github_username=candidate.username,
                github_name=candidate.name or None,
                github_avatar_url=avatar_url(candidate.username),
                github_bio=candidate.bio or None,
                github_location=candidate.location or None,
                match_score=candidate.score,
                match_reasons=list(candidate.match_reasons),
                concerns=list(candidate.concerns),
                top_languages=candidate.top_languages[:5],
                total_stars=candidate.total_stars,
                followers=candidate.followers,
                repo_count=candidate.public_repos,
                search_query=search_query or None,
            ))
            return True


# Singleton instance
_sonar_store = None


def get_sonar_store() -> SonarStore:
    """Get or create the sonar store."""
    global _sonar_store
    if _sonar_store is None:
        _sonar_store = SonarStore.from_url(get_settings().database_url)
    return _sonar_store
