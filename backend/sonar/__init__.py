"""Saved hiring briefs: storage, repeat searches and the review workflow for their results."""

from .routes import router
from .store import SonarStore, get_sonar_store

__all__ = ["SonarStore", "get_sonar_store", "router"]
