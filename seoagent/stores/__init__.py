"""Persistence layer: keyed state store and the caches built on it."""

from .issue_tracker import IssueTracker
from .profile_cache import ProfileCache
from .state import StateStore

__all__ = ["IssueTracker", "ProfileCache", "StateStore"]
