"""Commit-keyed cache of codebase profiles."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol

from ..logging import get_logger
from ..models import CodebaseProfile, RepositoryTarget
from .state import StateStore


class ProfileSource(Protocol):
    def profile(self, target: RepositoryTarget, commit: str, workdir: Path) -> CodebaseProfile:
        ...


class ProfileCache:
    """Returns stored profiles while the commit matches, otherwise rescans.

    One entry is kept per repository; a rescan supersedes the previous entry
    rather than mutating it.
    """

    def __init__(self, store: StateStore, profiler: ProfileSource) -> None:
        self._store = store
        self._profiler = profiler
        self.logger = get_logger("stores.profile_cache")

    def get_profile(self, target: RepositoryTarget, commit: str, workdir: Path) -> CodebaseProfile:
        cached = self.cached(target.id, commit)
        if cached is not None:
            self.logger.info("[%s] Profile cache hit for %s", target.id, commit[:12])
            # Exclusions come from configuration and may change without a new commit.
            if cached.apply_exclusions(target.settings.exclude_paths):
                self.logger.info("[%s] Exclusion paths changed; zones re-derived", target.id)
                self._store.put("profiles", target.id, cached.to_dict())
            return cached

        self.logger.info("[%s] Profiling working copy at %s", target.id, commit[:12])
        profile = self._profiler.profile(target, commit, workdir)
        self._store.put("profiles", target.id, profile.to_dict())
        return profile

    def cached(self, repo_id: str, commit: str) -> Optional[CodebaseProfile]:
        entry = self._store.get("profiles", repo_id)
        if not isinstance(entry, dict) or entry.get("commit") != commit:
            return None
        try:
            return CodebaseProfile.from_dict(entry)
        except (KeyError, TypeError, ValueError) as exc:
            self.logger.warning("[%s] Discarding unreadable cached profile: %s", repo_id, exc)
            return None


__all__ = ["ProfileCache", "ProfileSource"]
