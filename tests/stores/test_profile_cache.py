"""Tests for the commit-keyed profile cache."""

from __future__ import annotations

from pathlib import Path
from typing import List

from seoagent.models import CodebaseProfile, DirectoryRoles, Framework, PageInfo, RepositoryTarget
from seoagent.stores import ProfileCache, StateStore
from tests._fixtures.fakes import make_target


class _CountingProfiler:
    def __init__(self) -> None:
        self.calls: List[str] = []

    def profile(self, target: RepositoryTarget, commit: str, workdir: Path) -> CodebaseProfile:
        self.calls.append(commit)
        return CodebaseProfile(
            repo_id=target.id,
            commit=commit,
            framework=Framework.ASTRO,
            pages=[PageInfo(path="src/pages/index.astro", url="/", title=f"Home {commit}")],
        )


def test_cached_profile_is_reused_for_same_commit(
    tmp_path: Path, store: StateStore, target: RepositoryTarget
) -> None:
    profiler = _CountingProfiler()
    cache = ProfileCache(store, profiler)

    first = cache.get_profile(target, "c1", tmp_path)
    second = cache.get_profile(target, "c1", tmp_path)

    assert profiler.calls == ["c1"]
    assert second == first
    assert second.framework is Framework.ASTRO


def test_new_commit_triggers_rescan_and_supersedes(
    tmp_path: Path, store: StateStore, target: RepositoryTarget
) -> None:
    profiler = _CountingProfiler()
    cache = ProfileCache(store, profiler)

    cache.get_profile(target, "c1", tmp_path)
    updated = cache.get_profile(target, "c2", tmp_path)

    assert profiler.calls == ["c1", "c2"]
    assert updated.pages[0].title == "Home c2"
    assert cache.cached(target.id, "c1") is None
    assert cache.cached(target.id, "c2") == updated


def test_cache_survives_restart(tmp_path: Path, target: RepositoryTarget) -> None:
    path = tmp_path / "state.json"
    ProfileCache(StateStore(path), _CountingProfiler()).get_profile(target, "c1", tmp_path)

    profiler = _CountingProfiler()
    profile = ProfileCache(StateStore(path), profiler).get_profile(target, "c1", tmp_path)

    assert profiler.calls == []
    assert profile.page_by_url("/") is not None


class _ZonedProfiler(_CountingProfiler):
    def profile(self, target: RepositoryTarget, commit: str, workdir: Path) -> CodebaseProfile:
        self.calls.append(commit)
        roles = DirectoryRoles(pages_dir="src/pages", components_dir="src/components")
        safe_zones, danger_zones = roles.classify(target.settings.exclude_paths)
        return CodebaseProfile(
            repo_id=target.id,
            commit=commit,
            framework=Framework.ASTRO,
            roles=roles,
            safe_zones=safe_zones,
            danger_zones=danger_zones,
        )


def test_cache_hit_applies_current_exclusions(tmp_path: Path, store: StateStore) -> None:
    profiler = _ZonedProfiler()
    cache = ProfileCache(store, profiler)
    cache.get_profile(make_target(), "c1", tmp_path)

    excluded = make_target(exclude_paths=("src/pages/legal",))
    profile = cache.get_profile(excluded, "c1", tmp_path)

    assert profiler.calls == ["c1"]
    assert profile.danger_zones == ["src/pages/legal"]
    assert not profile.is_safe("src/pages/legal/terms.astro")
    assert profile.is_safe("src/pages/index.astro")
    stored = cache.cached("site", "c1")
    assert stored is not None and stored.danger_zones == ["src/pages/legal"]


def test_excluded_role_directory_leaves_safe_zones(tmp_path: Path, store: StateStore) -> None:
    cache = ProfileCache(store, _ZonedProfiler())
    cache.get_profile(make_target(), "c1", tmp_path)

    profile = cache.get_profile(make_target(exclude_paths=("src/components",)), "c1", tmp_path)

    assert profile.safe_zones == ["src/pages"]
