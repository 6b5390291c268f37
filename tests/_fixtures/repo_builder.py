"""Helper utilities for constructing temporary site repositories in tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Mapping

from seoagent.models import CodebaseProfile, RepositoryTarget
from seoagent.scanner import Profiler


class RepoBuilder:
    """Utility for writing files into a throwaway working copy and profiling it."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "repo"
        self.root.mkdir()
        self._profiler = Profiler()

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the repository."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def profile(self, target: RepositoryTarget, commit: str = "c0ffee") -> CodebaseProfile:
        """Return a fresh profile of the repository contents."""
        return self._profiler.profile(target, commit, self.root)

    def path(self) -> Path:
        """Return the repository root path."""
        return self.root


__all__ = ["RepoBuilder"]
