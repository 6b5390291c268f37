"""Brings local working copies to the head of their remote branch."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Dict, Iterable, Optional
from urllib.parse import urlsplit, urlunsplit

from ..errors import SyncError
from ..logging import get_logger
from ..models import RepositoryTarget
from .runner import GitRunner, default_runner, describe_failure


class RepositorySynchronizer:
    """Shallow-clones missing repositories and hard-resets existing ones.

    Working copies live under ``<data_dir>/repos/<repo id>`` and are never a
    source of truth: local modifications are discarded on every sync.
    """

    def __init__(
        self,
        data_dir: Path,
        *,
        runner: GitRunner | None = None,
        token: str | None = None,
    ) -> None:
        self._repos_dir = data_dir / "repos"
        self._runner = runner or default_runner
        self._token = token if token is not None else os.environ.get("GITHUB_TOKEN")
        self.logger = get_logger("git.sync")

    def workdir(self, target: RepositoryTarget) -> Path:
        return self._repos_dir / target.id

    def sync(self, target: RepositoryTarget) -> str:
        """Return the commit the working copy points at after syncing."""
        path = self.workdir(target)
        try:
            if (path / ".git").exists():
                self.logger.info("[%s] Fetching %s", target.id, target.branch)
                self._run(["git", "fetch", "--depth", "1", "origin", target.branch], cwd=path)
                self._run(["git", "reset", "--hard", f"origin/{target.branch}"], cwd=path)
                self._run(["git", "clean", "-fd"], cwd=path)
            else:
                self.logger.info("[%s] Cloning %s (%s)", target.id, target.url, target.branch)
                path.parent.mkdir(parents=True, exist_ok=True)
                self._run(
                    [
                        "git",
                        "clone",
                        "--branch",
                        target.branch,
                        "--single-branch",
                        "--depth",
                        "1",
                        self._authenticated_url(target.url),
                        str(path),
                    ],
                    cwd=path.parent,
                )
            commit = self._run(["git", "rev-parse", "HEAD"], cwd=path, capture_output=True).strip()
        except (subprocess.CalledProcessError, OSError) as exc:
            raise SyncError(f"{target.id}: sync failed: {self._redact(describe_failure(exc))}") from exc

        if not commit:
            raise SyncError(f"{target.id}: could not resolve HEAD after sync")
        self.logger.info("[%s] Working copy at %s", target.id, commit[:12])
        return commit

    def _authenticated_url(self, url: str) -> str:
        if not self._token:
            return url
        parts = urlsplit(url)
        if parts.scheme != "https" or "@" in parts.netloc:
            return url
        netloc = f"x-access-token:{self._token}@{parts.netloc}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))

    def _redact(self, message: str) -> str:
        if self._token:
            return message.replace(self._token, "***")
        return message

    def _run(
        self,
        args: Iterable[str],
        *,
        cwd: Path,
        env: Optional[Dict[str, str]] = None,
        capture_output: bool = False,
    ) -> str:
        return self._runner(args, cwd=cwd, env=env, capture_output=capture_output)


__all__ = ["RepositorySynchronizer"]
