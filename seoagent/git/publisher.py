"""Stages, commits and pushes applied fixes."""

from __future__ import annotations

import os
import subprocess
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from ..errors import CommitError, PushError
from ..logging import get_logger
from ..models import Fix
from .runner import GitRunner, default_runner, describe_failure


def build_commit_message(fixes: Sequence[Fix]) -> str:
    """Summary line followed by one line per touched file."""
    by_file: "OrderedDict[str, List[str]]" = OrderedDict()
    for fix in fixes:
        descriptions = by_file.setdefault(fix.path, [])
        if fix.description not in descriptions:
            descriptions.append(fix.description)

    posts = sum(1 for fix in fixes if fix.change_type == "blog-published")
    issues = len({issue_id for fix in fixes for issue_id in fix.issue_ids})
    parts = []
    if issues:
        parts.append(f"fix {issues} SEO issue{'s' if issues != 1 else ''}")
    if posts:
        parts.append(f"publish {posts} blog post{'s' if posts != 1 else ''}")
    if not parts:
        parts.append(f"update {len(by_file)} file{'s' if len(by_file) != 1 else ''}")
    summary = "seo: " + "; ".join(parts)

    lines = [summary, ""]
    for path, descriptions in by_file.items():
        lines.append(f"- {path}: {'; '.join(descriptions)}")
    return "\n".join(lines)


class CommitGateway:
    """Commits the working copy only when the staged diff is non-empty."""

    def __init__(
        self,
        runner: GitRunner | None = None,
        *,
        author_name: str = "seoagent",
        author_email: str = "seoagent@users.noreply.github.com",
    ) -> None:
        self._runner = runner or default_runner
        self._author_name = author_name
        self._author_email = author_email
        self.logger = get_logger("git.publisher")

    def commit_and_push(self, workdir: Path, fixes: Sequence[Fix], branch: str) -> Optional[str]:
        """Return the pushed commit, or None when there was nothing to commit.

        Raises ``CommitError`` for local failures and ``PushError`` when the
        remote rejects the push. A rejected push is not retried; the local
        commit is discarded by the next sync.
        """
        try:
            self._run(["git", "add", "-A"], cwd=workdir)
            status = self._run(["git", "status", "--porcelain"], cwd=workdir, capture_output=True)
        except (subprocess.CalledProcessError, OSError) as exc:
            raise CommitError(f"Staging failed: {describe_failure(exc)}") from exc
        if not status.strip():
            self.logger.info("Working copy unchanged; nothing to commit")
            return None

        env = os.environ.copy()
        env.setdefault("GIT_AUTHOR_NAME", self._author_name)
        env.setdefault("GIT_AUTHOR_EMAIL", self._author_email)
        env.setdefault("GIT_COMMITTER_NAME", env["GIT_AUTHOR_NAME"])
        env.setdefault("GIT_COMMITTER_EMAIL", env["GIT_AUTHOR_EMAIL"])

        message = build_commit_message(fixes)
        try:
            self._run(["git", "commit", "-m", message], cwd=workdir, env=env)
            commit = self._run(["git", "rev-parse", "HEAD"], cwd=workdir, capture_output=True).strip()
        except (subprocess.CalledProcessError, OSError) as exc:
            raise CommitError(f"Commit failed: {describe_failure(exc)}") from exc

        try:
            self._run(["git", "push", "origin", f"HEAD:{branch}"], cwd=workdir)
        except (subprocess.CalledProcessError, OSError) as exc:
            raise PushError(f"Push to {branch} rejected: {describe_failure(exc)}") from exc

        self.logger.info("Pushed %s to %s", commit[:12], branch)
        return commit

    def _run(
        self,
        args: Iterable[str],
        *,
        cwd: Path,
        env: Dict[str, str] | None = None,
        capture_output: bool = False,
    ) -> str:
        return self._runner(args, cwd=cwd, env=env, capture_output=capture_output)


__all__ = ["CommitGateway", "build_commit_message"]
