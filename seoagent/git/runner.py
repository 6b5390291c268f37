"""Subprocess runner shared by the git collaborators."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional

GitRunner = Callable[..., str]


def default_runner(
    args: Iterable[str],
    *,
    cwd: Path,
    env: Optional[Dict[str, str]] = None,
    capture_output: bool = False,
) -> str:
    """Run a command, raising ``subprocess.CalledProcessError`` on non-zero exit."""
    completed = subprocess.run(
        list(args),
        cwd=str(cwd),
        env=env,
        check=True,
        text=True,
        capture_output=True,
    )
    if capture_output:
        return completed.stdout
    return ""


def describe_failure(exc: BaseException) -> str:
    if isinstance(exc, subprocess.CalledProcessError):
        detail = (exc.stderr or exc.stdout or "").strip()
        return detail.splitlines()[-1] if detail else f"exit code {exc.returncode}"
    return str(exc)


__all__ = ["GitRunner", "default_runner", "describe_failure"]
