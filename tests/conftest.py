from __future__ import annotations

from pathlib import Path

import pytest

from seoagent.models import RepositoryTarget
from seoagent.stores import StateStore
from tests._fixtures.fakes import RecordingGitRunner, make_target
from tests._fixtures.repo_builder import RepoBuilder


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a reusable repo builder rooted at the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture
def store() -> StateStore:
    """In-memory state store."""
    return StateStore(None)


@pytest.fixture
def target() -> RepositoryTarget:
    return make_target()


@pytest.fixture
def git_runner() -> RecordingGitRunner:
    return RecordingGitRunner()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "SEOAGENT_AI_API_KEY",
        "OPENAI_API_KEY",
        "SEOAGENT_AI_MODEL",
        "OPENAI_MODEL",
        "SEOAGENT_AI_BASE_URL",
        "OPENAI_BASE_URL",
        "SEOAGENT_IMAGE_API_KEY",
        "SEOAGENT_SEARCH_CONSOLE_TOKEN",
        "SEOAGENT_SMTP_PASSWORD",
        "GITHUB_TOKEN",
        "SEOAGENT_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
