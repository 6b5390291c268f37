"""Error taxonomy shared by the change pipeline."""

from __future__ import annotations


class SeoAgentError(RuntimeError):
    """Base class for recoverable pipeline failures."""


class SyncError(SeoAgentError):
    """Raised when a working copy cannot be cloned or brought to the remote head."""


class ProfileError(SeoAgentError):
    """Raised when a repository manifest cannot be parsed during profiling."""


class MalformedResponseError(SeoAgentError):
    """Raised when AI output does not match the schema the caller asked for."""


class PatchMismatchError(SeoAgentError):
    """Raised when a modify fix cannot find its search text in the target file."""

    def __init__(self, path: str, message: str | None = None) -> None:
        super().__init__(message or f"Search text not found in {path}")
        self.path = path


class BudgetExceededError(SeoAgentError):
    """Raised when a metered operation is denied by the daily budget."""

    def __init__(self, repo_id: str, kind: str) -> None:
        super().__init__(f"Daily budget for '{kind}' exhausted on {repo_id}")
        self.repo_id = repo_id
        self.kind = kind


class CommitError(SeoAgentError):
    """Raised when staging or committing changes fails locally."""


class PushError(SeoAgentError):
    """Raised when the remote rejects a push."""


class ExternalServiceError(SeoAgentError):
    """Raised when an HTTP collaborator (AI, images, analytics) fails."""


class PipelineTimeout(SeoAgentError):
    """Raised between steps once a repository exceeds its wall-clock budget."""


__all__ = [
    "BudgetExceededError",
    "CommitError",
    "ExternalServiceError",
    "MalformedResponseError",
    "PatchMismatchError",
    "PipelineTimeout",
    "ProfileError",
    "PushError",
    "SeoAgentError",
    "SyncError",
]
