"""Source-control collaborators."""

from .publisher import CommitGateway, build_commit_message
from .sync import RepositorySynchronizer

__all__ = ["CommitGateway", "RepositorySynchronizer", "build_commit_message"]
