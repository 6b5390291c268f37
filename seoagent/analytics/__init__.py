"""Search analytics collaborators."""

from .search_console import SearchConsoleClient

__all__ = ["SearchConsoleClient"]
