"""AI completion client and structured-output helpers."""

from .client import AIClient, CompletionRequest, MAX_TOOL_ITERATIONS, Tool
from .structured import BlogPost, MetaSuggestion, parse_structured

__all__ = [
    "AIClient",
    "BlogPost",
    "CompletionRequest",
    "MAX_TOOL_ITERATIONS",
    "MetaSuggestion",
    "Tool",
    "parse_structured",
]
