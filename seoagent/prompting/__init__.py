"""Prompt rendering for AI-backed fixes and content."""

from .builder import PromptBuilder

__all__ = ["PromptBuilder"]
