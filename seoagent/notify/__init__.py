"""Run notifications."""

from .email import EmailSender, render_summary

__all__ = ["EmailSender", "render_summary"]
