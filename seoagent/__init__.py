"""Autonomous SEO change pipeline for statically structured web repositories."""

__version__ = "0.1.0"

__all__ = ["__version__"]
