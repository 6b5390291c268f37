"""Generators for meta values, blog posts and featured images."""

from .content import CADENCE_DAYS, ContentPublisher, slugify
from .images import ImageGenerator, optimize
from .meta import MetaWriter, clamp

__all__ = [
    "CADENCE_DAYS",
    "ContentPublisher",
    "ImageGenerator",
    "MetaWriter",
    "clamp",
    "optimize",
    "slugify",
]
