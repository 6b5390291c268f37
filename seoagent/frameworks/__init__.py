"""Framework handler registry and plugin discovery."""

from __future__ import annotations

import threading
from importlib import metadata
from typing import Callable, Dict, Iterable, Optional

from ..logging import get_logger
from ..models import Framework
from .astro import AstroHandler
from .base import BlogPostDraft, FrameworkHandler, GeneratedFile, TextEdit
from .html import HtmlHandler
from .nextjs_app import NextAppHandler
from .nextjs_pages import NextPagesHandler

_ENTRY_POINT_GROUP = "seoagent.frameworks"

_BUILTIN_FACTORIES: Dict[Framework, Callable[[], FrameworkHandler]] = {
    Framework.ASTRO: AstroHandler,
    Framework.HTML: HtmlHandler,
    Framework.NEXTJS_APP: NextAppHandler,
    Framework.NEXTJS_PAGES: NextPagesHandler,
}

_registry: Dict[Framework, Callable[[], FrameworkHandler]] = dict(_BUILTIN_FACTORIES)
_registry_lock = threading.Lock()
_plugins_loaded = False

logger = get_logger("frameworks")


def register_handler(framework: Framework, factory: Callable[[], FrameworkHandler]) -> None:
    """Register (or replace) the handler used for ``framework``."""
    with _registry_lock:
        _registry[framework] = factory


def get_handler(framework: Framework) -> Optional[FrameworkHandler]:
    """Return a fresh handler for ``framework`` or None when it is unsupported."""
    _load_plugins()
    factory = _registry.get(framework)
    if factory is None:
        return None
    handler = factory()
    if not isinstance(handler, FrameworkHandler):
        raise TypeError(f"Handler factory for '{framework.value}' did not return a FrameworkHandler")
    return handler


def supported_frameworks() -> list[Framework]:
    _load_plugins()
    return sorted(_registry, key=lambda framework: framework.value)


def _load_plugins() -> None:
    global _plugins_loaded
    with _registry_lock:
        if _plugins_loaded:
            return
        _plugins_loaded = True
        for entry in _iter_entry_points():
            try:
                framework = Framework(entry.name)
            except ValueError:
                logger.warning("Ignoring handler plugin for unknown framework '%s'", entry.name)
                continue
            try:
                loaded = entry.load()
            except Exception as exc:  # pragma: no cover - depends on installed plugins
                raise RuntimeError(f"Failed to load framework handler '{entry.name}': {exc}") from exc
            _registry[framework] = loaded


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    try:
        entry_points = metadata.entry_points()
    except Exception:  # pragma: no cover - broken metadata in the environment
        return []
    return entry_points.select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "BlogPostDraft",
    "FrameworkHandler",
    "GeneratedFile",
    "TextEdit",
    "get_handler",
    "register_handler",
    "supported_frameworks",
]
