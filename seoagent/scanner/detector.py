"""Framework detection from package manifests and directory layout."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence, Set, Tuple

from ..errors import ProfileError
from ..models import Framework


@dataclass
class Detection:
    """Outcome of framework detection."""

    framework: Framework
    version: Optional[str] = None
    confidence: float = 0.0


@dataclass
class _Context:
    root: Path
    files: Set[str]
    dependencies: Dict[str, str]

    def has_dep(self, name: str) -> bool:
        return name in self.dependencies

    def exists(self, *paths: str) -> bool:
        return any(path in self.files for path in paths)

    def has_dir(self, prefix: str) -> bool:
        prefix = prefix.rstrip("/") + "/"
        return any(path.startswith(prefix) for path in self.files)


def _next(ctx: _Context) -> Optional[Framework]:
    if not ctx.has_dep("next"):
        return None
    major = _major_version(ctx.dependencies.get("next"))
    has_app_layout = any(
        path.startswith(("app/layout.", "src/app/layout.")) for path in ctx.files
    )
    has_app_dir = ctx.has_dir("app") or ctx.has_dir("src/app")
    if has_app_layout or (has_app_dir and (major is None or major >= 13)):
        return Framework.NEXTJS_APP
    if ctx.has_dir("pages") or ctx.has_dir("src/pages"):
        return Framework.NEXTJS_PAGES
    if major is not None and major >= 13:
        return Framework.NEXTJS_APP
    return Framework.NEXTJS_PAGES


def _simple(
    framework: Framework, deps: Sequence[str] = (), configs: Sequence[str] = ()
) -> Callable[[_Context], Optional[Framework]]:
    def _match(ctx: _Context) -> Optional[Framework]:
        if any(ctx.has_dep(dep) for dep in deps) or ctx.exists(*configs):
            return framework
        return None

    return _match


def _vite(framework: Framework, flavour: str) -> Callable[[_Context], Optional[Framework]]:
    def _match(ctx: _Context) -> Optional[Framework]:
        if ctx.has_dep("vite") and ctx.has_dep(flavour):
            return framework
        return None

    return _match


def _html(ctx: _Context) -> Optional[Framework]:
    if "index.html" in ctx.files:
        return Framework.HTML
    if any("/" not in path and path.lower().endswith((".html", ".htm")) for path in ctx.files):
        return Framework.HTML
    return None


# Evaluated in order; first match wins.
SIGNATURES: Tuple[Tuple[str, Callable[[_Context], Optional[Framework]], Optional[str]], ...] = (
    ("next", _next, "next"),
    ("astro", _simple(Framework.ASTRO, ("astro",), ("astro.config.mjs", "astro.config.ts", "astro.config.js")), "astro"),
    ("nuxt", _simple(Framework.NUXT, ("nuxt",), ("nuxt.config.ts", "nuxt.config.js")), "nuxt"),
    ("gatsby", _simple(Framework.GATSBY, ("gatsby",)), "gatsby"),
    ("remix", _simple(Framework.REMIX, ("@remix-run/react", "@remix-run/node")), "@remix-run/react"),
    ("sveltekit", _simple(Framework.SVELTEKIT, ("@sveltejs/kit",)), "@sveltejs/kit"),
    ("vite-react", _vite(Framework.VITE_REACT, "react"), "vite"),
    ("vite-vue", _vite(Framework.VITE_VUE, "vue"), "vite"),
    ("html", _html, None),
)


def detect_framework(root: Path, files: Sequence[str]) -> Detection:
    """Return the first matching framework signature.

    Raises ``ProfileError`` when ``package.json`` exists but cannot be parsed.
    """
    ctx = _Context(root=root, files=set(files), dependencies=_load_dependencies(root))
    for _name, matcher, version_dep in SIGNATURES:
        framework = matcher(ctx)
        if framework is None:
            continue
        version = _clean_version(ctx.dependencies.get(version_dep)) if version_dep else None
        confidence = 0.9 if version_dep and ctx.has_dep(version_dep) else 0.6
        return Detection(framework=framework, version=version, confidence=confidence)
    return Detection(framework=Framework.UNKNOWN)


def _load_dependencies(root: Path) -> Dict[str, str]:
    manifest = root / "package.json"
    if not manifest.exists():
        return {}
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ProfileError(f"Unable to parse {manifest.name}: {exc}") from exc
    if not isinstance(data, dict):
        raise ProfileError(f"{manifest.name} must contain a JSON object")

    dependencies: Dict[str, str] = {}
    for key in ("dependencies", "devDependencies"):
        section = data.get(key)
        if isinstance(section, dict):
            for name, version in section.items():
                dependencies[str(name)] = str(version)
    return dependencies


def _clean_version(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return re.sub(r"^[\^~>=<\s]+", "", value) or None


def _major_version(value: Optional[str]) -> Optional[int]:
    cleaned = _clean_version(value)
    if not cleaned:
        return None
    match = re.match(r"(\d+)", cleaned)
    return int(match.group(1)) if match else None


__all__ = ["Detection", "SIGNATURES", "detect_framework"]
