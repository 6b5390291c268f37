"""Structural profiling of a repository working copy."""

from __future__ import annotations

import os
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence

from ..errors import ProfileError
from ..frameworks import get_handler
from ..logging import get_logger
from ..models import (
    CodebaseProfile,
    DirectoryRoles,
    Framework,
    ImageRef,
    PageInfo,
    PageMeta,
    RepositoryTarget,
    SeoArtifacts,
)
from .detector import Detection, detect_framework

_EXCLUDED_DIRS = {
    "node_modules",
    ".git",
    ".next",
    ".astro",
    ".nuxt",
    ".svelte-kit",
    "dist",
    "build",
    "out",
    ".cache",
    "coverage",
}

_PAGES_DIRS = {
    Framework.NEXTJS_APP: ("app", "src/app"),
    Framework.NEXTJS_PAGES: ("pages", "src/pages"),
    Framework.ASTRO: ("src/pages",),
    Framework.NUXT: ("pages",),
    Framework.GATSBY: ("src/pages",),
    Framework.REMIX: ("app/routes",),
    Framework.SVELTEKIT: ("src/routes",),
    Framework.VITE_REACT: ("src/pages", "src"),
    Framework.VITE_VUE: ("src/views", "src/pages", "src"),
    Framework.HTML: (".",),
}
_COMPONENT_DIRS = ("src/components", "components", "src/ui", "app/components")
_PUBLIC_DIRS = ("public", "static")
_CONTENT_DIRS = ("src/content", "content", "posts", "src/posts", "_posts", "data")
_CONFIG_FILES = (
    "package.json",
    "next.config.js",
    "next.config.mjs",
    "next.config.ts",
    "astro.config.mjs",
    "astro.config.ts",
    "nuxt.config.ts",
    "nuxt.config.js",
    "gatsby-config.js",
    "svelte.config.js",
    "vite.config.ts",
    "vite.config.js",
    "tsconfig.json",
)
_SITEMAP_CANDIDATES = (
    "public/sitemap.xml",
    "static/sitemap.xml",
    "sitemap.xml",
    "app/sitemap.ts",
    "app/sitemap.tsx",
    "app/sitemap.js",
    "src/app/sitemap.ts",
    "public/sitemap-index.xml",
)
_ROBOTS_CANDIDATES = (
    "public/robots.txt",
    "static/robots.txt",
    "robots.txt",
    "app/robots.ts",
    "app/robots.tsx",
    "app/robots.js",
    "src/app/robots.ts",
)
_SCHEMA_KEYWORDS = ("schema", "jsonld", "json-ld", "structured-data", "structureddata")
_SCHEMA_SUFFIXES = (".astro", ".tsx", ".jsx", ".ts", ".js", ".json", ".jsonld", ".html", ".vue")

_IMG_TAG_RE = re.compile(r"<(?:img|Image)\b([^>]*)>", re.IGNORECASE | re.DOTALL)
_SRC_RE = re.compile(r"""\bsrc=(?:"([^"]*)"|'([^']*)'|\{([^}]*)\})""")
_ALT_RE = re.compile(r"""\balt=(?:"([^"]*)"|'([^']*)'|\{([^}]*)\})""")
_HREF_RE = re.compile(r"""\bhref=["'](/[^"'#?]*)""")
_CODE_BLOCK_RE = re.compile(r"(<script\b.*?</script>|<style\b.*?</style>|```.*?```)", re.DOTALL | re.IGNORECASE)
_FRONTMATTER_RE = re.compile(r"\A---\r?\n.*?\r?\n---\r?\n", re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_EXPR_RE = re.compile(r"\{[^{}]*\}")
_IMPORT_RE = re.compile(r"^\s*(import|export)\b.*$", re.MULTILINE)
_WORD_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9'\-]*")
_OG_IMAGE_MARKERS = ("og:image", "openGraph", "opengraph-image")
_SCHEMA_MARKERS = ("application/ld+json", "@context", "schema.org")
_SCHEMA_TYPE_RE = re.compile(r"""\\?["']@type\\?["']\s*:\s*\\?["'](\w+)\\?["']""")

Detector = Callable[[Path, Sequence[str]], Detection]


class Profiler:
    """Derives a ``CodebaseProfile`` from a working copy."""

    def __init__(self, detector: Detector | None = None) -> None:
        self._detect = detector or detect_framework
        self.logger = get_logger("profiler")

    def profile(self, target: RepositoryTarget, commit: str, workdir: Path) -> CodebaseProfile:
        root = workdir.resolve()
        files = list(_iter_files(root))

        try:
            detection = self._detect(root, files)
        except ProfileError as exc:
            self.logger.warning("[%s] %s; falling back to framework 'unknown'", target.id, exc)
            detection = Detection(framework=Framework.UNKNOWN)
        self.logger.info(
            "[%s] Detected framework %s%s",
            target.id,
            detection.framework.value,
            f" {detection.version}" if detection.version else "",
        )

        roles = _directory_roles(detection.framework, files)
        artifacts = _seo_artifacts(root, files)

        pages: List[PageInfo] = []
        handler = get_handler(detection.framework)
        if handler is not None:
            handler.bind(files)
            roles.layout_files = handler.layout_files(files)
            for path in roles.layout_files:
                layout = _read_text(root / path) or ""
                if path not in artifacts.schema_files and any(marker in layout for marker in _SCHEMA_MARKERS):
                    artifacts.schema_files.append(path)
                    artifacts.schema_types.extend(_SCHEMA_TYPE_RE.findall(layout))
            for path in handler.page_files(files):
                content = _read_text(root / path)
                if content is None:
                    continue
                pages.append(_page_info(path, handler.url_for(path), content, handler.extract_meta(content)))
            for page in pages:
                if page.has_schema:
                    artifacts.schema_types.extend(
                        _SCHEMA_TYPE_RE.findall(_read_text(root / page.path) or "")
                    )
        else:
            self.logger.info(
                "[%s] No handler for %s; only repository-level checks apply",
                target.id,
                detection.framework.value,
            )
        artifacts.schema_types = sorted(set(artifacts.schema_types))

        safe_zones, danger_zones = roles.classify(target.settings.exclude_paths)

        return CodebaseProfile(
            repo_id=target.id,
            commit=commit,
            framework=detection.framework,
            framework_version=detection.version,
            roles=roles,
            artifacts=artifacts,
            pages=pages,
            safe_zones=safe_zones,
            danger_zones=danger_zones,
            scanned_at=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        )


def _iter_files(root: Path) -> Iterator[str]:
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""
        dirnames[:] = sorted(name for name in dirnames if name not in _EXCLUDED_DIRS)
        for filename in sorted(filenames):
            yield f"{rel_dir}/{filename}" if rel_dir else filename


def _directory_roles(framework: Framework, files: Sequence[str]) -> DirectoryRoles:
    def _first_dir(candidates: Sequence[str]) -> Optional[str]:
        for candidate in candidates:
            if candidate == ".":
                return candidate
            prefix = candidate + "/"
            if any(path.startswith(prefix) for path in files):
                return candidate
        return None

    file_set = set(files)
    return DirectoryRoles(
        pages_dir=_first_dir(_PAGES_DIRS.get(framework, ())),
        components_dir=_first_dir(_COMPONENT_DIRS),
        public_dir=_first_dir(_PUBLIC_DIRS),
        content_dir=_first_dir(_CONTENT_DIRS),
        config_files=[name for name in _CONFIG_FILES if name in file_set],
    )


def _seo_artifacts(root: Path, files: Sequence[str]) -> SeoArtifacts:
    file_set = set(files)
    sitemap = next((path for path in _SITEMAP_CANDIDATES if path in file_set), None)
    robots = next((path for path in _ROBOTS_CANDIDATES if path in file_set), None)
    schema_files = [
        path
        for path in files
        if path.endswith(_SCHEMA_SUFFIXES)
        and any(keyword in path.lower() for keyword in _SCHEMA_KEYWORDS)
        and path not in ("package.json", "tsconfig.json")
    ]
    schema_types: List[str] = []
    for path in schema_files:
        schema_types.extend(_SCHEMA_TYPE_RE.findall(_read_text(root / path) or ""))
    return SeoArtifacts(
        sitemap=sitemap,
        robots=robots,
        schema_files=schema_files,
        schema_types=schema_types,
    )


def _page_info(path: str, url: str, content: str, meta: PageMeta) -> PageInfo:
    images = []
    for match in _IMG_TAG_RE.finditer(content):
        attributes = match.group(1)
        src = _first_group(_SRC_RE.search(attributes))
        if not src:
            continue
        alt = _first_group(_ALT_RE.search(attributes))
        images.append(ImageRef(src=src.strip(), alt=alt.strip() if alt and alt.strip() else None))

    links = sorted({href.rstrip("/") or "/" for href in _HREF_RE.findall(content)})

    return PageInfo(
        path=path,
        url=url,
        title=meta.title,
        description=meta.description,
        has_og_image=any(marker in content for marker in _OG_IMAGE_MARKERS),
        has_schema=any(marker in content for marker in _SCHEMA_MARKERS),
        word_count=count_words(content),
        images=images,
        internal_links=links,
    )


def count_words(content: str) -> int:
    """Count visible words, ignoring frontmatter, code, markup and JSX expressions."""
    text = _FRONTMATTER_RE.sub(" ", content)
    text = _CODE_BLOCK_RE.sub(" ", text)
    text = _IMPORT_RE.sub(" ", text)
    text = _TAG_RE.sub(" ", text)
    previous = None
    while previous != text:
        previous = text
        text = _EXPR_RE.sub(" ", text)
    return len(_WORD_RE.findall(text))


def _first_group(match: Optional[re.Match[str]]) -> Optional[str]:
    if match is None:
        return None
    return next((group for group in match.groups() if group is not None), None)


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


__all__ = ["Profiler", "count_words"]
