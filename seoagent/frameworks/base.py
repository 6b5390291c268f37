"""Capability interface for framework-specific SEO code generation."""

from __future__ import annotations

import html
import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from ..models import Framework, PageMeta

TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_META_DESCRIPTION_RES = (
    re.compile(
        r"""<meta\s+[^>]*name=["']description["'][^>]*content=["']([^"']*)["'][^>]*>""",
        re.IGNORECASE,
    ),
    re.compile(
        r"""<meta\s+[^>]*content=["']([^"']*)["'][^>]*name=["']description["'][^>]*>""",
        re.IGNORECASE,
    ),
)
_META_DESCRIPTION_TAG_RE = re.compile(
    r"""<meta\s+[^>]*name=["']description["'][^>]*/?>""", re.IGNORECASE
)
_FRONTMATTER_RE = re.compile(r"\A---\r?\n(.*?)\r?\n---\r?\n", re.DOTALL)

# Reads a repository-relative file, returning None when it does not exist.
FileReader = Callable[[str], Optional[str]]


@dataclass
class TextEdit:
    """Replace the first occurrence of ``search`` with ``replace``."""

    search: str
    replace: str


@dataclass
class GeneratedFile:
    path: str
    content: str


@dataclass
class BlogPostDraft:
    """Framework-neutral blog post ready to be formatted into a source file."""

    title: str
    slug: str
    description: str
    body: str
    tags: Sequence[str] = ()
    image_path: Optional[str] = None


class FrameworkHandler(ABC):
    """Contract every supported framework implements."""

    framework: Framework = Framework.UNKNOWN
    public_dir: str = "public"

    @abstractmethod
    def page_files(self, files: Sequence[str]) -> List[str]:
        """Return routable page files from the repository file list."""

    @abstractmethod
    def layout_files(self, files: Sequence[str]) -> List[str]:
        """Return shared layout files."""

    @abstractmethod
    def url_for(self, path: str) -> str:
        """Map a page file to the URL path it serves."""

    @abstractmethod
    def extract_meta(self, content: str) -> PageMeta:
        """Read the title and description a page currently declares."""

    @abstractmethod
    def generate_meta_code(self, meta: PageMeta) -> str:
        """Render the framework's idiom for declaring page meta."""

    @abstractmethod
    def plan_meta_edit(self, path: str, content: str, meta: PageMeta) -> Optional[TextEdit]:
        """Return the edit that sets ``meta`` on the page, or None when no anchor exists."""

    @abstractmethod
    def sitemap_file(self, domain: str, urls: Sequence[str]) -> GeneratedFile:
        """Generate the sitemap for ``urls``."""

    @abstractmethod
    def robots_file(self, domain: str) -> GeneratedFile:
        """Generate robots rules pointing at the sitemap."""

    @abstractmethod
    def schema_edit(
        self, domain: str, site_name: str, read: FileReader, layouts: Sequence[str]
    ) -> Optional[Tuple[str, Optional[TextEdit], Optional[str]]]:
        """Place Organization/WebSite structured data where every page renders it.

        ``layouts`` are the shared layout files from the profile. Returns
        ``(path, edit, content)``: an edit against an existing file or full
        content for a new one. None means the repository has no file every
        page renders through.
        """

    @abstractmethod
    def blog_directory(self) -> str:
        """Directory new blog posts are written to."""

    @abstractmethod
    def format_blog_post(self, post: BlogPostDraft, published: date) -> GeneratedFile:
        """Render a blog post as a source file for this framework."""

    def bind(self, files: Sequence[str]) -> "FrameworkHandler":
        """Adapt layout-dependent paths to the repository; returns self."""
        return self

    def image_path(self, slug: str, extension: str) -> str:
        return f"{self.public_dir}/images/blog/{slug}.{extension}"

    def image_url(self, image_path: str) -> str:
        prefix = f"{self.public_dir}/"
        if self.public_dir and image_path.startswith(prefix):
            return "/" + image_path[len(prefix):]
        return "/" + image_path


# ----------------------------------------------------------------------
# Shared helpers


def strip_extension(path: str, extensions: Iterable[str]) -> str:
    for extension in extensions:
        if path.endswith(extension):
            return path[: -len(extension)]
    return path


def route_from_parts(parts: Sequence[str]) -> str:
    cleaned = [part for part in parts if part and part != "index"]
    return "/" + "/".join(cleaned)


def extract_html_meta(content: str) -> PageMeta:
    title_match = TITLE_RE.search(content)
    title = _clean(title_match.group(1)) if title_match else None
    description = None
    for pattern in _META_DESCRIPTION_RES:
        match = pattern.search(content)
        if match:
            description = _clean(match.group(1))
            break
    return PageMeta(title=title or None, description=description or None)


def frontmatter_field(content: str, name: str) -> Optional[str]:
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return None
    field_re = re.compile(rf"^{re.escape(name)}:\s*(.+?)\s*$", re.MULTILINE)
    field_match = field_re.search(match.group(1))
    if not field_match:
        return None
    return field_match.group(1).strip().strip("\"'") or None


def frontmatter_block(content: str) -> Optional[str]:
    match = _FRONTMATTER_RE.match(content)
    return match.group(0) if match else None


def render_frontmatter_edit(block: str, meta: PageMeta) -> str:
    """Return ``block`` with title/description keys set or added."""
    lines = block.rstrip("\n").split("\n")
    body = lines[1:-1]
    for key, value in (("title", meta.title), ("description", meta.description)):
        if value is None:
            continue
        rendered = f"{key}: {json.dumps(value)}"
        for index, line in enumerate(body):
            if line.startswith(f"{key}:"):
                body[index] = rendered
                break
        else:
            body.append(rendered)
    return "\n".join(["---", *body, "---"]) + "\n"


def html_meta_tags(meta: PageMeta, indent: str = "    ") -> str:
    lines: List[str] = []
    if meta.title is not None:
        lines.append(f"{indent}<title>{html.escape(meta.title, quote=False)}</title>")
    if meta.description is not None:
        lines.append(
            f'{indent}<meta name="description" content="{html.escape(meta.description)}" />'
        )
    return "\n".join(lines)


def plan_head_edit(
    content: str, meta: PageMeta, *, open_tag: str = "head", close_tag: str = "head"
) -> Optional[TextEdit]:
    """Rewrite the ``<head>`` (or ``<Head>``) block so it carries ``meta``."""
    block_re = re.compile(
        rf"<{open_tag}(\s[^>]*)?>.*?</{close_tag}>", re.DOTALL
    )
    match = block_re.search(content)
    if not match:
        return None
    block = match.group(0)
    updated = block
    indent = _child_indent(content, match.start())
    inserts: List[str] = []

    if meta.title is not None:
        escaped = html.escape(meta.title, quote=False)
        if TITLE_RE.search(updated):
            updated = TITLE_RE.sub(
                lambda _m: f"<title>{escaped}</title>", updated, count=1
            )
        else:
            inserts.append(f"{indent}<title>{escaped}</title>")
    if meta.description is not None:
        tag = f'<meta name="description" content="{html.escape(meta.description)}" />'
        if _META_DESCRIPTION_TAG_RE.search(updated):
            updated = _META_DESCRIPTION_TAG_RE.sub(lambda _m: tag, updated, count=1)
        else:
            inserts.append(f"{indent}{tag}")

    if inserts:
        head_open = f"<{open_tag}{match.group(1) or ''}>"
        updated = updated.replace(head_open, head_open + "\n" + "\n".join(inserts), 1)
    if updated == block:
        return None
    return TextEdit(search=block, replace=updated)


def json_ld(domain: str, site_name: str, *, indent: Optional[int] = 2) -> str:
    payload = {
        "@context": "https://schema.org",
        "@type": "WebSite",
        "name": site_name,
        "url": domain or "/",
        "publisher": {"@type": "Organization", "name": site_name, "url": domain or "/"},
    }
    return json.dumps(payload, indent=indent)


def insert_before(content: Optional[str], marker: str, snippet: str) -> Optional[TextEdit]:
    """Edit placing ``snippet`` directly in front of the first ``marker``."""
    if content is None or marker not in content:
        return None
    return TextEdit(search=marker, replace=snippet + marker)


def xml_sitemap(domain: str, urls: Sequence[str]) -> str:
    today = date.today().isoformat()
    entries = []
    for url in urls:
        location = html.escape(f"{domain}{url}" if url != "/" else f"{domain}/")
        priority = "1.0" if url == "/" else "0.8"
        entries.append(
            "  <url>\n"
            f"    <loc>{location}</loc>\n"
            f"    <lastmod>{today}</lastmod>\n"
            "    <changefreq>weekly</changefreq>\n"
            f"    <priority>{priority}</priority>\n"
            "  </url>"
        )
    body = "\n".join(entries)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        f"{body}\n"
        "</urlset>\n"
    )


def robots_txt(domain: str, disallow: Sequence[str] = ()) -> str:
    lines = ["User-agent: *", "Allow: /"]
    lines.extend(f"Disallow: {path}" for path in disallow)
    lines.append("")
    lines.append(f"Sitemap: {domain}/sitemap.xml")
    return "\n".join(lines) + "\n"


def markdown_frontmatter(post: BlogPostDraft, published: date) -> str:
    lines = [
        "---",
        f"title: {json.dumps(post.title)}",
        f"description: {json.dumps(post.description)}",
        f"pubDate: {published.isoformat()}",
    ]
    if post.tags:
        lines.append(f"tags: {json.dumps(list(post.tags))}")
    if post.image_path:
        lines.append(f"image: {json.dumps(post.image_path)}")
    lines.append("---")
    return "\n".join(lines) + "\n"


def _child_indent(content: str, offset: int) -> str:
    line_start = content.rfind("\n", 0, offset) + 1
    prefix = content[line_start:offset]
    base = prefix if not prefix.strip() else ""
    return base + "  "


def _clean(value: str) -> str:
    return html.unescape(re.sub(r"\s+", " ", value)).strip()
