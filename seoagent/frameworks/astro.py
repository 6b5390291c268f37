"""Astro handler."""

from __future__ import annotations

import json
import re
from datetime import date
from typing import List, Optional, Sequence, Tuple

from ..models import Framework, PageMeta
from .base import (
    BlogPostDraft,
    FileReader,
    FrameworkHandler,
    GeneratedFile,
    TextEdit,
    extract_html_meta,
    frontmatter_block,
    frontmatter_field,
    insert_before,
    json_ld,
    markdown_frontmatter,
    plan_head_edit,
    render_frontmatter_edit,
    robots_txt,
    route_from_parts,
    strip_extension,
    xml_sitemap,
)

_PAGE_RE = re.compile(r"^src/pages/.*\.(astro|md|mdx)$")
_LAYOUT_RE = re.compile(r"^src/layouts/[^/]+\.astro$")
_ROOT_LAYOUT_RE = re.compile(r"/(Base|Root|Main)?Layout\.astro$", re.IGNORECASE)
_LAYOUT_TAG_RE = re.compile(r"<([A-Z]\w*Layout)\b([^>]*)>")
_ATTR_RE = r"""\b{name}=(?:"([^"]*)"|'([^']*)'|\{{["'`]([^"'`]*)["'`]\}})"""
_EXTENSIONS = (".astro", ".mdx", ".md")


class AstroHandler(FrameworkHandler):
    framework = Framework.ASTRO

    def page_files(self, files: Sequence[str]) -> List[str]:
        return sorted(path for path in files if _PAGE_RE.match(path))

    def layout_files(self, files: Sequence[str]) -> List[str]:
        return sorted(path for path in files if _LAYOUT_RE.match(path))

    def url_for(self, path: str) -> str:
        relative = strip_extension(path[len("src/pages/"):], _EXTENSIONS)
        return route_from_parts(relative.split("/"))

    def extract_meta(self, content: str) -> PageMeta:
        meta = extract_html_meta(content)
        layout = _LAYOUT_TAG_RE.search(content)
        title = frontmatter_field(content, "title")
        description = frontmatter_field(content, "description")
        if layout:
            title = title or _attribute(layout.group(2), "title")
            description = description or _attribute(layout.group(2), "description")
        return PageMeta(
            title=title or meta.title,
            description=description or meta.description,
        )

    def generate_meta_code(self, meta: PageMeta) -> str:
        lines = []
        if meta.title is not None:
            lines.append(f"const title = {json.dumps(meta.title)};")
        if meta.description is not None:
            lines.append(f"const description = {json.dumps(meta.description)};")
        return "\n".join(lines)

    def plan_meta_edit(self, path: str, content: str, meta: PageMeta) -> Optional[TextEdit]:
        if path.endswith((".md", ".mdx")):
            block = frontmatter_block(content)
            if block is None:
                if not content:
                    return None
                return TextEdit(search=content, replace=render_frontmatter_edit("---\n---\n", meta) + content)
            return TextEdit(search=block, replace=render_frontmatter_edit(block, meta))

        head_edit = plan_head_edit(content, meta)
        if head_edit is not None:
            return head_edit

        layout = _LAYOUT_TAG_RE.search(content)
        if layout is None:
            return None
        tag = layout.group(0)
        attributes = layout.group(2)
        for name, value in (("title", meta.title), ("description", meta.description)):
            if value is None:
                continue
            rendered = f"{name}={json.dumps(value)}"
            existing = re.search(_ATTR_RE.format(name=name), attributes)
            if existing:
                attributes = attributes.replace(existing.group(0), rendered, 1)
            else:
                attributes = f" {rendered}{attributes}"
        updated = f"<{layout.group(1)}{attributes}>"
        if updated == tag:
            return None
        return TextEdit(search=tag, replace=updated)

    def sitemap_file(self, domain: str, urls: Sequence[str]) -> GeneratedFile:
        return GeneratedFile(path="public/sitemap.xml", content=xml_sitemap(domain, urls))

    def robots_file(self, domain: str) -> GeneratedFile:
        return GeneratedFile(
            path="public/robots.txt", content=robots_txt(domain, disallow=("/api/", "/_astro/"))
        )

    def schema_edit(
        self, domain: str, site_name: str, read: FileReader, layouts: Sequence[str]
    ) -> Optional[Tuple[str, Optional[TextEdit], Optional[str]]]:
        payload = json.dumps(json_ld(domain, site_name, indent=None))
        script = f'<script type="application/ld+json" set:html={{{payload}}} />\n  '
        # Root layouts first; the home page only when no layout owns <head>.
        candidates = sorted(layouts, key=lambda path: (not _ROOT_LAYOUT_RE.search(path), path))
        for path in [*candidates, "src/pages/index.astro"]:
            edit = insert_before(read(path), "</head>", script)
            if edit is not None:
                return (path, edit, None)
        return None

    def blog_directory(self) -> str:
        return "src/content/blog"

    def format_blog_post(self, post: BlogPostDraft, published: date) -> GeneratedFile:
        if post.image_path:
            post = BlogPostDraft(
                title=post.title,
                slug=post.slug,
                description=post.description,
                body=post.body,
                tags=post.tags,
                image_path=self.image_url(post.image_path),
            )
        content = markdown_frontmatter(post, published) + "\n" + post.body.strip() + "\n"
        return GeneratedFile(path=f"{self.blog_directory()}/{post.slug}.md", content=content)


def _attribute(attributes: str, name: str) -> Optional[str]:
    match = re.search(_ATTR_RE.format(name=name), attributes)
    if not match:
        return None
    return next((group for group in match.groups() if group), None)
