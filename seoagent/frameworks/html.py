"""Plain static HTML handler."""

from __future__ import annotations

import html
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
    html_meta_tags,
    json_ld,
    plan_head_edit,
    robots_txt,
    route_from_parts,
    strip_extension,
    xml_sitemap,
)

_EXTENSIONS = (".html", ".htm")
_HTML_OPEN_RE = re.compile(r"<html(\s[^>]*)?>", re.IGNORECASE)
_HEAD_CLOSE = "</head>"
_SKIPPED_DIRS = ("node_modules/", "vendor/")


class HtmlHandler(FrameworkHandler):
    framework = Framework.HTML
    public_dir = ""

    def page_files(self, files: Sequence[str]) -> List[str]:
        return sorted(
            path
            for path in files
            if path.lower().endswith(_EXTENSIONS) and not path.startswith(_SKIPPED_DIRS)
        )

    def layout_files(self, files: Sequence[str]) -> List[str]:
        return sorted(path for path in files if path.startswith(("_includes/", "partials/")))

    def url_for(self, path: str) -> str:
        relative = strip_extension(path, _EXTENSIONS)
        if relative == "index" or relative.endswith("/index"):
            return route_from_parts(relative.split("/"))
        return "/" + path

    def extract_meta(self, content: str) -> PageMeta:
        return extract_html_meta(content)

    def generate_meta_code(self, meta: PageMeta) -> str:
        return html_meta_tags(meta)

    def plan_meta_edit(self, path: str, content: str, meta: PageMeta) -> Optional[TextEdit]:
        edit = plan_head_edit(content, meta)
        if edit is not None:
            return edit
        opening = _HTML_OPEN_RE.search(content)
        if opening is None:
            return None
        tag = opening.group(0)
        return TextEdit(
            search=tag, replace=f"{tag}\n  <head>\n{html_meta_tags(meta)}\n  </head>"
        )

    def sitemap_file(self, domain: str, urls: Sequence[str]) -> GeneratedFile:
        return GeneratedFile(path="sitemap.xml", content=xml_sitemap(domain, urls))

    def robots_file(self, domain: str) -> GeneratedFile:
        return GeneratedFile(path="robots.txt", content=robots_txt(domain))

    def schema_edit(
        self, domain: str, site_name: str, read: FileReader, layouts: Sequence[str]
    ) -> Optional[Tuple[str, Optional[TextEdit], Optional[str]]]:
        content = read("index.html")
        if content is None or _HEAD_CLOSE not in content:
            return None
        script = (
            '  <script type="application/ld+json">\n'
            + json_ld(domain, site_name)
            + "\n  </script>\n"
        )
        return ("index.html", TextEdit(search=_HEAD_CLOSE, replace=script + _HEAD_CLOSE), None)

    def blog_directory(self) -> str:
        return "blog"

    def image_path(self, slug: str, extension: str) -> str:
        return f"images/blog/{slug}.{extension}"

    def format_blog_post(self, post: BlogPostDraft, published: date) -> GeneratedFile:
        head = html_meta_tags(PageMeta(title=post.title, description=post.description))
        figure = ""
        if post.image_path:
            figure = (
                f'    <img src="{html.escape(self.image_url(post.image_path))}" '
                f'alt="{html.escape(post.title)}" />\n'
            )
        content = (
            "<!DOCTYPE html>\n"
            '<html lang="en">\n'
            "  <head>\n"
            '    <meta charset="utf-8" />\n'
            f"{head}\n"
            "  </head>\n"
            "  <body>\n"
            "    <article>\n"
            f"    <h1>{html.escape(post.title)}</h1>\n"
            f'    <time datetime="{published.isoformat()}">{published.isoformat()}</time>\n'
            f"{figure}"
            f"{markdown_to_html(post.body)}\n"
            "    </article>\n"
            "  </body>\n"
            "</html>\n"
        )
        return GeneratedFile(path=f"{self.blog_directory()}/{post.slug}.html", content=content)


def markdown_to_html(text: str) -> str:
    """Convert headings, bullet lists and paragraphs; inline markup is escaped as-is."""
    blocks = [block.strip() for block in re.split(r"\n\s*\n", text.strip()) if block.strip()]
    rendered: List[str] = []
    for block in blocks:
        heading = re.match(r"^(#{1,6})\s+(.*)$", block)
        if heading and "\n" not in block:
            level = min(len(heading.group(1)) + 1, 6)
            rendered.append(f"    <h{level}>{html.escape(heading.group(2))}</h{level}>")
            continue
        lines = block.splitlines()
        if all(line.lstrip().startswith(("- ", "* ")) for line in lines):
            items = "\n".join(
                f"      <li>{html.escape(line.lstrip()[2:].strip())}</li>" for line in lines
            )
            rendered.append(f"    <ul>\n{items}\n    </ul>")
            continue
        paragraph = html.escape(" ".join(line.strip() for line in lines))
        rendered.append(f"    <p>{paragraph}</p>")
    return "\n".join(rendered)
