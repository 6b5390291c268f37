"""Next.js App Router handler."""

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
    insert_before,
    json_ld,
    route_from_parts,
)

_PAGE_RE = re.compile(r"^(app|src/app)/(.+/)?page\.(tsx|jsx|js|mdx)$")
_LAYOUT_RE = re.compile(r"^(app|src/app)/(.+/)?layout\.(tsx|jsx|js)$")
_METADATA_RE = re.compile(
    r"export\s+const\s+metadata(?:\s*:\s*Metadata)?\s*=\s*\{.*?(?:\n\};?|\};)", re.DOTALL
)
_IMPORT_RE = re.compile(
    r"""^(?:import\s[^\n]*?\bfrom\s+['"][^'"]+['"]|import\s+['"][^'"]+['"]|\}\s*from\s+['"][^'"]+['"]);?[ \t]*$""",
    re.MULTILINE,
)
_USE_CLIENT_RE = re.compile(r"""^\s*['"]use client['"]""")


def _field_re(name: str) -> re.Pattern[str]:
    return re.compile(rf"""\b{name}\s*:\s*(['"`])(.*?)\1""", re.DOTALL)


class NextAppHandler(FrameworkHandler):
    framework = Framework.NEXTJS_APP

    def __init__(self) -> None:
        self.app_dir = "app"

    def bind(self, files: Sequence[str]) -> "NextAppHandler":
        if not any(path.startswith("app/") for path in files) and any(
            path.startswith("src/app/") for path in files
        ):
            self.app_dir = "src/app"
        return self

    def page_files(self, files: Sequence[str]) -> List[str]:
        return sorted(path for path in files if _PAGE_RE.match(path))

    def layout_files(self, files: Sequence[str]) -> List[str]:
        return sorted(path for path in files if _LAYOUT_RE.match(path))

    def url_for(self, path: str) -> str:
        match = _PAGE_RE.match(path)
        segments = (match.group(2) or "").strip("/").split("/") if match else []
        # Route groups "(marketing)" and parallel slots "@modal" do not appear in URLs.
        visible = [
            segment
            for segment in segments
            if segment and not (segment.startswith("(") and segment.endswith(")")) and not segment.startswith("@")
        ]
        return route_from_parts(visible)

    def extract_meta(self, content: str) -> PageMeta:
        block = _METADATA_RE.search(content)
        if not block:
            return PageMeta()
        title = _field_re("title").search(block.group(0))
        description = _field_re("description").search(block.group(0))
        return PageMeta(
            title=title.group(2).strip() if title else None,
            description=description.group(2).strip() if description else None,
        )

    def generate_meta_code(self, meta: PageMeta) -> str:
        lines = ["export const metadata = {"]
        if meta.title is not None:
            lines.append(f"  title: {json.dumps(meta.title)},")
        if meta.description is not None:
            lines.append(f"  description: {json.dumps(meta.description)},")
        lines.append("};")
        return "\n".join(lines)

    def plan_meta_edit(self, path: str, content: str, meta: PageMeta) -> Optional[TextEdit]:
        if _USE_CLIENT_RE.match(content):
            # Client components cannot export metadata.
            return None

        existing = _METADATA_RE.search(content)
        if existing:
            block = existing.group(0)
            updated = block
            for name, value in (("title", meta.title), ("description", meta.description)):
                if value is None:
                    continue
                field_re = _field_re(name)
                rendered = f"{name}: {json.dumps(value)}"
                if field_re.search(updated):
                    updated = field_re.sub(lambda _m: rendered, updated, count=1)
                else:
                    updated = re.sub(r"=\s*\{", lambda m: m.group(0) + f"\n  {rendered},", updated, count=1)
            if updated == block:
                return None
            return TextEdit(search=block, replace=updated)

        code = self.generate_meta_code(meta)
        imports = list(_IMPORT_RE.finditer(content))
        if imports:
            anchor = imports[-1].group(0)
            return TextEdit(search=anchor, replace=f"{anchor}\n\n{code}")
        if not content:
            return None
        first_line = content.split("\n", 1)[0]
        return TextEdit(search=first_line, replace=f"{code}\n\n{first_line}")

    def sitemap_file(self, domain: str, urls: Sequence[str]) -> GeneratedFile:
        entries = ",\n".join(
            "    {\n"
            f"      url: `${{baseUrl}}{'' if url == '/' else url}`,\n"
            "      lastModified: new Date(),\n"
            "      changeFrequency: 'weekly',\n"
            f"      priority: {'1' if url == '/' else '0.8'},\n"
            "    }"
            for url in urls
        )
        content = (
            "import { MetadataRoute } from 'next';\n\n"
            f"const baseUrl = {json.dumps(domain)};\n\n"
            "export default function sitemap(): MetadataRoute.Sitemap {\n"
            "  return [\n"
            f"{entries}\n"
            "  ];\n"
            "}\n"
        )
        return GeneratedFile(path=f"{self._app_dir()}/sitemap.ts", content=content)

    def robots_file(self, domain: str) -> GeneratedFile:
        content = (
            "import { MetadataRoute } from 'next';\n\n"
            "export default function robots(): MetadataRoute.Robots {\n"
            "  return {\n"
            "    rules: {\n"
            "      userAgent: '*',\n"
            "      allow: '/',\n"
            "      disallow: ['/api/', '/_next/'],\n"
            "    },\n"
            f"    sitemap: {json.dumps(domain + '/sitemap.xml')},\n"
            "  };\n"
            "}\n"
        )
        return GeneratedFile(path=f"{self._app_dir()}/robots.ts", content=content)

    def schema_edit(
        self, domain: str, site_name: str, read: FileReader, layouts: Sequence[str]
    ) -> Optional[Tuple[str, Optional[TextEdit], Optional[str]]]:
        payload = json.dumps(json_ld(domain, site_name, indent=None))
        script = (
            '<script type="application/ld+json" '
            f"dangerouslySetInnerHTML={{{{ __html: {payload} }}}} />\n        "
        )
        root_prefix = f"{self._app_dir()}/layout."
        for path in layouts:
            if not path.startswith(root_prefix):
                continue
            edit = insert_before(read(path), "</body>", script)
            if edit is not None:
                return (path, edit, None)
        return None

    def blog_directory(self) -> str:
        return f"{self._app_dir()}/blog"

    def format_blog_post(self, post: BlogPostDraft, published: date) -> GeneratedFile:
        metadata = {
            "title": post.title,
            "description": post.description,
            "openGraph": {"type": "article", "publishedTime": published.isoformat()},
        }
        if post.image_path:
            metadata["openGraph"]["images"] = [self.image_url(post.image_path)]  # type: ignore[index]
        content = (
            f"export const metadata = {json.dumps(metadata, indent=2)};\n\n"
            f"# {post.title}\n\n"
            f"{post.body.strip()}\n"
        )
        return GeneratedFile(path=f"{self.blog_directory()}/{post.slug}/page.mdx", content=content)

    def _app_dir(self) -> str:
        return self.app_dir
