"""Next.js Pages Router handler."""

from __future__ import annotations

import json
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
    insert_before,
    json_ld,
    markdown_frontmatter,
    plan_head_edit,
    robots_txt,
    route_from_parts,
    strip_extension,
    xml_sitemap,
)

_PAGE_ROOTS = ("pages/", "src/pages/")
_EXTENSIONS = (".tsx", ".jsx", ".js", ".mdx")
_SPECIAL_PAGES = {"_app", "_document", "_error"}
_EMPTY_HEAD = "<Head />"


class NextPagesHandler(FrameworkHandler):
    framework = Framework.NEXTJS_PAGES

    def __init__(self) -> None:
        self.pages_dir = "pages"

    def bind(self, files: Sequence[str]) -> "NextPagesHandler":
        in_src = any(path.startswith("src/pages/") for path in files) and not any(
            path.startswith("pages/") for path in files
        )
        self.pages_dir = "src/pages" if in_src else "pages"
        return self

    def page_files(self, files: Sequence[str]) -> List[str]:
        pages = []
        for path in files:
            root = next((prefix for prefix in _PAGE_ROOTS if path.startswith(prefix)), None)
            if root is None or not path.endswith(_EXTENSIONS):
                continue
            relative = path[len(root):]
            if relative.startswith("api/"):
                continue
            stem = strip_extension(relative, _EXTENSIONS).rsplit("/", 1)[-1]
            if stem in _SPECIAL_PAGES:
                continue
            pages.append(path)
        return sorted(pages)

    def layout_files(self, files: Sequence[str]) -> List[str]:
        candidates = []
        for path in files:
            stem = path.rsplit("/", 1)[-1]
            if any(path.startswith(root) for root in _PAGE_ROOTS) and stem.startswith(("_app.", "_document.")):
                candidates.append(path)
            elif "components/" in path and "layout" in stem.lower():
                candidates.append(path)
        return sorted(candidates)

    def url_for(self, path: str) -> str:
        root = next((prefix for prefix in _PAGE_ROOTS if path.startswith(prefix)), "")
        relative = strip_extension(path[len(root):], _EXTENSIONS)
        return route_from_parts(relative.split("/"))

    def extract_meta(self, content: str) -> PageMeta:
        return extract_html_meta(content)

    def generate_meta_code(self, meta: PageMeta) -> str:
        return "<Head>\n" + html_meta_tags(meta, indent="  ") + "\n</Head>"

    def plan_meta_edit(self, path: str, content: str, meta: PageMeta) -> Optional[TextEdit]:
        return plan_head_edit(content, meta, open_tag="Head", close_tag="Head")

    def sitemap_file(self, domain: str, urls: Sequence[str]) -> GeneratedFile:
        return GeneratedFile(path="public/sitemap.xml", content=xml_sitemap(domain, urls))

    def robots_file(self, domain: str) -> GeneratedFile:
        return GeneratedFile(
            path="public/robots.txt", content=robots_txt(domain, disallow=("/api/", "/_next/"))
        )

    def schema_edit(
        self, domain: str, site_name: str, read: FileReader, layouts: Sequence[str]
    ) -> Optional[Tuple[str, Optional[TextEdit], Optional[str]]]:
        payload = json.dumps(json_ld(domain, site_name, indent=None))
        script = f'<script type="application/ld+json" dangerouslySetInnerHTML={{{{ __html: {payload} }}}} />'
        documents = [path for path in layouts if path.rsplit("/", 1)[-1].startswith("_document.")]
        for path in documents:
            content = read(path)
            edit = insert_before(content, "</Head>", script + "\n        ")
            if edit is None and content is not None and _EMPTY_HEAD in content:
                edit = TextEdit(search=_EMPTY_HEAD, replace=f"<Head>\n          {script}\n        </Head>")
            if edit is not None:
                return (path, edit, None)
        if documents:
            return None
        # Next.js renders pages/_document for every page once it exists.
        content = (
            "import { Html, Head, Main, NextScript } from 'next/document';\n\n"
            "export default function Document() {\n"
            "  return (\n"
            '    <Html lang="en">\n'
            "      <Head>\n"
            f"        {script}\n"
            "      </Head>\n"
            "      <body>\n"
            "        <Main />\n"
            "        <NextScript />\n"
            "      </body>\n"
            "    </Html>\n"
            "  );\n"
            "}\n"
        )
        return (f"{self.pages_dir}/_document.tsx", None, content)

    def blog_directory(self) -> str:
        return f"{self.pages_dir}/blog"

    def format_blog_post(self, post: BlogPostDraft, published: date) -> GeneratedFile:
        head = html_meta_tags(PageMeta(title=post.title, description=post.description), indent="  ")
        image = ""
        if post.image_path:
            image = f'\n<img src={json.dumps(self.image_url(post.image_path))} alt={json.dumps(post.title)} />\n'
        content = (
            markdown_frontmatter(post, published)
            + "\nimport Head from 'next/head';\n\n"
            + f"<Head>\n{head}\n</Head>\n\n"
            + f"# {post.title}\n"
            + image
            + f"\n{post.body.strip()}\n"
        )
        return GeneratedFile(path=f"{self.blog_directory()}/{post.slug}.mdx", content=content)
