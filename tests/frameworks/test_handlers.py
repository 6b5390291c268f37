"""Tests for the per-framework code generators."""

from __future__ import annotations

from datetime import date

import pytest

from seoagent import frameworks
from seoagent.frameworks import BlogPostDraft, FrameworkHandler, get_handler, register_handler
from seoagent.frameworks.astro import AstroHandler
from seoagent.frameworks.html import HtmlHandler
from seoagent.frameworks.nextjs_app import NextAppHandler
from seoagent.frameworks.nextjs_pages import NextPagesHandler
from seoagent.models import Framework, PageMeta


def _apply(content: str, search: str, replace: str) -> str:
    assert search in content
    return content.replace(search, replace, 1)


def test_registry_returns_fresh_builtin_handlers() -> None:
    first = get_handler(Framework.ASTRO)
    second = get_handler(Framework.ASTRO)

    assert isinstance(first, AstroHandler)
    assert first is not second
    assert get_handler(Framework.NUXT) is None
    assert get_handler(Framework.UNKNOWN) is None


def test_register_handler_adds_framework(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(frameworks, "_registry", dict(frameworks._registry))

    register_handler(Framework.NUXT, HtmlHandler)

    assert isinstance(get_handler(Framework.NUXT), HtmlHandler)
    assert Framework.NUXT in frameworks.supported_frameworks()


def test_register_handler_rejects_wrong_factory(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(frameworks, "_registry", dict(frameworks._registry))
    register_handler(Framework.GATSBY, lambda: object())  # type: ignore[arg-type, return-value]

    with pytest.raises(TypeError):
        get_handler(Framework.GATSBY)


# ----------------------------------------------------------------------
# Astro


def test_astro_urls_and_pages() -> None:
    handler = AstroHandler()
    files = [
        "src/pages/index.astro",
        "src/pages/about.astro",
        "src/pages/blog/index.astro",
        "src/pages/blog/first-post.md",
        "src/components/Header.astro",
        "src/layouts/Base.astro",
    ]

    assert handler.page_files(files) == [
        "src/pages/about.astro",
        "src/pages/blog/first-post.md",
        "src/pages/blog/index.astro",
        "src/pages/index.astro",
    ]
    assert handler.layout_files(files) == ["src/layouts/Base.astro"]
    assert handler.url_for("src/pages/index.astro") == "/"
    assert handler.url_for("src/pages/about.astro") == "/about"
    assert handler.url_for("src/pages/blog/index.astro") == "/blog"
    assert handler.url_for("src/pages/blog/first-post.md") == "/blog/first-post"


def test_astro_extracts_meta_from_layout_props() -> None:
    content = (
        "---\nimport BaseLayout from '../layouts/BaseLayout.astro';\n---\n"
        '<BaseLayout title="Pricing" description={"Simple plans"}>\n  <h1>Pricing</h1>\n</BaseLayout>\n'
    )

    meta = AstroHandler().extract_meta(content)

    assert meta.title == "Pricing"
    assert meta.description == "Simple plans"


def test_astro_head_edit_inserts_missing_title() -> None:
    handler = AstroHandler()
    content = (
        "---\nconst year = 2024;\n---\n"
        "<html>\n"
        "  <head>\n"
        '    <meta name="description" content="Hello there" />\n'
        "  </head>\n"
        "  <body><h1>Home</h1></body>\n"
        "</html>\n"
    )

    edit = handler.plan_meta_edit("src/pages/index.astro", content, PageMeta(title="Acme Widgets"))

    assert edit is not None
    updated = _apply(content, edit.search, edit.replace)
    assert "    <title>Acme Widgets</title>" in updated
    assert handler.extract_meta(updated) == PageMeta(title="Acme Widgets", description="Hello there")
    assert updated.startswith("---\nconst year = 2024;\n---\n")


def test_astro_layout_attribute_edit_when_no_head() -> None:
    handler = AstroHandler()
    content = '<BaseLayout title="Old title">\n  <p>Body</p>\n</BaseLayout>\n'

    edit = handler.plan_meta_edit(
        "src/pages/about.astro", content, PageMeta(title="New title", description="About us")
    )

    assert edit is not None
    updated = _apply(content, edit.search, edit.replace)
    assert 'title="New title"' in updated
    assert 'description="About us"' in updated
    assert "Old title" not in updated


def test_astro_markdown_frontmatter_edits() -> None:
    handler = AstroHandler()
    with_frontmatter = "---\ntitle: Old\nlayout: ../../layouts/Post.astro\n---\nBody text\n"
    edit = handler.plan_meta_edit(
        "src/pages/blog/post.md", with_frontmatter, PageMeta(title="New", description="Desc")
    )
    assert edit is not None
    updated = _apply(with_frontmatter, edit.search, edit.replace)
    assert 'title: "New"' in updated
    assert 'description: "Desc"' in updated
    assert "layout: ../../layouts/Post.astro" in updated
    assert updated.endswith("---\nBody text\n")

    bare = "Just text\n"
    edit = handler.plan_meta_edit("src/pages/note.md", bare, PageMeta(title="Note"))
    assert edit is not None
    assert edit.search == bare
    assert edit.replace == '---\ntitle: "Note"\n---\nJust text\n'


def test_astro_generated_files() -> None:
    handler = AstroHandler()

    sitemap = handler.sitemap_file("https://example.com", ["/", "/about"])
    robots = handler.robots_file("https://example.com")

    assert sitemap.path == "public/sitemap.xml"
    assert "<loc>https://example.com/</loc>" in sitemap.content
    assert "<loc>https://example.com/about</loc>" in sitemap.content
    assert robots.path == "public/robots.txt"
    assert "Sitemap: https://example.com/sitemap.xml" in robots.content


def test_astro_schema_goes_into_root_layout_head() -> None:
    handler = AstroHandler()
    layout = (
        "---\nconst { title } = Astro.props;\n---\n"
        "<html>\n  <head>\n    <title>{title}</title>\n  </head>\n  <body><slot /></body>\n</html>\n"
    )
    sources = {"src/layouts/BaseLayout.astro": layout, "src/layouts/Card.astro": "<div><slot /></div>\n"}

    placement = handler.schema_edit(
        "https://example.com", "Example", sources.get, ["src/layouts/Card.astro", "src/layouts/BaseLayout.astro"]
    )

    assert placement is not None
    path, edit, content = placement
    assert path == "src/layouts/BaseLayout.astro"
    assert content is None and edit is not None
    updated = _apply(layout, edit.search, edit.replace)
    assert '<script type="application/ld+json" set:html={"' in updated
    assert '\\"@type\\": \\"WebSite\\"' in updated
    assert updated.index("application/ld+json") < updated.index("</head>")


def test_astro_schema_falls_back_to_home_page_or_gives_up() -> None:
    handler = AstroHandler()
    home = "<html><head><title>Home</title></head><body></body></html>\n"

    placement = handler.schema_edit("https://example.com", "Example", {"src/pages/index.astro": home}.get, [])

    assert placement is not None
    assert placement[0] == "src/pages/index.astro"
    assert handler.schema_edit("https://example.com", "Example", lambda _path: None, []) is None


def test_astro_blog_post_uses_public_image_url() -> None:
    handler = AstroHandler()
    post = BlogPostDraft(
        title="Faster pages",
        slug="faster-pages",
        description="How we cut load time.",
        body="## Why\n\nSpeed matters.",
        tags=("performance",),
        image_path=handler.image_path("faster-pages", "webp"),
    )

    generated = handler.format_blog_post(post, date(2024, 5, 1))

    assert generated.path == "src/content/blog/faster-pages.md"
    assert 'title: "Faster pages"' in generated.content
    assert "pubDate: 2024-05-01" in generated.content
    assert 'image: "/images/blog/faster-pages.webp"' in generated.content
    assert generated.content.endswith("Speed matters.\n")


# ----------------------------------------------------------------------
# Next.js App Router


def test_next_app_urls_skip_groups_and_slots() -> None:
    handler = NextAppHandler()

    assert handler.url_for("app/page.tsx") == "/"
    assert handler.url_for("app/(marketing)/pricing/page.tsx") == "/pricing"
    assert handler.url_for("src/app/@modal/login/page.tsx") == "/login"
    assert handler.page_files(["app/page.tsx", "app/layout.tsx", "app/docs/page.mdx"]) == [
        "app/docs/page.mdx",
        "app/page.tsx",
    ]


def test_next_app_updates_existing_metadata_block() -> None:
    handler = NextAppHandler()
    content = (
        "import type { Metadata } from 'next';\n\n"
        "export const metadata: Metadata = {\n"
        "  title: 'Pricing',\n"
        "};\n\n"
        "export default function Page() {\n  return <main />;\n}\n"
    )
    assert handler.extract_meta(content) == PageMeta(title="Pricing")

    edit = handler.plan_meta_edit(
        "app/pricing/page.tsx", content, PageMeta(title="Plans and pricing", description="Compare plans")
    )

    assert edit is not None
    updated = _apply(content, edit.search, edit.replace)
    assert handler.extract_meta(updated) == PageMeta(title="Plans and pricing", description="Compare plans")
    assert "export default function Page()" in updated


def test_next_app_inserts_metadata_after_imports() -> None:
    handler = NextAppHandler()
    content = "import Link from 'next/link';\n\nexport default function Page() {\n  return <Link href=\"/\" />;\n}\n"

    edit = handler.plan_meta_edit("app/about/page.tsx", content, PageMeta(title="About"))

    assert edit is not None
    updated = _apply(content, edit.search, edit.replace)
    assert updated.startswith("import Link from 'next/link';\n\nexport const metadata = {\n  title: \"About\",\n};")


def test_next_app_skips_client_components() -> None:
    content = "'use client';\n\nexport default function Page() {}\n"

    assert NextAppHandler().plan_meta_edit("app/page.tsx", content, PageMeta(title="X")) is None


def test_next_app_binds_to_src_app_layout() -> None:
    handler = NextAppHandler().bind(["src/app/page.tsx", "src/app/layout.tsx"])

    assert handler.sitemap_file("https://example.com", ["/"]).path == "src/app/sitemap.ts"
    assert handler.robots_file("https://example.com").path == "src/app/robots.ts"
    assert handler.blog_directory() == "src/app/blog"
    post = BlogPostDraft(title="Hi", slug="hi", description="d", body="text")
    assert handler.format_blog_post(post, date(2024, 1, 2)).path == "src/app/blog/hi/page.mdx"


def test_next_app_schema_goes_into_root_layout_body() -> None:
    handler = NextAppHandler()
    layout = (
        "export default function RootLayout({ children }) {\n"
        "  return (\n"
        '    <html lang="en">\n'
        "      <body>\n"
        "        {children}\n"
        "      </body>\n"
        "    </html>\n"
        "  );\n"
        "}\n"
    )
    sources = {"app/layout.tsx": layout, "app/docs/layout.tsx": layout}

    placement = handler.schema_edit(
        "https://example.com", "Example", sources.get, ["app/docs/layout.tsx", "app/layout.tsx"]
    )

    assert placement is not None
    path, edit, content = placement
    assert path == "app/layout.tsx"
    assert content is None and edit is not None
    updated = _apply(layout, edit.search, edit.replace)
    assert 'dangerouslySetInnerHTML={{ __html: "{' in updated
    assert updated.index("application/ld+json") < updated.index("</body>")
    assert handler.schema_edit("https://example.com", "Example", sources.get, ["app/docs/layout.tsx"]) is None


# ----------------------------------------------------------------------
# Next.js Pages Router


def test_next_pages_filters_special_files() -> None:
    handler = NextPagesHandler()
    files = [
        "pages/index.tsx",
        "pages/_app.tsx",
        "pages/_document.tsx",
        "pages/api/hello.ts",
        "pages/api/users.js",
        "pages/blog/[slug].tsx",
    ]

    assert handler.page_files(files) == ["pages/blog/[slug].tsx", "pages/index.tsx"]
    assert handler.url_for("pages/index.tsx") == "/"
    assert handler.url_for("src/pages/docs/intro.mdx") == "/docs/intro"


def test_next_pages_rewrites_head_component() -> None:
    handler = NextPagesHandler()
    content = (
        "import Head from 'next/head';\n\n"
        "export default function Home() {\n"
        "  return (\n"
        "    <>\n"
        "      <Head>\n"
        "        <title>Old</title>\n"
        "      </Head>\n"
        "    </>\n"
        "  );\n"
        "}\n"
    )

    edit = handler.plan_meta_edit("pages/index.tsx", content, PageMeta(title="New", description="Fresh"))

    assert edit is not None
    updated = _apply(content, edit.search, edit.replace)
    assert "<title>New</title>" in updated
    assert '<meta name="description" content="Fresh" />' in updated
    assert handler.plan_meta_edit("pages/plain.tsx", "export default () => null;\n", PageMeta(title="x")) is None


def test_next_pages_schema_extends_custom_document() -> None:
    handler = NextPagesHandler()
    document = (
        "import { Html, Head, Main, NextScript } from 'next/document';\n\n"
        "export default function Document() {\n"
        "  return (\n"
        "    <Html>\n"
        "      <Head />\n"
        "      <body><Main /><NextScript /></body>\n"
        "    </Html>\n"
        "  );\n"
        "}\n"
    )
    sources = {"pages/_document.tsx": document}

    placement = handler.schema_edit(
        "https://example.com", "Example", sources.get, ["pages/_app.tsx", "pages/_document.tsx"]
    )

    assert placement is not None
    path, edit, content = placement
    assert path == "pages/_document.tsx"
    assert content is None and edit is not None
    updated = _apply(document, edit.search, edit.replace)
    assert "<Head />" not in updated
    assert updated.index("<Head>") < updated.index("application/ld+json") < updated.index("</Head>")


def test_next_pages_schema_creates_document_when_missing() -> None:
    handler = NextPagesHandler().bind(["src/pages/index.tsx"])

    placement = handler.schema_edit("https://example.com", "Example", lambda _path: None, ["src/pages/_app.tsx"])

    assert placement is not None
    path, edit, content = placement
    assert path == "src/pages/_document.tsx"
    assert edit is None and content is not None
    assert "from 'next/document'" in content
    assert content.index("<Head>") < content.index("application/ld+json") < content.index("</Head>")
    assert handler.blog_directory() == "src/pages/blog"


# ----------------------------------------------------------------------
# Plain HTML


def test_html_urls_and_root_level_artifacts() -> None:
    handler = HtmlHandler()

    assert handler.url_for("index.html") == "/"
    assert handler.url_for("docs/index.html") == "/docs"
    assert handler.url_for("about.html") == "/about.html"
    assert handler.sitemap_file("https://example.com", ["/"]).path == "sitemap.xml"
    assert handler.robots_file("https://example.com").path == "robots.txt"
    assert handler.image_path("post", "webp") == "images/blog/post.webp"
    assert handler.image_url("images/blog/post.webp") == "/images/blog/post.webp"


def test_html_inserts_head_when_missing() -> None:
    handler = HtmlHandler()
    content = '<!DOCTYPE html>\n<html lang="en">\n<body><p>Hi</p></body>\n</html>\n'

    edit = handler.plan_meta_edit("index.html", content, PageMeta(title="Home", description="Welcome"))

    assert edit is not None
    updated = _apply(content, edit.search, edit.replace)
    assert handler.extract_meta(updated) == PageMeta(title="Home", description="Welcome")


def test_html_schema_edit_targets_index_head() -> None:
    handler = HtmlHandler()
    index = "<html><head><title>Home</title></head><body></body></html>"

    placement = handler.schema_edit(
        "https://example.com", "Example", lambda path: index if path == "index.html" else None, []
    )

    assert placement is not None
    path, edit, content = placement
    assert path == "index.html"
    assert content is None
    assert edit is not None
    updated = _apply(index, edit.search, edit.replace)
    assert '<script type="application/ld+json">' in updated
    assert updated.index("application/ld+json") < updated.index("</head>")
    assert handler.schema_edit("https://example.com", "Example", lambda _path: None, []) is None


def test_html_blog_post_renders_markdown() -> None:
    handler = HtmlHandler()
    post = BlogPostDraft(
        title="Launch & notes",
        slug="launch-notes",
        description="What shipped.",
        body="## Highlights\n\n- Faster builds\n- Smaller bundles\n\nThanks for reading.",
    )

    generated = handler.format_blog_post(post, date(2024, 3, 4))

    assert generated.path == "blog/launch-notes.html"
    assert "<h1>Launch &amp; notes</h1>" in generated.content
    assert "<h3>Highlights</h3>" in generated.content
    assert "<li>Faster builds</li>" in generated.content
    assert "<p>Thanks for reading.</p>" in generated.content
    assert isinstance(handler, FrameworkHandler)
