"""Tests for the deterministic SEO rule scan."""

from __future__ import annotations

from typing import List

from seoagent.issues import IssueDetector
from seoagent.models import CodebaseProfile, Framework, ImageRef, PageInfo, SeoArtifacts, Severity


def _page(url: str, **fields: object) -> PageInfo:
    defaults = {
        "path": f"src/pages{url if url != '/' else '/index'}.astro",
        "url": url,
        "title": f"Title for {url}",
        "description": f"Description for {url}",
        "has_og_image": True,
        "word_count": 600,
        "internal_links": ["/", "/about", "/pricing", "/blog"],
    }
    defaults.update(fields)
    return PageInfo(**defaults)  # type: ignore[arg-type]


def _profile(pages: List[PageInfo], **artifacts: object) -> CodebaseProfile:
    values = {"sitemap": "public/sitemap.xml", "robots": "public/robots.txt", "schema_files": ["src/components/Schema.astro"]}
    values.update(artifacts)
    return CodebaseProfile(
        repo_id="site",
        commit="c1",
        framework=Framework.ASTRO,
        artifacts=SeoArtifacts(**values),  # type: ignore[arg-type]
        pages=pages,
    )


def _types(profile: CodebaseProfile) -> List[str]:
    return [issue.type for issue in IssueDetector().detect(profile)]


def test_clean_site_has_no_issues() -> None:
    assert _types(_profile([_page("/"), _page("/about")])) == []


def test_page_level_rules() -> None:
    pages = [
        _page("/", title=None, description="x" * 156),
        _page("/about", title="t" * 61, description=None, has_og_image=False),
        _page("/pricing", word_count=120, images=[ImageRef(src="/a.png", alt=None), ImageRef(src="/b.png", alt="B")]),
        _page("/api/health", word_count=3),
    ]

    issues = {issue.id: issue for issue in IssueDetector().detect(_profile(pages))}

    assert issues["missing-meta-title:/"].severity is Severity.CRITICAL
    assert issues["missing-meta-title:/"].auto_fixable is True
    assert issues["description-too-long:/"].severity is Severity.INFO
    assert issues["title-too-long:/about"].severity is Severity.WARNING
    assert issues["missing-meta-description:/about"].severity is Severity.CRITICAL
    assert issues["missing-og-image:/about"].auto_fixable is False
    assert issues["thin-content:/pricing"].auto_fixable is False
    assert "missing-alt-text:/pricing#/a.png" in issues
    assert "missing-alt-text:/pricing#/b.png" not in issues
    assert "thin-content:/api/health" not in issues


def test_limits_are_inclusive() -> None:
    pages = [_page("/", title="t" * 60, description="d" * 155)]

    assert _types(_profile(pages)) == []


def test_duplicate_titles_produce_one_issue_per_group() -> None:
    pages = [
        _page("/", title="Acme"),
        _page("/about", title="Acme"),
        _page("/pricing", title="Acme"),
        _page("/blog", title="Blog"),
    ]

    duplicates = [issue for issue in IssueDetector().detect(_profile(pages)) if issue.type == "duplicate-title"]

    assert len(duplicates) == 1
    assert duplicates[0].id == "duplicate-title:/"
    assert duplicates[0].pages == ["/", "/about", "/pricing"]


def test_orphan_pages_are_reported() -> None:
    pages = [
        _page("/", internal_links=["/about"]),
        _page("/about", internal_links=["/"]),
        _page("/hidden", internal_links=["/"]),
    ]

    assert _types(_profile(pages)) == ["orphan-page"]


def test_repository_level_rules() -> None:
    issues = IssueDetector().detect(_profile([_page("/")], sitemap=None, robots=None, schema_files=[]))

    assert [(issue.id, issue.severity) for issue in issues] == [
        ("missing-sitemap:global", Severity.CRITICAL),
        ("missing-robots:global", Severity.WARNING),
        ("missing-schema:global", Severity.INFO),
    ]
    assert all(issue.auto_fixable for issue in issues)


def test_inline_schema_satisfies_structured_data_rule() -> None:
    profile = _profile([_page("/", has_schema=True)], schema_files=[])

    assert _types(profile) == []


def test_detection_is_deterministic() -> None:
    links = ["/", "/a", "/b"]
    pages = [
        _page("/b", title=None, internal_links=links),
        _page("/a", title=None, internal_links=links),
        _page("/", description=None, internal_links=links),
    ]

    first = IssueDetector().detect(_profile(pages))
    second = IssueDetector().detect(_profile(list(reversed(pages))))

    assert [issue.id for issue in first] == [issue.id for issue in second]
    assert [issue.id for issue in first] == [
        "missing-meta-description:/",
        "missing-meta-title:/a",
        "missing-meta-title:/b",
    ]
