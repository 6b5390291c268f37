"""Deterministic SEO rule scan over a codebase profile."""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Set

from .models import CodebaseProfile, Issue, PageInfo, Severity

TITLE_MAX_LENGTH = 60
DESCRIPTION_MAX_LENGTH = 155
THIN_CONTENT_WORDS = 300
GLOBAL_PAGE = "global"

# Pages where short copy is expected.
_NON_CONTENT_PREFIXES = (
    "/api/",
    "/login",
    "/signup",
    "/register",
    "/admin",
    "/dashboard",
    "/settings",
    "/profile",
    "/auth/",
    "/404",
    "/500",
)

# Issue types whose fix is a title/description rewrite on the page file.
META_TITLE_TYPES = {"missing-meta-title", "title-too-long", "duplicate-title"}
META_DESCRIPTION_TYPES = {"missing-meta-description", "description-too-long", "duplicate-description"}


class IssueDetector:
    """Applies every rule to a profile; performs no I/O."""

    def detect(self, profile: CodebaseProfile) -> List[Issue]:
        issues: List[Issue] = []
        pages = sorted(profile.pages, key=lambda page: page.url)
        for page in pages:
            issues.extend(self._page_issues(page))
        issues.extend(self._duplicate_issues(pages, "title"))
        issues.extend(self._duplicate_issues(pages, "description"))
        issues.extend(self._orphan_issues(pages))
        issues.extend(self._repository_issues(profile))
        return issues

    def _page_issues(self, page: PageInfo) -> List[Issue]:
        issues: List[Issue] = []
        if not page.title:
            issues.append(
                _issue(
                    "missing-meta-title",
                    Severity.CRITICAL,
                    page,
                    f"Page {page.url} has no title tag.",
                    "Add a unique, descriptive title under 60 characters.",
                    auto_fixable=True,
                )
            )
        elif len(page.title) > TITLE_MAX_LENGTH:
            issues.append(
                _issue(
                    "title-too-long",
                    Severity.WARNING,
                    page,
                    f"Title on {page.url} is {len(page.title)} characters and will be truncated in results.",
                    f"Shorten the title to at most {TITLE_MAX_LENGTH} characters.",
                    auto_fixable=True,
                )
            )

        if not page.description:
            issues.append(
                _issue(
                    "missing-meta-description",
                    Severity.CRITICAL,
                    page,
                    f"Page {page.url} has no meta description.",
                    "Add a compelling description of 120-155 characters.",
                    auto_fixable=True,
                )
            )
        elif len(page.description) > DESCRIPTION_MAX_LENGTH:
            issues.append(
                _issue(
                    "description-too-long",
                    Severity.INFO,
                    page,
                    f"Description on {page.url} is {len(page.description)} characters.",
                    f"Shorten the description to at most {DESCRIPTION_MAX_LENGTH} characters.",
                    auto_fixable=True,
                )
            )

        if not page.has_og_image:
            issues.append(
                _issue(
                    "missing-og-image",
                    Severity.WARNING,
                    page,
                    f"Page {page.url} has no Open Graph image.",
                    "Add an og:image so shares render a preview card.",
                )
            )

        for image in page.images:
            if image.alt:
                continue
            issues.append(
                Issue(
                    id=Issue.make_id("missing-alt-text", f"{page.url}#{image.src}"),
                    type="missing-alt-text",
                    severity=Severity.WARNING,
                    page=page.url,
                    file=page.path,
                    description=f"Image {image.src} on {page.url} has no alt text.",
                    recommendation="Describe the image content in its alt attribute.",
                )
            )

        if page.word_count < THIN_CONTENT_WORDS and not page.url.startswith(_NON_CONTENT_PREFIXES):
            issues.append(
                _issue(
                    "thin-content",
                    Severity.WARNING,
                    page,
                    f"Page {page.url} has only {page.word_count} words.",
                    f"Expand the page to at least {THIN_CONTENT_WORDS} words of useful copy.",
                )
            )
        return issues

    def _duplicate_issues(self, pages: List[PageInfo], attribute: str) -> List[Issue]:
        groups: Dict[str, List[PageInfo]] = defaultdict(list)
        for page in pages:
            value = getattr(page, attribute)
            if value:
                groups[value].append(page)

        issues: List[Issue] = []
        for value, members in sorted(groups.items(), key=lambda item: item[1][0].url):
            if len(members) < 2:
                continue
            first = members[0]
            urls = [member.url for member in members]
            issue_type = f"duplicate-{attribute}"
            issues.append(
                Issue(
                    id=Issue.make_id(issue_type, first.url),
                    type=issue_type,
                    severity=Severity.WARNING,
                    page=first.url,
                    file=first.path,
                    description=f"{len(members)} pages share the {attribute} \"{value}\": {', '.join(urls)}.",
                    recommendation=f"Give each page a unique {attribute}.",
                    auto_fixable=True,
                    pages=urls,
                )
            )
        return issues

    def _orphan_issues(self, pages: List[PageInfo]) -> List[Issue]:
        linked: Set[str] = set()
        for page in pages:
            linked.update(link for link in page.internal_links if link != page.url)
        issues = []
        for page in pages:
            if page.url == "/" or page.url in linked:
                continue
            issues.append(
                _issue(
                    "orphan-page",
                    Severity.INFO,
                    page,
                    f"No other page links to {page.url}.",
                    "Link to this page from related content or navigation.",
                )
            )
        return issues

    def _repository_issues(self, profile: CodebaseProfile) -> List[Issue]:
        issues: List[Issue] = []
        artifacts = profile.artifacts
        if not artifacts.sitemap:
            issues.append(
                _global_issue(
                    "missing-sitemap",
                    Severity.CRITICAL,
                    "The site has no sitemap.",
                    "Generate a sitemap listing every public page.",
                )
            )
        if not artifacts.robots:
            issues.append(
                _global_issue(
                    "missing-robots",
                    Severity.WARNING,
                    "The site has no robots.txt.",
                    "Add robots rules that reference the sitemap.",
                )
            )
        has_schema = bool(artifacts.schema_files) or any(page.has_schema for page in profile.pages)
        if not has_schema:
            issues.append(
                _global_issue(
                    "missing-schema",
                    Severity.INFO,
                    "No structured data (JSON-LD) was found.",
                    "Add Organization and WebSite structured data.",
                )
            )
        return issues


def _issue(
    issue_type: str,
    severity: Severity,
    page: PageInfo,
    description: str,
    recommendation: str,
    *,
    auto_fixable: bool = False,
) -> Issue:
    return Issue(
        id=Issue.make_id(issue_type, page.url),
        type=issue_type,
        severity=severity,
        page=page.url,
        file=page.path,
        description=description,
        recommendation=recommendation,
        auto_fixable=auto_fixable,
        pages=[page.url],
    )


def _global_issue(issue_type: str, severity: Severity, description: str, recommendation: str) -> Issue:
    return Issue(
        id=Issue.make_id(issue_type, GLOBAL_PAGE),
        type=issue_type,
        severity=severity,
        page=GLOBAL_PAGE,
        file=None,
        description=description,
        recommendation=recommendation,
        auto_fixable=True,
    )


__all__ = [
    "DESCRIPTION_MAX_LENGTH",
    "GLOBAL_PAGE",
    "IssueDetector",
    "META_DESCRIPTION_TYPES",
    "META_TITLE_TYPES",
    "THIN_CONTENT_WORDS",
    "TITLE_MAX_LENGTH",
]
