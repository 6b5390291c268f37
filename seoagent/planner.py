"""Turns detected issues into a bounded list of file-level fixes."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .budget import BudgetGuard
from .errors import BudgetExceededError, ExternalServiceError, MalformedResponseError
from .frameworks import FrameworkHandler, get_handler
from .issues import META_DESCRIPTION_TYPES, META_TITLE_TYPES
from .logging import get_logger
from .models import (
    RESOURCE_AI_COMPLETION,
    CodebaseProfile,
    Fix,
    FixAction,
    Issue,
    PageInfo,
    RepositoryTarget,
    severity_sorted,
)
from .optimizer.meta import MetaWriter

DEFAULT_MAX_FIXES = 10

_CHANGE_TYPES = {
    "missing-sitemap": "sitemap",
    "missing-robots": "robots",
    "missing-schema": "schema",
}


@dataclass
class PlanResult:
    fixes: List[Fix] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)

    def skip(self, issue_ids: Sequence[str], reason: str) -> None:
        for issue_id in issue_ids:
            self.skipped.append((issue_id, reason))


@dataclass
class _MetaRequest:
    page: PageInfo
    issue_ids: List[str] = field(default_factory=list)
    title: bool = False
    description: bool = False
    shorten: bool = False


class FixPlanner:
    """Selects auto-fixable issues by severity and generates one fix per file."""

    def __init__(
        self,
        meta_writer: MetaWriter,
        budget: BudgetGuard,
        *,
        max_fixes: int = DEFAULT_MAX_FIXES,
    ) -> None:
        self._meta_writer = meta_writer
        self._budget = budget
        self.max_fixes = max_fixes
        self.logger = get_logger("planner")

    def select(self, issues: Sequence[Issue]) -> List[Issue]:
        """Auto-fixable issues, critical first, capped at ``max_fixes``."""
        fixable = [issue for issue in issues if issue.auto_fixable]
        return severity_sorted(fixable)[: self.max_fixes]

    def plan(
        self,
        target: RepositoryTarget,
        profile: CodebaseProfile,
        issues: Sequence[Issue],
        workdir: Path,
    ) -> PlanResult:
        selected = self.select(issues)
        result = PlanResult()
        if not selected:
            return result

        handler = get_handler(profile.framework)
        if handler is None:
            self.logger.warning(
                "[%s] No code generator for framework %s; skipping %d fixable issues",
                target.id,
                profile.framework.value,
                len(selected),
            )
            result.skip([issue.id for issue in selected], "unsupported-framework")
            return result
        handler.bind([page.path for page in profile.pages])

        # Slots keep severity order while meta issues for one file share a fix.
        slots: List[Union[Fix, str]] = []
        meta_requests: Dict[str, _MetaRequest] = {}

        for issue in selected:
            if issue.type in META_TITLE_TYPES or issue.type in META_DESCRIPTION_TYPES:
                for path in self._collect_meta(target, profile, issue, meta_requests, result):
                    if path not in slots:
                        slots.append(path)
                continue

            fix = self._repository_fix(target, profile, handler, issue, workdir)
            if fix is None:
                result.skip([issue.id], "no-fix-generated")
            elif not profile.is_safe(fix.path):
                self.logger.warning("[%s] %s targets danger zone %s; skipping", target.id, issue.id, fix.path)
                result.skip([issue.id], "danger-zone")
            else:
                slots.append(fix)

        for slot in slots:
            if isinstance(slot, Fix):
                result.fixes.append(slot)
                continue
            request = meta_requests[slot]
            fix = self._meta_fix(target, profile, handler, request, workdir, result)
            if fix is not None:
                result.fixes.append(fix)

        self.logger.info(
            "[%s] Planned %d fixes (%d issues skipped)", target.id, len(result.fixes), len(result.skipped)
        )
        return result

    # ------------------------------------------------------------------
    # Meta fixes

    def _collect_meta(
        self,
        target: RepositoryTarget,
        profile: CodebaseProfile,
        issue: Issue,
        requests: Dict[str, _MetaRequest],
        result: PlanResult,
    ) -> List[str]:
        if issue.type.startswith("duplicate-"):
            # The first member keeps its value; the rest get rewritten.
            urls = issue.pages[1:]
        else:
            urls = [issue.page]

        paths: List[str] = []
        for url in urls:
            page = profile.page_by_url(url)
            if page is None:
                continue
            if not profile.is_safe(page.path):
                self.logger.warning("[%s] %s is in a danger zone; skipping %s", target.id, page.path, issue.id)
                continue
            request = requests.setdefault(page.path, _MetaRequest(page=page))
            if issue.id not in request.issue_ids:
                request.issue_ids.append(issue.id)
            if issue.type in META_TITLE_TYPES:
                request.title = True
            else:
                request.description = True
            if issue.type.endswith("-too-long"):
                request.shorten = True
            paths.append(page.path)

        if not paths:
            result.skip([issue.id], "danger-zone")
        return paths

    def _meta_fix(
        self,
        target: RepositoryTarget,
        profile: CodebaseProfile,
        handler: FrameworkHandler,
        request: _MetaRequest,
        workdir: Path,
        result: PlanResult,
    ) -> Optional[Fix]:
        page = request.page
        content = _read(workdir, page.path)
        if content is None:
            result.skip(request.issue_ids, "file-missing")
            return None

        try:
            self._budget.consume(target.id, RESOURCE_AI_COMPLETION)
        except BudgetExceededError as exc:
            self.logger.warning("[%s] %s; leaving %s for a later run", target.id, exc, page.path)
            result.skip(request.issue_ids, "budget")
            return None

        avoid = sorted({other.title for other in profile.pages if other.title and other.path != page.path})
        try:
            meta = self._meta_writer.write(
                target,
                page,
                content,
                title=request.title,
                description=request.description,
                shorten=request.shorten,
                avoid_titles=avoid,
            )
        except (MalformedResponseError, ExternalServiceError) as exc:
            self.logger.warning("[%s] Meta generation failed for %s: %s", target.id, page.url, exc)
            result.skip(request.issue_ids, "ai-failure")
            return None

        edit = handler.plan_meta_edit(page.path, content, meta)
        if edit is None:
            self.logger.warning("[%s] No place to write meta in %s; skipping", target.id, page.path)
            result.skip(request.issue_ids, "no-anchor")
            return None

        fields = [name for name, wanted in (("title", request.title), ("description", request.description)) if wanted]
        verb = "Shorten" if request.shorten else "Set"
        return Fix(
            action=FixAction.MODIFY,
            path=page.path,
            description=f"{verb} meta {' and '.join(fields)} for {page.url}",
            search=edit.search,
            replace=edit.replace,
            issue_ids=list(request.issue_ids),
            change_type="meta-title" if request.title else "meta-description",
            affected_page=page.url,
        )

    # ------------------------------------------------------------------
    # Repository-level fixes

    def _repository_fix(
        self,
        target: RepositoryTarget,
        profile: CodebaseProfile,
        handler: FrameworkHandler,
        issue: Issue,
        workdir: Path,
    ) -> Optional[Fix]:
        change_type = _CHANGE_TYPES.get(issue.type)
        if change_type is None:
            return None

        if issue.type == "missing-sitemap":
            urls = sorted(page.url for page in profile.pages if profile.is_safe(page.path))
            generated = handler.sitemap_file(target.domain, urls or ["/"])
            return Fix(
                action=FixAction.CREATE,
                path=generated.path,
                description=f"Add sitemap with {len(urls or ['/'])} URLs",
                content=generated.content,
                issue_ids=[issue.id],
                change_type=change_type,
            )

        if issue.type == "missing-robots":
            generated = handler.robots_file(target.domain)
            return Fix(
                action=FixAction.CREATE,
                path=generated.path,
                description="Add robots rules referencing the sitemap",
                content=generated.content,
                issue_ids=[issue.id],
                change_type=change_type,
            )

        placement = handler.schema_edit(
            target.domain,
            target.site_name,
            lambda path: _read(workdir, path),
            profile.roles.layout_files,
        )
        if placement is None:
            return None
        path, edit, content = placement
        if edit is not None:
            return Fix(
                action=FixAction.MODIFY,
                path=path,
                description="Add WebSite structured data",
                search=edit.search,
                replace=edit.replace,
                issue_ids=[issue.id],
                change_type=change_type,
                affected_page="/",
            )
        return Fix(
            action=FixAction.CREATE,
            path=path,
            description="Add a document rendering WebSite structured data",
            content=content,
            issue_ids=[issue.id],
            change_type=change_type,
        )


def _read(workdir: Path, relative: str) -> Optional[str]:
    try:
        return (workdir / relative).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


__all__ = ["DEFAULT_MAX_FIXES", "FixPlanner", "PlanResult"]
