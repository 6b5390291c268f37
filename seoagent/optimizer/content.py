"""Scheduled blog publishing with optional featured images."""

from __future__ import annotations

import re
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from ..budget import BudgetGuard
from ..config import ImageConfig
from ..errors import BudgetExceededError, ExternalServiceError, MalformedResponseError
from ..frameworks import BlogPostDraft, get_handler
from ..issues import DESCRIPTION_MAX_LENGTH
from ..logging import get_logger
from ..models import (
    RESOURCE_AI_COMPLETION,
    RESOURCE_BLOG_POST,
    RESOURCE_IMAGE,
    CodebaseProfile,
    Fix,
    FixAction,
    RepositoryTarget,
)
from ..llm.structured import BlogPost, parse_structured
from ..prompting import PromptBuilder
from ..stores.state import StateStore
from .images import optimize
from .meta import CompletionClient, clamp

CADENCE_DAYS: Dict[str, int] = {
    "daily": 1,
    "weekly": 7,
    "biweekly": 14,
    "monthly": 30,
}

_SLUG_RE = re.compile(r"[^a-z0-9]+")
_SLUG_MAX = 80
_RECENT_TITLES = 10


class ImageSource(Protocol):
    def generate(self, prompt: str) -> bytes:
        ...


def slugify(value: str) -> str:
    slug = _SLUG_RE.sub("-", value.lower()).strip("-")
    return slug[:_SLUG_MAX].rstrip("-") or "post"


class ContentPublisher:
    """Drafts a new post when a repository's cadence says one is due."""

    def __init__(
        self,
        client: CompletionClient,
        store: StateStore,
        budget: BudgetGuard,
        *,
        prompts: PromptBuilder | None = None,
        images: ImageSource | None = None,
        image_config: ImageConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._budget = budget
        self._prompts = prompts or PromptBuilder()
        self._images = images
        self._image_config = image_config or ImageConfig()
        self._clock = clock or (lambda: datetime.now(UTC))
        self.logger = get_logger("optimizer.content")

    # ------------------------------------------------------------------
    # Schedule

    def history(self, repo_id: str) -> List[Dict[str, Any]]:
        entry = self._store.get("content", repo_id) or {}
        posts = entry.get("posts") if isinstance(entry, dict) else None
        return list(posts) if isinstance(posts, list) else []

    def is_due(self, target: RepositoryTarget) -> bool:
        interval = CADENCE_DAYS.get(target.settings.content_frequency, CADENCE_DAYS["weekly"])
        posts = self.history(target.id)
        if not posts:
            return True
        last = max(_published_on(post) for post in posts)
        return (self._clock().date() - last).days >= interval

    def next_topic(self, target: RepositoryTarget) -> Optional[str]:
        topics = target.settings.topics
        if not topics:
            return None
        return topics[len(self.history(target.id)) % len(topics)]

    # ------------------------------------------------------------------
    # Drafting

    def plan(self, target: RepositoryTarget, profile: CodebaseProfile, workdir: Path) -> List[Fix]:
        """Return the files for one new post, or nothing when none is due or possible."""
        if not self.is_due(target):
            self.logger.debug("[%s] No post due yet", target.id)
            return []
        topic = self.next_topic(target)
        if topic is None:
            self.logger.debug("[%s] No topics configured; skipping content", target.id)
            return []
        handler = get_handler(profile.framework)
        if handler is None:
            self.logger.info("[%s] Cannot publish posts for framework %s", target.id, profile.framework.value)
            return []
        handler.bind([page.path for page in profile.pages])
        if not profile.is_safe(handler.blog_directory()):
            self.logger.warning("[%s] Blog directory %s is excluded", target.id, handler.blog_directory())
            return []

        try:
            self._budget.consume(target.id, RESOURCE_BLOG_POST)
            self._budget.consume(target.id, RESOURCE_AI_COMPLETION)
        except BudgetExceededError as exc:
            self.logger.warning("[%s] %s; no post this run", target.id, exc)
            return []

        try:
            post = self._draft(target, profile, topic)
        except (MalformedResponseError, ExternalServiceError) as exc:
            self.logger.warning("[%s] Blog drafting failed: %s", target.id, exc)
            return []

        slug = self._unique_slug(workdir, handler.blog_directory(), slugify(post.slug or post.title))
        fixes: List[Fix] = []
        image_path = None
        if post.image_prompt:
            image_fix = self._image_fix(target, handler.image_path(slug, self._image_config.format), post)
            if image_fix is not None:
                fixes.append(image_fix)
                image_path = image_fix.path

        draft = BlogPostDraft(
            title=post.title,
            slug=slug,
            description=clamp(post.description, DESCRIPTION_MAX_LENGTH),
            body=post.content,
            tags=tuple(post.tags),
            image_path=image_path,
        )
        generated = handler.format_blog_post(draft, self._clock().date())
        fixes.append(
            Fix(
                action=FixAction.CREATE,
                path=generated.path,
                description=f"Publish blog post: {post.title}",
                content=generated.content,
                change_type="blog-published",
            )
        )
        self.logger.info("[%s] Drafted post %s (%s)", target.id, slug, topic)
        return fixes

    def record_published(self, target: RepositoryTarget, fixes: Sequence[Fix], commit: str) -> None:
        """Remember committed posts so the cadence and topic rotation advance."""
        posts = [fix for fix in fixes if fix.change_type == "blog-published"]
        if not posts:
            return
        published_at = self._clock().isoformat().replace("+00:00", "Z")

        def _append(current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            entry = dict(current or {})
            history = list(entry.get("posts") or [])
            for fix in posts:
                history.append(
                    {
                        "path": fix.path,
                        "title": fix.description.removeprefix("Publish blog post: "),
                        "commit": commit,
                        "published_at": published_at,
                    }
                )
            entry["posts"] = history
            return entry

        self._store.update("content", target.id, _append)

    def _draft(self, target: RepositoryTarget, profile: CodebaseProfile, topic: str) -> BlogPost:
        system = self._prompts.render(
            "blog_system",
            site_name=target.site_name,
            domain=target.domain,
            tone=target.settings.tone,
            custom_instructions=target.settings.custom_instructions,
            description_limit=DESCRIPTION_MAX_LENGTH,
        )
        recent = [post.get("title", "") for post in self.history(target.id)][-_RECENT_TITLES:]
        request = self._prompts.render(
            "blog_request",
            topic=topic,
            recent_titles=[title for title in recent if title],
            existing_pages=sorted(page.url for page in profile.pages),
        )
        reply = self._client.complete(system, [{"role": "user", "content": request}])
        return parse_structured(reply, BlogPost)

    def _image_fix(self, target: RepositoryTarget, path: str, post: BlogPost) -> Optional[Fix]:
        if self._images is None:
            return None
        if not self._budget.try_consume(target.id, RESOURCE_IMAGE):
            return None
        config = self._image_config
        try:
            raw = self._images.generate(post.image_prompt or post.title)
            data = optimize(
                raw,
                width=config.width,
                height=config.height,
                format=config.format,
                quality=config.quality,
            )
        except (MalformedResponseError, ExternalServiceError) as exc:
            self.logger.warning("[%s] Featured image skipped: %s", target.id, exc)
            return None
        return Fix(
            action=FixAction.CREATE,
            path=path,
            description=f"Add featured image for {post.title}",
            content=data,
            change_type="image-added",
        )

    def _unique_slug(self, workdir: Path, directory: str, slug: str) -> str:
        root = workdir / directory
        candidate = slug
        suffix = 2
        while root.exists() and any(entry.stem == candidate for entry in root.iterdir()):
            candidate = f"{slug}-{suffix}"
            suffix += 1
        return candidate


def _published_on(post: Dict[str, Any]) -> date:
    value = str(post.get("published_at") or "1970-01-01")
    return datetime.fromisoformat(value.replace("Z", "+00:00")).date()


__all__ = ["CADENCE_DAYS", "ContentPublisher", "ImageSource", "slugify"]
