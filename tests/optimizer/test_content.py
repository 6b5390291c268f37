"""Tests for scheduled blog publishing."""

from __future__ import annotations

import io
import json
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Dict, List

import pytest
from PIL import Image

from seoagent.budget import BudgetGuard
from seoagent.config import ImageConfig
from seoagent.errors import ExternalServiceError
from seoagent.models import CodebaseProfile, FixAction, Framework, PageInfo
from seoagent.optimizer import ContentPublisher, slugify
from seoagent.stores import StateStore
from tests._fixtures.fakes import FakeAIClient, make_target

NOW = datetime(2024, 6, 10, 9, 0, tzinfo=UTC)


def _post_reply(title: str = "Hello World", image_prompt: str | None = "a lighthouse at dusk") -> str:
    return json.dumps(
        {
            "title": title,
            "description": "A friendly introduction to our product.",
            "content": "## Why it matters\n\nBecause search traffic compounds.",
            "slug": "hello-world",
            "tags": ["seo", "launch"],
            "image_prompt": image_prompt,
        }
    )


def _png() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (64, 48), (10, 120, 200)).save(buffer, format="PNG")
    return buffer.getvalue()


class _Images:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.prompts: List[str] = []

    def generate(self, prompt: str) -> bytes:
        self.prompts.append(prompt)
        if self.fail:
            raise ExternalServiceError("image service down")
        return _png()


def _profile() -> CodebaseProfile:
    return CodebaseProfile(
        repo_id="site",
        commit="c1",
        framework=Framework.ASTRO,
        pages=[PageInfo(path="src/pages/index.astro", url="/"), PageInfo(path="src/pages/about.astro", url="/about")],
    )


def _publisher(
    client: FakeAIClient,
    store: StateStore,
    *,
    images: _Images | None = None,
    limits: Dict[str, int] | None = None,
    now: datetime = NOW,
) -> ContentPublisher:
    limits = limits or {}
    budget = BudgetGuard(store, lambda _repo, kind: limits.get(kind, 5), clock=lambda: now.date())
    return ContentPublisher(
        client,
        store,
        budget,
        images=images,
        image_config=ImageConfig(width=120, height=63),
        clock=lambda: now,
    )


def _history(store: StateStore, *published: str) -> None:
    store.put(
        "content",
        "site",
        {"posts": [{"path": f"p{index}.md", "title": f"Post {index}", "published_at": value} for index, value in enumerate(published)]},
    )


@pytest.mark.parametrize(
    ("title", "expected"),
    [("Hello, World!", "hello-world"), ("  --  ", "post"), ("Ünïcode & Stuff 2024", "n-code-stuff-2024")],
)
def test_slugify(title: str, expected: str) -> None:
    assert slugify(title) == expected


def test_slugify_caps_length() -> None:
    assert len(slugify("word " * 40)) <= 80


def test_cadence_controls_when_a_post_is_due(store: StateStore) -> None:
    publisher = _publisher(FakeAIClient(), store)
    weekly = make_target(content_frequency="weekly")
    daily = make_target(content_frequency="daily")

    assert publisher.is_due(weekly) is True

    _history(store, "2024-06-05T09:00:00Z")
    assert publisher.is_due(weekly) is False
    assert publisher.is_due(daily) is True

    _history(store, "2024-06-03T09:00:00Z")
    assert publisher.is_due(weekly) is True


def test_topics_rotate_with_history(store: StateStore) -> None:
    publisher = _publisher(FakeAIClient(), store)
    target = make_target(topics=("pricing", "onboarding"))

    assert publisher.next_topic(target) == "pricing"
    _history(store, "2024-06-01T00:00:00Z")
    assert publisher.next_topic(target) == "onboarding"
    _history(store, "2024-06-01T00:00:00Z", "2024-06-02T00:00:00Z")
    assert publisher.next_topic(target) == "pricing"
    assert publisher.next_topic(make_target()) is None


def test_plan_drafts_post_with_featured_image(tmp_path: Path, store: StateStore) -> None:
    client = FakeAIClient([_post_reply()])
    images = _Images()
    blog_dir = tmp_path / "src" / "content" / "blog"
    blog_dir.mkdir(parents=True)
    (blog_dir / "hello-world.md").write_text("---\ntitle: old\n---\n", encoding="utf-8")
    target = make_target(topics=("launch checklist",))

    fixes = _publisher(client, store, images=images).plan(target, _profile(), tmp_path)

    assert [fix.path for fix in fixes] == [
        "public/images/blog/hello-world-2.webp",
        "src/content/blog/hello-world-2.md",
    ]
    image, post = fixes
    assert image.action is FixAction.CREATE
    assert image.change_type == "image-added"
    assert isinstance(image.content, bytes)
    with Image.open(io.BytesIO(image.content)) as rendered:
        assert rendered.size == (120, 63)
    assert post.change_type == "blog-published"
    assert post.description == "Publish blog post: Hello World"
    assert 'image: "/images/blog/hello-world-2.webp"' in str(post.content)
    assert "pubDate: 2024-06-10" in str(post.content)
    assert images.prompts == ["a lighthouse at dusk"]
    assert "Topic: launch checklist" in client.calls[0]["conversation"][0]["content"]


def test_image_failure_still_publishes_post(tmp_path: Path, store: StateStore) -> None:
    client = FakeAIClient([_post_reply()])

    fixes = _publisher(client, store, images=_Images(fail=True)).plan(
        make_target(topics=("x",)), _profile(), tmp_path
    )

    assert [fix.change_type for fix in fixes] == ["blog-published"]
    assert "image:" not in str(fixes[0].content)


def test_image_budget_is_respected(tmp_path: Path, store: StateStore) -> None:
    images = _Images()

    fixes = _publisher(FakeAIClient([_post_reply()]), store, images=images, limits={"image": 0}).plan(
        make_target(topics=("x",)), _profile(), tmp_path
    )

    assert [fix.change_type for fix in fixes] == ["blog-published"]
    assert images.prompts == []


def test_nothing_is_drafted_without_topics_or_budget(tmp_path: Path, store: StateStore) -> None:
    client = FakeAIClient()

    assert _publisher(client, store).plan(make_target(), _profile(), tmp_path) == []
    assert _publisher(client, store, limits={"blog-post": 0}).plan(
        make_target(topics=("x",)), _profile(), tmp_path
    ) == []
    assert client.calls == []


def test_malformed_draft_is_skipped(tmp_path: Path, store: StateStore) -> None:
    client = FakeAIClient(['{"title": "No body"}'])

    assert _publisher(client, store).plan(make_target(topics=("x",)), _profile(), tmp_path) == []


def test_record_published_advances_schedule(tmp_path: Path, store: StateStore) -> None:
    publisher = _publisher(FakeAIClient([_post_reply(image_prompt=None)]), store)
    target = make_target(topics=("a", "b"))
    fixes = publisher.plan(target, _profile(), tmp_path)

    publisher.record_published(target, fixes, "abc123")

    history = publisher.history("site")
    assert history == [
        {
            "path": "src/content/blog/hello-world.md",
            "title": "Hello World",
            "commit": "abc123",
            "published_at": "2024-06-10T09:00:00Z",
        }
    ]
    assert publisher.is_due(target) is False
    assert publisher.next_topic(target) == "b"
    assert publisher.plan(target, _profile(), tmp_path) == []
    assert date.fromisoformat(history[0]["published_at"][:10]) == NOW.date()
