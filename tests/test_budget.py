"""Tests for per-day metered operation limits."""

from __future__ import annotations

from datetime import date

import pytest

from seoagent.budget import BudgetGuard
from seoagent.errors import BudgetExceededError
from seoagent.stores import StateStore


class _Clock:
    def __init__(self, today: date) -> None:
        self.today = today

    def __call__(self) -> date:
        return self.today


def test_denies_after_limit_and_resets_next_day(store: StateStore) -> None:
    clock = _Clock(date(2024, 6, 1))
    guard = BudgetGuard(store, lambda _repo, _kind: 3, clock=clock)

    results = [guard.try_consume("site", "ai-completion") for _ in range(4)]

    assert results == [True, True, True, False]
    assert guard.used("site", "ai-completion") == 3

    clock.today = date(2024, 6, 2)
    assert guard.try_consume("site", "ai-completion") is True
    assert guard.used("site", "ai-completion") == 1


def test_counters_are_scoped_by_repository_and_kind(store: StateStore) -> None:
    guard = BudgetGuard(store, lambda _repo, kind: 1 if kind == "image" else 5, clock=lambda: date(2024, 6, 1))

    assert guard.try_consume("a", "image") is True
    assert guard.try_consume("a", "image") is False
    assert guard.try_consume("b", "image") is True
    assert guard.try_consume("a", "blog-post") is True


def test_consume_raises_when_denied(store: StateStore) -> None:
    guard = BudgetGuard(store, lambda _repo, _kind: 0, clock=lambda: date(2024, 6, 1))

    with pytest.raises(BudgetExceededError):
        guard.consume("site", "blog-post")
    assert guard.used("site", "blog-post") == 0
