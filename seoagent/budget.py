"""Per-repository, per-day caps on metered operations."""

from __future__ import annotations

from datetime import date
from typing import Callable, Optional

from .errors import BudgetExceededError
from .logging import get_logger
from .stores.state import StateStore

LimitResolver = Callable[[str, str], int]


class BudgetGuard:
    """Counts metered calls keyed by (repository, resource kind, calendar date).

    Counters are never decremented or reset; a new date is a new key.
    """

    def __init__(
        self,
        store: StateStore,
        limits: LimitResolver,
        *,
        clock: Callable[[], date] | None = None,
    ) -> None:
        self._store = store
        self._limits = limits
        self._clock = clock or date.today
        self.logger = get_logger("budget")

    def try_consume(self, repo_id: str, kind: str) -> bool:
        """Increment and allow while under the daily limit; otherwise deny without incrementing."""
        limit = self._limits(repo_id, kind)
        allowed = False

        def _increment(current: Optional[int]) -> int:
            nonlocal allowed
            count = int(current or 0)
            if count < limit:
                allowed = True
                return count + 1
            return count

        count = self._store.update("budget", self._key(repo_id, kind), _increment)
        if allowed:
            self.logger.debug("[%s] %s budget %d/%d", repo_id, kind, count, limit)
        else:
            self.logger.warning("[%s] Daily %s budget exhausted (%d/%d)", repo_id, kind, count, limit)
        return allowed

    def consume(self, repo_id: str, kind: str) -> None:
        """Like ``try_consume`` but raises ``BudgetExceededError`` on denial."""
        if not self.try_consume(repo_id, kind):
            raise BudgetExceededError(repo_id, kind)

    def used(self, repo_id: str, kind: str) -> int:
        return int(self._store.get("budget", self._key(repo_id, kind)) or 0)

    def _key(self, repo_id: str, kind: str) -> str:
        return f"{repo_id}|{kind}|{self._clock().isoformat()}"


__all__ = ["BudgetGuard", "LimitResolver"]
