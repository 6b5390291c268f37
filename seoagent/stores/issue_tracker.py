"""Persistent open/fixed/ignored status for detected issues."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..logging import get_logger
from ..models import Issue
from .state import StateStore

STATUS_OPEN = "open"
STATUS_FIXED = "fixed"
STATUS_IGNORED = "ignored"


def _now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class IssueTracker:
    """Keeps one status entry per issue id per repository."""

    def __init__(self, store: StateStore) -> None:
        self._store = store
        self.logger = get_logger("stores.issue_tracker")

    def sync(self, repo_id: str, issues: Sequence[Issue]) -> List[Issue]:
        """Record a fresh detection pass and return the issues still actionable.

        New ids start open, known ids keep their status (a previously fixed id
        that reappears is reopened), and open ids missing from ``issues`` are
        marked fixed. Ignored issues are filtered out of the result.
        """
        detected = {issue.id: issue for issue in issues}
        timestamp = _now()

        def _apply(current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            entries: Dict[str, Any] = current or {}
            for issue_id, issue in detected.items():
                entry = entries.get(issue_id)
                if entry is None:
                    entries[issue_id] = {
                        "status": STATUS_OPEN,
                        "type": issue.type,
                        "severity": issue.severity.value,
                        "page": issue.page,
                        "first_seen": timestamp,
                        "updated_at": timestamp,
                    }
                elif entry.get("status") == STATUS_FIXED:
                    entry["status"] = STATUS_OPEN
                    entry["updated_at"] = timestamp
            for issue_id, entry in entries.items():
                if issue_id not in detected and entry.get("status") == STATUS_OPEN:
                    entry["status"] = STATUS_FIXED
                    entry["updated_at"] = timestamp
            return entries

        entries = self._store.update("issues", repo_id, _apply)
        ignored = {key for key, entry in entries.items() if entry.get("status") == STATUS_IGNORED}
        if ignored:
            self.logger.debug("[%s] Skipping %d ignored issues", repo_id, len(ignored & set(detected)))
        return [issue for issue in issues if issue.id not in ignored]

    def mark_fixed(self, repo_id: str, issue_ids: Iterable[str], change_id: str) -> None:
        ids = list(issue_ids)
        if not ids:
            return
        timestamp = _now()

        def _apply(current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            entries: Dict[str, Any] = current or {}
            for issue_id in ids:
                entry = entries.setdefault(issue_id, {"first_seen": timestamp})
                entry["status"] = STATUS_FIXED
                entry["change_id"] = change_id
                entry["updated_at"] = timestamp
            return entries

        self._store.update("issues", repo_id, _apply)

    def ignore(self, repo_id: str, issue_id: str) -> None:
        def _apply(current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            entries: Dict[str, Any] = current or {}
            entry = entries.setdefault(issue_id, {"first_seen": _now()})
            entry["status"] = STATUS_IGNORED
            entry["updated_at"] = _now()
            return entries

        self._store.update("issues", repo_id, _apply)

    def status(self, repo_id: str, issue_id: str) -> Optional[str]:
        entries = self._store.get("issues", repo_id) or {}
        entry = entries.get(issue_id)
        return entry.get("status") if isinstance(entry, dict) else None

    def counts(self, repo_id: str) -> Dict[str, int]:
        entries = self._store.get("issues", repo_id) or {}
        totals = {STATUS_OPEN: 0, STATUS_FIXED: 0, STATUS_IGNORED: 0}
        for entry in entries.values():
            status = entry.get("status")
            if status in totals:
                totals[status] += 1
        return totals


__all__ = ["IssueTracker", "STATUS_FIXED", "STATUS_IGNORED", "STATUS_OPEN"]
