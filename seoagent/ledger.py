"""Append-only record of committed changes."""

from __future__ import annotations

import hashlib
from datetime import UTC, datetime
from typing import Any, Dict, List, Optional

from .logging import get_logger
from .models import ChangeRecord, Fix, MeasuredImpact
from .stores.state import StateStore

EXPECTED_IMPACT: Dict[str, str] = {
    "meta-title": "Higher click-through rate from clearer search result titles",
    "meta-description": "Higher click-through rate from richer result snippets",
    "og-tags": "Better previews when pages are shared",
    "schema": "Eligibility for rich results",
    "sitemap": "Faster discovery and indexing of pages",
    "robots": "Crawl budget directed at public pages",
    "alt-text": "Image search visibility and accessibility",
    "blog-published": "New long-tail search traffic",
    "image-added": "Image search visibility",
    "content-update": "Improved relevance for existing queries",
}


def change_id(repo_id: str, commit: str, path: str) -> str:
    """Deterministic id for one file changed by one commit."""
    digest = hashlib.sha256(f"{repo_id}\0{commit}\0{path}".encode("utf-8")).hexdigest()
    return digest[:20]


def _now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class ChangeLedger:
    """Stores one ``ChangeRecord`` per (repository, commit, file)."""

    def __init__(self, store: StateStore) -> None:
        self._store = store
        self.logger = get_logger("ledger")

    def record(self, change: ChangeRecord) -> bool:
        """Append ``change``; returns False when it was already recorded."""
        created = False

        def _insert(current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            nonlocal created
            if current is not None:
                return current
            created = True
            return change.to_dict()

        self._store.update("changes", change.id, _insert)
        if created:
            self.logger.debug("[%s] Recorded %s change on %s", change.repo_id, change.type, change.file)
        return created

    def record_fix(self, repo_id: str, commit: str, fix: Fix, *, timestamp: str | None = None) -> ChangeRecord:
        record = ChangeRecord(
            id=change_id(repo_id, commit, fix.path),
            repo_id=repo_id,
            timestamp=timestamp or _now(),
            type=fix.change_type,
            file=fix.path,
            commit=commit,
            description=fix.description,
            expected_impact=EXPECTED_IMPACT.get(fix.change_type, ""),
            affected_page=fix.affected_page,
        )
        self.record(record)
        return self.get(record.id) or record

    def get(self, record_id: str) -> Optional[ChangeRecord]:
        payload = self._store.get("changes", record_id)
        return ChangeRecord.from_dict(payload) if isinstance(payload, dict) else None

    def all(self) -> List[ChangeRecord]:
        records = [ChangeRecord.from_dict(payload) for _key, payload in self._store.items("changes")]
        return sorted(records, key=lambda record: (record.timestamp, record.id))

    def pending_correlation(self) -> List[ChangeRecord]:
        return [record for record in self.all() if record.measured_impact is None]

    def resolved(self) -> List[ChangeRecord]:
        return [record for record in self.all() if record.measured_impact is not None]

    def set_measured_impact(self, record_id: str, impact: MeasuredImpact) -> bool:
        """Attach ``impact`` unless one is already present; returns True when written."""
        written = False

        def _attach(current: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
            nonlocal written
            if current is None or current.get("measured_impact") is not None:
                return current
            current["measured_impact"] = {
                "clicks_before": impact.clicks_before,
                "clicks_after": impact.clicks_after,
                "percent_change": impact.percent_change,
                "window_days": impact.window_days,
                "measured_at": impact.measured_at,
            }
            written = True
            return current

        if self._store.get("changes", record_id) is None:
            return False
        self._store.update("changes", record_id, _attach)
        return written


__all__ = ["ChangeLedger", "EXPECTED_IMPACT", "change_id"]
