"""Attributes search-traffic deltas to ledger entries."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple
from urllib.parse import urlsplit

from .errors import SeoAgentError
from .ledger import ChangeLedger
from .logging import get_logger
from .models import AnalyticsRow, ChangeRecord, DateRange, MeasuredImpact, RepositoryTarget

DEFAULT_WINDOW_DAYS = 14


class SearchAnalytics(Protocol):
    def query(self, property_id: str, date_range: DateRange, group_by: Sequence[str]) -> List[AnalyticsRow]:
        ...


@dataclass
class ImpactSummary:
    change_type: str
    mean_percent_change: float
    sample_size: int


def percent_change(before: int, after: int) -> float:
    """Relative change in percent; defined as 0 when there is no baseline."""
    if before <= 0:
        return 0.0
    return round((after - before) / before * 100, 2)


def measurement_windows(changed_on: date, window_days: int) -> Tuple[DateRange, DateRange]:
    """Equal-length windows immediately before and after the change day."""
    before = DateRange(start=changed_on - timedelta(days=window_days), end=changed_on - timedelta(days=1))
    after = DateRange(start=changed_on + timedelta(days=1), end=changed_on + timedelta(days=window_days))
    return before, after


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class ImpactCorrelator:
    """Measures each pending change once its window has fully elapsed."""

    def __init__(
        self,
        ledger: ChangeLedger,
        analytics: Optional[SearchAnalytics],
        targets: Mapping[str, RepositoryTarget],
        *,
        window_days: int = DEFAULT_WINDOW_DAYS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._ledger = ledger
        self._analytics = analytics
        self._targets = dict(targets)
        self.window_days = window_days
        self._clock = clock or (lambda: datetime.now(UTC))
        self.logger = get_logger("impact")

    def run(self, now: datetime | None = None) -> int:
        """Measure every due record; returns how many outcomes were written."""
        analytics = self._analytics
        if analytics is None:
            self.logger.info("Analytics not configured; skipping impact correlation")
            return 0
        now = now or self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)

        measured = 0
        for record in self._ledger.pending_correlation():
            try:
                if self._measure(analytics, record, now):
                    measured += 1
            except SeoAgentError as exc:
                self.logger.warning("[%s] Impact query failed for %s: %s", record.repo_id, record.file, exc)
            except Exception as exc:
                self.logger.error("[%s] Impact measurement failed for %s: %s", record.repo_id, record.file, exc)
                self.logger.debug("[%s] Failure details", record.repo_id, exc_info=True)
        if measured:
            self.logger.info("Measured impact for %d changes", measured)
        return measured

    def impact_by_type(self) -> Dict[str, ImpactSummary]:
        grouped: Dict[str, List[float]] = defaultdict(list)
        for record in self._ledger.resolved():
            if record.measured_impact is None:
                continue
            grouped[record.type].append(record.measured_impact.percent_change)
        return {
            change_type: ImpactSummary(
                change_type=change_type,
                mean_percent_change=round(sum(values) / len(values), 2),
                sample_size=len(values),
            )
            for change_type, values in sorted(grouped.items())
        }

    def _measure(self, analytics: SearchAnalytics, record: ChangeRecord, now: datetime) -> bool:
        changed_at = parse_timestamp(record.timestamp)
        elapsed = (now - changed_at).days
        if elapsed < self.window_days:
            return False

        target = self._targets.get(record.repo_id)
        if target is None or not target.search_console:
            self.logger.debug("[%s] No search property configured; cannot measure", record.repo_id)
            return False

        before_range, after_range = measurement_windows(changed_at.date(), self.window_days)
        before_rows = analytics.query(target.search_console, before_range, ["page"])
        after_rows = analytics.query(target.search_console, after_range, ["page"])
        before_rows, after_rows = _select_rows(before_rows, after_rows, record.affected_page)

        before = sum(row.clicks for row in before_rows)
        after = sum(row.clicks for row in after_rows)
        impact = MeasuredImpact(
            clicks_before=before,
            clicks_after=after,
            percent_change=percent_change(before, after),
            window_days=self.window_days,
            measured_at=now.isoformat().replace("+00:00", "Z"),
        )
        written = self._ledger.set_measured_impact(record.id, impact)
        if written:
            self.logger.info(
                "[%s] %s on %s: %d -> %d clicks (%+.1f%%)",
                record.repo_id,
                record.type,
                record.file,
                before,
                after,
                impact.percent_change,
            )
        return written


def _select_rows(
    before: List[AnalyticsRow], after: List[AnalyticsRow], page: Optional[str]
) -> Tuple[List[AnalyticsRow], List[AnalyticsRow]]:
    """Narrow rows to the affected page when analytics reports it; else use site totals."""
    if not page:
        return before, after

    def _matches(row: AnalyticsRow) -> bool:
        path = urlsplit(row.key).path if "://" in row.key else row.key.split("?", 1)[0]
        normalized = path.rstrip("/") or "/"
        return normalized == (page.rstrip("/") or "/")

    page_before = [row for row in before if _matches(row)]
    page_after = [row for row in after if _matches(row)]
    if page_before or page_after:
        return page_before, page_after
    return before, after


__all__ = [
    "DEFAULT_WINDOW_DAYS",
    "ImpactCorrelator",
    "ImpactSummary",
    "SearchAnalytics",
    "measurement_windows",
    "percent_change",
    "parse_timestamp",
]
