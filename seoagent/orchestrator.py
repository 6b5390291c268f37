"""Runs the change pipeline for every configured repository."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .analytics import SearchConsoleClient
from .budget import BudgetGuard
from .config import AgentConfig, ConfigError
from .errors import ExternalServiceError, PipelineTimeout
from .git import CommitGateway, RepositorySynchronizer
from .git.runner import GitRunner
from .impact import ImpactCorrelator, ImpactSummary, SearchAnalytics
from .issues import IssueDetector
from .ledger import ChangeLedger
from .llm import AIClient
from .logging import get_logger
from .models import DEFAULT_DAILY_LIMITS, RepositoryTarget
from .notify import EmailSender, render_summary
from .optimizer import ContentPublisher, ImageGenerator, MetaWriter
from .optimizer.content import ImageSource
from .optimizer.meta import CompletionClient
from .patcher import PatchApplier
from .planner import FixPlanner
from .prompting import PromptBuilder
from .scanner import Profiler
from .stores import IssueTracker, ProfileCache, StateStore

STATE_FILENAME = "state.json"

STATUS_OK = "ok"
STATUS_NO_CHANGES = "no-changes"
STATUS_FAILED = "failed"
STATUS_TIMEOUT = "timeout"
STATUS_BUSY = "busy"


@dataclass
class Services:
    """Collaborators shared by every repository pipeline in one invocation."""

    store: StateStore
    synchronizer: RepositorySynchronizer
    profile_cache: ProfileCache
    detector: IssueDetector
    tracker: IssueTracker
    planner: FixPlanner
    applier: PatchApplier
    gateway: CommitGateway
    ledger: ChangeLedger
    correlator: ImpactCorrelator
    budget: BudgetGuard
    content: Optional[ContentPublisher] = None
    email: Optional[EmailSender] = None


def build_services(
    config: AgentConfig,
    *,
    require_ai: bool = True,
    ai_client: CompletionClient | None = None,
    git_runner: GitRunner | None = None,
    image_generator: ImageSource | None = None,
    analytics: SearchAnalytics | None = None,
    email: EmailSender | None = None,
    clock: Callable[[], datetime] | None = None,
) -> Services:
    """Construct every collaborator from ``config``; injected doubles win.

    Raises ``ConfigError`` when AI credentials are required but missing.
    """
    if ai_client is None:
        if require_ai and not config.ai.api_key:
            raise ConfigError(
                "No AI API key configured; set ai.api_key or SEOAGENT_AI_API_KEY / OPENAI_API_KEY."
            )
        ai_client = AIClient(
            config.ai.model,
            base_url=config.ai.base_url,
            api_key=config.ai.api_key,
            temperature=config.ai.temperature,
            max_tokens=config.ai.max_tokens,
            request_timeout=config.ai.request_timeout,
        )

    store = StateStore(config.data_dir / STATE_FILENAME)
    targets = {target.id: target for target in config.repositories}

    def _limit(repo_id: str, kind: str) -> int:
        target = targets.get(repo_id)
        if target is None:
            return DEFAULT_DAILY_LIMITS.get(kind, 0)
        return target.settings.limit_for(kind)

    budget = BudgetGuard(store, _limit)
    prompts = PromptBuilder()
    ledger = ChangeLedger(store)

    if image_generator is None and config.images is not None:
        image_generator = ImageGenerator(
            config.images.api_key,
            model=config.images.model,
            base_url=config.images.base_url,
        )
    if analytics is None and config.analytics is not None and config.analytics.token:
        analytics = SearchConsoleClient(config.analytics.token, base_url=config.analytics.base_url)
    if email is None and config.email is not None and config.email.daily_report:
        email = EmailSender(
            config.email.smtp_host,
            config.email.smtp_port,
            username=config.email.username,
            password=config.email.password,
            use_tls=config.email.use_tls,
        )

    return Services(
        store=store,
        synchronizer=RepositorySynchronizer(config.data_dir, runner=git_runner),
        profile_cache=ProfileCache(store, Profiler()),
        detector=IssueDetector(),
        tracker=IssueTracker(store),
        planner=FixPlanner(
            MetaWriter(ai_client, prompts),
            budget,
            max_fixes=config.max_fixes_per_run,
        ),
        applier=PatchApplier(),
        gateway=CommitGateway(git_runner),
        ledger=ledger,
        correlator=ImpactCorrelator(
            ledger,
            analytics,
            targets,
            window_days=config.measurement_window_days,
            clock=clock,
        ),
        budget=budget,
        content=ContentPublisher(
            ai_client,
            store,
            budget,
            prompts=prompts,
            images=image_generator,
            image_config=config.images,
            clock=clock,
        ),
        email=email,
    )


@dataclass
class RepoOutcome:
    """What one repository pipeline did during a run."""

    repo_id: str
    status: str = STATUS_OK
    commit: Optional[str] = None
    issues_found: int = 0
    changes: List[str] = field(default_factory=list)
    skipped: int = 0
    error: Optional[str] = None
    duration_seconds: float = 0.0


@dataclass
class RunSummary:
    started_at: str
    outcomes: List[RepoOutcome] = field(default_factory=list)
    impacts_measured: int = 0

    @property
    def failed(self) -> List[RepoOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status in (STATUS_FAILED, STATUS_TIMEOUT)]

    @property
    def total_changes(self) -> int:
        return sum(len(outcome.changes) for outcome in self.outcomes)


class _Deadline:
    """Soft wall-clock budget checked between pipeline steps."""

    def __init__(self, repo_id: str, seconds: float, clock: Callable[[], float]) -> None:
        self._repo_id = repo_id
        self._seconds = seconds
        self._clock = clock
        self._expires = clock() + seconds

    def check(self, step: str) -> None:
        if self._seconds > 0 and self._clock() > self._expires:
            raise PipelineTimeout(
                f"[{self._repo_id}] exceeded {self._seconds:.0f}s budget after {step}"
            )


class Orchestrator:
    """Coordinates per-repository pipelines, impact correlation and the summary mail."""

    _locks: Dict[str, threading.Lock] = {}
    _locks_guard = threading.Lock()

    def __init__(
        self,
        config: AgentConfig,
        services: Services | None = None,
        *,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.services = services or build_services(config)
        self._monotonic = monotonic
        self.logger = get_logger("orchestrator")

    # ------------------------------------------------------------------
    # Public entrypoints

    def run(self, repo_ids: Sequence[str] | None = None) -> RunSummary:
        """Process the selected repositories, then correlate impact and report."""
        targets = self._select(repo_ids)
        summary = RunSummary(started_at=_now())
        self.logger.info("Processing %d repositories", len(targets))

        workers = max(1, self.config.max_workers)
        if workers == 1 or len(targets) <= 1:
            summary.outcomes = [self.run_repository(target) for target in targets]
        else:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="seoagent") as pool:
                summary.outcomes = list(pool.map(self.run_repository, targets))

        try:
            summary.impacts_measured = self.services.correlator.run()
        except Exception as exc:
            self.logger.error("Impact correlation failed: %s", exc)
            self.logger.debug("Correlation failure details", exc_info=True)
        try:
            self._notify(summary)
        except Exception as exc:
            self.logger.error("Run summary not sent: %s", exc)
            self.logger.debug("Notification failure details", exc_info=True)

        self.logger.info(
            "Run finished: %d repositories, %d changes, %d failures, %d impacts measured",
            len(summary.outcomes),
            summary.total_changes,
            len(summary.failed),
            summary.impacts_measured,
        )
        return summary

    def run_repository(self, target: RepositoryTarget) -> RepoOutcome:
        """Run one pipeline; errors never escape this boundary."""
        outcome = RepoOutcome(repo_id=target.id)
        lock = self._lock_for(target.id)
        if not lock.acquire(blocking=False):
            self.logger.warning("[%s] A run is already in progress; skipping", target.id)
            outcome.status = STATUS_BUSY
            return outcome

        started = self._monotonic()
        deadline = _Deadline(target.id, self.config.repo_timeout_seconds, self._monotonic)
        try:
            self._pipeline(target, outcome, deadline)
        except PipelineTimeout as exc:
            outcome.status = STATUS_TIMEOUT
            outcome.error = str(exc)
            self.logger.error("%s; remaining steps aborted", exc)
        except Exception as exc:
            outcome.status = STATUS_FAILED
            outcome.error = str(exc)
            self.logger.error("[%s] Pipeline failed: %s", target.id, exc)
            self.logger.debug("[%s] Failure details", target.id, exc_info=True)
        finally:
            outcome.duration_seconds = round(self._monotonic() - started, 3)
            lock.release()
        return outcome

    def impact_report(self) -> Dict[str, ImpactSummary]:
        return self.services.correlator.impact_by_type()

    def correlate(self) -> int:
        return self.services.correlator.run()

    # ------------------------------------------------------------------
    # Pipeline

    def _pipeline(self, target: RepositoryTarget, outcome: RepoOutcome, deadline: _Deadline) -> None:
        services = self.services

        base_commit = services.synchronizer.sync(target)
        workdir: Path = services.synchronizer.workdir(target)
        deadline.check("sync")

        profile = services.profile_cache.get_profile(target, base_commit, workdir)
        deadline.check("profile")

        detected = services.detector.detect(profile)
        actionable = services.tracker.sync(target.id, detected)
        outcome.issues_found = len(actionable)
        self.logger.info("[%s] %d actionable issues", target.id, len(actionable))
        deadline.check("detect")

        plan = services.planner.plan(target, profile, actionable, workdir)
        fixes = list(plan.fixes)
        outcome.skipped = len(plan.skipped)
        if services.content is not None:
            fixes.extend(services.content.plan(target, profile, workdir))
        deadline.check("plan")

        if not fixes:
            self.logger.info("[%s] Nothing to change", target.id)
            outcome.status = STATUS_NO_CHANGES
            return

        report = services.applier.apply(workdir, fixes)
        outcome.skipped += len(report.skipped)
        if report.applied_count == 0:
            self.logger.info("[%s] No fix applied; skipping commit", target.id)
            outcome.status = STATUS_NO_CHANGES
            return
        deadline.check("apply")

        commit = services.gateway.commit_and_push(workdir, report.applied, target.branch)
        if commit is None:
            outcome.status = STATUS_NO_CHANGES
            return
        outcome.commit = commit

        for fix in report.applied:
            record = services.ledger.record_fix(target.id, commit, fix)
            services.tracker.mark_fixed(target.id, fix.issue_ids, record.id)
            outcome.changes.append(record.id)
        if services.content is not None:
            services.content.record_published(target, report.applied, commit)
        self.logger.info("[%s] Committed %d changes as %s", target.id, len(outcome.changes), commit[:12])

    # ------------------------------------------------------------------
    # Helpers

    def _select(self, repo_ids: Sequence[str] | None) -> List[RepositoryTarget]:
        if not repo_ids:
            return list(self.config.repositories)
        selected: List[RepositoryTarget] = []
        for repo_id in repo_ids:
            target = self.config.repository(repo_id)
            if target is None:
                raise ConfigError(f"Unknown repository id: {repo_id}")
            selected.append(target)
        return selected

    def _notify(self, summary: RunSummary) -> None:
        email_config = self.config.email
        sender = self.services.email
        if sender is None or email_config is None:
            return
        html = render_summary(summary.started_at, summary.outcomes, self.impact_report().values())
        subject = (
            f"SEO agent: {summary.total_changes} changes across "
            f"{len(summary.outcomes)} repositories"
        )
        try:
            sender.send(email_config.sender, email_config.recipients, subject, html)
        except ExternalServiceError as exc:
            self.logger.error("Run summary not sent: %s", exc)

    @classmethod
    def _lock_for(cls, repo_id: str) -> threading.Lock:
        with cls._locks_guard:
            return cls._locks.setdefault(repo_id, threading.Lock())


def _now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def outcome_counts(outcomes: Iterable[RepoOutcome]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for outcome in outcomes:
        counts[outcome.status] = counts.get(outcome.status, 0) + 1
    return counts


__all__ = [
    "Orchestrator",
    "RepoOutcome",
    "RunSummary",
    "Services",
    "build_services",
    "outcome_counts",
]
