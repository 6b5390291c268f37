"""FastAPI application entrypoint for seoagent service mode."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..config import AgentConfig, ConfigError
from ..orchestrator import Orchestrator, RunSummary


class RunRequest(BaseModel):
    repos: List[str] = Field(default_factory=list)


class RepoOutcomeModel(BaseModel):
    repo_id: str
    status: str
    commit: Optional[str] = None
    issues_found: int = 0
    changes: List[str] = Field(default_factory=list)
    skipped: int = 0
    error: Optional[str] = None


class RunResponse(BaseModel):
    started_at: str
    impacts_measured: int
    outcomes: List[RepoOutcomeModel]


class ImpactEntry(BaseModel):
    change_type: str
    mean_percent_change: float
    sample_size: int


class ImpactResponse(BaseModel):
    impact: Dict[str, ImpactEntry]


class HealthResponse(BaseModel):
    status: str
    version: str


def create_app(orchestrator_factory: Callable[[], Orchestrator]) -> FastAPI:
    """Create the FastAPI application exposing seoagent operations."""

    app = FastAPI(title="SEO Agent Service", version=__version__)

    async def get_orchestrator() -> Orchestrator:
        return orchestrator_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    @app.post("/run", response_model=RunResponse)
    async def run(
        payload: RunRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> RunResponse:
        def _run() -> RunSummary:
            return orchestrator.run(payload.repos or None)

        loop = asyncio.get_running_loop()
        summary = await loop.run_in_executor(None, _run)
        return RunResponse(
            started_at=summary.started_at,
            impacts_measured=summary.impacts_measured,
            outcomes=[
                RepoOutcomeModel(
                    repo_id=outcome.repo_id,
                    status=outcome.status,
                    commit=outcome.commit,
                    issues_found=outcome.issues_found,
                    changes=list(outcome.changes),
                    skipped=outcome.skipped,
                    error=outcome.error,
                )
                for outcome in summary.outcomes
            ],
        )

    @app.get("/impact", response_model=ImpactResponse)
    async def impact(orchestrator: Orchestrator = Depends(get_orchestrator)) -> ImpactResponse:
        report = orchestrator.impact_report()
        return ImpactResponse(
            impact={
                change_type: ImpactEntry(
                    change_type=summary.change_type,
                    mean_percent_change=summary.mean_percent_change,
                    sample_size=summary.sample_size,
                )
                for change_type, summary in report.items()
            }
        )

    @app.exception_handler(ConfigError)
    async def config_error_handler(_: Any, exc: ConfigError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(
    config: AgentConfig, host: str = "127.0.0.1", port: int = 8000
) -> None:  # pragma: no cover - integration path
    app = create_app(lambda: Orchestrator(config))
    uvicorn.run(app, host=host, port=port)
