"""
HTTP front end over Coordinator.score().

Endpoints:
    POST /score   {"resumeId": ..., "jobId": ..., "weights": {...}?}
    GET  /health  Context manager health snapshot

Malformed bodies are rejected by FastAPI with 422; identifiers or weights the
coordinator refuses return 400; a scheduling failure returns 503. Degraded
analyses never produce an error status: they are reported in the body through
"status", "perTaskStatus" and "perTaskError".

Serve with any ASGI server, e.g.:
    uvicorn --factory fitscore.api:create_default_app
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from fitscore.contexts.coordination.coordinator import Coordinator, build_coordinator
from fitscore.exceptions import CoordinatorError, DispatchFailure, InvalidRequest
from fitscore.utils.config import LOGS_PATH, load_scoring_config
from fitscore.utils.logger import setup_logger
from fitscore.utils.timestamp import now


class ScoreRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    resume_id: str = Field(alias="resumeId")
    job_id: str = Field(alias="jobId")
    # Values are checked by the coordinator so bools and non-finite numbers get a 400
    weights: Optional[Dict[str, Any]] = None


class TaskError(BaseModel):
    kind: str
    message: Optional[str] = None


class ScoreResponse(BaseModel):
    runId: str
    resumeId: str
    jobId: str
    scores: Dict[str, Optional[float]]
    composite: Optional[float]
    status: str
    perTaskStatus: Dict[str, str]
    perTaskError: Dict[str, TaskError]
    weightsUsed: Dict[str, float]
    processingTimeMs: float
    persisted: bool


def create_app(coordinator: Coordinator, lifespan=None) -> FastAPI:
    """
    Build the FastAPI application around an existing coordinator.

    Args:
        coordinator: Coordinator whose context manager also backs /health
        lifespan: Optional FastAPI lifespan context manager
    """
    app = FastAPI(title="fitscore", description="Resume to job fit scoring", lifespan=lifespan)
    app.state.coordinator = coordinator

    # Plain def: FastAPI runs it in its threadpool, so blocking score() calls don't stall the loop
    @app.post("/score", response_model=ScoreResponse)
    def score(request: ScoreRequest) -> Dict[str, Any]:
        try:
            composite = coordinator.score(request.resume_id, request.job_id, request.weights)
        except InvalidRequest as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except DispatchFailure as e:
            raise HTTPException(status_code=503, detail=str(e)) from e
        except CoordinatorError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return composite.to_response()

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return coordinator.context_manager.health_check()

    return app


def create_default_app() -> FastAPI:
    """Application factory wired from environment and scoring.yaml (starts the sweeper)."""
    config = load_scoring_config()
    setup_logger(context_name="api", log_dir=Path(LOGS_PATH) / f"api_{now()}", config=config)

    coordinator = build_coordinator(config)
    manager = coordinator.context_manager

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        manager.start_sweeper(interval_s=float(config.isolation.sweep_interval_minutes) * 60)
        yield
        manager.shutdown()

    return create_app(coordinator, lifespan=lifespan)
