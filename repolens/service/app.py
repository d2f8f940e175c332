"""FastAPI application entrypoint for repolens service mode."""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config import load_config
from ..llm.errors import BackendError
from ..logging import get_logger
from ..metadata.github import MetadataError
from ..models import AnalysisOutcome
from ..orchestrator import AnalysisOrchestrator, build_orchestrator
from ..presentation.parser import PresentationSectionParser

logger = get_logger("service")

_HINTS = {
    400: "Request to the upstream API failed (invalid URL, inaccessible repository or prompt too large).",
    401: "Check GEMINI_API_KEY in the service environment.",
    403: "Access denied by the upstream API (GitHub or Gemini). Check the credentials or wait for the rate limit to reset.",
    404: "Repository not found, or the configured Gemini model is unavailable for this key. Adjust GEMINI_MODEL.",
    429: "Request limit reached. Wait and try again.",
}


def error_hint(status: int) -> Optional[str]:
    return _HINTS.get(status)


class AnalyzeRequest(BaseModel):
    repo_url: str = Field(..., alias="repoUrl", min_length=1)
    lang: str = "en"

    model_config = {"populate_by_name": True}


class SectionBlock(BaseModel):
    kind: str
    label: Optional[str] = None
    text: str


class SectionPayload(BaseModel):
    key: str
    title: str
    recognized: bool
    content: str
    shape: str
    blocks: List[SectionBlock]


class AnalyzeResponse(BaseModel):
    analysis: str
    fallback: bool
    reason: Optional[str] = None
    score: int
    model: Optional[str] = None
    sections: List[SectionPayload]


class HealthResponse(BaseModel):
    status: str


def _error_payload(status: int, details: str) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"error": "Failed to analyze repository", "details": details}
    hint = error_hint(status)
    if hint:
        payload["hint"] = hint
    return payload


def build_response(outcome: AnalysisOutcome, language: str | None = None) -> AnalyzeResponse:
    sections = PresentationSectionParser(language=language).parse(outcome.analysis)
    return AnalyzeResponse(
        analysis=outcome.analysis,
        fallback=outcome.fallback,
        reason=outcome.reason,
        score=outcome.score,
        model=outcome.model,
        sections=[SectionPayload(**section.to_dict()) for section in sections],
    )


async def run_analysis(
    orchestrator: AnalysisOrchestrator, repo_url: str, language: str | None
) -> AnalysisOutcome:
    """Run the blocking analysis in the default executor.

    Cancelling the awaiting coroutine (a client disconnect) sets the cancel
    event, so the worker stops before its next backend attempt.
    """
    cancel_event = threading.Event()

    def _run() -> AnalysisOutcome:
        return orchestrator.run(repo_url, language, cancel_event=cancel_event)

    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, _run)
    except asyncio.CancelledError:
        cancel_event.set()
        logger.info("Request for %s cancelled; stopping generation", repo_url)
        raise


def create_app(
    orchestrator_factory: Callable[[], AnalysisOrchestrator] = build_orchestrator,
    *,
    cors_origins: Sequence[str] = ("*",),
) -> FastAPI:
    """Create the FastAPI application exposing repository analysis."""

    app = FastAPI(title="RepoLens Service", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    async def get_orchestrator() -> AnalysisOrchestrator:
        return orchestrator_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/analyze", response_model=AnalyzeResponse)
    async def analyze(
        payload: AnalyzeRequest,
        orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    ) -> AnalyzeResponse:
        outcome = await run_analysis(orchestrator, payload.repo_url, payload.lang)
        return build_response(outcome, payload.lang)

    @app.exception_handler(MetadataError)
    async def metadata_error_handler(_: Any, exc: MetadataError) -> JSONResponse:
        logger.warning("Metadata lookup failed: %s", exc)
        return JSONResponse(status_code=exc.status, content=_error_payload(exc.status, str(exc)))

    @app.exception_handler(BackendError)
    async def backend_error_handler(_: Any, exc: BackendError) -> JSONResponse:
        status = exc.status if exc.status and exc.status >= 400 else 500
        logger.error("Generation failed: %s", exc)
        return JSONResponse(status_code=status, content=_error_payload(status, str(exc)))

    return app


def run_service(host: str = "0.0.0.0", port: int = 8000) -> None:  # pragma: no cover - integration path
    import uvicorn

    config = load_config()
    app = create_app(lambda: build_orchestrator(config), cors_origins=config.service.cors_origins)
    uvicorn.run(app, host=host, port=port)


__all__ = ["AnalyzeRequest", "AnalyzeResponse", "build_response", "create_app", "error_hint", "run_analysis", "run_service"]
