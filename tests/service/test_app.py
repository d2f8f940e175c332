"""Tests for the FastAPI service mode."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from typing import List, Tuple

import pytest
from fastapi.testclient import TestClient

from repolens.llm.client import ReportGenerationClient
from repolens.llm.errors import GenerationCancelled
from repolens.llm.resolver import BackendCandidateResolver
from repolens.metadata.github import InvalidReferenceError, RateLimitedError
from repolens.models import AnalysisOutcome, GenerationResponse
from repolens.orchestrator import AnalysisOrchestrator
from repolens.service import create_app
from repolens.service.app import run_analysis
from tests._fixtures.fakes import FakeProvider, FakeTransport, document


class _StubOrchestrator:
    def __init__(self, outcome: AnalysisOutcome | None = None, error: Exception | None = None) -> None:
        self.outcome = outcome
        self.error = error
        self.calls: List[Tuple[str, str | None]] = []

    def run(self, repo_url: str, language: str | None = None, *, cancel_event=None) -> AnalysisOutcome:
        self.calls.append((repo_url, language))
        if self.error is not None:
            raise self.error
        assert self.outcome is not None
        return self.outcome


def _client(orchestrator: _StubOrchestrator) -> TestClient:
    return TestClient(create_app(lambda: orchestrator))


def test_health_endpoint() -> None:
    response = _client(_StubOrchestrator()).get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_analyze_returns_report_and_sections() -> None:
    orchestrator = _StubOrchestrator(
        AnalysisOutcome(
            analysis="## STACK\n- FastAPI\n## STRENGTHS\n- Small",
            fallback=False,
            score=2,
            reason="PARTIAL",
            model="gemini-2.0-flash",
        )
    )

    response = _client(orchestrator).post(
        "/analyze", json={"repoUrl": "https://github.com/octo/widget", "lang": "pt"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["analysis"].startswith("## STACK")
    assert data["fallback"] is False
    assert data["reason"] == "PARTIAL"
    assert data["score"] == 2
    assert data["model"] == "gemini-2.0-flash"
    assert [section["key"] for section in data["sections"]] == ["STACK", "STRENGTHS"]
    assert data["sections"][0]["title"] == "Explicação da Stack"
    assert data["sections"][0]["blocks"] == [{"kind": "item", "label": None, "text": "FastAPI"}]
    assert orchestrator.calls == [("https://github.com/octo/widget", "pt")]


def test_analyze_requires_repo_url() -> None:
    response = _client(_StubOrchestrator()).post("/analyze", json={"lang": "en"})
    assert response.status_code == 422


@pytest.mark.parametrize(
    ("error", "status"),
    [
        (InvalidReferenceError("Invalid repository URL"), 400),
        (RateLimitedError("GitHub API rate limit exceeded"), 403),
    ],
)
def test_metadata_errors_map_to_error_payload(error, status) -> None:
    response = _client(_StubOrchestrator(error=error)).post(
        "/analyze", json={"repoUrl": "https://github.com/octo/widget"}
    )

    assert response.status_code == status
    data = response.json()
    assert data["error"] == "Failed to analyze repository"
    assert data["details"] == str(error)
    assert data["hint"]


def test_cancelled_generation_is_not_reported_as_success() -> None:
    client = TestClient(
        create_app(lambda: _StubOrchestrator(error=GenerationCancelled("stop"))),
        raise_server_exceptions=False,
    )

    response = client.post("/analyze", json={"repoUrl": "https://github.com/octo/widget"})

    assert response.status_code == 500


def test_cors_headers_are_sent_for_browser_clients() -> None:
    client = TestClient(
        create_app(lambda: _StubOrchestrator(), cors_origins=["http://localhost:5173"])
    )

    allowed = client.get("/health", headers={"Origin": "http://localhost:5173"})
    preflight = client.options(
        "/analyze",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "content-type",
        },
    )

    assert allowed.headers["access-control-allow-origin"] == "http://localhost:5173"
    assert preflight.status_code == 200
    assert "POST" in preflight.headers["access-control-allow-methods"]


def test_any_origin_is_allowed_by_default() -> None:
    response = _client(_StubOrchestrator()).get("/health", headers={"Origin": "https://lens.example"})
    assert response.headers["access-control-allow-origin"] == "*"


@dataclass
class _GatedTransport(FakeTransport):
    """Blocks inside the first generate call until released."""

    entered: threading.Event = field(default_factory=threading.Event)
    release: threading.Event = field(default_factory=threading.Event)

    def generate(self, model, api_version, request):
        self.entered.set()
        self.release.wait(5)
        return super().generate(model, api_version, request)


def test_cancelled_request_stops_further_attempts(snapshot) -> None:
    transport = _GatedTransport({"first": [GenerationResponse(document("## STACK"), "STOP")]})
    resolver = BackendCandidateResolver(None, fallback_models=["first", "second"])
    orchestrator = AnalysisOrchestrator(FakeProvider(snapshot), ReportGenerationClient(transport, resolver))

    async def scenario() -> None:
        task = asyncio.create_task(run_analysis(orchestrator, "https://github.com/octo/widget", "en"))
        started = await asyncio.get_running_loop().run_in_executor(None, transport.entered.wait, 5)
        assert started
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        transport.release.set()

    asyncio.run(scenario())

    assert len(transport.calls) == 1
    assert transport.calls[0][0] == "first"
