"""Tests for the resilient report generation loop."""

from __future__ import annotations

import threading

import pytest

from repolens.llm.client import AttemptLedger, ReportGenerationClient, SamplingSettings
from repolens.llm.errors import (
    BackendExhaustedError,
    ConfigurationError,
    GenerationCancelled,
    ModelUnavailableError,
    QuotaExceededError,
)
from repolens.llm.resolver import BackendCandidateResolver
from repolens.models import CandidateBackend, GenerationResponse
from repolens.validators.completeness import CompletenessPolicy
from tests._fixtures.fakes import FakeTransport, document

TWO_SECTIONS = document("## Resumo Arquitetural", "**Stack**")
FIVE_SECTIONS = document(
    "## ARCHITECTURAL_SUMMARY",
    "## STACK",
    "### Pontos Fortes",
    "## Weaknesses",
    "## Improvement Suggestions",
)
ONE_SECTION = document("## Beginner Tasks")


def _client(transport: FakeTransport, models: list[str], **kwargs) -> ReportGenerationClient:
    resolver = BackendCandidateResolver(None, fallback_models=models)
    return ReportGenerationClient(transport, resolver, **kwargs)


def test_incomplete_first_answer_keeps_searching(snapshot) -> None:
    transport = FakeTransport(
        {
            "first": [GenerationResponse(TWO_SECTIONS, "STOP")],
            "second": [GenerationResponse(FIVE_SECTIONS, "STOP")],
        }
    )

    result = _client(transport, ["first", "second"]).generate(snapshot)

    assert result.candidate.model == "second"
    assert result.score == 5
    assert result.complete is True
    assert result.document.startswith("## ARCHITECTURAL_SUMMARY")
    assert transport.calls == [("first", "v1beta"), ("first", "v1"), ("second", "v1beta")]


def test_blocking_error_aborts_remaining_candidates(snapshot) -> None:
    transport = FakeTransport(
        {
            "first": [QuotaExceededError("quota", status=429, reason="RESOURCE_EXHAUSTED")],
            "second": [GenerationResponse(FIVE_SECTIONS, "STOP")],
        }
    )

    with pytest.raises(QuotaExceededError) as excinfo:
        _client(transport, ["first", "second"]).generate(snapshot)

    assert excinfo.value.reason == "RESOURCE_EXHAUSTED"
    assert transport.calls == [("first", "v1beta")]


def test_single_section_partial_is_returned_when_nothing_else_works(snapshot) -> None:
    transport = FakeTransport({"middle": [GenerationResponse(ONE_SECTION, "STOP")]})

    result = _client(transport, ["first", "middle", "last"]).generate(snapshot)

    assert result.candidate.model == "middle"
    assert result.score == 1
    assert result.complete is False
    assert result.document == "## BEGINNER_TASKS\n- point"
    assert result.attempts == 6


def test_truncated_answer_is_not_accepted(snapshot) -> None:
    full = document(*(f"## {name}" for name in ("ARCHITECTURAL_SUMMARY", "STACK", "STRENGTHS", "WEAKNESSES")))
    transport = FakeTransport(
        {
            "first": [GenerationResponse(full, "MAX_TOKENS")],
            "second": [GenerationResponse(FIVE_SECTIONS, "STOP")],
        }
    )

    result = _client(transport, ["first", "second"]).generate(snapshot)

    assert result.candidate.model == "second"


def test_best_partial_prefers_strictly_higher_score(snapshot) -> None:
    transport = FakeTransport(
        {
            "first": [GenerationResponse(TWO_SECTIONS, "MAX_TOKENS")],
            "second": [GenerationResponse(ONE_SECTION, "STOP")],
        }
    )

    result = _client(transport, ["first", "second"]).generate(snapshot)

    assert result.candidate.model == "first"
    assert result.score == 2
    assert result.complete is False


def test_all_models_unusable_raises_last_error(snapshot) -> None:
    transport = FakeTransport({})

    with pytest.raises(ModelUnavailableError):
        _client(transport, ["first", "second"]).generate(snapshot)

    assert len(transport.calls) == 4


def test_empty_answers_exhaust_backends(snapshot) -> None:
    transport = FakeTransport({"first": [GenerationResponse(None, "SAFETY")]})

    with pytest.raises(BackendExhaustedError) as excinfo:
        _client(transport, ["first"]).generate(snapshot)

    assert excinfo.value.reason == "NO_BACKEND_AVAILABLE"


def test_zero_score_answers_are_not_partials(snapshot) -> None:
    transport = FakeTransport({"first": [GenerationResponse("No headers at all.", "STOP")]})

    with pytest.raises(BackendExhaustedError):
        _client(transport, ["first"]).generate(snapshot)


def test_missing_credentials_fail_before_any_call(snapshot) -> None:
    transport = FakeTransport({"first": [GenerationResponse(FIVE_SECTIONS)]}, configured=False)

    with pytest.raises(ConfigurationError) as excinfo:
        _client(transport, ["first"]).generate(snapshot)

    assert excinfo.value.reason == "API_KEY_MISSING"
    assert transport.calls == []


def test_cancelled_request_issues_no_attempts(snapshot) -> None:
    transport = FakeTransport({"first": [GenerationResponse(FIVE_SECTIONS)]})
    cancel_event = threading.Event()
    cancel_event.set()

    with pytest.raises(GenerationCancelled):
        _client(transport, ["first"]).generate(snapshot, cancel_event=cancel_event)

    assert transport.calls == []


def test_discovered_candidate_tries_its_own_version_first(snapshot) -> None:
    transport = FakeTransport({})
    resolver = BackendCandidateResolver(None, fallback_models=[])
    client = ReportGenerationClient(transport, resolver)

    assert client._versions_for(CandidateBackend("m", "v1")) == ["v1", "v1beta"]
    assert client._versions_for(CandidateBackend("m")) == ["v1beta", "v1"]


def test_request_carries_prompt_language_and_sampling(snapshot) -> None:
    transport = FakeTransport({"first": [GenerationResponse(FIVE_SECTIONS, "STOP")]})
    client = _client(
        transport,
        ["first"],
        sampling=SamplingSettings(temperature=0.2, top_k=10),
        policy=CompletenessPolicy(accept_threshold=5),
    )

    client.generate(snapshot, "custom prompt", "pt-BR")

    request = transport.requests[0]
    assert request.prompt == "custom prompt"
    assert request.language == "pt"
    assert request.temperature == 0.2
    assert request.top_k == 10
    assert "português" in (request.system_instruction or "")


def test_ledger_records_only_improvements() -> None:
    ledger = AttemptLedger()
    candidate = CandidateBackend("m")

    assert ledger.partial_result() is None
    assert ledger.record("a", 2, candidate, "v1beta") is True
    assert ledger.record("b", 2, candidate, "v1") is False
    assert ledger.best_document == "a"
