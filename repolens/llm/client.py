"""Resilient report generation across an ordered list of backends."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from ..logging import attempt_context, get_logger
from ..models import (
    CandidateBackend,
    GenerationRequest,
    GenerationResponse,
    GenerationResult,
    RepositorySnapshot,
)
from ..postproc.canonicalizer import HeaderCanonicalizer
from ..prompting.builder import PromptBuilder
from ..prompting.constants import SECTION_ORDER, resolve_language
from ..validators.completeness import CompletenessPolicy, score
from .errors import (
    BackendError,
    BackendExhaustedError,
    ConfigurationError,
    GenerationCancelled,
    ModelUnavailableError,
)
from .resolver import DEFAULT_API_VERSIONS, BackendCandidateResolver


class GenerationTransport(Protocol):
    configured: bool

    def generate(
        self, model: str, api_version: str, request: GenerationRequest
    ) -> GenerationResponse:
        """Send one generation call."""


@dataclass
class AttemptLedger:
    """Accumulator threaded through the candidate loop."""

    best_document: Optional[str] = None
    best_score: int = 0
    best_candidate: Optional[CandidateBackend] = None
    best_api_version: Optional[str] = None
    last_error: Optional[BackendError] = None
    attempts: int = 0

    def record(
        self,
        document: str,
        value: int,
        candidate: CandidateBackend,
        api_version: str,
    ) -> bool:
        """Keep ``document`` when it strictly beats the best score so far."""
        if value <= self.best_score:
            return False
        self.best_document = document
        self.best_score = value
        self.best_candidate = candidate
        self.best_api_version = api_version
        return True

    def partial_result(self) -> GenerationResult | None:
        if (
            self.best_document is None
            or self.best_candidate is None
            or self.best_api_version is None
        ):
            return None
        return GenerationResult(
            document=self.best_document,
            score=self.best_score,
            candidate=self.best_candidate,
            api_version=self.best_api_version,
            complete=False,
            attempts=self.attempts,
        )


@dataclass
class SamplingSettings:
    temperature: float = 0.7
    top_p: float = 0.95
    top_k: int = 40
    max_output_tokens: int = 8192


class ReportGenerationClient:
    """Tries every (candidate, protocol version) pair until a report is good enough.

    A response is accepted as soon as it scores at least the policy threshold
    without truncation. Otherwise the best-scoring partial seen so far is
    returned once all pairs are exhausted. Blocking errors (quota, auth,
    malformed request) end the loop at once, since no other model can fix them.
    """

    def __init__(
        self,
        transport: GenerationTransport,
        resolver: BackendCandidateResolver,
        *,
        api_versions: Sequence[str] = DEFAULT_API_VERSIONS,
        policy: CompletenessPolicy | None = None,
        canonicalizer: HeaderCanonicalizer | None = None,
        prompt_builder: PromptBuilder | None = None,
        sampling: SamplingSettings | None = None,
    ) -> None:
        self.transport = transport
        self.resolver = resolver
        self.api_versions = tuple(api_versions)
        self.policy = policy or CompletenessPolicy()
        self.canonicalizer = canonicalizer or HeaderCanonicalizer()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.sampling = sampling or SamplingSettings()
        self.logger = get_logger("llm.client")

    def generate(
        self,
        snapshot: RepositorySnapshot,
        prompt: str | None = None,
        language: str | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> GenerationResult:
        if not getattr(self.transport, "configured", True):
            raise ConfigurationError(
                "GEMINI_API_KEY is not configured", status=500, reason="API_KEY_MISSING"
            )

        lang = resolve_language(language)
        request = GenerationRequest(
            prompt=prompt if prompt is not None else self.prompt_builder.build(snapshot, lang),
            language=lang,
            system_instruction=self.prompt_builder.system_instruction(lang),
            temperature=self.sampling.temperature,
            top_p=self.sampling.top_p,
            top_k=self.sampling.top_k,
            max_output_tokens=self.sampling.max_output_tokens,
        )

        ledger = AttemptLedger()
        self._check_cancelled(cancel_event)
        candidates = self.resolver.resolve()
        for candidate in candidates:
            for api_version in self._versions_for(candidate):
                self._check_cancelled(cancel_event)
                result = self._attempt(candidate, api_version, request, ledger)
                if result is not None:
                    return result

        partial = ledger.partial_result()
        if partial is not None and self.policy.retains(partial.score):
            self.logger.warning(
                "Returning best partial result with %d/%d sections (model=%s)",
                partial.score,
                len(SECTION_ORDER),
                partial.candidate.model,
            )
            return partial

        if ledger.last_error is not None:
            raise ledger.last_error
        raise BackendExhaustedError(
            f"No generation backend available ({len(candidates)} candidate(s) tried)",
            reason="NO_BACKEND_AVAILABLE",
        )

    def _attempt(
        self,
        candidate: CandidateBackend,
        api_version: str,
        request: GenerationRequest,
        ledger: AttemptLedger,
    ) -> GenerationResult | None:
        ledger.attempts += 1
        with attempt_context(candidate.model, api_version, ledger.attempts):
            return self._try_backend(candidate, api_version, request, ledger)

    def _try_backend(
        self,
        candidate: CandidateBackend,
        api_version: str,
        request: GenerationRequest,
        ledger: AttemptLedger,
    ) -> GenerationResult | None:
        try:
            response = self.transport.generate(candidate.model, api_version, request)
        except ModelUnavailableError as exc:
            self.logger.debug(
                "Model %s unusable under %s: %s", candidate.model, api_version, exc
            )
            ledger.last_error = exc
            return None

        if not response.text:
            self.logger.debug("Model %s returned no text under %s", candidate.model, api_version)
            return None

        document = self.canonicalizer.canonicalize(response.text)
        value = score(document)
        self.logger.info(
            "model=%s api_version=%s sections=%d/%d finish_reason=%s",
            candidate.model,
            api_version,
            value,
            len(SECTION_ORDER),
            response.finish_reason,
        )
        ledger.record(document, value, candidate, api_version)

        if self.policy.accepts(value, truncated=response.truncated):
            return GenerationResult(
                document=document,
                score=value,
                candidate=candidate,
                api_version=api_version,
                complete=True,
                attempts=ledger.attempts,
            )

        self.logger.warning(
            "Incomplete analysis: %d/%d sections, finish_reason=%s, model=%s",
            value,
            len(SECTION_ORDER),
            response.finish_reason,
            candidate.model,
        )
        return None

    def _versions_for(self, candidate: CandidateBackend) -> List[str]:
        versions: List[str] = []
        if candidate.api_version:
            versions.append(candidate.api_version)
        versions.extend(version for version in self.api_versions if version not in versions)
        return versions

    @staticmethod
    def _check_cancelled(cancel_event: threading.Event | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise GenerationCancelled("Report generation cancelled by caller")


__all__ = ["AttemptLedger", "GenerationTransport", "ReportGenerationClient", "SamplingSettings"]
