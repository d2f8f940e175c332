"""Pipeline orchestration: fetch metadata, generate a report, fall back if needed."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from .config import RepoLensConfig, load_config
from .failsafe import synthesize
from .llm.client import ReportGenerationClient, SamplingSettings
from .llm.errors import (
    BackendError,
    BackendExhaustedError,
    BlockingBackendError,
    ConfigurationError,
    ModelUnavailableError,
)
from .llm.gemini import GeminiTransport
from .llm.resolver import BackendCandidateResolver
from .logging import get_logger
from .metadata.github import GitHubMetadataProvider
from .models import AnalysisOutcome, RepositorySnapshot
from .prompting.builder import PromptBuilder
from .prompting.constants import resolve_language
from .validators.completeness import score

# Errors that leave the repository metadata usable for a fallback report.
_FALLBACK_ERRORS = (
    ConfigurationError,
    BlockingBackendError,
    BackendExhaustedError,
    ModelUnavailableError,
)


class AnalysisOrchestrator:
    """Coordinates one repository analysis from URL to final report text."""

    def __init__(
        self,
        provider: GitHubMetadataProvider,
        client: ReportGenerationClient,
        *,
        prompt_builder: PromptBuilder | None = None,
        language: str | None = None,
    ) -> None:
        self.provider = provider
        self.client = client
        self.prompt_builder = prompt_builder or client.prompt_builder
        self.language = resolve_language(language)
        self.logger = get_logger("orchestrator")

    def run(
        self,
        repo_url: str,
        language: str | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> AnalysisOutcome:
        """Analyze ``repo_url`` and return the report, degraded to fallback on backend failure.

        Metadata errors propagate unchanged since no report can be built
        without a snapshot. Cancellation propagates as ``GenerationCancelled``.
        """
        lang = resolve_language(language or self.language)
        snapshot = self.provider.fetch(repo_url)
        prompt = self.prompt_builder.build(snapshot, lang)

        try:
            result = self.client.generate(snapshot, prompt, lang, cancel_event=cancel_event)
        except _FALLBACK_ERRORS as exc:
            return self._fallback(snapshot, exc, lang)

        return AnalysisOutcome(
            analysis=result.document,
            fallback=False,
            score=result.score,
            reason=None if result.complete else "PARTIAL",
            model=result.candidate.model,
            snapshot=snapshot,
        )

    def _fallback(
        self, snapshot: RepositorySnapshot, exc: BackendError, language: str
    ) -> AnalysisOutcome:
        reason = exc.reason
        self._log_exception(f"Generation failed for {snapshot.name}; using fallback report", exc)
        analysis = synthesize(snapshot, reason, language)
        return AnalysisOutcome(
            analysis=analysis,
            fallback=True,
            score=score(analysis),
            reason=reason,
            model=None,
            snapshot=snapshot,
        )

    def _log_exception(self, message: str, exc: Exception) -> None:
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.warning("%s: %s", message, exc, exc_info=exc)
        else:
            self.logger.warning("%s: %s", message, exc)


def build_orchestrator(config: RepoLensConfig | None = None) -> AnalysisOrchestrator:
    """Wire the GitHub provider and Gemini client from configuration."""
    config = config or load_config()
    gemini = config.gemini
    transport = GeminiTransport(
        gemini.api_key,
        base_url=gemini.base_url,
        request_timeout=gemini.request_timeout,
    )
    resolver = BackendCandidateResolver(
        transport,
        preferred_model=gemini.model,
        api_versions=gemini.api_versions,
        fallback_models=gemini.fallback_models,
    )
    client = ReportGenerationClient(
        transport,
        resolver,
        api_versions=gemini.api_versions,
        policy=config.policy.to_policy(),
        sampling=SamplingSettings(
            temperature=gemini.temperature,
            top_p=gemini.top_p,
            top_k=gemini.top_k,
            max_output_tokens=gemini.max_output_tokens,
        ),
    )
    provider = GitHubMetadataProvider(
        config.github.token,
        base_url=config.github.base_url,
        request_timeout=config.github.request_timeout,
        readme_limit=config.github.readme_limit,
        tree_limit=config.github.tree_limit,
    )
    return AnalysisOrchestrator(provider, client, language=config.language)


def load_orchestrator(config_path: Optional[Path] = None) -> AnalysisOrchestrator:
    return build_orchestrator(load_config(config_path))


__all__ = ["AnalysisOrchestrator", "build_orchestrator", "load_orchestrator"]
