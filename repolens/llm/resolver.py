"""Builds the ordered list of generation backends to try."""

from __future__ import annotations

from typing import Iterable, List, Optional, Protocol, Sequence

from ..logging import get_logger
from ..models import CandidateBackend

DEFAULT_API_VERSIONS: tuple[str, ...] = ("v1beta", "v1")
DEFAULT_FALLBACK_MODELS: tuple[str, ...] = (
    "gemini-2.0-flash",
    "gemini-2.0-flash-lite",
    "gemini-1.5-flash",
    "gemini-1.5-pro",
)


class ModelLister(Protocol):
    def list_models(self, api_version: str) -> List[str]:
        """Return generation-capable model identifiers for one protocol version."""


class BackendCandidateResolver:
    """Orders candidates as: configured model, discovered models, static fallbacks.

    Discovery queries each protocol version in preference order and stops at
    the first one that lists any generation-capable model. Listing failures
    only shrink the list; :meth:`resolve` never raises.
    """

    def __init__(
        self,
        lister: ModelLister | None,
        *,
        preferred_model: Optional[str] = None,
        api_versions: Sequence[str] = DEFAULT_API_VERSIONS,
        fallback_models: Sequence[str] = DEFAULT_FALLBACK_MODELS,
    ) -> None:
        self.lister = lister
        self.preferred_model = (preferred_model or "").strip() or None
        self.api_versions = tuple(api_versions)
        self.fallback_models = tuple(fallback_models)
        self.logger = get_logger("llm.resolver")

    def resolve(self) -> List[CandidateBackend]:
        ordered: List[CandidateBackend] = []
        if self.preferred_model:
            ordered.append(CandidateBackend(model=self.preferred_model))
        ordered.extend(self.discover())
        ordered.extend(CandidateBackend(model=model) for model in self.fallback_models)
        candidates = self._deduplicate(ordered)
        self.logger.debug(
            "Resolved %d candidate(s): %s",
            len(candidates),
            ", ".join(candidate.model for candidate in candidates),
        )
        return candidates

    def discover(self) -> List[CandidateBackend]:
        if self.lister is None:
            return []
        for api_version in self.api_versions:
            try:
                models = self.lister.list_models(api_version)
            except Exception as exc:
                self.logger.debug("Model listing failed for %s: %s", api_version, exc)
                continue
            if models:
                self.logger.debug("Discovered %d model(s) under %s", len(models), api_version)
                return [CandidateBackend(model=model, api_version=api_version) for model in models]
        return []

    @staticmethod
    def _deduplicate(candidates: Iterable[CandidateBackend]) -> List[CandidateBackend]:
        seen: set[str] = set()
        unique: List[CandidateBackend] = []
        for candidate in candidates:
            model = candidate.model.strip()
            if not model or model in seen:
                continue
            seen.add(model)
            unique.append(candidate)
        return unique


__all__ = [
    "BackendCandidateResolver",
    "DEFAULT_API_VERSIONS",
    "DEFAULT_FALLBACK_MODELS",
    "ModelLister",
]
