"""Core data models shared across repolens components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple, Union

from .prompting.constants import SectionKey


@dataclass(frozen=True)
class RepositorySnapshot:
    """Read-only view of the repository metadata handed to the pipeline."""

    name: str
    description: Optional[str] = None
    stars: int = 0
    forks: int = 0
    open_issues: int = 0
    languages: Mapping[str, int] = field(default_factory=dict)
    topics: Tuple[str, ...] = ()
    license_name: Optional[str] = None
    readme_excerpt: str = ""
    tree_excerpt: str = ""

    def language_shares(self, limit: int | None = None) -> List[Tuple[str, float]]:
        """Return ``(language, percent)`` pairs sorted by byte share, largest first."""
        entries = [(name, max(int(size or 0), 0)) for name, size in self.languages.items()]
        total = sum(size for _, size in entries)
        # Name is a secondary key so equal byte counts render deterministically.
        entries.sort(key=lambda item: (-item[1], item[0]))
        if limit is not None:
            entries = entries[:limit]
        return [(name, (size / total) * 100 if total else 0.0) for name, size in entries]


@dataclass(frozen=True)
class CandidateBackend:
    """A generation model plus the protocol version it was discovered under."""

    model: str
    api_version: Optional[str] = None


@dataclass
class GenerationRequest:
    """Prompt and sampling parameters for a single generation call."""

    prompt: str
    language: str = "en"
    system_instruction: Optional[str] = None
    temperature: float = 0.7
    top_p: float = 0.95
    top_k: int = 40
    max_output_tokens: int = 8192


@dataclass
class GenerationResponse:
    """Raw backend answer: free-form text plus its completion status."""

    text: Optional[str]
    finish_reason: Optional[str] = None

    @property
    def truncated(self) -> bool:
        return (self.finish_reason or "").upper() == "MAX_TOKENS"


@dataclass
class GenerationResult:
    """Canonical document returned by the generation client."""

    document: str
    score: int
    candidate: CandidateBackend
    api_version: str
    complete: bool
    attempts: int = 1


class BodyShape(str, Enum):
    """How a section body should be rendered."""

    DEFINITION_LIST = "definition_list"
    BULLET_LIST = "bullet_list"
    PARAGRAPHS = "paragraphs"


@dataclass
class RenderBlock:
    """A single renderable unit inside a section body."""

    kind: str
    text: str
    label: Optional[str] = None


@dataclass
class RenderSection:
    """Presentation-side section derived from the final report text."""

    key: Union[SectionKey, str]
    title: str
    content: str
    shape: BodyShape = BodyShape.PARAGRAPHS
    blocks: List[RenderBlock] = field(default_factory=list)

    @property
    def recognized(self) -> bool:
        return isinstance(self.key, SectionKey)

    def to_dict(self) -> Dict[str, object]:
        return {
            "key": str(self.key),
            "title": self.title,
            "recognized": self.recognized,
            "content": self.content,
            "shape": self.shape.value,
            "blocks": [
                {"kind": block.kind, "label": block.label, "text": block.text}
                for block in self.blocks
            ],
        }


@dataclass
class AnalysisOutcome:
    """Caller-visible result of one analysis request."""

    analysis: str
    fallback: bool
    score: int
    reason: Optional[str] = None
    model: Optional[str] = None
    snapshot: Optional[RepositorySnapshot] = None
