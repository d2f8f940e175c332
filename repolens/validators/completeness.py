"""Structural completeness scoring for canonical reports."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

from ..prompting.constants import SECTION_ORDER, SectionKey

_HEADER_PATTERNS = {
    key: re.compile(rf"^## {re.escape(key.value)}[ \t]*$", re.MULTILINE) for key in SECTION_ORDER
}


def present_keys(document: str | None) -> List[SectionKey]:
    """Return the canonical keys whose ``## KEY`` header appears in the document."""
    if not document:
        return []
    return [key for key in SECTION_ORDER if _HEADER_PATTERNS[key].search(document)]


def missing_keys(document: str | None) -> List[SectionKey]:
    found = set(present_keys(document))
    return [key for key in SECTION_ORDER if key not in found]


def score(document: str | None) -> int:
    """Count distinct canonical headers; duplicates count once."""
    return len(present_keys(document))


@dataclass(frozen=True)
class CompletenessPolicy:
    """Acceptance thresholds applied by the generation client.

    ``accept_threshold`` is the score at which a non-truncated document ends
    the candidate loop; ``partial_floor`` is the lowest score still returned
    once every candidate is exhausted.
    """

    accept_threshold: int = 3
    partial_floor: int = 1

    def __post_init__(self) -> None:
        total = len(SECTION_ORDER)
        if not 0 <= self.partial_floor <= total or not 0 <= self.accept_threshold <= total:
            raise ValueError(f"Completeness thresholds must lie between 0 and {total}")

    def accepts(self, value: int, *, truncated: bool = False) -> bool:
        return value >= self.accept_threshold and not truncated

    def retains(self, value: int) -> bool:
        return value >= max(self.partial_floor, 1)


__all__ = ["CompletenessPolicy", "missing_keys", "present_keys", "score"]
