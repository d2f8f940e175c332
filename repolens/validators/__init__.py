"""Validation package for generated report outputs."""

from .completeness import CompletenessPolicy, missing_keys, present_keys, score

__all__ = [
    "CompletenessPolicy",
    "missing_keys",
    "present_keys",
    "score",
]
