"""Post-processing helpers that repair generated report structure."""

from .canonicalizer import HeaderCanonicalizer, canonicalize
from .headers import HeaderClassifier, normalize_label, parse_header_line

__all__ = [
    "HeaderCanonicalizer",
    "HeaderClassifier",
    "canonicalize",
    "normalize_label",
    "parse_header_line",
]
