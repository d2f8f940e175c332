"""Presentation-side parsing of final report text."""

from .parser import PresentationSectionParser, classify_shape, parse

__all__ = ["PresentationSectionParser", "classify_shape", "parse"]
