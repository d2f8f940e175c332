"""Generation backend adapters and the resilient report client."""

from .client import AttemptLedger, ReportGenerationClient, SamplingSettings
from .gemini import GeminiTransport
from .resolver import BackendCandidateResolver

__all__ = [
    "AttemptLedger",
    "BackendCandidateResolver",
    "GeminiTransport",
    "ReportGenerationClient",
    "SamplingSettings",
]
