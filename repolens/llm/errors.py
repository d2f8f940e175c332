"""Error taxonomy for generation backends."""

from __future__ import annotations

from typing import Optional


class BackendError(RuntimeError):
    """Base class for generation backend failures.

    ``status`` is the HTTP status when one was observed. ``reason`` is the
    short code surfaced in fallback reports: the upstream status string
    (``RESOURCE_EXHAUSTED``), else the HTTP status, else the message.
    """

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.reason = reason or (str(status) if status is not None else message)


class ConfigurationError(BackendError):
    """No usable credential is configured. Fatal, never retried."""

    hint = "Set GEMINI_API_KEY and restart the service."


class ModelUnavailableError(BackendError):
    """This model / protocol version pair cannot serve requests; try the next one."""


class BlockingBackendError(BackendError):
    """A failure no other model can fix. Aborts the candidate loop."""


class QuotaExceededError(BlockingBackendError):
    """Rate limit or quota exhausted for the configured key."""


class AuthorizationError(BlockingBackendError):
    """The API key was rejected or lacks permission."""


class MalformedRequestError(BlockingBackendError):
    """The backend refused the request payload."""


class ServiceUnavailableError(BlockingBackendError):
    """The backend failed server-side or could not be reached."""


class BackendExhaustedError(BackendError):
    """Every candidate was tried and none produced a usable document."""


class GenerationCancelled(RuntimeError):
    """The caller cancelled the request; no further attempts are made."""


__all__ = [
    "AuthorizationError",
    "BackendError",
    "BackendExhaustedError",
    "BlockingBackendError",
    "ConfigurationError",
    "GenerationCancelled",
    "MalformedRequestError",
    "ModelUnavailableError",
    "QuotaExceededError",
    "ServiceUnavailableError",
]
