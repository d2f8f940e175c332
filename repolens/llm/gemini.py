"""HTTP transport for the Gemini generative-language API."""

from __future__ import annotations

import http.client
import json
import os
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from ..logging import get_logger
from ..models import GenerationRequest, GenerationResponse
from .errors import (
    AuthorizationError,
    BackendError,
    MalformedRequestError,
    ModelUnavailableError,
    QuotaExceededError,
    ServiceUnavailableError,
)

_AUTO_API_KEY = object()

logger = get_logger("llm.gemini")


class GeminiTransport:
    """Issues model-listing and generateContent calls against one API key."""

    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"
    ENV_API_KEY_KEYS = ("GEMINI_API_KEY", "OPENAI_API_KEY")
    GENERATION_METHOD = "generateContent"
    # systemInstruction is rejected by the stable v1 surface.
    SYSTEM_INSTRUCTION_VERSIONS = frozenset({"v1beta"})

    def __init__(
        self,
        api_key: str | None | object = _AUTO_API_KEY,
        *,
        base_url: str | None = None,
        request_timeout: Optional[float] = 25.0,
    ) -> None:
        self.api_key = self._resolve_api_key(api_key)
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.request_timeout = request_timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def list_models(self, api_version: str) -> List[str]:
        """Return model identifiers under ``api_version`` that support generation."""
        url = f"{self.base_url}/{api_version}/models?pageSize=1000"
        payload = self._request_json(url)
        models = payload.get("models")
        if not isinstance(models, list):
            return []
        names: List[str] = []
        for entry in models:
            if not isinstance(entry, dict):
                continue
            methods = entry.get("supportedGenerationMethods")
            if not isinstance(methods, list) or self.GENERATION_METHOD not in methods:
                continue
            name = str(entry.get("name") or "")
            if name.startswith("models/"):
                name = name[len("models/"):]
            if name:
                names.append(name)
        return names

    def generate(
        self,
        model: str,
        api_version: str,
        request: GenerationRequest,
    ) -> GenerationResponse:
        """Send exactly one generateContent call for ``model`` under ``api_version``."""
        url = (
            f"{self.base_url}/{api_version}/models/"
            f"{quote(model, safe='-._~')}:{self.GENERATION_METHOD}"
        )
        body = self._build_payload(request, api_version)
        try:
            payload = self._request_json(url, body)
        except _InvalidJSON:
            logger.warning("Gemini returned a non-JSON body for model=%s (%s)", model, api_version)
            return GenerationResponse(text=None)
        text, finish_reason = self._extract_content(payload)
        return GenerationResponse(text=text or None, finish_reason=finish_reason)

    def _build_payload(self, request: GenerationRequest, api_version: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
            "generationConfig": {
                "temperature": request.temperature,
                "topP": request.top_p,
                "topK": request.top_k,
                "maxOutputTokens": request.max_output_tokens,
            },
        }
        if request.system_instruction and api_version in self.SYSTEM_INSTRUCTION_VERSIONS:
            payload["systemInstruction"] = {"parts": [{"text": request.system_instruction}]}
        return payload

    def _request_json(self, url: str, body: Mapping[str, Any] | None = None) -> Dict[str, Any]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-goog-api-key"] = self.api_key
        data = None
        method = "GET"
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"
            method = "POST"

        http_request = Request(url, data=data, headers=headers, method=method)
        timeout = self.request_timeout or 25.0
        try:
            with urlopen(http_request, timeout=timeout) as response:  # type: ignore[arg-type]
                raw = response.read()
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore") if hasattr(exc, "read") else ""
            raise self.classify_http_error(exc.code, detail) from exc
        except TimeoutError as exc:
            raise ModelUnavailableError(
                f"Gemini request timed out after {timeout:g}s", reason="TIMEOUT"
            ) from exc
        except URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                raise ModelUnavailableError(
                    f"Gemini request timed out after {timeout:g}s", reason="TIMEOUT"
                ) from exc
            raise ServiceUnavailableError(
                f"Gemini endpoint unreachable: {exc.reason}", reason="UNREACHABLE"
            ) from exc
        except (OSError, http.client.HTTPException) as exc:
            raise ServiceUnavailableError(
                f"Gemini connection failed: {exc!r}", reason="UNREACHABLE"
            ) from exc

        try:
            decoded = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise _InvalidJSON("Gemini returned invalid JSON") from exc
        if not isinstance(decoded, dict):
            raise _InvalidJSON("Gemini returned an unexpected JSON document")
        return decoded

    @staticmethod
    def classify_http_error(status: int, detail: str) -> BackendError:
        """Map an HTTP failure onto the backend error taxonomy."""
        error: Dict[str, Any] = {}
        try:
            parsed = json.loads(detail) if detail else {}
        except json.JSONDecodeError:
            parsed = {}
        if isinstance(parsed, dict) and isinstance(parsed.get("error"), dict):
            error = parsed["error"]

        message = str(error.get("message") or detail.strip() or f"HTTP {status}")
        upstream_status = error.get("status") if isinstance(error.get("status"), str) else None
        code = error.get("code")
        lowered = message.lower()
        kwargs = {"status": status, "reason": upstream_status}
        text = f"Gemini request failed with status {status}: {message}"

        if status == 404 or code == 404 or "not found" in lowered or "not supported" in lowered:
            return ModelUnavailableError(text, **kwargs)
        if status == 429 or upstream_status == "RESOURCE_EXHAUSTED" or "quota" in lowered:
            return QuotaExceededError(text, **kwargs)
        if (
            status in (401, 403)
            or upstream_status in ("UNAUTHENTICATED", "PERMISSION_DENIED")
            or "api key" in lowered
        ):
            return AuthorizationError(text, **kwargs)
        if status >= 500:
            return ServiceUnavailableError(text, **kwargs)
        return MalformedRequestError(text, **kwargs)

    @staticmethod
    def _extract_content(payload: Mapping[str, Any]) -> Tuple[str, Optional[str]]:
        candidates = payload.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return "", None
        first = candidates[0]
        if not isinstance(first, dict):
            return "", None
        finish_reason = first.get("finishReason")
        content = first.get("content")
        parts: Sequence[Any] = ()
        if isinstance(content, dict) and isinstance(content.get("parts"), list):
            parts = content["parts"]
        texts = [
            part.get("text") or ""
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text", ""), str)
        ]
        return "\n".join(texts).strip(), finish_reason if isinstance(finish_reason, str) else None

    @classmethod
    def _resolve_api_key(cls, api_key: str | None | object) -> str | None:
        if api_key is _AUTO_API_KEY:
            for key in cls.ENV_API_KEY_KEYS:
                value = (os.getenv(key) or "").strip()
                if value:
                    return value
            return None
        if api_key is None:
            return None
        return str(api_key).strip() or None


class _InvalidJSON(RuntimeError):
    pass


__all__ = ["GeminiTransport"]
