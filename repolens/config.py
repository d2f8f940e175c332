"""Configuration loading for repolens (.repolens.yml plus environment overrides)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml
from dotenv import dotenv_values

from .llm.resolver import DEFAULT_API_VERSIONS, DEFAULT_FALLBACK_MODELS
from .prompting.constants import DEFAULT_LANGUAGE, resolve_language
from .validators.completeness import CompletenessPolicy

CONFIG_FILENAME = ".repolens.yml"
ENV_FILENAME = ".env"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class GeminiConfig:
    """Generation backend settings."""

    api_key: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    api_versions: List[str] = field(default_factory=lambda: list(DEFAULT_API_VERSIONS))
    fallback_models: List[str] = field(default_factory=lambda: list(DEFAULT_FALLBACK_MODELS))
    request_timeout: float = 25.0
    temperature: float = 0.7
    top_p: float = 0.95
    top_k: int = 40
    max_output_tokens: int = 8192


@dataclass
class GitHubConfig:
    """Repository metadata provider settings."""

    token: Optional[str] = None
    base_url: Optional[str] = None
    request_timeout: float = 20.0
    readme_limit: int = 12000
    tree_limit: int = 120


@dataclass
class PolicyConfig:
    """Completeness thresholds for accepting generated reports."""

    accept_threshold: int = 3
    partial_floor: int = 1

    def to_policy(self) -> CompletenessPolicy:
        return CompletenessPolicy(
            accept_threshold=self.accept_threshold,
            partial_floor=self.partial_floor,
        )


@dataclass
class ServiceConfig:
    """HTTP service settings."""

    cors_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass
class RepoLensConfig:
    """Represents the settings defined in .repolens.yml after env overrides."""

    root: Path
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)
    language: str = DEFAULT_LANGUAGE


ENV_GEMINI_KEYS = ("GEMINI_API_KEY", "OPENAI_API_KEY")
ENV_MODEL_KEYS = ("GEMINI_MODEL",)
ENV_GITHUB_TOKEN_KEYS = ("GITHUB_TOKEN",)
ENV_TIMEOUT_KEYS = ("REPOLENS_REQUEST_TIMEOUT",)
ENV_LANGUAGE_KEYS = ("REPOLENS_LANGUAGE",)
ENV_CORS_KEYS = ("REPOLENS_CORS_ORIGINS",)


def load_config(
    config_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> RepoLensConfig:
    """Load configuration from disk, then apply environment overrides.

    Variables from a ``.env`` file next to the configuration file fill in
    whatever the process environment (or ``environ``) leaves unset.
    """
    config_file = _resolve_config_path(config_path or Path.cwd())
    root = config_file.parent.resolve()
    env = _merge_dotenv(root / ENV_FILENAME, os.environ if environ is None else environ)

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    gemini_data = _as_dict(data.get("gemini"))
    gemini = GeminiConfig()
    if gemini_data:
        gemini.api_key = _as_str(gemini_data.get("api_key"))
        gemini.model = _as_str(gemini_data.get("model"))
        gemini.base_url = _as_str(gemini_data.get("base_url"))
        gemini.api_versions = _as_str_list(gemini_data.get("api_versions")) or gemini.api_versions
        if "fallback_models" in gemini_data:
            gemini.fallback_models = _as_str_list(gemini_data.get("fallback_models"))
        gemini.request_timeout = _as_float(gemini_data.get("request_timeout"), gemini.request_timeout)
        gemini.temperature = _as_float(gemini_data.get("temperature"), gemini.temperature)
        gemini.top_p = _as_float(gemini_data.get("top_p"), gemini.top_p)
        gemini.top_k = _as_int(gemini_data.get("top_k"), gemini.top_k)
        gemini.max_output_tokens = _as_int(gemini_data.get("max_output_tokens"), gemini.max_output_tokens)

    github_data = _as_dict(data.get("github"))
    github = GitHubConfig()
    if github_data:
        github.token = _as_str(github_data.get("token"))
        github.base_url = _as_str(github_data.get("base_url"))
        github.request_timeout = _as_float(github_data.get("request_timeout"), github.request_timeout)
        github.readme_limit = _as_int(github_data.get("readme_limit"), github.readme_limit)
        github.tree_limit = _as_int(github_data.get("tree_limit"), github.tree_limit)

    policy_data = _as_dict(data.get("policy"))
    policy = PolicyConfig()
    if policy_data:
        policy.accept_threshold = _as_int(policy_data.get("accept_threshold"), policy.accept_threshold)
        policy.partial_floor = _as_int(policy_data.get("partial_floor"), policy.partial_floor)
    service_data = _as_dict(data.get("service"))
    service = ServiceConfig()
    if "cors_origins" in service_data:
        service.cors_origins = _as_str_list(service_data.get("cors_origins"))

    try:
        policy.to_policy()
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    config = RepoLensConfig(
        root=root,
        gemini=gemini,
        github=github,
        policy=policy,
        service=service,
        language=resolve_language(_as_str(data.get("language"))),
    )
    _apply_env_overrides(config, env)
    return config


def _apply_env_overrides(config: RepoLensConfig, env: Mapping[str, str]) -> None:
    api_key = _first_env_value(env, ENV_GEMINI_KEYS)
    if api_key:
        config.gemini.api_key = api_key
    model = _first_env_value(env, ENV_MODEL_KEYS)
    if model:
        config.gemini.model = model
    token = _first_env_value(env, ENV_GITHUB_TOKEN_KEYS)
    if token:
        config.github.token = token
    timeout = _first_env_value(env, ENV_TIMEOUT_KEYS)
    if timeout:
        value = _as_float(timeout, config.gemini.request_timeout)
        config.gemini.request_timeout = value
        config.github.request_timeout = value
    language = _first_env_value(env, ENV_LANGUAGE_KEYS)
    if language:
        config.language = resolve_language(language)
    origins = _first_env_value(env, ENV_CORS_KEYS)
    if origins:
        config.service.cors_origins = [origin.strip() for origin in origins.split(",") if origin.strip()]


def _merge_dotenv(path: Path, env: Mapping[str, str]) -> Mapping[str, str]:
    if not path.is_file():
        return env
    merged = {key: value for key, value in dotenv_values(path).items() if value is not None}
    merged.update(env)
    return merged


def _first_env_value(env: Mapping[str, str], keys: Sequence[str]) -> Optional[str]:
    for key in keys:
        value = (env.get(key) or "").strip()
        if value:
            return value
    return None


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None
    text = str(value).strip()
    return text or None


def _as_float(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return default
    return default


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return default
    return default


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float)) and str(item).strip()]
    return []
