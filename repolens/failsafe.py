"""Deterministic fallback reports for when no generation backend is usable."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from jinja2 import Environment, FileSystemLoader, TemplateError

from .logging import get_logger
from .models import RepositorySnapshot
from .prompting.constants import SECTION_ORDER, resolve_language

TOP_LANGUAGES = 5
_TEMPLATES_DIR = Path(__file__).with_name("templates")
_UNKNOWN_REASON = {"en": "unknown error", "pt": "erro desconhecido"}

logger = get_logger("failsafe")


def _create_env(templates_dir: Path = _TEMPLATES_DIR) -> Environment:
    return Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )


_ENV = _create_env()


def synthesize(
    snapshot: RepositorySnapshot,
    reason: str | None,
    language: str | None = None,
) -> str:
    """Return a canonical six-section report built only from repository metadata.

    The output depends only on the arguments, so identical inputs always give
    byte-identical reports.
    """
    lang = resolve_language(language)
    context = _build_context(snapshot, reason, lang)
    try:
        template = _ENV.get_template(f"fallback/{lang}.md.j2")
        rendered = template.render(**context)
    except TemplateError as exc:  # pragma: no cover - packaging guard
        logger.warning("Fallback template unavailable (%s); using plain rendering", exc)
        rendered = _render_plain(context)
    return rendered.strip()


def _build_context(snapshot: RepositorySnapshot, reason: str | None, lang: str) -> Dict[str, object]:
    return {
        "headers": {key.name: key.header for key in SECTION_ORDER},
        "name": snapshot.name or ("repositório" if lang == "pt" else "repository"),
        "description": _collapse(snapshot.description or ""),
        "stars": snapshot.stars,
        "forks": snapshot.forks,
        "open_issues": snapshot.open_issues,
        "languages": format_language_summary(snapshot),
        "topics": ", ".join(topic for topic in snapshot.topics if topic),
        "license": snapshot.license_name or "",
        "has_readme": bool(snapshot.readme_excerpt.strip()),
        "reason": _format_reason(reason) or _UNKNOWN_REASON[lang],
    }


def format_language_summary(snapshot: RepositorySnapshot, limit: int = TOP_LANGUAGES) -> str:
    """``Python (72.4%), Shell (27.6%)`` for the top languages by byte share."""
    return ", ".join(
        f"{name} ({percent:.1f}%)" for name, percent in snapshot.language_shares(limit=limit)
    )


def _render_plain(context: Dict[str, object]) -> str:
    lines: List[str] = []
    for key in SECTION_ORDER:
        lines.append(key.header)
        lines.append(f"- {context['name']}: {context['reason']}")
        lines.append("")
    return "\n".join(lines)


def _collapse(text: str) -> str:
    return " ".join(text.split())


def _format_reason(reason: str | None) -> str | None:
    if not reason:
        return None
    cleaned = _collapse(str(reason))
    if not cleaned:
        return None
    return cleaned[:200] + ("…" if len(cleaned) > 200 else "")


__all__ = ["format_language_summary", "synthesize"]
