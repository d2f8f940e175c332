"""Shared constants for report sections, prompting and fallbacks."""

from __future__ import annotations

from enum import Enum


class SectionKey(str, Enum):
    """Canonical identifiers of the six report sections, in render order."""

    ARCHITECTURAL_SUMMARY = "ARCHITECTURAL_SUMMARY"
    STACK = "STACK"
    STRENGTHS = "STRENGTHS"
    WEAKNESSES = "WEAKNESSES"
    IMPROVEMENT_SUGGESTIONS = "IMPROVEMENT_SUGGESTIONS"
    BEGINNER_TASKS = "BEGINNER_TASKS"

    def __str__(self) -> str:
        return self.value

    @property
    def header(self) -> str:
        return f"## {self.value}"


SECTION_ORDER: tuple[SectionKey, ...] = tuple(SectionKey)

SUPPORTED_LANGUAGES: tuple[str, ...] = ("en", "pt")
DEFAULT_LANGUAGE = "en"

# Aliases are stored in normalized form (see postproc.headers.normalize_label).
# Order matters: matchers scan keys in SECTION_ORDER and aliases left to right.
SECTION_ALIASES: dict[SectionKey, tuple[str, ...]] = {
    SectionKey.ARCHITECTURAL_SUMMARY: (
        "architectural_summary",
        "resumo_arquitetural",
        "architecture_summary",
        "architecture_overview",
        "architecture",
        "arquitetura",
        "arquitetural",
        "resumo",
        "summary",
        "overview",
        "visao_geral",
    ),
    SectionKey.STACK: (
        "stack",
        "tech_stack",
        "technology_stack",
        "stack_explanation",
        "explicacao_da_stack",
        "stack_tecnologica",
        "pilha_tecnologica",
        "technologies",
        "tecnologias",
    ),
    SectionKey.STRENGTHS: (
        "strengths",
        "pontos_fortes",
        "pontos_positivos",
        "strong_points",
        "fortes",
        "pros",
    ),
    SectionKey.WEAKNESSES: (
        "weaknesses",
        "pontos_fracos",
        "pontos_negativos",
        "weak_points",
        "fracos",
        "fraquezas",
        "cons",
    ),
    SectionKey.IMPROVEMENT_SUGGESTIONS: (
        "improvement_suggestions",
        "sugestoes_melhoria",
        "sugestoes_de_melhoria",
        "suggestions",
        "sugestoes",
        "improvements",
        "melhorias",
        "recommendations",
        "recomendacoes",
    ),
    SectionKey.BEGINNER_TASKS: (
        "beginner_tasks",
        "tarefas_iniciantes",
        "tarefas_para_iniciantes",
        "good_first_issues",
        "first_tasks",
        "beginner",
        "tarefas",
        "iniciantes",
    ),
}

SECTION_TITLES: dict[str, dict[SectionKey, str]] = {
    "en": {
        SectionKey.ARCHITECTURAL_SUMMARY: "Architectural Summary",
        SectionKey.STACK: "Stack Explanation",
        SectionKey.STRENGTHS: "Strengths",
        SectionKey.WEAKNESSES: "Weaknesses",
        SectionKey.IMPROVEMENT_SUGGESTIONS: "Improvement Suggestions",
        SectionKey.BEGINNER_TASKS: "Beginner Tasks",
    },
    "pt": {
        SectionKey.ARCHITECTURAL_SUMMARY: "Resumo Arquitetural",
        SectionKey.STACK: "Explicação da Stack",
        SectionKey.STRENGTHS: "Pontos Fortes",
        SectionKey.WEAKNESSES: "Pontos Fracos",
        SectionKey.IMPROVEMENT_SUGGESTIONS: "Sugestões de Melhoria",
        SectionKey.BEGINNER_TASKS: "Tarefas para Iniciantes",
    },
}


def resolve_language(language: str | None) -> str:
    """Map a language tag such as ``pt-BR`` onto a supported report language."""
    if not language:
        return DEFAULT_LANGUAGE
    primary = language.strip().lower().replace("_", "-").split("-", 1)[0]
    return primary if primary in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


def section_title(key: SectionKey, language: str | None = None) -> str:
    return SECTION_TITLES[resolve_language(language)][key]


__all__ = [
    "DEFAULT_LANGUAGE",
    "SECTION_ALIASES",
    "SECTION_ORDER",
    "SECTION_TITLES",
    "SUPPORTED_LANGUAGES",
    "SectionKey",
    "resolve_language",
    "section_title",
]
