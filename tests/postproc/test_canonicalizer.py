"""Tests for report header canonicalization."""

from __future__ import annotations

import pytest

from repolens.postproc.canonicalizer import HeaderCanonicalizer, canonicalize
from repolens.prompting.constants import SectionKey
from repolens.validators.completeness import present_keys, score
from tests._fixtures.fakes import document

LOOSE_HEADERS = [
    "### 1. Resumo Arquitetural",
    "**Stack Tecnológica:**",
    "## Strengths",
    "#### Weaknesses:",
    "2) Sugestões de Melhoria",
    "## Beginner Tasks",
]


@pytest.mark.parametrize("count", range(len(LOOSE_HEADERS) + 1))
def test_score_of_canonicalized_document_counts_distinct_headers(count: int) -> None:
    raw = "Intro paragraph.\n" + document(*LOOSE_HEADERS[:count])

    assert score(canonicalize(raw)) == count


@pytest.mark.parametrize(
    "raw",
    [
        document(*LOOSE_HEADERS),
        "Preamble\n---\n" + document("## STACK", "**Stack**", "## Pontos Fracos"),
        "nothing recognizable here\n\n- just bullets",
        "",
    ],
)
def test_canonicalize_is_idempotent(raw: str) -> None:
    once = canonicalize(raw)
    assert canonicalize(once) == once


def test_portuguese_bold_and_numbered_headers_keep_encounter_order() -> None:
    raw = "\n".join(
        [
            "### 1. Resumo Arquitetural",
            "Projeto em camadas.",
            "**Pontos Fortes**",
            "- Boa cobertura de testes",
            "## STACK",
            "- Python",
        ]
    )

    result = canonicalize(raw)

    assert result == "\n".join(
        [
            "## ARCHITECTURAL_SUMMARY",
            "Projeto em camadas.",
            "## STRENGTHS",
            "- Boa cobertura de testes",
            "## STACK",
            "- Python",
        ]
    )
    headers = [line for line in result.splitlines() if line.startswith("## ")]
    assert headers == ["## ARCHITECTURAL_SUMMARY", "## STRENGTHS", "## STACK"]


def test_preamble_is_dropped() -> None:
    raw = "Sure! Here is the analysis you asked for.\n\n## STACK\n- FastAPI"
    assert canonicalize(raw) == "## STACK\n- FastAPI"


def test_duplicate_key_is_demoted_to_content() -> None:
    raw = "## STACK\n- FastAPI\n## Tech Stack\n- Uvicorn"

    result = canonicalize(raw)

    assert result == "## STACK\n- FastAPI\n## Tech Stack\n- Uvicorn"
    assert score(result) == 1


def test_separator_lines_are_removed() -> None:
    raw = "## Strengths\n---\n- Small codebase\n-----"
    assert canonicalize(raw) == "## STRENGTHS\n- Small codebase"


def test_text_without_headers_is_returned_verbatim() -> None:
    raw = "The model rambled.\n\nNo sections at all.  \n"
    assert canonicalize(raw) == raw
    assert score(canonicalize(raw)) == 0


def test_prose_mentioning_section_words_is_not_a_header() -> None:
    raw = "## Strengths\nThe stack is small.\n1. Tasks are easy to pick up"

    result = HeaderCanonicalizer().canonicalize(raw)

    assert present_keys(result) == [SectionKey.STRENGTHS]
    assert "The stack is small." in result


def test_inline_heading_content_is_kept_under_the_canonical_header() -> None:
    raw = "## Stack: Python 3.11, FastAPI\n- Uvicorn\n## **Strengths:** small surface"

    result = canonicalize(raw)

    assert result == "## STACK\nPython 3.11, FastAPI\n- Uvicorn\n## STRENGTHS\nsmall surface"
    assert canonicalize(result) == result
