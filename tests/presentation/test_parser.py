"""Tests for the presentation section parser."""

from __future__ import annotations

from repolens.models import BodyShape
from repolens.presentation.parser import PresentationSectionParser, classify_shape, parse
from repolens.prompting.constants import SectionKey


def test_text_without_headers_becomes_single_first_section() -> None:
    text = "\n  The model answered in free prose.\nNo headings anywhere.  \n\n"

    sections = parse(text)

    assert len(sections) == 1
    assert sections[0].key is SectionKey.ARCHITECTURAL_SUMMARY
    assert sections[0].content == text.strip()


def test_blank_input_has_no_sections() -> None:
    assert parse("") == []
    assert parse("   \n") == []


def test_canonical_report_is_split_with_localized_titles() -> None:
    text = "## ARCHITECTURAL_SUMMARY\nLayered service.\n\n## STACK\n- FastAPI\n- Uvicorn"

    sections = PresentationSectionParser(language="pt").parse(text)

    assert [section.key for section in sections] == [SectionKey.ARCHITECTURAL_SUMMARY, SectionKey.STACK]
    assert [section.title for section in sections] == ["Resumo Arquitetural", "Explicação da Stack"]
    assert sections[1].content == "- FastAPI\n- Uvicorn"


def test_raw_headers_are_detected_without_canonicalization() -> None:
    text = "\n".join(
        [
            "Preamble text",
            "### 1. Pontos Fortes",
            "- Clear modules",
            "---",
            "**Weaknesses:**",
            "- Few tests",
            "## Deployment Notes",
            "Runs on Fly.io",
        ]
    )

    sections = parse(text)

    assert [str(section.key) for section in sections] == ["STRENGTHS", "WEAKNESSES", "DEPLOYMENT_NOTES"]
    assert sections[0].content == "- Clear modules"
    assert sections[2].title == "Deployment Notes"
    assert sections[2].recognized is False


def test_empty_sections_are_dropped() -> None:
    sections = parse("## STACK\n\n## STRENGTHS\n- Fast")
    assert [section.key for section in sections] == [SectionKey.STRENGTHS]


def test_definition_list_needs_two_label_lines() -> None:
    content = "**Frontend**: React\n**Backend**: FastAPI\nplain remark"
    assert classify_shape(content) is BodyShape.DEFINITION_LIST
    assert classify_shape("**Frontend**: React\nplain remark") is BodyShape.PARAGRAPHS


def test_bullet_list_threshold_is_forty_percent() -> None:
    assert classify_shape("- one\n- two\nthree\nfour\nfive") is BodyShape.BULLET_LIST
    assert classify_shape("- one\ntwo\nthree\nfour\nfive") is BodyShape.PARAGRAPHS


def test_blocks_follow_body_shape() -> None:
    text = "## STACK\n**Frontend**: React\n**Backend**: FastAPI\n  with Pydantic\n## STRENGTHS\nIntro\n- Fast\n- Small"

    stack, strengths = parse(text)

    assert [(block.kind, block.label, block.text) for block in stack.blocks] == [
        ("definition", "Frontend", "React"),
        ("definition", "Backend", "FastAPI with Pydantic"),
    ]
    assert strengths.shape is BodyShape.BULLET_LIST
    assert [(block.kind, block.text) for block in strengths.blocks] == [
        ("paragraph", "Intro"),
        ("item", "Fast"),
        ("item", "Small"),
    ]


def test_to_dict_is_json_friendly() -> None:
    (section,) = parse("## STACK\n- FastAPI")

    assert section.to_dict() == {
        "key": "STACK",
        "title": "Stack Explanation",
        "recognized": True,
        "content": "- FastAPI",
        "shape": "bullet_list",
        "blocks": [{"kind": "item", "label": None, "text": "FastAPI"}],
    }


def test_headers_without_bodies_fall_back_to_whole_text() -> None:
    text = "The model wrote an intro paragraph.\n## Notes"

    sections = parse(text)

    assert len(sections) == 1
    assert sections[0].key is SectionKey.ARCHITECTURAL_SUMMARY
    assert sections[0].content == text


def test_inline_heading_content_opens_the_section_body() -> None:
    sections = parse("## Stack: Python 3.11, FastAPI\n- Uvicorn\n## Notes: ships weekly")

    assert [str(section.key) for section in sections] == ["STACK", "NOTES"]
    assert sections[0].content == "Python 3.11, FastAPI\n- Uvicorn"
    assert sections[1].title == "Notes"
    assert sections[1].content == "ships weekly"
