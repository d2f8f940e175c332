"""Splits a final report into renderable sections.

The text handed to this parser may be a canonical report, a fallback report
or raw model output surfaced on another code path, so header detection runs
again here instead of trusting the canonicalizer.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from ..models import BodyShape, RenderBlock, RenderSection
from ..postproc.headers import HeaderClassifier, derive_label, is_separator, parse_header_line
from ..prompting.constants import SECTION_ORDER, SectionKey, resolve_language, section_title

_DEFINITION = re.compile(r"^\*\*([^*]+)\*\*\s*[:：]\s*(.*)$")
_BULLET = re.compile(r"^\s*[-*•]\s")
_BULLET_PREFIX = re.compile(r"^\s*[-*•]\s*")


@dataclass
class _Boundary:
    index: int
    key: Union[SectionKey, str]
    title: str
    inline: str = ""


class PresentationSectionParser:
    """Produces an ordered list of :class:`RenderSection` from report text."""

    DEFINITION_MIN_LINES = 2
    BULLET_RATIO = 0.4

    def __init__(
        self,
        classifier: HeaderClassifier | None = None,
        *,
        language: str | None = None,
    ) -> None:
        self.classifier = classifier or HeaderClassifier()
        self.language = resolve_language(language)

    def parse(self, final_text: str | None) -> List[RenderSection]:
        if not final_text or not final_text.strip():
            return []

        lines = final_text.splitlines()
        boundaries = self._find_boundaries(lines)
        if not boundaries:
            return [self._whole_text_section(final_text)]

        sections: List[RenderSection] = []
        for position, boundary in enumerate(boundaries):
            end = boundaries[position + 1].index if position + 1 < len(boundaries) else len(lines)
            body = [line for line in lines[boundary.index + 1 : end] if not is_separator(line)]
            if boundary.inline:
                body.insert(0, boundary.inline)
            content = "\n".join(body).strip()
            if content:
                sections.append(self._build_section(boundary.key, boundary.title, content))
        # Every section body was empty.
        return sections or [self._whole_text_section(final_text)]

    def _whole_text_section(self, final_text: str) -> RenderSection:
        first = SECTION_ORDER[0]
        return self._build_section(first, section_title(first, self.language), final_text.strip())

    def _find_boundaries(self, lines: Sequence[str]) -> List[_Boundary]:
        boundaries: List[_Boundary] = []
        for index, line in enumerate(lines):
            header = parse_header_line(line)
            if header is None:
                continue
            key = self.classifier.classify(header)
            if key is not None:
                boundaries.append(_Boundary(index, key, section_title(key, self.language), header.inline))
            elif header.depth:
                # Unrecognized markdown headings still delimit sections.
                boundaries.append(_Boundary(index, derive_label(header), header.title, header.inline))
        return boundaries

    def _build_section(self, key: Union[SectionKey, str], title: str, content: str) -> RenderSection:
        shape = classify_shape(content)
        return RenderSection(
            key=key,
            title=title,
            content=content,
            shape=shape,
            blocks=build_blocks(content, shape),
        )


def classify_shape(content: str) -> BodyShape:
    """Pick the rendering shape from line-ratio heuristics."""
    lines = [line for line in content.splitlines() if line.strip()]
    if not lines:
        return BodyShape.PARAGRAPHS
    definitions = [line for line in lines if _DEFINITION.match(line.strip())]
    if len(definitions) >= PresentationSectionParser.DEFINITION_MIN_LINES:
        return BodyShape.DEFINITION_LIST
    bullets = [line for line in lines if _BULLET.match(line)]
    if bullets and len(bullets) >= len(lines) * PresentationSectionParser.BULLET_RATIO:
        return BodyShape.BULLET_LIST
    return BodyShape.PARAGRAPHS


def build_blocks(content: str, shape: BodyShape) -> List[RenderBlock]:
    lines = [line for line in content.splitlines() if line.strip()]
    if shape is BodyShape.DEFINITION_LIST:
        return _definition_blocks(lines)
    if shape is BodyShape.BULLET_LIST:
        return _bullet_blocks(lines)
    return [RenderBlock(kind="paragraph", text=line.strip()) for line in lines]


def _definition_blocks(lines: Sequence[str]) -> List[RenderBlock]:
    blocks: List[RenderBlock] = []
    current: Optional[RenderBlock] = None
    for line in lines:
        match = _DEFINITION.match(line.strip())
        if match:
            if current is not None:
                blocks.append(current)
            current = RenderBlock(kind="definition", label=match.group(1).strip(), text=match.group(2).strip())
        elif current is not None:
            # Continuation line of the previous definition.
            current.text = f"{current.text} {line.strip()}".strip()
        else:
            blocks.append(RenderBlock(kind="paragraph", text=line.strip()))
    if current is not None:
        blocks.append(current)
    return blocks


def _bullet_blocks(lines: Sequence[str]) -> List[RenderBlock]:
    blocks: List[RenderBlock] = []
    seen_item = False
    for line in lines:
        if _BULLET.match(line):
            seen_item = True
            blocks.append(RenderBlock(kind="item", text=_BULLET_PREFIX.sub("", line, count=1).strip()))
        elif not seen_item:
            blocks.append(RenderBlock(kind="paragraph", text=line.strip()))
        else:
            blocks[-1].text = f"{blocks[-1].text} {line.strip()}"
    return blocks


_DEFAULT = PresentationSectionParser()


def parse(final_text: str | None) -> List[RenderSection]:
    """Module-level shortcut using English titles and the default matcher chain."""
    return _DEFAULT.parse(final_text)


__all__ = ["PresentationSectionParser", "build_blocks", "classify_shape", "parse"]
