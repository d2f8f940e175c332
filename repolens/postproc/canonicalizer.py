"""Rewrites loosely structured report headers into canonical ``## KEY`` form."""

from __future__ import annotations

from typing import List, Set

from ..prompting.constants import SectionKey
from .headers import HeaderClassifier, is_separator, parse_header_line


class HeaderCanonicalizer:
    """Normalizes generated reports so every section header is ``## <SectionKey>``.

    Content before the first recognized header is dropped, each key is emitted
    at most once and later duplicates stay in place as plain content of the
    current section. When nothing is recognized the input is returned verbatim.
    """

    def __init__(self, classifier: HeaderClassifier | None = None) -> None:
        self.classifier = classifier or HeaderClassifier()

    def canonicalize(self, raw_text: str | None) -> str:
        if not raw_text:
            return raw_text or ""

        output: List[str] = []
        used: Set[SectionKey] = set()
        for line in raw_text.splitlines():
            if is_separator(line):
                continue
            header = parse_header_line(line)
            key = self.classifier.classify(header) if header is not None else None
            if key is not None and key not in used:
                used.add(key)
                output.append(key.header)
                if header.inline:
                    output.append(header.inline)
                continue
            if not used:
                continue
            output.append(line)

        if not used:
            return raw_text
        return "\n".join(output).strip()


_DEFAULT = HeaderCanonicalizer()


def canonicalize(raw_text: str | None) -> str:
    """Module-level shortcut using the default matcher chain."""
    return _DEFAULT.canonicalize(raw_text)


__all__ = ["HeaderCanonicalizer", "canonicalize"]
