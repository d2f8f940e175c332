"""Header detection and classification primitives shared by every report parser.

Generated reports present section boundaries in many shapes: markdown
headings of depth two to four, bold-only lines, numbered prefixes combined
with either, trailing punctuation, accented Portuguese titles. This module
turns one line into a :class:`HeaderLine` (or ``None``) and classifies its
label against :data:`SECTION_ALIASES` with a small chain of matchers.

Two consumers use it with different strictness:

* the canonicalizer treats only classified lines as boundaries;
* the presentation parser additionally splits on unrecognized markdown
  headings, labelling them with a derived key.

Lines without explicit emphasis (no ``#`` heading, no ``**bold**`` wrapper)
are only accepted on an exact alias match, so ordinary prose and numbered
list items that merely mention "stack" or "tasks" never become headers.
"""

from __future__ import annotations

import re
import unicodedata
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Protocol, Sequence, Set, Tuple

from ..prompting.constants import SECTION_ALIASES, SECTION_ORDER, SectionKey

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_SEPARATOR = re.compile(r"^-{3,}$")
_HEADING = re.compile(r"^(#{2,4})(?!#)\s*(.*)$")
_NUMBERING = re.compile(r"^\d{1,2}\s*[.)\-:]\s*")
_BOLD = re.compile(r"^\*\*([^*\n]+)\*\*\s*[:：\-–—]?\s*$")
_TRAILING = re.compile(r"[\s:：\-–—*_#]+$")
_LIST_ITEM = re.compile(r"^(?:[-*+•>|]\s|[-*+•]$)")
_INLINE = re.compile(r"^([^:：]+)[:：]\s*(\S.*)$")

MIN_TOKEN_LENGTH = 3
# Alias tokens too generic to identify a section on their own.
_GENERIC_TOKENS = frozenset(
    {"cons", "pros", "para", "good", "first", "issues", "tech", "visao", "geral", "explanation", "explicacao"}
)


def normalize_label(text: str) -> str:
    """Case-fold, strip diacritics and collapse non-alphanumeric runs to ``_``."""
    decomposed = unicodedata.normalize("NFD", text.casefold())
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return _NON_ALNUM.sub("_", stripped).strip("_")


def is_separator(line: str) -> bool:
    """Return True for horizontal rules made of three or more dashes."""
    return bool(_SEPARATOR.match(line.strip()))


@dataclass(frozen=True)
class HeaderLine:
    """A line that has the shape of a section header."""

    raw: str
    title: str
    label: str
    depth: int = 0
    bold: bool = False
    numbered: bool = False
    inline: str = ""

    @property
    def emphasized(self) -> bool:
        """True when the line carries explicit heading or bold markup."""
        return self.depth > 0 or self.bold


def parse_header_line(line: str) -> Optional[HeaderLine]:
    """Strip heading, numbering and emphasis markup; return None when nothing is left."""
    text = line.strip()
    if not text or _LIST_ITEM.match(text):
        return None

    depth = 0
    heading = _HEADING.match(text)
    if heading:
        depth = len(heading.group(1))
        text = heading.group(2).strip()

    numbered = False
    numbering = _NUMBERING.match(text)
    if numbering:
        numbered = True
        text = text[numbering.end():]

    inline = ""
    if depth:
        # "## Stack: Python, FastAPI" keeps the text after the colon as content.
        split = _INLINE.match(text)
        if split:
            text = split.group(1).strip()
            inline = split.group(2).lstrip("*").strip()
            if text.startswith("**") and not text.endswith("**"):
                text = text.strip("*").strip()

    bold = False
    emphasis = _BOLD.match(text)
    if emphasis:
        bold = True
        text = emphasis.group(1).strip()
        numbering = _NUMBERING.match(text)
        if numbering:
            numbered = True
            text = text[numbering.end():]

    title = _TRAILING.sub("", text).strip()
    label = normalize_label(title)
    if not label:
        return None
    return HeaderLine(
        raw=line,
        title=title,
        label=label,
        depth=depth,
        bold=bold,
        numbered=numbered,
        inline=inline,
    )


def derive_label(header: HeaderLine) -> str:
    """Upper-case key used for headings that match no canonical section."""
    return header.label.upper()


class HeaderMatcher(Protocol):
    """Maps a normalized header label onto a canonical section key."""

    name: str

    def try_match(self, label: str) -> Optional[SectionKey]:
        """Return the matching key or None."""


class _AliasTable:
    def __init__(self, aliases: Mapping[SectionKey, Sequence[str]]) -> None:
        self.entries: Tuple[Tuple[SectionKey, Tuple[str, ...]], ...] = tuple(
            (key, tuple(normalize_label(alias) for alias in aliases.get(key, ())))
            for key in SECTION_ORDER
        )


class ExactAliasMatcher:
    """Label equals one of a key's aliases (or the key itself)."""

    name = "exact"

    def __init__(self, aliases: Mapping[SectionKey, Sequence[str]] = SECTION_ALIASES) -> None:
        self._lookup: Dict[str, SectionKey] = {}
        for key, key_aliases in _AliasTable(aliases).entries:
            for alias in (key.value.lower(), *key_aliases):
                self._lookup.setdefault(alias, key)

    def try_match(self, label: str) -> Optional[SectionKey]:
        return self._lookup.get(label)


class ContainmentMatcher:
    """Label contains an alias, or an alias contains the label, on ``_`` boundaries."""

    name = "containment"

    def __init__(self, aliases: Mapping[SectionKey, Sequence[str]] = SECTION_ALIASES) -> None:
        self._table = _AliasTable(aliases).entries

    def try_match(self, label: str) -> Optional[SectionKey]:
        padded_label = f"_{label}_"
        for key, key_aliases in self._table:
            for alias in key_aliases:
                padded_alias = f"_{alias}_"
                if padded_alias in padded_label or padded_label in padded_alias:
                    return key
        return None


class TokenAffixMatcher:
    """A label token is a prefix or suffix of an alias token (or the reverse).

    Short tokens and tokens shared by several keys (``pontos``, ``points``)
    are skipped, as are the generic words in ``_GENERIC_TOKENS``.
    """

    name = "token"

    def __init__(self, aliases: Mapping[SectionKey, Sequence[str]] = SECTION_ALIASES) -> None:
        table = _AliasTable(aliases).entries
        owners: Dict[str, Set[SectionKey]] = defaultdict(set)
        for key, key_aliases in table:
            for alias in key_aliases:
                for token in alias.split("_"):
                    owners[token].add(key)
        self._tokens: Tuple[Tuple[SectionKey, Tuple[str, ...]], ...] = tuple(
            (
                key,
                tuple(
                    token
                    for alias in key_aliases
                    for token in alias.split("_")
                    if len(token) >= MIN_TOKEN_LENGTH
                    and len(owners[token]) == 1
                    and token not in _GENERIC_TOKENS
                ),
            )
            for key, key_aliases in table
        )

    def try_match(self, label: str) -> Optional[SectionKey]:
        words = [word for word in label.split("_") if len(word) >= MIN_TOKEN_LENGTH]
        if not words:
            return None
        for key, tokens in self._tokens:
            for token in tokens:
                for word in words:
                    if (
                        token.startswith(word)
                        or word.startswith(token)
                        or token.endswith(word)
                        or word.endswith(token)
                    ):
                        return key
        return None


def default_matchers() -> Tuple[HeaderMatcher, ...]:
    return (ExactAliasMatcher(), ContainmentMatcher(), TokenAffixMatcher())


class HeaderClassifier:
    """Runs a header label through an ordered matcher chain."""

    def __init__(self, matchers: Iterable[HeaderMatcher] | None = None) -> None:
        self.matchers: Tuple[HeaderMatcher, ...] = (
            tuple(matchers) if matchers is not None else default_matchers()
        )

    def classify(self, header: HeaderLine, *, strict: bool | None = None) -> Optional[SectionKey]:
        """Return the canonical key for ``header``.

        ``strict`` limits the chain to its first (exact) matcher. When omitted,
        plain lines are strict and emphasized lines use the full chain.
        """
        if strict is None:
            strict = not header.emphasized
        chain = self.matchers[:1] if strict else self.matchers
        for matcher in chain:
            key = matcher.try_match(header.label)
            if key is not None:
                return key
        return None

    def classify_line(self, line: str) -> Optional[SectionKey]:
        header = parse_header_line(line)
        if header is None:
            return None
        return self.classify(header)


__all__ = [
    "ContainmentMatcher",
    "ExactAliasMatcher",
    "HeaderClassifier",
    "HeaderLine",
    "HeaderMatcher",
    "TokenAffixMatcher",
    "default_matchers",
    "derive_label",
    "is_separator",
    "normalize_label",
    "parse_header_line",
]
