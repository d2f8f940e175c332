"""Builds analysis prompts for the generation backend."""

from __future__ import annotations

from typing import List

from ..models import RepositorySnapshot
from .constants import SECTION_ORDER, SectionKey, resolve_language

_PLACEHOLDERS = {
    "en": {
        "description": "No description",
        "languages": "Not identified",
        "topics": "None",
        "license": "Not specified",
        "readme": "Unavailable",
    },
    "pt": {
        "description": "Sem descrição",
        "languages": "Não identificado",
        "topics": "Nenhum",
        "license": "Não especificada",
        "readme": "Indisponível",
    },
}

_LANGUAGE_RULES = {
    "en": (
        "YOU MUST respond ENTIRELY in American English. Every word of the analysis content "
        "must be in English. Do NOT write any Portuguese."
    ),
    "pt": "Responda em português brasileiro.",
}

_SECTION_OUTLINE = {
    SectionKey.ARCHITECTURAL_SUMMARY: [
        "Project X is a Y application that uses Z. The architecture follows the W pattern with "
        "components A, B and C that interact via D. [Continue with 2-3 detailed paragraphs about the architecture]",
    ],
    SectionKey.STACK: [
        "- **Frontend**: React, TypeScript, etc.",
        "- **Backend**: Node.js, Express, etc.",
        "- **Database**: PostgreSQL, etc.",
        "- **DevOps**: Docker, GitHub Actions, etc.",
    ],
    SectionKey.STRENGTHS: [
        "- Specific strength with technical justification",
        "- Another strength with evidence",
        "- More points (minimum 4)",
    ],
    SectionKey.WEAKNESSES: [
        "- Specific and constructive weakness",
        "- Another weakness with implicit suggestion",
        "- More points (minimum 4)",
    ],
    SectionKey.IMPROVEMENT_SUGGESTIONS: [
        "- Concrete suggestion with described impact",
        "- Another suggestion prioritizing feasibility",
        "- More suggestions (minimum 5)",
    ],
    SectionKey.BEGINNER_TASKS: [
        '- Specific task: "Add unit tests for module X"',
        '- Another task: "Document the REST API in README"',
        "- More tasks (minimum 5)",
    ],
}


class PromptBuilder:
    """Assembles the repository analysis prompt and its system instruction."""

    MAX_LANGUAGES = 8
    MAX_TREE_LINES = 60
    MAX_README_CHARS = 4000

    SYSTEM_PROMPT = (
        "You are a senior software architect who generates technical reports of GitHub repositories. "
        "ABSOLUTE RULES: 1) Start the response directly with '## {first}' without ANY text before. "
        "2) Use ONLY headers with '## ' followed by UPPERCASE_WITH_UNDERSCORES. "
        "3) NEVER use ###, ####, numbering (1., 2.), nor --- as separators. "
        "4) Complete ALL 6 mandatory sections with substantial content. 5) {language_rule}"
    )

    def build(self, snapshot: RepositorySnapshot, language: str | None = None) -> str:
        lang = resolve_language(language)
        placeholders = _PLACEHOLDERS[lang]
        first = SECTION_ORDER[0].value

        lines: List[str] = []
        if lang != "pt":
            lines.append(
                "IMPORTANT: Write ALL analysis content in American English. The section KEYS "
                f"({first}, {SectionKey.STRENGTHS.value}, etc.) must stay as-is.",
            )
            lines.append("")

        lines.extend(
            [
                "GitHub repository data for analysis:",
                "",
                f"Name: {snapshot.name}",
                f"Description: {snapshot.description or placeholders['description']}",
                f"Stars: {snapshot.stars} | Forks: {snapshot.forks} | Issues: {snapshot.open_issues}",
                f"Languages: {self._language_breakdown(snapshot) or placeholders['languages']}",
                f"Topics: {', '.join(snapshot.topics) or placeholders['topics']}",
                f"License: {snapshot.license_name or placeholders['license']}",
            ]
        )

        tree_lines = [line for line in snapshot.tree_excerpt.splitlines() if line.strip()]
        if tree_lines:
            lines.append("")
            lines.append("Relevant files:")
            lines.extend(tree_lines[: self.MAX_TREE_LINES])

        readme = snapshot.readme_excerpt[: self.MAX_README_CHARS].strip()
        lines.extend(["", "README:", readme or placeholders["readme"], "", "---", ""])

        lines.append(
            "Generate COMPLETE technical analysis following EXACTLY the format below. "
            "Do NOT add text before the first ##. Do NOT use ### or numbering. "
            f'Start directly with "## {first}" on the first line.'
        )
        for key in SECTION_ORDER:
            lines.append("")
            lines.append(key.header)
            lines.extend(_SECTION_OUTLINE[key])

        lines.extend(
            [
                "",
                "CRITICAL RULES:",
                f"1. Start DIRECTLY with ## {first} (no text before)",
                '2. Use EXACTLY "## " followed by the name in UPPERCASE with underscores',
                '3. NEVER use ### or #### or "1." or "---"',
                "4. Each section must have at least 4 bullet points or 2 paragraphs",
                "5. Complete ALL 6 sections to the end",
                f"6. {_LANGUAGE_RULES[lang]}",
            ]
        )
        return "\n".join(lines)

    def system_instruction(self, language: str | None = None) -> str:
        lang = resolve_language(language)
        return self.SYSTEM_PROMPT.format(
            first=SECTION_ORDER[0].value,
            language_rule=_LANGUAGE_RULES[lang],
        )

    def _language_breakdown(self, snapshot: RepositorySnapshot) -> str:
        shares = snapshot.language_shares(limit=self.MAX_LANGUAGES)
        return ", ".join(f"{name}: {percent:.1f}%" for name, percent in shares)


__all__ = ["PromptBuilder"]
