"""Split free-text analysis answers into answer, insights and suggestions."""

from __future__ import annotations

import re
from typing import List, Optional

from pydantic import BaseModel, Field

_HEADER = re.compile(
    r"^\s*(?:#{1,6}\s*)?(?:\*\*|__)?\s*(?P<name>key\s+insights|insights|"
    r"suggestions|recommendations)\s*:?\s*(?:\*\*|__)?\s*:?\s*$",
    re.IGNORECASE,
)
_ITEM = re.compile(r"^\s*(?:[-*•+]|\d+[.)])\s+(?P<text>\S.*)$")

_KINDS = {
    "key insights": "insights",
    "insights": "insights",
    "suggestions": "suggestions",
    "recommendations": "suggestions",
}


class Interpretation(BaseModel):
    """Structured variant of an ``/api/analyze`` answer."""

    answer: str
    insights: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


def extract_interpretation(text: str) -> Interpretation:
    """Extract bulleted or numbered items under Insights/Suggestions headers.

    Text before the first header is the answer. Without any header, the whole
    text is the answer and each non-blank line becomes an insight.

    Examples:
        >>> result = extract_interpretation(
        ...     "pH matters.\\nInsights:\\n- Growth peaks at 7\\n"
        ...     "Suggestions:\\n1. Add replicates"
        ... )
        >>> result.insights, result.suggestions
        (['Growth peaks at 7'], ['Add replicates'])
    """
    answer_lines: List[str] = []
    items: dict[str, List[str]] = {"insights": [], "suggestions": []}
    current: Optional[str] = None
    saw_header = False

    for line in text.splitlines():
        header = _HEADER.match(line)
        if header:
            current = _KINDS[re.sub(r"\s+", " ", header.group("name").lower())]
            saw_header = True
            continue
        if current is None:
            answer_lines.append(line)
            continue
        item = _ITEM.match(line)
        if item:
            items[current].append(item.group("text").strip())

    answer = "\n".join(answer_lines).strip()
    if not saw_header:
        answer = text.strip()
        items["insights"] = [
            _strip_bullet(line) for line in text.splitlines() if line.strip()
        ]
    return Interpretation(
        answer=answer,
        insights=items["insights"],
        suggestions=items["suggestions"],
    )


def _strip_bullet(line: str) -> str:
    item = _ITEM.match(line)
    return item.group("text").strip() if item else line.strip()
