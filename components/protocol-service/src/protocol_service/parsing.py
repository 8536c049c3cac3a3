"""Parse free-text model output into ordered protocol sections.

Headings are recognized by an ordered tuple of matchers. Each line is offered to
the matchers in priority order and the first match wins:

1. Markdown hash headings (``## Materials``)
2. Numbered headings (``1. Materials``) at the start of input or after a blank line
3. Marker-symbol headings (``🔬 What you'll need``)
4. Standalone all-caps lines, Title Case lines ending in a colon, and bare Title
   Case lines that open a block or follow a list
5. Bold-wrapped lines (``**Materials**``)

Everything else is section content. Text before the first heading lands in an
``Introduction`` section; input without any non-blank line becomes a single
``Protocol Content`` section.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol as TypingProtocol
from typing import Sequence

from shared.models import Protocol, Section

from protocol_service.sections import SectionAccumulator

INTRODUCTION_TITLE = "Introduction"
FALLBACK_TITLE = "Protocol Content"
MAX_STANDALONE_HEADING_CHARS = 80
MAX_STANDALONE_HEADING_WORDS = 10

MARKER_SYMBOLS = ("🔬", "📋", "🧪", "⚠\ufe0f", "⚠", "📊", "🧫", "✅", "📝", "🔟")
_KEYCAP_DIGIT = r"[0-9]\ufe0f?\u20e3"
_LIST_PREFIXES = ("-", "*", "+", "•", ">", "|")
_LIST_ITEM = re.compile(r"^\s*(?:[-*+•]|\d+[.)])\s+\S")
_EMPHASIS = re.compile(r"^(\*\*|__)((?:(?!\1).)+)\1$")


@dataclass(frozen=True)
class LineContext:
    """A candidate heading line and what precedes it."""

    line: str
    at_block_start: bool
    after_list_item: bool = False


class HeadingMatcher(TypingProtocol):
    """Recognizes one heading convention."""

    name: str

    def match(self, context: LineContext) -> str | None:
        """Return the heading title, or None when the line is not a heading."""
        ...


class MarkdownHeadingMatcher:
    name = "markdown"
    _pattern = re.compile(r"^\s{0,3}#{1,6}\s+(.+?)(?:\s+#+)?\s*$")

    def match(self, context: LineContext) -> str | None:
        found = self._pattern.match(context.line)
        return _strip_emphasis(found.group(1)) if found else None


class NumberedHeadingMatcher:
    """``<int>. <text>`` lines opening a block; the whole line is the title."""

    name = "numbered"
    _pattern = re.compile(r"^\s*\d+\.\s+\S")

    def match(self, context: LineContext) -> str | None:
        if not context.at_block_start:
            return None
        if self._pattern.match(context.line):
            return context.line.strip()
        return None


class MarkerHeadingMatcher:
    name = "marker"

    def __init__(self, markers: Sequence[str] = MARKER_SYMBOLS) -> None:
        alternatives = sorted((re.escape(m) for m in markers), key=len, reverse=True)
        alternatives.append(_KEYCAP_DIGIT)
        self._pattern = re.compile(
            r"^\s*(?:%s)\ufe0f?\s*(\S.*?)\s*$" % "|".join(alternatives)
        )

    def match(self, context: LineContext) -> str | None:
        found = self._pattern.match(context.line)
        if not found:
            return None
        return _strip_colon(found.group(1))


class StandaloneTitleMatcher:
    """All-caps lines and short Title Case lines.

    A Title Case line without a trailing colon only counts when it opens a block
    or directly follows a list item, so short capitalised content lines inside a
    paragraph stay content.
    """

    name = "standalone"

    def match(self, context: LineContext) -> str | None:
        text = context.line.strip()
        if not text or len(text) > MAX_STANDALONE_HEADING_CHARS:
            return None
        if text.startswith(_LIST_PREFIXES) or text[0].isdigit():
            return None
        if _is_all_caps(text):
            return _strip_colon(text)
        if text.endswith(":") and _is_title_case(text[:-1]):
            return _strip_colon(text)
        opens_block = context.at_block_start or context.after_list_item
        if opens_block and _is_bare_title(text):
            return text
        return None


class BoldHeadingMatcher:
    name = "bold"
    _pattern = re.compile(r"^\s*(\*\*|__)((?:(?!\1).)+)\1\s*:?\s*$")

    def match(self, context: LineContext) -> str | None:
        found = self._pattern.match(context.line)
        if not found:
            return None
        return _strip_colon(found.group(2))


DEFAULT_MATCHERS: tuple[HeadingMatcher, ...] = (
    MarkdownHeadingMatcher(),
    NumberedHeadingMatcher(),
    MarkerHeadingMatcher(),
    StandaloneTitleMatcher(),
    BoldHeadingMatcher(),
)


def match_heading(
    context: LineContext,
    matchers: Sequence[HeadingMatcher] = DEFAULT_MATCHERS,
) -> str | None:
    """Return the title from the first matcher that accepts the line."""
    for matcher in matchers:
        title = matcher.match(context)
        if title is not None:
            return title
    return None


def parse_protocol_sections(
    text: str,
    matchers: Sequence[HeadingMatcher] = DEFAULT_MATCHERS,
) -> list[Section]:
    """Split raw model output into ordered sections.

    Args:
        text: Raw text returned by the model.
        matchers: Heading matchers in priority order.

    Returns:
        At least one section. Non-blank, non-heading lines are kept verbatim.
    """
    accumulator = SectionAccumulator()
    current_title: str | None = None
    current_lines: list[str] = []
    at_block_start = True
    after_list_item = False

    for line in text.splitlines():
        if not line.strip():
            at_block_start = True
            continue

        context = LineContext(line, at_block_start, after_list_item)
        title = match_heading(context, matchers)
        at_block_start = False
        after_list_item = title is None and _LIST_ITEM.match(line) is not None
        if title is not None:
            if current_title is not None:
                accumulator.add(current_title, "\n".join(current_lines))
            current_title = title
            current_lines = []
            continue

        if current_title is None:
            current_title = INTRODUCTION_TITLE
        current_lines.append(line)

    if current_title is not None:
        accumulator.add(current_title, "\n".join(current_lines))

    if not len(accumulator):
        accumulator.add(FALLBACK_TITLE, text.strip())
    return accumulator.sections()


def parse_ai_response(text: str, title: str, date: str) -> Protocol:
    """Build a model-derived protocol from raw text."""
    return Protocol(
        title=title.strip() or "Untitled Protocol",
        date=date,
        sections=parse_protocol_sections(text),
        ai_generated=True,
    )


def _strip_emphasis(text: str) -> str:
    title = text.strip()
    wrapped = _EMPHASIS.match(title)
    return wrapped.group(2).strip() if wrapped else title


def _strip_colon(text: str) -> str:
    title = _strip_emphasis(text.strip().rstrip(":"))
    return title.rstrip(":").strip()


def _is_all_caps(text: str) -> bool:
    letters = [char for char in text if char.isalpha()]
    return len(letters) >= 2 and all(char.isupper() for char in letters)


def _is_title_case(text: str) -> bool:
    words = text.split()
    if not words or len(words) > MAX_STANDALONE_HEADING_WORDS:
        return False
    if not text[0].isupper() or ":" in text or text.endswith((".", "!", "?", ",")):
        return False
    # Short connecting words ("and", "of", "for") may stay lower-case.
    return all(
        not word[0].isalpha() or word[0].isupper() or len(word) <= 3 for word in words
    )


def _is_bare_title(text: str) -> bool:
    return len(text.split()) >= 2 and _is_title_case(text)
