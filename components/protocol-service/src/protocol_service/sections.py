"""Section id helpers shared by the parser and the deterministic generator."""

from __future__ import annotations

import re

from shared.models import Section

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    """Lower-case ``title`` and collapse non-alphanumeric runs into ``_``.

    Examples:
        >>> slugify("1. Materials")
        '1_materials'
        >>> slugify("DATA ANALYSIS!!")
        'data_analysis'
    """
    return _NON_ALNUM.sub("_", title.lower()).strip("_")


class SectionAccumulator:
    """Collect sections in order while keeping their ids unique.

    A title whose slug is already taken gets ``_<position>`` appended, where
    position is the 1-based index of the new section; the suffix is bumped
    until the id is free.
    """

    def __init__(self) -> None:
        self._sections: list[Section] = []
        self._ids: set[str] = set()

    def __len__(self) -> int:
        return len(self._sections)

    def add(self, title: str, content: str = "") -> Section:
        """Append a section and return it."""
        position = len(self._sections) + 1
        clean_title = title.strip() or f"Section {position}"
        section = Section(
            id=self._unique_id(slugify(clean_title), position),
            title=clean_title,
            content=content.strip(),
        )
        self._sections.append(section)
        self._ids.add(section.id)
        return section

    def sections(self) -> list[Section]:
        """Return a copy of the collected sections."""
        return list(self._sections)

    def _unique_id(self, base: str, position: int) -> str:
        if not base:
            base = f"section_{position}"
        if base not in self._ids:
            return base
        suffix = position
        candidate = f"{base}_{suffix}"
        while candidate in self._ids:
            suffix += 1
            candidate = f"{base}_{suffix}"
        return candidate
