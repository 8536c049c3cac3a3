"""Derive tabular data collection templates from protocols."""

from __future__ import annotations

import re
from typing import FrozenSet, List, Optional, Tuple

from shared.models import Column, DataTemplate, Protocol, Section

DEFAULT_ROWS = 10

BASELINE_COLUMNS: Tuple[Column, ...] = (
    Column(id="sample_id", name="Sample ID", type="text"),
    Column(id="date", name="Date", type="date"),
    Column(id="time", name="Time", type="time"),
    Column(id="measurement", name="Measurement", type="number"),
    Column(id="notes", name="Notes", type="text"),
)

METHOD_TOKENS = frozenset({"methods", "procedure", "steps"})

# (section-id tokens, columns added when a section id contains any of them)
COLUMN_EXTENSIONS: Tuple[Tuple[FrozenSet[str], Tuple[Column, ...]], ...] = (
    (
        METHOD_TOKENS,
        (
            Column(id="protocol_step", name="Protocol Step", type="text"),
            Column(id="condition", name="Condition", type="text"),
        ),
    ),
    (
        frozenset({"materials", "reagents"}),
        (Column(id="reagent_lot", name="Reagent Lot", type="text"),),
    ),
    (
        frozenset({"analysis"}),
        (Column(id="replicate", name="Replicate", type="number"),),
    ),
)

_NUMBERED_STEP = re.compile(r"^\s*\d+[.)]\s+\S", re.MULTILINE)


def generate_data_template(protocol: Protocol) -> DataTemplate:
    """Build a data collection template for ``protocol``.

    Baseline columns come first, followed by columns implied by the protocol's
    sections in section order. Each extension is added at most once.

    Args:
        protocol: Protocol to derive the template from.

    Returns:
        A new, unsaved data template.
    """
    columns: List[Column] = list(BASELINE_COLUMNS)
    seen_ids = {column.id for column in columns}
    for section in protocol.sections:
        tokens = _id_tokens(section)
        for keys, extra in COLUMN_EXTENSIONS:
            if not tokens & keys:
                continue
            for column in extra:
                if column.id not in seen_ids:
                    columns.append(column)
                    seen_ids.add(column.id)

    return DataTemplate(
        title=f"Data Collection Template for {protocol.title}",
        columns=columns,
        rows=_suggested_rows(protocol),
    )


def _id_tokens(section: Section) -> FrozenSet[str]:
    return frozenset(token for token in section.id.split("_") if token)


def _first_methods_section(protocol: Protocol) -> Optional[Section]:
    for section in protocol.sections:
        if _id_tokens(section) & METHOD_TOKENS:
            return section
    return None


def _suggested_rows(protocol: Protocol) -> int:
    methods = _first_methods_section(protocol)
    if methods is None:
        return DEFAULT_ROWS
    steps = len(_NUMBERED_STEP.findall(methods.content))
    return max(DEFAULT_ROWS, steps)
