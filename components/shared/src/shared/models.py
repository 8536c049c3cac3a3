"""Shared data models for the protocol service, API and UI.

Models serialize with the camelCase wire names used by the UI
(``designRationale``, ``aiGenerated``, ...) while exposing snake_case
attributes in Python. Both spellings are accepted on input.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ColumnType = Literal["text", "date", "time", "number"]


class _WireModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


def _new_protocol_id() -> str:
    return f"protocol-{uuid.uuid4().hex}"


def _new_template_id() -> str:
    return f"template-{uuid.uuid4().hex}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExperimentDescriptor(_WireModel):
    """Experiment metadata a protocol is generated from.

    Args:
        title: Experiment title (required, non-blank).
        purpose: What the experiment is meant to show.
        design_rationale: Why the experiment is designed the way it is.
        analysis_types: Ordered analysis category tags (e.g. ``statistical``).
        file_content: Raw text of an uploaded reference protocol.

    Examples:
        >>> ExperimentDescriptor.model_validate(
        ...     {"title": "pH and Growth", "analysisTypes": ["statistical"]}
        ... ).analysis_types
        ['statistical']
    """

    title: str
    purpose: Optional[str] = None
    design_rationale: Optional[str] = None
    analysis_types: List[str] = Field(default_factory=list)
    file_content: Optional[str] = None


class Section(_WireModel):
    """One titled block of a protocol.

    Args:
        id: Slug derived from the title, unique within its protocol.
        title: Section heading.
        content: Section body; may be empty.
    """

    id: str
    title: str
    content: str = ""


class Protocol(_WireModel):
    """Structured protocol document.

    Args:
        id: Opaque unique identifier.
        title: Protocol title.
        date: Calendar date (``YYYY-MM-DD``) the protocol was generated for.
        sections: Ordered sections; at least one is required.
        ai_generated: True when parsed from model output, False when produced
            by the deterministic generator.
        created: UTC creation timestamp.
    """

    id: str = Field(default_factory=_new_protocol_id)
    title: str
    date: str
    sections: List[Section] = Field(..., min_length=1)
    ai_generated: bool
    created: datetime = Field(default_factory=_utcnow)

    def section(self, section_id: str) -> Optional[Section]:
        """Return the section with ``section_id``, if present."""
        for item in self.sections:
            if item.id == section_id:
                return item
        return None


class Column(_WireModel):
    """Column of a data collection template."""

    id: str
    name: str
    type: ColumnType


class DataTemplate(_WireModel):
    """Tabular data collection template derived from a protocol."""

    id: str = Field(default_factory=_new_template_id)
    title: str
    columns: List[Column]
    rows: int = Field(10, gt=0)


def build_descriptor(
    *,
    title: str = "pH and Growth",
    purpose: Optional[str] = "measure pH effect",
    design_rationale: Optional[str] = None,
    analysis_types: Optional[List[str]] = None,
    file_content: Optional[str] = None,
) -> ExperimentDescriptor:
    """Create an ExperimentDescriptor with defaults for tests and examples."""
    if analysis_types is None:
        analysis_types = ["statistical"]
    return ExperimentDescriptor(
        title=title,
        purpose=purpose,
        design_rationale=design_rationale,
        analysis_types=analysis_types,
        file_content=file_content,
    )


def build_protocol(
    *,
    title: str = "pH and Growth",
    date: str = "2024-01-01",
    sections: Optional[List[Section]] = None,
    ai_generated: bool = True,
) -> Protocol:
    """Create a Protocol instance with defaults for tests and examples."""
    return Protocol(
        title=title,
        date=date,
        sections=sections
        or [
            Section(id="materials", title="Materials", content="Gloves"),
            Section(id="methods", title="Methods", content="1. Mix reagents"),
        ],
        ai_generated=ai_generated,
    )
