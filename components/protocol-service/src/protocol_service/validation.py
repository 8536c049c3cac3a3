"""Input validation for experiment descriptors."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from shared.models import ExperimentDescriptor

from protocol_service.errors import ValidationError

_OPTIONAL_TEXT_FIELDS = (
    ("purpose", "purpose"),
    ("designRationale", "design_rationale"),
    ("fileContent", "file_content"),
)


def validate_descriptor(value: Any) -> ExperimentDescriptor:
    """Check that ``value`` is a well-formed experiment descriptor.

    Args:
        value: An ``ExperimentDescriptor`` or a mapping using either the
            camelCase wire names or the snake_case field names.

    Returns:
        The descriptor unchanged: descriptor instances are returned as-is and
        mappings as the equivalent ``ExperimentDescriptor``.

    Raises:
        ValidationError: If the value is not descriptor-shaped, the title is
            missing or blank, or a field has the wrong type.
    """
    if isinstance(value, ExperimentDescriptor):
        _check_title(value.title)
        return value
    if not isinstance(value, Mapping):
        raise ValidationError(
            f"Experiment descriptor must be an object, got {type(value).__name__}."
        )

    _check_title(value.get("title"))
    analysis_types = _lookup(value, "analysisTypes", "analysis_types")
    if analysis_types is not None:
        if not isinstance(analysis_types, list):
            raise ValidationError("analysisTypes must be a list of category tags.")
        if not all(isinstance(tag, str) for tag in analysis_types):
            raise ValidationError("analysisTypes entries must be strings.")
    for wire_name, field_name in _OPTIONAL_TEXT_FIELDS:
        field_value = _lookup(value, wire_name, field_name)
        if field_value is not None and not isinstance(field_value, str):
            raise ValidationError(f"{wire_name} must be a string when provided.")

    try:
        return ExperimentDescriptor.model_validate(
            {key: item for key, item in value.items() if item is not None}
        )
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid experiment descriptor: {exc}") from exc


def _check_title(title: Any) -> None:
    if title is None:
        raise ValidationError("title is required.")
    if not isinstance(title, str):
        raise ValidationError("title must be a string.")
    if not title.strip():
        raise ValidationError("title must not be blank.")


def _lookup(value: Mapping[str, Any], wire_name: str, field_name: str) -> Any:
    if wire_name in value:
        return value[wire_name]
    return value.get(field_name)
