"""Experiment protocol generation, parsing and data templates."""

from protocol_service.errors import GenerationError, ValidationError
from protocol_service.fallback import (
    AnalysisRegistry,
    generate_default_protocol,
    register_analysis_category,
)
from protocol_service.orchestrator import (
    ProtocolGenerator,
    generate_protocol,
    generate_protocol_sync,
)
from protocol_service.parsing import parse_ai_response, parse_protocol_sections
from protocol_service.prompts import PromptPair, build_prompt
from protocol_service.templates import generate_data_template
from protocol_service.validation import validate_descriptor

__all__ = [
    "AnalysisRegistry",
    "GenerationError",
    "PromptPair",
    "ProtocolGenerator",
    "ValidationError",
    "build_prompt",
    "generate_data_template",
    "generate_default_protocol",
    "generate_protocol",
    "generate_protocol_sync",
    "parse_ai_response",
    "parse_protocol_sections",
    "register_analysis_category",
    "validate_descriptor",
]
