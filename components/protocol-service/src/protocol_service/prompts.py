"""Render generation prompts from experiment descriptors.

Prompts live as Jinja2 templates in ``prompt_templates/`` next to this module
so they can be edited without touching code. Rendering is a pure function of
the descriptor.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from shared.models import ExperimentDescriptor

PROMPTS_DIR = Path(__file__).parent / "prompt_templates"
SYSTEM_TEMPLATE = "system.j2"
USER_TEMPLATE = "user.j2"

# Heading markers the model is asked to use; the parser recognizes the same set.
SECTION_MARKERS = (
    ("🔬", "What you'll need"),
    ("📋", "Step-by-Step Procedure"),
    ("🧪", "Data Analysis"),
    ("⚠\ufe0f", "Important Tips"),
)

NOT_SPECIFIED = "Not specified"


@dataclass(frozen=True)
class PromptPair:
    """System and user instructions for one completion request."""

    system: str
    user: str

    def as_query(self) -> str:
        """Join both instructions into the single ``query`` string of /api/analyze."""
        return f"{self.system}\n\n{self.user}"


@lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(PROMPTS_DIR)),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        autoescape=False,
    )


def build_prompt(descriptor: ExperimentDescriptor) -> PromptPair:
    """Render the system/user instruction pair for ``descriptor``.

    Args:
        descriptor: A validated experiment descriptor.

    Returns:
        The rendered prompt pair.
    """
    env = _environment()
    prompt_vars = {
        "markers": SECTION_MARKERS,
        "title": descriptor.title.strip(),
        "purpose": _or_not_specified(descriptor.purpose),
        "design_rationale": _or_not_specified(descriptor.design_rationale),
        "analysis_types": ", ".join(descriptor.analysis_types) or NOT_SPECIFIED,
        "file_content": (descriptor.file_content or "").strip(),
    }
    system = env.get_template(SYSTEM_TEMPLATE).render(**prompt_vars).strip()
    user = env.get_template(USER_TEMPLATE).render(**prompt_vars).strip()
    return PromptPair(system=system, user=user)


def _or_not_specified(value: str | None) -> str:
    if value is None or not value.strip():
        return NOT_SPECIFIED
    return value.strip()
