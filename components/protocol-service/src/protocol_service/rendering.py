"""Plain Markdown export of protocols."""

from __future__ import annotations

from shared.models import Protocol


def render_markdown(protocol: Protocol) -> str:
    """Render ``protocol`` as Markdown.

    The document starts with the protocol title as a level-one heading,
    followed by the date and provenance lines; each section becomes a
    level-two heading with its content beneath. Feeding the result back
    through ``parse_protocol_sections`` yields the protocol title followed by
    the section titles, in order.
    """
    provenance = "AI-assisted" if protocol.ai_generated else "Standard template"
    lines = [
        f"# {protocol.title}",
        f"Date: {protocol.date}",
        f"Source: {provenance}",
    ]
    for section in protocol.sections:
        lines.append("")
        lines.append(f"## {section.title}")
        if section.content:
            lines.append(section.content)
    return "\n".join(lines) + "\n"
