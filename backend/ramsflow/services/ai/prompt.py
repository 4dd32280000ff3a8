"""
Prompt construction and best-effort parsing of the model's reply.

The reply is expected in three marked sections:

    CONTROL_MEASURES:
    ...
    LEGISLATION:
    ...
    RESIDUAL_RISK:
    Likelihood: n
    Severity: n

parse_response() never raises. A reply missing any section comes back
as PartiallyParsed with one warning per missing field.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from ramsflow.schemas.ai import (
    ControlMatch,
    ControlMeasureSuggestionRequest,
    LegislationMatch,
)

PROMPT_CONTROL_LIMIT = 5
PROMPT_LEGISLATION_LIMIT = 3

_CONTROLS_RE = re.compile(
    r"CONTROL_MEASURES:\s*(.*?)(?=LEGISLATION:|RESIDUAL_RISK:|$)",
    re.DOTALL | re.IGNORECASE,
)
_LEGISLATION_RE = re.compile(r"LEGISLATION:\s*(.*?)(?=RESIDUAL_RISK:|$)", re.DOTALL | re.IGNORECASE)
_LIKELIHOOD_RE = re.compile(r"Likelihood:\s*(\d)", re.IGNORECASE)
_SEVERITY_RE = re.compile(r"Severity:\s*(\d)", re.IGNORECASE)


@dataclass(frozen=True)
class Parsed:
    control_measures: str
    legislation: str
    residual_likelihood: int
    residual_severity: int

    @property
    def warnings(self) -> tuple[str, ...]:
        return ()


@dataclass(frozen=True)
class PartiallyParsed:
    control_measures: str | None
    legislation: str | None
    residual_likelihood: int | None
    residual_severity: int | None
    warnings: tuple[str, ...]


ParseResult = Parsed | PartiallyParsed


def build_prompt(
    request: ControlMeasureSuggestionRequest,
    controls: Sequence[ControlMatch],
    legislation: Sequence[LegislationMatch],
) -> str:
    lines = [
        "You are a health and safety expert helping to complete a Risk Assessment "
        "and Method Statement (RAMS) for construction work.",
        "",
        "## Task Details:",
        f"- Task/Activity: {request.task_activity}",
        f"- Hazard Identified: {request.hazard_identified}",
    ]
    if request.location_area:
        lines.append(f"- Location: {request.location_area}")
    if request.who_at_risk:
        lines.append(f"- Who is at risk: {request.who_at_risk}")
    if request.project_type:
        lines.append(f"- Project Type: {request.project_type}")
    if request.initial_likelihood and request.initial_severity:
        rating = request.initial_likelihood * request.initial_severity
        lines.append(
            f"- Initial Risk: L{request.initial_likelihood} × S{request.initial_severity} = {rating}"
        )
    lines.append("")

    if controls:
        lines.append("## Existing Control Measures from Library (consider these):")
        lines.extend(
            f"- [{c.hierarchy}] {c.name}: {c.description}"
            for c in controls[:PROMPT_CONTROL_LIMIT]
        )
        lines.append("")

    if legislation:
        lines.append("## Relevant Legislation:")
        lines.extend(f"- {item.code}: {item.name}" for item in legislation[:PROMPT_LEGISLATION_LIMIT])
        lines.append("")

    lines += [
        "## Your Task:",
        "Provide specific, practical control measures following the hierarchy of controls "
        "(Elimination → Substitution → Engineering → Administrative → PPE).",
        "",
        "Respond in this exact format:",
        "CONTROL_MEASURES:",
        "[List specific control measures, one per line, starting with bullet points]",
        "",
        "LEGISLATION:",
        "[List relevant UK/Ireland legislation references]",
        "",
        "RESIDUAL_RISK:",
        "Likelihood: [1-5]",
        "Severity: [1-5]",
    ]
    return "\n".join(lines) + "\n"


def _section(pattern: re.Pattern[str], text: str) -> str | None:
    match = pattern.search(text)
    if match is None:
        return None
    return match.group(1).strip() or None


def _rating(pattern: re.Pattern[str], text: str) -> int | None:
    match = pattern.search(text)
    if match is None:
        return None
    return min(max(int(match.group(1)), 1), 5)


def parse_response(text: str) -> ParseResult:
    controls = _section(_CONTROLS_RE, text)
    legislation = _section(_LEGISLATION_RE, text)
    likelihood = _rating(_LIKELIHOOD_RE, text)
    severity = _rating(_SEVERITY_RE, text)

    warnings = []
    if controls is None:
        warnings.append("CONTROL_MEASURES section missing or empty")
    if legislation is None:
        warnings.append("LEGISLATION section missing or empty")
    if likelihood is None:
        warnings.append("Residual likelihood not found")
    if severity is None:
        warnings.append("Residual severity not found")

    if warnings:
        return PartiallyParsed(
            control_measures=controls,
            legislation=legislation,
            residual_likelihood=likelihood,
            residual_severity=severity,
            warnings=tuple(warnings),
        )
    return Parsed(
        control_measures=controls,
        legislation=legislation,
        residual_likelihood=likelihood,
        residual_severity=severity,
    )
