# processing/sanitizer.py
"""Strip personal identifiers from project data before it reaches an LLM.

Stakeholder and PRINCE2 board names are swapped for stable placeholders such
as ``[STAKEHOLDER_1]`` or ``[EXECUTIVE]``. The mapping table produced alongside
the sanitized data lets the orchestrator put the real names back into the
generated documents on the way out; the names never enter a prompt or the
document cache.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

import structlog

from models.project_models import (
    ProjectData,
    SanitizedProjectData,
    SanitizedStakeholder,
)

logger = structlog.get_logger(__name__)

_EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
# Only capitalised two-word names following a label are redacted.
_LABELLED_NAME_RE = re.compile(
    r"\b((?i:contact|name|person|individual|manager|owner|by|from|to)):\s*[A-Z][a-z]+\s+[A-Z][a-z]+"
)

PRINCE2_PLACEHOLDERS = {
    "executive": ("Executive", "[EXECUTIVE]"),
    "senior_user": ("Senior User", "[SENIOR_USER]"),
    "senior_supplier": ("Senior Supplier", "[SENIOR_SUPPLIER]"),
}


def remove_pii(text: str) -> str:
    """Redact e-mail addresses and labelled personal names from free text."""
    if not text:
        return ""
    cleaned = _EMAIL_RE.sub("[EMAIL_REDACTED]", text)
    return _LABELLED_NAME_RE.sub(r"\1: [NAME_REDACTED]", cleaned)


def stakeholder_placeholder(position: int) -> str:
    return f"[STAKEHOLDER_{position}]"


def sanitize_project_data(project: ProjectData) -> SanitizedProjectData:
    """Return the LLM-safe view of ``project``."""
    stakeholders = tuple(
        SanitizedStakeholder(
            placeholder=stakeholder_placeholder(i),
            role=s.role or f"Team Member {i}",
            influence=s.influence,
            interest=s.interest,
        )
        for i, s in enumerate(_named_stakeholders(project), start=1)
    )

    prince2_roles: dict[str, str] = {}
    if project.prince2_stakeholders is not None:
        for attr, (default_title, placeholder) in PRINCE2_PLACEHOLDERS.items():
            role = getattr(project.prince2_stakeholders, attr)
            prince2_roles[role.title or default_title] = placeholder

    logger.debug(
        "Sanitized project data",
        stakeholders=len(stakeholders),
        board_roles=len(prince2_roles),
    )
    return SanitizedProjectData(
        project_name=remove_pii(project.name),
        methodology=project.methodology,
        vision=remove_pii(project.vision),
        business_case=remove_pii(project.business_case),
        description=remove_pii(project.description),
        company_website=project.company_website,
        sector=project.sector,
        budget=project.budget,
        timeline=project.timeline,
        start_date=project.start_date,
        end_date=project.end_date,
        stakeholders=stakeholders,
        prince2_roles=prince2_roles,
        agilometer=project.agilometer,
    )


def create_mapping_table(project: ProjectData) -> dict[str, str]:
    """Map each placeholder back to the real name it stands for."""
    mapping: dict[str, str] = {}
    for i, s in enumerate(_named_stakeholders(project), start=1):
        if s.name:
            mapping[stakeholder_placeholder(i)] = s.name
    if project.prince2_stakeholders is not None:
        for attr, (_title, placeholder) in PRINCE2_PLACEHOLDERS.items():
            name = getattr(project.prince2_stakeholders, attr).name
            if name:
                mapping[placeholder] = name
    return mapping


def rehydrate_document(content: Any, mapping: Mapping[str, str]) -> Any:
    """Re-inject real names into string or nested JSON document content."""
    if not mapping:
        return content
    if isinstance(content, str):
        for placeholder, real_value in mapping.items():
            content = content.replace(placeholder, real_value)
        return content
    if isinstance(content, dict):
        return {key: rehydrate_document(value, mapping) for key, value in content.items()}
    if isinstance(content, list):
        return [rehydrate_document(item, mapping) for item in content]
    return content


def _named_stakeholders(project: ProjectData) -> list:
    # Blank wizard rows are dropped before numbering.
    return [s for s in project.stakeholders if s.name or s.role]
