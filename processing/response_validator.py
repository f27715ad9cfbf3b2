# processing/response_validator.py
"""Check provider output against the shape each document type needs.

Structured documents must parse as a JSON object carrying the required
top-level sections; Markdown documents must contain headings covering their
required topics. Anything else is a ``DocumentValidationError`` and is not
retried.
"""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from core.errors import DocumentValidationError
from models.document_models import DocumentType

logger = structlog.get_logger(__name__)


class DocumentFormat(str, Enum):
    JSON = "json"
    MARKDOWN = "markdown"


class _Shape(BaseModel):
    """Only the required sections are declared, the rest pass through."""

    model_config = ConfigDict(
        extra="allow", alias_generator=to_camel, populate_by_name=True
    )


class CharterShape(_Shape):
    vision: Any
    objectives: list[Any] = Field(..., min_length=1)
    scope: Any


class BacklogShape(_Shape):
    user_stories: list[Any] = Field(..., min_length=1)


class PIDShape(_Shape):
    project_definition: dict[str, Any]
    business_case: dict[str, Any]
    organization_structure: dict[str, Any]


class BusinessCaseShape(_Shape):
    executive_summary: Any
    business_options: list[Any] = Field(..., min_length=1)
    expected_benefits: list[Any] = Field(..., min_length=1)


class QualityManagementShape(_Shape):
    quality_objectives: Any
    quality_criteria: Any


class CommunicationPlanShape(_Shape):
    stakeholders: list[Any] = Field(..., min_length=1)
    communication_matrix: list[Any] = Field(..., min_length=1)


STRUCTURED_SHAPES: dict[DocumentType, type[_Shape]] = {
    DocumentType.CHARTER: CharterShape,
    DocumentType.BACKLOG: BacklogShape,
    DocumentType.PID: PIDShape,
    DocumentType.BUSINESS_CASE: BusinessCaseShape,
    DocumentType.QUALITY_MANAGEMENT: QualityManagementShape,
    DocumentType.COMMUNICATION_PLAN: CommunicationPlanShape,
}

# Each keyword must appear in at least one Markdown heading.
REQUIRED_HEADINGS: dict[DocumentType, tuple[str, ...]] = {
    DocumentType.SPRINT_PLAN: ("sprint",),
    DocumentType.RISK_REGISTER: ("risk",),
    DocumentType.PROJECT_PLAN: ("milestone",),
    DocumentType.HYBRID_CHARTER: ("governance",),
    DocumentType.TECHNICAL_LANDSCAPE: ("technolog",),
    DocumentType.COMPARABLE_PROJECTS: ("lessons",),
}

_FENCE_RE = re.compile(r"```(?:[a-zA-Z0-9_-]+)?\s*(.*?)\s*```", re.DOTALL)
_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s+(.+?)\s*#*\s*$", re.MULTILINE)


def strip_code_fences(text: str) -> str:
    """Return the body of the first fenced block, or ``text`` stripped."""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_json_document(document_type: DocumentType, text: str) -> dict[str, Any]:
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise DocumentValidationError(
            document_type.value, f"response is not valid JSON ({exc.msg})"
        ) from exc
    if not isinstance(data, dict):
        raise DocumentValidationError(
            document_type.value, "response JSON is not an object"
        )
    return data


def validate_structured(
    document_type: DocumentType, data: dict[str, Any]
) -> dict[str, Any]:
    """Validate ``data`` against the type's shape and return it unchanged."""
    shape = STRUCTURED_SHAPES.get(document_type)
    if shape is None:
        return data
    try:
        shape.model_validate(data)
    except ValidationError as exc:
        missing = sorted(
            {".".join(str(part) for part in err["loc"]) for err in exc.errors()}
        )
        raise DocumentValidationError(
            document_type.value, f"missing or invalid sections: {', '.join(missing)}"
        ) from exc
    return data


def validate_markdown(document_type: DocumentType, text: str) -> str:
    body = strip_code_fences(text) if text.lstrip().startswith("```") else text.strip()
    if not body:
        raise DocumentValidationError(document_type.value, "empty response")
    headings = [h.lower() for h in _HEADING_RE.findall(body)]
    if not headings:
        raise DocumentValidationError(document_type.value, "no Markdown headings found")
    missing = [
        keyword
        for keyword in REQUIRED_HEADINGS.get(document_type, ())
        if not any(keyword in heading for heading in headings)
    ]
    if missing:
        raise DocumentValidationError(
            document_type.value, f"missing required sections: {', '.join(missing)}"
        )
    return body


def validate_document(
    document_type: DocumentType,
    document_format: DocumentFormat,
    text: str,
    structured: dict[str, Any] | None = None,
) -> str | dict[str, Any]:
    """Turn raw provider output into validated document content."""
    if document_format is DocumentFormat.JSON:
        if structured is None:
            if not text or not text.strip():
                raise DocumentValidationError(document_type.value, "empty response")
            structured = parse_json_document(document_type, text)
        return validate_structured(document_type, structured)
    return validate_markdown(document_type, text or "")
