# models/document_models.py
"""Document catalogue, generation results and queue jobs."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

from .project_models import Methodology


class DocumentType(str, Enum):
    CHARTER = "charter"
    BACKLOG = "backlog"
    SPRINT_PLAN = "sprint_plan"
    PID = "pid"
    BUSINESS_CASE = "business_case"
    PROJECT_PLAN = "project_plan"
    RISK_REGISTER = "risk_register"
    QUALITY_MANAGEMENT = "quality_management"
    COMMUNICATION_PLAN = "communication_plan"
    TECHNICAL_LANDSCAPE = "technical_landscape"
    COMPARABLE_PROJECTS = "comparable_projects"
    HYBRID_CHARTER = "hybrid_charter"

    @property
    def display_title(self) -> str:
        return DOCUMENT_TITLES[self]

    @classmethod
    def resolve(cls, name: str | DocumentType) -> DocumentType:
        """Look a type up by value or display title, case-insensitively.

        Raises:
            ValueError: if ``name`` matches no known document type.
        """
        if isinstance(name, DocumentType):
            return name
        key = " ".join(str(name).split()).lower()
        for doc_type in cls:
            if key == doc_type.value or key == doc_type.display_title.lower():
                return doc_type
        alias = _TITLE_ALIASES.get(key)
        if alias is not None:
            return alias
        raise ValueError(f"Unknown document type: {name!r}")


DOCUMENT_TITLES: dict[DocumentType, str] = {
    DocumentType.CHARTER: "Project Charter",
    DocumentType.BACKLOG: "Product Backlog",
    DocumentType.SPRINT_PLAN: "Sprint Plan",
    DocumentType.PID: "Project Initiation Document (PID)",
    DocumentType.BUSINESS_CASE: "Business Case",
    DocumentType.PROJECT_PLAN: "Project Plan",
    DocumentType.RISK_REGISTER: "Risk Register",
    DocumentType.QUALITY_MANAGEMENT: "Quality Management Strategy",
    DocumentType.COMMUNICATION_PLAN: "Communication Plan",
    DocumentType.TECHNICAL_LANDSCAPE: "Technical Landscape Analysis",
    DocumentType.COMPARABLE_PROJECTS: "Comparable Projects Analysis",
    DocumentType.HYBRID_CHARTER: "Hybrid Project Charter",
}

# Short names the wizard used before titles were settled.
_TITLE_ALIASES: dict[str, DocumentType] = {
    "project initiation document": DocumentType.PID,
    "technical landscape": DocumentType.TECHNICAL_LANDSCAPE,
    "comparable projects": DocumentType.COMPARABLE_PROJECTS,
    "hybrid charter": DocumentType.HYBRID_CHARTER,
    "quality management": DocumentType.QUALITY_MANAGEMENT,
}

DEFAULT_DOCUMENT_SETS: dict[Methodology, tuple[DocumentType, ...]] = {
    Methodology.AGILE: (
        DocumentType.CHARTER,
        DocumentType.BACKLOG,
        DocumentType.SPRINT_PLAN,
        DocumentType.TECHNICAL_LANDSCAPE,
        DocumentType.COMPARABLE_PROJECTS,
    ),
    Methodology.PRINCE2: (
        DocumentType.PID,
        DocumentType.BUSINESS_CASE,
        DocumentType.PROJECT_PLAN,
        DocumentType.RISK_REGISTER,
        DocumentType.QUALITY_MANAGEMENT,
        DocumentType.COMMUNICATION_PLAN,
        DocumentType.TECHNICAL_LANDSCAPE,
        DocumentType.COMPARABLE_PROJECTS,
    ),
    Methodology.HYBRID: (
        DocumentType.HYBRID_CHARTER,
        DocumentType.RISK_REGISTER,
        DocumentType.BACKLOG,
        DocumentType.TECHNICAL_LANDSCAPE,
        DocumentType.COMPARABLE_PROJECTS,
    ),
}


class PromptUsed(BaseModel):
    system: str
    user: str


class DocumentResult(BaseModel):
    """One generated (or failed) document.

    Exactly one of ``content`` and ``error`` is set.
    """

    model_config = ConfigDict(frozen=True)

    type: DocumentType
    title: str
    version: int = 1
    content: str | dict[str, Any] | None = None
    insights: bool = False
    prompt_used: PromptUsed | None = None
    error: str | None = None
    usage: dict[str, int] | None = None
    model: str | None = None
    provider: str | None = None
    generation_time_ms: int = 0
    attempts: int = 1

    @model_validator(mode="after")
    def _content_xor_error(self) -> DocumentResult:
        if (self.content is None) == (self.error is None):
            raise ValueError("DocumentResult needs exactly one of content or error")
        return self

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def failed(
        cls, document_type: DocumentType, error: str, attempts: int = 1
    ) -> DocumentResult:
        return cls(
            type=document_type,
            title=document_type.display_title,
            error=error or "Unknown error",
            attempts=attempts,
        )


def count_successes(results: Iterable[DocumentResult]) -> int:
    return sum(1 for result in results if result.succeeded)


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class GenerationJob:
    """Queue bookkeeping for one document, owned by the generation queue."""

    document_type: DocumentType
    index: int
    max_attempts: int
    attempt: int = 0
    status: JobStatus = JobStatus.PENDING

    @property
    def title(self) -> str:
        return self.document_type.display_title

    @property
    def attempts_left(self) -> int:
        return self.max_attempts - self.attempt
