"""Central package for Project Genie data models."""

from .document_models import (
    DEFAULT_DOCUMENT_SETS,
    DOCUMENT_TITLES,
    DocumentResult,
    DocumentType,
    GenerationJob,
    JobStatus,
    PromptUsed,
    count_successes,
)
from .event_models import ProgressEvent, ProgressEventType
from .project_models import (
    Agilometer,
    Methodology,
    Prince2Board,
    Prince2Role,
    ProjectData,
    SanitizedProjectData,
    SanitizedStakeholder,
    Stakeholder,
)

__all__ = [
    "DEFAULT_DOCUMENT_SETS",
    "DOCUMENT_TITLES",
    "DocumentResult",
    "DocumentType",
    "GenerationJob",
    "JobStatus",
    "PromptUsed",
    "count_successes",
    "ProgressEvent",
    "ProgressEventType",
    "Agilometer",
    "Methodology",
    "Prince2Board",
    "Prince2Role",
    "ProjectData",
    "SanitizedProjectData",
    "SanitizedStakeholder",
    "Stakeholder",
]
