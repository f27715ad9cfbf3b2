# models/event_models.py
"""Progress events streamed to callers during a generation run."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProgressEventType(str, Enum):
    START = "start"
    DOCUMENT_START = "document_start"
    DOCUMENT_COMPLETE = "document_complete"
    DOCUMENT_FAILED = "document_failed"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ProgressEventType.COMPLETE, ProgressEventType.ERROR)


class ProgressEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ProgressEventType
    index: int | None = None
    total: int = 0
    title: str | None = None
    document_type: str | None = None
    timings: dict[str, float] = Field(default_factory=dict)
    error: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
