# tests/fakes.py
"""Test doubles shared across the suite."""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any

from core.llm_interface import CompletionOptions, LLMCompletion, LLMProvider
from core.usage import TokenUsage
from models.document_models import DocumentType

VALID_CONTENT: dict[DocumentType, Any] = {
    DocumentType.CHARTER: {
        "vision": "A self-service portal championed by [STAKEHOLDER_1]",
        "objectives": [{"objective": "Launch MVP", "measure": "Live by Q3"}],
        "scope": {"inScope": ["Customer portal"], "outOfScope": ["Mobile app"]},
    },
    DocumentType.BACKLOG: {
        "epics": [{"id": "E1", "title": "Onboarding"}],
        "userStories": [
            {"id": "US-1", "story": "As a customer, I want to sign up, so that I can order"}
        ],
    },
    DocumentType.PID: {
        "projectDefinition": {"background": "Legacy ledger"},
        "businessCase": {"reasons": "Cost"},
        "organizationStructure": {"projectBoard": {"executive": "[EXECUTIVE]"}},
    },
    DocumentType.BUSINESS_CASE: {
        "executiveSummary": "Move to cloud",
        "businessOptions": [{"option": "Do nothing"}],
        "expectedBenefits": [{"benefit": "Lower cost"}],
    },
    DocumentType.QUALITY_MANAGEMENT: {
        "qualityObjectives": ["Zero data loss"],
        "qualityCriteria": [{"criterion": "Reconciliation", "measure": "100%"}],
    },
    DocumentType.COMMUNICATION_PLAN: {
        "stakeholders": [{"placeholder": "[SENIOR_USER]", "role": "Senior User"}],
        "communicationMatrix": [{"audience": "Board", "frequency": "Monthly"}],
    },
    DocumentType.SPRINT_PLAN: "# Sprint Plan\n\n## Sprint Goals\n\nShip sign-up.\n\n## Sprint 1\n\n- US-1\n",
    DocumentType.RISK_REGISTER: "## Risk Register\n\n| ID | Description | Owner |\n|---|---|---|\n| R1 | Vendor delay | [EXECUTIVE] |\n",
    DocumentType.PROJECT_PLAN: "## Plan Description\n\nThree stages.\n\n## Milestones\n\n- M1 Design signed off\n",
    DocumentType.HYBRID_CHARTER: "## Vision\n\nBlend.\n\n## Governance Model\n\nStage gates.\n",
    DocumentType.TECHNICAL_LANDSCAPE: "## Current Technology Stack\n\n- PostgreSQL\n",
    DocumentType.COMPARABLE_PROJECTS: "## Comparable Projects\n\n- Portal X\n\n## Lessons Learned\n\n- Start small\n",
}


def valid_text(document_type: DocumentType) -> str:
    content = VALID_CONTENT[document_type]
    if isinstance(content, str):
        return content
    return json.dumps(content)


def detect_document_type(system_prompt: str) -> DocumentType:
    for document_type in DocumentType:
        if f'"{document_type.display_title}"' in system_prompt:
            return document_type
    raise AssertionError(f"no document title in system prompt: {system_prompt[:80]}")


class RecordingProvider(LLMProvider):
    """Returns valid content per document type and records every call.

    ``failures`` maps a document type to exceptions raised on successive
    calls; ``delays`` maps a document type to how long its calls take.
    """

    name = "fake"

    def __init__(
        self,
        *,
        model: str = "fake-model",
        delay: float = 0.0,
        delays: dict[DocumentType, float] | None = None,
        failures: dict[DocumentType, list[Exception]] | None = None,
        responses: dict[DocumentType, str] | None = None,
        tool_calls: list[dict[str, Any]] | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        super().__init__(model)
        self.delay = delay
        self.delays = delays or {}
        self.failures = {k: list(v) for k, v in (failures or {}).items()}
        self.responses = responses or {}
        self.tool_calls = tool_calls or []
        self._max_concurrency = max_concurrency
        self.calls: list[tuple[DocumentType, float, float]] = []
        self.options: list[CompletionOptions] = []
        self.prompts: list[tuple[str, str]] = []
        self.active = 0
        self.max_active = 0

    @property
    def max_concurrency(self) -> int | None:
        return self._max_concurrency

    def calls_for(self, document_type: DocumentType) -> int:
        return sum(1 for call in self.calls if call[0] is document_type)

    async def complete(
        self, system_prompt: str, user_prompt: str, options: CompletionOptions
    ) -> LLMCompletion:
        document_type = detect_document_type(system_prompt)
        self.prompts.append((system_prompt, user_prompt))
        self.options.append(options)
        started = time.monotonic()
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delays.get(document_type, self.delay))
        finally:
            self.active -= 1
        self.calls.append((document_type, started, time.monotonic()))

        pending = self.failures.get(document_type)
        if pending:
            raise pending.pop(0)

        return LLMCompletion(
            text=self.responses.get(document_type, valid_text(document_type)),
            usage=TokenUsage(
                input_tokens=100, output_tokens=200, reasoning_tokens=0, total_tokens=300
            ),
            model=self.model,
            provider=self.name,
            tool_calls=list(self.tool_calls),
        )
