# generation/document_generator.py
"""Turns sanitized project data into one validated document per call."""

from __future__ import annotations

import time
from dataclasses import dataclass

import structlog

from config import settings
from core.llm_interface import CompletionOptions, LLMProvider
from models.document_models import DocumentResult, DocumentType, PromptUsed
from models.project_models import SanitizedProjectData
from processing.response_validator import (
    STRUCTURED_SHAPES,
    DocumentFormat,
    validate_document,
)
from prompt_renderer import render_document_prompt

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DocumentProfile:
    max_tokens: int
    format: DocumentFormat


DOCUMENT_PROFILES: dict[DocumentType, DocumentProfile] = {
    DocumentType.CHARTER: DocumentProfile(4000, DocumentFormat.JSON),
    DocumentType.BACKLOG: DocumentProfile(3500, DocumentFormat.JSON),
    DocumentType.SPRINT_PLAN: DocumentProfile(4000, DocumentFormat.MARKDOWN),
    DocumentType.PID: DocumentProfile(1500, DocumentFormat.JSON),
    DocumentType.BUSINESS_CASE: DocumentProfile(4000, DocumentFormat.JSON),
    DocumentType.PROJECT_PLAN: DocumentProfile(8000, DocumentFormat.MARKDOWN),
    DocumentType.RISK_REGISTER: DocumentProfile(8000, DocumentFormat.MARKDOWN),
    DocumentType.QUALITY_MANAGEMENT: DocumentProfile(10000, DocumentFormat.JSON),
    DocumentType.COMMUNICATION_PLAN: DocumentProfile(10000, DocumentFormat.JSON),
    DocumentType.TECHNICAL_LANDSCAPE: DocumentProfile(12000, DocumentFormat.MARKDOWN),
    DocumentType.COMPARABLE_PROJECTS: DocumentProfile(10000, DocumentFormat.MARKDOWN),
    DocumentType.HYBRID_CHARTER: DocumentProfile(4000, DocumentFormat.MARKDOWN),
}


def _required_keys(document_type: DocumentType) -> list[str]:
    shape = STRUCTURED_SHAPES.get(document_type)
    if shape is None:
        return []
    return [
        field.alias or name
        for name, field in shape.model_fields.items()
        if field.is_required()
    ]


class DocumentGenerator:
    """Builds prompts, calls the provider and validates what comes back.

    Input must already be sanitized. Errors from the provider and from
    validation propagate unchanged so the queue can classify them.
    """

    def __init__(
        self,
        provider: LLMProvider,
        *,
        temperature: float = settings.LLM_TEMPERATURE,
        profiles: dict[DocumentType, DocumentProfile] | None = None,
    ) -> None:
        self.provider = provider
        self.temperature = temperature
        self.profiles = profiles or DOCUMENT_PROFILES

    @property
    def max_concurrency(self) -> int | None:
        return self.provider.max_concurrency

    def build_prompts(
        self, document_type: DocumentType, sanitized: SanitizedProjectData
    ) -> PromptUsed:
        methodology = sanitized.methodology.value
        context = {
            "project": sanitized,
            "document_title": document_type.display_title,
            "required_keys": _required_keys(document_type),
        }
        system_prompt, _ = render_document_prompt(
            methodology, document_type.value, "system", context
        )
        user_prompt, template_name = render_document_prompt(
            methodology, document_type.value, "user", context
        )
        logger.debug(
            "Rendered document prompts",
            document_type=document_type.value,
            template=template_name,
        )
        return PromptUsed(system=system_prompt, user=user_prompt)

    async def generate(
        self, document_type: DocumentType, sanitized: SanitizedProjectData
    ) -> DocumentResult:
        profile = self.profiles[document_type]
        prompts = self.build_prompts(document_type, sanitized)
        options = CompletionOptions(
            max_tokens=profile.max_tokens,
            temperature=self.temperature,
            json_mode=profile.format is DocumentFormat.JSON,
        )

        start = time.monotonic()
        completion = await self.provider.complete(prompts.system, prompts.user, options)
        elapsed_ms = int((time.monotonic() - start) * 1000)

        content = validate_document(
            document_type, profile.format, completion.text, completion.structured
        )
        logger.info(
            "Generated document",
            document_type=document_type.value,
            provider=completion.provider,
            elapsed_ms=elapsed_ms,
        )
        return DocumentResult(
            type=document_type,
            title=document_type.display_title,
            content=content,
            insights=bool(completion.tool_calls),
            prompt_used=prompts,
            usage=completion.usage.get_if_used(),
            model=completion.model,
            provider=completion.provider,
            generation_time_ms=elapsed_ms,
        )
