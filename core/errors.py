# core/errors.py
"""Error taxonomy for document generation.

Transient provider failures are retried by the generation queue, everything
else fails a job on the first attempt. Only ``InvalidGenerationRequest`` and
``TotalGenerationFailure`` ever reach the caller of the orchestrator.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:  # pragma: no cover - type hints
    from models.document_models import DocumentResult


class GenerationError(Exception):
    """Base class for all document generation errors."""


class TransientProviderError(GenerationError):
    """Upstream failure that may succeed when retried."""


class ProviderTimeoutError(TransientProviderError):
    """The provider did not answer within the allotted time."""


class RateLimitError(TransientProviderError):
    """The provider rejected the call with HTTP 429."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ProviderUnavailableError(TransientProviderError):
    """5xx responses and transport level failures."""


class ProviderRequestError(GenerationError):
    """The provider rejected the request itself (4xx other than 429)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DocumentValidationError(GenerationError):
    """Provider output is empty or does not have the expected shape."""

    def __init__(self, document_type: str, message: str) -> None:
        super().__init__(f"{document_type}: {message}")
        self.document_type = document_type


class InvalidGenerationRequest(GenerationError, ValueError):
    """Malformed project data or document selection."""


class TotalGenerationFailure(GenerationError):
    """No requested document could be generated."""

    def __init__(self, message: str, results: list[DocumentResult]) -> None:
        super().__init__(message)
        self.results = results


class ProgressOrderError(GenerationError):
    """A progress event was emitted out of its required order."""


def is_transient(exc: BaseException) -> bool:
    """Return True if ``exc`` is worth retrying."""
    if isinstance(exc, TransientProviderError | asyncio.TimeoutError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, httpx.TimeoutException | httpx.TransportError)
