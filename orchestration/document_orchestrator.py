# orchestration/document_orchestrator.py
"""Entry point that turns one project into a bundle of generated documents."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog
from pydantic import ValidationError

from config import settings
from core.errors import InvalidGenerationRequest, TotalGenerationFailure
from core.llm_interface import create_provider
from generation.document_cache import DocumentCache
from generation.document_generator import DocumentGenerator
from generation.fingerprint import RequestFingerprint, compute_fingerprint
from models.document_models import (
    DEFAULT_DOCUMENT_SETS,
    DocumentResult,
    DocumentType,
    GenerationJob,
    count_successes,
)
from models.project_models import Methodology, ProjectData, SanitizedProjectData
from processing.sanitizer import (
    create_mapping_table,
    rehydrate_document,
    sanitize_project_data,
)
from storage.file_manager import DocumentStore, FileDocumentStore

from .job_queue import GenerationQueue
from .progress import ProgressReporter
from .token_accountant import TokenAccountant

logger = structlog.get_logger(__name__)

Sanitizer = Callable[[ProjectData], SanitizedProjectData]


class GenerationStatus(str, Enum):
    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    CANCELLED = "cancelled"


@dataclass
class GenerationOutcome:
    status: GenerationStatus
    documents: list[DocumentResult]
    fingerprint: RequestFingerprint
    from_cache: bool = False
    metrics: dict[str, Any] = field(default_factory=dict)
    saved_paths: list[str] = field(default_factory=list)
    storage_error: str | None = None

    @property
    def success_count(self) -> int:
        return count_successes(self.documents)

    @property
    def failure_count(self) -> int:
        return len(self.documents) - self.success_count


class DocumentOrchestrator:
    """Checks the cache, fans jobs out through the queue and aggregates.

    Partial failure is a normal return value. Only malformed input
    (``InvalidGenerationRequest``) and a run without a single successful
    document (``TotalGenerationFailure``) raise. Concurrent calls for the
    same fingerprint are serialised so the second one is served from cache.
    A cached bundle holding failed documents only has those regenerated.
    """

    def __init__(
        self,
        generator: DocumentGenerator,
        cache: DocumentCache | None,
        queue: GenerationQueue,
        *,
        max_concurrent: int = settings.MAX_CONCURRENT_GENERATIONS,
        sanitizer: Sanitizer = sanitize_project_data,
        store: DocumentStore | None = None,
    ) -> None:
        self.generator = generator
        self.cache = cache
        self.queue = queue
        self.max_concurrent = max_concurrent
        self.sanitizer = sanitizer
        self.store = store
        self._locks: dict[RequestFingerprint, asyncio.Lock] = {}
        self._lock_users: dict[RequestFingerprint, int] = {}

    @property
    def effective_max_concurrent(self) -> int:
        hint = getattr(self.generator, "max_concurrency", None)
        if hint:
            return max(1, min(self.max_concurrent, hint))
        return max(1, self.max_concurrent)

    def resolve_document_types(
        self,
        methodology: Methodology,
        selected_types: Sequence[str | DocumentType] | str | None,
    ) -> list[DocumentType]:
        if not selected_types:
            return list(DEFAULT_DOCUMENT_SETS[methodology])
        if isinstance(selected_types, str):
            selected_types = [selected_types]
        resolved: list[DocumentType] = []
        for name in selected_types:
            try:
                document_type = DocumentType.resolve(name)
            except ValueError as exc:
                raise InvalidGenerationRequest(str(exc)) from exc
            if document_type in resolved:
                raise InvalidGenerationRequest(
                    f"Document type requested more than once: {document_type.display_title}"
                )
            resolved.append(document_type)
        return resolved

    async def generate_project_documents(
        self,
        project: ProjectData | Mapping[str, Any],
        project_id: str,
        selected_types: Sequence[str | DocumentType] | str | None = None,
        *,
        reporter: ProgressReporter | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> GenerationOutcome:
        """Generate every requested document for ``project``.

        Results come back in requested order with real stakeholder names
        restored; the cache only ever sees the sanitized versions.

        Any exception that escapes is reported as an ``error`` event first,
        so a streaming consumer always sees a terminal event.

        Raises:
            InvalidGenerationRequest: malformed project data, empty project id,
                unknown or duplicate document types.
            TotalGenerationFailure: no requested document could be generated.
        """
        reporter = reporter or ProgressReporter()
        try:
            return await self._generate(
                project, project_id, selected_types, reporter, cancel_event
            )
        except Exception as exc:
            if not reporter.terminated:
                reporter.error(str(exc) or type(exc).__name__)
            raise

    async def _generate(
        self,
        project: ProjectData | Mapping[str, Any],
        project_id: str,
        selected_types: Sequence[str | DocumentType] | str | None,
        reporter: ProgressReporter,
        cancel_event: asyncio.Event | None,
    ) -> GenerationOutcome:
        project_data = self._validate_project(project)
        if not isinstance(project_id, str) or not project_id.strip():
            raise InvalidGenerationRequest("project_id must be a non-empty string")
        document_types = self.resolve_document_types(
            project_data.methodology, selected_types
        )

        sanitized = self.sanitizer(project_data)
        mapping = create_mapping_table(project_data)
        fingerprint = compute_fingerprint(project_id, sanitized, document_types)

        lock = self._locks.setdefault(fingerprint, asyncio.Lock())
        self._lock_users[fingerprint] = self._lock_users.get(fingerprint, 0) + 1
        try:
            async with lock:
                return await self._run(
                    project_id,
                    sanitized,
                    mapping,
                    document_types,
                    fingerprint,
                    reporter,
                    cancel_event,
                )
        finally:
            self._lock_users[fingerprint] -= 1
            if self._lock_users[fingerprint] == 0:
                del self._lock_users[fingerprint]
                del self._locks[fingerprint]

    async def _run(
        self,
        project_id: str,
        sanitized: SanitizedProjectData,
        mapping: dict[str, str],
        document_types: list[DocumentType],
        fingerprint: RequestFingerprint,
        reporter: ProgressReporter,
        cancel_event: asyncio.Event | None,
    ) -> GenerationOutcome:
        started = time.monotonic()
        total = len(document_types)
        log = logger.bind(project_id=project_id, fingerprint=fingerprint[:12])

        cached = self._cache_lookup(fingerprint, document_types)
        reused: dict[DocumentType, DocumentResult] = {}
        if cached is not None:
            if count_successes(cached) == total:
                documents = self._rehydrate(cached, mapping)
                metrics = self._metrics(
                    documents, started, TokenAccountant(), from_cache=True
                )
                reporter.complete(total, data=metrics)
                log.info("Served document bundle from cache", documents=total)
                return GenerationOutcome(
                    status=GenerationStatus.SUCCEEDED,
                    documents=documents,
                    fingerprint=fingerprint,
                    from_cache=True,
                    metrics=metrics,
                )
            # Only the documents that failed last time are generated again.
            reused = {result.type: result for result in cached if result.succeeded}

        log.info(
            "Starting document generation",
            documents=total - len(reused),
            reused=len(reused),
            methodology=sanitized.methodology.value,
            max_concurrent=self.effective_max_concurrent,
        )
        reporter.start(total, document_types)
        accountant = TokenAccountant()

        def on_job_start(job: GenerationJob) -> None:
            reporter.document_start(job.index, total, job.document_type)

        def on_job_finish(job: GenerationJob, result: DocumentResult) -> None:
            accountant.record_result(result)
            if result.succeeded:
                reporter.document_complete(job.index, total, result)
            else:
                reporter.document_failed(job.index, total, result)

        async def worker(job: GenerationJob) -> DocumentResult:
            return await self.generator.generate(job.document_type, sanitized)

        jobs = [
            GenerationJob(
                document_type=document_type,
                index=index,
                max_attempts=self.queue.max_attempts,
            )
            for index, document_type in enumerate(document_types)
            if document_type not in reused
        ]
        generated = await self.queue.schedule(
            jobs,
            worker,
            self.effective_max_concurrent,
            cancel_event=cancel_event,
            on_job_start=on_job_start,
            on_job_finish=on_job_finish,
        )

        cancelled = len(generated) < len(jobs)
        by_type = {result.type: result for result in generated}
        by_type.update(reused)
        results = [by_type[t] for t in document_types if t in by_type]
        documents = self._rehydrate(results, mapping)
        metrics = self._metrics(documents, started, accountant, from_cache=False)
        metrics["cancelled"] = cancelled
        metrics["reused_documents"] = len(reused)

        if count_successes(results) == 0 and not cancelled:
            message = f"All {total} document generations failed"
            log.error(message, duration_ms=metrics["duration_ms"])
            reporter.error(message, total, data=metrics)
            raise TotalGenerationFailure(message, documents)

        if not cancelled:
            self._cache_store(fingerprint, results)

        outcome = GenerationOutcome(
            status=GenerationStatus.CANCELLED
            if cancelled
            else self._status(documents, total),
            documents=documents,
            fingerprint=fingerprint,
            metrics=metrics,
        )
        await self._save(project_id, outcome)
        metrics["saved_documents"] = len(outcome.saved_paths)

        reporter.complete(total, data=metrics)
        log.info(
            "Document generation finished",
            status=outcome.status.value,
            succeeded=metrics["success_count"],
            failed=metrics["failure_count"],
            duration_ms=metrics["duration_ms"],
        )
        return outcome

    def _validate_project(
        self, project: ProjectData | Mapping[str, Any]
    ) -> ProjectData:
        if isinstance(project, ProjectData):
            data = project
        elif isinstance(project, Mapping):
            try:
                data = ProjectData.model_validate(project)
            except ValidationError as exc:
                raise InvalidGenerationRequest(f"Invalid project data: {exc}") from exc
        else:
            raise InvalidGenerationRequest(
                f"Project data must be a mapping, got {type(project).__name__}"
            )
        if not data.name.strip():
            raise InvalidGenerationRequest("Project name must not be blank")
        return data

    def _cache_lookup(
        self, fingerprint: RequestFingerprint, document_types: list[DocumentType]
    ) -> list[DocumentResult] | None:
        if self.cache is None:
            return None
        try:
            entry = self.cache.get(fingerprint)
        except Exception as exc:
            logger.error(
                "Document cache lookup failed, regenerating",
                error=str(exc),
                exc_info=True,
            )
            return None
        if entry is None:
            return None
        bundle = list(entry.bundle)
        if [result.type for result in bundle] != document_types:
            logger.warning(
                "Cached bundle does not match the request, regenerating",
                fingerprint=fingerprint[:12],
            )
            return None
        return bundle

    def _cache_store(
        self, fingerprint: RequestFingerprint, results: list[DocumentResult]
    ) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(fingerprint, results)
        except Exception as exc:
            logger.error("Failed to cache document bundle", error=str(exc), exc_info=True)

    async def _save(self, project_id: str, outcome: GenerationOutcome) -> None:
        if self.store is None or outcome.success_count == 0:
            return
        try:
            outcome.saved_paths = await self.store.save_documents(
                project_id, outcome.documents
            )
        except Exception as exc:
            outcome.storage_error = str(exc) or type(exc).__name__
            logger.error(
                "Failed to store generated documents",
                project_id=project_id,
                error=outcome.storage_error,
            )

    @staticmethod
    def _rehydrate(
        results: list[DocumentResult], mapping: dict[str, str]
    ) -> list[DocumentResult]:
        if not mapping:
            return list(results)
        return [
            result.model_copy(
                update={"content": rehydrate_document(result.content, mapping)}
            )
            if result.succeeded
            else result
            for result in results
        ]

    @staticmethod
    def _status(documents: list[DocumentResult], total: int) -> GenerationStatus:
        if count_successes(documents) == total:
            return GenerationStatus.SUCCEEDED
        return GenerationStatus.PARTIAL

    @staticmethod
    def _metrics(
        documents: list[DocumentResult],
        started: float,
        accountant: TokenAccountant,
        *,
        from_cache: bool,
    ) -> dict[str, Any]:
        success_count = count_successes(documents)
        failure_count = len(documents) - success_count
        return {
            "success_count": success_count,
            "failure_count": failure_count,
            "partial_success": success_count > 0 and failure_count > 0,
            "duration_ms": int((time.monotonic() - started) * 1000),
            "from_cache": from_cache,
            "usage": accountant.summary(),
        }


def create_orchestrator_from_settings() -> DocumentOrchestrator:
    """Wire the orchestrator from the global ``settings``."""
    generator = DocumentGenerator(create_provider())
    cache = (
        DocumentCache(settings.DOCUMENT_CACHE_MAX_SIZE)
        if settings.ENABLE_DOCUMENT_CACHE
        else None
    )
    return DocumentOrchestrator(
        generator,
        cache,
        GenerationQueue(),
        store=FileDocumentStore(settings.BASE_OUTPUT_DIR),
    )
