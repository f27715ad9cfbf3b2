# orchestration/job_queue.py
"""Bounded-concurrency execution of generation jobs with retries."""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Awaitable, Callable, Iterable

import structlog

from config import settings
from core.errors import RateLimitError, is_transient
from models.document_models import DocumentResult, GenerationJob, JobStatus

logger = structlog.get_logger(__name__)

Worker = Callable[[GenerationJob], Awaitable[DocumentResult]]
JobStartHook = Callable[[GenerationJob], None]
JobFinishHook = Callable[[GenerationJob, DocumentResult], None]


class GenerationQueue:
    """Runs one worker call per job, never more than ``max_concurrent`` at once.

    Jobs acquire slots in the order given, so ``max_concurrent=1`` runs them
    strictly one after another. Transient failures are retried with capped
    exponential backoff; any other failure, or running out of attempts,
    turns into a failed ``DocumentResult`` without touching sibling jobs.
    """

    def __init__(
        self,
        max_attempts: int = settings.GENERATION_MAX_ATTEMPTS,
        base_delay: float = settings.RETRY_BASE_DELAY_SECONDS,
        max_delay: float = settings.RETRY_MAX_DELAY_SECONDS,
        timeout: float | None = settings.DOCUMENT_TIMEOUT_SECONDS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout

    def backoff_delay(self, attempt: int, exc: BaseException | None = None) -> float:
        """Delay before retrying after failed attempt number ``attempt`` (1-based)."""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        jitter = random.uniform(0, delay / 2)
        delay = min(delay + jitter, self.max_delay)
        if isinstance(exc, RateLimitError) and exc.retry_after:
            delay = max(delay, min(exc.retry_after, self.max_delay))
        return delay

    async def schedule(
        self,
        jobs: Iterable[GenerationJob],
        worker: Worker,
        max_concurrent: int,
        *,
        cancel_event: asyncio.Event | None = None,
        on_job_start: JobStartHook | None = None,
        on_job_finish: JobFinishHook | None = None,
    ) -> list[DocumentResult]:
        """Run ``jobs`` and return their results in job order.

        When ``cancel_event`` is set, jobs that have not started are skipped
        and in-flight ones are cancelled; only finished results are returned.
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        job_list = list(jobs)
        if not job_list:
            return []
        semaphore = asyncio.Semaphore(max_concurrent)
        results: dict[int, DocumentResult] = {}

        async def run(position: int, job: GenerationJob) -> None:
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    return
                result = await self._run_job(job, worker, on_job_start)
                results[position] = result
                if on_job_finish is not None:
                    on_job_finish(job, result)

        tasks = [
            asyncio.create_task(run(position, job))
            for position, job in enumerate(job_list)
        ]
        logger.debug(
            "Scheduled generation jobs",
            jobs=len(job_list),
            max_concurrent=max_concurrent,
        )
        try:
            await self._wait(tasks, cancel_event)
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        for task in tasks:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()  # type: ignore[misc]

        if len(results) < len(job_list):
            logger.info(
                "Generation cancelled before all jobs finished",
                finished=len(results),
                total=len(job_list),
            )
        return [results[pos] for pos in range(len(job_list)) if pos in results]

    async def _wait(
        self, tasks: list[asyncio.Task], cancel_event: asyncio.Event | None
    ) -> None:
        if cancel_event is None:
            await asyncio.wait(tasks)
            return
        cancel_waiter = asyncio.create_task(cancel_event.wait())
        try:
            pending: set[asyncio.Task] = set(tasks)
            while pending and not cancel_event.is_set():
                _done, pending = await asyncio.wait(
                    pending | {cancel_waiter}, return_when=asyncio.FIRST_COMPLETED
                )
                pending.discard(cancel_waiter)
        finally:
            cancel_waiter.cancel()

    async def _run_job(
        self,
        job: GenerationJob,
        worker: Worker,
        on_job_start: JobStartHook | None,
    ) -> DocumentResult:
        job.status = JobStatus.RUNNING
        if on_job_start is not None:
            on_job_start(job)

        started = time.monotonic()
        last_error: Exception | None = None
        while job.attempts_left > 0:
            job.attempt += 1
            try:
                result = await asyncio.wait_for(worker(job), timeout=self.timeout)
            except Exception as exc:
                last_error = exc
                transient = is_transient(exc)
                logger.warning(
                    "Generation attempt failed",
                    document_type=job.document_type.value,
                    attempt=job.attempt,
                    max_attempts=job.max_attempts,
                    transient=transient,
                    error=self._describe(exc),
                )
                if not transient or job.attempts_left <= 0:
                    break
                delay = self.backoff_delay(job.attempt, exc)
                logger.info(
                    "Retrying document generation",
                    document_type=job.document_type.value,
                    delay_seconds=round(delay, 2),
                )
                await asyncio.sleep(delay)
                continue

            job.status = JobStatus.SUCCEEDED
            return result.model_copy(update={"attempts": job.attempt})

        job.status = JobStatus.FAILED
        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.error(
            "Document generation failed",
            document_type=job.document_type.value,
            attempts=job.attempt,
            elapsed_ms=elapsed_ms,
        )
        return DocumentResult.failed(
            job.document_type, self._describe(last_error), attempts=job.attempt
        )

    def _describe(self, exc: BaseException | None) -> str:
        if exc is None:
            return "Unknown error"
        if isinstance(exc, asyncio.TimeoutError) and not str(exc):
            return f"Generation timed out after {self.timeout}s"
        return str(exc) or type(exc).__name__
