"""
Job orchestrator.
Accepts listing URLs, owns every job state change, and drives attempts
through fetch, extraction and the retry policy.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from listing_scraper.extraction.errors import FetchError, JobNotFoundError, MergeInvariantViolation
from listing_scraper.extraction.fetcher import ContentFetcher, create_fetcher
from listing_scraper.models.listing import ExtractionResult
from listing_scraper.orchestration.async_engine import ExtractionEngine
from listing_scraper.orchestration.job_queue import JobQueue
from listing_scraper.orchestration.retry_policy import classify_failure, compute_backoff, describe_failure
from listing_scraper.storage.memory_store import ACTIVE_STATUSES, FailureKind, JobStatus, JobStore, ScrapeJob
from listing_scraper.utils.config import ScrapingConfig, get_config
from listing_scraper.utils.logging_config import get_logger
from listing_scraper.utils.validation import ListingUrlValidator, ValidationError, ValidationOutcome

logger = get_logger()

@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of submitting a URL. job_id is None when validation failed."""
    validation: ValidationOutcome
    job_id: Optional[str] = None
    status: Optional[JobStatus] = None
    created: bool = False

    @property
    def accepted(self) -> bool:
        return self.job_id is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'job_id': self.job_id,
            'status': self.status.value if self.status else None,
            'created': self.created,
            'validation': self.validation.to_dict()
        }

class JobOrchestrator:
    """Creates scrape jobs and runs their attempts on the background queue"""

    def __init__(self, store: Optional[JobStore] = None,
                 fetcher: Optional[ContentFetcher] = None,
                 engine: Optional[ExtractionEngine] = None,
                 config: Optional[ScrapingConfig] = None,
                 validator: Optional[ListingUrlValidator] = None,
                 queue: Optional[JobQueue] = None):
        self.config = config or get_config().scraping
        self.store = store or JobStore()
        self.fetcher = fetcher or create_fetcher(self.config)
        self.engine = engine or ExtractionEngine.from_config(self.config)
        self.validator = validator or ListingUrlValidator()
        self.queue = queue or JobQueue(
            max_concurrent_jobs=self.config.max_concurrent_jobs,
            maintenance_interval_seconds=self.config.maintenance_interval_seconds
        )

    def start(self) -> None:
        """Start background workers"""
        self.queue.start(self.run_attempt, maintenance=self._maintenance)

    def shutdown(self) -> None:
        """Stop background workers, fail jobs they can no longer finish and release the fetcher"""
        self.queue.stop()
        self._fail_unfinished("Service shut down before the job finished")
        self.fetcher.close()

    def _fail_unfinished(self, message: str) -> None:
        # Cancelled attempts and pending retries never report back once the queue is stopped
        for job in self.store.get_all_jobs():
            if job.is_active and self._fail(job.id, message, FailureKind.TRANSIENT, expected=ACTIVE_STATUSES):
                logger.log_job_failed(job.id, message, job.attempt)

    # Submission
    def submit(self, url: Any) -> SubmissionResult:
        """Validate a URL and return the new or already-active job for it"""
        outcome = self.validator.validate(url)
        if not outcome.is_valid:
            logger.warning(f"Rejected listing URL {outcome.original_url!r}: {'; '.join(outcome.errors)}")
            return SubmissionResult(validation=outcome)

        job, created = self.store.create_or_get_active(
            outcome.cleaned_url, self.config.max_attempts, outcome.warnings
        )
        logger.log_job_submitted(job.id, job.listing_url, created)

        if created:
            try:
                self.queue.schedule(job.id)
            except RuntimeError as e:
                self._fail(job.id, f"Could not schedule job: {e}", FailureKind.TRANSIENT,
                           expected=(JobStatus.QUEUED,))
                raise

        return SubmissionResult(validation=outcome, job_id=job.id, status=job.status, created=created)

    def retry(self, job_id: str) -> SubmissionResult:
        """Resubmit a finished job's URL. Active jobs are returned unchanged."""
        job = self.store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")

        if job.is_active:
            return SubmissionResult(
                validation=self.validator.validate(job.listing_url),
                job_id=job.id, status=job.status, created=False
            )

        logger.info(f"Manual retry requested for {job.status.value} job", job_id=job_id)
        return self.submit(job.listing_url)

    # Attempts
    async def run_attempt(self, job_id: str) -> None:
        """Run one attempt for a queued or retrying job"""
        def begin(j: ScrapeJob):
            j.status = JobStatus.RUNNING
            j.attempt += 1
            j.next_retry_at = None
            if j.started_at is None:
                j.started_at = datetime.now()

        job = self.store.transition(job_id, begin, expected=(JobStatus.QUEUED, JobStatus.RETRYING))
        if job is None:
            logger.debug("Skipping attempt, job is not queued or retrying", job_id=job_id)
            return

        self.store.add_event(job_id, "attempt_started",
                             f"Attempt {job.attempt} of {job.max_attempts} started",
                             {'attempt': job.attempt})
        logger.log_attempt_start(job_id, job.attempt, job.max_attempts)
        start_time = time.monotonic()

        try:
            result = await self._attempt(job)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._handle_failure(job, e, time.monotonic() - start_time)
            return

        self._succeed(job, result, time.monotonic() - start_time)

    async def _attempt(self, job: ScrapeJob) -> ExtractionResult:
        outcome = self.validator.validate(job.listing_url)
        if not outcome.is_valid:
            raise ValidationError("; ".join(outcome.errors), outcome)

        timeout = self.config.attempt_timeout_seconds
        loop = asyncio.get_running_loop()
        raw = await asyncio.wait_for(
            loop.run_in_executor(None, self.fetcher.fetch, outcome.cleaned_url, timeout),
            timeout=timeout
        )
        return await self.engine.extract(raw, job_id=job.id)

    def _succeed(self, job: ScrapeJob, result: ExtractionResult, duration: float) -> None:
        def succeed(j: ScrapeJob):
            j.status = JobStatus.SUCCEEDED
            j.result = result
            j.last_error = None
            j.failure_kind = None
            j.next_retry_at = None
            j.finished_at = datetime.now()

        if self.store.transition(job.id, succeed, expected=(JobStatus.RUNNING,)) is None:
            return
        self.store.add_event(job.id, "job_succeeded", f"Extracted {len(result.photos)} photos",
                             {'attempt': job.attempt, 'photos': len(result.photos)})
        logger.log_attempt_succeeded(job.id, job.attempt, len(result.photos), duration)

    def _handle_failure(self, job: ScrapeJob, exc: Exception, duration: float) -> None:
        kind = classify_failure(exc)
        message = describe_failure(exc)

        if isinstance(exc, MergeInvariantViolation):
            logger.error(f"Merge invariant violated: {message}", job_id=job.id, exc_info=exc)
        elif not isinstance(exc, (FetchError, ValidationError, asyncio.TimeoutError)):
            logger.error(f"Unexpected error during attempt: {message}", job_id=job.id, exc_info=exc)
        logger.log_attempt_failed(job.id, job.attempt, message, kind.value, duration)

        if kind == FailureKind.TRANSIENT and job.attempt < job.max_attempts:
            self._schedule_retry(job, message)
        else:
            self._fail(job.id, message, kind, expected=(JobStatus.RUNNING,))
            logger.log_job_failed(job.id, message, job.attempt)

    def _schedule_retry(self, job: ScrapeJob, message: str) -> None:
        delay = compute_backoff(
            job.attempt,
            self.config.retry_base_delay_seconds,
            self.config.retry_backoff_multiplier,
            self.config.retry_max_delay_seconds
        )

        def mark_retrying(j: ScrapeJob):
            j.status = JobStatus.RETRYING
            j.last_error = message
            j.failure_kind = FailureKind.TRANSIENT
            j.next_retry_at = datetime.now() + timedelta(seconds=delay)

        if self.store.transition(job.id, mark_retrying, expected=(JobStatus.RUNNING,)) is None:
            return
        self.store.add_event(job.id, "retry_scheduled", f"Retrying in {delay:.2f} seconds: {message}",
                             {'attempt': job.attempt, 'delay_seconds': delay})
        logger.log_retry_scheduled(job.id, job.attempt + 1, delay)
        self.queue.schedule(job.id, delay)

    def _fail(self, job_id: str, message: str, kind: FailureKind, expected) -> bool:
        def mark_failed(j: ScrapeJob):
            j.status = JobStatus.FAILED
            j.last_error = message
            j.failure_kind = kind
            j.next_retry_at = None
            j.finished_at = datetime.now()

        if self.store.transition(job_id, mark_failed, expected=expected) is None:
            return False
        self.store.add_event(job_id, "job_failed", message, {'failure_kind': kind.value})
        return True

    # Retention
    def purge_finished(self, older_than: Optional[timedelta] = None) -> int:
        """Drop finished jobs older than the retention window"""
        window = older_than if older_than is not None else timedelta(hours=self.config.job_retention_hours)
        removed = self.store.purge_finished(window)
        if removed:
            logger.info(f"Purged {removed} finished jobs older than {window}")
        return removed

    def _maintenance(self) -> None:
        self.purge_finished()
