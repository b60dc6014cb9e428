"""
Read-only view of scrape jobs for callers and the HTTP API.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from listing_scraper.models.listing import ExtractionResult
from listing_scraper.orchestration.job_queue import JobQueue
from listing_scraper.storage.memory_store import FailureKind, JobEvent, JobStatus, JobStore, ScrapeJob

@dataclass(frozen=True)
class JobSnapshot:
    """Immutable copy of a job's state at the moment it was read"""
    job_id: str
    listing_url: str
    status: JobStatus
    attempt: int
    max_attempts: int
    last_error: Optional[str]
    failure_kind: Optional[FailureKind]
    next_retry_at: Optional[datetime]
    result: Optional[ExtractionResult]
    warnings: tuple
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime]
    finished_at: Optional[datetime]

    @classmethod
    def from_job(cls, job: ScrapeJob) -> 'JobSnapshot':
        return cls(
            job_id=job.id,
            listing_url=job.listing_url,
            status=job.status,
            attempt=job.attempt,
            max_attempts=job.max_attempts,
            last_error=job.last_error,
            failure_kind=job.failure_kind,
            next_retry_at=job.next_retry_at,
            result=job.result,
            warnings=tuple(job.warnings),
            created_at=job.created_at,
            updated_at=job.updated_at,
            started_at=job.started_at,
            finished_at=job.finished_at
        )

    @property
    def can_retry_later(self) -> bool:
        """True while a retry is pending, or when the job failed for a transient reason"""
        if self.status == JobStatus.RETRYING:
            return True
        return self.status == JobStatus.FAILED and self.failure_kind == FailureKind.TRANSIENT

    def to_dict(self, include_result: bool = True) -> Dict[str, Any]:
        data = {
            'job_id': self.job_id,
            'listing_url': self.listing_url,
            'status': self.status.value,
            'attempt': self.attempt,
            'max_attempts': self.max_attempts,
            'last_error': self.last_error,
            'failure_kind': self.failure_kind.value if self.failure_kind else None,
            'can_retry_later': self.can_retry_later,
            'next_retry_at': self.next_retry_at.isoformat() if self.next_retry_at else None,
            'warnings': list(self.warnings),
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'finished_at': self.finished_at.isoformat() if self.finished_at else None
        }
        if include_result:
            data['result'] = self.result.to_dict() if self.result else None
        return data

class StatusReporter:
    """Answers status queries without touching job state"""

    def __init__(self, store: JobStore, queue: Optional[JobQueue] = None):
        self.store = store
        self.queue = queue

    def get_status(self, job_id: str) -> Optional[JobSnapshot]:
        job = self.store.get_job(job_id)
        return JobSnapshot.from_job(job) if job else None

    def list_jobs(self, status: Optional[JobStatus] = None, limit: Optional[int] = None) -> List[JobSnapshot]:
        """Jobs newest first"""
        jobs = self.store.get_all_jobs(status)
        if limit is not None:
            jobs = jobs[:limit]
        return [JobSnapshot.from_job(job) for job in jobs]

    def get_events(self, job_id: str) -> List[JobEvent]:
        return self.store.get_events(job_id)

    def get_queue_stats(self) -> Dict[str, Any]:
        stats = self.store.get_queue_stats().to_dict()
        if self.queue is not None:
            workers = self.queue.get_worker_info()
            stats['queue_length'] = self.queue.queue_length()
            stats['active_workers'] = len([w for w in workers if w['current_job_id']])
            stats['workers'] = workers
        return stats
