"""
In-memory job store for scrape jobs.
The store lock is the only synchronization point for job state; every
mutation goes through transition() so readers always see whole states.
"""

import uuid
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from dataclasses import dataclass, field, replace
from enum import Enum

from listing_scraper.models.listing import ExtractionResult

class JobStatus(Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    RETRYING = "retrying"

ACTIVE_STATUSES = frozenset({JobStatus.QUEUED, JobStatus.RUNNING, JobStatus.RETRYING})
TERMINAL_STATUSES = frozenset({JobStatus.SUCCEEDED, JobStatus.FAILED})

class FailureKind(Enum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"

@dataclass
class JobEvent:
    """Represents a lifecycle event for a job"""
    job_id: str = ""
    event_type: str = ""
    message: str = ""
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'event_type': self.event_type,
            'message': self.message,
            'timestamp': self.timestamp.isoformat(),
            'metadata': self.metadata
        }

@dataclass
class ScrapeJob:
    """Represents one request to scrape a listing URL"""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    listing_url: str = ""
    status: JobStatus = JobStatus.QUEUED
    attempt: int = 0
    max_attempts: int = 5
    last_error: Optional[str] = None
    failure_kind: Optional[FailureKind] = None
    next_retry_at: Optional[datetime] = None
    result: Optional[ExtractionResult] = None
    warnings: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    events: List[JobEvent] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def copy(self) -> 'ScrapeJob':
        # Results are frozen, only the lists need copying
        return replace(self, warnings=list(self.warnings), events=list(self.events))

@dataclass
class QueueStats:
    """Job counts by status"""
    queued: int = 0
    running: int = 0
    retrying: int = 0
    succeeded: int = 0
    failed: int = 0
    total_jobs: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'queued': self.queued,
            'running': self.running,
            'retrying': self.retrying,
            'succeeded': self.succeeded,
            'failed': self.failed,
            'total_jobs': self.total_jobs
        }

class JobStore:
    """In-memory storage for scrape jobs with single-flight lookup by URL"""

    def __init__(self):
        self._jobs: Dict[str, ScrapeJob] = {}
        self._active_by_url: Dict[str, str] = {}  # listing_url -> job_id
        self._lock = threading.RLock()

    def create_or_get_active(self, listing_url: str, max_attempts: int,
                             warnings: Iterable[str] = ()) -> Tuple[ScrapeJob, bool]:
        """Return the active job for a URL, or create a queued one. The flag is True when created."""
        with self._lock:
            job_id = self._active_by_url.get(listing_url)
            if job_id is not None:
                return self._jobs[job_id].copy(), False

            job = ScrapeJob(listing_url=listing_url, max_attempts=max_attempts, warnings=list(warnings))
            job.events.append(JobEvent(job_id=job.id, event_type="job_submitted",
                                       message=f"Job submitted for {listing_url}"))
            self._jobs[job.id] = job
            self._active_by_url[listing_url] = job.id
            return job.copy(), True

    def get_job(self, job_id: str) -> Optional[ScrapeJob]:
        """Get a snapshot copy of a job by ID"""
        with self._lock:
            job = self._jobs.get(job_id)
            return job.copy() if job else None

    def transition(self, job_id: str, fn: Callable[[ScrapeJob], None],
                   expected: Optional[Iterable[JobStatus]] = None) -> Optional[ScrapeJob]:
        """Apply fn to a job atomically. Returns the updated snapshot, or None when
        the job is unknown or not in one of the expected statuses."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            if expected is not None and job.status not in set(expected):
                return None

            fn(job)
            job.updated_at = datetime.now()

            if not job.is_active and self._active_by_url.get(job.listing_url) == job.id:
                del self._active_by_url[job.listing_url]
            return job.copy()

    def add_event(self, job_id: str, event_type: str, message: str,
                  metadata: Optional[Dict[str, Any]] = None) -> Optional[JobEvent]:
        """Append a lifecycle event to a job"""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            event = JobEvent(job_id=job_id, event_type=event_type, message=message, metadata=metadata)
            job.events.append(event)
            return event

    def get_events(self, job_id: str) -> List[JobEvent]:
        with self._lock:
            job = self._jobs.get(job_id)
            return list(job.events) if job else []

    def get_all_jobs(self, status: Optional[JobStatus] = None) -> List[ScrapeJob]:
        """Get all jobs, newest first, with optional status filter"""
        with self._lock:
            jobs = list(reversed(self._jobs.values()))
            if status:
                jobs = [job for job in jobs if job.status == status]
            return [job.copy() for job in jobs]

    def delete_job(self, job_id: str) -> bool:
        with self._lock:
            job = self._jobs.pop(job_id, None)
            if job is None:
                return False
            if self._active_by_url.get(job.listing_url) == job_id:
                del self._active_by_url[job.listing_url]
            return True

    def purge_finished(self, older_than: timedelta) -> int:
        """Remove terminal jobs that finished before now - older_than"""
        cutoff = datetime.now() - older_than
        with self._lock:
            stale = [
                job_id for job_id, job in self._jobs.items()
                if job.is_terminal and (job.finished_at or job.updated_at) < cutoff
            ]
            for job_id in stale:
                del self._jobs[job_id]
            return len(stale)

    def get_queue_stats(self) -> QueueStats:
        """Get job counts by status"""
        with self._lock:
            all_jobs = list(self._jobs.values())
            return QueueStats(
                queued=len([j for j in all_jobs if j.status == JobStatus.QUEUED]),
                running=len([j for j in all_jobs if j.status == JobStatus.RUNNING]),
                retrying=len([j for j in all_jobs if j.status == JobStatus.RETRYING]),
                succeeded=len([j for j in all_jobs if j.status == JobStatus.SUCCEEDED]),
                failed=len([j for j in all_jobs if j.status == JobStatus.FAILED]),
                total_jobs=len(all_jobs)
            )
