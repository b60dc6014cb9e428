"""
Background job queue and worker pool.
Runs an asyncio event loop on a daemon thread; a fixed pool of worker tasks
pulls job ids from an asyncio.Queue and hands them to the job handler.
"""

import asyncio
import threading
from typing import Awaitable, Callable, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime

from listing_scraper.utils.logging_config import get_logger

logger = get_logger()

JobHandler = Callable[[str], Awaitable[None]]

@dataclass
class WorkerInfo:
    """Information about a worker"""
    worker_id: str
    is_active: bool = True
    current_job_id: Optional[str] = None
    jobs_processed: int = 0
    last_activity: datetime = field(default_factory=datetime.now)

class JobQueue:
    """Thread-safe scheduling onto a bounded pool of async workers"""

    def __init__(self, max_concurrent_jobs: int = 3, maintenance_interval_seconds: float = 60.0):
        self.max_concurrent_jobs = max_concurrent_jobs
        self.maintenance_interval_seconds = maintenance_interval_seconds
        self.workers: Dict[str, WorkerInfo] = {}
        self.is_running = False
        self._handler: Optional[JobHandler] = None
        self._maintenance: Optional[Callable[[], None]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._lock = threading.Lock()

    def start(self, handler: JobHandler, maintenance: Optional[Callable[[], None]] = None) -> None:
        """Start the event loop thread and worker tasks"""
        with self._lock:
            if self.is_running:
                return
            self._handler = handler
            self._maintenance = maintenance
            self._ready.clear()
            self._thread = threading.Thread(target=self._run_loop, name="scrape-job-queue", daemon=True)
            self._thread.start()

        if not self._ready.wait(timeout=5):
            raise RuntimeError("Job queue event loop failed to start")
        logger.info(f"Job queue started with {self.max_concurrent_jobs} workers")

    def _run_loop(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._queue = asyncio.Queue()

        for index in range(self.max_concurrent_jobs):
            loop.create_task(self._worker(f"worker_{index + 1}"))
        if self._maintenance is not None:
            loop.create_task(self._maintenance_loop())

        self.is_running = True
        loop.call_soon(self._ready.set)
        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.close()
            self.is_running = False

    def schedule(self, job_id: str, delay_seconds: float = 0.0) -> None:
        """Queue a job for processing, optionally after a delay. Safe to call from any thread."""
        if not self.is_running or self._loop is None:
            raise RuntimeError("Job queue not started. Call start() first.")
        self._loop.call_soon_threadsafe(self._enqueue, job_id, delay_seconds)

    def _enqueue(self, job_id: str, delay_seconds: float) -> None:
        if delay_seconds > 0:
            self._loop.call_later(delay_seconds, self._queue.put_nowait, job_id)
        else:
            self._queue.put_nowait(job_id)

    async def _worker(self, worker_id: str) -> None:
        worker = WorkerInfo(worker_id=worker_id)
        self.workers[worker_id] = worker
        logger.debug(f"Created worker: {worker_id}")

        while True:
            job_id = await self._queue.get()
            worker.current_job_id = job_id
            worker.last_activity = datetime.now()
            try:
                await self._handler(job_id)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error processing job {job_id} in worker {worker_id}: {str(e)}",
                             job_id=job_id, exc_info=True)
            finally:
                worker.current_job_id = None
                worker.jobs_processed += 1
                worker.last_activity = datetime.now()
                self._queue.task_done()

    async def _maintenance_loop(self) -> None:
        while True:
            await asyncio.sleep(self.maintenance_interval_seconds)
            try:
                self._maintenance()
            except Exception as e:
                logger.error(f"Error in queue maintenance: {str(e)}", exc_info=True)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the event loop; in-flight attempts are cancelled"""
        with self._lock:
            if not self.is_running or self._loop is None:
                return
            self._loop.call_soon_threadsafe(self._loop.stop)
            thread = self._thread

        if thread is not None:
            thread.join(timeout)
        self.workers.clear()
        logger.info("Job queue stopped")

    def queue_length(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def get_worker_info(self) -> List[Dict]:
        """Get information about all workers"""
        return [
            {
                'worker_id': worker.worker_id,
                'is_active': worker.is_active,
                'current_job_id': worker.current_job_id,
                'jobs_processed': worker.jobs_processed,
                'last_activity': worker.last_activity.isoformat()
            }
            for worker in list(self.workers.values())
        ]
