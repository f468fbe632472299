"""
In-process background job runner.

Jobs are kept in memory, started in FIFO order, and run as asyncio tasks
with at most ``concurrency`` of them in flight at once.
"""
import asyncio
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Set

from ..core.config import settings
from ..core.logging import logger
from ..models.job import Job, JobStatus
from ..pipeline.state import JOB, check_transition
from ..utils.cancellation import CancellationToken

# Job fields a handler may overwrite through ``update``
UPDATABLE_FIELDS = ("progress", "result", "error")

CANCELLED_MESSAGE = "Job cancelled"


@dataclass
class JobContext:
    """What a job handler receives: its job, its cancellation token and a progress callback."""
    job: Job
    cancel_token: CancellationToken
    update: Callable[[Dict[str, Any]], Optional[Job]]


JobHandler = Callable[[JobContext], Awaitable[Any]]


class JobRunner:
    """
    Bounded-concurrency runner for background jobs.

    ``enqueue`` only records the job and triggers dispatch; a handler's
    exception marks its job FAILED and never escapes the runner.
    """

    def __init__(self, concurrency: Optional[int] = None, retain_finished: Optional[int] = None):
        self.concurrency = max(1, int(concurrency or settings.JOBS_CONCURRENCY))
        self.retain_finished = max(1, int(retain_finished or settings.JOBS_RETAIN_FINISHED))
        self._jobs: Dict[str, Job] = {}
        self._handlers: Dict[str, JobHandler] = {}
        self._tokens: Dict[str, CancellationToken] = {}
        self._queue: Deque[str] = deque()
        self._finished: Deque[str] = deque()
        self._tasks: Set[asyncio.Task] = set()
        self._active = 0

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def queued_count(self) -> int:
        return len(self._queue)

    def enqueue(self, job_type: str, input: Any, handler: JobHandler) -> Job:
        """
        Register a job and schedule it.

        Args:
            job_type: Job type label
            input: Arbitrary job input, kept on the Job for inspection
            handler: Coroutine function called with a JobContext

        Returns:
            The new QUEUED job
        """
        job = Job(type=job_type, input=input)
        self._jobs[job.id] = job
        self._handlers[job.id] = handler
        self._tokens[job.id] = CancellationToken()
        self._queue.append(job.id)
        logger.info(f"Queued job {job.id} ({job_type})")
        self._drain()
        return job

    def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def list(self) -> List[Job]:
        """All known jobs, newest first."""
        return list(reversed(list(self._jobs.values())))

    def update(self, job_id: str, patch: Dict[str, Any]) -> Optional[Job]:
        """
        Overwrite a job's progress, result or error.

        Unknown keys are ignored; status is owned by the runner.
        """
        job = self._jobs.get(job_id)
        if job is None:
            return None
        for key, value in patch.items():
            if key in UPDATABLE_FIELDS:
                setattr(job, key, value)
        return job

    def cancel(self, job_id: str, reason: str = CANCELLED_MESSAGE) -> bool:
        """
        Request cooperative cancellation of a job.

        Returns:
            True if the job exists and has not finished yet
        """
        job = self._jobs.get(job_id)
        if job is None or job.is_terminal:
            return False
        self._tokens[job_id].cancel(reason)
        logger.info(f"Cancellation requested for job {job_id}")
        return True

    async def join(self) -> None:
        """Wait until every queued and running job has finished."""
        self._drain()
        while self._tasks:
            # wait() leaves the jobs running if this coroutine is cancelled
            await asyncio.wait(list(self._tasks))
            await asyncio.sleep(0)

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """
        Cancel every job's token and wait for the runner to go idle.

        Tasks still running after ``timeout`` seconds are cancelled outright.
        """
        for token in list(self._tokens.values()):
            token.cancel("Job runner shutting down")
        try:
            await asyncio.wait_for(self.join(), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Job runner shutdown timed out; cancelling {len(self._tasks)} task(s)")
            for task in list(self._tasks):
                task.cancel()
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _drain(self) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; queued jobs start on the next dispatch from inside one
            return

        while self._active < self.concurrency and self._queue:
            job_id = self._queue.popleft()
            handler = self._handlers.pop(job_id)
            self._active += 1
            task = asyncio.create_task(self._run(job_id, handler), name=f"job-{job_id}")
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        self._active -= 1
        self._drain()

    def _transition(self, job: Job, status: JobStatus) -> None:
        check_transition(JOB, job.status, status)
        job.status = status

    def _fail(self, job: Job, message: str) -> None:
        self._transition(job, JobStatus.FAILED)
        job.error = {"message": message}
        job.progress = {"stage": "failed"}
        job.finished_at = datetime.now(timezone.utc)

    async def _run(self, job_id: str, handler: JobHandler) -> None:
        job = self._jobs[job_id]
        self._transition(job, JobStatus.RUNNING)
        job.started_at = datetime.now(timezone.utc)
        job.progress = {"stage": "running"}
        logger.info(f"Started job {job_id} ({job.type})")

        context = JobContext(job=job, cancel_token=self._tokens[job_id], update=partial(self.update, job_id))
        try:
            result = await handler(context)
        except asyncio.CancelledError:
            self._fail(job, CANCELLED_MESSAGE)
            raise
        except Exception as e:
            logger.error(f"Job {job_id} failed: {e}", exc_info=True)
            self._fail(job, str(e) or e.__class__.__name__)
        else:
            self._transition(job, JobStatus.SUCCEEDED)
            job.result = result
            job.progress = {"stage": "done"}
            job.finished_at = datetime.now(timezone.utc)
            logger.info(f"Completed job {job_id}")
        finally:
            self._release(job_id)

    def _release(self, job_id: str) -> None:
        """Drop a finished job's token and evict the oldest finished jobs beyond the retention cap."""
        self._tokens.pop(job_id, None)
        self._finished.append(job_id)
        while len(self._finished) > self.retain_finished:
            evicted = self._finished.popleft()
            self._jobs.pop(evicted, None)
            logger.debug(f"Evicted finished job {evicted}")
