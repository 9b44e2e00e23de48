# fingoals/jobs/queue.py
"""
In-process job queue with per-job retry and backoff.

Jobs are ordered by priority (lower runs first), then by arrival. A failing
handler is retried in place, sleeping ``policy.delay_for(attempt)`` between
attempts; once the attempts are exhausted the job is marked failed and
dropped.
"""
import asyncio
import enum
import itertools
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

from fingoals.services.progress import utcnow

logger = logging.getLogger(__name__)


class JobPriority(enum.IntEnum):
    ELEVATED = 1
    NORMAL = 10


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_delay: float = 2.0
    backoff_type: str = "exponential"  # or "fixed"

    def delay_for(self, failed_attempts: int) -> float:
        if self.backoff_type == "fixed":
            return self.backoff_delay
        return self.backoff_delay * (2 ** (failed_attempts - 1))


@dataclass
class Job:
    name: str
    payload: Dict[str, Any] = field(default_factory=dict)
    policy: RetryPolicy = field(default_factory=RetryPolicy)
    priority: int = JobPriority.NORMAL
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    enqueued_at: datetime = field(default_factory=utcnow)
    status: str = "waiting"  # waiting, active, completed, failed
    attempts_made: int = 0
    result: Any = None
    failed_reason: Optional[str] = None


JobHandler = Callable[[Job], Awaitable[Any]]


class JobQueue:
    def __init__(
        self,
        name: str,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        history_size: int = 100,
    ):
        self.name = name
        self._sleep = sleep
        self._handlers: Dict[str, JobHandler] = {}
        self._queue: "asyncio.PriorityQueue[tuple]" = asyncio.PriorityQueue()
        self._sequence = itertools.count()
        self._workers: List[asyncio.Task] = []
        self.history: Deque[Job] = deque(maxlen=history_size)

    def register(self, job_name: str, handler: JobHandler) -> None:
        self._handlers[job_name] = handler

    async def add(
        self,
        job_name: str,
        payload: Optional[Dict[str, Any]] = None,
        policy: Optional[RetryPolicy] = None,
        priority: int = JobPriority.NORMAL,
    ) -> Job:
        job = Job(name=job_name, payload=payload or {}, policy=policy or RetryPolicy(), priority=priority)
        await self._queue.put((job.priority, next(self._sequence), job))
        logger.debug(f"Queued job {job.name} ({job.id}) on '{self.name}' with priority {job.priority}")
        return job

    def pending(self) -> int:
        return self._queue.qsize()

    async def process_next(self) -> Job:
        """Wait for the next job and run it to completion or exhaustion."""
        _, _, job = await self._queue.get()
        try:
            await self._execute(job)
        finally:
            self._queue.task_done()
            self.history.append(job)
        return job

    async def _execute(self, job: Job) -> None:
        handler = self._handlers.get(job.name)
        if handler is None:
            job.status = "failed"
            job.failed_reason = f"No handler registered for '{job.name}'"
            logger.error(f"Dropping job {job.id}: {job.failed_reason}")
            return

        job.status = "active"
        while True:
            job.attempts_made += 1
            try:
                job.result = await handler(job)
                job.status = "completed"
                return
            except asyncio.CancelledError:
                raise
            except Exception as e:
                job.failed_reason = str(e)
                if job.attempts_made >= job.policy.max_attempts:
                    job.status = "failed"
                    logger.error(
                        f"Job {job.name} ({job.id}) failed after {job.attempts_made} attempts: {e}"
                    )
                    return

                delay = job.policy.delay_for(job.attempts_made)
                logger.warning(
                    f"Job {job.name} ({job.id}) failed: {e}. "
                    f"Retrying in {delay:.2f}s... (Attempt {job.attempts_made}/{job.policy.max_attempts})"
                )
                await self._sleep(delay)

    async def _worker(self, index: int) -> None:
        logger.info(f"Worker {index} listening on queue '{self.name}'")
        while True:
            await self.process_next()

    def start(self, concurrency: int = 1) -> None:
        if self._workers:
            return
        self._workers = [asyncio.create_task(self._worker(i)) for i in range(concurrency)]

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
