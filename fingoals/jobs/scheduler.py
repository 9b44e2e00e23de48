# fingoals/jobs/scheduler.py
import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List

from fingoals.jobs.cron import CronSchedule
from fingoals.jobs.processor import CHECK_GOAL_DEADLINES, UPDATE_ALL_GOALS
from fingoals.jobs.queue import Job, JobPriority, JobQueue, RetryPolicy
from fingoals.services.progress import utcnow

logger = logging.getLogger(__name__)


class GoalScheduler:
    """Two timers feeding the goal-progress queue, plus a manual trigger."""

    def __init__(
        self,
        queue: JobQueue,
        progress_schedule: CronSchedule,
        deadline_schedule: CronSchedule,
        policy: RetryPolicy,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.queue = queue
        self.progress_schedule = progress_schedule
        self.deadline_schedule = deadline_schedule
        self.policy = policy
        self.clock = clock
        self._sleep = sleep
        self._tasks: List[asyncio.Task] = []

    async def schedule_goal_progress_update(self) -> Job:
        logger.info("Scheduling goal progress update")
        return await self.queue.add(UPDATE_ALL_GOALS, {}, self.policy)

    async def schedule_goal_deadline_check(self) -> Job:
        logger.info("Scheduling goal deadline check")
        return await self.queue.add(CHECK_GOAL_DEADLINES, {}, self.policy)

    async def trigger_manual_update(self) -> Job:
        logger.info("Manual goal progress update triggered")
        return await self.queue.add(UPDATE_ALL_GOALS, {}, self.policy, priority=JobPriority.ELEVATED)

    async def run_timer(self, schedule: CronSchedule, enqueue: Callable[[], Awaitable[Job]]) -> None:
        while True:
            now = self.clock()
            fire_at = schedule.next_after(now)
            await self._sleep(max(0.0, (fire_at - now).total_seconds()))
            try:
                await enqueue()
            except Exception as e:
                # A failed enqueue must not stop the timer
                logger.error(f"Failed to enqueue job for {schedule}: {e}")

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self.run_timer(self.progress_schedule, self.schedule_goal_progress_update)),
            asyncio.create_task(self.run_timer(self.deadline_schedule, self.schedule_goal_deadline_check)),
        ]
        logger.info(f"Goal scheduler started ({self.progress_schedule}, {self.deadline_schedule})")

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
