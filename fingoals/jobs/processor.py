# fingoals/jobs/processor.py
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from fingoals.jobs.queue import Job, JobQueue
from fingoals.schemas.goal import GoalFilters
from fingoals.services.goals import GoalService
from fingoals.services.notifications import GoalNotifier
from fingoals.services.ports import GoalStore
from fingoals.services.progress import utcnow

logger = logging.getLogger(__name__)

GOAL_PROGRESS_QUEUE = "goal-progress"
UPDATE_ALL_GOALS = "update-all-goals"
CHECK_GOAL_DEADLINES = "check-goal-deadlines"


class GoalProgressProcessor:
    """Handlers for the goal-progress queue."""

    def __init__(
        self,
        goals: GoalStore,
        service: GoalService,
        notifier: GoalNotifier,
        reminder_days: int = 7,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.goals = goals
        self.service = service
        self.notifier = notifier
        self.reminder_days = reminder_days
        self.clock = clock

    def register(self, queue: JobQueue) -> None:
        queue.register(UPDATE_ALL_GOALS, self.update_all_goals)
        queue.register(CHECK_GOAL_DEADLINES, self.check_goal_deadlines)

    async def update_all_goals(self, job: Optional[Job] = None) -> Dict[str, int]:
        """
        Recompute every active goal. A goal that fails is logged and skipped;
        failing to list the goals at all fails the job so the queue retries it.
        """
        logger.info("Starting automatic goal progress update")
        active_goals = await self.goals.find_many(GoalFilters(is_active=True))

        updated_count = 0
        for goal in active_goals:
            try:
                await self.service.update_progress(goal.id, goal.user_id)
                updated_count += 1
            except Exception as e:
                logger.error(f"Failed to update progress for goal {goal.id}: {e}")

        logger.info(f"Updated progress for {updated_count} of {len(active_goals)} goals")
        return {"updated_count": updated_count, "total_goals": len(active_goals)}

    async def check_goal_deadlines(self, job: Optional[Job] = None) -> Dict[str, int]:
        logger.info("Checking goal deadlines for reminders")
        now = self.clock()
        window_end = now + timedelta(days=self.reminder_days)

        approaching = await self.goals.find_many(
            GoalFilters(is_active=True, target_date_from=now, target_date_to=window_end)
        )
        overdue = await self.goals.find_many(GoalFilters(is_active=True, target_date_before=now))

        reminders_sent = 0
        for goal in approaching:
            if await self.notifier.deadline_reminder(goal, now, self.reminder_days):
                reminders_sent += 1

        overdue_sent = 0
        for goal in overdue:
            if await self.notifier.goal_overdue(goal):
                overdue_sent += 1

        logger.info(f"Sent {reminders_sent} reminder and {overdue_sent} overdue notifications")
        return {"reminders_sent": reminders_sent, "overdue_sent": overdue_sent}
