# fingoals/services/notifications.py
import logging
import math
import uuid
from datetime import datetime
from typing import Optional

from fingoals.models.goal import Goal
from fingoals.services.ports import NotificationDispatcher
from fingoals.services.progress import SECONDS_PER_DAY, utcnow

logger = logging.getLogger(__name__)

# Breakpoint -> (title, message template)
PROGRESS_MESSAGES = {
    25: ("Quarter Way There!", "You're 25% towards your goal \"{name}\". Keep it up!"),
    50: ("Halfway Point!", "You're 50% towards your goal \"{name}\". Great progress!"),
    75: ("Almost There!", "You're 75% towards your goal \"{name}\". The finish line is near!"),
    100: ("Target Reached!", "You've reached 100% of your goal \"{name}\"."),
}


def goal_link(goal: Goal) -> str:
    return f"/goals/{goal.id}"


def crossed_breakpoint(previous_pct: float, new_pct: float) -> Optional[int]:
    """Highest progress breakpoint passed going from ``previous_pct`` to ``new_pct``."""
    crossed = [b for b in PROGRESS_MESSAGES if previous_pct < b <= new_pct]
    return max(crossed) if crossed else None


class GoalNotifier:
    """
    Goal-specific wording on top of a notification dispatcher.

    Sending never raises: a dispatcher failure is logged and reported as
    ``False`` so the goal update that triggered it carries on.
    """

    def __init__(self, dispatcher: NotificationDispatcher):
        self.dispatcher = dispatcher

    async def _send(
        self,
        user_id: uuid.UUID,
        title: str,
        message: str,
        severity: str,
        action_url: Optional[str] = None,
    ) -> bool:
        try:
            await self.dispatcher.dispatch(user_id, title, message, severity, action_url)
            return True
        except Exception as e:
            logger.error(f"Failed to send '{title}' notification to user {user_id}: {e}")
            return False

    async def goal_created(self, goal: Goal) -> bool:
        return await self._send(
            goal.user_id,
            "Goal Created",
            f"Your goal \"{goal.name}\" has been created successfully!",
            "success",
            goal_link(goal),
        )

    async def goal_completed(self, goal: Goal) -> bool:
        return await self._send(
            goal.user_id,
            "Goal Completed! 🎉",
            f"Congratulations! You've completed your goal \"{goal.name}\"",
            "success",
            goal_link(goal),
        )

    async def progress(self, goal: Goal, breakpoint: int) -> bool:
        title, template = PROGRESS_MESSAGES[breakpoint]
        return await self._send(goal.user_id, title, template.format(name=goal.name), "info", goal_link(goal))

    async def deadline_reminder(self, goal: Goal, now: Optional[datetime] = None, window_days: int = 7) -> bool:
        """Remind about a goal due within ``window_days``; returns whether one was sent."""
        if not goal.target_date:
            return False

        now = now or utcnow()
        days_until = math.ceil((goal.target_date - now).total_seconds() / SECONDS_PER_DAY)
        if not 0 < days_until <= window_days:
            return False

        return await self._send(
            goal.user_id,
            "Goal Deadline Approaching",
            f"Your goal \"{goal.name}\" is due in {days_until} days. Time to push forward!",
            "warning",
            goal_link(goal),
        )

    async def goal_overdue(self, goal: Goal) -> bool:
        return await self._send(
            goal.user_id,
            "Goal Overdue",
            f"Your goal \"{goal.name}\" has passed its target date. Consider adjusting your timeline.",
            "error",
            goal_link(goal),
        )

    async def badge_earned(self, user_id: uuid.UUID, badge_name: str, badge_description: str) -> bool:
        return await self._send(
            user_id,
            "Badge Earned! 🏆",
            f"You've earned the \"{badge_name}\" badge: {badge_description}",
            "success",
            "/profile/badges",
        )

    async def level_up(self, user_id: uuid.UUID, new_level: int, level_title: str) -> bool:
        return await self._send(
            user_id,
            "Level Up! 🚀",
            f"Congratulations! You've reached Level {new_level}: {level_title}",
            "success",
            "/profile",
        )
