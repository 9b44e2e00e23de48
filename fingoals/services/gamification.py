# fingoals/services/gamification.py
"""Experience, levels and badges.

The catalog and level table are immutable module-level data, safe to share
across tasks. Experience is the sum of an append-only ledger; badges are
evaluated from live goal counts and remembered once earned.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from fingoals.models.gamification import ExperienceLedgerEntry, UserBadge
from fingoals.models.goal import GoalState, GoalType
from fingoals.schemas.goal import GoalFilters
from fingoals.services.notifications import GoalNotifier
from fingoals.services.ports import GamificationStore, GoalStore
from fingoals.services.progress import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Badge:
    id: str
    name: str
    description: str
    icon: str
    category: str            # achievement, milestone, streak
    requirement_kind: str    # goals_created, goal_completion, savings_amount, streak_days
    threshold: float


@dataclass(frozen=True)
class Level:
    level: int
    min_experience: int
    max_experience: int
    title: str
    benefits: Tuple[str, ...]


@dataclass(frozen=True)
class ExperienceGain:
    action: str
    points: int
    description: str


@dataclass(frozen=True)
class UserStats:
    total_goals: int
    completed_goals: int
    active_goals: int
    total_saved: float


@dataclass
class EarnedBadge:
    badge: Badge
    earned_at: datetime


BADGES: Tuple[Badge, ...] = (
    Badge("first_goal", "Goal Setter", "Created your first financial goal", "🎯", "achievement", "goals_created", 1),
    Badge("goal_master", "Goal Master", "Created 5 financial goals", "🏆", "achievement", "goals_created", 5),
    Badge("first_completion", "Achiever", "Completed your first goal", "✅", "achievement", "goal_completion", 1),
    Badge("goal_champion", "Goal Champion", "Completed 5 goals", "🏅", "achievement", "goal_completion", 5),
    Badge("saver_bronze", "Bronze Saver", "Saved $1,000", "🥉", "milestone", "savings_amount", 1000),
    Badge("saver_silver", "Silver Saver", "Saved $5,000", "🥈", "milestone", "savings_amount", 5000),
    Badge("saver_gold", "Gold Saver", "Saved $10,000", "🥇", "milestone", "savings_amount", 10000),
    Badge("streak_week", "Weekly Warrior", "Maintained progress for 7 days", "🔥", "streak", "streak_days", 7),
    Badge("streak_month", "Monthly Master", "Maintained progress for 30 days", "🌟", "streak", "streak_days", 30),
    Badge("streak_legend", "Streak Legend", "Maintained progress for 100 days", "👑", "streak", "streak_days", 100),
)

LEVELS: Tuple[Level, ...] = (
    Level(1, 0, 100, "Beginner", ("Basic goal tracking",)),
    Level(2, 100, 250, "Saver", ("Progress insights", "Basic badges")),
    Level(3, 250, 500, "Planner", ("Goal suggestions", "Streak tracking")),
    Level(4, 500, 1000, "Achiever", ("Advanced analytics", "Custom goals")),
    Level(5, 1000, 2000, "Expert", ("Goal automation", "Premium insights")),
    Level(6, 2000, 5000, "Master", ("All features", "Priority support")),
    Level(7, 5000, 10000, "Legend", ("Exclusive features", "Beta access")),
)

EXPERIENCE_GAINS: Dict[str, ExperienceGain] = {
    "goal_created": ExperienceGain("goal_created", 10, "Created a new goal"),
    "goal_completed": ExperienceGain("goal_completed", 50, "Completed a goal"),
    "milestone_reached": ExperienceGain("milestone_reached", 25, "Reached a milestone"),
    "streak_maintained": ExperienceGain("streak_maintained", 5, "Maintained streak"),
}

MILESTONES: Tuple[int, ...] = (25, 50, 75, 100)

# Awards that may be logged only once per goal (and milestone)
_ONCE_PER_GOAL = {"goal_completed", "milestone_reached"}


def get_badge(badge_id: str) -> Optional[Badge]:
    return next((b for b in BADGES if b.id == badge_id), None)


def points_for(action: str) -> int:
    gain = EXPERIENCE_GAINS.get(action)
    return gain.points if gain else 0


def calculate_level(experience: int) -> Level:
    for level in reversed(LEVELS):
        if experience >= level.min_experience:
            return level
    return LEVELS[0]


def next_level_experience(level: Level) -> int:
    following = next((l for l in LEVELS if l.level == level.level + 1), None)
    return following.min_experience if following else level.max_experience


def milestones_reached(progress_percentage: float) -> List[int]:
    return [m for m in MILESTONES if progress_percentage >= m]


def badge_satisfied(badge: Badge, stats: UserStats, streak_days: int = 0) -> bool:
    if badge.requirement_kind == "goals_created":
        return stats.total_goals >= badge.threshold
    if badge.requirement_kind == "goal_completion":
        return stats.completed_goals >= badge.threshold
    if badge.requirement_kind == "savings_amount":
        return stats.total_saved >= badge.threshold
    if badge.requirement_kind == "streak_days":
        return streak_days >= badge.threshold
    return False


class GamificationService:
    def __init__(self, goals: GoalStore, store: GamificationStore, notifier: GoalNotifier):
        self.goals = goals
        self.store = store
        self.notifier = notifier

    async def get_user_stats(self, user_id: uuid.UUID) -> UserStats:
        goals = await self.goals.find_many(GoalFilters(), user_id=user_id)
        return UserStats(
            total_goals=len(goals),
            completed_goals=sum(1 for g in goals if g.state == GoalState.COMPLETED.value),
            active_goals=sum(1 for g in goals if g.is_active),
            total_saved=sum(float(g.current_amount or 0) for g in goals if g.type == GoalType.SAVINGS.value),
        )

    async def get_user_experience(self, user_id: uuid.UUID) -> int:
        return await self.store.total_experience(user_id)

    async def award_experience(
        self,
        user_id: uuid.UUID,
        action: str,
        goal_id: Optional[uuid.UUID] = None,
        milestone: Optional[int] = None,
    ) -> bool:
        """
        Append an award to the ledger. Completion and milestone awards are
        logged at most once per goal (and milestone); returns False when the
        award was skipped.
        """
        gain = EXPERIENCE_GAINS.get(action)
        if not gain:
            logger.warning(f"Unknown experience action '{action}' for user {user_id}")
            return False

        if action in _ONCE_PER_GOAL and goal_id is not None:
            if await self.store.has_entry(user_id, action, goal_id=goal_id, milestone=milestone):
                return False

        before = calculate_level(await self.store.total_experience(user_id))
        await self.store.add_entry(
            ExperienceLedgerEntry(
                id=uuid.uuid4(),
                user_id=user_id,
                action=action,
                points=gain.points,
                goal_id=goal_id,
                milestone=milestone,
                created_at=utcnow(),
            )
        )
        logger.info(f"User {user_id} gained {gain.points} XP for {gain.description.lower()}")

        after = calculate_level(await self.store.total_experience(user_id))
        if after.level > before.level:
            await self.notifier.level_up(user_id, after.level, after.title)
        return True

    async def check_milestones(self, user_id: uuid.UUID, goal_id: uuid.UUID, progress_percentage: float) -> List[int]:
        awarded = []
        for milestone in milestones_reached(progress_percentage):
            if await self.award_experience(user_id, "milestone_reached", goal_id, milestone=milestone):
                awarded.append(milestone)
        return awarded

    async def get_user_badges(self, user_id: uuid.UUID, stats: Optional[UserStats] = None) -> List[EarnedBadge]:
        stats = stats or await self.get_user_stats(user_id)
        recorded = {b.badge_id: b.earned_at for b in await self.store.list_badges(user_id)}
        now = utcnow()

        earned = []
        for badge in BADGES:
            if badge.id in recorded:
                earned.append(EarnedBadge(badge, recorded[badge.id]))
            elif badge_satisfied(badge, stats):
                earned.append(EarnedBadge(badge, now))
        return earned

    async def check_badges(self, user_id: uuid.UUID) -> List[Badge]:
        """Record badges satisfied for the first time and announce them."""
        stats = await self.get_user_stats(user_id)
        recorded = {b.badge_id for b in await self.store.list_badges(user_id)}

        new_badges = []
        for badge in BADGES:
            if badge.id in recorded or not badge_satisfied(badge, stats):
                continue
            await self.store.add_badge(UserBadge(id=uuid.uuid4(), user_id=user_id, badge_id=badge.id, earned_at=utcnow()))
            await self.notifier.badge_earned(user_id, badge.name, badge.description)
            new_badges.append(badge)
        return new_badges

    async def get_user_streaks(self, user_id: uuid.UUID) -> List[Dict]:
        # TODO: populate from a daily activity ledger once transactions record goal activity
        return []

    async def get_gamification_data(self, user_id: uuid.UUID) -> Dict:
        stats = await self.get_user_stats(user_id)
        experience = await self.get_user_experience(user_id)
        level = calculate_level(experience)
        badges = await self.get_user_badges(user_id, stats)

        return {
            "user_id": user_id,
            "total_goals": stats.total_goals,
            "completed_goals": stats.completed_goals,
            "active_goals": stats.active_goals,
            "total_saved": stats.total_saved,
            "badges": [_badge_dict(e) for e in badges],
            "streaks": await self.get_user_streaks(user_id),
            "level": level.level,
            "level_title": level.title,
            "experience": experience,
            "next_level_experience": next_level_experience(level),
        }


def _badge_dict(earned: EarnedBadge) -> Dict:
    badge = earned.badge
    return {
        "id": badge.id,
        "name": badge.name,
        "description": badge.description,
        "icon": badge.icon,
        "category": badge.category,
        "earned_at": earned.earned_at,
    }


def badge_names(badges: Sequence[EarnedBadge]) -> List[str]:
    return [e.badge.name for e in badges]
