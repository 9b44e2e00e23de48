# fingoals/services/goals.py
import asyncio
import logging
import uuid
import weakref
from datetime import datetime
from typing import Any, Dict, List, Optional

from fingoals.core.exceptions import CategoryNotFoundError, GoalNotFoundError, GoalValidationError
from fingoals.models.goal import Goal, GoalState, GoalType
from fingoals.schemas.goal import GoalCreate, GoalFilters, GoalUpdate
from fingoals.services.gamification import GamificationService, badge_names
from fingoals.services.notifications import GoalNotifier, crossed_breakpoint
from fingoals.services.ports import AggregationSource, CategoryLookup, GoalStore
from fingoals.services.progress import (
    GoalProgress,
    calculate_goal_progress,
    progress_percentage,
    start_of_month,
    suggest_adjustments,
    summarize_insights,
    utcnow,
)

logger = logging.getLogger(__name__)

# Columns a patch may change but never clear
REQUIRED_FIELDS = ("name", "type", "target_amount")


class GoalService:
    """Create, edit, delete and recompute goals for their owners."""

    def __init__(
        self,
        goals: GoalStore,
        aggregation: AggregationSource,
        categories: CategoryLookup,
        gamification: GamificationService,
        notifier: GoalNotifier,
        debt_marker: str = "debt",
    ):
        self.goals = goals
        self.aggregation = aggregation
        self.categories = categories
        self.gamification = gamification
        self.notifier = notifier
        self.debt_marker = debt_marker
        # One writer per goal; entries vanish once no task holds the lock
        self._locks: "weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock]" = weakref.WeakValueDictionary()

    # ────────────────────────────────────────────────────────────────────────
    # CRUD
    # ────────────────────────────────────────────────────────────────────────
    async def create(self, goal_in: GoalCreate, user_id: uuid.UUID, now: Optional[datetime] = None) -> Goal:
        await self._validate(user_id, goal_in.target_date, goal_in.category_id, now)

        data = goal_in.model_dump()
        data["type"] = goal_in.type.value
        data["current_amount"] = 0.0
        data["state"] = (GoalState.ACTIVE if goal_in.is_active else GoalState.ABANDONED).value

        goal = await self.goals.create(user_id, data)
        logger.info(f"Goal {goal.id} ({goal.type}) created for user {user_id}")

        await self.gamification.award_experience(user_id, "goal_created", goal.id)
        await self.gamification.check_badges(user_id)
        await self.notifier.goal_created(goal)
        return goal

    async def find_all(self, user_id: uuid.UUID, filters: Optional[GoalFilters] = None) -> List[Goal]:
        return await self.goals.find_many(filters or GoalFilters(), user_id=user_id)

    async def find_one(self, goal_id: uuid.UUID, user_id: uuid.UUID) -> Goal:
        goal = await self.goals.find_one(goal_id, user_id)
        if not goal:
            raise GoalNotFoundError()
        return goal

    async def update(self, goal_id: uuid.UUID, goal_in: GoalUpdate, user_id: uuid.UUID, now: Optional[datetime] = None) -> Goal:
        existing = await self.find_one(goal_id, user_id)
        await self._validate(user_id, goal_in.target_date, goal_in.category_id, now)

        patch: Dict[str, Any] = goal_in.model_dump(exclude_unset=True)
        for field in REQUIRED_FIELDS:
            if field in patch and patch[field] is None:
                raise GoalValidationError(f"'{field}' cannot be null")
        if patch.get("type") is not None:
            patch["type"] = GoalType(patch["type"]).value

        if "is_active" in patch:
            patch.update(self._state_patch(existing, patch["is_active"]))

        return await self.goals.update(goal_id, patch)

    async def remove(self, goal_id: uuid.UUID, user_id: uuid.UUID) -> None:
        await self.find_one(goal_id, user_id)
        await self.goals.delete(goal_id)
        logger.info(f"Goal {goal_id} deleted for user {user_id}")

    async def get_active_goals(self, user_id: uuid.UUID) -> List[Goal]:
        return await self.find_all(user_id, GoalFilters(is_active=True))

    async def get_completed_goals(self, user_id: uuid.UUID) -> List[Goal]:
        goals = await self.find_all(user_id, GoalFilters(is_active=False))
        return [g for g in goals if g.state == GoalState.COMPLETED.value]

    async def get_goals_by_type(self, user_id: uuid.UUID, goal_type: GoalType) -> List[Goal]:
        return await self.find_all(user_id, GoalFilters(type=goal_type))

    # ────────────────────────────────────────────────────────────────────────
    # PROGRESS
    # ────────────────────────────────────────────────────────────────────────
    async def compute_current_amount(self, goal: Goal, now: Optional[datetime] = None) -> float:
        """Derive the goal's amount from transactions or investments."""
        now = now or utcnow()
        category_id = goal.category_id

        if goal.type == GoalType.SAVINGS.value:
            total = await self.aggregation.sum_transactions(goal.user_id, since=goal.created_at, category_id=category_id)
            return max(0.0, total)

        if goal.type == GoalType.SPENDING_LIMIT.value:
            total = await self.aggregation.sum_transactions(
                goal.user_id, since=start_of_month(now), type="expense", category_id=category_id
            )
            return abs(total)

        if goal.type == GoalType.INVESTMENT.value:
            investments = await self.aggregation.list_investments(goal.user_id)
            return sum(
                float(inv.quantity) * float(inv.current_price if inv.current_price else inv.average_price)
                for inv in investments
            )

        if goal.type == GoalType.DEBT_PAYOFF.value:
            total = await self.aggregation.sum_transactions(
                goal.user_id,
                since=goal.created_at,
                type="expense",
                category_id=category_id,
                description_contains=self.debt_marker,
            )
            return abs(total)

        raise GoalValidationError(f"Unknown goal type '{goal.type}'")

    async def update_progress(self, goal_id: uuid.UUID, user_id: uuid.UUID, now: Optional[datetime] = None) -> Goal:
        """
        Recompute and persist the goal's amount, then run the side effects:
        milestone awards, completion (once, while the goal is still active),
        badge checks and progress notifications.
        """
        lock = self._locks.setdefault(goal_id, asyncio.Lock())
        async with lock:
            goal = await self.find_one(goal_id, user_id)
            target = float(goal.target_amount)
            was_active = bool(goal.is_active)
            previous_pct = progress_percentage(float(goal.current_amount or 0.0), target)

            current_amount = await self.compute_current_amount(goal, now)
            goal = await self.goals.update(goal_id, {"current_amount": current_amount})
            pct = progress_percentage(current_amount, target)

            await self.gamification.check_milestones(user_id, goal_id, pct)

            completed = False
            if current_amount >= target and was_active:
                goal = await self._complete(goal)
                completed = True

            await self.gamification.check_badges(user_id)

            crossed = crossed_breakpoint(previous_pct, pct)
            if crossed and not (completed and crossed == 100):
                await self.notifier.progress(goal, crossed)

            return goal

    async def _complete(self, goal: Goal) -> Goal:
        goal = await self.goals.update(goal.id, {"is_active": False, "state": GoalState.COMPLETED.value})
        logger.info(f"Goal {goal.id} completed for user {goal.user_id}")

        await self.gamification.award_experience(goal.user_id, "goal_completed", goal.id)
        await self.notifier.goal_completed(goal)
        return goal

    async def get_goal_progress(self, goal_id: uuid.UUID, user_id: uuid.UUID, now: Optional[datetime] = None) -> GoalProgress:
        goal = await self.find_one(goal_id, user_id)
        badges = badge_names(await self.gamification.get_user_badges(user_id))
        return calculate_goal_progress(goal, now, badges=badges)

    async def get_all_goals_progress(self, user_id: uuid.UUID, now: Optional[datetime] = None) -> List[GoalProgress]:
        goals = await self.find_all(user_id)
        badges = badge_names(await self.gamification.get_user_badges(user_id))
        return [calculate_goal_progress(goal, now, badges=badges) for goal in goals]

    async def get_insights(self, user_id: uuid.UUID, now: Optional[datetime] = None) -> Dict[str, Any]:
        return summarize_insights(await self.get_all_goals_progress(user_id, now))

    async def get_suggestions(self, goal_id: uuid.UUID, user_id: uuid.UUID, now: Optional[datetime] = None) -> Dict[str, Any]:
        goal = await self.find_one(goal_id, user_id)
        return suggest_adjustments(goal, calculate_goal_progress(goal, now), now)

    # ────────────────────────────────────────────────────────────────────────
    # HELPERS
    # ────────────────────────────────────────────────────────────────────────
    async def _validate(
        self,
        user_id: uuid.UUID,
        target_date: Optional[datetime],
        category_id: Optional[uuid.UUID],
        now: Optional[datetime] = None,
    ) -> None:
        if target_date is not None and target_date <= (now or utcnow()):
            raise GoalValidationError("Target date must be in the future")

        if category_id is not None and not await self.categories.exists(category_id, user_id):
            raise CategoryNotFoundError()

    @staticmethod
    def _state_patch(goal: Goal, is_active: Optional[bool]) -> Dict[str, Any]:
        if is_active is None:
            return {"is_active": goal.is_active}
        if goal.state == GoalState.COMPLETED.value:
            if is_active:
                raise GoalValidationError("Completed goals cannot be reactivated")
            return {}
        if is_active:
            return {"state": GoalState.ACTIVE.value}
        return {"state": GoalState.ABANDONED.value}
