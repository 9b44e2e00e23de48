# fingoals/crud/goal.py
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select
from sqlalchemy import or_, desc
from fingoals.core.exceptions import GoalNotFoundError
from fingoals.models.goal import Goal
from fingoals.schemas.goal import GoalFilters
from typing import Any, Dict, List, Optional
import uuid


def _apply_filters(query, filters: GoalFilters):
    if filters.type is not None:
        query = query.where(Goal.type == filters.type.value)
    if filters.is_active is not None:
        query = query.where(Goal.is_active == filters.is_active)
    if filters.category_id is not None:
        query = query.where(Goal.category_id == filters.category_id)
    if filters.search:
        pattern = f"%{filters.search}%"
        query = query.where(or_(Goal.name.ilike(pattern), Goal.description.ilike(pattern)))
    if filters.target_date_from is not None:
        query = query.where(Goal.target_date >= filters.target_date_from)
    if filters.target_date_to is not None:
        query = query.where(Goal.target_date <= filters.target_date_to)
    if filters.target_date_before is not None:
        query = query.where(Goal.target_date < filters.target_date_before)
    return query


async def get_goals(db: AsyncSession, filters: GoalFilters, user_id: Optional[uuid.UUID] = None) -> List[Goal]:
    query = select(Goal)
    if user_id is not None:
        query = query.where(Goal.user_id == user_id)
    query = _apply_filters(query, filters).order_by(desc(Goal.is_active), desc(Goal.created_at))
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_goal_by_id(goal_id: uuid.UUID, user_id: uuid.UUID, db: AsyncSession) -> Optional[Goal]:
    result = await db.execute(
        select(Goal).where(Goal.id == goal_id, Goal.user_id == user_id)
    )
    return result.scalar_one_or_none()


class SqlGoalStore:
    """Goal persistence; each call runs in its own session."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def create(self, user_id: uuid.UUID, data: Dict[str, Any]) -> Goal:
        async with self.session_factory() as db:
            new_goal = Goal(**data, user_id=user_id)
            db.add(new_goal)
            await db.commit()
            await db.refresh(new_goal)
            return new_goal

    async def find_many(self, filters: GoalFilters, user_id: Optional[uuid.UUID] = None) -> List[Goal]:
        async with self.session_factory() as db:
            return await get_goals(db, filters, user_id)

    async def find_one(self, goal_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Goal]:
        async with self.session_factory() as db:
            return await get_goal_by_id(goal_id, user_id, db)

    async def update(self, goal_id: uuid.UUID, patch: Dict[str, Any]) -> Goal:
        async with self.session_factory() as db:
            goal = await db.get(Goal, goal_id)
            if goal is None:
                raise GoalNotFoundError()
            for field, value in patch.items():
                setattr(goal, field, value)
            await db.commit()
            await db.refresh(goal)
            return goal

    async def delete(self, goal_id: uuid.UUID) -> None:
        async with self.session_factory() as db:
            goal = await db.get(Goal, goal_id)
            if goal is not None:
                await db.delete(goal)
                await db.commit()
