# fingoals/crud/gamification.py
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.future import select
from sqlalchemy import func
from fingoals.models.gamification import ExperienceLedgerEntry, UserBadge
from typing import List, Optional
import uuid


class SqlGamificationStore:
    """Experience ledger and earned badge records."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def add_entry(self, entry: ExperienceLedgerEntry) -> ExperienceLedgerEntry:
        async with self.session_factory() as db:
            db.add(entry)
            await db.commit()
            await db.refresh(entry)
            return entry

    async def has_entry(
        self,
        user_id: uuid.UUID,
        action: str,
        goal_id: Optional[uuid.UUID] = None,
        milestone: Optional[int] = None,
    ) -> bool:
        query = select(func.count()).select_from(ExperienceLedgerEntry).where(
            ExperienceLedgerEntry.user_id == user_id,
            ExperienceLedgerEntry.action == action,
        )
        if goal_id is not None:
            query = query.where(ExperienceLedgerEntry.goal_id == goal_id)
        if milestone is not None:
            query = query.where(ExperienceLedgerEntry.milestone == milestone)

        async with self.session_factory() as db:
            result = await db.execute(query)
            return (result.scalar_one() or 0) > 0

    async def total_experience(self, user_id: uuid.UUID) -> int:
        async with self.session_factory() as db:
            result = await db.execute(
                select(func.coalesce(func.sum(ExperienceLedgerEntry.points), 0))
                .where(ExperienceLedgerEntry.user_id == user_id)
            )
            return int(result.scalar_one() or 0)

    async def list_badges(self, user_id: uuid.UUID) -> List[UserBadge]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(UserBadge).where(UserBadge.user_id == user_id).order_by(UserBadge.earned_at)
            )
            return list(result.scalars().all())

    async def add_badge(self, badge: UserBadge) -> UserBadge:
        async with self.session_factory() as db:
            db.add(badge)
            await db.commit()
            await db.refresh(badge)
            return badge
