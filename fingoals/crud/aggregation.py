# fingoals/crud/aggregation.py
from datetime import datetime
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.future import select
from sqlalchemy import func
from fingoals.models.investment import Investment
from fingoals.models.transaction import Transaction
from typing import List, Optional
import uuid


class SqlAggregationSource:
    """Read-only queries over transactions and investments."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def sum_transactions(
        self,
        user_id: uuid.UUID,
        since: Optional[datetime] = None,
        type: Optional[str] = None,
        category_id: Optional[uuid.UUID] = None,
        description_contains: Optional[str] = None,
    ) -> float:
        query = select(func.coalesce(func.sum(Transaction.amount), 0.0)).where(Transaction.user_id == user_id)
        if since is not None:
            query = query.where(Transaction.transaction_date >= since)
        if type is not None:
            query = query.where(Transaction.type == type)
        if category_id is not None:
            query = query.where(Transaction.category_id == category_id)
        if description_contains:
            query = query.where(Transaction.description.ilike(f"%{description_contains}%"))

        async with self.session_factory() as db:
            result = await db.execute(query)
            return float(result.scalar_one() or 0.0)

    async def list_investments(self, user_id: uuid.UUID) -> List[Investment]:
        async with self.session_factory() as db:
            result = await db.execute(select(Investment).where(Investment.user_id == user_id))
            return list(result.scalars().all())
