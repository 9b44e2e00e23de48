# fingoals/crud/category.py
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select
from fingoals.models.category import Category
from typing import Optional
import uuid

async def get_category_by_id(category_id: uuid.UUID, user_id: uuid.UUID, db: AsyncSession) -> Optional[Category]:
    result = await db.execute(
        select(Category).where(Category.id == category_id, Category.user_id == user_id)
    )
    return result.scalar_one_or_none()


class SqlCategoryLookup:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def exists(self, category_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        async with self.session_factory() as db:
            return await get_category_by_id(category_id, user_id, db) is not None
