# fingoals/core/database.py
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from .config import settings
import logging
from typing import AsyncGenerator

logger = logging.getLogger(__name__)

engine_kwargs = {
    "echo": False,
    "future": True,
    # The scheduler worker and the request path share this pool
    "pool_size": 5,
    "max_overflow": 5,
    "pool_timeout": 30,
    "pool_pre_ping": True,
    "pool_recycle": 300,
}

if settings.is_supabase:
    # PgBouncer does not support prepared statements
    engine_kwargs["connect_args"] = {
        "statement_cache_size": 0,
        "prepared_statement_cache_size": 0,
        "timeout": 10,
    }
    logger.info("Configured engine for Supabase/PgBouncer (prepared statements disabled)")

engine = create_async_engine(settings.DATABASE_URL, **engine_kwargs)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
    class_=AsyncSession,
)

# Base class for all models
Base = declarative_base()

async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    session = AsyncSessionLocal()
    try:
        yield session
    except Exception as e:
        logger.error(f"Database session error: {str(e)}")
        await session.rollback()
        raise
    finally:
        await session.close()
        logger.debug("Database session closed")
