#!/usr/bin/env python3
"""
Check that every goal engine table exists and report the Alembic revision
Usage: python verify_migration.py
"""
import asyncio
import sys
import platform
from sqlalchemy import text

from fingoals.core.database import Base, engine
from fingoals.models import category, gamification, goal, investment, notification, transaction, user  # noqa: F401


async def verify_database() -> bool:
    expected = sorted(Base.metadata.tables)

    try:
        async with engine.begin() as conn:
            result = await conn.execute(text("SELECT version();"))
            print(f"🔗 Connected: {result.scalar_one().split(',')[0]}")

            result = await conn.execute(text("SELECT tablename FROM pg_tables WHERE schemaname = 'public';"))
            present = {row[0] for row in result.fetchall()}

            print("\n📋 Goal engine tables:")
            missing = []
            for table in expected:
                if table in present:
                    count = (await conn.execute(text(f"SELECT COUNT(*) FROM {table};"))).scalar_one()
                    print(f"   ✅ {table}: {count} rows")
                else:
                    missing.append(table)
                    print(f"   ❌ {table}: missing")

            print("\n🔄 Migration status:")
            if "alembic_version" in present:
                version = (await conn.execute(text("SELECT version_num FROM alembic_version;"))).scalar_one_or_none()
                print(f"   ✅ Current Alembic version: {version}")
            else:
                print("   ⚠️  No alembic_version table; run `alembic upgrade head`")
    finally:
        await engine.dispose()

    return not missing


def main():
    if platform.system() == 'Windows':
        asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())

    try:
        ok = asyncio.run(verify_database())
    except Exception as e:
        print(f"❌ Database verification failed: {e}")
        sys.exit(1)
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
