# fingoals/main.py
import uvicorn
import os
import logging
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fingoals.api.deps import build_goal_service
from fingoals.api.v1.api import api_router
from fingoals.core.config import settings
from fingoals.core.database import engine, Base
from fingoals.core.exceptions import GoalNotFoundError, GoalValidationError
from fingoals.jobs.cron import CronSchedule
from fingoals.jobs.processor import GOAL_PROGRESS_QUEUE, GoalProgressProcessor
from fingoals.jobs.queue import JobQueue, RetryPolicy
from fingoals.jobs.scheduler import GoalScheduler

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Import models so their tables are registered on Base.metadata
from fingoals.models import category, gamification, goal, investment, notification, transaction, user  # noqa: E402,F401


async def create_db_and_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    openapi_tags=[
        {"name": "Goals", "description": "Financial goals, progress and gamification"},
        {"name": "Notifications", "description": "Goal notifications and real-time push"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:3001"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------------------------------------------
# EXCEPTION HANDLERS
# ------------------------------------------------------------
@app.exception_handler(GoalNotFoundError)
async def goal_not_found_handler(request: Request, exc: GoalNotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.detail})


@app.exception_handler(GoalValidationError)
async def goal_validation_handler(request: Request, exc: GoalValidationError):
    return JSONResponse(status_code=400, content={"detail": exc.detail})


# ------------------------------------------------------------
# ROOT / HEALTH
# ------------------------------------------------------------
@app.get("/", tags=["Root"])
async def root():
    return {"message": f"{settings.APP_NAME} is running!", "version": settings.VERSION}


@app.get("/health", tags=["Health"])
async def health_check():
    scheduler = getattr(app.state, "scheduler", None)
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "scheduler": "running" if scheduler is not None else "disabled",
    }


app.include_router(api_router, prefix="/api/v1")


# ------------------------------------------------------------
# STARTUP / SHUTDOWN
# ------------------------------------------------------------
@app.on_event("startup")
async def on_startup():
    """Create tables, then start the goal-progress worker and timers"""
    try:
        await create_db_and_tables()
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Startup error: {str(e)}")

    service = build_goal_service()
    app.state.goal_service = service

    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler disabled; goal progress only updates on request")
        return

    policy = RetryPolicy(
        max_attempts=settings.JOB_MAX_ATTEMPTS,
        backoff_delay=settings.JOB_BACKOFF_DELAY_SECONDS,
    )
    queue = JobQueue(GOAL_PROGRESS_QUEUE)
    GoalProgressProcessor(
        service.goals,
        service,
        service.notifier,
        reminder_days=settings.DEADLINE_REMINDER_DAYS,
    ).register(queue)

    scheduler = GoalScheduler(
        queue,
        CronSchedule(settings.GOAL_PROGRESS_CRON, settings.SCHEDULER_TIMEZONE),
        CronSchedule(settings.GOAL_DEADLINE_CRON, settings.SCHEDULER_TIMEZONE),
        policy,
    )
    queue.start(concurrency=settings.JOB_WORKER_CONCURRENCY)
    scheduler.start()

    app.state.queue = queue
    app.state.scheduler = scheduler


@app.on_event("shutdown")
async def on_shutdown():
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        await scheduler.stop()
    queue = getattr(app.state, "queue", None)
    if queue is not None:
        await queue.stop()
    await engine.dispose()


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("fingoals.main:app", host="0.0.0.0", port=port, reload=False)
