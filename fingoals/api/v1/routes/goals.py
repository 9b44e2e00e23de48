# fingoals/api/v1/routes/goals.py
from typing import List, Optional
import uuid

from fastapi import APIRouter, Depends, Query, status

from fingoals.api.deps import get_current_user, get_gamification_service, get_goal_service, get_scheduler
from fingoals.jobs.scheduler import GoalScheduler
from fingoals.models.goal import GoalType
from fingoals.models.user import User
from fingoals.schemas.gamification import GamificationSummary, JobEnqueued
from fingoals.schemas.goal import (
    GoalCreate,
    GoalFilters,
    GoalInsights,
    GoalProgressResponse,
    GoalRead,
    GoalSuggestions,
    GoalUpdate,
    MessageResponse,
)
from fingoals.services.gamification import GamificationService
from fingoals.services.goals import GoalService

router = APIRouter()


@router.post("/", response_model=GoalRead, status_code=status.HTTP_201_CREATED)
async def create_goal(
    goal_in: GoalCreate,
    user: User = Depends(get_current_user),
    service: GoalService = Depends(get_goal_service),
):
    """
    Create a goal for the current user.

    - **target_date** must be in the future when given
    - **category_id** must name one of the user's own categories
    """
    return await service.create(goal_in, user.id)


@router.get("/", response_model=List[GoalRead])
async def list_goals(
    type: Optional[GoalType] = Query(None, description="Only goals of this type"),
    is_active: Optional[bool] = Query(None),
    category_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None, description="Case-insensitive match on name or description"),
    user: User = Depends(get_current_user),
    service: GoalService = Depends(get_goal_service),
):
    filters = GoalFilters(type=type, is_active=is_active, category_id=category_id, search=search)
    return await service.find_all(user.id, filters)


@router.get("/active", response_model=List[GoalRead])
async def list_active_goals(user: User = Depends(get_current_user), service: GoalService = Depends(get_goal_service)):
    return await service.get_active_goals(user.id)


@router.get("/completed", response_model=List[GoalRead])
async def list_completed_goals(user: User = Depends(get_current_user), service: GoalService = Depends(get_goal_service)):
    return await service.get_completed_goals(user.id)


@router.get("/progress", response_model=List[GoalProgressResponse])
async def get_all_goals_progress(user: User = Depends(get_current_user), service: GoalService = Depends(get_goal_service)):
    """Progress view of every goal the user owns, active or not."""
    return await service.get_all_goals_progress(user.id)


@router.post("/progress/refresh", response_model=JobEnqueued, status_code=status.HTTP_202_ACCEPTED)
async def refresh_all_goals(
    user: User = Depends(get_current_user),
    scheduler: GoalScheduler = Depends(get_scheduler),
):
    """Queue a system-wide progress recomputation ahead of scheduled work."""
    job = await scheduler.trigger_manual_update()
    return JobEnqueued(job_id=job.id, name=job.name, priority=job.priority)


@router.get("/insights", response_model=GoalInsights)
async def get_goal_insights(user: User = Depends(get_current_user), service: GoalService = Depends(get_goal_service)):
    return await service.get_insights(user.id)


@router.get("/gamification", response_model=GamificationSummary)
async def get_gamification(
    user: User = Depends(get_current_user),
    gamification: GamificationService = Depends(get_gamification_service),
):
    """Level, experience, badges and streaks for the current user."""
    return await gamification.get_gamification_data(user.id)


@router.get("/{goal_id}", response_model=GoalRead)
async def get_goal(goal_id: uuid.UUID, user: User = Depends(get_current_user), service: GoalService = Depends(get_goal_service)):
    return await service.find_one(goal_id, user.id)


@router.get("/{goal_id}/progress", response_model=GoalProgressResponse)
async def get_goal_progress(
    goal_id: uuid.UUID,
    user: User = Depends(get_current_user),
    service: GoalService = Depends(get_goal_service),
):
    return await service.get_goal_progress(goal_id, user.id)


@router.get("/{goal_id}/suggestions", response_model=GoalSuggestions)
async def get_goal_suggestions(
    goal_id: uuid.UUID,
    user: User = Depends(get_current_user),
    service: GoalService = Depends(get_goal_service),
):
    return await service.get_suggestions(goal_id, user.id)


@router.patch("/{goal_id}", response_model=GoalRead)
async def update_goal(
    goal_id: uuid.UUID,
    goal_in: GoalUpdate,
    user: User = Depends(get_current_user),
    service: GoalService = Depends(get_goal_service),
):
    return await service.update(goal_id, goal_in, user.id)


@router.post("/{goal_id}/update-progress", response_model=GoalRead)
async def update_goal_progress(
    goal_id: uuid.UUID,
    user: User = Depends(get_current_user),
    service: GoalService = Depends(get_goal_service),
):
    """Recompute this goal's amount from transactions or investments now."""
    return await service.update_progress(goal_id, user.id)


@router.delete("/{goal_id}", response_model=MessageResponse)
async def delete_goal(goal_id: uuid.UUID, user: User = Depends(get_current_user), service: GoalService = Depends(get_goal_service)):
    await service.remove(goal_id, user.id)
    return MessageResponse(message="Goal deleted successfully")
