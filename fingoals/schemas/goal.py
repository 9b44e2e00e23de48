# fingoals/schemas/goal.py
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator
from datetime import datetime, timezone
import uuid

from fingoals.models.goal import GoalType, GoalState
from fingoals.services.progress import GoalStatus


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Naive datetimes from clients are taken to be UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class GoalBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    type: GoalType
    target_amount: float = Field(..., gt=0, description="Amount to reach, in currency units")
    target_date: Optional[datetime] = Field(None, description="ISO 8601 deadline; must be in the future")
    category_id: Optional[uuid.UUID] = None

    @field_validator("target_date")
    @classmethod
    def normalize_target_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class GoalCreate(GoalBase):
    is_active: bool = True


class GoalUpdate(BaseModel):
    # current_amount is deliberately absent: only the engine writes it
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    type: Optional[GoalType] = None
    target_amount: Optional[float] = Field(None, gt=0)
    target_date: Optional[datetime] = None
    category_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None

    @field_validator("target_date")
    @classmethod
    def normalize_target_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class GoalFilters(BaseModel):
    type: Optional[GoalType] = None
    is_active: Optional[bool] = None
    category_id: Optional[uuid.UUID] = None
    search: Optional[str] = Field(None, description="Case-insensitive match on name or description")
    # Used by the deadline job, not exposed as query parameters
    target_date_from: Optional[datetime] = None
    target_date_to: Optional[datetime] = None
    target_date_before: Optional[datetime] = None


class GoalRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    description: Optional[str] = None
    type: GoalType
    target_amount: float
    current_amount: float
    target_date: Optional[datetime] = None
    category_id: Optional[uuid.UUID] = None
    is_active: bool
    state: GoalState
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class GoalProgressResponse(BaseModel):
    id: uuid.UUID
    name: str
    type: GoalType
    state: GoalState
    target_amount: float
    current_amount: float
    progress_percentage: float
    monthly_required: Optional[float] = None
    days_remaining: Optional[int] = None
    projected_completion: Optional[datetime] = None
    status: GoalStatus
    badges: List[str] = []
    current_streak: int = 0

    class Config:
        from_attributes = True


class GoalInsights(BaseModel):
    total_goals: int
    active_goals: int
    completed_goals: int
    average_progress: float
    goals_on_track: int
    goals_behind: int
    goals_ahead: int


class GoalSuggestions(BaseModel):
    suggestions: List[str]
    adjusted_target_amount: Optional[float] = None
    adjusted_target_date: Optional[datetime] = None


class MessageResponse(BaseModel):
    message: str
