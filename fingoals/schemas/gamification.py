# fingoals/schemas/gamification.py
from typing import List, Optional
from pydantic import BaseModel
from datetime import datetime
import uuid


class BadgeRead(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    category: str
    earned_at: datetime

    class Config:
        from_attributes = True


class StreakRead(BaseModel):
    goal_id: uuid.UUID
    goal_name: str
    current_streak: int
    longest_streak: int
    last_activity_date: Optional[datetime] = None


class GamificationSummary(BaseModel):
    user_id: uuid.UUID
    total_goals: int
    completed_goals: int
    active_goals: int
    total_saved: float
    badges: List[BadgeRead]
    streaks: List[StreakRead]
    level: int
    level_title: str
    experience: int
    next_level_experience: int

    class Config:
        from_attributes = True


class JobEnqueued(BaseModel):
    job_id: str
    name: str
    priority: int
