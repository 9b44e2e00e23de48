# fingoals/services/progress.py
"""Goal progress calculation.

Everything in this module is pure: the same goal snapshot and the same
``now`` always give the same result. Amount derivation (which needs the
transaction and investment data) happens in the lifecycle service before
these functions are called.
"""
import enum
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from dateutil.relativedelta import relativedelta

from fingoals.models.goal import Goal, GoalState

# Average days per month used for the monthly projection
DAYS_PER_MONTH = 30.44
# Points either side of the expected progress that still count as on track
STATUS_TOLERANCE = 10.0
SECONDS_PER_DAY = 24 * 60 * 60


class GoalStatus(str, enum.Enum):
    ON_TRACK = "on_track"
    BEHIND = "behind"
    AHEAD = "ahead"
    COMPLETED = "completed"
    OVERDUE = "overdue"


@dataclass
class GoalProgress:
    id: Any
    name: str
    type: str
    state: str
    target_amount: float
    current_amount: float
    progress_percentage: float
    status: GoalStatus
    monthly_required: Optional[float] = None
    days_remaining: Optional[int] = None
    projected_completion: Optional[datetime] = None
    badges: List[str] = field(default_factory=list)
    # Always 0 until daily activity is tracked
    current_streak: int = 0


# ────────────────────────────────────────────────────────────────────────────────
# HELPERS – COMMON
# ────────────────────────────────────────────────────────────────────────────────
def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _round2(value: float) -> float:
    return round(value * 100) / 100


def _display_pct(pct: float) -> float:
    # An unfinished goal never shows 100
    shown = _round2(pct)
    if pct < 100 and shown >= 100:
        return 99.99
    return shown


def _days_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / SECONDS_PER_DAY


def _is_active(goal: Goal) -> bool:
    return bool(goal.is_active)


def progress_percentage(current_amount: float, target_amount: float) -> float:
    """Current over target as a percentage, held within [0, 100]."""
    if target_amount <= 0:
        return 100.0 if current_amount > 0 else 0.0
    pct = (current_amount / target_amount) * 100
    return max(0.0, min(pct, 100.0))


def start_of_month(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


# ────────────────────────────────────────────────────────────────────────────────
# STATUS
# ────────────────────────────────────────────────────────────────────────────────
def determine_status(goal: Goal, pct: float, now: Optional[datetime] = None) -> GoalStatus:
    """
    Classify a goal's trajectory. The checks run in a fixed order:

    1. 100 % or more is always ``completed``.
    2. Without a target date, or once inactive, only ``on_track`` (some
       progress) or ``behind`` (none) are possible.
    3. Past the target date is ``overdue``.
    4. Otherwise compare against the share of the planned time that has
       elapsed; more than 10 points ahead is ``ahead``, more than 10 points
       short is ``behind``.
    """
    now = now or utcnow()

    if pct >= 100:
        return GoalStatus.COMPLETED

    if not goal.target_date or not _is_active(goal):
        return GoalStatus.ON_TRACK if pct > 0 else GoalStatus.BEHIND

    if now > goal.target_date:
        return GoalStatus.OVERDUE

    total = (goal.target_date - goal.created_at).total_seconds()
    elapsed = (now - goal.created_at).total_seconds()
    expected = (elapsed / total) * 100 if total > 0 else 100.0

    diff = pct - expected
    if diff > STATUS_TOLERANCE:
        return GoalStatus.AHEAD
    if diff < -STATUS_TOLERANCE:
        return GoalStatus.BEHIND
    return GoalStatus.ON_TRACK


# ────────────────────────────────────────────────────────────────────────────────
# MAIN ENTRY
# ────────────────────────────────────────────────────────────────────────────────
def calculate_goal_progress(
    goal: Goal,
    now: Optional[datetime] = None,
    badges: Iterable[str] = (),
    current_streak: int = 0,
) -> GoalProgress:
    """Build the derived progress view of one goal at ``now``."""
    now = now or utcnow()
    target_amount = float(goal.target_amount)
    current_amount = float(goal.current_amount or 0.0)
    pct = progress_percentage(current_amount, target_amount)

    monthly_required: Optional[float] = None
    days_remaining: Optional[int] = None
    projected_completion: Optional[datetime] = None

    if goal.target_date and _is_active(goal):
        days_remaining = max(0, math.ceil(_days_between(now, goal.target_date)))

        if days_remaining > 0:
            months_remaining = days_remaining / DAYS_PER_MONTH
            monthly_required = (target_amount - current_amount) / months_remaining

            # Extrapolate the average daily rate since creation
            days_since_creation = math.ceil(_days_between(goal.created_at, now))
            if days_since_creation > 0 and current_amount > 0:
                daily_rate = current_amount / days_since_creation
                days_to_complete = (target_amount - current_amount) / daily_rate
                projected_completion = now + timedelta(days=days_to_complete)

    return GoalProgress(
        id=goal.id,
        name=goal.name,
        type=goal.type,
        state=goal.state,
        target_amount=target_amount,
        current_amount=current_amount,
        progress_percentage=_display_pct(pct),
        status=determine_status(goal, pct, now),
        monthly_required=_round2(monthly_required) if monthly_required is not None else None,
        days_remaining=days_remaining,
        projected_completion=projected_completion,
        badges=list(badges),
        current_streak=current_streak,
    )


# ────────────────────────────────────────────────────────────────────────────────
# INSIGHTS & SUGGESTIONS
# ────────────────────────────────────────────────────────────────────────────────
def summarize_insights(progress: Sequence[GoalProgress]) -> Dict[str, Any]:
    total = len(progress)
    average = sum(p.progress_percentage for p in progress) / total if total else 0.0

    return {
        "total_goals": total,
        "active_goals": sum(1 for p in progress if p.state == GoalState.ACTIVE.value),
        "completed_goals": sum(1 for p in progress if p.state == GoalState.COMPLETED.value),
        "average_progress": _round2(average),
        "goals_on_track": sum(1 for p in progress if p.status == GoalStatus.ON_TRACK),
        "goals_behind": sum(1 for p in progress if p.status in (GoalStatus.BEHIND, GoalStatus.OVERDUE)),
        "goals_ahead": sum(1 for p in progress if p.status == GoalStatus.AHEAD),
    }


def suggest_adjustments(goal: Goal, progress: GoalProgress, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    suggestions: List[str] = []
    adjusted_target_amount: Optional[float] = None
    adjusted_target_date: Optional[datetime] = None

    if progress.status in (GoalStatus.BEHIND, GoalStatus.OVERDUE):
        suggestions.append("Consider extending your target date to make the goal more achievable")
        suggestions.append("Review your spending habits to identify areas where you can save more")
        if progress.monthly_required and progress.monthly_required > 0:
            suggestions.append(f"Try to save {progress.monthly_required:.2f} per month to stay on track")
        if goal.target_date:
            adjusted_target_date = goal.target_date + relativedelta(months=3)

    if progress.status == GoalStatus.AHEAD:
        suggestions.append("Great progress! Consider increasing your target amount for a bigger challenge")
        suggestions.append("You might be able to reach your goal earlier than planned")
        adjusted_target_amount = _round2(float(goal.target_amount) * 1.2)

    if progress.progress_percentage < 10 and goal.created_at < now - timedelta(days=30):
        suggestions.append("Set up automatic transfers to make saving easier")
        suggestions.append("Break down your goal into smaller, weekly targets")

    return {
        "suggestions": suggestions,
        "adjusted_target_amount": adjusted_target_amount,
        "adjusted_target_date": adjusted_target_date,
    }
