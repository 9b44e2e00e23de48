# fingoals/services/ports.py
"""Collaborators the goal engine depends on.

The SQLAlchemy adapters in ``fingoals.crud`` implement these for production;
tests provide in-memory versions.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence
import uuid

from fingoals.models.gamification import ExperienceLedgerEntry, UserBadge
from fingoals.models.goal import Goal
from fingoals.models.investment import Investment
from fingoals.schemas.goal import GoalFilters


class GoalStore(Protocol):
    async def create(self, user_id: uuid.UUID, data: Dict[str, Any]) -> Goal: ...

    async def find_many(self, filters: GoalFilters, user_id: Optional[uuid.UUID] = None) -> List[Goal]:
        """Owner-scoped when ``user_id`` is given, system-wide otherwise."""
        ...

    async def find_one(self, goal_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Goal]: ...

    async def update(self, goal_id: uuid.UUID, patch: Dict[str, Any]) -> Goal: ...

    async def delete(self, goal_id: uuid.UUID) -> None: ...


class AggregationSource(Protocol):
    async def sum_transactions(
        self,
        user_id: uuid.UUID,
        since: Optional[datetime] = None,
        type: Optional[str] = None,
        category_id: Optional[uuid.UUID] = None,
        description_contains: Optional[str] = None,
    ) -> float: ...

    async def list_investments(self, user_id: uuid.UUID) -> Sequence[Investment]: ...


class CategoryLookup(Protocol):
    async def exists(self, category_id: uuid.UUID, user_id: uuid.UUID) -> bool: ...


class NotificationDispatcher(Protocol):
    async def dispatch(
        self,
        user_id: uuid.UUID,
        title: str,
        message: str,
        severity: str,
        action_url: Optional[str] = None,
    ) -> None:
        """Fire-and-forget; the return value is never consumed."""
        ...


class GamificationStore(Protocol):
    async def add_entry(self, entry: ExperienceLedgerEntry) -> ExperienceLedgerEntry: ...

    async def has_entry(
        self,
        user_id: uuid.UUID,
        action: str,
        goal_id: Optional[uuid.UUID] = None,
        milestone: Optional[int] = None,
    ) -> bool: ...

    async def total_experience(self, user_id: uuid.UUID) -> int: ...

    async def list_badges(self, user_id: uuid.UUID) -> List[UserBadge]: ...

    async def add_badge(self, badge: UserBadge) -> UserBadge: ...
