import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set

import pytest

from fingoals.core.exceptions import GoalNotFoundError
from fingoals.models.gamification import ExperienceLedgerEntry, UserBadge
from fingoals.models.goal import Goal, GoalState, GoalType
from fingoals.models.investment import Investment
from fingoals.schemas.goal import GoalFilters
from fingoals.services.gamification import GamificationService
from fingoals.services.goals import GoalService
from fingoals.services.notifications import GoalNotifier

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class InMemoryGoalStore:
    def __init__(self, clock=lambda: NOW):
        self.goals: Dict[uuid.UUID, Goal] = {}
        self.clock = clock
        self.fail_listing = False

    def add(self, user_id: uuid.UUID, **fields: Any) -> Goal:
        """Insert a goal directly, bypassing service validation."""
        created_at = fields.pop("created_at", self.clock())
        values = {
            "name": "Goal",
            "description": None,
            "type": GoalType.SAVINGS.value,
            "target_amount": 1000.0,
            "current_amount": 0.0,
            "target_date": None,
            "category_id": None,
            "is_active": True,
            "state": GoalState.ACTIVE.value,
        }
        values.update(fields)
        goal = Goal(id=uuid.uuid4(), user_id=user_id, created_at=created_at, updated_at=created_at, **values)
        self.goals[goal.id] = goal
        return goal

    async def create(self, user_id: uuid.UUID, data: Dict[str, Any]) -> Goal:
        return self.add(user_id, **data)

    async def find_many(self, filters: GoalFilters, user_id: Optional[uuid.UUID] = None) -> List[Goal]:
        if self.fail_listing:
            raise ConnectionError("goal store unreachable")

        def matches(goal: Goal) -> bool:
            if user_id is not None and goal.user_id != user_id:
                return False
            if filters.type is not None and goal.type != filters.type.value:
                return False
            if filters.is_active is not None and goal.is_active != filters.is_active:
                return False
            if filters.category_id is not None and goal.category_id != filters.category_id:
                return False
            if filters.search:
                needle = filters.search.lower()
                haystack = f"{goal.name} {goal.description or ''}".lower()
                if needle not in haystack:
                    return False
            if filters.target_date_from is not None and (not goal.target_date or goal.target_date < filters.target_date_from):
                return False
            if filters.target_date_to is not None and (not goal.target_date or goal.target_date > filters.target_date_to):
                return False
            if filters.target_date_before is not None and (not goal.target_date or goal.target_date >= filters.target_date_before):
                return False
            return True

        found = [g for g in self.goals.values() if matches(g)]
        return sorted(found, key=lambda g: (g.is_active, g.created_at), reverse=True)

    async def find_one(self, goal_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Goal]:
        goal = self.goals.get(goal_id)
        if goal is None or goal.user_id != user_id:
            return None
        return goal

    async def update(self, goal_id: uuid.UUID, patch: Dict[str, Any]) -> Goal:
        goal = self.goals.get(goal_id)
        if goal is None:
            raise GoalNotFoundError()
        for field, value in patch.items():
            setattr(goal, field, value)
        goal.updated_at = self.clock()
        return goal

    async def delete(self, goal_id: uuid.UUID) -> None:
        self.goals.pop(goal_id, None)


class InMemoryAggregation:
    def __init__(self):
        self.transactions: List[Dict[str, Any]] = []
        self.investments: List[Investment] = []
        self.failing_users = set()

    def add_transaction(self, user_id, amount, date, type="income", category_id=None, description="transfer"):
        self.transactions.append(
            {
                "user_id": user_id,
                "amount": amount,
                "date": date,
                "type": type,
                "category_id": category_id,
                "description": description,
            }
        )

    def add_investment(self, user_id, quantity, average_price, current_price=None):
        self.investments.append(
            Investment(
                id=uuid.uuid4(),
                user_id=user_id,
                symbol="VTI",
                quantity=quantity,
                average_price=average_price,
                current_price=current_price,
            )
        )

    async def sum_transactions(self, user_id, since=None, type=None, category_id=None, description_contains=None) -> float:
        if user_id in self.failing_users:
            raise TimeoutError("aggregation query timed out")
        total = 0.0
        for tx in self.transactions:
            if tx["user_id"] != user_id:
                continue
            if since is not None and tx["date"] < since:
                continue
            if type is not None and tx["type"] != type:
                continue
            if category_id is not None and tx["category_id"] != category_id:
                continue
            if description_contains and description_contains.lower() not in tx["description"].lower():
                continue
            total += tx["amount"]
        return total

    async def list_investments(self, user_id):
        if user_id in self.failing_users:
            raise TimeoutError("aggregation query timed out")
        return [inv for inv in self.investments if inv.user_id == user_id]


class InMemoryCategories:
    def __init__(self):
        self.owned = set()

    def add(self, user_id: uuid.UUID) -> uuid.UUID:
        category_id = uuid.uuid4()
        self.owned.add((category_id, user_id))
        return category_id

    async def exists(self, category_id, user_id) -> bool:
        return (category_id, user_id) in self.owned


class RecordingDispatcher:
    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.failing_titles: Set[str] = set()
        self.offline = False

    async def dispatch(self, user_id, title, message, severity, action_url=None) -> None:
        if self.offline or title in self.failing_titles:
            raise ConnectionError(f"cannot deliver '{title}'")
        self.sent.append(
            {"user_id": user_id, "title": title, "message": message, "severity": severity, "action_url": action_url}
        )

    def titles(self) -> List[str]:
        return [n["title"] for n in self.sent]


class InMemoryGamificationStore:
    def __init__(self):
        self.entries: List[ExperienceLedgerEntry] = []
        self.badges: List[UserBadge] = []

    async def add_entry(self, entry):
        self.entries.append(entry)
        return entry

    async def has_entry(self, user_id, action, goal_id=None, milestone=None) -> bool:
        return any(
            e.user_id == user_id
            and e.action == action
            and (goal_id is None or e.goal_id == goal_id)
            and (milestone is None or e.milestone == milestone)
            for e in self.entries
        )

    async def total_experience(self, user_id) -> int:
        return sum(e.points for e in self.entries if e.user_id == user_id)

    async def list_badges(self, user_id):
        return [b for b in self.badges if b.user_id == user_id]

    async def add_badge(self, badge):
        self.badges.append(badge)
        return badge


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def goal_store():
    return InMemoryGoalStore()


@pytest.fixture
def aggregation():
    return InMemoryAggregation()


@pytest.fixture
def categories():
    return InMemoryCategories()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def gamification_store():
    return InMemoryGamificationStore()


@pytest.fixture
def notifier(dispatcher):
    return GoalNotifier(dispatcher)


@pytest.fixture
def gamification(goal_store, gamification_store, notifier):
    return GamificationService(goal_store, gamification_store, notifier)


@pytest.fixture
def goal_service(goal_store, aggregation, categories, gamification, notifier):
    return GoalService(goal_store, aggregation, categories, gamification, notifier, debt_marker="debt")


def days(n: float) -> timedelta:
    return timedelta(days=n)
