# fingoals/models/goal.py
import enum
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Float, DateTime, ForeignKey, Boolean
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from fingoals.core.database import Base


class GoalType(str, enum.Enum):
    SAVINGS = "savings"
    SPENDING_LIMIT = "spending_limit"
    INVESTMENT = "investment"
    DEBT_PAYOFF = "debt_payoff"


class GoalState(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Goal(Base):
    __tablename__ = "goals"

    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(PG_UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(length=100), nullable=False)
    description = Column(String(length=500), nullable=True)
    type = Column(String(length=20), nullable=False)
    target_amount = Column(Float, nullable=False)
    # Only ever written by the progress engine
    current_amount = Column(Float, nullable=False, default=0.0)
    target_date = Column(DateTime(timezone=True), nullable=True)
    category_id = Column(PG_UUID(as_uuid=True), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    state = Column(String(length=20), nullable=False, default=GoalState.ACTIVE.value)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


    def __repr__(self):
        return f"<Goal name={self.name} target={self.target_amount} state={self.state} user_id={self.user_id}>"
