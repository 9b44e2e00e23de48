# fingoals/models/gamification.py
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, ForeignKey, Integer, DateTime, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from fingoals.core.database import Base


class ExperienceLedgerEntry(Base):
    """Append-only record of every experience award."""
    __tablename__ = "experience_ledger"

    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(PG_UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String(length=30), nullable=False)
    points = Column(Integer, nullable=False)
    # Goals may be deleted; the award stays
    goal_id = Column(PG_UUID(as_uuid=True), nullable=True, index=True)
    milestone = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<ExperienceLedgerEntry action={self.action} points={self.points} user_id={self.user_id}>"


class UserBadge(Base):
    __tablename__ = "user_badges"
    __table_args__ = (UniqueConstraint("user_id", "badge_id", name="uq_user_badges_user_badge"),)

    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(PG_UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    badge_id = Column(String(length=50), nullable=False)
    earned_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<UserBadge badge={self.badge_id} user_id={self.user_id}>"
