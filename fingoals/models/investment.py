# fingoals/models/investment.py
import uuid
from sqlalchemy import Column, String, ForeignKey, Float
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from fingoals.core.database import Base

class Investment(Base):
    __tablename__ = "investments"

    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(PG_UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    symbol = Column(String(length=20), nullable=False)
    quantity = Column(Float, nullable=False, default=0.0)
    average_price = Column(Float, nullable=False, default=0.0)
    # Null until a market price has been fetched
    current_price = Column(Float, nullable=True)

    def __repr__(self):
        return f"<Investment symbol={self.symbol} quantity={self.quantity} user_id={self.user_id}>"
