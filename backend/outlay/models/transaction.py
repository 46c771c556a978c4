"""
Transaction database model.
"""

import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Date, Numeric, Text, Enum, ForeignKey, Index
from sqlalchemy.orm import relationship
from outlay.database import Base


class Direction(str, enum.Enum):
    """Money flow direction of a statement line."""
    debit = "debit"
    credit = "credit"


class Transaction(Base):
    """Transaction model. Amounts are always positive; direction carries the sign."""

    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    date = Column(Date, nullable=False, index=True)
    description = Column(Text, nullable=False)
    normalized_merchant = Column(String(255), nullable=True, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    direction = Column(Enum(Direction), nullable=False, default=Direction.debit)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    category = relationship("Category", back_populates="transactions")

    __table_args__ = (
        Index("idx_transaction_merchant_date", "normalized_merchant", "date"),
        Index("idx_transaction_category", "category_id"),
    )
