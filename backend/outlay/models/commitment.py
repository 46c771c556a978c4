"""
Commitment lifecycle database models.

Detected commitment groups are never stored; these tables only hold the
user's decisions about them, keyed by merchant name.
"""

import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, Date, DateTime, Numeric, Text, Enum, ForeignKey
from outlay.database import Base


class Frequency(str, enum.Enum):
    """Billing cadence of a commitment."""
    weekly = "weekly"
    monthly = "monthly"
    quarterly = "quarterly"
    semi_annual = "semi-annual"
    yearly = "yearly"
    irregular = "irregular"


class CommitmentStatus(str, enum.Enum):
    """User-declared commitment state. ``active`` is never stored."""
    active = "active"
    ended = "ended"
    not_recurring = "not_recurring"


class CommitmentStatusEntry(Base):
    """Explicit ended/not-recurring marker for a merchant."""

    __tablename__ = "commitment_status"

    id = Column(Integer, primary_key=True, autoincrement=True)
    normalized_merchant = Column(String(255), nullable=False, unique=True)
    status = Column(Enum(CommitmentStatus), nullable=False)
    status_changed_at = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)


class CommitmentOverride(Base):
    """Manual correction of a merchant's detected frequency and/or monthly amount."""

    __tablename__ = "commitment_overrides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    normalized_merchant = Column(String(255), nullable=False, unique=True)
    frequency_override = Column(Enum(Frequency), nullable=True)
    monthly_amount_override = Column(Numeric(12, 2), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class ExcludedCommitmentTransaction(Base):
    """A single charge that must not count towards commitment detection."""

    __tablename__ = "excluded_commitment_transactions"

    transaction_id = Column(
        String(36),
        ForeignKey("transactions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
