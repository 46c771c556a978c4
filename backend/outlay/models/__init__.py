"""
Database models package.
"""

from outlay.models.category import Category
from outlay.models.transaction import Transaction, Direction
from outlay.models.commitment import (
    CommitmentOverride,
    CommitmentStatus,
    CommitmentStatusEntry,
    ExcludedCommitmentTransaction,
    Frequency,
)

__all__ = [
    "Category",
    "Transaction",
    "Direction",
    "CommitmentOverride",
    "CommitmentStatus",
    "CommitmentStatusEntry",
    "ExcludedCommitmentTransaction",
    "Frequency",
]
