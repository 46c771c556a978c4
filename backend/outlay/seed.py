"""
Seed script for default categories.
"""

import logging
import uuid

from sqlalchemy.orm import Session

from outlay.database import SessionLocal, init_db
from outlay.models import Category

logger = logging.getLogger(__name__)


# (name, color, exclude_from_totals)
DEFAULT_CATEGORIES = [
    ("Income", "#10b981", False),
    ("Housing", "#3b82f6", False),
    ("Utilities", "#0ea5e9", False),
    ("Insurance", "#6366f1", False),
    ("Loans", "#8b5cf6", False),
    ("Subscriptions", "#ec4899", False),
    ("Groceries", "#22c55e", False),
    ("Dining", "#f97316", False),
    ("Transportation", "#eab308", False),
    ("Health", "#ef4444", False),
    ("Shopping", "#a855f7", False),
    ("Entertainment", "#f43f5e", False),
    ("Other", "#6b7280", False),
    # Money moving between the user's own accounts is never spending
    ("Transfer", "#94a3b8", True),
    ("Credit Card Payment", "#64748b", True),
]


def seed_categories(db: Session) -> int:
    """Insert any missing default categories. Returns how many were added."""
    existing = {name for (name,) in db.query(Category.name).all()}

    added = 0
    try:
        for name, color, exclude_from_totals in DEFAULT_CATEGORIES:
            if name in existing:
                continue
            db.add(Category(
                id=str(uuid.uuid4()),
                name=name,
                color=color,
                exclude_from_totals=exclude_from_totals,
                is_system=True,
            ))
            added += 1
        db.commit()
    except Exception:
        db.rollback()
        raise

    if added:
        logger.info("Seeded %d default categories", added)
    return added


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
    with SessionLocal() as session:
        seed_categories(session)
