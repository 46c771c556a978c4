"""Shared test fixtures."""

import os

# Keep the app's own engine in memory; tests use a separate in-memory database
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
from datetime import date
from decimal import Decimal
import uuid

from outlay.database import Base, get_db, enable_sqlite_foreign_keys
from outlay.main import app
from outlay.models.category import Category
from outlay.models.transaction import Transaction, Direction


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test using in-memory SQLite."""
    # Use StaticPool to ensure all connections use the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", enable_sqlite_foreign_keys)

    # Create all tables
    Base.metadata.create_all(bind=engine)

    # Create session
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def client(db_session):
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def subscriptions_category(db_session):
    """Create a regular spending category."""
    category = Category(
        id=str(uuid.uuid4()),
        name="Subscriptions",
        color="#ec4899",
        exclude_from_totals=False,
    )
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category


@pytest.fixture
def transfer_category(db_session):
    """Create a category excluded from totals."""
    category = Category(
        id=str(uuid.uuid4()),
        name="Transfer",
        color="#94a3b8",
        exclude_from_totals=True,
    )
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category


@pytest.fixture
def add_transaction(db_session):
    """Factory that stores a transaction and returns it."""
    def _add(
        merchant,
        txn_date,
        amount="15.00",
        direction=Direction.debit,
        category=None,
        description=None,
    ):
        txn = Transaction(
            id=str(uuid.uuid4()),
            date=txn_date,
            description=description or (merchant or "UNKNOWN").upper(),
            normalized_merchant=merchant,
            amount=Decimal(amount),
            direction=direction,
            category_id=category.id if category else None,
        )
        db_session.add(txn)
        db_session.commit()
        db_session.refresh(txn)
        return txn

    return _add


@pytest.fixture
def netflix_monthly(add_transaction, subscriptions_category):
    """Three monthly $15 Netflix charges in Q1 2025."""
    return [
        add_transaction("Netflix", date(2025, 1, 15), "15.00", category=subscriptions_category),
        add_transaction("Netflix", date(2025, 2, 15), "15.00", category=subscriptions_category),
        add_transaction("Netflix", date(2025, 3, 15), "15.00", category=subscriptions_category),
    ]
