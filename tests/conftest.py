"""Shared fixtures for the Smart Retry tests."""
import os

# Must be set before smart_retry.config is imported anywhere.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DECISION_API_KEY", "test-api-key")

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from smart_retry.database import Base  # noqa: E402
from smart_retry.models import LoanTransaction  # noqa: E402,F401

# Fixed decision moment used across the engine tests (a Friday).
NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


def make_txn(
    loan_id: str = "L1",
    status: str = "failed",
    days_ago: float = 1,
    message: str = "",
    now: datetime = NOW,
    **extra,
) -> dict:
    """Build a transaction record relative to a decision moment."""
    txn = {
        "loan_id": loan_id,
        "status": status,
        "failed_message": message,
        "created_at": (now - timedelta(days=days_ago)).isoformat(),
    }
    txn.update(extra)
    return txn


@pytest.fixture
def db_session():
    """In-memory SQLite session with the history table created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
