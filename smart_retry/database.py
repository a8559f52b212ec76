"""Database connection and session management for the transaction history store."""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from smart_retry.config import settings


def engine_options(database_url: str) -> dict:
    """Pool options for a database URL; SQLite gets a single shared connection."""
    if database_url.startswith("sqlite"):
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "pool_pre_ping": True,  # Enable connection health checks
        "pool_size": 5,
        "max_overflow": 10,
    }


engine = create_engine(settings.database_url, **engine_options(settings.database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency that provides a read-only history session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
