"""
Database Session Management - SQLAlchemy engine and session factory.

The billing client keeps a handful of preference rows, so a plain
synchronous engine is used.
"""

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from playbilling.db.models import Base


def create_preferences_engine(url: str, echo: bool = False) -> Engine:
    """
    Create the engine for the preference database and ensure the schema exists.

    In-memory SQLite URLs share a single connection so every session sees the
    same database.
    """
    if url in ("sqlite://", "sqlite:///:memory:"):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(url, echo=echo)

    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to the engine."""
    return sessionmaker(bind=engine, expire_on_commit=False)
