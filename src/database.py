"""
Database connection and session management.
Uses the SQLAlchemy 2.0 synchronous pattern; the permission engine is synchronous.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.engine import Engine

from src.config import Settings, get_settings


def create_db_engine(settings: Settings) -> Engine:
    """Build an engine with options appropriate for the configured database."""
    if settings.database_url.startswith("sqlite"):
        engine = create_engine(
            settings.database_url,
            echo=settings.debug,
            connect_args={"check_same_thread": False},
        )

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            """Enable foreign keys + busy timeout on every new SQLite connection."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

        return engine

    # PostgreSQL settings with connection pooling
    return create_engine(
        settings.database_url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


def create_session_maker(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        engine,
        class_=Session,
        expire_on_commit=False,
        autoflush=False,
    )


engine = create_db_engine(get_settings())
session_maker = create_session_maker(engine)


def init_db(bind: Engine = engine) -> None:
    """Initialize database tables."""
    # Import Base from kernel models to ensure all models are registered
    from src.kernel.models import Base

    Base.metadata.create_all(bind)


def close_db() -> None:
    """Close database connections."""
    engine.dispose()
