# backend/clubdesk/database.py
"""
Database engine, session factory, and metadata shared across the application.
"""

from datetime import datetime
import logging
from typing import Any, Dict, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .core.config import settings

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {
        "pool_size": 10,  # Number of persistent connections
        "max_overflow": 10,  # Maximum overflow connections
        "pool_timeout": 30,  # Timeout for getting connection
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_pre_ping": True,  # Test connections before using
        "connect_args": {"connect_timeout": 10, "application_name": "clubdesk_scheduling"},
    }


def build_engine(url: str) -> Engine:
    return create_engine(url, echo=settings.database_echo, future=True, **_engine_kwargs(url))


engine: Engine = build_engine(settings.get_database_url())


# Log pool events for monitoring
@event.listens_for(engine, "connect")
def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
    connection_record.info["connect_time"] = datetime.now()
    logger.debug("Database connection established")


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base = declarative_base()


def create_all(bind: Optional[Engine] = None) -> None:
    """Create tables for every registered model; there is no migration history yet."""
    import clubdesk.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
