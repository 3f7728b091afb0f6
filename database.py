# database.py
"""
Engine and session plumbing shared by the API, the poller and migrations.

DATABASE_URL defaults to a local SQLite file; any SQLAlchemy URL works.
Routes take a session through ``Depends(get_session)``; background jobs
open their own with ``SessionLocal()``.
"""
import logging
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker

import config

logger = logging.getLogger("shiftstream.database")


def _engine_options(url: str) -> dict:
     """Pool settings for server databases; SQLite needs thread sharing instead."""
     if url.startswith("sqlite"):
          return {"connect_args": {"check_same_thread": False}}
     return {
          "pool_size": 5,
          "max_overflow": 10,
          "pool_timeout": 30,
          "pool_recycle": 1800,  # Recycle connections after 30 minutes
          "pool_pre_ping": True,
     }


# Shared engine; pool options depend on the dialect
engine = create_engine(
     config.DATABASE_URL,
     echo=config.SQL_ECHO,  # Log SQL if SQL_ECHO=true
     **_engine_options(config.DATABASE_URL),
)

SessionLocal = sessionmaker(
     bind=engine,
     autocommit=False,
     autoflush=False,
     expire_on_commit=False,
)


def get_session() -> Generator[Session, None, None]:
     """Request-scoped session: committed on success, rolled back on error."""
     session = SessionLocal()
     try:
          yield session
          session.commit()
     except Exception:
          session.rollback()
          raise
     finally:
          session.close()


def init_db() -> None:
     # Local/dev convenience; deployed databases go through alembic upgrade.
     from models import Base
     Base.metadata.create_all(bind=engine)


def check_connection() -> bool:
     """Round-trip a trivial query; used by /health."""
     try:
          with engine.connect() as conn:
               conn.execute(text("SELECT 1"))
          return True
     except Exception as e:
          logger.error("Database connection failed: %s", e)
          return False
