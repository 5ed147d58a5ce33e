# database.py
"""
SQLAlchemy database connection and session management.

This module provides:
- Database engine configuration (SQLite by default, Azure SQL via pymssql)
- Session factory used by the order store
- Connection utilities

Usage:
     from database import SessionLocal, get_session_context

     with get_session_context() as db:
          orders = db.query(Order).all()
     """
import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

import config

logger = logging.getLogger(__name__)


def build_engine(url: str = config.DATABASE_URL, echo: bool = False) -> Engine:
     """
     Create an engine for the given URL.

     SQLite connections are shared between the request threadpool and the
     fulfillment timers, so the same-thread check is turned off for them.
     """
     if url.startswith("sqlite"):
          return create_engine(
               url,
               connect_args={"check_same_thread": False, "timeout": 30},
               echo=echo,
          )
     return create_engine(
          url,
          pool_size=5,
          max_overflow=10,
          pool_timeout=30,
          pool_recycle=1800,  # Recycle connections after 30 minutes
          echo=echo,
     )


# Create SQLAlchemy engine
engine = build_engine(echo=config.LOG_LEVEL == "DEBUG")

# Session factory
SessionLocal = sessionmaker(
     bind=engine,
     autocommit=False,
     autoflush=False,
     expire_on_commit=False,
)


def build_session_factory(bind: Engine) -> sessionmaker:
     """Session factory with the same settings as SessionLocal, for another engine."""
     return sessionmaker(bind=bind, autocommit=False, autoflush=False, expire_on_commit=False)


@contextmanager
def get_session_context(factory: sessionmaker = SessionLocal) -> Generator[Session, None, None]:
     """
     Context manager for database sessions.

     Usage:
          with get_session_context() as db:
               orders = db.query(Order).all()

     Yields:
          Session: SQLAlchemy database session
     """
     session = factory()
     try:
          yield session
          session.commit()
     except Exception:
          session.rollback()
          raise
     finally:
          session.close()


def init_db(bind: Engine = engine) -> None:
     """
     Initialize database tables.

     Creates all tables defined in the models if they don't exist.
     For production, use Alembic migrations instead.
     """
     from models import Base
     Base.metadata.create_all(bind=bind)


def check_connection(bind: Engine = engine) -> bool:
     """
     Test database connectivity.

     Returns:
          bool: True if connection successful, False otherwise
     """
     try:
          with bind.connect() as conn:
               conn.execute(text("SELECT 1"))
          return True
     except Exception as e:
          logger.error("Database connection failed: %s", e)
          return False
