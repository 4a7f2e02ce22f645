# pyright: reportMissingTypeStubs=false
"""
Database engine, declarative base and session helpers.

Host applications declare their resource models on Base so the panel's
timestamp listeners and its own version table share one metadata. Request
handlers receive sessions from get_db; background jobs use get_db_context.
Services never commit on their own: callers wrap writes in transaction().
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator

from fastapi import HTTPException
from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from admin_panel.core.config import DATABASE_URL
from admin_panel.core.constants import DB_POOL_RECYCLE_SECONDS
from admin_panel.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        # SQLite sessions are shared with the scheduler thread
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_recycle": DB_POOL_RECYCLE_SECONDS}


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for resource models and the panel's own tables."""
    pass


@event.listens_for(Base, "before_insert", propagate=True)  # type: ignore
def stamp_created(mapper, connection, target):  # type: ignore
    """Fill created_at/updated_at on insert when the model maps them and they are unset."""
    now = utc_now()
    for column_name in ("created_at", "updated_at"):
        if column_name in mapper.columns and getattr(target, column_name, None) is None:  # type: ignore
            setattr(target, column_name, now)


@event.listens_for(Base, "before_update", propagate=True)  # type: ignore
def stamp_updated(mapper, connection, target):  # type: ignore
    if "updated_at" in mapper.columns:  # type: ignore
        target.updated_at = utc_now()


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency yielding a request-scoped session.

    Uncommitted work is rolled back when the request fails; HTTPExceptions
    are expected outcomes and are not logged.
    """
    db = SessionLocal()
    try:
        yield db
    except HTTPException:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        logger.exception(f"Database error during request: {e}")
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Session for work outside a request, committed when the block succeeds.

    Example:
        ```python
        with get_db_context() as db:
            TrashService.cleanup_old_trashed(db, PostResource)
        ```
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        logger.exception(f"Background database work failed: {e}")
        raise
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Generator[Session, None, None]:
    """Commit the block's changes, or roll back and re-raise if it fails."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def create_tables() -> None:
    """Create missing tables for every model on Base, including admin_resource_versions."""
    # Registers the version table on Base.metadata
    from admin_panel.models import resource_version  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Admin panel tables are in place")
