"""
Module: procurement_kernel.db.engine
Responsibility: SQLAlchemy engine creation and transactional scope for the
    SQL-backed table store.
Architecture position: Kernel > DB.

Invariants enforced:
    - SQLite in-memory URLs share one connection (StaticPool) so every
      session sees the same database.
    - Other backends use QueuePool with pre-ping to handle stale connections.

Failure modes:
    - ``session_scope`` rolls back and re-raises on any exception.
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from procurement_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def create_store_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
) -> Engine:
    """
    Create an engine for ``database_url``.

    Args:
        database_url: Any SQLAlchemy URL (``sqlite://``, ``postgresql://...``).
        echo: If True, log all SQL statements.
        pool_size: Connections kept in the pool (non-SQLite only).
        max_overflow: Connections allowed beyond pool_size (non-SQLite only).
        pool_timeout: Seconds to wait for a pooled connection.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        dialect = "sqlite"
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_timeout=pool_timeout,
        )
        dialect = engine.dialect.name

    logger.info(
        "engine_initialized",
        extra={"dialect": dialect, "echo": echo},
    )
    return engine


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Commits on normal exit; on exception rolls back and re-raises.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()
