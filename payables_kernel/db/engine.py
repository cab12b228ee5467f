"""
Engine and session management for the payables database.

One engine per process, created by ``init_engine_from_url`` from the
``database`` section of the configuration (or ``DATABASE_URL`` in tests).
Services never build sessions themselves: request handlers use
``session_scope()``; the lifecycle scheduler takes ``get_session_factory()``
and opens one session per job run.

PostgreSQL runs at READ COMMITTED.  Approval and payment writes take
``SELECT ... FOR UPDATE`` on the invoice row, which is what serializes
them, so nothing stronger is needed.

SQLite is accepted for tests and single-user use.  All sessions share one
connection (``StaticPool``) so an in-memory database survives between
sessions, and pysqlite's own transaction handling is switched off so that
SAVEPOINTs (audit sink, sequence creation) behave.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from payables_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _sqlite_engine(database_url: str, echo: bool) -> Engine:
    engine = create_engine(
        database_url,
        echo=echo,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _autocommit_driver(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _explicit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def _postgres_engine(database_url: str, echo: bool, pool_size: int) -> Engine:
    return create_engine(
        database_url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=pool_size // 2,
        pool_pre_ping=True,
        pool_recycle=1800,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(database_url: str, echo: bool = False, pool_size: int = 20) -> Engine:
    """
    Create the process-wide engine and session factory.

    Calling it again replaces both; call ``reset_engine()`` first to
    release the previous pool.
    """
    global _engine, _SessionFactory

    dialect = make_url(database_url).get_backend_name()
    if dialect == "sqlite":
        _engine = _sqlite_engine(database_url, echo)
    else:
        _engine = _postgres_engine(database_url, echo, pool_size)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={
        "dialect": dialect,
        "pool_size": None if dialect == "sqlite" else pool_size,
        "echo": echo,
    })
    return _engine


def _require_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    return _require_factory()()


def get_session_factory() -> sessionmaker[Session]:
    return _require_factory()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    A session that commits on normal exit and rolls back on error.

    Module services already commit their own work, so this mostly matters
    for callers that touch the ORM directly.  The session is always closed.
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create any missing payables table (existing ones are untouched)."""
    from payables_kernel.db.base import Base
    from payables_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop every payables table.  Tests only."""
    from payables_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
