"""Database infrastructure for PastCare Core."""

from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from pastcare_core.config import get_settings
from pastcare_core.domain.query_limits import SearchDeadline

# SQLite calls the progress handler every N virtual machine instructions
SQLITE_PROGRESS_STEPS = 1000


def get_engine() -> Engine:
    """Get database engine."""
    settings = get_settings()
    engine = create_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=False,
    )
    register_sqlite_functions(engine)
    return engine


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def register_sqlite_functions(engine: Engine) -> None:
    """Replace SQLite's ASCII-only lower() with a Unicode-aware one.

    Search values are folded with str.lower(), so the column side must
    fold the same way.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _create_functions(dbapi_connection, connection_record):
        dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)


# Session factory
_engine = None
_session_factory = None


def get_session_factory() -> sessionmaker[Session]:
    """Get session factory (singleton)."""
    global _engine, _session_factory
    if _session_factory is None:
        _engine = get_engine()
        _session_factory = sessionmaker(
            bind=_engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )
    return _session_factory


def get_db_session() -> Generator[Session, None, None]:
    """Get a database session, committed on success and rolled back on error."""
    session_factory = get_session_factory()
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def statement_deadline(session: Session, deadline: SearchDeadline) -> Iterator[None]:
    """Enforce a search deadline on the statements run inside the block.

    - SQLite: a progress handler aborts the running statement once the
      deadline passes or the cancel token is set.
    - PostgreSQL: SET LOCAL statement_timeout for the current transaction.
    - MySQL: SET SESSION max_execution_time, reset when the block exits.

    Other dialects run without a store-side limit; the deadline is still
    checked before the statement starts.
    """
    connection = session.connection()
    dialect = connection.dialect.name
    remaining_ms = max(1, deadline.remaining_ms)

    if dialect == "sqlite":
        dbapi_connection = connection.connection.dbapi_connection

        def _abort() -> int:
            return 1 if deadline.cancelled or deadline.expired else 0

        dbapi_connection.set_progress_handler(_abort, SQLITE_PROGRESS_STEPS)
        try:
            yield
        finally:
            dbapi_connection.set_progress_handler(None, 0)

    elif dialect == "postgresql":
        session.execute(text(f"SET LOCAL statement_timeout = {int(remaining_ms)}"))
        yield

    elif dialect in ("mysql", "mariadb"):
        session.execute(text(f"SET SESSION max_execution_time = {int(remaining_ms)}"))
        try:
            yield
        finally:
            session.execute(text("SET SESSION max_execution_time = 0"))

    else:
        yield
