"""
Database session management for the Loan Desk MCP Server.

One ``DatabaseManager`` per process owns the engine. Tool handlers open a
short-lived session per request and let the repositories commit their own
unit of work; resources and scripts use ``session_scope`` for
commit-or-rollback around a block.
"""

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from .schema import Base

T = TypeVar("T")

logger = logging.getLogger(__name__)


def _enable_foreign_keys(dbapi_connection, connection_record):  # noqa: ARG001
    # SQLite ships with foreign key enforcement off
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str) -> Engine:
    """
    Create an engine suited to the backend behind ``database_url``.

    SQLite shares one connection across threads with foreign keys enforced;
    anything else gets a pre-pinged connection pool.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        event.listen(engine, "connect", _enable_foreign_keys)
        return engine

    return create_engine(database_url, pool_size=5, max_overflow=10, pool_pre_ping=True)


class DatabaseManager:
    """
    Engine and session factory for one library database.

    Nothing is opened until the engine is first needed, so building a
    manager (or importing the server) never touches the filesystem.
    """

    def __init__(self, database_url: str | None = None):
        """
        Args:
            database_url: SQLAlchemy URL. Defaults to the configured SQLite file.
        """
        self.database_url = database_url or get_config().get_database_url()
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = build_engine(self.database_url)
            logger.info("Connected to library database %s", self._engine.url)
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autoflush=False,
                # Models are built from rows after commit
                expire_on_commit=False,
            )
        return self._session_factory

    def create_session(self) -> Session:
        """Open a session. The caller closes it."""
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Run a block in one transaction.

        ```python
        with manager.session_scope() as session:
            session.add(reservation)
        # committed on exit, rolled back if the block raised
        ```
        """
        session = self.create_session()
        try:
            yield session
            session.commit()
        except SQLAlchemyError:
            logger.exception("Library transaction failed, rolling back")
            session.rollback()
            raise
        except Exception as e:
            # Not-found and rule refusals, logged without a traceback
            logger.debug("Rolling back library transaction: %s", e)
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self, drop_existing: bool = False) -> None:
        """
        Create the books, users, loans and reservations tables.

        Args:
            drop_existing: Drop every table first (all data is lost)
        """
        if drop_existing:
            logger.warning("Dropping library tables")
            Base.metadata.drop_all(bind=self.engine)

        Base.metadata.create_all(bind=self.engine)
        logger.info("Library schema ready (%d tables)", len(Base.metadata.tables))

    def verify_connection(self) -> bool:
        """True if the database answers a trivial query."""
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except Exception:
            logger.exception("Library database is unreachable")
            return False
        return True

    def close(self) -> None:
        """Dispose of the engine; the next use reconnects."""
        if self._engine is not None:
            self._engine.dispose()
            logger.info("Library database connection closed")
        self._engine = None
        self._session_factory = None


_db_manager: DatabaseManager | None = None


def get_db_manager(database_url: str | None = None) -> DatabaseManager:
    """Process-wide manager. ``database_url`` only matters on the first call."""
    global _db_manager  # noqa: PLW0603

    if _db_manager is None:
        _db_manager = DatabaseManager(database_url)
    return _db_manager


def reset_db_manager() -> None:
    """Close and forget the process-wide manager (tests)."""
    global _db_manager  # noqa: PLW0603

    if _db_manager is not None:
        _db_manager.close()
    _db_manager = None


def get_session() -> Session:
    """Session for a single tool call; use it as a context manager."""
    return get_db_manager().create_session()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    with get_db_manager().session_scope() as session:
        yield session


def mcp_safe_commit(session: Session, operation: str) -> None:
    """
    Commit, or roll back and raise ``ValueError`` naming the operation.

    MCP clients see the message, so it names what failed rather than the
    driver error alone.
    """
    try:
        session.commit()
    except Exception as e:
        session.rollback()
        raise ValueError(f"Could not {operation}: {e!s}") from e


def mcp_safe_query(session: Session, query_func: Callable[[Session], T], error_msg: str) -> T:
    """
    Run a read through ``query_func``; database errors become ``ValueError(error_msg)``.

    Args:
        session: Open session
        query_func: Callable taking the session and returning the result
        error_msg: Prefix for the raised message
    """
    try:
        return query_func(session)
    except Exception as e:
        logger.exception("Library query failed: %s", error_msg)
        raise ValueError(f"{error_msg}: database query failed") from e
