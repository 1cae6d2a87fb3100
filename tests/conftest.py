"""Test configuration and fixtures for the Loan Desk MCP Server.

1. Isolated test databases - each test gets a clean SQLite file
2. Configuration overrides - no LOAN_DESK_* variables leak in from the shell
3. Session injection - tools and resources run against the test session
4. Known data - the fixed sample library, pinned to a known clock
"""

import os
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from loan_desk.config import ServerConfig, reset_config
from loan_desk.database.schema import Base
from loan_desk.database.seed import load_sample_data
from loan_desk.database.session import reset_db_manager

# Fixed clock for repository tests
NOW = datetime(2024, 3, 1, 12, 0, 0)

TOOL_MODULES = [
    "loan_desk.tools.catalog",
    "loan_desk.tools.circulation",
    "loan_desk.tools.profile",
    "loan_desk.tools.reservations",
]

RESOURCE_MODULES = [
    "loan_desk.resources.books",
    "loan_desk.resources.loans",
    "loan_desk.resources.users",
]


# === Environment Fixtures ===


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch) -> Generator[None, None, None]:
    """Keep every test away from the developer's environment and database."""
    for key in list(os.environ.keys()):
        if key.startswith("LOAN_DESK_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("LOAN_DESK_DATABASE_PATH", str(tmp_path / "config_default.db"))

    reset_config()
    reset_db_manager()
    yield
    reset_db_manager()
    reset_config()


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Provide a clean environment without any LOAN_DESK_* variables."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("LOAN_DESK_"):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)


# === Test Database Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Generator[Path, None, None]:
    """Provide a temporary database path for each test."""
    db_path = tmp_path / "test_loan_desk.db"
    yield db_path

    if db_path.exists():
        db_path.unlink()


@pytest.fixture
def test_database_url(test_db_path: Path) -> str:
    return f"sqlite:///{test_db_path}"


@pytest.fixture
def test_db_session(test_database_url: str) -> Generator[Session, None, None]:
    """Provide a SQLAlchemy session on a fresh schema."""
    engine = create_engine(
        test_database_url,
        echo=False,
        connect_args={"check_same_thread": False},
    )

    Base.metadata.create_all(bind=engine)

    session_local = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )

    session = session_local()

    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
        engine.dispose()


# === Configuration Fixtures ===


@pytest.fixture
def test_config(test_db_path: Path) -> Generator[ServerConfig, None, None]:
    """Provide a test-specific server configuration."""
    reset_config()

    config = ServerConfig(
        server_name="test-loan-desk",
        server_version="0.0.1-test",
        database_path=test_db_path,
        debug=True,
        log_level="DEBUG",
    )

    yield config

    reset_config()


# === Test Data Fixtures ===


@pytest.fixture
def sample_library(test_db_session: Session) -> Session:
    """The fixed sample library, with loan dates relative to ``NOW``."""
    load_sample_data(test_db_session, now=NOW)
    test_db_session.commit()
    return test_db_session


@pytest.fixture
def live_library(test_db_session: Session) -> Session:
    """The fixed sample library relative to the real clock.

    Tools do not take a clock, so their tests need loans dated around today.
    """
    load_sample_data(test_db_session, now=datetime.now())
    test_db_session.commit()
    return test_db_session


# === Session Injection ===


@pytest.fixture
def mock_get_session(test_db_session: Session, monkeypatch) -> Session:
    """Make tools and resources use the test session.

    Tools open sessions with ``get_session()`` and resources with
    ``session_scope()``; both are replaced with a context manager that
    yields the test session, so handlers see the test data.
    """

    @contextmanager
    def _mock_session():
        yield test_db_session

    for module in TOOL_MODULES:
        monkeypatch.setattr(f"{module}.get_session", _mock_session)
    for module in RESOURCE_MODULES:
        monkeypatch.setattr(f"{module}.session_scope", _mock_session)

    return test_db_session
