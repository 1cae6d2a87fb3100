"""
Database package for the Loan Desk MCP Server.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- Session management and connection handling (session.py)
- Repositories for the catalog, circulation and members
- Demo data loaders (seed.py)
"""

from .book_repository import Availability, BookCreateSchema, BookRepository, BookSearchParams
from .circulation_repository import CirculationRepository
from .repository import (
    BaseRepository,
    DuplicateError,
    InvalidStateError,
    NotFoundError,
    OverdueError,
    PaginatedResponse,
    PaginationParams,
    RepositoryException,
    UnavailableError,
)
from .schema import (
    Base,
    Book,
    Loan,
    LoanStatusEnum,
    Reservation,
    ReservationStatusEnum,
    User,
)
from .session import (
    DatabaseManager,
    get_db_manager,
    get_session,
    mcp_safe_commit,
    mcp_safe_query,
    reset_db_manager,
    session_scope,
)
from .user_repository import UserCreateSchema, UserRepository

__all__ = [
    "Availability",
    "Base",
    "BaseRepository",
    "Book",
    "BookCreateSchema",
    "BookRepository",
    "BookSearchParams",
    "CirculationRepository",
    "DatabaseManager",
    "DuplicateError",
    "InvalidStateError",
    "Loan",
    "LoanStatusEnum",
    "NotFoundError",
    "OverdueError",
    "PaginatedResponse",
    "PaginationParams",
    "RepositoryException",
    "Reservation",
    "ReservationStatusEnum",
    "UnavailableError",
    "User",
    "UserCreateSchema",
    "UserRepository",
    "get_db_manager",
    "get_session",
    "mcp_safe_commit",
    "mcp_safe_query",
    "reset_db_manager",
    "session_scope",
]
