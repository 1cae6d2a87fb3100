"""
Repository base classes and errors for the Loan Desk MCP Server.

Repositories are the only code that touches SQLAlchemy rows. They take a
session, run one unit of work, and hand back Pydantic models, which keeps the
MCP tools and resources free of database concerns and easy to test against
an in-memory database.

Every rule violation is reported as a ``RepositoryException`` subclass so that
the MCP layer can turn it into a client-facing error without inspecting
messages.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .schema import Base
from .session import mcp_safe_commit, mcp_safe_query

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)


class RepositoryException(Exception):
    """Base class for every library rule or storage failure."""


class NotFoundError(RepositoryException):
    """A referenced book, user, loan or reservation does not exist."""


class DuplicateError(RepositoryException):
    """A unique field (ISBN, email, ID) is already taken."""


class UnavailableError(RepositoryException):
    """No copies of the book are on the shelf."""


class InvalidStateError(RepositoryException):
    """The operation does not apply in the entity's current state."""


class OverdueError(RepositoryException):
    """The loan is past due and can no longer be renewed."""


MAX_PAGE_SIZE = 100


class PaginationParams(BaseModel):
    """One-based page request for catalog listings."""

    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def validate_params(self) -> None:
        if self.page < 1:
            raise ValueError(f"Page must be at least 1, got {self.page}")
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"Page size must be between 1 and {MAX_PAGE_SIZE}")


class PaginatedResponse(BaseModel, Generic[ResponseSchemaType]):
    """A page of results plus the numbers a client needs to walk the rest."""

    items: list[ResponseSchemaType]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool

    @classmethod
    def build(
        cls, items: list[ResponseSchemaType], total: int, pagination: PaginationParams
    ) -> "PaginatedResponse[ResponseSchemaType]":
        pages, remainder = divmod(total, pagination.page_size)
        return cls(
            items=items,
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=pages + (1 if remainder else 0),
            has_next=pagination.offset + len(items) < total,
            has_previous=pagination.page > 1,
        )


class BaseRepository(ABC, Generic[ModelType, CreateSchemaType, ResponseSchemaType]):
    """
    Lookup, listing and insert shared by the book and user repositories.

    Subclasses name their table (``model_class``) and the Pydantic model they
    return (``response_schema``), and override ``_to_response_model`` when
    the model carries derived fields.
    """

    def __init__(self, session: Session):
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]: ...

    @property
    @abstractmethod
    def response_schema(self) -> type[ResponseSchemaType]: ...

    @property
    def _entity(self) -> str:
        return self.model_class.__name__

    def _to_response_model(self, db_obj: ModelType) -> ResponseSchemaType:
        return self.response_schema.model_validate(db_obj, from_attributes=True)

    def _fetch_all(self, query, error_msg: str) -> list[ModelType]:
        return mcp_safe_query(self.session, lambda s: list(s.execute(query).scalars()), error_msg)

    def _get_row(self, id: str) -> ModelType | None:
        return mcp_safe_query(
            self.session,
            lambda s: s.get(self.model_class, id),
            f"Failed to load {self._entity} {id}",
        )

    def _require_row(self, id: str) -> ModelType:
        db_obj = self._get_row(id)
        if db_obj is None:
            raise NotFoundError(f"{self._entity} {id} not found")
        return db_obj

    def get_by_id(self, id: str) -> ResponseSchemaType | None:
        db_obj = self._get_row(id)
        return None if db_obj is None else self._to_response_model(db_obj)

    def get_all(
        self,
        pagination: PaginationParams | None = None,
        order_by: str | None = None,
        order_desc: bool = False,
    ) -> list[ResponseSchemaType] | PaginatedResponse[ResponseSchemaType]:
        """
        List every row, optionally ordered by a column name and paged.

        Unknown ``order_by`` names are ignored. Returns a plain list unless
        ``pagination`` is given.
        """
        query = select(self.model_class)
        column = getattr(self.model_class, order_by, None) if order_by else None
        if column is not None:
            query = query.order_by(column.desc() if order_desc else column.asc())

        if pagination is None:
            rows = self._fetch_all(query, f"Failed to list {self._entity} rows")
            return [self._to_response_model(row) for row in rows]

        pagination.validate_params()
        total = mcp_safe_query(
            self.session,
            lambda s: s.execute(select(func.count()).select_from(self.model_class)).scalar(),
            f"Failed to count {self._entity} rows",
        )
        rows = self._fetch_all(
            query.offset(pagination.offset).limit(pagination.page_size),
            f"Failed to page {self._entity} rows",
        )
        items = [self._to_response_model(row) for row in rows]
        return PaginatedResponse.build(items, total or 0, pagination)

    def create(self, data: CreateSchemaType) -> ResponseSchemaType:
        """
        Insert a row built from ``data``.

        Raises:
            DuplicateError: A unique constraint rejected the row
            RepositoryException: Any other database failure
        """
        db_obj = self.model_class(**data.model_dump())
        try:
            self.session.add(db_obj)
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateError(f"{self._entity} already exists: {e.orig}") from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise RepositoryException(f"Could not create {self._entity}: {e!s}") from e

        mcp_safe_commit(self.session, f"create {self._entity}")
        self.session.refresh(db_obj)
        return self._to_response_model(db_obj)

    def exists(self, id: str) -> bool:
        return self._get_row(id) is not None
