"""
Book repository for the Loan Desk MCP Server.

Owns the catalog: listing, lookup, faceted search and the copy-count
bookkeeping used by circulation. Copy counts only move one at a time through
``borrow_copy`` / ``return_copy`` (or the equivalent steps inside the
circulation transactions), which keeps ``0 <= available <= total``.
"""

import enum
import logging

from pydantic import BaseModel, field_validator
from sqlalchemy import and_, func, or_, select

from ..models.book import Book as BookModel
from .repository import (
    BaseRepository,
    InvalidStateError,
    NotFoundError,
    PaginatedResponse,
    PaginationParams,
    RepositoryException,
    UnavailableError,
)
from .schema import Book as BookDB
from .session import mcp_safe_commit, mcp_safe_query

logger = logging.getLogger(__name__)

NO_FILTER = "all"


class BookCreateSchema(BookModel):
    """Schema for creating a new book - same as base model."""


class Availability(str, enum.Enum):
    """Availability filter values for catalog search."""

    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    ALL = "all"


class BookSearchParams(BaseModel):
    """
    Search parameters for finding books.

    ``query`` is matched case-insensitively as a substring of title, author or
    genre. ``genre`` and ``author`` are exact matches; ``"all"`` or an empty
    value disables them. All criteria are ANDed together.
    """

    query: str | None = None
    genre: str | None = None
    author: str | None = None
    availability: Availability = Availability.ALL

    @field_validator("query")
    @classmethod
    def blank_query_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("genre", "author")
    @classmethod
    def no_filter_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v or v.lower() == NO_FILTER:
            return None
        return v


class BookRepository(BaseRepository[BookDB, BookCreateSchema, BookModel]):
    """
    Repository for catalog data access.

    Read methods back the ``library://books/...`` resources; ``borrow_copy``
    and ``return_copy`` are the catalog half of circulation.
    """

    @property
    def model_class(self):
        return BookDB

    @property
    def response_schema(self):
        return BookModel

    def list_all(self) -> list[BookModel]:
        """All books ordered by title."""
        return self.get_all(order_by="title")

    def add_book(self, book: BookModel) -> BookModel:
        """Add a catalog entry (seeding and administration)."""
        return self.create(BookCreateSchema(**book.model_dump()))

    def search(
        self,
        search_params: BookSearchParams,
        pagination: PaginationParams | None = None,
    ) -> list[BookModel] | PaginatedResponse[BookModel]:
        """
        Search the catalog.

        Args:
            search_params: Query text and facet filters
            pagination: Optional pagination; without it every match is returned

        Returns:
            Matching books ordered by title, or a page of them
        """
        filters = []

        if search_params.query:
            term = search_params.query
            filters.append(
                or_(
                    BookDB.title.icontains(term, autoescape=True),
                    BookDB.author.icontains(term, autoescape=True),
                    BookDB.genre.icontains(term, autoescape=True),
                )
            )

        if search_params.genre:
            filters.append(BookDB.genre == search_params.genre)

        if search_params.author:
            filters.append(BookDB.author == search_params.author)

        if search_params.availability == Availability.AVAILABLE:
            filters.append(BookDB.available_copies > 0)
        elif search_params.availability == Availability.UNAVAILABLE:
            filters.append(BookDB.available_copies == 0)

        query = select(BookDB)
        if filters:
            query = query.where(and_(*filters))
        query = query.order_by(BookDB.title.asc())

        if pagination is None:
            results = mcp_safe_query(
                self.session,
                lambda s: s.execute(query).scalars().all(),
                "Failed to search books",
            )
            return [self._to_response_model(book) for book in results]

        pagination.validate_params()

        count_query = select(func.count()).select_from(query.subquery())
        total = (
            mcp_safe_query(
                self.session, lambda s: s.execute(count_query).scalar(), "Failed to count books"
            )
            or 0
        )

        page_query = query.offset(pagination.offset).limit(pagination.page_size)
        results = mcp_safe_query(
            self.session,
            lambda s: s.execute(page_query).scalars().all(),
            "Failed to search books",
        )
        items = [self._to_response_model(book) for book in results]
        return PaginatedResponse.build(items, total, pagination)

    def list_genres(self) -> list[str]:
        """Distinct genres, sorted."""
        query = select(BookDB.genre).distinct().order_by(BookDB.genre)
        results = mcp_safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "Failed to get genres"
        )
        return list(results)

    def list_authors(self) -> list[str]:
        """Distinct author names, sorted."""
        query = select(BookDB.author).distinct().order_by(BookDB.author)
        results = mcp_safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "Failed to get authors"
        )
        return list(results)

    def _lock_book(self, book_id: str) -> BookDB:
        query = select(BookDB).where(BookDB.id == book_id).with_for_update()
        book = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            "Failed to get book for availability update",
        )
        if book is None:
            raise NotFoundError(f"Book {book_id} not found")
        return book

    def borrow_copy(self, book_id: str) -> BookModel:
        """
        Take one copy off the shelf.

        Raises:
            NotFoundError: If the book does not exist
            UnavailableError: If no copies are available
        """
        book = self._lock_book(book_id)

        if book.available_copies <= 0:
            logger.info("No copies of %s available to lend", book_id)
            raise UnavailableError(f"Book '{book.title}' has no available copies")

        book.available_copies -= 1
        return self._commit_availability(book, "borrow copy")

    def return_copy(self, book_id: str) -> BookModel:
        """
        Put one copy back on the shelf.

        Raises:
            NotFoundError: If the book does not exist
            InvalidStateError: If every copy is already on the shelf
        """
        book = self._lock_book(book_id)

        if book.available_copies >= book.total_copies:
            logger.error(
                "Over-return of %s: %d of %d copies already available",
                book_id,
                book.available_copies,
                book.total_copies,
            )
            raise InvalidStateError(
                f"All {book.total_copies} copies of '{book.title}' are already available"
            )

        book.available_copies += 1
        return self._commit_availability(book, "return copy")

    def _commit_availability(self, book: BookDB, operation: str) -> BookModel:
        try:
            mcp_safe_commit(self.session, operation)
        except ValueError as e:
            raise RepositoryException(f"Failed to update availability: {e!s}") from e
        self.session.refresh(book)
        logger.debug(
            "%s: %s now has %d/%d available",
            operation,
            book.id,
            book.available_copies,
            book.total_copies,
        )
        return self._to_response_model(book)
