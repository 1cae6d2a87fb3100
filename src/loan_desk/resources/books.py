"""Book Resources - Library Catalog Access

Exposes the catalog via read-only resources.

Resources:
- library://books/list - every book, ordered by title
- library://books/genres - genre facet values
- library://books/authors - author facet values
- library://books/{book_id} - one book
- library://books/{book_id}/availability - copy counts and the next-free estimate
- library://books/{book_id}/reservations - the book's waitlist in queue order
"""

import logging
from typing import Any

from fastmcp.exceptions import ResourceError

from ..config import get_config
from ..database.book_repository import BookRepository
from ..database.circulation_repository import CirculationRepository
from ..database.repository import NotFoundError
from ..database.session import session_scope

logger = logging.getLogger(__name__)


async def list_books_handler() -> dict[str, Any]:
    """Returns the whole catalog."""
    try:
        logger.debug("MCP Resource Request - books/list")

        with session_scope() as session:
            books = BookRepository(session).list_all()
            return {
                "books": [book.model_dump(mode="json") for book in books],
                "total": len(books),
            }

    except Exception as e:
        logger.exception("Error in books/list resource")
        raise ResourceError(f"Failed to retrieve book list: {e!s}") from e


async def list_genres_handler() -> dict[str, Any]:
    """Returns the distinct genres for the filter sidebar."""
    try:
        with session_scope() as session:
            return {"genres": BookRepository(session).list_genres()}

    except Exception as e:
        logger.exception("Error in books/genres resource")
        raise ResourceError(f"Failed to retrieve genres: {e!s}") from e


async def list_authors_handler() -> dict[str, Any]:
    """Returns the distinct author names for the filter sidebar."""
    try:
        with session_scope() as session:
            return {"authors": BookRepository(session).list_authors()}

    except Exception as e:
        logger.exception("Error in books/authors resource")
        raise ResourceError(f"Failed to retrieve authors: {e!s}") from e


async def get_book_handler(book_id: str) -> dict[str, Any]:
    """Returns details for a specific book."""
    try:
        logger.debug("MCP Resource Request - books/%s", book_id)

        with session_scope() as session:
            book = BookRepository(session).get_by_id(book_id)

            if book is None:
                raise ResourceError(f"Book not found: {book_id}")

            return book.model_dump(mode="json")

    except ResourceError:
        raise
    except Exception as e:
        logger.exception("Error in books/{book_id} resource")
        raise ResourceError(f"Failed to retrieve book details: {e!s}") from e


async def book_availability_handler(book_id: str) -> dict[str, Any]:
    """
    Returns a book's copy counts and when it is next expected to be free.

    The estimate comes from the earliest due date among the book's active
    loans plus one waiting period per queued reservation.
    """
    try:
        with session_scope() as session:
            book = BookRepository(session).get_by_id(book_id)
            if book is None:
                raise ResourceError(f"Book not found: {book_id}")

            circulation = CirculationRepository(session, get_config().loan_policy)
            estimate = circulation.estimate_availability(book_id)
            queue = circulation.get_book_queue(book_id)

            return {
                "book_id": book.id,
                "available_copies": book.available_copies,
                "total_copies": book.total_copies,
                "is_available": book.is_available,
                "queue_length": len(queue),
                "estimated_availability": estimate.isoformat(),
            }

    except ResourceError:
        raise
    except NotFoundError as e:
        raise ResourceError(str(e)) from e
    except Exception as e:
        logger.exception("Error in books/{book_id}/availability resource")
        raise ResourceError(f"Failed to estimate availability: {e!s}") from e


async def book_reservations_handler(book_id: str) -> dict[str, Any]:
    """Returns the active reservations for a book, in queue order."""
    try:
        with session_scope() as session:
            if not BookRepository(session).exists(book_id):
                raise ResourceError(f"Book not found: {book_id}")

            queue = CirculationRepository(session).get_book_queue(book_id)
            return {
                "book_id": book_id,
                "reservations": [r.model_dump(mode="json") for r in queue],
                "total": len(queue),
            }

    except ResourceError:
        raise
    except Exception as e:
        logger.exception("Error in books/{book_id}/reservations resource")
        raise ResourceError(f"Failed to retrieve reservation queue: {e!s}") from e


book_resources: list[dict[str, Any]] = [
    {
        "uri": "library://books/list",
        "name": "Book Catalog",
        "description": "Every book in the catalog with its copy counts, ordered by title",
        "mime_type": "application/json",
        "handler": list_books_handler,
    },
    {
        "uri": "library://books/genres",
        "name": "Genres",
        "description": "Distinct genres in the catalog, for filtering",
        "mime_type": "application/json",
        "handler": list_genres_handler,
    },
    {
        "uri": "library://books/authors",
        "name": "Authors",
        "description": "Distinct author names in the catalog, for filtering",
        "mime_type": "application/json",
        "handler": list_authors_handler,
    },
    {
        "uri_template": "library://books/{book_id}",
        "name": "Book Details",
        "description": "Get detailed information about a specific book by ID",
        "mime_type": "application/json",
        "handler": get_book_handler,
    },
    {
        "uri_template": "library://books/{book_id}/availability",
        "name": "Book Availability",
        "description": (
            "Copy counts, queue length and the estimated date the book is next free"
        ),
        "mime_type": "application/json",
        "handler": book_availability_handler,
    },
    {
        "uri_template": "library://books/{book_id}/reservations",
        "name": "Book Reservation Queue",
        "description": "Active reservations for a book in queue order",
        "mime_type": "application/json",
        "handler": book_reservations_handler,
    },
]
