"""
Catalog search tool for the Loan Desk MCP Server.

Matches the query text case-insensitively against title, author and genre,
then narrows by exact genre, exact author and availability. A genre or
author of ``"all"`` (or leaving it out) disables that facet; the query text
is always matched literally.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ..database.book_repository import Availability, BookRepository, BookSearchParams
from ..database.repository import PaginatedResponse, PaginationParams
from ..database.session import get_session
from ..models.book import Book
from .responses import error_response, success_response

logger = logging.getLogger(__name__)


class SearchCatalogInput(BaseModel):
    """Input schema for the search_catalog tool."""

    query: str | None = Field(
        default=None,
        description="Text to find in the title, author or genre",
        max_length=200,
        examples=["orwell", "dystopian", "farm"],
    )

    genre: str | None = Field(
        default=None,
        description="Exact genre, or 'all'",
        examples=["Fiction", "Science Fiction", "all"],
    )

    author: str | None = Field(
        default=None,
        description="Exact author name, or 'all'",
        examples=["George Orwell", "all"],
    )

    availability: Availability = Field(
        default=Availability.ALL,
        description="'available' (copies on the shelf), 'unavailable' (none left) or 'all'",
    )

    page: int = Field(default=1, description="Page number (1-indexed)", ge=1, le=1000)

    page_size: int = Field(default=20, description="Number of results per page", ge=1, le=100)

    def to_search_params(self) -> BookSearchParams:
        return BookSearchParams(
            query=self.query,
            genre=self.genre,
            author=self.author,
            availability=self.availability,
        )

    def to_pagination_params(self) -> PaginationParams:
        return PaginationParams(page=self.page, page_size=self.page_size)


def format_book(book: Book) -> dict[str, Any]:
    """Book as shown on a search result card."""
    data = book.model_dump(mode="json")
    data["is_available"] = book.is_available
    return data


def summarize(page: PaginatedResponse[Book]) -> str:
    if page.total == 0:
        return "No books match that search."
    summary = f"{page.total} book(s) match"
    if page.total_pages > 1:
        summary += f", page {page.page} of {page.total_pages}"
    return summary + "."


async def search_catalog_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Handler for the search_catalog tool.

    With no query and no filters it pages through the whole catalog.
    """
    try:
        params = SearchCatalogInput.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Rejected search_catalog arguments: %s", e)
        return error_response(f"Invalid search parameters: {e}", "InvalidInput")

    with get_session() as session:
        try:
            page = BookRepository(session).search(
                search_params=params.to_search_params(),
                pagination=params.to_pagination_params(),
            )
        except Exception as e:
            logger.exception("Catalog search failed for %s", arguments)
            return error_response(f"Search failed: {e!s}", "InternalError")

    return success_response(
        summarize(page),
        {
            "books": [format_book(book) for book in page.items],
            "pagination": page.model_dump(exclude={"items"}),
        },
    )


search_catalog = {
    "name": "search_catalog",
    "description": (
        "Search the library catalog. Matches text against title, author and genre, "
        "with optional exact genre/author filters and an availability filter."
    ),
    "inputSchema": SearchCatalogInput.model_json_schema(),
    "handler": search_catalog_handler,
}
