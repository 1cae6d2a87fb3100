"""
Reservation tools for the Loan Desk MCP Server.

- reserve_book: join a book's waitlist
- cancel_reservation: leave it

Queue positions are fixed when a reservation is placed and are not
renumbered on cancellation.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field

from ..config import get_config
from ..database.circulation_repository import CirculationRepository
from ..database.repository import RepositoryException
from ..database.session import get_session
from .responses import (
    error_response,
    format_reservation,
    repository_error_response,
    resolve_user_id,
    success_response,
)

logger = logging.getLogger(__name__)


class ReserveBookInput(BaseModel):
    """Input schema for the reserve_book tool."""

    book_id: str = Field(
        ...,
        description="ID of the book to reserve",
        pattern=r"^book_[a-zA-Z0-9_]{4,}$",
        examples=["book_orwell_1984"],
    )

    user_id: str | None = Field(
        default=None,
        description="Reserving member. Defaults to the current user",
        pattern=r"^user_[a-zA-Z0-9_]{4,}$",
    )


class CancelReservationInput(BaseModel):
    """Input schema for the cancel_reservation tool."""

    reservation_id: str = Field(
        ...,
        description="ID of the reservation to cancel",
        pattern=r"^reservation_[a-zA-Z0-9]{6,}$",
        examples=["reservation_202401150001"],
    )


async def reserve_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Handler for the reserve_book tool.

    The response carries the queue position and the estimate stamped on the
    reservation (one waiting period per position).
    """
    try:
        try:
            params = ReserveBookInput.model_validate(arguments)
        except Exception as e:
            logger.warning("Invalid reservation parameters: %s", e)
            return error_response(f"Invalid reservation parameters: {e}", "InvalidInput")

        with get_session() as session:
            try:
                user_id = resolve_user_id(session, params.user_id)
                repo = CirculationRepository(session, get_config().loan_policy)
                reservation = repo.reserve_book(params.book_id, user_id)
            except RepositoryException as e:
                logger.info("Reservation refused: %s", e)
                return repository_error_response(e)

        message = (
            f"Reserved book '{reservation.book_id}'. You are number {reservation.position} "
            f"in the queue; estimated availability "
            f"{reservation.estimated_availability.strftime('%B %d, %Y')}"
        )
        return success_response(message, {"reservation": format_reservation(reservation)})

    except Exception as e:
        logger.exception("Unexpected error in reserve_book tool")
        return error_response(f"An unexpected error occurred: {e!s}", "InternalError")


async def cancel_reservation_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the cancel_reservation tool."""
    try:
        try:
            params = CancelReservationInput.model_validate(arguments)
        except Exception as e:
            logger.warning("Invalid cancellation parameters: %s", e)
            return error_response(f"Invalid cancellation parameters: {e}", "InvalidInput")

        with get_session() as session:
            try:
                repo = CirculationRepository(session, get_config().loan_policy)
                reservation = repo.cancel_reservation(params.reservation_id)
            except RepositoryException as e:
                logger.info("Cancellation refused: %s", e)
                return repository_error_response(e)

        return success_response(
            f"Cancelled reservation {reservation.id}.",
            {"reservation": format_reservation(reservation)},
        )

    except Exception as e:
        logger.exception("Unexpected error in cancel_reservation tool")
        return error_response(f"An unexpected error occurred: {e!s}", "InternalError")


reserve_book = {
    "name": "reserve_book",
    "description": (
        "Reserve a book. Adds the member to the end of the book's waitlist and "
        "returns the queue position with an estimated availability date."
    ),
    "inputSchema": ReserveBookInput.model_json_schema(),
    "handler": reserve_book_handler,
}

cancel_reservation = {
    "name": "cancel_reservation",
    "description": (
        "Cancel an active reservation. Other reservations keep their queue positions."
    ),
    "inputSchema": CancelReservationInput.model_json_schema(),
    "handler": cancel_reservation_handler,
}
