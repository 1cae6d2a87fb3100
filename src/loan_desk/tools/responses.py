"""
Shared response helpers for Loan Desk MCP tools.

Tools answer with an MCP content array. Successful calls add a ``data``
object for programmatic follow-up; failed calls set ``isError`` and name the
repository error kind in ``errorType`` so clients can branch on it.
"""

from typing import Any

from sqlalchemy.orm import Session

from ..config import get_config
from ..database.repository import (
    DuplicateError,
    InvalidStateError,
    NotFoundError,
    OverdueError,
    RepositoryException,
    UnavailableError,
)
from ..database.user_repository import UserRepository
from ..models.loan import Loan
from ..models.reservation import Reservation

ERROR_TYPES: dict[type[RepositoryException], str] = {
    NotFoundError: "NotFound",
    UnavailableError: "Unavailable",
    InvalidStateError: "InvalidState",
    OverdueError: "Overdue",
    DuplicateError: "Duplicate",
}


def error_response(message: str, error_type: str | None = None) -> dict[str, Any]:
    response: dict[str, Any] = {
        "isError": True,
        "content": [{"type": "text", "text": message}],
    }
    if error_type:
        response["errorType"] = error_type
    return response


def repository_error_response(error: RepositoryException) -> dict[str, Any]:
    """Error response for a refused operation, tagged with its error kind."""
    return error_response(str(error), ERROR_TYPES.get(type(error), "InternalError"))


def success_response(message: str, data: dict[str, Any]) -> dict[str, Any]:
    return {
        "content": [{"type": "text", "text": message}],
        "data": data,
    }


def resolve_user_id(session: Session, user_id: str | None) -> str:
    """The explicit ``user_id`` if given, else the session's current member."""
    if user_id:
        return user_id
    return UserRepository(session).get_current_user(get_config().current_user_id).id


def format_loan(loan: Loan) -> dict[str, Any]:
    """Loan as JSON-safe data, including the countdown shown on loan cards."""
    data = loan.model_dump(mode="json")
    data["days_until_due"] = loan.days_until_due()
    data["is_overdue"] = loan.is_overdue()
    return data


def format_reservation(reservation: Reservation) -> dict[str, Any]:
    return reservation.model_dump(mode="json")
