"""Loan Resources - Borrowing History and Waitlists

Per-member views of circulation data.

Resources:
- library://users/{user_id}/loans/current - active loans, soonest due first
- library://users/{user_id}/loans/history - every loan, most recent first
- library://users/{user_id}/loans/overdue - active loans past their due date
- library://users/{user_id}/loans/summary - counts and total late fees
- library://users/{user_id}/loans/history.csv - history as a CSV download
- library://users/{user_id}/reservations - active reservations, oldest first

Unknown members are reported as errors rather than as empty lists.
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from fastmcp.exceptions import ResourceError
from sqlalchemy.orm import Session

from ..config import get_config
from ..database.circulation_repository import CirculationRepository
from ..database.session import session_scope
from ..database.user_repository import UserRepository
from ..tools.responses import format_loan

T = TypeVar("T")

logger = logging.getLogger(__name__)


def _read_for_user(user_id: str, label: str, read: Callable[[CirculationRepository], T]) -> T:
    """Run ``read`` against a circulation repository after checking the user exists."""
    try:
        with session_scope() as session:
            _require_user(session, user_id)
            return read(CirculationRepository(session, get_config().loan_policy))

    except ResourceError:
        raise
    except Exception as e:
        logger.exception("Error in users/{user_id}/%s resource", label)
        raise ResourceError(f"Failed to retrieve {label}: {e!s}") from e


def _require_user(session: Session, user_id: str) -> None:
    if not UserRepository(session).exists(user_id):
        raise ResourceError(f"User not found: {user_id}")


async def current_loans_handler(user_id: str) -> dict[str, Any]:
    """Returns a member's active loans with days-until-due."""
    loans = _read_for_user(user_id, "loans/current", lambda r: r.get_current_loans(user_id))
    return {
        "user_id": user_id,
        "loans": [format_loan(loan) for loan in loans],
        "total": len(loans),
    }


async def loan_history_handler(user_id: str) -> dict[str, Any]:
    """Returns every loan a member has taken out."""
    loans = _read_for_user(user_id, "loans/history", lambda r: r.get_loan_history(user_id))
    return {
        "user_id": user_id,
        "loans": [format_loan(loan) for loan in loans],
        "total": len(loans),
    }


async def overdue_loans_handler(user_id: str) -> dict[str, Any]:
    """Returns a member's overdue loans, for the overdue alert."""
    loans = _read_for_user(user_id, "loans/overdue", lambda r: r.get_overdue_loans(user_id))
    return {
        "user_id": user_id,
        "loans": [format_loan(loan) for loan in loans],
        "total": len(loans),
    }


async def loan_summary_handler(user_id: str) -> dict[str, Any]:
    """Returns total, active, returned and overdue counts with total late fees."""
    summary = _read_for_user(user_id, "loans/summary", lambda r: r.get_loan_summary(user_id))
    return summary.model_dump(mode="json")


async def loan_history_csv_handler(user_id: str) -> str:
    """Returns the member's loan history as CSV text."""
    return _read_for_user(user_id, "loans/history.csv", lambda r: r.export_history_csv(user_id))


async def user_reservations_handler(user_id: str) -> dict[str, Any]:
    """Returns a member's active reservations."""
    reservations = _read_for_user(
        user_id, "reservations", lambda r: r.get_reservation_queue(user_id)
    )
    return {
        "user_id": user_id,
        "reservations": [r.model_dump(mode="json") for r in reservations],
        "total": len(reservations),
    }


loan_resources: list[dict[str, Any]] = [
    {
        "uri_template": "library://users/{user_id}/loans/current",
        "name": "Current Loans",
        "description": "A member's active loans, soonest due first",
        "mime_type": "application/json",
        "handler": current_loans_handler,
    },
    {
        "uri_template": "library://users/{user_id}/loans/history",
        "name": "Loan History",
        "description": "Every loan a member has taken out, most recent first",
        "mime_type": "application/json",
        "handler": loan_history_handler,
    },
    {
        "uri_template": "library://users/{user_id}/loans/overdue",
        "name": "Overdue Loans",
        "description": "A member's active loans that are past their due date",
        "mime_type": "application/json",
        "handler": overdue_loans_handler,
    },
    {
        "uri_template": "library://users/{user_id}/loans/summary",
        "name": "Loan Summary",
        "description": "Total, active, returned and overdue loan counts with total late fees",
        "mime_type": "application/json",
        "handler": loan_summary_handler,
    },
    {
        "uri_template": "library://users/{user_id}/loans/history.csv",
        "name": "Loan History Export",
        "description": (
            "Loan history as CSV: Book ID, Borrow Date, Due Date, Return Date, Status, Late Fee"
        ),
        "mime_type": "text/csv",
        "handler": loan_history_csv_handler,
    },
    {
        "uri_template": "library://users/{user_id}/reservations",
        "name": "User Reservations",
        "description": "A member's active reservations, oldest first",
        "mime_type": "application/json",
        "handler": user_reservations_handler,
    },
]
