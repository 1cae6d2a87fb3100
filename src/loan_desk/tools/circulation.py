"""
Circulation tools for the Loan Desk MCP Server.

1. borrow_book: create a loan and take a copy off the shelf
2. return_book: close a loan, assess the late fee, put the copy back
3. renew_loan: push an active loan's due date out by one renewal period

Each handler validates its arguments with a Pydantic model, runs one
repository operation in its own session, and answers with a text summary
plus structured ``data``. Refusals (unknown IDs, no copies, wrong state,
overdue) come back as ``isError`` responses tagged with ``errorType``.
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
    format_loan,
    repository_error_response,
    resolve_user_id,
    success_response,
)

logger = logging.getLogger(__name__)


# =============================================================================
# BORROW TOOL
# =============================================================================


class BorrowBookInput(BaseModel):
    """Input schema for the borrow_book tool."""

    book_id: str = Field(
        ...,
        description="ID of the book to borrow",
        pattern=r"^book_[a-zA-Z0-9_]{4,}$",
        examples=["book_orwell_1984", "book_00042"],
    )

    user_id: str | None = Field(
        default=None,
        description="Borrowing member. Defaults to the current user",
        pattern=r"^user_[a-zA-Z0-9_]{4,}$",
        examples=["user_jane_doe"],
    )


async def borrow_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Handler for the borrow_book tool.

    The loan and the copy-count decrement are committed together by the
    repository, so a refused or failed borrow changes nothing.

    Args:
        arguments: Raw arguments from the MCP tools/call request

    Returns:
        Structured response with the new loan, or an error response
    """
    try:
        try:
            params = BorrowBookInput.model_validate(arguments)
        except Exception as e:
            logger.warning("Invalid borrow parameters: %s", e)
            return error_response(f"Invalid borrow parameters: {e}", "InvalidInput")

        with get_session() as session:
            try:
                user_id = resolve_user_id(session, params.user_id)
                repo = CirculationRepository(session, get_config().loan_policy)
                loan = repo.borrow_book(params.book_id, user_id)
            except RepositoryException as e:
                logger.info("Borrow refused: %s", e)
                return repository_error_response(e)

        message = (
            f"Borrowed book '{loan.book_id}' for {loan.user_id}. "
            f"Due date: {loan.due_date.strftime('%B %d, %Y')}"
        )
        return success_response(message, {"loan": format_loan(loan)})

    except Exception as e:
        logger.exception("Unexpected error in borrow_book tool")
        return error_response(f"An unexpected error occurred: {e!s}", "InternalError")


# =============================================================================
# RETURN TOOL
# =============================================================================


class LoanIdInput(BaseModel):
    """Input schema for tools that act on a single loan."""

    loan_id: str = Field(
        ...,
        description="ID of the loan",
        pattern=r"^loan_[a-zA-Z0-9]{6,}$",
        examples=["loan_202401150001"],
    )


async def return_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Handler for the return_book tool.

    Late fees are $0.50 (by default) per whole day past the due date.
    """
    try:
        try:
            params = LoanIdInput.model_validate(arguments)
        except Exception as e:
            logger.warning("Invalid return parameters: %s", e)
            return error_response(f"Invalid return parameters: {e}", "InvalidInput")

        with get_session() as session:
            try:
                repo = CirculationRepository(session, get_config().loan_policy)
                loan = repo.return_book(params.loan_id)
            except RepositoryException as e:
                logger.info("Return refused: %s", e)
                return repository_error_response(e)

        message = f"Returned book '{loan.book_id}'."
        if loan.late_fee > 0:
            message += f" Late fee: ${loan.late_fee:.2f}"
        else:
            message += " No late fee."
        return success_response(message, {"loan": format_loan(loan)})

    except Exception as e:
        logger.exception("Unexpected error in return_book tool")
        return error_response(f"An unexpected error occurred: {e!s}", "InternalError")


# =============================================================================
# RENEW TOOL
# =============================================================================


async def renew_loan_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Handler for the renew_loan tool. Overdue loans cannot be renewed."""
    try:
        try:
            params = LoanIdInput.model_validate(arguments)
        except Exception as e:
            logger.warning("Invalid renewal parameters: %s", e)
            return error_response(f"Invalid renewal parameters: {e}", "InvalidInput")

        with get_session() as session:
            try:
                repo = CirculationRepository(session, get_config().loan_policy)
                loan = repo.renew_loan(params.loan_id)
            except RepositoryException as e:
                logger.info("Renewal refused: %s", e)
                return repository_error_response(e)

        message = (
            f"Renewed loan {loan.id}. New due date: {loan.due_date.strftime('%B %d, %Y')} "
            f"(renewal #{loan.renewal_count})"
        )
        return success_response(message, {"loan": format_loan(loan)})

    except Exception as e:
        logger.exception("Unexpected error in renew_loan tool")
        return error_response(f"An unexpected error occurred: {e!s}", "InternalError")


# =============================================================================
# TOOL REGISTRATION
# =============================================================================

borrow_book = {
    "name": "borrow_book",
    "description": (
        "Borrow a book. Creates a 14-day loan and takes one copy off the shelf. "
        "Fails if the book or member is unknown or no copies are available."
    ),
    "inputSchema": BorrowBookInput.model_json_schema(),
    "handler": borrow_book_handler,
}

return_book = {
    "name": "return_book",
    "description": (
        "Return a borrowed book. Closes the loan, assesses a late fee of $0.50 per "
        "whole day past the due date, and puts the copy back on the shelf."
    ),
    "inputSchema": LoanIdInput.model_json_schema(),
    "handler": return_book_handler,
}

renew_loan = {
    "name": "renew_loan",
    "description": (
        "Renew an active loan for another 14 days. Loans that are already overdue "
        "or have been returned cannot be renewed."
    ),
    "inputSchema": LoanIdInput.model_json_schema(),
    "handler": renew_loan_handler,
}
