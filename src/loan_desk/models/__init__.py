"""
Loan Desk MCP Server Models.

Pydantic models for the entities the server exchanges with its clients:

- Book: catalog entries with copy counts
- Loan: one borrowing of one book, with its fee and renewal rules
- Reservation: a place in a book's waitlist
- User: a library member and their profile
"""

from .book import Book
from .loan import (
    Loan,
    LoanPolicy,
    LoanStatus,
    LoanSummary,
    calculate_late_fee,
    whole_days_between,
)
from .reservation import (
    Reservation,
    ReservationStatus,
    estimate_from_loans,
    estimate_from_position,
)
from .user import User, UserProfileUpdate

__all__ = [
    "Book",
    "Loan",
    "LoanPolicy",
    "LoanStatus",
    "LoanSummary",
    "Reservation",
    "ReservationStatus",
    "User",
    "UserProfileUpdate",
    "calculate_late_fee",
    "estimate_from_loans",
    "estimate_from_position",
    "whole_days_between",
]
