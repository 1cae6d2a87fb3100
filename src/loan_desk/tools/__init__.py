"""
MCP Tools for the Loan Desk Server.

Tools are the state-changing half of the server: borrowing, returning,
renewing, reserving, cancelling and profile edits, plus catalog search.
Each tool is a dictionary with a name, description, JSON input schema and an
async handler taking the raw ``arguments`` dict.
"""

from .catalog import search_catalog
from .circulation import borrow_book, renew_loan, return_book
from .profile import update_profile
from .reservations import cancel_reservation, reserve_book

all_tools = [
    search_catalog,
    borrow_book,
    return_book,
    renew_loan,
    reserve_book,
    cancel_reservation,
    update_profile,
]

__all__ = [
    "all_tools",
    "borrow_book",
    "cancel_reservation",
    "renew_loan",
    "reserve_book",
    "return_book",
    "search_catalog",
    "update_profile",
]
