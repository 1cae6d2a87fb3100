"""Loan Desk MCP Resources Package

Resources are the read-only half of the server: the catalog, member
profiles, loan views and reservation queues, each addressed by a
``library://`` URI. State changes go through tools instead.
"""

from .books import book_resources
from .loans import loan_resources
from .users import user_resources

all_resources = book_resources + user_resources + loan_resources

__all__ = [
    "all_resources",
    "book_resources",
    "loan_resources",
    "user_resources",
]
