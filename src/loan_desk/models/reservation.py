"""
Reservation models for the Loan Desk MCP Server.

Each book has its own waitlist. A reservation's ``position`` is fixed when it
is placed (active reservations for the book + 1) and is not renumbered when an
earlier reservation is cancelled.

Two availability estimates exist and are deliberately kept apart:

- ``estimate_from_position`` - the quick figure stamped on a new reservation,
  one waiting period per queue position.
- ``estimate_from_loans`` - the display estimate for a book, driven by the
  earliest due date among its active loans plus the queue length.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .loan import whole_days_between

DEFAULT_WAIT_DAYS = 7


class ReservationStatus(str, Enum):
    """Status of a reservation."""

    ACTIVE = "active"
    CANCELLED = "cancelled"


def estimate_from_position(
    position: int, now: datetime, wait_days: int = DEFAULT_WAIT_DAYS
) -> datetime:
    """Linear estimate used when a reservation is placed: ``now + position * wait``."""
    return now + timedelta(days=position * wait_days)


def estimate_from_loans(
    due_dates: Iterable[datetime],
    queue_length: int,
    now: datetime,
    wait_days: int = DEFAULT_WAIT_DAYS,
) -> datetime:
    """
    Estimate when a book will next be free for a new reservation.

    Args:
        due_dates: Due dates of the book's active loans
        queue_length: Number of active reservations already waiting
        now: Reference time
        wait_days: Days each queued reservation is expected to hold the book

    Returns:
        ``now`` plus the days until the earliest due date (at least one)
        plus ``queue_length * wait_days``; one waiting period when nothing
        is out on loan.
    """
    due_dates = list(due_dates)
    if not due_dates:
        return now + timedelta(days=wait_days)

    earliest_due = min(due_dates)
    days_until_return = max(whole_days_between(now, earliest_due), 1)
    return now + timedelta(days=days_until_return + queue_length * wait_days)


class Reservation(BaseModel):
    """
    Represents a place in a book's waitlist.
    """

    id: str = Field(
        ...,
        description="Unique identifier for the reservation",
        pattern=r"^reservation_[a-zA-Z0-9]{6,}$",
        examples=["reservation_202401150001"],
    )

    user_id: str = Field(
        ...,
        description="ID of the user who placed the reservation",
        pattern=r"^user_[a-zA-Z0-9_]{4,}$",
    )

    book_id: str = Field(
        ...,
        description="ID of the reserved book",
        pattern=r"^book_[a-zA-Z0-9_]{4,}$",
    )

    reservation_date: datetime = Field(
        ...,
        description="When the reservation was placed",
    )

    position: int = Field(
        ...,
        description="1-based position in the book's queue, fixed at creation",
        ge=1,
    )

    estimated_availability: datetime = Field(
        ...,
        description="Estimated date the book becomes available for this user",
    )

    status: ReservationStatus = Field(
        default=ReservationStatus.ACTIVE,
        description="Current status of the reservation",
    )

    @property
    def is_active(self) -> bool:
        return self.status == ReservationStatus.ACTIVE

    model_config = ConfigDict(
        validate_assignment=True,
        use_enum_values=True,
        populate_by_name=True,
        validate_default=True,
        json_schema_extra={
            "example": {
                "id": "reservation_202401150001",
                "user_id": "user_0001",
                "book_id": "book_0003",
                "reservation_date": "2024-01-15T10:30:00",
                "position": 2,
                "estimated_availability": "2024-01-29T10:30:00",
                "status": "active",
            }
        },
    )
