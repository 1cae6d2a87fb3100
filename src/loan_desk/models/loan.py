"""
Loan models for the Loan Desk MCP Server.

A loan records one user borrowing one book for a bounded period. Its
lifecycle is a two-state machine:

    active --return--> returned
      |  ^
      +--+ renew (only while not overdue)

The fee and due-date arithmetic lives here as pure functions so that the
repository layer only has to load, check and persist.
"""

from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

ONE_DAY = timedelta(days=1)


class LoanStatus(str, Enum):
    """Status of a loan."""

    ACTIVE = "active"
    RETURNED = "returned"


class LoanPolicy(BaseModel):
    """Lending rules shared by loans and reservations."""

    loan_period_days: int = Field(default=14, ge=1)
    renewal_period_days: int = Field(default=14, ge=1)
    daily_late_fee: float = Field(default=0.50, ge=0.0)
    reservation_wait_days: int = Field(default=7, ge=1)

    @property
    def loan_period(self) -> timedelta:
        return timedelta(days=self.loan_period_days)

    @property
    def renewal_period(self) -> timedelta:
        return timedelta(days=self.renewal_period_days)

    @property
    def reservation_wait(self) -> timedelta:
        return timedelta(days=self.reservation_wait_days)


def whole_days_between(start: datetime, end: datetime) -> int:
    """Number of whole days from ``start`` to ``end``.

    Partial days are truncated toward zero, so 2 days 23 hours is 2 and
    -0.5 days is 0.
    """
    return int((end - start) / ONE_DAY)


def calculate_late_fee(due_date: datetime, return_date: datetime, daily_rate: float = 0.50) -> float:
    """
    Late fee for a loan returned at ``return_date``.

    Args:
        due_date: When the loan was due
        return_date: When the book came back
        daily_rate: Fee per whole day late (default $0.50)

    Returns:
        ``max(0, whole days late) * daily_rate``, rounded to cents
    """
    if return_date <= due_date:
        return 0.0
    days_late = max(0, whole_days_between(due_date, return_date))
    return round(days_late * daily_rate, 2)


class Loan(BaseModel):
    """
    Represents one borrowing of a book.

    ``return_date`` and a non-zero ``late_fee`` only exist once the loan has
    been returned; ``due_date`` only moves through renewal.
    """

    id: str = Field(
        ...,
        description="Unique identifier for the loan",
        pattern=r"^loan_[a-zA-Z0-9]{6,}$",
        examples=["loan_202401150001"],
    )

    user_id: str = Field(
        ...,
        description="ID of the user who borrowed the book",
        pattern=r"^user_[a-zA-Z0-9_]{4,}$",
        examples=["user_0001"],
    )

    book_id: str = Field(
        ...,
        description="ID of the borrowed book",
        pattern=r"^book_[a-zA-Z0-9_]{4,}$",
        examples=["book_0001"],
    )

    borrow_date: datetime = Field(
        ...,
        description="When the book was borrowed",
    )

    due_date: datetime = Field(
        ...,
        description="When the book must be returned",
    )

    return_date: datetime | None = Field(
        None,
        description="When the book was actually returned",
    )

    status: LoanStatus = Field(
        default=LoanStatus.ACTIVE,
        description="Current status of the loan",
    )

    late_fee: float = Field(
        default=0.0,
        description="Fee assessed on return, in currency units",
        ge=0.0,
    )

    renewal_count: int = Field(
        default=0,
        description="Number of times the loan has been renewed",
        ge=0,
    )

    @model_validator(mode="after")
    def validate_lifecycle(self) -> "Loan":
        """Validate date ordering and the fields tied to the returned state."""
        if self.due_date <= self.borrow_date:
            raise ValueError("Due date must be after borrow date")

        if self.status == LoanStatus.ACTIVE:
            if self.return_date is not None:
                raise ValueError("Active loans cannot have a return date")
            if self.late_fee:
                raise ValueError("Active loans cannot carry a late fee")
        else:
            if self.return_date is None:
                raise ValueError("Returned loans must have a return date")
            if self.return_date < self.borrow_date:
                raise ValueError("Return date cannot be before borrow date")

        return self

    def is_overdue(self, now: datetime | None = None) -> bool:
        """An active loan is overdue strictly after its due date."""
        if self.status != LoanStatus.ACTIVE:
            return False
        now = now or datetime.now()
        return now > self.due_date

    def days_until_due(self, now: datetime | None = None) -> int:
        """Whole days left before the due date (negative once overdue)."""
        now = now or datetime.now()
        return whole_days_between(now, self.due_date)

    def days_overdue(self, now: datetime | None = None) -> int:
        """Whole days past the due date for an active loan, else 0."""
        if not self.is_overdue(now):
            return 0
        now = now or datetime.now()
        return whole_days_between(self.due_date, now)

    model_config = ConfigDict(
        validate_assignment=True,
        use_enum_values=True,
        populate_by_name=True,
        validate_default=True,
        json_schema_extra={
            "example": {
                "id": "loan_202401150001",
                "user_id": "user_0001",
                "book_id": "book_0001",
                "borrow_date": "2024-01-15T10:30:00",
                "due_date": "2024-01-29T10:30:00",
                "return_date": None,
                "status": "active",
                "late_fee": 0.0,
                "renewal_count": 0,
            }
        },
    )


class LoanSummary(BaseModel):
    """Per-user loan statistics for the history view."""

    user_id: str
    total_loans: int = Field(ge=0)
    active_loans: int = Field(ge=0)
    returned_loans: int = Field(ge=0)
    overdue_loans: int = Field(ge=0)
    total_late_fees: float = Field(ge=0.0)
