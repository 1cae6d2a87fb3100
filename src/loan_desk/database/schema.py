"""
SQLAlchemy database schema for the Loan Desk MCP Server.

These tables mirror the Pydantic models and back the MCP resources (reads)
and tools (writes). Each table belongs to exactly one repository; callers only
ever see Pydantic copies of these rows.
"""

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class LoanStatusEnum(str, enum.Enum):
    """Database enum for loan status."""

    ACTIVE = "active"
    RETURNED = "returned"


class ReservationStatusEnum(str, enum.Enum):
    """Database enum for reservation status."""

    ACTIVE = "active"
    CANCELLED = "cancelled"


class Book(Base):
    """
    Books table - the catalog and its copy counts.

    ``available_copies`` is changed by the borrow/return paths only.
    """

    __tablename__ = "books"

    id = Column(String(50), primary_key=True)
    isbn = Column(String(13), nullable=False, unique=True)
    title = Column(String(500), nullable=False)
    author = Column(String(200), nullable=False)
    genre = Column(String(100), nullable=False)
    publication_year = Column(Integer, nullable=False)
    cover_url = Column(String(500), nullable=True)
    total_copies = Column(Integer, nullable=False)
    available_copies = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=True, default=func.now(), onupdate=func.now())

    loans = relationship("Loan", back_populates="book")
    reservations = relationship("Reservation", back_populates="book")

    __table_args__ = (
        Index("idx_book_title", "title"),
        Index("idx_book_author", "author"),
        Index("idx_book_genre", "genre"),
        Index("idx_book_availability", "available_copies"),
        CheckConstraint("id LIKE 'book_%'", name="check_book_id_format"),
        CheckConstraint("available_copies >= 0", name="check_available_copies_non_negative"),
        CheckConstraint(
            "available_copies <= total_copies", name="check_available_not_exceed_total"
        ),
        CheckConstraint("total_copies > 0", name="check_total_copies_positive"),
        CheckConstraint("publication_year >= 1450", name="check_publication_year_valid"),
    )


class User(Base):
    """
    Users table - library members and their profile details.
    """

    __tablename__ = "users"

    id = Column(String(50), primary_key=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(20), nullable=True)
    address = Column(String(500), nullable=True)
    member_since = Column(Date, nullable=False)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    loans = relationship("Loan", back_populates="user", order_by="Loan.borrow_date.desc()")
    reservations = relationship("Reservation", back_populates="user")

    __table_args__ = (
        Index("idx_user_email", "email"),
        CheckConstraint("id LIKE 'user_%'", name="check_user_id_format"),
    )


class Loan(Base):
    """
    Loans table - one row per borrowing.

    Rows are never deleted; returning a loan fills in ``return_date`` and
    ``late_fee`` and flips the status.
    """

    __tablename__ = "loans"

    id = Column(String(50), primary_key=True)
    user_id = Column(String(50), ForeignKey("users.id"), nullable=False)
    book_id = Column(String(50), ForeignKey("books.id"), nullable=False)
    borrow_date = Column(DateTime, nullable=False)
    due_date = Column(DateTime, nullable=False)
    return_date = Column(DateTime, nullable=True)
    status = Column(Enum(LoanStatusEnum), nullable=False, default=LoanStatusEnum.ACTIVE)
    late_fee = Column(Float, nullable=False, default=0.0)
    renewal_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="loans")
    book = relationship("Book", back_populates="loans")

    __table_args__ = (
        Index("idx_loan_user", "user_id"),
        Index("idx_loan_book", "book_id"),
        Index("idx_loan_status", "status"),
        Index("idx_loan_due_date", "due_date"),
        CheckConstraint("id LIKE 'loan_%'", name="check_loan_id_format"),
        CheckConstraint("late_fee >= 0", name="check_late_fee_non_negative"),
        CheckConstraint("renewal_count >= 0", name="check_renewal_count_non_negative"),
        CheckConstraint("due_date > borrow_date", name="check_due_after_borrow"),
    )


class Reservation(Base):
    """
    Reservations table - per-book waitlists.

    ``position`` is assigned once and never compacted, so two active rows for
    the same book can share a position after a cancellation. There is
    intentionally no unique constraint on ``(book_id, position)``.
    """

    __tablename__ = "reservations"

    id = Column(String(50), primary_key=True)
    user_id = Column(String(50), ForeignKey("users.id"), nullable=False)
    book_id = Column(String(50), ForeignKey("books.id"), nullable=False)
    reservation_date = Column(DateTime, nullable=False)
    position = Column(Integer, nullable=False)
    estimated_availability = Column(DateTime, nullable=False)
    status = Column(
        Enum(ReservationStatusEnum), nullable=False, default=ReservationStatusEnum.ACTIVE
    )

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="reservations")
    book = relationship("Book", back_populates="reservations")

    __table_args__ = (
        Index("idx_reservation_user", "user_id"),
        Index("idx_reservation_book", "book_id"),
        Index("idx_reservation_status", "status"),
        Index("idx_reservation_queue", "book_id", "position"),
        CheckConstraint("id LIKE 'reservation_%'", name="check_reservation_id_format"),
        CheckConstraint("position > 0", name="check_position_positive"),
    )
