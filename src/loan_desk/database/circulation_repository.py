"""
Circulation repository for the Loan Desk MCP Server.

Owns loans and reservations:

1. **Borrowing**: loan creation plus the catalog decrement, in one transaction
2. **Returns**: late-fee assessment plus the catalog increment, in one transaction
3. **Renewals**: due-date extension for active, not-yet-overdue loans
4. **Reservations**: per-book waitlists and availability estimates

Every operation that mutates state accepts an optional ``now`` so callers
(and tests) can pin the clock; it defaults to local ``datetime.now()``.
Rule violations raise before anything is written.
"""

import csv
import io
import logging
from datetime import datetime

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from ..models.loan import Loan as LoanModel
from ..models.loan import LoanPolicy, LoanStatus, LoanSummary, calculate_late_fee
from ..models.reservation import Reservation as ReservationModel
from ..models.reservation import (
    ReservationStatus,
    estimate_from_loans,
    estimate_from_position,
)
from .repository import (
    InvalidStateError,
    NotFoundError,
    OverdueError,
    RepositoryException,
    UnavailableError,
)
from .schema import Book as BookDB
from .schema import Loan as LoanDB
from .schema import LoanStatusEnum, ReservationStatusEnum
from .schema import Reservation as ReservationDB
from .schema import User as UserDB
from .session import mcp_safe_commit, mcp_safe_query

logger = logging.getLogger(__name__)

CSV_HEADERS = ["Book ID", "Borrow Date", "Due Date", "Return Date", "Status", "Late Fee"]


class CirculationRepository:
    """
    Repository for loans and reservations.

    Borrow and return touch both the loan and the book row; each runs as a
    single commit so a failure leaves neither change applied.
    """

    def __init__(self, session: Session, policy: LoanPolicy | None = None):
        self.session = session
        self.policy = policy or LoanPolicy()

    # Loans

    def get_loan(self, loan_id: str) -> LoanModel | None:
        loan = self._get_loan_row(loan_id)
        if loan is None:
            return None
        return self._loan_to_model(loan)

    def list_loans(self) -> list[LoanModel]:
        """Every loan, most recently borrowed first."""
        query = select(LoanDB).order_by(LoanDB.borrow_date.desc())
        results = mcp_safe_query(
            self.session, lambda s: s.execute(query).scalars().all(), "Failed to list loans"
        )
        return [self._loan_to_model(loan) for loan in results]

    def get_current_loans(self, user_id: str) -> list[LoanModel]:
        """Active loans for a user, soonest due first."""
        query = (
            select(LoanDB)
            .where(and_(LoanDB.user_id == user_id, LoanDB.status == LoanStatusEnum.ACTIVE))
            .order_by(LoanDB.due_date)
        )
        results = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to get current loans",
        )
        return [self._loan_to_model(loan) for loan in results]

    def get_loan_history(self, user_id: str) -> list[LoanModel]:
        """All loans for a user, most recently borrowed first."""
        query = (
            select(LoanDB).where(LoanDB.user_id == user_id).order_by(LoanDB.borrow_date.desc())
        )
        results = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to get loan history",
        )
        return [self._loan_to_model(loan) for loan in results]

    def get_overdue_loans(self, user_id: str, now: datetime | None = None) -> list[LoanModel]:
        """Active loans for a user whose due date has passed."""
        now = now or datetime.now()
        query = (
            select(LoanDB)
            .where(
                and_(
                    LoanDB.user_id == user_id,
                    LoanDB.status == LoanStatusEnum.ACTIVE,
                    LoanDB.due_date < now,
                )
            )
            .order_by(LoanDB.due_date)
        )
        results = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to get overdue loans",
        )
        return [self._loan_to_model(loan) for loan in results]

    def get_loan_summary(self, user_id: str, now: datetime | None = None) -> LoanSummary:
        """Counts and fee total over a user's loan history."""
        now = now or datetime.now()
        history = self.get_loan_history(user_id)
        return LoanSummary(
            user_id=user_id,
            total_loans=len(history),
            active_loans=sum(1 for loan in history if loan.status == LoanStatus.ACTIVE),
            returned_loans=sum(1 for loan in history if loan.status == LoanStatus.RETURNED),
            overdue_loans=sum(1 for loan in history if loan.is_overdue(now)),
            total_late_fees=round(sum(loan.late_fee for loan in history), 2),
        )

    def export_history_csv(self, user_id: str) -> str:
        """
        Render a user's loan history as CSV.

        Dates are written as ``YYYY-MM-DD``; active loans have an empty
        return date.
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for loan in self.get_loan_history(user_id):
            writer.writerow(
                [
                    loan.book_id,
                    loan.borrow_date.strftime("%Y-%m-%d"),
                    loan.due_date.strftime("%Y-%m-%d"),
                    loan.return_date.strftime("%Y-%m-%d") if loan.return_date else "",
                    loan.status,
                    f"{loan.late_fee:.2f}",
                ]
            )
        return buffer.getvalue()

    def borrow_book(self, book_id: str, user_id: str, now: datetime | None = None) -> LoanModel:
        """
        Lend one copy of a book to a user.

        Creates an active loan due one loan period from ``now`` and takes a
        copy off the shelf, committed together.

        Raises:
            NotFoundError: If the user or book does not exist
            UnavailableError: If no copies are available
        """
        now = now or datetime.now()

        user = self._get_user_row(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")

        book = self._lock_book(book_id)
        if book is None:
            raise NotFoundError(f"Book {book_id} not found")

        if book.available_copies <= 0:
            logger.info("Borrow refused: no copies of %s available", book_id)
            raise UnavailableError(f"Book '{book.title}' has no available copies")

        loan_id = self._generate_loan_id()

        try:
            loan = LoanDB(
                id=loan_id,
                user_id=user_id,
                book_id=book_id,
                borrow_date=now,
                due_date=now + self.policy.loan_period,
                status=LoanStatusEnum.ACTIVE,
                late_fee=0.0,
                renewal_count=0,
            )
            self.session.add(loan)

            book.available_copies -= 1

            mcp_safe_commit(self.session, "borrow book")
            self.session.refresh(loan)
        except Exception as e:
            self.session.rollback()
            raise RepositoryException(f"Borrow failed: {e!s}") from e

        logger.info("Loan %s created: %s borrowed by %s", loan_id, book_id, user_id)
        return self._loan_to_model(loan)

    def return_book(self, loan_id: str, now: datetime | None = None) -> LoanModel:
        """
        Close an active loan.

        Assesses the late fee for whole days past the due date and puts the
        copy back on the shelf, committed together. If every copy is already
        on the shelf the count is left at ``total_copies`` and the
        inconsistency is logged; the loan is still returned.

        Raises:
            NotFoundError: If the loan does not exist
            InvalidStateError: If the loan has already been returned, or ``now``
                is before the borrow date
        """
        now = now or datetime.now()

        loan = self._get_loan_row(loan_id)
        if loan is None:
            raise NotFoundError(f"Loan {loan_id} not found")

        if loan.status != LoanStatusEnum.ACTIVE:
            logger.info("Return refused: loan %s is %s", loan_id, loan.status.value)
            raise InvalidStateError(f"Loan {loan_id} has already been returned")

        if now < loan.borrow_date:
            logger.info("Return refused: loan %s was borrowed after %s", loan_id, now)
            raise InvalidStateError(f"Loan {loan_id} cannot be returned before it was borrowed")

        late_fee = calculate_late_fee(loan.due_date, now, self.policy.daily_late_fee)

        try:
            loan.return_date = now
            loan.late_fee = late_fee
            loan.status = LoanStatusEnum.RETURNED

            book = self._lock_book(loan.book_id)
            if book is not None:
                if book.available_copies >= book.total_copies:
                    logger.error(
                        "Return of loan %s would exceed %d copies of %s; count left unchanged",
                        loan_id,
                        book.total_copies,
                        book.id,
                    )
                else:
                    book.available_copies += 1

            mcp_safe_commit(self.session, "return book")
            self.session.refresh(loan)
        except Exception as e:
            self.session.rollback()
            raise RepositoryException(f"Return failed: {e!s}") from e

        logger.info("Loan %s returned, late fee %.2f", loan_id, late_fee)
        return self._loan_to_model(loan)

    def renew_loan(self, loan_id: str, now: datetime | None = None) -> LoanModel:
        """
        Extend an active loan by one renewal period.

        Raises:
            NotFoundError: If the loan does not exist
            InvalidStateError: If the loan is not active
            OverdueError: If the loan is already past its due date
        """
        now = now or datetime.now()

        loan = self._get_loan_row(loan_id)
        if loan is None:
            raise NotFoundError(f"Loan {loan_id} not found")

        if loan.status != LoanStatusEnum.ACTIVE:
            logger.info("Renewal refused: loan %s is %s", loan_id, loan.status.value)
            raise InvalidStateError(f"Loan {loan_id} is not active and cannot be renewed")

        if now > loan.due_date:
            logger.info("Renewal refused: loan %s is overdue", loan_id)
            raise OverdueError(f"Loan {loan_id} is overdue and cannot be renewed")

        try:
            loan.due_date = loan.due_date + self.policy.renewal_period
            loan.renewal_count += 1

            mcp_safe_commit(self.session, "renew loan")
            self.session.refresh(loan)
        except Exception as e:
            self.session.rollback()
            raise RepositoryException(f"Renewal failed: {e!s}") from e

        logger.info("Loan %s renewed until %s", loan_id, loan.due_date)
        return self._loan_to_model(loan)

    # Reservations

    def get_reservation(self, reservation_id: str) -> ReservationModel | None:
        reservation = self._get_reservation_row(reservation_id)
        if reservation is None:
            return None
        return self._reservation_to_model(reservation)

    def get_reservation_queue(self, user_id: str) -> list[ReservationModel]:
        """A user's active reservations, oldest first."""
        query = (
            select(ReservationDB)
            .where(
                and_(
                    ReservationDB.user_id == user_id,
                    ReservationDB.status == ReservationStatusEnum.ACTIVE,
                )
            )
            .order_by(ReservationDB.reservation_date, ReservationDB.id)
        )
        results = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to get reservation queue",
        )
        return [self._reservation_to_model(r) for r in results]

    def get_book_queue(self, book_id: str) -> list[ReservationModel]:
        """A book's active reservations in queue order."""
        query = (
            select(ReservationDB)
            .where(
                and_(
                    ReservationDB.book_id == book_id,
                    ReservationDB.status == ReservationStatusEnum.ACTIVE,
                )
            )
            .order_by(ReservationDB.position, ReservationDB.reservation_date, ReservationDB.id)
        )
        results = mcp_safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to get book queue",
        )
        return [self._reservation_to_model(r) for r in results]

    def reserve_book(
        self, book_id: str, user_id: str, now: datetime | None = None
    ) -> ReservationModel:
        """
        Join a book's waitlist.

        The position is the number of active reservations for the book plus
        one. Positions are not renumbered when earlier reservations are
        cancelled, so a new reservation can share a position with an older
        one.

        Raises:
            NotFoundError: If the user or book does not exist
        """
        now = now or datetime.now()

        if self._get_user_row(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")

        book = mcp_safe_query(
            self.session,
            lambda s: s.execute(select(BookDB).where(BookDB.id == book_id)).scalar_one_or_none(),
            "Failed to get book for reservation",
        )
        if book is None:
            raise NotFoundError(f"Book {book_id} not found")

        position = self._count_active_reservations(book_id) + 1
        reservation_id = self._generate_reservation_id()

        try:
            reservation = ReservationDB(
                id=reservation_id,
                user_id=user_id,
                book_id=book_id,
                reservation_date=now,
                position=position,
                estimated_availability=estimate_from_position(
                    position, now, self.policy.reservation_wait_days
                ),
                status=ReservationStatusEnum.ACTIVE,
            )
            self.session.add(reservation)

            mcp_safe_commit(self.session, "create reservation")
            self.session.refresh(reservation)
        except Exception as e:
            self.session.rollback()
            raise RepositoryException(f"Reservation failed: {e!s}") from e

        logger.info(
            "Reservation %s created: %s queued for %s at position %d",
            reservation_id,
            user_id,
            book_id,
            position,
        )
        return self._reservation_to_model(reservation)

    def cancel_reservation(self, reservation_id: str) -> ReservationModel:
        """
        Cancel a reservation. Other reservations keep their positions.

        Raises:
            NotFoundError: If the reservation does not exist
            InvalidStateError: If it is already cancelled
        """
        reservation = self._get_reservation_row(reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")

        if reservation.status != ReservationStatusEnum.ACTIVE:
            logger.info("Cancel refused: reservation %s is already cancelled", reservation_id)
            raise InvalidStateError(f"Reservation {reservation_id} is already cancelled")

        try:
            reservation.status = ReservationStatusEnum.CANCELLED
            mcp_safe_commit(self.session, "cancel reservation")
            self.session.refresh(reservation)
        except Exception as e:
            self.session.rollback()
            raise RepositoryException(f"Cancellation failed: {e!s}") from e

        logger.info("Reservation %s cancelled", reservation_id)
        return self._reservation_to_model(reservation)

    def estimate_availability(self, book_id: str, now: datetime | None = None) -> datetime:
        """
        Estimate when a book will next be free, from its loans and queue.

        Read-only: existing reservations keep the estimate they were given
        when they were placed.

        Raises:
            NotFoundError: If the book does not exist
        """
        now = now or datetime.now()

        exists = mcp_safe_query(
            self.session,
            lambda s: s.execute(
                select(func.count()).select_from(BookDB).where(BookDB.id == book_id)
            ).scalar(),
            "Failed to check book existence",
        )
        if not exists:
            raise NotFoundError(f"Book {book_id} not found")

        due_dates = mcp_safe_query(
            self.session,
            lambda s: s.execute(
                select(LoanDB.due_date).where(
                    and_(LoanDB.book_id == book_id, LoanDB.status == LoanStatusEnum.ACTIVE)
                )
            )
            .scalars()
            .all(),
            "Failed to get due dates",
        )

        return estimate_from_loans(
            due_dates,
            self._count_active_reservations(book_id),
            now,
            self.policy.reservation_wait_days,
        )

    # Helpers

    def _get_user_row(self, user_id: str) -> UserDB | None:
        return mcp_safe_query(
            self.session,
            lambda s: s.execute(select(UserDB).where(UserDB.id == user_id)).scalar_one_or_none(),
            "Failed to get user",
        )

    def _get_loan_row(self, loan_id: str) -> LoanDB | None:
        return mcp_safe_query(
            self.session,
            lambda s: s.execute(select(LoanDB).where(LoanDB.id == loan_id)).scalar_one_or_none(),
            "Failed to get loan",
        )

    def _get_reservation_row(self, reservation_id: str) -> ReservationDB | None:
        return mcp_safe_query(
            self.session,
            lambda s: s.execute(
                select(ReservationDB).where(ReservationDB.id == reservation_id)
            ).scalar_one_or_none(),
            "Failed to get reservation",
        )

    def _lock_book(self, book_id: str) -> BookDB | None:
        return mcp_safe_query(
            self.session,
            lambda s: s.execute(
                select(BookDB).where(BookDB.id == book_id).with_for_update()
            ).scalar_one_or_none(),
            "Failed to get book for update",
        )

    def _count_active_reservations(self, book_id: str) -> int:
        return (
            mcp_safe_query(
                self.session,
                lambda s: s.execute(
                    select(func.count())
                    .select_from(ReservationDB)
                    .where(
                        and_(
                            ReservationDB.book_id == book_id,
                            ReservationDB.status == ReservationStatusEnum.ACTIVE,
                        )
                    )
                ).scalar(),
                "Failed to count active reservations",
            )
            or 0
        )

    def _generate_loan_id(self) -> str:
        """Generate unique loan ID."""
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        count = (
            mcp_safe_query(
                self.session,
                lambda s: s.execute(
                    select(func.count())
                    .select_from(LoanDB)
                    .where(LoanDB.id.like(f"loan_{timestamp}%"))
                ).scalar(),
                "Failed to count loans for ID generation",
            )
            or 0
        )
        return f"loan_{timestamp}{count + 1:04d}"

    def _generate_reservation_id(self) -> str:
        """Generate unique reservation ID."""
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        count = (
            mcp_safe_query(
                self.session,
                lambda s: s.execute(
                    select(func.count())
                    .select_from(ReservationDB)
                    .where(ReservationDB.id.like(f"reservation_{timestamp}%"))
                ).scalar(),
                "Failed to count reservations for ID generation",
            )
            or 0
        )
        return f"reservation_{timestamp}{count + 1:04d}"

    def _loan_to_model(self, loan: LoanDB) -> LoanModel:
        """Convert loan DB object to Pydantic model."""
        return LoanModel(
            id=loan.id,
            user_id=loan.user_id,
            book_id=loan.book_id,
            borrow_date=loan.borrow_date,
            due_date=loan.due_date,
            return_date=loan.return_date,
            status=LoanStatus(loan.status.value),
            late_fee=loan.late_fee,
            renewal_count=loan.renewal_count,
        )

    def _reservation_to_model(self, reservation: ReservationDB) -> ReservationModel:
        """Convert reservation DB object to Pydantic model."""
        return ReservationModel(
            id=reservation.id,
            user_id=reservation.user_id,
            book_id=reservation.book_id,
            reservation_date=reservation.reservation_date,
            position=reservation.position,
            estimated_availability=reservation.estimated_availability,
            status=ReservationStatus(reservation.status.value),
        )
