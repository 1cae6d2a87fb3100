"""
Tests for the circulation repository: loans, fees, renewals and reservations.

All tests pin the clock to ``NOW`` against the sample library:

- loan_sample0001 Jane, Nineteen Eighty-Four, due NOW + 9 days
- loan_sample0002 John, Nineteen Eighty-Four, due NOW + 12 days
- loan_sample0003 Jane, The Dispossessed, due NOW - 6 days (overdue)
- loan_sample0004 Jane, Pride and Prejudice, returned 3 days late ($1.50)
- reservation_sample0001 John, The Dispossessed, position 1
"""

import logging
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from loan_desk.database import (
    Book,
    CirculationRepository,
    InvalidStateError,
    Loan,
    NotFoundError,
    OverdueError,
    RepositoryException,
    UnavailableError,
)
from loan_desk.models.loan import LoanPolicy, LoanStatus
from loan_desk.models.reservation import ReservationStatus

# Clock the sample_library fixture is loaded against
NOW = datetime(2024, 3, 1, 12, 0, 0)

JANE = "user_jane_doe"
JOHN = "user_john_smith"


@pytest.fixture
def repo(sample_library):
    return CirculationRepository(sample_library)


def available(session, book_id: str) -> int:
    session.expire_all()
    return session.get(Book, book_id).available_copies


def loan_count(session) -> int:
    return session.scalar(select(func.count()).select_from(Loan))


def failing_commit(session, operation):
    raise ValueError(f"Could not {operation}: disk I/O error")


class TestBorrow:
    def test_borrow_creates_active_loan(self, repo, sample_library):
        loan = repo.borrow_book("book_orwell_farm", JANE, now=NOW)

        assert loan.id.startswith("loan_")
        assert loan.user_id == JANE
        assert loan.book_id == "book_orwell_farm"
        assert loan.status == LoanStatus.ACTIVE
        assert loan.borrow_date == NOW
        assert loan.due_date == NOW + timedelta(days=14)
        assert loan.return_date is None
        assert loan.late_fee == 0.0
        assert loan.renewal_count == 0
        assert available(sample_library, "book_orwell_farm") == 2

    def test_borrow_shows_in_current_loans(self, repo):
        loan = repo.borrow_book("book_austen_pride", JOHN, now=NOW)

        assert loan.id in [current.id for current in repo.get_current_loans(JOHN)]

    def test_borrow_last_copy_then_refused(self, repo, sample_library):
        for _ in range(3):
            repo.borrow_book("book_orwell_farm", JOHN, now=NOW)

        with pytest.raises(UnavailableError, match="no available copies"):
            repo.borrow_book("book_orwell_farm", JANE, now=NOW)

        assert available(sample_library, "book_orwell_farm") == 0

    def test_refused_borrow_changes_nothing(self, repo, sample_library):
        with pytest.raises(UnavailableError):
            repo.borrow_book("book_orwell_1984", JANE, now=NOW)

        assert loan_count(sample_library) == 4
        assert available(sample_library, "book_orwell_1984") == 0

    def test_unknown_user(self, repo, sample_library):
        with pytest.raises(NotFoundError, match="User user_nobody not found"):
            repo.borrow_book("book_orwell_farm", "user_nobody", now=NOW)

        assert available(sample_library, "book_orwell_farm") == 3

    def test_unknown_book(self, repo):
        with pytest.raises(NotFoundError, match="Book book_missing not found"):
            repo.borrow_book("book_missing", JANE, now=NOW)

    def test_failed_commit_leaves_no_trace(self, repo, sample_library, monkeypatch):
        monkeypatch.setattr(
            "loan_desk.database.circulation_repository.mcp_safe_commit", failing_commit
        )

        with pytest.raises(RepositoryException, match="Borrow failed"):
            repo.borrow_book("book_orwell_farm", JANE, now=NOW)

        assert loan_count(sample_library) == 4
        assert available(sample_library, "book_orwell_farm") == 3

    def test_policy_sets_loan_period(self, sample_library):
        repo = CirculationRepository(sample_library, LoanPolicy(loan_period_days=21))

        loan = repo.borrow_book("book_orwell_farm", JANE, now=NOW)

        assert loan.due_date == NOW + timedelta(days=21)

    def test_generated_ids_are_unique(self, repo):
        first = repo.borrow_book("book_orwell_farm", JANE, now=NOW)
        second = repo.borrow_book("book_orwell_farm", JOHN, now=NOW)

        assert first.id != second.id


class TestReturn:
    def test_late_return_charges_whole_days(self, repo, sample_library):
        loan = repo.return_book("loan_sample0003", now=NOW)

        assert loan.status == LoanStatus.RETURNED
        assert loan.return_date == NOW
        assert loan.late_fee == 3.00
        assert available(sample_library, "book_leguin_dispossessed") == 1

    def test_on_time_return_is_free(self, repo, sample_library):
        loan = repo.return_book("loan_sample0001", now=NOW)

        assert loan.late_fee == 0.0
        assert available(sample_library, "book_orwell_1984") == 1

    def test_less_than_a_day_late_is_free(self, repo):
        due = repo.get_loan("loan_sample0001").due_date

        loan = repo.return_book("loan_sample0001", now=due + timedelta(hours=23))

        assert loan.late_fee == 0.0

    def test_policy_sets_daily_fee(self, sample_library):
        repo = CirculationRepository(sample_library, LoanPolicy(daily_late_fee=1.25))

        loan = repo.return_book("loan_sample0003", now=NOW)

        assert loan.late_fee == 7.50

    def test_return_twice(self, repo, sample_library):
        repo.return_book("loan_sample0001", now=NOW)

        with pytest.raises(InvalidStateError, match="already been returned"):
            repo.return_book("loan_sample0001", now=NOW)

        assert available(sample_library, "book_orwell_1984") == 1

    def test_unknown_loan(self, repo):
        with pytest.raises(NotFoundError):
            repo.return_book("loan_missing01", now=NOW)

    def test_return_when_all_copies_on_shelf(self, repo, sample_library, caplog):
        book = sample_library.get(Book, "book_orwell_1984")
        book.available_copies = book.total_copies
        sample_library.commit()

        with caplog.at_level(logging.ERROR):
            loan = repo.return_book("loan_sample0001", now=NOW)

        assert loan.status == LoanStatus.RETURNED
        assert available(sample_library, "book_orwell_1984") == 2
        assert "count left unchanged" in caplog.text

    def test_failed_commit_keeps_loan_active(self, repo, sample_library, monkeypatch):
        monkeypatch.setattr(
            "loan_desk.database.circulation_repository.mcp_safe_commit", failing_commit
        )

        with pytest.raises(RepositoryException, match="Return failed"):
            repo.return_book("loan_sample0003", now=NOW)

        loan = repo.get_loan("loan_sample0003")
        assert loan.status == LoanStatus.ACTIVE
        assert loan.return_date is None
        assert loan.late_fee == 0.0
        assert available(sample_library, "book_leguin_dispossessed") == 0

    def test_return_before_borrow_date_is_refused(self, repo, sample_library):
        borrowed = repo.get_loan("loan_sample0001").borrow_date

        with pytest.raises(InvalidStateError, match="before it was borrowed"):
            repo.return_book("loan_sample0001", now=borrowed - timedelta(days=1))

        sample_library.expire_all()
        assert repo.get_loan("loan_sample0001").status == LoanStatus.ACTIVE
        assert available(sample_library, "book_orwell_1984") == 0

    def test_immediate_return_is_free(self, repo, sample_library):
        loan = repo.borrow_book("book_orwell_farm", JANE, now=NOW)

        returned = repo.return_book(loan.id, now=NOW)

        assert returned.late_fee == 0.0
        assert available(sample_library, "book_orwell_farm") == 3

    def test_borrow_then_return_round_trip(self, repo, sample_library):
        loan = repo.borrow_book("book_austen_pride", JOHN, now=NOW)
        repo.return_book(loan.id, now=NOW + timedelta(days=16, hours=5))

        returned = repo.get_loan(loan.id)
        assert returned.late_fee == 1.00
        assert available(sample_library, "book_austen_pride") == 4


class TestRenew:
    def test_renew_extends_due_date(self, repo):
        loan = repo.renew_loan("loan_sample0001", now=NOW)

        assert loan.due_date == NOW + timedelta(days=23)
        assert loan.renewal_count == 1

    def test_renewals_accumulate(self, repo):
        repo.renew_loan("loan_sample0001", now=NOW)
        loan = repo.renew_loan("loan_sample0001", now=NOW)

        assert loan.due_date == NOW + timedelta(days=37)
        assert loan.renewal_count == 2

    def test_renew_on_due_date(self, repo):
        due = repo.get_loan("loan_sample0001").due_date

        loan = repo.renew_loan("loan_sample0001", now=due)

        assert loan.due_date == due + timedelta(days=14)

    def test_overdue_loan_cannot_be_renewed(self, repo):
        before = repo.get_loan("loan_sample0003")

        with pytest.raises(OverdueError, match="overdue"):
            repo.renew_loan("loan_sample0003", now=NOW)

        after = repo.get_loan("loan_sample0003")
        assert after.due_date == before.due_date
        assert after.renewal_count == 0

    def test_returned_loan_cannot_be_renewed(self, repo):
        with pytest.raises(InvalidStateError):
            repo.renew_loan("loan_sample0004", now=NOW)

    def test_unknown_loan(self, repo):
        with pytest.raises(NotFoundError):
            repo.renew_loan("loan_missing01", now=NOW)


class TestLoanReads:
    def test_current_loans_soonest_due_first(self, repo):
        loans = repo.get_current_loans(JANE)

        assert [loan.id for loan in loans] == ["loan_sample0003", "loan_sample0001"]

    def test_history_most_recent_first(self, repo):
        loans = repo.get_loan_history(JANE)

        assert [loan.id for loan in loans] == [
            "loan_sample0001",
            "loan_sample0003",
            "loan_sample0004",
        ]

    def test_overdue_loans(self, repo):
        assert [loan.id for loan in repo.get_overdue_loans(JANE, now=NOW)] == ["loan_sample0003"]
        assert repo.get_overdue_loans(JANE, now=NOW - timedelta(days=7)) == []
        assert repo.get_overdue_loans(JOHN, now=NOW) == []

    def test_unknown_user_has_no_loans(self, repo):
        assert repo.get_current_loans("user_nobody") == []
        assert repo.get_loan_history("user_nobody") == []

    def test_list_loans(self, repo):
        assert len(repo.list_loans()) == 4

    def test_loan_summary(self, repo):
        summary = repo.get_loan_summary(JANE, now=NOW)

        assert summary.total_loans == 3
        assert summary.active_loans == 2
        assert summary.returned_loans == 1
        assert summary.overdue_loans == 1
        assert summary.total_late_fees == 1.50

    def test_history_csv(self, repo):
        assert repo.export_history_csv(JANE) == (
            "Book ID,Borrow Date,Due Date,Return Date,Status,Late Fee\n"
            "book_orwell_1984,2024-02-25,2024-03-10,,active,0.00\n"
            "book_leguin_dispossessed,2024-02-10,2024-02-24,,active,0.00\n"
            "book_austen_pride,2024-01-21,2024-02-04,2024-02-07,returned,1.50\n"
        )

    def test_history_csv_without_loans(self, repo):
        assert repo.export_history_csv("user_nobody") == (
            "Book ID,Borrow Date,Due Date,Return Date,Status,Late Fee\n"
        )


class TestReservations:
    def test_reserve_joins_end_of_queue(self, repo):
        reservation = repo.reserve_book("book_leguin_dispossessed", JANE, now=NOW)

        assert reservation.id.startswith("reservation_")
        assert reservation.position == 2
        assert reservation.status == ReservationStatus.ACTIVE
        assert reservation.reservation_date == NOW
        assert reservation.estimated_availability == NOW + timedelta(days=14)

    def test_positions_follow_call_order(self, repo):
        positions = [
            repo.reserve_book("book_austen_pride", user, now=NOW).position
            for user in (JANE, JOHN, JANE)
        ]

        assert positions == [1, 2, 3]

    def test_first_in_queue(self, repo):
        reservation = repo.reserve_book("book_orwell_1984", JOHN, now=NOW)

        assert reservation.position == 1
        assert reservation.estimated_availability == NOW + timedelta(days=7)

    def test_available_book_can_be_reserved(self, repo):
        assert repo.reserve_book("book_orwell_farm", JANE, now=NOW).position == 1

    def test_same_user_can_reserve_twice(self, repo):
        again = repo.reserve_book("book_leguin_dispossessed", JOHN, now=NOW)

        assert again.position == 2
        assert len(repo.get_reservation_queue(JOHN)) == 2

    def test_unknown_user_or_book(self, repo):
        with pytest.raises(NotFoundError):
            repo.reserve_book("book_orwell_farm", "user_nobody", now=NOW)
        with pytest.raises(NotFoundError):
            repo.reserve_book("book_missing", JANE, now=NOW)

    def test_cancel(self, repo):
        reservation = repo.cancel_reservation("reservation_sample0001")

        assert reservation.status == ReservationStatus.CANCELLED
        assert repo.get_reservation_queue(JOHN) == []
        assert repo.get_book_queue("book_leguin_dispossessed") == []

    def test_cancel_twice(self, repo):
        repo.cancel_reservation("reservation_sample0001")

        with pytest.raises(InvalidStateError, match="already cancelled"):
            repo.cancel_reservation("reservation_sample0001")

    def test_cancel_unknown(self, repo):
        with pytest.raises(NotFoundError):
            repo.cancel_reservation("reservation_missing")

    def test_positions_are_not_renumbered(self, repo):
        jane = repo.reserve_book("book_leguin_dispossessed", JANE, now=NOW)
        repo.cancel_reservation("reservation_sample0001")
        john = repo.reserve_book(
            "book_leguin_dispossessed", JOHN, now=NOW + timedelta(hours=1)
        )

        queue = repo.get_book_queue("book_leguin_dispossessed")

        assert jane.position == 2
        assert john.position == 2
        assert [r.id for r in queue] == [jane.id, john.id]

    def test_user_queue_oldest_first(self, repo):
        later = repo.reserve_book("book_orwell_1984", JOHN, now=NOW)

        queue = repo.get_reservation_queue(JOHN)

        assert [r.id for r in queue] == ["reservation_sample0001", later.id]


class TestEstimateAvailability:
    def test_from_earliest_due_date(self, repo):
        assert repo.estimate_availability("book_orwell_1984", now=NOW) == NOW + timedelta(days=9)

    def test_queue_adds_a_wait_per_reservation(self, repo):
        repo.reserve_book("book_orwell_1984", JOHN, now=NOW)

        assert repo.estimate_availability("book_orwell_1984", now=NOW) == NOW + timedelta(days=16)

    def test_loan_due_in_five_days(self, repo):
        repo.borrow_book("book_austen_pride", JANE, now=NOW - timedelta(days=9))

        assert repo.estimate_availability("book_austen_pride", now=NOW) == NOW + timedelta(days=5)

        repo.reserve_book("book_austen_pride", JOHN, now=NOW)

        assert repo.estimate_availability("book_austen_pride", now=NOW) == NOW + timedelta(days=12)

    def test_overdue_loan_counts_as_one_day(self, repo):
        estimate = repo.estimate_availability("book_leguin_dispossessed", now=NOW)

        assert estimate == NOW + timedelta(days=8)

    def test_nothing_on_loan(self, repo):
        assert repo.estimate_availability("book_orwell_farm", now=NOW) == NOW + timedelta(days=7)

    def test_does_not_touch_existing_reservations(self, repo):
        before = repo.get_reservation("reservation_sample0001")

        repo.estimate_availability("book_leguin_dispossessed", now=NOW)

        after = repo.get_reservation("reservation_sample0001")
        assert after.estimated_availability == before.estimated_availability

    def test_reservation_keeps_its_own_estimate(self, repo):
        # A reservation is stamped with now + position * wait; the live estimate
        # works from due dates. The two are expected to disagree.
        quoted = repo.estimate_availability("book_leguin_dispossessed", now=NOW)

        reservation = repo.reserve_book("book_leguin_dispossessed", JANE, now=NOW)

        assert quoted == NOW + timedelta(days=8)
        assert reservation.estimated_availability == NOW + timedelta(days=14)
        assert reservation.estimated_availability != quoted
        requoted = repo.estimate_availability("book_leguin_dispossessed", now=NOW)
        assert requoted == NOW + timedelta(days=15)

    def test_unknown_book(self, repo):
        with pytest.raises(NotFoundError):
            repo.estimate_availability("book_missing", now=NOW)
