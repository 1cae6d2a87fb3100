"""Tests for the Reservation model and the availability estimators."""

from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from loan_desk.models.reservation import (
    Reservation,
    ReservationStatus,
    estimate_from_loans,
    estimate_from_position,
)

NOW = datetime(2024, 3, 1, 12, 0, 0)


class TestEstimateFromPosition:
    def test_one_wait_per_position(self):
        assert estimate_from_position(1, NOW) == NOW + timedelta(days=7)
        assert estimate_from_position(3, NOW) == NOW + timedelta(days=21)

    def test_custom_wait(self):
        assert estimate_from_position(2, NOW, wait_days=10) == NOW + timedelta(days=20)


class TestEstimateFromLoans:
    def test_no_active_loans(self):
        assert estimate_from_loans([], 0, NOW) == NOW + timedelta(days=7)

    def test_no_active_loans_ignores_queue(self):
        assert estimate_from_loans([], 4, NOW) == NOW + timedelta(days=7)

    def test_earliest_due_date_with_empty_queue(self):
        due_dates = [NOW + timedelta(days=9), NOW + timedelta(days=5)]

        assert estimate_from_loans(due_dates, 0, NOW) == NOW + timedelta(days=5)

    def test_each_queued_reservation_adds_a_wait(self):
        due_dates = [NOW + timedelta(days=5)]

        assert estimate_from_loans(due_dates, 1, NOW) == NOW + timedelta(days=12)
        assert estimate_from_loans(due_dates, 2, NOW) == NOW + timedelta(days=19)

    def test_overdue_loan_counts_as_one_day(self):
        due_dates = [NOW - timedelta(days=6)]

        assert estimate_from_loans(due_dates, 0, NOW) == NOW + timedelta(days=1)
        assert estimate_from_loans(due_dates, 1, NOW) == NOW + timedelta(days=8)

    def test_partial_day_truncated(self):
        due_dates = [NOW + timedelta(days=3, hours=20)]

        assert estimate_from_loans(due_dates, 0, NOW) == NOW + timedelta(days=3)

    def test_accepts_any_iterable(self):
        due_dates = (NOW + timedelta(days=d) for d in (4, 2))

        assert estimate_from_loans(due_dates, 0, NOW) == NOW + timedelta(days=2)


class TestReservationModel:
    def make_reservation(self, **overrides) -> Reservation:
        data = {
            "id": "reservation_202403010001",
            "user_id": "user_john_smith",
            "book_id": "book_leguin_dispossessed",
            "reservation_date": NOW,
            "position": 1,
            "estimated_availability": NOW + timedelta(days=7),
        }
        data.update(overrides)
        return Reservation(**data)

    def test_defaults_to_active(self):
        reservation = self.make_reservation()

        assert reservation.status == ReservationStatus.ACTIVE
        assert reservation.is_active is True

    def test_cancelled(self):
        reservation = self.make_reservation(status=ReservationStatus.CANCELLED)

        assert reservation.status == "cancelled"
        assert reservation.is_active is False

    def test_position_is_one_based(self):
        with pytest.raises(ValidationError):
            self.make_reservation(position=0)

    def test_invalid_id(self):
        with pytest.raises(ValidationError):
            self.make_reservation(id="res_0001")
