"""
Demo data for the Loan Desk MCP Server.

Two loaders:

- ``load_sample_data`` - a small, fixed set of books, members, loans and one
  reservation, suitable for walkthroughs and for tests that need known IDs.
- ``generate_demo_data`` - a larger catalog and circulation history generated
  with Faker from a fixed seed, so repeated runs produce the same library.

Both write ORM rows directly and leave committing to the caller's session
scope.
"""

import logging
import random
from datetime import date, datetime, timedelta

from faker import Faker
from sqlalchemy.orm import Session

from ..models.loan import LoanPolicy, calculate_late_fee
from ..models.reservation import estimate_from_position
from .schema import Book, Loan, LoanStatusEnum, Reservation, ReservationStatusEnum, User

logger = logging.getLogger(__name__)

GENRES = [
    "Fiction",
    "Science Fiction",
    "Fantasy",
    "Mystery",
    "Romance",
    "Biography",
    "History",
    "Poetry",
    "Dystopian",
    "Non-Fiction",
]


def generate_isbn13(rng: random.Random) -> str:
    """Generate a valid ISBN-13 number."""
    body = f"978{rng.randint(0, 9)}{rng.randint(1000, 9999)}{rng.randint(1000, 9999)}"
    total = sum(int(digit) * (3 if i % 2 else 1) for i, digit in enumerate(body))
    return f"{body}{(10 - (total % 10)) % 10}"


def load_sample_data(session: Session, now: datetime | None = None) -> None:
    """
    Add the fixed walkthrough data set.

    Includes one overdue loan for ``user_jane_doe`` and a fully checked-out
    copy of *Nineteen Eighty-Four* with a reservation waiting on it.
    """
    now = now or datetime.now()
    policy = LoanPolicy()

    books = [
        Book(
            id="book_orwell_1984",
            isbn="9780452284234",
            title="Nineteen Eighty-Four",
            author="George Orwell",
            genre="Dystopian",
            publication_year=1949,
            total_copies=2,
            available_copies=0,
            description="A totalitarian state watches everyone, always.",
        ),
        Book(
            id="book_orwell_farm",
            isbn="9780451526342",
            title="Animal Farm",
            author="George Orwell",
            genre="Fiction",
            publication_year=1945,
            total_copies=3,
            available_copies=3,
            description="A farmyard revolution goes the way of all revolutions.",
        ),
        Book(
            id="book_leguin_dispossessed",
            isbn="9780061054884",
            title="The Dispossessed",
            author="Ursula K. Le Guin",
            genre="Science Fiction",
            publication_year=1974,
            total_copies=1,
            available_copies=0,
            description="A physicist crosses between two worlds with opposed economies.",
        ),
        Book(
            id="book_austen_pride",
            isbn="9780141439518",
            title="Pride and Prejudice",
            author="Jane Austen",
            genre="Romance",
            publication_year=1813,
            total_copies=4,
            available_copies=4,
        ),
    ]
    session.add_all(books)

    users = [
        User(
            id="user_jane_doe",
            name="Jane Doe",
            email="jane.doe@example.com",
            phone="5551234567",
            address="12 Library Lane, Springfield",
            member_since=date(2023, 1, 15),
        ),
        User(
            id="user_john_smith",
            name="John Smith",
            email="john.smith@example.com",
            phone="5559876543",
            member_since=date(2023, 6, 1),
        ),
    ]
    session.add_all(users)
    session.flush()

    overdue_borrowed = now - timedelta(days=20)
    returned_borrowed = now - timedelta(days=40)
    returned_on = returned_borrowed + policy.loan_period + timedelta(days=3)
    loans = [
        Loan(
            id="loan_sample0001",
            user_id="user_jane_doe",
            book_id="book_orwell_1984",
            borrow_date=now - timedelta(days=5),
            due_date=now - timedelta(days=5) + policy.loan_period,
            status=LoanStatusEnum.ACTIVE,
        ),
        Loan(
            id="loan_sample0002",
            user_id="user_john_smith",
            book_id="book_orwell_1984",
            borrow_date=now - timedelta(days=2),
            due_date=now - timedelta(days=2) + policy.loan_period,
            status=LoanStatusEnum.ACTIVE,
        ),
        Loan(
            id="loan_sample0003",
            user_id="user_jane_doe",
            book_id="book_leguin_dispossessed",
            borrow_date=overdue_borrowed,
            due_date=overdue_borrowed + policy.loan_period,
            status=LoanStatusEnum.ACTIVE,
        ),
        Loan(
            id="loan_sample0004",
            user_id="user_jane_doe",
            book_id="book_austen_pride",
            borrow_date=returned_borrowed,
            due_date=returned_borrowed + policy.loan_period,
            return_date=returned_on,
            status=LoanStatusEnum.RETURNED,
            late_fee=calculate_late_fee(
                returned_borrowed + policy.loan_period, returned_on, policy.daily_late_fee
            ),
        ),
    ]
    session.add_all(loans)

    reserved_at = now - timedelta(days=1)
    session.add(
        Reservation(
            id="reservation_sample0001",
            user_id="user_john_smith",
            book_id="book_leguin_dispossessed",
            reservation_date=reserved_at,
            position=1,
            estimated_availability=estimate_from_position(1, reserved_at),
            status=ReservationStatusEnum.ACTIVE,
        )
    )

    logger.info(
        "Loaded sample data: %d books, %d users, %d loans, 1 reservation",
        len(books),
        len(users),
        len(loans),
    )


def generate_demo_data(
    session: Session,
    num_books: int = 200,
    num_users: int = 25,
    num_loans: int = 300,
    seed: int = 42,
    now: datetime | None = None,
) -> None:
    """
    Add a generated catalog and circulation history.

    Loans are created in borrow order against the copies actually on the
    shelf, so the copy counts stay consistent with the active loans.
    """
    now = now or datetime.now()
    policy = LoanPolicy()
    fake = Faker()
    Faker.seed(seed)
    rng = random.Random(seed)

    authors = [fake.unique.name() for _ in range(max(num_books // 4, 1))]
    books = []
    isbns = set()
    for i in range(num_books):
        isbn = generate_isbn13(rng)
        while isbn in isbns:
            isbn = generate_isbn13(rng)
        isbns.add(isbn)

        total = rng.randint(1, 5)
        books.append(
            Book(
                id=f"book_{i + 1:05d}",
                isbn=isbn,
                title=fake.catch_phrase().title(),
                author=rng.choice(authors),
                genre=rng.choice(GENRES),
                publication_year=rng.randint(1850, now.year),
                cover_url=f"https://covers.example.org/{isbn}.jpg" if rng.random() > 0.3 else None,
                total_copies=total,
                available_copies=total,
                description=fake.paragraph(nb_sentences=3) if rng.random() > 0.2 else None,
            )
        )
    session.add_all(books)

    users = []
    for i in range(num_users):
        users.append(
            User(
                id=f"user_{i + 1:05d}",
                name=fake.name(),
                email=f"member{i + 1:05d}@{fake.free_email_domain()}",
                phone=fake.numerify("555#######"),
                address=fake.address().replace("\n", ", ") if rng.random() > 0.2 else None,
                member_since=fake.date_between(start_date="-5y", end_date="-1y"),
            )
        )
    session.add_all(users)
    session.flush()

    borrow_dates = sorted(
        fake.date_time_between(start_date=now - timedelta(days=365), end_date=now)
        for _ in range(num_loans)
    )
    loans = []
    active_count = 0
    for i, borrowed in enumerate(borrow_dates):
        book = rng.choice(books)
        due = borrowed + policy.loan_period
        returned = borrowed + timedelta(days=rng.randint(1, policy.loan_period_days + 10))
        # Loans from the last few weeks are still out if a copy is free
        still_out = returned > now and book.available_copies > 0

        loan = Loan(
            id=f"loan_demo{i + 1:06d}",
            user_id=rng.choice(users).id,
            book_id=book.id,
            borrow_date=borrowed,
            due_date=due,
        )
        if still_out:
            loan.status = LoanStatusEnum.ACTIVE
            loan.late_fee = 0.0
            book.available_copies -= 1
            active_count += 1
        else:
            returned = min(returned, now)
            loan.status = LoanStatusEnum.RETURNED
            loan.return_date = returned
            loan.late_fee = calculate_late_fee(due, returned, policy.daily_late_fee)
        loans.append(loan)
    session.add_all(loans)

    reservations = []
    for book in books:
        if book.available_copies > 0 or rng.random() < 0.5:
            continue
        for position in range(1, rng.randint(1, 3) + 1):
            reserved_at = now - timedelta(days=rng.randint(0, 10), hours=rng.randint(0, 23))
            reservations.append(
                Reservation(
                    id=f"reservation_demo{len(reservations) + 1:06d}",
                    user_id=rng.choice(users).id,
                    book_id=book.id,
                    reservation_date=reserved_at,
                    position=position,
                    estimated_availability=estimate_from_position(
                        position, reserved_at, policy.reservation_wait_days
                    ),
                    status=ReservationStatusEnum.ACTIVE,
                )
            )
    session.add_all(reservations)

    logger.info(
        "Generated demo data: %d books, %d users, %d loans (%d active), %d reservations",
        len(books),
        len(users),
        len(loans),
        active_count,
        len(reservations),
    )
