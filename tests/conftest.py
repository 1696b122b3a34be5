"""Shared fixtures: an app on in-memory SQLite, a recording broadcaster and row factories."""

from __future__ import annotations

import itertools
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token
from sqlalchemy import text
from werkzeug.security import generate_password_hash

from libtrack import create_app
from libtrack.config import TestConfig
from libtrack.db_objects import ensure_db_objects
from libtrack.extensions import db
from libtrack.models import Book, Penalty, PenaltyStatus, Transaction, User


class FakeBroadcaster:
    def __init__(self):
        self.messages: list[tuple[str, dict]] = []

    def broadcast(self, message: dict, event: str = "message") -> None:
        self.messages.append((event, message))

    def of_type(self, msg_type: str) -> list[dict]:
        return [m for _, m in self.messages if m.get("type") == msg_type]


@pytest.fixture
def broadcaster() -> FakeBroadcaster:
    return FakeBroadcaster()


@pytest.fixture
def app(broadcaster):
    app = create_app(TestConfig, broadcaster=broadcaster)
    with app.app_context():
        db.create_all()
        ensure_db_objects(app)
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def service(app):
    return app.extensions["penalty_service"]


@pytest.fixture
def today() -> date:
    return date.today()


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------

_seq = itertools.count(1)


@pytest.fixture
def make_user(app):
    def _make(position=None, role="user", email=None, restriction=False, password="secret123") -> User:
        n = next(_seq)
        user = User(
            first_name="Test",
            last_name=f"User{n}",
            email=email or f"user{n}@example.com",
            password_hash=generate_password_hash(password),
            position=position,
            role=role,
            restriction=restriction,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_book(app):
    def _make(title=None, status="Available") -> Book:
        book = Book(book_title=title or f"Book {next(_seq)}", author="A. Author", status=status)
        db.session.add(book)
        db.session.commit()
        return book

    return _make


@pytest.fixture
def make_borrow(app, make_book, today):
    """Borrow transaction due `days_overdue` days before today (negative = due in the future)."""

    def _make(user: User, days_overdue: int = 3, status: str = "Borrowed", due_date=None) -> Transaction:
        book = make_book(status="Borrowed" if status == "Borrowed" else "Available")
        t = Transaction(
            reference_number=f"REF-TEST-{next(_seq):06d}",
            user_id=user.user_id,
            book_id=book.book_id,
            due_date=due_date if due_date is not None else today - timedelta(days=days_overdue),
            transaction_type="borrow",
            status=status,
        )
        db.session.add(t)
        db.session.commit()
        return t

    return _make


@pytest.fixture
def make_penalty(app):
    """Insert a penalty row directly, bypassing the reconciler."""

    def _make(transaction: Transaction, fine="15.00", status=PenaltyStatus.PENDING, updated_at=None) -> Penalty:
        now = updated_at or datetime.utcnow()
        p = Penalty(
            transaction_id=transaction.transaction_id,
            user_id=transaction.user_id,
            fine=Decimal(str(fine)),
            status=status,
            created_at=now,
            updated_at=now,
        )
        db.session.add(p)
        db.session.commit()
        return p

    return _make


@pytest.fixture
def drop_active_index(app):
    """Simulate a legacy database that predates the single-active-penalty index."""

    def _drop():
        db.session.commit()
        db.session.execute(text("DROP INDEX IF EXISTS uq_penalties_active"))
        db.session.commit()

    return _drop


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


def auth_header(user: User) -> dict:
    token = create_access_token(identity=str(user.user_id), additional_claims={"role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for(app):
    return auth_header


@pytest.fixture
def admin(make_user) -> User:
    return make_user(position="Librarian", role="admin")


@pytest.fixture
def admin_headers(admin) -> dict:
    return auth_header(admin)


@pytest.fixture
def student(make_user) -> User:
    return make_user()


@pytest.fixture
def student_headers(student) -> dict:
    return auth_header(student)
