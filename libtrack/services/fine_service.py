# libtrack/services/fine_service.py
from __future__ import annotations

import math
from dataclasses import dataclass, asdict
from datetime import date, datetime, time
from decimal import Decimal

from flask import current_app

from libtrack.errors import NotFoundError, ValidationError
from libtrack.repositories.transaction_repo import TransactionRepo
from libtrack.services.settings_service import SettingsService

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class FineResult:
    fine: Decimal
    days_overdue: int
    status: str  # no_due_date / on_time / overdue
    daily_rate: Decimal | None = None
    message: str = ""

    def to_dict(self) -> dict:
        d = asdict(self)
        d["fine"] = float(self.fine)
        d["daily_rate"] = float(self.daily_rate) if self.daily_rate is not None else None
        return d


def _as_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError(f"Invalid date: {value!r}")
    raise ValidationError(f"Unsupported date value: {value!r}")


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def calculate_fine(due_date, current_date=None, daily_rate=0, max_fine=None) -> FineResult:
    """
    Overdue fine for one item.

    days_overdue = ceil((current_date - due_date) / 1 day); plain dates count
    as midnight, so an item due today is on time. The fine is the raw product
    days_overdue * daily_rate, optionally clamped to max_fine.
    """
    if due_date is None or due_date == "":
        return FineResult(
            fine=Decimal("0"),
            days_overdue=0,
            status="no_due_date",
            message="No due date set for this transaction",
        )

    rate = _as_decimal(daily_rate)
    due = _as_datetime(due_date)
    current = _as_datetime(current_date if current_date is not None else date.today())

    days = math.ceil((current - due).total_seconds() / SECONDS_PER_DAY)
    if days <= 0:
        return FineResult(
            fine=Decimal("0"),
            days_overdue=0,
            status="on_time",
            daily_rate=rate,
            message="Item not overdue",
        )

    fine = Decimal(days) * rate
    if max_fine is not None:
        fine = min(fine, _as_decimal(max_fine))

    return FineResult(
        fine=fine,
        days_overdue=days,
        status="overdue",
        daily_rate=rate,
        message=f"{days} day{'s' if days > 1 else ''} overdue at ₱{rate}/day",
    )


def is_student(position) -> bool:
    # NULL / empty / "Student" all count as student
    return not position or position == "Student"


def daily_rate_for(position, settings: dict) -> Decimal:
    key = "student_daily_fine" if is_student(position) else "faculty_daily_fine"
    return _as_decimal(settings[key])


class FineService:
    @staticmethod
    def max_fine():
        cap = current_app.config.get("MAX_FINE_PER_ITEM")
        return _as_decimal(cap) if cap not in (None, "") else None

    @staticmethod
    def fine_for_transaction(transaction, settings: dict, today: date | None = None) -> FineResult:
        position = transaction.user.position if transaction.user else None
        return calculate_fine(
            transaction.due_date,
            current_date=today,
            daily_rate=daily_rate_for(position, settings),
            max_fine=FineService.max_fine(),
        )

    @staticmethod
    def _transaction_breakdown(transaction, settings: dict, today: date | None = None) -> dict:
        result = FineService.fine_for_transaction(transaction, settings, today)
        user = transaction.user
        return {
            "transaction_id": transaction.transaction_id,
            "reference_number": transaction.reference_number,
            "user_id": transaction.user_id,
            "user_name": user.full_name if user else None,
            "position": user.position if user else None,
            "user_type": "student" if is_student(user.position if user else None) else "faculty",
            "book_id": transaction.book_id,
            "research_paper_id": transaction.research_paper_id,
            "item_title": transaction.item_title,
            "due_date": transaction.due_date.isoformat() if transaction.due_date else None,
            "transaction_status": transaction.status,
            **result.to_dict(),
        }

    @staticmethod
    def _settings_view(settings: dict) -> dict:
        return {
            "student_daily_fine": float(settings["student_daily_fine"]),
            "faculty_daily_fine": float(settings["faculty_daily_fine"]),
        }

    @staticmethod
    def preview_for_user(user_id: int, today: date | None = None) -> dict:
        settings = SettingsService.get_fine_settings()
        transactions = TransactionRepo.list_user_borrows(user_id)

        rows = [FineService._transaction_breakdown(t, settings, today) for t in transactions]
        total_fine = sum((Decimal(str(r["fine"])) for r in rows), Decimal("0"))
        first = rows[0] if rows else {}

        return {
            "user_id": user_id,
            "user_name": first.get("user_name") or "Unknown User",
            "user_type": first.get("user_type") or "student",
            "total_fine": float(total_fine),
            "total_overdue_items": sum(1 for r in rows if r["status"] == "overdue"),
            "total_borrowed_items": len(rows),
            "system_settings": FineService._settings_view(settings),
            "transactions": rows,
        }

    @staticmethod
    def preview_for_transaction(transaction_id: int, today: date | None = None) -> dict:
        transaction = TransactionRepo.get_with_details(transaction_id)
        if not transaction:
            raise NotFoundError("Transaction not found")
        settings = SettingsService.get_fine_settings()
        return FineService._transaction_breakdown(transaction, settings, today)

    @staticmethod
    def overdue_report(user_type: str | None = None, today: date | None = None) -> dict:
        if user_type not in (None, "", "student", "faculty"):
            raise ValidationError("user_type must be 'student' or 'faculty'")

        today = today or date.today()
        settings = SettingsService.get_fine_settings()
        transactions = TransactionRepo.find_overdue(today, user_type or None)

        rows = [FineService._transaction_breakdown(t, settings, today) for t in transactions]

        users: dict[int, dict] = {}
        total_fines = Decimal("0")
        for r in rows:
            fine = Decimal(str(r["fine"]))
            total_fines += fine
            summary = users.setdefault(r["user_id"], {
                "user_id": r["user_id"],
                "user_name": r["user_name"],
                "user_type": r["user_type"],
                "total_fine": Decimal("0"),
                "overdue_items": 0,
                "transactions": [],
            })
            summary["total_fine"] += fine
            summary["overdue_items"] += 1
            summary["transactions"].append(r)

        for summary in users.values():
            summary["total_fine"] = float(summary["total_fine"])

        current_app.logger.debug(f"[fines] overdue report: {len(rows)} transactions, {len(users)} users")

        return {
            "summary": {
                "total_overdue_transactions": len(rows),
                "total_fines": float(total_fines),
                "unique_users": len(users),
            },
            "system_settings": FineService._settings_view(settings),
            "user_summaries": list(users.values()),
            "transactions": rows,
        }
