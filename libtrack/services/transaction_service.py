import secrets
from datetime import datetime, timedelta, date

from flask import current_app

from libtrack.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PaymentRequiredError,
    ValidationError,
)
from libtrack.models.penalty import PenaltyStatus
from libtrack.models.transaction import Transaction
from libtrack.repositories.book_repo import BookRepo
from libtrack.repositories.penalty_repo import PenaltyRepo
from libtrack.repositories.transaction_repo import TransactionRepo
from libtrack.repositories.user_repo import UserRepo
from libtrack.services.activity_service import ActivityLogger
from libtrack.services.settings_service import SettingsService


def serialize_transaction(t: Transaction) -> dict:
    return {
        "transaction_id": t.transaction_id,
        "reference_number": t.reference_number,
        "user_id": t.user_id,
        "book_id": t.book_id,
        "research_paper_id": t.research_paper_id,
        "item_title": t.item_title,
        "transaction_type": t.transaction_type,
        "status": t.status,
        "transaction_date": t.transaction_date.isoformat() if t.transaction_date else None,
        "due_date": t.due_date.isoformat() if t.due_date else None,
        "return_date": t.return_date.isoformat() if t.return_date else None,
    }


class TransactionService:
    @staticmethod
    def _new_reference(today: date) -> str:
        while True:
            ref = f"REF-{today:%Y%m%d}-{secrets.token_hex(3).upper()}"
            if not TransactionRepo.reference_exists(ref):
                return ref

    @staticmethod
    def borrow(user_id: int, book_id: int | None = None, research_paper_id: int | None = None,
               today: date | None = None) -> Transaction:
        if (book_id is None) == (research_paper_id is None):
            raise ValidationError("Provide exactly one of book_id or research_paper_id")

        user = UserRepo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        if user.restriction:
            raise ForbiddenError("User is restricted and cannot borrow items")

        if book_id is not None:
            item = BookRepo.get(book_id)
            label = "Book"
        else:
            item = BookRepo.get_research_paper(research_paper_id)
            label = "Research paper"
        if not item:
            raise NotFoundError(f"{label} not found")
        if item.status != "Available":
            raise ConflictError(f"{label} is not available")

        today = today or date.today()
        days = SettingsService.borrow_days_for(user.position)

        t = Transaction(
            reference_number=TransactionService._new_reference(today),
            user_id=user_id,
            book_id=book_id,
            research_paper_id=research_paper_id,
            transaction_date=datetime.utcnow(),
            due_date=today + timedelta(days=days),
            transaction_type="borrow",
            status="Borrowed",
        )
        item.status = "Borrowed"

        # single commit for item + transaction
        TransactionRepo.add(t)
        TransactionRepo.commit()

        current_app.logger.info(f"[transactions] {t.reference_number}: user {user_id} borrowed {label.lower()}")
        ActivityLogger.log_activity(
            user_id=user_id,
            action="BORROW",
            details=f"Borrowed '{t.item_title}' - Reference: {t.reference_number} - Due: {t.due_date}",
        )
        return t

    @staticmethod
    def return_item(transaction_id: int, actor_id: int, is_admin: bool = False) -> Transaction:
        t = TransactionRepo.get(transaction_id)
        if not t:
            raise NotFoundError("Transaction not found")

        if not is_admin and t.user_id != actor_id:
            raise ForbiddenError("This transaction does not belong to you")

        if t.status == "Returned":
            raise ConflictError("Item already returned")

        if t.user and t.user.restriction:
            raise ForbiddenError("User is restricted and cannot return items")

        active = PenaltyRepo.get_active_penalty(t.transaction_id, t.user_id)
        if active is not None and active.status == PenaltyStatus.PENDING and active.fine and active.fine > 0:
            raise PaymentRequiredError(
                "Cannot return items with unpaid penalties",
                details={
                    "unpaid_penalties": [{
                        "transaction_id": t.transaction_id,
                        "penalty_id": active.penalty_id,
                        "fine": float(active.fine),
                        "status": active.status.value,
                    }]
                },
            )

        t.status = "Returned"
        t.return_date = datetime.utcnow()
        item = t.book or t.research_paper
        if item is not None:
            item.status = "Available"
        TransactionRepo.commit()

        current_app.logger.info(f"[transactions] {t.reference_number}: returned")
        ActivityLogger.log_activity(
            user_id=t.user_id,
            action="RETURN",
            details=f"Returned '{t.item_title}' - Reference: {t.reference_number}",
            admin_id=actor_id if is_admin and actor_id != t.user_id else None,
        )
        return t

    @staticmethod
    def list_for_user(user_id: int):
        return [serialize_transaction(t) for t in TransactionRepo.list_by_user(user_id)]
