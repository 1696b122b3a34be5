from datetime import date

from sqlalchemy.orm import joinedload

from libtrack.models.transaction import Transaction
from libtrack.models.user import User
from libtrack.extensions import db


class TransactionRepo:
    @staticmethod
    def get(transaction_id: int):
        return db.session.get(Transaction, transaction_id)

    @staticmethod
    def get_with_details(transaction_id: int):
        return (
            Transaction.query
            .options(
                joinedload(Transaction.user),
                joinedload(Transaction.book),
                joinedload(Transaction.research_paper),
            )
            .filter(Transaction.transaction_id == transaction_id)
            .first()
        )

    @staticmethod
    def list_by_user(user_id: int):
        return (
            Transaction.query
            .filter_by(user_id=user_id)
            .order_by(Transaction.transaction_id.desc())
            .all()
        )

    @staticmethod
    def list_user_borrows(user_id: int):
        """Borrow transactions with a due date, soonest first."""
        return (
            Transaction.query
            .filter(
                Transaction.user_id == user_id,
                Transaction.transaction_type == "borrow",
                Transaction.due_date.isnot(None),
            )
            .order_by(Transaction.due_date.asc(), Transaction.transaction_id.asc())
            .all()
        )

    @staticmethod
    def find_overdue(today: date, user_type: str | None = None):
        """
        Borrow transactions whose due date is strictly before `today` and
        which have not been returned.
        user_type: None / "student" / "faculty"
        """
        q = (
            Transaction.query
            .join(User, User.user_id == Transaction.user_id)
            .filter(
                Transaction.transaction_type == "borrow",
                Transaction.due_date.isnot(None),
                Transaction.due_date < today,
                Transaction.status != "Returned",
            )
        )
        if user_type == "student":
            q = q.filter(db.or_(User.position.is_(None), User.position == "", User.position == "Student"))
        elif user_type == "faculty":
            q = q.filter(User.position.isnot(None), User.position != "", User.position != "Student")

        return q.order_by(Transaction.due_date.asc(), Transaction.transaction_id.asc()).all()

    @staticmethod
    def find_due_on(day: date):
        return (
            Transaction.query
            .filter(
                Transaction.status == "Borrowed",
                Transaction.due_date == day,
            )
            .order_by(Transaction.transaction_id.asc())
            .all()
        )

    @staticmethod
    def reference_exists(reference_number: str) -> bool:
        return Transaction.query.filter_by(reference_number=reference_number).first() is not None

    @staticmethod
    def add(transaction: Transaction):
        db.session.add(transaction)
        return transaction

    @staticmethod
    def commit():
        db.session.commit()
