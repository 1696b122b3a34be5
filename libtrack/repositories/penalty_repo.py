from datetime import date, datetime, timedelta

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import aliased, joinedload

from libtrack.extensions import db
from libtrack.models.penalty import Penalty, PenaltyStatus
from libtrack.models.transaction import Transaction


def _key(transaction_id: int, user_id: int):
    return Penalty.transaction_id == transaction_id, Penalty.user_id == user_id


def _active_ids():
    """Newest non-paid penalty_id per (transaction_id, user_id)."""
    return (
        select(func.max(Penalty.penalty_id))
        .where(Penalty.status != PenaltyStatus.PAID)
        .group_by(Penalty.transaction_id, Penalty.user_id)
    )


class PenaltyRepo:
    @staticmethod
    def get(penalty_id: int):
        return db.session.get(Penalty, penalty_id)

    @staticmethod
    def get_with_details(penalty_id: int):
        return (
            Penalty.query
            .options(
                joinedload(Penalty.user),
                joinedload(Penalty.transaction).joinedload(Transaction.book),
                joinedload(Penalty.transaction).joinedload(Transaction.research_paper),
            )
            .filter(Penalty.penalty_id == penalty_id)
            .first()
        )

    @staticmethod
    def latest_for(transaction_id: int, user_id: int, for_update: bool = False):
        q = (
            Penalty.query
            .filter(*_key(transaction_id, user_id))
            .order_by(Penalty.updated_at.desc(), Penalty.penalty_id.desc())
        )
        if for_update:
            q = q.with_for_update()
        return q.first()

    @staticmethod
    def get_active_penalty(transaction_id: int, user_id: int):
        return (
            Penalty.query
            .filter(*_key(transaction_id, user_id), Penalty.status != PenaltyStatus.PAID)
            .order_by(Penalty.penalty_id.desc())
            .first()
        )

    @staticmethod
    def list_for_key(transaction_id: int, user_id: int):
        return (
            Penalty.query
            .filter(*_key(transaction_id, user_id))
            .order_by(Penalty.penalty_id.asc())
            .all()
        )

    @staticmethod
    def delete_active(transaction_id: int, user_id: int, keep: int | None = None) -> int:
        """Delete non-paid rows for the key, except `keep` when given."""
        q = Penalty.query.filter(*_key(transaction_id, user_id), Penalty.status != PenaltyStatus.PAID)
        if keep is not None:
            q = q.filter(Penalty.penalty_id != keep)
        return q.delete(synchronize_session="fetch")

    @staticmethod
    def add(penalty: Penalty):
        db.session.add(penalty)
        db.session.flush()
        return penalty

    @staticmethod
    def delete(penalty: Penalty):
        db.session.delete(penalty)

    @staticmethod
    def visible_query():
        """
        Every Paid row plus the single newest non-paid row per key.
        All list/summary paths go through here.
        """
        return Penalty.query.filter(
            or_(
                Penalty.status == PenaltyStatus.PAID,
                Penalty.penalty_id.in_(_active_ids()),
            )
        )

    @staticmethod
    def list_visible(status=None, user_id=None, transaction_id=None, limit=None, offset=0):
        q = PenaltyRepo.visible_query()
        if status is not None:
            q = q.filter(Penalty.status == status)
        if user_id is not None:
            q = q.filter(Penalty.user_id == user_id)
        if transaction_id is not None:
            q = q.filter(Penalty.transaction_id == transaction_id)

        total = q.count()

        q = (
            q.options(
                joinedload(Penalty.user),
                joinedload(Penalty.transaction).joinedload(Transaction.book),
                joinedload(Penalty.transaction).joinedload(Transaction.research_paper),
            )
            .order_by(Penalty.updated_at.desc(), Penalty.penalty_id.desc())
        )
        if offset:
            q = q.offset(offset)
        if limit is not None:
            q = q.limit(limit)
        return q.all(), total

    @staticmethod
    def cleanup_superseded() -> int:
        """
        Delete every non-paid row that has a newer non-paid row for the same
        key. Ids are selected first so the delete never self-references the
        table (MySQL rejects that).
        """
        newer = aliased(Penalty)
        rows = (
            db.session.query(Penalty.penalty_id)
            .join(
                newer,
                and_(
                    newer.transaction_id == Penalty.transaction_id,
                    newer.user_id == Penalty.user_id,
                    newer.penalty_id > Penalty.penalty_id,
                    newer.status != PenaltyStatus.PAID,
                ),
            )
            .filter(Penalty.status != PenaltyStatus.PAID)
            .distinct()
            .all()
        )
        ids = [r[0] for r in rows]
        if not ids:
            return 0
        return Penalty.query.filter(Penalty.penalty_id.in_(ids)).delete(synchronize_session="fetch")

    @staticmethod
    def summary(today: date, now: datetime | None = None) -> dict:
        now = now or datetime.utcnow()

        total_count, total_fines = (
            db.session.query(func.count(Penalty.penalty_id), func.coalesce(func.sum(Penalty.fine), 0))
            .filter(Penalty.penalty_id.in_(_active_ids()))
            .one()
        )

        overdue_count, overdue_fines = (
            db.session.query(func.count(Penalty.penalty_id), func.coalesce(func.sum(Penalty.fine), 0))
            .join(Transaction, Transaction.transaction_id == Penalty.transaction_id)
            .filter(
                Penalty.penalty_id.in_(_active_ids()),
                Transaction.due_date < today,
            )
            .one()
        )

        recent_count, recent_fines = (
            db.session.query(func.count(Penalty.penalty_id), func.coalesce(func.sum(Penalty.fine), 0))
            .filter(Penalty.updated_at >= now - timedelta(days=7))
            .one()
        )

        return {
            "total_penalties": int(total_count or 0),
            "total_fines": float(total_fines or 0),
            "overdue_count": int(overdue_count or 0),
            "overdue_fines": float(overdue_fines or 0),
            "recent_count": int(recent_count or 0),
            "recent_fines": float(recent_fines or 0),
        }

    @staticmethod
    def pending_for_borrowed(today: date):
        """Active pending penalties of items still out and past due (for overdue notices)."""
        return (
            Penalty.query
            .options(
                joinedload(Penalty.user),
                joinedload(Penalty.transaction).joinedload(Transaction.book),
                joinedload(Penalty.transaction).joinedload(Transaction.research_paper),
            )
            .join(Transaction, Transaction.transaction_id == Penalty.transaction_id)
            .filter(
                Penalty.penalty_id.in_(_active_ids()),
                Penalty.status == PenaltyStatus.PENDING,
                Transaction.status == "Borrowed",
                Transaction.due_date < today,
            )
            .order_by(Penalty.penalty_id.asc())
            .all()
        )
