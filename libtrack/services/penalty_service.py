# libtrack/services/penalty_service.py
from __future__ import annotations

import math
from dataclasses import dataclass, asdict
from datetime import date, datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from libtrack.errors import ConflictError, NotFoundError, PenaltyConflictError, ValidationError
from libtrack.extensions import db
from libtrack.models.penalty import Penalty, PenaltyStatus, SETTLED_STATUSES
from libtrack.realtime import Broadcaster
from libtrack.repositories.penalty_repo import PenaltyRepo
from libtrack.repositories.transaction_repo import TransactionRepo
from libtrack.services.activity_service import ActivityLogger
from libtrack.services.fine_service import FineService, calculate_fine, daily_rate_for
from libtrack.services.settings_service import SettingsService


@dataclass
class ReconcileResult:
    created: bool = False
    updated: bool = False
    skipped: bool = False
    penalty_id: int | None = None
    message: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def _optional_text(value, field: str) -> str | None:
    """Stripped string or None; any other JSON type is a validation error."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip() or None


def serialize_penalty(p: Penalty, today: date | None = None) -> dict:
    today = today or date.today()
    t = p.transaction
    u = p.user
    due = t.due_date if t else None

    return {
        "penalty_id": p.penalty_id,
        "transaction_id": p.transaction_id,
        "user_id": p.user_id,
        "fine": float(p.fine) if p.fine is not None else 0.0,
        "penalty_type": p.penalty_type,
        "status": p.status.value if p.status else PenaltyStatus.PENDING.value,
        "waive_reason": p.waive_reason,
        "waived_by": p.waived_by,
        "created_at": p.created_at.isoformat() if p.created_at else None,
        "updated_at": p.updated_at.isoformat() if p.updated_at else None,

        "reference_number": t.reference_number if t else None,
        "due_date": due.isoformat() if due else None,
        "transaction_type": t.transaction_type if t else None,
        "days_overdue": max(0, (today - due).days) if due else 0,
        "item_title": t.item_title if t else "Unknown Item",

        "user_name": u.full_name if u else None,
        "position": u.position if u else None,
    }


class PenaltyService:
    """
    Owns every write to penalties.fine / penalties.status.

    Invariant: per (transaction_id, user_id) at most one row whose status is
    not Paid. Reconciliation keeps it; the storage layer backs it with a
    partial unique index (see libtrack.db_objects).
    """

    def __init__(self, broadcaster: Broadcaster):
        self.broadcaster = broadcaster

    # -----------------------------
    # Reconciliation
    # -----------------------------
    def reconcile(self, transaction_id: int, user_id: int, computed_fine) -> ReconcileResult:
        fine = Decimal(str(computed_fine))
        now = datetime.utcnow()

        try:
            latest = PenaltyRepo.latest_for(transaction_id, user_id, for_update=True)

            if latest is None:
                # stray non-paid rows cannot outlive a missing "latest", but clear them anyway
                PenaltyRepo.delete_active(transaction_id, user_id)
                p = PenaltyRepo.add(Penalty(
                    transaction_id=transaction_id,
                    user_id=user_id,
                    fine=fine,
                    status=PenaltyStatus.PENDING,
                    created_at=now,
                    updated_at=now,
                ))
                result = ReconcileResult(created=True, penalty_id=p.penalty_id, message="Penalty recorded")

            elif latest.status in SETTLED_STATUSES:
                result = ReconcileResult(
                    skipped=True,
                    penalty_id=latest.penalty_id,
                    message=f"Penalty already {latest.status.value.lower()}, no action taken",
                )

            else:
                latest.fine = fine
                latest.updated_at = now
                db.session.flush()
                removed = PenaltyRepo.delete_active(transaction_id, user_id, keep=latest.penalty_id)
                if removed:
                    current_app.logger.info(
                        f"[penalties] Removed {removed} superseded row(s) for transaction {transaction_id}"
                    )
                result = ReconcileResult(updated=True, penalty_id=latest.penalty_id, message="Penalty updated")

            db.session.commit()

        except IntegrityError as e:
            db.session.rollback()
            raise PenaltyConflictError(
                f"Concurrent penalty write for transaction {transaction_id} / user {user_id}"
            ) from e
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.debug(
            f"[penalties] reconcile txn={transaction_id} user={user_id} fine={fine} -> {result.message}"
        )
        return result

    def _run_batch(self, today: date | None, count_skipped: bool, label: str) -> dict:
        today = today or date.today()
        settings = SettingsService.get_fine_settings()
        max_fine = FineService.max_fine()

        # plain tuples: a rollback inside the loop must not expire what we iterate
        work = [
            (t.transaction_id, t.user_id, t.due_date, t.user.position if t.user else None)
            for t in TransactionRepo.find_overdue(today)
        ]

        processed = created = updated = skipped = 0
        errors = []

        for transaction_id, user_id, due_date, position in work:
            processed += 1
            try:
                fine = calculate_fine(
                    due_date,
                    current_date=today,
                    daily_rate=daily_rate_for(position, settings),
                    max_fine=max_fine,
                )
                result = self.reconcile(transaction_id, user_id, fine.fine)
            except Exception as e:
                current_app.logger.exception(f"[penalties] {label}: transaction {transaction_id} failed: {e}")
                errors.append({"transaction_id": transaction_id, "error": str(e)})
                continue

            if result.created:
                created += 1
            elif result.updated:
                updated += 1
            else:
                skipped += 1

        current_app.logger.info(
            f"[penalties] {label}: processed={processed} created={created} updated={updated} "
            f"skipped={skipped} errors={len(errors)}"
        )

        summary = {
            "total_processed": processed,
            "penalties_created": created,
            "penalties_updated": updated,
        }
        if count_skipped:
            summary["penalties_skipped"] = skipped
        summary["errors"] = len(errors)
        summary["error_details"] = errors
        return summary

    def process_overdue(self, today: date | None = None) -> dict:
        return self._run_batch(today, count_skipped=True, label="process-overdue")

    def recalculate(self, today: date | None = None) -> dict:
        return self._run_batch(today, count_skipped=False, label="recalculate")

    def cleanup(self) -> dict:
        try:
            deleted = PenaltyRepo.cleanup_superseded()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        current_app.logger.info(f"[penalties] cleanup removed {deleted} superseded row(s)")
        return {"records_deleted": deleted}

    # -----------------------------
    # Status transitions
    # -----------------------------
    def _load_open(self, penalty_id: int) -> Penalty:
        p = PenaltyRepo.get_with_details(penalty_id)
        if not p:
            raise NotFoundError("Penalty not found")
        if p.status == PenaltyStatus.PAID:
            raise ConflictError("Penalty already paid")
        if p.status == PenaltyStatus.WAIVED:
            raise ConflictError("Penalty already waived")
        return p

    def _transition(self, penalty_id: int, values: dict):
        # conditional update so two concurrent requests cannot both settle the row
        changed = (
            Penalty.query
            .filter(Penalty.penalty_id == penalty_id, Penalty.status == PenaltyStatus.PENDING)
            .update(values, synchronize_session=False)
        )
        if not changed:
            db.session.rollback()
            raise ConflictError("Penalty is no longer pending")
        db.session.commit()

    def pay(self, penalty_id: int, payment_method: str | None = "manual", notes: str | None = None,
            actor_id: int | None = None) -> dict:
        payment_method = _optional_text(payment_method, "payment_method") or "manual"
        notes = _optional_text(notes, "notes")

        p = self._load_open(penalty_id)
        now = datetime.utcnow()
        t = p.transaction

        payload = {
            "penalty_id": p.penalty_id,
            "user_id": p.user_id,
            "user_name": p.user.full_name if p.user else None,
            "transaction_id": p.transaction_id,
            "reference_number": t.reference_number if t else None,
            "fine_amount": float(p.fine),
            "payment_method": payment_method,
            "item_title": t.item_title if t else "Unknown Item",
            "paid_at": now.isoformat(),
        }

        self._transition(penalty_id, {"status": PenaltyStatus.PAID, "updated_at": now})
        current_app.logger.info(f"[penalties] Penalty {penalty_id} paid ({payload['payment_method']})")

        self.broadcaster.broadcast({
            "type": "PENALTY_PAID",
            "data": payload,
            "timestamp": now.isoformat(),
        })

        details = (
            f"Paid penalty of ₱{payload['fine_amount']:.2f} for Reference: {payload['reference_number']}"
            f" - Payment Method: {payload['payment_method']}"
        )
        if notes:
            details += f" - Notes: {notes}"
        ActivityLogger.log_activity(user_id=payload["user_id"], action="PENALTY_PAID", details=details,
                                    admin_id=actor_id)
        return payload

    def waive(self, penalty_id: int, reason: str | None, waived_by: str | None,
              actor_id: int | None = None) -> dict:
        reason = _optional_text(reason, "waive_reason")
        if not reason:
            raise ValidationError("waive_reason is required")
        waived_by = _optional_text(waived_by, "waived_by")

        p = self._load_open(penalty_id)
        now = datetime.utcnow()
        t = p.transaction

        payload = {
            "penalty_id": p.penalty_id,
            "user_id": p.user_id,
            "user_name": p.user.full_name if p.user else None,
            "transaction_id": p.transaction_id,
            "reference_number": t.reference_number if t else None,
            "fine_amount": float(p.fine),
            "waive_reason": reason,
            "waived_by": waived_by,
            "item_title": t.item_title if t else "Unknown Item",
            "waived_at": now.isoformat(),
        }

        self._transition(penalty_id, {
            "status": PenaltyStatus.WAIVED,
            "waive_reason": reason,
            "waived_by": waived_by,
            "updated_at": now,
        })
        current_app.logger.info(f"[penalties] Penalty {penalty_id} waived by {waived_by or '-'}")

        self.broadcaster.broadcast({
            "type": "PENALTY_WAIVED",
            "data": payload,
            "timestamp": now.isoformat(),
        })
        ActivityLogger.log_activity(
            user_id=payload["user_id"],
            action="PENALTY_WAIVED",
            details=f"Waived penalty of ₱{payload['fine_amount']:.2f} for Reference: "
                    f"{payload['reference_number']} - Reason: {reason}",
            admin_id=actor_id,
            admin_name=waived_by,
        )
        return payload

    def delete(self, penalty_id: int, actor_id: int | None = None) -> None:
        p = PenaltyRepo.get(penalty_id)
        if not p:
            raise NotFoundError("Penalty not found")
        user_id, fine = p.user_id, p.fine
        PenaltyRepo.delete(p)
        db.session.commit()
        current_app.logger.info(f"[penalties] Penalty {penalty_id} deleted")
        ActivityLogger.log_activity(
            user_id=user_id,
            action="PENALTY_DELETED",
            details=f"Deleted penalty {penalty_id} (₱{float(fine):.2f})",
            admin_id=actor_id,
        )

    # -----------------------------
    # Queries
    # -----------------------------
    def list_penalties(self, status=None, user_id=None, transaction_id=None, limit=None, offset=0,
                       today: date | None = None) -> dict:
        if status:
            try:
                status = PenaltyStatus(status)
            except ValueError:
                raise ValidationError(
                    f"status must be one of: {', '.join(s.value for s in PenaltyStatus)}"
                )
        else:
            status = None

        if limit is not None and limit < 1:
            raise ValidationError("limit must be positive")
        if offset < 0:
            raise ValidationError("offset must not be negative")

        rows, total = PenaltyRepo.list_visible(
            status=status, user_id=user_id, transaction_id=transaction_id, limit=limit, offset=offset
        )
        page_size = limit or total

        return {
            "penalties": [serialize_penalty(p, today) for p in rows],
            "pagination": {
                "total": total,
                "limit": page_size,
                "offset": offset,
                "pages": math.ceil(total / page_size) if page_size else 0,
            },
        }

    def user_penalties(self, user_id: int, today: date | None = None) -> dict:
        rows, total = PenaltyRepo.list_visible(user_id=user_id)
        penalties = [serialize_penalty(p, today) for p in rows]

        total_fines = sum((Decimal(str(p.fine)) for p in rows), Decimal("0"))
        outstanding = sum(
            (Decimal(str(p.fine)) for p in rows if p.status == PenaltyStatus.PENDING), Decimal("0")
        )
        return {
            "user_id": user_id,
            "total_count": total,
            "total_fines": float(total_fines),
            "outstanding_fines": float(outstanding),
            "penalties": penalties,
        }

    def summary(self, today: date | None = None) -> dict:
        return PenaltyRepo.summary(today or date.today())


def get_penalty_service() -> PenaltyService:
    return current_app.extensions["penalty_service"]
