import enum
from datetime import datetime
from libtrack.extensions import db


class PenaltyStatus(str, enum.Enum):
    PENDING = "Pending Payment"
    PAID = "Paid"
    WAIVED = "Waived"


# Paid/Waived rows are never touched again by the reconciler
SETTLED_STATUSES = (PenaltyStatus.PAID, PenaltyStatus.WAIVED)


class Penalty(db.Model):
    __tablename__ = "penalties"

    penalty_id = db.Column(db.Integer, primary_key=True)

    transaction_id = db.Column(
        db.Integer, db.ForeignKey("transactions.transaction_id"), nullable=False, index=True
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)

    fine = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    penalty_type = db.Column(db.String(20), nullable=False, default="overdue")  # overdue/lost_damaged

    status = db.Column(
        db.Enum(
            PenaltyStatus,
            name="penalty_status",
            native_enum=False,
            length=20,
            values_callable=lambda e: [m.value for m in e],
            validate_strings=True,
        ),
        nullable=False,
        default=PenaltyStatus.PENDING,
    )
    waive_reason = db.Column(db.Text, nullable=True)
    waived_by = db.Column(db.String(200), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    transaction = db.relationship("Transaction", backref="penalties")
    user = db.relationship("User", backref="penalties")
