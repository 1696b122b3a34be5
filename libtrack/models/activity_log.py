from datetime import datetime
from libtrack.extensions import db


class ActivityLog(db.Model):
    __tablename__ = "activity_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(64), nullable=False, index=True)  # PENALTY_PAID, BORROW, ...
    details = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="completed")  # completed/failed/pending

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
