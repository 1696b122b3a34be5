from datetime import datetime
from libtrack.extensions import db


class SystemSettings(db.Model):
    __tablename__ = "system_settings"

    id = db.Column(db.Integer, primary_key=True)

    student_daily_fine = db.Column(db.Numeric(10, 2), nullable=False, default=5)
    faculty_daily_fine = db.Column(db.Numeric(10, 2), nullable=False, default=11)
    student_borrow_days = db.Column(db.Integer, nullable=False, default=3)
    faculty_borrow_days = db.Column(db.Integer, nullable=False, default=90)

    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
