from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from libtrack.errors import ValidationError
from libtrack.extensions import db
from libtrack.models.system_settings import SystemSettings

DEFAULT_SETTINGS = {
    "student_daily_fine": Decimal("5"),
    "faculty_daily_fine": Decimal("11"),
    "student_borrow_days": 3,
    "faculty_borrow_days": 90,
}

FINE_FIELDS = ("student_daily_fine", "faculty_daily_fine")
DAY_FIELDS = ("student_borrow_days", "faculty_borrow_days")


class SettingsService:
    @staticmethod
    def get_fine_settings() -> dict:
        """Current settings row, or the hardcoded defaults if none can be read."""
        try:
            row = SystemSettings.query.order_by(SystemSettings.id.asc()).first()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.warning(f"[settings] Could not read system_settings, using defaults: {e}")
            return dict(DEFAULT_SETTINGS)

        if not row:
            return dict(DEFAULT_SETTINGS)

        return {
            "student_daily_fine": Decimal(str(row.student_daily_fine)),
            "faculty_daily_fine": Decimal(str(row.faculty_daily_fine)),
            "student_borrow_days": int(row.student_borrow_days),
            "faculty_borrow_days": int(row.faculty_borrow_days),
        }

    @staticmethod
    def borrow_days_for(position) -> int:
        from libtrack.services.fine_service import is_student

        settings = SettingsService.get_fine_settings()
        return settings["student_borrow_days"] if is_student(position) else settings["faculty_borrow_days"]

    @staticmethod
    def update_fine_settings(data: dict) -> dict:
        updates = {}

        for field in FINE_FIELDS:
            if data.get(field) is None:
                continue
            try:
                value = Decimal(str(data[field]))
            except InvalidOperation:
                raise ValidationError(f"{field} must be a number")
            if not value.is_finite() or value < 0:
                raise ValidationError(f"{field} must be zero or positive")
            updates[field] = value

        for field in DAY_FIELDS:
            if data.get(field) is None:
                continue
            try:
                value = int(data[field])
            except (TypeError, ValueError):
                raise ValidationError(f"{field} must be an integer")
            if value < 1:
                raise ValidationError(f"{field} must be at least 1")
            updates[field] = value

        if not updates:
            raise ValidationError("At least one setting must be provided")

        row = SystemSettings.query.order_by(SystemSettings.id.asc()).first()
        if not row:
            row = SystemSettings(**{k: v for k, v in DEFAULT_SETTINGS.items()})
            db.session.add(row)

        for k, v in updates.items():
            setattr(row, k, v)
        db.session.commit()

        current_app.logger.info(f"[settings] Fine settings updated: {sorted(updates)}")
        return SettingsService.serialize(SettingsService.get_fine_settings())

    @staticmethod
    def serialize(settings: dict) -> dict:
        return {
            "student_daily_fine": float(settings["student_daily_fine"]),
            "faculty_daily_fine": float(settings["faculty_daily_fine"]),
            "student_borrow_days": int(settings["student_borrow_days"]),
            "faculty_borrow_days": int(settings["faculty_borrow_days"]),
        }
