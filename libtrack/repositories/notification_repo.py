from datetime import datetime, time, date

from libtrack.models.notification_log import NotificationLog
from libtrack.extensions import db


class NotificationRepo:
    @staticmethod
    def already_sent_on(day: date, notif_type: str, transaction_id: int) -> bool:
        start = datetime.combine(day, time.min)
        end = datetime.combine(day, time.max)
        return (
            NotificationLog.query
            .filter(
                NotificationLog.transaction_id == transaction_id,
                NotificationLog.type == notif_type,
                NotificationLog.success.is_(True),
                NotificationLog.sent_at >= start,
                NotificationLog.sent_at <= end,
            )
            .first()
            is not None
        )

    @staticmethod
    def list_for_transaction(transaction_id: int):
        return (
            NotificationLog.query
            .filter_by(transaction_id=transaction_id)
            .order_by(NotificationLog.id.desc())
            .all()
        )

    @staticmethod
    def log(entry: NotificationLog, commit: bool = False):
        db.session.add(entry)
        if commit:
            db.session.commit()
        return entry
