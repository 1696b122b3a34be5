# libtrack/tasks/penalty_check.py
from datetime import date, datetime, timedelta
from flask import current_app

from libtrack.extensions import db
from libtrack.repositories.notification_repo import NotificationRepo
from libtrack.repositories.penalty_repo import PenaltyRepo
from libtrack.repositories.transaction_repo import TransactionRepo
from libtrack.services.mail_service import MailService
from libtrack.services.penalty_service import get_penalty_service


def send_due_tomorrow_reminders(today: date) -> int:
    """Email + user_notification for Borrowed items due tomorrow. Returns reminders sent."""
    broadcaster = get_penalty_service().broadcaster
    rows = TransactionRepo.find_due_on(today + timedelta(days=1))
    current_app.logger.info(f"[penalty_check] {len(rows)} transaction(s) due tomorrow")

    sent = 0
    for t in rows:
        if NotificationRepo.already_sent_on(today, "due_tomorrow", t.transaction_id):
            continue
        try:
            if MailService.send_due_reminder(t):
                sent += 1
            broadcaster.broadcast({
                "user_id": t.user_id,
                "type": "due_tomorrow",
                "title": "Item Due Tomorrow",
                "message": (
                    f"Your borrowed item \"{t.item_title}\" (Ref: {t.reference_number}) is due tomorrow. "
                    f"Please return it on time to avoid penalties."
                ),
                "reference_number": t.reference_number,
                "due_date": t.due_date.isoformat() if t.due_date else None,
                "timestamp": datetime.utcnow().isoformat(),
                "priority": "medium",
            }, event="user_notification")
        except Exception as e:
            current_app.logger.exception(f"[penalty_check] due reminder for transaction {t.transaction_id} failed: {e}")

    db.session.commit()
    return sent


def send_overdue_notices(today: date) -> int:
    """Email + user_notification for every active pending penalty of an item still out."""
    broadcaster = get_penalty_service().broadcaster
    penalties = PenaltyRepo.pending_for_borrowed(today)
    current_app.logger.info(f"[penalty_check] {len(penalties)} overdue penalty notice(s) to send")

    sent = 0
    for p in penalties:
        t = p.transaction
        if NotificationRepo.already_sent_on(today, "overdue_penalty", t.transaction_id):
            continue
        days_overdue = max(0, (today - t.due_date).days) if t.due_date else 0
        try:
            if MailService.send_overdue_notice(p, days_overdue):
                sent += 1
            broadcaster.broadcast({
                "user_id": p.user_id,
                "type": "overdue_penalty",
                "title": "Overdue Item - Action Required",
                "message": (
                    f"Your item \"{t.item_title}\" is {days_overdue} day(s) overdue. "
                    f"Current fine: ₱{float(p.fine):.2f}. Please return it immediately."
                ),
                "reference_number": t.reference_number,
                "fine_amount": float(p.fine),
                "days_overdue": days_overdue,
                "timestamp": datetime.utcnow().isoformat(),
                "priority": "high",
            }, event="user_notification")
        except Exception as e:
            current_app.logger.exception(f"[penalty_check] overdue notice for penalty {p.penalty_id} failed: {e}")

    db.session.commit()
    return sent


def run_daily_penalty_checks(app, today: date | None = None) -> dict:
    """
    Daily job:
    - reconcile penalties for every overdue borrow
    - remind borrowers of items due tomorrow
    - notify borrowers of outstanding overdue fines
    """
    with app.app_context():
        started = datetime.utcnow()
        today = today or date.today()
        try:
            batch = get_penalty_service().process_overdue(today)
            due_tomorrow = send_due_tomorrow_reminders(today)
            overdue = send_overdue_notices(today)
        except Exception as e:
            db.session.rollback()
            current_app.logger.exception(f"[penalty_check] Error: {e}")
            raise

        duration = (datetime.utcnow() - started).total_seconds()
        current_app.logger.info(
            f"[penalty_check] done in {duration:.2f}s "
            f"created={batch['penalties_created']} updated={batch['penalties_updated']} "
            f"due_tomorrow_sent={due_tomorrow} overdue_sent={overdue}"
        )
        return {
            "penalties": batch,
            "due_tomorrow_count": due_tomorrow,
            "overdue_count": overdue,
            "duration": duration,
        }
