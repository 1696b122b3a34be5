# libtrack/services/mail_service.py
from __future__ import annotations

from datetime import datetime
from flask import current_app, render_template
from flask_mail import Message

from libtrack.extensions import mail
from libtrack.models.notification_log import NotificationLog
from libtrack.repositories.notification_repo import NotificationRepo
from libtrack.services.fine_service import FineService


class MailService:
    @staticmethod
    def send_email(to_email: str, subject: str, body: str, html: str | None = None) -> tuple[bool, str | None]:
        """
        return: (success, error_text)
        """
        try:
            msg = Message(subject=subject, recipients=[to_email], body=body, html=html)
            mail.send(msg)
            return True, None
        except Exception as e:
            current_app.logger.warning(f"[mail] Could not send '{subject}' to {to_email}: {e}")
            return False, str(e)

    @staticmethod
    def log_notification(
        transaction_id: int | None,
        notif_type: str,
        to_email: str | None,
        message: str,
        success: bool,
        error: str | None = None,
        penalty_id: int | None = None,
        commit: bool = False,  # callers looping over rows commit once
    ) -> NotificationLog:
        row = NotificationLog(
            transaction_id=transaction_id,
            penalty_id=penalty_id,
            type=notif_type,
            email=to_email,
            message=message[:1000] if message else message,
            success=bool(success),
            error_message=error[:500] if error else error,
            sent_at=datetime.utcnow(),
        )
        return NotificationRepo.log(row, commit=commit)

    @staticmethod
    def _transaction_labels(transaction):
        user = getattr(transaction, "user", None)

        to_email = getattr(user, "email", None) if user else None
        user_name = user.full_name if user else "Borrower"
        item_title = transaction.item_title
        due_date = transaction.due_date.strftime("%B %d, %Y").replace(" 0", " ") if transaction.due_date else "-"
        return to_email, user_name, item_title, due_date

    @staticmethod
    def send_due_reminder(transaction) -> bool:
        """
        Reminder for an item due tomorrow. Logged either way; never raises.
        """
        to_email, user_name, item_title, due_date = MailService._transaction_labels(transaction)
        reference = transaction.reference_number

        if not to_email:
            MailService.log_notification(
                transaction_id=transaction.transaction_id,
                notif_type="due_tomorrow",
                to_email=None,
                message="User has no email address",
                success=False,
                error="missing_email",
            )
            return False

        subject = "Item Due Tomorrow - Lib-Track Reminder"
        body = (
            f"Dear {user_name},\n\n"
            f"Your borrowed item \"{item_title}\" (Ref: {reference}) is due tomorrow on {due_date}.\n\n"
            f"Please return it on time to avoid penalties.\n\nThank you!"
        )
        html = render_template(
            "email/due_reminder.html",
            user_name=user_name,
            item_title=item_title,
            reference_number=reference,
            due_date=due_date,
            max_fine=FineService.max_fine(),
        )

        ok, err = MailService.send_email(to_email, subject, body, html=html)
        MailService.log_notification(
            transaction_id=transaction.transaction_id,
            notif_type="due_tomorrow",
            to_email=to_email,
            message=body,
            success=ok,
            error=err,
        )
        return ok

    @staticmethod
    def send_overdue_notice(penalty, days_overdue: int) -> bool:
        transaction = penalty.transaction
        to_email, user_name, item_title, due_date = MailService._transaction_labels(transaction)
        reference = transaction.reference_number
        fine_amount = f"{float(penalty.fine or 0):.2f}"

        if not to_email:
            MailService.log_notification(
                transaction_id=transaction.transaction_id,
                penalty_id=penalty.penalty_id,
                notif_type="overdue_penalty",
                to_email=None,
                message="User has no email address",
                success=False,
                error="missing_email",
            )
            return False

        subject = "Overdue Fine Notice - Lib-Track"
        body = (
            f"Dear {user_name},\n\n"
            f"Your item \"{item_title}\" (Ref: {reference}) is {days_overdue} day(s) overdue.\n"
            f"Current fine: ₱{fine_amount}.\n\n"
            f"Please return it to the library as soon as possible."
        )
        html = render_template(
            "email/overdue_notice.html",
            user_name=user_name,
            item_title=item_title,
            reference_number=reference,
            due_date=due_date,
            days_overdue=days_overdue,
            fine_amount=fine_amount,
        )

        ok, err = MailService.send_email(to_email, subject, body, html=html)
        MailService.log_notification(
            transaction_id=transaction.transaction_id,
            penalty_id=penalty.penalty_id,
            notif_type="overdue_penalty",
            to_email=to_email,
            message=body,
            success=ok,
            error=err,
        )
        return ok
