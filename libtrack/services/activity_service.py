# libtrack/services/activity_service.py
from __future__ import annotations

from flask import current_app

from libtrack.extensions import db
from libtrack.models.activity_log import ActivityLog


class ActivityLogger:
    @staticmethod
    def log_activity(
        user_id: int | None,
        action: str,
        details: str | None = None,
        status: str = "completed",
        admin_id: int | None = None,
        admin_name: str | None = None,
    ) -> dict:
        """
        Writes one activity_logs row and commits it.
        Never raises: the calling request must not fail because of logging.
        """
        try:
            if not user_id or not action:
                raise ValueError("user_id and action are required for activity logging")

            final_details = details or ""
            if admin_id and admin_name:
                admin_part = f"Admin: {admin_name} (ID: {admin_id})"
            elif admin_id:
                admin_part = f"Admin ID: {admin_id}"
            else:
                admin_part = ""
            if admin_part:
                final_details = f"{final_details} | {admin_part}" if final_details else admin_part

            row = ActivityLog(
                user_id=user_id,
                action=action,
                details=final_details or None,
                status=status,
            )
            db.session.add(row)
            db.session.commit()
            return {"success": True, "activity_log_id": row.id}
        except Exception as e:
            db.session.rollback()
            current_app.logger.warning(f"[activity] Could not log {action}: {e}")
            return {"success": False, "error": str(e)}

    @staticmethod
    def list_logs(user_id: int | None = None, action: str | None = None, limit: int = 100):
        q = ActivityLog.query
        if user_id is not None:
            q = q.filter(ActivityLog.user_id == user_id)
        if action:
            q = q.filter(ActivityLog.action == action)
        rows = q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
        return [
            {
                "id": r.id,
                "user_id": r.user_id,
                "action": r.action,
                "details": r.details,
                "status": r.status,
                "created_at": r.created_at.isoformat() if r.created_at else None,
            }
            for r in rows
        ]
