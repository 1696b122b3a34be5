from flask import Blueprint, jsonify, request

from libtrack.errors import ValidationError
from libtrack.services.activity_service import ActivityLogger
from libtrack.utils.decorators import role_required

activity_bp = Blueprint("activity", __name__)


@activity_bp.get("/activity-logs")
@role_required("admin")
def list_activity_logs():
    try:
        user_id = int(request.args["user_id"]) if request.args.get("user_id") else None
        limit = min(int(request.args.get("limit", 100)), 500)
    except ValueError:
        raise ValidationError("user_id and limit must be integers")
    if limit < 1:
        raise ValidationError("limit must be positive")

    logs = ActivityLogger.list_logs(user_id=user_id, action=request.args.get("action"), limit=limit)
    return jsonify({"success": True, "data": logs})
