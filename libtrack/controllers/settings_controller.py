from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required

from libtrack.services.activity_service import ActivityLogger
from libtrack.services.settings_service import SettingsService
from libtrack.utils.decorators import current_actor, role_required
from libtrack.utils.http import json_body

settings_bp = Blueprint("settings", __name__, url_prefix="/settings")


@settings_bp.get("/fines")
@jwt_required()
def get_fine_settings():
    return jsonify({"success": True, "data": SettingsService.serialize(SettingsService.get_fine_settings())})


@settings_bp.put("/fines")
@role_required("admin")
def update_fine_settings():
    data = SettingsService.update_fine_settings(json_body())
    actor_id, _ = current_actor()
    ActivityLogger.log_activity(
        user_id=actor_id,
        action="SETTINGS_UPDATED",
        details=(
            f"Fine settings: student ₱{data['student_daily_fine']:.2f}/day, "
            f"faculty ₱{data['faculty_daily_fine']:.2f}/day"
        ),
    )
    return jsonify({"success": True, "message": "Fine settings updated", "data": data})
