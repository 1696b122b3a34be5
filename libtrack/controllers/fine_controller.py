from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from libtrack.errors import ForbiddenError
from libtrack.services.fine_service import FineService
from libtrack.utils.decorators import current_actor, role_required, self_or_admin

fine_bp = Blueprint("fines", __name__, url_prefix="/kiosk/fine-calculation")


@fine_bp.get("/user/<int:user_id>")
@self_or_admin("user_id")
def user_fines(user_id: int):
    return jsonify({"success": True, "data": FineService.preview_for_user(user_id)})


@fine_bp.get("/transaction/<int:transaction_id>")
@jwt_required()
def transaction_fine(transaction_id: int):
    data = FineService.preview_for_transaction(transaction_id)
    actor_id, is_admin = current_actor()
    if not is_admin and data["user_id"] != actor_id:
        raise ForbiddenError("This transaction does not belong to you")
    return jsonify({"success": True, "data": data})


@fine_bp.get("/overdue")
@role_required("admin")
def overdue_report():
    return jsonify({"success": True, "data": FineService.overdue_report(request.args.get("user_type"))})
