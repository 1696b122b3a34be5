# libtrack/controllers/penalty_controller.py

from flask import Blueprint, jsonify, request

from libtrack.errors import ValidationError
from libtrack.services.penalty_service import get_penalty_service
from libtrack.utils.decorators import current_actor, role_required, self_or_admin
from libtrack.utils.http import json_body

penalty_bp = Blueprint("penalties", __name__, url_prefix="/penalties")


def _int_arg(name: str, default=None):
    raw = request.args.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


@penalty_bp.get("")
@role_required("admin")
def list_penalties():
    data = get_penalty_service().list_penalties(
        status=request.args.get("status"),
        user_id=_int_arg("user_id"),
        transaction_id=_int_arg("transaction_id"),
        limit=_int_arg("limit"),
        offset=_int_arg("offset", 0),
    )
    return jsonify({"success": True, "data": data})


@penalty_bp.get("/summary")
@role_required("admin")
def penalty_summary():
    return jsonify({"success": True, "data": get_penalty_service().summary()})


@penalty_bp.get("/user/<int:user_id>")
@self_or_admin("user_id")
def user_penalties(user_id: int):
    return jsonify({"success": True, "data": get_penalty_service().user_penalties(user_id)})


@penalty_bp.put("/<int:penalty_id>/pay")
@role_required("admin")
def pay_penalty(penalty_id: int):
    data = json_body()
    actor_id, _ = current_actor()
    payload = get_penalty_service().pay(
        penalty_id,
        payment_method=data.get("payment_method"),
        notes=data.get("notes"),
        actor_id=actor_id,
    )
    return jsonify({"success": True, "message": "Penalty marked as paid", "data": payload})


@penalty_bp.put("/<int:penalty_id>/waive")
@role_required("admin")
def waive_penalty(penalty_id: int):
    data = json_body()
    actor_id, _ = current_actor()
    payload = get_penalty_service().waive(
        penalty_id,
        reason=data.get("waive_reason"),
        waived_by=data.get("waived_by"),
        actor_id=actor_id,
    )
    return jsonify({"success": True, "message": "Penalty waived", "data": payload})


@penalty_bp.delete("/<int:penalty_id>")
@role_required("admin")
def delete_penalty(penalty_id: int):
    actor_id, _ = current_actor()
    get_penalty_service().delete(penalty_id, actor_id=actor_id)
    return jsonify({"success": True, "message": "Penalty deleted"})


@penalty_bp.post("/process-overdue")
@role_required("admin")
def process_overdue():
    summary = get_penalty_service().process_overdue()
    return jsonify({"success": True, "message": "Overdue penalties processed", "data": summary})


@penalty_bp.post("/recalculate")
@role_required("admin")
def recalculate():
    summary = get_penalty_service().recalculate()
    return jsonify({"success": True, "message": "Penalties recalculated", "data": summary})


@penalty_bp.post("/cleanup")
@role_required("admin")
def cleanup():
    result = get_penalty_service().cleanup()
    return jsonify({"success": True, "message": "Superseded penalties removed", "data": result})
