from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity

from libtrack.errors import ValidationError
from libtrack.services.transaction_service import TransactionService, serialize_transaction
from libtrack.utils.decorators import current_actor
from libtrack.utils.http import json_body

transaction_bp = Blueprint("transactions", __name__, url_prefix="/transactions")


def _optional_int(data: dict, key: str):
    if data.get(key) in (None, ""):
        return None
    try:
        return int(data[key])
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer")


@transaction_bp.post("/borrow")
@jwt_required()
def borrow_item():
    data = json_body()
    t = TransactionService.borrow(
        int(get_jwt_identity()),
        book_id=_optional_int(data, "book_id"),
        research_paper_id=_optional_int(data, "research_paper_id"),
    )
    return jsonify({"success": True, "data": serialize_transaction(t)}), 201


@transaction_bp.post("/<int:transaction_id>/return")
@jwt_required()
def return_item(transaction_id: int):
    actor_id, is_admin = current_actor()
    t = TransactionService.return_item(transaction_id, actor_id=actor_id, is_admin=is_admin)
    return jsonify({"success": True, "message": "Item returned", "data": serialize_transaction(t)})


@transaction_bp.get("/my")
@jwt_required()
def my_transactions():
    user_id = int(get_jwt_identity())
    return jsonify({"success": True, "data": TransactionService.list_for_user(user_id)})
