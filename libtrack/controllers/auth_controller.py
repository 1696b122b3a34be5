from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity, get_jwt

from libtrack.errors import NotFoundError
from libtrack.repositories.user_repo import UserRepo
from libtrack.services.auth_service import AuthService
from libtrack.utils.http import json_body, text_field

auth_bp = Blueprint("auth", __name__)


def _user_json(user, role=None):
    return {
        "user_id": user.user_id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
        "position": user.position,
        "role": role or user.role,
    }


@auth_bp.post("/register", endpoint="auth_register")
def register():
    data = json_body()

    first_name = text_field(data, "first_name")
    last_name = text_field(data, "last_name")
    email = text_field(data, "email").lower()
    password = text_field(data, "password")
    position = text_field(data, "position") or None

    if not first_name or not last_name or not email or not password:
        return jsonify({"success": False, "message": "first_name/last_name/email/password are required"}), 400

    user = AuthService.register(
        first_name=first_name,
        last_name=last_name,
        email=email,
        password=password,
        position=position,
        role="user",  # role is never taken from the request
    )
    return jsonify({"success": True, "data": _user_json(user)}), 201


@auth_bp.post("/login", endpoint="auth_login")
def login():
    data = json_body()
    token, user = AuthService.login(
        text_field(data, "email").lower(),
        text_field(data, "password"),
    )
    return jsonify({
        "success": True,
        "access_token": token,
        "user": _user_json(user),
    })


@auth_bp.get("/me", endpoint="auth_me")
@jwt_required()
def me():
    user_id = int(get_jwt_identity())
    claims = get_jwt()
    user = UserRepo.get_by_id(user_id)
    if not user:
        raise NotFoundError("User not found")

    return jsonify({"success": True, "user": _user_json(user, claims.get("role"))})
