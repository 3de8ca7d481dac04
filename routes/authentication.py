from flask import Blueprint, current_app, jsonify, make_response, request

from classes.validators import require_fields
from models.users import User
from utils.tokens import get_jwt_token
from utils.utils import get_request_token, load_user

auth_bp = Blueprint('auth_bp', __name__)


def _set_token_cookie(response, token, max_age):
    response.set_cookie(
        "access_token", token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        path="/",
        max_age=max_age,
    )

# Login
@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    require_fields(data, ("username_or_email", "password"))
    identifier = data.get("username_or_email")

    user = User.query.filter((User.username == identifier) | (User.email == identifier)).first()

    if not user or not user.check_password(data.get("password")):
        return jsonify({"error": "Invalid credentials"}), 401

    token = get_jwt_token({
        "user_id": user.id,
        "username_or_email": user.username,
        "role": user.role,
    })

    response = make_response(jsonify({
        "message": "Login successful",
        "token": token,
        "user": {
            "id": user.id,
            "role": user.role,
            "username": user.username,
            "email": user.email
        }
    }))
    _set_token_cookie(response, token, int(current_app.config["JWT_EXPIRATION"].total_seconds()))
    return response

# Logout
@auth_bp.route('/logout', methods=['POST'])
def logout():
    response = make_response(jsonify({"message": "Logout successful"}))
    _set_token_cookie(response, "", 0)
    return response

# Auth Check
@auth_bp.route('/check-auth', methods=['GET'])
def check_auth():
    if not get_request_token():
        return jsonify({"error": "Not authenticated"}), 401

    decoded_token = load_user()
    if not decoded_token:
        return jsonify({"error": "Invalid or expired token"}), 401

    return jsonify({
        "message": "Authenticated",
        "user": {
            "id": decoded_token.get("user_id"),
            "role": decoded_token.get("role"),
            "username_or_email": decoded_token.get("username_or_email"),
        }
    }), 200
