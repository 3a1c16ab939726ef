# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/pos/routes/auth.py
"""
Authentication API routes

- Password strength validation on registration
- Session management with token-based auth
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth
from ..validation import require_json_object
from ..errors import KNOWN_ERRORS, error_response


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, session, token: str) -> dict:
    return {
        "user": user.to_dict(),
        "settings": user.settings_dict(),
        "token": token,
        "session": session.to_dict(),
    }


@auth_bp.post("/register")
def register_route():
    """
    Create an account and sign it in.

    Each account is its own scope: its own catalogue, cart, transactions
    and store settings.
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400

        user = auth_service.create_user(
            username=username,
            password=password,
            email=data.get("email"),
            full_name=data.get("full_name"),
        )

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify(_session_payload(user, session, token)), 201

    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username/email and password required"}), 400

        user = auth_service.authenticate(username, password)

        if not user:
            current_app.logger.info("Failed login for %s from %s", username, request.remote_addr)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        body = _session_payload(user, session, token)
        body["message"] = "Login successful"
        return jsonify(body), 200

    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(g.token)
        return jsonify({"message": "Logged out"}), 200
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({
        "user": g.current_user.to_dict(),
        "settings": g.current_user.settings_dict(),
    }), 200
