# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/erp/routes/auth.py
"""
Authentication API routes

- Login issues an opaque bearer token (stored hashed, time-limited)
- Logout revokes it
- /me returns the current user with roles and permissions

Self-registration does not exist; admins create users via
POST /api/admin/users or `flask users create`.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..permissions import permission_name
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _permission_names(user_id: int) -> list[str]:
    return sorted(permission_name(r, a) for r, a in permission_service.get_user_permissions(user_id))


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "Validation failed", "message": "username/email and password required"}), 400

        user = auth_service.authenticate(username, password)

        if not user:
            current_app.logger.warning("login failed identifier=%s ip=%s", username, request.remote_addr)
            return jsonify({"error": "Invalid credentials", "message": "Invalid username or password"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr
        )

        return jsonify({
            "user": user.to_dict(),
            "permissions": _permission_names(user.id),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error", "message": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the session token used for this request."""
    try:
        session_service.revoke_session(g.auth_token, reason="User logout")
        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error", "message": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "permissions": _permission_names(user.id),
    }), 200
