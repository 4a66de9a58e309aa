# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/erp/routes/admin.py
"""
Admin routes for user provisioning.

Only user creation is exposed; it is what an admin needs to bring the
actors that create stock movements and orders into the system.
"""

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..services import auth_service
from ..services.auth_service import PasswordValidationError
from ..decorators import require_auth, require_role

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.post("/users")
@require_auth
@require_role("admin")
def create_user():
    """
    Create a new user.

    Body:
    {
        "username": "jdoe",
        "email": "jdoe@example.com",
        "password": "SecurePass123!",
        "name": "Jane Doe",          (optional)
        "roles": ["staff"]           (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    username = data.get("username")
    email = data.get("email")
    password = data.get("password")
    roles = data.get("roles") or []

    if not all([username, email, password]):
        return jsonify({"error": "Validation failed", "message": "username, email, and password are required"}), 400
    if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
        return jsonify({"error": "Validation failed", "message": "roles must be a list of role names"}), 400

    try:
        user = auth_service.create_user(
            username=username,
            email=email,
            password=password,
            name=data.get("name"),
            roles=roles,
        )
    except PasswordValidationError as e:
        db.session.rollback()
        return jsonify({"error": "Validation failed", "message": str(e)}), 400
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": "Conflict", "message": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create user")
        db.session.rollback()
        return jsonify({"error": "Internal server error", "message": "Internal server error"}), 500

    return jsonify({"user": user.to_dict(), "message": "User created successfully"}), 201
