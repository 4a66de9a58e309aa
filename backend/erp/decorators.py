# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import session_service, permission_service
from .permissions import permission_name


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user to the authenticated User.

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required", "message": "Missing bearer token"}), 401

        token = auth_header.split(" ", 1)[1].strip()

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "Authentication required", "message": "Invalid or expired token"}), 401

        g.current_user = user
        g.auth_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_permission(resource: str, action: str):
    """Require the (resource, action) permission through any of the user's roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required", "message": "Missing bearer token"}), 401

            user = g.current_user
            if not permission_service.user_has_permission(user.id, resource, action):
                code = permission_name(resource, action)
                current_app.logger.warning(
                    "permission denied user_id=%s path=%s required=%s", user.id, request.path, code
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": code,
                    "message": f"Permission denied: {code}",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_role(*role_names: str):
    """Require any of the named roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required", "message": "Missing bearer token"}), 401

            user = g.current_user
            if not permission_service.user_has_role(user.id, *role_names):
                current_app.logger.warning(
                    "role denied user_id=%s path=%s required_any=%s", user.id, request.path, ",".join(role_names)
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(role_names),
                    "message": f"Requires any of: {', '.join(role_names)}",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
