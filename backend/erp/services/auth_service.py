# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every ledger row and order is stamped with the user who created it.
Uses bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, with uppercase, lowercase, digit and special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, Role, UserRole
from ..permissions import DEFAULT_ROLES
from erp.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt at the configured cost."""
    validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    name: str | None = None,
    roles: list[str] | None = None,
) -> User:
    """
    Create new user with bcrypt password hashing and optional roles.

    Raises:
        ValueError: If username/email taken or a role doesn't exist
        PasswordValidationError: If password doesn't meet requirements
    """
    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ValueError("Username or email already exists")

    role_rows = []
    for role_name in roles or []:
        role = db.session.query(Role).filter_by(name=role_name).first()
        if not role:
            raise ValueError(f"Role {role_name} not found")
        role_rows.append(role)

    user = User(
        username=username,
        email=email,
        name=name,
        password_hash=hash_password(password),
    )
    db.session.add(user)
    db.session.flush()

    for role in role_rows:
        db.session.add(UserRole(user_id=user.id, role_id=role.id))

    db.session.commit()
    current_app.logger.info("user.created id=%s username=%s roles=%s", user.id, username, roles or [])
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user with username (or email) and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def create_default_roles() -> int:
    """Create standard roles if they don't exist. Returns count created."""
    created = 0
    for name, desc in DEFAULT_ROLES:
        existing = db.session.query(Role).filter_by(name=name).first()
        if not existing:
            db.session.add(Role(name=name, description=desc))
            created += 1

    db.session.commit()
    return created
