# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Role and permission checks (the authorization gate's two predicates).

DESIGN PRINCIPLES:
- Fail closed: deny by default, require an explicit grant via a role
- Permissions are (resource, action) pairs, e.g. ("inventory", "write")
- Denials are logged; grants are not
"""

from ..extensions import db
from ..models import UserRole, Role, RolePermission, Permission
from ..permissions import PERMISSION_DEFINITIONS, DEFAULT_ROLE_PERMISSIONS, permission_name


def get_user_roles(user_id: int) -> list[str]:
    rows = (
        db.session.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .order_by(Role.name)
        .all()
    )
    return [name for (name,) in rows]


def get_user_permissions(user_id: int) -> set[tuple[str, str]]:
    """
    Union of (resource, action) pairs granted by all of the user's roles.
    """
    rows = (
        db.session.query(Permission.resource, Permission.action)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .join(UserRole, UserRole.role_id == RolePermission.role_id)
        .filter(UserRole.user_id == user_id)
        .all()
    )
    return {(resource, action) for resource, action in rows}


def user_has_role(user_id: int, *role_names: str) -> bool:
    """True if the user holds ANY of the given roles."""
    return bool(set(role_names) & set(get_user_roles(user_id)))


def user_has_permission(user_id: int, resource: str, action: str) -> bool:
    return (resource, action) in get_user_permissions(user_id)


def initialize_permissions() -> int:
    """
    Create Permission records for every definition.

    Idempotent: Safe to run multiple times.
    """
    created_count = 0

    for resource, action, description in PERMISSION_DEFINITIONS:
        existing = db.session.query(Permission).filter_by(resource=resource, action=action).first()

        if not existing:
            db.session.add(Permission(
                name=permission_name(resource, action),
                resource=resource,
                action=action,
                description=description,
            ))
            created_count += 1

    db.session.commit()
    return created_count


def assign_default_role_permissions() -> int:
    """
    Link roles to their default permissions.

    Idempotent: skips existing grants and roles/permissions that don't exist.
    """
    created_count = 0

    for role_name, pairs in DEFAULT_ROLE_PERMISSIONS.items():
        role = db.session.query(Role).filter_by(name=role_name).first()

        if not role:
            continue

        for resource, action in pairs:
            permission = db.session.query(Permission).filter_by(resource=resource, action=action).first()

            if not permission:
                continue

            existing = db.session.query(RolePermission).filter_by(
                role_id=role.id,
                permission_id=permission.id
            ).first()

            if not existing:
                db.session.add(RolePermission(role_id=role.id, permission_id=permission.id))
                created_count += 1

    db.session.commit()
    return created_count


def get_role_permissions(role_name: str) -> list[str]:
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        raise ValueError(f"Role '{role_name}' not found")
    return sorted(rp.permission.name for rp in role.role_permissions)
