# Overview: Permission definitions and default role grants.
# Each permission is defined as: (resource, action, description)

RESOURCES = ("products", "inventory", "orders", "users")
ACTIONS = ("read", "write", "delete")

_DESCRIPTIONS = {
    "read": "View {resource}",
    "write": "Create and edit {resource}",
    "delete": "Delete {resource}",
}

PERMISSION_DEFINITIONS = [
    (resource, action, _DESCRIPTIONS[action].format(resource=resource))
    for resource in RESOURCES
    for action in ACTIONS
]


def permission_name(resource: str, action: str) -> str:
    return f"{resource}:{action}"


ALL_PERMISSIONS = [(resource, action) for resource, action, _ in PERMISSION_DEFINITIONS]

DEFAULT_ROLES = [
    ("admin", "Full system access"),
    ("manager", "Catalog, inventory and order management"),
    ("staff", "Order entry and read-only catalog/inventory"),
]

DEFAULT_ROLE_PERMISSIONS = {
    "admin": ALL_PERMISSIONS,
    "manager": [(r, a) for r, a in ALL_PERMISSIONS if r != "users"],
    "staff": [
        ("products", "read"),
        ("inventory", "read"),
        ("orders", "read"),
        ("orders", "write"),
    ],
}
