# Overview: Flask CLI command groups for bootstrap, inspection, and ledger checks.

# backend/erp/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, roles, permissions and the default admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --username jdoe --email jdoe@example.com --password "Password123!" --role staff
#   Create a user (prompts if options are omitted).
#
# Permissions:
# - python -m flask perms list [--role manager]
#   List permissions (optionally only those granted to a role).
#
# Inventory:
# - python -m flask inventory reconcile [--product-id 7]
#   Compare Product.quantity with SUM(in) - SUM(out); exits 1 on drift.

import sys

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Role, Permission
from .permissions import DEFAULT_ROLES
from .services.auth_service import create_user, create_default_roles, PasswordValidationError
from .services import permission_service
from .services import inventory_service
from .errors import NotFoundError


DEFAULT_ADMIN_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@erp.local', help='Email for the default admin user')
@with_appcontext
def init_system(admin_email):
    """
    Initialize the system: schema, roles, permissions and a default admin.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing ERP system...")

    db.create_all()
    click.echo("PASS Tables ready")

    created_roles = create_default_roles()
    roles = db.session.query(Role).order_by(Role.name).all()
    click.echo(f"PASS Roles ({created_roles} new): {', '.join(r.name for r in roles)}")

    perm_count = permission_service.initialize_permissions()
    assignment_count = permission_service.assign_default_role_permissions()
    click.echo(f"PASS Created {perm_count} permissions, {assignment_count} role assignments")

    if db.session.query(User).filter_by(username="admin").first():
        click.echo("WARN  User 'admin' already exists, skipping...")
    else:
        try:
            create_user(
                username="admin",
                email=admin_email,
                password=DEFAULT_ADMIN_PASSWORD,
                name="Administrator",
                roles=["admin"],
            )
            click.echo(f"PASS Created user: admin ({admin_email}) with role 'admin'")
            click.echo(f"     Default password: {DEFAULT_ADMIN_PASSWORD} (CHANGE IN PRODUCTION!)")
        except (PasswordValidationError, ValueError) as e:
            db.session.rollback()
            click.echo(f"FAIL Failed to create user 'admin': {e}")

    click.echo("DONE ERP system initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([name for name, _ in DEFAULT_ROLES]), prompt=True, help='Role')
@click.option('--name', default=None, help='Display name')
@with_appcontext
def create_user_cli(username, email, password, role, name):
    """
    Create a new user.

    Password must meet strength requirements:
    8+ chars, uppercase, lowercase, digit, special char.
    """
    try:
        create_user(username=username, email=email, password=password, name=name, roles=[role])
        click.echo(f"PASS Created user: {username} ({email}) with role '{role}'")
    except PasswordValidationError as e:
        db.session.rollback()
        click.echo(f"FAIL Password validation failed: {e}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        sys.exit(1)
    except ValueError as e:
        db.session.rollback()
        click.echo(f"FAIL Failed to create user: {e}")
        sys.exit(1)


@click.group('perms')
def perms_group():
    """Permission inspection commands."""


@perms_group.command('list')
@click.option('--role', help='Filter by role name')
@with_appcontext
def list_permissions_cli(role):
    """List all permissions, or those granted to one role."""
    if role:
        try:
            names = permission_service.get_role_permissions(role)
        except ValueError as e:
            click.echo(f"FAIL {e}")
            sys.exit(1)

        click.echo(f"Permissions for role: {role.upper()}")
        click.echo("-" * 40)
        for name in names:
            click.echo(f"  {name}")
        click.echo(f"\n Total: {len(names)} permissions")
        return

    perms = db.session.query(Permission).order_by(Permission.resource, Permission.action).all()
    click.echo(f"{'Name':<24} {'Description'}")
    click.echo("-" * 60)
    for perm in perms:
        click.echo(f"{perm.name:<24} {perm.description or ''}")
    click.echo(f"\n Total: {len(perms)} permissions")


@click.group('inventory')
def inventory_group():
    """Stock ledger checks."""


@inventory_group.command('reconcile')
@click.option('--product-id', type=int, default=None, help='Check a single product')
@with_appcontext
def reconcile_cli(product_id):
    """Verify Product.quantity == SUM(inventory_in) - SUM(inventory_out)."""
    try:
        results = inventory_service.reconcile(db.session, product_id=product_id)
    except NotFoundError as e:
        click.echo(f"FAIL {e.message}")
        sys.exit(1)

    drift = 0
    for r in results:
        if r["consistent"]:
            click.echo(f"PASS {r['sku']}: quantity={r['quantity']}")
        else:
            drift += 1
            click.echo(
                f"FAIL {r['sku']}: quantity={r['quantity']} ledger={r['ledger_quantity']} "
                f"(in={r['total_in']} out={r['total_out']})"
            )

    click.echo(f"\n Checked {len(results)} products, {drift} with drift")
    if drift:
        sys.exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(inventory_group)
