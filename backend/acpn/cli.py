# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/acpn/cli.py
# Commands Legend (run from the backend directory):
# - Use: flask --app acpn <group> <command> [options]
#
# System bootstrap/repair:
# - flask --app acpn system init [--email admin@acpn.local --password ...]
#   Idempotent bootstrap: tables, permissions, default roles, due types and a superadmin.
# - flask --app acpn system init-permissions
#   Create missing default permissions.
# - flask --app acpn system init-roles
#   Create or reset the six default roles (requires permissions).
# - flask --app acpn system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - flask --app acpn users list [--role member] [--status pending]
# - flask --app acpn users create --email x@y.z --password ... --role admin
# - flask --app acpn users approve <email>
#
# Permission inspection:
# - flask --app acpn perms list [--role treasurer]
# - flask --app acpn perms check member due delete
#
# Dues maintenance:
# - flask --app acpn dues mark-overdue

import click
from flask.cli import with_appcontext

from .errors import AppError
from .extensions import db
from .models import Role, User
from .permissions import Actions, Resources, UserRoles, UserStatuses
from .services import auth_service, due_service, permission_service, role_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--email', default='admin@acpn.local', help='Superadmin email')
@click.option('--password', default='Password123!', help='Superadmin password')
@with_appcontext
def init_system(email, password):
    """
    Initialize the ACPN backend.

    Creates:
    - All tables (if missing)
    - Default permissions for every (resource, action) pair
    - Roles: superadmin, admin, secretary, treasurer, financial_secretary, member
    - Predefined due types
    - A verified, approved superadmin account

    SECURITY: Change the superadmin password immediately in production!
    """
    click.echo("START Initializing ACPN system...")

    db.create_all()
    click.echo("PASS Tables ready")

    created = permission_service.initialize_permissions()
    click.echo(f"PASS Permissions initialized ({created} created)")

    roles = role_service.initialize_roles()
    click.echo(f"PASS Default roles initialized: {', '.join(r.name for r in roles)}")

    created = due_service.seed_default_due_types()
    click.echo(f"PASS Due types seeded ({created} created)")

    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if user:
        click.echo(f"PASS Superadmin already exists: {user.email}")
    else:
        user = auth_service.create_user(
            first_name="System",
            last_name="Administrator",
            email=email,
            password=password,
            role=UserRoles.SUPERADMIN,
            status=UserStatuses.ACTIVE,
            is_approved=True,
            email_verified=True,
        )
        db.session.commit()
        click.echo(f"PASS Created superadmin: {user.email}")

    click.echo("DONE System initialized")


@system_group.command('init-permissions')
@with_appcontext
def init_permissions():
    """Create missing default permissions."""
    created = permission_service.initialize_permissions()
    click.echo(f"PASS Permissions initialized ({created} created)")


@system_group.command('init-roles')
@with_appcontext
def init_roles():
    """Create or reset the default roles."""
    try:
        roles = role_service.initialize_roles()
    except AppError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    for role in roles:
        click.echo(f"PASS {role.name}: {len(role.permissions)} permission(s)")


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

    click.echo("PASS Database reset complete. Run 'flask --app acpn system init' to initialize.")


# =============================================================================
# USERS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--role', help='Filter by role')
@click.option('--status', help='Filter by status')
@with_appcontext
def list_users(role, status):
    """List users with role, status and approval."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)
    if status:
        query = query.filter_by(status=status)
    users = query.order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<5} {'Name':<28} {'Email':<32} {'Role':<20} {'Status':<10} {'Approved'}")
    click.echo("=" * 100)
    for user in users:
        approved = "Yes" if user.is_approved else "No"
        click.echo(
            f"{user.id:<5} {user.full_name[:27]:<28} {user.email[:31]:<32} {user.role:<20} {user.status:<10} {approved}"
        )
    click.echo("=" * 100 + "\n")


@users_group.command('create')
@click.option('--first-name', prompt=True)
@click.option('--last-name', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(UserRoles.ALL), default=UserRoles.MEMBER, show_default=True)
@with_appcontext
def create_user_cli(first_name, last_name, email, password, role):
    """Create an active, verified and approved user."""
    try:
        user = auth_service.create_user(
            first_name=first_name,
            last_name=last_name,
            email=email,
            password=password,
            role=role,
            status=UserStatuses.ACTIVE,
            is_approved=True,
            email_verified=True,
        )
        db.session.commit()
    except AppError as e:
        db.session.rollback()
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created user {user.email} (ID: {user.id}) with role '{user.role}'")


@users_group.command('approve')
@click.argument('email')
@with_appcontext
def approve_user_cli(email):
    """Approve and activate a pending user."""
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        click.echo(f"FAIL User '{email}' not found")
        raise SystemExit(1)

    user.is_approved = True
    user.email_verified = True
    user.status = UserStatuses.ACTIVE
    db.session.commit()
    click.echo(f"PASS User '{user.email}' approved")


# =============================================================================
# PERMISSIONS
# =============================================================================

@click.group('perms')
def perms_group():
    """Permission inspection commands."""


@perms_group.command('list')
@click.option('--role', 'role_name', help='Only permissions held by this role')
@with_appcontext
def list_permissions_cli(role_name):
    """List permissions, optionally for one role."""
    if role_name:
        role = db.session.query(Role).filter_by(name=role_name).first()
        if not role:
            click.echo(f"FAIL Role '{role_name}' not found")
            raise SystemExit(1)
        permissions = sorted(role.permissions, key=lambda p: (p.resource, p.action))
        click.echo(f"\nPermissions for role '{role_name}':")
    else:
        permissions = permission_service.list_permissions()
        click.echo("\nAll permissions:")

    click.echo("=" * 80)
    for permission in permissions:
        click.echo(f"  {permission.resource:<20} {permission.action:<10} {permission.name}")
    click.echo("=" * 80)
    click.echo(f"Total: {len(permissions)}\n")


@perms_group.command('check')
@click.argument('role_name')
@click.argument('resource', type=click.Choice(Resources.ALL))
@click.argument('action', type=click.Choice(Actions.ALL))
@with_appcontext
def check_permission_cli(role_name, resource, action):
    """Check whether a role holds (resource, action)."""
    try:
        allowed = permission_service.has_permission(role_name, resource, action)
    except AppError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    if allowed:
        click.echo(f"PASS Role '{role_name}' HAS permission '{action}' on '{resource}'")
    else:
        click.echo(f"FAIL Role '{role_name}' DOES NOT HAVE permission '{action}' on '{resource}'")


# =============================================================================
# DUES
# =============================================================================

@click.group('dues')
def dues_group():
    """Dues maintenance commands."""


@dues_group.command('mark-overdue')
@with_appcontext
def mark_overdue_cli():
    """Re-derive status for unpaid dues past their due date."""
    changed = due_service.mark_overdue_dues()
    click.echo(f"PASS {changed} due(s) marked overdue")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(dues_group)
