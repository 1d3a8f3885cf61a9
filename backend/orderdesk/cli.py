# Overview: Flask CLI command groups for tenant bootstrap and user management.

# backend/orderdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Database:
# - python -m flask db init / migrate / upgrade   (Flask-Migrate, generates migrations/)
# - python -m flask system init-db      Create all tables (dev/test)
#
# Organization management (MULTI-TENANT):
# - python -m flask orgs list
# - python -m flask orgs create --name "Acme Corp" --code "ACME"
# - python -m flask orgs rotate-webhook-secret --org-id 1
#   Prints the new webhook secret ONCE; only its hash is stored.
#
# Users:
# - python -m flask users list [--org-id 1]
# - python -m flask users create --org-id 1 --email owner@acme.test --name "Owner" --password "Password123!" --role OWNER

import click
from flask.cli import with_appcontext

from .errors import AppError
from .extensions import db
from .models import User
from .models.auth import VALID_ROLES
from .services import auth_service, tenant_service, webhook_service


@click.group('system')
def system_group():
    """Database bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@click.group('orgs')
def orgs_group():
    """Organization (tenant) management."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    """List all organizations."""
    orgs = tenant_service.list_organizations()
    if not orgs:
        click.echo("No organizations found")
        return
    for org in orgs:
        status = "active" if org.is_active else "inactive"
        webhook = "webhook: yes" if org.webhook_secret_hash else "webhook: no"
        click.echo(f"{org.id:>4}  {org.code or '-':<10} {org.name} ({status}, {webhook})")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--code', required=True, help='Short code (unique)')
@with_appcontext
def create_org_cli(name, code):
    """Create a new organization (tenant)."""
    try:
        org = tenant_service.create_organization(name, code)
    except AppError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")


@orgs_group.command('rotate-webhook-secret')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def rotate_webhook_secret_cli(org_id):
    """Issue a new webhook secret (the old one stops working)."""
    try:
        secret = webhook_service.rotate_webhook_secret(org_id)
    except AppError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo(f"PASS New webhook secret for org {org_id} (store it now, it is not shown again):")
    click.echo(secret)


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--email', prompt=True, help='Email (unique within the org)')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(VALID_ROLES, case_sensitive=False), default='STAFF', show_default=True)
@with_appcontext
def create_user_cli(org_id, email, name, password, role):
    """Create a user in an organization."""
    try:
        user = auth_service.create_user(org_id, email=email, name=name, password=password, role=role)
    except AppError as e:
        click.echo(f"FAIL {e.message}")
        for detail in e.details.get("errors", []):
            if detail != e.message:
                click.echo(f"  - {detail}")
        return
    click.echo(f"PASS Created user {user.email} (ID: {user.id}, role: {user.role}, org: {user.org_id})")


@users_group.command('list')
@click.option('--org-id', type=int, help='Filter by organization ID')
@with_appcontext
def list_users(org_id):
    """List users with role and active status."""
    query = db.session.query(User)
    if org_id is not None:
        query = query.filter_by(org_id=org_id)
    users = query.order_by(User.org_id, User.id).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  org={user.org_id:<4} {user.email:<32} {user.role:<6} {status}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)  # Multi-tenant organization management
    app.cli.add_command(users_group)
