# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--email admin@stockdesk.local]
#   Idempotent bootstrap: creates the ADMIN account if missing.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Company management:
# - python -m flask companies list
# - python -m flask companies create --name "Acme" --email acme@example.com --director-name "Dana" --director-email dana@example.com
#
# Users:
# - python -m flask users list [--company-id 1]
# - python -m flask users create --company-id 1 --name "Sam" --email sam@example.com [--role USER]
#
# Scheduled jobs (run from cron):
# - python -m flask alerts sweep [--company-id 1]
#   Re-sync stock alerts for every product.
# - python -m flask maintenance cleanup-sessions
#   Delete expired/revoked sessions older than 30 days.

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import DomainError
from .extensions import db
from .models import Company, User
from .models.auth import ROLE_ADMIN, ROLE_DIRECTOR, ROLE_USER
from .services import alert_service, session_service, tenant_service
from .services.auth_service import hash_password, normalize_email


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--email', default=None, help='Admin email (defaults to ADMIN_EMAIL)')
@click.option('--name', default='Administrator', show_default=True, help='Admin display name')
@click.option('--password', default=None, help='Admin password (defaults to ADMIN_PASSWORD, prompts if unset)')
@with_appcontext
def init_system(email, name, password):
    """
    Create tables if needed and ensure an ADMIN account exists.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing StockDesk...")
    db.create_all()

    email = normalize_email(email or current_app.config["ADMIN_EMAIL"])
    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        click.echo(f"PASS Admin already exists: {existing.email} (ID: {existing.id})")
        return

    password = password or current_app.config.get("ADMIN_PASSWORD") or click.prompt(
        "Admin password", hide_input=True, confirmation_prompt=True
    )
    try:
        admin = User(
            company_id=None,
            name=name,
            email=email,
            password_hash=hash_password(password),
            role=ROLE_ADMIN,
        )
    except DomainError as e:
        click.echo(f"FAIL {e.message}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    db.session.add(admin)
    db.session.commit()
    click.echo(f"PASS Created admin: {admin.email} (ID: {admin.id})")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """DANGER: Drop all tables and recreate schema. This will DELETE ALL DATA!"""
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('companies')
def companies_group():
    """Company (tenant) management."""


@companies_group.command('list')
@with_appcontext
def list_companies_cli():
    companies = tenant_service.list_companies()
    if not companies:
        click.echo("No companies found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Email':<35} {'Active'}")
    click.echo("=" * 80)
    for company in companies:
        active_str = "Yes" if company.is_active else "No"
        click.echo(f"{company.id:<5} {company.name:<30} {company.email:<35} {active_str}")
    click.echo("=" * 80 + "\n")


@companies_group.command('create')
@click.option('--name', prompt=True, help='Company name')
@click.option('--email', prompt=True, help='Company email')
@click.option('--director-name', prompt=True, help='Director name')
@click.option('--director-email', prompt=True, help='Director email')
@click.option('--director-password', prompt=True, hide_input=True, confirmation_prompt=True, help='Director password')
@with_appcontext
def create_company_cli(name, email, director_name, director_email, director_password):
    """Create a company together with its first director."""
    try:
        company, director = tenant_service.create_company_with_director(
            company_name=name,
            company_email=email,
            director_name=director_name,
            director_email=director_email,
            director_password=director_password,
        )
    except DomainError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo(f"PASS Created company: {company.name} (ID: {company.id})")
    click.echo(f"     Director: {director.email} (ID: {director.id})")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--company-id', type=int, required=True, help='Company ID')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([ROLE_USER, ROLE_DIRECTOR]), default=ROLE_USER, show_default=True)
@with_appcontext
def create_user_cli(company_id, name, email, password, role):
    """Create a user inside an existing company."""
    company = db.session.get(Company, company_id)
    if not company:
        click.echo(f"FAIL Company ID {company_id} not found")
        return
    try:
        email = normalize_email(email)
        if db.session.query(User).filter_by(email=email).first():
            click.echo(f"FAIL A user with email {email} already exists")
            return
        user = User(
            company_id=company.id,
            name=name,
            email=email,
            password_hash=hash_password(password),
            role=role,
        )
    except DomainError as e:
        click.echo(f"FAIL {e.message}")
        return
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created {role} {user.email} in {company.name} (ID: {user.id})")


@users_group.command('list')
@click.option('--company-id', type=int, help='Filter by company ID')
@with_appcontext
def list_users(company_id):
    """List users with their role and active status."""
    query = db.session.query(User)
    if company_id:
        query = query.filter_by(company_id=company_id)
    users = query.order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<5} {'Company':<8} {'Email':<35} {'Role':<18} {'Active'}")
    click.echo("=" * 100)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        company_str = str(user.company_id) if user.company_id else "-"
        click.echo(f"{user.id:<5} {company_str:<8} {user.email:<35} {user.role:<18} {active_str}")
    click.echo("=" * 100 + "\n")


@click.group('alerts')
def alerts_group():
    """Stock alert jobs."""


@alerts_group.command('sweep')
@click.option('--company-id', type=int, default=None, help='Limit to one company')
@with_appcontext
def sweep_alerts_cli(company_id):
    """Re-sync stock alerts against current stock levels."""
    summary = alert_service.sweep_company_alerts(company_id)
    click.echo(
        f"Checked {summary['products_checked']} products; {summary['open_alerts']} open alerts."
    )


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired or revoked sessions older than 30 days."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} expired sessions.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(companies_group)
    app.cli.add_command(users_group)
    app.cli.add_command(alerts_group)
    app.cli.add_command(maintenance_group)
