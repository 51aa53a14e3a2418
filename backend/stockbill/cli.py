# Overview: Flask CLI command groups for bootstrap, tokens and notification sweeps.

# backend/stockbill/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users and tokens:
# - python -m flask users create --name "Jane" --email jane@example.com --role user --subscription-days 30
#   Create a tenant account (prompts if options are omitted).
# - python -m flask users list
#   List all users with role and subscription status.
# - python -m flask users issue-token --email jane@example.com
#   Print a bearer token for API calls.
# - python -m flask users revoke-tokens --email jane@example.com
#   Revoke every active token for a user.
#
# Notification sweeps (schedule these externally, e.g. cron):
# - python -m flask notifications check-low-stock
# - python -m flask notifications check-subscriptions
# - python -m flask notifications cleanup --days 30
# - python -m flask notifications cleanup-sessions

import click
from datetime import timedelta
from flask import current_app
from flask.cli import with_appcontext

from .errors import StockbillError
from .extensions import db
from .models import User
from .services import notification_service, session_service, user_service
from .time_utils import to_utc_z, utcnow


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """Drop and recreate every table. Deletes all tenants and their data."""
    if not yes:
        click.confirm("WARN Every user, item, invoice and sale will be deleted. Continue?", abort=True)

    db.drop_all()
    db.create_all()
    click.echo(f"RESET Recreated {len(db.metadata.sorted_tables)} tables.")

    click.echo("PASS Database reset complete. Run 'python -m flask users create' to add an account.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice(['user', 'admin']), default='user', show_default=True, help='Role')
@click.option('--subscription-days', type=int, default=0, show_default=True,
              help='Active subscription length in days (0 = inactive)')
@with_appcontext
def create_user_cli(name, email, role, subscription_days):
    """Create a tenant account."""
    end_date = utcnow() + timedelta(days=subscription_days) if subscription_days > 0 else None
    try:
        user = user_service.create_user(name=name, email=email, role=role, subscription_end_date=end_date)
    except StockbillError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")
        return

    click.echo(f"PASS Created user: {user.name} ({user.email}) with role '{user.role}' (ID: {user.id})")
    click.echo(f"     Subscription: {user.subscription_status} until {to_utc_z(user.subscription_end_date) or '-'}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with role and subscription status."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Name':<20} {'Email':<30} {'Role':<8} {'Active':<8} {'Subscription'}")
    click.echo("="*100)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(
            f"{user.id:<5} {user.name:<20} {user.email:<30} {user.role:<8} {active_str:<8} "
            f"{user.subscription_status}"
        )

    click.echo("="*100 + "\n")


@users_group.command('issue-token')
@click.option('--email', prompt=True, help='Email address')
@with_appcontext
def issue_token_cli(email):
    """Issue a bearer token for a user."""
    user = user_service.get_user_by_email(email)
    if not user:
        click.echo(f"FAIL No user with email {email}")
        return

    session, token = session_service.create_session(user.id)
    click.echo(f"PASS Token for {user.email} (expires {to_utc_z(session.expires_at)}):")
    click.echo(token)


@users_group.command('revoke-tokens')
@click.option('--email', prompt=True, help='Email address')
@with_appcontext
def revoke_tokens_cli(email):
    """Revoke every active token for a user."""
    user = user_service.get_user_by_email(email)
    if not user:
        click.echo(f"FAIL No user with email {email}")
        return

    count = session_service.revoke_all_user_sessions(user.id, reason="revoked via CLI")
    click.echo(f"PASS Revoked {count} session(s) for {user.email}")


@click.group('notifications')
def notifications_group():
    """Notification sweeps."""


@notifications_group.command('check-low-stock')
@with_appcontext
def check_low_stock_cli():
    """Create low-stock alerts for every owner with items below threshold."""
    if not current_app.config.get("LOW_STOCK_CHECK_ENABLED", True):
        click.echo("SKIP Low stock check disabled (LOW_STOCK_CHECK_ENABLED=false)")
        return
    created = notification_service.check_low_stock_items()
    click.echo(f"PASS Created {created} low stock notification(s)")


@notifications_group.command('check-subscriptions')
@with_appcontext
def check_subscriptions_cli():
    """Warn about expiring subscriptions and expire lapsed ones."""
    result = notification_service.check_subscription_expirations()
    click.echo(f"PASS {result['expiring']} expiring soon, {result['expired']} expired")


@notifications_group.command('cleanup')
@click.option('--days', type=int, default=None, help='Retention window (defaults to NOTIFICATION_RETENTION_DAYS)')
@with_appcontext
def cleanup_notifications_cli(days):
    """Delete read notifications older than the retention window."""
    deleted = notification_service.cleanup_old_notifications(days)
    click.echo(f"Deleted {deleted} old notification(s).")


@notifications_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired session tokens."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} expired session(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(notifications_group)
