# Overview: Flask CLI command groups for bootstrap, API key management, and maintenance.

# backend/vendor_backend/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Install the package (pip install -e .) into the active environment.
# - FLASK_APP=wsgi.py must be set, or pass --app wsgi.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent, keeps data).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# API keys:
# - python -m flask api-keys create --name "Dashboard" --scope "*" --rate-limit 100
#   Create a key and print its plaintext ONCE. Use this to bootstrap the first
#   key with the api_keys:manage scope.
# - python -m flask api-keys list
#   List keys with status, scopes and last use.
# - python -m flask api-keys revoke 3
#   Revoke a key (row is kept).
#
# Maintenance:
# - python -m flask maintenance sweep-rate-limits
#   Delete expired rate-limit windows from the configured store.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import api_key_service, rate_limit_service
from .validation import NotFoundError, ValidationError, parse_datetime


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    Drop every table and build the schema again.

    Products, customers, orders and API keys are all lost.
    """
    if not yes:
        click.confirm("WARN Every table will be dropped. Continue?", abort=True)

    click.echo("DELETE  Dropping tables...")
    db.drop_all()

    click.echo("BUILD  Recreating tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask api-keys create' to add a key.")


@click.group('api-keys')
def api_keys_group():
    """API key management commands."""


@api_keys_group.command('create')
@click.option('--name', required=True, help='Display name')
@click.option('--scope', 'scopes', multiple=True, help='Scope (repeatable), e.g. products:read or *')
@click.option('--rate-limit', type=click.IntRange(1, 10_000), default=None, help='Requests per minute')
@click.option('--expires-at', default=None, help='ISO-8601 expiry (UTC if no offset)')
@with_appcontext
def create_api_key_cli(name, scopes, rate_limit, expires_at):
    """Create an API key and print the plaintext once."""
    try:
        expires = parse_datetime(expires_at, "expires-at") if expires_at else None
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint="--expires-at")

    plaintext, record = api_key_service.create_api_key(
        name=name,
        scopes=list(scopes),
        rate_limit=rate_limit,
        expires_at=expires,
    )

    click.echo(f"PASS Created API key {record.id} ({record.name})")
    click.echo(f"     Scopes: {', '.join(record.scopes or []) or 'none'}")
    click.echo(f"     Key:    {plaintext}")
    click.echo("WARN Store this key now; it cannot be shown again.")


@api_keys_group.command('list')
@with_appcontext
def list_api_keys_cli():
    """List all API keys."""
    keys = api_key_service.list_api_keys()

    if not keys:
        click.echo("No API keys found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Name':<25} {'Status':<10} {'Limit':<7} {'Last used':<22} {'Scopes'}")
    click.echo("="*100)

    for k in keys:
        scopes_str = ", ".join(k["scopes"] or []) or "none"
        last_used = k["lastUsedAt"] or "never"
        click.echo(f"{k['id']:<5} {k['name']:<25} {k['isActive']:<10} {k['rateLimit']:<7} {last_used:<22} {scopes_str}")

    click.echo("="*100 + "\n")


@api_keys_group.command('revoke')
@click.argument('api_key_id', type=int)
@with_appcontext
def revoke_api_key_cli(api_key_id):
    """Revoke an API key."""
    try:
        api_key_service.revoke_api_key(api_key_id=api_key_id)
    except NotFoundError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS API key {api_key_id} revoked.")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('sweep-rate-limits')
@with_appcontext
def sweep_rate_limits_cli():
    """Delete expired rate-limit windows."""
    removed = rate_limit_service.sweep_expired()
    click.echo(f"Removed {removed} expired rate-limit windows.")


def register_commands(app):
    """Attach the command groups to app.cli."""
    app.cli.add_command(system_group)
    app.cli.add_command(api_keys_group)
    app.cli.add_command(maintenance_group)
