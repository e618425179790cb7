"""CLI application for Leasekeeper administration"""
import click
import logging
import sys
import os
import json
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .api_client import GatewayClient, run_async
from .backoff import BackoffPolicy
from .db_utils import (
    init_database,
    drop_all_tables,
    get_lock_stats,
    purge_expired_leases,
    run_alembic_command
)

# Exit code for lease outcomes that are not errors (denied, not holder, timeout)
EXIT_NOT_GRANTED = 2


def _fail(message: str, error: Exception):
    click.echo(f"✗ {message}: {error}", err=True)
    sys.exit(1)


def _print_lease(lease: dict):
    click.echo(f"{lease['resource_name']}")
    click.echo(f"   Process:  {lease['process_id']}")
    click.echo(f"   Acquired: {lease['acquired_at']}")
    click.echo(f"   Expires:  {lease['expires_at']}")


@click.group()
@click.version_option(version="0.1.0")
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def cli(verbose: bool):
    """Leasekeeper CLI - lock table administration and lease commands"""
    # .env in the working directory; real environment variables win
    load_dotenv(find_dotenv(usecwd=True))
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


@cli.group()
def db():
    """Database management commands"""
    pass


@db.command()
def init():
    """Initialize database schema"""
    click.echo("Initializing database...")
    try:
        run_async(init_database())
        click.echo("✓ Database initialized successfully")
    except Exception as e:
        _fail("Error initializing database", e)


@db.command()
@click.option('--revision', default='head', help='Target revision')
def migrate(revision: str):
    """Run database migrations"""
    click.echo("Running migrations...")
    try:
        run_alembic_command("upgrade", revision)
        click.echo("✓ Migrations complete")
    except Exception as e:
        _fail("Error running migrations", e)


@db.command()
@click.option('--confirm', is_flag=True, help='Confirm reset')
def reset(confirm):
    """Reset database (destructive)"""
    if not confirm:
        click.echo("⚠ This will delete all leases. Use --confirm to proceed.")
        return

    click.echo("Resetting database...")
    try:
        run_async(drop_all_tables())
        run_async(init_database())
        click.echo("✓ Database reset successfully")
    except Exception as e:
        _fail("Error resetting database", e)


@db.command()
def stats():
    """Show lock table statistics"""
    click.echo("Lock Table Statistics")
    click.echo("=" * 40)
    try:
        stats = run_async(get_lock_stats())
    except Exception as e:
        _fail("Error getting stats", e)
    click.echo(f"Rows:           {stats['total']}")
    click.echo(f"Active leases:  {stats['active']}")
    click.echo(f"Expired rows:   {stats['expired']}")
    click.echo(f"Active holders: {stats['holders']}")


@db.command()
@click.option('--grace-seconds', default=3600, show_default=True, help='Only purge rows expired at least this long ago')
@click.option('--confirm', is_flag=True, help='Confirm deletion')
def reap(grace_seconds: int, confirm: bool):
    """Delete long-expired lease rows (table hygiene)"""
    if grace_seconds < 0:
        raise click.BadParameter("must not be negative", param_hint="--grace-seconds")
    if not confirm:
        click.echo(f"⚠ This will delete rows expired more than {grace_seconds}s ago. Use --confirm to proceed.")
        return

    try:
        deleted = run_async(purge_expired_leases(grace_seconds))
    except Exception as e:
        _fail("Error purging expired leases", e)
    click.echo(f"✓ Purged {deleted} expired rows")


@cli.group()
def locks():
    """Lease commands (via the gateway)"""
    pass


@locks.command()
@click.argument('resource')
@click.argument('process_id')
def acquire(resource: str, process_id: str):
    """Acquire or renew a lease"""
    try:
        response = run_async(GatewayClient().acquire(resource, process_id))
    except Exception as e:
        _fail("Error acquiring lease", e)

    if response['status'] != 'acquired':
        click.echo(f"✗ {resource} is held by another process")
        sys.exit(EXIT_NOT_GRANTED)
    click.echo(f"✓ {resource} acquired by {process_id} until {response.get('expires_at')}")


@locks.command()
@click.argument('resource')
@click.argument('process_id')
def release(resource: str, process_id: str):
    """Release a lease"""
    try:
        response = run_async(GatewayClient().release(resource, process_id))
    except Exception as e:
        _fail("Error releasing lease", e)

    if response['status'] != 'released':
        click.echo(f"✗ {resource} is not locked by {process_id}")
        sys.exit(EXIT_NOT_GRANTED)
    click.echo(f"✓ {resource} released")


@locks.command()
@click.argument('resource')
@click.option('--json', 'as_json', is_flag=True, help='Print raw JSON')
def status(resource: str, as_json: bool):
    """Show lock status of a resource"""
    try:
        response = run_async(GatewayClient().status(resource))
    except Exception as e:
        _fail("Error getting status", e)

    if as_json:
        click.echo(json.dumps(response, indent=2))
    elif response['is_locked']:
        click.echo(f"{resource}: locked by {response['process_id']} since {response['acquired_at']}")
    else:
        click.echo(f"{resource}: not locked")


@locks.command(name='list')
@click.option('--process', 'process_id', default=None, help='Only leases held by this process')
def list_locks(process_id: Optional[str]):
    """List active leases"""
    try:
        client = GatewayClient()
        if process_id:
            leases = run_async(client.list_by_process(process_id))
        else:
            leases = run_async(client.list_active())
    except Exception as e:
        _fail("Error listing leases", e)

    if not leases:
        click.echo("No active leases.")
        return
    for lease in leases:
        _print_lease(lease)
    click.echo(f"\nTotal active leases: {len(leases)}")


@locks.command()
@click.argument('resource')
@click.argument('process_id')
@click.option('--timeout', default=60.0, show_default=True, help='Seconds to keep trying')
@click.option('--max-delay', default=10.0, show_default=True, help='Longest pause between attempts')
def wait(resource: str, process_id: str, timeout: float, max_delay: float):
    """Poll until the lease is acquired or the timeout passes"""
    click.echo(f"Waiting for {resource} (timeout {timeout}s)...")
    try:
        policy = BackoffPolicy(max_delay=max_delay)
        response = run_async(GatewayClient().wait_for_lease(resource, process_id, timeout, policy=policy))
    except Exception as e:
        _fail("Error waiting for lease", e)

    if response is None:
        click.echo(f"✗ Timed out waiting for {resource}")
        sys.exit(EXIT_NOT_GRANTED)
    click.echo(f"✓ {resource} acquired by {process_id} until {response.get('expires_at')}")


@cli.group()
def config():
    """Configuration management"""
    pass


@config.command()
def show():
    """Show current configuration"""
    from leasekeeper_gateway.config import mask_url

    click.echo("Current Configuration")
    click.echo("=" * 40)
    click.echo(f"DATABASE_URL: {mask_url(os.getenv('DATABASE_URL', 'Not set'))}")
    click.echo(f"TTL_SECONDS:  {os.getenv('TTL_SECONDS', '30')}")
    click.echo(f"GATEWAY_HOST: {os.getenv('GATEWAY_HOST', '0.0.0.0')}")
    click.echo(f"GATEWAY_PORT: {os.getenv('GATEWAY_PORT', os.getenv('PORT', '5000'))}")
    click.echo(f"GATEWAY_URL:  {GatewayClient().base_url}")
    click.echo(f"LOG_LEVEL:    {os.getenv('LOG_LEVEL', 'INFO')}")


@config.command()
def check():
    """Check configuration validity"""
    from leasekeeper_gateway.config import ConfigurationError, GatewaySettings

    click.echo("Checking configuration...")

    errors = []
    warnings = []

    if not os.getenv('DATABASE_URL'):
        warnings.append("DATABASE_URL not set, using the local default")

    try:
        GatewaySettings.from_env()
    except ConfigurationError as e:
        errors.append(str(e))

    if errors:
        click.echo("\n✗ Errors:")
        for error in errors:
            click.echo(f"  - {error}")

    if warnings:
        click.echo("\n⚠ Warnings:")
        for warning in warnings:
            click.echo(f"  - {warning}")

    if not errors and not warnings:
        click.echo("✓ Configuration is valid")

    sys.exit(1 if errors else 0)


if __name__ == '__main__':
    cli()
