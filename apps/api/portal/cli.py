"""CLI tools for portal administration and scheduled syncs."""

import asyncio
import sys

import click

from portal.core.providers import build_integrations
from portal.core.structured_logging import configure_logging
from portal.db.enums import SyncMode
from portal.db.session import SessionLocal
from portal.services import calendar_sync_service, folder_service, onedrive_sync_service

MAX_DETAIL_LINES = 10


@click.group()
def cli():
    """Portal CLI tools."""
    configure_logging()


def _echo_details(title: str, details: list[str]) -> None:
    if not details:
        return
    click.echo(f"{title}:")
    for line in details[:MAX_DETAIL_LINES]:
        click.echo(f"  {line}")
    if len(details) > MAX_DETAIL_LINES:
        click.echo(f"  ... and {len(details) - MAX_DETAIL_LINES} more operations")


def _run(coro_factory):
    """Run ``coro_factory(db, integrations)`` with a fresh session and provider container."""
    async def runner():
        integrations = build_integrations()
        try:
            with SessionLocal() as db:
                return await coro_factory(db, integrations)
        finally:
            await integrations.aclose()

    return asyncio.run(runner())


def _echo_onedrive_result(result) -> None:
    click.echo(f"  Created: {result.created}")
    click.echo(f"  Updated: {result.updated}")
    click.echo(f"  Deleted: {result.deleted}")
    click.echo(f"  Errors: {result.errors}")
    _echo_details("Details", result.details)


# =============================================================================
# Google Calendar
# =============================================================================

@cli.command("calendar-sync")
@click.option("--no-pull", is_flag=True, help="Only push portal events to Google")
def calendar_sync(no_pull: bool):
    """
    Two-way Google Calendar sync (push, then pull).

    Exits 1 when the integration is not configured or connected, or when
    the run had errors.

    Example:
        python -m portal.cli calendar-sync
    """
    async def run(db, integrations):
        if not integrations.google.is_configured():
            calendar_sync_service.log_skipped_sync(db, "not_configured")
            click.echo("❌ Google Calendar is not configured")
            return 1
        if not integrations.google.is_connected(db):
            calendar_sync_service.log_skipped_sync(db, "no_accounts")
            click.echo("❌ Google Calendar is not connected")
            return 1

        result = await calendar_sync_service.full_sync(
            db, integrations.calendar(db), pull=not no_pull, mode=SyncMode.AUTO
        )
        click.echo("Google Calendar sync")
        click.echo(f"  Created: {result.created}")
        click.echo(f"  Updated: {result.updated}")
        click.echo(f"  Errors: {result.errors}")
        _echo_details("Portal -> Google", result.push.details)
        if result.pull:
            _echo_details("Google -> Portal", result.pull.details)
        return 0 if result.success else 1

    sys.exit(_run(run))


# =============================================================================
# OneDrive
# =============================================================================

@cli.command("onedrive-sync")
def onedrive_sync():
    """Sync every dossier linked to a OneDrive folder."""
    async def run(db, integrations):
        result = await onedrive_sync_service.sync_all_dossiers(db, integrations.drive(db))
        click.echo(f"OneDrive sync: {result.message}")
        _echo_onedrive_result(result)
        return 0 if result.success else 1

    sys.exit(_run(run))


@cli.command("onedrive-reverse-sync")
def onedrive_reverse_sync():
    """Import folders and files created directly in OneDrive."""
    async def run(db, integrations):
        result = await onedrive_sync_service.reverse_sync(db, integrations.drive(db))
        click.echo(f"OneDrive reverse sync: {result.message}")
        click.echo(f"  Linked dossiers: {result.linked_dossiers}")
        _echo_onedrive_result(result)
        _echo_details("Unmatched client folders", result.unmatched_clients)
        _echo_details("Unmatched dossier folders", result.unmatched_dossiers)
        return 0 if result.success else 1

    sys.exit(_run(run))


@cli.command("onedrive-init-folders")
def onedrive_init_folders():
    """Create the root structure and a folder for every dossier that has none."""
    async def run(db, integrations):
        drive = integrations.drive(db)
        root = await folder_service.initialize_root_structure(drive)
        if not root.success:
            click.echo(f"❌ {root.error}")
            return 1
        result = await onedrive_sync_service.initialize_all_dossiers(db, drive)
        click.echo(f"✓ {result.message}")
        _echo_onedrive_result(result)
        return 0 if result.success else 1

    sys.exit(_run(run))


# =============================================================================
# Accounts
# =============================================================================

@cli.command("create-super-admin")
@click.option("--email", required=True, help="Super admin email address")
@click.option("--nom", required=True, help="Last name")
@click.option("--prenom", required=True, help="First name")
@click.password_option(help="Password (prompted when omitted)")
def create_super_admin(email: str, nom: str, prenom: str, password: str):
    """
    Create the protected super admin account.

    Example:
        python -m portal.cli create-super-admin --email "associe@cabinet.fr" --nom Martin --prenom Claire
    """
    from portal.services import admin_service

    db = SessionLocal()
    try:
        if admin_service.get_admin_by_email(db, email):
            click.echo(f"❌ An account already exists for {email}")
            sys.exit(1)
        admin = admin_service.create_super_admin(db, email, nom, prenom, password)
        click.echo(f"✓ Created super admin: {admin.email}")
        click.echo(f"  ID: {admin.id}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        sys.exit(1)
    finally:
        db.close()



@cli.command("seed-parametres")
def seed_parametres():
    """Create the default firm settings that are missing (existing values are kept)."""
    from portal.services import parametre_service

    with SessionLocal() as db:
        created = parametre_service.seed_defaults(db)
    click.echo(f"✓ {created} parametres created")

if __name__ == "__main__":
    cli()
