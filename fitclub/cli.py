"""CLI tools for club administration and scheduled jobs."""

import click

from fitclub.core.config import settings
from fitclub.core.structured_logging import configure_logging
from fitclub.db.session import SessionLocal


@click.group()
def cli():
    """Fitclub CLI tools."""
    configure_logging(settings.LOG_LEVEL)


@cli.command()
def process_member_imports():
    """
    Process pending member imports.

    Meant to be run by the scheduler (cron, systemd timer) every few minutes.
    Exits without work while another import is still in progress.

    Example:
        fitclub process-member-imports
    """
    from fitclub.jobs.member_imports import run_pending_member_imports

    db = SessionLocal()
    try:
        summary = run_pending_member_imports(db)
        if summary.skipped:
            click.echo("⏭️  An import is already in progress, nothing done")
            return
        if not summary.processed and not summary.failed:
            click.echo("No pending member imports")
            return
        click.echo(f"✅ Processed imports: {summary.processed or '-'}")
        if summary.failed:
            click.echo(f"❌ Failed imports: {summary.failed}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise
    finally:
        db.close()


@cli.command()
def seed_reference_data():
    """Insert duration types, rate types, discount types, tax rates and currencies."""
    from fitclub.services.reference_data_service import seed_reference_data as seed

    db = SessionLocal()
    try:
        created = seed(db)
        click.echo("✅ Reference data seeded")
        for table, count in created.items():
            click.echo(f"   {table}: {count} created")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    cli()
