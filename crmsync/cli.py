"""CRM sync CLI - queue processing, backfill and setup commands."""

import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import settings

app = typer.Typer(
    name="crmsync",
    help="Booking to CRM synchronization tools",
    no_args_is_help=True,
)
console = Console()


async def _create_tables() -> None:
    from .database import engine
    from .models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def _require_remote() -> None:
    if not settings.remote_configured:
        console.print(
            Panel(
                "[yellow]Remote CRM not configured.[/yellow]\n\n"
                "Set your credentials in a .env file:\n"
                "  CRMSYNC_INSTANCE_URL=https://your-instance.my.salesforce.com\n"
                "  CRMSYNC_ACCESS_TOKEN=...",
                title="Configuration",
            )
        )
        raise typer.Exit(1)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("init-db")
def init_db():
    """Create database tables."""
    asyncio.run(_create_tables())
    console.print("[green]Tables created.[/green]")


@app.command("seed-mappings")
def seed_mappings():
    """Install the default field mapping rules when none exist."""
    from .database import async_session_factory
    from .sync.field_mapper import seed_default_rules

    async def _seed() -> int:
        await _create_tables()
        async with async_session_factory() as db:
            return await seed_default_rules(db)

    count = asyncio.run(_seed())
    if count:
        console.print(f"[green]Seeded {count} field mapping rule(s).[/green]")
    else:
        console.print("[dim]Field mappings already configured; nothing seeded.[/dim]")


@app.command("process-queue")
def process_queue(
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Max items to claim"),
):
    """Process one batch of the sync queue."""
    _require_remote()
    from .database import async_session_factory
    from .remote.client import RemoteClient
    from .sync.engine import SyncEngine
    from .sync.processor import QueueProcessor

    async def _process():
        async with async_session_factory() as db, RemoteClient.from_settings(settings) as client:
            return await QueueProcessor(SyncEngine.build(db, client, settings)).process(limit)

    stats = asyncio.run(_process())
    table = Table(title="Sync Queue Batch")
    table.add_column("Claimed", justify="right")
    table.add_column("Completed", justify="right", style="green")
    table.add_column("Retrying", justify="right", style="yellow")
    table.add_column("Failed", justify="right", style="red")
    table.add_row(str(stats.claimed), str(stats.completed), str(stats.retried), str(stats.failed))
    console.print(table)


@app.command("sync-all")
def sync_all(
    kind: Optional[list[str]] = typer.Option(None, "--kind", "-k", help="Contact, Lead or Opportunity"),
    limit: int = typer.Option(100, "--limit", "-n", help="Max records per kind"),
):
    """Backfill bookings that have never been synced."""
    _require_remote()
    from .database import async_session_factory
    from .remote.client import RemoteClient
    from .sync.bulk import run_bulk_sync
    from .sync.engine import SyncEngine

    async def _run():
        async with async_session_factory() as db, RemoteClient.from_settings(settings) as client:
            return await run_bulk_sync(SyncEngine.build(db, client, settings), kinds=kind or None, limit=limit)

    report = asyncio.run(_run())
    table = Table(title="Bulk Sync")
    table.add_column("Kind", style="cyan")
    table.add_column("Synced", justify="right", style="green")
    for remote_type, count in report.synced.items():
        table.add_row(remote_type, str(count))
    console.print(table)
    for error in report.errors:
        console.print(f"[red]{error}[/red]")
    if report.errors:
        raise typer.Exit(1)


@app.command("queue-status")
def queue_status(
    failed: bool = typer.Option(False, "--failed", help="List failed items"),
):
    """Show queue counts by status."""
    from .database import async_session_factory
    from .sync import queue_svc

    async def _status():
        async with async_session_factory() as db:
            counts = await queue_svc.status_counts(db)
            items = await queue_svc.list_items(db, status="failed", limit=50) if failed else []
            return counts, items

    counts, items = asyncio.run(_status())
    table = Table(title="Sync Queue")
    table.add_column("Status", style="cyan")
    table.add_column("Items", justify="right")
    for status in ("pending", "processing", "completed", "failed"):
        table.add_row(status, str(counts.get(status, 0)))
    console.print(table)

    if items:
        failures = Table(title="Failed Items")
        failures.add_column("ID", style="dim")
        failures.add_column("Operation")
        failures.add_column("Booking")
        failures.add_column("Error", style="red")
        for item in items:
            failures.add_row(str(item.id), item.operation, item.local_id, item.error_message or "")
        console.print(failures)


@app.command("check-connection")
def check_connection():
    """Verify credentials against the remote CRM."""
    _require_remote()
    from .remote.client import RemoteClient

    async def _check():
        async with RemoteClient.from_settings(settings) as client:
            return await client.check_connection()

    result = asyncio.run(_check())
    if result.ok:
        console.print("[green]Connected.[/green]")
    else:
        console.print(f"[red]Connection failed: {result.error}[/red]")
        raise typer.Exit(1)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8030, "--port", "-p"),
):
    """Run the webhook and admin API with the background queue worker."""
    import uvicorn

    uvicorn.run("crmsync.app:app", host=host, port=port)


if __name__ == "__main__":
    app()
