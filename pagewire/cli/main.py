"""
Pagewire CLI.

    pagewire serve            run the webhook server
    pagewire sweep            refresh stale credentials once and print the report
    pagewire init-db          create the database tables
"""

import asyncio
import os

import aiohttp
import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from pagewire.core.config.settings import settings
from pagewire.core.logging.logger import setup_app_logging
from pagewire.credentials.lifecycle import SweepReport, TokenLifecycleManager
from pagewire.credentials.store import SQLCredentialStore
from pagewire.credentials.sweep import CredentialSweeper
from pagewire.database.session_manager import DatabaseSessionManager
from pagewire.messaging.graph_client import GraphAPIClient

app = typer.Typer(help="Pagewire multi-tenant messaging backend CLI")
console = Console()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(settings.port, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
    workers: int = typer.Option(1, "--workers", "-w", help="Number of worker processes"),
):
    """Run the webhook server."""
    try:
        settings.validate_for_server()
    except ValueError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(1) from e

    workers = 1 if reload else workers
    if workers > 1 and settings.credential_sweep_enabled:
        # Each worker would run its own sweep and its own refresh coalescing
        os.environ["CREDENTIAL_SWEEP_ENABLED"] = "false"
        typer.echo(
            f"Credential sweep disabled in the {workers} workers; "
            "schedule `pagewire sweep` to keep credentials fresh"
        )

    typer.echo(f"Starting Pagewire on http://{host}:{port}")
    uvicorn.run(
        "pagewire.core.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=workers,
    )


@app.command()
def sweep():
    """Refresh every stale owner and channel credential once."""
    setup_app_logging()
    report = asyncio.run(_run_sweep())
    _print_report(report)
    if report.failed:
        raise typer.Exit(1)


@app.command("init-db")
def init_db():
    """Create the database tables if they do not exist."""
    setup_app_logging()
    asyncio.run(_init_db())
    typer.echo("Database tables created")


async def _run_sweep() -> SweepReport:
    db_manager = DatabaseSessionManager(settings.database_url)
    await db_manager.initialize()
    try:
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=30)
        ) as http_session:
            lifecycle = TokenLifecycleManager(
                SQLCredentialStore(db_manager.get_session),
                GraphAPIClient(http_session),
            )
            sweeper = CredentialSweeper(
                lifecycle, concurrency=settings.credential_sweep_concurrency
            )
            return await sweeper.run_once()
    finally:
        await db_manager.cleanup()


async def _init_db() -> None:
    db_manager = DatabaseSessionManager(settings.database_url)
    await db_manager.initialize()
    try:
        await db_manager.create_tables()
    finally:
        await db_manager.cleanup()


def _print_report(report: SweepReport) -> None:
    table = Table(title=f"Credential sweep {report.started_at:%Y-%m-%d %H:%M:%S} UTC")
    table.add_column("Credential")
    table.add_column("Result")
    for key in report.refreshed:
        table.add_row(key, "[green]refreshed[/green]")
    for key, error in sorted(report.failed.items()):
        table.add_row(key, f"[red]{error}[/red]")
    console.print(table)
    console.print(
        f"{len(report.refreshed)} refreshed, {len(report.failed)} failed, "
        f"{report.skipped} still fresh"
    )


if __name__ == "__main__":
    app()
