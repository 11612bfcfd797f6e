"""Ledger commands — read-only views over the release ledger.

``canaryforge history``          promotion records, newest first
``canaryforge status BUILD_ID``  the recorded timeline of one build
``canaryforge verify-ledger ID`` hash-chain verification for one build
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from canaryforge.config import ForgeSettings
from canaryforge.core.release_ledger import LedgerIntegrityError, ReleaseLedger
from canaryforge.monitor.projection import LedgerProjection
from canaryforge.monitor.renderer import RunRenderer

console = Console()

_LEDGER_OPTION_HELP = "Path to the ledger SQLite database.  Defaults to CANARYFORGE_LEDGER_PATH."


def _open_ledger(ctx: typer.Context, ledger_db: Path | None) -> ReleaseLedger:
    settings: ForgeSettings = ctx.obj or ForgeSettings()
    db_path = Path(ledger_db) if ledger_db else settings.ledger_path
    if not db_path.exists():
        console.print(f"[bold red]Ledger not found:[/bold red] {db_path}")
        console.print("[dim]Run a release first with: canaryforge run[/dim]")
        raise typer.Exit(code=1)
    return ReleaseLedger(db_path)


def history_cmd(
    ctx: typer.Context,
    component: str = typer.Option(None, "--component", "-C", help="Only this component."),
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Maximum records to show."),
    ledger_db: Path = typer.Option(None, "--ledger", "-l", help=_LEDGER_OPTION_HELP),
) -> None:
    """Show recorded promotions, newest first."""
    ledger = _open_ledger(ctx, ledger_db)
    records = ledger.get_promotions(component=component, limit=limit)
    RunRenderer(console=console).print_history(records)


def status_cmd(
    ctx: typer.Context,
    build_id: int = typer.Argument(..., help="Build number to show."),
    ledger_db: Path = typer.Option(None, "--ledger", "-l", help=_LEDGER_OPTION_HELP),
) -> None:
    """Show every recorded state transition of one build."""
    ledger = _open_ledger(ctx, ledger_db)
    timeline = LedgerProjection(ledger).timeline(build_id)
    if not timeline.steps:
        console.print(f"[bold red]Build not found:[/bold red] {build_id}")
        latest = ledger.latest_build_id()
        if latest is not None:
            console.print(f"[dim]Latest recorded build: {latest}[/dim]")
        raise typer.Exit(code=1)
    RunRenderer(console=console).print_timeline(timeline)


def verify_ledger_cmd(
    ctx: typer.Context,
    build_id: int = typer.Argument(..., help="Build number whose chain to verify."),
    ledger_db: Path = typer.Option(None, "--ledger", "-l", help=_LEDGER_OPTION_HELP),
) -> None:
    """Verify the hash chain of one build's ledger entries."""
    ledger = _open_ledger(ctx, ledger_db)
    renderer = RunRenderer(console=console)
    if not ledger.get_build_entries(build_id):
        console.print(f"[bold red]Build not found:[/bold red] {build_id}")
        raise typer.Exit(code=1)
    try:
        valid = ledger.verify_chain(build_id)
    except LedgerIntegrityError as exc:
        renderer.print_chain_verification(build_id, False, str(exc))
        raise typer.Exit(code=1)
    renderer.print_chain_verification(build_id, valid)
