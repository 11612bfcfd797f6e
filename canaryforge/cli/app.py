"""Main Typer application — imports and registers all CLI commands.

Entry point: ``canaryforge`` (configured via pyproject.toml scripts).

Commands: run, classify, history, status, verify-ledger.
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from canaryforge.cli.commands.classify import classify_cmd
from canaryforge.cli.commands.ledger import history_cmd, status_cmd, verify_ledger_cmd
from canaryforge.cli.commands.run import run_cmd
from canaryforge.config import ForgeSettings

app = typer.Typer(
    name="canaryforge",
    help="canaryforge: gated container builds with canary/stable GitOps promotion.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="run", help="Execute one release run.")(run_cmd)
app.command(name="classify", help="Decide SKIP/PROCEED for a revision range.")(classify_cmd)
app.command(name="history", help="Show promotion history from the ledger.")(history_cmd)
app.command(name="status", help="Show the recorded timeline of a build.")(status_cmd)
app.command(name="verify-ledger", help="Verify a build's ledger hash chain.")(verify_ledger_cmd)


def configure_logging(level: str) -> None:
    """Route stdlib logging through Rich, once per process."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    """Load settings from the environment and configure logging."""
    settings = ForgeSettings()
    configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj = settings


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
