"""``canaryforge classify BASE [HEAD]`` — would this range trigger a release?"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from canaryforge.config import ForgeSettings
from canaryforge.core.classifier import Classification, classify_revisions
from canaryforge.errors import ConfigError
from canaryforge.gitops.git import GitRepository
from canaryforge.models.config import load_pipeline_config

console = Console()


def classify_cmd(
    ctx: typer.Context,
    base: str = typer.Argument(..., help="Previous released revision."),
    head: str = typer.Argument("HEAD", help="Revision being considered."),
    config_file: Path = typer.Option(
        None,
        "--config",
        "-f",
        help="Pipeline file.  Defaults to CANARYFORGE_PIPELINE_FILE.",
    ),
) -> None:
    """Print SKIP or PROCEED for the changes between BASE and HEAD."""
    settings: ForgeSettings = ctx.obj or ForgeSettings()
    try:
        config = load_pipeline_config(config_file or settings.pipeline_file, settings)
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=2)

    decision, paths = classify_revisions(
        GitRepository(config.source_root), base, head, config.exclusion_patterns
    )

    for path in sorted(paths):
        console.print(f"  [dim]{path}[/dim]")
    if decision == Classification.SKIP:
        console.print("[bold cyan]SKIP[/bold cyan]: only excluded paths changed")
    else:
        console.print("[bold green]PROCEED[/bold green]")
