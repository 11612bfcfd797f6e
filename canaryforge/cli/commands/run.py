"""``canaryforge run`` — execute one release run for a commit.

Loads ``canaryforge.toml`` and the ``CANARYFORGE_*`` settings, wires the
production collaborators and drives the run to a terminal state.  The
process exit status is 0 for DONE or SKIPPED and 1 for FAILED.
"""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console

from canaryforge.config import ForgeSettings
from canaryforge.core.orchestrator import ReleasePipeline
from canaryforge.errors import ConfigError, ReleaseError
from canaryforge.gitops.git import GitRepository
from canaryforge.models.config import load_pipeline_config
from canaryforge.models.runs import BuildRun
from canaryforge.monitor.renderer import RunRenderer

console = Console()

EXIT_CONFIG_ERROR = 2


def run_cmd(
    ctx: typer.Context,
    build_id: int = typer.Option(
        ...,
        "--build-id",
        "-b",
        envvar="BUILD_NUMBER",
        min=1,
        help="Positive, increasing build number; used verbatim as the image tag.",
    ),
    commit: str = typer.Option(
        None,
        "--commit",
        "-c",
        envvar="GIT_COMMIT",
        help="Commit being released.  Defaults to HEAD of the source tree.",
    ),
    base: str = typer.Option(
        None,
        "--base",
        envvar="GIT_PREVIOUS_SUCCESSFUL_COMMIT",
        help="Previous released commit, for change classification.",
    ),
    config_file: Path = typer.Option(
        None,
        "--config",
        "-f",
        help="Pipeline file.  Defaults to CANARYFORGE_PIPELINE_FILE.",
    ),
) -> None:
    """Run the release pipeline: classify, gate, build, publish, promote, commit."""
    settings: ForgeSettings = ctx.obj or ForgeSettings()
    try:
        config = load_pipeline_config(config_file or settings.pipeline_file, settings)
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)

    if not commit:
        try:
            commit = GitRepository(config.source_root).head_sha()
        except ReleaseError as exc:
            console.print(f"[bold red]Cannot determine commit:[/bold red] {exc}")
            raise typer.Exit(code=EXIT_CONFIG_ERROR)

    try:
        build = BuildRun(id=build_id, commit_sha=commit, base_sha=base or None)
    except ValidationError as exc:
        console.print(f"[bold red]Invalid build:[/bold red] {exc}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)

    pipeline = ReleasePipeline.from_config(config, settings)
    report = pipeline.run(build)

    RunRenderer(console=console).print_report(report)
    raise typer.Exit(code=report.exit_code)
