"""Rich terminal renderer for run reports, build timelines and history.

Color scheme
------------
- green     : DONE / gate pass
- cyan      : SKIPPED
- red       : FAILED / hard gate failure
- yellow    : report-only gate failure
"""

from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from canaryforge.models.gates import GateReport, GateStatus
from canaryforge.models.release import PromotionRecord
from canaryforge.models.reports import RunReport
from canaryforge.models.runs import PipelineState
from canaryforge.monitor.projection import BuildTimeline

# ---------------------------------------------------------------------------
# State -> Rich style mapping
# ---------------------------------------------------------------------------

_STATE_STYLES: dict[PipelineState, str] = {
    PipelineState.DONE: "bold green",
    PipelineState.SKIPPED: "bold cyan",
    PipelineState.FAILED: "bold red",
}

_GATE_ICONS: dict[GateStatus, str] = {
    GateStatus.PASS: "[green]PASS[/green]",
    GateStatus.FAIL: "[bold red]FAIL[/bold red]",
    GateStatus.ERROR: "[bold red]ERROR[/bold red]",
}


def _state_markup(state: PipelineState | None) -> str:
    if state is None:
        return "[dim]unknown[/dim]"
    style = _STATE_STYLES.get(state, "yellow")
    return f"[{style}]{state.value.upper()}[/{style}]"


class RunRenderer:
    """Renders canaryforge results as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Run report
    # ------------------------------------------------------------------

    def render_report(self, report: RunReport) -> Panel:
        """Summary panel for one finished run."""
        lines: list[str] = [
            f"[bold]Build:[/bold]   #{report.build_id}  ({report.commit_sha[:12]})",
            f"[bold]Started:[/bold] {report.build.started_at:%Y-%m-%d %H:%M:%S} UTC",
            f"[bold]Outcome:[/bold] {_state_markup(report.final_state)}",
        ]
        if report.classification:
            lines.append(
                f"[bold]Changes:[/bold] {len(report.changed_paths)} path(s), "
                f"{report.classification}"
            )
        for component, image in report.images.items():
            lines.append(f"[bold]Image:[/bold]   {component} -> {image}")
        if report.commit_outcome:
            lines.append(f"[bold]Commit:[/bold]  {report.commit_outcome}")
        if report.error:
            lines.append(f"[red][bold]Error:[/bold] {report.failed_stage}: {report.error}[/red]")

        parts: list = [Text.from_markup("\n".join(lines))]
        if report.gate_report is not None and report.gate_report.results:
            parts += [Text(""), self.render_gates(report.gate_report)]
        if report.promotions:
            parts += [Text(""), self.render_history(report.promotions, title="Promotions")]

        border = _STATE_STYLES.get(report.final_state, "blue").split()[-1]
        return Panel(
            Group(*parts),
            title="[bold]canaryforge run[/bold]",
            border_style=border,
            padding=(1, 2),
        )

    def render_gates(self, gate_report: GateReport) -> Table:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Gate", min_width=20)
        table.add_column("Policy", justify="center", width=8)
        table.add_column("Result", justify="center", width=8)
        table.add_column("Detail")
        for result in gate_report.results:
            status = _GATE_ICONS.get(result.status, result.status.value)
            if not result.passed and not result.hard:
                status = f"[yellow]{result.status.value.upper()}[/yellow]"
            table.add_row(
                result.gate_name,
                "hard" if result.hard else "[dim]report[/dim]",
                status,
                result.detail or "[dim]-[/dim]",
            )
        return table

    # ------------------------------------------------------------------
    # Ledger views
    # ------------------------------------------------------------------

    def render_history(
        self, records: Sequence[PromotionRecord], title: str = "Promotion history"
    ) -> Table:
        table = Table(title=title, show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Build", justify="right", width=7)
        table.add_column("Component", style="cyan")
        table.add_column("Previous stable", style="dim")
        table.add_column("New stable", style="green")
        table.add_column("New canary", style="yellow")
        table.add_column("When", style="dim")
        for record in records:
            table.add_row(
                str(record.build_id),
                record.component,
                str(record.previous_stable_image),
                str(record.new_stable_image),
                str(record.new_canary_image),
                record.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            )
        return table

    def render_timeline(self, timeline: BuildTimeline) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("#", style="dim", width=4, justify="right")
        table.add_column("Transition", min_width=28)
        table.add_column("Reason")
        table.add_column("At", style="dim", width=10)
        for i, step in enumerate(timeline.steps, start=1):
            table.add_row(
                str(i),
                f"{step.from_state.value} -> {_state_markup(step.to_state)}",
                step.reason or "[dim]-[/dim]",
                step.timestamp_utc.strftime("%H:%M:%S"),
            )

        chain = (
            "[green]valid[/green]" if timeline.chain_valid else "[bold red]BROKEN[/bold red]"
        )
        summary = (
            f"[bold]Build:[/bold] #{timeline.build_id}  |  "
            f"[bold]State:[/bold] {_state_markup(timeline.final_state)}  |  "
            f"[bold]Chain:[/bold] {chain}"
        )
        return Panel(
            Group(table, Text(""), Text.from_markup(summary)),
            title="[bold]Build timeline[/bold]",
            border_style="blue",
            padding=(1, 2),
        )

    # ------------------------------------------------------------------
    # Standalone print
    # ------------------------------------------------------------------

    def print_report(self, report: RunReport) -> None:
        self.console.print(self.render_report(report))

    def print_timeline(self, timeline: BuildTimeline) -> None:
        self.console.print(self.render_timeline(timeline))

    def print_history(self, records: Sequence[PromotionRecord]) -> None:
        if not records:
            self.console.print("[dim]No promotions recorded.[/dim]")
            return
        self.console.print(self.render_history(records))

    def print_chain_verification(self, build_id: int, valid: bool, error: str = "") -> None:
        """Print a chain verification result."""
        if valid:
            self.console.print(f"[green]Hash chain for build {build_id} is valid.[/green]")
        else:
            self.console.print(
                f"[bold red]Hash chain for build {build_id} is BROKEN![/bold red] {error}"
            )
