"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from figma_imgs.core.freshness import ChangeReport
from figma_imgs.core.sync_manager import SyncReport
from figma_imgs.models.assets import AssetCandidate
from figma_imgs.utils.formatting import format_duration, format_rate, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "AuthorizationError": [
            "• The stored token was removed; you will be asked for a new one.",
            "• Create a personal access token under Settings → Security in Figma.",
            "• Make sure the token's account can view the design file.",
        ],
        "InvalidUrlError": [
            "• Copy the link from Figma with a frame selected.",
            "• The URL must contain '/file/<key>/' and a 'node-id' parameter.",
        ],
        "CandidateFetchError": [
            "• Check that the node id still exists in the file.",
            "• The Figma API might be temporarily unavailable.",
            "• Please try again in a few minutes.",
        ],
        "ConfigurationError": [
            "• Check the option values passed on the command line.",
            "• Run `figma-imgs --show-config` to inspect saved defaults.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration, hiding the access token."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if key == "token":
            value = "[hidden]" if value else "(not set)"
        content += f"{key} = {escape(str(value))}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def _asset_table(title: str, assets: list[AssetCandidate], style: str) -> Table:
    table = Table(title=title, box=box.SIMPLE, title_justify="left")
    table.add_column("Name", style=f"bold {style}")
    table.add_column("URL", style=style, overflow="fold")
    for asset in assets:
        table.add_row(escape(asset.name), escape(asset.url or "-"))
    return table


def print_failed_assets(failed: list[AssetCandidate]):
    """Lists assets that could not be downloaded, with URLs for manual recovery."""
    if not failed:
        return
    console = Console()
    console.print(
        "[bold white]Something failed. You can download these images manually "
        "from the URLs below:[/bold white]"
    )
    console.print(_asset_table("Failed Downloads", failed, "red"))


def print_summary_panel(report: SyncReport, duration_s: float):
    """Displays the final summary of a sync session."""
    console = Console()
    stats = report.stats

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    if stats.dry_run:
        stats_table.add_row(
            "→ Would download:", f"[bold cyan]{len(report.selected)}[/bold cyan]"
        )
    else:
        stats_table.add_row(
            "✓ Downloaded:", f"[bold green]{stats.downloaded}[/bold green]"
        )

    if stats.skipped > 0:
        stats_table.add_row("○ Skipped:", f"[yellow]{stats.skipped} (manifest)[/yellow]")

    if stats.unrendered > 0:
        stats_table.add_row(
            "⚠ Not Rendered:", f"[yellow]{stats.unrendered}[/yellow]"
        )

    if stats.failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.failed}[/bold red]")

    stats_table.add_row("", "")  # Spacer
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.bytes_written)}[/cyan]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    rate = format_rate(stats.downloaded, duration_s)
    if rate:
        stats_table.add_row("Throughput:", f"[cyan]{rate}[/cyan]")

    if stats.dry_run:
        title = "🔍 [bold]Dry Run Summary[/bold]"
        border_color = "yellow"
    elif stats.failed:
        title = "⚠ [bold]Done, With Failures[/bold]"
        border_color = "red"
    else:
        title = "🎉 [bold]Done![/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()


def print_change_report(changes: ChangeReport):
    """Displays the result of `figma-imgs check`."""
    console = Console()
    console.print(
        f"\n[bold]Up to date:[/] [green]{changes.up_to_date}[/green]   "
        f"[bold]Pending:[/] [cyan]{len(changes.pending)}[/cyan]   "
        f"[bold]Changed:[/] [yellow]{len(changes.changed)}[/yellow]\n"
    )
    if changes.pending:
        console.print(_asset_table("Not Downloaded Yet", changes.pending, "cyan"))
    if changes.changed:
        console.print(_asset_table("Changed in Figma", changes.changed, "yellow"))
        console.print(
            "[dim]Run [cyan]figma-imgs invalidate <NAME>...[/cyan] to fetch them "
            "again on the next download.[/dim]"
        )
    if changes.probe_failed:
        console.print(_asset_table("Could Not Check", changes.probe_failed, "red"))
    if changes.unrendered:
        console.print(_asset_table("Not Rendered by Figma", changes.unrendered, "red"))
