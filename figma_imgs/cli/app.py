"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from figma_imgs import __version__
from figma_imgs.api.client import FigmaAPIClient
from figma_imgs.core.sync_manager import ImageSyncManager
from figma_imgs.exceptions import AuthorizationError, FigmaImgsError
from figma_imgs.media.downloader import AssetFetcher, create_download_session
from figma_imgs.models.config import SyncConfig
from figma_imgs.storage.config_manager import ConfigManager
from figma_imgs.storage.manifest import ManifestStore

from .formatters import (
    format_error_with_suggestions,
    print_change_report,
    print_config,
    print_failed_assets,
    print_summary_panel,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="WARNING",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("figma_imgs")
log.setLevel("INFO")

app = typer.Typer(
    name="figma-imgs",
    help=(
        "Download the images of a Figma frame, skipping the ones already saved."
        " Use 'figma-imgs <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "figma-imgs"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the saved configuration."
    ),
):
    """Figma Images Downloader CLI"""
    if version:
        console.print(f"[bold]figma-imgs[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    if verbose >= 2:
        log.setLevel("DEBUG")

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[yellow]No config file yet.[/] Run [cyan]figma-imgs init <TOKEN>"
                "[/cyan] to create one."
            )
            raise typer.Exit()
        print_config(CONFIG_FILE, ConfigManager(CONFIG_FILE).get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    token: str = typer.Argument(..., help="Figma personal access token."),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing token without asking."
    ),
):
    """Save a Figma personal access token."""
    config_manager = ConfigManager(CONFIG_FILE)
    if (
        config_manager.get_token()
        and not force
        and not typer.confirm("A token is already saved. Overwrite it?")
    ):
        raise typer.Abort()
    config_manager.save_token(token)
    console.print(f"[bold green]✓ Token saved to '{CONFIG_FILE}'[/bold green]")


@app.command()
def logout():
    """Remove the saved Figma token."""
    if ConfigManager(CONFIG_FILE).clear_token():
        console.print("[green]✓ Token removed.[/green]")
    else:
        console.print("[dim]No token was saved.[/dim]")


def _ensure_token(config_manager: ConfigManager) -> str:
    """Returns the saved token, prompting for one (and saving it) if missing."""
    token = config_manager.get_token()
    if token:
        return token
    token = typer.prompt("Please enter your Figma token", hide_input=True).strip()
    if not token:
        console.print("[red]✗ A token is required.[/red]")
        raise typer.Exit(code=1)
    config_manager.save_token(token)
    return token


def _load_config(config_manager: ConfigManager, cli_options: dict) -> SyncConfig:
    try:
        return config_manager.load_config(cli_options)
    except FigmaImgsError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e


def _run_session(config_manager: ConfigManager, config: SyncConfig, operation):
    """
    Runs ``operation(manager)`` inside an API client, download session and
    progress display, mapping fatal errors to exit code 1.
    """
    token = _ensure_token(config_manager)

    async def _run():
        async with (
            ProgressManager(console=console, dry_run=config.dry_run) as progress,
            FigmaAPIClient(token) as api_client,
        ):
            session = create_download_session(config.concurrency)
            try:
                manager = ImageSyncManager(
                    config, api_client, AssetFetcher(session), progress
                )
                return await operation(manager)
            finally:
                await session.close()

    try:
        return asyncio.run(_run())
    except AuthorizationError as e:
        config_manager.clear_token()
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    except FigmaImgsError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e


def _collect_options(**options) -> dict:
    return {key: value for key, value in options.items() if value is not None}


FORMAT_OPTION = typer.Option(
    None, "-f", "--format", help="Image format: png, jpg, svg or pdf (default png)."
)
SCALE_OPTION = typer.Option(
    None, "-s", "--scale", help="Raster scale factor between 0.01 and 4 (default 1)."
)
TYPES_OPTION = typer.Option(
    None,
    "-t",
    "--type",
    help="Node type to export; repeat for several (default FRAME and COMPONENT).",
)
CONCURRENCY_OPTION = typer.Option(
    None, "-c", "--concurrency", help="Number of simultaneous downloads (default 5)."
)
SAVE_DIR_OPTION = typer.Option(
    None, "-o", "--save-dir", help="Output directory (default ./imgs)."
)


@app.command(name="download")
def download_command(
    url: str = typer.Argument(..., help="Figma URL of the frame to export."),
    image_format: str | None = FORMAT_OPTION,
    scale: float | None = SCALE_OPTION,
    node_types: list[str] | None = TYPES_OPTION,
    concurrency: int | None = CONCURRENCY_OPTION,
    save_dir: Path | None = SAVE_DIR_OPTION,
    dry_run: bool = typer.Option(
        False, "--dry-run", help="List what would be downloaded without writing files."
    ),
):
    """Download the images of a Figma node into the save directory."""
    config_manager = ConfigManager(CONFIG_FILE)
    config = _load_config(
        config_manager,
        _collect_options(
            format=image_format,
            scale=scale,
            figma_img_types=node_types or None,
            concurrency=concurrency,
            save_dir=save_dir,
            dry_run=dry_run,
        ),
    )

    if config.dry_run:
        console.print("[bold cyan]🔍 Starting dry run...[/bold cyan]")
    start_time = time.monotonic()

    async def _sync(manager: ImageSyncManager):
        return await manager.sync(url)

    report = _run_session(config_manager, config, _sync)
    duration = time.monotonic() - start_time

    print_summary_panel(report, duration)
    print_failed_assets(report.failed)


@app.command()
def check(
    url: str = typer.Argument(..., help="Figma URL of the frame to compare."),
    image_format: str | None = FORMAT_OPTION,
    scale: float | None = SCALE_OPTION,
    node_types: list[str] | None = TYPES_OPTION,
    save_dir: Path | None = SAVE_DIR_OPTION,
):
    """Compare saved images with Figma by ETag, without downloading."""
    config_manager = ConfigManager(CONFIG_FILE)
    config = _load_config(
        config_manager,
        _collect_options(
            format=image_format,
            scale=scale,
            figma_img_types=node_types or None,
            save_dir=save_dir,
        ),
    )

    async def _check(manager: ImageSyncManager):
        return await manager.check_for_changes(url)

    print_change_report(_run_session(config_manager, config, _check))


@app.command()
def invalidate(
    names: list[str] | None = typer.Argument(  # noqa: B008
        None, help="Names of the images to fetch again. All when omitted."
    ),
    save_dir: Path | None = SAVE_DIR_OPTION,
    force: bool = typer.Option(
        False, "--force", "-F", help="Bypass the confirmation prompt."
    ),
):
    """Mark saved images so the next download fetches them again."""
    config = _load_config(
        ConfigManager(CONFIG_FILE), _collect_options(save_dir=save_dir)
    )
    if not names and not force and not typer.confirm(
        f"Fetch every image in '{config.save_dir}' again on the next download?"
    ):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    store = ManifestStore(config.save_dir)
    changed = asyncio.run(store.invalidate(names or None))
    console.print(f"[green]✓ {changed} image(s) will be downloaded again.[/green]")
