"""
Console entry point for ``figma-imgs``.

Errors that escape a command are turned into a panel and exit code 1;
cancelling a sync with Ctrl+C exits with code 0.
"""

import asyncio
import logging
import sys

import typer
from rich.console import Console

from figma_imgs.cli.app import app
from figma_imgs.cli.formatters import format_error_with_suggestions
from figma_imgs.exceptions import FigmaImgsError

log = logging.getLogger("figma_imgs")


def _use_utf8_streams() -> None:
    # Image names and the summary panel contain non-ASCII characters
    for stream in (sys.stdout, sys.stderr):
        reconfigure = getattr(stream, "reconfigure", None)
        if reconfigure is not None:
            reconfigure(encoding="utf-8")


def main() -> None:
    _use_utf8_streams()
    console = Console(stderr=True)

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]Sync interrupted, the manifest was not updated.[/yellow]")
        sys.exit(0)
    except FigmaImgsError as e:
        console.print(format_error_with_suggestions(e))
        sys.exit(1)
    except Exception as e:
        console.print(format_error_with_suggestions(e, {"type": type(e).__name__}))
        log.debug("Unhandled error", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
