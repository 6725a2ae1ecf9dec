"""
viewc CLI utilities.

Shared helpers for the command modules: version display, logging setup and
printing of compile validations.
"""

import logging
import platform
from collections.abc import Iterable

import typer
from rich.console import Console
from rich.text import Text

from viewc._version import get_version
from viewc.core.environment import get_log_level, get_viewc_env

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Display version and environment information."""
    if value:
        typer.echo(f"viewc {get_version()}")
        typer.echo(f"Python {platform.python_version()} ({platform.python_implementation()})")
        typer.echo(f"Environment: {get_viewc_env()}")
        raise typer.Exit()


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=get_log_level(verbose),
        format="%(levelname)s %(name)s: %(message)s",
    )


def print_validations(source: str, validations: Iterable[str]) -> int:
    """Print one line per validation to stderr; return how many were printed."""
    count = 0
    for message in validations:
        line = Text(f"{source}: ", style="bold red")
        line.append(message)
        err_console.print(line, soft_wrap=True)
        count += 1
    return count


def print_written(path: object) -> None:
    console.print(Text(f"✓ {path}", style="green"), soft_wrap=True)


def print_error(message: object, label: str = "Error") -> None:
    line = Text(f"{label}: ", style="bold red")
    line.append(str(message))
    err_console.print(line, soft_wrap=True)
