"""
viewc CLI Package.

- commands.py: compile, contract, check, slow-render, build and stacks
- utils.py: Shared utilities
"""

import sys

import typer

from viewc._version import get_version
from viewc.cli.commands import (
    build_command,
    check_command,
    compile_command,
    contract_command,
    slow_render_command,
    stacks_command,
)
from viewc.cli.utils import configure_logging, version_callback

__version__ = get_version()

app = typer.Typer(
    help="""viewc – template and contract compiler

Command Types:
  • Files: compile, contract, check, slow-render
    → Operate on the files given as arguments

  • Project: build
    → Operates in CURRENT directory (reads viewc.toml)
""",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and environment information",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """viewc CLI main callback for global options."""
    configure_logging(verbose)


app.command(name="compile")(compile_command)
app.command(name="contract")(contract_command)
app.command(name="check")(check_command)
app.command(name="slow-render")(slow_render_command)
app.command(name="build")(build_command)
app.command(name="stacks")(stacks_command)


def main(argv: list[str] | None = None) -> None:
    app(args=argv, standalone_mode=True)


__all__ = ["__version__", "app", "main"]


if __name__ == "__main__":
    main(sys.argv[1:])
