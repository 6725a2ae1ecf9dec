"""
Compile commands: compile, contract, check, slow-render, build and stacks.

Every command prints validations to stderr and exits with code 1 when any
file produced a validation or failed to compile.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from rich.table import Table

from viewc.cli.utils import console, print_error, print_validations, print_written
from viewc.core.compiler import (
    CONTRACT_SUFFIX,
    TEMPLATE_SUFFIX,
    CompiledOutput,
    build_project,
    compile_contract_file,
    compile_template_file,
    discover_sources,
    slow_render_file,
    write_outputs,
)
from viewc.core.contract_loader import FileContractResolver
from viewc.core.environment import is_production
from viewc.core.errors import ParseError, ValidationError, ViewcError
from viewc.core.manifest import MANIFEST_FILENAME, ProjectManifest, load_manifest
from viewc.core.template_ir import RuntimeMode
from viewc.stacks import get_registry, get_stack

ALL_TARGETS = ["element", "bridge", "sandbox-root", "react"]


def _targets(target: str, definitions: bool) -> list[str]:
    targets = list(ALL_TARGETS) if target == "all" else [target]
    for name in targets:
        # raises BackendError for unknown names
        get_stack(name)
    if definitions and "definition" not in targets:
        targets.append("definition")
    return targets


def _report(outputs: list[CompiledOutput], out_dir: Path) -> bool:
    """Write outputs, print their validations; return True when all were clean."""
    clean = True
    for output in outputs:
        if print_validations(str(output.relative_path), output.validations):
            clean = False
        if output.content is None:
            print_error(f"{output.relative_path} was not generated")
            clean = False
    for path in write_outputs(outputs, out_dir):
        print_written(path)
    return clean


def _load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON in {path}: {e}") from e


# =============================================================================
# Commands
# =============================================================================


def compile_command(
    files: list[Path] = typer.Argument(..., help="Templates (.jay-html) to compile"),  # noqa: B008
    target: str = typer.Option(
        "element",
        "--target",
        "-t",
        help="element | bridge | sandbox-root | react | all",
    ),
    out: Path | None = typer.Option(  # noqa: B008
        None, "--out", "-o", help="Output directory (default: next to each template)"
    ),
    definitions: bool = typer.Option(
        False, "--definitions", "-d", help="Also emit the .jay-html.d.ts definition"
    ),
    mode: RuntimeMode = typer.Option(  # noqa: B008
        RuntimeMode.MAIN_TRUSTED, "--mode", help="Runtime mode of the element target"
    ),
    strict: bool | None = typer.Option(
        None,
        "--strict/--no-strict",
        help="Stop at the first validation (default: on when VIEWC_ENV=production)",
    ),
) -> None:
    """
    Compile templates into render modules.
    """
    if strict is None:
        strict = is_production()
    clean = True
    resolver = FileContractResolver()
    try:
        targets = _targets(target, definitions)
        for path in files:
            outputs = compile_template_file(path, targets, resolver, strict=strict, mode=mode)
            clean = _report(outputs, out or path.parent) and clean
    except ValidationError as e:
        print_validations(e.message, e.validations)
        print_error(e)
        raise typer.Exit(code=1) from e
    except ViewcError as e:
        print_error(e)
        raise typer.Exit(code=1) from e

    if not clean:
        raise typer.Exit(code=1)


def contract_command(
    files: list[Path] = typer.Argument(  # noqa: B008
        ..., help="Contracts (.jay-contract) to compile"
    ),
    out: Path | None = typer.Option(  # noqa: B008
        None, "--out", "-o", help="Output directory (default: next to each contract)"
    ),
) -> None:
    """
    Generate the .jay-contract.d.ts declaration module of contracts.
    """
    clean = True
    resolver = FileContractResolver()
    try:
        for path in files:
            output = compile_contract_file(path, resolver)
            clean = _report([output], out or path.parent) and clean
    except ViewcError as e:
        print_error(e)
        raise typer.Exit(code=1) from e

    if not clean:
        raise typer.Exit(code=1)


def check_command(
    files: list[Path] = typer.Argument(..., help="Templates and contracts to check"),  # noqa: B008
) -> None:
    """
    Report validations without writing any output.
    """
    problems = 0
    resolver = FileContractResolver()
    for path in files:
        try:
            if path.name.endswith(CONTRACT_SUFFIX):
                outputs = [compile_contract_file(path, resolver)]
            else:
                outputs = compile_template_file(path, ["element"], resolver)
        except ViewcError as e:
            problems += print_validations(str(path), [str(e)])
            continue
        for output in outputs:
            problems += print_validations(str(path), output.validations)
            if output.content is None and not output.validations:
                problems += print_validations(str(path), ["no output was generated"])

    if problems:
        print_error(f"{problems} problem(s) found", label="Failed")
        raise typer.Exit(code=1)
    console.print(f"[green]✓ {len(files)} file(s) checked[/green]")


def slow_render_command(
    template: Path = typer.Argument(..., help="Template (.jay-html) to pre-render"),  # noqa: B008
    data: Path = typer.Option(  # noqa: B008
        ..., "--data", help="JSON file holding the slow view state"
    ),
    out: Path | None = typer.Option(  # noqa: B008
        None, "--out", "-o", help="Output file (default: stdout)"
    ),
) -> None:
    """
    Pre-render the slow phase of a template.

    The contract is the one named by the template's jay-data script.
    """
    try:
        result = slow_render_file(template, _load_json(data))
    except ViewcError as e:
        print_error(e)
        raise typer.Exit(code=1) from e

    print_validations(str(template), result.validations)
    if result.val is not None:
        if out is None:
            typer.echo(result.val, nl=False)
        else:
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_text(result.val, encoding="utf-8")
            print_written(out)
    if result.val is None or result.validations:
        raise typer.Exit(code=1)


def build_command(
    manifest: str = typer.Option(
        MANIFEST_FILENAME, "--manifest", "-m", help=f"Path to {MANIFEST_FILENAME}"
    ),
) -> None:
    """
    Compile every template and contract of the project.

    Operates in CURRENT directory (reads viewc.toml when present).
    """
    manifest_path = Path(manifest).resolve()
    root = manifest_path.parent

    try:
        mf = load_manifest(manifest_path)
        result = build_project(root, mf)
        clean = _report(result.outputs, root / mf.compile.out_dir)
        if mf.slow_render.enabled:
            clean = _slow_render_project(root, mf) and clean
    except ParseError as e:
        print_error(e, label="Parse error")
        raise typer.Exit(code=1) from e
    except ViewcError as e:
        print_error(e)
        raise typer.Exit(code=1) from e

    if not clean:
        raise typer.Exit(code=1)


def _slow_render_project(root: Path, manifest: ProjectManifest) -> bool:
    """Pre-render every template that has a ``{name}.json`` in the data folder."""
    config = manifest.slow_render
    if config.data_dir is None:
        print_error("slow_render.data_dir must be set to pre-render templates")
        return False

    clean = True
    data_dir = root / config.data_dir
    templates, _ = discover_sources(root, manifest)
    for template in templates:
        name = template.name.removesuffix(TEMPLATE_SUFFIX)
        data_file = data_dir / f"{name}.json"
        if not data_file.exists():
            continue
        result = slow_render_file(template, _load_json(data_file))
        if print_validations(str(template), result.validations) or result.val is None:
            clean = False
        if result.val is not None:
            target = root / config.out_dir / template.name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(result.val, encoding="utf-8")
            print_written(target)
    return clean


def stacks_command() -> None:
    """
    List the available code generation targets.
    """
    registry = get_registry()
    table = Table(title="Targets")
    table.add_column("Name", style="cyan")
    table.add_column("Output")
    table.add_column("Description")
    for name in registry.list_stacks():
        capabilities = registry.get(name).get_capabilities()
        table.add_row(name, capabilities.output_suffix, capabilities.description)
    console.print(table)
