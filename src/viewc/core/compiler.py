"""Compile pipeline.

Single implementation of the parse → walk → generate pipeline for templates
and the parse → resolve → render pipeline for contracts. The CLI and the
project build both go through here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from viewc.core.contract_loader import ContractResolver, FileContractResolver
from viewc.core.contract_types import compile_contract
from viewc.core.errors import ValidationError
from viewc.core.html_tree import parse_html
from viewc.core.manifest import ProjectManifest
from viewc.core.slow_render import HeadlessContractInfo, slow_render_transform
from viewc.core.template_ir import RuntimeMode, build_template_ir
from viewc.core.template_parser import (
    JAY_DATA,
    JAY_HEADLESS,
    parse_headless_imports,
    parse_jay_file,
)
from viewc.core.validations import WithValidations
from viewc.stacks import get_stack

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".jay-html"
CONTRACT_SUFFIX = ".jay-contract"

# The element and bridge modules share a file name; bridges go to their own folder
TARGET_SUBDIRS = {"bridge": "sandbox"}


@dataclass
class CompiledOutput:
    """One generated module, relative to the output directory."""

    target: str
    relative_path: Path
    content: str | None
    validations: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.content is not None and not self.validations


@dataclass
class BuildResult:
    outputs: list[CompiledOutput] = field(default_factory=list)

    @property
    def validations(self) -> list[str]:
        return [
            f"{output.relative_path}: {message}"
            for output in self.outputs
            for message in output.validations
        ]

    @property
    def ok(self) -> bool:
        return all(output.ok for output in self.outputs)


# =============================================================================
# Templates
# =============================================================================


def compile_template(
    source: str,
    filename: str,
    target: str = "element",
    file_path: Path | None = None,
    resolver: ContractResolver | None = None,
    **options: Any,
) -> WithValidations[str | None]:
    """
    Compile template text into the module of one target.

    Args:
        source: Template text
        filename: Template file name
        target: Registered stack name
        file_path: Template location, for relative imports and contracts
        resolver: Loads contracts and imported module exports
        **options: Passed to the stack (``mode`` for the element target)

    Returns:
        The generated module, or ``None`` when the template could not be
        parsed or walked. Validations are attached either way.

    Raises:
        BackendError: If ``target`` is not a registered stack
        ViewcError: On malformed YAML, expressions or recursion markers
    """
    stack = get_stack(target)
    parsed = parse_jay_file(source, filename, file_path, resolver)
    if parsed.val is None:
        return WithValidations(None, parsed.validations)

    walked = build_template_ir(parsed.val)
    if walked.val is None:
        return WithValidations(None, parsed.validations + walked.validations)

    generated = stack.generate(walked.val, **options)
    logger.debug("Compiled %s for target %s", filename, target)
    return WithValidations(generated.val, parsed.validations + generated.validations)


def output_path_for(target: str, filename: str) -> Path:
    """Relative output path of ``filename`` compiled for ``target``."""
    stack = get_stack(target)
    suffix = stack.get_capabilities().output_suffix
    name = filename.removesuffix(TEMPLATE_SUFFIX).removesuffix(".html")
    subdir = TARGET_SUBDIRS.get(target)
    relative = Path(f"{name}{suffix}")
    return Path(subdir) / relative if subdir else relative


def compile_template_file(
    path: Path,
    targets: list[str],
    resolver: ContractResolver | None = None,
    strict: bool = False,
    **options: Any,
) -> list[CompiledOutput]:
    """
    Compile one template file for every target in ``targets``.

    Raises:
        ValidationError: In ``strict`` mode, when a target reports validations
    """
    resolver = resolver or FileContractResolver()
    source = Path(path).read_text(encoding="utf-8")
    outputs = []
    for target in targets:
        result = compile_template(source, path.name, target, path, resolver, **options)
        if strict and result.validations:
            raise ValidationError(
                f"{path.name} has {len(result.validations)} validation(s) for target {target}",
                list(result.validations),
            )
        outputs.append(
            CompiledOutput(
                target=target,
                relative_path=output_path_for(target, path.name),
                content=result.val,
                validations=result.validations,
            )
        )
    return outputs


# =============================================================================
# Contracts
# =============================================================================


def compile_contract_file(
    path: Path, resolver: ContractResolver | None = None
) -> CompiledOutput:
    """Render the ``.jay-contract.d.ts`` declaration module of a contract file."""
    resolver = resolver or FileContractResolver()
    path = Path(path)
    relative_path = Path(f"{path.name}.d.ts")
    loaded = resolver.load_contract(path.resolve())
    if loaded.val is None:
        return CompiledOutput("contract", relative_path, None, loaded.validations)
    # load_contract has already attached the linked contracts
    compiled = compile_contract(loaded.val)
    return CompiledOutput(
        "contract", relative_path, compiled.val, loaded.validations + compiled.validations
    )


# =============================================================================
# Projects
# =============================================================================


def discover_sources(root: Path, manifest: ProjectManifest) -> tuple[list[Path], list[Path]]:
    """Templates and contracts under the manifest's source directories."""
    templates: set[Path] = set()
    contracts: set[Path] = set()
    for rel in manifest.compile.source_dirs:
        base = (root / rel).resolve()
        if not base.exists():
            logger.warning("Source directory %s does not exist", base)
            continue
        templates.update(base.rglob(f"*{TEMPLATE_SUFFIX}"))
        contracts.update(base.rglob(f"*{CONTRACT_SUFFIX}"))
    return sorted(templates), sorted(contracts)


def build_project(root: Path, manifest: ProjectManifest) -> BuildResult:
    """
    Compile every template and contract of a project.

    Outputs keep the folder structure of their source directory. Nothing is
    written here; see ``write_outputs``.
    """
    resolver = FileContractResolver()
    templates, contracts = discover_sources(root, manifest)
    targets = list(manifest.compile.targets)
    if manifest.compile.definitions and "definition" not in targets:
        targets.append("definition")
    mode = RuntimeMode(manifest.compile.mode)

    result = BuildResult()
    for template in templates:
        base = _source_base(root, manifest, template)
        outputs = compile_template_file(template, targets, resolver, mode=mode)
        for output in outputs:
            output.relative_path = _nest(output.relative_path, template.parent, base)
            result.outputs.append(output)
    for contract in contracts:
        base = _source_base(root, manifest, contract)
        output = compile_contract_file(contract, resolver)
        output.relative_path = _nest(output.relative_path, contract.parent, base)
        result.outputs.append(output)

    logger.info(
        "Built %s templates and %s contracts into %s outputs",
        len(templates),
        len(contracts),
        len(result.outputs),
    )
    return result


def _source_base(root: Path, manifest: ProjectManifest, path: Path) -> Path:
    for rel in manifest.compile.source_dirs:
        base = (root / rel).resolve()
        if path.is_relative_to(base):
            return base
    return path.parent


def _nest(relative_path: Path, source_dir: Path, base: Path) -> Path:
    """Place ``relative_path`` under the source's folder relative to ``base``."""
    folder = source_dir.relative_to(base)
    if relative_path.parent != Path("."):
        return relative_path.parent / folder / relative_path.name
    return folder / relative_path


def write_outputs(outputs: list[CompiledOutput], out_dir: Path) -> list[Path]:
    """Write the outputs that have content; return the written paths."""
    written = []
    for output in outputs:
        if output.content is None:
            continue
        target = out_dir / output.relative_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(output.content, encoding="utf-8")
        written.append(target)
    return written


# =============================================================================
# Slow render
# =============================================================================


def slow_render_file(
    path: Path,
    slow_view_state: dict[str, Any],
    resolver: ContractResolver | None = None,
) -> WithValidations[str | None]:
    """
    Pre-render a template file with its slow view state.

    The page contract comes from the template's jay-data script and the
    headless contracts from its jay-headless scripts.
    """
    resolver = resolver or FileContractResolver()
    path = Path(path)
    source = path.read_text(encoding="utf-8")
    root = parse_html(source)
    validations: list[str] = []

    contract = None
    data_scripts = [el for el in root.iter() if el.get_attr("type") == JAY_DATA]
    contract_link = data_scripts[0].get_attr("contract") if data_scripts else None
    if contract_link:
        loaded = resolver.load_contract(resolver.resolve_link(path, contract_link))
        validations.extend(loaded.validations)
        contract = loaded.val

    headless_scripts = [el for el in root.iter() if el.get_attr("type") == JAY_HEADLESS]
    headless = parse_headless_imports(headless_scripts, path, resolver)
    validations.extend(headless.validations)
    headless_contracts = [HeadlessContractInfo(h.key, h.contract) for h in headless.val]

    rendered = slow_render_transform(source, slow_view_state, contract, headless_contracts)
    return WithValidations(rendered.val, (*validations, *rendered.validations))
