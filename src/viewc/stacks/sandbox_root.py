"""
Sandbox root stack: the worker entry point of a sandboxed page.

The module registers the page's refs with an anonymous root manager, hands
the bridge skeleton to ``sandboxRoot`` and connects the worker port.
"""

from __future__ import annotations

import logging
from typing import Any

from viewc.core.declarations import render_view_state_declarations
from viewc.core.imports import ImportsFor, RuntimeImport
from viewc.core.refs import ReferenceManagerTarget, name_references, render_reference_managers
from viewc.core.template_ir import TemplateIR
from viewc.core.types import TypeKind
from viewc.core.validations import WithValidations
from viewc.stacks.base import (
    INDENT,
    Stack,
    StackCapabilities,
    join_blocks,
    render_import_links,
)
from viewc.stacks.bridge import BridgeRenderer
from viewc.stacks.element import render_children_list

logger = logging.getLogger(__name__)

CALL_INITIALIZE_WORKER = (
    "setWorkerPort(new JayPort(new HandshakeMessageJayChannel(self)));\ninitializeWorker();"
)


def generate_sandbox_root_file(ir: TemplateIR) -> WithValidations[str]:
    """Render the worker entry module for a page whose components are sandboxed."""
    names = name_references(ir.refs, root_name="")
    renderer = BridgeRenderer(ir, names)
    body_indent = INDENT * 2
    managers, manager_imports = render_reference_managers(
        ir.refs, ReferenceManagerTarget.SANDBOX_ROOT, names, body_indent
    )
    root = render_children_list(renderer.nodes(ir.root, body_indent), body_indent)
    initialize_worker = "\n".join(
        [
            "export function initializeWorker() {",
            f"{INDENT}sandboxRoot(() => {{",
            managers,
            f"{body_indent}return {root};",
            f"{INDENT}}});",
            "}",
        ]
    )
    imports = (
        renderer.imports.plus(manager_imports)
        .plus(RuntimeImport.SANDBOX_ROOT)
        .plus(RuntimeImport.SANDBOX_CHILD_COMP)
        .plus(RuntimeImport.HANDSHAKE_MESSAGE_JAY_CHANNEL)
        .plus(RuntimeImport.JAY_PORT)
        .plus(RuntimeImport.SET_WORKER_PORT)
    )
    view_state = ir.view_state_type
    declarations = (
        render_view_state_declarations(view_state) if view_state.kind == TypeKind.OBJECT else ""
    )
    module = join_blocks(
        imports.render(ImportsFor.ELEMENT_SANDBOX),
        render_import_links(ir.file),
        declarations,
        initialize_worker,
        CALL_INITIALIZE_WORKER,
    )
    logger.debug("Rendered sandbox root for %s", ir.file.filename)
    return WithValidations(module, (*ir.validations, *renderer.validations))


class SandboxRootStack(Stack):
    def generate(self, ir: TemplateIR, **options: Any) -> WithValidations[str]:
        return generate_sandbox_root_file(ir)

    def get_capabilities(self) -> StackCapabilities:
        return StackCapabilities(
            name="sandbox-root",
            description="Worker entry point that mounts the sandboxed components of a page",
            output_suffix=".jay-html.sandbox-root.ts",
        )
