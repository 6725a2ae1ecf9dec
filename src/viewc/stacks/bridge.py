"""
Element bridge stack: the sandbox side of a secure component.

The bridge module runs in the worker. It keeps only what the main window
needs to route events and updates: elements holding a ref, loops and child
components. Conditions, async branches and plain markup render nothing.
"""

from __future__ import annotations

import logging
from typing import Any

from viewc.core.expression_lang import quote_single
from viewc.core.imports import Imports, ImportsFor, RuntimeImport
from viewc.core.refs import ReferenceManagerTarget, ReferenceNames, render_reference_managers
from viewc.core.template_ir import (
    AsyncNode,
    ComponentNode,
    ConditionalNode,
    ElementNode,
    ForEachNode,
    IRNode,
    RecurseNode,
    TemplateIR,
    TextNode,
    WithDataNode,
)
from viewc.core.validations import WithValidations
from viewc.stacks.base import (
    INDENT,
    Stack,
    StackCapabilities,
    join_blocks,
    names_for,
    render_import_links,
    render_type_blocks,
    scope_param,
)
from viewc.stacks.element import render_children_list, render_component_props

logger = logging.getLogger(__name__)


class BridgeRenderer:
    """
    Renders the ref-bearing skeleton of a template.

    A recursive region is expanded once, at its anchor; the nested recursion
    levels reuse the anchor's refs, so the marker inside renders nothing.
    """

    def __init__(self, ir: TemplateIR, names: ReferenceNames) -> None:
        self.ir = ir
        self.names = names
        self.imports = Imports.none()
        self.validations: list[str] = []
        self._regions = {region.ref_name: region for region in ir.regions}
        self._expanding: set[str] = set()

    def nodes(self, node: IRNode, indent: str) -> list[str]:
        match node:
            case TextNode():
                return []
            case ElementNode():
                return self.element(node, indent)
            case ConditionalNode() | AsyncNode() | WithDataNode():
                return self.nodes(node.child, indent)
            case ForEachNode():
                return [self.for_each(node, indent)]
            case ComponentNode():
                return [self.component(node)]
            case RecurseNode():
                return self.recurse(node, indent)
        raise TypeError(f"Unsupported template node: {type(node).__name__}")

    def children(self, nodes: list[IRNode], indent: str) -> list[str]:
        rendered: list[str] = []
        for child in nodes:
            rendered.extend(self.nodes(child, indent))
        return rendered

    def element(self, node: ElementNode, indent: str) -> list[str]:
        if node.ref_key is None:
            return self.children(node.children, indent)
        self.imports = self.imports.plus(RuntimeImport.SANDBOX_ELEMENT)
        ref = f"{self.names.const_for(node.ref_key)}()"
        children = self.children(node.children, indent + INDENT)
        if not children:
            return [f"e({ref})"]
        return [f"e({ref}, {render_children_list(children, indent)})"]

    def for_each(self, node: ForEachNode, indent: str) -> str:
        self.imports = self.imports.plus(RuntimeImport.SANDBOX_FOR_EACH)
        accessor = node.accessor.render()
        self.validations.extend(accessor.validations)
        children = self.nodes(node.child, indent + INDENT)
        accessor_fn = f"{scope_param(node.variables)} => {accessor.rendered}"
        return (
            f"forEach({accessor_fn}, {quote_single(node.track_by)}, () => "
            f"{render_children_list(children, indent)})"
        )

    def component(self, node: ComponentNode) -> str:
        self.imports = self.imports.plus(RuntimeImport.SANDBOX_CHILD_COMP)
        fragment = render_component_props(node)
        self.imports = self.imports.plus(fragment.imports)
        self.validations.extend(fragment.validations)
        props = fragment.rendered
        ref = self.names.const_for(node.ref_key)
        return f"childComp({node.name}, {scope_param(node.variables)} => {props}, {ref}())"

    def recurse(self, node: RecurseNode, indent: str) -> list[str]:
        if node.ref_name in self._expanding:
            return []
        self._expanding.add(node.ref_name)
        try:
            return self.element(self._regions[node.ref_name].root, indent)
        finally:
            self._expanding.discard(node.ref_name)


def generate_element_bridge_file(ir: TemplateIR) -> WithValidations[str]:
    """Render ``{name}.jay-html.ts`` for the worker side of a sandboxed component."""
    names = names_for(ir)
    indent = INDENT
    renderer = BridgeRenderer(ir, ir.names)
    managers, manager_imports = render_reference_managers(
        ir.refs, ReferenceManagerTarget.ELEMENT_BRIDGE, ir.names, indent
    )
    root = render_children_list(renderer.nodes(ir.root, indent * 2), indent * 2)
    render_function = "\n".join(
        [
            f"export function render(): {names.pre_render} {{",
            managers,
            f"{indent}const render = (viewState: {names.view_state}) =>",
            f"{indent * 2}elementBridge(viewState, {ir.names.managers[()]}, () => {root}) "
            f"as {names.element};",
            f"{indent}return [{ir.names.managers[()]}.getPublicAPI() as {names.refs}, render];",
            "}",
        ]
    )
    types = render_type_blocks(ir)
    imports = (
        renderer.imports.plus(manager_imports)
        .plus(types.imports)
        .plus(RuntimeImport.SANDBOX_ELEMENT_BRIDGE)
    )
    module = join_blocks(
        imports.render(ImportsFor.ELEMENT_SANDBOX),
        render_import_links(ir.file),
        *types.all(),
        render_function,
    )
    logger.debug("Rendered element bridge for %s", ir.file.filename)
    return WithValidations(module, (*ir.validations, *renderer.validations))


class BridgeStack(Stack):
    def generate(self, ir: TemplateIR, **options: Any) -> WithValidations[str]:
        return generate_element_bridge_file(ir)

    def get_capabilities(self) -> StackCapabilities:
        return StackCapabilities(
            name="bridge",
            description="Worker side element bridge of a sandboxed component",
            output_suffix=".jay-html.ts",
        )
