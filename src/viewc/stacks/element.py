"""
Element stack: the trusted DOM rendering module of a template.

Renders ``{name}.jay-html.ts`` (the implementation, built from the runtime's
``element`` / ``dynamicElement`` combinators) and the matching definition
file ``{name}.jay-html.d.ts``.

Example output for ``<div><button ref="add">+</button></div>``::

    export function render(options?: RenderElementOptions): CounterElementPreRender {
        const [refManager, [refAdd]] = ReferencesManager.for(options, ['add'], [], [], []);
        const render = (viewState: CounterViewState) =>
            ConstructContext.withRootContext(viewState, refManager, () =>
                e('div', {}, [e('button', {}, ['+'], refAdd())]),
            ) as CounterElement;
        return [refManager.getPublicAPI() as CounterElementRefs, render];
    }
"""

from __future__ import annotations

import logging
import re
from typing import Any

from viewc.core.declarations import render_type_ref
from viewc.core.expression_lang import (
    Variables,
    quote_single,
    render_attribute,
    render_boolean_attribute,
    render_class,
    render_component_prop,
    render_condition,
    render_property,
    render_style_attribute,
    render_text,
)
from viewc.core.fragments import RenderFragment
from viewc.core.imports import Imports, ImportsFor, RuntimeImport
from viewc.core.refs import ReferenceManagerTarget, render_reference_managers
from viewc.core.template_ir import (
    AsyncNode,
    AsyncState,
    ComponentNode,
    ConditionalNode,
    ElementNamespace,
    ElementNode,
    ForEachNode,
    IRNode,
    RecurseNode,
    RecursiveRegion,
    RuntimeMode,
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
    render_head_links,
    render_import_links,
    render_type_blocks,
    scope_param,
)

logger = logging.getLogger(__name__)

_QUOTED_KEY_RE = re.compile(r"[- ]")
_INLINE_CHILD_LIMIT = 60

_ELEMENT_FUNCTIONS: dict[ElementNamespace, tuple[RuntimeImport, RuntimeImport]] = {
    ElementNamespace.HTML: (RuntimeImport.ELEMENT, RuntimeImport.DYNAMIC_ELEMENT),
    ElementNamespace.SVG: (RuntimeImport.SVG_ELEMENT, RuntimeImport.SVG_DYNAMIC_ELEMENT),
    ElementNamespace.MATHML: (RuntimeImport.MATHML_ELEMENT, RuntimeImport.MATHML_DYNAMIC_ELEMENT),
}

_ASYNC_FUNCTIONS: dict[AsyncState, RuntimeImport] = {
    AsyncState.LOADING: RuntimeImport.PENDING,
    AsyncState.RESOLVED: RuntimeImport.RESOLVED,
    AsyncState.REJECTED: RuntimeImport.REJECTED,
}


def attribute_key(name: str) -> str:
    """Object key for an attribute; names with a dash or a space are quoted."""
    return f'"{name}"' if _QUOTED_KEY_RE.search(name) else name


def render_children_list(children: list[str], indent: str) -> str:
    """``[a, b]`` on one line when short, otherwise one child per line."""
    if not children:
        return "[]"
    if len(children) == 1 and "\n" not in children[0] and len(children[0]) < _INLINE_CHILD_LIMIT:
        return f"[{children[0]}]"
    lines = [f"{indent}{INDENT}{child}," for child in children]
    return "\n".join(["[", *lines, f"{indent}]"])


def render_component_props(node: ComponentNode) -> RenderFragment:
    """
    The props getter body of a child component.

    A ``props`` attribute passes its expression through as the whole props
    object; otherwise every attribute becomes one member.
    """
    direct = node.direct_props
    if direct is not None:
        return render_component_prop(direct, node.variables)
    members = [
        RenderFragment.merge(
            RenderFragment(f"{attribute_key(name)}: "),
            render_component_prop(value or "", node.variables),
        )
        for name, value in node.props.items()
    ]
    if not members:
        return RenderFragment("({})")
    return RenderFragment.merge_all(members, ", ").map(lambda body: f"({{ {body} }})")


class _ElementRenderer:
    """Renders IR nodes as runtime combinator calls, collecting imports and validations."""

    def __init__(self, ir: TemplateIR, mode: RuntimeMode) -> None:
        self.ir = ir
        self.mode = mode
        self.imports = Imports.none()
        self.validations: list[str] = []

    def use(self, fragment: RenderFragment) -> str:
        self.imports = self.imports.plus(fragment.imports)
        self.validations.extend(fragment.validations)
        return fragment.rendered

    def node(self, node: IRNode, indent: str) -> str:
        match node:
            case TextNode():
                return self.use(render_text(node.text, node.variables))
            case ElementNode():
                return self.element(node, indent)
            case ConditionalNode():
                condition = self.use(render_condition(node.condition, node.variables))
                self.imports = self.imports.plus(RuntimeImport.CONDITIONAL)
                return f"c({condition}, () => {self.node(node.child, indent)})"
            case ForEachNode():
                return self.for_each(node, indent)
            case ComponentNode():
                return self.component(node)
            case AsyncNode():
                return self.async_node(node, indent)
            case RecurseNode():
                return f"{node.function_name}()"
            case WithDataNode():
                accessor = self.use(node.accessor.render())
                self.imports = self.imports.plus(RuntimeImport.WITH_DATA)
                child = self.node(node.child, indent)
                return f"withData({scope_param(node.variables)} => {accessor}, () => {child})"
        raise TypeError(f"Unsupported template node: {type(node).__name__}")

    def element(self, node: ElementNode, indent: str) -> str:
        static_fn, dynamic_fn = _ELEMENT_FUNCTIONS[node.namespace]
        function = dynamic_fn if node.is_dynamic else static_fn
        self.imports = self.imports.plus(function)
        attributes = self.attributes(node.attributes, node.variables)
        children = [self.node(child, indent + INDENT) for child in node.children]
        ref = f", {self.ir.const_for(node.ref_key)}()" if node.ref_key else ""
        return (
            f"{function.local_name}({quote_single(node.tag)}, {attributes}, "
            f"{render_children_list(children, indent)}{ref})"
        )

    def attributes(self, attributes: dict[str, str | None], variables: Variables) -> str:
        members = []
        for name, value in attributes.items():
            canonical = name.lower()
            if value is None:
                rendered = quote_single("")
            elif canonical == "style":
                rendered = self.use(render_style_attribute(value, variables))
            elif canonical == "class":
                rendered = self.use(render_class(value, variables))
            elif canonical in ("value", "checked"):
                rendered = self.use(render_property(value, variables))
            elif canonical == "disabled":
                rendered = self.use(render_boolean_attribute(value, variables))
            else:
                rendered = self.use(render_attribute(value, variables))
            members.append(f"{attribute_key(canonical)}: {rendered}")
        return f"{{ {', '.join(members)} }}" if members else "{}"

    def for_each(self, node: ForEachNode, indent: str) -> str:
        accessor = self.use(node.accessor.render())
        self.imports = self.imports.plus(RuntimeImport.FOR_EACH)
        child = self.node(node.child, indent + INDENT * 2)
        return (
            f"forEach(\n"
            f"{indent}{INDENT}{scope_param(node.variables)} => {accessor},\n"
            f"{indent}{INDENT}{scope_param(node.item_variables)} => {{\n"
            f"{indent}{INDENT}{INDENT}return {child};\n"
            f"{indent}{INDENT}}},\n"
            f"{indent}{INDENT}{quote_single(node.track_by)},\n"
            f"{indent})"
        )

    def component(self, node: ComponentNode) -> str:
        sandboxed = node.sandboxed or self.mode == RuntimeMode.MAIN_SANDBOX
        function = RuntimeImport.SECURE_CHILD_COMP if sandboxed else RuntimeImport.CHILD_COMP
        self.imports = self.imports.plus(function)
        props = self.use(render_component_props(node))
        ref = self.ir.const_for(node.ref_key)
        param = scope_param(node.variables)
        return f"{function.local_name}({node.name}, {param} => {props}, {ref}())"

    def async_node(self, node: AsyncNode, indent: str) -> str:
        runtime_import = _ASYNC_FUNCTIONS[node.state]
        self.imports = self.imports.plus(runtime_import)
        view_state = node.variables.current_type.name
        match node.state:
            case AsyncState.LOADING:
                type_args = view_state
            case AsyncState.RESOLVED:
                type_args = f"{view_state}, {render_type_ref(node.child_variables.current_type)}"
            case AsyncState.REJECTED:
                type_args = f"{view_state}, Error"
        accessor = self.use(node.accessor.render())
        child = self.node(node.child, indent)
        return (
            f"{runtime_import.local_name}<{type_args}>"
            f"({scope_param(node.variables)} => {accessor}, () => {child})"
        )

    def region(self, region: RecursiveRegion, indent: str) -> str:
        self.imports = self.imports.plus(RuntimeImport.BASE_JAY_ELEMENT)
        body = self.element(region.root, indent + INDENT)
        type_name = region.variables.current_type.name
        return (
            f"{indent}function {region.function_name}(): BaseJayElement<{type_name}> {{\n"
            f"{indent}{INDENT}return {body};\n"
            f"{indent}}}"
        )


def _render_function(ir: TemplateIR, renderer: _ElementRenderer) -> str:
    names = names_for(ir)
    indent = INDENT
    root_indent = indent * 3
    managers, manager_imports = render_reference_managers(
        ir.refs, ReferenceManagerTarget.ELEMENT, ir.names, indent
    )
    renderer.imports = renderer.imports.plus(manager_imports).plus(
        RuntimeImport.CONSTRUCT_CONTEXT
    )
    regions = [renderer.region(region, indent) for region in ir.regions]
    root = renderer.node(ir.root, root_indent)
    if ir.has_sandboxed_components:
        renderer.imports = renderer.imports.plus(RuntimeImport.SECURE_MAIN_ROOT).plus(
            RuntimeImport.FUNCTION_REPOSITORY
        )
        root = f"mr(viewState, () => {root}, funcRepository)"

    statements: list[str] = []
    if ir.file.head_links:
        renderer.imports = renderer.imports.plus(RuntimeImport.INJECT_HEAD_LINKS)
        statements.append(render_head_links(ir.file.head_links, indent))
    statements.append(managers)
    statements.extend(regions)
    statements.append(
        f"{indent}const render = (viewState: {names.view_state}) =>\n"
        f"{indent * 2}ConstructContext.withRootContext(viewState, {ir.names.managers[()]}, () =>\n"
        f"{root_indent}{root},\n"
        f"{indent * 2}) as {names.element};\n"
        f"{indent}return [{ir.names.managers[()]}.getPublicAPI() as {names.refs}, render];"
    )
    return "\n".join(
        [
            f"export function render(options?: RenderElementOptions): {names.pre_render} {{",
            *statements,
            "}",
        ]
    )


def generate_element_file(
    ir: TemplateIR, mode: RuntimeMode = RuntimeMode.MAIN_TRUSTED
) -> WithValidations[str]:
    """Render the trusted implementation module."""
    renderer = _ElementRenderer(ir, mode)
    render_function = _render_function(ir, renderer)
    types = render_type_blocks(ir)
    imports = renderer.imports.plus(types.imports).plus(RuntimeImport.RENDER_ELEMENT_OPTIONS)
    module = join_blocks(
        imports.render(ImportsFor.IMPLEMENTATION),
        render_import_links(ir.file),
        *types.all(),
        render_function,
    )
    logger.debug("Rendered element module for %s", ir.file.filename)
    return WithValidations(module, (*ir.validations, *renderer.validations))


def generate_element_definition_file(ir: TemplateIR) -> WithValidations[str]:
    """Render ``{name}.jay-html.d.ts``: the same types, with ``render`` declared only."""
    names = names_for(ir)
    types = render_type_blocks(ir)
    imports = types.imports.plus(RuntimeImport.RENDER_ELEMENT_OPTIONS)
    module = join_blocks(
        imports.render(ImportsFor.DEFINITION),
        render_import_links(ir.file),
        *types.all(),
        f"export declare function render(options?: RenderElementOptions): "
        f"{names.pre_render};",
    )
    return WithValidations(module, ir.validations)


class ElementStack(Stack):
    """The trusted element implementation, run in the main window."""

    def generate(self, ir: TemplateIR, **options: Any) -> WithValidations[str]:
        return generate_element_file(ir, options.get("mode", RuntimeMode.MAIN_TRUSTED))

    def get_capabilities(self) -> StackCapabilities:
        return StackCapabilities(
            name="element",
            description="Trusted DOM element module built from runtime combinators",
            output_suffix=".jay-html.ts",
        )


class DefinitionStack(Stack):
    """Type declarations of the element module."""

    def generate(self, ir: TemplateIR, **options: Any) -> WithValidations[str]:
        return generate_element_definition_file(ir)

    def get_capabilities(self) -> StackCapabilities:
        return StackCapabilities(
            name="definition",
            description="Type declarations (.d.ts) of the element module",
            output_suffix=".jay-html.d.ts",
        )
