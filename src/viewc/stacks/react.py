"""
React stack: a JSX rendering of the template for the React adapter.

The generated ``reactRender`` receives the view state and an event context;
loops derive a child context per item so that ``eventsFor`` can route events
back to the item's view state. Async directives have no React rendering and
are reported.
"""

from __future__ import annotations

import logging
from typing import Any

from viewc.core.declarations import render_view_state_declarations
from viewc.core.expression_lang import (
    Variables,
    parse_template,
    quote_single,
    render_component_prop,
    render_react_class,
    render_react_condition,
    render_react_property,
    render_react_text,
)
from viewc.core.expression_lang.parser import split_style_declarations
from viewc.core.fragments import RenderFragment
from viewc.core.imports import Imports, ImportsFor, RuntimeImport
from viewc.core.refs import RefsTypeFlavor, render_refs_type
from viewc.core.strings import kebab_to_camel
from viewc.core.template_ir import (
    AsyncNode,
    ComponentNode,
    ConditionalNode,
    ElementNode,
    ForEachNode,
    IRNode,
    RecurseNode,
    RecursiveRegion,
    TemplateIR,
    TextNode,
    WithDataNode,
)
from viewc.core.types import TypeKind
from viewc.core.validations import WithValidations
from viewc.stacks.base import (
    INDENT,
    Stack,
    StackCapabilities,
    join_blocks,
    names_for,
    render_import_links,
)
from viewc.stacks.element import attribute_key

logger = logging.getLogger(__name__)

_RENAMED_ATTRIBUTES = {"class": "className", "for": "htmlFor"}


def context_type(variables: Variables) -> str:
    return f"Jay4ReactElementProps<{variables.current_type.name}>['context']"


class _ReactRenderer:
    def __init__(self, ir: TemplateIR) -> None:
        self.ir = ir
        self.imports = Imports.none()
        self.validations: list[str] = []
        self.child_components: dict[str, str] = {}

    def use(self, fragment: RenderFragment) -> str:
        self.imports = self.imports.plus(fragment.imports)
        self.validations.extend(fragment.validations)
        return fragment.rendered

    # -------------------------------------------------------------------------
    # Expression position
    # -------------------------------------------------------------------------

    def expression(self, node: IRNode, indent: str) -> str:
        """Render ``node`` where a JS expression is expected."""
        match node:
            case TextNode():
                return f"<>{self.use(render_react_text(node.text, node.variables))}</>"
            case ElementNode():
                return self.element(node, indent)
            case ComponentNode():
                return self.component(node)
            case ConditionalNode():
                condition = self.use(render_react_condition(node.condition, node.variables))
                return f"({condition}) && ({self.expression(node.child, indent)})"
            case ForEachNode():
                return self.for_each(node, indent)
            case RecurseNode():
                variables = node.variables
                return f"{node.function_name}({variables.current_var}, {variables.current_context})"
            case WithDataNode():
                return self.with_data(node, indent)
            case AsyncNode():
                self.validations.append(
                    f"{node.state.value} directive is not supported by the react target"
                )
                return "null"
        raise TypeError(f"Unsupported template node: {type(node).__name__}")

    def with_data(self, node: WithDataNode, indent: str) -> str:
        accessor = self.use(node.accessor.render())
        parent = node.variables.current_context
        child_context = f"{parent}.child({quote_single(node.accessor.path)}, {accessor})"
        if isinstance(node.child, RecurseNode):
            return f"{node.child.function_name}({accessor}, {child_context})"
        variables = node.child_variables
        params = (
            f"({variables.current_var}: {variables.current_type.name}, "
            f"{variables.current_context}: {context_type(variables)})"
        )
        child = self.expression(node.child, indent)
        return f"({params} => ({child}))({accessor}, {child_context})"

    def for_each(self, node: ForEachNode, indent: str) -> str:
        accessor = self.use(node.accessor.render())
        item = node.item_variables
        track_by = f"{item.current_var}.{node.track_by}"
        body_indent = indent + INDENT
        child = self.expression_with_key(node.child, body_indent, track_by)
        return (
            f"{accessor}.map(({item.current_var}: {item.current_type.name}) => {{\n"
            f"{body_indent}const {item.current_context} = "
            f"{node.variables.current_context}.child({track_by}, {item.current_var});\n"
            f"{body_indent}return ({child});\n"
            f"{indent}}})"
        )

    def expression_with_key(self, node: IRNode, indent: str, key: str) -> str:
        if isinstance(node, ElementNode):
            return self.element(node, indent, key)
        if isinstance(node, ComponentNode):
            return self.component(node, key)
        return self.expression(node, indent)

    # -------------------------------------------------------------------------
    # JSX
    # -------------------------------------------------------------------------

    def child(self, node: IRNode, indent: str) -> str:
        """Render ``node`` as a JSX child."""
        match node:
            case TextNode():
                return self.use(render_react_text(node.text, node.variables))
            case ElementNode():
                return self.element(node, indent)
            case ComponentNode():
                return self.component(node)
            case AsyncNode():
                self.validations.append(
                    f"{node.state.value} directive is not supported by the react target"
                )
                return ""
        return f"{{{self.expression(node, indent)}}}"

    def element(self, node: ElementNode, indent: str, key: str | None = None) -> str:
        parts = [node.tag]
        if key:
            parts.append(f"key={{{key}}}")
        parts.extend(self.attributes(node.attributes, node.variables))
        if node.ref_key is not None:
            self.imports = self.imports.plus(RuntimeImport.EVENTS_FOR)
            ref_name = node.ref_key[1]
            parts.append(
                f"{{...eventsFor({node.variables.current_context}, {quote_single(ref_name)})}}"
            )
        opening = " ".join(parts)
        children = [
            rendered
            for rendered in (self.child(child, indent + INDENT) for child in node.children)
            if rendered
        ]
        if not children:
            return f"<{opening} />"
        if len(children) == 1 and isinstance(node.children[0], TextNode):
            return f"<{opening}>{children[0]}</{node.tag}>"
        lines = [f"{indent}{INDENT}{child}" for child in children]
        return "\n".join([f"<{opening}>", *lines, f"{indent}</{node.tag}>"])

    def attributes(self, attributes: dict[str, str | None], variables: Variables) -> list[str]:
        rendered: list[str] = []
        for name, value in attributes.items():
            react_name = _RENAMED_ATTRIBUTES.get(name.lower(), name)
            if not value:
                rendered.append(react_name)
            elif name.lower() == "style":
                rendered.append(f"style={{{self.style(value, variables)}}}")
            elif name.lower() == "class":
                rendered.append(f"{react_name}={self.use(render_react_class(value, variables))}")
            else:
                rendered.append(
                    f"{react_name}={self.use(render_react_property(value, variables))}"
                )
        return rendered

    def style(self, text: str, variables: Variables) -> str:
        members = []
        for prop, value in split_style_declarations(text):
            template = parse_template(value, "styleDeclarations")
            if template.is_static:
                rendered = quote_single(value.strip())
            else:
                rendered = self.use(render_component_prop(value, variables))
            members.append(f"{attribute_key(kebab_to_camel(prop))}: {rendered}")
        return f"{{ {', '.join(members)} }}"

    def component(self, node: ComponentNode, key: str | None = None) -> str:
        react_name = f"React{node.name}"
        self.child_components[node.name] = react_name
        parts = [react_name]
        if key:
            parts.append(f"key={{{key}}}")
        direct = node.direct_props
        if direct is not None:
            parts.append(f"{{...{self.use(render_component_prop(direct, node.variables))}}}")
        else:
            for name, value in node.props.items():
                prop = self.use(render_component_prop(value or "", node.variables))
                parts.append(f"{name}={{{prop}}}")
        ref_path, ref_name = node.ref_key
        ref = self.ir.refs.find_ref(list(ref_path), ref_name)
        if ref is not None and not ref.auto_ref:
            self.imports = self.imports.plus(RuntimeImport.EVENTS_FOR)
            parts.append(
                f"{{...eventsFor({node.variables.current_context}, {quote_single(ref_name)})}}"
            )
        return f"<{' '.join(parts)} />"

    def region(self, region: RecursiveRegion) -> str:
        variables = region.variables
        body = self.element(region.root, INDENT * 2)
        return (
            f"function {region.function_name}(\n"
            f"{INDENT}{variables.current_var}: {variables.current_type.name},\n"
            f"{INDENT}{variables.current_context}: {context_type(variables)},\n"
            f"): ReactElement<any, any> {{\n"
            f"{INDENT}return (\n"
            f"{INDENT * 2}{body}\n"
            f"{INDENT});\n"
            f"}}"
        )


def generate_react_element_file(ir: TemplateIR) -> WithValidations[str]:
    """Render ``{name}.jay-html.tsx`` for the React adapter."""
    names = names_for(ir)
    renderer = _ReactRenderer(ir)
    regions = [renderer.region(region) for region in ir.regions]
    root = renderer.child(ir.root, INDENT * 2)
    if root.startswith("{"):
        root = f"<>{root}</>"

    refs_text, refs_imports = render_refs_type(ir.refs, names.refs, flavor=RefsTypeFlavor.REACT)
    props_interface = (
        f"export interface {names.props} extends Jay4ReactElementProps<{names.view_state}> {{}}"
    )
    child_components = "\n".join(
        f"const {react_name} = jay2React(() => {name});"
        for name, react_name in renderer.child_components.items()
    )
    react_render = "\n".join(
        [
            "export function reactRender({",
            f"{INDENT}vs,",
            f"{INDENT}context,",
            f"}}: {names.props}): ReactElement<{names.props}, any> {{",
            f"{INDENT}return (",
            f"{INDENT * 2}{root}",
            f"{INDENT});",
            "}",
        ]
    )
    imports = (
        renderer.imports.plus(refs_imports)
        .plus(RuntimeImport.JAY_4_REACT_ELEMENT_PROPS)
        .plus(RuntimeImport.REACT_ELEMENT)
        .plus(RuntimeImport.MIMIC_JAY_ELEMENT)
    )
    if child_components:
        imports = imports.plus(RuntimeImport.JAY_2_REACT)

    view_state = ir.view_state_type
    declarations = (
        render_view_state_declarations(view_state) if view_state.kind == TypeKind.OBJECT else ""
    )
    module = join_blocks(
        imports.render(ImportsFor.IMPLEMENTATION),
        render_import_links(ir.file),
        declarations,
        refs_text,
        props_interface,
        child_components,
        *regions,
        react_render,
        "export const render = mimicJayElement(reactRender);",
    )
    logger.debug("Rendered react module for %s", ir.file.filename)
    return WithValidations(module, (*ir.validations, *renderer.validations))


class ReactStack(Stack):
    def generate(self, ir: TemplateIR, **options: Any) -> WithValidations[str]:
        return generate_react_element_file(ir)

    def get_capabilities(self) -> StackCapabilities:
        return StackCapabilities(
            name="react",
            description="JSX rendering for the React adapter",
            output_suffix=".jay-html.tsx",
        )
