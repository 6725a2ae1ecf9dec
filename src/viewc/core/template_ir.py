"""
Shared template walk.

One traversal of a template body produces a backend-agnostic node tree.
Every node carries the ``Variables`` scope it renders in; directives are
already resolved (forEach item scopes, async narrowing, recursion anchors)
and refs are collected into one tree that is optimized once the walk is
complete. The code generators in ``viewc.stacks`` only render.

Recursion: an element with ``ref="x"`` that contains ``<recurse ref="x">``
is hoisted into a ``RecursiveRegion`` and replaced by a call node. The
marker itself becomes another call, wrapped in ``WithDataNode`` when it
names an ``accessor``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import StrEnum

from viewc.core.errors import TemplateCompileError
from viewc.core.expression_lang import ResolvedAccessor, Variables, parse_accessor
from viewc.core.html_tree import Element, Text, significant_children
from viewc.core.refs import (
    AutoRefNames,
    RefKey,
    ReferenceNames,
    RefsTree,
    make_ref,
    name_references,
    optimize_refs,
)
from viewc.core.template_parser import JayHtmlFile
from viewc.core.types import (
    ERROR_TYPE,
    ComponentType,
    HTMLType,
    Type,
    TypeKind,
    is_unknown,
)
from viewc.core.validations import WithValidations

logger = logging.getLogger(__name__)

SVG_NAMESPACE = "http://www.w3.org/2000/svg"
MATHML_NAMESPACE = "http://www.w3.org/1998/Math/MathML"

# Directive attributes, lower case; they never render as element attributes
DIRECTIVES = frozenset(
    {"if", "foreach", "trackby", "ref", "when-loading", "when-resolved", "when-rejected"}
)

_HTML_ELEMENT_TYPES = {
    "a": "HTMLAnchorElement",
    "area": "HTMLAreaElement",
    "audio": "HTMLAudioElement",
    "base": "HTMLBaseElement",
    "blockquote": "HTMLQuoteElement",
    "body": "HTMLBodyElement",
    "br": "HTMLBRElement",
    "button": "HTMLButtonElement",
    "canvas": "HTMLCanvasElement",
    "caption": "HTMLTableCaptionElement",
    "col": "HTMLTableColElement",
    "colgroup": "HTMLTableColElement",
    "data": "HTMLDataElement",
    "datalist": "HTMLDataListElement",
    "del": "HTMLModElement",
    "details": "HTMLDetailsElement",
    "dialog": "HTMLDialogElement",
    "div": "HTMLDivElement",
    "dl": "HTMLDListElement",
    "embed": "HTMLEmbedElement",
    "fieldset": "HTMLFieldSetElement",
    "form": "HTMLFormElement",
    "h1": "HTMLHeadingElement",
    "h2": "HTMLHeadingElement",
    "h3": "HTMLHeadingElement",
    "h4": "HTMLHeadingElement",
    "h5": "HTMLHeadingElement",
    "h6": "HTMLHeadingElement",
    "head": "HTMLHeadElement",
    "hr": "HTMLHRElement",
    "html": "HTMLHtmlElement",
    "iframe": "HTMLIFrameElement",
    "img": "HTMLImageElement",
    "input": "HTMLInputElement",
    "ins": "HTMLModElement",
    "label": "HTMLLabelElement",
    "legend": "HTMLLegendElement",
    "li": "HTMLLIElement",
    "link": "HTMLLinkElement",
    "map": "HTMLMapElement",
    "menu": "HTMLMenuElement",
    "meta": "HTMLMetaElement",
    "meter": "HTMLMeterElement",
    "object": "HTMLObjectElement",
    "ol": "HTMLOListElement",
    "optgroup": "HTMLOptGroupElement",
    "option": "HTMLOptionElement",
    "output": "HTMLOutputElement",
    "p": "HTMLParagraphElement",
    "picture": "HTMLPictureElement",
    "pre": "HTMLPreElement",
    "progress": "HTMLProgressElement",
    "q": "HTMLQuoteElement",
    "script": "HTMLScriptElement",
    "select": "HTMLSelectElement",
    "slot": "HTMLSlotElement",
    "source": "HTMLSourceElement",
    "span": "HTMLSpanElement",
    "style": "HTMLStyleElement",
    "table": "HTMLTableElement",
    "tbody": "HTMLTableSectionElement",
    "td": "HTMLTableCellElement",
    "template": "HTMLTemplateElement",
    "textarea": "HTMLTextAreaElement",
    "tfoot": "HTMLTableSectionElement",
    "th": "HTMLTableCellElement",
    "thead": "HTMLTableSectionElement",
    "time": "HTMLTimeElement",
    "title": "HTMLTitleElement",
    "tr": "HTMLTableRowElement",
    "track": "HTMLTrackElement",
    "ul": "HTMLUListElement",
    "video": "HTMLVideoElement",
}


def element_type_for(tag: str) -> HTMLType:
    """``button`` → ``HTMLButtonElement``; unknown tags are ``HTMLElement``."""
    return HTMLType(_HTML_ELEMENT_TYPES.get(tag.lower(), "HTMLElement"))


class ElementNamespace(StrEnum):
    HTML = "html"
    SVG = "svg"
    MATHML = "mathml"


class AsyncState(StrEnum):
    """Async directive attributes, each bound to its own runtime combinator."""

    LOADING = "when-loading"
    RESOLVED = "when-resolved"
    REJECTED = "when-rejected"


class RuntimeMode(StrEnum):
    """Where the trusted element module runs relative to its child components."""

    MAIN_TRUSTED = "main-trusted"
    MAIN_SANDBOX = "main-sandbox"


# =============================================================================
# Nodes
# =============================================================================


@dataclass
class TextNode:
    text: str
    variables: Variables


@dataclass
class ElementNode:
    """
    A DOM element.

    ``attributes`` holds the non-directive attributes as written;
    ``ref_key`` addresses the element's ref in the module's refs tree.
    """

    tag: str
    attributes: dict[str, str | None]
    children: list[IRNode]
    variables: Variables
    namespace: ElementNamespace = ElementNamespace.HTML
    ref_key: RefKey | None = None

    @property
    def is_dynamic(self) -> bool:
        return any(
            isinstance(child, (ConditionalNode, ForEachNode, AsyncNode, WithDataNode))
            for child in self.children
        )


@dataclass
class ConditionalNode:
    condition: str
    child: IRNode
    variables: Variables


@dataclass
class ForEachNode:
    accessor: ResolvedAccessor
    track_by: str
    child: IRNode
    variables: Variables
    item_variables: Variables


@dataclass
class ComponentNode:
    """
    A child component instance.

    Props are the non-directive attributes; a ``props`` attribute passes one
    expression through as the whole props object.
    """

    name: str
    props: dict[str, str | None]
    ref_key: RefKey
    variables: Variables
    sandboxed: bool = False

    @property
    def direct_props(self) -> str | None:
        return next((value for key, value in self.props.items() if key.lower() == "props"), None)


@dataclass
class AsyncNode:
    state: AsyncState
    accessor: ResolvedAccessor
    child: IRNode
    variables: Variables
    child_variables: Variables


@dataclass
class RecurseNode:
    """A call to the recursive region anchored by ``ref_name``."""

    ref_name: str
    variables: Variables

    @property
    def function_name(self) -> str:
        return region_function_name(self.ref_name)


@dataclass
class WithDataNode:
    accessor: ResolvedAccessor
    child: IRNode
    variables: Variables
    child_variables: Variables


IRNode = (
    TextNode
    | ElementNode
    | ConditionalNode
    | ForEachNode
    | ComponentNode
    | AsyncNode
    | RecurseNode
    | WithDataNode
)


def region_function_name(ref_name: str) -> str:
    return f"renderRecursiveRegion_{ref_name}"


@dataclass
class RecursiveRegion:
    ref_name: str
    root: ElementNode
    variables: Variables

    @property
    def function_name(self) -> str:
        return region_function_name(self.ref_name)


@dataclass
class TemplateIR:
    """The walked template of one module."""

    file: JayHtmlFile
    root: IRNode
    refs: RefsTree
    names: ReferenceNames
    regions: list[RecursiveRegion] = field(default_factory=list)
    validations: tuple[str, ...] = ()

    @property
    def view_state_type(self) -> Type:
        return self.file.view_state

    @property
    def has_sandboxed_components(self) -> bool:
        return any(self.file.imported_components.values())

    def const_for(self, key: RefKey) -> str:
        return self.names.const_for(key)


# =============================================================================
# Walk
# =============================================================================


@dataclass(frozen=True)
class _Anchor:
    ref_name: str
    variables: Variables
    guarded: bool = False


@dataclass(frozen=True)
class _Scope:
    variables: Variables
    refs_path: tuple[str, ...] = ()
    dynamic: bool = False
    namespace: ElementNamespace = ElementNamespace.HTML
    anchors: tuple[_Anchor, ...] = ()

    def guarded(self) -> _Scope:
        return replace(self, anchors=tuple(replace(a, guarded=True) for a in self.anchors))

    def find_anchor(self, ref_name: str) -> _Anchor | None:
        return next((a for a in reversed(self.anchors) if a.ref_name == ref_name), None)


def _accessor_terms(accessor: ResolvedAccessor) -> tuple[str, ...]:
    return () if accessor.is_self else tuple(accessor.terms)


class CompilationContext:
    """
    State owned by one template compilation.

    Holds the auto ref counter, the refs collected so far, the hoisted
    regions and the validations. Nothing here outlives the call to
    ``build_template_ir``.
    """

    def __init__(self, file: JayHtmlFile) -> None:
        self.file = file
        self.components = file.imported_components
        self.namespaces = {ns.prefix.lower(): ns.namespace for ns in file.namespaces}
        self.auto_refs = AutoRefNames()
        self.refs = RefsTree()
        self.regions: list[RecursiveRegion] = []
        self.validations: list[str] = []
        for headless in file.headless_imports:
            self.refs = replace(
                self.refs, children={**self.refs.children, headless.key: headless.refs}
            )

    # -------------------------------------------------------------------------
    # Refs
    # -------------------------------------------------------------------------

    def add_ref(
        self, raw_name: str, scope: _Scope, element_type: Type, auto_ref: bool = False
    ) -> RefKey:
        *prefix, name = raw_name.split(".")
        path = [*scope.refs_path, *prefix]
        view_state_type = scope.variables.current_type
        ref = make_ref(name, view_state_type, element_type, scope.dynamic, auto_ref)
        declared = self.refs.find_ref(path, ref.ref)
        if declared is not None and prefix:
            # a ref declared by an imported contract keeps the contract's view type
            ref = replace(ref, view_state_type=declared.view_state_type)
        self.refs = self.refs.with_child(path).add_ref(ref, path)
        return tuple(path), ref.ref

    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------

    def walk_children(self, element: Element, scope: _Scope) -> list[IRNode]:
        nodes: list[IRNode] = []
        for child in significant_children(element):
            if isinstance(child, Text):
                nodes.append(TextNode(child.decoded, scope.variables))
            elif isinstance(child, Element):
                node = self.walk_element(child, scope)
                if node is not None:
                    nodes.append(node)
        return nodes

    def walk_element(
        self, element: Element, scope: _Scope, handled: frozenset[str] = frozenset()
    ) -> IRNode | None:
        tag = element.tag_lower
        if tag == "recurse":
            return self._recurse(element, scope)
        if tag == "with-data":
            return self._with_data(element, scope)
        if "if" not in handled and element.has_attr("if"):
            child = self.walk_element(element, scope.guarded(), handled | {"if"})
            if child is None:
                return None
            return ConditionalNode(element.get_attr("if") or "", child, scope.variables)
        if "foreach" not in handled and element.has_attr("forEach"):
            return self._for_each(element, scope, handled | {"foreach"})
        for state in AsyncState:
            if state.value not in handled and element.has_attr(state.value):
                return self._async(element, scope, state, handled | {state.value})
        return self._element(element, scope)

    def _for_each(
        self, element: Element, scope: _Scope, handled: frozenset[str]
    ) -> ForEachNode | None:
        text = element.get_attr("forEach") or ""
        accessor = scope.variables.resolve_accessor(parse_accessor(text))
        if is_unknown(accessor.resolved_type):
            self.validations.extend(accessor.validations)
            self.validations.append(
                f"forEach directive - failed to resolve forEach type [forEach={text}]"
            )
            return None
        if accessor.resolved_type.kind != TypeKind.ARRAY:
            self.validations.append(
                f"forEach directive - resolved forEach type is not an array [forEach={text}]"
            )
            return None
        track_by = element.get_attr("trackBy")
        if not track_by:
            self.validations.append(
                f"forEach directive - missing trackBy attribute [forEach={text}]"
            )
        terms = _accessor_terms(accessor)
        item_variables = scope.variables.child_scope_for(accessor)
        if terms:
            self.refs = self.refs.with_child([*scope.refs_path, *terms], repeated=True)
        item_scope = replace(
            scope.guarded(),
            variables=item_variables,
            refs_path=(*scope.refs_path, *terms),
            dynamic=True,
        )
        child = self.walk_element(element, item_scope, handled)
        if child is None:
            return None
        return ForEachNode(accessor, track_by or "", child, scope.variables, item_variables)

    def _async(
        self, element: Element, scope: _Scope, state: AsyncState, handled: frozenset[str]
    ) -> AsyncNode | None:
        text = element.get_attr(state.value) or ""
        accessor = scope.variables.resolve_accessor(parse_accessor(text))
        if accessor.validations:
            self.validations.extend(accessor.validations)
            return None
        if accessor.resolved_type.kind != TypeKind.PROMISE:
            self.validations.append(
                f"{state.value} directive - resolved type is not a promise [{state.value}={text}]"
            )
            return None
        match state:
            case AsyncState.LOADING:
                child_variables = scope.variables
            case AsyncState.RESOLVED:
                child_variables = scope.variables.narrowed_to(accessor.resolved_type.item_type)
            case AsyncState.REJECTED:
                child_variables = scope.variables.narrowed_to(ERROR_TYPE)
        child = self.walk_element(
            element, replace(scope.guarded(), variables=child_variables), handled
        )
        if child is None:
            return None
        return AsyncNode(state, accessor, child, scope.variables, child_variables)

    def _with_data(self, element: Element, scope: _Scope) -> WithDataNode | None:
        text = element.get_attr("accessor")
        if not text:
            self.validations.append("with-data directive must specify an accessor attribute")
            return None
        accessor = scope.variables.resolve_accessor(parse_accessor(text))
        if accessor.validations:
            self.validations.extend(accessor.validations)
            return None
        child_variables = scope.variables.child_scope_for_with_data(accessor)
        terms = _accessor_terms(accessor)
        self.refs = self.refs.with_child([*scope.refs_path, *terms])
        child_scope = replace(
            scope, variables=child_variables, refs_path=(*scope.refs_path, *terms)
        )
        children = element.element_children
        if len(children) != 1:
            self.validations.append(
                f"with-data directive must have exactly one child element, found {len(children)}"
            )
            return None
        child = self.walk_element(children[0], child_scope)
        if child is None:
            return None
        return WithDataNode(accessor, child, scope.variables, child_variables)

    def _recurse(self, element: Element, scope: _Scope) -> IRNode | None:
        ref_name = element.get_attr("ref") or ""
        anchor = scope.find_anchor(ref_name)
        if anchor is None:
            raise TemplateCompileError(
                f'<recurse ref="{ref_name}"> has no enclosing element with ref="{ref_name}"'
            )
        if not anchor.guarded:
            raise TemplateCompileError(
                f'<recurse ref="{ref_name}"> must be guarded by a forEach, if or async directive '
                f"below its anchor"
            )
        text = element.get_attr("accessor")
        if not text:
            self._check_recursion_type(ref_name, scope.variables, anchor)
            return RecurseNode(ref_name, scope.variables)

        accessor = scope.variables.resolve_accessor(parse_accessor(text))
        if accessor.validations:
            self.validations.extend(accessor.validations)
            return None
        child_variables = scope.variables.child_scope_for_with_data(accessor)
        self._check_recursion_type(ref_name, child_variables, anchor)
        return WithDataNode(
            accessor, RecurseNode(ref_name, child_variables), scope.variables, child_variables
        )

    def _check_recursion_type(self, ref_name: str, variables: Variables, anchor: _Anchor) -> None:
        actual = variables.current_type.name
        expected = anchor.variables.current_type.name
        if actual != expected:
            self.validations.append(
                f"recurse ref [{ref_name}] is used with view state [{actual}] "
                f"but the recursive region expects [{expected}]"
            )

    def _element(self, element: Element, scope: _Scope) -> IRNode | None:
        if element.tag in self.components:
            return self._component(element, scope)

        ref_name = element.get_attr("ref")
        if ref_name and _contains_recurse(element, ref_name):
            anchored = replace(
                scope, anchors=(*scope.anchors, _Anchor(ref_name, scope.variables))
            )
            root = self._html_element(element, anchored)
            self.regions.append(RecursiveRegion(ref_name, root, scope.variables))
            return RecurseNode(ref_name, scope.variables)
        return self._html_element(element, scope)

    def _namespace_for(self, element: Element, scope: _Scope) -> tuple[str, ElementNamespace]:
        tag = element.tag
        if ":" in tag:
            prefix, local = tag.split(":", 1)
            uri = self.namespaces.get(prefix.lower())
            if uri == SVG_NAMESPACE:
                return local, ElementNamespace.SVG
            if uri == MATHML_NAMESPACE:
                return local, ElementNamespace.MATHML
        if element.tag_lower == "svg":
            return tag, ElementNamespace.SVG
        if element.tag_lower == "math":
            return tag, ElementNamespace.MATHML
        return tag, scope.namespace

    def _html_element(self, element: Element, scope: _Scope) -> ElementNode:
        tag, namespace = self._namespace_for(element, scope)
        ref_key = None
        ref_name = element.get_attr("ref")
        if ref_name:
            ref_key = self.add_ref(ref_name, scope, element_type_for(tag))
        attributes = {
            name: value for name, value in element.attrs.items() if name.lower() not in DIRECTIVES
        }
        children = self.walk_children(element, replace(scope, namespace=namespace))
        return ElementNode(tag, attributes, children, scope.variables, namespace, ref_key)

    def _component(self, element: Element, scope: _Scope) -> ComponentNode:
        explicit = element.get_attr("ref")
        ref_name = explicit or self.auto_refs.next()
        ref_key = self.add_ref(
            ref_name, scope, ComponentType(element.tag), auto_ref=not explicit
        )
        props = {
            name: value for name, value in element.attrs.items() if name.lower() not in DIRECTIVES
        }
        return ComponentNode(
            element.tag, props, ref_key, scope.variables, self.components[element.tag]
        )


def _contains_recurse(element: Element, ref_name: str) -> bool:
    return any(
        el.tag_lower == "recurse" and el.get_attr("ref") == ref_name
        for el in element.iter()
        if el is not element
    )


# =============================================================================
# Entry point
# =============================================================================


def build_template_ir(
    file: JayHtmlFile, root_manager_name: str = "refManager"
) -> WithValidations[TemplateIR | None]:
    """
    Walk the body of a parsed template.

    Returns:
        The template IR with its non-fatal validations, or ``None`` when the
        body does not hold exactly one root element.

    Raises:
        TemplateCompileError: If a ``<recurse>`` marker has no guarded anchor
        ExpressionParseError: If a directive expression cannot be parsed
    """
    roots = file.body.element_children
    if len(roots) != 1:
        return WithValidations(
            None, (f"jay file body must have exactly one root element, found {len(roots)}",)
        )

    context = CompilationContext(file)
    root = context.walk_element(roots[0], _Scope(Variables(file.view_state)))
    if root is None:
        return WithValidations(None, tuple(context.validations))

    optimized = optimize_refs(context.refs)
    validations = (*context.validations, *optimized.validations)
    names = name_references(optimized.val, root_manager_name)
    logger.debug(
        "Walked template %s: %s regions, %s validations",
        file.filename,
        len(context.regions),
        len(validations),
    )
    return WithValidations(
        TemplateIR(file, root, optimized.val, names, context.regions, tuple(validations)),
        tuple(validations),
    )
