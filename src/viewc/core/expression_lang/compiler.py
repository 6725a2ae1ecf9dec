"""
Compile parsed binding expressions into generated code fragments.

A ``Variables`` scope resolves accessors against the view state type in
scope; the ``render_*`` functions turn template attribute values, text and
conditions into ``RenderFragment`` objects for the trusted and the react
targets.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from viewc.core.expression_lang.parser import (
    parse_accessor,
    parse_class_expression,
    parse_condition,
    parse_template,
    split_style_declarations,
)
from viewc.core.fragments import RenderFragment
from viewc.core.imports import Imports, RuntimeImport
from viewc.core.ir.expressions import (
    Accessor,
    BinaryExpr,
    BindingPart,
    BoolLiteral,
    ConditionalClassPart,
    Expr,
    NumberLiteral,
    Template,
    TextPart,
    UnaryExpr,
)
from viewc.core.strings import kebab_to_camel
from viewc.core.types import UNKNOWN, Type, TypeKind, unwrap

_WHITESPACE_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")


# =============================================================================
# Scope
# =============================================================================


@dataclass(frozen=True)
class ResolvedAccessor:
    """An accessor bound to a scope variable, with its resolved type."""

    root_var: str
    terms: list[str]
    validations: tuple[str, ...]
    resolved_type: Type

    @property
    def is_self(self) -> bool:
        return self.terms == ["."]

    @property
    def path(self) -> str:
        return ".".join(self.terms)

    def render(self) -> RenderFragment:
        if self.is_self:
            rendered = self.root_var
        else:
            rendered = f"{self.root_var}.{'?.'.join(self.terms)}"
        return RenderFragment(rendered, validations=self.validations)


class Variables:
    """
    Scope for resolving accessors.

    The root scope binds ``vs`` / ``context``; every nested loop scope binds
    ``vs{n}`` / ``cx{n}`` where ``n`` is the nesting depth.
    """

    def __init__(self, current_type: Type, parent: Variables | None = None, depth: int = 0):
        self.current_var = "vs" if depth == 0 else f"vs{depth}"
        self.current_context = "context" if depth == 0 else f"cx{depth}"
        self.depth = depth
        self.parent = parent
        if current_type.kind == TypeKind.IMPORTED:
            current_type = current_type.type
        self.current_type = current_type
        self._children: dict[str, Variables] = {}

    def resolve_accessor(self, terms: list[str] | Accessor) -> ResolvedAccessor:
        """
        Walk ``terms`` through the scope type.

        Imported and resolved recursive nodes are followed transparently. A
        missing field reports a validation and resolves to ``UNKNOWN``;
        resolution continues so that one pass reports every problem.
        """
        if isinstance(terms, Accessor):
            terms = list(terms.terms)
        current: Type = self.current_type
        validations: list[str] = []
        for member in terms:
            if member == ".":
                continue
            if current.kind == TypeKind.OBJECT and member in current.props:
                current = current.props[member]
                if current.kind == TypeKind.IMPORTED:
                    current = current.type
                if current.kind == TypeKind.RECURSIVE and current.resolved_type is not None:
                    current = current.resolved_type
            else:
                message = f"the data field [{'.'.join(terms)}] not found in Jay data"
                if message not in validations:
                    validations.append(message)
                current = UNKNOWN
        return ResolvedAccessor(self.current_var, list(terms), tuple(validations), current)

    def child_scope_for(self, accessor: ResolvedAccessor) -> Variables:
        """Loop body scope over the item type of an array accessor, memoized by path."""
        path = accessor.path
        if path not in self._children:
            item_type = accessor.resolved_type
            if item_type.kind == TypeKind.ARRAY:
                item_type = item_type.item_type
            self._children[path] = Variables(unwrap(item_type), self, self.depth + 1)
        return self._children[path]

    def child_scope_for_with_data(self, accessor: ResolvedAccessor) -> Variables:
        """Scope over the accessor's own type, used by ``withData`` recursion."""
        key = "with:" + accessor.path
        if key not in self._children:
            self._children[key] = Variables(accessor.resolved_type, self, self.depth + 1)
        return self._children[key]

    def narrowed_to(self, narrowed_type: Type) -> Variables:
        """Same variable names over another type (async resolved/rejected branches)."""
        narrowed = Variables(narrowed_type, self.parent, self.depth)
        return narrowed


def parse_accessor_expression(text: str, variables: Variables) -> ResolvedAccessor:
    return variables.resolve_accessor(parse_accessor(text))


# =============================================================================
# Quoting helpers
# =============================================================================


def quote_single(text: str) -> str:
    """Render ``text`` as a single quoted string literal."""
    escaped = text.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
    return f"'{escaped}'"


def _escape_template_literal(text: str) -> str:
    return text.replace("\\", "\\\\").replace("`", "\\`").replace("${", "\\${")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text)


# =============================================================================
# Conditions
# =============================================================================


def _render_expr(expr: Expr, variables: Variables, validations: list[str]) -> str:
    if isinstance(expr, Accessor):
        resolved = variables.resolve_accessor(expr)
        validations.extend(resolved.validations)
        return resolved.render().rendered
    if isinstance(expr, NumberLiteral):
        return expr.raw
    if isinstance(expr, BoolLiteral):
        return str(expr)
    if isinstance(expr, UnaryExpr):
        operand = _render_expr(expr.operand, variables, validations)
        if isinstance(expr.operand, BinaryExpr):
            return f"!({operand})"
        return f"!{operand}"
    if isinstance(expr, BinaryExpr):
        if expr.op.is_logical:
            left = _render_expr(expr.left, variables, validations)
            right = _render_expr(expr.right, variables, validations)
            return f"({left}) {expr.op.value} ({right})"
        return _render_comparison(expr, variables, validations)
    raise TypeError(f"Unsupported expression node: {type(expr).__name__}")


def _render_comparison(expr: BinaryExpr, variables: Variables, validations: list[str]) -> str:
    left = _render_expr(expr.left, variables, validations)
    right_node = expr.right
    if isinstance(expr.left, Accessor) and isinstance(right_node, Accessor):
        left_type = variables.resolve_accessor(expr.left).resolved_type
        if left_type.kind == TypeKind.ENUM and len(right_node.terms) == 1:
            return f"{left} {expr.op.rendered} {left_type.name}.{right_node.terms[0]}"
    right = _render_expr(right_node, variables, validations)
    return f"{left} {expr.op.rendered} {right}"


def render_condition_expr(
    text: str, variables: Variables, rule: str = "condition"
) -> RenderFragment:
    """Render a condition as a bare expression (``vs.a && ...``)."""
    validations: list[str] = []
    rendered = _render_expr(parse_condition(text, rule), variables, validations)
    return RenderFragment(rendered, validations=tuple(validations))


def render_condition(text: str, variables: Variables) -> RenderFragment:
    """
    Render a condition function.

    Examples:
        member && member2    →  vs => (vs.member) && (vs.member2)
        anEnum != one        →  vs => vs.anEnum !== AnEnum.one
    """
    return render_condition_expr(text, variables).map(
        lambda expr: f"{variables.current_var} => {expr}"
    )


def render_react_condition(text: str, variables: Variables) -> RenderFragment:
    return render_condition_expr(text, variables)


def render_boolean_attribute(text: str, variables: Variables) -> RenderFragment:
    """``disabled="!isValid"`` → ``ba(vs => !vs.isValid)``."""
    return (
        render_condition_expr(text, variables, "booleanAttribute")
        .map(lambda expr: f"ba({variables.current_var} => {expr})")
        .plus_import(RuntimeImport.BOOLEAN_ATTRIBUTE)
    )


# =============================================================================
# Templates (text, attributes, properties)
# =============================================================================


def _template_parts(
    template: Template, variables: Variables, collapse: bool
) -> tuple[list[tuple[bool, str]], tuple[str, ...]]:
    """Resolve a template into (is_binding, text) parts plus validations."""
    parts: list[tuple[bool, str]] = []
    validations: list[str] = []
    for part in template.parts:
        if isinstance(part, BindingPart):
            resolved = variables.resolve_accessor(part.accessor)
            validations.extend(resolved.validations)
            parts.append((True, resolved.render().rendered))
        else:
            parts.append((False, collapse_whitespace(part.text) if collapse else part.text))
    return parts, tuple(validations)


def _render_template_value(parts: list[tuple[bool, str]]) -> str:
    """Render resolved parts as an accessor or a template literal."""
    if len(parts) == 1 and parts[0][0]:
        return parts[0][1]
    body = "".join(
        f"${{{text}}}" if is_binding else _escape_template_literal(text)
        for is_binding, text in parts
    )
    return f"`{body}`"


def _render_template(
    text: str, variables: Variables, wrapper: str, runtime_import: RuntimeImport, collapse: bool
) -> RenderFragment:
    template = parse_template(text)
    parts, validations = _template_parts(template, variables, collapse)
    if template.is_static:
        return RenderFragment(quote_single("".join(value for _, value in parts)))
    value = _render_template_value(parts)
    return RenderFragment(
        f"{wrapper}({variables.current_var} => {value})",
        Imports.of(runtime_import),
        validations,
    )


def render_text(text: str, variables: Variables) -> RenderFragment:
    """
    Render element text content.

    Examples:
        some constant string  →  'some constant string'
        some {a} thing        →  dt(vs => `some ${vs.a} thing`)
    """
    return _render_template(text, variables, "dt", RuntimeImport.DYNAMIC_TEXT, collapse=True)


def render_attribute(text: str, variables: Variables) -> RenderFragment:
    return _render_template(text, variables, "da", RuntimeImport.DYNAMIC_ATTRIBUTE, collapse=False)


def render_property(text: str, variables: Variables) -> RenderFragment:
    return _render_template(text, variables, "dp", RuntimeImport.DYNAMIC_PROPERTY, collapse=False)


def render_component_prop(text: str, variables: Variables) -> RenderFragment:
    """
    Render a child component prop value as an expression over the scope.

    Numbers are emitted raw, static text quoted and bindings as accessors.
    """
    template = parse_template(text)
    parts, validations = _template_parts(template, variables, collapse=False)
    if template.is_static:
        value = "".join(part for _, part in parts)
        if _NUMBER_RE.match(value.strip()):
            return RenderFragment(value.strip())
        return RenderFragment(quote_single(value))
    return RenderFragment(_render_template_value(parts), validations=validations)


def render_react_text(text: str, variables: Variables) -> RenderFragment:
    """``some {a} thing`` → ``some {vs.a} thing``."""
    template = parse_template(text)
    parts, validations = _template_parts(template, variables, collapse=True)
    rendered = "".join(f"{{{value}}}" if is_binding else value for is_binding, value in parts)
    return RenderFragment(rendered, validations=validations)


def render_react_property(text: str, variables: Variables) -> RenderFragment:
    """Static values render as ``"const"``, dynamic ones as ``{expr}``."""
    template = parse_template(text)
    parts, validations = _template_parts(template, variables, collapse=False)
    if template.is_static:
        value = "".join(part for _, part in parts).replace('"', "&quot;")
        return RenderFragment(f'"{value}"')
    return RenderFragment(f"{{{_render_template_value(parts)}}}", validations=validations)


# =============================================================================
# Class expressions
# =============================================================================


def _class_segments(
    text: str, variables: Variables
) -> tuple[list[tuple[bool, str]], tuple[str, ...]]:
    expression = parse_class_expression(text)
    segments: list[tuple[bool, str]] = []
    validations: list[str] = []
    for part in expression.parts:
        if isinstance(part, TextPart):
            segments.append((False, part.text))
        elif isinstance(part, BindingPart):
            resolved = variables.resolve_accessor(part.accessor)
            validations.extend(resolved.validations)
            segments.append((True, resolved.render().rendered))
        elif isinstance(part, ConditionalClassPart):
            condition = _render_expr(part.condition, variables, validations)
            when_true = quote_single(part.when_true)
            when_false = quote_single(part.when_false)
            segments.append((True, f"{condition}?{when_true}:{when_false}"))
    return segments, tuple(validations)


def render_class(text: str, variables: Variables) -> RenderFragment:
    """
    Render a class attribute.

    Examples:
        class1 class2               →  'class1 class2'
        {isOne? c1} three           →  da(vs => `${vs.isOne?'c1':''} three`)
    """
    segments, validations = _class_segments(text, variables)
    if all(not is_dynamic for is_dynamic, _ in segments):
        return RenderFragment(quote_single("".join(value for _, value in segments)))
    body = "".join(
        f"${{{value}}}" if is_dynamic else _escape_template_literal(value)
        for is_dynamic, value in segments
    )
    return RenderFragment(
        f"da({variables.current_var} => `{body}`)",
        Imports.of(RuntimeImport.DYNAMIC_ATTRIBUTE),
        validations,
    )


def render_react_class(text: str, variables: Variables) -> RenderFragment:
    segments, validations = _class_segments(text, variables)
    if all(not is_dynamic for is_dynamic, _ in segments):
        return RenderFragment('"' + "".join(value for _, value in segments) + '"')
    if len(segments) == 1:
        return RenderFragment(f"{{{segments[0][1]}}}", validations=validations)
    body = "".join(
        f"${{{value}}}" if is_dynamic else _escape_template_literal(value)
        for is_dynamic, value in segments
    )
    return RenderFragment(f"{{`{body}`}}", validations=validations)


# =============================================================================
# Style declarations
# =============================================================================


@dataclass(frozen=True)
class StyleDeclaration:
    property: str
    value_fragment: RenderFragment
    is_dynamic: bool


@dataclass(frozen=True)
class StyleDeclarations:
    declarations: list[StyleDeclaration] = field(default_factory=list)

    @property
    def has_dynamic(self) -> bool:
        return any(declaration.is_dynamic for declaration in self.declarations)


def parse_style_declarations(text: str, variables: Variables) -> StyleDeclarations:
    """
    Parse a style attribute into per-property fragments.

    Property names are converted from kebab-case to the DOM camelCase name.
    Static values render as quoted strings, dynamic ones as ``dp(...)``.
    """
    declarations: list[StyleDeclaration] = []
    for prop, value in split_style_declarations(text):
        template = parse_template(value, "styleDeclarations")
        if template.is_static:
            fragment = RenderFragment(quote_single(value))
        else:
            fragment = render_property(value, variables)
        declarations.append(
            StyleDeclaration(
                property=kebab_to_camel(prop),
                value_fragment=fragment,
                is_dynamic=not template.is_static,
            )
        )
    return StyleDeclarations(declarations)


def render_style_attribute(text: str, variables: Variables) -> RenderFragment:
    """
    Render a style attribute as the element's ``style`` value.

    All-static styles keep the source text as ``{ cssText: '...' }``;
    otherwise each declaration becomes an object member.
    """
    styles = parse_style_declarations(text, variables)
    if not styles.has_dynamic:
        return RenderFragment(f"{{ cssText: {quote_single(text)} }}")
    members = [
        RenderFragment.merge(
            RenderFragment(f"{declaration.property}: "), declaration.value_fragment
        )
        for declaration in styles.declarations
    ]
    return RenderFragment.merge_all(members, ", ").map(lambda body: f"{{ {body} }}")
