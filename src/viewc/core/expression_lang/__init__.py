"""
viewc binding expression language.

Tokenizer, parser, code renderers and the slow-render partial evaluator for
the expressions found in template attributes and text.

Usage:
    from viewc.core.expression_lang import Variables, render_condition

    variables = Variables(view_state_type)
    fragment = render_condition("count > 0 && !isEmpty", variables)
    # fragment.rendered == "vs => (vs.count > 0) && (!vs.isEmpty)"
"""

from viewc.core.expression_lang.compiler import (
    ResolvedAccessor,
    StyleDeclaration,
    StyleDeclarations,
    Variables,
    parse_accessor_expression,
    parse_style_declarations,
    quote_single,
    render_attribute,
    render_boolean_attribute,
    render_class,
    render_component_prop,
    render_condition,
    render_condition_expr,
    render_property,
    render_react_class,
    render_react_condition,
    render_react_property,
    render_react_text,
    render_style_attribute,
    render_text,
)
from viewc.core.expression_lang.parser import (
    parse_accessor,
    parse_class_expression,
    parse_condition,
    parse_enum_values,
    parse_import_names,
    parse_is_enum,
    parse_template,
)
from viewc.core.expression_lang.slow_eval import (
    PhaseInfo,
    Resolved,
    Runtime,
    SlowRenderContext,
    is_truthy,
    parse_condition_for_slow_render,
)

__all__ = [
    "PhaseInfo",
    "Resolved",
    "ResolvedAccessor",
    "Runtime",
    "SlowRenderContext",
    "StyleDeclaration",
    "StyleDeclarations",
    "Variables",
    "is_truthy",
    "parse_accessor",
    "parse_accessor_expression",
    "parse_class_expression",
    "parse_condition",
    "parse_condition_for_slow_render",
    "parse_enum_values",
    "parse_import_names",
    "parse_is_enum",
    "parse_style_declarations",
    "parse_template",
    "quote_single",
    "render_attribute",
    "render_boolean_attribute",
    "render_class",
    "render_component_prop",
    "render_condition",
    "render_condition_expr",
    "render_property",
    "render_react_class",
    "render_react_condition",
    "render_react_property",
    "render_react_text",
    "render_style_attribute",
    "render_text",
]
