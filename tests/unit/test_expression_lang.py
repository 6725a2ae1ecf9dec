"""Tests for the binding expression language: parser, renderers and slow evaluation."""

import pytest

from viewc.core.errors import ExpressionParseError
from viewc.core.expression_lang import (
    PhaseInfo,
    Resolved,
    Runtime,
    SlowRenderContext,
    Variables,
    is_truthy,
    parse_accessor,
    parse_class_expression,
    parse_condition,
    parse_condition_for_slow_render,
    parse_enum_values,
    parse_import_names,
    parse_is_enum,
    parse_template,
    render_attribute,
    render_boolean_attribute,
    render_class,
    render_condition,
    render_react_property,
    render_react_text,
    render_style_attribute,
    render_text,
)
from viewc.core.imports import RuntimeImport
from viewc.core.ir.contract import Phase
from viewc.core.ir.expressions import (
    Accessor,
    BinaryExpr,
    BinaryOp,
    ConditionalClassPart,
    UnaryExpr,
)
from viewc.core.types import BOOLEAN, NUMBER, STRING, UNKNOWN, ArrayType, EnumType, ObjectType

ITEM = ObjectType("Item", {"name": STRING, "price": NUMBER})
VIEW_STATE = ObjectType(
    "ShopViewState",
    {
        "title": STRING,
        "count": NUMBER,
        "isEmpty": BOOLEAN,
        "status": EnumType("Status", ["active", "disabled"]),
        "user": ObjectType("UserOfShopViewState", {"name": STRING}),
        "items": ArrayType(ITEM),
    },
)


@pytest.fixture
def variables() -> Variables:
    return Variables(VIEW_STATE)


class TestParser:
    def test_accessor(self) -> None:
        assert parse_accessor("user.name") == Accessor(terms=["user", "name"])
        assert parse_accessor(".").is_self

    def test_precedence(self) -> None:
        expr = parse_condition("a || b && !c")
        assert isinstance(expr, BinaryExpr)
        assert expr.op == BinaryOp.OR
        assert expr.right.op == BinaryOp.AND
        assert isinstance(expr.right.right, UnaryExpr)

    def test_comparison_and_str(self) -> None:
        expr = parse_condition("count > -1")
        assert expr.op == BinaryOp.GT
        assert expr.right.value == -1
        assert str(parse_condition("(a || b) && c >= 2")) == "(a || b) && c >= 2"

    def test_template_bindings(self) -> None:
        template = parse_template("Hello, {user.name}!")
        assert not template.is_static
        assert template.bindings == [Accessor(terms=["user", "name"])]
        assert parse_template("plain text").is_static

    def test_class_expression(self) -> None:
        expression = parse_class_expression("  button   {isPrimary ? primary : secondary}")
        assert expression.parts[0].text == "button "
        part = expression.parts[1]
        assert isinstance(part, ConditionalClassPart)
        assert part.when_true == "primary"
        assert part.when_false == "secondary"

    def test_import_names(self) -> None:
        names = parse_import_names("Counter, Item as ListItem")
        assert [(n.name, n.local_name) for n in names] == [
            ("Counter", "Counter"),
            ("Item", "ListItem"),
        ]

    def test_enum(self) -> None:
        assert parse_enum_values("enum (one | two | three)") == ["one", "two", "three"]
        assert parse_is_enum("enum(a | b)")
        assert not parse_is_enum("string")

    def test_errors_carry_source_and_help(self) -> None:
        with pytest.raises(ExpressionParseError) as exc_info:
            parse_condition("count >")
        message = str(exc_info.value)
        assert message.startswith("Failed to parse expression [count >].")
        assert "Expected format for condition:" in message

    def test_unclosed_binding(self) -> None:
        with pytest.raises(ExpressionParseError, match='Expected "}" to close binding'):
            parse_template("Hello {name")


class TestVariables:
    def test_resolves_nested_fields(self, variables: Variables) -> None:
        resolved = variables.resolve_accessor(["user", "name"])
        assert resolved.validations == ()
        assert resolved.resolved_type == STRING
        assert resolved.render().rendered == "vs.user?.name"

    def test_missing_field(self, variables: Variables) -> None:
        resolved = variables.resolve_accessor(["nope"])
        assert resolved.resolved_type == UNKNOWN
        assert resolved.validations == ("the data field [nope] not found in Jay data",)

    def test_child_scope_binds_item_type(self, variables: Variables) -> None:
        scope = variables.child_scope_for(variables.resolve_accessor(["items"]))
        assert scope.current_var == "vs1"
        assert scope.current_context == "cx1"
        assert scope.current_type is ITEM
        assert variables.child_scope_for(variables.resolve_accessor(["items"])) is scope


class TestRenderers:
    def test_condition(self, variables: Variables) -> None:
        fragment = render_condition("count > 0 && !isEmpty", variables)
        assert fragment.rendered == "vs => (vs.count > 0) && (!vs.isEmpty)"
        assert fragment.validations == ()

    def test_enum_comparison(self, variables: Variables) -> None:
        fragment = render_condition("status != disabled", variables)
        assert fragment.rendered == "vs => vs.status !== Status.disabled"

    def test_condition_reports_missing_fields(self, variables: Variables) -> None:
        fragment = render_condition("ghost", variables)
        assert fragment.validations == ("the data field [ghost] not found in Jay data",)

    def test_text(self, variables: Variables) -> None:
        assert render_text("some constant   string", variables).rendered == (
            "'some constant string'"
        )
        fragment = render_text("count is {count}", variables)
        assert fragment.rendered == "dt(vs => `count is ${vs.count}`)"
        assert fragment.imports.has(RuntimeImport.DYNAMIC_TEXT)

    def test_single_binding_is_not_a_template_literal(self, variables: Variables) -> None:
        assert render_attribute("{title}", variables).rendered == "da(vs => vs.title)"

    def test_boolean_attribute(self, variables: Variables) -> None:
        fragment = render_boolean_attribute("!isEmpty", variables)
        assert fragment.rendered == "ba(vs => !vs.isEmpty)"
        assert fragment.imports.has(RuntimeImport.BOOLEAN_ATTRIBUTE)

    def test_class(self, variables: Variables) -> None:
        assert render_class("a  b", variables).rendered == "'a b'"
        assert render_class("{isEmpty? empty} box", variables).rendered == (
            "da(vs => `${vs.isEmpty?'empty':''} box`)"
        )

    def test_style(self, variables: Variables) -> None:
        assert render_style_attribute("color: red", variables).rendered == (
            "{ cssText: 'color: red' }"
        )
        assert render_style_attribute("color: red; font-size: {count}px", variables).rendered == (
            "{ color: 'red', fontSize: dp(vs => `${vs.count}px`) }"
        )

    def test_react(self, variables: Variables) -> None:
        assert render_react_text("Hi {user.name}", variables).rendered == "Hi {vs.user?.name}"
        assert render_react_property("x", variables).rendered == '"x"'
        assert render_react_property("{title}", variables).rendered == "{vs.title}"


class TestSlowEvaluation:
    @staticmethod
    def _context(data: dict) -> SlowRenderContext:
        phase_map = {
            "inStock": PhaseInfo(Phase.SLOW),
            "price": PhaseInfo(Phase.FAST),
            "status": PhaseInfo(Phase.SLOW, enum_values=["active", "disabled"]),
        }
        return SlowRenderContext(data, phase_map)

    def test_resolved_false(self) -> None:
        result = parse_condition_for_slow_render(
            "inStock && price > 0", self._context({"inStock": False})
        )
        assert result == Resolved(False)

    def test_simplified_to_runtime_part(self) -> None:
        result = parse_condition_for_slow_render(
            "inStock && price > 0", self._context({"inStock": True})
        )
        assert isinstance(result, Runtime)
        assert result.simplified_expr == "price > 0"

    def test_or_short_circuits(self) -> None:
        result = parse_condition_for_slow_render(
            "price > 0 || inStock", self._context({"inStock": True})
        )
        assert result == Resolved(True)

    def test_enum_comparison_by_index(self) -> None:
        ctx = self._context({"status": 1})
        assert parse_condition_for_slow_render("status == disabled", ctx) == Resolved(True)
        assert parse_condition_for_slow_render("status == active", ctx) == Resolved(False)

    def test_context_path_prefixes_lookups(self) -> None:
        ctx = SlowRenderContext(
            {"visible": True}, {"items.visible": PhaseInfo(Phase.SLOW)}, "items"
        )
        assert parse_condition_for_slow_render("visible", ctx) == Resolved(True)

    def test_truthiness(self) -> None:
        assert not is_truthy(0)
        assert not is_truthy("")
        assert not is_truthy(None)
        assert not is_truthy(float("nan"))
        assert is_truthy([])
        assert is_truthy("0")
