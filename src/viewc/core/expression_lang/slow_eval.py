"""
Partial evaluation of conditions at slow-render time.

Accessors whose path is marked slow in the phase map are replaced by their
values from the slow view state; the rest stay symbolic. The condition then
either resolves to a boolean or is simplified to the part that must be
decided at runtime. Pure evaluation, no I/O and no Python ``eval()``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from viewc.core.expression_lang.parser import parse_condition
from viewc.core.fragments import RenderFragment
from viewc.core.ir.contract import Phase
from viewc.core.ir.expressions import (
    Accessor,
    BinaryExpr,
    BinaryOp,
    BoolLiteral,
    Expr,
    NumberLiteral,
    UnaryExpr,
)


@dataclass(frozen=True)
class PhaseInfo:
    """What the slow renderer knows about one view state path."""

    phase: Phase
    is_array: bool = False
    track_by: str | None = None
    enum_values: list[str] | None = None


@dataclass
class SlowRenderContext:
    """
    Inputs for evaluating a condition during slow render.

    ``slow_data`` is the object in scope (the loop item inside an unrolled
    forEach); ``context_path`` is its dotted path from the root, used to look
    accessors up in ``phase_map``.
    """

    slow_data: Mapping[str, Any]
    phase_map: Mapping[str, PhaseInfo] = field(default_factory=dict)
    context_path: str = ""

    def full_path(self, terms: list[str]) -> str:
        path = ".".join(terms)
        return f"{self.context_path}.{path}" if self.context_path else path

    def info_for(self, terms: list[str]) -> PhaseInfo | None:
        return self.phase_map.get(self.full_path(terms))


@dataclass(frozen=True)
class Resolved:
    value: bool


@dataclass(frozen=True)
class Runtime:
    """A condition that still depends on fast data, with its simplified form."""

    code: RenderFragment
    simplified_expr: str


SlowConditionResult = Resolved | Runtime


class _Known:
    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        self.value = value


def is_truthy(value: Any) -> bool:
    """JavaScript truthiness: ``None``, ``False``, ``0``, ``NaN`` and ``''`` are falsy."""
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)):
        return value == value and value != 0
    if isinstance(value, str):
        return value != ""
    return True


def lookup_value(data: Mapping[str, Any] | None, terms: list[str]) -> Any:
    """Follow ``terms`` through nested mappings; missing keys yield ``None``."""
    current: Any = data
    for term in terms:
        if term == ".":
            continue
        if not isinstance(current, Mapping):
            return None
        current = current.get(term)
    return current


def _is_slow(info: PhaseInfo | None) -> bool:
    return info is not None and Phase(info.phase) == Phase.SLOW


def _evaluate(expr: Expr, ctx: SlowRenderContext) -> _Known | Expr:
    """Return a known value, or the residual expression to decide at runtime."""
    if isinstance(expr, BoolLiteral):
        return _Known(expr.value)
    if isinstance(expr, NumberLiteral):
        return _Known(expr.value)
    if isinstance(expr, Accessor):
        if expr.is_self:
            return _Known(ctx.slow_data)
        if _is_slow(ctx.info_for(expr.terms)):
            return _Known(lookup_value(ctx.slow_data, expr.terms))
        return expr
    if isinstance(expr, UnaryExpr):
        operand = _evaluate(expr.operand, ctx)
        if isinstance(operand, _Known):
            return _Known(not is_truthy(operand.value))
        return UnaryExpr(op=expr.op, operand=operand)
    if isinstance(expr, BinaryExpr):
        if expr.op.is_logical:
            return _evaluate_logical(expr, ctx)
        return _evaluate_comparison(expr, ctx)
    raise TypeError(f"Unsupported expression node: {type(expr).__name__}")


def _evaluate_logical(expr: BinaryExpr, ctx: SlowRenderContext) -> _Known | Expr:
    left = _evaluate(expr.left, ctx)
    right = _evaluate(expr.right, ctx)
    is_and = expr.op == BinaryOp.AND

    if isinstance(left, _Known):
        if is_truthy(left.value) != is_and:
            # false && X, true || X
            return _Known(not is_and)
        if isinstance(right, _Known):
            return _Known(is_truthy(right.value))
        return right
    if isinstance(right, _Known):
        if is_truthy(right.value) != is_and:
            return _Known(not is_and)
        return left
    return BinaryExpr(op=expr.op, left=left, right=right)


def _enum_operand(expr: BinaryExpr, ctx: SlowRenderContext, left_value: Any) -> _Known | None:
    """Resolve ``status == active`` when ``status`` is a slow enum field."""
    if not (isinstance(expr.left, Accessor) and isinstance(expr.right, Accessor)):
        return None
    info = ctx.info_for(expr.left.terms)
    if info is None or not info.enum_values or len(expr.right.terms) != 1:
        return None
    literal = expr.right.terms[0]
    if literal not in info.enum_values:
        return None
    if isinstance(left_value, (int, float)) and not isinstance(left_value, bool):
        return _Known(info.enum_values.index(literal))
    return _Known(literal)


def _evaluate_comparison(expr: BinaryExpr, ctx: SlowRenderContext) -> _Known | Expr:
    left = _evaluate(expr.left, ctx)
    right = _evaluate(expr.right, ctx)
    if isinstance(left, _Known) and not isinstance(right, _Known):
        enum_value = _enum_operand(expr, ctx, left.value)
        if enum_value is not None:
            right = enum_value
    if not (isinstance(left, _Known) and isinstance(right, _Known)):
        return expr
    return _Known(_compare(expr.op, left.value, right.value))


def _compare(op: BinaryOp, left: Any, right: Any) -> bool:
    if op in (BinaryOp.EQ, BinaryOp.STRICT_EQ):
        return left == right
    if op in (BinaryOp.NE, BinaryOp.STRICT_NE):
        return left != right
    if left is None or right is None:
        return False
    try:
        if op == BinaryOp.LT:
            return left < right
        if op == BinaryOp.LE:
            return left <= right
        if op == BinaryOp.GT:
            return left > right
        if op == BinaryOp.GE:
            return left >= right
    except TypeError:
        # incomparable values compare false, as in JavaScript
        return False
    raise ValueError(f"Not a comparison operator: {op}")


def parse_condition_for_slow_render(text: str, ctx: SlowRenderContext) -> SlowConditionResult:
    """
    Evaluate a condition against slow data.

    Examples:
        inStock && price > 0  with inStock=true (slow), price fast
            → Runtime(simplified_expr="price > 0")
        inStock && price > 0  with inStock=false (slow)
            → Resolved(False)

    Raises:
        ExpressionParseError: If the condition is invalid.
    """
    result = _evaluate(parse_condition(text), ctx)
    if isinstance(result, _Known):
        return Resolved(is_truthy(result.value))
    simplified = str(result)
    return Runtime(RenderFragment(simplified), simplified)
