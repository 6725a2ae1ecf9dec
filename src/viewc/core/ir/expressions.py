"""
Binding expression AST for viewc templates.

Supports:
- Accessors: title, item.price, . (the current scope itself)
- Conditions: !a, a && b, a || b, parenthesized groups
- Comparison: ==, ===, !=, !==, <, <=, >, >=
- Literals: numbers (including negatives) and true/false
- Templates: literal text with {accessor} segments
- Class expressions: static classes, {accessor} and {condition ? a : b}
- Import names: a, b as c
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------


class BinaryOp(StrEnum):
    """Binary operators for conditions."""

    # Comparison
    EQ = "=="
    STRICT_EQ = "==="
    NE = "!="
    STRICT_NE = "!=="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    # Logical
    AND = "&&"
    OR = "||"

    @property
    def is_logical(self) -> bool:
        return self in (BinaryOp.AND, BinaryOp.OR)

    @property
    def is_equality(self) -> bool:
        return self in (BinaryOp.EQ, BinaryOp.STRICT_EQ, BinaryOp.NE, BinaryOp.STRICT_NE)

    @property
    def rendered(self) -> str:
        """Operator as emitted into generated code (equality is always strict)."""
        if self in (BinaryOp.EQ, BinaryOp.STRICT_EQ):
            return "==="
        if self in (BinaryOp.NE, BinaryOp.STRICT_NE):
            return "!=="
        return self.value


class UnaryOp(StrEnum):
    NOT = "!"


# ---------------------------------------------------------------------------
# AST node types
# ---------------------------------------------------------------------------


class Accessor(BaseModel):
    """
    A dotted path into the current scope.

    Examples:
        - Accessor(terms=["title"]) → title
        - Accessor(terms=["item", "price"]) → item.price
        - Accessor(terms=["."]) → . (the scope itself)
    """

    terms: list[str] = Field(description="Path segments")

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        if self.is_self:
            return "."
        return ".".join(self.terms)

    @property
    def is_self(self) -> bool:
        return self.terms == ["."]


class NumberLiteral(BaseModel):
    """A numeric literal, keeping its source text for rendering."""

    value: float = Field(description="Numeric value")
    raw: str = Field(description="Source text")

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return self.raw


class BoolLiteral(BaseModel):
    value: bool

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return "true" if self.value else "false"


class BinaryExpr(BaseModel):
    """Binary operation: left op right."""

    op: BinaryOp
    left: Expr
    right: Expr

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        if self.op.is_logical:
            return f"{_grouped(self.left)} {self.op.value} {_grouped(self.right)}"
        return f"{self.left} {self.op.value} {self.right}"


class UnaryExpr(BaseModel):
    """Unary operation: !operand."""

    op: UnaryOp
    operand: Expr

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        if isinstance(self.operand, BinaryExpr):
            return f"!({self.operand})"
        return f"!{self.operand}"


def _grouped(expr: Expr) -> str:
    if isinstance(expr, BinaryExpr) and expr.op.is_logical:
        return f"({expr})"
    return str(expr)


# ---------------------------------------------------------------------------
# Template and class parts
# ---------------------------------------------------------------------------


class TextPart(BaseModel):
    """Literal text inside a template."""

    text: str

    model_config = ConfigDict(frozen=True)


class BindingPart(BaseModel):
    """An ``{accessor}`` segment inside a template."""

    accessor: Accessor

    model_config = ConfigDict(frozen=True)


class ConditionalClassPart(BaseModel):
    """
    A ``{condition ? when_true : when_false}`` class segment.

    ``when_false`` is empty when the fallback is omitted.
    """

    condition: Expr
    when_true: str
    when_false: str = ""

    model_config = ConfigDict(frozen=True)


TemplatePart = TextPart | BindingPart
ClassPart = TextPart | BindingPart | ConditionalClassPart


class Template(BaseModel):
    """Literal text interleaved with bindings."""

    parts: list[TemplatePart] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def is_static(self) -> bool:
        return all(isinstance(part, TextPart) for part in self.parts)

    @property
    def bindings(self) -> list[Accessor]:
        return [part.accessor for part in self.parts if isinstance(part, BindingPart)]


class ClassExpression(BaseModel):
    parts: list[ClassPart] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def is_static(self) -> bool:
        return all(isinstance(part, TextPart) for part in self.parts)


class ImportName(BaseModel):
    """One entry of an import-names list: ``name`` or ``name as alias``."""

    name: str
    as_name: str | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def local_name(self) -> str:
        return self.as_name or self.name


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

Expr = Accessor | NumberLiteral | BoolLiteral | BinaryExpr | UnaryExpr

# Rebuild models for recursive forward references
BinaryExpr.model_rebuild()
UnaryExpr.model_rebuild()
ConditionalClassPart.model_rebuild()
ClassExpression.model_rebuild()
