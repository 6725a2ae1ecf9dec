"""
viewc Intermediate Representation (IR) types.

Contract models and the binding expression AST. Types are organized into
submodules and re-exported from this package.
"""

from .contract import (
    PHASES,
    Contract,
    ContractParam,
    ContractProp,
    ContractTag,
    ContractTagType,
    Phase,
)
from .expressions import (
    Accessor,
    BinaryExpr,
    BinaryOp,
    BindingPart,
    BoolLiteral,
    ClassExpression,
    ClassPart,
    ConditionalClassPart,
    Expr,
    ImportName,
    NumberLiteral,
    Template,
    TemplatePart,
    TextPart,
    UnaryExpr,
    UnaryOp,
)

__all__ = [
    # Contracts
    "PHASES",
    "Contract",
    "ContractParam",
    "ContractProp",
    "ContractTag",
    "ContractTagType",
    "Phase",
    # Expressions
    "Accessor",
    "BinaryExpr",
    "BinaryOp",
    "BindingPart",
    "BoolLiteral",
    "ClassExpression",
    "ClassPart",
    "ConditionalClassPart",
    "Expr",
    "ImportName",
    "NumberLiteral",
    "Template",
    "TemplatePart",
    "TextPart",
    "UnaryExpr",
    "UnaryOp",
]
