"""
Recursive descent parser for viewc binding expressions.

Grammar (precedence low to high):
    condition    → or_expr
    or_expr      → and_expr ("||" and_expr)*
    and_expr     → not_expr ("&&" not_expr)*
    not_expr     → "!" not_expr | comparison
    comparison   → operand (comp_op operand)?
    comp_op      → "==" | "===" | "!=" | "!==" | "<" | "<=" | ">" | ">="
    operand      → "(" or_expr ")" | "true" | "false" | "-"? NUMBER | accessor
    accessor     → "." | IDENT ("." IDENT)*
    class_part   → condition "?" class_names (":" class_names)? | accessor
    class_names  → IDENT+
    import_names → import_name ("," import_name)*
    import_name  → IDENT ("as" IDENT)?
    enum         → "enum" "(" IDENT ("|" IDENT)* ")"

Templates (text, attribute and property values) and class expressions are
literal text interleaved with ``{...}`` segments; each segment is parsed with
the rules above.
"""

from __future__ import annotations

import re

from viewc.core.errors import ExpressionParseError
from viewc.core.expression_lang.tokenizer import (
    ExpressionTokenError,
    Token,
    TokenKind,
    tokenize,
)
from viewc.core.ir.expressions import (
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

_COMPARISON_OPS: dict[TokenKind, BinaryOp] = {
    TokenKind.EQ: BinaryOp.EQ,
    TokenKind.STRICT_EQ: BinaryOp.STRICT_EQ,
    TokenKind.NE: BinaryOp.NE,
    TokenKind.STRICT_NE: BinaryOp.STRICT_NE,
    TokenKind.LT: BinaryOp.LT,
    TokenKind.LE: BinaryOp.LE,
    TokenKind.GT: BinaryOp.GT,
    TokenKind.GE: BinaryOp.GE,
}

# Examples appended to parse errors, per start rule
_EXPECTED_FORMAT: dict[str, str] = {
    "condition": """
  Conditions support boolean properties, negation, comparisons, and logical operators.
  Examples:
    if="isVisible"
    if="!isHidden"
    if="status == active"         (enum comparison)
    if="count > 0"                (numeric comparison)
    if="isEnabled && status != disabled\"""",
    "booleanAttribute": """
  Boolean attributes use condition-style syntax (no curly braces).
  Examples:
    disabled="isDisabled"
    disabled="!isValid"
    disabled="count <= 0\"""",
    "template": """
  Dynamic text, attributes and properties use curly braces for interpolation.
  Examples:
    {title}
    Hello, {user.name}!
    href="/users/{userId}\"""",
    "classExpression": """
  Class expressions support static classes and conditional classes.
  Examples:
    class="button primary"
    class="{isActive ? active}"
    class="button {isPrimary ? primary : secondary}\"""",
    "accessor": """
  Accessors reference view state properties.
  Examples:
    propertyName
    nested.property
    . (self-reference)""",
    "importNames": """
  Import names are comma-separated identifiers with optional renaming.
  Examples:
    MyComponent
    Component1, Component2
    Original as Renamed""",
    "enum": """
  Enum values are defined with pipe-separated identifiers.
  Examples:
    enum(active | inactive | pending)""",
    "styleDeclarations": """
  Style declarations use CSS syntax with optional dynamic bindings.
  Examples:
    style="color: red; padding: 10px"
    style="background: {bgColor}; width: {size}px\"""",
}


class _SyntaxError(Exception):
    """Internal parse failure, converted to ExpressionParseError at the entry point."""

    def __init__(self, message: str, pos: int) -> None:
        super().__init__(message)
        self.pos = pos


class _Parser:
    """Recursive descent parser over one token stream."""

    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int = 0) -> Token:
        idx = self.pos + offset
        if idx < len(self.tokens):
            return self.tokens[idx]
        return self.tokens[-1]  # EOF

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def expect(self, kind: TokenKind) -> Token:
        tok = self.current
        if tok.kind != kind:
            found = repr(tok.value) if tok.value else "end of input"
            raise _SyntaxError(f"Expected {kind}, got {tok.kind} ({found})", tok.pos)
        return self.advance()

    def match(self, *kinds: TokenKind) -> Token | None:
        if self.current.kind in kinds:
            return self.advance()
        return None

    def expect_end(self) -> None:
        if self.current.kind != TokenKind.EOF:
            raise _SyntaxError(
                f"Unexpected token after expression: {self.current.value!r}",
                self.current.pos,
            )

    # -- Grammar rules --

    def parse_or_expr(self) -> Expr:
        """and_expr ("||" and_expr)*"""
        left = self.parse_and_expr()
        while self.match(TokenKind.OR):
            right = self.parse_and_expr()
            left = BinaryExpr(op=BinaryOp.OR, left=left, right=right)
        return left

    def parse_and_expr(self) -> Expr:
        """not_expr ("&&" not_expr)*"""
        left = self.parse_not_expr()
        while self.match(TokenKind.AND):
            right = self.parse_not_expr()
            left = BinaryExpr(op=BinaryOp.AND, left=left, right=right)
        return left

    def parse_not_expr(self) -> Expr:
        """'!' not_expr | comparison"""
        if self.match(TokenKind.NOT):
            operand = self.parse_not_expr()
            return UnaryExpr(op=UnaryOp.NOT, operand=operand)
        return self.parse_comparison()

    def parse_comparison(self) -> Expr:
        left = self.parse_operand()
        op = _COMPARISON_OPS.get(self.current.kind)
        if op is None:
            return left
        self.advance()
        right = self.parse_operand()
        return BinaryExpr(op=op, left=left, right=right)

    def parse_operand(self) -> Expr:
        tok = self.current
        if self.match(TokenKind.LPAREN):
            expr = self.parse_or_expr()
            self.expect(TokenKind.RPAREN)
            return expr
        if self.match(TokenKind.TRUE):
            return BoolLiteral(value=True)
        if self.match(TokenKind.FALSE):
            return BoolLiteral(value=False)
        if tok.kind == TokenKind.MINUS:
            self.advance()
            number = self.expect(TokenKind.NUMBER)
            return NumberLiteral(value=-float(number.value), raw="-" + number.value)
        if self.match(TokenKind.NUMBER):
            return NumberLiteral(value=float(tok.value), raw=tok.value)
        return self.parse_accessor()

    def parse_accessor(self) -> Accessor:
        """'.' | IDENT ('.' IDENT)*"""
        if self.match(TokenKind.DOT):
            return Accessor(terms=["."])
        terms = [self.expect(TokenKind.IDENT).value]
        while self.current.kind == TokenKind.DOT and self.peek(1).kind == TokenKind.IDENT:
            self.advance()
            terms.append(self.advance().value)
        return Accessor(terms=terms)

    def parse_class_names(self) -> str:
        names = [self.expect(TokenKind.IDENT).value]
        while self.current.kind == TokenKind.IDENT:
            names.append(self.advance().value)
        return " ".join(names)

    def parse_class_part(self) -> ClassPart:
        """condition '?' class_names (':' class_names)? | accessor"""
        condition = self.parse_or_expr()
        if not self.match(TokenKind.QUESTION):
            if not isinstance(condition, Accessor):
                raise _SyntaxError("Expected \"?\" after class condition", self.current.pos)
            return BindingPart(accessor=condition)
        when_true = self.parse_class_names()
        when_false = ""
        if self.match(TokenKind.COLON):
            when_false = self.parse_class_names()
        return ConditionalClassPart(condition=condition, when_true=when_true, when_false=when_false)

    def parse_import_names(self) -> list[ImportName]:
        names = [self.parse_import_name()]
        while self.match(TokenKind.COMMA):
            names.append(self.parse_import_name())
        return names

    def parse_import_name(self) -> ImportName:
        name = self.expect(TokenKind.IDENT).value
        if self.current.kind == TokenKind.IDENT and self.current.value == "as":
            self.advance()
            return ImportName(name=name, as_name=self.expect(TokenKind.IDENT).value)
        return ImportName(name=name)

    def parse_enum(self) -> list[str]:
        keyword = self.expect(TokenKind.IDENT)
        if keyword.value != "enum":
            raise _SyntaxError(f"Expected enum, got {keyword.value!r}", keyword.pos)
        self.expect(TokenKind.LPAREN)
        values = [self.expect(TokenKind.IDENT).value]
        while self.match(TokenKind.PIPE):
            values.append(self.expect(TokenKind.IDENT).value)
        self.expect(TokenKind.RPAREN)
        return values


def _parse_rule(source: str, rule: str, parse):
    """Tokenize ``source`` and run ``parse`` over it, requiring full consumption."""
    try:
        parser = _Parser(tokenize(source))
        result = parse(parser)
        parser.expect_end()
    except (ExpressionTokenError, _SyntaxError) as e:
        raise _parse_error(source, rule, str(e), e.pos) from e
    return result


def _parse_error(source: str, rule: str, detail: str, pos: int) -> ExpressionParseError:
    help_text = _EXPECTED_FORMAT.get(rule)
    expected = f"Expected format for {rule}:{help_text}" if help_text else None
    return ExpressionParseError(source, detail, pos, expected)


# =============================================================================
# Braced segments
# =============================================================================


def _split_segments(source: str, rule: str) -> list[tuple[bool, str, int]]:
    """
    Split text into literal runs and ``{...}`` segments.

    Returns (is_binding, text, offset) triples. An unclosed ``{`` is a parse
    error; a stray ``}`` is kept as literal text.
    """
    segments: list[tuple[bool, str, int]] = []
    i = 0
    n = len(source)
    literal_start = 0
    while i < n:
        if source[i] == "{":
            close = source.find("}", i + 1)
            nested = source.find("{", i + 1)
            if close == -1 or (nested != -1 and nested < close):
                raise _parse_error(source, rule, 'Expected "}" to close binding', i)
            if i > literal_start:
                segments.append((False, source[literal_start:i], literal_start))
            segments.append((True, source[i + 1 : close], i + 1))
            i = close + 1
            literal_start = i
            continue
        i += 1
    if literal_start < n:
        segments.append((False, source[literal_start:], literal_start))
    return segments


def _parse_segment(source: str, segment: str, rule: str, parse):
    """Parse one braced segment, reporting errors against the whole source."""
    try:
        parser = _Parser(tokenize(segment))
        result = parse(parser)
        parser.expect_end()
    except (ExpressionTokenError, _SyntaxError) as e:
        raise _parse_error(source, rule, str(e), e.pos) from e
    return result


# =============================================================================
# Public entry points
# =============================================================================


def parse_accessor(source: str) -> Accessor:
    """
    Parse a dotted accessor such as ``item.price`` or ``.``.

    Raises:
        ExpressionParseError: If the accessor is invalid.
    """
    return _parse_rule(source.strip(), "accessor", _Parser.parse_accessor)


def parse_condition(source: str, rule: str = "condition") -> Expr:
    """Parse a condition expression into an AST.

    Args:
        source: Condition string (e.g., "count > 0 && !isEmpty")
        rule: Rule name reported in error help text

    Returns:
        Parsed expression AST.

    Raises:
        ExpressionParseError: If the expression is invalid.
    """
    return _parse_rule(source, rule, _Parser.parse_or_expr)


def parse_template(source: str, rule: str = "template") -> Template:
    """
    Parse literal text interleaved with ``{accessor}`` bindings.

    Examples:
        >>> parse_template("some {a.b} thing").bindings
        [Accessor(terms=['a', 'b'])]
    """
    parts: list[TemplatePart] = []
    for is_binding, text, _offset in _split_segments(source, rule):
        if is_binding:
            accessor = _parse_segment(source, text, rule, _Parser.parse_accessor)
            parts.append(BindingPart(accessor=accessor))
        else:
            parts.append(TextPart(text=text))
    return Template(parts=parts)


_WHITESPACE_RE = re.compile(r"\s+")


def parse_class_expression(source: str) -> ClassExpression:
    """
    Parse a class attribute value.

    Literal runs have their whitespace collapsed; the expression as a whole is
    stripped.
    """
    rule = "classExpression"
    parts: list[ClassPart] = []
    stripped = source.strip()
    for is_binding, text, _offset in _split_segments(stripped, rule):
        if is_binding:
            parts.append(_parse_segment(stripped, text, rule, _Parser.parse_class_part))
        else:
            parts.append(TextPart(text=_WHITESPACE_RE.sub(" ", text)))
    return ClassExpression(parts=parts)


def parse_import_names(source: str) -> list[ImportName]:
    """Parse ``a, b as c`` into import names."""
    return _parse_rule(source, "importNames", _Parser.parse_import_names)


def parse_enum_values(source: str) -> list[str]:
    """
    Parse ``enum(a | b | c)`` into its ordered values.

    Examples:
        >>> parse_enum_values("enum(one | two | three)")
        ['one', 'two', 'three']
    """
    return _parse_rule(source, "enum", _Parser.parse_enum)


def parse_is_enum(source: str) -> bool:
    """True when ``source`` is a well formed enum literal."""
    try:
        parse_enum_values(source)
    except ExpressionParseError:
        return False
    return True


# =============================================================================
# Style declarations
# =============================================================================

_CSS_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)


def split_style_declarations(source: str) -> list[tuple[str, str]]:
    """
    Split a style attribute into (property, value) pairs.

    Splits on ``;`` outside quotes, parentheses and braces. Comments and
    empty declarations are dropped; a declaration without ``:`` is a parse
    error.
    """
    text = _CSS_COMMENT_RE.sub("", source)
    chunks: list[str] = []
    current: list[str] = []
    depth = 0
    quote: str | None = None
    for c in text:
        if quote:
            if c == quote:
                quote = None
        elif c in "'\"":
            quote = c
        elif c in "({":
            depth += 1
        elif c in ")}":
            depth = max(0, depth - 1)
        elif c == ";" and depth == 0:
            chunks.append("".join(current))
            current = []
            continue
        current.append(c)
    chunks.append("".join(current))

    declarations: list[tuple[str, str]] = []
    for chunk in chunks:
        chunk = chunk.strip()
        if not chunk:
            continue
        prop, sep, value = chunk.partition(":")
        if not sep or not prop.strip():
            raise _parse_error(
                source, "styleDeclarations", f"Invalid style declaration {chunk!r}", 0
            )
        declarations.append((prop.strip(), value.strip()))
    return declarations
