"""
ExtractPilot Expression Parser

Tokenizer and recursive-descent parser for the conditional-field
mini-language. Produces an immutable AST that the condition evaluator
walks against a record; nothing is ever handed to Python's eval.

Grammar:
    expr       := and_expr ( "||" and_expr )*
    and_expr   := unary ( "&&" unary )*
    unary      := "!" unary | "(" expr ")" | predicate
    predicate  := operand [ cmp_op operand
                          | [NOT] IN "(" operand ("," operand)* ")"
                          | BETWEEN operand AND operand
                          | LIKE operand
                          | IS [NOT] (NULL | BLANK | EMPTY) ]
    operand    := IDENT ( "." method "(" [operand] ")" )? | STRING | NUMBER | null
    cmp_op     := "==" | "=" | "!=" | ">=" | "<=" | ">" | "<"

Examples:
    STATUS == "A"
    AMOUNT >= 1000 && CURRENCY != 'USD'
    ACCT_TYPE IN ('DDA', 'SAV') || DESCRIPTION.contains("WIRE")
    !(BRANCH_CODE.isBlank())
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Optional, Union

from ..exceptions import ExpressionSyntaxError


# =============================================================================
# Tokens
# =============================================================================

IDENT = "IDENT"
STRING = "STRING"
NUMBER = "NUMBER"
OP = "OP"
AND = "AND"
OR = "OR"
BANG = "BANG"
LPAREN = "LPAREN"
RPAREN = "RPAREN"
COMMA = "COMMA"
DOT = "DOT"
EOF = "EOF"

COMPARISON_OPERATORS = ("==", "!=", ">=", "<=", "=", ">", "<")

# Methods callable on an operand, mapped to whether they take an argument
METHODS = {
    "contains": True,
    "startsWith": True,
    "endsWith": True,
    "isNull": False,
    "isNotNull": False,
    "isBlank": False,
    "isNotBlank": False,
    "isEmpty": False,
}


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int


def tokenize(expression: str) -> list[Token]:
    """Split an expression into tokens."""
    tokens: list[Token] = []
    i = 0
    n = len(expression)

    while i < n:
        ch = expression[i]

        if ch.isspace():
            i += 1
            continue

        two = expression[i:i + 2]
        if two == "&&":
            tokens.append(Token(AND, two, i))
            i += 2
            continue
        if two == "||":
            tokens.append(Token(OR, two, i))
            i += 2
            continue
        if two in ("==", "!=", ">=", "<="):
            tokens.append(Token(OP, two, i))
            i += 2
            continue
        if ch in "=<>":
            tokens.append(Token(OP, ch, i))
            i += 1
            continue
        if ch == "!":
            tokens.append(Token(BANG, ch, i))
            i += 1
            continue
        if ch == "(":
            tokens.append(Token(LPAREN, ch, i))
            i += 1
            continue
        if ch == ")":
            tokens.append(Token(RPAREN, ch, i))
            i += 1
            continue
        if ch == ",":
            tokens.append(Token(COMMA, ch, i))
            i += 1
            continue

        if ch in ("'", '"'):
            start = i
            i += 1
            chars: list[str] = []
            while i < n and expression[i] != ch:
                if expression[i] == "\\" and i + 1 < n:
                    i += 1
                chars.append(expression[i])
                i += 1
            if i >= n:
                raise ExpressionSyntaxError(
                    message=f"Unterminated string literal at position {start}",
                    expression=expression,
                    position=start,
                )
            i += 1
            tokens.append(Token(STRING, "".join(chars), start))
            continue

        if ch.isdigit() or (ch == "-" and i + 1 < n and expression[i + 1].isdigit()):
            start = i
            i += 1
            while i < n and expression[i].isdigit():
                i += 1
            if i + 1 < n and expression[i] == "." and expression[i + 1].isdigit():
                i += 1
                while i < n and expression[i].isdigit():
                    i += 1
            tokens.append(Token(NUMBER, expression[start:i], start))
            continue

        if ch.isalpha() or ch == "_":
            start = i
            while i < n and (expression[i].isalnum() or expression[i] == "_"):
                i += 1
            tokens.append(Token(IDENT, expression[start:i], start))
            continue

        if ch == ".":
            tokens.append(Token(DOT, ch, i))
            i += 1
            continue

        raise ExpressionSyntaxError(
            message=f"Unexpected character {ch!r} at position {i}",
            expression=expression,
            position=i,
        )

    tokens.append(Token(EOF, "", n))
    return tokens


# =============================================================================
# AST
# =============================================================================

@dataclass(frozen=True)
class FieldRef:
    """
    Reference to a record field by exact name.

    ``literal_fallback`` marks a bare word on the right-hand side of a
    comparison: if no such field exists, the word itself is the value.
    """
    name: str
    literal_fallback: bool = False


@dataclass(frozen=True)
class StringLiteral:
    value: str


@dataclass(frozen=True)
class NumberLiteral:
    value: Decimal
    text: str


@dataclass(frozen=True)
class BooleanLiteral:
    value: bool


@dataclass(frozen=True)
class NullLiteral:
    pass


Operand = Union[FieldRef, StringLiteral, NumberLiteral, BooleanLiteral, NullLiteral]


@dataclass(frozen=True)
class Comparison:
    op: str
    left: Operand
    right: Operand


@dataclass(frozen=True)
class MethodCheck:
    """``operand.method(argument)``, e.g. ``NAME.contains("LLC")``."""
    target: Operand
    method: str
    argument: Optional[Operand] = None


@dataclass(frozen=True)
class InList:
    operand: Operand
    options: tuple[Operand, ...]
    negated: bool = False


@dataclass(frozen=True)
class Between:
    operand: Operand
    low: Operand
    high: Operand


@dataclass(frozen=True)
class Like:
    operand: Operand
    pattern: Operand


@dataclass(frozen=True)
class Not:
    operand: Node


@dataclass(frozen=True)
class AllOf:
    children: tuple[Node, ...]


@dataclass(frozen=True)
class AnyOf:
    children: tuple[Node, ...]


Node = Union[Comparison, MethodCheck, InList, Between, Like, Not, AllOf, AnyOf]


# =============================================================================
# Parser
# =============================================================================

class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, expression: str) -> None:
        self.expression = expression
        self.tokens = tokenize(expression)
        self.index = 0

    # -- token helpers --------------------------------------------------------

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        if token.kind != EOF:
            self.index += 1
        return token

    def _expect(self, kind: str, what: str) -> Token:
        if self.current.kind != kind:
            self._fail(f"Expected {what}")
        return self._advance()

    def _at_keyword(self, *words: str) -> bool:
        return self.current.kind == IDENT and self.current.text.upper() in words

    def _fail(self, message: str) -> None:
        token = self.current
        found = "end of expression" if token.kind == EOF else repr(token.text)
        raise ExpressionSyntaxError(
            message=f"{message} at position {token.position}, found {found}",
            expression=self.expression,
            position=token.position,
            details={"expression": self.expression, "position": token.position},
        )

    # -- grammar --------------------------------------------------------------

    def parse(self) -> Node:
        if self.current.kind == EOF:
            self._fail("Empty expression")
        node = self._or()
        if self.current.kind != EOF:
            self._fail("Unexpected token")
        return node

    def _or(self) -> Node:
        children = [self._and()]
        while self.current.kind == OR:
            self._advance()
            children.append(self._and())
        return children[0] if len(children) == 1 else AnyOf(tuple(children))

    def _and(self) -> Node:
        children = [self._unary()]
        while self.current.kind == AND:
            self._advance()
            children.append(self._unary())
        return children[0] if len(children) == 1 else AllOf(tuple(children))

    def _unary(self) -> Node:
        if self.current.kind == BANG:
            self._advance()
            return Not(self._unary())
        if self.current.kind == LPAREN:
            self._advance()
            node = self._or()
            self._expect(RPAREN, "')'")
            return node
        return self._predicate()

    def _predicate(self) -> Node:
        left = self._operand()
        if isinstance(left, MethodCheck):
            return left

        token = self.current
        if token.kind == OP:
            self._advance()
            op = "==" if token.text == "=" else token.text
            right = self._operand(rhs=True)
            if isinstance(right, MethodCheck):
                self._fail("Method call cannot be compared")
            return Comparison(op, left, right)

        if self._at_keyword("NOT"):
            self._advance()
            if not self._at_keyword("IN"):
                self._fail("Expected IN after NOT")
            self._advance()
            return InList(left, self._option_list(), negated=True)

        if self._at_keyword("IN"):
            self._advance()
            return InList(left, self._option_list())

        if self._at_keyword("BETWEEN"):
            self._advance()
            low = self._plain_operand(rhs=True)
            if not self._at_keyword("AND"):
                self._fail("Expected AND in BETWEEN")
            self._advance()
            high = self._plain_operand(rhs=True)
            return Between(left, low, high)

        if self._at_keyword("LIKE"):
            self._advance()
            return Like(left, self._plain_operand(rhs=True))

        if self._at_keyword("IS"):
            self._advance()
            negated = False
            if self._at_keyword("NOT"):
                self._advance()
                negated = True
            if self._at_keyword("NULL"):
                method = "isNotNull" if negated else "isNull"
            elif self._at_keyword("BLANK"):
                method = "isNotBlank" if negated else "isBlank"
            elif self._at_keyword("EMPTY") and not negated:
                method = "isEmpty"
            else:
                self._fail("Expected NULL, BLANK or EMPTY after IS")
            self._advance()
            return MethodCheck(left, method)

        self._fail("Expected comparison operator")
        raise AssertionError("unreachable")

    def _option_list(self) -> tuple[Operand, ...]:
        self._expect(LPAREN, "'('")
        options = [self._plain_operand(rhs=True)]
        while self.current.kind == COMMA:
            self._advance()
            options.append(self._plain_operand(rhs=True))
        self._expect(RPAREN, "')'")
        return tuple(options)

    def _plain_operand(self, rhs: bool = False) -> Operand:
        operand = self._operand(rhs=rhs)
        if isinstance(operand, MethodCheck):
            self._fail("Method call not allowed here")
        return operand

    def _operand(self, rhs: bool = False) -> Union[Operand, MethodCheck]:
        token = self.current

        if token.kind == STRING:
            self._advance()
            return StringLiteral(token.text)

        if token.kind == NUMBER:
            self._advance()
            try:
                return NumberLiteral(Decimal(token.text), token.text)
            except InvalidOperation:
                self._fail("Invalid number")

        if token.kind == IDENT:
            self._advance()
            word = token.text.lower()
            if word == "null":
                return NullLiteral()
            if word in ("true", "false"):
                return BooleanLiteral(word == "true")
            target: Operand = FieldRef(token.text, literal_fallback=rhs)
            if self.current.kind == DOT:
                return self._method(FieldRef(token.text))
            return target

        self._fail("Expected field name or literal")
        raise AssertionError("unreachable")

    def _method(self, target: Operand) -> MethodCheck:
        self._expect(DOT, "'.'")
        name_token = self._expect(IDENT, "method name")
        method = name_token.text
        if method not in METHODS:
            raise ExpressionSyntaxError(
                message=f"Unknown method {method!r} at position {name_token.position}",
                expression=self.expression,
                position=name_token.position,
            )
        self._expect(LPAREN, "'('")
        argument: Optional[Operand] = None
        if METHODS[method]:
            argument = self._plain_operand()
        self._expect(RPAREN, "')'")
        return MethodCheck(target, method, argument)


@lru_cache(maxsize=1024)
def parse_expression(expression: str) -> Node:
    """
    Parse an expression into an AST.

    Results are cached, so each distinct expression is parsed once per
    process regardless of how many records it is evaluated against.

    Raises:
        ExpressionSyntaxError: If the expression is malformed
    """
    return _Parser(expression).parse()


def referenced_fields(node: Union[Node, Operand]) -> set[str]:
    """Collect the field names an expression reads."""
    if isinstance(node, FieldRef):
        return {node.name}
    if isinstance(node, Comparison):
        return referenced_fields(node.left) | referenced_fields(node.right)
    if isinstance(node, MethodCheck):
        fields = referenced_fields(node.target)
        if node.argument is not None:
            fields |= referenced_fields(node.argument)
        return fields
    if isinstance(node, InList):
        fields = referenced_fields(node.operand)
        for option in node.options:
            fields |= referenced_fields(option)
        return fields
    if isinstance(node, Between):
        return referenced_fields(node.operand) | referenced_fields(node.low) | referenced_fields(node.high)
    if isinstance(node, Like):
        return referenced_fields(node.operand) | referenced_fields(node.pattern)
    if isinstance(node, Not):
        return referenced_fields(node.operand)
    if isinstance(node, (AllOf, AnyOf)):
        fields: set[str] = set()
        for child in node.children:
            fields |= referenced_fields(child)
        return fields
    return set()
