"""Recursive-descent parser for numeric formula expressions.

Grammar (whitespace is ignored):

    expression := term (("+" | "-") term)*
    term       := factor (("*" | "/") factor)*
    factor     := ("+" | "-") factor | NUMBER | "(" expression ")"

Anything else, names included, is a syntax error. Variable names are
substituted with numbers before parsing (see evaluator).
"""

import math
import operator
import re
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict


class FormulaSyntaxError(ValueError):
    """Raised when a formula is not a valid arithmetic expression."""

    pass


class FormulaEvaluationError(ArithmeticError):
    """Raised when a parsed formula cannot produce a finite number."""

    pass


class Number(BaseModel):
    """Numeric literal."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["number"] = "number"
    value: float


class UnaryOp(BaseModel):
    """Sign applied to an operand."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["unary"] = "unary"
    op: Literal["+", "-"]
    operand: "Node"


class BinaryOp(BaseModel):
    """Arithmetic operation on two operands."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["binary"] = "binary"
    op: Literal["+", "-", "*", "/"]
    left: "Node"
    right: "Node"


Node = Union[Number, UnaryOp, BinaryOp]

UnaryOp.model_rebuild()
BinaryOp.model_rebuild()

_BINARY_OPS = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
}
_UNARY_OPS = {
    "+": operator.pos,
    "-": operator.neg,
}

_TOKEN_PATTERN = re.compile(r"\s*(?:(\d+\.?\d*|\.\d+)|(.))")


def tokenize(source: str) -> list[str]:
    """Split a formula into number and operator tokens.

    Raises:
        FormulaSyntaxError: On any character outside digits, '.', whitespace,
            '+ - * /' and parentheses.
    """
    tokens: list[str] = []
    position = 0
    source = source.rstrip()
    while position < len(source):
        match = _TOKEN_PATTERN.match(source, position)
        if match is None:
            break
        number, symbol = match.groups()
        if number is not None:
            tokens.append(number)
        elif symbol in _BINARY_OPS or symbol in "()":
            tokens.append(symbol)
        else:
            raise FormulaSyntaxError(f"Unexpected character {symbol!r} at {match.start(2)}")
        position = match.end()
    return tokens


class _Parser:
    def __init__(self, tokens: list[str]) -> None:
        self.tokens = tokens
        self.position = 0

    def peek(self) -> str | None:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def advance(self) -> str:
        token = self.tokens[self.position]
        self.position += 1
        return token

    def expression(self) -> Node:
        node = self.term()
        while self.peek() in ("+", "-"):
            op = self.advance()
            node = BinaryOp(op=op, left=node, right=self.term())
        return node

    def term(self) -> Node:
        node = self.factor()
        while self.peek() in ("*", "/"):
            op = self.advance()
            node = BinaryOp(op=op, left=node, right=self.factor())
        return node

    def factor(self) -> Node:
        token = self.peek()
        if token is None:
            raise FormulaSyntaxError("Unexpected end of formula")
        if token in ("+", "-"):
            self.advance()
            return UnaryOp(op=token, operand=self.factor())
        if token == "(":
            self.advance()
            node = self.expression()
            if self.peek() != ")":
                raise FormulaSyntaxError("Missing closing parenthesis")
            self.advance()
            return node
        if token[0].isdigit() or token[0] == ".":
            self.advance()
            return Number(value=float(token))
        raise FormulaSyntaxError(f"Unexpected token {token!r}")


def parse_formula(source: str) -> Node:
    """Parse an arithmetic expression into an AST.

    Args:
        source: Expression over numbers, + - * / and parentheses.

    Returns:
        The root node.

    Raises:
        FormulaSyntaxError: If source is empty or not a valid expression.
    """
    tokens = tokenize(source)
    if not tokens:
        raise FormulaSyntaxError("Formula is empty")
    parser = _Parser(tokens)
    node = parser.expression()
    if parser.peek() is not None:
        raise FormulaSyntaxError(f"Unexpected token {parser.peek()!r}")
    return node


def evaluate_node(node: Node) -> float:
    """Evaluate an AST node.

    Raises:
        FormulaEvaluationError: On division by zero or a non-finite result.
    """
    if isinstance(node, Number):
        return node.value
    if isinstance(node, UnaryOp):
        return _UNARY_OPS[node.op](evaluate_node(node.operand))
    left = evaluate_node(node.left)
    right = evaluate_node(node.right)
    if node.op == "/" and right == 0:
        raise FormulaEvaluationError("Division by zero")
    result = _BINARY_OPS[node.op](left, right)
    if not math.isfinite(result):
        raise FormulaEvaluationError("Result is not finite")
    return result
