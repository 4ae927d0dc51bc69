"""Arithmetic formulas over named channels.

Grammar (usual precedence, left-associative)::

    expr   := term (("+" | "-") term)*
    term   := unary (("*" | "/") unary)*
    unary  := "-" unary | atom
    atom   := NUMBER | IDENT | "(" expr ")"

Identifiers must name a channel in ``channels.CHANNELS``.  A formula is
evaluated per entry of the one log its channels come from; formulas that
mix primary and temperature channels are rejected because the two logs
share no timestamps.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Union

from .channels import CHANNELS, ChannelSeries
from .schema import Source


class EvalError(Exception):
    """A custom formula could not be evaluated.  Scoped to that formula."""

    kind = "eval"

    def __init__(self, formula: str, reason: str):
        self.formula = formula
        self.reason = reason
        super().__init__(f"{reason} in {formula!r}")


class FormulaSyntaxError(EvalError):
    kind = "syntax"

    def __init__(self, formula: str, reason: str, position: int):
        self.position = position
        super().__init__(formula, f"{reason} at position {position}")


class UnknownChannelError(EvalError):
    kind = "unknown_channel"

    def __init__(self, formula: str, name: str):
        self.name = name
        super().__init__(formula, f"unknown channel '{name}'")


class MixedSourcesError(EvalError):
    kind = "mixed_sources"


class FormulaZeroDivisionError(EvalError):
    kind = "division_by_zero"

    def __init__(self, formula: str, timestamp: int):
        self.timestamp = timestamp
        super().__init__(formula, f"division by zero at t={timestamp}ms")


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------

class _DivByZero(Exception):
    pass


@dataclass(frozen=True)
class Num:
    value: float

    def eval(self, env: Mapping[str, float]) -> float:
        return self.value


@dataclass(frozen=True)
class Ref:
    name: str

    def eval(self, env: Mapping[str, float]) -> float:
        return env[self.name]


@dataclass(frozen=True)
class Neg:
    operand: Node

    def eval(self, env: Mapping[str, float]) -> float:
        return -self.operand.eval(env)


@dataclass(frozen=True)
class BinOp:
    op: str
    left: Node
    right: Node

    def eval(self, env: Mapping[str, float]) -> float:
        a = self.left.eval(env)
        b = self.right.eval(env)
        if self.op == "+":
            return a + b
        if self.op == "-":
            return a - b
        if self.op == "*":
            return a * b
        if b == 0:
            raise _DivByZero
        return a / b


Node = Union[Num, Ref, Neg, BinOp]


@dataclass(frozen=True)
class Formula:
    text: str
    root: Node
    channels: tuple[str, ...]  # referenced names, first-use order

    @property
    def sources(self) -> set[Source]:
        return {CHANNELS[name].source for name in self.channels}


# ---------------------------------------------------------------------------
# Tokenizer / parser
# ---------------------------------------------------------------------------

# Limit on parenthesis/negation nesting and on expression tree height.
MAX_DEPTH = 100


_TOKEN_RE = re.compile(r"""
    (?P<ws>\s+)
  | (?P<num>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op>[-+*/()])
""", re.VERBOSE)


@dataclass(frozen=True)
class _Token:
    kind: str  # "num", "ident", "op", "end"
    text: str
    pos: int


def tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            raise FormulaSyntaxError(text, f"unexpected character {text[pos]!r}", pos)
        if m.lastgroup != "ws":
            tokens.append(_Token(m.lastgroup, m.group(), pos))
        pos = m.end()
    tokens.append(_Token("end", "", len(text)))
    return tokens


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.i = 0
        self.refs: list[str] = []
        self.depth = 0

    def peek(self) -> _Token:
        return self.tokens[self.i]

    def advance(self) -> _Token:
        tok = self.tokens[self.i]
        self.i += 1
        return tok

    def error(self, reason: str, tok: _Token) -> FormulaSyntaxError:
        return FormulaSyntaxError(self.text, reason, tok.pos)

    def nest(self, tok: _Token) -> None:
        self.depth += 1
        if self.depth > MAX_DEPTH:
            raise self.error("formula nested too deeply", tok)

    def parse(self) -> Node:
        if self.peek().kind == "end":
            raise self.error("empty formula", self.peek())
        node = self.expr()
        tok = self.peek()
        if tok.kind != "end":
            raise self.error(f"unexpected {tok.text!r}", tok)
        return node

    def expr(self) -> Node:
        node = self.term()
        while self.peek().kind == "op" and self.peek().text in "+-":
            op = self.advance().text
            node = BinOp(op, node, self.term())
        return node

    def term(self) -> Node:
        node = self.unary()
        while self.peek().kind == "op" and self.peek().text in "*/":
            op = self.advance().text
            node = BinOp(op, node, self.unary())
        return node

    def unary(self) -> Node:
        tok = self.peek()
        if tok.kind == "op" and tok.text == "-":
            self.nest(self.advance())
            node = Neg(self.unary())
            self.depth -= 1
            return node
        return self.atom()

    def atom(self) -> Node:
        tok = self.advance()
        if tok.kind == "num":
            return Num(float(tok.text))
        if tok.kind == "ident":
            if tok.text not in CHANNELS:
                raise UnknownChannelError(self.text, tok.text)
            if tok.text not in self.refs:
                self.refs.append(tok.text)
            return Ref(tok.text)
        if tok.kind == "op" and tok.text == "(":
            self.nest(tok)
            node = self.expr()
            self.depth -= 1
            close = self.advance()
            if close.kind != "op" or close.text != ")":
                raise self.error("expected ')'", close)
            return node
        if tok.kind == "end":
            raise self.error("unexpected end of formula", tok)
        raise self.error(f"unexpected {tok.text!r}", tok)


def _height(root: Node) -> int:
    height = 0
    stack = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        height = max(height, depth)
        if isinstance(node, Neg):
            stack.append((node.operand, depth + 1))
        elif isinstance(node, BinOp):
            stack.append((node.left, depth + 1))
            stack.append((node.right, depth + 1))
    return height


def parse(text: str) -> Formula:
    """Parse *text*, resolving every identifier against the channel registry."""
    p = _Parser(text)
    root = p.parse()
    # long operator chains nest the tree without nesting the parser
    if _height(root) > MAX_DEPTH:
        raise FormulaSyntaxError(text, "formula nested too deeply", 0)
    return Formula(text, root, tuple(p.refs))


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def evaluate_formula(formula: Formula, data: Iterable, temp: Iterable) -> ChannelSeries:
    """Evaluate a parsed formula against the primary and temperature logs."""
    sources = formula.sources
    if len(sources) > 1:
        raise MixedSourcesError(
            formula.text,
            "formula mixes telemetry and temperature channels: "
            + ", ".join(formula.channels))
    log = temp if sources == {Source.TEMP} else data

    accessors = [(name, CHANNELS[name].accessor) for name in formula.channels]
    pairs: list[tuple[int, float]] = []
    for entry in log:
        env: dict[str, float] = {}
        for name, accessor in accessors:
            value = accessor(entry)
            if value is None:
                break
            env[name] = value
        else:
            try:
                pairs.append((entry.timestamp, formula.root.eval(env)))
            except _DivByZero:
                raise FormulaZeroDivisionError(formula.text, entry.timestamp) from None
    return ChannelSeries.from_pairs(pairs)


def evaluate(text: str, data: Iterable, temp: Iterable) -> ChannelSeries:
    """Parse and evaluate *text*.  Raises an EvalError subclass on failure."""
    return evaluate_formula(parse(text), data, temp)
