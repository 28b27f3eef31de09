"""Condition expressions: tokenizer, parser to an explicit AST, evaluator.

Evaluation never calls ``eval``; only the node types below exist.
"""

from __future__ import annotations

import operator
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Union

from agentflow.core.errors import EvaluationError


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Name:
    path: tuple[str, ...]

    @property
    def key(self) -> str:
        return ".".join(self.path)


@dataclass(frozen=True)
class Defined:
    name: Name


@dataclass(frozen=True)
class ListExpr:
    items: tuple["Node", ...]


@dataclass(frozen=True)
class Not:
    operand: "Node"


@dataclass(frozen=True)
class BoolOp:
    op: str  # "&&" | "||"
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Compare:
    op: str
    left: "Node"
    right: "Node"


Node = Union[Literal, Name, Defined, ListExpr, Not, BoolOp, Compare]

_TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<number>-?\d+(?:\.\d+)?)
      | (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
      | (?P<op>&&|\|\||==|!=|>=|<=|>|<|!|\(|\)|\[|\]|,|\.)
      | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
    )""",
    re.VERBOSE,
)

_KEYWORDS = {"true": True, "false": False, "null": None}
_COMPARE_OPS = ("==", "!=", ">=", "<=", ">", "<", "in", "includes")
_ORDERING = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}


def _tokenize(expression: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    pos = 0
    text = expression.rstrip()
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None or match.end() == pos:
            raise EvaluationError(f"Unexpected character at position {pos} in condition {expression!r}")
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


class _Parser:

    def __init__(self, expression: str):
        self.expression = expression
        self.tokens = _tokenize(expression)
        self.pos = 0

    def _peek(self) -> tuple[str, str] | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _accept(self, value: str) -> bool:
        tok = self._peek()
        if tok is not None and tok[1] == value and tok[0] in ("op", "name"):
            self.pos += 1
            return True
        return False

    def _expect(self, value: str):
        if not self._accept(value):
            tok = self._peek()
            found = tok[1] if tok else "end of expression"
            raise EvaluationError(f"Expected '{value}' but found '{found}' in condition {self.expression!r}")

    def parse(self) -> Node:
        if not self.tokens:
            raise EvaluationError("Empty condition")
        node = self._or()
        if self._peek() is not None:
            raise EvaluationError(
                f"Unexpected token '{self._peek()[1]}' in condition {self.expression!r}"
            )
        return node

    def _or(self) -> Node:
        node = self._and()
        while self._accept("||"):
            node = BoolOp("||", node, self._and())
        return node

    def _and(self) -> Node:
        node = self._not()
        while self._accept("&&"):
            node = BoolOp("&&", node, self._not())
        return node

    def _not(self) -> Node:
        if self._accept("!"):
            return Not(self._not())
        return self._comparison()

    def _comparison(self) -> Node:
        left = self._operand()
        tok = self._peek()
        if tok is not None and tok[1] in _COMPARE_OPS:
            self.pos += 1
            return Compare(tok[1], left, self._operand())
        return left

    def _operand(self) -> Node:
        tok = self._peek()
        if tok is None:
            raise EvaluationError(f"Unexpected end of condition {self.expression!r}")
        kind, value = tok
        self.pos += 1

        if kind == "number":
            return Literal(float(value) if "." in value else int(value))
        if kind == "string":
            return Literal(_unquote(value))
        if value == "(":
            node = self._or()
            self._expect(")")
            return node
        if value == "[":
            items: list[Node] = []
            if not self._accept("]"):
                items.append(self._or())
                while self._accept(","):
                    items.append(self._or())
                self._expect("]")
            return ListExpr(tuple(items))
        if kind == "name":
            if value in _KEYWORDS:
                return Literal(_KEYWORDS[value])
            if value == "defined" and self._accept("("):
                name = self._name(self._next_name())
                self._expect(")")
                return Defined(name)
            if value in ("in", "includes"):
                raise EvaluationError(f"Operator '{value}' is missing its left operand")
            return self._name(value)
        raise EvaluationError(f"Unexpected token '{value}' in condition {self.expression!r}")

    def _next_name(self) -> str:
        tok = self._peek()
        if tok is None or tok[0] != "name":
            raise EvaluationError(f"Expected a key name in condition {self.expression!r}")
        self.pos += 1
        return tok[1]

    def _name(self, first: str) -> Name:
        parts = [first]
        while self._accept("."):
            parts.append(self._next_name())
        return Name(tuple(parts))


def _unquote(raw: str) -> str:
    body = raw[1:-1]
    return re.sub(r"\\(.)", r"\1", body)


@lru_cache(maxsize=256)
def parse_condition(expression: str) -> Node:
    """Parse ``expression`` into an AST. Raises EvaluationError on bad syntax."""
    return _Parser(expression).parse()


_MISSING = object()


def _lookup(name: Name, bag: Mapping[str, Any]) -> Any:
    # whole dotted key first, then walk nested mappings
    if name.key in bag:
        return bag[name.key]
    current: Any = bag
    for part in name.path:
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _contains(container: Any, item: Any) -> bool:
    if isinstance(container, str):
        if not isinstance(item, str):
            raise EvaluationError(f"Cannot test {item!r} for membership in a string")
        return item in container
    if isinstance(container, (Sequence, set, frozenset, Mapping)):
        return item in container
    raise EvaluationError(f"Membership needs a sequence, got {type(container).__name__}")


def _eval(node: Node, bag: Mapping[str, Any]) -> Any:
    if isinstance(node, Literal):
        return node.value

    if isinstance(node, Name):
        value = _lookup(node, bag)
        if value is _MISSING:
            raise EvaluationError(f"Condition references missing key '{node.key}'")
        return value

    if isinstance(node, Defined):
        return _lookup(node.name, bag) is not _MISSING

    if isinstance(node, ListExpr):
        return [_eval(item, bag) for item in node.items]

    if isinstance(node, Not):
        return not _eval(node.operand, bag)

    if isinstance(node, BoolOp):
        left = _eval(node.left, bag)
        if node.op == "&&":
            return _eval(node.right, bag) if left else left
        return left if left else _eval(node.right, bag)

    if isinstance(node, Compare):
        left = _eval(node.left, bag)
        right = _eval(node.right, bag)
        if node.op == "==":
            return left == right
        if node.op == "!=":
            return left != right
        if node.op == "in":
            return _contains(right, left)
        if node.op == "includes":
            return _contains(left, right)
        if (_is_number(left) and _is_number(right)) or (
            isinstance(left, str) and isinstance(right, str)
        ):
            return _ORDERING[node.op](left, right)
        raise EvaluationError(
            f"Cannot compare {type(left).__name__} {node.op} {type(right).__name__}"
        )

    raise EvaluationError(f"Unsupported node: {node!r}")


def evaluate_condition(expression: str, bag: Mapping[str, Any]) -> bool:
    """Evaluate ``expression`` against a data-bag snapshot."""
    return bool(_eval(parse_condition(expression), bag))


def referenced_keys(expression: str) -> set[str]:
    """Top-level data-bag keys an expression reads (including ``defined`` checks)."""
    keys: set[str] = set()

    def _walk(node: Node):
        if isinstance(node, Name):
            keys.add(node.path[0])
        elif isinstance(node, Defined):
            keys.add(node.name.path[0])
        elif isinstance(node, ListExpr):
            for item in node.items:
                _walk(item)
        elif isinstance(node, Not):
            _walk(node.operand)
        elif isinstance(node, (BoolOp, Compare)):
            _walk(node.left)
            _walk(node.right)

    _walk(parse_condition(expression))
    return keys
