"""api-cli filters - JSONPath selection over parsed response bodies."""

from __future__ import annotations

import re
from typing import Any

from api_cli.errors import ConfigurationError

# ---------------------------------------------------------------------------
# Segment types returned by parse_json_path, as (kind, arg) tuples:
#   ("names", [str, ...])          → dict keys            .a  ['a','b']
#   ("indices", [int, ...])        → list indices         [0]  [-1]  [0,2]
#   ("slice", (start, stop, step)) → Python-style slice   [1:3]  [::2]
#   ("wildcard", None)             → every child          .*  [*]
#   ("filter", expr)               → children matching    [?(@.price < 10 && @.isbn)]
#   ("descend", segment)           → segment applied to every descendant  ..a
#
# Filter expressions:
#   ("cmp", path, op, value)       → @.path, or @.path OP literal (op None = exists)
#   ("and", [expr, ...])           → &&
#   ("or", [expr, ...])            → ||, binds looser than &&
# ---------------------------------------------------------------------------

_INT_RE = re.compile(r"-?\d+")
_NUMBER_RE = re.compile(r"-?\d+(\.\d+)?([eE][+-]?\d+)?")
_DOT_NAME_RE = re.compile(r"[^.\[\]\s()=!<>&|]+")
_OPERATORS = ("==", "!=", "<=", ">=", "<", ">")


class _Parser:
    """Recursive-descent parser for one JSONPath expression."""

    def __init__(self, expr: str):
        self.expr = expr
        self.pos = 0

    # ── low-level helpers ──

    def error(self, message: str) -> ConfigurationError:
        return ConfigurationError(
            f"Invalid JSON path {self.expr!r} at position {self.pos}: {message}",
        )

    def peek(self, s: str) -> bool:
        return self.expr.startswith(s, self.pos)

    def eat(self, s: str) -> bool:
        if self.peek(s):
            self.pos += len(s)
            return True
        return False

    def expect(self, s: str) -> None:
        if not self.eat(s):
            raise self.error(f"expected {s!r}")

    def skip_ws(self) -> None:
        while self.pos < len(self.expr) and self.expr[self.pos].isspace():
            self.pos += 1

    def at_end(self) -> bool:
        return self.pos >= len(self.expr)

    def match(self, pattern: re.Pattern) -> str | None:
        m = pattern.match(self.expr, self.pos)
        if not m:
            return None
        self.pos = m.end()
        return m.group(0)

    # ── grammar ──

    def parse(self) -> list[tuple]:
        self.skip_ws()
        self.expect("$")
        segments = self.segments(stop_at_operator=False)
        self.skip_ws()
        if not self.at_end():
            raise self.error("unexpected trailing characters")
        return segments

    def segments(self, stop_at_operator: bool) -> list[tuple]:
        segments: list[tuple] = []
        while not self.at_end():
            if self.eat(".."):
                if self.peek("["):
                    segments.append(("descend", self.bracket()))
                else:
                    segments.append(("descend", self.dot_member()))
            elif self.eat("."):
                segments.append(self.dot_member())
            elif self.peek("["):
                segments.append(self.bracket())
            elif stop_at_operator:
                break
            else:
                raise self.error("expected '.', '..' or '['")
        return segments

    def dot_member(self) -> tuple:
        if self.eat("*"):
            return ("wildcard", None)
        name = self.match(_DOT_NAME_RE)
        if name is None:
            raise self.error("expected a member name")
        return ("names", [name])

    def bracket(self) -> tuple:
        self.expect("[")
        self.skip_ws()
        if self.eat("*"):
            segment: tuple = ("wildcard", None)
        elif self.eat("?"):
            segment = self.filter()
        elif self.peek("'") or self.peek('"'):
            names = [self.quoted()]
            self.skip_ws()
            while self.eat(","):
                self.skip_ws()
                names.append(self.quoted())
                self.skip_ws()
            segment = ("names", names)
        else:
            segment = self.index_or_slice()
        self.skip_ws()
        self.expect("]")
        return segment

    def index_or_slice(self) -> tuple:
        parts: list[int | None] = []
        current = self.match(_INT_RE)
        self.skip_ws()
        if self.peek(":"):
            parts.append(int(current) if current is not None else None)
            while self.eat(":"):
                self.skip_ws()
                value = self.match(_INT_RE)
                parts.append(int(value) if value is not None else None)
                self.skip_ws()
            if len(parts) > 3:
                raise self.error("too many ':' in slice")
            start, stop, step = (parts + [None, None])[:3]
            if step == 0:
                raise self.error("slice step cannot be zero")
            return ("slice", (start, stop, step))

        if current is None:
            raise self.error("expected an index, a slice, a quoted name, '*' or '?'")
        indices = [int(current)]
        while self.eat(","):
            self.skip_ws()
            value = self.match(_INT_RE)
            if value is None:
                raise self.error("expected an index")
            indices.append(int(value))
            self.skip_ws()
        return ("indices", indices)

    def quoted(self) -> str:
        quote = self.expr[self.pos] if not self.at_end() else ""
        if quote not in ("'", '"'):
            raise self.error("expected a quoted name")
        self.pos += 1
        chars: list[str] = []
        while not self.at_end():
            c = self.expr[self.pos]
            self.pos += 1
            if c == "\\" and not self.at_end():
                chars.append(self.expr[self.pos])
                self.pos += 1
            elif c == quote:
                return "".join(chars)
            else:
                chars.append(c)
        raise self.error("unterminated string")

    def filter(self) -> tuple:
        self.expect("(")
        expr = self.logic_or()
        self.skip_ws()
        self.expect(")")
        return ("filter", expr)

    def logic_or(self) -> tuple:
        items = [self.logic_and()]
        self.skip_ws()
        while self.eat("||"):
            items.append(self.logic_and())
            self.skip_ws()
        return items[0] if len(items) == 1 else ("or", items)

    def logic_and(self) -> tuple:
        items = [self.comparison()]
        self.skip_ws()
        while self.eat("&&"):
            items.append(self.comparison())
            self.skip_ws()
        return items[0] if len(items) == 1 else ("and", items)

    def comparison(self) -> tuple:
        self.skip_ws()
        if self.eat("("):
            expr = self.logic_or()
            self.skip_ws()
            self.expect(")")
            return expr
        self.expect("@")
        path = self.segments(stop_at_operator=True)
        self.skip_ws()
        op = None
        value: Any = None
        for candidate in _OPERATORS:
            if self.eat(candidate):
                op = candidate
                self.skip_ws()
                value = self.literal()
                break
        return ("cmp", path, op, value)

    def literal(self) -> Any:
        if self.peek("'") or self.peek('"'):
            return self.quoted()
        for word, value in (("true", True), ("false", False), ("null", None)):
            if self.eat(word):
                return value
        number = self.match(_NUMBER_RE)
        if number is None:
            raise self.error("expected a literal")
        return float(number) if any(c in number for c in ".eE") else int(number)


def parse_json_path(expr: str) -> list[tuple]:
    """Parse a JSONPath expression into segments.

    Supports:
      $.store.book          → names
      $['store']["book"]    → names (quoted, may contain dots)
      $.book[0], [-1]       → index (negative counts from the end)
      $.book[0,2]           → index union
      $.book[1:3], [::2]    → slice
      $.book[*], $.*        → wildcard
      $..author             → recursive descent
      $.book[?(@.isbn)]     → filter on existence
      $.book[?(@.price<10)] → filter on comparison (== != < <= > >=)
      $.book[?(@.a && (@.b || @.c))] → filters combined with && and ||

    Raises ConfigurationError when the expression is malformed.
    """
    if not isinstance(expr, str) or not expr.strip():
        raise ConfigurationError("Invalid JSON path: expression is empty")
    return _Parser(expr.strip()).parse()


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _children(node: Any) -> list[Any]:
    if isinstance(node, dict):
        return list(node.values())
    if isinstance(node, list):
        return list(node)
    return []


def _descendants(node: Any) -> list[Any]:
    """The node itself followed by all its descendants, in document order."""
    out = [node]
    for child in _children(node):
        out.extend(_descendants(child))
    return out


def _is_number(v: Any) -> bool:
    return isinstance(v, int | float) and not isinstance(v, bool)


def _compare(left: Any, op: str, right: Any) -> bool:
    if op == "==":
        return left == right and _is_number(left) == _is_number(right)
    if op == "!=":
        return not _compare(left, "==", right)
    comparable = (_is_number(left) and _is_number(right)) or (
        isinstance(left, str) and isinstance(right, str)
    )
    if not comparable:
        return False
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    if op == ">":
        return left > right
    return left >= right


def _matches_filter(node: Any, expr: tuple) -> bool:
    kind = expr[0]
    if kind == "and":
        return all(_matches_filter(node, e) for e in expr[1])
    if kind == "or":
        return any(_matches_filter(node, e) for e in expr[1])
    _, path, op, value = expr
    found = _evaluate(path, [node])
    if op is None:
        return bool(found)
    return any(_compare(f, op, value) for f in found)


def _apply(segment: tuple, nodes: list[Any]) -> list[Any]:
    kind, arg = segment
    out: list[Any] = []
    for node in nodes:
        if kind == "names":
            if isinstance(node, dict):
                out.extend(node[name] for name in arg if name in node)
        elif kind == "indices":
            if isinstance(node, list):
                out.extend(node[i] for i in arg if -len(node) <= i < len(node))
        elif kind == "slice":
            if isinstance(node, list):
                out.extend(node[slice(*arg)])
        elif kind == "wildcard":
            out.extend(_children(node))
        elif kind == "filter":
            out.extend(c for c in _children(node) if _matches_filter(c, arg))
        elif kind == "descend":
            for d in _descendants(node):
                out.extend(_apply(arg, [d]))
    return out


def _evaluate(segments: list[tuple], nodes: list[Any]) -> list[Any]:
    for segment in segments:
        nodes = _apply(segment, nodes)
    return nodes


def find_all(data: Any, expr: str) -> list[Any]:
    """Return every node of *data* selected by the JSONPath *expr*.

    Results are in document order; an expression that matches nothing
    returns an empty list.

    Examples:
        find_all({"a": [1, 2, 3]}, "$.a[1]")            → [2]
        find_all({"a": [{"id": 1}, {"id": 2}]}, "$.a[*].id") → [1, 2]
        find_all(doc, "$..name")                         → every "name" value
    """
    return _evaluate(parse_json_path(expr), [data])
