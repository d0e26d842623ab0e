"""Embedded code: a Lark-parsed, capability-scoped expression language.

User code never reaches Python's own evaluator. The interpreter only sees
the variables it is handed, a fixed allow-list of functions and literal
values, and it bounds source size, exponents and sequence growth so one
expression cannot stall a generation pass.
"""

from __future__ import annotations

import math
from pathlib import Path as FilePath
from typing import Any, Callable, Mapping

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput, VisitError
from lark.visitors import Interpreter

from .errors import ExpressionError

MAX_SOURCE_LENGTH = 10_000
MAX_EXPONENT = 1_000
MAX_SEQUENCE_LENGTH = 100_000
MAX_TEMPLATE_DEPTH = 16

# Integers beyond this lose precision in the target language and become floats
_SAFE_INTEGER = 2 ** 53

# ---------------------------------------------------------------------------
# Grammar loading (cached)
# ---------------------------------------------------------------------------

_GRAMMAR_PATH = FilePath(__file__).parent / "expression.lark"
_lark_parser: Lark | None = None


def _get_parser() -> Lark:
    global _lark_parser
    if _lark_parser is None:
        grammar_text = _GRAMMAR_PATH.read_text(encoding="utf-8")
        _lark_parser = Lark(
            grammar_text,
            parser="lalr",
            maybe_placeholders=True,
        )
    return _lark_parser


# ---------------------------------------------------------------------------
# Value semantics
# ---------------------------------------------------------------------------

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_number(value: Any) -> float | int:
    if _is_number(value):
        return value
    if isinstance(value, bool):
        return int(value)
    if value is None:
        return 0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def _normalize(value: float | int) -> float | int:
    if isinstance(value, int) and abs(value) > _SAFE_INTEGER:
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    return value


def _truthy(value: Any) -> bool:
    if value is None or value is False:
        return False
    if _is_number(value):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def _format_number(value: float | int) -> str:
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def to_text(value: Any) -> str:
    """Text of a value inside an expression (``null`` spells itself)."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if _is_number(value):
        return _format_number(value)
    if isinstance(value, list):
        return ",".join("" if item is None else to_text(item) for item in value)
    return str(value)


def stringify(value: Any) -> str:
    """Text substituted for an evaluated result; null becomes empty."""
    if value is None:
        return ""
    return to_text(value)


def error_marker(exc: Exception) -> str:
    """Inline comment standing in for code that failed to evaluate."""
    message = " ".join(str(exc).split()).replace("*/", "* /")
    return f"/* Error evaluating code: {message} */"


def _check_length(value: Any) -> Any:
    if isinstance(value, (str, list)) and len(value) > MAX_SEQUENCE_LENGTH:
        raise ExpressionError(f"Result exceeds {MAX_SEQUENCE_LENGTH} items")
    return value


# ---------------------------------------------------------------------------
# Functions available to embedded code
# ---------------------------------------------------------------------------

def _fn_round(x: Any) -> float | int:
    n = _to_number(x)
    if isinstance(n, float) and (math.isnan(n) or math.isinf(n)):
        return n
    return math.floor(n + 0.5)


def _fn_join(items: Any, sep: Any = ",") -> str:
    if not isinstance(items, list):
        raise ExpressionError("join() expects an array")
    return _check_length(to_text(sep).join("" if i is None else to_text(i) for i in items))


def _fn_repeat(text: Any, times: Any) -> str:
    n = _to_number(times)
    if not _is_number(n) or math.isnan(n) or n < 0:
        raise ExpressionError("repeat() count must be a non-negative number")
    text = to_text(text)
    if len(text) * int(n) > MAX_SEQUENCE_LENGTH:
        raise ExpressionError(f"Result exceeds {MAX_SEQUENCE_LENGTH} items")
    return text * int(n)


def _fn_len(value: Any) -> int:
    if isinstance(value, (str, list)):
        return len(value)
    return len(to_text(value))


def _numeric(fn: Callable[..., Any]) -> Callable[..., Any]:
    return lambda *args: _normalize(fn(*(_to_number(a) for a in args)))


FUNCTIONS: dict[str, Callable[..., Any]] = {
    "String": lambda value="": to_text(value),
    "Number": lambda value=0: _to_number(value),
    "upper": lambda value: to_text(value).upper(),
    "lower": lambda value: to_text(value).lower(),
    "trim": lambda value: to_text(value).strip(),
    "len": _fn_len,
    "min": _numeric(lambda *a: min(a) if a else math.inf),
    "max": _numeric(lambda *a: max(a) if a else -math.inf),
    "abs": _numeric(abs),
    "floor": _numeric(lambda x: x if math.isnan(x) or math.isinf(x) else math.floor(x)),
    "ceil": _numeric(lambda x: x if math.isnan(x) or math.isinf(x) else math.ceil(x)),
    "round": _fn_round,
    "join": _fn_join,
    "repeat": _fn_repeat,
}


# ---------------------------------------------------------------------------
# Interpreter: parse tree -> value
# ---------------------------------------------------------------------------

class _Evaluator(Interpreter):
    """Evaluates an expression tree top-down so branches stay lazy."""

    def __init__(self, variables: Mapping[str, Any], depth: int = 0):
        self.variables = variables
        self.depth = depth

    def _eval(self, node: Any) -> Any:
        if isinstance(node, Tree):
            return self.visit(node)
        return node

    def _pair(self, tree: Tree) -> tuple[Any, Any]:
        left, right = tree.children
        return self._eval(left), self._eval(right)

    # --- Literals ---

    def number(self, tree):
        text = str(tree.children[0])
        if any(c in text for c in ".eE"):
            return float(text)
        return _normalize(int(text))

    def string(self, tree):
        return _unescape(str(tree.children[0])[1:-1])

    def template(self, tree):
        return self._render_template(str(tree.children[0])[1:-1])

    def true(self, tree):
        return True

    def false(self, tree):
        return False

    def null(self, tree):
        return None

    def array(self, tree):
        return _check_length(self._args(tree.children[0]))

    def var(self, tree):
        name = str(tree.children[0])
        if name not in self.variables:
            raise ExpressionError(f"{name} is not defined")
        return self.variables[name]

    # --- Logic ---

    def ternary(self, tree):
        cond, if_true, if_false = tree.children
        return self._eval(if_true) if _truthy(self._eval(cond)) else self._eval(if_false)

    def coalesce(self, tree):
        left = self._eval(tree.children[0])
        return left if left is not None else self._eval(tree.children[1])

    def or_op(self, tree):
        left = self._eval(tree.children[0])
        return left if _truthy(left) else self._eval(tree.children[1])

    def and_op(self, tree):
        left = self._eval(tree.children[0])
        return self._eval(tree.children[1]) if _truthy(left) else left

    def not_op(self, tree):
        return not _truthy(self._eval(tree.children[0]))

    # --- Comparison ---

    def strict_eq(self, tree):
        return _strict_equals(*self._pair(tree))

    def strict_ne(self, tree):
        return not _strict_equals(*self._pair(tree))

    def eq(self, tree):
        return _loose_equals(*self._pair(tree))

    def ne(self, tree):
        return not _loose_equals(*self._pair(tree))

    def lt(self, tree):
        return _compare(*self._pair(tree), lambda a, b: a < b)

    def le(self, tree):
        return _compare(*self._pair(tree), lambda a, b: a <= b)

    def gt(self, tree):
        return _compare(*self._pair(tree), lambda a, b: a > b)

    def ge(self, tree):
        return _compare(*self._pair(tree), lambda a, b: a >= b)

    # --- Arithmetic ---

    def add(self, tree):
        left, right = self._pair(tree)
        if isinstance(left, (str, list)) or isinstance(right, (str, list)):
            return _check_length(to_text(left) + to_text(right))
        return _normalize(_to_number(left) + _to_number(right))

    def sub(self, tree):
        left, right = self._pair(tree)
        return _normalize(_to_number(left) - _to_number(right))

    def mul(self, tree):
        left, right = self._pair(tree)
        return _normalize(_to_number(left) * _to_number(right))

    def div(self, tree):
        left, right = self._pair(tree)
        a, b = _to_number(left), _to_number(right)
        if b == 0:
            if a == 0 or math.isnan(a):
                return math.nan
            return math.copysign(math.inf, a) * math.copysign(1, b)
        result = a / b
        return int(result) if isinstance(a, int) and isinstance(b, int) and a % b == 0 else result

    def mod(self, tree):
        left, right = self._pair(tree)
        a, b = _to_number(left), _to_number(right)
        if b == 0 or math.isinf(a):
            return math.nan
        result = math.fmod(a, b)
        return int(result) if isinstance(a, int) and isinstance(b, int) else result

    def pow(self, tree):
        left, right = self._pair(tree)
        a, b = _to_number(left), _to_number(right)
        if _is_number(b) and not math.isnan(b) and abs(b) > MAX_EXPONENT:
            raise ExpressionError(f"Exponent {_format_number(b)} exceeds {MAX_EXPONENT}")
        try:
            result = a ** b
        except OverflowError:
            return math.inf
        except ZeroDivisionError:
            return math.inf
        if isinstance(result, complex):
            return math.nan
        return _normalize(result)

    def neg(self, tree):
        return _normalize(-_to_number(self._eval(tree.children[0])))

    def pos(self, tree):
        return _to_number(self._eval(tree.children[0]))

    # --- Access ---

    def index(self, tree):
        target, position = self._pair(tree)
        if not isinstance(target, (str, list)):
            raise ExpressionError(f"Cannot index {to_text(target)}")
        n = _to_number(position)
        if not _is_number(n) or math.isnan(n) or n != int(n) or not 0 <= n < len(target):
            return None
        return target[int(n)]

    def member(self, tree):
        target = self._eval(tree.children[0])
        name = str(tree.children[1])
        if name == "length" and isinstance(target, (str, list)):
            return len(target)
        raise ExpressionError(f"Property '{name}' is not accessible")

    def call(self, tree):
        name = str(tree.children[0])
        fn = FUNCTIONS.get(name)
        if fn is None:
            raise ExpressionError(f"{name} is not a function")
        args = self._args(tree.children[1])
        try:
            return fn(*args)
        except TypeError as exc:
            raise ExpressionError(f"Bad arguments for {name}(): {exc}") from exc

    def _args(self, node: Tree | None) -> list[Any]:
        if node is None:
            return []
        return [self._eval(child) for child in node.children]

    # --- Templates ---

    def _render_template(self, body: str) -> str:
        parts: list[str] = []
        i = 0
        while i < len(body):
            if body.startswith("${", i):
                end = _closing_brace(body, i + 2)
                if self.depth >= MAX_TEMPLATE_DEPTH:
                    raise ExpressionError("Template nesting too deep")
                inner = _parse(body[i + 2:end])
                parts.append(to_text(_Evaluator(self.variables, self.depth + 1).visit(inner)))
                i = end + 1
            elif body[i] == "\\" and i + 1 < len(body):
                parts.append(_ESCAPES.get(body[i + 1], body[i + 1]))
                i += 2
            else:
                parts.append(body[i])
                i += 1
        return _check_length("".join(parts))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}


def _unescape(text: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(text):
        if text[i] == "\\" and i + 1 < len(text):
            out.append(_ESCAPES.get(text[i + 1], text[i + 1]))
            i += 2
        else:
            out.append(text[i])
            i += 1
    return "".join(out)


def _closing_brace(body: str, start: int) -> int:
    depth = 1
    quote: str | None = None
    i = start
    while i < len(body):
        ch = body[i]
        if quote:
            if ch == "\\":
                i += 1
            elif ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    raise ExpressionError("Unterminated ${ in template")


def _strict_equals(a: Any, b: Any) -> bool:
    if _is_number(a) and _is_number(b):
        return a == b
    if type(a) is not type(b):
        return False
    return a == b


def _loose_equals(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    if isinstance(a, (str, bool, int, float)) and isinstance(b, (str, bool, int, float)):
        return _to_number(a) == _to_number(b)
    return a is b


def _compare(a: Any, b: Any, op: Callable[[Any, Any], bool]) -> bool:
    if isinstance(a, str) and isinstance(b, str):
        return op(a, b)
    x, y = _to_number(a), _to_number(b)
    if math.isnan(x) or math.isnan(y):
        return False
    return op(x, y)


def _parse(source: str) -> Tree:
    try:
        return _get_parser().parse(source)
    except UnexpectedInput as e:
        raise ExpressionError(
            f"Syntax error at {_describe_token(e)}",
            line=_position(e, "line"),
            column=_position(e, "column"),
        ) from e


def _position(e: UnexpectedInput, attr: str) -> int | None:
    # End-of-input errors carry a placeholder instead of a position.
    value = getattr(e, attr, None)
    return value if isinstance(value, int) and value > 0 else None


def _describe_token(e: UnexpectedInput) -> str:
    token = getattr(e, "token", None)
    if isinstance(token, Token):
        return "end of input" if token.type in ("$END", "<EOF>") else repr(str(token))
    char = getattr(e, "char", None)
    if char is not None:
        return repr(char)
    return "end of input"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def evaluate(code: Any, variables: Mapping[str, Any] | None = None) -> Any:
    """Evaluate embedded code with only ``variables`` in scope.

    Empty code evaluates to None. Raises ExpressionError on syntax errors,
    unknown names or exceeded limits.
    """
    if code is None:
        return None
    source = str(code)
    if not source.strip():
        return None
    if len(source) > MAX_SOURCE_LENGTH:
        raise ExpressionError(f"Code exceeds {MAX_SOURCE_LENGTH} characters")

    tree = _parse(source)
    try:
        return _Evaluator(dict(variables or {})).visit(tree)
    except VisitError as e:
        if isinstance(e.orig_exc, ExpressionError):
            raise e.orig_exc from None
        raise ExpressionError(str(e.orig_exc)) from e
    except RecursionError as e:
        raise ExpressionError("Expression nested too deeply") from e
    except (TypeError, ValueError, OverflowError) as e:
        raise ExpressionError(str(e)) from e
