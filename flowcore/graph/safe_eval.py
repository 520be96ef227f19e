"""
Sandboxed expression evaluation for conditions.

Expressions are parsed once into a Python AST and interpreted node by node.
Only a small whitelist of node types is accepted: literals, names bound in
the context, attribute/subscript lookups, comparisons, boolean logic, unary
``+``/``-``/``not`` and ``+ - * / %`` (``*`` and ``%`` on numbers only).
Calls, lambdas, comprehensions and dunder access are rejected at parse
time, so nothing reachable from an expression can run code.

JavaScript spellings produced by the graph editor are accepted:

    {{input.total}} > 100 && {{input.status}} === "paid"

becomes ``... > 100 and ... == "paid"`` before parsing, and ``true``,
``false``, ``null`` and ``undefined`` are predefined names.
"""

import ast
import operator as op
import re
from functools import lru_cache
from typing import Any


def _numeric(symbol: str, func):
    """Wrap a binary operator so it accepts only int and float operands."""

    def apply(left: Any, right: Any) -> Any:
        if not isinstance(left, (int, float)) or not isinstance(right, (int, float)):
            raise TypeError(
                f"unsupported operand types for {symbol}: "
                f"'{type(left).__name__}' and '{type(right).__name__}'"
            )
        return func(left, right)

    return apply


_BINOPS = {
    ast.Add: op.add,
    ast.Sub: op.sub,
    ast.Mult: _numeric("*", op.mul),
    ast.Div: op.truediv,
    ast.Mod: _numeric("%", op.mod),
}

_UNARYOPS = {
    ast.UAdd: op.pos,
    ast.USub: op.neg,
    ast.Not: op.not_,
}

_CMPOPS = {
    ast.Eq: op.eq,
    ast.NotEq: op.ne,
    ast.Lt: op.lt,
    ast.LtE: op.le,
    ast.Gt: op.gt,
    ast.GtE: op.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
    ast.Is: op.is_,
    ast.IsNot: op.is_not,
}

_ALLOWED_NODES = (
    ast.Expression,
    ast.Constant,
    ast.Name,
    ast.Load,
    ast.List,
    ast.Tuple,
    ast.Dict,
    ast.Attribute,
    ast.Subscript,
    ast.Slice,
    ast.Compare,
    ast.BoolOp,
    ast.And,
    ast.Or,
    ast.UnaryOp,
    ast.BinOp,
    *_BINOPS,
    *_UNARYOPS,
    *_CMPOPS,
)

JS_LITERALS: dict[str, Any] = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
    "True": True,
    "False": False,
    "None": None,
}

# Quoted strings are copied through untouched while operators are rewritten
_STRING_RE = re.compile(r"""("(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')""")
_JS_OPERATORS = (
    (re.compile(r"===|!=="), lambda m: "==" if m.group(0) == "===" else "!="),
    (re.compile(r"&&"), lambda m: " and "),
    (re.compile(r"\|\|"), lambda m: " or "),
    (re.compile(r"!(?!=)"), lambda m: " not "),
)


class UnsafeExpressionError(ValueError):
    """The expression uses a construct outside the whitelist."""


def translate_js(expression: str) -> str:
    """Rewrite JavaScript operators to Python ones outside string literals."""
    parts = _STRING_RE.split(expression)
    for i in range(0, len(parts), 2):
        segment = parts[i]
        for pattern, repl in _JS_OPERATORS:
            segment = pattern.sub(repl, segment)
        parts[i] = segment
    return "".join(parts).strip()


@lru_cache(maxsize=512)
def parse_expression(expression: str) -> ast.Expression:
    """
    Parse and whitelist-check an expression.

    Raises:
        SyntaxError: If the translated expression is not valid Python
        UnsafeExpressionError: If it contains a disallowed construct
    """
    tree = ast.parse(translate_js(expression), mode="eval")
    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            raise UnsafeExpressionError(f"Disallowed expression element: {type(node).__name__}")
        if isinstance(node, ast.Name) and node.id.startswith("__"):
            raise UnsafeExpressionError(f"Access to '{node.id}' is not allowed")
        if isinstance(node, ast.Attribute) and node.attr.startswith("_"):
            raise UnsafeExpressionError(f"Access to '.{node.attr}' is not allowed")
    return tree


def safe_eval(expression: str, context: dict[str, Any] | None = None) -> Any:
    """
    Evaluate an expression against a context of names.

    Args:
        expression: Python or JavaScript-flavoured expression
        context: Names available to the expression

    Returns:
        The value of the expression

    Raises:
        SyntaxError, UnsafeExpressionError: On a rejected expression
        NameError, KeyError, TypeError, ...: On evaluation failures
    """
    if not isinstance(expression, str):
        raise TypeError("expression must be a string")
    tree = parse_expression(expression)
    names = {**JS_LITERALS, **(context or {})}
    return _eval(tree.body, names)


def _eval(node: ast.AST, names: dict[str, Any]) -> Any:
    if isinstance(node, ast.Constant):
        return node.value

    if isinstance(node, ast.Name):
        if node.id not in names:
            raise NameError(f"name '{node.id}' is not defined")
        return names[node.id]

    if isinstance(node, ast.List):
        return [_eval(e, names) for e in node.elts]

    if isinstance(node, ast.Tuple):
        return tuple(_eval(e, names) for e in node.elts)

    if isinstance(node, ast.Dict):
        return {
            _eval(k, names): _eval(v, names)
            for k, v in zip(node.keys, node.values, strict=True)
            if k is not None
        }

    if isinstance(node, ast.Attribute):
        return _lookup_attr(_eval(node.value, names), node.attr)

    if isinstance(node, ast.Subscript):
        container = _eval(node.value, names)
        if isinstance(node.slice, ast.Slice):
            lower = _eval(node.slice.lower, names) if node.slice.lower else None
            upper = _eval(node.slice.upper, names) if node.slice.upper else None
            return container[lower:upper]
        return container[_eval(node.slice, names)]

    if isinstance(node, ast.BoolOp):
        if isinstance(node.op, ast.And):
            value: Any = True
            for operand in node.values:
                value = _eval(operand, names)
                if not value:
                    return value
            return value
        value = False
        for operand in node.values:
            value = _eval(operand, names)
            if value:
                return value
        return value

    if isinstance(node, ast.UnaryOp):
        return _UNARYOPS[type(node.op)](_eval(node.operand, names))

    if isinstance(node, ast.BinOp):
        return _BINOPS[type(node.op)](_eval(node.left, names), _eval(node.right, names))

    if isinstance(node, ast.Compare):
        left = _eval(node.left, names)
        for cmp_op, comparator in zip(node.ops, node.comparators, strict=True):
            right = _eval(comparator, names)
            if not _CMPOPS[type(cmp_op)](left, right):
                return False
            left = right
        return True

    raise UnsafeExpressionError(f"Disallowed expression element: {type(node).__name__}")


def _lookup_attr(value: Any, attr: str) -> Any:
    """Dotted access: dict keys first, then ``length``, then plain attributes."""
    if isinstance(value, dict):
        if attr in value:
            return value[attr]
        raise KeyError(attr)
    if attr == "length" and isinstance(value, (list, tuple, str)):
        return len(value)
    if isinstance(value, (list, tuple, str, int, float, bool)) or value is None:
        raise AttributeError(f"'{type(value).__name__}' has no attribute '{attr}'")
    return getattr(value, attr)
