"""Tree-walking evaluator for parsed formula expressions.

Names and functions both resolve through a single *scope* mapping, so
the caller decides what ``pi`` or ``ceiling`` mean by what it binds.
"""

from __future__ import annotations

import math
from typing import Any, Callable

from lark import Token, Tree

from stagecalc.formulas.errors import (
    FormulaError,
    FormulaFunctionError,
    FormulaRefError,
)


def ceiling(x: float, sig: float) -> float:
    """Round *x* up to the nearest integer multiple of *sig*.

    Returns NaN when *sig* is zero or either argument is non-finite.
    """
    if not math.isfinite(x) or not math.isfinite(sig) or sig == 0:
        return math.nan
    return float(math.ceil(x / sig) * sig)


def default_functions() -> dict[str, Any]:
    """Bindings every evaluation scope starts with."""
    return {"ceiling": ceiling, "pi": math.pi}


def evaluate_expression(tree: Tree, scope: dict[str, Any]) -> Any:
    """Evaluate a parsed expression tree against *scope*.

    Args:
        tree: Parse tree from ``parse_expression()``.
        scope: Mapping of names to numbers or callables.

    Returns:
        The computed value.

    Arithmetic follows IEEE doubles: ``x/0`` is a signed infinity, ``0/0``
    is NaN and an overflowing power saturates to infinity.

    Raises:
        FormulaError: Unknown name or function, or a bare cell reference.
    """
    return _eval(tree, scope)


def _eval(node: Tree | Token, scope: dict[str, Any]) -> Any:
    if isinstance(node, Token):
        if node.type == "NUMBER":
            return _parse_number(node)
        raise FormulaError(f"Unexpected token: {node!r}")

    rule = node.data

    if rule == "start":
        return _eval(node.children[0], scope)

    # Arithmetic
    if rule == "add":
        return _eval(node.children[0], scope) + _eval(node.children[1], scope)
    if rule == "sub":
        return _eval(node.children[0], scope) - _eval(node.children[1], scope)
    if rule == "mul":
        return _eval(node.children[0], scope) * _eval(node.children[1], scope)
    if rule == "div":
        return _divide(_eval(node.children[0], scope), _eval(node.children[1], scope))
    if rule == "neg":
        return -_eval(node.children[0], scope)
    if rule == "pos":
        return _eval(node.children[0], scope)
    if rule == "pow":
        return _power(_eval(node.children[0], scope), _eval(node.children[1], scope))

    if rule == "number":
        return _parse_number(node.children[0])

    # Cell references must be rewritten to scope names before evaluation
    if rule == "cell_ref":
        raise FormulaRefError(str(node.children[0]), cell=True)

    if rule == "ref":
        name = str(node.children[0])
        if name not in scope or callable(scope[name]):
            raise FormulaRefError(name)
        return scope[name]

    if rule == "func_call":
        return _eval_func(node, scope)

    raise FormulaError(f"Unknown node type: {rule}")


def _parse_number(token: Token) -> float:
    """Parse a NUMBER token; every literal is a double."""
    return float(str(token))


def _odd_integer(x: float) -> bool:
    return float(x).is_integer() and x % 2 == 1


def _divide(left: float, right: float) -> float:
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    return left / right


def _power(base: float, exp: float) -> Any:
    try:
        return base ** exp
    except OverflowError:
        return -math.inf if base < 0 and _odd_integer(exp) else math.inf
    except ZeroDivisionError:
        # Zero to a negative power
        return -math.inf if math.copysign(1.0, base) < 0 and _odd_integer(exp) else math.inf


def _eval_func(node: Tree, scope: dict[str, Any]) -> Any:
    """Evaluate a function call node."""
    func_name = str(node.children[0])
    args_node = node.children[1]
    raw_args = args_node.children if args_node.children else []

    fn: Callable[..., Any] | None = scope.get(func_name)
    if fn is None or not callable(fn):
        raise FormulaFunctionError(func_name)

    args = [_eval(arg, scope) for arg in raw_args]
    try:
        return fn(*args)
    except TypeError as exc:
        raise FormulaFunctionError(
            func_name, f"{func_name}() cannot take {len(args)} argument(s): {exc}"
        ) from exc
