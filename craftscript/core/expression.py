"""Expression evaluator.

Walks expression nodes and returns plain Python values:

  NumberLiteral / StringLiteral / BooleanLiteral  → int | float / str / bool
  Identifier                                      → current binding (ScopeError if none)
  ``&&`` ``||``                                   → bool, right side only evaluated when needed
  ``!``                                           → bool
  unary ``-`` and ``+ - * / %``                   → numbers (``+`` also joins strings)
  ``== !=``                                       → any values; bools never equal numbers
  ``< <= > >=``                                   → two numbers or two strings
  PredicateCall                                   → bool, via the runner's predicate hook
  Selector / World / Waypoint                     → Vec3
  BlockQuery                                      → BlockPredicate

Selectors read the actor's heading through ``context_fn`` every time they
are evaluated.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable

from craftscript.core.ast_nodes import (
    BinaryExpr, BlockQuery, BooleanLiteral, Identifier, LogicalExpr,
    NamedArg, NumberLiteral, PredicateCall, Selector, StringLiteral,
    UnaryExpr, Waypoint, World,
)
from craftscript.core.errors import EvaluationError
from craftscript.core.selector import HeadingContext, Resolver
from craftscript.core.variable_store import VariableStore

ContextFn   = Callable[[], HeadingContext]
# (name, positional values, named values, node) → truth value
PredicateFn = Callable[[str, tuple, dict, PredicateCall], Awaitable[bool]]


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def truthy(value: Any) -> bool:
    return bool(value)


def as_count(value: Any, what: str = "count") -> int:
    """Coerce an integral number to int; anything else is an EvaluationError."""
    if is_number(value):
        if isinstance(value, int):
            return value
        if value.is_integer():
            return int(value)
    raise EvaluationError(f"{what} must be an integer, got {value!r}")


def _type_name(value: Any) -> str:
    if isinstance(value, bool): return "bool"
    if is_number(value):        return "number"
    if isinstance(value, str):  return "string"
    return type(value).__name__


def to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _arith(op: str, left: Any, right: Any) -> Any:
    if op == "+" and (isinstance(left, str) or isinstance(right, str)):
        return to_text(left) + to_text(right)
    if not (is_number(left) and is_number(right)):
        raise EvaluationError(
            f"operator {op!r} needs numbers, got {_type_name(left)} and {_type_name(right)}"
        )
    if op == "+": return left + right
    if op == "-": return left - right
    if op == "*": return left * right
    if right == 0:
        raise EvaluationError("division by zero" if op == "/" else "modulo by zero")
    if op == "/":
        result = left / right
        return int(result) if result.is_integer() and isinstance(left, int) and isinstance(right, int) else result
    return left % right


def _compare(op: str, left: Any, right: Any) -> bool:
    if op in ("==", "!="):
        same = (
            isinstance(left, bool) == isinstance(right, bool)
            and left == right
        )
        return same if op == "==" else not same
    if not (
        (is_number(left) and is_number(right))
        or (isinstance(left, str) and isinstance(right, str))
    ):
        raise EvaluationError(
            f"cannot order {_type_name(left)} and {_type_name(right)} with {op!r}"
        )
    if op == "<":  return left < right
    if op == "<=": return left <= right
    if op == ">":  return left > right
    return left >= right


_ARITH_OPS   = frozenset({"+", "-", "*", "/", "%"})
_COMPARE_OPS = frozenset({"==", "!=", "<", "<=", ">", ">="})


class Evaluator:
    """Evaluates expressions against a VariableStore.

    Parameters
    ----------
    resolver : Resolver
        Spatial value resolution (selectors, waypoints, block queries).
    context_fn : callable
        Returns the actor's current HeadingContext.
    predicate_fn : async callable
        Answers ``name(args)`` predicate calls.
    """

    def __init__(
        self,
        resolver:     Resolver,
        context_fn:   ContextFn,
        predicate_fn: PredicateFn,
    ) -> None:
        self._resolver     = resolver
        self._context_fn   = context_fn
        self._predicate_fn = predicate_fn

    # ------------------------------------------------------------------

    async def evaluate(self, expr: Any, scope: VariableStore) -> Any:
        try:
            return await self._eval(expr, scope)
        except EvaluationError as exc:
            if exc.location is None:
                exc.location = getattr(expr, "loc", None)
            raise

    async def test(self, expr: Any, scope: VariableStore) -> bool:
        return truthy(await self.evaluate(expr, scope))

    async def evaluate_args(self, args, scope: VariableStore) -> tuple[tuple, dict]:
        """Split and evaluate a call's arguments into (positional, named)."""
        positional: list[Any] = []
        named: dict[str, Any] = {}
        for arg in args:
            if isinstance(arg, NamedArg):
                named[arg.key] = await self.evaluate(arg.value, scope)
            else:
                positional.append(await self.evaluate(arg, scope))
        return tuple(positional), named

    # ------------------------------------------------------------------

    async def _eval(self, expr: Any, scope: VariableStore) -> Any:
        if isinstance(expr, (NumberLiteral, StringLiteral, BooleanLiteral)):
            return expr.value

        if isinstance(expr, Identifier):
            return scope.get(expr.name)

        if isinstance(expr, LogicalExpr):
            left = truthy(await self._eval(expr.left, scope))
            if expr.op == "&&" and not left:
                return False
            if expr.op == "||" and left:
                return True
            return truthy(await self._eval(expr.right, scope))

        if isinstance(expr, UnaryExpr):
            value = await self._eval(expr.operand, scope)
            if expr.op == "!":
                return not truthy(value)
            if not is_number(value):
                raise EvaluationError(f"cannot negate {_type_name(value)}", location=expr.loc)
            return -value

        if isinstance(expr, BinaryExpr):
            left  = await self._eval(expr.left, scope)
            right = await self._eval(expr.right, scope)
            try:
                if expr.op in _ARITH_OPS:
                    return _arith(expr.op, left, right)
                if expr.op in _COMPARE_OPS:
                    return _compare(expr.op, left, right)
            except EvaluationError as exc:
                exc.location = exc.location or expr.loc
                raise
            raise EvaluationError(f"unknown operator {expr.op!r}", location=expr.loc)

        if isinstance(expr, PredicateCall):
            positional, named = await self.evaluate_args(expr.args, scope)
            return truthy(await self._predicate_fn(expr.name, positional, named, expr))

        if isinstance(expr, Selector):
            return self._resolver.resolve_selector(expr, self._context_fn())

        if isinstance(expr, World):
            return self._resolver.resolve_world(
                await self._eval(expr.x, scope),
                await self._eval(expr.y, scope),
                await self._eval(expr.z, scope),
            )

        if isinstance(expr, Waypoint):
            return self._resolver.resolve_waypoint(expr.name, expr.loc)

        if isinstance(expr, BlockQuery):
            query = {k: await self._eval(v, scope) for k, v in expr.query}
            return self._resolver.resolve_block_query(query)

        raise EvaluationError(f"cannot evaluate {type(expr).__name__}",
                              location=getattr(expr, "loc", None))
