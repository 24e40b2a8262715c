"""AST node dataclasses for CraftScript.

Each node type represents one syntactic construct.  The AST is built by
parser.py and executed by runner.py.  Nodes are frozen and hold tuples, so
a parsed Program can be shared between runs.

Statements
----------
MacroDecl    — macro name(int n, string id) { … }
Block        — { … }  (lexical scope)
IfStmt       — if (test) { … } else { … }
RepeatStmt   — repeat (count) { … }  or a bound range loop
WhileStmt    — while (test) { … }
AssertStmt   — assert(test, "message");
LetStmt      — let name = value;
AssignStmt   — name = value;
CommandStmt  — name(arg, key: arg);
EmptyStmt    — ;

Expressions
-----------
LogicalExpr, UnaryExpr, BinaryExpr, PredicateCall, Selector (of SelTerm),
World, Waypoint, BlockQuery, NumberLiteral, StringLiteral, BooleanLiteral,
Identifier
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class SourceLocation:
    """1-based line/column of the first token of a node."""
    line:   int
    column: int

    def to_dict(self) -> dict[str, int]:
        return {"line": self.line, "column": self.column}


def _loc() -> Any:
    # Locations never take part in equality so hand-built trees compare
    # equal to parsed ones.
    return field(default=None, compare=False, repr=False)


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NumberLiteral:
    value: int | float
    loc:   SourceLocation | None = _loc()


@dataclass(frozen=True)
class StringLiteral:
    value: str
    loc:   SourceLocation | None = _loc()


@dataclass(frozen=True)
class BooleanLiteral:
    value: bool
    loc:   SourceLocation | None = _loc()


@dataclass(frozen=True)
class Identifier:
    name: str
    loc:  SourceLocation | None = _loc()


@dataclass(frozen=True)
class LogicalExpr:
    """``&&`` / ``||`` — short-circuited by the evaluator, not the grammar."""
    op:    str
    left:  "Expr"
    right: "Expr"
    loc:   SourceLocation | None = _loc()


@dataclass(frozen=True)
class UnaryExpr:
    """``!`` (logical not) or ``-`` (negation)."""
    op:      str
    operand: "Expr"
    loc:     SourceLocation | None = _loc()


@dataclass(frozen=True)
class BinaryExpr:
    """Arithmetic (``+ - * / %``) and comparison (``== != < <= > >=``)."""
    op:    str
    left:  "Expr"
    right: "Expr"
    loc:   SourceLocation | None = _loc()


@dataclass(frozen=True)
class NamedArg:
    key:   str
    value: "Expr"
    loc:   SourceLocation | None = _loc()


@dataclass(frozen=True)
class PredicateCall:
    """``name(args)`` in expression position — a boolean-returning call."""
    name: str
    args: tuple["Arg", ...] = ()
    loc:  SourceLocation | None = _loc()


@dataclass(frozen=True)
class SelTerm:
    axis:      str          # one of f b r l u d
    magnitude: int = 1
    loc:       SourceLocation | None = _loc()


@dataclass(frozen=True)
class Selector:
    """Egocentric offset: vector sum of its terms under the current heading."""
    terms: tuple[SelTerm, ...]
    loc:   SourceLocation | None = _loc()


@dataclass(frozen=True)
class World:
    """``world(x, y, z)`` — absolute coordinates."""
    x:   "Expr"
    y:   "Expr"
    z:   "Expr"
    loc: SourceLocation | None = _loc()


@dataclass(frozen=True)
class Waypoint:
    """``waypoint("name")`` — resolved through the waypoint collaborator."""
    name: str
    loc:  SourceLocation | None = _loc()


@dataclass(frozen=True)
class BlockQuery:
    """``block(key: expr, …)`` — a predicate over block state."""
    query: tuple[tuple[str, "Expr"], ...]
    loc:   SourceLocation | None = _loc()

    def as_dict(self) -> dict[str, "Expr"]:
        return dict(self.query)


Expr = Union[
    LogicalExpr, UnaryExpr, BinaryExpr, PredicateCall, Selector, World,
    Waypoint, BlockQuery, NumberLiteral, StringLiteral, BooleanLiteral,
    Identifier,
]
Arg = Union[NamedArg, Expr]


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EmptyStmt:
    loc: SourceLocation | None = _loc()


@dataclass(frozen=True)
class Block:
    body: tuple["Statement", ...] = ()
    loc:  SourceLocation | None = _loc()


@dataclass(frozen=True)
class Param:
    name:       str
    param_type: str          # int | bool | string
    loc:        SourceLocation | None = _loc()


@dataclass(frozen=True)
class MacroDecl:
    name:   str
    params: tuple[Param, ...]
    body:   Block
    loc:    SourceLocation | None = _loc()


@dataclass(frozen=True)
class IfStmt:
    test:       Expr
    consequent: Block
    alternate:  Block | None = None
    loc:        SourceLocation | None = _loc()


@dataclass(frozen=True)
class RepeatStmt:
    """Fixed count (``count``) or bound range (``var_name``/``start``/``end``/``step``).

    The grammar only produces the fixed-count shape; the range shape is
    executed over ``[start, end)``.
    """
    body:     Block
    count:    Expr | None = None
    var_name: str | None  = None
    start:    Expr | None = None
    end:      Expr | None = None
    step:     Expr | None = None
    loc:      SourceLocation | None = _loc()

    def __post_init__(self) -> None:
        ranged = self.var_name is not None or self.start is not None or self.end is not None
        if self.count is not None and ranged:
            raise ValueError("RepeatStmt: count and range forms are exclusive")
        if self.count is None:
            if not ranged:
                raise ValueError("RepeatStmt: needs a count or a range")
            if self.var_name is None or self.start is None or self.end is None:
                raise ValueError("RepeatStmt: range form needs var_name, start and end")
        elif self.step is not None:
            raise ValueError("RepeatStmt: step only applies to the range form")

    @property
    def is_range(self) -> bool:
        return self.count is None


@dataclass(frozen=True)
class WhileStmt:
    test: Expr
    body: Block
    loc:  SourceLocation | None = _loc()


@dataclass(frozen=True)
class AssertStmt:
    test:    Expr
    message: str | None = None
    loc:     SourceLocation | None = _loc()


@dataclass(frozen=True)
class LetStmt:
    name:  str
    value: Expr
    loc:   SourceLocation | None = _loc()


@dataclass(frozen=True)
class AssignStmt:
    name:  str
    value: Expr
    loc:   SourceLocation | None = _loc()


@dataclass(frozen=True)
class CommandStmt:
    """The atomic-operation node — dispatched by name with resolved args."""
    name: str
    args: tuple[Arg, ...] = ()
    loc:  SourceLocation | None = _loc()

    @property
    def positional(self) -> tuple[Expr, ...]:
        return tuple(a for a in self.args if not isinstance(a, NamedArg))

    @property
    def named(self) -> tuple[NamedArg, ...]:
        return tuple(a for a in self.args if isinstance(a, NamedArg))


@dataclass(frozen=True)
class Program:
    body: tuple["Statement", ...] = ()
    loc:  SourceLocation | None = _loc()


# Convenience union type (for type hints only; use isinstance() at runtime)
Statement = Union[
    MacroDecl, Block, IfStmt, RepeatStmt, WhileStmt, AssertStmt,
    LetStmt, AssignStmt, CommandStmt, EmptyStmt,
]


def iter_commands(body: tuple[Statement, ...] | list[Statement]):
    """Yield every CommandStmt in source order, descending into blocks."""
    for node in body:
        if isinstance(node, CommandStmt):
            yield node
        elif isinstance(node, Block):
            yield from iter_commands(node.body)
        elif isinstance(node, IfStmt):
            yield from iter_commands(node.consequent.body)
            if node.alternate is not None:
                yield from iter_commands(node.alternate.body)
        elif isinstance(node, (RepeatStmt, WhileStmt, MacroDecl)):
            yield from iter_commands(node.body.body)
