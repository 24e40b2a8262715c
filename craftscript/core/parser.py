"""CraftScript parser — lark parse tree → immutable AST.

Responsibilities
----------------
- Build the LALR parser from grammar.CRAFTSCRIPT_GRAMMAR once (memoized)
- Convert lark parse errors to ScriptSyntaxError with 1-based line/column
- Transform the parse tree into ast_nodes dataclasses
- Reject reserved keywords used as names and duplicate macros in one block

``parse`` is a pure function of its input text: it either returns a whole
Program or raises, never a partial tree.
"""
from __future__ import annotations

import re
from functools import lru_cache

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import (
    UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken,
    VisitError,
)
from lark.lexer import PatternStr

from craftscript.core.ast_nodes import (
    AssertStmt, AssignStmt, BinaryExpr, Block, BlockQuery, BooleanLiteral,
    CommandStmt, EmptyStmt, Identifier, IfStmt, LetStmt, LogicalExpr,
    MacroDecl, NamedArg, NumberLiteral, Param, PredicateCall, Program,
    RepeatStmt, Selector, SelTerm, SourceLocation, StringLiteral, UnaryExpr,
    Waypoint, WhileStmt, World,
)
from craftscript.core.constants import KEYWORDS
from craftscript.core.errors import ScriptSyntaxError
from craftscript.core.grammar import CRAFTSCRIPT_GRAMMAR

_SEL_TERM_RE = re.compile(r"([FfBbRrLlUuDd])(-?\d+)?")
_ESCAPE_RE   = re.compile(r"\\(.)")
_ESCAPES     = {"n": "\n", "t": "\t", '"': '"', "\\": "\\"}

_MAX_EXPECTED_SHOWN = 8


# ---------------------------------------------------------------------------
# Parser construction
# ---------------------------------------------------------------------------

@lru_cache(maxsize=None)
def get_parser() -> Lark:
    """Return the shared LALR parser (built on first use)."""
    return Lark(
        CRAFTSCRIPT_GRAMMAR,
        parser="lalr",
        propagate_positions=True,
        maybe_placeholders=True,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _loc(meta) -> SourceLocation | None:
    if getattr(meta, "empty", True):
        return None
    return SourceLocation(meta.line, meta.column)


def _declared(tok: Token) -> str:
    """Return the identifier text, rejecting reserved keywords."""
    name = str(tok)
    if name in KEYWORDS:
        raise ScriptSyntaxError(
            f"{name!r} is a reserved keyword and cannot be used as a name",
            tok.line, tok.column,
        )
    return name


def _unquote(tok: Token) -> str:
    body = str(tok)[1:-1]
    return _ESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


def _check_unique_macros(statements) -> None:
    seen: set[str] = set()
    for st in statements:
        if isinstance(st, MacroDecl):
            if st.name in seen:
                line, col = (st.loc.line, st.loc.column) if st.loc else (0, 0)
                raise ScriptSyntaxError(
                    f"macro {st.name!r} is already declared in this block", line, col
                )
            seen.add(st.name)


def _end_position(text: str) -> tuple[int, int]:
    lines = text.split("\n")
    return len(lines), len(lines[-1]) + 1


def _describe_expected(names) -> str:
    parser = get_parser()
    shown: list[str] = []
    for name in sorted(names):
        try:
            term = parser.get_terminal(name)
        except KeyError:
            continue
        if isinstance(term.pattern, PatternStr):
            shown.append(repr(term.pattern.value))
        else:
            shown.append(name.lower())
    if not shown:
        return ""
    if len(shown) > _MAX_EXPECTED_SHOWN:
        shown = shown[:_MAX_EXPECTED_SHOWN] + ["…"]
    return "; expected " + ", ".join(shown)


def _syntax_error(exc: UnexpectedInput, text: str) -> ScriptSyntaxError:
    if isinstance(exc, UnexpectedEOF) or (
        isinstance(exc, UnexpectedToken) and exc.token.type == "$END"
    ):
        line, column = _end_position(text)
        expected = getattr(exc, "expected", None) or ()
        return ScriptSyntaxError(
            "unexpected end of input" + _describe_expected(expected), line, column
        )
    if isinstance(exc, UnexpectedCharacters):
        return ScriptSyntaxError(
            f"unexpected character {exc.char!r}" + _describe_expected(exc.allowed or ()),
            exc.line, exc.column,
        )
    if isinstance(exc, UnexpectedToken):
        return ScriptSyntaxError(
            f"unexpected {str(exc.token)!r}" + _describe_expected(exc.expected),
            exc.line, exc.column,
        )
    return ScriptSyntaxError(str(exc), max(exc.line, 1), max(exc.column, 1))


# ---------------------------------------------------------------------------
# Tree → AST
# ---------------------------------------------------------------------------

@v_args(meta=True, inline=True)
class _ToAst(Transformer):

    # --- Program / blocks ---

    def start(self, meta, *statements):
        _check_unique_macros(statements)
        return Program(tuple(statements), loc=_loc(meta))

    def block(self, meta, *statements):
        _check_unique_macros(statements)
        return Block(tuple(statements), loc=_loc(meta))

    def empty_stmt(self, meta):
        return EmptyStmt(loc=_loc(meta))

    # --- Declarations ---

    def macro_decl(self, meta, name, params, body):
        return MacroDecl(_declared(name), params or (), body, loc=_loc(meta))

    def params(self, meta, *params):
        names = [p.name for p in params]
        for p in params:
            if names.count(p.name) > 1:
                raise ScriptSyntaxError(
                    f"duplicate parameter {p.name!r}", p.loc.line, p.loc.column
                )
        return tuple(params)

    def param(self, meta, param_type, name):
        return Param(_declared(name), str(param_type), loc=_loc(meta))

    def let_stmt(self, meta, name, value):
        return LetStmt(_declared(name), value, loc=_loc(meta))

    def assign_stmt(self, meta, name, value):
        return AssignStmt(_declared(name), value, loc=_loc(meta))

    # --- Control flow ---

    def if_stmt(self, meta, test, consequent, alternate):
        return IfStmt(test, consequent, alternate, loc=_loc(meta))

    def else_if(self, meta, nested):
        return Block((nested,), loc=nested.loc)

    def repeat_stmt(self, meta, count, body):
        return RepeatStmt(body, count=count, loc=_loc(meta))

    def while_stmt(self, meta, test, body):
        return WhileStmt(test, body, loc=_loc(meta))

    def assert_stmt(self, meta, test, message):
        msg = _unquote(message) if message is not None else None
        return AssertStmt(test, msg, loc=_loc(meta))

    # --- Commands and arguments ---

    def command_stmt(self, meta, name, args):
        return CommandStmt(_declared(name), args or (), loc=_loc(meta))

    def arglist(self, meta, *args):
        return tuple(args)

    def named_arg(self, meta, key, value):
        return NamedArg(key, value, loc=_loc(meta))

    def arg_key(self, meta, tok):
        return str(tok)

    # --- Operators ---

    def or_op(self, meta, left, right):
        return LogicalExpr("||", left, right, loc=_loc(meta))

    def and_op(self, meta, left, right):
        return LogicalExpr("&&", left, right, loc=_loc(meta))

    def not_op(self, meta, operand):
        return UnaryExpr("!", operand, loc=_loc(meta))

    def neg(self, meta, operand):
        if isinstance(operand, NumberLiteral):
            return NumberLiteral(-operand.value, loc=_loc(meta))
        return UnaryExpr("-", operand, loc=_loc(meta))

    def compare_op(self, meta, left, op, right):
        return BinaryExpr(str(op), left, right, loc=_loc(meta))

    def add(self, meta, left, right):
        return BinaryExpr("+", left, right, loc=_loc(meta))

    def sub(self, meta, left, right):
        return BinaryExpr("-", left, right, loc=_loc(meta))

    def mul(self, meta, left, right):
        return BinaryExpr("*", left, right, loc=_loc(meta))

    def div(self, meta, left, right):
        return BinaryExpr("/", left, right, loc=_loc(meta))

    def mod(self, meta, left, right):
        return BinaryExpr("%", left, right, loc=_loc(meta))

    # --- Primaries ---

    def predicate_call(self, meta, name, args):
        return PredicateCall(_declared(name), args or (), loc=_loc(meta))

    def selector(self, meta, tok):
        text  = str(tok)
        loc   = _loc(meta)
        suffix = text[-1] if text[-1] in "^_" else ""
        body  = text[:-1] if suffix else text
        terms = [
            SelTerm(m.group(1).lower(), int(m.group(2)) if m.group(2) else 1, loc=loc)
            for m in _SEL_TERM_RE.finditer(body)
        ]
        if suffix:
            terms.append(SelTerm("u" if suffix == "^" else "d", 1, loc=loc))
        return Selector(tuple(terms), loc=loc)

    def world(self, meta, x, y, z):
        return World(x, y, z, loc=_loc(meta))

    def waypoint(self, meta, name):
        return Waypoint(_unquote(name), loc=_loc(meta))

    def block_query(self, meta, *pairs):
        seen: set[str] = set()
        for p in pairs:
            if p.key in seen:
                raise ScriptSyntaxError(
                    f"duplicate block query key {p.key!r}", p.loc.line, p.loc.column
                )
            seen.add(p.key)
        return BlockQuery(tuple((p.key, p.value) for p in pairs), loc=_loc(meta))

    def number(self, meta, tok):
        text = str(tok)
        value = float(text) if "." in text else int(text)
        return NumberLiteral(value, loc=_loc(meta))

    def string(self, meta, tok):
        return StringLiteral(_unquote(tok), loc=_loc(meta))

    def true(self, meta):
        return BooleanLiteral(True, loc=_loc(meta))

    def false(self, meta):
        return BooleanLiteral(False, loc=_loc(meta))

    def var(self, meta, tok):
        return Identifier(_declared(tok), loc=_loc(meta))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse(text: str) -> Program:
    """Compile script text to a Program.

    Raises ScriptSyntaxError (with 1-based line/column) on malformed input.
    """
    try:
        tree = get_parser().parse(text)
    except UnexpectedInput as exc:
        raise _syntax_error(exc, text) from None
    try:
        return _ToAst().transform(tree)
    except VisitError as exc:
        if isinstance(exc.orig_exc, ScriptSyntaxError):
            raise exc.orig_exc from None
        raise
