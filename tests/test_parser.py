"""Tests for craftscript.core.parser — grammar, AST shape, syntax errors."""
import pytest

from craftscript.core.ast_nodes import (
    AssertStmt, AssignStmt, BinaryExpr, Block, BlockQuery, BooleanLiteral,
    CommandStmt, EmptyStmt, Identifier, IfStmt, LetStmt, LogicalExpr,
    MacroDecl, NamedArg, NumberLiteral, Param, PredicateCall, Program,
    RepeatStmt, Selector, SelTerm, StringLiteral, UnaryExpr, Waypoint,
    WhileStmt, World,
)
from craftscript.core.errors import ScriptSyntaxError
from craftscript.core.parser import get_parser, parse


def expr(text):
    """Parse a single expression via a let statement."""
    return parse(f"let v = {text};").body[0].value


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

class TestStatements:
    def test_empty_program(self):
        assert parse("") == Program(())

    def test_command(self):
        prog = parse("dig(f);")
        assert prog == Program((CommandStmt("dig", (Selector((SelTerm("f", 1),)),)),))

    def test_command_without_args(self):
        assert parse("jump();").body == (CommandStmt("jump", ()),)

    def test_named_args(self):
        cmd = parse('place("stone", f, face: "up");').body[0]
        assert cmd.positional == (StringLiteral("stone"), Selector((SelTerm("f", 1),)))
        assert cmd.named == (NamedArg("face", StringLiteral("up")),)

    def test_reserved_words_as_named_arg_keys(self):
        cmd = parse('move(waypoint: "home", block: "stone", world: 3);').body[0]
        assert [a.key for a in cmd.named] == ["waypoint", "block", "world"]
        assert cmd.named[0].value == StringLiteral("home")

    def test_waypoint_value_after_named_key(self):
        cmd = parse('move(to: waypoint("home"));').body[0]
        assert cmd.named == (NamedArg("to", Waypoint("home")),)

    def test_empty_statement(self):
        assert parse(";").body == (EmptyStmt(),)

    def test_let_and_assign(self):
        prog = parse("let n = 3; n = n + 1;")
        assert prog.body[0] == LetStmt("n", NumberLiteral(3))
        assert prog.body[1] == AssignStmt("n", BinaryExpr("+", Identifier("n"), NumberLiteral(1)))

    def test_if_else(self):
        st = parse("if (true) { a(); } else { c(); }").body[0]
        assert isinstance(st, IfStmt)
        assert st.consequent == Block((CommandStmt("a"),))
        assert st.alternate == Block((CommandStmt("c"),))

    def test_else_if_wraps_nested_if(self):
        st = parse("if (x) { a(); } else if (y) { c(); }").body[0]
        assert isinstance(st.alternate, Block)
        nested = st.alternate.body[0]
        assert isinstance(nested, IfStmt)
        assert nested.test == Identifier("y")
        assert nested.alternate is None

    def test_repeat(self):
        st = parse("repeat(3) { dig(f); }").body[0]
        assert isinstance(st, RepeatStmt)
        assert st.count == NumberLiteral(3)
        assert not st.is_range

    def test_while(self):
        st = parse("while (i < 3) { i = i + 1; }").body[0]
        assert isinstance(st, WhileStmt)
        assert st.test == BinaryExpr("<", Identifier("i"), NumberLiteral(3))

    def test_assert_with_message(self):
        st = parse('assert(ok, "must be ok");').body[0]
        assert st == AssertStmt(Identifier("ok"), "must be ok")

    def test_assert_without_message(self):
        assert parse("assert(ok);").body[0].message is None

    def test_macro(self):
        st = parse("macro wall(int n, string id) { place(id, f); }").body[0]
        assert isinstance(st, MacroDecl)
        assert st.name == "wall"
        assert st.params == (Param("n", "int"), Param("id", "string"))

    def test_macro_without_params(self):
        assert parse("macro go() { }").body[0].params == ()

    def test_nested_block(self):
        assert parse("{ a(); }").body == (Block((CommandStmt("a"),)),)

    def test_block_after_statements(self):
        prog = parse("let x = 1; { let x = 2; }")
        assert prog.body == (
            LetStmt("x", NumberLiteral(1)),
            Block((LetStmt("x", NumberLiteral(2)),)),
        )

    def test_comments_are_ignored(self):
        prog = parse("// line\n/* block\ncomment */ dig(f); // tail")
        assert len(prog.body) == 1

    def test_locations_are_one_based(self):
        prog = parse("\n  dig(f);")
        assert prog.body[0].loc.line == 2
        assert prog.body[0].loc.column == 3


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

class TestExpressions:
    def test_precedence_mul_over_add(self):
        assert expr("1 + 2 * 3") == BinaryExpr(
            "+", NumberLiteral(1), BinaryExpr("*", NumberLiteral(2), NumberLiteral(3)))

    def test_parentheses(self):
        assert expr("(1 + 2) * 3") == BinaryExpr(
            "*", BinaryExpr("+", NumberLiteral(1), NumberLiteral(2)), NumberLiteral(3))

    def test_logical_precedence(self):
        assert expr("a || x && y") == LogicalExpr(
            "||", Identifier("a"), LogicalExpr("&&", Identifier("x"), Identifier("y")))

    def test_not_binds_looser_than_comparison(self):
        assert expr("!a == 1") == UnaryExpr(
            "!", BinaryExpr("==", Identifier("a"), NumberLiteral(1)))

    def test_negative_literal_folded(self):
        assert expr("-5") == NumberLiteral(-5)

    def test_negated_identifier(self):
        assert expr("-n") == UnaryExpr("-", Identifier("n"))

    def test_float(self):
        value = expr("2.5").value
        assert value == 2.5 and isinstance(value, float)

    def test_string_escapes(self):
        assert expr(r'"a\"b\n\t\\"') == StringLiteral('a"b\n\t\\')

    def test_booleans(self):
        assert expr("true") == BooleanLiteral(True)
        assert expr("false") == BooleanLiteral(False)

    def test_predicate_call(self):
        assert expr("is_air(f)") == PredicateCall("is_air", (Selector((SelTerm("f", 1),)),))

    def test_world(self):
        assert expr("world(1, 64, -3)") == World(NumberLiteral(1), NumberLiteral(64), NumberLiteral(-3))

    def test_waypoint(self):
        assert expr('waypoint("home")') == Waypoint("home")

    def test_block_query(self):
        q = expr('block(name: "oak_log", lit: true)')
        assert q == BlockQuery((("name", StringLiteral("oak_log")), ("lit", BooleanLiteral(True))))


# ---------------------------------------------------------------------------
# Selectors
# ---------------------------------------------------------------------------

class TestSelectors:
    def test_single_axis(self):
        assert expr("f") == Selector((SelTerm("f", 1),))

    def test_magnitude(self):
        assert expr("u2") == Selector((SelTerm("u", 2),))

    def test_chain_is_one_selector(self):
        assert expr("f3 + r1") == Selector((SelTerm("f", 3), SelTerm("r", 1)))

    def test_axis_letters_are_case_insensitive(self):
        assert expr("F2+R1") == expr("f2+r1")

    def test_negative_magnitude(self):
        assert expr("r-2") == Selector((SelTerm("r", -2),))

    def test_caret_appends_up(self):
        assert expr("f^") == Selector((SelTerm("f", 1), SelTerm("u", 1)))

    def test_underscore_appends_down(self):
        assert expr("f2+l1_") == Selector((SelTerm("f", 2), SelTerm("l", 1), SelTerm("d", 1)))

    def test_longer_word_is_identifier(self):
        assert expr("front") == Identifier("front")
        assert expr("r2x") == Identifier("r2x")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class TestSyntaxErrors:
    def test_unterminated_block_points_at_end(self):
        with pytest.raises(ScriptSyntaxError) as info:
            parse("repeat(2) {\n  dig(f);")
        assert info.value.line == 2
        assert info.value.column == len("  dig(f);") + 1

    def test_missing_semicolon(self):
        with pytest.raises(ScriptSyntaxError) as info:
            parse("dig(f) move(f);")
        assert (info.value.line, info.value.column) == (1, 8)

    def test_bad_character(self):
        with pytest.raises(ScriptSyntaxError) as info:
            parse("dig(f);\nmove(@);")
        assert info.value.line == 2

    def test_keyword_as_variable(self):
        with pytest.raises(ScriptSyntaxError):
            parse("let if = 3;")

    def test_keyword_as_macro_name(self):
        with pytest.raises(ScriptSyntaxError):
            parse("macro while() { }")

    def test_duplicate_macro_in_block(self):
        with pytest.raises(ScriptSyntaxError) as info:
            parse("macro a() { }\nmacro a() { }")
        assert info.value.line == 2

    def test_same_macro_name_in_different_blocks(self):
        parse("macro a() { } { macro a() { } }")

    def test_duplicate_param(self):
        with pytest.raises(ScriptSyntaxError):
            parse("macro a(int n, bool n) { }")

    def test_error_str_has_position(self):
        with pytest.raises(ScriptSyntaxError) as info:
            parse("dig(")
        assert str(info.value).startswith("line 1, column")

    def test_error_kind(self):
        with pytest.raises(ScriptSyntaxError) as info:
            parse("{")
        assert info.value.kind == "syntax_error"


class TestParserCache:
    def test_parser_is_memoized(self):
        assert get_parser() is get_parser()

    def test_parse_is_pure(self):
        text = "repeat(2) { dig(f + u1); }"
        assert parse(text) == parse(text)
