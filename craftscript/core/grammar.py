"""CraftScript surface grammar (lark, LALR).

Notes
-----
- SELECTOR is a single terminal covering the whole ``F3+R1^`` chain so the
  parser never has to choose between selector ``+`` and addition.  It has a
  higher priority than NAME, so a lone axis word (``f``, ``u2``) in
  expression position is always a selector.
- Keywords are anonymous strings; lark turns a NAME that spells one into the
  keyword token.  The contextual lexer only does this where the keyword is
  acceptable, so parser.py re-checks declared names against KEYWORDS.
- ``?`` rules are inlined when they have one child.
"""

CRAFTSCRIPT_GRAMMAR = r"""
start: statement*

?statement: macro_decl
          | if_stmt
          | repeat_stmt
          | while_stmt
          | let_stmt
          | assign_stmt
          | assert_stmt ";"
          | command_stmt ";"
          | empty_stmt
          | block

empty_stmt: ";"

macro_decl: "macro" NAME "(" [params] ")" block
params: param ("," param)*
param: PARAM_TYPE NAME

block: "{" statement* "}"

if_stmt: "if" "(" expr ")" block [else_part]
?else_part: "else" block
          | "else" if_stmt        -> else_if

repeat_stmt: "repeat" "(" expr ")" block
while_stmt: "while" "(" expr ")" block
assert_stmt: "assert" "(" expr ["," STRING] ")"
let_stmt: "let" NAME "=" expr ";"
assign_stmt: NAME "=" expr ";"
command_stmt: NAME "(" [arglist] ")"

arglist: arg ("," arg)*
?arg: named_arg
    | expr
named_arg: arg_key ":" expr
!arg_key: NAME | "world" | "waypoint" | "block"

?expr: or_expr

?or_expr: and_expr
        | or_expr "||" and_expr        -> or_op

?and_expr: not_expr
         | and_expr "&&" not_expr      -> and_op

?not_expr: "!" not_expr                -> not_op
         | compare

?compare: sum
        | sum COMP_OP sum              -> compare_op

?sum: product
    | sum "+" product                  -> add
    | sum "-" product                  -> sub

?product: unary
        | product "*" unary            -> mul
        | product "/" unary            -> div
        | product "%" unary            -> mod

?unary: "-" unary                      -> neg
      | atom

?atom: "(" expr ")"
     | predicate_call
     | SELECTOR                        -> selector
     | world
     | waypoint
     | block_query
     | NUMBER                          -> number
     | STRING                          -> string
     | "true"                          -> true
     | "false"                         -> false
     | NAME                            -> var

predicate_call: NAME "(" [arglist] ")"
world: "world" "(" expr "," expr "," expr ")"
waypoint: "waypoint" "(" STRING ")"
block_query: "block" "(" named_arg ("," named_arg)* ")"

PARAM_TYPE: /(int|bool|string)(?![A-Za-z0-9_])/
COMP_OP: "==" | "!=" | "<=" | ">=" | "<" | ">"

SELECTOR.2: /[FfBbRrLlUuDd](-?\d+)?(\s*\+\s*[FfBbRrLlUuDd](-?\d+)?)*[\^_]?(?![A-Za-z0-9_])/
NAME: /[A-Za-z_][A-Za-z0-9_]*/
NUMBER: /\d+(\.\d+)?/
STRING: /"(\\.|[^"\\\n])*"/

LINE_COMMENT: /\/\/[^\n]*/
BLOCK_COMMENT: /\/\*(.|\n)*?\*\//

%import common.WS
%ignore WS
%ignore LINE_COMMENT
%ignore BLOCK_COMMENT
"""
