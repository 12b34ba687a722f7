"""Constraint expressions: parse tree -> Expr.

The declaration language accepts both Rust-style (`&&`, `||`, `!`, `true`,
`&x`) and Python-style (`and`, `or`, `not`, `True`) spellings. The tree is
kept for evaluation; the Python rendering is only the text shown in plans.
Binary operations are parenthesised so precedence survives rendering; `/`
is integer division.
"""
from __future__ import annotations
import re
from typing import List

from lark import Token, Transformer, Tree
from lark.exceptions import VisitError

from warden.internals.report import span_of
from warden.semantics.ast import Expr
from warden.semantics.ast_builder.exceptions import InvalidEscapeError

_ESCAPE = re.compile(r"\\(.)", re.S)
_ALLOWED_ESCAPES = set("\\\"'nrt0x")


def check_escapes(tok: Token) -> None:
    for m in _ESCAPE.finditer(str(tok)):
        if m.group(1) not in _ALLOWED_ESCAPES:
            raise InvalidEscapeError(str(tok), span_of(tok))


def _bin(op: str):
    def render(self, children: List[str]) -> str:
        left, right = children
        return f"({left} {op} {right})"
    return render


class ExprRenderer(Transformer):
    or_op = _bin("or")
    and_op = _bin("and")
    eq = _bin("==")
    ne = _bin("!=")
    lt = _bin("<")
    le = _bin("<=")
    gt = _bin(">")
    ge = _bin(">=")
    add = _bin("+")
    sub = _bin("-")
    mul = _bin("*")
    div = _bin("//")
    mod = _bin("%")

    def not_op(self, children):
        return f"(not {children[0]})"

    def neg(self, children):
        return f"(-{children[0]})"

    def ref(self, children):
        return children[0]

    def attr(self, children):
        obj, name = children
        return f"{obj}.{name}"

    def call(self, children):
        fn, *args = children
        return f"{fn}({', '.join(args)})"

    def index(self, children):
        obj, idx = children
        return f"{obj}[{idx}]"

    def name(self, children):
        return str(children[0])

    def number(self, children):
        return str(children[0]).replace("_", "")

    def string(self, children):
        check_escapes(children[0])
        return str(children[0])

    def bytes_lit(self, children):
        check_escapes(children[0])
        return str(children[0])

    def true(self, children):
        return "True"

    def false(self, children):
        return "False"

    def none(self, children):
        return "None"

    def list_lit(self, children):
        return f"[{', '.join(children)}]"


_RENDERER = ExprRenderer()

# Node a bare token stands for when it is the whole expression.
_TOKEN_NODES = {"INT": "number", "STRING": "string", "BYTES": "bytes_lit", "NAME": "name"}


def build_expr(node) -> Expr:
    """Render an expression subtree (or bare token) into an Expr."""
    span = span_of(node)
    if isinstance(node, Token):
        node = Tree(_TOKEN_NODES.get(node.type, "name"), [node])
    try:
        source = _RENDERER.transform(node)
    except VisitError as e:
        # Transformer wraps callback failures; surface the escape error itself.
        raise e.orig_exc from None
    return Expr(source, span, tree=node)


def simple_name(node) -> str:
    """Dotted name of a name/attribute expression, or "" if it is anything else."""
    if isinstance(node, Token) and node.type == "NAME":
        return str(node)
    if isinstance(node, Tree):
        if node.data == "name":
            return str(node.children[0])
        if node.data == "attr":
            base = simple_name(node.children[0])
            return f"{base}.{node.children[1]}" if base else ""
    return ""
