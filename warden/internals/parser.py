"""Lark parser setup and AST construction."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

from lark import Lark, Tree, UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from warden.internals.report import Reporter, Span

GRAMMAR_PATH = Path(__file__).parent.parent / "grammar.lark"

# Readable names for the anonymous terminals Lark reports.
_TERMINAL_NAMES = {
    "RSQB": "']'", "LSQB": "'['", "RPAR": "')'", "LPAR": "'('",
    "RBRACE": "'}'", "LBRACE": "'{'", "COMMA": "','", "COLON": "':'",
    "EQUAL": "'='", "MORETHAN": "'>'", "LESSTHAN": "'<'", "AT": "'@'",
    "NAME": "identifier", "INT": "integer", "STRING": "string literal",
    "LIFETIME": "lifetime", "BYTES": "byte string literal", "$END": "end of input",
}


@lru_cache(maxsize=1)
def get_parser() -> Lark:
    """The shared LALR parser; accepts both whole files and bare expressions."""
    return Lark.open(
        str(GRAMMAR_PATH),
        parser="lalr",
        start=["start", "expr"],
        propagate_positions=True,
        maybe_placeholders=False,
    )


def parse_expr(src: str) -> Tree:
    return get_parser().parse(src, start="expr")


def parse_expression(src: str):
    """Parse one constraint expression into an Expr, for hand-built structs."""
    from warden.semantics.ast_builder.expressions import build_expr

    return build_expr(parse_expr(src))


def improve_parse_error(e: UnexpectedInput) -> Tuple[str, Optional[Span]]:
    """Turn a Lark exception into a one-line message plus a location."""
    line = getattr(e, "line", None)
    col = getattr(e, "column", None)
    span = Span(line, col, line, col) if isinstance(line, int) and line > 0 else None

    if isinstance(e, UnexpectedCharacters):
        return f"unexpected character {e.char!r}", span

    if isinstance(e, UnexpectedEOF):
        return "unexpected end of input", span

    if isinstance(e, UnexpectedToken):
        tok = e.token
        got = "end of input" if tok.type == "$END" else repr(str(tok))
        expected = sorted(_TERMINAL_NAMES.get(x, repr(x.lower())) for x in (e.expected or ()))
        if expected and len(expected) <= 6:
            return f"unexpected {got}, expected one of: {', '.join(expected)}", span
        return f"unexpected {got}", span

    return str(e).splitlines()[0], span


def parse_to_ast(src: str, reporter: Reporter):
    """Parse source code into a SourceUnit.

    Returns:
        Tuple of (ast, parse_tree).
    """
    from warden.semantics.ast_builder import ASTBuilder

    tree = get_parser().parse(src, start="start")
    builder = ASTBuilder(reporter, parse_expr)
    return builder.build(tree), tree
