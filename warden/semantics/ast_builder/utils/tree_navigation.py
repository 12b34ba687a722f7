"""Tree navigation utilities for traversing Lark parse trees."""
from __future__ import annotations
from typing import Callable, List, Optional
from lark import Tree, Token


def first(children: List[object], pred: Callable) -> Optional[object]:
    """Find first child matching predicate."""
    for ch in children:
        if pred(ch):
            return ch
    return None


def first_name(children: List[object]) -> Optional[Token]:
    """Get first NAME token from children."""
    return first(children, lambda c: isinstance(c, Token) and c.type == "NAME")  # type: ignore[return-value]


def first_token(children: List[object], type_: str) -> Optional[Token]:
    """Get first token of a given terminal type."""
    return first(children, lambda c: isinstance(c, Token) and c.type == type_)  # type: ignore[return-value]


def first_tree(children: List[object], data: str) -> Optional[Tree]:
    """Get first Tree child with specific data tag."""
    return first(children, lambda c: isinstance(c, Tree) and c.data == data)  # type: ignore[return-value]


def trees(children: List[object], data: str) -> List[Tree]:
    """All Tree children with a given data tag, in order."""
    return [c for c in children if isinstance(c, Tree) and c.data == data]


def tokens(children: List[object], type_: str) -> List[Token]:
    return [c for c in children if isinstance(c, Token) and c.type == type_]


def string_value(tok: Token) -> str:
    """Contents of a STRING or BYTES token without the quotes."""
    text = str(tok)
    if text.startswith("b"):
        text = text[1:]
    return text[1:-1]
