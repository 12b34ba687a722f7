"""Field type parsing: `Account<'info, Data>` -> Ty."""
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

from lark import Tree

from warden.semantics.ast import GENERIC_KINDS, Ty, TyKind

# Wrappers that only forward to their single argument.
TRANSPARENT = frozenset({"Box"})

_BY_NAME = {k.value: k for k in TyKind}


@dataclass
class ParsedType:
    name: str
    args: List["ParsedType"]

    def __str__(self) -> str:
        if not self.args:
            return self.name
        return f"{self.name}<{', '.join(str(a) for a in self.args)}>"


def parse_type_ref(tree: Tree) -> ParsedType:
    """Strip lifetimes and turn a type_ref subtree into a ParsedType."""
    name = str(tree.children[0])
    args: List[ParsedType] = []
    if len(tree.children) > 1:
        for arg in tree.children[1].children:
            if isinstance(arg, Tree) and arg.data == "type_ref":
                args.append(parse_type_ref(arg))
    return ParsedType(name, args)


def account_ty(parsed: ParsedType) -> Optional[Ty]:
    """Capability type for a field, or None when it is not one.

    None means the name may be a nested accounts struct; the resolver decides.
    """
    while parsed.name in TRANSPARENT and len(parsed.args) == 1:
        parsed = parsed.args[0]

    kind = _BY_NAME.get(parsed.name)
    if kind is None:
        return None
    if kind in GENERIC_KINDS:
        if len(parsed.args) != 1:
            return None
        return Ty(kind, str(parsed.args[0]))
    if parsed.args:
        return None
    return Ty(kind)


def unwrap(parsed: ParsedType) -> ParsedType:
    while parsed.name in TRANSPARENT and len(parsed.args) == 1:
        parsed = parsed.args[0]
    return parsed
