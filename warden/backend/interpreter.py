"""Constraint expressions: a tree-walking interpreter over the parse tree.

Only the operations the grammar can spell are evaluated. Names resolve
through the namespace handed in, calls are limited to a fixed set of
builtins and account methods, and attributes starting with an underscore
are never read.
"""
from __future__ import annotations

import operator
from ast import literal_eval
from typing import Any, Dict, Iterator, Mapping

from lark import Token, Tree
from lark.visitors import Interpreter

from warden.runtime.pubkey import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    Pubkey,
    RENT_SYSVAR_ID,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)

BUILTINS = {
    "len": len,
    "min": min,
    "max": max,
    "abs": abs,
    "int": int,
    "bytes": bytes,
    "bool": bool,
    "Pubkey": Pubkey,
}

CONSTANTS = {
    "SYSTEM_PROGRAM_ID": SYSTEM_PROGRAM_ID,
    "TOKEN_PROGRAM_ID": TOKEN_PROGRAM_ID,
    "ASSOCIATED_TOKEN_PROGRAM_ID": ASSOCIATED_TOKEN_PROGRAM_ID,
    "RENT_SYSVAR_ID": RENT_SYSVAR_ID,
}

# Names every expression can see besides the struct's fields and arguments.
GLOBAL_NAMES = frozenset(BUILTINS) | frozenset(CONSTANTS) | {"program_id"}

# Methods callable on account views and infos.
METHODS = frozenset({"load", "to_account_info", "data_len", "data_is_empty"})


class EvaluationError(Exception):
    """An expression could not be evaluated against the bound accounts."""


def free_names(tree: Tree) -> Iterator[Token]:
    """Every bare name an expression reads, in source order."""
    for node in tree.iter_subtrees_topdown():
        if node.data == "name":
            yield node.children[0]


def _binary(op):
    def apply(self, tree):
        left, right = tree.children
        return op(self.visit(left), self.visit(right))
    return apply


class ExprInterpreter(Interpreter):
    def __init__(self, names: Mapping[str, Any]):
        self.names = names

    def __default__(self, tree):
        raise EvaluationError(f"unsupported expression '{tree.data}'")

    def or_op(self, tree):
        left, right = tree.children
        return self.visit(left) or self.visit(right)

    def and_op(self, tree):
        left, right = tree.children
        return self.visit(left) and self.visit(right)

    def not_op(self, tree):
        return not self.visit(tree.children[0])

    eq = _binary(operator.eq)
    ne = _binary(operator.ne)
    lt = _binary(operator.lt)
    le = _binary(operator.le)
    gt = _binary(operator.gt)
    ge = _binary(operator.ge)
    add = _binary(operator.add)
    sub = _binary(operator.sub)
    mul = _binary(operator.mul)
    div = _binary(operator.floordiv)
    mod = _binary(operator.mod)

    def neg(self, tree):
        return -self.visit(tree.children[0])

    def ref(self, tree):
        return self.visit(tree.children[0])

    def attr(self, tree):
        obj, name = tree.children
        if name.startswith("_"):
            raise EvaluationError(f"attribute '{name}' is not accessible")
        return getattr(self.visit(obj), str(name))

    def call(self, tree):
        fn, *args = tree.children
        values = [self.visit(a) for a in args]
        if fn.data == "name":
            name = str(fn.children[0])
            if name not in BUILTINS:
                raise EvaluationError(f"'{name}' is not callable")
            return BUILTINS[name](*values)
        if fn.data == "attr":
            obj, method = fn.children
            target = self.visit(obj)
            # `x.key()` is the Rust spelling of the `x.key` property.
            if method == "key" and not values:
                return target.key
            if method not in METHODS:
                raise EvaluationError(f"method '{method}' is not callable")
            return getattr(target, str(method))(*values)
        raise EvaluationError("expression is not callable")

    def index(self, tree):
        obj, idx = tree.children
        return self.visit(obj)[self.visit(idx)]

    def name(self, tree):
        name = str(tree.children[0])
        try:
            return self.names[name]
        except KeyError:
            raise EvaluationError(f"name '{name}' is not defined") from None

    def number(self, tree):
        return int(str(tree.children[0]).replace("_", ""))

    def string(self, tree):
        return literal_eval(str(tree.children[0]))

    def bytes_lit(self, tree):
        return literal_eval(str(tree.children[0]))

    def true(self, tree):
        return True

    def false(self, tree):
        return False

    def none(self, tree):
        return None

    def list_lit(self, tree):
        return [self.visit(c) for c in tree.children]


def interpret(tree: Tree, names: Dict[str, Any]) -> Any:
    return ExprInterpreter(names).visit(tree)
