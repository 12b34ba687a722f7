"""Duplicate account detection across a struct and everything it nests.

Two bound accounts may share a key only when neither is mutable, or when
one names the other with `dup`, or when both name the same `dup` target.
"""
from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations
from typing import List, Optional

from warden.backend.namespace import info_of
from warden.backend.plan import Step
from warden.runtime.errors import ConstraintError, ErrorCode
from warden.semantics.ast import AccountsStruct, CompositeField, ConstraintGroup


@dataclass
class Leaf:
    path: str
    group: ConstraintGroup
    dup: Optional[str] = None        # absolute path of the `dup` target

    @property
    def mutable(self) -> bool:
        return self.group.is_mutable()


def flatten(struct: AccountsStruct, prefix: str = "") -> List[Leaf]:
    """Every non-composite field, by dotted path, in binding order."""
    out: List[Leaf] = []
    for f in struct.fields:
        if isinstance(f, CompositeField):
            if f.struct is not None:
                out.extend(flatten(f.struct, f"{prefix}{f.name}."))
            continue
        dup = f.constraints.dup
        target = prefix + dup.target if dup is not None else None
        out.append(Leaf(prefix + f.name, f.constraints, target))
    return out


def _exempt(a: Leaf, b: Leaf) -> bool:
    if not (a.mutable or b.mutable):
        return True
    if a.dup == b.path or b.dup == a.path:
        return True
    return a.dup is not None and a.dup == b.dup


def _lookup(scope, path: str):
    view = scope
    for part in path.split("."):
        view = view[part]
    return view


def emit_nodup(struct: AccountsStruct) -> List[Step]:
    """One step per pair of fields that must not alias."""
    steps: List[Step] = []
    for a, b in combinations(flatten(struct), 2):
        if _exempt(a, b):
            continue
        steps.append(_pair_step(a.path, b.path))
    return steps


def _pair_step(first: str, second: str) -> Step:
    def check(ctx, scope, frame):
        if info_of(_lookup(scope, first)).key == info_of(_lookup(scope, second)).key:
            raise ConstraintError.from_code(ErrorCode.DuplicateAccount, f"{first}, {second}")

    return Step("nodup", first, f"{first}.key != {second}.key", check)
