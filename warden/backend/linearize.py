"""Orders a constraint group into its execution sequence.

Constraints that establish an account (zeroed, init) come first, followed by
those that prove its address, then the access and content checks that rely
on it. Within a kind, declared order is kept.
"""
from __future__ import annotations
from typing import List

from warden.internals import errors as er
from warden.semantics.ast import Constraint, ConstraintGroup, ConstraintKind

LINEARIZATION_ORDER = (
    ConstraintKind.ZEROED,
    ConstraintKind.INIT,
    ConstraintKind.SEEDS,
    ConstraintKind.ASSOCIATED_TOKEN,
    ConstraintKind.MUT,
    ConstraintKind.SIGNER,
    ConstraintKind.HAS_ONE,
    ConstraintKind.DUP,
    ConstraintKind.LITERAL,
    ConstraintKind.RAW,
    ConstraintKind.OWNER,
    ConstraintKind.RENT_EXEMPT,
    ConstraintKind.EXECUTABLE,
    ConstraintKind.STATE,
    ConstraintKind.CLOSE,
    ConstraintKind.ADDRESS,
)

for _kind in ConstraintKind:
    if _kind not in LINEARIZATION_ORDER:
        er.raise_internal_error("CE0004", kind=_kind.value)


def linearize(group: ConstraintGroup) -> List[Constraint]:
    out: List[Constraint] = []
    for kind in LINEARIZATION_ORDER:
        slot = getattr(group, kind.value)
        if slot is None:
            continue
        if isinstance(slot, list):
            out.extend(Constraint(kind, c) for c in slot)
        else:
            out.append(Constraint(kind, slot))
    return out
