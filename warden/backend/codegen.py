# backend/codegen.py
"""Builds executable Plans from resolved accounts structs.

Each field's constraints are linearized and handed to the emitter table;
nested structs get their own Plan, shared between the structs that nest
them. With `nodup` enabled the duplicate pass runs after everything else.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict

from warden.backend.constraints import EmitContext, emit, rent_step
from warden.backend.linearize import linearize
from warden.backend.nodup import emit_nodup
from warden.backend.plan import FieldPlan, Plan
from warden.internals import errors as er
from warden.internals.report import Reporter
from warden.runtime.layout import AccountType
from warden.semantics.ast import (
    AccountsStruct,
    CompositeField,
    ConstraintGroup,
    ProgramInit,
    RentExempt,
)
from warden.semantics.error_reporter import PassErrorReporter


@dataclass
class CompileOptions:
    nodup: bool = False

    @classmethod
    def from_features(cls, features) -> "CompileOptions":
        return cls(nodup="nodup" in set(features))


def _reads_rent(group: ConstraintGroup) -> bool:
    if group.init is not None:
        return True
    return group.rent_exempt is not None and group.rent_exempt.mode == RentExempt.ENFORCE


class AccountsCodegen:
    def __init__(self, reporter: Reporter, types: Dict[str, AccountType],
                 options: CompileOptions | None = None) -> None:
        self.err = PassErrorReporter(reporter)
        self.types = types
        self.options = options or CompileOptions()
        self._plans: Dict[str, Plan] = {}

    def build(self, struct: AccountsStruct) -> Plan:
        """Plan for `struct` as the top-level accounts of an instruction."""
        plan = self._plan_for(struct)
        if self.options.nodup:
            plan = replace(plan, dup_checks=emit_nodup(struct))
        return plan

    def _plan_for(self, struct: AccountsStruct) -> Plan:
        cached = self._plans.get(struct.name)
        if cached is not None:
            return cached
        plan = Plan(struct, self.types)
        self._plans[struct.name] = plan

        for f in struct.fields:
            group = f.constraints
            if isinstance(f, CompositeField) and f.struct is not None:
                plan.children[f.name] = self._plan_for(f.struct)
            self._check(f)

            ec = EmitContext(f, struct, self.types)
            steps = [rent_step(ec)] if _reads_rent(group) else []
            for constraint in linearize(group):
                steps.extend(emit(ec, constraint))
            plan.fields.append(FieldPlan(f.name, steps))
            if group.close is not None:
                plan.closes.append((f.name, group.close.sol_dest))
        return plan

    def _check(self, f) -> None:
        group = f.constraints
        for lit in group.literal:
            self.err.emit(er.ERR.CW1001, lit.loc or f.loc, expr=lit.lit)
        if group.dup is not None and not self.options.nodup:
            self.err.emit(er.ERR.CW1002, group.dup.loc or f.loc, field=f.name, target=group.dup.target)

        init = group.init
        if init is not None and isinstance(init.kind, ProgramInit) and init.space is None:
            ty = f.ty
            if not ty.has_content or ty.inner not in self.types:
                self.err.emit(er.ERR.CE1015, init.loc or f.loc, field=f.name)
