# semantics/passes/resolve.py
"""Name and type resolution over a parsed SourceUnit.

Validates:
- No duplicate declaration names, no duplicate field names within a struct
- Field types name declared account types or nested accounts structs
- Constraint targets name fields of the same struct
- Custom errors name declared error variants
- Expressions only read fields, instruction arguments and well-known names
- Capability rules: signer placement, state on CpiState, composite constraints
- Initialization has the program accounts it invokes
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple

from lark import UnexpectedInput

from warden.backend.interpreter import GLOBAL_NAMES, free_names
from warden.internals import errors as er
from warden.internals.parser import parse_expression
from warden.internals.report import Reporter, Span, span_of
from warden.runtime.errors import CustomError, ERROR_CODE_OFFSET
from warden.runtime.layout import BUILTIN_TYPES, USER_FIELD_TYPES, AccountType, make_account_type
from warden.semantics.ast import (
    AccountsStruct,
    AssociatedTokenInit,
    CompositeField,
    ConstraintGroup,
    ConstraintKind,
    ErrorEnum,
    ErrorRef,
    Expr,
    Field,
    MintInit,
    ProgramInit,
    SourceUnit,
    TokenInit,
    TyKind,
)
from warden.semantics.ast_builder.exceptions import InvalidEscapeError
from warden.semantics.error_reporter import PassErrorReporter

# Capabilities a signer constraint cannot be declared on.
NO_SIGNER = frozenset({TyKind.SIGNER, TyKind.PROGRAM, TyKind.SYSVAR, TyKind.CPI_STATE})

# Program account fields each init kind invokes.
REQUIRED_PROGRAMS = {
    ProgramInit: ("system_program",),
    TokenInit: ("system_program", "token_program"),
    MintInit: ("system_program", "token_program"),
    AssociatedTokenInit: ("system_program", "token_program", "associated_token_program"),
}

_INIT_LABELS = {
    ProgramInit: "program account",
    TokenInit: "token account",
    MintInit: "mint",
    AssociatedTokenInit: "associated token account",
}


@dataclass
class DeclTable:
    """Declarations by name, filled during resolution."""
    account_types: Dict[str, AccountType] = field(default_factory=dict)
    structs: Dict[str, AccountsStruct] = field(default_factory=dict)
    errors: Dict[str, ErrorEnum] = field(default_factory=dict)


def error_slots(group: ConstraintGroup) -> Iterator[object]:
    """Every constraint in `group` that can carry a custom error."""
    for single in (group.mut, group.signer, group.owner, group.address):
        if single is not None:
            yield single
    yield from group.has_one
    yield from group.raw


class NameResolver:
    """Resolves names across declarations and enforces declaration rules."""

    def __init__(self, reporter: Reporter, extra_types: Optional[Dict[str, AccountType]] = None) -> None:
        self.r = reporter
        self.err = PassErrorReporter(reporter)
        self.table = DeclTable()
        self.extra_types = dict(extra_types or {})

    def run(self, unit: SourceUnit) -> DeclTable:
        self._collect(unit)
        for struct in unit.structs:
            self._check_struct(struct)
        self._check_cycles(unit)
        return self.table

    # --- collection ---

    def _collect(self, unit: SourceUnit) -> None:
        seen: Dict[str, Optional[Span]] = {}

        def claim(name: str, loc: Optional[Span]) -> bool:
            if name in seen or name in BUILTIN_TYPES:
                self.err.emit(er.ERR.CE1013, loc, name=name)
                return False
            seen[name] = loc
            return True

        self.table.account_types.update(BUILTIN_TYPES)
        self.table.account_types.update(self.extra_types)
        for enum in unit.error_enums:
            if claim(enum.name, enum.loc):
                self.table.errors[enum.name] = enum
        for decl in unit.account_types:
            if claim(decl.name, decl.loc):
                self.table.account_types[decl.name] = make_account_type(
                    decl.name,
                    [(f.name, f.ty) for f in decl.fields if f.ty in USER_FIELD_TYPES],
                    zero_copy=decl.zero_copy,
                )
        for struct in unit.structs:
            if claim(struct.name, struct.loc):
                self.table.structs[struct.name] = struct

    # --- per struct ---

    def _check_struct(self, struct: AccountsStruct) -> None:
        names: Set[str] = set()
        for f in struct.fields:
            if f.name in names:
                self.err.emit(er.ERR.CE1012, f.loc, field=f.name, struct=struct.name)
            names.add(f.name)

        for f in struct.fields:
            self._resolve_errors(f.constraints)
            if isinstance(f, CompositeField):
                self._check_composite(f)
            else:
                self._check_field(struct, f)
            self._check_targets(struct, f)
            self._check_expressions(struct, f)

    def _check_composite(self, f: CompositeField) -> None:
        target = self.table.structs.get(f.struct_name)
        if target is None:
            self.err.emit(er.ERR.CE1001, f.loc, name=f.struct_name)
            return
        f.struct = target
        g = f.constraints
        for kind in ConstraintKind:
            if kind in (ConstraintKind.RAW, ConstraintKind.LITERAL):
                continue
            if getattr(g, kind.value):
                self.err.emit(er.ERR.CE1014, f.loc, field=f.name, constraint=kind.value)

    def _check_field(self, struct: AccountsStruct, f: Field) -> None:
        ty = f.ty
        g = f.constraints
        if ty.has_content or ty.kind == TyKind.CPI_STATE:
            if ty.inner not in self.table.account_types:
                self.err.emit(er.ERR.CE1001, f.loc, name=ty.inner)

        if g.signer is not None and ty.kind in NO_SIGNER:
            self.err.emit(er.ERR.CE1004, g.signer.loc or f.loc, field=f.name, ty=str(ty))

        if g.state is not None and ty.kind != TyKind.CPI_STATE:
            self.err.emit(er.ERR.CE1005, g.state.loc or f.loc, field=f.name, ty=str(ty))

        if g.init is not None:
            kind = type(g.init.kind)
            for required in REQUIRED_PROGRAMS[kind]:
                if struct.get_field(required) is None:
                    self.err.emit(er.ERR.CE1010, g.init.loc or f.loc,
                                  kind=_INIT_LABELS[kind], field=f.name, required=required)

    def _check_targets(self, struct: AccountsStruct, f) -> None:
        for constraint, target, span in _targets(f.constraints):
            if constraint == "dup":
                ok = self._resolve_path(struct, target)
            else:
                ok = struct.get_field(target) is not None
            if not ok:
                self.err.emit(er.ERR.CE1006, span or f.loc, target=target,
                              constraint=constraint, field=f.name, struct=struct.name)

    def _check_expressions(self, struct: AccountsStruct, f) -> None:
        known = {g.name for g in struct.fields} | set(struct.ix_args) | GLOBAL_NAMES
        for constraint, expr in _expressions(f.constraints):
            if expr.tree is None and not self._parse(constraint, expr, f):
                continue
            for tok in free_names(expr.tree):
                if tok in known:
                    continue
                # Literal constraints are parsed from their own string.
                span = expr.loc if constraint == "literal" else span_of(tok) or expr.loc
                self.err.emit(er.ERR.CE1020, span or f.loc,
                              name=str(tok), constraint=constraint, field=f.name)

    def _parse(self, constraint: str, expr: Expr, f) -> bool:
        """Fill in the tree of an expression built by hand rather than parsed."""
        try:
            expr.tree = parse_expression(expr.source).tree
        except (UnexpectedInput, InvalidEscapeError):
            self.err.emit(er.ERR.CE2002, expr.loc or f.loc, constraint=constraint,
                          reason=f"cannot parse '{expr.source}'")
            return False
        return True

    def _resolve_path(self, struct: AccountsStruct, path: str) -> bool:
        head, _, rest = path.partition(".")
        target = struct.get_field(head)
        if target is None:
            return False
        if not rest:
            return True
        if isinstance(target, CompositeField):
            nested = target.struct or self.table.structs.get(target.struct_name)
            return nested is not None and self._resolve_path(nested, rest)
        return False

    def _resolve_errors(self, group: ConstraintGroup) -> None:
        for c in error_slots(group):
            ref = c.error
            if not isinstance(ref, ErrorRef) or ref.resolved is not None:
                continue
            enum = self.table.errors.get(ref.enum)
            variant = enum.variant(ref.variant) if enum is not None else None
            if variant is None:
                self.err.emit(er.ERR.CE1011, ref.loc, name=str(ref))
                continue
            ref.resolved = CustomError(ERROR_CODE_OFFSET + variant.id, variant.name, variant.msg)

    # --- composites ---

    def _check_cycles(self, unit: SourceUnit) -> None:
        def reaches(struct: AccountsStruct, start: str, seen: Set[str]) -> bool:
            for f in struct.fields:
                if not isinstance(f, CompositeField) or f.struct is None:
                    continue
                if f.struct.name == start:
                    return True
                if f.struct.name not in seen:
                    seen.add(f.struct.name)
                    if reaches(f.struct, start, seen):
                        return True
            return False

        for struct in unit.structs:
            if reaches(struct, struct.name, set()):
                self.err.emit(er.ERR.CE1019, struct.loc, name=struct.name)


def _targets(group: ConstraintGroup) -> List[Tuple[str, str, Optional[Span]]]:
    """(constraint, target field, span) for every constraint naming another field."""
    out: List[Tuple[str, str, Optional[Span]]] = []
    for h in group.has_one:
        out.append(("has_one", h.join_target, h.loc))
    if group.close is not None:
        out.append(("close", group.close.sol_dest, group.close.loc))
    if group.state is not None:
        out.append(("state", group.state.program_target, group.state.loc))
    if group.dup is not None:
        out.append(("dup", group.dup.target, group.dup.loc))
    if group.associated_token is not None:
        at = group.associated_token
        out.append(("associated_token::authority", at.wallet, at.loc))
        out.append(("associated_token::mint", at.mint, at.loc))
    init = group.init
    if init is not None:
        out.append(("payer", init.payer, init.loc))
        kind = init.kind
        if isinstance(kind, TokenInit):
            out.append(("token::authority", kind.owner, init.loc))
            out.append(("token::mint", kind.mint, init.loc))
        elif isinstance(kind, MintInit):
            out.append(("mint::authority", kind.owner, init.loc))
            if kind.freeze_authority is not None:
                out.append(("mint::freeze_authority", kind.freeze_authority, init.loc))
    return out


def _expressions(group: ConstraintGroup) -> List[Tuple[str, Expr]]:
    """(constraint, expression) for every expression evaluated at runtime."""
    out: List[Tuple[str, Expr]] = [("constraint", c.raw) for c in group.raw]
    out += [("literal", c.as_expr()) for c in group.literal]
    if group.owner is not None:
        out.append(("owner", group.owner.owner_address))
    if group.address is not None:
        out.append(("address", group.address.address))
    if group.seeds is not None:
        out += [("seeds", s) for s in group.seeds.seeds]
        if group.seeds.bump is not None:
            out.append(("bump", group.seeds.bump))
    init = group.init
    if init is not None:
        if init.space is not None:
            out.append(("space", init.space))
        if isinstance(init.kind, ProgramInit) and init.kind.owner is not None:
            out.append(("owner", init.kind.owner))
        if isinstance(init.kind, MintInit):
            out.append(("mint::decimals", init.kind.decimals))
        if init.seeds is not None and init.seeds is not group.seeds:
            out += [("seeds", s) for s in init.seeds.seeds]
            if init.seeds.bump is not None:
                out.append(("bump", init.seeds.bump))
    return out
