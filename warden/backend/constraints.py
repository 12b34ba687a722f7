"""Per-kind emitters turning one constraint into executable steps.

Each emitter returns the steps for its constraint; most return one, `dup`
and `rent_exempt = skip` return none. A check that fails raises the
constraint's custom error when one was attached, else its default code.
An expression that cannot be evaluated fails its check the same way.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List

from warden.backend.init import emit_init
from warden.backend.interpreter import EvaluationError
from warden.backend.namespace import evaluate_bump, evaluate_or, evaluate_seeds, info_of, raise_for
from warden.backend.plan import Step
from warden.internals import errors as er
from warden.runtime.accounts import AccountLoader
from warden.runtime.binding import typed_view
from warden.runtime.errors import ConstraintError, ErrorCode, ProgramError
from warden.runtime.layout import DISCRIMINATOR_SIZE, AccountType
from warden.runtime.pubkey import (
    create_program_address,
    find_program_address,
    get_associated_token_address,
    state_address,
)
from warden.semantics.ast import (
    AccountsStruct,
    Constraint,
    ConstraintAddress,
    ConstraintAssociatedToken,
    ConstraintClose,
    ConstraintDup,
    ConstraintExecutable,
    ConstraintHasOne,
    ConstraintKind,
    ConstraintLiteral,
    ConstraintMut,
    ConstraintOwner,
    ConstraintRaw,
    ConstraintRentExempt,
    ConstraintSeeds,
    ConstraintSigner,
    ConstraintState,
    ConstraintZeroed,
    ErrorOverride,
    Field,
    RentExempt,
)


@dataclass
class EmitContext:
    """The field being emitted and what its checks may refer to."""
    field: Field
    struct: AccountsStruct
    types: Dict[str, AccountType]

    @property
    def name(self) -> str:
        return self.field.name

    def step(self, kind: ConstraintKind, text: str, action) -> Step:
        return Step(kind.value, self.name, text, action)


def _suffix(error: ErrorOverride) -> str:
    return f" @ {error}" if error is not None else ""


def rent_step(ec: EmitContext) -> Step:
    """Reads the rent sysvar once for the checks of one field."""
    def read(ctx, scope, frame):
        frame["rent"] = ctx.rent

    return Step("rent", ec.name, "rent = Rent.get()", read)


def _zeroed(ec: EmitContext, c: ConstraintZeroed) -> List[Step]:
    name = ec.name

    def check(ctx, scope, frame):
        info = info_of(scope[name])
        if len(info.data) < DISCRIMINATOR_SIZE:
            raise ConstraintError.from_code(ErrorCode.AccountDiscriminatorNotFound, name)
        if any(info.data[:DISCRIMINATOR_SIZE]):
            raise ConstraintError.from_code(ErrorCode.AlreadyInitialized, name)
        scope[name] = typed_view(ec.field.ty, info, ec.types, ctx.program_id, checked=False)

    return [ec.step(ConstraintKind.ZEROED, f"{name} discriminator is zero", check)]


def _seeds(ec: EmitContext, c: ConstraintSeeds) -> List[Step]:
    name = ec.name

    def derive(ctx, scope):
        seeds = evaluate_seeds(c.seeds, ctx, scope)
        if c.bump is None or c.is_init:
            address, bump = find_program_address(seeds, ctx.program_id)
            if c.bump is not None and evaluate_bump(c.bump, ctx, scope) != bump:
                raise ConstraintError.from_code(ErrorCode.DerivedAddressMismatch, name)
            return address, bump
        bump = evaluate_bump(c.bump, ctx, scope)
        return create_program_address(seeds + [bytes([bump])], ctx.program_id), bump

    def check(ctx, scope, frame):
        try:
            address, bump = derive(ctx, scope)
        except (ProgramError, EvaluationError):
            raise ConstraintError.from_code(ErrorCode.DerivedAddressMismatch, name) from None
        if info_of(scope[name]).key != address:
            raise ConstraintError.from_code(ErrorCode.DerivedAddressMismatch, name)
        ctx.bumps[frame["path"]] = bump

    seeds_text = ", ".join(str(s) for s in c.seeds)
    bump_text = f"bump = {c.bump}" if c.bump is not None else "canonical bump"
    return [ec.step(ConstraintKind.SEEDS, f"{name}.key == pda([{seeds_text}], {bump_text})", check)]


def _associated_token(ec: EmitContext, c: ConstraintAssociatedToken) -> List[Step]:
    name = ec.name

    def check(ctx, scope, frame):
        expected = get_associated_token_address(scope[c.wallet].key, scope[c.mint].key)
        if info_of(scope[name]).key != expected:
            raise ConstraintError.from_code(ErrorCode.AssociatedAddressMismatch, name)

    text = f"{name}.key == ata({c.wallet}, {c.mint})"
    return [ec.step(ConstraintKind.ASSOCIATED_TOKEN, text, check)]


def _mut(ec: EmitContext, c: ConstraintMut) -> List[Step]:
    name = ec.name

    def check(ctx, scope, frame):
        if not info_of(scope[name]).is_writable:
            raise_for(ErrorCode.NotWritable, c.error, name)

    return [ec.step(ConstraintKind.MUT, f"{name} is writable{_suffix(c.error)}", check)]


def _signer(ec: EmitContext, c: ConstraintSigner) -> List[Step]:
    name = ec.name

    def check(ctx, scope, frame):
        if not info_of(scope[name]).is_signer:
            raise_for(ErrorCode.NotSigner, c.error, name)

    return [ec.step(ConstraintKind.SIGNER, f"{name} is a signer{_suffix(c.error)}", check)]


def _has_one(ec: EmitContext, c: ConstraintHasOne) -> List[Step]:
    name, target = ec.name, c.join_target

    def check(ctx, scope, frame):
        view = scope[name]
        content = view.load() if isinstance(view, AccountLoader) else view
        if getattr(content, target) != scope[target].key:
            raise_for(ErrorCode.ReferencedFieldMismatch, c.error, name)

    text = f"{name}.{target} == {target}.key{_suffix(c.error)}"
    return [ec.step(ConstraintKind.HAS_ONE, text, check)]


def _dup(ec: EmitContext, c: ConstraintDup) -> List[Step]:
    return []


def _literal(ec: EmitContext, c: ConstraintLiteral) -> List[Step]:
    name = ec.name
    expr = c.as_expr()

    def check(ctx, scope, frame):
        if not evaluate_or(expr, ctx, scope, False):
            raise ConstraintError.from_code(ErrorCode.DeprecatedLiteralFalse, name)

    return [ec.step(ConstraintKind.LITERAL, str(expr), check)]


def _raw(ec: EmitContext, c: ConstraintRaw) -> List[Step]:
    name = ec.name

    def check(ctx, scope, frame):
        if not evaluate_or(c.raw, ctx, scope, False):
            raise_for(ErrorCode.RawExpressionFalse, c.error, name)

    return [ec.step(ConstraintKind.RAW, f"{c.raw}{_suffix(c.error)}", check)]


def _owner(ec: EmitContext, c: ConstraintOwner) -> List[Step]:
    name = ec.name

    def check(ctx, scope, frame):
        if info_of(scope[name]).owner != evaluate_or(c.owner_address, ctx, scope, None):
            raise_for(ErrorCode.OwnerMismatch, c.error, name)

    text = f"{name}.owner == {c.owner_address}{_suffix(c.error)}"
    return [ec.step(ConstraintKind.OWNER, text, check)]


def _rent_exempt(ec: EmitContext, c: ConstraintRentExempt) -> List[Step]:
    if c.mode == RentExempt.SKIP:
        return []
    name = ec.name

    def check(ctx, scope, frame):
        rent = frame.get("rent") or ctx.rent
        info = info_of(scope[name])
        if not rent.is_exempt(info.lamports, len(info.data)):
            raise ConstraintError.from_code(ErrorCode.InsufficientRentExemption, name)

    return [ec.step(ConstraintKind.RENT_EXEMPT, f"{name} is rent exempt", check)]


def _executable(ec: EmitContext, c: ConstraintExecutable) -> List[Step]:
    name = ec.name

    def check(ctx, scope, frame):
        if not info_of(scope[name]).executable:
            raise ConstraintError.from_code(ErrorCode.NotExecutable, name)

    return [ec.step(ConstraintKind.EXECUTABLE, f"{name} is executable", check)]


def _state(ec: EmitContext, c: ConstraintState) -> List[Step]:
    name, target = ec.name, c.program_target

    def check(ctx, scope, frame):
        program = scope[target].key
        info = info_of(scope[name])
        if info.key != state_address(program) or info.owner != program:
            raise ConstraintError.from_code(ErrorCode.CanonicalStateMismatch, name)

    return [ec.step(ConstraintKind.STATE, f"{name} is the state account of {target}", check)]


def _close(ec: EmitContext, c: ConstraintClose) -> List[Step]:
    name, dest = ec.name, c.sol_dest

    def check(ctx, scope, frame):
        if info_of(scope[name]).key == scope[dest].key:
            raise ConstraintError.from_code(ErrorCode.CloseTargetIsSelf, name)

    return [ec.step(ConstraintKind.CLOSE, f"{name} != {dest}, closed into {dest} on exit", check)]


def _address(ec: EmitContext, c: ConstraintAddress) -> List[Step]:
    name = ec.name

    def check(ctx, scope, frame):
        if info_of(scope[name]).key != evaluate_or(c.address, ctx, scope, None):
            raise_for(ErrorCode.AddressMismatch, c.error, name)

    return [ec.step(ConstraintKind.ADDRESS, f"{name}.key == {c.address}{_suffix(c.error)}", check)]


Emitter = Callable[[EmitContext, object], List[Step]]

EMITTERS: Dict[ConstraintKind, Emitter] = {
    ConstraintKind.ZEROED: _zeroed,
    ConstraintKind.INIT: emit_init,
    ConstraintKind.SEEDS: _seeds,
    ConstraintKind.ASSOCIATED_TOKEN: _associated_token,
    ConstraintKind.MUT: _mut,
    ConstraintKind.SIGNER: _signer,
    ConstraintKind.HAS_ONE: _has_one,
    ConstraintKind.DUP: _dup,
    ConstraintKind.LITERAL: _literal,
    ConstraintKind.RAW: _raw,
    ConstraintKind.OWNER: _owner,
    ConstraintKind.RENT_EXEMPT: _rent_exempt,
    ConstraintKind.EXECUTABLE: _executable,
    ConstraintKind.STATE: _state,
    ConstraintKind.CLOSE: _close,
    ConstraintKind.ADDRESS: _address,
}

for _kind in ConstraintKind:
    if _kind not in EMITTERS:
        er.raise_internal_error("CE0001", kind=_kind.value)


def emit(ec: EmitContext, constraint: Constraint) -> List[Step]:
    emitter = EMITTERS.get(constraint.kind)
    if emitter is None:
        er.raise_internal_error("CE0001", kind=str(constraint.kind))
    return emitter(ec, constraint.value)
