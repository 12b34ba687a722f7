"""Init strategies: how each kind of `init` creates and sets up its account.

A strategy is a pair of callables. `create` makes the raw account (via the
shared account creator) and `setup` runs the owning program's initializer.
Associated token accounts delegate both to the associated token program.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from warden.backend.create_account import create_account
from warden.backend.interpreter import EvaluationError
from warden.backend.namespace import evaluate, evaluate_bump, evaluate_seeds, info_of
from warden.backend.plan import Step
from warden.internals import errors as er
from warden.runtime.accounts import AccountInfo, BoundAccounts
from warden.runtime.binding import typed_view
from warden.runtime.context import Context
from warden.runtime.errors import ConstraintError, ErrorCode, ProgramError
from warden.runtime.layout import MINT, TOKEN_ACCOUNT
from warden.runtime.programs import associated_token, token
from warden.runtime.pubkey import SYSTEM_PROGRAM_ID, TOKEN_PROGRAM_ID, find_program_address
from warden.semantics.ast import (
    AssociatedTokenInit,
    ConstraintInit,
    ConstraintKind,
    MintInit,
    ProgramInit,
    TokenInit,
)

if TYPE_CHECKING:
    from warden.backend.constraints import EmitContext


@dataclass
class InitCall:
    """What one init step resolved before invoking anything."""
    init: ConstraintInit
    target: AccountInfo
    payer: AccountInfo
    signer_seeds: List[List[bytes]]
    rent: object


def _argument(expr, ctx: Context, scope: BoundAccounts, coerce=None):
    """An init parameter; one that cannot be evaluated is an invalid argument to the create."""
    try:
        value = evaluate(expr, ctx, scope)
        return coerce(value) if coerce is not None else value
    except (EvaluationError, TypeError, ValueError) as e:
        raise ProgramError("InvalidArgument", str(e)) from e


def _space(ec: "EmitContext", init: ConstraintInit, ctx: Context, scope: BoundAccounts) -> int:
    if init.space is not None:
        return _argument(init.space, ctx, scope, int)
    return ec.types[ec.field.ty.inner].space()


def _create_program(ec, call: InitCall, ctx: Context, scope: BoundAccounts) -> None:
    kind = call.init.kind
    owner = _argument(kind.owner, ctx, scope) if kind.owner is not None else ctx.program_id
    create_account(ctx.bank, call.rent, call.payer, call.target,
                   _space(ec, call.init, ctx, scope), owner, ctx.program_id, call.signer_seeds)


def _create_token(ec, call: InitCall, ctx: Context, scope: BoundAccounts) -> None:
    create_account(ctx.bank, call.rent, call.payer, call.target,
                   TOKEN_ACCOUNT.size(), TOKEN_PROGRAM_ID, ctx.program_id, call.signer_seeds)


def _create_mint(ec, call: InitCall, ctx: Context, scope: BoundAccounts) -> None:
    create_account(ctx.bank, call.rent, call.payer, call.target,
                   MINT.size(), TOKEN_PROGRAM_ID, ctx.program_id, call.signer_seeds)


def _setup_token(ec, call: InitCall, ctx: Context, scope: BoundAccounts) -> None:
    kind: TokenInit = call.init.kind
    mint = info_of(scope[kind.mint])
    ix = token.initialize_account(call.target.key, mint.key, scope[kind.owner].key)
    ctx.bank.invoke(ix, [call.target, mint], ctx.program_id)


def _setup_mint(ec, call: InitCall, ctx: Context, scope: BoundAccounts) -> None:
    kind: MintInit = call.init.kind
    freeze = scope[kind.freeze_authority].key if kind.freeze_authority is not None else None
    decimals = _argument(kind.decimals, ctx, scope, int)
    ix = token.initialize_mint(call.target.key, decimals, scope[kind.owner].key, freeze)
    ctx.bank.invoke(ix, [call.target], ctx.program_id)


def _setup_associated(ec, call: InitCall, ctx: Context, scope: BoundAccounts) -> None:
    kind: AssociatedTokenInit = call.init.kind
    wallet = info_of(scope[kind.owner])
    mint = info_of(scope[kind.mint])
    ix = associated_token.create(call.payer.key, wallet.key, mint.key, call.target.key)
    infos = [call.payer, call.target, wallet, mint,
             info_of(scope["system_program"]), info_of(scope["token_program"])]
    ctx.bank.invoke(ix, infos, ctx.program_id)


Phase = Optional[Callable[..., None]]

STRATEGIES: Dict[type, Tuple[Phase, Phase]] = {
    ProgramInit: (_create_program, None),
    TokenInit: (_create_token, _setup_token),
    MintInit: (_create_mint, _setup_mint),
    AssociatedTokenInit: (None, _setup_associated),
}


def _describe(init: ConstraintInit) -> str:
    kind = init.kind
    parts = [f"payer = {init.payer}"]
    if isinstance(kind, ProgramInit):
        parts.append(f"space = {init.space}" if init.space is not None else "space = default")
        parts.append(f"owner = {kind.owner or 'program_id'}")
        label = "account"
    elif isinstance(kind, TokenInit):
        parts += [f"mint = {kind.mint}", f"authority = {kind.owner}"]
        label = "token account"
    elif isinstance(kind, MintInit):
        parts += [f"decimals = {kind.decimals}", f"authority = {kind.owner}"]
        if kind.freeze_authority is not None:
            parts.append(f"freeze_authority = {kind.freeze_authority}")
        label = "mint"
    else:
        parts += [f"mint = {kind.mint}", f"authority = {kind.owner}"]
        label = "associated token account"
    if init.seeds is not None:
        parts.append("signed by seeds")
    prefix = "create if needed" if init.if_needed else "create"
    return f"{prefix} {label} ({', '.join(parts)})"


def emit_init(ec: "EmitContext", init: ConstraintInit) -> List[Step]:
    strategy = STRATEGIES.get(type(init.kind))
    if strategy is None:
        er.raise_internal_error("CE0003", kind=type(init.kind).__name__)
    create, setup = strategy
    name = ec.name
    ty = ec.field.ty

    def rebind(ctx, scope, info, checked):
        scope[name] = typed_view(ty, info, ec.types, ctx.program_id, checked=checked)

    def run(ctx, scope, frame):
        target = info_of(scope[name])
        if init.if_needed and target.owner != SYSTEM_PROGRAM_ID:
            rebind(ctx, scope, target, checked=True)
            return

        signer_seeds: List[List[bytes]] = []
        if init.seeds is not None:
            try:
                seeds = evaluate_seeds(init.seeds.seeds, ctx, scope)
                if init.seeds.bump is not None:
                    bump = evaluate_bump(init.seeds.bump, ctx, scope)
                else:
                    bump = find_program_address(seeds, ctx.program_id)[1]
            except EvaluationError:
                raise ConstraintError.from_code(ErrorCode.DerivedAddressMismatch, name) from None
            signer_seeds.append(seeds + [bytes([bump])])

        call = InitCall(init, target, info_of(scope[init.payer]), signer_seeds,
                        frame.get("rent") or ctx.rent)
        if create is not None:
            create(ec, call, ctx, scope)
        if setup is not None:
            setup(ec, call, ctx, scope)
        # Token layouts are complete once the token program initialized them.
        rebind(ctx, scope, target, checked=setup is not None)

    return [ec.step(ConstraintKind.INIT, _describe(init), run)]
