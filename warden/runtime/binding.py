"""Binding an ordered account list onto the fields of an accounts struct."""
from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from warden.runtime.accounts import (
    Account,
    AccountInfo,
    AccountLoader,
    BoundAccounts,
    CpiState,
    Program,
    Signer,
    Sysvar,
    UncheckedAccount,
)
from warden.runtime.errors import ConstraintError, ErrorCode
from warden.runtime.layout import AccountType
from warden.runtime.pubkey import Pubkey
from warden.semantics.ast import AccountsStruct, CompositeField, Field, Ty, TyKind


def typed_view(ty: Ty, info: AccountInfo, types: Dict[str, AccountType], program_id: Pubkey,
               checked: bool = True):
    """Wrap `info` in the capability type `ty`.

    With `checked=False` typed accounts skip the discriminator check; this is
    how freshly created or zeroed accounts are bound.
    """
    kind = ty.kind
    if kind == TyKind.ACCOUNT_INFO:
        return info
    if kind == TyKind.UNCHECKED:
        return UncheckedAccount.try_from(info)
    if kind == TyKind.SIGNER:
        return Signer.try_from(info)
    if kind == TyKind.PROGRAM:
        return Program.try_from(info, ty.inner)
    if kind == TyKind.SYSVAR:
        return Sysvar.try_from(info, ty.inner)
    if kind == TyKind.CPI_STATE:
        return CpiState.try_from(info)

    account_type = types[ty.inner]
    if ty.is_zero_copy:
        if checked:
            return AccountLoader.try_from(info, account_type, program_id)
        return AccountLoader.try_from_unchecked(info, account_type, program_id)
    # CpiAccount wraps accounts of other programs; only the content is checked.
    check_owner = kind != TyKind.CPI_ACCOUNT
    if checked:
        return Account.try_from(info, account_type, program_id, check_owner=check_owner)
    return Account.try_from_unchecked(info, account_type, program_id, check_owner=check_owner)


def _bind_field(f: Field, info: AccountInfo, types: Dict[str, AccountType], program_id: Pubkey):
    g = f.constraints
    # Accounts about to be created or zeroed are rebound once that step ran.
    if g.init is not None or g.zeroed is not None:
        return info
    return typed_view(f.ty, info, types, program_id)


def try_accounts(struct: AccountsStruct, types: Dict[str, AccountType], infos: Sequence[AccountInfo],
                 program_id: Pubkey) -> Tuple[BoundAccounts, List[AccountInfo]]:
    """Consume `infos` in field order.

    Returns:
        The bound accounts and the unconsumed remainder.

    Raises:
        ConstraintError: AccountNotEnoughKeys, or whatever a typed wrapper
            rejects while binding.
    """
    pos = 0

    def bind(s: AccountsStruct) -> BoundAccounts:
        nonlocal pos
        out = BoundAccounts()
        for f in s.fields:
            if isinstance(f, CompositeField):
                out[f.name] = bind(f.struct)
                continue
            if pos >= len(infos):
                raise ConstraintError.from_code(ErrorCode.AccountNotEnoughKeys, f.name)
            out[f.name] = _bind_field(f, infos[pos], types, program_id)
            pos += 1
        return out

    bound = bind(struct)
    return bound, list(infos[pos:])
