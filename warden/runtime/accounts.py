"""Raw accounts and the capability wrappers fields are bound to."""
from __future__ import annotations

from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Dict, Optional

from warden.runtime.errors import ConstraintError, ErrorCode
from warden.runtime.layout import AccountType, DISCRIMINATOR_SIZE, LayoutError, VariantMismatch
from warden.runtime.pubkey import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    Pubkey,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)

# Program<T> names with a well-known id.
PROGRAM_IDS: Dict[str, Pubkey] = {
    "System": SYSTEM_PROGRAM_ID,
    "Token": TOKEN_PROGRAM_ID,
    "AssociatedToken": ASSOCIATED_TOKEN_PROGRAM_ID,
}


@dataclass(eq=False)
class AccountInfo:
    """One account as an instruction sees it.

    `is_signer` and `is_writable` are the per-instruction access flags; the
    remaining attributes are live account state shared with the host.
    """
    key: Pubkey
    lamports: int = 0
    data: bytearray = field(default_factory=bytearray)
    owner: Pubkey = SYSTEM_PROGRAM_ID
    executable: bool = False
    is_signer: bool = False
    is_writable: bool = False

    def __post_init__(self):
        if not isinstance(self.data, bytearray):
            self.data = bytearray(self.data)

    def to_account_info(self) -> "AccountInfo":
        return self

    def data_len(self) -> int:
        return len(self.data)

    def data_is_empty(self) -> bool:
        return len(self.data) == 0


class AccountView:
    """Base of every capability wrapper: exposes the raw account by key."""

    def __init__(self, info: AccountInfo):
        object.__setattr__(self, "info", info)

    @property
    def key(self) -> Pubkey:
        return self.info.key

    def to_account_info(self) -> AccountInfo:
        return self.info

    def exit(self, program_id: Pubkey) -> None:
        """Persist pending changes at the end of the instruction."""
        return None

    def __repr__(self):
        return f"{type(self).__name__}({self.info.key})"


class UncheckedAccount(AccountView):
    @classmethod
    def try_from(cls, info: AccountInfo) -> "UncheckedAccount":
        return cls(info)


class Signer(AccountView):
    @classmethod
    def try_from(cls, info: AccountInfo) -> "Signer":
        if not info.is_signer:
            raise ConstraintError.from_code(ErrorCode.AccountNotSigner)
        return cls(info)


class Program(AccountView):
    def __init__(self, info: AccountInfo, name: str):
        super().__init__(info)
        object.__setattr__(self, "name", name)

    @classmethod
    def try_from(cls, info: AccountInfo, name: str) -> "Program":
        expected = PROGRAM_IDS.get(name)
        if expected is not None and info.key != expected:
            raise ConstraintError.from_code(ErrorCode.InvalidProgramId)
        if not info.executable:
            raise ConstraintError.from_code(ErrorCode.InvalidProgramExecutable)
        return cls(info, name)


class Sysvar(AccountView):
    def __init__(self, info: AccountInfo, name: str):
        super().__init__(info)
        object.__setattr__(self, "name", name)

    @classmethod
    def try_from(cls, info: AccountInfo, name: str) -> "Sysvar":
        return cls(info, name)


class CpiState(AccountView):
    @classmethod
    def try_from(cls, info: AccountInfo) -> "CpiState":
        return cls(info)


def _check_owner(info: AccountInfo, ty: AccountType, program_id: Pubkey, enabled: bool = True) -> None:
    if not enabled:
        return
    expected = ty.owner if ty.owner is not None else program_id
    if info.owner != expected:
        raise ConstraintError.from_code(ErrorCode.AccountOwnedByWrongProgram)


def _check_discriminator(info: AccountInfo, ty: AccountType) -> None:
    if not ty.discriminated:
        return
    if len(info.data) < DISCRIMINATOR_SIZE:
        raise ConstraintError.from_code(ErrorCode.AccountDiscriminatorNotFound)
    if bytes(info.data[:DISCRIMINATOR_SIZE]) != ty.discriminator:
        raise ConstraintError.from_code(ErrorCode.AccountDiscriminatorMismatch)


def _read(info: AccountInfo, ty: AccountType, check_initialized: bool = True) -> SimpleNamespace:
    try:
        value = ty.decode(bytes(info.data))
    except VariantMismatch:
        raise ConstraintError.from_code(ErrorCode.AccountNotProgramData) from None
    except LayoutError:
        raise ConstraintError.from_code(ErrorCode.AccountDidNotDeserialize) from None
    if check_initialized and not ty.is_initialized(value):
        raise ConstraintError.from_code(ErrorCode.AccountDidNotDeserialize)
    return value


class Account(AccountView):
    """Typed account with deserialized content.

    Attribute access falls through to the content, so `data.authority`
    reads the `authority` field.
    """

    def __init__(self, info: AccountInfo, ty: AccountType, value: SimpleNamespace):
        super().__init__(info)
        object.__setattr__(self, "ty", ty)
        object.__setattr__(self, "value", value)

    @classmethod
    def try_from(cls, info: AccountInfo, ty: AccountType, program_id: Pubkey,
                 check_owner: bool = True) -> "Account":
        _check_owner(info, ty, program_id, check_owner)
        _check_discriminator(info, ty)
        return cls(info, ty, _read(info, ty))

    @classmethod
    def try_from_unchecked(cls, info: AccountInfo, ty: AccountType, program_id: Pubkey,
                           check_owner: bool = True) -> "Account":
        """Bind without looking at the discriminator (freshly zeroed accounts)."""
        _check_owner(info, ty, program_id, check_owner)
        return cls(info, ty, _read(info, ty, check_initialized=False))

    def __getattr__(self, name):
        value = object.__getattribute__(self, "value")
        try:
            return getattr(value, name)
        except AttributeError:
            raise AttributeError(f"{self.ty.name} has no field '{name}'") from None

    def __setattr__(self, name, val):
        if hasattr(self.value, name):
            setattr(self.value, name, val)
        else:
            object.__setattr__(self, name, val)

    def reload(self) -> None:
        object.__setattr__(self, "value", _read(self.info, self.ty))

    def exit(self, program_id: Pubkey) -> None:
        owner = self.ty.owner if self.ty.owner is not None else program_id
        if owner != program_id or not self.info.is_writable or self.info.owner != program_id:
            return
        self.ty.write(self.info.data, self.value)


class AccountLoader(AccountView):
    """Zero-copy account, content read on demand."""

    def __init__(self, info: AccountInfo, ty: AccountType):
        super().__init__(info)
        object.__setattr__(self, "ty", ty)
        object.__setattr__(self, "_pending", None)
        object.__setattr__(self, "_fresh", False)

    @classmethod
    def try_from(cls, info: AccountInfo, ty: AccountType, program_id: Pubkey) -> "AccountLoader":
        _check_owner(info, ty, program_id)
        _check_discriminator(info, ty)
        return cls(info, ty)

    @classmethod
    def try_from_unchecked(cls, info: AccountInfo, ty: AccountType, program_id: Pubkey) -> "AccountLoader":
        _check_owner(info, ty, program_id)
        loader = cls(info, ty)
        object.__setattr__(loader, "_fresh", True)
        return loader

    def load(self) -> SimpleNamespace:
        if self._pending is not None:
            return self._pending
        if self._fresh:
            return _read(self.info, self.ty, check_initialized=False)
        _check_discriminator(self.info, self.ty)
        return _read(self.info, self.ty)

    def load_mut(self) -> SimpleNamespace:
        if not self.info.is_writable:
            raise ConstraintError.from_code(ErrorCode.NotWritable)
        value = self.load()
        object.__setattr__(self, "_pending", value)
        return value

    def load_init(self) -> SimpleNamespace:
        if not self.info.is_writable:
            raise ConstraintError.from_code(ErrorCode.NotWritable)
        if any(self.info.data[:DISCRIMINATOR_SIZE]):
            raise ConstraintError.from_code(ErrorCode.AccountDiscriminatorMismatch)
        value = _read(self.info, self.ty, check_initialized=False)
        object.__setattr__(self, "_pending", value)
        return value

    def exit(self, program_id: Pubkey) -> None:
        if not self.info.is_writable or self.info.owner != program_id:
            return
        if self._pending is not None:
            self.ty.write(self.info.data, self._pending)
        elif len(self.info.data) >= DISCRIMINATOR_SIZE:
            self.info.data[:DISCRIMINATOR_SIZE] = self.ty.discriminator


class BoundAccounts(dict):
    """Field name -> bound view, also reachable as attributes."""

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def exit(self, program_id: Pubkey) -> None:
        for view in self.values():
            if isinstance(view, (AccountView, BoundAccounts)):
                view.exit(program_id)
