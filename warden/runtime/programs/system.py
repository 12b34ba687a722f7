"""System program: creates, funds, sizes and assigns accounts."""
from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, List

from warden.runtime.accounts import AccountInfo
from warden.runtime.errors import ProgramError
from warden.runtime.instruction import AccountMeta, Instruction
from warden.runtime.pubkey import Pubkey, SYSTEM_PROGRAM_ID

MAX_PERMITTED_DATA_LENGTH = 10 * 1024 * 1024


@dataclass(frozen=True)
class CreateAccount:
    lamports: int
    space: int
    owner: Pubkey


@dataclass(frozen=True)
class Transfer:
    lamports: int


@dataclass(frozen=True)
class Allocate:
    space: int


@dataclass(frozen=True)
class Assign:
    owner: Pubkey


def create_account(from_key: Pubkey, to_key: Pubkey, lamports: int, space: int, owner: Pubkey) -> Instruction:
    return Instruction(
        SYSTEM_PROGRAM_ID,
        [AccountMeta(from_key, True, True), AccountMeta(to_key, True, True)],
        CreateAccount(lamports, space, owner),
    )


def transfer(from_key: Pubkey, to_key: Pubkey, lamports: int) -> Instruction:
    return Instruction(
        SYSTEM_PROGRAM_ID,
        [AccountMeta(from_key, True, True), AccountMeta(to_key, False, True)],
        Transfer(lamports),
    )


def allocate(key: Pubkey, space: int) -> Instruction:
    return Instruction(SYSTEM_PROGRAM_ID, [AccountMeta(key, True, True)], Allocate(space))


def assign(key: Pubkey, owner: Pubkey) -> Instruction:
    return Instruction(SYSTEM_PROGRAM_ID, [AccountMeta(key, True, True)], Assign(owner))


def _require_signed(info: AccountInfo, signers: FrozenSet[Pubkey]) -> None:
    if info.key not in signers:
        raise ProgramError("MissingRequiredSignature", str(info.key))


def _debit(source: AccountInfo, dest: AccountInfo, lamports: int) -> None:
    if source.data:
        raise ProgramError("InvalidArgument", "from must not carry data")
    if source.lamports < lamports:
        raise ProgramError("InsufficientFunds", f"{source.lamports} < {lamports}")
    source.lamports -= lamports
    dest.lamports += lamports


def _allocate(info: AccountInfo, space: int) -> None:
    if info.data or info.owner != SYSTEM_PROGRAM_ID:
        raise ProgramError("AccountAlreadyInUse", str(info.key))
    if space > MAX_PERMITTED_DATA_LENGTH:
        raise ProgramError("InvalidArgument", f"requested {space} bytes")
    info.data = bytearray(space)


def _assign(info: AccountInfo, owner: Pubkey) -> None:
    if info.owner == owner:
        return
    if info.owner != SYSTEM_PROGRAM_ID:
        raise ProgramError("IncorrectProgramId", "account is not owned by the system program")
    info.owner = owner


def _process_create_account(bank, ix: Instruction, accounts: List[AccountInfo], signers) -> None:
    source, target = accounts
    data: CreateAccount = ix.data
    _require_signed(source, signers)
    _require_signed(target, signers)
    if target.lamports > 0 or target.data or target.owner != SYSTEM_PROGRAM_ID:
        raise ProgramError("AccountAlreadyInUse", str(target.key))
    _allocate(target, data.space)
    _assign(target, data.owner)
    _debit(source, target, data.lamports)


def _process_transfer(bank, ix: Instruction, accounts: List[AccountInfo], signers) -> None:
    source, target = accounts
    _require_signed(source, signers)
    _debit(source, target, ix.data.lamports)


def _process_allocate(bank, ix: Instruction, accounts: List[AccountInfo], signers) -> None:
    (target,) = accounts
    _require_signed(target, signers)
    _allocate(target, ix.data.space)


def _process_assign(bank, ix: Instruction, accounts: List[AccountInfo], signers) -> None:
    (target,) = accounts
    _require_signed(target, signers)
    _assign(target, ix.data.owner)


_DISPATCH = {
    CreateAccount: _process_create_account,
    Transfer: _process_transfer,
    Allocate: _process_allocate,
    Assign: _process_assign,
}


def process(bank, ix: Instruction, accounts: List[AccountInfo], signers: FrozenSet[Pubkey]) -> None:
    handler = _DISPATCH.get(type(ix.data))
    if handler is None:
        raise ProgramError("InvalidArgument", f"unknown system instruction {ix.name}")
    handler(bank, ix, accounts, signers)
