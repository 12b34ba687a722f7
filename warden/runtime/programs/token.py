"""Token program: the two initialization instructions account setup needs."""
from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, List, Optional

from warden.runtime.accounts import AccountInfo
from warden.runtime.errors import ProgramError
from warden.runtime.instruction import AccountMeta, Instruction
from warden.runtime.layout import MINT, TOKEN_ACCOUNT
from warden.runtime.pubkey import Pubkey, TOKEN_PROGRAM_ID

ACCOUNT_STATE_INITIALIZED = 1


@dataclass(frozen=True)
class InitializeAccount:
    owner: Pubkey


@dataclass(frozen=True)
class InitializeMint:
    decimals: int
    mint_authority: Pubkey
    freeze_authority: Optional[Pubkey] = None


def initialize_account(account: Pubkey, mint: Pubkey, owner: Pubkey) -> Instruction:
    return Instruction(
        TOKEN_PROGRAM_ID,
        [AccountMeta(account, False, True), AccountMeta(mint, False, False)],
        InitializeAccount(owner),
    )


def initialize_mint(mint: Pubkey, decimals: int, mint_authority: Pubkey,
                    freeze_authority: Optional[Pubkey] = None) -> Instruction:
    return Instruction(
        TOKEN_PROGRAM_ID,
        [AccountMeta(mint, False, True)],
        InitializeMint(decimals, mint_authority, freeze_authority),
    )


def _check_target(bank, info: AccountInfo, expected_len: int) -> None:
    if info.owner != TOKEN_PROGRAM_ID:
        raise ProgramError("IncorrectProgramId", f"{info.key} is not owned by the token program")
    if len(info.data) != expected_len:
        raise ProgramError("InvalidAccountData", f"expected {expected_len} bytes, got {len(info.data)}")
    if not bank.rent.is_exempt(info.lamports, len(info.data)):
        raise ProgramError("Custom", "account is not rent exempt", code=0)


def _process_initialize_account(bank, ix: Instruction, accounts: List[AccountInfo], signers) -> None:
    account, mint = accounts
    _check_target(bank, account, TOKEN_ACCOUNT.size())
    current = TOKEN_ACCOUNT.deserialize(bytes(account.data))
    if TOKEN_ACCOUNT.is_initialized(current):
        raise ProgramError("AccountAlreadyInitialized", str(account.key))
    if mint.owner != TOKEN_PROGRAM_ID or len(mint.data) != MINT.size():
        raise ProgramError("InvalidAccountData", f"{mint.key} is not a mint")
    if not MINT.is_initialized(MINT.deserialize(bytes(mint.data))):
        raise ProgramError("InvalidAccountData", f"mint {mint.key} is not initialized")

    state = TOKEN_ACCOUNT.default()
    state.mint = mint.key
    state.owner = ix.data.owner
    state.state = ACCOUNT_STATE_INITIALIZED
    TOKEN_ACCOUNT.write(account.data, state)


def _process_initialize_mint(bank, ix: Instruction, accounts: List[AccountInfo], signers) -> None:
    (mint,) = accounts
    _check_target(bank, mint, MINT.size())
    if MINT.is_initialized(MINT.deserialize(bytes(mint.data))):
        raise ProgramError("AccountAlreadyInitialized", str(mint.key))

    state = MINT.default()
    state.mint_authority = ix.data.mint_authority
    state.decimals = ix.data.decimals
    state.is_initialized = True
    state.freeze_authority = ix.data.freeze_authority
    MINT.write(mint.data, state)


_DISPATCH = {
    InitializeAccount: _process_initialize_account,
    InitializeMint: _process_initialize_mint,
}


def process(bank, ix: Instruction, accounts: List[AccountInfo], signers: FrozenSet[Pubkey]) -> None:
    handler = _DISPATCH.get(type(ix.data))
    if handler is None:
        raise ProgramError("InvalidArgument", f"unknown token instruction {ix.name}")
    handler(bank, ix, accounts, signers)
