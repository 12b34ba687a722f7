"""Associated token program: creates the canonical token account of (wallet, mint)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, List

from warden.runtime.accounts import AccountInfo
from warden.runtime.errors import ProgramError
from warden.runtime.instruction import AccountMeta, Instruction
from warden.runtime.layout import TOKEN_ACCOUNT
from warden.runtime.programs import system, token
from warden.runtime.pubkey import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    Pubkey,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    find_program_address,
)


@dataclass(frozen=True)
class Create:
    pass


def create(payer: Pubkey, wallet: Pubkey, mint: Pubkey, associated: Pubkey) -> Instruction:
    return Instruction(
        ASSOCIATED_TOKEN_PROGRAM_ID,
        [
            AccountMeta(payer, True, True),
            AccountMeta(associated, False, True),
            AccountMeta(wallet, False, False),
            AccountMeta(mint, False, False),
            AccountMeta(SYSTEM_PROGRAM_ID, False, False),
            AccountMeta(TOKEN_PROGRAM_ID, False, False),
        ],
        Create(),
    )


def process(bank, ix: Instruction, accounts: List[AccountInfo], signers: FrozenSet[Pubkey]) -> None:
    if not isinstance(ix.data, Create):
        raise ProgramError("InvalidArgument", f"unknown associated token instruction {ix.name}")
    payer, associated, wallet, mint = accounts[:4]

    address, bump = find_program_address(
        [bytes(wallet.key), bytes(TOKEN_PROGRAM_ID), bytes(mint.key)],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )
    if address != associated.key:
        raise ProgramError("InvalidSeeds", "associated address does not match seed derivation")
    if associated.owner == TOKEN_PROGRAM_ID:
        raise ProgramError("AccountAlreadyInUse", str(associated.key))

    seeds = [[bytes(wallet.key), bytes(TOKEN_PROGRAM_ID), bytes(mint.key), bytes([bump])]]
    space = TOKEN_ACCOUNT.size()
    required = bank.rent.minimum_balance(space)

    if associated.lamports == 0:
        bank.invoke_signed(
            system.create_account(payer.key, associated.key, required, space, TOKEN_PROGRAM_ID),
            accounts, seeds, ASSOCIATED_TOKEN_PROGRAM_ID,
        )
    else:
        shortfall = max(required, 1) - associated.lamports
        if shortfall > 0:
            bank.invoke(system.transfer(payer.key, associated.key, shortfall), accounts,
                        ASSOCIATED_TOKEN_PROGRAM_ID)
        bank.invoke_signed(system.allocate(associated.key, space), accounts, seeds,
                           ASSOCIATED_TOKEN_PROGRAM_ID)
        bank.invoke_signed(system.assign(associated.key, TOKEN_PROGRAM_ID), accounts, seeds,
                           ASSOCIATED_TOKEN_PROGRAM_ID)

    bank.invoke(token.initialize_account(associated.key, mint.key, wallet.key), accounts,
                ASSOCIATED_TOKEN_PROGRAM_ID)
