"""The account creator shared by every init strategy.

An account holding zero lamports is created by a single system
`create_account`. One that was pre-funded (anyone can transfer lamports to
an address) cannot be: the system program rejects creating over a balance.
It is instead topped up to the rent-exempt minimum, then allocated and
assigned in place.
"""
from __future__ import annotations

from typing import List, Sequence

from warden.runtime.accounts import AccountInfo
from warden.runtime.bank import Bank, Rent
from warden.runtime.programs import system
from warden.runtime.pubkey import Pubkey


def create_account(
    bank: Bank,
    rent: Rent,
    payer: AccountInfo,
    target: AccountInfo,
    space: int,
    owner: Pubkey,
    program_id: Pubkey,
    signer_seeds: Sequence[Sequence[bytes]] = (),
) -> None:
    """Create `target` with `space` bytes owned by `owner`, funded by `payer`.

    `signer_seeds` authorize `target` when it is an address derived from
    `program_id`; an ordinary keypair target must already be a signer.

    Raises:
        ProgramError: from the system program, unchanged.
    """
    infos: List[AccountInfo] = [payer, target]
    minimum = rent.minimum_balance(space)
    current = target.lamports

    if current == 0:
        bank.invoke_signed(
            system.create_account(payer.key, target.key, minimum, space, owner),
            infos, signer_seeds, program_id,
        )
        return

    required = max(minimum, 1) - current
    if required > 0:
        bank.invoke(system.transfer(payer.key, target.key, required), infos, program_id)
    bank.invoke_signed(system.allocate(target.key, space), [target], signer_seeds, program_id)
    bank.invoke_signed(system.assign(target.key, owner), [target], signer_seeds, program_id)
