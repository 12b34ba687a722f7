"""Shared fixtures: a fresh bank, a deployed program and account builders."""
from __future__ import annotations

import pytest

from warden.compiler import compile_source
from warden.runtime.bank import Bank
from warden.runtime.layout import MINT
from warden.runtime.pubkey import TOKEN_PROGRAM_ID, Pubkey

SOL = 1_000_000_000


@pytest.fixture
def bank():
    return Bank()


@pytest.fixture
def program_id(bank):
    pid = Pubkey.new_unique()
    bank.register_program(pid)
    return pid


@pytest.fixture
def payer(bank):
    return bank.new_account(lamports=10 * SOL, signer=True, writable=True)


@pytest.fixture
def compile_plan():
    """compile_plan(src, name, **options) -> (plan, compiled unit)."""
    def build(src, name, options=None):
        compiled = compile_source(src, "<test>", options)
        return compiled.plan(name), compiled
    return build


@pytest.fixture
def make_program_account(bank, program_id):
    """Account owned by the program holding `value` laid out as `ty`."""
    def build(ty, writable=True, signer=False, **fields):
        value = ty.default()
        for name, v in fields.items():
            setattr(value, name, v)
        data = bytearray(ty.space())
        ty.write(data, value)
        return bank.new_account(
            lamports=bank.rent.minimum_balance(len(data)), data=bytes(data),
            owner=program_id, signer=signer, writable=writable,
        )
    return build


@pytest.fixture
def make_mint(bank):
    def build(authority: Pubkey, decimals: int = 6):
        value = MINT.default()
        value.mint_authority = authority
        value.decimals = decimals
        value.is_initialized = True
        data = bytearray(MINT.size())
        MINT.write(data, value)
        return bank.new_account(
            lamports=bank.rent.minimum_balance(len(data)), data=bytes(data),
            owner=TOKEN_PROGRAM_ID,
        )
    return build
