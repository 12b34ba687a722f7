"""Account creation through each init strategy."""
import pytest

from warden.runtime.errors import ConstraintError, ErrorCode, ProgramError
from warden.runtime.layout import MINT, TOKEN_ACCOUNT
from warden.runtime.programs import system
from warden.runtime.pubkey import (
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    create_program_address,
    find_program_address,
    get_associated_token_address,
)

COUNTER = """
#[account]
pub struct Counter { pub count: u64 }
"""

PROGRAMS = """
    pub system_program: Program<'info, System>,
"""

TOKEN_PROGRAMS = PROGRAMS + """
    pub token_program: Program<'info, Token>,
"""


def program_init_src(constraint):
    return COUNTER + f"""
#[derive(Accounts)]
pub struct Create<'info> {{
    #[account({constraint})]
    pub counter: Account<'info, Counter>,
    #[account(mut)]
    pub payer: Signer<'info>,
{PROGRAMS}}}
"""


def _lower_bump(seeds, program_id, canonical):
    """A valid derivation of `seeds` below the canonical bump."""
    for bump in range(canonical - 1, -1, -1):
        try:
            return create_program_address(seeds + [bytes([bump])], program_id), bump
        except ProgramError:
            continue
    pytest.skip("no off-curve bump below the canonical one")


class TestProgramInit:
    def test_empty_target_single_create(self, bank, program_id, payer, compile_plan):
        plan, unit = compile_plan(program_init_src("init, payer = payer, space = 16"), "Create")
        target = bank.new_account(signer=True, writable=True)
        ctx = plan.execute(bank, program_id, [target, payer, bank.system_program])

        assert bank.calls() == ["CreateAccount"]
        assert target.owner == program_id
        assert len(target.data) == 16
        assert target.lamports == bank.rent.minimum_balance(16)
        assert bytes(target.data[:8]) == unit.types["Counter"].discriminator
        assert ctx.accounts.counter.count == 0

    def test_default_space_from_type(self, bank, program_id, payer, compile_plan):
        plan, unit = compile_plan(program_init_src("init, payer = payer"), "Create")
        target = bank.new_account(signer=True, writable=True)
        plan.execute(bank, program_id, [target, payer, bank.system_program])
        assert len(target.data) == unit.types["Counter"].space()

    def test_prefunded_target(self, bank, program_id, payer, compile_plan):
        plan, _ = compile_plan(program_init_src("init, payer = payer, space = 16"), "Create")
        target = bank.new_account(lamports=1, signer=True, writable=True)
        plan.execute(bank, program_id, [target, payer, bank.system_program])

        assert bank.calls() == ["Transfer", "Allocate", "Assign"]
        assert bank.log[0].data == system.Transfer(bank.rent.minimum_balance(16) - 1)
        assert bank.log[1].data == system.Allocate(16)
        assert bank.log[2].data == system.Assign(program_id)
        assert target.lamports == bank.rent.minimum_balance(16)

    def test_prefunded_beyond_minimum_skips_transfer(self, bank, program_id, payer, compile_plan):
        plan, _ = compile_plan(program_init_src("init, payer = payer, space = 16"), "Create")
        rich = bank.rent.minimum_balance(16) + 5
        target = bank.new_account(lamports=rich, signer=True, writable=True)
        plan.execute(bank, program_id, [target, payer, bank.system_program])
        assert bank.calls() == ["Allocate", "Assign"]
        assert target.lamports == rich

    def test_explicit_owner(self, bank, program_id, payer, compile_plan):
        plan, _ = compile_plan(COUNTER + """
#[derive(Accounts)]
pub struct Create<'info> {
    #[account(init, payer = payer, space = 32, owner = SYSTEM_PROGRAM_ID)]
    pub buffer: UncheckedAccount<'info>,
    #[account(mut)]
    pub payer: Signer<'info>,
    pub system_program: Program<'info, System>,
}
""", "Create")
        target = bank.new_account(signer=True, writable=True)
        plan.execute(bank, program_id, [target, payer, bank.system_program])
        assert target.owner == SYSTEM_PROGRAM_ID
        assert len(target.data) == 32

    def test_pda_target_signed_by_seeds(self, bank, program_id, payer, compile_plan):
        plan, _ = compile_plan(
            program_init_src('init, payer = payer, space = 16, seeds = [b"counter", payer.key], bump'),
            "Create")
        address, bump = find_program_address([b"counter", bytes(payer.key)], program_id)
        target = bank.new_account(key=address, writable=True)
        ctx = plan.execute(bank, program_id, [target, payer, bank.system_program])

        assert bank.calls() == ["CreateAccount"]
        assert bank.log[0].signed
        assert ctx.bumps == {"counter": bump}
        assert target.owner == program_id

    def test_pda_at_wrong_address(self, bank, program_id, payer, compile_plan):
        plan, _ = compile_plan(
            program_init_src('init, payer = payer, space = 16, seeds = [b"counter"], bump'), "Create")
        target = bank.new_account(writable=True)
        with pytest.raises(ProgramError) as exc:
            plan.execute(bank, program_id, [target, payer, bank.system_program])
        assert exc.value.kind == "MissingRequiredSignature"

    def test_pda_with_non_canonical_bump(self, bank, program_id, payer, compile_plan):
        plan, _ = compile_plan(COUNTER + f"""
#[derive(Accounts)]
#[instruction(bump: u8)]
pub struct Create<'info> {{
    #[account(init, payer = payer, space = 16, seeds = [b"counter"], bump = bump)]
    pub counter: Account<'info, Counter>,
    #[account(mut)]
    pub payer: Signer<'info>,
{PROGRAMS}}}
""", "Create")
        _, canonical = find_program_address([b"counter"], program_id)
        address, bump = _lower_bump([b"counter"], program_id, canonical)
        target = bank.new_account(key=address, writable=True)
        funds = payer.lamports
        with pytest.raises(ConstraintError) as exc:
            plan.execute(bank, program_id, [target, payer, bank.system_program], args={"bump": bump})
        assert exc.value.code == ErrorCode.DerivedAddressMismatch
        assert target.owner == SYSTEM_PROGRAM_ID
        assert target.lamports == 0
        assert payer.lamports == funds

    def test_bump_outside_byte_range(self, bank, program_id, payer, compile_plan):
        plan, _ = compile_plan(COUNTER + f"""
#[derive(Accounts)]
#[instruction(bump: u64)]
pub struct Create<'info> {{
    #[account(init, payer = payer, space = 16, seeds = [b"counter"], bump = bump)]
    pub counter: Account<'info, Counter>,
    #[account(mut)]
    pub payer: Signer<'info>,
{PROGRAMS}}}
""", "Create")
        address, _ = find_program_address([b"counter"], program_id)
        target = bank.new_account(key=address, writable=True)
        with pytest.raises(ConstraintError) as exc:
            plan.execute(bank, program_id, [target, payer, bank.system_program], args={"bump": 256})
        assert exc.value.code == ErrorCode.DerivedAddressMismatch
        assert bank.calls() == []

    def test_space_that_cannot_be_evaluated(self, bank, program_id, payer, compile_plan):
        plan, _ = compile_plan(COUNTER + f"""
#[derive(Accounts)]
#[instruction(slots: u64)]
pub struct Create<'info> {{
    #[account(init, payer = payer, space = 8 + 64 / slots)]
    pub counter: Account<'info, Counter>,
    #[account(mut)]
    pub payer: Signer<'info>,
{PROGRAMS}}}
""", "Create")
        target = bank.new_account(signer=True, writable=True)
        with pytest.raises(ProgramError) as exc:
            plan.execute(bank, program_id, [target, payer, bank.system_program], args={"slots": 0})
        assert exc.value.kind == "InvalidArgument"
        assert target.owner == SYSTEM_PROGRAM_ID

    def test_unsigned_keypair_target(self, bank, program_id, payer, compile_plan):
        plan, _ = compile_plan(program_init_src("init, payer = payer, space = 16"), "Create")
        target = bank.new_account(writable=True)
        with pytest.raises(ProgramError) as exc:
            plan.execute(bank, program_id, [target, payer, bank.system_program])
        assert exc.value.kind == "MissingRequiredSignature"

    def test_failure_rolls_back(self, bank, program_id, compile_plan):
        plan, _ = compile_plan(program_init_src("init, payer = payer, space = 16"), "Create")
        poor = bank.new_account(lamports=10, signer=True, writable=True)
        target = bank.new_account(signer=True, writable=True)
        with pytest.raises(ProgramError) as exc:
            plan.execute(bank, program_id, [target, poor, bank.system_program])
        assert exc.value.kind == "InsufficientFunds"
        assert target.owner == SYSTEM_PROGRAM_ID
        assert target.data_is_empty()
        assert poor.lamports == 10

    def test_init_if_needed_is_idempotent(self, bank, program_id, payer, compile_plan):
        plan, _ = compile_plan(program_init_src("init_if_needed, payer = payer, space = 16"), "Create")
        target = bank.new_account(signer=True, writable=True)

        def bump_count(ctx):
            ctx.accounts.counter.count += 1

        plan.execute(bank, program_id, [target, payer, bank.system_program], handler=bump_count)
        ctx = plan.execute(bank, program_id, [target, payer, bank.system_program], handler=bump_count)
        assert bank.calls() == ["CreateAccount"]
        assert ctx.accounts.counter.count == 2

    def test_rendered_step(self, compile_plan):
        plan, _ = compile_plan(program_init_src("init, payer = payer, space = 16"), "Create")
        kinds = [s.kind for s in plan.field_steps("counter")]
        assert kinds == ["rent", "init", "rent_exempt"]
        assert "payer = payer" in plan.field_steps("counter")[1].text


class TestTokenInit:
    def test_token_account(self, bank, program_id, payer, compile_plan, make_mint):
        plan, _ = compile_plan(f"""
#[derive(Accounts)]
pub struct Open<'info> {{
    #[account(init, payer = payer, token::mint = mint, token::authority = payer)]
    pub vault: Account<'info, TokenAccount>,
    pub mint: Account<'info, Mint>,
    #[account(mut)]
    pub payer: Signer<'info>,
{TOKEN_PROGRAMS}}}
""", "Open")
        mint = make_mint(payer.key)
        target = bank.new_account(signer=True, writable=True)
        ctx = plan.execute(bank, program_id,
                           [target, mint, payer, bank.system_program, bank.token_program])

        assert bank.calls() == ["CreateAccount", "InitializeAccount"]
        assert target.owner == TOKEN_PROGRAM_ID
        assert len(target.data) == TOKEN_ACCOUNT.size()
        assert ctx.accounts.vault.mint == mint.key
        assert ctx.accounts.vault.owner == payer.key

    def test_mint(self, bank, program_id, payer, compile_plan):
        plan, _ = compile_plan(f"""
#[derive(Accounts)]
pub struct NewMint<'info> {{
    #[account(init, payer = payer, mint::decimals = 9, mint::authority = payer,
              mint::freeze_authority = payer)]
    pub mint: Account<'info, Mint>,
    #[account(mut)]
    pub payer: Signer<'info>,
{TOKEN_PROGRAMS}}}
""", "NewMint")
        target = bank.new_account(signer=True, writable=True)
        ctx = plan.execute(bank, program_id, [target, payer, bank.system_program, bank.token_program])

        assert bank.calls() == ["CreateAccount", "InitializeMint"]
        assert len(target.data) == MINT.size()
        assert ctx.accounts.mint.decimals == 9
        assert ctx.accounts.mint.mint_authority == payer.key
        assert ctx.accounts.mint.freeze_authority == payer.key

    def test_associated_token_account(self, bank, program_id, payer, compile_plan, make_mint):
        plan, _ = compile_plan(f"""
#[derive(Accounts)]
pub struct OpenAta<'info> {{
    #[account(init, payer = payer, associated_token::mint = mint,
              associated_token::authority = wallet)]
    pub ata: Account<'info, TokenAccount>,
    pub mint: Account<'info, Mint>,
    pub wallet: UncheckedAccount<'info>,
    #[account(mut)]
    pub payer: Signer<'info>,
{TOKEN_PROGRAMS}    pub associated_token_program: Program<'info, AssociatedToken>,
}}
""", "OpenAta")
        wallet = bank.new_account()
        mint = make_mint(payer.key)
        target = bank.new_account(key=get_associated_token_address(wallet.key, mint.key), writable=True)
        ctx = plan.execute(bank, program_id, [
            target, mint, wallet, payer,
            bank.system_program, bank.token_program, bank.associated_token_program,
        ])

        assert bank.calls() == ["Create", "CreateAccount", "InitializeAccount"]
        assert ctx.accounts.ata.owner == wallet.key
        assert ctx.accounts.ata.mint == mint.key
