"""Parsing declarations into constraint groups, and front-end diagnostics."""
import pytest

from warden.compiler import compile_accounts, compile_source
from warden.internals.report import CompileError
from warden.runtime.errors import ConstraintError, ErrorCode
from warden.runtime.layout import make_account_type
from warden.semantics.ast import (
    AccountsStruct,
    AssociatedTokenInit,
    CompositeField,
    ConstraintGroup,
    ConstraintMut,
    ConstraintRaw,
    Expr,
    Field,
    MintInit,
    ProgramInit,
    RentExempt,
    TokenInit,
    Ty,
    TyKind,
)

COUNTER = """
#[account]
pub struct Counter {
    pub authority: Pubkey,
    pub count: u64,
}
"""


def _struct(src, name):
    return compile_source(src).unit.struct(name)


def _error_codes(src):
    with pytest.raises(CompileError) as exc:
        compile_source(src)
    return exc.value.codes


class TestParse:
    """Declarations that compile cleanly."""

    def test_program_init(self):
        s = _struct(COUNTER + """
#[derive(Accounts)]
pub struct Initialize<'info> {
    #[account(init, payer = payer, space = 8 + 40)]
    pub counter: Account<'info, Counter>,
    #[account(mut)]
    pub payer: Signer<'info>,
    pub system_program: Program<'info, System>,
}
""", "Initialize")
        counter = s.get_field("counter")
        assert counter.ty.kind == TyKind.ACCOUNT and counter.ty.inner == "Counter"
        init = counter.constraints.init
        assert init.payer == "payer"
        assert isinstance(init.kind, ProgramInit) and init.kind.owner is None
        assert str(init.space) == "(8 + 40)"
        assert not init.if_needed
        assert counter.constraints.rent_exempt.mode == RentExempt.ENFORCE
        assert s.get_field("payer").ty.kind == TyKind.SIGNER
        assert s.get_field("system_program").ty.inner == "System"

    def test_checks_with_custom_errors(self):
        s = _struct(COUNTER + """
#[error_code]
pub enum CounterError {
    #[msg("not the authority")]
    Unauthorized,
    TooLarge,
}

#[derive(Accounts)]
pub struct Update<'info> {
    #[account(mut @ CounterError::TooLarge, has_one = authority @ CounterError::Unauthorized,
              constraint = counter.count < 10 @ 77)]
    pub counter: Account<'info, Counter>,
    pub authority: Signer<'info>,
}
""", "Update")
        g = s.get_field("counter").constraints
        assert g.mut.error.resolved.code == 6001
        assert g.has_one[0].join_target == "authority"
        assert g.has_one[0].error.resolved.code == 6000
        assert g.has_one[0].error.resolved.msg == "not the authority"
        assert str(g.raw[0].raw) == "(counter.count < 10)"
        assert g.raw[0].error.resolved.code == 77

    def test_rust_operators_render_to_python(self):
        s = _struct(COUNTER + """
#[derive(Accounts)]
pub struct Check<'info> {
    #[account(constraint = !(counter.count == 0) && counter.count / 2 >= 1 || false)]
    pub counter: Account<'info, Counter>,
}
""", "Check")
        raw = s.get_field("counter").constraints.raw[0].raw
        assert str(raw) == "(((not (counter.count == 0)) and ((counter.count // 2) >= 1)) or False)"

    def test_seeds_with_bump(self):
        s = _struct("""
#[derive(Accounts)]
#[instruction(bump: u8)]
pub struct Check<'info> {
    #[account(seeds = [b"vault", authority.key], bump = bump)]
    pub vault: UncheckedAccount<'info>,
    pub authority: Signer<'info>,
}
""", "Check")
        seeds = s.get_field("vault").constraints.seeds
        assert [str(e) for e in seeds.seeds] == ['b"vault"', "authority.key"]
        assert str(seeds.bump) == "bump"
        assert not seeds.is_init
        assert s.ix_args == ["bump"]

    def test_token_mint_and_associated_kinds(self):
        s = _struct("""
#[derive(Accounts)]
pub struct Setup<'info> {
    #[account(init, payer = payer, mint::decimals = 6, mint::authority = payer)]
    pub mint: Account<'info, Mint>,
    #[account(init, payer = payer, token::mint = mint, token::authority = payer)]
    pub vault: Account<'info, TokenAccount>,
    #[account(init, payer = payer, associated_token::mint = mint, associated_token::authority = payer)]
    pub ata: Account<'info, TokenAccount>,
    #[account(mut)]
    pub payer: Signer<'info>,
    pub system_program: Program<'info, System>,
    pub token_program: Program<'info, Token>,
    pub associated_token_program: Program<'info, AssociatedToken>,
    pub rent: Sysvar<'info, Rent>,
}
""", "Setup")
        mint = s.get_field("mint").constraints.init.kind
        assert isinstance(mint, MintInit) and mint.owner == "payer" and str(mint.decimals) == "6"
        vault = s.get_field("vault").constraints.init.kind
        assert isinstance(vault, TokenInit) and vault.mint == "mint"
        ata_group = s.get_field("ata").constraints
        assert isinstance(ata_group.init.kind, AssociatedTokenInit)
        assert ata_group.associated_token.wallet == "payer"

    def test_composite_field(self):
        s = _struct(COUNTER + """
#[derive(Accounts)]
pub struct Inner<'info> {
    #[account(mut)]
    pub counter: Account<'info, Counter>,
}

#[derive(Accounts)]
pub struct Outer<'info> {
    #[account(constraint = inner.counter.count > 0)]
    pub inner: Inner<'info>,
}
""", "Outer")
        inner = s.get_field("inner")
        assert isinstance(inner, CompositeField)
        assert inner.struct.name == "Inner"

    def test_init_if_needed_and_zero(self):
        s = _struct(COUNTER + """
#[derive(Accounts)]
pub struct Both<'info> {
    #[account(init_if_needed, payer = payer)]
    pub a: Account<'info, Counter>,
    #[account(zero)]
    pub b: Account<'info, Counter>,
    #[account(mut)]
    pub payer: Signer<'info>,
    pub system_program: Program<'info, System>,
}
""", "Both")
        assert s.get_field("a").constraints.init.if_needed
        b = s.get_field("b").constraints
        assert b.zeroed is not None
        assert b.rent_exempt.mode == RentExempt.ENFORCE

    def test_comments_are_ignored(self):
        s = _struct(COUNTER + """
// line comment
#[derive(Accounts)]
pub struct C<'info> {
    /* block
       comment */
    #[account(mut)] // trailing
    pub counter: Account<'info, Counter>,
}
""", "C")
        assert s.get_field("counter").constraints.mut is not None


class TestDiagnostics:
    """Declarations the front end rejects, by diagnostic code."""

    def test_syntax_error(self):
        assert _error_codes("#[derive(Accounts)] pub struct {") == ["CE2003"]

    def test_unknown_constraint(self):
        assert "CE2001" in _error_codes(COUNTER + """
#[derive(Accounts)]
pub struct A<'info> { #[account(frobnicate)] pub counter: Account<'info, Counter> }
""")

    def test_duplicate_constraint(self):
        assert "CE1002" in _error_codes(COUNTER + """
#[derive(Accounts)]
pub struct A<'info> { #[account(mut, mut)] pub counter: Account<'info, Counter> }
""")

    def test_init_without_payer(self):
        assert "CE1003" in _error_codes(COUNTER + """
#[derive(Accounts)]
pub struct A<'info> {
    #[account(init)] pub counter: Account<'info, Counter>,
    pub system_program: Program<'info, System>,
}
""")

    def test_payer_without_init(self):
        assert "CE1008" in _error_codes(COUNTER + """
#[derive(Accounts)]
pub struct A<'info> {
    #[account(payer = payer)] pub counter: Account<'info, Counter>,
    #[account(mut)] pub payer: Signer<'info>,
}
""")

    def test_init_with_zero(self):
        assert "CE1007" in _error_codes(COUNTER + """
#[derive(Accounts)]
pub struct A<'info> {
    #[account(init, zero, payer = payer)] pub counter: Account<'info, Counter>,
    #[account(mut)] pub payer: Signer<'info>,
    pub system_program: Program<'info, System>,
}
""")

    def test_unknown_account_type(self):
        assert "CE1001" in _error_codes("""
#[derive(Accounts)]
pub struct A<'info> { pub thing: Account<'info, Missing> }
""")

    def test_unknown_custom_error(self):
        assert "CE1011" in _error_codes(COUNTER + """
#[derive(Accounts)]
pub struct A<'info> { #[account(mut @ Nope::Missing)] pub counter: Account<'info, Counter> }
""")

    def test_duplicate_field(self):
        assert "CE1012" in _error_codes(COUNTER + """
#[derive(Accounts)]
pub struct A<'info> {
    pub counter: Account<'info, Counter>,
    pub counter: Account<'info, Counter>,
}
""")

    def test_unresolved_target(self):
        assert "CE1006" in _error_codes(COUNTER + """
#[derive(Accounts)]
pub struct A<'info> { #[account(has_one = authority)] pub counter: Account<'info, Counter> }
""")

    def test_unknown_expression_name(self):
        with pytest.raises(CompileError) as exc:
            compile_source(COUNTER + """
#[derive(Accounts)]
#[instruction(limit: u64)]
pub struct A<'info> {
    #[account(constraint = counter.count < limt, seeds = [b"c", athority.key], bump)]
    pub counter: Account<'info, Counter>,
    pub authority: Signer<'info>,
}
""")
        assert exc.value.codes == ["CE1020", "CE1020"]
        messages = [d.message for d in exc.value.reporter.items]
        assert messages == ["unknown name 'limt' in constraint of field 'counter'",
                            "unknown name 'athority' in seeds of field 'counter'"]
        assert exc.value.reporter.items[0].span.line == 11

    def test_expression_names_that_resolve(self):
        compile_source(COUNTER + """
#[derive(Accounts)]
#[instruction(limit: u64)]
pub struct A<'info> {
    #[account(constraint = counter.count < max(limit, 1) && counter.authority == authority.key(),
              owner = program_id)]
    pub counter: Account<'info, Counter>,
    #[account(address = SYSTEM_PROGRAM_ID)]
    pub authority: Signer<'info>,
}
""")

    def test_unknown_name_in_literal(self):
        assert _error_codes(COUNTER + """
#[derive(Accounts)]
pub struct A<'info> { #[account("countr.count > 0")] pub counter: Account<'info, Counter> }
""") == ["CE1020"]

    def test_missing_program_fields(self):
        codes = _error_codes("""
#[derive(Accounts)]
pub struct A<'info> {
    #[account(init, payer = payer, token::mint = mint, token::authority = payer)]
    pub vault: Account<'info, TokenAccount>,
    pub mint: Account<'info, Mint>,
    #[account(mut)] pub payer: Signer<'info>,
    pub system_program: Program<'info, System>,
}
""")
        assert codes == ["CE1010"]

    def test_mint_without_decimals(self):
        assert "CE1003" in _error_codes("""
#[derive(Accounts)]
pub struct A<'info> {
    #[account(init, payer = payer, mint::authority = payer)]
    pub mint: Account<'info, Mint>,
    #[account(mut)] pub payer: Signer<'info>,
    pub system_program: Program<'info, System>,
    pub token_program: Program<'info, Token>,
}
""")

    def test_conflicting_init_kinds(self):
        assert "CE1009" in _error_codes("""
#[derive(Accounts)]
pub struct A<'info> {
    #[account(init, payer = payer, mint::decimals = 6, mint::authority = payer,
              token::mint = payer, token::authority = payer)]
    pub mint: Account<'info, Mint>,
    #[account(mut)] pub payer: Signer<'info>,
    pub system_program: Program<'info, System>,
    pub token_program: Program<'info, Token>,
}
""")

    def test_composite_accepts_only_expressions(self):
        assert "CE1014" in _error_codes(COUNTER + """
#[derive(Accounts)]
pub struct Inner<'info> { pub counter: Account<'info, Counter> }

#[derive(Accounts)]
pub struct Outer<'info> { #[account(mut)] pub inner: Inner<'info> }
""")

    def test_signer_on_program(self):
        assert "CE1004" in _error_codes("""
#[derive(Accounts)]
pub struct A<'info> { #[account(signer)] pub system_program: Program<'info, System> }
""")

    def test_custom_error_not_accepted(self):
        assert "CE2002" in _error_codes("""
#[derive(Accounts)]
pub struct A<'info> { #[account(executable @ 5)] pub program: UncheckedAccount<'info> }
""")

    def test_invalid_escape(self):
        assert _error_codes("""
#[derive(Accounts)]
pub struct A<'info> { #[account(seeds = [b"bad\\q"])] pub pda: UncheckedAccount<'info> }
""") == ["CE2004"]

    def test_space_cannot_be_computed(self):
        assert "CE1015" in _error_codes("""
#[derive(Accounts)]
pub struct A<'info> {
    #[account(init, payer = payer)] pub raw: UncheckedAccount<'info>,
    #[account(mut)] pub payer: Signer<'info>,
    pub system_program: Program<'info, System>,
}
""")

    def test_recursive_struct(self):
        assert "CE1019" in _error_codes("""
#[derive(Accounts)]
pub struct A<'info> { pub b: B<'info> }

#[derive(Accounts)]
pub struct B<'info> { pub a: A<'info> }
""")

    def test_diagnostic_location(self):
        with pytest.raises(CompileError) as exc:
            compile_source("#[derive(Accounts)]\npub struct A<'info> {\n    #[account(bogus)]\n    pub x: AccountInfo<'info>,\n}\n", "decl.warden")
        d = exc.value.reporter.items[0]
        assert d.code == "CE2001"
        assert (d.span.line, d.span.col) == (3, 15)
        text = exc.value.reporter.format(use_color=False)
        assert "error [CE2001]" in text
        assert "#[account(bogus)]" in text


class TestWarnings:
    def test_literal_is_deprecated(self):
        compiled = compile_source(COUNTER + """
#[derive(Accounts)]
pub struct A<'info> { #[account("counter.count > 0")] pub counter: Account<'info, Counter> }
""")
        assert compiled.reporter.codes() == ["CW1001"]
        lit = compiled.unit.struct("A").get_field("counter").constraints.literal[0]
        assert lit.lit == "counter.count > 0"
        assert str(lit.as_expr()) == "(counter.count > 0)"

    def test_dup_without_nodup(self):
        compiled = compile_source(COUNTER + """
#[derive(Accounts)]
pub struct A<'info> {
    #[account(mut)] pub a: Account<'info, Counter>,
    #[account(mut, dup = a)] pub b: Account<'info, Counter>,
}
""")
        assert compiled.reporter.codes() == ["CW1002"]


class TestHandBuilt:
    """compile_accounts over structs assembled without declaration text."""

    VAULT = make_account_type("Vault", [("authority", "Pubkey"), ("amount", "u64")])

    def _withdraw(self, expr):
        return AccountsStruct(None, "Withdraw", [
            Field(None, "vault", Ty(TyKind.ACCOUNT, "Vault"),
                  ConstraintGroup(mut=ConstraintMut(), raw=[ConstraintRaw(Expr(expr))])),
            Field(None, "authority", Ty(TyKind.SIGNER)),
        ], ix_args=["limit"])

    def test_plan_runs(self, bank, program_id, make_program_account):
        struct = self._withdraw("vault.amount <= limit && vault.authority == authority.key()")
        plan = compile_accounts(struct, {"Vault": self.VAULT})
        assert [s.kind for s in plan.field_steps("vault")] == ["mut", "raw"]

        auth = bank.new_account(signer=True)
        vault = make_program_account(self.VAULT, authority=auth.key, amount=5)
        ctx = plan.execute(bank, program_id, [vault, auth], args={"limit": 10})
        assert ctx.accounts.vault.amount == 5
        with pytest.raises(ConstraintError) as exc:
            plan.execute(bank, program_id, [vault, auth], args={"limit": 4})
        assert exc.value.code == ErrorCode.RawExpressionFalse

    def test_names_are_resolved(self):
        with pytest.raises(CompileError) as exc:
            compile_accounts(self._withdraw("vault.amount <= limt"), {"Vault": self.VAULT})
        assert exc.value.codes == ["CE1020"]

    def test_unparsable_expression(self):
        with pytest.raises(CompileError) as exc:
            compile_accounts(self._withdraw("vault.amount <="), {"Vault": self.VAULT})
        assert exc.value.codes == ["CE2002"]

    def test_unknown_type(self):
        with pytest.raises(CompileError) as exc:
            compile_accounts(self._withdraw("true"))
        assert exc.value.codes == ["CE1001"]
