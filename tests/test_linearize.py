"""Ordering of constraint groups into execution sequences."""
from warden.backend.linearize import LINEARIZATION_ORDER, linearize
from warden.semantics.ast import (
    ConstraintAddress,
    ConstraintAssociatedToken,
    ConstraintClose,
    ConstraintDup,
    ConstraintExecutable,
    ConstraintGroup,
    ConstraintHasOne,
    ConstraintInit,
    ConstraintKind,
    ConstraintLiteral,
    ConstraintMut,
    ConstraintOwner,
    ConstraintRaw,
    ConstraintRentExempt,
    ConstraintSeeds,
    ConstraintSigner,
    ConstraintState,
    ConstraintZeroed,
    Expr,
)


def _kinds(group):
    return [c.kind for c in linearize(group)]


class TestLinearize:
    """The fixed priority order, independent of declaration order."""

    def test_every_kind_has_a_position(self):
        assert len(LINEARIZATION_ORDER) == len(ConstraintKind)
        assert set(LINEARIZATION_ORDER) == set(ConstraintKind)

    def test_empty_group(self):
        assert linearize(ConstraintGroup()) == []

    def test_full_group_follows_priority(self):
        seeds = ConstraintSeeds([Expr('b"x"')])
        group = ConstraintGroup(
            address=ConstraintAddress(Expr("program_id")),
            close=ConstraintClose("dest"),
            state=ConstraintState("prog"),
            executable=ConstraintExecutable(),
            rent_exempt=ConstraintRentExempt(),
            owner=ConstraintOwner(Expr("program_id")),
            raw=[ConstraintRaw(Expr("True"))],
            literal=[ConstraintLiteral("True")],
            dup=ConstraintDup("other"),
            has_one=[ConstraintHasOne("authority")],
            signer=ConstraintSigner(),
            mut=ConstraintMut(),
            associated_token=ConstraintAssociatedToken("wallet", "mint"),
            seeds=seeds,
            init=ConstraintInit("payer"),
            zeroed=ConstraintZeroed(),
        )
        assert _kinds(group) == list(LINEARIZATION_ORDER)

    def test_init_and_seeds_precede_has_one(self):
        group = ConstraintGroup(
            has_one=[ConstraintHasOne("authority")],
            seeds=ConstraintSeeds([Expr('b"x"')], is_init=True),
            init=ConstraintInit("payer"),
        )
        assert _kinds(group) == [ConstraintKind.INIT, ConstraintKind.SEEDS, ConstraintKind.HAS_ONE]

    def test_repeatable_kinds_keep_declared_order(self):
        group = ConstraintGroup(
            raw=[ConstraintRaw(Expr("a")), ConstraintRaw(Expr("b"))],
            has_one=[ConstraintHasOne("x"), ConstraintHasOne("y")],
        )
        values = [c.value for c in linearize(group)]
        assert [v.join_target for v in values[:2]] == ["x", "y"]
        assert [str(v.raw) for v in values[2:]] == ["a", "b"]

    def test_mut_before_signer_before_owner(self):
        group = ConstraintGroup(
            owner=ConstraintOwner(Expr("program_id")),
            signer=ConstraintSigner(),
            mut=ConstraintMut(),
        )
        assert _kinds(group) == [ConstraintKind.MUT, ConstraintKind.SIGNER, ConstraintKind.OWNER]
