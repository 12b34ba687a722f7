"""#[error_code] enums: variant numbering, messages and runtime codes."""
import pytest

from warden.compiler import compile_source
from warden.internals.report import CompileError
from warden.runtime.errors import ERROR_CODE_OFFSET, ConstraintError, CustomError, ErrorCode, fail


class TestVariantIds:
    def test_sequential_with_reset(self):
        unit = compile_source("""
#[error_code]
pub enum E {
    First,
    #[msg("second")]
    Second = 10,
    Third,
}
""").unit
        enum = unit.error_enums[0]
        assert [(v.name, v.id) for v in enum.variants] == [("First", 0), ("Second", 10), ("Third", 11)]
        assert enum.variant("Second").msg == "second"
        assert enum.variant("Missing") is None

    def test_only_msg_attributes(self):
        with pytest.raises(CompileError) as exc:
            compile_source('#[error_code] enum E { #[doc("x")] A }')
        assert exc.value.codes == ["CE1018"]

    def test_duplicate_declaration(self):
        with pytest.raises(CompileError) as exc:
            compile_source("#[error_code] enum E { A }\n#[error_code] enum E { B }")
        assert exc.value.codes == ["CE1013"]

    def test_resolved_code_uses_offset(self):
        unit = compile_source("""
#[error_code]
pub enum E { A, B = 5 }

#[derive(Accounts)]
pub struct S<'info> { #[account(mut @ E::B)] pub x: AccountInfo<'info> }
""").unit
        ref = unit.struct("S").get_field("x").constraints.mut.error
        assert ref.resolved == CustomError(ERROR_CODE_OFFSET + 5)
        assert ref.resolved.name == "B"


class TestConstraintError:
    def test_default_code(self):
        err = ConstraintError.from_code(ErrorCode.NotWritable, "vault")
        assert (err.code, err.name, err.account) == (2000, "NotWritable", "vault")
        assert err.message == "a mut constraint was violated"
        assert "2000" in str(err) and "vault" in str(err)

    def test_custom_replaces_default(self):
        err = fail(ErrorCode.NotSigner, CustomError(6003, "Nope", "go away"))
        assert (err.code, err.name, err.message) == (6003, "Nope", "go away")

    def test_bare_integer_custom(self):
        err = fail(ErrorCode.RawExpressionFalse, CustomError(42))
        assert (err.code, err.name) == (42, "Custom")
