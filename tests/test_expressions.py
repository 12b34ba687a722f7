"""Evaluating constraint expressions over their parse trees."""
import pytest

from warden.backend.interpreter import EvaluationError, free_names, interpret
from warden.internals.parser import parse_expression
from warden.runtime.accounts import AccountInfo
from warden.runtime.pubkey import Pubkey


def _eval(src, **names):
    return interpret(parse_expression(src).tree, names)


@pytest.mark.parametrize("src, value", [
    ("1 + 2 * 3", 7),
    ("7 / 2", 3),
    ("10 % 4", 2),
    ("!(1 == 2) && true", True),
    ("1 < 2 or nope", True),
    ("false && nope", False),
    ("[1, 2, 3][1]", 2),
    ("len(b\"seed\")", 4),
    ("\"a\\tb\"", "a\tb"),
    ("1_000", 1000),
    ("None", None),
])
def test_values(src, value):
    assert _eval(src) == value


def test_names_and_attributes():
    info = AccountInfo(Pubkey.new_unique(), 5, bytearray(3))
    assert _eval("acct.lamports * 2", acct=info) == 10
    assert _eval("acct.key() == &acct.key", acct=info) is True
    assert _eval("acct.data_len() + limit", acct=info, limit=1) == 4


@pytest.mark.parametrize("src, message", [
    ("missing + 1", "name 'missing' is not defined"),
    ("acct.__class__", "attribute '__class__' is not accessible"),
    ("acct.__dict__.clear()", "attribute '__dict__' is not accessible"),
    ("print(1)", "'print' is not callable"),
    ("acct.to_bytes()", "method 'to_bytes' is not callable"),
])
def test_rejected(src, message):
    info = AccountInfo(Pubkey.new_unique(), 1)
    with pytest.raises(EvaluationError, match=message):
        _eval(src, acct=info)


def test_free_names_skip_attributes():
    tree = parse_expression("vault.amount >= min(limit, vault.cap)").tree
    assert [str(t) for t in free_names(tree)] == ["vault", "min", "limit", "vault"]
