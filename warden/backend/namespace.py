"""Evaluation of constraint expressions against bound accounts."""
from __future__ import annotations

from typing import Any, Dict, List

from warden.backend.interpreter import CONSTANTS, EvaluationError, interpret
from warden.internals import errors as er
from warden.runtime.accounts import BoundAccounts
from warden.runtime.context import Context
from warden.runtime.errors import CustomError, ErrorCode, fail
from warden.runtime.pubkey import seed_list
from warden.semantics.ast import ErrorOverride, ErrorRef, Expr

# Failures of an expression's own operations, as opposed to failed checks.
EVALUATION_FAILURES = (TypeError, ValueError, ArithmeticError, AttributeError, IndexError, KeyError)


def namespace(ctx: Context, scope: BoundAccounts) -> Dict[str, Any]:
    """Names visible to an expression: instruction args, then fields of the struct."""
    ns: Dict[str, Any] = dict(CONSTANTS)
    ns.update(ctx.args)
    ns.update(scope)
    ns["program_id"] = ctx.program_id
    return ns


def evaluate(expr: Expr, ctx: Context, scope: BoundAccounts) -> Any:
    """Value of `expr`.

    Raises:
        EvaluationError: the expression itself failed (unknown name, bad
            operand types, division by zero and the like).
    """
    if expr.tree is None:
        er.raise_internal_error("CE0002", expr=expr.source)
    try:
        return interpret(expr.tree, namespace(ctx, scope))
    except EVALUATION_FAILURES as e:
        raise EvaluationError(f"{expr}: {e}") from e


def evaluate_or(expr: Expr, ctx: Context, scope: BoundAccounts, default: Any) -> Any:
    """Value of `expr`, or `default` when it cannot be evaluated."""
    try:
        return evaluate(expr, ctx, scope)
    except EvaluationError:
        return default


def evaluate_seeds(seeds, ctx: Context, scope: BoundAccounts) -> List[bytes]:
    values = [evaluate(s, ctx, scope) for s in seeds]
    try:
        return seed_list(values)
    except TypeError as e:
        raise EvaluationError(str(e)) from e


def evaluate_bump(expr: Expr, ctx: Context, scope: BoundAccounts) -> int:
    value = evaluate(expr, ctx, scope)
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 255:
        raise EvaluationError(f"bump {value!r} is not a byte")
    return value


def info_of(view):
    """The raw account behind any bound view."""
    return view.to_account_info()


def custom_of(error: ErrorOverride):
    if isinstance(error, ErrorRef):
        return error.resolved
    if isinstance(error, CustomError):
        return error
    return None


def raise_for(default: ErrorCode, error: ErrorOverride, account: str):
    raise fail(default, custom_of(error), account)
