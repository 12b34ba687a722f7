"""Assemble a ConstraintGroup from the `#[account(...)]` items of one field."""
from __future__ import annotations
from typing import Callable, Dict, List, Optional, Tuple

from lark import Token, Tree, UnexpectedInput

from warden.internals import errors as er
from warden.internals.report import Span, span_of
from warden.semantics.ast import (
    AssociatedTokenInit,
    ConstraintAddress,
    ConstraintAssociatedToken,
    ConstraintClose,
    ConstraintDup,
    ConstraintExecutable,
    ConstraintGroup,
    ConstraintHasOne,
    ConstraintInit,
    ConstraintLiteral,
    ConstraintMut,
    ConstraintOwner,
    ConstraintRaw,
    ConstraintRentExempt,
    ConstraintSeeds,
    ConstraintSigner,
    ConstraintState,
    ConstraintZeroed,
    ErrorRef,
    Expr,
    MintInit,
    ProgramInit,
    RentExempt,
    TokenInit,
)
from warden.semantics.ast_builder.expressions import build_expr, simple_name
from warden.semantics.ast_builder.utils.tree_navigation import string_value
from warden.semantics.error_reporter import PassErrorReporter

FLAGS = frozenset({"init", "init_if_needed", "zero", "mut", "signer", "executable", "bump"})
VALUES = frozenset({
    "payer", "space", "seeds", "bump", "has_one", "dup", "constraint",
    "owner", "rent_exempt", "state", "close", "address",
})
SCOPED = frozenset({
    ("token", "mint"), ("token", "authority"),
    ("mint", "decimals"), ("mint", "authority"), ("mint", "freeze_authority"),
    ("associated_token", "mint"), ("associated_token", "authority"),
})
# Constraints that accept `@ <error>`.
OVERRIDABLE = frozenset({"mut", "signer", "has_one", "constraint", "owner", "address"})
# Values that must name another field.
FIELD_VALUED = frozenset({"payer", "has_one", "dup", "state", "close"})
REPEATABLE = frozenset({"has_one", "constraint", "literal"})


def parse_error_ref(node: Tree) -> ErrorRef:
    ref = node.children[0]
    if ref.data == "enum_error":
        enum, variant = ref.children
        return ErrorRef(enum=str(enum), variant=str(variant), loc=span_of(ref))
    return ErrorRef(code=int(str(ref.children[0]).replace("_", "")), loc=span_of(ref))


class ConstraintGroupBuilder:
    """Collects the raw items of one field, then folds them into slots.

    Diagnostics go to the reporter; a field with errors still yields a
    (partial) group so later fields keep being checked.
    """

    def __init__(self, err: PassErrorReporter, parse_expr: Callable[[str], Tree]):
        self.err = err
        self.parse_expr = parse_expr

    def build(self, field_name: str, items: List[Tree]) -> ConstraintGroup:
        self.field = field_name
        self.params: Dict[str, Tuple[object, Optional[Span]]] = {}
        self.scoped: Dict[Tuple[str, str], Tuple[object, Optional[Span]]] = {}
        self.group = ConstraintGroup()

        for item in items:
            if item.data == "flag_constraint":
                self._flag(item)
            elif item.data == "value_constraint":
                self._value(item)
            elif item.data == "scoped_constraint":
                self._scoped(item)
            else:
                self._literal(item)

        self._finish()
        return self.group

    # --- item handlers ---

    def _override(self, key: str, children: List[object]) -> Optional[ErrorRef]:
        node = next((c for c in children if isinstance(c, Tree) and c.data == "error_override"), None)
        if node is None:
            return None
        if key not in OVERRIDABLE:
            self.err.emit(er.ERR.CE2002, span_of(node), constraint=key,
                          reason="custom errors are not accepted here")
            return None
        return parse_error_ref(node)

    def _remember(self, key: str, value, span: Optional[Span]) -> bool:
        if key in self.params and key not in REPEATABLE:
            self.err.emit(er.ERR.CE1002, span, constraint=key, field=self.field)
            return False
        self.params[key] = (value, span)
        return True

    def _flag(self, item: Tree) -> None:
        name_tok: Token = item.children[0]
        key = str(name_tok)
        span = span_of(name_tok)
        if key not in FLAGS:
            if key in VALUES:
                self.err.emit(er.ERR.CE2002, span, constraint=key, reason="a value is required")
            else:
                self.err.emit(er.ERR.CE2001, span, name=key)
            return
        error = self._override(key, item.children[1:])
        if key == "init_if_needed":
            if self._remember("init", True, span):
                self.params["init_if_needed"] = (True, span)
            return
        if key == "bump":
            self._remember("bump", None, span)
            return
        if not self._remember(key, error, span):
            return
        if key == "zero":
            self.group.zeroed = ConstraintZeroed(loc=span)
        elif key == "mut":
            self.group.mut = ConstraintMut(error=error, loc=span)
        elif key == "signer":
            self.group.signer = ConstraintSigner(error=error, loc=span)
        elif key == "executable":
            self.group.executable = ConstraintExecutable(loc=span)

    def _field_name(self, key: str, node, span, dotted: bool = False) -> Optional[str]:
        name = simple_name(node)
        if not name or ("." in name and not dotted):
            self.err.emit(er.ERR.CE2002, span, constraint=key, reason="expected a field name")
            return None
        return name

    def _value(self, item: Tree) -> None:
        name_tok: Token = item.children[0]
        key = str(name_tok)
        span = span_of(name_tok)
        node = item.children[1]
        if key not in VALUES:
            if key in FLAGS:
                self.err.emit(er.ERR.CE2002, span, constraint=key, reason="it does not take a value")
            else:
                self.err.emit(er.ERR.CE2001, span, name=key)
            return
        error = self._override(key, item.children[2:])
        g = self.group

        if key in FIELD_VALUED:
            target = self._field_name(key, node, span, dotted=(key == "dup"))
            if target is None:
                return
            if not self._remember(key, target, span):
                return
            if key == "has_one":
                g.has_one.append(ConstraintHasOne(target, error=error, loc=span))
            elif key == "dup":
                g.dup = ConstraintDup(target, loc=span)
            elif key == "state":
                g.state = ConstraintState(target, loc=span)
            elif key == "close":
                g.close = ConstraintClose(target, loc=span)
            return

        if key == "rent_exempt":
            mode = simple_name(node)
            if mode not in ("enforce", "skip"):
                self.err.emit(er.ERR.CE2002, span, constraint=key, reason="expected 'enforce' or 'skip'")
                return
            if self._remember(key, mode, span):
                g.rent_exempt = ConstraintRentExempt(RentExempt(mode), loc=span)
            return

        if key == "seeds":
            if not (isinstance(node, Tree) and node.data == "list_lit"):
                self.err.emit(er.ERR.CE2002, span, constraint=key, reason="expected a list of seeds")
                return
            self._remember(key, [build_expr(c) for c in node.children], span)
            return

        expr = build_expr(node)
        if not self._remember(key, expr, span):
            return
        if key == "constraint":
            g.raw.append(ConstraintRaw(expr, error=error, loc=span))
        elif key == "owner":
            g.owner = ConstraintOwner(expr, error=error, loc=span)
        elif key == "address":
            g.address = ConstraintAddress(expr, error=error, loc=span)

    def _scoped(self, item: Tree) -> None:
        scope_tok, name_tok, node = item.children
        pair = (str(scope_tok), str(name_tok))
        label = f"{pair[0]}::{pair[1]}"
        span = span_of(scope_tok)
        if pair not in SCOPED:
            self.err.emit(er.ERR.CE2001, span, name=label)
            return
        if pair in self.scoped:
            self.err.emit(er.ERR.CE1002, span, constraint=label, field=self.field)
            return
        if pair == ("mint", "decimals"):
            self.scoped[pair] = (build_expr(node), span)
            return
        target = self._field_name(label, node, span)
        if target is not None:
            self.scoped[pair] = (target, span)

    def _literal(self, item: Tree) -> None:
        tok: Token = item.children[0]
        span = span_of(tok)
        if len(item.children) > 1:
            self.err.emit(er.ERR.CE2002, span, constraint="literal",
                          reason="custom errors are not accepted here")
        text = string_value(tok)
        try:
            tree = self.parse_expr(text)
        except UnexpectedInput as e:
            self.err.emit(er.ERR.CE2002, span, constraint="literal", reason=f"cannot parse '{text}' ({type(e).__name__})")
            return
        expr = build_expr(tree)
        expr.loc = span
        self.group.literal.append(ConstraintLiteral(text, expr=expr, loc=span))
        self.params["literal"] = (text, span)

    # --- folding ---

    def _finish(self) -> None:
        g = self.group
        p = self.params
        init_span = p["init"][1] if "init" in p else None

        if "init" in p and "zero" in p:
            self.err.emit(er.ERR.CE1007, p["zero"][1], field=self.field)

        seeds = None
        if "seeds" in p:
            bump = p["bump"][0] if "bump" in p else None
            seeds = ConstraintSeeds(p["seeds"][0], bump=bump, is_init="init" in p, loc=p["seeds"][1])
            g.seeds = seeds
        elif "bump" in p:
            self.err.emit(er.ERR.CE1003, p["bump"][1], constraint="bump", field=self.field, param="seeds")

        families = sorted({scope for scope, _ in self.scoped})
        ata = self._associated_token()

        if "init" not in p:
            for key in ("payer", "space"):
                if key in p:
                    self.err.emit(er.ERR.CE1008, p[key][1], param=key, field=self.field)
            for (scope, name), (_, span) in self.scoped.items():
                if scope != "associated_token":
                    self.err.emit(er.ERR.CE1008, span, param=f"{scope}::{name}", field=self.field)
            if ata is not None:
                g.associated_token = ata
            if "zero" in p and g.rent_exempt is None:
                g.rent_exempt = ConstraintRentExempt(RentExempt.ENFORCE)
            return

        if len(families) > 1:
            self.err.emit(er.ERR.CE1009, init_span, field=self.field, kinds=", ".join(families))
            return

        if "payer" not in p:
            self.err.emit(er.ERR.CE1003, init_span, constraint="init", field=self.field, param="payer")
            return

        kind = self._init_kind(families[0] if families else None, ata, init_span)
        if kind is None:
            return
        if ata is not None:
            g.associated_token = ata

        g.init = ConstraintInit(
            payer=p["payer"][0],
            kind=kind,
            if_needed="init_if_needed" in p,
            space=p["space"][0] if "space" in p else None,
            seeds=seeds,
            loc=init_span,
        )
        if g.rent_exempt is None:
            g.rent_exempt = ConstraintRentExempt(RentExempt.ENFORCE)

    def _require(self, scope: str, name: str, span) -> Optional[object]:
        pair = (scope, name)
        if pair not in self.scoped:
            self.err.emit(er.ERR.CE1003, span, constraint=scope, field=self.field, param=f"{scope}::{name}")
            return None
        return self.scoped[pair][0]

    def _associated_token(self) -> Optional[ConstraintAssociatedToken]:
        pairs = [k for k in self.scoped if k[0] == "associated_token"]
        if not pairs:
            return None
        span = self.scoped[pairs[0]][1]
        mint = self._require("associated_token", "mint", span)
        wallet = self._require("associated_token", "authority", span)
        if mint is None or wallet is None:
            return None
        return ConstraintAssociatedToken(wallet=wallet, mint=mint, loc=span)

    def _init_kind(self, family: Optional[str], ata, span):
        if family is None:
            owner: Optional[Expr] = self.params["owner"][0] if "owner" in self.params else None
            return ProgramInit(owner=owner)
        if family == "token":
            mint = self._require("token", "mint", span)
            owner = self._require("token", "authority", span)
            if mint is None or owner is None:
                return None
            return TokenInit(owner=owner, mint=mint)
        if family == "mint":
            owner = self._require("mint", "authority", span)
            decimals = self._require("mint", "decimals", span)
            if owner is None or decimals is None:
                return None
            freeze = self.scoped.get(("mint", "freeze_authority"))
            return MintInit(owner=owner, decimals=decimals, freeze_authority=freeze[0] if freeze else None)
        if ata is None:
            return None
        return AssociatedTokenInit(owner=ata.wallet, mint=ata.mint)
