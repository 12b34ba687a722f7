"""Main ASTBuilder for warden declaration files.

Turns the Lark parse tree of a declaration file into a SourceUnit:

- `#[error_code]` enums: variant ids and messages
- `#[account]` data types: field layouts
- `#[derive(Accounts)]` structs: fields, capability types and constraint groups

Declaration-level diagnostics (unknown constraint keywords, duplicated or
missing parameters) are reported here; cross-declaration checks live in
semantics.passes.resolve.
"""
from __future__ import annotations
from typing import Callable, List

from lark import Tree

from warden.internals import errors as er
from warden.internals.report import Reporter, span_of
from warden.runtime.layout import USER_FIELD_TYPES
from warden.semantics.ast import (
    AccountField,
    AccountsStruct,
    AccountTypeDef,
    AccountTypeField,
    CompositeField,
    ErrorEnum,
    ErrorVariant,
    Field,
    SourceUnit,
)
from warden.semantics.ast_builder.constraints import ConstraintGroupBuilder
from warden.semantics.ast_builder.types import account_ty, parse_type_ref, unwrap
from warden.semantics.ast_builder.utils.tree_navigation import (
    first_name,
    first_token,
    first_tree,
    string_value,
    trees,
)
from warden.semantics.error_reporter import PassErrorReporter


class ASTBuilder:
    def __init__(self, reporter: Reporter, parse_expr: Callable[[str], Tree]):
        self.reporter = reporter
        self.err = PassErrorReporter(reporter)
        self.constraints = ConstraintGroupBuilder(self.err, parse_expr)

    def build(self, tree: Tree) -> SourceUnit:
        assert isinstance(tree, Tree) and tree.data == "start"
        enums: List[ErrorEnum] = []
        types: List[AccountTypeDef] = []
        structs: List[AccountsStruct] = []

        for item in tree.children:
            if item.data == "error_enum":
                enums.append(self._error_enum(item))
            elif item.data == "account_type":
                types.append(self._account_type(item))
            elif item.data == "accounts_struct":
                structs.append(self._accounts_struct(item))

        return SourceUnit(span_of(tree), enums, types, structs)

    # --- #[error_code] ---

    def _error_enum(self, t: Tree) -> ErrorEnum:
        name = first_name(t.children)
        variants: List[ErrorVariant] = []
        next_id = 0
        for v in trees(t.children, "error_variant"):
            msg = None
            for attr in trees(v.children, "variant_attr"):
                attr_name = first_name(attr.children)
                if str(attr_name) != "msg":
                    self.err.emit(er.ERR.CE1018, span_of(attr), attr=str(attr_name))
                    continue
                msg = string_value(first_token(attr.children, "STRING"))

            disc_tok = first_token(v.children, "INT")
            discriminant = int(str(disc_tok).replace("_", "")) if disc_tok is not None else None
            if discriminant is not None:
                next_id = discriminant
            variants.append(ErrorVariant(
                span_of(v), str(first_name(v.children)),
                discriminant=discriminant, msg=msg, id=next_id,
            ))
            next_id += 1
        return ErrorEnum(span_of(t), str(name), variants)

    # --- #[account] ---

    def _account_type(self, t: Tree) -> AccountTypeDef:
        name = str(first_name(t.children))
        fields: List[AccountTypeField] = []
        for f in trees(t.children, "type_field"):
            fname = first_name(f.children)
            parsed = unwrap(parse_type_ref(first_tree(f.children, "type_ref")))
            ty = str(parsed)
            if ty not in USER_FIELD_TYPES:
                self.err.emit(er.ERR.CE1017, span_of(f), name=name, ty=ty)
            fields.append(AccountTypeField(str(fname), ty, span_of(f)))
        zero_copy = first_tree(t.children, "zero_copy") is not None
        return AccountTypeDef(span_of(t), name, fields, zero_copy=zero_copy)

    # --- #[derive(Accounts)] ---

    def _accounts_struct(self, t: Tree) -> AccountsStruct:
        name = str(first_name(t.children))
        ix_args: List[str] = []
        ix = first_tree(t.children, "instruction_attr")
        if ix is not None:
            ix_args = [str(first_name(a.children)) for a in trees(ix.children, "ix_arg")]
        fields = [self._account_field(f) for f in trees(t.children, "account_field")]
        return AccountsStruct(span_of(t), name, fields, ix_args=ix_args)

    def _account_field(self, t: Tree) -> AccountField:
        name = str(first_name(t.children))
        items: List[Tree] = []
        for attr in trees(t.children, "field_attr"):
            items.extend(c for c in attr.children if isinstance(c, Tree))
        group = self.constraints.build(name, items)

        parsed = parse_type_ref(first_tree(t.children, "type_ref"))
        ty = account_ty(parsed)
        if ty is None:
            # Either a nested accounts struct or an unknown type; resolved later.
            return CompositeField(span_of(t), name, str(unwrap(parsed)), group)
        return Field(span_of(t), name, ty, group)
