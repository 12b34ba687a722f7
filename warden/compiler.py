"""Compilation driver: source text (or hand-built structs) to executable Plans."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence

from lark import UnexpectedInput

from warden.backend.codegen import AccountsCodegen, CompileOptions
from warden.backend.plan import Plan
from warden.internals.parse_errors import handle_parse_exception
from warden.internals.parser import parse_to_ast
from warden.internals.report import CompileError, Reporter
from warden.runtime.layout import AccountType
from warden.semantics.ast import AccountsStruct, ErrorEnum, SourceUnit
from warden.semantics.ast_builder import InvalidEscapeError
from warden.semantics.passes.resolve import DeclTable, NameResolver


@dataclass
class CompiledUnit:
    """Result of compiling one declaration file."""
    unit: SourceUnit
    table: DeclTable
    reporter: Reporter
    plans: Dict[str, Plan] = field(default_factory=dict)

    @property
    def types(self) -> Dict[str, AccountType]:
        return self.table.account_types

    def plan(self, name: str) -> Plan:
        try:
            return self.plans[name]
        except KeyError:
            from warden.internals import errors as er
            raise KeyError(er.ERR.CE1016.text.format(name=name)) from None


def parse_source(src: str, reporter: Reporter) -> Optional[SourceUnit]:
    """Parse `src`, reporting syntax errors instead of raising them."""
    try:
        unit, _tree = parse_to_ast(src, reporter)
    except (UnexpectedInput, InvalidEscapeError) as e:
        handle_parse_exception(e, reporter)
        return None
    return unit


def _generate(reporter: Reporter, table: DeclTable, structs: Iterable[AccountsStruct],
              options: CompileOptions) -> Dict[str, Plan]:
    codegen = AccountsCodegen(reporter, table.account_types, options)
    return {s.name: codegen.build(s) for s in structs}


def compile_source(src: str, filename: str = "<input>", options: Optional[CompileOptions] = None,
                   reporter: Optional[Reporter] = None) -> CompiledUnit:
    """Compile declaration source into one Plan per accounts struct.

    Raises:
        CompileError: if any error diagnostic was reported. Warnings stay on
            the returned unit's reporter.
    """
    options = options or CompileOptions()
    reporter = reporter or Reporter(src, filename)

    unit = parse_source(src, reporter)
    if unit is None or reporter.has_errors:
        raise CompileError(reporter)

    table = NameResolver(reporter).run(unit)
    if reporter.has_errors:
        raise CompileError(reporter)

    plans = _generate(reporter, table, unit.structs, options)
    if reporter.has_errors:
        raise CompileError(reporter)
    return CompiledUnit(unit, table, reporter, plans)


def compile_file(path, options: Optional[CompileOptions] = None) -> CompiledUnit:
    path = Path(path)
    src = path.read_text(encoding="utf-8")
    return compile_source(src, str(path), options)


def compile_accounts(
    struct: AccountsStruct,
    types: Optional[Dict[str, AccountType]] = None,
    nested: Sequence[AccountsStruct] = (),
    error_enums: Sequence[ErrorEnum] = (),
    options: Optional[CompileOptions] = None,
) -> Plan:
    """Compile a hand-built struct.

    `types` supplies the account types its fields name, `nested` the structs
    its composite fields name.
    """
    reporter = Reporter("", "<accounts>")
    unit = SourceUnit(None, list(error_enums), [], [*nested, struct])
    table = NameResolver(reporter, extra_types=types).run(unit)
    if reporter.has_errors:
        raise CompileError(reporter)
    plans = _generate(reporter, table, [struct], options or CompileOptions())
    if reporter.has_errors:
        raise CompileError(reporter)
    return plans[struct.name]
