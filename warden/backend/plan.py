"""Compiled check sequences and their execution against a Bank."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from warden.runtime.accounts import AccountInfo, BoundAccounts
from warden.runtime.binding import try_accounts
from warden.runtime.context import Context
from warden.runtime.layout import AccountType
from warden.runtime.pubkey import Pubkey, SYSTEM_PROGRAM_ID
from warden.semantics.ast import AccountsStruct

# (ctx, scope, frame). `frame` is per-field scratch space shared by the steps
# of one field; it always holds "path", the dotted path of the field.
Action = Callable[[Context, BoundAccounts, Dict[str, Any]], None]


@dataclass
class Step:
    """One emitted check or action."""
    kind: str
    field: str
    text: str
    action: Action

    def __str__(self) -> str:
        return f"{self.kind:<18}{self.text}"


@dataclass
class FieldPlan:
    name: str
    steps: List[Step] = field(default_factory=list)


@dataclass
class Plan:
    """Everything one accounts struct checks, in execution order.

    Nested structs are planned separately and run, in field order, before
    any check of the enclosing struct.
    """
    struct: AccountsStruct
    types: Dict[str, AccountType]
    fields: List[FieldPlan] = field(default_factory=list)
    children: Dict[str, "Plan"] = field(default_factory=dict)
    dup_checks: List[Step] = field(default_factory=list)
    closes: List[Tuple[str, str]] = field(default_factory=list)   # (field, destination)

    @property
    def name(self) -> str:
        return self.struct.name

    def steps(self) -> List[Step]:
        """Own steps in order, without nested plans."""
        out: List[Step] = []
        for fp in self.fields:
            out.extend(fp.steps)
        out.extend(self.dup_checks)
        return out

    def field_steps(self, name: str) -> List[Step]:
        for fp in self.fields:
            if fp.name == name:
                return list(fp.steps)
        raise KeyError(name)

    # --- execution ---

    def run(self, ctx: Context, scope: BoundAccounts, prefix: str = "") -> None:
        for name, child in self.children.items():
            child.run(ctx, scope[name], f"{prefix}{name}.")
        for fp in self.fields:
            frame: Dict[str, Any] = {"path": prefix + fp.name}
            for step in fp.steps:
                step.action(ctx, scope, frame)
        for step in self.dup_checks:
            step.action(ctx, scope, {"path": prefix})

    def finish(self, ctx: Context, scope: BoundAccounts) -> None:
        """Persist account content, then close what was marked for closing."""
        scope.exit(ctx.program_id)
        self._close(scope)

    def _close(self, scope: BoundAccounts) -> None:
        for name, child in self.children.items():
            child._close(scope[name])
        for name, dest in self.closes:
            info = scope[name].to_account_info()
            target = scope[dest].to_account_info()
            target.lamports += info.lamports
            info.lamports = 0
            info.data = bytearray()
            info.owner = SYSTEM_PROGRAM_ID

    def execute(
        self,
        bank,
        program_id: Pubkey,
        infos: Sequence[AccountInfo],
        args: Optional[Mapping[str, Any]] = None,
        handler: Optional[Callable[[Context], Any]] = None,
    ) -> Context:
        """Bind `infos`, run every check, call `handler`, then exit.

        Account state is rolled back when anything raises.

        Raises:
            ConstraintError: the first failed check.
            ProgramError: a failed cross-program call during initialization.
        """
        with bank.transaction(infos):
            scope, remaining = try_accounts(self.struct, self.types, infos, program_id)
            ctx = Context(program_id, scope, remaining, {}, bank, dict(args or {}))
            self.run(ctx, scope)
            if handler is not None:
                handler(ctx)
            self.finish(ctx, scope)
        return ctx

    # --- display ---

    def render(self, indent: str = "") -> str:
        lines = [f"{indent}{self.name}:"]
        for name, child in self.children.items():
            lines.append(f"{indent}  {name}: (nested)")
            lines.append(child.render(indent + "    "))
        for fp in self.fields:
            if fp.name in self.children and not fp.steps:
                continue
            lines.append(f"{indent}  {fp.name}:")
            if not fp.steps:
                lines.append(f"{indent}    (no checks)")
            for step in fp.steps:
                lines.append(f"{indent}    {step}")
        if self.dup_checks:
            lines.append(f"{indent}  (duplicates):")
            for step in self.dup_checks:
                lines.append(f"{indent}    {step}")
        return "\n".join(lines)
