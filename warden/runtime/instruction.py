from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List

from warden.runtime.pubkey import Pubkey


@dataclass(frozen=True)
class AccountMeta:
    pubkey: Pubkey
    is_signer: bool = False
    is_writable: bool = False

    def __str__(self) -> str:
        flags = []
        if self.is_signer:
            flags.append("signer")
        if self.is_writable:
            flags.append("writable")
        flag_str = f"({', '.join(flags)})" if flags else "(readonly)"
        return f"{str(self.pubkey)[:8]}...{flag_str}"


@dataclass(frozen=True)
class Instruction:
    """A call into a program. `data` is the structured instruction payload."""
    program_id: Pubkey
    accounts: List[AccountMeta] = field(default_factory=list)
    data: Any = None

    @property
    def name(self) -> str:
        return type(self.data).__name__
