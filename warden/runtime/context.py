from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from warden.runtime.accounts import AccountInfo, BoundAccounts
from warden.runtime.pubkey import Pubkey


@dataclass
class Context:
    """What an instruction handler receives once every check has passed.

    Attributes:
        program_id: The program currently executing.
        accounts: Bound views, by field name (composites nest).
        remaining_accounts: Accounts passed beyond the declared fields.
        bumps: Bump seed used for each field with a seeds constraint.
            Nested fields are keyed by their dotted path.
    """
    program_id: Pubkey
    accounts: BoundAccounts
    remaining_accounts: List[AccountInfo] = field(default_factory=list)
    bumps: Dict[str, int] = field(default_factory=dict)
    bank: Optional[Any] = None
    args: Dict[str, Any] = field(default_factory=dict)

    @property
    def rent(self):
        return self.bank.rent
