"""In-memory host: accounts, the rent sysvar and cross-program invocation."""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence

from warden.runtime.accounts import AccountInfo
from warden.runtime.errors import ProgramError
from warden.runtime.instruction import Instruction
from warden.runtime.pubkey import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    BPF_LOADER_UPGRADEABLE_ID,
    Pubkey,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    create_program_address,
)

ACCOUNT_STORAGE_OVERHEAD = 128

Processor = Callable[["Bank", Instruction, List[AccountInfo], FrozenSet[Pubkey]], None]


@dataclass(frozen=True)
class Rent:
    lamports_per_byte_year: int = 3480
    exemption_threshold: float = 2.0

    def minimum_balance(self, data_len: int) -> int:
        """Lamports an account of `data_len` bytes needs to be rent exempt."""
        return int((ACCOUNT_STORAGE_OVERHEAD + data_len) * self.lamports_per_byte_year
                   * self.exemption_threshold)

    def is_exempt(self, lamports: int, data_len: int) -> bool:
        return lamports >= self.minimum_balance(data_len)


@dataclass(frozen=True)
class Invocation:
    """One entry of the invocation log."""
    program_id: Pubkey
    name: str
    data: object
    signed: bool
    depth: int


class Bank:
    """Holds accounts and executes instructions against built-in programs.

    Example:
        >>> bank = Bank()
        >>> payer = bank.add_account(AccountInfo(Pubkey.new_unique(), lamports=10**9,
        ...                                      is_signer=True, is_writable=True))
    """

    def __init__(self, rent: Optional[Rent] = None):
        from warden.runtime.programs import BUILTIN_PROGRAMS

        self.rent = rent or Rent()
        self.accounts: Dict[Pubkey, AccountInfo] = {}
        self.programs: Dict[Pubkey, Processor] = {}
        self.log: List[Invocation] = []
        self._depth = 0
        for program_id, processor in BUILTIN_PROGRAMS.items():
            self.register_program(program_id, processor)

    def add_account(self, info: AccountInfo) -> AccountInfo:
        self.accounts[info.key] = info
        return info

    def new_account(self, lamports: int = 0, data: bytes = b"", owner: Pubkey = SYSTEM_PROGRAM_ID,
                    signer: bool = False, writable: bool = False,
                    key: Optional[Pubkey] = None) -> AccountInfo:
        return self.add_account(AccountInfo(
            key or Pubkey.new_unique(), lamports, bytearray(data), owner,
            is_signer=signer, is_writable=writable,
        ))

    def register_program(self, program_id: Pubkey, processor: Optional[Processor] = None) -> AccountInfo:
        """Make `program_id` invocable and return its executable account."""
        if processor is not None:
            self.programs[program_id] = processor
        info = self.accounts.get(program_id)
        if info is None:
            info = self.add_account(AccountInfo(program_id, lamports=1, owner=BPF_LOADER_UPGRADEABLE_ID, executable=True))
        return info

    def program_account(self, program_id: Pubkey) -> AccountInfo:
        return self.register_program(program_id)

    @property
    def system_program(self) -> AccountInfo:
        return self.accounts[SYSTEM_PROGRAM_ID]

    @property
    def token_program(self) -> AccountInfo:
        return self.accounts[TOKEN_PROGRAM_ID]

    @property
    def associated_token_program(self) -> AccountInfo:
        return self.accounts[ASSOCIATED_TOKEN_PROGRAM_ID]

    def invoke(self, ix: Instruction, infos: Sequence[AccountInfo],
               caller: Optional[Pubkey] = None) -> None:
        self.invoke_signed(ix, infos, (), caller)

    def invoke_signed(self, ix: Instruction, infos: Sequence[AccountInfo],
                      signer_seeds: Iterable[Sequence[bytes]] = (),
                      caller: Optional[Pubkey] = None) -> None:
        """Run `ix`, granting signatures for the PDAs of `caller` named by `signer_seeds`.

        Raises:
            ProgramError: the callee's failure, or MissingRequiredSignature /
                PrivilegeEscalation when the call asks for more than it holds.
        """
        processor = self.programs.get(ix.program_id)
        if processor is None:
            raise ProgramError("IncorrectProgramId", f"no program at {ix.program_id}")

        by_key = {info.key: info for info in infos}
        signers = {info.key for info in infos if info.is_signer}
        signer_seeds = list(signer_seeds)
        if signer_seeds:
            if caller is None:
                raise ProgramError("InvalidArgument", "signer seeds without a calling program")
            for seeds in signer_seeds:
                signers.add(create_program_address(list(seeds), caller))

        accounts: List[AccountInfo] = []
        for meta in ix.accounts:
            info = by_key.get(meta.pubkey)
            if info is None:
                raise ProgramError("InvalidArgument", f"account {meta.pubkey} not provided")
            if meta.is_signer and meta.pubkey not in signers:
                raise ProgramError("MissingRequiredSignature", str(meta.pubkey))
            if meta.is_writable and not info.is_writable:
                raise ProgramError("PrivilegeEscalation", f"{meta.pubkey} is not writable")
            accounts.append(info)

        granted = frozenset(m.pubkey for m in ix.accounts if m.is_signer)
        self.log.append(Invocation(ix.program_id, ix.name, ix.data, bool(signer_seeds), self._depth))
        self._depth += 1
        try:
            processor(self, ix, accounts, granted)
        finally:
            self._depth -= 1

    def calls(self) -> List[str]:
        """Names of every logged instruction, in invocation order."""
        return [inv.name for inv in self.log]

    @contextmanager
    def transaction(self, infos: Iterable[AccountInfo] = ()):
        """Restore every touched account if the block raises."""
        seen = {id(i): i for i in self.accounts.values()}
        for info in infos:
            seen.setdefault(id(info), info)
        snapshot = [(i, i.lamports, bytes(i.data), i.owner, i.executable) for i in seen.values()]
        try:
            yield self
        except BaseException:
            for info, lamports, data, owner, executable in snapshot:
                info.lamports = lamports
                info.data = bytearray(data)
                info.owner = owner
                info.executable = executable
            raise
