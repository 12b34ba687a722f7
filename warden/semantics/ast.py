# semantics/ast.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from lark import Tree

from warden.internals.report import Span
from warden.runtime.errors import CustomError

# === Core node base ===

@dataclass
class Node:
    loc: Optional[Span]

@dataclass
class Expr:
    """A constraint expression: its parse tree plus the text shown in plans."""
    source: str
    loc: Optional[Span] = None
    tree: Optional[Tree] = field(default=None, repr=False, compare=False)

    def __str__(self) -> str:
        return self.source

@dataclass
class ErrorRef:
    """`@ Enum::Variant` or `@ <integer>` attached to a constraint."""
    enum: Optional[str] = None
    variant: Optional[str] = None
    code: Optional[int] = None
    loc: Optional[Span] = None
    resolved: Optional[CustomError] = None

    def __post_init__(self):
        if self.code is not None and self.resolved is None:
            self.resolved = CustomError(self.code)

    def __str__(self) -> str:
        if self.enum is not None:
            return f"{self.enum}::{self.variant}"
        return str(self.code)

ErrorOverride = Union[ErrorRef, CustomError, None]

# === Account types ===

class TyKind(str, Enum):
    ACCOUNT_INFO    = "AccountInfo"
    UNCHECKED       = "UncheckedAccount"
    ACCOUNT         = "Account"
    PROGRAM_ACCOUNT = "ProgramAccount"
    CPI_ACCOUNT     = "CpiAccount"
    ACCOUNT_LOADER  = "AccountLoader"
    LOADER          = "Loader"
    CPI_STATE       = "CpiState"
    SIGNER          = "Signer"
    PROGRAM         = "Program"
    SYSVAR          = "Sysvar"

GENERIC_KINDS = frozenset({
    TyKind.ACCOUNT, TyKind.PROGRAM_ACCOUNT, TyKind.CPI_ACCOUNT,
    TyKind.ACCOUNT_LOADER, TyKind.LOADER, TyKind.CPI_STATE,
    TyKind.PROGRAM, TyKind.SYSVAR,
})

@dataclass(frozen=True)
class Ty:
    kind: TyKind
    inner: Optional[str] = None      # T of Account<T>, Program<T>, ...

    @property
    def is_zero_copy(self) -> bool:
        return self.kind in (TyKind.ACCOUNT_LOADER, TyKind.LOADER)

    @property
    def has_content(self) -> bool:
        """True for wrappers carrying deserialized account content."""
        return self.kind in (TyKind.ACCOUNT, TyKind.PROGRAM_ACCOUNT, TyKind.CPI_ACCOUNT,
                             TyKind.ACCOUNT_LOADER, TyKind.LOADER)

    def __str__(self) -> str:
        return f"{self.kind.value}<{self.inner}>" if self.inner else self.kind.value

# === Constraints ===

@dataclass
class ConstraintZeroed:
    loc: Optional[Span] = None

@dataclass
class ConstraintMut:
    error: ErrorOverride = None
    loc: Optional[Span] = None

@dataclass
class ConstraintSigner:
    error: ErrorOverride = None
    loc: Optional[Span] = None

@dataclass
class ConstraintDup:
    target: str                      # dotted path of the aliased field
    loc: Optional[Span] = None

@dataclass
class ConstraintHasOne:
    join_target: str
    error: ErrorOverride = None
    loc: Optional[Span] = None

@dataclass
class ConstraintLiteral:
    lit: str                         # source text between the quotes
    expr: Optional[Expr] = None      # rendered form of lit, when it needed rewriting
    loc: Optional[Span] = None

    def as_expr(self) -> Expr:
        if self.expr is None:
            self.expr = Expr(self.lit, self.loc)
        return self.expr

@dataclass
class ConstraintRaw:
    raw: Expr
    error: ErrorOverride = None
    loc: Optional[Span] = None

@dataclass
class ConstraintOwner:
    owner_address: Expr
    error: ErrorOverride = None
    loc: Optional[Span] = None

class RentExempt(str, Enum):
    ENFORCE = "enforce"
    SKIP    = "skip"

@dataclass
class ConstraintRentExempt:
    mode: RentExempt = RentExempt.ENFORCE
    loc: Optional[Span] = None

@dataclass
class ConstraintSeeds:
    seeds: List[Expr]
    bump: Optional[Expr] = None      # None: use the canonical bump
    is_init: bool = False
    loc: Optional[Span] = None

@dataclass
class ConstraintExecutable:
    loc: Optional[Span] = None

@dataclass
class ConstraintState:
    program_target: str
    loc: Optional[Span] = None

@dataclass
class ConstraintClose:
    sol_dest: str
    loc: Optional[Span] = None

@dataclass
class ConstraintAddress:
    address: Expr
    error: ErrorOverride = None
    loc: Optional[Span] = None

@dataclass
class ConstraintAssociatedToken:
    wallet: str
    mint: str
    loc: Optional[Span] = None

# --- init kinds ---

@dataclass
class ProgramInit:
    owner: Optional[Expr] = None     # None: the invoking program

@dataclass
class TokenInit:
    owner: str
    mint: str

@dataclass
class MintInit:
    owner: str                       # mint authority
    decimals: Expr
    freeze_authority: Optional[str] = None

@dataclass
class AssociatedTokenInit:
    owner: str
    mint: str

InitKind = Union[ProgramInit, TokenInit, MintInit, AssociatedTokenInit]

@dataclass
class ConstraintInit:
    payer: str
    kind: InitKind = field(default_factory=ProgramInit)
    if_needed: bool = False
    space: Optional[Expr] = None
    seeds: Optional[ConstraintSeeds] = None
    loc: Optional[Span] = None

class ConstraintKind(str, Enum):
    """Constraint tags. Each value names its slot in ConstraintGroup."""
    ZEROED           = "zeroed"
    INIT             = "init"
    SEEDS            = "seeds"
    ASSOCIATED_TOKEN = "associated_token"
    MUT              = "mut"
    SIGNER           = "signer"
    HAS_ONE          = "has_one"
    DUP              = "dup"
    LITERAL          = "literal"
    RAW              = "raw"
    OWNER            = "owner"
    RENT_EXEMPT      = "rent_exempt"
    EXECUTABLE       = "executable"
    STATE            = "state"
    CLOSE            = "close"
    ADDRESS          = "address"

@dataclass
class Constraint:
    """One populated slot, in tagged form."""
    kind: ConstraintKind
    value: object

    @property
    def loc(self) -> Optional[Span]:
        return getattr(self.value, "loc", None)

@dataclass
class ConstraintGroup:
    init: Optional[ConstraintInit] = None
    zeroed: Optional[ConstraintZeroed] = None
    mut: Optional[ConstraintMut] = None
    dup: Optional[ConstraintDup] = None
    signer: Optional[ConstraintSigner] = None
    has_one: List[ConstraintHasOne] = field(default_factory=list)
    literal: List[ConstraintLiteral] = field(default_factory=list)
    raw: List[ConstraintRaw] = field(default_factory=list)
    owner: Optional[ConstraintOwner] = None
    rent_exempt: Optional[ConstraintRentExempt] = None
    seeds: Optional[ConstraintSeeds] = None
    executable: Optional[ConstraintExecutable] = None
    state: Optional[ConstraintState] = None
    close: Optional[ConstraintClose] = None
    address: Optional[ConstraintAddress] = None
    associated_token: Optional[ConstraintAssociatedToken] = None

    def is_mutable(self) -> bool:
        return self.mut is not None or self.init is not None or self.zeroed is not None

    def is_empty(self) -> bool:
        return not any(getattr(self, k.value) for k in ConstraintKind)

# === Declarations ===

@dataclass
class Field(Node):
    name: str
    ty: Ty
    constraints: ConstraintGroup = field(default_factory=ConstraintGroup)

@dataclass
class CompositeField(Node):
    name: str
    struct_name: str
    constraints: ConstraintGroup = field(default_factory=ConstraintGroup)
    struct: Optional["AccountsStruct"] = None   # filled by name resolution

AccountField = Union[Field, CompositeField]

@dataclass
class AccountsStruct(Node):
    name: str
    fields: List[AccountField]
    ix_args: List[str] = field(default_factory=list)   # names from #[instruction(...)]

    def get_field(self, name: str) -> Optional[AccountField]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

@dataclass
class AccountTypeField:
    name: str
    ty: str
    loc: Optional[Span] = None

@dataclass
class AccountTypeDef(Node):
    name: str
    fields: List[AccountTypeField]
    zero_copy: bool = False

@dataclass
class ErrorVariant(Node):
    name: str
    discriminant: Optional[int] = None
    msg: Optional[str] = None
    id: int = 0                       # assigned by the builder

@dataclass
class ErrorEnum(Node):
    name: str
    variants: List[ErrorVariant]

    def variant(self, name: str) -> Optional[ErrorVariant]:
        for v in self.variants:
            if v.name == name:
                return v
        return None

@dataclass
class SourceUnit(Node):
    error_enums: List[ErrorEnum]
    account_types: List[AccountTypeDef]
    structs: List[AccountsStruct]

    def struct(self, name: str) -> Optional[AccountsStruct]:
        for s in self.structs:
            if s.name == name:
                return s
        return None
