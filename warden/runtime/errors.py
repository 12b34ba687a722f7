"""Runtime failures raised by compiled check sequences and the host."""
from __future__ import annotations

from enum import IntEnum
from typing import Optional

from warden.internals.errors import runtime_message

# Custom error enum variants surface at runtime offset by this value.
ERROR_CODE_OFFSET = 6000


class ErrorCode(IntEnum):
    # Constraint violations
    NotWritable = 2000
    ReferencedFieldMismatch = 2001
    NotSigner = 2002
    RawExpressionFalse = 2003
    OwnerMismatch = 2004
    InsufficientRentExemption = 2005
    DerivedAddressMismatch = 2006
    NotExecutable = 2007
    CanonicalStateMismatch = 2008
    AssociatedAddressMismatch = 2009
    CloseTargetIsSelf = 2011
    AddressMismatch = 2012
    AlreadyInitialized = 2013
    DuplicateAccount = 2040

    # Account binding
    AccountDiscriminatorNotFound = 3001
    AccountDiscriminatorMismatch = 3002
    AccountDidNotDeserialize = 3003
    AccountNotEnoughKeys = 3005
    AccountOwnedByWrongProgram = 3007
    InvalidProgramId = 3008
    InvalidProgramExecutable = 3009
    AccountNotSigner = 3010
    AccountNotProgramData = 3013

    # Deprecated
    DeprecatedLiteralFalse = 5000


class CustomError:
    """A user-declared error variant or bare integer code attached with `@`."""

    __slots__ = ("code", "name", "msg")

    def __init__(self, code: int, name: Optional[str] = None, msg: Optional[str] = None):
        self.code = code
        self.name = name
        self.msg = msg

    def __eq__(self, other):
        return isinstance(other, CustomError) and other.code == self.code

    def __hash__(self):
        return hash(self.code)

    def __repr__(self):
        return f"CustomError({self.code}, {self.name!r})"


class ConstraintError(Exception):
    """A compiled check failed.

    `code` is the stable numeric code and `name` the kind tag (the ErrorCode
    member name, or the custom variant name when one was supplied).
    """

    def __init__(self, code: int, name: str, message: str, account: Optional[str] = None):
        self.code = code
        self.name = name
        self.message = message
        self.account = account
        where = f" (account: {account})" if account else ""
        super().__init__(f"Error {code} {name}: {message}{where}")

    @classmethod
    def from_code(cls, code: ErrorCode, account: Optional[str] = None) -> "ConstraintError":
        return cls(int(code), code.name, runtime_message(int(code)), account)

    @classmethod
    def from_custom(cls, err: CustomError, account: Optional[str] = None) -> "ConstraintError":
        name = err.name or "Custom"
        message = err.msg or f"custom program error: {err.code}"
        return cls(err.code, name, message, account)


def fail(default: ErrorCode, custom: Optional[CustomError] = None,
         account: Optional[str] = None) -> ConstraintError:
    """Build the error for a failed check: the custom override if any, else the default."""
    if custom is not None:
        return ConstraintError.from_custom(custom, account)
    return ConstraintError.from_code(default, account)


class ProgramError(Exception):
    """Failure reported by the host or a built-in program. Never remapped."""

    KINDS = (
        "MissingRequiredSignature",
        "AccountAlreadyInUse",
        "InsufficientFunds",
        "InvalidAccountData",
        "AccountAlreadyInitialized",
        "InvalidSeeds",
        "MaxSeedLengthExceeded",
        "IncorrectProgramId",
        "UninitializedAccount",
        "InvalidArgument",
        "PrivilegeEscalation",
        "Custom",
    )

    def __init__(self, kind: str, detail: str = "", code: Optional[int] = None):
        if kind not in self.KINDS:
            raise ValueError(f"unknown program error kind: {kind}")
        self.kind = kind
        self.detail = detail
        self.code = code
        label = f"Custom({code})" if kind == "Custom" else kind
        super().__init__(f"{label}: {detail}" if detail else label)
