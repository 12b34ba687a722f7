# internals/errors.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from warden.internals.report import Span, Reporter


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class Category(str, Enum):
    GENERAL    = "general"
    NAME       = "name"
    TYPE       = "type"
    SYNTAX     = "syntax"
    CONSTRAINT = "constraint"
    INIT       = "init"
    BINDING    = "binding"
    RUNTIME    = "runtime"
    INTERNAL   = "internal"


@dataclass(frozen=True)
class ErrorMessage:
    code: str
    severity: Severity
    text: str
    category: Category = Category.GENERAL
    doc: str = ""


REGISTRY: Dict[str, ErrorMessage] = {}

class _ErrorCatalog:
    def __init__(self, backing: Dict[str, ErrorMessage]) -> None:
        self._registry = backing

    def __getattr__(self, name: str) -> ErrorMessage:
        try:
            return self._registry[name]
        except KeyError as e:
            raise AttributeError(name) from e

    def __getitem__(self, code: str) -> ErrorMessage:
        return self._registry[code]


ERR = _ErrorCatalog(REGISTRY)

def emit(r: Reporter, em: ErrorMessage, span: Optional[Span], **kwargs) -> None:
    text = _fmt(em.code, **kwargs)
    if em.severity == Severity.ERROR:
        r.error(em.code, text, span)
    else:
        r.warn(em.code, text, span)

def raise_internal_error(code: str, **kwargs) -> None:
    """Raise a RuntimeError for internal compiler errors.

    Internal errors (CE0xxx codes) indicate compiler bugs, not declaration
    issues. They are raised as Python exceptions during code generation.

    Args:
        code: Error code (e.g., "CE0001")
        **kwargs: Format parameters for the error message

    Raises:
        RuntimeError: Always raises with formatted error message
    """
    text = _fmt(code, **kwargs)
    raise RuntimeError(f"{code}: {text}")

def runtime_message(code: int) -> str:
    """Text registered for a runtime error code (RExxxx)."""
    msg = REGISTRY.get(f"RE{code}")
    return msg.text if msg is not None else f"custom program error: {code}"


#
# --- Helpers
#

def _add(msg: ErrorMessage) -> None:
    if msg.code in REGISTRY:
        raise ValueError(f"duplicate error code {REGISTRY[msg.code]} in {msg}")
    REGISTRY[msg.code] = msg

def _get(code: str) -> ErrorMessage:
    try:
        return REGISTRY[code]
    except KeyError:
        raise KeyError(f"unknown error code: {code}")

def _fmt(code: str, **kwargs) -> str:
    msg = _get(code)
    try:
        return msg.text.format(**kwargs)
    except KeyError as key_error:
        missing = key_error.args[0]
        raise KeyError(f"missing text key '{missing}' for {code} "
                       f"(needed by: {msg.text!r})") from None

#
# --- Registry population
#

# Internal errors (compiler bugs) - CE0xxx range
_add(ErrorMessage("CE0001", Severity.ERROR,
    "no emitter registered for constraint kind '{kind}'",
    Category.INTERNAL, "Every constraint kind needs an entry in the emission table."))

_add(ErrorMessage("CE0002", Severity.ERROR,
    "expression '{expr}' was evaluated before it was parsed",
    Category.INTERNAL, "Expressions are parsed by the AST builder or the resolver before plans run."))

_add(ErrorMessage("CE0003", Severity.ERROR,
    "no initialization strategy for '{kind}'",
    Category.INTERNAL, "Every init kind needs an entry in the strategy table."))

_add(ErrorMessage("CE0004", Severity.ERROR,
    "constraint kind '{kind}' has no position in the linearization order",
    Category.INTERNAL, "Every constraint kind needs a place in the execution sequence."))

# Declaration errors (CE1xxx)
_add(ErrorMessage("CE1001", Severity.ERROR,
    "unknown account type '{name}'",
    Category.TYPE, "The type is neither a capability type, a declared #[account] struct nor a declared accounts struct."))

_add(ErrorMessage("CE1002", Severity.ERROR,
    "duplicate constraint '{constraint}' on field '{field}'",
    Category.CONSTRAINT, "Only has_one, constraint and literal constraints may be repeated on one field."))

_add(ErrorMessage("CE1003", Severity.ERROR,
    "'{constraint}' on field '{field}' requires '{param}'",
    Category.INIT, "A required parameter of the constraint is missing."))

_add(ErrorMessage("CE1004", Severity.ERROR,
    "signer cannot be specified on field '{field}' of type {ty}",
    Category.CONSTRAINT, "The signer constraint is only valid on raw and typed account wrappers."))

_add(ErrorMessage("CE1005", Severity.ERROR,
    "state constraint requires a CpiState field, '{field}' is {ty}",
    Category.CONSTRAINT, "Legacy state checks only apply to CpiState accounts."))

_add(ErrorMessage("CE1006", Severity.ERROR,
    "'{target}' referenced by {constraint} on '{field}' is not a field of '{struct}'",
    Category.NAME, "Constraint targets must name another field of the same accounts struct."))

_add(ErrorMessage("CE1007", Severity.ERROR,
    "'init' and 'zero' cannot both be specified on field '{field}'",
    Category.CONSTRAINT, "An account is either created by the instruction or handed in pre-allocated, not both."))

_add(ErrorMessage("CE1008", Severity.ERROR,
    "'{param}' on field '{field}' requires 'init'",
    Category.INIT, "Token and mint parameters only configure initialization."))

_add(ErrorMessage("CE1009", Severity.ERROR,
    "conflicting initialization kinds on field '{field}': {kinds}",
    Category.INIT, "A field can be initialized as at most one of program account, token account, mint or associated token account."))

_add(ErrorMessage("CE1010", Severity.ERROR,
    "{kind} initialization of '{field}' requires a '{required}' account field",
    Category.INIT, "Initialization invokes other programs; their accounts must be part of the struct."))

_add(ErrorMessage("CE1011", Severity.ERROR,
    "unknown error code '{name}'",
    Category.NAME, "Custom errors must name a variant of a declared #[error_code] enum."))

_add(ErrorMessage("CE1012", Severity.ERROR,
    "duplicate field '{field}' in accounts struct '{struct}'",
    Category.NAME, "Field names must be unique within an accounts struct."))

_add(ErrorMessage("CE1013", Severity.ERROR,
    "duplicate declaration '{name}'",
    Category.NAME, "Structs, account types and error enums share one namespace."))

_add(ErrorMessage("CE1014", Severity.ERROR,
    "composite field '{field}' only accepts 'constraint' and literal constraints, got '{constraint}'",
    Category.CONSTRAINT, "Nested accounts structs carry their own field constraints."))

_add(ErrorMessage("CE1015", Severity.ERROR,
    "cannot compute space for '{field}': declare 'space' or use a typed account",
    Category.INIT, "Default space is derived from the account type's layout."))

_add(ErrorMessage("CE1016", Severity.ERROR,
    "unknown accounts struct '{name}'",
    Category.NAME, "The requested struct is not declared with #[derive(Accounts)]."))

_add(ErrorMessage("CE1017", Severity.ERROR,
    "account type '{name}' has unsupported field type '{ty}'",
    Category.TYPE, "Account fields must be integers, bool or Pubkey."))

_add(ErrorMessage("CE1018", Severity.ERROR,
    "use #[msg] to specify error strings, found '#[{attr}]'",
    Category.SYNTAX, "Error enum variants accept a single #[msg(\"...\")] attribute."))

_add(ErrorMessage("CE1019", Severity.ERROR,
    "accounts struct '{name}' contains itself",
    Category.TYPE, "Composite fields cannot form a cycle."))

_add(ErrorMessage("CE1020", Severity.ERROR,
    "unknown name '{name}' in {constraint} of field '{field}'",
    Category.NAME, "Expressions may refer to fields of the struct, #[instruction] arguments, program_id and the well-known program ids."))

# Syntax errors (CE2xxx)
_add(ErrorMessage("CE2001", Severity.ERROR,
    "unknown constraint '{name}'",
    Category.SYNTAX, "The keyword is not a recognized account constraint."))

_add(ErrorMessage("CE2002", Severity.ERROR,
    "invalid value for '{constraint}': {reason}",
    Category.SYNTAX, "The constraint value has the wrong shape."))

_add(ErrorMessage("CE2003", Severity.ERROR,
    "{message}",
    Category.SYNTAX, "The declaration file could not be parsed."))

_add(ErrorMessage("CE2004", Severity.ERROR,
    "invalid escape sequence in literal {literal}",
    Category.SYNTAX, "String and byte literals accept \\\\, \\\", \\', \\n, \\r, \\t, \\0 and \\x escapes."))

# Warnings
_add(ErrorMessage("CW1001", Severity.WARNING,
    "deprecated literal constraint, write #[account(constraint = {expr})]", Category.CONSTRAINT,
    "String-wrapped constraints are the legacy spelling of the constraint keyword."))

_add(ErrorMessage("CW1002", Severity.WARNING,
    "'{field}' declares 'dup = {target}' but duplicate checks are disabled", Category.CONSTRAINT,
    "The dup constraint only exempts pairs from the nodup pass; enable the 'nodup' feature."))

#
# --- Runtime Error Codes (RExxxx) ---
#
# Runtime errors are raised by compiled check sequences.
# The numeric part is the stable code carried by ConstraintError.
#

# Constraint violations (RE2xxx)
_add(ErrorMessage("RE2000", Severity.ERROR,
    "a mut constraint was violated", Category.RUNTIME, "NotWritable"))

_add(ErrorMessage("RE2001", Severity.ERROR,
    "a has_one constraint was violated", Category.RUNTIME, "ReferencedFieldMismatch"))

_add(ErrorMessage("RE2002", Severity.ERROR,
    "a signer constraint was violated", Category.RUNTIME, "NotSigner"))

_add(ErrorMessage("RE2003", Severity.ERROR,
    "a raw constraint was violated", Category.RUNTIME, "RawExpressionFalse"))

_add(ErrorMessage("RE2004", Severity.ERROR,
    "an owner constraint was violated", Category.RUNTIME, "OwnerMismatch"))

_add(ErrorMessage("RE2005", Severity.ERROR,
    "a rent exemption constraint was violated", Category.RUNTIME, "InsufficientRentExemption"))

_add(ErrorMessage("RE2006", Severity.ERROR,
    "a seeds constraint was violated", Category.RUNTIME, "DerivedAddressMismatch"))

_add(ErrorMessage("RE2007", Severity.ERROR,
    "an executable constraint was violated", Category.RUNTIME, "NotExecutable"))

_add(ErrorMessage("RE2008", Severity.ERROR,
    "a state constraint was violated", Category.RUNTIME, "CanonicalStateMismatch"))

_add(ErrorMessage("RE2009", Severity.ERROR,
    "an associated constraint was violated", Category.RUNTIME, "AssociatedAddressMismatch"))

_add(ErrorMessage("RE2011", Severity.ERROR,
    "a close constraint was violated", Category.RUNTIME, "CloseTargetIsSelf"))

_add(ErrorMessage("RE2012", Severity.ERROR,
    "an address constraint was violated", Category.RUNTIME, "AddressMismatch"))

_add(ErrorMessage("RE2013", Severity.ERROR,
    "expected zero account discriminant", Category.RUNTIME, "AlreadyInitialized"))

_add(ErrorMessage("RE2040", Severity.ERROR,
    "a duplicate mutable account was provided", Category.RUNTIME, "DuplicateAccount"))

# Account binding (RE3xxx)
_add(ErrorMessage("RE3001", Severity.ERROR,
    "no 8 byte discriminator was found on the account", Category.BINDING, "AccountDiscriminatorNotFound"))

_add(ErrorMessage("RE3002", Severity.ERROR,
    "8 byte discriminator did not match what was expected", Category.BINDING, "AccountDiscriminatorMismatch"))

_add(ErrorMessage("RE3003", Severity.ERROR,
    "failed to deserialize the account", Category.BINDING, "AccountDidNotDeserialize"))

_add(ErrorMessage("RE3005", Severity.ERROR,
    "not enough account keys given to the instruction", Category.BINDING, "AccountNotEnoughKeys"))

_add(ErrorMessage("RE3007", Severity.ERROR,
    "the given account is owned by a different program than expected", Category.BINDING, "AccountOwnedByWrongProgram"))

_add(ErrorMessage("RE3008", Severity.ERROR,
    "program ID was not as expected", Category.BINDING, "InvalidProgramId"))

_add(ErrorMessage("RE3009", Severity.ERROR,
    "program account is not executable", Category.BINDING, "InvalidProgramExecutable"))

_add(ErrorMessage("RE3010", Severity.ERROR,
    "the given account did not sign", Category.BINDING, "AccountNotSigner"))

_add(ErrorMessage("RE3013", Severity.ERROR,
    "the given account is not a program data account", Category.BINDING, "AccountNotProgramData"))

# Deprecated paths (RE5xxx)
_add(ErrorMessage("RE5000", Severity.ERROR,
    "the API being used is deprecated and should no longer be used", Category.RUNTIME, "DeprecatedLiteralFalse"))
