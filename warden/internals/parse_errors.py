"""Shared parse exception handling for the compiler and CLI."""
from __future__ import annotations

from lark import UnexpectedInput

from warden.semantics.ast_builder import InvalidEscapeError


def handle_parse_exception(exc: Exception, reporter) -> bool:
    """Handle a parse exception by emitting diagnostics through the reporter.

    Args:
        exc: The exception to handle.
        reporter: Reporter for error/warning collection.

    Returns:
        True if the exception was handled, False otherwise.
    """
    from warden.internals import errors as er
    from warden.internals.parser import improve_parse_error

    if isinstance(exc, InvalidEscapeError):
        er.emit(reporter, er.ERR.CE2004, exc.span, literal=exc.literal)
        return True

    if isinstance(exc, UnexpectedInput):
        message, span = improve_parse_error(exc)
        er.emit(reporter, er.ERR.CE2003, span, message=message)
        return True

    return False
