"""
Error emission helper for front-end and semantic passes.

Provides a thin wrapper around internals.errors.emit() to reduce boilerplate.
Instead of repeatedly importing and calling:

    from warden.internals import errors as er
    er.emit(self.reporter, er.ERR.CE1001, span, name="Foo")

Passes can use:

    from warden.semantics.error_reporter import PassErrorReporter
    self.err = PassErrorReporter(self.reporter)
    self.err.emit(er.ERR.CE1001, span, name="Foo")
"""

from typing import Optional
from warden.internals.report import Span, Reporter
from warden.internals import errors as er


class PassErrorReporter:
    """Thin wrapper for error emission in passes.

    Binds the reporter instance, allowing direct error emission without
    passing self.reporter each time.
    """

    def __init__(self, reporter: Reporter):
        self.reporter = reporter

    def emit(self, error_msg: er.ErrorMessage, span: Optional[Span], **kwargs) -> None:
        """Emit an error or warning.

        Args:
            error_msg: The error message from er.ERR (e.g., er.ERR.CE1001)
            span: Source location span (can be None for some errors)
            **kwargs: Format parameters for the error message
        """
        er.emit(self.reporter, error_msg, span, **kwargs)

    @property
    def has_errors(self) -> bool:
        return self.reporter.has_errors
