"""Custom exceptions for AST building errors."""
from __future__ import annotations
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from warden.internals.report import Span


class InvalidEscapeError(Exception):
    """Exception raised when a string or byte literal holds an unknown escape sequence."""
    def __init__(self, literal: str, span: Optional['Span'] = None):
        super().__init__(f"invalid escape sequence in {literal}")
        self.literal = literal
        self.span = span
