"""
AST Builder module for warden declaration files.

Exports:
    ASTBuilder: Main class for building the declaration AST from Lark parse trees
    InvalidEscapeError: Raised for malformed string or byte literals
"""
from warden.semantics.ast_builder.builder import ASTBuilder
from warden.semantics.ast_builder.exceptions import InvalidEscapeError

__all__ = [
    'ASTBuilder',
    'InvalidEscapeError',
]
