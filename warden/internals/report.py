"""Diagnostics collected while compiling one declaration file."""
from __future__ import annotations
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from lark import Token

class C:
    """ANSI color/style escape codes."""
    RESET = "\x1b[0m"
    BOLD  = "\x1b[1m"
    DIM   = "\x1b[2m"
    RED   = "\x1b[31m"
    YELLOW = "\x1b[33m"
    CYAN  = "\x1b[36m"
    GRAY  = "\x1b[90m"

@dataclass
class Span:
    line: int
    col: int
    end_line: int
    end_col: int

    def width(self) -> int:
        """Columns to underline; multi-line spans mark their first character only."""
        if self.end_line != self.line or self.end_col <= self.col:
            return 1
        return self.end_col - self.col

@dataclass
class Diagnostic:
    kind: str                        # "error" | "warning"
    code: str
    message: str
    span: Optional[Span] = None
    filename: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.kind == "error"

def span_of(node: Any) -> Optional[Span]:
    """Location of a lark Tree (from its meta) or Token, if it carries one."""
    meta = getattr(node, "meta", None)
    if meta is not None and not getattr(meta, "empty", True):
        return Span(meta.line, meta.column, meta.end_line, meta.end_column)
    if isinstance(node, Token) and node.line is not None and node.column is not None:
        return Span(node.line, node.column, node.end_line or node.line, node.end_column or node.column)
    return None


def _display_name(filename: str) -> str:
    if filename in ("<input>", "<accounts>", "<test>"):
        return filename
    try:
        return f"./{Path(filename).resolve().relative_to(Path.cwd())}"
    except ValueError:
        return Path(filename).name


class Reporter:
    def __init__(self, source: Optional[str] = None, filename: str = "<input>") -> None:
        self.source = source
        self.filename = filename
        self.items: List[Diagnostic] = []

    def _add(self, kind: str, code: str, msg: str, span: Optional[Span]) -> None:
        self.items.append(Diagnostic(kind, code, msg, span, filename=self.filename))

    def error(self, code: str, msg: str, span: Optional[Span]):
        self._add("error", code, msg, span)

    def warn(self, code: str, msg: str, span: Optional[Span]):
        self._add("warning", code, msg, span)

    @property
    def has_errors(self) -> bool:
        return any(d.is_error for d in self.items)

    @property
    def has_warnings(self) -> bool:
        return any(not d.is_error for d in self.items)

    def codes(self) -> List[str]:
        return [d.code for d in self.items]

    def summary(self) -> str:
        errors = sum(1 for d in self.items if d.is_error)
        warnings = len(self.items) - errors
        parts = []
        if errors:
            parts.append(f"{errors} error{'s' if errors != 1 else ''}")
        if warnings:
            parts.append(f"{warnings} warning{'s' if warnings != 1 else ''}")
        return ", ".join(parts)

    def _snippet(self, d: Diagnostic, src_lines: List[str], use_color: bool) -> List[str]:
        line_text = src_lines[d.span.line - 1]
        marker = " " * (max(1, d.span.col) - 1) + "^" + "~" * (d.span.width() - 1)
        if not use_color:
            return [f"  | {line_text}", f"  ` {marker}"]
        tint = C.RED if d.is_error else C.YELLOW
        return [f"{C.GRAY}  | {C.RESET}{line_text}", f"{C.GRAY}  ` {C.RESET}{tint}{marker}{C.RESET}"]

    def format(self, use_color: bool = True) -> str:
        """Render every diagnostic: a `file:line:col` header, then the offending line."""
        out: List[str] = []
        src_lines = self.source.splitlines() if self.source else []

        for d in self.items:
            name = _display_name(d.filename or self.filename)
            loc = f"{name}:{d.span.line}:{d.span.col}" if d.span else name
            message = d.message if d.message.endswith(".") else f"{d.message}."

            if use_color:
                label = f"{C.BOLD}{C.RED}error{C.RESET}" if d.is_error else f"{C.BOLD}{C.YELLOW}warning{C.RESET}"
                out.append(f"{C.CYAN}{loc}{C.RESET}: {label} [{C.DIM}{d.code}{C.RESET}]: {message}")
            else:
                out.append(f"{loc}: {d.kind} [{d.code}]: {message}")

            if d.span and 0 < d.span.line <= len(src_lines):
                out.extend(self._snippet(d, src_lines, use_color))

        return "\n".join(out)

    def print(self, stream=None, use_color: Optional[bool] = None) -> None:
        """Print diagnostics and a count line to `stream` (default: sys.stderr).

        Color is auto-enabled for TTY unless NO_COLOR or TERM=dumb.
        """
        stream = stream or sys.stderr
        if use_color is None:
            is_tty = getattr(stream, "isatty", lambda: False)()
            use_color = is_tty and os.getenv("NO_COLOR") is None and os.getenv("TERM") != "dumb"

        text = self.format(use_color=use_color)
        if text:
            print(text, file=stream)
            print(self.summary(), file=stream)


class CompileError(Exception):
    """Raised when a compilation step finished with error diagnostics."""

    def __init__(self, reporter: Reporter):
        self.reporter = reporter
        first = next((d for d in reporter.items if d.is_error), None)
        super().__init__(f"[{first.code}] {first.message}" if first else "compilation failed")

    @property
    def codes(self) -> List[str]:
        return [d.code for d in self.reporter.items if d.is_error]
