"""wardenc - compile an accounts declaration file and print its check sequence."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from warden.compiler import compile_source
from warden.config import ConfigError, load_config
from warden.internals import errors as er
from warden.internals.report import CompileError, Reporter
from warden.internals.version import print_banner


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="wardenc", description="Account constraint compiler")
    ap.add_argument("source", help="Path to a declaration file")
    ap.add_argument("--struct", metavar="NAME", help="Only print the plan of this accounts struct")
    ap.add_argument("--emit", choices=["plan", "fields"], default="plan",
                    help="'plan' prints every step; 'fields' prints each field's constraint order")
    ap.add_argument("--nodup", action="store_true", help="Enable the duplicate account checks")
    ap.add_argument("--no-color", action="store_true", help="Disable colored diagnostics")
    ap.add_argument("--quiet", "-q", action="store_true", help="Do not print the banner")
    return ap


def _render_fields(plan) -> str:
    lines = [f"{plan.name}:"]
    for fp in plan.fields:
        kinds = [s.kind for s in fp.steps]
        lines.append(f"  {fp.name}: {' -> '.join(kinds) if kinds else '-'}")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if not args.quiet:
        print_banner()

    src_path = Path(args.source)
    try:
        config = load_config(src_path.parent)
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    use_color = False if args.no_color else config.color

    try:
        src = src_path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"error: cannot read {src_path}: {e}", file=sys.stderr)
        return 2

    options = config.compile_options()
    if args.nodup:
        options.nodup = True

    reporter = Reporter(source=src, filename=str(src_path))
    try:
        compiled = compile_source(src, str(src_path), options, reporter=reporter)
    except CompileError:
        reporter.print(use_color=use_color)
        return 2

    plans = compiled.plans
    if args.struct is not None:
        if args.struct not in plans:
            er.emit(reporter, er.ERR.CE1016, None, name=args.struct)
            reporter.print(use_color=use_color)
            return 2
        plans = {args.struct: plans[args.struct]}

    for plan in plans.values():
        print(plan.render() if args.emit == "plan" else _render_fields(plan))
        print()

    if reporter.has_warnings:
        reporter.print(use_color=use_color)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
