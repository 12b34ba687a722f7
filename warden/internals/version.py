from __future__ import annotations
import sys, platform, datetime
import tomllib
from pathlib import Path
from importlib.metadata import version as _pkg_version, PackageNotFoundError

def _read_version_from_pyproject() -> str:
    """Version from pyproject.toml, for running out of a source checkout."""
    try:
        pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            with open(pyproject_path, "rb") as f:
                return tomllib.load(f).get("project", {}).get("version", "unknown")
    except (OSError, tomllib.TOMLDecodeError):
        pass
    return "unknown"

def _ensure_utf8_stdout() -> None:
    try:
        sys.stdout.reconfigure(encoding="utf-8")
    except (AttributeError, ValueError, OSError):
        pass

def _get_versions() -> dict[str, str]:
    try:
        app_ver = _pkg_version("warden")
    except PackageNotFoundError:
        app_ver = _read_version_from_pyproject()

    try:
        lark_ver = _pkg_version("lark")
    except PackageNotFoundError:
        lark_ver = "unknown"

    return {
        "app": app_ver,
        "python": platform.python_version(),
        "lark": lark_ver,
    }

def banner() -> str:
    v = _get_versions()
    today = datetime.date.today().isoformat()

    # ANSI styling only for interactive terminals
    if sys.stdout.isatty():
        BOLD, DIM, RESET = "\x1b[1m", "\x1b[2m", "\x1b[0m"
    else:
        BOLD, DIM, RESET = "", "", ""

    return (
        f"{BOLD}warden account constraint compiler{RESET} • {v['app']}\n"
        f"{DIM}Python {v['python']} • lark {v['lark']} • {today}{RESET}\n"
    )

def print_banner() -> None:
    _ensure_utf8_stdout()
    print(banner())
