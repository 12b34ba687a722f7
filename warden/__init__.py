"""warden - compiles declarative account constraints into executable check sequences."""
from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("warden")
    __dev__ = False
except PackageNotFoundError:
    # Development mode - read from pyproject.toml
    import tomllib
    from pathlib import Path
    try:
        pyproject = Path(__file__).parent.parent / "pyproject.toml"
        with open(pyproject, "rb") as f:
            __version__ = tomllib.load(f).get("project", {}).get("version", "unknown")
    except (OSError, tomllib.TOMLDecodeError):
        __version__ = "unknown"
    __dev__ = True

from warden.backend.codegen import CompileOptions
from warden.backend.plan import Plan, Step
from warden.compiler import CompiledUnit, compile_accounts, compile_file, compile_source
from warden.internals.report import CompileError
from warden.runtime.errors import ConstraintError, ErrorCode, ProgramError

__all__ = [
    "CompileError",
    "CompileOptions",
    "CompiledUnit",
    "ConstraintError",
    "ErrorCode",
    "Plan",
    "ProgramError",
    "Step",
    "compile_accounts",
    "compile_file",
    "compile_source",
]
