"""Compile every declaration file under decls/ and check its exit code.

Expected exit codes follow the file name:
- test_warn_*.warden: 1 (compiled with warnings)
- test_err_*.warden: 2 (compilation failed)
- test_*.warden: 0
"""
from pathlib import Path

import pytest

from warden.cli import main

DECLS = Path(__file__).parent / "decls"


def expected_exit_code(path: Path) -> int:
    if path.name.startswith("test_warn_"):
        return 1
    if path.name.startswith("test_err_"):
        return 2
    return 0


@pytest.mark.parametrize("path", sorted(DECLS.glob("test_*.warden")), ids=lambda p: p.stem)
def test_declaration_file(path, capsys):
    code = main([str(path), "--quiet", "--no-color"])
    captured = capsys.readouterr()
    assert code == expected_exit_code(path), captured.out + captured.err
