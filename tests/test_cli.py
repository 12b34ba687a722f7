from warden.cli import main

SRC = """
#[account]
pub struct Counter { pub count: u64 }

#[derive(Accounts)]
pub struct Bump<'info> {
    #[account(mut, has_one = authority)]
    pub counter: Account<'info, Counter>,
    pub authority: Signer<'info>,
}
"""


def _write(tmp_path, text, name="program.warden"):
    path = tmp_path / name
    path.write_text(text)
    return str(path)


def test_prints_plan(tmp_path, capsys):
    assert main([_write(tmp_path, SRC.replace("has_one = authority", "signer")), "-q"]) == 0
    out = capsys.readouterr().out
    assert "Bump:" in out
    assert "counter is writable" in out
    assert "warden account constraint compiler" not in out


def test_banner(tmp_path, capsys):
    main([_write(tmp_path, SRC)])
    assert "warden account constraint compiler" in capsys.readouterr().out


def test_fields_view(tmp_path, capsys):
    assert main([_write(tmp_path, SRC), "-q", "--emit", "fields"]) == 0
    out = capsys.readouterr().out
    assert "counter: mut -> has_one" in out
    assert "authority: -" in out


def test_errors_exit_2(tmp_path, capsys):
    assert main([_write(tmp_path, SRC.replace("Counter>", "Missing>")), "-q", "--no-color"]) == 2
    assert "CE1001" in capsys.readouterr().err


def test_warnings_exit_1(tmp_path, capsys):
    src = SRC.replace("mut, has_one = authority", 'mut, "counter.count < 10"')
    assert main([_write(tmp_path, src), "-q", "--no-color"]) == 1
    assert "CW1001" in capsys.readouterr().err


def test_unknown_struct(tmp_path, capsys):
    assert main([_write(tmp_path, SRC), "-q", "--no-color", "--struct", "Nope"]) == 2
    assert "CE1016" in capsys.readouterr().err


def test_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "nope.warden"), "-q"]) == 2
    assert "cannot read" in capsys.readouterr().err


def test_config_enables_nodup(tmp_path, capsys):
    (tmp_path / "warden.toml").write_text('[compiler]\nfeatures = ["nodup"]\n')
    src = SRC.replace("pub authority: Signer", "#[account(mut)]\n    pub authority: Signer")
    assert main([_write(tmp_path, src), "-q"]) == 0
    assert "(duplicates):" in capsys.readouterr().out


def test_bad_config(tmp_path, capsys):
    (tmp_path / "warden.toml").write_text('[compiler]\nfeatures = ["fast"]\n')
    assert main([_write(tmp_path, SRC), "-q"]) == 2
    assert "Unknown feature" in capsys.readouterr().err
