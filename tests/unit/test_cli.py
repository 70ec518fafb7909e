from __future__ import annotations

import io
from pathlib import Path

from openpyxl import load_workbook

from roster_sync.cli.__main__ import EXIT_FATAL, EXIT_SUCCESS, main as cli_main


def _member_id(path: Path, sheet: str, row: int):
    ws = load_workbook(path)[sheet]
    col = [c.value for c in ws[1]].index("Member ID") + 1
    return ws.cell(row=row, column=col).value


def test_cli_config_missing(temp_workdir: Path, capsys):
    code = cli_main([])
    out = capsys.readouterr().out
    assert code == EXIT_FATAL
    assert "ERROR config: config file not found" in out


def test_cli_reconcile_success(write_config, excel_workbooks, capsys):
    code = cli_main([])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS
    assert "SUMMARY rows=4 new=1 changed=2 id_changes=1 applied=1 failed=0 invalid_dates=0 elapsed_sec=" in out
    assert "INFO Reconciliation complete." in out


def test_cli_config_from_env_var(temp_workdir: Path, sample_config_yaml: str, excel_workbooks, monkeypatch, capsys):
    alt = temp_workdir / "config" / "alt.yml"
    alt.write_text(sample_config_yaml, encoding="utf-8")
    monkeypatch.setenv("ROSTER_SYNC_CONFIG", str(alt))
    assert cli_main([]) == EXIT_SUCCESS
    assert "SUMMARY rows=4" in capsys.readouterr().out


def test_cli_config_from_dotenv(temp_workdir: Path, sample_config_yaml: str, excel_workbooks, monkeypatch, capsys):
    # load_dotenv writes os.environ directly; make monkeypatch restore it
    monkeypatch.setenv("ROSTER_SYNC_CONFIG", "placeholder")
    monkeypatch.delenv("ROSTER_SYNC_CONFIG")
    (temp_workdir / "config" / "from_env.yml").write_text(sample_config_yaml, encoding="utf-8")
    (temp_workdir / ".env").write_text("ROSTER_SYNC_CONFIG=config/from_env.yml\n", encoding="utf-8")
    assert cli_main([]) == EXIT_SUCCESS
    assert "SUMMARY rows=4" in capsys.readouterr().out


def test_cli_explicit_config_wins(write_config: Path, excel_workbooks, monkeypatch, capsys):
    monkeypatch.setenv("ROSTER_SYNC_CONFIG", "config/does_not_exist.yml")
    assert cli_main(["--config", str(write_config)]) == EXIT_SUCCESS
    capsys.readouterr()


def test_cli_inspect_data(write_config, excel_workbooks, capsys):
    code = cli_main(["--inspect-data"])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS
    assert "TABLE: roster (./data/roster.xlsx / Roster)" in out
    assert "TABLE: incoming" in out
    assert "rows=4" in out
    assert "SUMMARY" not in out
    # 読み取りのみ
    assert _member_id(excel_workbooks[0], "Roster", 2) == "100"


def test_cli_inspect_data_missing_workbook(write_config, capsys):
    code = cli_main(["--inspect-data"])
    out = capsys.readouterr().out
    assert code == EXIT_FATAL
    assert "read_error: workbook not found" in out


def test_cli_missing_workbook_is_fatal(write_config, capsys):
    code = cli_main([])
    out = capsys.readouterr().out
    assert code == EXIT_FATAL
    assert "ERROR Cannot run, nothing was changed:" in out
    assert "SUMMARY" not in out


def test_cli_debug_flag(write_config, excel_workbooks, capsys):
    assert cli_main(["--debug"]) == EXIT_SUCCESS
    assert "DEBUG " in capsys.readouterr().out


def test_cli_debug_from_config(write_config: Path, excel_workbooks, capsys):
    write_config.write_text(write_config.read_text(encoding="utf-8") + "debug: true\n", encoding="utf-8")
    assert cli_main([]) == EXIT_SUCCESS
    assert "DEBUG debug mode enabled by config" in capsys.readouterr().out


def test_cli_prompt_without_terminal_leaves_ids(write_config: Path, excel_workbooks, monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO(""))
    text = write_config.read_text(encoding="utf-8")
    text = text.replace("prompt_before_id_update: false", "prompt_before_id_update: true")
    write_config.write_text(text, encoding="utf-8")

    code = cli_main([])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS
    assert "row 2: Alex Lee  100 -> 101" in out
    assert "applied=0" in out
    assert "1 member ID change(s) left pending" in out
    assert _member_id(excel_workbooks[0], "Roster", 2) == "100"


def test_cli_yes_answers_prompt(write_config: Path, excel_workbooks, capsys):
    text = write_config.read_text(encoding="utf-8")
    text = text.replace("prompt_before_id_update: false", "prompt_before_id_update: true")
    write_config.write_text(text, encoding="utf-8")

    assert cli_main(["--yes"]) == EXIT_SUCCESS
    assert "applied=1" in capsys.readouterr().out
    assert _member_id(excel_workbooks[0], "Roster", 2) == "101"


def test_cli_phones_command(write_config, excel_workbooks, capsys):
    code = cli_main(["phones"])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS
    assert "SUMMARY rows=4 new=0 changed=0 id_changes=0 applied=0 failed=0" in out
    assert "INFO Phone normalization complete" in out
    assert "Reconciliation" not in out
    # roster untouched by the phones command
    assert _member_id(excel_workbooks[0], "Roster", 2) == "100"


def test_cli_contacts_command(write_config, excel_workbooks, capsys):
    assert cli_main(["contacts"]) == EXIT_SUCCESS
    out = capsys.readouterr().out
    assert "SUMMARY rows=4" in out
    assert "INFO Contact de-duplication complete" in out
