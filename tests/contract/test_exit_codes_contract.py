from __future__ import annotations

from pathlib import Path

from finrecon.cli.__main__ import EXIT_FATAL, EXIT_PARTIAL_FAILURE, EXIT_SUCCESS_ALL, main as cli_main

"""Exit code contract: 0 all files ok, 2 any file failed, 1 fatal."""


def test_exit_code_fatal_without_config(temp_workdir: Path, capsys):
    code = cli_main([])
    assert code == EXIT_FATAL == 1
    assert "ERROR config:" in capsys.readouterr().out


def test_exit_code_fatal_on_invalid_config(temp_workdir: Path, capsys):
    (temp_workdir / "config" / "import.yml").write_text("tenant_id: t\n", encoding="utf-8")
    assert cli_main([]) == EXIT_FATAL
    assert "config validation failed" in capsys.readouterr().out


def test_exit_code_fatal_on_missing_directory(write_config: Path, temp_workdir: Path, capsys):
    (temp_workdir / "data").rmdir()
    assert cli_main([]) == EXIT_FATAL
    assert "ERROR directory not found" in capsys.readouterr().out


def test_exit_code_all_success(write_config: Path, write_upload, capsys):
    write_upload("actuals.csv", [("Acme Corp", "Consulting", 1)])
    write_upload("budget.csv", [("Globex Ltd", "Licensing", 2)])
    assert cli_main([]) == EXIT_SUCCESS_ALL == 0
    assert "SUMMARY files=2/2 success=2 failed=0" in capsys.readouterr().out


def test_exit_code_partial_failure(write_config: Path, write_upload, temp_workdir: Path, capsys):
    write_upload("actuals.csv", [("Acme Corp", "Consulting", 1)])
    (temp_workdir / "data" / "budget.csv").write_text("Client Name,Product Name\n", encoding="utf-8")
    assert cli_main([]) == EXIT_PARTIAL_FAILURE == 2
    assert "success=1 failed=1" in capsys.readouterr().out


def test_exit_code_all_failed_is_partial(write_config: Path, temp_workdir: Path):
    (temp_workdir / "data" / "actuals.csv").write_text("", encoding="utf-8")
    assert cli_main([]) == EXIT_PARTIAL_FAILURE


def test_exit_code_only_skipped_files_is_success(write_config: Path, write_upload, capsys):
    write_upload("other.csv", [("Acme Corp", "Consulting", 1)])
    assert cli_main([]) == EXIT_SUCCESS_ALL
    assert "skipped=1" in capsys.readouterr().out
