from __future__ import annotations

import json
from pathlib import Path

from finrecon.cli.__main__ import main as cli_main

"""Partial failure: one bad upload does not stop the others."""


def test_bad_file_is_isolated(write_config: Path, write_upload, temp_workdir: Path, capsys):
    write_upload("actuals.csv", [("Acme Corp", "Consulting", 1)])
    write_upload("prior.csv", [("Acme Corp", "Consulting", 1)])
    (temp_workdir / "data" / "budget.csv").write_text(
        "Client Name,Product Name,Month 1\nAcme Corp,Consulting,1,2\n", encoding="utf-8"
    )
    assert cli_main([]) == 2
    out = capsys.readouterr().out
    assert "ERROR budget.csv:" in out
    assert "SUMMARY files=3/3 success=2 failed=1 skipped=0 rows=2 matched=2" in out
    assert "saved=2" in out

    [log_file] = list((temp_workdir / "logs").glob("errors-*.log"))
    [record] = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert record["file"] == "budget.csv"
    assert record["error_type"] == "CSV_PARSE_ERROR"
