from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import date
from pathlib import Path

import pytest

from finrecon.config.loader import load_config
from finrecon.db.repositories import in_memory_repositories
from finrecon.logging.error_log import ErrorLogBuffer
from finrecon.models.config_models import FiscalConfig
from finrecon.models.upload import UploadStatus, UploadType
from finrecon.models.upload_file import FileStatus
from finrecon.services.dashboard import build_dashboard
from finrecon.services.orchestrator import (
    ProcessingError,
    process_all,
    resolve_calendar,
    resolve_fiscal_config,
    scan_csv_files,
)


@pytest.fixture()
def cfg(write_config: Path):
    return load_config(write_config)


@pytest.fixture()
def repos(cfg):
    return in_memory_repositories(cfg.tenant_id, cfg.registry_clients, cfg.registry_product_lines)


def _error_types(log_dir: Path) -> list[str]:
    lines = []
    for path in sorted(log_dir.glob("errors-*.log")):
        lines.extend(path.read_text(encoding="utf-8").splitlines())
    return [json.loads(line)["error_type"] for line in lines]


def test_scan_csv_files_is_sorted_and_non_recursive(tmp_path: Path):
    (tmp_path / "b.csv").write_text("x")
    (tmp_path / "a.CSV").write_text("x")
    (tmp_path / "notes.txt").write_text("x")
    (tmp_path / "nested").mkdir()
    (tmp_path / "nested" / "c.csv").write_text("x")
    assert [p.name for p in scan_csv_files(tmp_path)] == ["a.CSV", "b.csv"]


def test_scan_csv_files_missing_directory(tmp_path: Path):
    with pytest.raises(ProcessingError, match="Directory not found"):
        scan_csv_files(tmp_path / "missing")


def test_scan_csv_files_not_a_directory(tmp_path: Path):
    file_path = tmp_path / "file.csv"
    file_path.write_text("x")
    with pytest.raises(ProcessingError, match="not a directory"):
        scan_csv_files(file_path)


def test_stored_fiscal_settings_win_over_config(cfg):
    stored = FiscalConfig(current_financial_year="2030/2031", financial_year_start="July")
    repos = in_memory_repositories(cfg.tenant_id, fiscal=stored)
    assert resolve_fiscal_config(cfg, repos) is stored
    assert resolve_calendar(cfg, repos).months[0].calendar_month_name == "July"


def test_config_fiscal_settings_are_the_fallback(cfg, repos):
    assert resolve_fiscal_config(cfg, repos) == cfg.fiscal_year


def test_invalid_fiscal_settings_are_fatal(cfg):
    repos = in_memory_repositories(cfg.tenant_id, fiscal=FiscalConfig(financial_year_start="Nope"))
    with pytest.raises(ProcessingError, match="Invalid fiscal settings"):
        resolve_calendar(cfg, repos)


def test_process_all_saves_matched_rows(cfg, repos, write_upload, temp_workdir: Path):
    write_upload(
        "actuals.csv",
        [("Acme Corp", "Consulting", 10), ("Globex Ltd", "Licensing", 5), ("Initech", "Consulting", 1)],
    )
    write_upload("prior.csv", [("acme corp", "consulting", 2)])
    result = process_all(cfg, repos)

    assert result.success_files == 2
    assert result.failed_files == 0
    assert result.total_rows == 4
    assert result.matched_rows == 3
    assert result.unmatched_client_rows == 1
    assert result.saved_rows == 3

    actual = repos.uploads.find_records("tenant-a", UploadType.YTD_ACTUAL, "2024/2025")
    assert {r.client_id for r in actual} == {"c1", "c2"}
    prior = repos.uploads.find_records("tenant-a", UploadType.YTD_1, "2023/2024")
    assert [r.client_name for r in prior] == ["Acme Corp"]
    assert all(b.status is UploadStatus.COMPLETED for b in repos.uploads.list_by_tenant("tenant-a"))
    assert _error_types(temp_workdir / "logs") == ["UNMATCHED_CLIENT"]


def test_unmapped_files_are_skipped(cfg, repos, write_upload):
    write_upload("unexpected.csv", [("Acme Corp", "Consulting", 1)])
    result = process_all(cfg, repos)
    assert result.skipped_files == 1
    assert result.success_files == 0
    assert result.total_rows == 0
    assert result.file_stats[0].status == "skipped"


def test_parse_error_fails_only_that_file(cfg, repos, write_upload, temp_workdir: Path):
    write_upload("actuals.csv", [("Acme Corp", "Consulting", 1)])
    (temp_workdir / "data" / "budget.csv").write_text("Customer,Thing\nx,y\n", encoding="utf-8")
    result = process_all(cfg, repos)
    assert result.success_files == 1
    assert result.failed_files == 1
    failed = [s for s in result.file_stats if s.status == "failed"]
    assert [s.file_name for s in failed] == ["budget.csv"]
    assert "CSV_PARSE_ERROR" in _error_types(temp_workdir / "logs")


def test_persistence_error_fails_file(cfg, repos, write_upload, temp_workdir: Path):
    write_upload("actuals.csv", [("Acme Corp", "Consulting", 1)])
    repos.uploads.fail_on_save = True
    result = process_all(cfg, repos)
    assert result.failed_files == 1
    assert result.saved_rows == 0
    assert "PERSISTENCE_ERROR" in _error_types(temp_workdir / "logs")
    [batch] = repos.uploads.list_by_tenant("tenant-a")
    assert batch.status is UploadStatus.FAILED


def test_dry_run_saves_nothing(cfg, repos, write_upload):
    write_upload("actuals.csv", [("Acme Corp", "Consulting", 1)])
    result = process_all(cfg, repos, dry_run=True)
    assert result.success_files == 1
    assert result.matched_rows == 1
    assert result.saved_rows == 0
    assert repos.uploads.list_by_tenant("tenant-a") == []
    assert result.file_stats[0].upload_id is None


def test_file_without_matches_saves_nothing(cfg, repos, write_upload):
    write_upload("actuals.csv", [("Initech", "Widgets", 1)])
    result = process_all(cfg, repos)
    assert result.success_files == 1
    assert result.saved_rows == 0
    assert repos.uploads.list_by_tenant("tenant-a") == []


def test_diagnostics_cover_every_category(cfg, repos, write_upload, tmp_path: Path, caplog):
    caplog.set_level(logging.INFO)
    write_upload(
        "actuals.csv",
        [
            ("Acme Corp", "Consulting", 1),
            ("Acme Corp", "Consulting", 1),  # duplicate
            ("Initech", "Consulting", 1),  # unmatched client
            ("Globex Ltd", "Widgets", 1),  # unmatched product
        ],
        headers=["Month 1", "Month 2"],
    )
    error_log = ErrorLogBuffer(tmp_path / "diag")
    result = process_all(cfg, repos, error_log=error_log)
    assert result.duplicate_rows == 1
    assert result.unmatched_products == 1
    assert sorted(_error_types(tmp_path / "diag")) == [
        "DUPLICATE_ROW",
        "MONTH_COLUMN_COUNT",
        "UNMATCHED_CLIENT",
        "UNMATCHED_PRODUCT",
    ]
    assert "DUPLICATE_ROW=1" in caplog.text


def test_empty_directory_is_success(cfg, repos, temp_workdir: Path):
    result = process_all(cfg, repos)
    assert result.success_files == result.failed_files == result.skipped_files == 0
    assert result.throughput_rows_per_sec >= 0
    assert list((temp_workdir / "logs").iterdir()) == []


def test_missing_current_year_uses_calendar_year(cfg, write_upload):
    repos = in_memory_repositories(
        cfg.tenant_id,
        cfg.registry_clients,
        cfg.registry_product_lines,
        fiscal=FiscalConfig(financial_year_start="March"),
    )
    write_upload("prior.csv", [("Acme Corp", "Consulting", 1)])
    process_all(cfg, repos, today=date(2025, 6, 1))
    assert len(repos.uploads.find_records("tenant-a", UploadType.YTD_1, "2023/2024")) == 1


def test_dashboard_reads_the_year_the_import_saved_under(cfg, write_upload):
    repos = in_memory_repositories(
        cfg.tenant_id,
        cfg.registry_clients,
        cfg.registry_product_lines,
    )
    no_fiscal = replace(cfg, fiscal_year=None)
    today = date(2026, 1, 15)
    write_upload("actuals.csv", [("Acme Corp", "Consulting", 10)])
    write_upload("prior.csv", [("Acme Corp", "Consulting", 4)])
    process_all(no_fiscal, repos, today=today)

    [saved_actual] = repos.uploads.find_records("tenant-a", UploadType.YTD_ACTUAL, "2025/2026")
    dashboard = build_dashboard(repos.uploads, "tenant-a", resolve_calendar(no_fiscal, repos, today=today))
    assert dashboard.current_financial_year == "2025/2026"
    assert dashboard.by_type[UploadType.YTD_ACTUAL].records == [saved_actual]
    assert dashboard.by_type[UploadType.YTD_1].financial_year == "2024/2025"
    assert len(dashboard.by_type[UploadType.YTD_1].records) == 1


def test_every_file_ends_in_a_terminal_status(cfg, repos, write_upload, temp_workdir: Path):
    write_upload("actuals.csv", [("Acme Corp", "Consulting", 1)])
    write_upload("unexpected.csv", [("Acme Corp", "Consulting", 1)])
    (temp_workdir / "data" / "budget.csv").write_text("Customer,Thing\nx,y\n", encoding="utf-8")
    result = process_all(cfg, repos)
    assert {s.file_name: s.status for s in result.file_stats} == {
        "actuals.csv": FileStatus.SUCCESS.value,
        "budget.csv": FileStatus.FAILED.value,
        "unexpected.csv": FileStatus.SKIPPED.value,
    }
    assert {s.value for s in FileStatus} == {"pending", "success", "failed", "skipped"}
