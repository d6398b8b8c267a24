from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from pathlib import Path

from finrecon.db.repositories import Repositories, UploadPersistenceError
from finrecon.logging.error_log import ErrorLogBuffer, ErrorRecord
from finrecon.models.config_models import FiscalConfig, ImportConfig
from finrecon.models.entities import Client, ProductLine
from finrecon.models.fiscal import FiscalCalendar
from finrecon.models.processing_result import FileStat, ProcessingResult
from finrecon.models.upload import UploadType
from finrecon.models.upload_file import FileStatus, UploadFile
from finrecon.models.validation import ReconciliationResult
from finrecon.parsing.csv_reader import CsvParseError, read_csv_file

from .fiscal_calendar import FiscalConfigError, build_fiscal_calendar, financial_year_for_upload_type
from .matcher import reconcile
from .progress import ProgressTracker
from .summary import render_validation_line
from .upload_store import save_financial_upload

"""Batch import orchestration.

Scans the configured directory for CSV uploads, and for each file mapped to
an upload type: parse → reconcile against registry snapshots → record
diagnostics → save matched rows. A failing file is recorded and the run
continues with the next one; saves are atomic per file.
"""

logger = logging.getLogger(__name__)


class ProcessingError(Exception):
    """Fatal error that stops the whole run."""


def scan_csv_files(directory: Path) -> list[Path]:
    """CSV files directly inside ``directory`` (non-recursive), sorted by name."""
    if not directory.exists():
        raise ProcessingError(f"Directory not found: {directory}")
    if not directory.is_dir():
        raise ProcessingError(f"Path is not a directory: {directory}")
    try:
        return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() == ".csv")
    except OSError as e:
        raise ProcessingError(f"Error reading directory {directory}: {e}") from e


def resolve_fiscal_config(config: ImportConfig, repos: Repositories) -> FiscalConfig:
    """Stored tenant settings win; the config file section is the fallback."""
    stored = repos.fiscal.get(config.tenant_id)
    if stored is not None:
        return stored
    return config.fiscal_year or FiscalConfig()


def resolve_calendar(config: ImportConfig, repos: Repositories, today: date | None = None) -> FiscalCalendar:
    try:
        return build_fiscal_calendar(resolve_fiscal_config(config, repos), today=today)
    except FiscalConfigError as e:
        raise ProcessingError(f"Invalid fiscal settings: {e}") from e


def _record_diagnostics(file_name: str, result: ReconciliationResult, error_log: ErrorLogBuffer) -> None:
    for entry in result.unmatched_clients:
        error_log.append(
            ErrorRecord.create(
                file=file_name,
                row=entry.row_index,
                error_type="UNMATCHED_CLIENT",
                message=f"client not found: {entry.client_name!r} (product {entry.product_name!r})",
            )
        )
    for entry in result.unmatched_products:
        error_log.append(
            ErrorRecord.create(
                file=file_name,
                row=entry.row_index,
                error_type="UNMATCHED_PRODUCT",
                message=f"product line not found: {entry.product_name!r}",
            )
        )
    for entry in result.duplicate_rows:
        error_log.append(
            ErrorRecord.create(
                file=file_name,
                row=entry.row_index,
                error_type="DUPLICATE_ROW",
                message=f"{entry.reason}: {entry.client_name!r} / {entry.product_name!r}",
            )
        )


def process_all(
    config: ImportConfig,
    repos: Repositories,
    *,
    dry_run: bool = False,
    error_log: ErrorLogBuffer | None = None,
    today: date | None = None,
) -> ProcessingResult:
    """Import every mapped CSV file in the configured directory.

    Raises:
        ProcessingError: missing directory or unusable fiscal settings
    """
    start_time = datetime.now(UTC)
    error_log = error_log if error_log is not None else ErrorLogBuffer()

    file_paths = scan_csv_files(Path(config.source_directory))
    calendar = resolve_calendar(config, repos, today=today)
    current_fy = calendar.current_financial_year

    clients: list[Client] = []
    product_lines: list[ProductLine] = []
    if file_paths:
        # one registry snapshot per run
        clients = repos.clients.list(config.tenant_id)
        product_lines = repos.products.list()
        logger.info(
            "registry snapshot tenant=%s clients=%d product_lines=%d",
            config.tenant_id,
            len(clients),
            len(product_lines),
        )

    file_results: list[UploadFile] = []
    file_stats: list[FileStat] = []
    with ProgressTracker(len(file_paths)) as progress:
        for file_path in file_paths:
            progress.start_file(file_path)
            file_result = _process_single_file(
                file_path,
                config,
                repos,
                clients,
                product_lines,
                current_fy,
                error_log,
                dry_run,
            )
            file_results.append(file_result)
            elapsed = 0.0
            if file_result.start_time and file_result.end_time:
                elapsed = (file_result.end_time - file_result.start_time).total_seconds()
            file_stats.append(
                FileStat(
                    file_name=file_result.name,
                    status=file_result.status.value,
                    upload_type=file_result.upload_type.value if file_result.upload_type else None,
                    matched_rows=file_result.summary.matched_count if file_result.summary else 0,
                    saved_rows=file_result.saved_rows,
                    elapsed_seconds=elapsed,
                    upload_id=file_result.upload_id,
                )
            )
            progress.finish_file(
                success=file_result.status is not FileStatus.FAILED,
                rows=file_result.summary.total_rows if file_result.summary else 0,
            )

    counts = error_log.counts_by_type()
    try:
        log_path = error_log.flush()
        if log_path is not None:
            breakdown = " ".join(f"{k}={v}" for k, v in counts.items())
            logger.info(f"diagnostics written to {log_path} ({breakdown})")
    except OSError as e:
        logger.warning(f"could not write diagnostics log: {e}")

    end_time = datetime.now(UTC)
    elapsed_seconds = (end_time - start_time).total_seconds()
    summaries = [f.summary for f in file_results if f.summary is not None]
    total_rows = sum(s.total_rows for s in summaries)
    throughput = total_rows / elapsed_seconds if elapsed_seconds > 0 else 0.0

    return ProcessingResult(
        success_files=sum(1 for f in file_results if f.status is FileStatus.SUCCESS),
        failed_files=sum(1 for f in file_results if f.status is FileStatus.FAILED),
        skipped_files=sum(1 for f in file_results if f.status is FileStatus.SKIPPED),
        total_rows=total_rows,
        matched_rows=sum(s.matched_count for s in summaries),
        unmatched_client_rows=sum(s.unmatched_client_count for s in summaries),
        unmatched_products=sum(s.unmatched_product_count for s in summaries),
        duplicate_rows=sum(s.duplicate_count for s in summaries),
        saved_rows=sum(f.saved_rows for f in file_results),
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=elapsed_seconds,
        throughput_rows_per_sec=throughput,
        file_stats=file_stats,
    )


def _process_single_file(
    file_path: Path,
    config: ImportConfig,
    repos: Repositories,
    clients: list[Client],
    product_lines: list[ProductLine],
    current_fy: str,
    error_log: ErrorLogBuffer,
    dry_run: bool,
) -> UploadFile:
    start_time = datetime.now(UTC)
    type_value = config.uploads.get(file_path.name)
    if type_value is None:
        logger.info(f"skip {file_path.name}: no upload type configured")
        return UploadFile(
            path=file_path,
            name=file_path.name,
            start_time=start_time,
            end_time=datetime.now(UTC),
            status=FileStatus.SKIPPED,
        )

    upload_type = UploadType(type_value)
    financial_year = financial_year_for_upload_type(current_fy, upload_type)

    try:
        parsed = read_csv_file(file_path)
    except CsvParseError as e:
        logger.error(f"{file_path.name}: {e}")
        error_log.append(ErrorRecord.create(file=file_path.name, row=-1, error_type="CSV_PARSE_ERROR", message=str(e)))
        return UploadFile(
            path=file_path,
            name=file_path.name,
            upload_type=upload_type,
            financial_year=financial_year,
            start_time=start_time,
            end_time=datetime.now(UTC),
            status=FileStatus.FAILED,
            error=str(e),
        )

    for warning in parsed.warnings:
        error_log.append(ErrorRecord.create(file=file_path.name, row=1, error_type="MONTH_COLUMN_COUNT", message=warning))

    result = reconcile(parsed.rows, clients, product_lines)
    _record_diagnostics(file_path.name, result, error_log)
    logger.info(render_validation_line(file_path.name, result.summary))

    saved_rows = 0
    upload_id = None
    if dry_run:
        logger.info(f"{file_path.name}: dry run, nothing saved")
    elif not result.matched_rows:
        logger.warning(f"{file_path.name}: no matched rows, nothing saved")
    else:
        try:
            saved = save_financial_upload(
                repos.uploads,
                result.matched_rows,
                upload_type,
                financial_year,
                config.uploaded_by,
                config.tenant_id,
            )
        except UploadPersistenceError as e:
            logger.error(f"{file_path.name}: {e}")
            error_log.append(
                ErrorRecord.create(file=file_path.name, row=-1, error_type="PERSISTENCE_ERROR", message=str(e))
            )
            return UploadFile(
                path=file_path,
                name=file_path.name,
                upload_type=upload_type,
                financial_year=financial_year,
                start_time=start_time,
                end_time=datetime.now(UTC),
                status=FileStatus.FAILED,
                summary=result.summary,
                error=str(e),
            )
        saved_rows = saved.success_count
        upload_id = saved.upload_id

    return UploadFile(
        path=file_path,
        name=file_path.name,
        upload_type=upload_type,
        financial_year=financial_year,
        start_time=start_time,
        end_time=datetime.now(UTC),
        status=FileStatus.SUCCESS,
        summary=result.summary,
        saved_rows=saved_rows,
        upload_id=upload_id,
    )
