from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Callable
from contextlib import ExitStack
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from finrecon.config.loader import ConfigError, load_config
from finrecon.db.postgres import connect, postgres_repositories
from finrecon.db.repositories import Repositories, UploadPersistenceError, in_memory_repositories
from finrecon.logging.init import log_summary, set_level, setup_logging
from finrecon.models.config_models import ImportConfig
from finrecon.models.upload import UploadType
from finrecon.parsing.csv_reader import CsvParseError, read_csv_file
from finrecon.services.aggregator import format_variance
from finrecon.services.dashboard import build_dashboard
from finrecon.services.orchestrator import ProcessingError, process_all, resolve_calendar, scan_csv_files
from finrecon.services.summary import render_summary_line
from finrecon.services.upload_store import delete_financial_upload, list_uploads

"""CLI entrypoint: ``python -m finrecon.cli``.

Default action imports every mapped CSV in ``source_directory`` and closes
with a SUMMARY line. ``--list-uploads`` and ``--delete-upload`` manage
upload history instead; ``--report`` prints the dashboard after the import.

Storage is PostgreSQL when reachable. With ``DISABLE_DB_CONNECT=1`` or an
unreachable database the run continues against in-memory repositories
seeded from the config registry (nothing survives the process).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

CONFIG_PATH = Path("config/import.yml")

logger = logging.getLogger("finrecon.cli")


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env so its PostgreSQL settings take precedence over the shell."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Financial CSV upload -> registry reconciliation -> PostgreSQL")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print parsed headers & first rows then exit")
    p.add_argument("--dry-run", action="store_true", help="Reconcile and report without saving")
    actions = p.add_mutually_exclusive_group()
    actions.add_argument("--list-uploads", action="store_true", help="List upload history for the tenant")
    actions.add_argument("--delete-upload", metavar="ID", help="Delete an upload and all its records")
    p.add_argument("--report", action="store_true", help="Print the dashboard comparison after importing")
    return p.parse_args(argv)


def _inspect_data(cfg: ImportConfig) -> int:
    try:
        csv_files = scan_csv_files(Path(cfg.source_directory))
    except ProcessingError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    if not csv_files:
        print("inspect: no .csv files")
        return EXIT_SUCCESS_ALL
    for f in csv_files:
        upload_type = cfg.uploads.get(f.name, "-")
        print(f"FILE: {f.name} type={upload_type}")
        try:
            parsed = read_csv_file(f)
        except CsvParseError as e:
            print(f"  parse_error: {e}")
            continue
        print(f"  headers={parsed.headers}")
        print(f"  month_columns={parsed.month_columns} rows={len(parsed.rows)} total={parsed.total_amount:.2f}")
        for warning in parsed.warnings:
            print(f"  warning: {warning}")
        for row in parsed.rows[:3]:
            print(f"  row: client={row.client_name!r} product={row.product_name!r} total={row.total:.2f}")
    return EXIT_SUCCESS_ALL


def _mock_repositories(cfg: ImportConfig) -> Repositories:
    return in_memory_repositories(
        cfg.tenant_id,
        clients=cfg.registry_clients,
        product_lines=cfg.registry_product_lines,
    )


def _with_repositories(cfg: ImportConfig, action: Callable[[Repositories, str], int]) -> int:
    """Run ``action`` against PostgreSQL, or in-memory when no DB is available."""
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        return action(_mock_repositories(cfg), "mock")
    with ExitStack() as stack:
        try:
            conn = stack.enter_context(connect(cfg.database))
        except psycopg2.Error as e:
            logger.info(f"DB connection failed -> fallback to mock mode: {e}")
            return action(_mock_repositories(cfg), "mock")
        try:
            return action(postgres_repositories(conn), "live")
        except psycopg2.Error as e:
            logger.error(f"database: {e}")
            return EXIT_FATAL


def _list_uploads(cfg: ImportConfig, repos: Repositories) -> int:
    uploads = list_uploads(repos.uploads, cfg.tenant_id)
    if not uploads:
        print("no uploads")
    for batch in uploads:
        uploaded_at = batch.uploaded_at.isoformat() if batch.uploaded_at else "-"
        print(
            f"{batch.upload_id} {batch.upload_type.value} fy={batch.financial_year} "
            f"rows={batch.row_count} total={batch.total_amount:.2f} status={batch.status.value} "
            f"by={batch.uploaded_by} at={uploaded_at}"
        )
    return EXIT_SUCCESS_ALL


def _delete_upload(cfg: ImportConfig, repos: Repositories, upload_id: str) -> int:
    try:
        deleted = delete_financial_upload(repos.uploads, upload_id, cfg.tenant_id)
    except UploadPersistenceError as e:
        logger.error(f"delete: {e}")
        return EXIT_FATAL
    print(f"deleted upload={upload_id} records={deleted}")
    return EXIT_SUCCESS_ALL


def _print_report(cfg: ImportConfig, repos: Repositories) -> None:
    calendar = resolve_calendar(cfg, repos)
    dashboard = build_dashboard(repos.uploads, cfg.tenant_id, calendar)
    by_type = dashboard.by_type
    print(f"REPORT tenant={cfg.tenant_id} fy={dashboard.current_financial_year or '-'}")
    print(f"  ytd_months={','.join(dashboard.ytd_month_labels) or '-'}")
    for upload_type, summary in by_type.items():
        print(
            f"  {upload_type.label} ({summary.financial_year or '-'}): "
            f"records={len(summary.records)} full_year={summary.full_year_total:.2f} "
            f"ytd={summary.ytd_total:.2f}"
        )
    actual = by_type[UploadType.YTD_ACTUAL].ytd_total
    budget = by_type[UploadType.BUDGET].ytd_total
    prior = by_type[UploadType.YTD_1].ytd_total
    print(
        f"  variance actual_vs_budget={format_variance(actual, budget)} "
        f"actual_vs_prior_year={format_variance(actual, prior)} "
        f"budget_vs_prior_year={format_variance(budget, prior)}"
    )


def _import(cfg: ImportConfig, repos: Repositories, mode: str, args: argparse.Namespace) -> int:
    try:
        result = process_all(cfg, repos, dry_run=args.dry_run)
    except ProcessingError as e:
        logger.error(f"processing({mode}): {e}")
        return EXIT_FATAL

    logger.info(f"mode={mode} saved_rows={result.saved_rows}")

    total_files = result.success_files + result.failed_files + result.skipped_files
    summary_line = render_summary_line(total_files, result)
    # log_summary adds the "SUMMARY " label itself
    log_summary(summary_line[len("SUMMARY "):])

    if args.report:
        _print_report(cfg, repos)

    if result.failed_files > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None only: an explicit [] from tests must not pick up pytest's own argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_level(logging.DEBUG)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(CONFIG_PATH)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(cfg)

    if args.list_uploads:
        return _with_repositories(cfg, lambda repos, mode: _list_uploads(cfg, repos))
    if args.delete_upload:
        return _with_repositories(cfg, lambda repos, mode: _delete_upload(cfg, repos, args.delete_upload))

    directory = Path(cfg.source_directory)
    if not directory.exists():
        logger.error(f"directory not found: {directory}")
        return EXIT_FATAL

    logger.info(f"Processing files from: {directory}")
    return _with_repositories(cfg, lambda repos, mode: _import(cfg, repos, mode, args))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
