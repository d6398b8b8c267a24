from __future__ import annotations

from finrecon.models.processing_result import ProcessingResult
from finrecon.models.validation import ValidationSummary

"""SUMMARY line rendering for import runs.

Format:
SUMMARY files={n}/{n} success={s} failed={f} skipped={k} rows={r} matched={m}
unmatched_clients={uc} unmatched_products={up} duplicates={d} saved={v}
elapsed_sec={e} throughput_rps={t}
"""


def _number(value: float) -> str:
    # integers without decimals, tiny values without scientific notation
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(total_files: int, result: ProcessingResult) -> str:
    """Render the SUMMARY line for a finished run.

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> result = ProcessingResult(
        ...     success_files=1, failed_files=0, skipped_files=0, total_rows=10,
        ...     matched_rows=8, unmatched_client_rows=1, unmatched_products=1,
        ...     duplicate_rows=1, saved_rows=8, start_time=start, end_time=end,
        ...     elapsed_seconds=2.0, throughput_rows_per_sec=5.0,
        ... )
        >>> render_summary_line(1, result)  # doctest: +ELLIPSIS
        'SUMMARY files=1/1 success=1 failed=0 skipped=0 rows=10 matched=8 ...'
    """
    return (
        f"SUMMARY files={total_files}/{total_files} "
        f"success={result.success_files} "
        f"failed={result.failed_files} "
        f"skipped={result.skipped_files} "
        f"rows={result.total_rows} "
        f"matched={result.matched_rows} "
        f"unmatched_clients={result.unmatched_client_rows} "
        f"unmatched_products={result.unmatched_products} "
        f"duplicates={result.duplicate_rows} "
        f"saved={result.saved_rows} "
        f"elapsed_sec={_number(result.elapsed_seconds)} "
        f"throughput_rps={_number(result.throughput_rows_per_sec)}"
    )


def render_validation_line(file_name: str, summary: ValidationSummary) -> str:
    """One-line reconciliation report for a single upload file."""
    return (
        f"file={file_name} rows={summary.total_rows} matched={summary.matched_count} "
        f"unmatched_clients={summary.unmatched_client_count} "
        f"unmatched_products={summary.unmatched_product_count} "
        f"duplicates={summary.duplicate_count} "
        f"total_amount={summary.total_amount:.2f} matched_amount={summary.matched_amount:.2f} "
        f"unmatched_amount={summary.unmatched_amount:.2f}"
    )
