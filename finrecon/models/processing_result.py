from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""Processing result models for a batch import run.

Aggregated by the orchestrator and rendered into the SUMMARY line.
"""


@dataclass(frozen=True)
class FileStat:
    """Per-file processing statistics."""
    file_name: str
    status: str  # success/failed/skipped
    upload_type: str | None
    matched_rows: int
    saved_rows: int
    elapsed_seconds: float
    upload_id: str | None = None


@dataclass(frozen=True)
class ProcessingResult:
    """Aggregated results for the SUMMARY output line."""
    success_files: int
    failed_files: int
    skipped_files: int
    total_rows: int  # parsed data rows across files
    matched_rows: int
    unmatched_client_rows: int
    unmatched_products: int
    duplicate_rows: int
    saved_rows: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float  # total_rows / elapsed
    file_stats: list[FileStat] | None = None
