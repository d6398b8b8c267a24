from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

from .upload import UploadType
from .validation import ValidationSummary

"""UploadFile domain model and FileStatus enum.

Tracks one CSV file through a batch import run, from discovery to
success or failure.
"""


class FileStatus(Enum):
    """Status enum for UploadFile processing lifecycle.

    A file is pending until the run finishes with it, then success or failed,
    or skipped when no upload type is configured for the file.
    """
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class UploadFile:
    path: Path
    name: str
    upload_type: UploadType | None = None
    financial_year: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    status: FileStatus = FileStatus.PENDING
    summary: ValidationSummary | None = None  # None when parsing failed
    saved_rows: int = 0
    upload_id: str | None = None  # None for dry runs and failures
    error: str | None = None
