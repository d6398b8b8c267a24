"""Domain models for the financial upload reconciliation engine.

This package contains the dataclasses passed between the parser, matcher,
upload store and aggregator.
"""

from .config_models import DatabaseConfig, FiscalConfig, ImportConfig
from .entities import Client, ProductLine
from .fiscal import FiscalCalendar, FyMonth
from .rows import (
    DuplicateRowEntry,
    MatchedRow,
    ParsedRow,
    ParseResult,
    UnmatchedClientEntry,
    UnmatchedProductEntry,
)
from .upload import FinancialDataRecord, UploadBatch, UploadStatus, UploadType
from .validation import ReconciliationResult, ValidationSummary

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "FiscalConfig",
    "ImportConfig",
    # Registry snapshots
    "Client",
    "ProductLine",
    # Fiscal calendar
    "FiscalCalendar",
    "FyMonth",
    # Parsing / reconciliation
    "ParsedRow",
    "ParseResult",
    "MatchedRow",
    "UnmatchedClientEntry",
    "UnmatchedProductEntry",
    "DuplicateRowEntry",
    "ValidationSummary",
    "ReconciliationResult",
    # Persistence
    "UploadType",
    "UploadStatus",
    "UploadBatch",
    "FinancialDataRecord",
]
