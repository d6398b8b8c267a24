from __future__ import annotations

from dataclasses import dataclass

from .rows import DuplicateRowEntry, MatchedRow, UnmatchedClientEntry, UnmatchedProductEntry

__all__ = [
    "ValidationSummary",
    "ReconciliationResult",
]


@dataclass(frozen=True)
class ValidationSummary:
    """Aggregate counts and currency totals for one reconciled batch.

    ``total_amount`` includes duplicate rows while ``matched_amount`` and
    ``unmatched_amount`` do not, so the two halves need not add up to the
    whole. ``unmatched_amount`` only covers rows whose client failed to
    resolve.
    """
    total_rows: int
    matched_count: int
    unmatched_client_count: int
    unmatched_product_count: int
    duplicate_count: int
    total_amount: float
    matched_amount: float
    unmatched_amount: float


@dataclass(frozen=True)
class ReconciliationResult:
    matched_rows: list[MatchedRow]
    unmatched_clients: list[UnmatchedClientEntry]
    unmatched_products: list[UnmatchedProductEntry]
    duplicate_rows: list[DuplicateRowEntry]
    summary: ValidationSummary
