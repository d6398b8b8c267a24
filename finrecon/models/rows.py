from __future__ import annotations

from dataclasses import dataclass, field

"""Row-level models produced by the CSV parser and the reconciliation matcher.

ParsedRow is ephemeral: the parser emits it and the matcher consumes it
immediately. The diagnostic entries (unmatched client / product, duplicate)
exist only to render validation feedback and are never persisted.
"""

__all__ = [
    "MONTH_LABELS",
    "month_label",
    "ParsedRow",
    "ParseResult",
    "MatchedRow",
    "UnmatchedClientEntry",
    "UnmatchedProductEntry",
    "DuplicateRowEntry",
]

MONTH_COUNT = 12


def month_label(position: int) -> str:
    """Standard fiscal month label for a 1-based position ("Month 1".."Month 12")."""
    return f"Month {position}"


MONTH_LABELS: tuple[str, ...] = tuple(month_label(i) for i in range(1, MONTH_COUNT + 1))


@dataclass(frozen=True)
class ParsedRow:
    """One data line of an upload after header inference."""
    client_name: str
    product_name: str
    monthly_data: dict[str, float]  # "Month N" -> amount
    total: float


@dataclass(frozen=True)
class ParseResult:
    headers: list[str]
    month_columns: list[str]  # standardized labels in column order
    rows: list[ParsedRow]
    total_amount: float
    warnings: list[str] = field(default_factory=list)  # recoverable diagnostics


@dataclass(frozen=True)
class MatchedRow:
    """A ParsedRow whose client and product both resolved against the registry."""
    client_id: str
    client_name: str  # canonical registry name
    product_id: str
    product_line: str  # canonical product line name
    product_name: str  # as written in the upload
    monthly_data: dict[str, float]
    total: float
    row_index: int  # 1-based, header row included


@dataclass(frozen=True)
class UnmatchedClientEntry:
    client_name: str
    product_name: str
    total: float
    row_index: int


@dataclass(frozen=True)
class UnmatchedProductEntry:
    product_name: str
    row_index: int  # first row the product name appeared on


@dataclass(frozen=True)
class DuplicateRowEntry:
    client_name: str
    product_name: str
    monthly_data: dict[str, float]
    total: float
    row_index: int
    reason: str = "Duplicate client/product combination"
