from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from finrecon.models.entities import Client
from finrecon.models.fiscal import FyMonth
from finrecon.models.rows import MONTH_LABELS
from finrecon.models.upload import FinancialDataRecord

"""Read-only aggregation over stored financial records.

All functions are pure. Records with missing or malformed monthly data
contribute zero rather than raising, so dashboards stay renderable when
historical uploads are partial.
"""

__all__ = [
    "UNKNOWN_PRODUCT_LINE",
    "YtdFallback",
    "MonthlyAggregate",
    "ProductLineBucket",
    "ClientBucket",
    "monthly_values",
    "totals_by_month",
    "aggregate_by_month",
    "full_year_total",
    "record_ytd_total",
    "ytd_total",
    "group_by_product_line",
    "group_by_client",
    "variance_percent",
    "format_variance",
    "records_for_client",
    "filter_records_by_clients",
    "client_ytd_revenue",
]

logger = logging.getLogger(__name__)

UNKNOWN_PRODUCT_LINE = "Unknown"
UNKNOWN_CLIENT_NAME = "Unknown"


class YtdFallback(Enum):
    """What a YTD sum means when no reporting cutoff is known.

    FULL_YEAR treats every month as year-to-date; ZERO reports nothing.
    """
    FULL_YEAR = "full_year"
    ZERO = "zero"


@dataclass(frozen=True)
class MonthlyAggregate:
    monthly: dict[str, float]
    cumulative: dict[str, float]  # running total in the given month order
    total: float


@dataclass
class ProductLineBucket:
    product_line: str
    total: float = 0.0
    count: int = 0
    client_ids: set[str] = field(default_factory=set)

    @property
    def client_count(self) -> int:
        return len(self.client_ids)


@dataclass
class ClientBucket:
    client_id: str | None
    client_name: str
    total: float = 0.0
    products: dict[str, float] = field(default_factory=dict)


def _amount(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def monthly_values(record: FinancialDataRecord) -> dict[str, float]:
    """Monthly amounts of a record with junk coerced to 0.0."""
    raw = getattr(record, "monthly_data", None)
    if not isinstance(raw, Mapping):
        return {}
    return {str(label): _amount(value) for label, value in raw.items()}


def _labels(ytd_months: Sequence[FyMonth | str]) -> list[str]:
    return [m if isinstance(m, str) else m.name for m in ytd_months]


def totals_by_month(records: Iterable[FinancialDataRecord]) -> dict[str, float]:
    """Sum every month label independently across records."""
    totals: dict[str, float] = {}
    for record in records:
        for label, amount in monthly_values(record).items():
            totals[label] = totals.get(label, 0.0) + amount
    return totals


def aggregate_by_month(
    records: Iterable[FinancialDataRecord],
    month_order: Sequence[FyMonth | str] = MONTH_LABELS,
) -> MonthlyAggregate:
    """Per-month totals restricted to ``month_order`` plus running totals."""
    order = _labels(month_order)
    sums = totals_by_month(records)
    monthly = {label: sums.get(label, 0.0) for label in order}
    cumulative: dict[str, float] = {}
    running = 0.0
    for label in order:
        running += monthly[label]
        cumulative[label] = running
    return MonthlyAggregate(monthly=monthly, cumulative=cumulative, total=running)


def full_year_total(record: FinancialDataRecord) -> float:
    """Sum of the monthly values, or the stored total when there is no detail."""
    values = monthly_values(record)
    if values:
        return sum(values.values())
    return _amount(getattr(record, "total", 0.0))


def record_ytd_total(
    record: FinancialDataRecord,
    ytd_months: Sequence[FyMonth | str],
    fallback: YtdFallback = YtdFallback.FULL_YEAR,
) -> float:
    labels = _labels(ytd_months)
    if not labels:
        return full_year_total(record) if fallback is YtdFallback.FULL_YEAR else 0.0
    values = monthly_values(record)
    return sum(values.get(label, 0.0) for label in labels)


def ytd_total(
    records: Iterable[FinancialDataRecord],
    ytd_months: Sequence[FyMonth | str],
    fallback: YtdFallback = YtdFallback.FULL_YEAR,
) -> float:
    """Sum of year-to-date months across records.

    With an empty ``ytd_months`` the result follows ``fallback``; the
    fallback is logged because it usually means the reporting month is not
    configured.
    """
    if not ytd_months:
        logger.warning("no YTD months known; YTD total falls back to %s", fallback.value)
    return sum(record_ytd_total(r, ytd_months, fallback) for r in records)


def _bucket_amount(
    record: FinancialDataRecord,
    ytd_months: Sequence[FyMonth | str] | None,
) -> float:
    if ytd_months is None:
        return full_year_total(record)
    # grouping keeps the reference behaviour: no cutoff means full year
    return record_ytd_total(record, ytd_months, YtdFallback.FULL_YEAR)


def group_by_product_line(
    records: Iterable[FinancialDataRecord],
    ytd_months: Sequence[FyMonth | str] | None = None,
) -> list[ProductLineBucket]:
    """Bucket records by product line, sorted by total descending.

    ``ytd_months=None`` accumulates full-year totals, a sequence accumulates
    YTD totals.
    """
    buckets: dict[str, ProductLineBucket] = {}
    for record in records:
        name = getattr(record, "product_line", None) or UNKNOWN_PRODUCT_LINE
        bucket = buckets.setdefault(name, ProductLineBucket(product_line=name))
        bucket.total += _bucket_amount(record, ytd_months)
        bucket.count += 1
        client_id = getattr(record, "client_id", None)
        if client_id is not None:
            bucket.client_ids.add(client_id)
    return sorted(buckets.values(), key=lambda b: b.total, reverse=True)


def group_by_client(
    records: Iterable[FinancialDataRecord],
    ytd_months: Sequence[FyMonth | str] | None = None,
) -> list[ClientBucket]:
    """Bucket records by client id, sorted by total descending."""
    buckets: dict[str | None, ClientBucket] = {}
    for record in records:
        client_id = getattr(record, "client_id", None)
        bucket = buckets.get(client_id)
        if bucket is None:
            bucket = ClientBucket(
                client_id=client_id,
                client_name=getattr(record, "client_name", None) or UNKNOWN_CLIENT_NAME,
            )
            buckets[client_id] = bucket
        amount = _bucket_amount(record, ytd_months)
        bucket.total += amount
        product = getattr(record, "product_line", None) or UNKNOWN_PRODUCT_LINE
        bucket.products[product] = bucket.products.get(product, 0.0) + amount
    return sorted(buckets.values(), key=lambda b: b.total, reverse=True)


def variance_percent(current: float | None, prior: float | None) -> float | None:
    """(current - prior) / |prior| * 100, or None when prior is zero/absent."""
    if not prior:
        return None
    return (_amount(current) - prior) / abs(prior) * 100


def format_variance(current: float | None, prior: float | None) -> str:
    variance = variance_percent(current, prior)
    if variance is None:
        return "-"
    sign = "+" if variance >= 0 else ""
    return f"{sign}{variance:.1f}%"


def _name_key(name: str | None) -> str:
    return (name or "").strip().lower()


def records_for_client(
    records: Iterable[FinancialDataRecord],
    client_id: str | None,
    client_name: str | None,
) -> list[FinancialDataRecord]:
    """Records belonging to a live registry client.

    Matches on client id first. Only when no record matches by id does it
    fall back to case-insensitive, trimmed client name equality (uploads are
    reconciled against a point-in-time snapshot, so ids can drift after
    merges or renames).
    """
    pool = list(records)
    by_id = [r for r in pool if client_id is not None and r.client_id == client_id]
    if by_id:
        return by_id
    key = _name_key(client_name)
    if not key:
        return []
    return [r for r in pool if _name_key(r.client_name) == key]


def filter_records_by_clients(
    records: Iterable[FinancialDataRecord],
    clients: Iterable[Client],
) -> list[FinancialDataRecord]:
    """Records visible for a set of clients, using the id-then-name join."""
    pool = list(records)
    selected: dict[int, FinancialDataRecord] = {}
    for client in clients:
        for record in records_for_client(pool, client.id, client.display_name):
            selected.setdefault(id(record), record)
    # keep input order
    return [r for r in pool if id(r) in selected]


def client_ytd_revenue(
    records: Iterable[FinancialDataRecord],
    client: Client,
    ytd_months: Sequence[FyMonth | str],
) -> float:
    """YTD revenue of one client; 0.0 when no YTD months are known."""
    matched = records_for_client(records, client.id, client.display_name)
    return ytd_total(matched, ytd_months, fallback=YtdFallback.ZERO)
