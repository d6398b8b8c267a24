from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from finrecon.models.entities import Client, ProductLine
from finrecon.models.rows import (
    DuplicateRowEntry,
    MatchedRow,
    ParsedRow,
    UnmatchedClientEntry,
    UnmatchedProductEntry,
)
from finrecon.models.validation import ReconciliationResult, ValidationSummary

"""Reconciliation of parsed upload rows against the client/product registry.

Every row lands in exactly one bucket: matched, unmatched (client and/or
product) or duplicate. Nothing here raises for bad data; problems are
reported through the result so the uploader can fix the source file.

Duplicate scope is a single call (one CSV file). Upload type and financial
year are implied by the caller and are not part of the key.
"""

__all__ = [
    "DUPLICATE_REASON",
    "normalize_name",
    "reconcile",
]

logger = logging.getLogger(__name__)

DUPLICATE_REASON = "Duplicate client/product combination"

_NON_WORD_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_name(value: str | None) -> str:
    """Lowercase, drop punctuation, collapse whitespace, trim.

    Punctuation is removed before whitespace is collapsed so that
    "A - B" and "A B" normalize identically and the function is idempotent.
    """
    if not value:
        return ""
    lowered = value.lower()
    stripped = _NON_WORD_RE.sub("", lowered)
    return _WHITESPACE_RE.sub(" ", stripped).strip()


def _client_lookup(clients: Iterable[Client]) -> dict[str, Client]:
    lookup: dict[str, Client] = {}
    for client in clients:
        key = normalize_name(client.display_name)
        if key:
            lookup[key] = client
    return lookup


def _product_lookup(product_lines: Iterable[ProductLine]) -> dict[str, ProductLine]:
    lookup: dict[str, ProductLine] = {}
    for product in product_lines:
        key = normalize_name(product.name)
        if key:
            lookup[key] = product
    return lookup


def reconcile(
    rows: list[ParsedRow],
    clients: Iterable[Client],
    product_lines: Iterable[ProductLine],
) -> ReconciliationResult:
    """Match parsed rows against registry snapshots.

    Lookup maps are built fresh for every call; a later registry entry with
    the same normalized name replaces an earlier one.
    """
    client_map = _client_lookup(clients)
    product_map = _product_lookup(product_lines)

    matched: list[MatchedRow] = []
    unmatched_clients: list[UnmatchedClientEntry] = []
    unmatched_products: list[UnmatchedProductEntry] = []
    duplicates: list[DuplicateRowEntry] = []
    seen_keys: set[str] = set()
    seen_unmatched_products: set[str] = set()

    for position, row in enumerate(rows):
        row_index = position + 2  # header row + 1-based
        client_key = normalize_name(row.client_name)
        product_key = normalize_name(row.product_name)

        key = f"{client_key}|{product_key}"
        if key in seen_keys:
            duplicates.append(
                DuplicateRowEntry(
                    client_name=row.client_name,
                    product_name=row.product_name,
                    monthly_data=dict(row.monthly_data),
                    total=row.total,
                    row_index=row_index,
                    reason=DUPLICATE_REASON,
                )
            )
            continue
        seen_keys.add(key)

        client = client_map.get(client_key)
        product = product_map.get(product_key)

        if client is None:
            unmatched_clients.append(
                UnmatchedClientEntry(
                    client_name=row.client_name,
                    product_name=row.product_name,
                    total=row.total,
                    row_index=row_index,
                )
            )

        if product is None and product_key not in seen_unmatched_products:
            seen_unmatched_products.add(product_key)
            unmatched_products.append(UnmatchedProductEntry(product_name=row.product_name, row_index=row_index))

        if client is not None and product is not None:
            matched.append(
                MatchedRow(
                    client_id=client.id,
                    client_name=client.display_name,
                    product_id=product.id,
                    product_line=product.name,
                    product_name=row.product_name,
                    monthly_data=dict(row.monthly_data),
                    total=row.total,
                    row_index=row_index,
                )
            )

    summary = ValidationSummary(
        total_rows=len(rows),
        matched_count=len(matched),
        unmatched_client_count=len(unmatched_clients),
        unmatched_product_count=len(unmatched_products),
        duplicate_count=len(duplicates),
        total_amount=sum(r.total for r in rows),
        matched_amount=sum(r.total for r in matched),
        unmatched_amount=sum(e.total for e in unmatched_clients),
    )
    logger.debug(
        "reconciled rows=%d matched=%d unmatched_clients=%d unmatched_products=%d duplicates=%d",
        summary.total_rows,
        summary.matched_count,
        summary.unmatched_client_count,
        summary.unmatched_product_count,
        summary.duplicate_count,
    )
    return ReconciliationResult(
        matched_rows=matched,
        unmatched_clients=unmatched_clients,
        unmatched_products=unmatched_products,
        duplicate_rows=duplicates,
        summary=summary,
    )
