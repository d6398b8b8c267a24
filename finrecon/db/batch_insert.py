from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""Batched INSERT / upsert helper on top of psycopg2.extras.execute_values.

The caller owns the transaction: this function only issues statements on
the cursor it is given, so a failure can be rolled back together with the
rest of the upload.
"""


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing for a single execute_values call."""
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int


def _quote(name: str) -> str:
    return f'"{name}"'


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    conflict_columns: Sequence[str] | None = None,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Perform a batched INSERT, optionally as an upsert.

    Parameters
    ----------
    cursor: psycopg2 cursor (transaction managed by caller)
    table: target table name (trusted, not user input)
    columns: inserted columns
    rows: row value sequences in ``columns`` order
    conflict_columns: when given, ``ON CONFLICT (...) DO UPDATE`` overwrites
        every non-key column with the incoming value (natural key upsert)
    page_size: execute_values page size
    metrics_callback: receives BatchMetrics after the statement ran; not
        invoked when ``rows`` is empty
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0)

    cols_sql = ",".join(_quote(c) for c in columns)
    sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s"
    if conflict_columns:
        key_sql = ",".join(_quote(c) for c in conflict_columns)
        updates = [c for c in columns if c not in conflict_columns]
        if updates:
            set_sql = ",".join(f"{_quote(c)}=EXCLUDED.{_quote(c)}" for c in updates)
            sql += f" ON CONFLICT ({key_sql}) DO UPDATE SET {set_sql}"
        else:
            sql += f" ON CONFLICT ({key_sql}) DO NOTHING"

    start_time = time.time()
    try:
        execute_values(cursor, sql, rows_list, page_size=page_size)
    except Exception as e:
        raise BatchInsertError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    return InsertResult(inserted_rows=len(rows_list))
