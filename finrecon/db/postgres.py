from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal
from typing import Any

import psycopg2
from psycopg2.extras import Json

from finrecon.models.config_models import DatabaseConfig, FiscalConfig
from finrecon.models.entities import Client, ProductLine, resolve_display_name
from finrecon.models.upload import FinancialDataRecord, UploadBatch, UploadStatus, UploadType

from .batch_insert import BatchInsertError, BatchMetrics, batch_insert
from .repositories import (
    ClientRepository,
    FiscalConfigRepository,
    ProductRepository,
    Repositories,
    UploadPersistenceError,
    UploadRepository,
)

"""PostgreSQL adapter for the repository boundary (psycopg2).

Every save runs in one transaction: header inserted as ``processing``,
records upserted on their natural key, header flipped to ``completed``,
COMMIT. Any failure rolls the whole thing back, after which a ``failed``
header is recorded in its own transaction so upload history shows the
attempt.
"""

__all__ = [
    "RECORD_COLUMNS",
    "NATURAL_KEY_COLUMNS",
    "resolve_dsn",
    "connect",
    "PostgresClientRepository",
    "PostgresProductRepository",
    "PostgresUploadRepository",
    "PostgresFiscalConfigRepository",
    "postgres_repositories",
]

logger = logging.getLogger(__name__)

RECORD_COLUMNS = (
    "tenant_id",
    "upload_type",
    "financial_year",
    "client_id",
    "client_name",
    "product_id",
    "product_line",
    "monthly_data",
    "total",
    "upload_id",
)
NATURAL_KEY_COLUMNS = ("tenant_id", "upload_type", "financial_year", "client_id", "product_id")

_BATCH_COLUMNS = (
    "upload_id, tenant_id, upload_type, financial_year, uploaded_by, "
    "uploaded_at, row_count, total_amount, status"
)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Connection string resolution order.

    1. DATABASE_URL / PGDSN environment variables (``.env`` loaded by the CLI)
    2. ``dsn`` from the config file
    3. individual PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE, each
       falling back to the config file value
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def connect(db_cfg: DatabaseConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    conn = psycopg2.connect(resolve_dsn(db_cfg))
    conn.autocommit = False
    try:
        yield conn
    finally:
        conn.close()


def _float(value: Any) -> float:
    if isinstance(value, Decimal):
        return float(value)
    return float(value or 0)


class PostgresClientRepository(ClientRepository):
    def __init__(self, conn: Any) -> None:
        self._conn = conn

    def list(self, tenant_id: str) -> list[Client]:
        with self._conn.cursor() as cur:
            cur.execute(
                "SELECT id, name, company_name, legal_name FROM clients WHERE tenant_id = %s ORDER BY id",
                (tenant_id,),
            )
            rows = cur.fetchall()
        return [
            Client(
                id=str(r[0]),
                display_name=resolve_display_name({"name": r[1], "company_name": r[2], "legal_name": r[3]}),
            )
            for r in rows
        ]


class PostgresProductRepository(ProductRepository):
    def __init__(self, conn: Any) -> None:
        self._conn = conn

    def list(self) -> list[ProductLine]:
        with self._conn.cursor() as cur:
            cur.execute("SELECT id, name FROM product_lines ORDER BY id")
            rows = cur.fetchall()
        return [ProductLine(id=str(r[0]), name=(r[1] or "").strip()) for r in rows]


class PostgresFiscalConfigRepository(FiscalConfigRepository):
    def __init__(self, conn: Any) -> None:
        self._conn = conn

    def get(self, tenant_id: str) -> FiscalConfig | None:
        with self._conn.cursor() as cur:
            cur.execute(
                "SELECT current_financial_year, financial_year_start, financial_year_end, reporting_month "
                "FROM fiscal_settings WHERE tenant_id = %s",
                (tenant_id,),
            )
            row = cur.fetchone()
        if row is None:
            return None
        return FiscalConfig(
            current_financial_year=row[0],
            financial_year_start=row[1],
            financial_year_end=row[2],
            reporting_month=row[3],
        )


class PostgresUploadRepository(UploadRepository):
    def __init__(self, conn: Any, page_size: int = 1000) -> None:
        self._conn = conn
        self._page_size = page_size

    def _log_batch_metrics(self, metrics: BatchMetrics) -> None:
        logger.debug("upsert batch_size=%d elapsed=%.4fs", metrics.batch_size, metrics.elapsed_seconds)

    def save(self, batch: UploadBatch, records: list[FinancialDataRecord]) -> str:
        rows = [
            (
                r.tenant_id,
                r.upload_type.value,
                r.financial_year,
                r.client_id,
                r.client_name,
                r.product_id,
                r.product_line,
                Json(r.monthly_data),
                r.total,
                batch.upload_id,
            )
            for r in records
        ]
        try:
            with self._conn.cursor() as cur:
                cur.execute(
                    f"INSERT INTO financial_uploads ({_BATCH_COLUMNS}) "
                    "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)",
                    (
                        batch.upload_id,
                        batch.tenant_id,
                        batch.upload_type.value,
                        batch.financial_year,
                        batch.uploaded_by,
                        batch.uploaded_at,
                        batch.row_count,
                        batch.total_amount,
                        UploadStatus.PROCESSING.value,
                    ),
                )
                batch_insert(
                    cur,
                    table="financial_data",
                    columns=RECORD_COLUMNS,
                    rows=rows,
                    conflict_columns=NATURAL_KEY_COLUMNS,
                    page_size=self._page_size,
                    metrics_callback=self._log_batch_metrics,
                )
                cur.execute(
                    "UPDATE financial_uploads SET status = %s WHERE upload_id = %s",
                    (UploadStatus.COMPLETED.value, batch.upload_id),
                )
            self._conn.commit()
        except (psycopg2.Error, BatchInsertError) as e:
            self._conn.rollback()
            self._record_failure(batch)
            raise UploadPersistenceError(f"failed saving upload {batch.upload_id}: {e}") from e
        return batch.upload_id

    def _record_failure(self, batch: UploadBatch) -> None:
        try:
            with self._conn.cursor() as cur:
                cur.execute(
                    f"INSERT INTO financial_uploads ({_BATCH_COLUMNS}) "
                    "VALUES (%s, %s, %s, %s, %s, %s, 0, 0, %s) "
                    "ON CONFLICT (upload_id) DO UPDATE SET status = EXCLUDED.status",
                    (
                        batch.upload_id,
                        batch.tenant_id,
                        batch.upload_type.value,
                        batch.financial_year,
                        batch.uploaded_by,
                        batch.uploaded_at,
                        UploadStatus.FAILED.value,
                    ),
                )
            self._conn.commit()
        except psycopg2.Error:
            self._conn.rollback()
            logger.warning("could not record failed status for upload %s", batch.upload_id, exc_info=True)

    def list_by_tenant(self, tenant_id: str) -> list[UploadBatch]:
        with self._conn.cursor() as cur:
            cur.execute(
                f"SELECT {_BATCH_COLUMNS} FROM financial_uploads WHERE tenant_id = %s",
                (tenant_id,),
            )
            rows = cur.fetchall()
        return [
            UploadBatch(
                upload_id=r[0],
                tenant_id=r[1],
                upload_type=UploadType(r[2]),
                financial_year=r[3],
                uploaded_by=r[4],
                uploaded_at=r[5],
                row_count=r[6],
                total_amount=_float(r[7]),
                status=UploadStatus(r[8]),
            )
            for r in rows
        ]

    def delete_by_id(self, upload_id: str, tenant_id: str) -> int:
        try:
            with self._conn.cursor() as cur:
                cur.execute(
                    "SELECT 1 FROM financial_uploads WHERE upload_id = %s AND tenant_id = %s",
                    (upload_id, tenant_id),
                )
                if cur.fetchone() is None:
                    self._conn.rollback()
                    return 0
                cur.execute(
                    "DELETE FROM financial_data WHERE upload_id = %s AND tenant_id = %s",
                    (upload_id, tenant_id),
                )
                deleted = cur.rowcount
                cur.execute(
                    "DELETE FROM financial_uploads WHERE upload_id = %s AND tenant_id = %s",
                    (upload_id, tenant_id),
                )
            self._conn.commit()
        except psycopg2.Error as e:
            self._conn.rollback()
            raise UploadPersistenceError(f"failed deleting upload {upload_id}: {e}") from e
        return deleted

    def find_records(
        self, tenant_id: str, upload_type: UploadType, financial_year: str
    ) -> list[FinancialDataRecord]:
        cols = ", ".join(RECORD_COLUMNS)
        with self._conn.cursor() as cur:
            cur.execute(
                f"SELECT {cols} FROM financial_data "
                "WHERE tenant_id = %s AND upload_type = %s AND financial_year = %s",
                (tenant_id, upload_type.value, financial_year),
            )
            rows = cur.fetchall()
        return [
            FinancialDataRecord(
                tenant_id=r[0],
                upload_type=UploadType(r[1]),
                financial_year=r[2],
                client_id=r[3],
                client_name=r[4],
                product_id=r[5],
                product_line=r[6],
                monthly_data=dict(r[7] or {}),
                total=_float(r[8]),
                upload_id=r[9],
            )
            for r in rows
        ]


def postgres_repositories(conn: Any) -> Repositories:
    return Repositories(
        clients=PostgresClientRepository(conn),
        products=PostgresProductRepository(conn),
        uploads=PostgresUploadRepository(conn),
        fiscal=PostgresFiscalConfigRepository(conn),
    )
