from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from finrecon.db.repositories import UploadRepository
from finrecon.models.rows import MatchedRow
from finrecon.models.upload import FinancialDataRecord, UploadBatch, UploadStatus, UploadType

"""Upload store: persist reconciled batches, list history, cascade delete.

Storage is reached only through UploadRepository; atomicity is the
repository's job (one transaction, or a staged swap in memory).
"""

__all__ = [
    "SaveResult",
    "build_upload",
    "save_financial_upload",
    "list_uploads",
    "delete_financial_upload",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaveResult:
    upload_id: str
    success_count: int
    total_amount: float


def _new_upload_id() -> str:
    return uuid.uuid4().hex


def build_upload(
    matched_rows: list[MatchedRow],
    upload_type: UploadType,
    financial_year: str,
    uploaded_by: str,
    tenant_id: str,
    upload_id: str | None = None,
    now: Callable[[], datetime] | None = None,
) -> tuple[UploadBatch, list[FinancialDataRecord]]:
    """Project matched rows onto a batch header and its records."""
    upload_id = upload_id or _new_upload_id()
    uploaded_at = (now or (lambda: datetime.now(UTC)))()
    records = [
        FinancialDataRecord(
            tenant_id=tenant_id,
            upload_type=upload_type,
            financial_year=financial_year,
            client_id=row.client_id,
            client_name=row.client_name,
            product_id=row.product_id,
            product_line=row.product_line,
            monthly_data=dict(row.monthly_data),
            total=row.total,
            upload_id=upload_id,
        )
        for row in matched_rows
    ]
    batch = UploadBatch(
        upload_id=upload_id,
        tenant_id=tenant_id,
        upload_type=upload_type,
        financial_year=financial_year,
        uploaded_by=uploaded_by,
        uploaded_at=uploaded_at,
        row_count=len(records),
        total_amount=sum(r.total for r in matched_rows),
        status=UploadStatus.PROCESSING,
    )
    return batch, records


def save_financial_upload(
    repository: UploadRepository,
    matched_rows: list[MatchedRow],
    upload_type: UploadType,
    financial_year: str,
    uploaded_by: str,
    tenant_id: str,
) -> SaveResult:
    """Persist matched rows as one upload.

    Raises:
        UploadPersistenceError: the write failed and was rolled back
    """
    batch, records = build_upload(matched_rows, upload_type, financial_year, uploaded_by, tenant_id)
    upload_id = repository.save(batch, records)
    logger.info(
        "saved upload=%s tenant=%s type=%s fy=%s rows=%d total=%.2f",
        upload_id,
        tenant_id,
        upload_type.value,
        financial_year,
        batch.row_count,
        batch.total_amount,
    )
    return SaveResult(upload_id=upload_id, success_count=batch.row_count, total_amount=batch.total_amount)


def list_uploads(repository: UploadRepository, tenant_id: str) -> list[UploadBatch]:
    """Upload history for a tenant, newest first."""
    epoch = datetime.min.replace(tzinfo=UTC)

    def _uploaded_at(batch: UploadBatch) -> datetime:
        ts = batch.uploaded_at
        if ts is None:
            return epoch
        return ts if ts.tzinfo is not None else ts.replace(tzinfo=UTC)

    return sorted(repository.list_by_tenant(tenant_id), key=_uploaded_at, reverse=True)


def delete_financial_upload(repository: UploadRepository, upload_id: str, tenant_id: str) -> int:
    """Delete an upload and all of its records.

    Idempotent: an unknown id, or an id owned by another tenant, deletes
    nothing and returns 0.
    """
    deleted = repository.delete_by_id(upload_id, tenant_id)
    if deleted == 0:
        logger.info("delete upload=%s tenant=%s: no records removed", upload_id, tenant_id)
    else:
        logger.info("deleted upload=%s tenant=%s records=%d", upload_id, tenant_id, deleted)
    return deleted
