from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

"""Persisted upload entities: UploadBatch header and FinancialDataRecord rows.

A FinancialDataRecord is identified by its natural key
(tenant_id, upload_type, financial_year, client_id, product_id); writing the
same key again replaces the stored record and re-points it to the newer
upload.
"""


class UploadType(Enum):
    """Fixed upload taxonomy.

    The offset is applied to the tenant's current financial year to obtain
    the year an upload of this type describes.
    """
    YTD_3 = "ytd-3"
    YTD_2 = "ytd-2"
    YTD_1 = "ytd-1"
    BUDGET = "budget"
    YTD_ACTUAL = "ytd-actual"

    @property
    def year_offset(self) -> int:
        return _YEAR_OFFSETS[self]

    @property
    def label(self) -> str:
        return _LABELS[self]


_YEAR_OFFSETS = {
    UploadType.YTD_3: -3,
    UploadType.YTD_2: -2,
    UploadType.YTD_1: -1,
    UploadType.BUDGET: 0,
    UploadType.YTD_ACTUAL: 0,
}

_LABELS = {
    UploadType.YTD_3: "YTD-3 (3 Years Ago)",
    UploadType.YTD_2: "YTD-2 (2 Years Ago)",
    UploadType.YTD_1: "YTD-1 (Prior Year)",
    UploadType.BUDGET: "Budget",
    UploadType.YTD_ACTUAL: "YTD Actual (Current Year)",
}


class UploadStatus(Enum):
    """State transitions: processing → (completed | failed)."""
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadBatch:
    upload_id: str
    tenant_id: str
    upload_type: UploadType
    financial_year: str
    uploaded_by: str
    uploaded_at: datetime
    row_count: int
    total_amount: float
    status: UploadStatus = UploadStatus.PROCESSING


@dataclass(frozen=True)
class FinancialDataRecord:
    tenant_id: str
    upload_type: UploadType
    financial_year: str
    client_id: str
    client_name: str
    product_id: str
    product_line: str | None
    monthly_data: dict[str, float] = field(default_factory=dict)
    total: float = 0.0
    upload_id: str | None = None

    @property
    def natural_key(self) -> tuple[str, str, str, str, str]:
        return (
            self.tenant_id,
            self.upload_type.value,
            self.financial_year,
            self.client_id,
            self.product_id,
        )
