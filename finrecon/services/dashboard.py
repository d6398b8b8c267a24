from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from finrecon.db.repositories import UploadRepository
from finrecon.models.entities import Client
from finrecon.models.fiscal import FiscalCalendar
from finrecon.models.upload import FinancialDataRecord, UploadType

from .aggregator import (
    ClientBucket,
    ProductLineBucket,
    aggregate_by_month,
    filter_records_by_clients,
    full_year_total,
    group_by_client,
    group_by_product_line,
    variance_percent,
    ytd_total,
)
from .fiscal_calendar import financial_year_for_upload_type

"""Dashboard report: every upload type side by side for one tenant.

Fetches the records of each upload type at the financial year its offset
implies, optionally narrows them to a set of clients, and computes the
full-year / YTD totals, breakdowns and headline variances.
"""


@dataclass(frozen=True)
class UploadTypeSummary:
    upload_type: UploadType
    financial_year: str
    records: list[FinancialDataRecord]
    full_year_total: float
    ytd_total: float
    by_month: dict[str, float]
    by_product_line: list[ProductLineBucket]  # YTD
    by_client: list[ClientBucket]  # YTD


@dataclass(frozen=True)
class DashboardSummary:
    tenant_id: str
    current_financial_year: str
    ytd_month_labels: list[str]
    by_type: dict[UploadType, UploadTypeSummary]

    def variance(self, current: UploadType, prior: UploadType, *, ytd: bool = True) -> float | None:
        cur = self.by_type[current]
        pri = self.by_type[prior]
        if ytd:
            return variance_percent(cur.ytd_total, pri.ytd_total)
        return variance_percent(cur.full_year_total, pri.full_year_total)

    @property
    def headline_variances(self) -> dict[str, float | None]:
        return {
            "actual_vs_budget": self.variance(UploadType.YTD_ACTUAL, UploadType.BUDGET),
            "actual_vs_prior_year": self.variance(UploadType.YTD_ACTUAL, UploadType.YTD_1),
            "budget_vs_prior_year": self.variance(UploadType.BUDGET, UploadType.YTD_1),
        }


def build_dashboard(
    repository: UploadRepository,
    tenant_id: str,
    calendar: FiscalCalendar,
    clients: Iterable[Client] | None = None,
) -> DashboardSummary:
    """Assemble the comparison view across all five upload types.

    ``clients`` restricts records with the id-then-name join; None keeps
    everything (tenant-wide view).
    """
    ytd_months = calendar.ytd_months
    client_list = list(clients) if clients is not None else None
    month_order = [m.name for m in calendar.months]
    by_type: dict[UploadType, UploadTypeSummary] = {}
    for upload_type in UploadType:
        fy = financial_year_for_upload_type(calendar.current_financial_year, upload_type)
        records = repository.find_records(tenant_id, upload_type, fy)
        if client_list is not None:
            records = filter_records_by_clients(records, client_list)
        by_type[upload_type] = UploadTypeSummary(
            upload_type=upload_type,
            financial_year=fy,
            records=records,
            full_year_total=sum(full_year_total(r) for r in records),
            ytd_total=ytd_total(records, ytd_months),
            by_month=aggregate_by_month(records, month_order).monthly,
            by_product_line=group_by_product_line(records, ytd_months),
            by_client=group_by_client(records, ytd_months),
        )
    return DashboardSummary(
        tenant_id=tenant_id,
        current_financial_year=calendar.current_financial_year,
        ytd_month_labels=[m.name for m in ytd_months],
        by_type=by_type,
    )
