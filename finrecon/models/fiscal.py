from __future__ import annotations

from dataclasses import dataclass, field

"""Fiscal calendar structures (derived per request, never persisted)."""

__all__ = [
    "FyMonth",
    "FiscalCalendar",
]


@dataclass(frozen=True)
class FyMonth:
    name: str  # "Month N", the key used in monthly_data
    calendar_month_name: str  # "March"
    calendar_month: int  # 0-11
    year: int
    fy_month_number: int  # 1-12
    is_ytd: bool = False
    is_remaining: bool = False


@dataclass(frozen=True)
class FiscalCalendar:
    current_financial_year: str
    fy_end_year: int
    fy_start_month: int  # 0-11
    fy_end_month: int  # 0-11
    reporting_month: int | None  # 0-11, None when the configured name is unknown
    reporting_fy_month: int  # 1-12, 0 when the reporting month was not located
    months: list[FyMonth] = field(default_factory=list)

    @property
    def ytd_months(self) -> list[FyMonth]:
        return [m for m in self.months if m.is_ytd]

    @property
    def remaining_months(self) -> list[FyMonth]:
        return [m for m in self.months if m.is_remaining]

    @property
    def ytd_labels(self) -> list[str]:
        return [m.name for m in self.ytd_months]
