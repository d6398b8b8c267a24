from __future__ import annotations

import logging
import re
from datetime import date

from finrecon.models.config_models import FiscalConfig
from finrecon.models.fiscal import FiscalCalendar, FyMonth
from finrecon.models.rows import month_label
from finrecon.models.upload import UploadType

"""Fiscal calendar: tenant FY settings -> 12 ordered months split into
year-to-date and remaining.

Month 1 is the configured start month. YTD is the contiguous prefix of
months ending at the reporting month; the rest are remaining. Every report
labels monthly amounts with the same "Month N" keys the uploads use, so the
calendar is the only place that knows which real month "Month N" is.
"""

__all__ = [
    "DEFAULT_END_MONTH",
    "DEFAULT_START_MONTH",
    "FiscalConfigError",
    "build_fiscal_calendar",
    "calculate_financial_year",
    "financial_year_for_upload_type",
    "month_index",
]

logger = logging.getLogger(__name__)

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
DEFAULT_START_MONTH = "March"
DEFAULT_END_MONTH = "February"

_FY_RE = re.compile(r"^\s*(-?\d+)\s*/\s*(-?\d+)\s*$")


class FiscalConfigError(Exception):
    """Raised for fiscal settings that cannot be interpreted at all."""


def month_index(name: str | None) -> int | None:
    """0-based calendar month for an English month name, None if unknown."""
    if not name:
        return None
    lowered = name.strip().lower()
    for index, month in enumerate(MONTH_NAMES):
        if lowered == month.lower():
            return index
    return None


def _fy_end_year(current_financial_year: str | None, today: date) -> int:
    if isinstance(current_financial_year, str):
        tail = current_financial_year.split("/")[-1].strip()
        try:
            return int(tail)
        except ValueError:
            pass
    logger.warning(
        "current financial year %r not parseable; using calendar year %d",
        current_financial_year,
        today.year,
    )
    return today.year


def build_fiscal_calendar(config: FiscalConfig, today: date | None = None) -> FiscalCalendar:
    """Build the 12-month fiscal calendar for a tenant configuration.

    Defaults: start March, end February, reporting month the end month.
    Without a configured current financial year the calendar is labelled
    "{end-1}/{end}" for the resolved end year; imports and reports both read
    that label. Unknown start or end months raise FiscalConfigError. An
    unknown reporting month leaves every month unflagged (no YTD, no
    remaining) instead of failing, so reports still render.
    """
    today = today or date.today()

    start = config.financial_year_start or DEFAULT_START_MONTH
    start_month = month_index(start)
    if start_month is None:
        raise FiscalConfigError(f"unknown financial year start month: {start!r}")

    end = config.financial_year_end or DEFAULT_END_MONTH
    end_month = month_index(end)
    if end_month is None:
        raise FiscalConfigError(f"unknown financial year end month: {end!r}")

    reporting_name = config.reporting_month or MONTH_NAMES[end_month]
    reporting_month = month_index(reporting_name)

    fy_end_year = _fy_end_year(config.current_financial_year, today)
    current_financial_year = config.current_financial_year or f"{fy_end_year - 1}/{fy_end_year}"
    year = fy_end_year - 1 if start_month > end_month else fy_end_year

    reporting_position = 0
    layout: list[tuple[int, int]] = []
    calendar_month = start_month
    for position in range(1, 13):
        layout.append((calendar_month, year))
        if reporting_position == 0 and calendar_month == reporting_month:
            reporting_position = position
        calendar_month += 1
        if calendar_month > 11:
            calendar_month = 0
            year += 1

    if reporting_position == 0:
        logger.warning("reporting month %r not found in fiscal year; YTD split disabled", reporting_name)

    months = [
        FyMonth(
            name=month_label(position),
            calendar_month_name=MONTH_NAMES[cal_month],
            calendar_month=cal_month,
            year=cal_year,
            fy_month_number=position,
            is_ytd=0 < reporting_position and position <= reporting_position,
            is_remaining=0 < reporting_position < position,
        )
        for position, (cal_month, cal_year) in enumerate(layout, start=1)
    ]
    return FiscalCalendar(
        current_financial_year=current_financial_year,
        fy_end_year=fy_end_year,
        fy_start_month=start_month,
        fy_end_month=end_month,
        reporting_month=reporting_month,
        reporting_fy_month=reporting_position,
        months=months,
    )


def calculate_financial_year(current_fy: str | None, offset: int) -> str:
    """Shift a "startYear/endYear" label by ``offset`` years.

    >>> calculate_financial_year("2024/2025", -1)
    '2023/2024'
    >>> calculate_financial_year("FY25", -1)
    'FY25'
    """
    if not current_fy:
        return ""
    match = _FY_RE.match(current_fy)
    if match is None:
        return current_fy
    start_year = int(match.group(1)) + offset
    end_year = int(match.group(2)) + offset
    return f"{start_year}/{end_year}"


def financial_year_for_upload_type(current_fy: str | None, upload_type: UploadType) -> str:
    return calculate_financial_year(current_fy, upload_type.year_offset)
