from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

from finrecon.models.rows import ParsedRow, ParseResult, month_label

"""CSV upload reader.

Upload format (user facing, kept stable):
- Column A: Client Name
- Column B: Product Name
- Columns C onwards: month amounts headed "Month 1" .. "Month 12"
  ("Month 1" = first month of the financial year). Legacy short or long
  month-name headers (Jan, February, ...) are accepted positionally.

pandas does the tokenizing (quoted fields, embedded commas and quotes); this
module applies header inference and cell cleaning on top.
"""

__all__ = [
    "CsvParseError",
    "MissingColumnError",
    "NoMonthColumnsError",
    "CsvStructureError",
    "MonthColumn",
    "detect_month_columns",
    "parse_amount",
    "parse_csv",
    "read_csv_file",
]

logger = logging.getLogger(__name__)

EXPECTED_MONTH_COLUMNS = 12

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
SHORT_MONTH_NAMES = tuple(m[:3] for m in MONTH_NAMES)

# "Month 1", "month1", "1", "M1" (case-insensitive after lowering)
_MONTH_NUMBER_RE = re.compile(r"^(?:month\s*)?(\d{1,2})$|^m(\d{1,2})$")
_AMOUNT_STRIP_RE = re.compile(r"[^\d.\-]")
_LEADING_NUMBER_RE = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")


class CsvParseError(Exception):
    """Base class for user-correctable upload errors."""


class MissingColumnError(CsvParseError):
    def __init__(self, column: str) -> None:
        self.column = column
        super().__init__(f'CSV must have a "{column}" column')


class NoMonthColumnsError(CsvParseError):
    def __init__(self) -> None:
        super().__init__(
            'CSV must have month columns. Use "Month 1", "Month 2", ... "Month 12" format '
            "(or legacy: Jan, Feb, March, etc.)"
        )


class CsvStructureError(CsvParseError):
    """Raised when the text cannot be read as a header plus data rows."""


@dataclass(frozen=True)
class MonthColumn:
    index: int  # column position in the header
    label: str  # standardized "Month N"
    legacy_name: str | None = None  # calendar month the header nominally names


def detect_month_columns(headers: list[str]) -> list[MonthColumn]:
    """Infer month columns from the header row.

    The first two columns are never month columns. Numeric headers keep
    their own number; month-name headers are labelled by their position
    among the month columns found so far, not by the calendar month they
    name.
    """
    found: list[MonthColumn] = []
    for index, header in enumerate(headers):
        if index <= 1:
            continue
        lowered = header.strip().lower()

        match = _MONTH_NUMBER_RE.match(lowered)
        if match:
            number = int(match.group(1) or match.group(2))
            if 1 <= number <= EXPECTED_MONTH_COLUMNS:
                found.append(MonthColumn(index=index, label=month_label(number)))
                continue

        legacy = _legacy_month_name(lowered)
        if legacy is not None:
            found.append(MonthColumn(index=index, label=month_label(len(found) + 1), legacy_name=legacy))
    return found


def _legacy_month_name(lowered_header: str) -> str | None:
    for position, short in enumerate(SHORT_MONTH_NAMES):
        if lowered_header.startswith(short.lower()):
            return MONTH_NAMES[position]
    return None


def parse_amount(value: Any) -> float:
    """Clean a currency cell ("R 1,234.50") into a float; junk becomes 0.0.

    After stripping, the longest leading number wins ("1.2.3" -> 1.2).
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = _AMOUNT_STRIP_RE.sub("", str(value))
    match = _LEADING_NUMBER_RE.match(cleaned)
    if match is None:
        return 0.0
    return float(match.group(0))


def _find_column(headers: list[str], needle: str) -> int | None:
    for index, header in enumerate(headers):
        if needle in header.lower():
            return index
    return None


def _cell(values: list[Any], index: int) -> str:
    if index >= len(values):
        return ""
    value = values[index]
    if not isinstance(value, str):
        return ""  # NaN padding for short rows
    return value.strip()


def _read_frame(text: str) -> pd.DataFrame:
    """Tokenize the upload; the header row fixes the column count.

    Cells past the last header column are dropped, short rows are padded.
    """
    try:
        width = pd.read_csv(io.StringIO(text), header=None, nrows=1, dtype=str, engine="python").shape[1]
        return pd.read_csv(
            io.StringIO(text),
            header=None,
            names=list(range(width)),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            engine="python",
            on_bad_lines=lambda fields: fields[:width],
        )
    except pd.errors.EmptyDataError as e:
        raise CsvStructureError("CSV must have at least a header row and one data row") from e
    except pd.errors.ParserError as e:
        raise CsvStructureError(f"malformed CSV: {e}") from e


def parse_csv(text: str) -> ParseResult:
    """Parse upload text into typed rows.

    Raises:
        MissingColumnError: no header containing "client" / "product"
        NoMonthColumnsError: no month column could be inferred
        CsvStructureError: empty input, header without data, broken quoting
    """
    text = text.lstrip("\ufeff").strip()
    df = _read_frame(text)
    if df.shape[0] < 2:
        raise CsvStructureError("CSV must have at least a header row and one data row")

    headers = [_cell(df.iloc[0].tolist(), i) for i in range(df.shape[1])]

    client_col = _find_column(headers, "client")
    if client_col is None:
        raise MissingColumnError("Client Name")
    product_col = _find_column(headers, "product")
    if product_col is None:
        raise MissingColumnError("Product Name")

    month_columns = detect_month_columns(headers)
    if not month_columns:
        raise NoMonthColumnsError()

    warnings: list[str] = []
    if len(month_columns) != EXPECTED_MONTH_COLUMNS:
        msg = (
            f"CSV has {len(month_columns)} month columns. "
            f"Expected {EXPECTED_MONTH_COLUMNS} for a full financial year."
        )
        warnings.append(msg)
        logger.warning(msg)

    rows: list[ParsedRow] = []
    for raw in df.iloc[1:].itertuples(index=False, name=None):
        values = list(raw)
        client_name = _cell(values, client_col)
        product_name = _cell(values, product_col)
        if not client_name or not product_name:
            continue

        monthly_data: dict[str, float] = {}
        row_total = 0.0
        for column in month_columns:
            amount = parse_amount(_cell(values, column.index))
            monthly_data[column.label] = amount
            row_total += amount

        rows.append(
            ParsedRow(
                client_name=client_name,
                product_name=product_name,
                monthly_data=monthly_data,
                total=row_total,
            )
        )

    logger.debug(
        "parsed rows=%d month_columns=%s client_col=%d product_col=%d",
        len(rows),
        [c.label for c in month_columns],
        client_col,
        product_col,
    )
    return ParseResult(
        headers=headers,
        month_columns=[c.label for c in month_columns],
        rows=rows,
        total_amount=sum(r.total for r in rows),
        warnings=warnings,
    )


def read_csv_file(path: Path) -> ParseResult:
    """Read and parse an upload file (UTF-8, BOM tolerated)."""
    try:
        text = path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise CsvStructureError(f"file is not UTF-8 text: {path.name}") from e
    return parse_csv(text)
