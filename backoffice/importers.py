"""Spreadsheet importers for expense ledgers and sales hierarchies."""
from __future__ import annotations

import io
import logging
from typing import Any, Iterable, Optional

import pandas as pd

from .columns import FIELD_KEYWORDS, SALES_KEYWORDS, ColumnResolver, resolve
from .errors import WorkbookDecodeError
from .models import SENTINEL, CanonicalExpense, HierarchyRow, Period, RawRecord
from .normalizers import parse_currency, parse_spreadsheet_date, parse_status

logger = logging.getLogger(__name__)

UNKNOWN_BRANCH = "Desconhecido"
UNKNOWN_VENDOR = "Indefinido"

SPREADSHEET_EXTENSIONS = (".xlsx", ".xls", ".csv")
LEGACY_CSV_ENCODING = "cp1252"


class SpreadsheetDecoder:
    """Turn uploaded file bytes into a list of raw records.

    Only the first worksheet is read.  The first row holds the headers, which
    are stripped of surrounding whitespace.  Empty cells are left out of the
    record entirely so that a blank cell behaves exactly like a missing
    column during header resolution.
    """

    def decode(self, data: bytes, filename: Optional[str] = None) -> list[RawRecord]:
        if not data:
            return []
        if filename and not filename.lower().endswith(SPREADSHEET_EXTENSIONS):
            raise WorkbookDecodeError(f"Unsupported file type: {filename}")
        try:
            dataframe = self._load_dataframe(data, filename)
        except Exception as exc:  # parser engines raise their own exception types
            raise WorkbookDecodeError(f"Could not read spreadsheet {filename or ''}".strip()) from exc

        dataframe.columns = [str(column).strip() for column in dataframe.columns]
        records = list(self._iter_records(dataframe))
        logger.info("Decoded %d rows from %s", len(records), filename or "upload")
        return records

    def _load_dataframe(self, data: bytes, filename: Optional[str]) -> pd.DataFrame:
        if filename and filename.lower().endswith(".csv"):
            try:
                return self._read_csv(data, "utf-8-sig")
            except UnicodeDecodeError:
                # Excel in a pt-BR locale saves CSV as Windows-1252.
                logger.info("%s is not UTF-8, reading it as %s", filename, LEGACY_CSV_ENCODING)
                return self._read_csv(data, LEGACY_CSV_ENCODING)
        return pd.read_excel(io.BytesIO(data), sheet_name=0)

    @staticmethod
    def _read_csv(data: bytes, encoding: str) -> pd.DataFrame:
        return pd.read_csv(io.BytesIO(data), sep=None, engine="python", dtype=str, encoding=encoding)

    @staticmethod
    def _iter_records(dataframe: pd.DataFrame) -> Iterable[RawRecord]:
        for row in dataframe.itertuples(index=False, name=None):
            record: RawRecord = {}
            for column, value in zip(dataframe.columns, row):
                if value is None or (not isinstance(value, str) and pd.isna(value)):
                    continue
                if isinstance(value, str) and not value.strip():
                    continue
                record[column] = _to_native(value)
            if record:
                yield record


def decode_workbook(data: bytes, filename: Optional[str] = None) -> list[RawRecord]:
    return SpreadsheetDecoder().decode(data, filename)


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------


def map_expense_row(
    record: RawRecord,
    row_index: int,
    period: Period,
    resolver: Optional[ColumnResolver] = None,
) -> CanonicalExpense:
    """Map one raw record onto a :class:`CanonicalExpense`.

    Missing categorical values fall back to fixed sentinels so grouping and
    deduplication never operate on empty strings.  The returned row carries a
    placeholder id, ``is_new=True`` and no dedup key yet.
    """

    resolver = resolver or ColumnResolver(FIELD_KEYWORDS)

    def text(field_name: str, default: str) -> str:
        value = resolver.get(record, field_name)
        if not value:
            return default
        return _clean_string(value) or default

    return CanonicalExpense(
        id=f"temp-{row_index}",
        branch=text("branch", UNKNOWN_BRANCH),
        group=text("group", SENTINEL),
        subgroup=text("subgroup", SENTINEL),
        cost_center=text("cost_center", SENTINEL),
        chart_of_accounts=text("chart_of_accounts", SENTINEL),
        vendor=text("vendor", UNKNOWN_VENDOR),
        title=text("title", f"Item {row_index}"),
        date_text=parse_spreadsheet_date(resolver.get(record, "date")),
        amount=parse_currency(resolver.get(record, "amount")),
        status=parse_status(resolver.get(record, "status")),
        reference_month=period.month,
        reference_year=period.year,
        dedup_key="",
        is_new=True,
    )


def map_expense_rows(records: Iterable[RawRecord], period: Period) -> list[CanonicalExpense]:
    resolver = ColumnResolver(FIELD_KEYWORDS)
    return [map_expense_row(record, index, period, resolver) for index, record in enumerate(records)]


def map_hierarchy_row(record: RawRecord, row_index: int) -> HierarchyRow:
    """Map a goal sheet row that already carries all three sales periods."""

    def text(field_name: str, default: str) -> str:
        value = resolve(record, FIELD_KEYWORDS[field_name])
        return _clean_string(value) if value else default

    sales_ref = parse_currency(resolve(record, SALES_KEYWORDS["sales_ref"]))
    return HierarchyRow(
        id=str(row_index),
        branch=text("branch", UNKNOWN_BRANCH),
        sector=text("sector", SENTINEL),
        department=text("department", SENTINEL),
        section=text("section", str(row_index)),
        sales_month_minus_2=parse_currency(resolve(record, SALES_KEYWORDS["sales_minus_2"])),
        sales_month_minus_1=parse_currency(resolve(record, SALES_KEYWORDS["sales_minus_1"])),
        sales_ref_month=sales_ref,
        growth=0.0,
        projected_goal=sales_ref,
    )


def map_hierarchy_rows(records: Iterable[RawRecord]) -> list[HierarchyRow]:
    return [map_hierarchy_row(record, index) for index, record in enumerate(records)]


# ---------------------------------------------------------------------------
# Helper utilities
# ---------------------------------------------------------------------------

def _clean_string(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _to_native(value: Any) -> Any:
    # numpy scalars expose ``item()``; pandas Timestamps stay datetimes.
    if hasattr(value, "item") and not isinstance(value, (str, bytes)) and not hasattr(value, "to_pydatetime"):
        try:
            return value.item()
        except (ValueError, TypeError):
            return value
    return value


__all__ = [
    "UNKNOWN_BRANCH",
    "UNKNOWN_VENDOR",
    "SPREADSHEET_EXTENSIONS",
    "LEGACY_CSV_ENCODING",
    "SpreadsheetDecoder",
    "decode_workbook",
    "map_expense_row",
    "map_expense_rows",
    "map_hierarchy_row",
    "map_hierarchy_rows",
]
