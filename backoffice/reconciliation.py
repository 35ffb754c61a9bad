"""Merging freshly imported rows with rows that already exist.

Two merges live here:

1. :func:`merge_expenses` reconciles an imported expense batch against the
   persisted ledger by dedup key.  Persisted rows are never dropped; only
   incoming rows with an unseen key are accepted, flagged ``is_new``.
2. :func:`merge_sales_periods` folds three single-period sales files into one
   :class:`~backoffice.models.HierarchyRow` per (branch, sector, department,
   section) identity, producing the month-over-month comparison rows used for
   goal projection.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Mapping, Optional, Sequence

from .columns import FIELD_KEYWORDS, PERIOD_VALUE_KEYWORDS, find_column
from .errors import ValidationError
from .importers import UNKNOWN_BRANCH, decode_workbook
from .models import SENTINEL, CanonicalExpense, HierarchyRow, RawRecord
from .normalizers import parse_currency

logger = logging.getLogger(__name__)

GOAL_SLOTS = ("minus_2", "minus_1", "current")

_SLOT_FIELDS = {
    "minus_2": "sales_month_minus_2",
    "minus_1": "sales_month_minus_1",
    "current": "sales_ref_month",
}


@dataclass(slots=True)
class MergeResult:
    """Outcome of reconciling an import batch against persisted rows."""

    merged: list[CanonicalExpense] = field(default_factory=list)
    new: list[CanonicalExpense] = field(default_factory=list)
    duplicates: list[CanonicalExpense] = field(default_factory=list)


def merge_expenses(
    persisted: Sequence[CanonicalExpense],
    incoming: Iterable[CanonicalExpense],
) -> MergeResult:
    """Merge ``incoming`` into ``persisted`` without creating duplicates.

    Neither argument is mutated.  The merged list holds every persisted row
    (``is_new=False``) followed by the incoming rows whose key is unknown
    (``is_new=True``).  An incoming row repeating a key accepted earlier in the
    same batch is skipped as well, since the store would ignore it on sync.
    """

    result = MergeResult()
    seen: set[str] = set()
    for row in persisted:
        result.merged.append(replace(row, is_new=False))
        seen.add(row.dedup_key)

    for row in incoming:
        if row.dedup_key in seen:
            result.duplicates.append(replace(row, is_new=False))
            continue
        seen.add(row.dedup_key)
        accepted = replace(row, is_new=True)
        result.merged.append(accepted)
        result.new.append(accepted)

    logger.info(
        "Merged %d persisted rows with %d new and %d duplicate imported rows",
        len(persisted),
        len(result.new),
        len(result.duplicates),
    )
    return result


def pending_rows(merged: Iterable[CanonicalExpense]) -> list[CanonicalExpense]:
    """Rows that exist only in memory and are candidates for a sync."""

    return [row for row in merged if row.is_pending and row.is_new]


# ---------------------------------------------------------------------------
# Sales history merge for goal projection
# ---------------------------------------------------------------------------


def _identity_text(record: RawRecord, keys: list[str], field_name: str) -> str:
    column = find_column(keys, FIELD_KEYWORDS[field_name])
    if column is None:
        return ""
    value = record[column]
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _period_value(record: RawRecord, keys: list[str]) -> float:
    column = find_column(keys, PERIOD_VALUE_KEYWORDS, exclude=("data",))
    if column is None:
        return 0.0
    return parse_currency(record[column])


def merge_sales_periods(
    minus_2: Iterable[RawRecord],
    minus_1: Iterable[RawRecord],
    current: Iterable[RawRecord],
) -> list[HierarchyRow]:
    """Fold three single-period sales files into one row per identity.

    Files are processed oldest first.  The first file mentioning an identity
    creates its row, so the result is the union of all identities; a period
    that lacks an identity leaves that row's slot at zero.  Records whose
    branch, sector, department and section are all blank are ignored.
    """

    rows: dict[tuple[str, str, str, str], HierarchyRow] = {}
    for slot, dataset in zip(GOAL_SLOTS, (minus_2, minus_1, current)):
        attribute = _SLOT_FIELDS[slot]
        for record in dataset:
            keys = list(record.keys())
            identity = (
                _identity_text(record, keys, "branch"),
                _identity_text(record, keys, "sector"),
                _identity_text(record, keys, "department"),
                _identity_text(record, keys, "section"),
            )
            if not any(identity):
                continue
            row = rows.get(identity)
            if row is None:
                branch, sector, department, section = identity
                row = HierarchyRow(
                    id=str(len(rows)),
                    branch=branch or UNKNOWN_BRANCH,
                    sector=sector or SENTINEL,
                    department=department or SENTINEL,
                    section=section or str(len(rows)),
                )
                rows[identity] = row
            setattr(row, attribute, _period_value(record, keys))

    merged = list(rows.values())
    for row in merged:
        row.growth = 0.0
        row.projected_goal = row.sales_ref_month
    logger.info("Merged sales history into %d hierarchy rows", len(merged))
    return merged


def process_goal_files(files: Mapping[str, Optional[tuple[bytes, Optional[str]]]]) -> list[HierarchyRow]:
    """Decode the three sales files and merge them.

    ``files`` maps each of :data:`GOAL_SLOTS` to ``(data, filename)``.  All
    three are required before anything is decoded.
    """

    missing = [slot for slot in GOAL_SLOTS if not files.get(slot)]
    if missing:
        raise ValidationError(
            "All three sales files (month -2, month -1 and reference month) are required. "
            f"Missing: {', '.join(missing)}"
        )

    datasets = []
    for slot in GOAL_SLOTS:
        data, filename = files[slot]
        records = decode_workbook(data, filename)
        logger.info("Read %d rows for slot %s", len(records), slot)
        datasets.append(records)
    return merge_sales_periods(*datasets)


__all__ = [
    "GOAL_SLOTS",
    "MergeResult",
    "merge_expenses",
    "pending_rows",
    "merge_sales_periods",
    "process_goal_files",
]
