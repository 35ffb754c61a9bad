"""High-level application services orchestrating the back-office backend.

State lives in explicit objects (:class:`ExpenseWorkspace`,
:class:`~backoffice.goals.GoalBoard`) that callers own and pass in; the
services themselves hold only their collaborators.  Every action either
completes and updates the state or raises and leaves it untouched.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Mapping, Optional

from .aggregation import aggregate_expenses, expense_filter_options, filter_by_range
from .dedup import assign_dedup_keys
from .errors import ValidationError
from .goals import GoalBoard, parse_goal_input
from .importers import decode_workbook, map_expense_rows, map_hierarchy_rows
from .models import (
    CanonicalExpense,
    ExpenseAnalysis,
    ExpenseFilters,
    ExpenseStore,
    FilterOptions,
    HierarchyRow,
    Period,
    RawRecord,
)
from .reconciliation import MergeResult, merge_expenses, pending_rows, process_goal_files

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000


def _current_period() -> Period:
    today = date.today()
    return Period(today.month, today.year)


@dataclass(slots=True)
class ExpenseWorkspace:
    """Everything the expense screens know at a given moment.

    ``persisted`` holds rows read from the store for the view range.
    ``pending_records`` holds the decoded rows of the selected file, waiting
    to be mapped against ``import_period``.
    """

    persisted: list[CanonicalExpense] = field(default_factory=list)
    pending_records: Optional[list[RawRecord]] = None
    pending_filename: Optional[str] = None
    import_period: Period = field(default_factory=_current_period)
    view_start: Period = field(default_factory=_current_period)
    view_end: Period = field(default_factory=_current_period)

    def show(self, start: Period, end: Period) -> None:
        self.view_start = start
        self.view_end = end

    def clear_import(self) -> None:
        self.pending_records = None
        self.pending_filename = None


def fetch_expenses(
    store: ExpenseStore,
    start: Period,
    end: Period,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> list[CanonicalExpense]:
    """Read every persisted expense between ``start`` and ``end`` inclusive.

    The store only filters by reference year, so pages are requested until a
    short or empty page arrives and the month bounds are applied afterwards.
    Results are ordered by reference period, most recent first.
    """

    records: list[dict] = []
    offset = 0
    while True:
        page = store.fetch_page(start.year, end.year, offset, page_size)
        logger.debug("Fetched page at offset %d with %d rows", offset, len(page))
        if not page:
            break
        records.extend(page)
        if len(page) < page_size:
            break
        offset += page_size

    expenses = filter_by_range(
        (CanonicalExpense.from_store_record(record) for record in records),
        start,
        end,
    )
    expenses.sort(key=lambda expense: expense.period_linear(), reverse=True)
    logger.info(
        "Loaded %d of %d stored expenses for %s to %s",
        len(expenses),
        len(records),
        start.key,
        end.key,
    )
    return expenses


class ExpenseService:
    """Coordinates expense imports, reconciliation, sync and analysis."""

    def __init__(self, store: ExpenseStore, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self._store = store
        self._page_size = page_size

    # ------------------------------------------------------------------
    # Store round-trips
    # ------------------------------------------------------------------
    def fetch(self, workspace: ExpenseWorkspace, start: Optional[Period] = None, end: Optional[Period] = None) -> int:
        """Reload persisted rows; on failure the previous rows are kept."""

        start = start or workspace.view_start
        end = end or workspace.view_end
        expenses = fetch_expenses(self._store, start, end, self._page_size)
        workspace.persisted = expenses
        return len(expenses)

    def set_view_range(self, workspace: ExpenseWorkspace, start: Period, end: Period) -> int:
        if start.linear() > end.linear():
            raise ValidationError("The start of the period must not be after its end.")
        count = self.fetch(workspace, start, end)
        workspace.show(start, end)
        return count

    def sync(self, workspace: ExpenseWorkspace) -> int:
        """Push the new rows of the pending import to the store.

        Rows are written with the import period.  Afterwards the import is
        cleared and the view moves to the import period.
        """

        candidates = pending_rows(self.reconcile(workspace).merged)
        if not candidates:
            raise ValidationError("No new expenses to sync.")

        period = workspace.import_period
        self._store.upsert_expenses([row.to_store_record() for row in candidates])
        logger.info("Synced %d new expenses for %s", len(candidates), period.key)
        persisted = fetch_expenses(self._store, period, period, self._page_size)

        workspace.persisted = persisted
        workspace.clear_import()
        workspace.show(period, period)
        return len(candidates)

    # ------------------------------------------------------------------
    # Import workflow
    # ------------------------------------------------------------------
    def import_file(
        self,
        workspace: ExpenseWorkspace,
        data: bytes,
        filename: Optional[str],
        period: Period,
    ) -> MergeResult:
        """Load a spreadsheet for ``period`` and reconcile it with the store.

        A file that cannot be decoded raises before the workspace changes.
        The view range moves to the import period and the persisted rows of
        that period are reloaded so duplicates are detected against them.
        """

        records = decode_workbook(data, filename)
        persisted = fetch_expenses(self._store, period, period, self._page_size)

        workspace.persisted = persisted
        workspace.pending_records = records
        workspace.pending_filename = filename
        workspace.import_period = period
        workspace.show(period, period)
        return self.reconcile(workspace)

    def reconcile(self, workspace: ExpenseWorkspace) -> MergeResult:
        if not workspace.pending_records:
            return merge_expenses(workspace.persisted, [])
        period = workspace.import_period
        incoming = assign_dedup_keys(map_expense_rows(workspace.pending_records, period), period)
        return merge_expenses(workspace.persisted, incoming)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    def analyse(self, workspace: ExpenseWorkspace, filters: Optional[ExpenseFilters] = None) -> ExpenseAnalysis:
        merged = self.reconcile(workspace).merged
        return aggregate_expenses(merged, filters or ExpenseFilters(), workspace.view_start, workspace.view_end)

    def filter_options(self, workspace: ExpenseWorkspace) -> FilterOptions:
        merged = self.reconcile(workspace).merged
        return expense_filter_options(filter_by_range(merged, workspace.view_start, workspace.view_end))


class GoalService:
    """Builds goal boards from sales history files and edits them."""

    def process_files(self, files: Mapping[str, Optional[tuple[bytes, Optional[str]]]]) -> GoalBoard:
        rows = process_goal_files(files)
        return GoalBoard(rows=rows)

    def load_sheet(self, data: bytes, filename: Optional[str] = None) -> GoalBoard:
        """Build a board from one sheet that already holds the three periods."""

        rows = map_hierarchy_rows(decode_workbook(data, filename))
        return GoalBoard(rows=rows)

    def update_growth(self, board: GoalBoard, row_id: str, growth: float) -> HierarchyRow:
        return board.update_growth(row_id, growth)

    def update_goal(self, board: GoalBoard, row_id: str, text: str) -> Optional[HierarchyRow]:
        """Apply a typed goal; unusable input leaves the row unchanged."""

        goal = parse_goal_input(text)
        if goal is None:
            logger.warning("Ignoring goal input %r for row %s", text, row_id)
            return None
        return board.update_goal(row_id, goal)

    def apply_additional_pct(self, board: GoalBoard, delta: float) -> int:
        board.additional_pct = delta
        return board.apply_additional_pct()


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "ExpenseWorkspace",
    "fetch_expenses",
    "ExpenseService",
    "GoalService",
]
