"""Range aggregation producing view-ready summaries.

Expenses are aggregated over an inclusive, possibly multi-month and
multi-year range of reporting periods.  Periods are compared through their
``year * 100 + month`` linearisation.  Hierarchy rows carry no period and are
summarised over the active filters only.
"""
from __future__ import annotations

from typing import Iterable, Optional, Sequence

from .models import (
    SENTINEL,
    CanonicalExpense,
    ExpenseAnalysis,
    ExpenseFilters,
    ExpenseKpis,
    ExpenseStatus,
    FilterOptions,
    HierarchyFilters,
    HierarchyRow,
    HierarchySummary,
    MonthSummary,
    Period,
    PivotTable,
    TimeSeriesPoint,
)


# Rows listed per month in the monthly breakdown.
MONTH_DETAIL_LIMIT = 50


def in_period_range(month: int, year: int, start: Period, end: Period) -> bool:
    value = year * 100 + month
    return start.linear() <= value <= end.linear()


def month_buckets(start: Period, end: Period) -> list[Period]:
    """Every calendar month from ``start`` to ``end`` inclusive."""

    buckets: list[Period] = []
    current = start
    while current.linear() <= end.linear():
        buckets.append(current)
        current = current.next()
    return buckets


def filter_by_range(expenses: Iterable[CanonicalExpense], start: Period, end: Period) -> list[CanonicalExpense]:
    return [
        expense
        for expense in expenses
        if in_period_range(expense.reference_month, expense.reference_year, start, end)
    ]


def filter_expenses(expenses: Iterable[CanonicalExpense], filters: ExpenseFilters) -> list[CanonicalExpense]:
    return [expense for expense in expenses if filters.matches(expense)]


def filter_hierarchy(rows: Iterable[HierarchyRow], filters: HierarchyFilters) -> list[HierarchyRow]:
    return [row for row in rows if filters.matches(row)]


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------


def compute_kpis(expenses: Sequence[CanonicalExpense]) -> ExpenseKpis:
    """Card figures for a filtered expense set.

    The largest expense is the first row holding the maximum amount.  The top
    chart-of-accounts category ignores the ``-`` sentinel and only qualifies
    when its summed amount is positive; ties keep the category seen first.
    """

    kpis = ExpenseKpis()
    category_totals: dict[str, float] = {}
    for expense in expenses:
        if expense.status is ExpenseStatus.PAID:
            kpis.total_paid += expense.amount
        elif expense.status is ExpenseStatus.OPEN:
            kpis.total_open += expense.amount
        if kpis.largest_expense is None or expense.amount > kpis.largest_expense.amount:
            kpis.largest_expense = expense
        if expense.chart_of_accounts != SENTINEL:
            category_totals[expense.chart_of_accounts] = (
                category_totals.get(expense.chart_of_accounts, 0.0) + expense.amount
            )

    for category, total in category_totals.items():
        if total > kpis.top_chart_of_accounts_total:
            kpis.top_chart_of_accounts = category
            kpis.top_chart_of_accounts_total = total

    grand_total = kpis.total_paid + kpis.total_open
    if grand_total > 0:
        kpis.top_chart_of_accounts_pct = kpis.top_chart_of_accounts_total / grand_total * 100
    return kpis


def build_time_series(expenses: Sequence[CanonicalExpense], buckets: Sequence[Period]) -> list[TimeSeriesPoint]:
    """Paid amount per month; months without rows are reported as zero."""

    totals = {(bucket.month, bucket.year): 0.0 for bucket in buckets}
    for expense in expenses:
        key = (expense.reference_month, expense.reference_year)
        if expense.status is ExpenseStatus.PAID and key in totals:
            totals[key] += expense.amount
    return [
        TimeSeriesPoint(period=bucket, label=bucket.short_label, value=totals[(bucket.month, bucket.year)])
        for bucket in buckets
    ]


def build_pivot(expenses: Sequence[CanonicalExpense], buckets: Sequence[Period]) -> PivotTable:
    """Chart of accounts (rows) by month (columns) with row and column totals.

    Rows are sorted by their total over the whole range, largest first.
    Rows with the sentinel category are left out.
    """

    pivot = PivotTable(columns=list(buckets))
    pivot.column_totals = {bucket: 0.0 for bucket in buckets}
    index = {(bucket.month, bucket.year): bucket for bucket in buckets}

    for expense in expenses:
        category = expense.chart_of_accounts
        if not category or category == SENTINEL:
            continue
        if category not in pivot.cells:
            pivot.cells[category] = {bucket: 0.0 for bucket in buckets}
            pivot.row_totals[category] = 0.0
        bucket = index.get((expense.reference_month, expense.reference_year))
        if bucket is None:
            continue
        pivot.cells[category][bucket] += expense.amount
        pivot.row_totals[category] += expense.amount
        pivot.column_totals[bucket] += expense.amount

    pivot.rows = sorted(pivot.cells, key=lambda category: pivot.row_totals[category], reverse=True)
    pivot.grand_total = sum(pivot.column_totals.values())
    return pivot


def largest_expenses(expenses: Iterable[CanonicalExpense], limit: int = MONTH_DETAIL_LIMIT) -> list[CanonicalExpense]:
    """The ``limit`` biggest expenses, largest first; ties keep input order."""

    return sorted(expenses, key=lambda expense: expense.amount, reverse=True)[:limit]


def build_monthly_summaries(expenses: Sequence[CanonicalExpense], buckets: Sequence[Period]) -> list[MonthSummary]:
    summaries = []
    for bucket in buckets:
        month_rows = [
            expense
            for expense in expenses
            if expense.reference_month == bucket.month and expense.reference_year == bucket.year
        ]
        summaries.append(
            MonthSummary(
                period=bucket,
                label=bucket.long_label,
                total_paid=sum(row.amount for row in month_rows if row.status is ExpenseStatus.PAID),
                total_open=sum(row.amount for row in month_rows if row.status is ExpenseStatus.OPEN),
                expenses=month_rows,
            )
        )
    return summaries


def aggregate_expenses(
    expenses: Iterable[CanonicalExpense],
    filters: ExpenseFilters,
    start: Period,
    end: Period,
) -> ExpenseAnalysis:
    filtered = filter_expenses(filter_by_range(expenses, start, end), filters)
    buckets = month_buckets(start, end)
    return ExpenseAnalysis(
        filtered=filtered,
        kpis=compute_kpis(filtered),
        time_series=build_time_series(filtered, buckets),
        pivot=build_pivot(filtered, buckets),
        monthly=build_monthly_summaries(filtered, buckets),
    )


def expense_filter_options(expenses: Iterable[CanonicalExpense]) -> FilterOptions:
    """Sorted distinct values per dimension for the filter dropdowns."""

    rows = list(expenses)

    def distinct(attribute: str, drop_sentinel: bool = False) -> list[str]:
        values = {getattr(row, attribute) for row in rows}
        if drop_sentinel:
            values.discard(SENTINEL)
        return sorted(values)

    return FilterOptions(
        values={
            "branch": distinct("branch"),
            "group": distinct("group", drop_sentinel=True),
            "subgroup": distinct("subgroup", drop_sentinel=True),
            "cost_center": distinct("cost_center"),
            "chart_of_accounts": distinct("chart_of_accounts", drop_sentinel=True),
            "vendor": distinct("vendor"),
        }
    )


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------


def _growth_against(total_projected: float, baseline: float) -> float:
    if baseline <= 0:
        return 0.0
    return (total_projected / baseline - 1) * 100


def _level_label(filters: HierarchyFilters) -> str:
    if filters.department:
        return f"Departamento {filters.department}"
    if filters.sector:
        return f"Setor {filters.sector}"
    if filters.branch:
        return f"Filial {filters.branch}"
    return "Grupo"


def aggregate_hierarchy(rows: Iterable[HierarchyRow], filters: HierarchyFilters) -> HierarchySummary:
    """Totals and performers for the rows passing ``filters``.

    The blended growth weights every row by its reference-month sales
    (``Σ goal / Σ ref - 1``) instead of averaging the row percentages.
    """

    filtered = filter_hierarchy(rows, filters)
    total_ref = sum(row.sales_ref_month for row in filtered)
    total_minus_1 = sum(row.sales_month_minus_1 for row in filtered)
    total_projected = sum(row.projected_goal for row in filtered)

    best: Optional[HierarchyRow] = None
    worst: Optional[HierarchyRow] = None
    for row in filtered:
        if best is None or row.growth > best.growth:
            best = row
        if worst is None or row.growth < worst.growth:
            worst = row

    return HierarchySummary(
        filtered=filtered,
        total_sales_ref=total_ref,
        total_sales_minus_1=total_minus_1,
        total_projected=total_projected,
        blended_growth=_growth_against(total_projected, total_ref),
        growth_vs_minus_1=_growth_against(total_projected, total_minus_1),
        best_performer=best,
        worst_performer=worst,
        level_label=_level_label(filters),
    )


def hierarchy_filter_options(rows: Iterable[HierarchyRow], filters: HierarchyFilters) -> FilterOptions:
    """Cascading dropdown values: sectors follow the branch, departments both."""

    rows = list(rows)
    in_branch = [row for row in rows if not filters.branch or row.branch == filters.branch]
    in_sector = [row for row in in_branch if not filters.sector or row.sector == filters.sector]
    return FilterOptions(
        values={
            "branch": sorted({row.branch for row in rows}),
            "sector": sorted({row.sector for row in in_branch}),
            "department": sorted({row.department for row in in_sector}),
        }
    )


__all__ = [
    "in_period_range",
    "month_buckets",
    "filter_by_range",
    "filter_expenses",
    "filter_hierarchy",
    "compute_kpis",
    "build_time_series",
    "build_pivot",
    "MONTH_DETAIL_LIMIT",
    "largest_expenses",
    "build_monthly_summaries",
    "aggregate_expenses",
    "expense_filter_options",
    "aggregate_hierarchy",
    "hierarchy_filter_options",
]
