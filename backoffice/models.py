"""Domain models used by the back-office backend.

The classes defined here are intentionally lightweight data containers that do
not know anything about transport concerns.  Keeping the domain model pure
makes the reconciliation and aggregation logic easy to test in isolation and
lets the same rows flow from a spreadsheet import, a SQLite file or a remote
store without conversion layers in between.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional, Protocol

RawRecord = dict[str, Any]

PLACEHOLDER_PREFIX = "temp-"
SENTINEL = "-"

MONTH_NAMES = [
    "Janeiro",
    "Fevereiro",
    "Março",
    "Abril",
    "Maio",
    "Junho",
    "Julho",
    "Agosto",
    "Setembro",
    "Outubro",
    "Novembro",
    "Dezembro",
]


class ExpenseStatus(str, Enum):
    """Payment status of an expense; values are the persisted strings."""

    PAID = "Pago"
    OPEN = "Aberto"


@dataclass(frozen=True, slots=True)
class Period:
    """A reporting period (month, year).

    Periods are ordered through :meth:`linear`, which maps ``(month, year)`` to
    ``year * 100 + month`` and therefore sorts correctly across year
    boundaries.
    """

    month: int
    year: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {self.month}")

    def linear(self) -> int:
        return self.year * 100 + self.month

    def next(self) -> "Period":
        if self.month == 12:
            return Period(1, self.year + 1)
        return Period(self.month + 1, self.year)

    @property
    def month_name(self) -> str:
        return MONTH_NAMES[self.month - 1]

    @property
    def short_label(self) -> str:
        """Label such as ``Jan/24`` used for chart and pivot columns."""

        return f"{self.month_name[:3]}/{str(self.year)[2:]}"

    @property
    def long_label(self) -> str:
        """Label such as ``Janeiro/2024`` used for the monthly list."""

        return f"{self.month_name}/{self.year}"

    @property
    def key(self) -> str:
        return f"{self.year}-{self.month}"


@dataclass(slots=True)
class CanonicalExpense:
    """One expense ledger row after column mapping and normalisation.

    Rows coming from the store carry the store identifier and
    ``is_new=False``.  Rows mapped from a spreadsheet carry a placeholder id of
    the form ``temp-{row_index}`` until they are synced.
    """

    id: str
    branch: str
    group: str
    subgroup: str
    cost_center: str
    chart_of_accounts: str
    vendor: str
    title: str
    date_text: str
    amount: float
    status: ExpenseStatus = ExpenseStatus.PAID
    reference_month: int = 0
    reference_year: int = 0
    dedup_key: str = ""
    is_new: bool = False

    @property
    def is_pending(self) -> bool:
        """Whether the row was imported from a file and never persisted."""

        return self.id.startswith(PLACEHOLDER_PREFIX)

    def period_linear(self) -> int:
        return self.reference_year * 100 + self.reference_month

    def to_store_record(self) -> dict[str, object]:
        """Serialise the row using the column names of the ``despesas`` table."""

        return {
            "filial": self.branch,
            "grupo": self.group,
            "subgrupo": self.subgroup,
            "centro_custo": self.cost_center,
            "plano_contas": self.chart_of_accounts,
            "fornecedor": self.vendor,
            "titulo": self.title,
            "valor": self.amount,
            "status": self.status.value,
            "data_despesa": self.date_text,
            "mes_referencia": self.reference_month,
            "ano_referencia": self.reference_year,
            "hash_id": self.dedup_key,
        }

    @classmethod
    def from_store_record(cls, record: dict[str, Any]) -> "CanonicalExpense":
        """Build a persisted row from a store record.

        Missing reference fields become ``0`` so they sort before any real
        period instead of breaking the range filter.
        """

        status_raw = record.get("status")
        status = ExpenseStatus.OPEN if status_raw == ExpenseStatus.OPEN.value else ExpenseStatus.PAID
        return cls(
            id=str(record.get("id")),
            branch=str(record.get("filial") or ""),
            group=str(record.get("grupo") or ""),
            subgroup=str(record.get("subgrupo") or ""),
            cost_center=str(record.get("centro_custo") or ""),
            chart_of_accounts=str(record.get("plano_contas") or ""),
            vendor=str(record.get("fornecedor") or ""),
            title=str(record.get("titulo") or ""),
            date_text=str(record.get("data_despesa") or ""),
            amount=float(record.get("valor") or 0.0),
            status=status,
            reference_month=int(record.get("mes_referencia") or 0),
            reference_year=int(record.get("ano_referencia") or 0),
            dedup_key=str(record.get("hash_id") or ""),
            is_new=False,
        )


@dataclass(slots=True)
class HierarchyRow:
    """Sales history and projected goal for one merchandising category.

    ``growth`` and ``projected_goal`` are kept consistent by the editing
    helpers in :mod:`backoffice.goals`.
    """

    id: str
    branch: str
    sector: str
    department: str
    section: str
    sales_month_minus_2: float = 0.0
    sales_month_minus_1: float = 0.0
    sales_ref_month: float = 0.0
    growth: float = 0.0
    projected_goal: float = 0.0

    @property
    def identity(self) -> tuple[str, str, str, str]:
        return (self.branch, self.sector, self.department, self.section)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ExpenseFilters:
    """Categorical equality filters; an empty string leaves a dimension open."""

    branch: str = ""
    group: str = ""
    subgroup: str = ""
    cost_center: str = ""
    chart_of_accounts: str = ""
    vendor: str = ""

    def matches(self, expense: CanonicalExpense) -> bool:
        checks = (
            (self.branch, expense.branch),
            (self.group, expense.group),
            (self.subgroup, expense.subgroup),
            (self.cost_center, expense.cost_center),
            (self.chart_of_accounts, expense.chart_of_accounts),
            (self.vendor, expense.vendor),
        )
        return all(not wanted or wanted == actual for wanted, actual in checks)


@dataclass(frozen=True, slots=True)
class HierarchyFilters:
    branch: str = ""
    sector: str = ""
    department: str = ""

    def matches(self, row: HierarchyRow) -> bool:
        return (
            (not self.branch or row.branch == self.branch)
            and (not self.sector or row.sector == self.sector)
            and (not self.department or row.department == self.department)
        )

    def changed(self, field_name: str, value: str) -> "HierarchyFilters":
        """Return new filters with one field set and its dependents cleared.

        The filters form a cascade (branch, then sector, then department), so
        picking a new branch invalidates any sector and department chosen
        under the previous one.
        """

        if field_name == "branch":
            return HierarchyFilters(branch=value)
        if field_name == "sector":
            return replace(self, sector=value, department="")
        if field_name == "department":
            return replace(self, department=value)
        raise ValueError(f"Unknown hierarchy filter: {field_name!r}")


# ---------------------------------------------------------------------------
# View-ready summaries
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ExpenseKpis:
    total_paid: float = 0.0
    total_open: float = 0.0
    largest_expense: Optional[CanonicalExpense] = None
    top_chart_of_accounts: Optional[str] = None
    top_chart_of_accounts_total: float = 0.0
    top_chart_of_accounts_pct: float = 0.0


@dataclass(slots=True)
class TimeSeriesPoint:
    period: Period
    label: str
    value: float


@dataclass(slots=True)
class PivotTable:
    """Chart-of-accounts by month matrix with trailing totals."""

    columns: list[Period] = field(default_factory=list)
    rows: list[str] = field(default_factory=list)
    cells: dict[str, dict[Period, float]] = field(default_factory=dict)
    row_totals: dict[str, float] = field(default_factory=dict)
    column_totals: dict[Period, float] = field(default_factory=dict)
    grand_total: float = 0.0


@dataclass(slots=True)
class MonthSummary:
    period: Period
    label: str
    total_paid: float
    total_open: float
    expenses: list[CanonicalExpense] = field(default_factory=list)


@dataclass(slots=True)
class ExpenseAnalysis:
    filtered: list[CanonicalExpense]
    kpis: ExpenseKpis
    time_series: list[TimeSeriesPoint]
    pivot: PivotTable
    monthly: list[MonthSummary]


@dataclass(slots=True)
class HierarchySummary:
    filtered: list[HierarchyRow]
    total_sales_ref: float
    total_sales_minus_1: float
    total_projected: float
    blended_growth: float
    growth_vs_minus_1: float
    best_performer: Optional[HierarchyRow]
    worst_performer: Optional[HierarchyRow]
    level_label: str


@dataclass(slots=True)
class FilterOptions:
    """Distinct values available to each filter dropdown."""

    values: dict[str, list[str]] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Store collaborator
# ---------------------------------------------------------------------------


class ExpenseStore(Protocol):
    """Row store holding persisted expenses.

    Implementations page through rows whose reference year lies in an
    inclusive range and insert rows keyed on ``hash_id``, silently skipping
    keys that already exist.
    """

    def fetch_page(self, start_year: int, end_year: int, offset: int, limit: int) -> list[dict[str, Any]]:
        ...

    def upsert_expenses(self, records: list[dict[str, object]]) -> int:
        ...

    def close(self) -> None:
        ...


__all__ = [
    "RawRecord",
    "PLACEHOLDER_PREFIX",
    "SENTINEL",
    "MONTH_NAMES",
    "ExpenseStatus",
    "Period",
    "CanonicalExpense",
    "HierarchyRow",
    "ExpenseFilters",
    "HierarchyFilters",
    "ExpenseKpis",
    "TimeSeriesPoint",
    "PivotTable",
    "MonthSummary",
    "ExpenseAnalysis",
    "HierarchySummary",
    "FilterOptions",
    "ExpenseStore",
]
