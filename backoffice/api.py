"""FastAPI application exposing the back-office backend."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Annotated, Optional

from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .aggregation import largest_expenses
from .config import AppConfig, load_config
from .database import SQLiteRepository
from .errors import BackofficeError, StoreError
from .goals import GoalBoard
from .logging_setup import configure_logging
from .models import (
    CanonicalExpense,
    ExpenseAnalysis,
    ExpenseFilters,
    ExpenseStore,
    HierarchyFilters,
    HierarchyRow,
    HierarchySummary,
    Period,
)
from .reconciliation import MergeResult
from .remote_store import RestExpenseStore
from .services import ExpenseService, ExpenseWorkspace, GoalService

logger = logging.getLogger(__name__)

Month = Annotated[int, Query(ge=1, le=12)]
Year = Annotated[int, Query(ge=1900, le=9999)]


def create_store(config: AppConfig) -> ExpenseStore:
    """Build the store selected by :attr:`AppConfig.store_backend`."""

    if config.store_backend == "rest":
        return RestExpenseStore.from_config(config)
    repository = SQLiteRepository(config.database_file, table=config.expense_table)
    repository.initialise_schema()
    return repository


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Build the store and services once and close the store on shutdown."""

    config = load_config()
    configure_logging(config.log_level)
    store = create_store(config)

    app.state.config = config
    app.state.store = store
    app.state.expenses = ExpenseService(store, page_size=config.page_size)
    app.state.goals = GoalService()
    app.state.workspace = ExpenseWorkspace()
    app.state.goal_board = None
    logger.info("Started with the %s store backend", config.store_backend)

    yield

    store.close()


app = FastAPI(lifespan=lifespan, title="retail back-office backend", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BackofficeError)
async def backoffice_error_handler(_: Request, exc: BackofficeError) -> JSONResponse:
    status_code = 502 if isinstance(exc, StoreError) else 400
    logger.warning("Request failed: %s", exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# Dependency injection ------------------------------------------------------

def get_expense_service() -> ExpenseService:
    service: ExpenseService = app.state.expenses
    return service


def get_workspace() -> ExpenseWorkspace:
    workspace: ExpenseWorkspace = app.state.workspace
    return workspace


def get_goal_service() -> GoalService:
    service: GoalService = app.state.goals
    return service


def get_goal_board() -> GoalBoard:
    board: Optional[GoalBoard] = app.state.goal_board
    if board is None:
        raise HTTPException(status_code=409, detail="No goal data loaded. Process the sales files first.")
    return board


# Serialisation helpers -----------------------------------------------------

def _expense_payload(expense: CanonicalExpense) -> dict[str, object]:
    return {
        "id": expense.id,
        "branch": expense.branch,
        "group": expense.group,
        "subgroup": expense.subgroup,
        "cost_center": expense.cost_center,
        "chart_of_accounts": expense.chart_of_accounts,
        "vendor": expense.vendor,
        "title": expense.title,
        "date": expense.date_text,
        "amount": expense.amount,
        "status": expense.status.value,
        "reference_month": expense.reference_month,
        "reference_year": expense.reference_year,
        "dedup_key": expense.dedup_key,
        "is_new": expense.is_new,
    }


def _merge_payload(result: MergeResult) -> dict[str, object]:
    return {
        "total": len(result.merged),
        "new": len(result.new),
        "duplicates": len(result.duplicates),
    }


def _analysis_payload(analysis: ExpenseAnalysis) -> dict[str, object]:
    kpis = analysis.kpis
    pivot = analysis.pivot
    return {
        "expenses": [_expense_payload(expense) for expense in analysis.filtered],
        "kpis": {
            "total_paid": kpis.total_paid,
            "total_open": kpis.total_open,
            "largest_expense": _expense_payload(kpis.largest_expense) if kpis.largest_expense else None,
            "top_chart_of_accounts": kpis.top_chart_of_accounts,
            "top_chart_of_accounts_total": kpis.top_chart_of_accounts_total,
            "top_chart_of_accounts_pct": kpis.top_chart_of_accounts_pct,
        },
        "time_series": [
            {"period": point.period.key, "label": point.label, "value": point.value}
            for point in analysis.time_series
        ],
        "pivot": {
            "columns": [{"period": column.key, "label": column.short_label} for column in pivot.columns],
            "rows": [
                {
                    "chart_of_accounts": category,
                    "values": [pivot.cells[category][column] for column in pivot.columns],
                    "total": pivot.row_totals[category],
                }
                for category in pivot.rows
            ],
            "column_totals": [pivot.column_totals[column] for column in pivot.columns],
            "grand_total": pivot.grand_total,
        },
        "monthly": [
            {
                "period": month.period.key,
                "label": month.label,
                "total_paid": month.total_paid,
                "total_open": month.total_open,
                "count": len(month.expenses),
                "expenses": [_expense_payload(expense) for expense in largest_expenses(month.expenses)],
            }
            for month in analysis.monthly
        ],
    }


def _row_payload(row: HierarchyRow) -> dict[str, object]:
    return {
        "id": row.id,
        "branch": row.branch,
        "sector": row.sector,
        "department": row.department,
        "section": row.section,
        "sales_month_minus_2": row.sales_month_minus_2,
        "sales_month_minus_1": row.sales_month_minus_1,
        "sales_ref_month": row.sales_ref_month,
        "growth": row.growth,
        "projected_goal": row.projected_goal,
    }


def _summary_payload(summary: HierarchySummary) -> dict[str, object]:
    return {
        "rows": [_row_payload(row) for row in summary.filtered],
        "total_sales_ref": summary.total_sales_ref,
        "total_sales_minus_1": summary.total_sales_minus_1,
        "total_projected": summary.total_projected,
        "blended_growth": summary.blended_growth,
        "growth_vs_minus_1": summary.growth_vs_minus_1,
        "best_performer": _row_payload(summary.best_performer) if summary.best_performer else None,
        "worst_performer": _row_payload(summary.worst_performer) if summary.worst_performer else None,
        "level": summary.level_label,
    }


# Routes --------------------------------------------------------------------


@app.get("/health")
def health_check() -> dict[str, str]:
    """Liveness probe."""

    return {"status": "ok"}


@app.post("/expenses/fetch")
def fetch_expenses(
    start_month: Month,
    start_year: Year,
    end_month: Month,
    end_year: Year,
    service: Annotated[ExpenseService, Depends(get_expense_service)],
    workspace: Annotated[ExpenseWorkspace, Depends(get_workspace)],
) -> dict[str, object]:
    """Apply a view range and reload persisted expenses for it."""

    count = service.set_view_range(workspace, Period(start_month, start_year), Period(end_month, end_year))
    return {"count": count, "start": workspace.view_start.key, "end": workspace.view_end.key}


@app.post("/expenses/import")
async def import_expenses(
    month: Month,
    year: Year,
    file: Annotated[UploadFile, File(description="Expense spreadsheet (.xlsx, .xls or .csv)")],
    service: Annotated[ExpenseService, Depends(get_expense_service)],
    workspace: Annotated[ExpenseWorkspace, Depends(get_workspace)],
) -> dict[str, object]:
    data = await file.read()
    result = service.import_file(workspace, data, file.filename, Period(month, year))
    payload = _merge_payload(result)
    payload["filename"] = file.filename
    return payload


@app.get("/expenses/analysis")
def expense_analysis(
    service: Annotated[ExpenseService, Depends(get_expense_service)],
    workspace: Annotated[ExpenseWorkspace, Depends(get_workspace)],
    branch: str = "",
    group: str = "",
    subgroup: str = "",
    cost_center: str = "",
    chart_of_accounts: str = "",
    vendor: str = "",
) -> dict[str, object]:
    filters = ExpenseFilters(
        branch=branch,
        group=group,
        subgroup=subgroup,
        cost_center=cost_center,
        chart_of_accounts=chart_of_accounts,
        vendor=vendor,
    )
    payload = _analysis_payload(service.analyse(workspace, filters))
    payload["start"] = workspace.view_start.key
    payload["end"] = workspace.view_end.key
    return payload


@app.get("/expenses/filters")
def expense_filters(
    service: Annotated[ExpenseService, Depends(get_expense_service)],
    workspace: Annotated[ExpenseWorkspace, Depends(get_workspace)],
) -> dict[str, list[str]]:
    return service.filter_options(workspace).values


@app.post("/expenses/sync")
def sync_expenses(
    service: Annotated[ExpenseService, Depends(get_expense_service)],
    workspace: Annotated[ExpenseWorkspace, Depends(get_workspace)],
) -> dict[str, object]:
    synced = service.sync(workspace)
    return {"synced": synced, "period": workspace.import_period.key}


@app.post("/goals/process")
async def process_goals(
    minus_2: Annotated[UploadFile, File(description="Sales two months before the reference month")],
    minus_1: Annotated[UploadFile, File(description="Sales one month before the reference month")],
    current: Annotated[UploadFile, File(description="Sales of the reference month")],
    service: Annotated[GoalService, Depends(get_goal_service)],
) -> dict[str, object]:
    files = {
        "minus_2": (await minus_2.read(), minus_2.filename),
        "minus_1": (await minus_1.read(), minus_1.filename),
        "current": (await current.read(), current.filename),
    }
    board = service.process_files(files)
    app.state.goal_board = board
    return {"rows": len(board.rows)}


@app.post("/goals/sheet")
async def load_goal_sheet(
    file: Annotated[UploadFile, File(description="Goal sheet holding all three sales periods")],
    service: Annotated[GoalService, Depends(get_goal_service)],
) -> dict[str, object]:
    """Load a sheet that already carries month -2, month -1 and the reference month."""

    board = service.load_sheet(await file.read(), file.filename)
    app.state.goal_board = board
    return {"rows": len(board.rows)}


@app.get("/goals/summary")
def goals_summary(
    board: Annotated[GoalBoard, Depends(get_goal_board)],
    branch: str = "",
    sector: str = "",
    department: str = "",
) -> dict[str, object]:
    board.filters = HierarchyFilters(branch=branch, sector=sector, department=department)
    payload = _summary_payload(board.summary())
    payload["filters"] = board.filter_options().values
    return payload


@app.put("/goals/rows/{row_id}/growth")
def update_growth(
    row_id: str,
    value: float,
    board: Annotated[GoalBoard, Depends(get_goal_board)],
    service: Annotated[GoalService, Depends(get_goal_service)],
) -> dict[str, object]:
    try:
        row = service.update_growth(board, row_id, value)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown row {row_id}")
    return _row_payload(row)


@app.put("/goals/rows/{row_id}/goal")
def update_goal(
    row_id: str,
    value: str,
    board: Annotated[GoalBoard, Depends(get_goal_board)],
    service: Annotated[GoalService, Depends(get_goal_service)],
) -> dict[str, object]:
    try:
        row = service.update_goal(board, row_id, value)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown row {row_id}")
    if row is None:
        raise HTTPException(status_code=400, detail=f"Invalid goal value: {value!r}")
    return _row_payload(row)


@app.post("/goals/additional-pct")
def apply_additional_pct(
    delta: float,
    board: Annotated[GoalBoard, Depends(get_goal_board)],
    service: Annotated[GoalService, Depends(get_goal_service)],
    branch: str = "",
    sector: str = "",
    department: str = "",
) -> dict[str, object]:
    """Add ``delta`` growth points to the rows passing the given filters."""

    board.filters = HierarchyFilters(branch=branch, sector=sector, department=department)
    affected = service.apply_additional_pct(board, delta)
    return {"affected": affected, "additional_pct": board.additional_pct}
