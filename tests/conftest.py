"""Shared fixtures for the back-office test suite.

The FastAPI lifespan reads its configuration from the environment, and a
developer's ``.env`` could point the app at a real store.  The autouse
fixture below pins every test to the SQLite backend with a database file in
the test's own temporary directory.
"""

from __future__ import annotations

import io
import os
from pathlib import Path
from typing import Callable

import pandas as pd
import pytest

from backoffice.models import CanonicalExpense, ExpenseStatus, HierarchyRow


@pytest.fixture(autouse=True)
def _isolate_store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BACKOFFICE_STORE_BACKEND", "sqlite")
    monkeypatch.setenv("BACKOFFICE_DB_FILE", os.fspath(tmp_path / "backoffice.db"))
    monkeypatch.delenv("BACKOFFICE_STORE_URL", raising=False)
    monkeypatch.delenv("BACKOFFICE_PAGE_SIZE", raising=False)


@pytest.fixture
def make_expense() -> Callable[..., CanonicalExpense]:
    """Factory for expenses with sensible defaults; override any field."""

    def factory(**overrides) -> CanonicalExpense:
        values = dict(
            id="1",
            branch="Loja 1",
            group="Operacional",
            subgroup="Utilidades",
            cost_center="ADM",
            chart_of_accounts="Energia",
            vendor="Companhia de Luz",
            title="Conta de luz",
            date_text="10/01/2024",
            amount=100.0,
            status=ExpenseStatus.PAID,
            reference_month=1,
            reference_year=2024,
            dedup_key="",
            is_new=False,
        )
        values.update(overrides)
        return CanonicalExpense(**values)

    return factory


@pytest.fixture
def make_row() -> Callable[..., HierarchyRow]:
    def factory(**overrides) -> HierarchyRow:
        values = dict(
            id="0",
            branch="Loja 1",
            sector="Mercearia",
            department="Bebidas",
            section="Refrigerantes",
            sales_month_minus_2=0.0,
            sales_month_minus_1=0.0,
            sales_ref_month=0.0,
            growth=0.0,
            projected_goal=0.0,
        )
        values.update(overrides)
        row = HierarchyRow(**values)
        if "projected_goal" not in overrides:
            row.projected_goal = row.sales_ref_month
        return row

    return factory


@pytest.fixture
def xlsx_bytes() -> Callable[[list[dict]], bytes]:
    """Write records to an in-memory workbook with a single sheet."""

    def factory(records: list[dict]) -> bytes:
        buffer = io.BytesIO()
        pd.DataFrame(records).to_excel(buffer, index=False, engine="openpyxl")
        return buffer.getvalue()

    return factory


EXPENSE_CSV = (
    "Filial;Fornecedor;Valor;Data;Titulo;Plano de Contas;Status\n"
    "Loja 1;ACME Ltda;1.234,56;10/01/2024;NF 100;Energia;Pago\n"
    "Loja 2;Beta SA;R$ 50,00;12/01/2024;NF 200;Aluguel;Em aberto\n"
    "Loja 1;Gama ME;300;15/01/2024;NF 300;Energia;Pago\n"
).encode("utf-8")


@pytest.fixture
def expense_csv() -> bytes:
    return EXPENSE_CSV
