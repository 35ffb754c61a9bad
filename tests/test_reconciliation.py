"""Tests for merging imports with persisted rows and sales periods."""

import pytest

from backoffice.dedup import assign_dedup_keys
from backoffice.errors import ValidationError
from backoffice.models import Period
from backoffice.reconciliation import (
    merge_expenses,
    merge_sales_periods,
    pending_rows,
    process_goal_files,
)

PERIOD = Period(1, 2024)


@pytest.fixture
def persisted(make_expense):
    rows = [make_expense(id="10", title="NF 1"), make_expense(id="11", title="NF 2")]
    return assign_dedup_keys(rows, PERIOD)


@pytest.fixture
def incoming(make_expense):
    rows = [
        make_expense(id="temp-0", title="NF 1", is_new=True),
        make_expense(id="temp-1", title="NF 3", is_new=True),
    ]
    return assign_dedup_keys(rows, PERIOD)


class TestMergeExpenses:
    """Reconciliation of an import batch against the persisted ledger."""

    def test_only_unseen_keys_are_new(self, persisted, incoming):
        result = merge_expenses(persisted, incoming)

        assert [row.id for row in result.merged] == ["10", "11", "temp-1"]
        assert [row.is_new for row in result.merged] == [False, False, True]
        assert [row.id for row in result.new] == ["temp-1"]
        assert [row.id for row in result.duplicates] == ["temp-0"]

    def test_persisted_rows_are_never_new(self, persisted):
        persisted[0].is_new = True

        result = merge_expenses(persisted, [])

        assert not any(row.is_new for row in result.merged)

    def test_inputs_are_not_mutated(self, persisted, incoming):
        before = [(row.id, row.is_new) for row in persisted + incoming]

        merge_expenses(persisted, incoming)

        assert [(row.id, row.is_new) for row in persisted + incoming] == before

    def test_merging_is_deterministic(self, persisted, incoming):
        first = merge_expenses(persisted, incoming)
        second = merge_expenses(persisted, incoming)

        assert [(row.id, row.is_new) for row in first.merged] == [
            (row.id, row.is_new) for row in second.merged
        ]

    def test_remerging_a_batch_adds_nothing(self, persisted, incoming):
        """Merging the same batch into the merged ledger finds only duplicates."""
        first = merge_expenses(persisted, incoming)

        second = merge_expenses(first.merged, incoming)

        assert second.new == []
        assert len(second.duplicates) == len(incoming)
        assert [row.id for row in second.merged] == [row.id for row in first.merged]
        assert not any(row.is_new for row in second.merged)

    def test_repeated_key_within_a_batch_is_kept_once(self, make_expense):
        batch = assign_dedup_keys(
            [make_expense(id="temp-0"), make_expense(id="temp-1")],
            PERIOD,
        )

        result = merge_expenses([], batch)

        assert [row.id for row in result.new] == ["temp-0"]
        assert [row.id for row in result.duplicates] == ["temp-1"]

    def test_pending_rows(self, persisted, incoming):
        merged = merge_expenses(persisted, incoming).merged
        assert [row.id for row in pending_rows(merged)] == ["temp-1"]


def _sales(branch, section, value, header="Venda"):
    return {"Filial": branch, "Setor": "S", "Departamento": "D", "Seção": section, header: value}


class TestMergeSalesPeriods:
    def test_union_of_identities_across_files(self):
        minus_2 = [_sales("Loja 1", "A", "100"), _sales("Loja 1", "B", "50")]
        minus_1 = [_sales("Loja 1", "A", "110")]
        current = [_sales("Loja 1", "A", "121"), _sales("Loja 2", "C", "80")]

        rows = merge_sales_periods(minus_2, minus_1, current)

        by_section = {row.section: row for row in rows}
        assert set(by_section) == {"A", "B", "C"}
        assert (by_section["A"].sales_month_minus_2, by_section["A"].sales_month_minus_1, by_section["A"].sales_ref_month) == (
            100.0,
            110.0,
            121.0,
        )
        assert (by_section["B"].sales_month_minus_1, by_section["B"].sales_ref_month) == (0.0, 0.0)
        assert by_section["C"].sales_month_minus_2 == 0.0
        assert by_section["C"].sales_ref_month == 80.0

    def test_rows_start_with_goal_equal_to_reference_sales(self):
        rows = merge_sales_periods([], [], [_sales("Loja 1", "A", "1.000,00")])

        assert rows[0].growth == 0.0
        assert rows[0].projected_goal == 1000.0
        assert rows[0].id == "0"

    def test_value_column_ignores_date_headers(self):
        record = {"Filial": "Loja 1", "Seção": "A", "Data Venda": "01/01/2024", "Total Vendido": "10"}

        rows = merge_sales_periods([], [], [record])

        assert rows[0].sales_ref_month == 10.0

    def test_blank_identity_rows_are_skipped(self):
        assert merge_sales_periods([], [], [{"Venda": "10"}]) == []


class TestProcessGoalFiles:
    def test_requires_all_three_files(self):
        with pytest.raises(ValidationError, match="minus_1"):
            process_goal_files({"minus_2": (b"x", "a.csv"), "current": (b"x", "c.csv")})

    def test_decodes_and_merges(self):
        def csv(value):
            return f"Filial;Setor;Departamento;Seção;Venda\nLoja 1;S;D;A;{value}\n".encode("utf-8")

        rows = process_goal_files(
            {
                "minus_2": (csv("100"), "m2.csv"),
                "minus_1": (csv("110"), "m1.csv"),
                "current": (csv("121"), "ref.csv"),
            }
        )

        assert len(rows) == 1
        assert rows[0].sales_month_minus_2 == 100.0
        assert rows[0].sales_ref_month == 121.0
