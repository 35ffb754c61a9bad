"""Tests for header resolution against the keyword tables."""

import pytest

from backoffice.columns import (
    FIELD_KEYWORDS,
    PERIOD_VALUE_KEYWORDS,
    SALES_KEYWORDS,
    ColumnResolver,
    find_column,
    resolve,
    resolve_field,
)


class TestFindColumn:
    """Exact matches win over substring matches."""

    def test_exact_match_is_case_insensitive(self):
        assert find_column(["FILIAL", "Valor"], FIELD_KEYWORDS["branch"]) == "FILIAL"

    def test_exact_match_beats_earlier_substring(self):
        keys = ["Total Geral Anual", "Total"]
        assert find_column(keys, ("Total",)) == "Total"

    def test_exact_match_on_later_keyword_beats_substring_on_first(self):
        # "Valor Bruto" contains "Valor" but "Liquido" matches exactly.
        keys = ["Valor Bruto", "Liquido"]
        assert find_column(keys, FIELD_KEYWORDS["amount"]) == "Liquido"

    def test_substring_fallback(self):
        assert find_column(["Nome do Fornecedor"], FIELD_KEYWORDS["vendor"]) == "Nome do Fornecedor"

    def test_first_header_wins_within_tier(self):
        keys = ["Filial Origem", "Filial Destino"]
        assert find_column(keys, FIELD_KEYWORDS["branch"]) == "Filial Origem"

    def test_no_match(self):
        assert find_column(["Foo", "Bar"], FIELD_KEYWORDS["vendor"]) is None

    def test_excluded_fragments_are_skipped(self):
        keys = ["Data Venda", "Venda Liquida"]
        assert find_column(keys, PERIOD_VALUE_KEYWORDS, exclude=("data",)) == "Venda Liquida"


class TestResolve:
    def test_returns_value_of_matching_column(self):
        record = {"Loja": "Centro", "Vlr": 10}
        assert resolve(record, FIELD_KEYWORDS["branch"]) == "Centro"
        assert resolve_field(record, "amount") == 10

    def test_missing_column_gives_none(self):
        assert resolve({"Foo": 1}, FIELD_KEYWORDS["status"]) is None

    def test_sales_keywords_resolve_reference_month(self):
        record = {"Venda Mês Ant. 1": 90, "Venda Mês Ref": 100}
        assert resolve(record, SALES_KEYWORDS["sales_ref"]) == 100
        assert resolve(record, SALES_KEYWORDS["sales_minus_1"]) == 90

    def test_unknown_field_raises(self):
        with pytest.raises(KeyError):
            resolve_field({"Filial": "A"}, "nope")


class TestColumnResolver:
    def test_matches_uncached_resolution(self):
        resolver = ColumnResolver()
        first = {"Unidade": "A", "Valor Total": "10"}
        second = {"Unidade": "B", "Valor Total": "20"}

        assert resolver.get(first, "branch") == "A"
        assert resolver.get(second, "branch") == "B"
        assert resolver.get(second, "amount") == resolve_field(second, "amount")

    def test_different_header_sets_are_resolved_separately(self):
        resolver = ColumnResolver()
        assert resolver.column_for({"Filial": "A"}, "branch") == "Filial"
        assert resolver.column_for({"Loja": "B"}, "branch") == "Loja"
        assert resolver.get({"Outro": "C"}, "branch") is None
