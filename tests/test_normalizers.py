"""Tests for the cell normalisers."""

from datetime import datetime

import pytest

from backoffice.models import ExpenseStatus
from backoffice.normalizers import parse_currency, parse_spreadsheet_date, parse_status


class TestParseCurrency:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("1.234,56", 1234.56),
            ("1234.56", 1234.56),
            ("R$ 50", 50.0),
            ("R$ 1.500,50", 1500.5),
            ("1,5", 1.5),
            ("1,234.56", 1234.56),
            ("-12,50", -12.5),
            ("  300 ", 300.0),
            (42, 42.0),
            (10.25, 10.25),
        ],
    )
    def test_parses_formatted_values(self, raw, expected):
        assert parse_currency(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", ["", None, "abc", "R$", float("nan"), True])
    def test_unusable_input_gives_zero(self, raw):
        assert parse_currency(raw) == 0.0

    def test_trailing_text_is_ignored(self):
        assert parse_currency("150,00 BRL") == pytest.approx(150.0)

    def test_repeated_commas_stop_at_the_second(self):
        """Only the first comma is a decimal point, like the stored keys expect."""
        assert parse_currency("1,234,567") == pytest.approx(1.234)


class TestParseSpreadsheetDate:
    def test_serial_number(self):
        assert parse_spreadsheet_date(45000) == "15/03/2023"

    def test_fractional_serial_keeps_the_day(self):
        assert parse_spreadsheet_date(45000.75) == "15/03/2023"

    def test_typed_datetime(self):
        assert parse_spreadsheet_date(datetime(2024, 2, 5, 13, 30)) == "05/02/2024"

    def test_text_passes_through(self):
        assert parse_spreadsheet_date("2024-01-10") == "2024-01-10"

    @pytest.mark.parametrize("raw", [None, ""])
    def test_absent_date_is_empty(self, raw):
        assert parse_spreadsheet_date(raw) == ""


class TestParseStatus:
    @pytest.mark.parametrize("raw", ["Aberto", "EM ABERTO", "pendente", "Pendente de aprovação"])
    def test_open_markers(self, raw):
        assert parse_status(raw) is ExpenseStatus.OPEN

    @pytest.mark.parametrize("raw", ["Pago", "Liquidado", "", None, 1])
    def test_anything_else_is_paid(self, raw):
        assert parse_status(raw) is ExpenseStatus.PAID
