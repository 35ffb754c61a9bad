"""Content-derived keys used to recognise the same expense across imports."""
from __future__ import annotations

import math
import re
from dataclasses import replace
from typing import Iterable

from .models import CanonicalExpense, Period

_WHITESPACE = re.compile(r"\s+")


def format_amount(amount: float) -> str:
    """Render an amount the way keys already persisted in the store do.

    Integral amounts carry no fractional part (``100`` rather than
    ``100.0``); other values use the shortest round-trip representation.
    """

    if isinstance(amount, float) and math.isfinite(amount) and amount.is_integer():
        return str(int(amount))
    return repr(amount) if isinstance(amount, float) else str(amount)


def dedup_key(expense: CanonicalExpense, month: int, year: int) -> str:
    """Return the deduplication key of ``expense`` for a reporting period.

    The key concatenates branch, vendor, amount, date text, title, month and
    year with ``|``, drops every whitespace character and lower-cases the
    result.  Two distinct real expenses that agree on all of these fields
    share a key and are treated as one.
    """

    raw = "|".join(
        [
            expense.branch,
            expense.vendor,
            format_amount(expense.amount),
            expense.date_text,
            expense.title,
            str(month),
            str(year),
        ]
    )
    return _WHITESPACE.sub("", raw).lower()


def assign_dedup_keys(expenses: Iterable[CanonicalExpense], period: Period) -> list[CanonicalExpense]:
    """Return copies of ``expenses`` stamped with ``period`` and their keys."""

    return [
        replace(
            expense,
            reference_month=period.month,
            reference_year=period.year,
            dedup_key=dedup_key(expense, period.month, period.year),
        )
        for expense in expenses
    ]


__all__ = ["format_amount", "dedup_key", "assign_dedup_keys"]
