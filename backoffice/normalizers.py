"""Cell normalisers for spreadsheet imports.

Every function in this module always succeeds.  A malformed currency cell
becomes ``0.0``, an unknown date representation is passed through as text and
an unrecognised status counts as paid, so one bad cell can never abort the
import of an entire file.
"""
from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation

from .models import ExpenseStatus

# Days between the spreadsheet epoch (serial 0) and 1970-01-01.
SPREADSHEET_EPOCH_OFFSET = 25569

_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_NUMERIC_PREFIX = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)")
_OPEN_MARKERS = ("aberto", "pendente")


def parse_currency(value: object) -> float:
    """Return ``value`` as a float, understanding pt-BR formatted strings.

    ``"1.234,56"`` and ``"1234.56"`` both give ``1234.56``; ``"R$ 50"`` gives
    ``50.0``.  Empty or unparseable input gives ``0.0``.
    """

    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0

    text = re.sub(r"\s+", "", str(value).replace("R$", ""))
    if not text:
        return 0.0

    last_comma = text.rfind(",")
    last_dot = text.rfind(".")
    if last_comma >= 0 and last_dot >= 0:
        if last_comma > last_dot:
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif last_comma >= 0:
        # Only the first comma is a decimal point; the prefix parse stops at the next.
        text = text.replace(",", ".", 1)

    match = _NUMERIC_PREFIX.match(text)
    if not match:
        return 0.0
    try:
        return float(Decimal(match.group(0)))
    except (InvalidOperation, ValueError):
        return 0.0


def parse_spreadsheet_date(value: object) -> str:
    """Render a date cell as ``dd/mm/yyyy`` text.

    Numbers are spreadsheet serial dates.  Typed dates (pandas returns
    :class:`~datetime.datetime` objects for date-formatted Excel cells) are
    formatted the same way.  Any other text is returned unchanged.
    """

    if value is None or value == "":
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return ""
        milliseconds = round((value - SPREADSHEET_EPOCH_OFFSET) * 86400 * 1000)
        try:
            moment = _UNIX_EPOCH + timedelta(milliseconds=milliseconds)
        except OverflowError:
            return str(value)
        return moment.strftime("%d/%m/%Y")
    if isinstance(value, (datetime, date)):
        return value.strftime("%d/%m/%Y")
    return str(value)


def parse_status(value: object) -> ExpenseStatus:
    if value is None:
        return ExpenseStatus.PAID
    lowered = str(value).lower()
    if any(marker in lowered for marker in _OPEN_MARKERS):
        return ExpenseStatus.OPEN
    return ExpenseStatus.PAID


__all__ = [
    "SPREADSHEET_EPOCH_OFFSET",
    "parse_currency",
    "parse_spreadsheet_date",
    "parse_status",
]
