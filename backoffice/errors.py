"""Exception types raised by the back-office services.

Data-quality problems inside a spreadsheet never raise: the normalisers
degrade malformed cells to defaults.  The exceptions below cover the cases
that must be surfaced to the user and abort the current action.
"""
from __future__ import annotations


class BackofficeError(Exception):
    """Base class for errors reported to the user."""


class WorkbookDecodeError(BackofficeError):
    """The uploaded bytes could not be read as a spreadsheet."""


class StoreError(BackofficeError):
    """Reading from or writing to the persisted store failed."""


class ValidationError(BackofficeError):
    """The requested action is not possible with the current state."""


__all__ = [
    "BackofficeError",
    "WorkbookDecodeError",
    "StoreError",
    "ValidationError",
]
