"""Spreadsheet reconciliation backend for the retail back-office screens."""
