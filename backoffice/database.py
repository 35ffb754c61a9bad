"""SQLite persistence layer for the back-office backend.

The repository implements the expense store collaborator on top of the
standard library :mod:`sqlite3` module.  It mirrors the layout of the remote
``despesas`` collection so both stores exchange the same records: reads page
through a year range, writes insert keyed on ``hash_id`` and silently skip
keys that already exist.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from .errors import StoreError

logger = logging.getLogger(__name__)

EXPENSE_COLUMNS = (
    "filial",
    "grupo",
    "subgrupo",
    "centro_custo",
    "plano_contas",
    "fornecedor",
    "titulo",
    "valor",
    "status",
    "data_despesa",
    "mes_referencia",
    "ano_referencia",
    "hash_id",
)


class SQLiteRepository:
    """Encapsulates all SQLite access for the application."""

    def __init__(self, database_path: Path | str, table: str = "despesas") -> None:
        if not table.isidentifier():
            raise ValueError(f"Invalid table name: {table!r}")
        self._database_path = database_path
        self._table = table
        self._connection = sqlite3.connect(database_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row

    def close(self) -> None:
        """Close the underlying SQLite connection."""

        self._connection.close()

    # ------------------------------------------------------------------
    # Schema management
    # ------------------------------------------------------------------
    def initialise_schema(self) -> None:
        """Create the expense table if it does not exist."""

        cursor = self._connection.cursor()
        cursor.executescript(
            f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                filial TEXT,
                grupo TEXT,
                subgrupo TEXT,
                centro_custo TEXT,
                plano_contas TEXT,
                fornecedor TEXT,
                titulo TEXT,
                valor REAL NOT NULL DEFAULT 0,
                status TEXT NOT NULL,
                data_despesa TEXT,
                mes_referencia INTEGER NOT NULL,
                ano_referencia INTEGER NOT NULL,
                hash_id TEXT NOT NULL UNIQUE,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_{self._table}_periodo
                ON {self._table} (ano_referencia, mes_referencia);
            """
        )
        self._connection.commit()

    # ------------------------------------------------------------------
    # Expense persistence
    # ------------------------------------------------------------------
    def upsert_expenses(self, records: Iterable[dict[str, object]]) -> int:
        """Insert expense records, ignoring those whose ``hash_id`` exists.

        Returns the number of records submitted, matching what a remote store
        reports for an ignore-duplicates upsert.
        """

        rows = [self._bind(record) for record in records]
        placeholders = ", ".join(f":{column}" for column in EXPENSE_COLUMNS)
        try:
            with self._connection:
                before = self._connection.total_changes
                self._connection.executemany(
                    f"""
                    INSERT INTO {self._table} ({", ".join(EXPENSE_COLUMNS)}, created_at)
                    VALUES ({placeholders}, :created_at)
                    ON CONFLICT(hash_id) DO NOTHING
                    """,
                    rows,
                )
                inserted = self._connection.total_changes - before
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to write expenses: {exc}") from exc
        logger.info("Stored %d of %d submitted expenses", inserted, len(rows))
        return len(rows)

    def fetch_page(self, start_year: int, end_year: int, offset: int, limit: int) -> list[dict[str, Any]]:
        """Return one page of expenses whose reference year is in range."""

        try:
            rows = self._connection.execute(
                f"""
                SELECT * FROM {self._table}
                WHERE ano_referencia >= ? AND ano_referencia <= ?
                ORDER BY id
                LIMIT ? OFFSET ?
                """,
                (start_year, end_year, limit, offset),
            ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read expenses: {exc}") from exc
        return [dict(row) for row in rows]

    def count_expenses(self) -> int:
        row = self._connection.execute(f"SELECT COUNT(*) AS total FROM {self._table}").fetchone()
        return int(row["total"]) if row else 0

    @staticmethod
    def _bind(record: dict[str, object]) -> dict[str, object]:
        payload = {column: record.get(column) for column in EXPENSE_COLUMNS}
        payload["created_at"] = datetime.now(timezone.utc).isoformat(timespec="seconds")
        return payload


__all__ = ["EXPENSE_COLUMNS", "SQLiteRepository"]
