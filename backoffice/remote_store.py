"""REST client for a remote expense collection.

The remote store speaks the PostgREST dialect: collections live under
``{base_url}/rest/v1/{table}``, filters are query parameters such as
``ano_referencia=gte.2024`` and an insert that should skip existing keys is a
``POST`` with ``on_conflict`` and ``Prefer: resolution=ignore-duplicates``.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from .config import AppConfig
from .errors import StoreError

logger = logging.getLogger(__name__)


class RestExpenseStore:
    """Read and write expense records through the remote REST API."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        table: str = "despesas",
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._endpoint = f"{base_url.rstrip('/')}/rest/v1/{table}"
        self._api_key = api_key
        self._timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, config: AppConfig) -> "RestExpenseStore":
        if not config.store_url:
            raise ValueError("BACKOFFICE_STORE_URL must be set to use the rest store backend")
        return cls(
            config.store_url,
            api_key=config.store_key,
            table=config.expense_table,
            timeout=config.request_timeout,
        )

    def close(self) -> None:
        self._session.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def fetch_page(self, start_year: int, end_year: int, offset: int, limit: int) -> list[dict[str, Any]]:
        params = [
            ("select", "*"),
            ("ano_referencia", f"gte.{start_year}"),
            ("ano_referencia", f"lte.{end_year}"),
            ("order", "id"),
            ("offset", str(offset)),
            ("limit", str(limit)),
        ]
        try:
            response = self._session.get(
                self._endpoint,
                params=params,
                headers=self._headers(),
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise StoreError(f"Failed to fetch expenses: {exc}") from exc

        if not isinstance(payload, list):
            raise StoreError("Unexpected payload returned by the expense store")
        return payload

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def upsert_expenses(self, records: list[dict[str, object]]) -> int:
        if not records:
            return 0
        headers = self._headers()
        headers["Content-Type"] = "application/json"
        headers["Prefer"] = "resolution=ignore-duplicates,return=minimal"
        try:
            response = self._session.post(
                self._endpoint,
                params={"on_conflict": "hash_id"},
                json=records,
                headers=headers,
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise StoreError(f"Failed to sync expenses: {exc}") from exc
        logger.info("Submitted %d expenses to %s", len(records), self._endpoint)
        return len(records)


__all__ = ["RestExpenseStore"]
