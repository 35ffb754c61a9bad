"""Tests for the REST expense store, with the HTTP session stubbed out."""

import pytest
import requests

from backoffice.config import load_config
from backoffice.errors import StoreError
from backoffice.remote_store import RestExpenseStore


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse([])
        self.error = error
        self.calls = []
        self.closed = False

    def _call(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response

    def get(self, url, **kwargs):
        return self._call("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._call("POST", url, **kwargs)

    def close(self):
        self.closed = True


def _store(session, api_key="secret"):
    return RestExpenseStore("https://example.test/", api_key=api_key, session=session)


class TestFetchPage:
    def test_builds_range_query(self):
        session = FakeSession(FakeResponse([{"id": 1}]))

        page = _store(session).fetch_page(2024, 2025, 1000, 1000)

        assert page == [{"id": 1}]
        method, url, kwargs = session.calls[0]
        assert method == "GET"
        assert url == "https://example.test/rest/v1/despesas"
        assert ("ano_referencia", "gte.2024") in kwargs["params"]
        assert ("ano_referencia", "lte.2025") in kwargs["params"]
        assert ("offset", "1000") in kwargs["params"]
        assert ("limit", "1000") in kwargs["params"]
        assert kwargs["headers"]["apikey"] == "secret"
        assert kwargs["headers"]["Authorization"] == "Bearer secret"

    def test_no_key_means_no_auth_headers(self):
        session = FakeSession()
        _store(session, api_key=None).fetch_page(2024, 2024, 0, 10)
        assert "Authorization" not in session.calls[0][2]["headers"]

    def test_http_error(self):
        session = FakeSession(FakeResponse(status_code=500))
        with pytest.raises(StoreError):
            _store(session).fetch_page(2024, 2024, 0, 10)

    def test_connection_error(self):
        session = FakeSession(error=requests.ConnectionError("down"))
        with pytest.raises(StoreError):
            _store(session).fetch_page(2024, 2024, 0, 10)

    def test_unexpected_payload(self):
        session = FakeSession(FakeResponse({"message": "nope"}))
        with pytest.raises(StoreError):
            _store(session).fetch_page(2024, 2024, 0, 10)


class TestUpsert:
    def test_posts_with_ignore_duplicates(self):
        session = FakeSession(FakeResponse(None, status_code=201))

        count = _store(session).upsert_expenses([{"hash_id": "a"}, {"hash_id": "b"}])

        assert count == 2
        method, _, kwargs = session.calls[0]
        assert method == "POST"
        assert kwargs["params"] == {"on_conflict": "hash_id"}
        assert kwargs["headers"]["Prefer"].startswith("resolution=ignore-duplicates")
        assert kwargs["json"] == [{"hash_id": "a"}, {"hash_id": "b"}]

    def test_empty_batch_makes_no_request(self):
        session = FakeSession()
        assert _store(session).upsert_expenses([]) == 0
        assert session.calls == []

    def test_failure(self):
        session = FakeSession(FakeResponse(status_code=409))
        with pytest.raises(StoreError):
            _store(session).upsert_expenses([{"hash_id": "a"}])


def test_from_config(monkeypatch):
    monkeypatch.setenv("BACKOFFICE_STORE_BACKEND", "rest")
    monkeypatch.setenv("BACKOFFICE_STORE_URL", "https://example.test")
    monkeypatch.setenv("BACKOFFICE_EXPENSE_TABLE", "gastos")

    store = RestExpenseStore.from_config(load_config())
    try:
        assert store._endpoint == "https://example.test/rest/v1/gastos"
    finally:
        store.close()
