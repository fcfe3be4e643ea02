"""
Configuración de fixtures para pytest.

`FakeBackend` reemplaza a `requests.Session`: responde los GET como la API de
bexio (paginación limit/offset) y los POST como PostgREST (merge por `id`).
Registra cada request para poder afirmar cuántas llamadas hubo.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pytest

from bexio_sync.core.config import Settings


BEXIO_URL = "https://bexio.test"
SUPABASE_URL = "https://project.supabase.test"
CRON_SECRET = "s3cret"


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self) -> Any:
        return self._payload


Source = Union[List[Dict[str, Any]], FakeResponse, Callable[[Dict[str, Any]], FakeResponse]]


class FakeBackend:
    """Sesión HTTP falsa para bexio + Supabase."""

    bexio_url = BEXIO_URL
    supabase_url = SUPABASE_URL
    cron_secret = CRON_SECRET
    response = FakeResponse

    def __init__(self, on_request: Optional[Callable[[], None]] = None) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.collections: Dict[str, Source] = {}
        self.envelope_paths: set[str] = set()
        self.tables: Dict[str, Dict[Any, Dict[str, Any]]] = {}
        self.posts: List[Tuple[str, List[Dict[str, Any]]]] = []
        self._failures: Dict[str, Tuple[int, int]] = {}
        self.on_request = on_request

    # -- configuración -----------------------------------------------------

    def fail_table(self, table: str, status: int = 500, after: int = 0) -> None:
        """Hace fallar los POST a `table` después de `after` lotes exitosos."""
        self._failures[table] = (status, after)

    # -- requests.Session --------------------------------------------------

    def request(self, method, url, params=None, headers=None, json=None, timeout=None):
        self.calls.append({
            "method": method,
            "url": url,
            "params": dict(params or {}),
            "headers": dict(headers or {}),
            "json": json,
        })
        if self.on_request:
            self.on_request()
        if method == "GET":
            return self._bexio(url, dict(params or {}))
        return self._postgrest(url, list(json or []))

    # -- helpers de aserción -----------------------------------------------

    def gets(self, path: Optional[str] = None) -> List[Dict[str, Any]]:
        calls = [c for c in self.calls if c["method"] == "GET"]
        if path is not None:
            calls = [c for c in calls if c["url"] == f"{BEXIO_URL}{path}"]
        return calls

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return list(self.tables.get(table, {}).values())

    # -- implementación ----------------------------------------------------

    def _bexio(self, url: str, params: Dict[str, Any]) -> FakeResponse:
        path = url[len(BEXIO_URL):]
        source = self.collections.get(path, [])
        if isinstance(source, FakeResponse):
            return source
        if callable(source):
            return source(params)
        limit, offset = int(params["limit"]), int(params["offset"])
        page = source[offset:offset + limit]
        payload = {"data": page} if path in self.envelope_paths else page
        return FakeResponse(200, payload)

    def _postgrest(self, url: str, rows: List[Dict[str, Any]]) -> FakeResponse:
        table = url.rsplit("/rest/v1/", 1)[1]
        ok_posts = sum(1 for t, _ in self.posts if t == table)
        failure = self._failures.get(table)
        if failure and ok_posts >= failure[1]:
            return FakeResponse(failure[0], text=f'{{"message":"write to {table} failed"}}')

        self.posts.append((table, rows))
        store = self.tables.setdefault(table, {})
        for row in rows:
            key = row["id"] if "id" in row else f"auto-{len(store)}"
            store.setdefault(key, {}).update(row)
        return FakeResponse(201, None)


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Settings completos para tests, sin leer `.env`."""

    def _make(**overrides: Any) -> Settings:
        values: Dict[str, Any] = {
            "BEXIO_PAT": "bexio-token",
            "BEXIO_API_URL": BEXIO_URL,
            "BEXIO_REQUEST_DELAY_S": 0.0,
            "SUPABASE_URL": SUPABASE_URL,
            "SUPABASE_SERVICE_KEY": "service-key",
            "CRON_SECRET": CRON_SECRET,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make
