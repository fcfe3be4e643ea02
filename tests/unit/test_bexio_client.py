"""
Tests unitarios para bexio_client.py.

Verifica el protocolo de paginación contra bexio:
- limit/offset hasta la primera página corta
- respuestas envueltas en `data` equivalentes a listas planas
- 404/500 como colección vacía, resto de errores con contexto
- throttle fijo entre requests
"""
from __future__ import annotations

import pytest

from bexio_sync.infrastructure.external.bexio_sync.bexio_client import (
    BexioApiError,
    BexioClient,
    BexioCredentials,
    extract_items,
)


def _items(n: int) -> list[dict]:
    return [{"id": i, "name": f"item-{i}"} for i in range(1, n + 1)]


def _client(backend, **kwargs) -> BexioClient:
    kwargs.setdefault("request_delay_s", 0.0)
    return BexioClient(
        BexioCredentials(token="tok"),
        session=backend,
        base_url=backend.bexio_url,
        **kwargs,
    )


class _FakeClock:
    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestPagination:

    def test_concatenates_pages_until_short_page(self, fake_backend) -> None:
        items = _items(1200)
        fake_backend.collections["/2.0/contact"] = items

        result = _client(fake_backend, page_size=500).fetch_all("/2.0/contact")

        assert result == items
        offsets = [c["params"]["offset"] for c in fake_backend.gets()]
        assert offsets == [0, 500, 1000]
        assert all(c["params"]["limit"] == 500 for c in fake_backend.gets())

    def test_exact_multiple_issues_one_extra_empty_request(self, fake_backend) -> None:
        fake_backend.collections["/2.0/kb_invoice"] = _items(1000)

        result = _client(fake_backend, page_size=500).fetch_all("/2.0/kb_invoice")

        assert len(result) == 1000
        assert len(fake_backend.gets()) == 3

    def test_first_page_empty_is_single_request(self, fake_backend) -> None:
        fake_backend.collections["/2.0/kb_invoice"] = []

        assert _client(fake_backend).fetch_all("/2.0/kb_invoice") == []
        assert len(fake_backend.gets()) == 1

    def test_envelope_and_bare_array_yield_same_items(self, fake_backend) -> None:
        items = _items(7)
        fake_backend.collections["/4.0/purchase/bills"] = items
        fake_backend.collections["/2.0/kb_order"] = items
        fake_backend.envelope_paths.add("/4.0/purchase/bills")

        client = _client(fake_backend, page_size=3)

        assert client.fetch_all("/4.0/purchase/bills") == client.fetch_all("/2.0/kb_order")

    def test_extra_params_are_sent_with_limit_and_offset(self, fake_backend) -> None:
        _client(fake_backend).fetch_all("/3.0/accounting/journal", params={"from": "2024-01-01"})

        params = fake_backend.gets()[0]["params"]
        assert params == {"from": "2024-01-01", "limit": 500, "offset": 0}

    def test_sends_bearer_token(self, fake_backend) -> None:
        _client(fake_backend).fetch_all("/2.0/contact")

        headers = fake_backend.gets()[0]["headers"]
        assert headers["Authorization"] == "Bearer tok"
        assert headers["Accept"] == "application/json"

    def test_upstream_ignoring_offset_hits_max_pages(self, fake_backend) -> None:
        fake_backend.collections["/2.0/contact"] = lambda params: fake_backend.response(200, _items(2))

        with pytest.raises(BexioApiError, match="3 páginas"):
            _client(fake_backend, page_size=2, max_pages=3).fetch_all("/2.0/contact")

        assert len(fake_backend.gets()) == 3

    def test_invalid_page_size(self, fake_backend) -> None:
        with pytest.raises(ValueError):
            _client(fake_backend, page_size=0)


class TestFailurePolicy:

    @pytest.mark.parametrize("status", [404, 500])
    def test_unavailable_resource_is_empty(self, fake_backend, status: int) -> None:
        fake_backend.collections["/4.0/payroll/employees"] = fake_backend.response(status, text="nope")

        assert _client(fake_backend).fetch_all("/4.0/payroll/employees") == []

    def test_other_status_raises_with_endpoint_status_and_truncated_body(self, fake_backend) -> None:
        fake_backend.collections["/2.0/contact"] = fake_backend.response(403, text="x" * 1000)

        with pytest.raises(BexioApiError) as exc_info:
            _client(fake_backend).fetch_all("/2.0/contact")

        err = exc_info.value
        assert err.endpoint == "/2.0/contact"
        assert err.status_code == 403
        assert "/2.0/contact" in str(err)
        assert "403" in str(err)
        assert "x" * 300 in str(err)
        assert "x" * 301 not in str(err)

    def test_no_retry_on_error(self, fake_backend) -> None:
        fake_backend.collections["/2.0/contact"] = fake_backend.response(429, text="rate limited")

        with pytest.raises(BexioApiError):
            _client(fake_backend).fetch_all("/2.0/contact")

        assert len(fake_backend.gets()) == 1


class TestThrottle:

    def test_waits_fixed_delay_before_each_request(self, fake_backend) -> None:
        clock = _FakeClock()
        fake_backend.collections["/2.0/contact"] = _items(5)

        client = _client(fake_backend, page_size=2, request_delay_s=0.2, sleep=clock.sleep, clock=clock)
        client.fetch_all("/2.0/contact")

        assert clock.sleeps == pytest.approx([0.2, 0.2, 0.2])

    def test_time_spent_in_request_counts_towards_delay(self, fake_backend) -> None:
        clock = _FakeClock()

        def _advance() -> None:
            clock.now += 0.05

        fake_backend.on_request = _advance
        fake_backend.collections["/2.0/contact"] = _items(3)

        client = _client(fake_backend, page_size=2, request_delay_s=0.2, sleep=clock.sleep, clock=clock)
        client.fetch_all("/2.0/contact")

        assert clock.sleeps == pytest.approx([0.2, 0.15])


class TestExtractItems:

    def test_shapes(self) -> None:
        assert extract_items([{"id": 1}]) == [{"id": 1}]
        assert extract_items({"data": [{"id": 1}]}) == [{"id": 1}]
        assert extract_items({"data": "oops"}) == []
        assert extract_items({"items": [1]}) == []
        assert extract_items(None) == []
