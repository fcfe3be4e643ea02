"""
Cliente mínimo de la REST API de bexio (sin SDKs externos).

Requisitos cubiertos:
- requests
- paginación por limit/offset
- throttle fijo entre requests (límite de rate compartido por cuenta)
- 404/500 se tratan como "recurso no disponible" (colección vacía)
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

import requests
from loguru import logger

from .types import truncate

DEFAULT_BASE_URL = "https://api.bexio.com"
UNAVAILABLE_STATUSES = (404, 500)


@dataclass(frozen=True)
class BexioCredentials:
    token: str


class BexioApiError(RuntimeError):
    """Error de integración con bexio."""

    def __init__(self, message: str, *, endpoint: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code


def extract_items(payload: Any) -> list[dict[str, Any]]:
    """
    Normaliza la forma de una respuesta de listado:
    - lista JSON: se devuelve tal cual
    - objeto con 'data' lista (endpoints 4.0): se desenvuelve
    - cualquier otra cosa: lista vacía
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return payload["data"]
    return []


class BexioClient:
    """
    Cliente HTTP de bexio. Expone un generator de páginas y un fetch completo.

    Importante:
    - No hace cast de tipos: eso lo decide la transformación de cada entidad.
    - Sin reintentos: cada offset se pide una sola vez.
    - Antes de cada request espera al menos `request_delay_s` desde el
      request anterior emitido por esta instancia.
    """

    def __init__(
        self,
        credentials: BexioCredentials,
        *,
        session: Optional[requests.Session] = None,
        base_url: str = DEFAULT_BASE_URL,
        page_size: int = 500,
        request_delay_s: float = 0.2,
        timeout_s: int = 30,
        max_pages: int = 1000,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if page_size <= 0:
            raise ValueError("page_size debe ser > 0")
        self._creds = credentials
        self._base_url = base_url.rstrip("/")
        self._page_size = page_size
        self._request_delay_s = request_delay_s
        self._timeout_s = timeout_s
        self._max_pages = max_pages
        self._session = session or requests.Session()
        self._sleep = sleep
        self._clock = clock
        self._last_request_at: Optional[float] = None

    @property
    def page_size(self) -> int:
        return self._page_size

    def fetch_all(self, path: str, params: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
        """Concatena todas las páginas de `path` en orden."""
        items: list[dict[str, Any]] = []
        for page in self.iter_pages(path, params=params):
            items.extend(page)
        return items

    def iter_pages(
        self, path: str, params: Optional[dict[str, Any]] = None
    ) -> Iterator[list[dict[str, Any]]]:
        """
        Itera páginas de un recurso.

        - Pide `limit=page_size` y avanza `offset` mientras la página venga llena.
        - Una página corta (o vacía) marca el fin de la colección. Si el total es
          múltiplo exacto del page size, el último request devuelve 0 items.
        """
        offset = 0
        for _ in range(self._max_pages):
            query: dict[str, Any] = dict(params or {})
            query["limit"] = self._page_size
            query["offset"] = offset

            page = self._get_page(path, query)
            if page is None:
                # Recurso no disponible para esta cuenta
                return
            yield page

            if len(page) < self._page_size:
                return
            offset += self._page_size

        raise BexioApiError(
            f"bexio {path}: paginación no terminó tras {self._max_pages} páginas",
            endpoint=path,
        )

    def _get_page(self, path: str, query: dict[str, Any]) -> Optional[list[dict[str, Any]]]:
        """
        Un request GET. Retorna None si el recurso no está disponible (404/500).

        - 2xx: items de la página (ver `extract_items`)
        - 404/500: None, el caller lo trata como colección vacía
        - otro status: BexioApiError con endpoint, status y body truncado
        """
        self._throttle()
        resp = self._session.request(
            method="GET",
            url=f"{self._base_url}{path}",
            params=query,
            headers={
                "Accept": "application/json",
                "Authorization": f"Bearer {self._creds.token}",
            },
            timeout=self._timeout_s,
        )

        if 200 <= resp.status_code < 300:
            return extract_items(resp.json())

        if resp.status_code in UNAVAILABLE_STATUSES:
            logger.warning(f"bexio {path} respondió {resp.status_code}; se trata como colección vacía")
            return None

        raise BexioApiError(
            f"bexio {path} -> {resp.status_code}: {truncate(resp.text or '')}",
            endpoint=path,
            status_code=resp.status_code,
        )

    def _throttle(self) -> None:
        now = self._clock()
        if self._last_request_at is not None:
            wait_s = self._request_delay_s - (now - self._last_request_at)
        else:
            wait_s = self._request_delay_s
        if wait_s > 0:
            self._sleep(wait_s)
        self._last_request_at = self._clock()
