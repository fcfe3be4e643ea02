"""
Repositorio Supabase (PostgREST) para:
- tablas destino (UPSERT por PK en lotes)
- tabla de auditoría sync_log

Se usa la REST API de Supabase con service key; el merge por PK lo resuelve
PostgREST con `Prefer: resolution=merge-duplicates`.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

import requests
from loguru import logger

from .types import truncate

MERGE_DUPLICATES = "resolution=merge-duplicates"
DEFAULT_BATCH_SIZE = 500


class SupabaseWriteError(RuntimeError):
    """Error escribiendo un lote en Supabase."""

    def __init__(self, message: str, *, table: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.table = table
        self.status_code = status_code


class SupabaseRestRepository:
    def __init__(
        self,
        url: str,
        service_key: str,
        *,
        session: Optional[requests.Session] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        timeout_s: int = 60,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size debe ser > 0")
        self._base_url = url.rstrip("/")
        self._key = service_key
        self._session = session or requests.Session()
        self._batch_size = batch_size
        self._timeout_s = timeout_s

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def upsert_rows(
        self,
        table: str,
        rows: Iterable[dict[str, Any]],
        *,
        on_conflict: Optional[str] = None,
    ) -> int:
        """
        UPSERT por PK en lotes de `batch_size`.

        - Si ya existe una fila con la misma PK, se sobrescriben sus campos.
        - Lista vacía: no-op, retorna 0 sin request.
        - Un lote fallido aborta la llamada; los lotes previos quedan escritos
          (no hay rollback, reintentar la entidad completa es seguro).

        Retorna la cantidad de filas enviadas.
        """
        rows_list = list(rows)
        if not rows_list:
            return 0

        written = 0
        for start in range(0, len(rows_list), self._batch_size):
            chunk = rows_list[start:start + self._batch_size]
            self._post_batch(table, chunk, on_conflict=on_conflict)
            written += len(chunk)

        logger.debug(f"Supabase {table}: {written} filas enviadas")
        return written

    def _post_batch(
        self,
        table: str,
        chunk: list[dict[str, Any]],
        *,
        on_conflict: Optional[str],
    ) -> None:
        params = {"on_conflict": on_conflict} if on_conflict else None
        resp = self._session.request(
            method="POST",
            url=f"{self._base_url}/rest/v1/{table}",
            params=params,
            headers={
                "Content-Type": "application/json",
                "apikey": self._key,
                "Authorization": f"Bearer {self._key}",
                "Prefer": MERGE_DUPLICATES,
            },
            json=chunk,
            timeout=self._timeout_s,
        )
        if not 200 <= resp.status_code < 300:
            raise SupabaseWriteError(
                f"Supabase {table} -> {resp.status_code}: {truncate(resp.text or '')}",
                table=table,
                status_code=resp.status_code,
            )
